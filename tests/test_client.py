from datetime import timedelta

import pytest

from lingress.client import Client, NoRequestSetError, Request, Response
from lingress.headers import Headers


def make_client(proxy=False, **kwargs):
    defaults = dict(
        method="GET",
        request_uri="/foo?a=1",
        host="example.com",
        remote_addr="10.0.0.1:1234",
    )
    defaults.update(kwargs)
    return Client(connector="http", from_other_reverse_proxy=proxy, request=Request(**defaults), response=Response())


def test_requested_url_plain():
    client = make_client()
    url = client.requested_url()
    assert url.scheme == "http"
    assert url.netloc == "example.com"
    assert url.path == "/foo"
    assert url.query == "a=1"


def test_requested_url_tls_is_https():
    client = make_client(tls=True)
    assert client.requested_url().scheme == "https"


def test_forwarded_headers_ignored_without_proxy():
    headers = Headers({"X-Forwarded-Proto": "https", "X-Forwarded-Host": "other.example.com"})
    client = make_client(headers=headers)
    url = client.requested_url()
    assert url.scheme == "http"
    assert url.netloc == "example.com"


def test_forwarded_headers_used_behind_proxy():
    headers = Headers({
        "X-Forwarded-Proto": "https",
        "X-Forwarded-Host": "other.example.com",
        "X-Forwarded-Prefix": "/pre",
    })
    client = make_client(proxy=True, headers=headers)
    url = client.requested_url()
    assert url.scheme == "https"
    assert url.netloc == "other.example.com"
    assert url.path == "/pre/foo"


def test_original_uri_overrides_behind_proxy():
    headers = Headers({"X-Original-URI": "/orig", "X-Forwarded-Prefix": "/pre"})
    client = make_client(proxy=True, headers=headers)
    assert client.requested_url().path == "/orig"


def test_host_header_wins_over_request_host():
    client = make_client(headers=Headers({"Host": "header.example.com"}))
    assert client.host() == "header.example.com"


def test_host_without_request_is_empty():
    assert Client().host() == ""


def test_requested_url_is_cached():
    client = make_client()
    first = client.requested_url()
    client.request.host = "changed.example.com"
    assert client.requested_url() is first


def test_requested_url_takes_user_and_fragment_from_request_url():
    client = make_client(url="http://user@example.com/foo#frag")
    url = client.requested_url()
    assert url.username == "user"
    assert url.fragment == "frag"


def test_no_request_raises():
    client = Client()
    with pytest.raises(NoRequestSetError):
        client.requested_url()
    with pytest.raises(NoRequestSetError):
        client.address()
    with pytest.raises(NoRequestSetError):
        client.origin()


def test_address_splits_port():
    assert make_client().address() == "10.0.0.1"


def test_address_ipv6():
    assert make_client(remote_addr="[::1]:8080").address() == "::1"


def test_address_forwarded_for_behind_proxy():
    client = make_client(proxy=True, headers=Headers({"X-Forwarded-For": "192.168.1.2"}))
    assert client.address() == "192.168.1.2"


def test_illegal_address_raises():
    client = make_client(remote_addr="no-port")
    with pytest.raises(ValueError, match="illegal remote address"):
        client.address()


def test_origin_absent_is_none():
    assert make_client().origin() is None


def test_origin_parsed():
    client = make_client(headers=Headers({"Origin": "https://origin.example.com:8443"}))
    origin = client.origin()
    assert origin.hostname == "origin.example.com"
    assert origin.port == 8443


def test_as_map_contents():
    client = make_client(headers=Headers({"User-Agent": "agent/1.0"}))
    client.status = 200
    client.duration = timedelta(milliseconds=3)
    data = client.as_map()
    assert data["method"] == "GET"
    assert data["proto"] == "HTTP/1.1"
    assert data["userAgent"] == "agent/1.0"
    assert data["url"] == "http://example.com/foo?a=1"
    assert data["address"] == "10.0.0.1"
    assert data["status"] == 200
    assert data["duration"] == 3000


def test_as_map_omits_unset_status_and_duration():
    data = make_client().as_map()
    assert "status" not in data
    assert "duration" not in data


def test_apply_to_map_with_prefix():
    target = {}
    make_client().apply_to_map("client.", target)
    assert target["client.method"] == "GET"
    assert all(key.startswith("client.") for key in target)


def test_clean_resets_and_closes_body():
    class Body:
        closed = False

        def close(self):
            self.closed = True

    body = Body()
    client = make_client(body=body)
    client.status = 200
    client.requested_url()
    client.clean()
    assert body.closed
    assert client.request is None
    assert client.status == -1
    assert client.duration is None
    with pytest.raises(NoRequestSetError):
        client.requested_url()


def test_response_write_header_only_once():
    response = Response()
    response.write_header(404)
    response.write_header(500)
    assert response.status == 404
    assert response.write(b"abc") == 3
    assert bytes(response.body) == b"abc"


def test_response_write_defaults_status():
    response = Response()
    response.write(b"x")
    assert response.status == 200