import base64
import uuid

import pytest

from lingress.headers import Headers
from lingress.ids import NIL_REQUEST_ID, RequestId, new_correlation_id, new_id


def test_round_trip():
    rid = RequestId.random()
    assert RequestId.parse(str(rid)) == rid


def test_text_form_is_unpadded_base64_of_uuid_bytes():
    rid = RequestId.random()
    text = str(rid)
    assert "=" not in text
    assert base64.b64decode(text + "==") == rid.uuid.bytes


def test_nil_round_trip():
    assert RequestId.parse(str(NIL_REQUEST_ID)) == NIL_REQUEST_ID
    assert NIL_REQUEST_ID.uuid.int == 0


def test_random_ids_are_version_4():
    assert RequestId.random().uuid.version == 4


@pytest.mark.parametrize(
    "text",
    [
        "not valid!",
        base64.b64encode(b"12345678").decode().rstrip("="),
        base64.b64encode(uuid.uuid4().bytes).decode(),
        "",
    ],
)
def test_parse_rejects_invalid(text):
    with pytest.raises(ValueError, match="illegal id"):
        RequestId.parse(text)


def test_new_id_accepts_header_behind_reverse_proxy():
    given = RequestId.random()
    headers = Headers({"X-Request-ID": str(given)})
    assert new_id(True, headers) == given


def test_new_id_ignores_header_when_not_behind_proxy():
    given = RequestId.random()
    headers = Headers({"X-Request-ID": str(given)})
    result = new_id(False, headers)
    assert result != given
    assert result.uuid.version == 4


def test_new_id_ignores_invalid_header():
    headers = Headers({"X-Request-ID": "garbage value"})
    assert new_id(True, headers).uuid.version == 4


def test_new_id_ignores_overlong_header():
    headers = Headers({"X-Request-ID": "A" * 300})
    assert new_id(True, headers).uuid.version == 4


def test_new_correlation_id_always_accepts_header():
    given = RequestId.random()
    headers = Headers({"x-correlation-id": str(given)})
    assert new_correlation_id(headers) == given


def test_new_correlation_id_without_header():
    assert new_correlation_id(Headers()).uuid.version == 4