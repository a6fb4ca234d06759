import pytest

from lingress import result as r
from lingress.result import RedirectResult, SimpleResult


@pytest.mark.parametrize(
    "res, name, status",
    [
        (r.RESULT_UNKNOWN, "unknown", 500),
        (r.RESULT_SUCCESS, "success", 200),
        (r.RESULT_OK, "ok", 200),
        (r.RESULT_FAILED_WITH_UNEXPECTED_ERROR, "unexpectedError", 500),
        (r.RESULT_FAILED_WITH_RULE_NOT_FOUND, "ruleNotFound", 404),
        (r.RESULT_FAILED_WITH_UPSTREAM_UNAVAILABLE, "upstreamUnavailable", 503),
        (r.RESULT_FAILED_WITH_ACCESS_DENIED, "accessDenied", 403),
        (r.RESULT_FALLBACK, "fallback", 200),
        (r.RESULT_FAILED_WITH_UNAUTHORIZED, "unauthorized", 401),
        (r.RESULT_FAILED_WITH_CLIENT_GONE, "clientGone", 410),
        (r.RESULT_FAILED_WITH_ILLEGAL_HOST, "illegalHost", 422),
    ],
)
def test_simple_result_name_and_status(res, name, status):
    assert res.name() == name
    assert str(res) == name
    assert res.status() == status


def test_only_success_was_sent_to_client():
    sent = [res for res in map(SimpleResult, range(11)) if res.was_response_sent_to_client()]
    assert sent == [r.RESULT_SUCCESS]


def test_unregistered_simple_result():
    res = SimpleResult(42)
    assert res.name() == "unknown-result-42"
    assert res.status() == 500
    assert res.was_response_sent_to_client() is False


def test_simple_results_compare_by_code():
    assert SimpleResult(4) == r.RESULT_FAILED_WITH_RULE_NOT_FOUND


def test_redirect_result():
    res = RedirectResult(301, "https://example.com/next")
    assert res.name() == "redirect-301"
    assert str(res) == "redirect-301:https://example.com/next"
    assert res.status() == 301
    assert res.was_response_sent_to_client() is False


def test_redirect_result_is_immutable():
    res = RedirectResult(308, "https://example.com/")
    with pytest.raises(AttributeError):
        res.target = "https://example.com/other"
    assert str(res) == "redirect-308:https://example.com/"