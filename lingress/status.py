"""Classification of HTTP status codes for fallback pages."""

from __future__ import annotations

from http import HTTPStatus

_TEMPORARY_ISSUES = frozenset(
    {
        HTTPStatus.BAD_GATEWAY,
        HTTPStatus.SERVICE_UNAVAILABLE,
        HTTPStatus.LOOP_DETECTED,
        HTTPStatus.NETWORK_AUTHENTICATION_REQUIRED,
    }
)


def is_status_temporary_issue(code: int) -> bool:
    """Whether the status hints at a problem that may go away by retrying."""
    return code in _TEMPORARY_ISSUES


def is_status_code_an_issue(code: int) -> bool:
    return code >= 400


def is_status_client_side_issue(code: int) -> bool:
    return 400 <= code <= 499


def is_status_server_side_issue(code: int) -> bool:
    return 500 <= code <= 599