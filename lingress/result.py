"""Outcomes of handling a request."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus

_RESULT_NAMES = {
    0: "unknown",
    1: "success",
    2: "ok",
    3: "unexpectedError",
    4: "ruleNotFound",
    5: "upstreamUnavailable",
    6: "accessDenied",
    7: "fallback",
    8: "unauthorized",
    9: "clientGone",
    10: "illegalHost",
}

_RESULT_STATUSES = {
    0: HTTPStatus.INTERNAL_SERVER_ERROR,
    1: HTTPStatus.OK,
    2: HTTPStatus.OK,
    3: HTTPStatus.INTERNAL_SERVER_ERROR,
    4: HTTPStatus.NOT_FOUND,
    5: HTTPStatus.SERVICE_UNAVAILABLE,
    6: HTTPStatus.FORBIDDEN,
    7: HTTPStatus.OK,
    8: HTTPStatus.UNAUTHORIZED,
    9: HTTPStatus.GONE,
    10: HTTPStatus.UNPROCESSABLE_ENTITY,
}


@dataclass(frozen=True)
class SimpleResult:
    """A result identified by a small numeric code."""

    code: int

    def name(self) -> str:
        return _RESULT_NAMES.get(self.code, f"unknown-result-{self.code}")

    def status(self) -> int:
        return int(_RESULT_STATUSES.get(self.code, HTTPStatus.INTERNAL_SERVER_ERROR))

    def was_response_sent_to_client(self) -> bool:
        return self.code == 1

    def __str__(self) -> str:
        return self.name()


@dataclass(frozen=True)
class RedirectResult:
    """A result asking the client to go to another location."""

    status_code: int
    target: str

    def name(self) -> str:
        return f"redirect-{self.status_code}"

    def status(self) -> int:
        return self.status_code

    def was_response_sent_to_client(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{self.name()}:{self.target}"


RESULT_UNKNOWN = SimpleResult(0)
RESULT_SUCCESS = SimpleResult(1)
RESULT_OK = SimpleResult(2)
RESULT_FAILED_WITH_UNEXPECTED_ERROR = SimpleResult(3)
RESULT_FAILED_WITH_RULE_NOT_FOUND = SimpleResult(4)
RESULT_FAILED_WITH_UPSTREAM_UNAVAILABLE = SimpleResult(5)
RESULT_FAILED_WITH_ACCESS_DENIED = SimpleResult(6)
RESULT_FALLBACK = SimpleResult(7)
RESULT_FAILED_WITH_UNAUTHORIZED = SimpleResult(8)
RESULT_FAILED_WITH_CLIENT_GONE = SimpleResult(9)
RESULT_FAILED_WITH_ILLEGAL_HOST = SimpleResult(10)