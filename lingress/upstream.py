"""The upstream side of a proxied request: what is sent to the backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from lingress.headers import Headers

FIELD_UPSTREAM_ADDRESS = "address"
FIELD_UPSTREAM_STATUS = "status"
FIELD_UPSTREAM_DURATION = "duration"
FIELD_UPSTREAM_URL = "url"
FIELD_UPSTREAM_METHOD = "method"
FIELD_UPSTREAM_PROTO = "proto"
FIELD_UPSTREAM_SOURCE = "source"
FIELD_UPSTREAM_MATCHES = "matches"

_MICROSECOND = timedelta(microseconds=1)


class RuleLike(Protocol):
    """What a routing rule exposes for reporting."""

    def source(self) -> Any: ...

    def host(self) -> Any: ...

    def path(self) -> list[str]: ...


@dataclass
class UpstreamRequest:
    """A request that is forwarded to a backend."""

    method: str = "GET"
    url: Optional[str] = None
    proto: str = "HTTP/1.1"
    host: str = ""
    headers: Headers = field(default_factory=Headers)
    body: Any = None


@dataclass
class Upstream:
    """State of the upstream side of one request."""

    response: Any = None
    request: Optional[UpstreamRequest] = None
    address: Any = None
    cancel: Optional[Callable[[], None]] = None
    status: int = -1
    started: Optional[datetime] = None
    duration: timedelta = field(default_factory=timedelta)

    def apply_to_map(self, rule: Optional[RuleLike], prefix: str, target: dict[str, Any]) -> None:
        if self.address is not None:
            target[prefix + FIELD_UPSTREAM_ADDRESS] = str(self.address)
        if self.status > 0:
            target[prefix + FIELD_UPSTREAM_STATUS] = self.status
        if self.duration > timedelta(0):
            target[prefix + FIELD_UPSTREAM_DURATION] = self.duration // _MICROSECOND
        request = self.request
        if request is not None:
            if request.url is not None:
                target[prefix + FIELD_UPSTREAM_URL] = request.url
            target[prefix + FIELD_UPSTREAM_METHOD] = request.method
            target[prefix + FIELD_UPSTREAM_PROTO] = request.proto
        if rule is not None:
            target[prefix + FIELD_UPSTREAM_SOURCE] = str(rule.source())
            target[prefix + FIELD_UPSTREAM_MATCHES] = f"{rule.host()}/" + "/".join(rule.path())

    def as_map(self, rule: Optional[RuleLike]) -> Optional[dict[str, Any]]:
        """The fields as a dict, or None when nothing is set."""
        result: dict[str, Any] = {}
        self.apply_to_map(rule, "", result)
        return result or None

    def clean(self) -> None:
        """Close the request body and reset every field."""
        request = self.request
        if request is not None and request.body is not None:
            close = getattr(request.body, "close", None)
            if callable(close):
                try:
                    close()
                except Exception:  # noqa: BLE001 - closing is best effort
                    pass
        self.response = None
        self.request = None
        self.address = None
        self.cancel = None
        self.status = -1
        self.started = None
        self.duration = timedelta()