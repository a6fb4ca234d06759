"""The client side of a proxied request: what came in and what goes back."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional
from urllib.parse import SplitResult, urlsplit

from lingress.headers import Headers

FIELD_CLIENT_METHOD = "method"
FIELD_CLIENT_PROTO = "proto"
FIELD_CLIENT_USER_AGENT = "userAgent"
FIELD_CLIENT_URL = "url"
FIELD_CLIENT_ADDRESS = "address"
FIELD_CLIENT_STATUS = "status"
FIELD_CLIENT_DURATION = "duration"

_MICROSECOND = timedelta(microseconds=1)


class NoRequestSetError(LookupError):
    """Raised when a client has no request to inspect."""

    def __init__(self) -> None:
        super().__init__("no request set")


def _split_host_port(address: str) -> tuple[str, str]:
    """Split ``host:port`` or ``[host]:port``; raises ValueError when malformed."""
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError("missing ']' in address")
        host, rest = address[1:end], address[end + 1:]
        if not rest:
            raise ValueError("missing port in address")
        if not rest.startswith(":") or ":" in rest[1:]:
            raise ValueError("too many colons in address")
        return host, rest[1:]
    index = address.rfind(":")
    if index < 0:
        raise ValueError("missing port in address")
    host = address[:index]
    if ":" in host:
        raise ValueError("too many colons in address")
    return host, address[index + 1:]


def _close_body(body: Any) -> None:
    close = getattr(body, "close", None)
    if callable(close):
        try:
            close()
        except Exception:  # noqa: BLE001 - closing is best effort
            pass


@dataclass
class Request:
    """An incoming HTTP request as received from a client."""

    method: str = "GET"
    request_uri: str = "/"
    host: str = ""
    proto: str = "HTTP/1.1"
    remote_addr: str = ""
    headers: Headers = field(default_factory=Headers)
    tls: bool = False
    url: str = ""
    body: Any = None

    @property
    def parsed_url(self) -> SplitResult:
        return urlsplit(self.url or self.request_uri)


@dataclass
class Response:
    """A response that is being written back to a client."""

    headers: Headers = field(default_factory=Headers)
    status: Optional[int] = None
    body: bytearray = field(default_factory=bytearray)

    def write_header(self, status: int) -> None:
        """Record the status code; only the first call has an effect."""
        if self.status is None:
            self.status = status

    def write(self, data: bytes) -> int:
        if self.status is None:
            self.write_header(200)
        self.body.extend(data)
        return len(data)


@dataclass
class Client:
    """State of the client side of one request."""

    connector: str = ""
    from_other_reverse_proxy: bool = False
    request: Optional[Request] = None
    response: Optional[Response] = None
    status: int = -1
    started: Optional[datetime] = None
    duration: Optional[timedelta] = None

    _requested_url: Optional[SplitResult] = field(default=None, init=False, repr=False)
    _origin: Optional[SplitResult] = field(default=None, init=False, repr=False)
    _address: Optional[str] = field(default=None, init=False, repr=False)

    def _scheme_of(self, request: Request) -> str:
        if request.tls:
            return "https"
        if self.from_other_reverse_proxy:
            for name in ("X-Forwarded-Proto", "X-Scheme"):
                value = request.headers.get(name)
                if value:
                    return value
        return "http"

    def _host_of(self, request: Request) -> str:
        host = request.host
        value = request.headers.get("Host")
        if value:
            host = value
        if self.from_other_reverse_proxy:
            value = request.headers.get("X-Forwarded-Host")
            if value:
                host = value
        return host

    def _uri_of(self, request: Request) -> str:
        result = request.request_uri
        if self.from_other_reverse_proxy:
            prefix = request.headers.get("X-Forwarded-Prefix")
            if prefix:
                result = prefix + result
            original = request.headers.get("X-Original-URI")
            if original:
                result = original
        return result

    def host(self) -> str:
        """The host the client asked for, or an empty string without a request."""
        if self.request is None:
            return ""
        return self._host_of(self.request)

    def requested_url(self) -> SplitResult:
        """The URL as the client requested it; raises NoRequestSetError or ValueError."""
        if self._requested_url is not None:
            return self._requested_url
        request = self.request
        if request is None:
            raise NoRequestSetError()
        raw = f"{self._scheme_of(request)}://{self._host_of(request)}{self._uri_of(request)}"
        parsed = urlsplit(raw)
        source = request.parsed_url
        user = source.netloc.rpartition("@")[0] if "@" in source.netloc else ""
        host_part = parsed.netloc.rpartition("@")[2]
        result = parsed._replace(
            netloc=f"{user}@{host_part}" if user else host_part,
            fragment=source.fragment,
        )
        self._requested_url = result
        return result

    def origin(self) -> Optional[SplitResult]:
        """The parsed Origin header, or None when absent or unparsable."""
        if self._origin is not None:
            return self._origin
        request = self.request
        if request is None:
            raise NoRequestSetError()
        raw = request.headers.get("Origin")
        if not raw:
            return None
        try:
            parsed = urlsplit(raw)
        except ValueError:
            return None
        self._origin = parsed
        return parsed

    def address(self) -> str:
        """The remote address of the client, honouring X-Forwarded-For behind a proxy."""
        if self._address is not None:
            return self._address
        request = self.request
        if request is None:
            raise NoRequestSetError()
        try:
            result, _ = _split_host_port(request.remote_addr)
        except ValueError as error:
            raise ValueError(f"illegal remote address ({request.remote_addr}): {error}") from None
        if self.from_other_reverse_proxy:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                result = forwarded
        self._address = result
        return result

    def apply_to_map(self, prefix: str, target: dict[str, Any]) -> None:
        request = self.request
        if request is None:
            raise NoRequestSetError()
        target[prefix + FIELD_CLIENT_METHOD] = request.method
        target[prefix + FIELD_CLIENT_PROTO] = request.proto
        target[prefix + FIELD_CLIENT_USER_AGENT] = request.headers.get("User-Agent")
        try:
            target[prefix + FIELD_CLIENT_URL] = self.requested_url().geturl()
        except ValueError:
            pass
        try:
            target[prefix + FIELD_CLIENT_ADDRESS] = self.address()
        except ValueError:
            pass
        if self.status > 0:
            target[prefix + FIELD_CLIENT_STATUS] = self.status
        if self.duration is not None:
            target[prefix + FIELD_CLIENT_DURATION] = self.duration // _MICROSECOND

    def as_map(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        self.apply_to_map("", result)
        return result

    def clean(self) -> None:
        """Close the request body and reset every field."""
        if self.request is not None and self.request.body is not None:
            _close_body(self.request.body)
        self.connector = ""
        self.from_other_reverse_proxy = False
        self.request = None
        self.response = None
        self.status = -1
        self.started = None
        self.duration = None
        self._requested_url = None
        self._origin = None
        self._address = None