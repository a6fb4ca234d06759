"""Request and correlation identifiers."""

from __future__ import annotations

import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Any

_MAX_HEADER_LENGTH = 256


@dataclass(frozen=True)
class RequestId:
    """A UUID rendered as unpadded standard base64."""

    uuid: uuid.UUID

    @classmethod
    def parse(cls, text: str) -> "RequestId":
        """Parse the textual form; raises ValueError when it is not a valid id."""
        if "=" in text:
            raise ValueError(f'illegal id: "{text}"')
        try:
            decoded = base64.b64decode(text + "=" * (-len(text) % 4), validate=True)
        except (binascii.Error, ValueError):
            raise ValueError(f'illegal id: "{text}"') from None
        if len(decoded) != 16:
            raise ValueError(f'illegal id: "{text}"')
        return cls(uuid.UUID(bytes=decoded))

    @classmethod
    def random(cls) -> "RequestId":
        return cls(uuid.uuid4())

    def __str__(self) -> str:
        return base64.b64encode(self.uuid.bytes).decode("ascii").rstrip("=")


NIL_REQUEST_ID = RequestId(uuid.UUID(int=0))


def _new_id(accept_upstream_header: bool, header_name: str, headers: Any) -> RequestId:
    if accept_upstream_header and headers is not None:
        candidate = headers.get(header_name) or ""
        if 0 < len(candidate) <= _MAX_HEADER_LENGTH:
            try:
                return RequestId.parse(candidate)
            except ValueError:
                pass
    return RequestId.random()


def new_id(from_other_reverse_proxy: bool, headers: Any) -> RequestId:
    """Return the request id, taken from X-Request-ID when trusted and valid."""
    return _new_id(from_other_reverse_proxy, "X-Request-ID", headers)


def new_correlation_id(headers: Any) -> RequestId:
    """Return the correlation id, taken from X-Correlation-ID when valid."""
    return _new_id(True, "X-Correlation-ID", headers)