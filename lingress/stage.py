"""Processing stages a request passes through."""

from __future__ import annotations

from enum import IntEnum

_STAGE_NAMES = {
    0: "unknown",
    1: "created",
    2: "evaluateClientRequest",
    3: "prepareUpstreamRequest",
    4: "sendRequestToUpstream",
    5: "prepareClientResponse",
    6: "sendResponseToClient",
    7: "done",
}


class Stage(IntEnum):
    """The stage a request context is currently in."""

    UNKNOWN = 0
    CREATED = 1
    EVALUATE_CLIENT_REQUEST = 2
    PREPARE_UPSTREAM_REQUEST = 3
    SEND_REQUEST_TO_UPSTREAM = 4
    PREPARE_CLIENT_RESPONSE = 5
    SEND_RESPONSE_TO_CLIENT = 6
    DONE = 7

    def __str__(self) -> str:
        return _STAGE_NAMES.get(int(self), f"unknown-stage-{int(self)}")