"""The per-request context that carries state through all stages."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from lingress.client import Client, Request, Response
from lingress.ids import NIL_REQUEST_ID, RequestId, new_correlation_id, new_id
from lingress.result import RESULT_UNKNOWN
from lingress.stage import Stage
from lingress.upstream import RuleLike, Upstream

FIELD_REQUEST_ID = "requestId"
FIELD_CORRELATION_ID = "correlationId"
FIELD_CLIENT = "client"
FIELD_UPSTREAM = "upstream"
FIELD_RESULT = "result"
FIELD_ERROR = "error"


class MetricsCollector(Protocol):
    """Receives metrics about handled requests."""

    def collect_context(self, ctx: "Context") -> None: ...

    def collect_client_started(self, connector: str) -> Callable[[], None]: ...

    def collect_upstream_started(self) -> Callable[[], None]: ...


@dataclass
class Context:
    """Everything known about one request while it is handled."""

    client: Client = field(default_factory=Client)
    upstream: Upstream = field(default_factory=Upstream)
    id: RequestId = NIL_REQUEST_ID
    correlation_id: RequestId = NIL_REQUEST_ID
    stage: Stage = Stage.UNKNOWN
    logger: Optional[logging.Logger] = None
    rule: Optional[RuleLike] = None
    result: Any = RESULT_UNKNOWN
    error: Optional[BaseException] = None
    properties: Optional[dict[str, Any]] = None
    settings: Any = None

    def done(self, result: Any, error: Optional[BaseException] = None) -> None:
        if error is not None:
            self.error = error
        self.result = result

    def mark_error(self, error: BaseException) -> None:
        self.error = error
        self.client.status = 500

    def mark_unavailable(self, error: BaseException) -> None:
        self.error = error
        self.client.status = 503

    def mark_unknown(self) -> None:
        self.client.status = 404

    def as_map(self, inline_fields: bool = False) -> dict[str, Any]:
        result: dict[str, Any] = {
            FIELD_REQUEST_ID: str(self.id),
            FIELD_CORRELATION_ID: str(self.correlation_id),
            FIELD_RESULT: self.result.name(),
        }
        if inline_fields:
            self.client.apply_to_map(FIELD_CLIENT + ".", result)
            self.upstream.apply_to_map(self.rule, FIELD_UPSTREAM + ".", result)
        else:
            result[FIELD_CLIENT] = self.client.as_map()
            upstream = self.upstream.as_map(self.rule)
            if upstream:
                result[FIELD_UPSTREAM] = upstream
        if self.error is not None:
            result[FIELD_ERROR] = self.error
        return result

    def to_json(self) -> str:
        return json.dumps(self.as_map(False), default=str)

    def log(self) -> logging.LoggerAdapter:
        """A logger that carries the fields of this context."""
        logger = self.logger or logging.getLogger("lingress")
        return logging.LoggerAdapter(logger, self.as_map(False))

    def release(self) -> None:
        """Reset the context and close any bodies it still holds."""
        self.client.clean()
        self.upstream.clean()
        self.stage = Stage.UNKNOWN
        self.id = NIL_REQUEST_ID
        self.correlation_id = NIL_REQUEST_ID
        self.logger = None
        self.rule = None
        self.result = RESULT_UNKNOWN
        self.error = None
        self.properties = None


def acquire_context(
    connector: str,
    from_other_reverse_proxy: bool,
    request: Request,
    response: Response,
    logger: Optional[logging.Logger] = None,
) -> Context:
    """Create a fresh context for an incoming request."""
    return Context(
        client=Client(
            connector=connector,
            from_other_reverse_proxy=from_other_reverse_proxy,
            request=request,
            response=response,
        ),
        upstream=Upstream(),
        id=new_id(from_other_reverse_proxy, request.headers),
        correlation_id=new_correlation_id(request.headers),
        stage=Stage.CREATED,
        logger=logger,
        rule=None,
        result=RESULT_UNKNOWN,
        error=None,
        properties={},
    )