"""Hooks that run at the stages of request handling."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from typing import Any

from lingress.client import _split_host_port
from lingress.stage import Stage

InterceptorFunc = Callable[[Any], bool]


class Interceptor(ABC):
    """Something that takes part in handling a request at certain stages.

    ``handle`` returns whether handling should go on; problems are raised.
    """

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def handle(self, ctx: Any) -> bool: ...

    @abstractmethod
    def handles_stages(self) -> Sequence[Stage]: ...


class FunctionInterceptor(Interceptor):
    """An interceptor made of a plain function."""

    def __init__(self, name: str, handler: InterceptorFunc, stages: Sequence[Stage]) -> None:
        self._name = name
        self._handler = handler
        self._stages = tuple(stages)

    def name(self) -> str:
        return self._name

    def handle(self, ctx: Any) -> bool:
        return self._handler(ctx)

    def handles_stages(self) -> Sequence[Stage]:
        return self._stages

    def __repr__(self) -> str:
        return f"FunctionInterceptor({self._name!r}, stages={list(self._stages)!r})"


class Interceptors:
    """Interceptors grouped by stage and keyed by name."""

    def __init__(self) -> None:
        self._by_stage: dict[Stage, dict[str, Interceptor]] = {}

    def handle(self, ctx: Any) -> bool:
        """Run every interceptor of the context's stage; stop at the first that declines."""
        for candidate in list(self._by_stage.get(ctx.stage, {}).values()):
            if not candidate.handle(ctx):
                return False
        return True

    def add(self, interceptor: Interceptor) -> "Interceptors":
        name = interceptor.name()
        for stage in interceptor.handles_stages():
            self._by_stage.setdefault(stage, {})[name] = interceptor
        return self

    def add_func(self, name: str, handler: InterceptorFunc, *args: Stage) -> "Interceptors":
        """Add a function as interceptor for the given stages."""
        return self.add(FunctionInterceptor(name, handler, args))

    def remove(self, interceptor: Interceptor) -> "Interceptors":
        return self.remove_by_name(interceptor.name())

    def remove_by_name(self, name: str) -> "Interceptors":
        for stage in list(self._by_stage):
            candidates = self._by_stage[stage]
            candidates.pop(name, None)
            if not candidates:
                del self._by_stage[stage]
        return self

    def clone(self) -> "Interceptors":
        result = Interceptors()
        result._by_stage = {stage: dict(candidates) for stage, candidates in self._by_stage.items()}
        return result

    def __getitem__(self, stage: Stage) -> dict[str, Interceptor]:
        return dict(self._by_stage[stage])

    def __contains__(self, stage: object) -> bool:
        return stage in self._by_stage

    def __iter__(self) -> Iterator[Stage]:
        return iter(list(self._by_stage))

    def __len__(self) -> int:
        return len(self._by_stage)


def _request_uri(url: Any) -> str:
    result = url.path or "/"
    if url.query:
        result += "?" + url.query
    return result


def upstream_hints_interceptor(ctx: Any) -> bool:
    """Tell the backend where the request came from and how it is identified."""
    request = ctx.upstream.request
    headers = request.headers
    headers.set("X-Source", str(ctx.rule.source()))
    headers.set("X-Request-Id", str(ctx.id))
    headers.set("X-Correlation-Id", str(ctx.correlation_id))

    url = ctx.client.requested_url()
    if url is not None:
        host = url.netloc.rpartition("@")[2]
        request.host = host
        headers.set("Host", host)
        headers.set("X-Forwarded-Host", host)
        headers.set("X-Forwarded-Proto", url.scheme)
        headers.set("X-Original-Uri", _request_uri(url))

    remote_addr = ctx.client.request.remote_addr
    try:
        remote, _ = _split_host_port(remote_addr)
    except ValueError:
        headers.add("X-Forwarded-For", remote_addr)
    else:
        headers.add("X-Forwarded-For", remote)
    return True


def client_hints_interceptor(ctx: Any) -> bool:
    """Tell the client which rule served it and how the request is identified."""
    headers = ctx.client.response.headers
    if ctx.rule is not None:
        headers.set("X-Source", str(ctx.rule.source()))
    headers.set("X-Request-Id", str(ctx.id))
    headers.set("X-Correlation-Id", str(ctx.correlation_id))
    return True


def default_interceptors() -> Interceptors:
    """A fresh set holding the standard hint interceptors."""
    return (
        Interceptors()
        .add_func("upstreamHints", upstream_hints_interceptor, Stage.PREPARE_UPSTREAM_REQUEST)
        .add_func("clientHints", client_hints_interceptor, Stage.PREPARE_CLIENT_RESPONSE)
    )