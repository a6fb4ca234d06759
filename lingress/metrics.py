"""Request, connection and rule metrics with a Prometheus text rendering."""

from __future__ import annotations

import bisect
import math
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

METRICS_LABEL_NAMES = (
    "client_status",
    "client_status_summary",
    "upstream_status",
    "upstream_status_summary",
    "rule",
)
DEFAULT_BUCKETS = (0.001, 0.01, 0.1, 1.0, 10.0)


def _format_float(value: float) -> str:
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _format_labels(pairs: Iterable[tuple[str, str]]) -> str:
    items = sorted(pairs)
    if not items:
        return ""
    return "{" + ",".join(f'{key}="{_escape(value)}"' for key, value in items) + "}"


def _header(name: str, description: str, kind: str) -> list[str]:
    return [f"# HELP {name} {description}", f"# TYPE {name} {kind}"]


def _label_key(label_names: Sequence[str], labels: Mapping[str, str]) -> tuple[str, ...]:
    if set(labels) != set(label_names):
        raise ValueError(f"labels {sorted(labels)} do not match {sorted(label_names)}")
    return tuple(str(labels[name]) for name in label_names)


class CounterVec:
    """Monotonic counters partitioned by labels."""

    def __init__(self, name: str, description: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.description = description
        self.label_names = tuple(label_names)
        self._values: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def inc(self, labels: Mapping[str, str]) -> None:
        key = _label_key(self.label_names, labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + 1.0

    def value(self, labels: Mapping[str, str]) -> float:
        key = _label_key(self.label_names, labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def render(self) -> list[str]:
        with self._lock:
            values = dict(self._values)
        if not values:
            return []
        lines = _header(self.name, self.description, "counter")
        for key, value in values.items():
            labels = _format_labels(zip(self.label_names, key))
            lines.append(f"{self.name}{labels} {_format_float(value)}")
        return lines


@dataclass
class _HistogramSeries:
    buckets: list[int]
    sum: float = 0.0
    count: int = 0


class HistogramVec:
    """Histograms partitioned by labels."""

    def __init__(
        self,
        name: str,
        description: str,
        label_names: Sequence[str],
        buckets: Sequence[float] = DEFAULT_BUCKETS,
    ) -> None:
        self.name = name
        self.description = description
        self.label_names = tuple(label_names)
        self.buckets = tuple(sorted(float(bound) for bound in buckets))
        self._series: dict[tuple[str, ...], _HistogramSeries] = {}
        self._lock = threading.Lock()

    def observe(self, labels: Mapping[str, str], value: float) -> None:
        key = _label_key(self.label_names, labels)
        index = bisect.bisect_left(self.buckets, value)
        with self._lock:
            series = self._series.get(key)
            if series is None:
                series = _HistogramSeries([0] * (len(self.buckets) + 1))
                self._series[key] = series
            series.buckets[index] += 1
            series.sum += value
            series.count += 1

    def count(self, labels: Mapping[str, str]) -> int:
        key = _label_key(self.label_names, labels)
        with self._lock:
            series = self._series.get(key)
            return series.count if series else 0

    def render(self) -> list[str]:
        with self._lock:
            snapshot = {
                key: _HistogramSeries(list(s.buckets), s.sum, s.count)
                for key, s in self._series.items()
            }
        if not snapshot:
            return []
        lines = _header(self.name, self.description, "histogram")
        for key, series in snapshot.items():
            pairs = list(zip(self.label_names, key))
            cumulative = 0
            for bound, amount in zip((*self.buckets, math.inf), series.buckets):
                cumulative += amount
                labels = _format_labels([*pairs, ("le", _format_float(bound))])
                lines.append(f"{self.name}_bucket{labels} {cumulative}")
            labels = _format_labels(pairs)
            lines.append(f"{self.name}_sum{labels} {_format_float(series.sum)}")
            lines.append(f"{self.name}_count{labels} {series.count}")
        return lines


class RequestMetrics:
    """Duration, amount and in-flight count of requests of one variant."""

    def __init__(self, variant: str, buckets: Sequence[float] = DEFAULT_BUCKETS) -> None:
        self.variant = variant
        subsystem = f"lingress_{variant}_requests"
        self.duration_seconds = HistogramVec(
            f"{subsystem}_duration_seconds",
            f"Duration in seconds per request of {variant}s.",
            METRICS_LABEL_NAMES,
            buckets,
        )
        self.total = CounterVec(
            f"{subsystem}_total", f"Amount of requests of {variant}s.", METRICS_LABEL_NAMES
        )
        self.current = 0
        self._lock = threading.Lock()

    def _started(self) -> Callable[[], None]:
        with self._lock:
            self.current += 1

        def finalize() -> None:
            with self._lock:
                self.current -= 1

        return finalize

    def render(self) -> list[str]:
        name = f"lingress_{self.variant}_requests_current"
        return [
            *self.duration_seconds.render(),
            *self.total.render(),
            *_header(name, f"Amount of current connected requests of {self.variant}s.", "gauge"),
            f"{name} {self.current}",
        ]


@dataclass
class ConnectionStates:
    """Counts of connections by state."""

    new: int = 0
    active: int = 0
    idle: int = 0
    current: int = 0
    total: int = 0
    max: int = 0


_CONNECTION_GAUGES = (
    ("new", "Amount of new connections of {}s."),
    ("active", "Amount of active connections of {}s."),
    ("idle", "Amount of idle connections of {}s."),
    ("current", "Amount of current connected connections of {}s."),
    ("total", "Amount of total ever connections of {}s."),
)


@dataclass
class ClientMetrics:
    """Metrics of the clients of one connector."""

    request: RequestMetrics
    connections: ConnectionStates = field(default_factory=ConnectionStates)

    def render(self) -> list[str]:
        variant = self.request.variant
        lines = self.request.render()
        for attribute, description in _CONNECTION_GAUGES:
            name = f"lingress_{variant}_connections_{attribute}"
            lines.extend(_header(name, description.format(variant), "gauge"))
            lines.append(f"{name} {getattr(self.connections, attribute)}")
        return lines


def _status_summary(status: int) -> str:
    if 100 <= status < 400:
        return "ok"
    if status < 500:
        return "error_client"
    if status < 600:
        return "error_server"
    return "none"


def labels_for(ctx: Any) -> dict[str, str]:
    """The metric labels describing a handled request."""
    result = {name: "none" for name in METRICS_LABEL_NAMES}
    status = ctx.client.status
    if status > 0:
        result["client_status"] = str(status)
        result["client_status_summary"] = _status_summary(status)
    status = ctx.upstream.status
    if status > 0:
        result["upstream_status"] = str(status)
        result["upstream_status_summary"] = _status_summary(status)
    if ctx.rule is not None:
        result["rule"] = str(ctx.rule.source())
    return result


class Metrics:
    """All metrics collected while proxying."""

    def __init__(
        self,
        connector_ids: Iterable[str],
        rules: Optional[Callable[[], Iterable[Any]]] = None,
    ) -> None:
        self.client: dict[str, ClientMetrics] = {
            connector: ClientMetrics(RequestMetrics(f"client_{connector}"))
            for connector in connector_ids
        }
        self.upstream = RequestMetrics("upstream")
        self._rules = rules

    def collect_context(self, ctx: Any) -> None:
        labels = labels_for(ctx)
        client = self.client.get(ctx.client.connector)
        if client is not None and ctx.client.duration is not None:
            client.request.duration_seconds.observe(labels, ctx.client.duration.total_seconds())
            client.request.total.inc(labels)
        if ctx.upstream.duration is not None:
            self.upstream.duration_seconds.observe(labels, ctx.upstream.duration.total_seconds())
            self.upstream.total.inc(labels)

    def collect_client_started(self, connector: str) -> Callable[[], None]:
        """Count a running client request; call the result when it ends."""
        client = self.client.get(connector)
        if client is None:
            return lambda: None
        return client.request._started()

    def collect_upstream_started(self) -> Callable[[], None]:
        """Count a running upstream request; call the result when it ends."""
        return self.upstream._started()

    def _all_rules(self) -> Iterable[Any]:
        return self._rules() if self._rules is not None else ()

    def rules_total(self) -> int:
        return sum(1 for _ in self._all_rules())

    def rules_sources(self) -> int:
        return len({rule.source() for rule in self._all_rules()})

    def render(self) -> str:
        """All metrics in the Prometheus text exposition format."""
        lines: list[str] = []
        for client in self.client.values():
            lines.extend(client.render())
        lines.extend(self.upstream.render())
        lines.extend(_header("lingress_rules_total", "Total amount of rules handled by lingress.", "gauge"))
        lines.append(f"lingress_rules_total {self.rules_total()}")
        lines.extend(
            _header(
                "lingress_rules_sources",
                "Total amount of sources (=ingress configurations, ...) of rules handled by lingress.",
                "gauge",
            )
        )
        lines.append(f"lingress_rules_sources {self.rules_sources()}")
        return "\n".join(lines) + "\n"