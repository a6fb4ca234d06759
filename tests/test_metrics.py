from dataclasses import dataclass
from datetime import timedelta

import pytest

from lingress.context import Context
from lingress.metrics import (
    METRICS_LABEL_NAMES,
    CounterVec,
    HistogramVec,
    Metrics,
    labels_for,
)


@dataclass(frozen=True)
class FakeRule:
    src: str

    def source(self):
        return self.src

    def host(self):
        return "example.com"

    def path(self):
        return ["a"]


def make_ctx(client_status=-1, upstream_status=-1, rule=None, connector="http", duration=None):
    ctx = Context()
    ctx.client.connector = connector
    ctx.client.status = client_status
    ctx.client.duration = duration
    ctx.upstream.status = upstream_status
    ctx.rule = rule
    return ctx


def test_labels_for_fresh_context_are_none():
    assert labels_for(make_ctx()) == {name: "none" for name in METRICS_LABEL_NAMES}


@pytest.mark.parametrize(
    "status,summary",
    [(200, "ok"), (302, "ok"), (404, "error_client"), (50, "error_client"), (503, "error_server"), (650, "none")],
)
def test_labels_for_client_status(status, summary):
    labels = labels_for(make_ctx(client_status=status))
    assert labels["client_status"] == str(status)
    assert labels["client_status_summary"] == summary


def test_labels_for_upstream_and_rule():
    labels = labels_for(make_ctx(upstream_status=502, rule=FakeRule("ns/ing")))
    assert labels["upstream_status"] == "502"
    assert labels["upstream_status_summary"] == "error_server"
    assert labels["rule"] == "ns/ing"


def test_client_started_counts_in_flight():
    metrics = Metrics(["http", "https"])
    finish = metrics.collect_client_started("http")
    assert metrics.client["http"].request.current == 1
    finish()
    assert metrics.client["http"].request.current == 0


def test_unknown_connector_is_ignored():
    metrics = Metrics(["http"])
    metrics.collect_client_started("other")()
    assert metrics.client["http"].request.current == 0


def test_upstream_started_counts_in_flight():
    metrics = Metrics([])
    finish = metrics.collect_upstream_started()
    assert metrics.upstream.current == 1
    finish()
    assert metrics.upstream.current == 0


def test_collect_context_observes_durations():
    metrics = Metrics(["http"])
    ctx = make_ctx(client_status=200, duration=timedelta(milliseconds=20))
    ctx.upstream.duration = timedelta(milliseconds=5)
    metrics.collect_context(ctx)
    labels = labels_for(ctx)
    assert metrics.client["http"].request.total.value(labels) == 1
    assert metrics.client["http"].request.duration_seconds.count(labels) == 1
    assert metrics.upstream.total.value(labels) == 1


def test_collect_context_without_client_duration_skips_client():
    metrics = Metrics(["http"])
    ctx = make_ctx(client_status=200)
    metrics.collect_context(ctx)
    assert metrics.client["http"].request.total.value(labels_for(ctx)) == 0


def test_counter_rejects_wrong_labels_and_negative_amounts():
    counter = CounterVec("c", "help", ["a"])
    with pytest.raises(ValueError):
        counter.inc({"b": "x"})
    with pytest.raises(ValueError):
        counter.inc({"a": "x"}, -1)


def test_histogram_buckets_are_cumulative():
    histogram = HistogramVec("h", "help", ["a"], [0.01, 1])
    histogram.observe({"a": "x"}, 0.005)
    histogram.observe({"a": "x"}, 5)
    lines = histogram.render()
    assert 'h_bucket{a="x",le="0.01"} 1' in lines
    assert 'h_bucket{a="x",le="1"} 1' in lines
    assert 'h_bucket{a="x",le="+Inf"} 2' in lines
    assert 'h_count{a="x"} 2' in lines


def test_rule_counts():
    rules = [FakeRule("ns/a"), FakeRule("ns/a"), FakeRule("ns/b")]
    metrics = Metrics([], lambda: rules)
    assert metrics.rules_total() == len(rules)
    assert metrics.rules_sources() == len({r.src for r in rules})


def test_render_exposes_gauges():
    metrics = Metrics(["http"], lambda: [FakeRule("ns/a")])
    text = metrics.render()
    assert "# TYPE lingress_rules_total gauge" in text
    assert "lingress_rules_total 1\n" in text
    assert "lingress_client_http_connections_current 0\n" in text
    assert "lingress_upstream_requests_current 0\n" in text