import threading

import pytest

from httpscaler.handlers import (
    MetricSpec,
    MetricValue,
    ScaledObjectRef,
    ScalerError,
    ScalerHandler,
)
from httpscaler.naming import NamespacedName, metric_name
from httpscaler.queue_pinger import QueuePinger

INTERCEPTOR_KEY = "interceptorTargetPendingRequests"


def make_pinger(counts=None):
    served = dict(counts or {})
    endpoints = ["10.0.0.1"] if counts is not None else []
    return QueuePinger(
        lambda ns, svc: endpoints,
        lambda url: served,
        "testns",
        "testsvc",
        "testdepl",
        "8080",
    )


def not_found(namespace, name):
    raise LookupError(f"httpscaledobject {name} not found")


def make_handler(counts=None, lookup=not_found, default=123):
    return ScalerHandler(make_pinger(counts), lookup, default)


ACTIVE_CASES = [
    ("inactive", {"default/inactive": 0}, None, False),
    ("active", {"default/active": 1}, None, True),
    ("multi", {"default/multi": 2}, None, True),
    ("missing", None, None, False),
    ("unknown", {}, None, False),
    ("interceptor", {"a": 1, "b": 2, "c": 3}, {INTERCEPTOR_KEY: "1000"}, True),
]


@pytest.mark.parametrize("name,counts,metadata,expected", ACTIVE_CASES)
def test_is_active(name, counts, metadata, expected):
    handler = make_handler(counts)
    ref = ScaledObjectRef("default", name, metadata or {})
    assert handler.is_active(ref) is expected


@pytest.mark.parametrize("name,counts,metadata,expected", ACTIVE_CASES)
def test_stream_is_active(name, counts, metadata, expected):
    handler = make_handler(counts)
    ref = ScaledObjectRef("default", name, metadata or {})
    stop = threading.Event()
    stream = handler.stream_is_active(ref, stop, 0.001)
    assert next(stream) is expected
    stop.set()
    assert list(stream) == []


def test_stream_stops_when_event_already_set():
    handler = make_handler({"default/x": 5})
    stop = threading.Event()
    stop.set()
    assert list(handler.stream_is_active(ScaledObjectRef("default", "x"), stop, 0.001)) == []


def test_ping_returns_nothing():
    assert make_handler().ping() is None


def test_metric_name_value():
    assert metric_name(NamespacedName("default", "app")) == "http-default_002Fapp"


@pytest.mark.parametrize("name", ["single-host", "multiple-hosts"])
def test_get_metric_spec_from_lookup(name):
    handler = make_handler(lookup=lambda ns, n: 123, default=0)
    specs = handler.get_metric_spec(ScaledObjectRef("testns", name))
    assert specs == [MetricSpec(metric_name(NamespacedName("testns", name)), 123)]


def test_get_metric_spec_default_target():
    handler = make_handler(lookup=lambda ns, n: None, default=0)
    specs = handler.get_metric_spec(ScaledObjectRef("testns", "obj"))
    assert specs[0].target_size == 100


def test_get_metric_spec_interceptor():
    handler = make_handler(default=0)
    ref = ScaledObjectRef("testns", "interceptor", {INTERCEPTOR_KEY: "1000"})
    specs = handler.get_metric_spec(ref)
    assert specs == [MetricSpec(metric_name(NamespacedName("testns", "interceptor")), 1000)]


def test_get_metric_spec_missing_object_raises():
    handler = make_handler()
    with pytest.raises(ScalerError):
        handler.get_metric_spec(ScaledObjectRef("testns", "absent"))


def test_get_metric_spec_bad_interceptor_value_raises():
    handler = make_handler()
    ref = ScaledObjectRef("testns", "bad", {INTERCEPTOR_KEY: "abc"})
    with pytest.raises(ScalerError):
        handler.get_metric_spec(ref)


@pytest.mark.parametrize(
    "name,counts,metadata,expected",
    [
        ("missing", None, None, 0),
        ("present", {"default/present": 201}, None, 201),
        ("multiple", {"default/multiple": 579}, None, 579),
        ("interceptor", {"a": 1, "b": 2, "c": 3}, {INTERCEPTOR_KEY: "1000"}, 6),
    ],
)
def test_get_metrics(name, counts, metadata, expected):
    handler = make_handler(counts, default=200)
    values = handler.get_metrics(ScaledObjectRef("default", name, metadata or {}))
    assert values == [MetricValue(metric_name(NamespacedName("default", name)), expected)]


def test_get_metrics_negative_sum_raises():
    handler = make_handler({"a": -5})
    ref = ScaledObjectRef("default", "neg", {INTERCEPTOR_KEY: "10"})
    with pytest.raises(ScalerError):
        handler.get_metrics(ref)


def test_get_metrics_own_count_preferred_over_interceptor_sum():
    handler = make_handler({"default/own": 4, "other": 50})
    ref = ScaledObjectRef("default", "own", {INTERCEPTOR_KEY: "10"})
    assert handler.get_metrics(ref)[0].metric_value == 4