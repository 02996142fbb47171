"""External scaler operations reporting pending HTTP request counts."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Iterator, Mapping, Optional, Protocol

from httpscaler.config import stream_interval_from_env
from httpscaler.naming import NamespacedName, metric_name

__all__ = [
    "MetricSpec",
    "MetricValue",
    "ScaledObjectRef",
    "ScalerError",
    "ScalerHandler",
]

_log = logging.getLogger(__name__)

KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS = "interceptorTargetPendingRequests"
DEFAULT_TARGET_PENDING_REQUESTS = 100

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

# lookup(namespace, name) returns the object's target pending requests, or
# None when the object exists but sets none; it raises when there is no object.
Lookup = Callable[[str, str], Optional[int]]


class _CountSource(Protocol):
    def counts(self) -> Mapping[str, int]: ...


class ScalerError(RuntimeError):
    """Raised when a scaler request cannot be answered."""


@dataclass(frozen=True)
class ScaledObjectRef:
    """Identifies the scaled object a request is about."""

    namespace: str
    name: str
    scaler_metadata: Mapping[str, str] = field(default_factory=dict)

    @property
    def namespaced_name(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)


@dataclass(frozen=True)
class MetricSpec:
    """A metric name and the target value the scaler aims for."""

    metric_name: str
    target_size: int


@dataclass(frozen=True)
class MetricValue:
    """The current value of a metric."""

    metric_name: str
    metric_value: int


def _parse_int64(text: str) -> int:
    if not _INT_PATTERN.fullmatch(text):
        raise ScalerError(f"invalid syntax for integer: {text!r}")
    value = int(text, 10)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ScalerError(f"value out of range: {text!r}")
    return value


class ScalerHandler:
    """Answers the external scaler calls using a queue pinger's counts."""

    def __init__(
        self,
        pinger: _CountSource,
        lookup: Lookup,
        default_target_metric: int,
    ) -> None:
        self.pinger = pinger
        self.lookup = lookup
        self.target_metric = default_target_metric

    def ping(self) -> None:
        """Health check; does nothing."""
        return None

    def is_active(self, ref: ScaledObjectRef) -> bool:
        """Whether the object has any pending requests."""
        values = self.get_metrics(ref)
        if len(values) != 1:
            _log.error("invalid metrics response for %s: %r", ref, values)
            raise ScalerError("len(metricValues) != 1")
        return values[0].metric_value > 0

    def stream_is_active(
        self,
        ref: ScaledObjectRef,
        stop_event: threading.Event | None = None,
        interval: timedelta | float | None = None,
    ) -> Iterator[bool]:
        """Yield the active status every ``interval`` until ``stop_event`` is set."""
        if interval is None:
            interval = stream_interval_from_env()
        seconds = interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
        stop = stop_event if stop_event is not None else threading.Event()
        while not stop.wait(seconds):
            try:
                active = self.is_active(ref)
            except ScalerError as exc:
                _log.error("error getting active status in stream: %s", exc)
                raise
            yield active

    def get_metric_spec(self, ref: ScaledObjectRef) -> list[MetricSpec]:
        """The metric specification for the object."""
        name = metric_name(ref.namespaced_name)
        try:
            target = self.lookup(ref.namespace, ref.name)
        except Exception as exc:
            metadata = ref.scaler_metadata or {}
            if KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS in metadata:
                return self._interceptor_metric_spec(
                    name, metadata[KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS]
                )
            _log.error(
                "unable to get HTTPScaledObject %s/%s: %s", ref.namespace, ref.name, exc
            )
            raise ScalerError(
                f"unable to get HTTPScaledObject {ref.namespace}/{ref.name}: {exc}"
            ) from exc
        if target is None:
            target = DEFAULT_TARGET_PENDING_REQUESTS
        return [MetricSpec(name, int(target))]

    def _interceptor_metric_spec(self, name: str, raw: str) -> list[MetricSpec]:
        try:
            target = _parse_int64(raw)
        except ScalerError:
            _log.error("unable to parse interceptorTargetPendingRequests %r", raw)
            raise
        return [MetricSpec(name, target)]

    def get_metrics(self, ref: ScaledObjectRef) -> list[MetricValue]:
        """The current pending request count for the object."""
        namespaced = ref.namespaced_name
        name = metric_name(namespaced)
        counts = self.pinger.counts()
        count = int(counts.get(str(namespaced), 0))
        if count == 0 and KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS in (ref.scaler_metadata or {}):
            return self._interceptor_metrics(name, counts)
        return [MetricValue(name, count)]

    def _interceptor_metrics(self, name: str, counts: Mapping[str, int]) -> list[MetricValue]:
        total = sum(int(value) for value in counts.values())
        if total < 0 or total > _INT64_MAX:
            _log.error("count overflowed: %d", total)
            raise ScalerError("value out of range")
        return [MetricValue(name, total)]