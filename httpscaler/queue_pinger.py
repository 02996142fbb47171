"""Polling of interceptor admin endpoints for pending request counts."""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping

__all__ = ["QueuePinger", "QueuePingerError", "fetch_counts"]

_log = logging.getLogger(__name__)

GetEndpoints = Callable[[str, str], Iterable[str]]
GetCounts = Callable[[str], Mapping[str, int]]

_POLL_SECONDS = 0.05
_MAX_WORKERS = 32


class QueuePingerError(RuntimeError):
    """Raised when request counts cannot be fetched from the interceptors."""


def _seconds(interval: timedelta | float) -> float:
    if isinstance(interval, timedelta):
        return interval.total_seconds()
    return float(interval)


def fetch_counts(
    get_endpoints: GetEndpoints,
    get_counts: GetCounts,
    namespace: str,
    service_name: str,
    admin_port: str | int,
) -> tuple[dict[str, int], int]:
    """Fetch and sum the counts of every interceptor behind a service.

    ``get_endpoints(namespace, service_name)`` yields the addresses of the
    interceptors; ``get_counts(url)`` returns the per-host counts served at
    ``http://<address>:<admin_port>``. Requests run concurrently. Returns the
    per-host totals and their aggregate; any failure raises
    :class:`QueuePingerError`.
    """
    try:
        addresses = list(get_endpoints(namespace, service_name))
    except Exception as exc:
        raise QueuePingerError(
            f"getting endpoints for service {namespace}/{service_name}: {exc}"
        ) from exc

    urls = [f"http://{address}:{admin_port}" for address in addresses]
    if not urls:
        return {}, 0

    def fetch(url: str) -> dict[str, int]:
        try:
            return dict(get_counts(url))
        except Exception as exc:
            _log.error("getting queue counts from interceptor %s: %s", url, exc)
            raise QueuePingerError(
                f"getting queue counts from interceptor {url}: {exc}"
            ) from exc

    with ThreadPoolExecutor(max_workers=min(len(urls), _MAX_WORKERS)) as pool:
        results = list(pool.map(fetch, urls))

    totals: dict[str, int] = {}
    aggregate = 0
    for result in results:
        for host, value in result.items():
            aggregate += value
            totals[host] = totals.get(host, 0) + value
    return totals, aggregate


class QueuePinger:
    """Keeps the summed pending request counts of all interceptors up to date.

    The first fetch happens on construction, so a pinger that could not reach
    its interceptors is never created.
    """

    def __init__(
        self,
        get_endpoints: GetEndpoints,
        get_counts: GetCounts,
        namespace: str,
        service_name: str,
        deployment_name: str,
        admin_port: str | int,
    ) -> None:
        self._get_endpoints = get_endpoints
        self._get_counts = get_counts
        self.namespace = namespace
        self.service_name = service_name
        self.deployment_name = deployment_name
        self.admin_port = str(admin_port)
        self._lock = threading.Lock()
        self._all_counts: dict[str, int] = {}
        self._aggregate_count = 0
        self._last_ping_time: datetime | None = None
        self.fetch_and_save_counts()

    def counts(self) -> dict[str, int]:
        """A snapshot of the latest per-host counts."""
        with self._lock:
            return dict(self._all_counts)

    @property
    def aggregate_count(self) -> int:
        """Sum of all counts from the latest fetch."""
        with self._lock:
            return self._aggregate_count

    @property
    def last_ping_time(self) -> datetime | None:
        """When counts were last fetched successfully."""
        with self._lock:
            return self._last_ping_time

    def fetch_and_save_counts(self) -> None:
        """Fetch counts from every interceptor and store them."""
        with self._lock:
            try:
                counts, aggregate = fetch_counts(
                    self._get_endpoints,
                    self._get_counts,
                    self.namespace,
                    self.service_name,
                    self.admin_port,
                )
            except QueuePingerError as exc:
                _log.error("getting request counts: %s", exc)
                raise
            self._all_counts = counts
            self._aggregate_count = aggregate
            self._last_ping_time = datetime.now(timezone.utc)

    def start(
        self,
        tick_interval: timedelta | float,
        endpoint_events: "queue.Queue[Any] | None" = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        """Refresh counts every ``tick_interval`` and on each endpoint event.

        Runs until ``stop_event`` is set. A failed scheduled refresh raises
        :class:`QueuePingerError`; a failed refresh after an endpoint event is
        logged and the loop goes on.
        """
        interval = _seconds(tick_interval)
        if interval <= 0:
            raise ValueError("tick interval must be positive")
        stop = stop_event if stop_event is not None else threading.Event()
        next_tick = time.monotonic() + interval

        while not stop.is_set():
            wait = min(max(0.0, next_tick - time.monotonic()), _POLL_SECONDS)
            if endpoint_events is not None:
                try:
                    endpoint_events.get(timeout=wait)
                except queue.Empty:
                    pass
                else:
                    if stop.is_set():
                        return
                    try:
                        self.fetch_and_save_counts()
                    except QueuePingerError as exc:
                        _log.error(
                            "getting request counts after interceptor endpoints event: %s",
                            exc,
                        )
                    continue
            else:
                stop.wait(wait)

            if stop.is_set():
                return
            now = time.monotonic()
            if now >= next_tick:
                next_tick = now + interval
                try:
                    self.fetch_and_save_counts()
                except QueuePingerError as exc:
                    raise QueuePingerError(f"error getting request counts: {exc}") from exc