"""Scaler configuration read from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Mapping

__all__ = [
    "ConfigError",
    "ScalerConfig",
    "parse_duration",
    "stream_interval_from_env",
]

_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_MAX_NANOSECONDS = (1 << 63) - 1
_OCTAL = re.compile(r"([+-]?)0([0-7_]+)")

STREAM_INTERVAL_ENV = "KEDA_HTTP_SCALER_STREAM_INTERVAL_MS"
DEFAULT_STREAM_INTERVAL_MS = 200


class ConfigError(ValueError):
    """Raised when the environment does not hold a valid configuration."""


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``500ms``, ``1h30m`` or ``-2.5s``."""
    original = text
    sign = 1
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ConfigError(f"invalid duration {original!r}")

    total = Decimal(0)
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if match is None:
            raise ConfigError(f"invalid duration {original!r}")
        number, unit = match.groups()
        try:
            total += Decimal(number) * _UNIT_NANOSECONDS[unit]
        except InvalidOperation as exc:
            raise ConfigError(f"invalid duration {original!r}") from exc
        position = match.end()

    nanoseconds = int(total)
    if nanoseconds > _MAX_NANOSECONDS:
        raise ConfigError(f"invalid duration {original!r}")
    return sign * timedelta(microseconds=nanoseconds // 1000)


def _parse_int(text: str) -> int:
    if text != text.strip() or not text:
        raise ValueError(text)
    octal = _OCTAL.fullmatch(text)
    if octal is not None:
        return int(octal.group(1) + "0o" + octal.group(2), 0)
    value = int(text, 0)
    if not -(1 << 63) <= value <= _MAX_NANOSECONDS:
        raise ValueError(text)
    return value


def _setting(key: str, parser: Callable[[str], object], default: str | None = None):
    return field(metadata={"env": key, "parser": parser, "default": default})


@dataclass(frozen=True)
class ScalerConfig:
    """Settings for the external scaler."""

    target_namespace: str = _setting("KEDA_HTTP_SCALER_TARGET_ADMIN_NAMESPACE", str)
    target_service: str = _setting("KEDA_HTTP_SCALER_TARGET_ADMIN_SERVICE", str)
    target_deployment: str = _setting("KEDA_HTTP_SCALER_TARGET_ADMIN_DEPLOYMENT", str)
    target_port: int = _setting("KEDA_HTTP_SCALER_TARGET_ADMIN_PORT", _parse_int)
    grpc_port: int = _setting("KEDA_HTTP_SCALER_PORT", _parse_int, "8080")
    health_port: int = _setting("KEDA_HTTP_HEALTH_PORT", _parse_int, "8090")
    target_pending_requests: int = _setting(
        "KEDA_HTTP_SCALER_TARGET_PENDING_REQUESTS", _parse_int, "100"
    )
    config_map_cache_rsync_period: timedelta = _setting(
        "KEDA_HTTP_SCALER_CONFIG_MAP_INFORMER_RSYNC_PERIOD", parse_duration, "60m"
    )
    deployment_cache_rsync_period: timedelta = _setting(
        "KEDA_HTTP_SCALER_DEPLOYMENT_INFORMER_RSYNC_PERIOD", parse_duration, "60m"
    )
    queue_tick_duration: timedelta = _setting(
        "KEDA_HTTP_QUEUE_TICK_DURATION", parse_duration, "500ms"
    )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ScalerConfig":
        """Build a configuration from ``environ`` (the process environment by default)."""
        env = os.environ if environ is None else environ
        values = {}
        for name, spec in cls.__dataclass_fields__.items():
            key = spec.metadata["env"]
            default = spec.metadata["default"]
            raw = env.get(key)
            if raw is None:
                if default is None:
                    raise ConfigError(f"required key {key} missing value")
                raw = default
            try:
                values[name] = spec.metadata["parser"](raw)
            except (ValueError, ConfigError) as exc:
                raise ConfigError(f"envconfig: assigning {key} to {name}: invalid value {raw!r}") from exc
        return cls(**values)


def stream_interval_from_env(environ: Mapping[str, str] | None = None) -> timedelta:
    """Interval between active-status updates on a stream, defaulting to 200ms."""
    env = os.environ if environ is None else environ
    raw = env.get(STREAM_INTERVAL_ENV, "")
    milliseconds = DEFAULT_STREAM_INTERVAL_MS
    if raw:
        try:
            milliseconds = int(raw, 10)
        except ValueError:
            milliseconds = DEFAULT_STREAM_INTERVAL_MS
    return timedelta(milliseconds=milliseconds)