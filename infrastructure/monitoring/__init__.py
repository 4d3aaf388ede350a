"""Telemetry port with OpenTelemetry-backed defaults.

The engine never bootstraps an SDK itself. It talks to a
:class:`Telemetry` port; the default collector writes structured records to
the ``pactum.observability`` logger and forwards counters and spans to the
process-wide OpenTelemetry API, which stays a no-op until the host installs
a provider.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Protocol, runtime_checkable

from opentelemetry import metrics, trace

_OBSERVABILITY_LOGGER = logging.getLogger("pactum.observability")

_metrics: dict[str, float] = defaultdict(float)
_metrics_lock = threading.Lock()
_counters: dict[str, Any] = {}

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


@runtime_checkable
class Telemetry(Protocol):
    """Sink for logs and metrics emitted while serving requests."""

    def log(self, level: str, msg: str, meta: Mapping[str, Any] | None = None) -> None:
        ...

    def record_metric(self, name: str, tags: Mapping[str, Any] | None = None) -> None:
        ...


def _attribute(value: Any) -> str | bool | int | float:
    if isinstance(value, (str, bool, int, float)):
        return value
    return str(value)


def _counter(name: str) -> Any:
    with _metrics_lock:
        counter = _counters.get(name)
        if counter is None:
            counter = metrics.get_meter("pactum").create_counter(name)
            _counters[name] = counter
    return counter


def record_metric(
    name: str, value: float = 1.0, tags: Mapping[str, Any] | None = None
) -> None:
    """Increment *name* by *value* and forward it to the OpenTelemetry meter."""

    attributes = {key: _attribute(item) for key, item in (tags or {}).items()}
    _counter(name).add(value, attributes=attributes)
    with _metrics_lock:
        _metrics[name] += value


def get_metric(name: str) -> float:
    """Retrieve a recorded metric."""

    with _metrics_lock:
        return _metrics.get(name, 0.0)


def reset_metrics() -> None:
    with _metrics_lock:
        _metrics.clear()


@contextmanager
def start_span(name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[Any]:
    """Context manager yielding the active OpenTelemetry span."""

    tracer = trace.get_tracer("pactum")
    attrs = {key: _attribute(item) for key, item in (attributes or {}).items()}
    with tracer.start_as_current_span(name, attributes=attrs) as span:
        yield span


class OpenTelemetryCollector:
    """Default :class:`Telemetry` implementation."""

    def __init__(
        self, service_name: str = "pactum", logger: logging.Logger | None = None
    ) -> None:
        self.service_name = service_name
        self.logger = logger or _OBSERVABILITY_LOGGER

    def log(self, level: str, msg: str, meta: Mapping[str, Any] | None = None) -> None:
        meta = dict(meta or {})
        error = meta.pop("error", None)
        record = {"service": self.service_name, "message": msg, **meta}
        exc_info = error if isinstance(error, BaseException) else None
        if error is not None and exc_info is None:
            record["error"] = error
        self.logger.log(
            _LEVELS.get(level.lower(), logging.INFO),
            json.dumps(record, default=str),
            exc_info=exc_info,
        )

    def record_metric(self, name: str, tags: Mapping[str, Any] | None = None) -> None:
        record_metric(name, 1.0, {"service": self.service_name, **(tags or {})})


__all__ = [
    "OpenTelemetryCollector",
    "Telemetry",
    "get_metric",
    "record_metric",
    "reset_metrics",
    "start_span",
]
