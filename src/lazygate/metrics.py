"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for gate observability.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Mapping
from typing import Any, Protocol


class GateMetrics(Protocol):
    """Minimal metrics interface for gate instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpGateMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


# Counters already registered, per registry. prometheus_client rejects a
# second collector with the same name, so every adapter bound to one registry
# shares these.
_registry_counters: weakref.WeakKeyDictionary[Any, dict[str, Any]] = (
    weakref.WeakKeyDictionary()
)
_registry_lock = threading.Lock()


class PrometheusGateMetrics(GateMetrics):
    """
    Prometheus-backed gate metrics adapter.

    Requires `prometheus_client` package. Any number of adapters may target the
    same registry (the default one included); they share its counters, so
    several instrumented gates can live in one process.
    """

    def __init__(self, *, namespace: str = "lazygate", registry: Any | None = None) -> None:
        try:
            import prometheus_client
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusGateMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = prometheus_client.Counter
        self._namespace = namespace
        self._registry = registry if registry is not None else prometheus_client.REGISTRY
        with _registry_lock:
            self._counters = _registry_counters.setdefault(self._registry, {})

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        label_names = tuple(sorted((tags or {}).keys()))
        key = f"{self._namespace}_{name}|{','.join(label_names)}"
        counter = self._counters.get(key)
        if counter is None:
            with _registry_lock:
                counter = self._counters.get(key)
                if counter is None:
                    counter = self._Counter(
                        name=name,
                        documentation=f"lazygate metric {name}",
                        namespace=self._namespace,
                        labelnames=label_names,
                        registry=self._registry,
                    )
                    self._counters[key] = counter

        if label_names:
            label_values = [str((tags or {})[label]) for label in label_names]
            counter.labels(*label_values).inc(value)
        else:
            counter.inc(value)
