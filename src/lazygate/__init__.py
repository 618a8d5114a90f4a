"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Lazy, memoized, single-flight gate for in-process computations.

Quick start::

    from lazygate import Gate

    def load(handle):
        handle.succeed(read_config())

    gate = Gate(load)
    gate.request(lambda outcome: print(outcome.unwrap()))

    # or, inside an event loop
    config = await Gate.from_coroutine(fetch_config).acquire()
"""

from .errors import GateError, GateFailedError, GateProtocolError
from .gate import Gate, RoundHandle
from .metrics import GateMetrics, NoOpGateMetrics, PrometheusGateMetrics
from .settings import DuplicateResolveMode, GateSettings
from .types import Err, GateState, Ok, Outcome, OutcomeCallback, Worker

__all__ = [
    "Gate",
    "RoundHandle",
    "Ok",
    "Err",
    "Outcome",
    "OutcomeCallback",
    "Worker",
    "GateState",
    "GateSettings",
    "DuplicateResolveMode",
    "GateMetrics",
    "NoOpGateMetrics",
    "PrometheusGateMetrics",
    "GateError",
    "GateProtocolError",
    "GateFailedError",
]
