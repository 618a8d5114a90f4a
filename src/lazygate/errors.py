"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error hierarchy for gate protocol violations and surfaced failures.
"""

from __future__ import annotations

from typing import Any


class GateError(RuntimeError):
    """Base gate error."""


class GateProtocolError(GateError):
    """Raised in strict mode when `resolve` is called outside an open round."""


class GateFailedError(GateError):
    """
    Raised by `Gate.acquire` when a round fails with a non-exception value.

    Attributes:
        error: The failure value delivered by the worker, unchanged.
    """

    def __init__(self, error: Any) -> None:
        super().__init__(f"Gate round failed: {error!r}")
        self.error = error
