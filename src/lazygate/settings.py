"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Gate settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, cast

DuplicateResolveMode = Literal["ignore", "warn", "raise"]

_DUPLICATE_RESOLVE_MODES: tuple[str, ...] = ("ignore", "warn", "raise")


@dataclass(frozen=True, slots=True)
class GateSettings:
    """
    Explicit settings used by `Gate` instances.

    Attributes:
        duplicate_resolve: How `resolve` reacts when no round is open for it.
            `ignore` returns False silently, `warn` also logs a warning and
            `raise` raises `GateProtocolError`.
    """

    duplicate_resolve: DuplicateResolveMode = "ignore"

    def __post_init__(self) -> None:
        if self.duplicate_resolve not in _DUPLICATE_RESOLVE_MODES:
            raise ValueError(
                f"Unknown duplicate_resolve mode '{self.duplicate_resolve}'; "
                f"expected one of {', '.join(_DUPLICATE_RESOLVE_MODES)}"
            )

    @staticmethod
    def from_env() -> "GateSettings":
        """Load settings from environment variables."""
        raw = os.getenv("LAZYGATE_DUPLICATE_RESOLVE", "ignore").strip().lower()
        return GateSettings(duplicate_resolve=cast(DuplicateResolveMode, raw or "ignore"))
