"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Outcome types and callback signatures shared by the gate.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar, Union

from .errors import GateFailedError

if TYPE_CHECKING:
    from .gate import RoundHandle

T = TypeVar("T")
E = TypeVar("E")

GateState = Literal["idle", "running", "done"]


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome of one round."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failed outcome of one round. Never cached.

    The error instance is shared by every waiter of the round. `unwrap`
    re-raises it from the traceback it carried when the round failed, so
    waiters do not pile their frames onto each other's tracebacks.
    """

    error: E
    _origin_tb: Any = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.error, BaseException):
            object.__setattr__(self, "_origin_tb", self.error.__traceback__)

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raise the carried error, wrapping non-exception values."""
        if isinstance(self.error, BaseException):
            raise self.error.with_traceback(self._origin_tb)
        raise GateFailedError(self.error)


Outcome = Union[Ok[T], Err[E]]

# Receives a reference to the round's outcome. The same instance is shared
# by every waiter of that round.
OutcomeCallback = Callable[[Outcome[Any, Any]], Any]

# Invoked once per round with a handle bound to that round.
Worker = Callable[["RoundHandle[Any, Any]"], Any]
