"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Memoized single-flight gate.

A `Gate` wraps a worker that produces one outcome per round. The first
`request` on an idle gate starts a round and invokes the worker; requests
made while the round is open queue behind it; the worker's `resolve` closes
the round and flushes every queued callback in FIFO order. Success is cached
forever, failure returns the gate to idle so the next request retries.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from .errors import GateProtocolError
from .metrics import GateMetrics, NoOpGateMetrics
from .settings import GateSettings
from .types import Err, GateState, Ok, Outcome, OutcomeCallback, Worker

logger = logging.getLogger("lazygate.gate")

T = TypeVar("T")
E = TypeVar("E")


class RoundHandle(Generic[T, E]):
    """
    Handle passed to the worker, bound to the round that invoked it.

    `resolve` through a handle only closes its own round; once that round
    is closed further calls are no-ops, even if a newer round is running.
    """

    __slots__ = ("_gate", "_round_id")

    def __init__(self, gate: Gate[T, E], round_id: int) -> None:
        self._gate = gate
        self._round_id = round_id

    @property
    def gate(self) -> Gate[T, E]:
        return self._gate

    @property
    def round_id(self) -> int:
        return self._round_id

    def resolve(self, outcome: Outcome[T, E]) -> bool:
        return self._gate._resolve(outcome, round_id=self._round_id)

    def succeed(self, value: T) -> bool:
        return self.resolve(Ok(value))

    def fail(self, error: E) -> bool:
        return self.resolve(Err(error))

    def request(self, callback: OutcomeCallback) -> None:
        self._gate.request(callback)

    def __repr__(self) -> str:
        return f"RoundHandle(gate={self._gate.name!r}, round_id={self._round_id})"


class Gate(Generic[T, E]):
    """
    Lazy, memoized, single-flight wrapper around a worker.

    The lock guards only the state tag, the waiter list and the cached
    outcome. The worker and every callback run after it is released, so
    either may call back into the same gate.

    The waiter list is unbounded. The gate has no cancellation or timeout;
    compose those outside (for example `asyncio.wait_for(gate.acquire(), t)`).
    """

    def __init__(
        self,
        worker: Worker,
        *,
        name: str | None = None,
        settings: GateSettings | None = None,
        metrics: GateMetrics | None = None,
    ) -> None:
        self._worker = worker
        self._name = name or getattr(worker, "__name__", "gate")
        self._settings = settings or GateSettings()
        self._metrics: GateMetrics = metrics or NoOpGateMetrics()
        self._tags = {"gate": self._name}

        self._lock = threading.Lock()
        self._state: GateState = "idle"
        self._waiters: list[OutcomeCallback] = []
        self._cached: Ok[T] | None = None
        # Id of the most recently started round; 0 before the first one.
        self._rounds = 0

    @classmethod
    def from_callable(
        cls,
        fn: Callable[[], T],
        *,
        name: str | None = None,
        settings: GateSettings | None = None,
        metrics: GateMetrics | None = None,
    ) -> Gate[T, Exception]:
        """Build a gate whose worker calls `fn()` synchronously."""

        def worker(handle: RoundHandle[T, Exception]) -> None:
            try:
                value = fn()
            except Exception as exc:  # noqa: BLE001
                handle.fail(exc)
            else:
                handle.succeed(value)

        return cls(
            worker,
            name=name or getattr(fn, "__name__", None),
            settings=settings,
            metrics=metrics,
        )

    @classmethod
    def from_coroutine(
        cls,
        factory: Callable[[], Awaitable[T]],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        name: str | None = None,
        settings: GateSettings | None = None,
        metrics: GateMetrics | None = None,
    ) -> Gate[T, BaseException]:
        """
        Build a gate whose worker runs `factory()` as an asyncio task.

        Without `loop` the round must start from inside a running event loop.
        With `loop`, rounds started from other threads are submitted to it
        with `run_coroutine_threadsafe`. A cancelled task fails the round with
        `asyncio.CancelledError`.
        """
        pending: set[Any] = set()

        def settle(handle: RoundHandle[T, BaseException], future: Any) -> None:
            pending.discard(future)
            if future.cancelled():
                handle.fail(asyncio.CancelledError())
                return
            exc = future.exception()
            if exc is not None:
                handle.fail(exc)
            else:
                handle.succeed(future.result())

        def worker(handle: RoundHandle[T, BaseException]) -> None:
            target = loop or asyncio.get_running_loop()
            future: asyncio.Task[T] | concurrent.futures.Future[T]
            coro = _await(factory)
            try:
                if _running_loop() is target:
                    future = target.create_task(coro)
                else:
                    future = asyncio.run_coroutine_threadsafe(coro, target)
            except BaseException:
                coro.close()
                raise
            pending.add(future)
            future.add_done_callback(lambda done: settle(handle, done))

        return cls(
            worker,
            name=name or getattr(factory, "__name__", None),
            settings=settings,
            metrics=metrics,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> GateState:
        with self._lock:
            return self._state

    @property
    def rounds(self) -> int:
        """Number of rounds started, i.e. worker invocations so far."""
        with self._lock:
            return self._rounds

    @property
    def waiter_count(self) -> int:
        with self._lock:
            return len(self._waiters)

    def peek(self) -> Ok[T] | None:
        """Return the cached success outcome, or None if not done yet."""
        with self._lock:
            return self._cached

    def request(self, callback: OutcomeCallback) -> None:
        """
        Ask for the outcome.

        Answers synchronously from cache when done, queues behind the open
        round when running, or starts a new round when idle.
        """
        cached: Ok[T] | None = None
        round_id: int | None = None
        with self._lock:
            if self._state == "done":
                cached = self._cached
            elif self._state == "running":
                self._waiters.append(callback)
            else:
                self._rounds += 1
                round_id = self._rounds
                self._state = "running"
                self._waiters = [callback]

        if cached is not None:
            self._incr("gate_cache_hits_total", tags=self._tags)
            self._deliver(callback, cached)
        elif round_id is None:
            self._incr("gate_waiters_enqueued_total", tags=self._tags)
        else:
            self._start_round(round_id)

    def resolve(self, outcome: Outcome[T, E]) -> bool:
        """
        Close the open round with `outcome`.

        Returns True when this call closed a round. Calls made while no round
        is open are no-ops handled per `GateSettings.duplicate_resolve`.
        """
        return self._resolve(outcome, round_id=None)

    def succeed(self, value: T) -> bool:
        return self.resolve(Ok(value))

    def fail(self, error: E) -> bool:
        return self.resolve(Err(error))

    async def acquire(self) -> T:
        """
        Await the success value, requesting it if needed.

        A failed round raises its error when it is an exception, otherwise
        `GateFailedError`. Cancelling the caller abandons interest only; the
        gate keeps delivering to the now-ignored callback.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Outcome[T, E]] = loop.create_future()

        def on_outcome(outcome: Outcome[T, E]) -> None:
            if _running_loop() is loop:
                _set_outcome(future, outcome)
            else:
                loop.call_soon_threadsafe(_set_outcome, future, outcome)

        self.request(on_outcome)
        outcome = await future
        return outcome.unwrap()

    def _resolve(self, outcome: Outcome[T, E], *, round_id: int | None) -> bool:
        if self._settle(outcome, round_id=round_id):
            return True
        self._on_ignored_resolve(round_id)
        return False

    def _settle(self, outcome: Outcome[T, E], *, round_id: int | None) -> bool:
        if not isinstance(outcome, (Ok, Err)):
            raise TypeError(
                f"Gate outcome must be Ok or Err, got {type(outcome).__name__}"
            )

        with self._lock:
            if self._state != "running":
                return False
            if round_id is not None and round_id != self._rounds:
                return False
            closed = self._rounds
            waiters = self._waiters
            self._waiters = []
            if isinstance(outcome, Ok):
                self._state = "done"
                self._cached = outcome
            else:
                self._state = "idle"

        label = "ok" if isinstance(outcome, Ok) else "err"
        self._incr(
            "gate_rounds_resolved_total",
            tags={**self._tags, "outcome": label},
        )
        logger.debug(
            "Gate %s round %d resolved (%s), flushing %d waiters",
            self._name,
            closed,
            label,
            len(waiters),
        )
        for callback in waiters:
            self._deliver(callback, outcome)
        return True

    def _on_ignored_resolve(self, round_id: int | None) -> None:
        self._incr("gate_resolve_ignored_total", tags=self._tags)
        mode = self._settings.duplicate_resolve
        scope = "no open round" if round_id is None else f"round {round_id} already closed"
        if mode == "raise":
            raise GateProtocolError(f"Gate '{self._name}' resolve ignored: {scope}")
        if mode == "warn":
            logger.warning("Gate %s resolve ignored: %s", self._name, scope)
        else:
            logger.debug("Gate %s resolve ignored: %s", self._name, scope)

    def _start_round(self, round_id: int) -> None:
        self._incr("gate_worker_invocations_total", tags=self._tags)
        logger.debug("Gate %s starting round %d", self._name, round_id)
        handle: RoundHandle[T, E] = RoundHandle(self, round_id)
        try:
            result = self._worker(handle)
            if inspect.iscoroutine(result):
                result.close()
                raise TypeError(
                    "Gate worker returned a coroutine; use Gate.from_coroutine "
                    "for async workers"
                )
        except Exception as exc:  # noqa: BLE001
            if self._settle(Err(exc), round_id=round_id):
                logger.exception(
                    "Gate %s worker raised, round %d failed", self._name, round_id
                )
            else:
                logger.exception(
                    "Gate %s worker raised after round %d closed",
                    self._name,
                    round_id,
                )

    def _deliver(self, callback: OutcomeCallback, outcome: Outcome[T, E]) -> None:
        try:
            callback(outcome)
        except Exception:  # noqa: BLE001
            self._incr("gate_callback_errors_total", tags=self._tags)
            logger.exception("Gate %s callback failed", self._name)

    def _incr(self, name: str, *, tags: dict[str, str]) -> None:
        # Metrics are best-effort; a failing backend must not strand a round.
        try:
            self._metrics.incr(name, tags=tags)
        except Exception:  # noqa: BLE001
            logger.exception("Gate %s metrics backend failed on %s", self._name, name)

    def __repr__(self) -> str:
        return f"Gate(name={self._name!r}, state={self.state!r}, rounds={self.rounds})"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


async def _await(factory: Callable[[], Awaitable[T]]) -> T:
    return await factory()


def _set_outcome(future: asyncio.Future[Any], outcome: Outcome[Any, Any]) -> None:
    # The awaiting task may have been cancelled in the meantime.
    if not future.done():
        future.set_result(outcome)
