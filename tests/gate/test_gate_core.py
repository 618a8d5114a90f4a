from __future__ import annotations

import pytest

from lazygate import Err, Gate, Ok, RoundHandle


class _ManualWorker:
    """Records every round handle and leaves resolution to the test."""

    def __init__(self) -> None:
        self.handles: list[RoundHandle] = []

    def __call__(self, handle: RoundHandle) -> None:
        self.handles.append(handle)

    @property
    def calls(self) -> int:
        return len(self.handles)


def _collector(sink: list, tag: str | None = None):
    def _cb(outcome) -> None:
        sink.append(outcome if tag is None else (tag, outcome))

    return _cb


def test_end_to_end_fail_then_succeed_then_cached():
    worker = _ManualWorker()
    gate = Gate(worker, name="e2e")
    seen: list = []

    assert gate.state == "idle"
    gate.request(_collector(seen, "cb1"))
    assert worker.calls == 1
    assert gate.state == "running"
    assert seen == []

    gate.resolve(Err("x"))
    assert seen == [("cb1", Err("x"))]
    assert gate.state == "idle"

    gate.request(_collector(seen, "cb2"))
    assert worker.calls == 2
    gate.resolve(Ok(42))
    assert seen[-1] == ("cb2", Ok(42))
    assert gate.state == "done"

    gate.request(_collector(seen, "cb3"))
    assert seen[-1] == ("cb3", Ok(42))
    assert worker.calls == 2
    assert gate.rounds == 2


def test_waiters_are_flushed_in_fifo_order():
    worker = _ManualWorker()
    gate = Gate(worker)
    order: list[str] = []

    for tag in ("c1", "c2", "c3"):
        gate.request(lambda _outcome, tag=tag: order.append(tag))

    assert worker.calls == 1
    assert gate.waiter_count == 3
    worker.handles[0].succeed("v")

    assert order == ["c1", "c2", "c3"]
    assert gate.waiter_count == 0


def test_all_waiters_share_the_same_outcome_instance():
    worker = _ManualWorker()
    gate = Gate(worker)
    seen: list = []
    payload = {"config": [1, 2, 3]}

    for _ in range(5):
        gate.request(_collector(seen))
    gate.succeed(payload)

    assert len(seen) == 5
    assert all(outcome is seen[0] for outcome in seen)
    assert seen[0].value is payload
    assert gate.peek() is seen[0]


def test_failure_is_shared_by_waiters_and_not_cached():
    worker = _ManualWorker()
    gate = Gate(worker)
    seen: list = []
    error = ValueError("boom")

    gate.request(_collector(seen))
    gate.request(_collector(seen))
    gate.fail(error)

    assert [outcome.error for outcome in seen] == [error, error]
    assert seen[0] is seen[1]
    assert gate.peek() is None
    assert gate.state == "idle"


def test_success_is_cached_without_further_worker_calls():
    calls = 0

    def worker(handle: RoundHandle) -> None:
        nonlocal calls
        calls += 1
        handle.succeed(calls)

    gate = Gate(worker)
    seen: list = []
    for _ in range(10):
        gate.request(_collector(seen))

    assert calls == 1
    assert [outcome.value for outcome in seen] == [1] * 10


def test_failure_retries_on_next_request():
    calls = 0

    def worker(handle: RoundHandle) -> None:
        nonlocal calls
        calls += 1
        if calls < 3:
            handle.fail("stop")
        else:
            handle.succeed(calls)

    gate = Gate(worker)
    seen: list = []
    for _ in range(4):
        gate.request(_collector(seen))

    assert seen == [Err("stop"), Err("stop"), Ok(3), Ok(3)]
    assert calls == 3


def test_resolve_without_open_round_is_a_noop():
    worker = _ManualWorker()
    gate = Gate(worker)

    assert gate.resolve(Ok(1)) is False
    assert gate.state == "idle"
    assert worker.calls == 0

    gate.request(lambda _outcome: None)
    assert gate.resolve(Ok(2)) is True
    assert gate.resolve(Ok(3)) is False
    assert gate.resolve(Err("late")) is False
    assert gate.peek() == Ok(2)
    assert gate.state == "done"


def test_second_resolve_in_same_round_is_ignored():
    results: list[bool] = []

    def worker(handle: RoundHandle) -> None:
        results.append(handle.succeed("first"))
        results.append(handle.succeed("second"))
        results.append(handle.fail("third"))

    gate = Gate(worker)
    seen: list = []
    gate.request(_collector(seen))

    assert results == [True, False, False]
    assert seen == [Ok("first")]


def test_stale_handle_cannot_close_a_newer_round():
    worker = _ManualWorker()
    gate = Gate(worker)
    seen: list = []

    gate.request(_collector(seen))
    first = worker.handles[0]
    assert first.fail("round-1") is True

    gate.request(_collector(seen))
    second = worker.handles[1]
    assert (first.round_id, second.round_id) == (1, 2)

    assert first.succeed("late") is False
    assert gate.state == "running"

    assert second.succeed("round-2") is True
    assert seen == [Err("round-1"), Ok("round-2")]


def test_callback_reentering_after_failure_starts_a_new_round():
    worker = _ManualWorker()
    gate = Gate(worker)
    seen: list = []

    def retry_once(outcome) -> None:
        seen.append(("first", outcome))
        if outcome.is_err:
            gate.request(_collector(seen, "retry"))

    gate.request(retry_once)
    worker.handles[0].fail("nope")

    assert worker.calls == 2
    assert gate.state == "running"
    assert seen == [("first", Err("nope"))]

    worker.handles[1].succeed("yes")
    assert seen[-1] == ("retry", Ok("yes"))


def test_callback_reentering_after_success_is_answered_immediately():
    worker = _ManualWorker()
    gate = Gate(worker)
    seen: list = []

    gate.request(lambda _outcome: gate.request(_collector(seen, "nested")))
    worker.handles[0].succeed(7)

    assert seen == [("nested", Ok(7))]
    assert worker.calls == 1


def test_worker_may_request_through_its_handle():
    seen: list = []

    def worker(handle: RoundHandle) -> None:
        handle.request(_collector(seen, "from-worker"))
        handle.succeed("ready")

    gate = Gate(worker)
    gate.request(_collector(seen, "caller"))

    assert seen == [("caller", Ok("ready")), ("from-worker", Ok("ready"))]


def test_worker_exception_fails_the_round():
    attempts = 0

    def worker(handle: RoundHandle) -> None:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("worker exploded")
        handle.succeed("recovered")

    gate = Gate(worker)
    seen: list = []
    gate.request(_collector(seen))

    assert isinstance(seen[0].error, RuntimeError)
    assert str(seen[0].error) == "worker exploded"
    assert gate.state == "idle"

    gate.request(_collector(seen))
    assert seen[1] == Ok("recovered")


def test_worker_exception_after_resolving_keeps_outcome():
    def worker(handle: RoundHandle) -> None:
        handle.succeed("kept")
        raise RuntimeError("too late")

    gate = Gate(worker)
    seen: list = []
    gate.request(_collector(seen))

    assert seen == [Ok("kept")]
    assert gate.state == "done"


def test_async_worker_passed_to_plain_gate_fails_round():
    async def worker(handle: RoundHandle) -> None:
        handle.succeed("never")

    gate = Gate(worker)
    seen: list = []
    gate.request(_collector(seen))

    assert isinstance(seen[0].error, TypeError)
    assert "from_coroutine" in str(seen[0].error)
    assert gate.state == "idle"


def test_failing_callback_does_not_block_other_waiters():
    worker = _ManualWorker()
    gate = Gate(worker)
    seen: list = []

    def broken(_outcome) -> None:
        raise ValueError("callback bug")

    gate.request(_collector(seen, "a"))
    gate.request(broken)
    gate.request(_collector(seen, "b"))
    gate.succeed(1)

    assert seen == [("a", Ok(1)), ("b", Ok(1))]

    gate.request(broken)
    gate.request(_collector(seen, "c"))
    assert seen[-1] == ("c", Ok(1))


def test_resolve_rejects_values_that_are_not_outcomes():
    gate = Gate(_ManualWorker())
    gate.request(lambda _outcome: None)

    with pytest.raises(TypeError, match="Ok or Err"):
        gate.resolve(42)  # type: ignore[arg-type]
    assert gate.state == "running"


def test_worker_that_never_resolves_keeps_waiters_queued():
    worker = _ManualWorker()
    gate = Gate(worker)

    for _ in range(100):
        gate.request(lambda _outcome: None)

    assert worker.calls == 1
    assert gate.waiter_count == 100
    assert gate.state == "running"


def test_from_callable_caches_success_and_retries_exceptions():
    attempts = 0

    def load() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise OSError("disk not ready")
        return "payload"

    gate = Gate.from_callable(load)
    seen: list = []
    for _ in range(3):
        gate.request(_collector(seen))

    assert gate.name == "load"
    assert isinstance(seen[0].error, OSError)
    assert seen[1:] == [Ok("payload"), Ok("payload")]
    assert attempts == 2


def test_outcome_unwrap():
    assert Ok(3).unwrap() == 3
    assert Ok(3).is_ok and not Ok(3).is_err

    with pytest.raises(KeyError):
        Err(KeyError("k")).unwrap()

    from lazygate import GateFailedError

    with pytest.raises(GateFailedError) as info:
        Err("plain").unwrap()
    assert info.value.error == "plain"
