"""
timer_worker.py — Gate resolved later by an external timer.

The worker only schedules work; a `threading.Timer` resolves the round.
Requests made before the timer fires all wait on that single round.

Usage:
    python examples/timer_worker.py
"""

import threading

from lazygate import Gate, RoundHandle


def main() -> None:
    attempts = 0
    finished = threading.Event()

    def worker(handle: RoundHandle) -> None:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            threading.Timer(0.2, handle.fail, args=("warming up",)).start()
        else:
            threading.Timer(0.2, handle.succeed, args=(attempts,)).start()

    gate = Gate(worker, name="timer")

    def report(label: str):
        def _cb(outcome) -> None:
            print(f"{label}: {outcome}")
            if outcome.is_ok:
                finished.set()

        return _cb

    gate.request(report("first"))
    gate.request(report("second"))

    # After the failed round closes, the next request starts a fresh one.
    threading.Timer(0.5, gate.request, args=(report("retry"),)).start()
    finished.wait(timeout=5)

    gate.request(report("cached"))
    print(f"worker invocations: {gate.rounds}")


if __name__ == "__main__":
    main()
