#!/usr/bin/env python3
"""
Gate benchmark utility for fan-out latency characterization.

Usage examples:
  PYTHONPATH=src python scripts/gate_benchmark.py --mode asyncio
  PYTHONPATH=src python scripts/gate_benchmark.py --mode threads --waiters 256
"""

from __future__ import annotations

import argparse
import asyncio
import statistics
import threading
import time

from lazygate import Gate, RoundHandle


async def run_asyncio_benchmark(*, waiters: int, rounds: int, latency_ms: float) -> list[float]:
    latencies: list[float] = []
    for _ in range(rounds):

        async def compute() -> float:
            await asyncio.sleep(latency_ms / 1000.0)
            return time.perf_counter()

        gate = Gate.from_coroutine(compute)
        started = time.perf_counter()
        await asyncio.gather(*(gate.acquire() for _ in range(waiters)))
        latencies.append(time.perf_counter() - started)
        assert gate.rounds == 1
    return latencies


def run_threads_benchmark(*, waiters: int, rounds: int, latency_ms: float) -> list[float]:
    latencies: list[float] = []
    for _ in range(rounds):
        delivered = threading.Semaphore(0)

        def worker(handle: RoundHandle) -> None:
            threading.Timer(latency_ms / 1000.0, handle.succeed, args=(True,)).start()

        gate = Gate(worker)
        started = time.perf_counter()
        threads = [
            threading.Thread(target=gate.request, args=(lambda _outcome: delivered.release(),))
            for _ in range(waiters)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        for _ in range(waiters):
            delivered.acquire(timeout=120)
        latencies.append(time.perf_counter() - started)
        assert gate.rounds == 1
    return latencies


def report(*, mode: str, waiters: int, latency_ms: float, latencies: list[float]) -> None:
    p50 = statistics.median(latencies) if latencies else 0.0
    p95 = sorted(latencies)[int(0.95 * (len(latencies) - 1))] if latencies else 0.0
    print(f"mode={mode}")
    print(f"waiters={waiters}")
    print(f"rounds={len(latencies)}")
    print(f"worker_latency_ms={latency_ms:.2f}")
    print(f"fanout_p50_ms={p50 * 1000:.2f}")
    print(f"fanout_p95_ms={p95 * 1000:.2f}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gate fan-out benchmark utility")
    parser.add_argument("--mode", choices=("asyncio", "threads"), default="asyncio")
    parser.add_argument("--waiters", type=int, default=1000)
    parser.add_argument("--rounds", type=int, default=20)
    parser.add_argument("--latency-ms", type=float, default=10.0)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.mode == "asyncio":
        latencies = asyncio.run(
            run_asyncio_benchmark(
                waiters=args.waiters, rounds=args.rounds, latency_ms=args.latency_ms
            )
        )
    else:
        latencies = run_threads_benchmark(
            waiters=args.waiters, rounds=args.rounds, latency_ms=args.latency_ms
        )
    report(mode=args.mode, waiters=args.waiters, latency_ms=args.latency_ms, latencies=latencies)


if __name__ == "__main__":
    main()
