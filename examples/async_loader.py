"""
async_loader.py — Share one lazily loaded resource across asyncio tasks.

Many tasks ask for the same configuration concurrently; the loader coroutine
runs once and every task receives the same object.

Usage:
    python examples/async_loader.py
"""

import asyncio

from lazygate import Gate


async def load_config() -> dict[str, str]:
    print("loading config...")
    await asyncio.sleep(0.1)
    return {"region": "eu-west-1", "tier": "standard"}


async def handle_request(gate: Gate, request_id: int) -> None:
    config = await gate.acquire()
    print(f"request {request_id} served with region={config['region']}")


async def main() -> None:
    gate = Gate.from_coroutine(load_config, name="config")
    await asyncio.gather(*(handle_request(gate, i) for i in range(5)))
    print(f"loader invocations: {gate.rounds}")


if __name__ == "__main__":
    asyncio.run(main())
