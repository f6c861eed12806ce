"""
Timeouts, cancellation and callbacks from worker threads.

Run with PYRESUME_TIMEOUT=0.5 to apply a default timeout from the
environment to the slow routine below.
"""

import asyncio
import logging
import threading
import time

from pyresume import (
    InvocationCancelled,
    InvocationTimeout,
    RunConfig,
    delay,
    resume,
    run,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")


def blocking_read(path, callback):
    def work():
        time.sleep(0.1)
        callback(None, f"contents of {path}")

    threading.Thread(target=work, daemon=True).start()


@run
def read_file(ctx, path):
    return (yield resume(blocking_read)(path))


@run(config=RunConfig.from_env())
def slow(ctx):
    try:
        yield delay(5)
    finally:
        print("slow: cleaned up")


async def main():
    print(await read_file("/etc/hostname"))

    try:
        await slow().timeout(0.2)
    except InvocationTimeout as e:
        print(f"Timed out: {e}")

    invocation = slow()
    await asyncio.sleep(0.05)
    invocation.cancel()
    try:
        await invocation
    except InvocationCancelled as e:
        print(f"Cancelled: {e}")


if __name__ == "__main__":
    asyncio.run(main())
