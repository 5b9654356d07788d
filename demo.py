"""
watchlog demo script.

Run this directly to see all interfaces in action:
    python demo.py
"""

import asyncio
import time

from watchlog import (
    Recorder,
    print_summary,
    save_to_file,
    watch,
    watch_block,
    watch_call,
    watch_loop,
)

recorder = Recorder()


# --- 1. Function decorator ---------------------------------------------------

@watch(recorder, "sum of range")
def heavy_sum(limit):
    """Sum a large range."""
    return sum(range(limit))


# --- 2. Async decorator ------------------------------------------------------

@watch(recorder, "fetch", key="api")
async def fake_fetch(url):
    """Simulate an async HTTP request."""
    await asyncio.sleep(0.005)
    return f"response from {url}"


# --- 3. Manual start/stop with keys -----------------------------------------

def process_order(order_id):
    """Simulate a multi-step order processing flow."""
    recorder.start("order", str(order_id), {"priority": "high"})

    time.sleep(0.003)
    recorder.detect("validated", {"order": order_id})

    time.sleep(0.005)
    recorder.stop("order", str(order_id), {"result": "shipped"})


# --- run everything ----------------------------------------------------------

def main():
    """Execute all demos and print a final summary."""
    recorder.init()
    recorder.tag("demo", True)

    heavy_sum(1_000_000)
    heavy_sum(5_000_000)

    asyncio.run(fake_fetch("https://api.example.com/data"))

    with watch_block(recorder, "json serialization simulation"):
        time.sleep(0.002)

    watch_call(recorder, sorted, [3, 1, 4, 1, 5, 9], group="sort list")

    for batch in watch_loop(recorder, "batch", range(3), tags={"size": 100}):
        recorder.tag_append("batches", batch)
        time.sleep(0.001)

    process_order(42)
    process_order(43)

    recorder.finalize()

    print_summary(recorder)
    save_to_file(recorder, "watch_results.json")


if __name__ == "__main__":
    main()
