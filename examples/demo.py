"""
Plain Python demo of the batching engine without a network sink.

This example demonstrates:
1. A BatchBuffer flushing on size into an in-memory sink
2. An age-triggered flush driven by a ManualClock
3. A failing sink: the batch is dropped and counted, the buffer keeps going

Run this script to see logfwrd's buffer in action.
"""

import gzip
import logging
from datetime import datetime, timezone

from logfwrd import BatchBuffer, DeliveryStats, DeliveryTransportError, ManualClock, Sink
from logfwrd.sinks.s3 import make_object_key


class PrintSink(Sink):
    """Prints each batch instead of uploading it."""

    def deliver(self, batch):
        key = make_object_key(batch.window_start, batch.window_end)
        print(f"  [SINK] {key}: {batch.entry_count} records, {batch.size} bytes")
        for line in gzip.decompress(batch.data).decode().splitlines():
            print(f"         {line}")


class BrokenSink(Sink):
    def deliver(self, batch):
        raise DeliveryTransportError("connection refused", destination="collector")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    clock = ManualClock(datetime(2024, 1, 1, tzinfo=timezone.utc))

    print("1. Size-triggered flush (max_entries=3)")
    buffer = BatchBuffer(PrintSink(), max_entries=3, max_age=60, clock=clock)
    for i in range(4):
        buffer.add(f'{{"seq":{i}}}')
    print(f"  {buffer.entry_count} record(s) left in the open window\n")

    print("2. Age-triggered flush (max_age=60s)")
    clock.advance(61)
    buffer.add('{"seq":4}')
    print()

    print("3. Failing sink")
    stats = DeliveryStats()
    broken = BatchBuffer(BrokenSink(), max_entries=2, clock=clock, stats=stats)
    for i in range(4):
        broken.add(f'{{"seq":{i}}}')
    print(f"  stats: {stats.snapshot()}")


if __name__ == "__main__":
    main()
