"""
logfwrd command - syslog listener forwarding compressed batches.

Usage:
    # Forward to an S3-compatible bucket
    logfwrd --bucket logs --endpoint https://s3.example.com --key ... --secret ...

    # Forward to an HTTP collector, flushing every 1000 records or 30 seconds
    logfwrd --sink http --url https://collector.example.com/ingest \\
        --max-records 1000 --max-interval 30s

Every flag can also be set through a LOGFWRD_* environment variable or a
YAML file passed with --config.
"""

import logging
import signal
import sys
import threading
from typing import Optional, Sequence

from logfwrd.buffer import BatchBuffer
from logfwrd.config import ForwarderConfig, load_config
from logfwrd.dispatcher import Dispatcher
from logfwrd.errors import ConfigError
from logfwrd.listener import SyslogListener
from logfwrd.sinks import create_sink
from logfwrd.stats import DeliveryStats

logger = logging.getLogger("logfwrd")

EXIT_CONFIG_ERROR = 2


def build_dispatcher(config: ForwarderConfig) -> Dispatcher:
    """Wire sink, buffer and dispatcher from a resolved config."""
    sink = create_sink(config)
    buffer = BatchBuffer(
        sink,
        max_entries=config.max_records,
        max_age=config.max_interval,
        label=config.tag,
        stats=DeliveryStats(),
    )
    return Dispatcher(
        buffer,
        queue_size=config.queue_size,
        idle_flush=config.flush_idle,
    )


def log_final_stats(stats: DeliveryStats) -> None:
    logger.info(f"Delivery stats: {stats.snapshot()}")
    if not stats.healthy:
        logger.warning(
            f"Shutting down after {stats.consecutive_failures} consecutive delivery failures "
            f"(last error: {stats.last_error})"
        )


def serve(config: ForwarderConfig, stop_event: Optional[threading.Event] = None) -> None:
    """
    Run the forwarder until stop_event is set or SIGINT/SIGTERM arrives.
    """
    stop_event = stop_event or threading.Event()
    dispatcher = build_dispatcher(config)
    listener = SyslogListener(config.listen, dispatcher.submit)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    dispatcher.start()
    listener.start()
    logger.info(
        f"Forwarding to {dispatcher.buffer.sink.name}: "
        f"max_records={config.max_records}, max_interval={config.max_interval}s"
    )
    try:
        stop_event.wait()
    finally:
        listener.stop()
        dispatcher.stop(flush=config.flush_on_exit)
        dispatcher.buffer.sink.close()
        log_final_stats(dispatcher.stats)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(argv)
    except ConfigError as e:
        logger.error(f"Error: {e}")
        return EXIT_CONFIG_ERROR

    if config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        serve(config)
    except OSError as e:
        logger.error(f"Cannot listen on {config.listen}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
