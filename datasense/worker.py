"""Standalone worker entry point.

Runs the LLM queue worker without the HTTP API, for deployments that keep
the API process free of inference load (set WORKER_ENABLED=false there).

Usage:
    datasense-worker
    datasense-worker --concurrency 16
"""
import argparse
import asyncio
import logging
import signal
from typing import Optional

from datasense.config import settings, configure_logging
from datasense.dependencies import build_container

logger = logging.getLogger(__name__)


async def run_worker(concurrency: Optional[int] = None) -> None:
    services = build_container(settings, worker_concurrency=concurrency)

    shutdown_event = asyncio.Event()

    def handle_signal(sig):
        logger.info(f"Shutdown signal received: {sig.name}")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    logger.info(f"Worker starting (queue={settings.QUEUE_KEY}, concurrency={services.worker.concurrency})")
    services.worker.start()

    await shutdown_event.wait()

    await services.worker.stop()
    await services.aclose()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the DataSense LLM queue worker")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Max turns processed at once (default: WORKER_CONCURRENCY)",
    )
    return parser.parse_args()


def main() -> None:
    configure_logging()
    args = parse_args()
    asyncio.run(run_worker(args.concurrency))


if __name__ == "__main__":
    main()
