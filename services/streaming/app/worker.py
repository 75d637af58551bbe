"""
Dispatcher worker: long-running SQS consumer.

Runs as a SEPARATE process from the FastAPI API server.
Polls the upload notification queue and launches one ECS transcode task per
accepted video upload.

Start:  python -m app.worker   (or the ``streaming-dispatcher`` script)
Stop:   SIGTERM / SIGINT finish the current batch, then exit 0.
"""
from __future__ import annotations

import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from app.config import DISPATCHER_REQUIRED, Settings
from app.dispatcher.service import Dispatcher
from app.ecs import EcsLauncher
from app.exceptions import ConfigurationError
from app.sqs import SqsQueue

logger = logging.getLogger("streaming.worker")


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # Windows
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


async def serve(settings: Settings, stop: asyncio.Event | None = None) -> None:
    stop = stop or asyncio.Event()
    _install_signal_handlers(stop)
    async with SqsQueue(settings) as queue, EcsLauncher(settings) as launcher:
        dispatcher = Dispatcher.from_settings(settings, queue, launcher)
        await dispatcher.run(stop)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
    try:
        settings = Settings()
        settings.require(*DISPATCHER_REQUIRED)
    except (ConfigurationError, ValidationError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    logging.getLogger().setLevel(settings.log_level.upper())

    try:
        asyncio.run(serve(settings))
    except Exception:
        logger.exception("Fatal error")
        return 1
    logger.info("Shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
