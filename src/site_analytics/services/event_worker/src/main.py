"""Event Worker Service - Redis queue to PostgreSQL persistence."""

import asyncio
import logging
import os
import sys
from typing import Optional

from ....common.config.settings import PipelineConfig, load_config
from ....common.queue_client import RedisEventQueue
from ....common.errors import StartupError
from ....common.utils.logging import setup_logging
from ....common.utils.signals import install_shutdown_handlers
from .db_writer import EventWriter
from .worker import EventWorker


logger = logging.getLogger(__name__)


class EventWorkerService:
    """Owns the worker loop and the queue and database resources it uses."""

    def __init__(
        self,
        config: PipelineConfig,
        queue: Optional[RedisEventQueue] = None,
        writer: Optional[EventWriter] = None
    ):
        self.config = config
        self.queue = queue or RedisEventQueue(config.redis, config.queue)
        self.writer = writer or EventWriter(config.database)
        self._shutdown_event = asyncio.Event()
        self.worker = EventWorker(
            self.queue,
            self.writer,
            config.worker,
            dequeue_timeout=config.queue.dequeue_timeout_seconds,
            shutdown_event=self._shutdown_event
        )
        self._worker_task: Optional[asyncio.Task] = None
        self._stopped = False

    @classmethod
    def from_file(cls, config_file: str = "config/local.yaml") -> "EventWorkerService":
        config = load_config(config_file)
        setup_logging(config.logging, service_name="event-worker")
        logger.info("Event Worker Service initialized")
        return cls(config)

    async def start(self):
        """Connect, run the worker loop until shutdown is requested, then stop."""
        logger.info("Starting Event Worker Service")

        try:
            await self.queue.initialize()
            await self.writer.initialize()
        except StartupError:
            await self._release_resources()
            raise

        install_shutdown_handlers(self._shutdown_event)

        self._worker_task = asyncio.create_task(self.worker.run())
        # A crashed loop must not leave the service waiting forever
        self._worker_task.add_done_callback(lambda _: self._shutdown_event.set())

        await self._shutdown_event.wait()
        await self.stop()

        task = self._worker_task
        if task.done() and not task.cancelled() and task.exception():
            raise task.exception()

    async def stop(self):
        """Drain the in-flight cycle, release resources and report totals. Safe to call twice."""
        if self._stopped:
            return
        self._stopped = True

        logger.info("Shutting down worker gracefully...")
        self.worker.request_stop()

        task = self._worker_task
        if task and not task.done():
            done, _ = await asyncio.wait({task}, timeout=self.config.worker.drain_seconds)
            if not done:
                logger.warning(
                    f"Worker did not finish within {self.config.worker.drain_seconds}s drain window, cancelling"
                )
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        await self._release_resources()

        stats = self.worker.get_stats()
        logger.info(
            f"Final statistics: processed={stats['processed']}, "
            f"errors={stats['errors']}, malformed={stats['malformed']}, "
            f"rows_written={self.writer.stats['records_written']}, "
            f"write_errors={self.writer.stats['write_errors']}"
        )

    async def _release_resources(self):
        await self.writer.close()
        await self.queue.close()


async def main():
    """Main entry point."""
    config_file = os.getenv("CONFIG_FILE", "config/local.yaml")

    try:
        service = EventWorkerService.from_file(config_file)
        await service.start()
    except Exception as e:
        logger.error(f"Fatal worker error: {e}", exc_info=True)
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
