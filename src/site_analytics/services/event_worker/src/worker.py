"""Worker loop moving events from the Redis queue into PostgreSQL."""

import asyncio
import logging
from typing import Any, Dict, Optional

from ....common.config.settings import WorkerConfig
from ....common.errors import DeserializationError, PersistError, QueueUnavailable
from ....common.events import Event
from ....common.queue_client import RedisEventQueue
from ....common.utils.logging import log_with_context
from .db_writer import EventWriter


logger = logging.getLogger(__name__)


class EventWorker:
    """
    Sequential consumer: one dequeue/insert pair at a time.

    A dequeued event is attempted exactly once. If the insert fails the event
    is counted in `error_count` and dropped, it is never pushed back.
    Queue outages are retried forever with a fixed backoff.

    `shutdown_event` is the cancellation token. It is checked between
    iterations and cuts the backoff sleep short, so the loop stops within one
    dequeue timeout of it being set.
    """

    def __init__(
        self,
        queue: RedisEventQueue,
        writer: EventWriter,
        config: WorkerConfig,
        dequeue_timeout: float = 5,
        shutdown_event: Optional[asyncio.Event] = None
    ):
        self.queue = queue
        self.writer = writer
        self.config = config
        self.dequeue_timeout = dequeue_timeout
        self._shutdown_event = shutdown_event or asyncio.Event()

        self.processed_count = 0
        self.error_count = 0
        self.malformed_count = 0

    @property
    def running(self) -> bool:
        return not self._shutdown_event.is_set()

    def request_stop(self):
        """Stop initiating new dequeues; the current cycle is allowed to finish."""
        self._shutdown_event.set()

    async def run(self):
        """Run until a stop is requested."""
        logger.info(f"Analytics worker started, waiting for events on '{self.queue.queue_name}'")

        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                self.error_count += 1
                logger.error(f"Unexpected error in worker loop: {e}", exc_info=True)
                await self._backoff()

        logger.info("Worker loop exited")

    async def run_once(self):
        """One dequeue, and at most one insert."""
        try:
            event = await self.queue.dequeue(self.dequeue_timeout)
        except QueueUnavailable as e:
            logger.error(f"Queue unavailable, retrying in {self.config.backoff_seconds}s: {e}")
            await self._backoff()
            return
        except DeserializationError as e:
            self.malformed_count += 1
            logger.error(f"Dropping malformed queue payload: {e}")
            return

        if event is None:
            return

        await self._process(event)

    async def _process(self, event: Event):
        try:
            await self.writer.insert(event)
        except PersistError as e:
            self.error_count += 1
            log_with_context(
                logger, logging.ERROR,
                f"Error processing event: {e}",
                site_id=event.site_id,
                event_type=event.event_type,
                error_count=self.error_count
            )
            return

        self.processed_count += 1

        if self.processed_count % self.config.log_every == 0:
            logger.info(f"Processed {self.processed_count} events (errors: {self.error_count})")

        if self.processed_count % self.config.queue_report_every == 0:
            queue_length = await self.queue.length()
            logger.info(f"Queue length: {queue_length}")

    async def _backoff(self):
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.config.backoff_seconds)
        except asyncio.TimeoutError:
            pass

    def get_stats(self) -> Dict[str, Any]:
        """Get worker counters."""
        return {
            "processed": self.processed_count,
            "errors": self.error_count,
            "malformed": self.malformed_count,
            "running": self.running
        }
