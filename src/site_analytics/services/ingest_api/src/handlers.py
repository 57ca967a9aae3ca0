"""HTTP handlers for event ingestion, statistics and health."""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Optional, Set

import asyncpg
from aiohttp import web, web_request
from aiohttp.web_response import Response

from ....common.errors import QueueUnavailable
from ....common.events import Event
from ....common.queue_client import RedisEventQueue
from ....common.validation import validate_event
from .stats_reader import StatsReader


logger = logging.getLogger(__name__)


class EventIngestHandler:
    """
    Accepts events and hands them to the queue without waiting on Redis.

    Each accepted event is pushed by a background task. The HTTP response
    never reflects the push outcome; failures only reach the log.
    """

    def __init__(self, queue: RedisEventQueue):
        self.queue = queue
        self._pending: Set[asyncio.Task] = set()

        self.stats = {
            "accepted": 0,
            "rejected": 0,
            "enqueue_failures": 0
        }

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def post_event(self, request: web_request.Request) -> Response:
        try:
            body = await request.json()
        except ValueError as e:
            logger.error(f"Error in event ingestion: {e}")
            return web.json_response(
                {"success": False, "error": "Failed to process event"},
                status=500
            )

        validation = validate_event(body)
        if not validation.valid:
            self.stats["rejected"] += 1
            return web.json_response(
                {
                    "success": False,
                    "error": "Validation failed",
                    "details": validation.errors
                },
                status=400
            )

        self._enqueue_in_background(Event.from_dict(body))
        self.stats["accepted"] += 1

        return web.json_response(
            {
                "success": True,
                "message": "Event received and queued for processing"
            },
            status=202
        )

    def _enqueue_in_background(self, event: Event):
        task = asyncio.create_task(self.queue.enqueue(event))
        self._pending.add(task)
        task.add_done_callback(self._on_enqueue_done)

    def _on_enqueue_done(self, task: asyncio.Task):
        self._pending.discard(task)

        if task.cancelled():
            self.stats["enqueue_failures"] += 1
            logger.warning("Enqueue cancelled before completion, event lost")
            return

        error = task.exception()
        if error is None:
            return

        self.stats["enqueue_failures"] += 1
        if isinstance(error, QueueUnavailable):
            logger.error(f"Error pushing to queue, event lost: {error}")
        else:
            logger.error("Unexpected error pushing to queue, event lost", exc_info=error)

    async def drain(self, timeout: float):
        """Give in-flight pushes up to `timeout` seconds to complete."""
        if not self._pending:
            return

        logger.info(f"Waiting for {len(self._pending)} pending enqueues")
        _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout)

        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)


INGEST_HANDLER = web.AppKey("ingest_handler", EventIngestHandler)


class StatsHandler:
    """Serves page view aggregates."""

    def __init__(self, reader: StatsReader):
        self.reader = reader

    async def get_stats(self, request: web_request.Request) -> Response:
        site_id = request.query.get("site_id")
        if not site_id:
            return web.json_response(
                {"success": False, "error": "site_id query parameter is required"},
                status=400
            )

        day: Optional[date] = None
        raw_date = request.query.get("date")
        if raw_date:
            try:
                day = datetime.strptime(raw_date, "%Y-%m-%d").date()
            except ValueError:
                return web.json_response(
                    {"success": False, "error": "Invalid date format. Use YYYY-MM-DD"},
                    status=400
                )

        try:
            stats = await self.reader.get_site_stats(site_id, day)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error fetching stats: {e}", exc_info=True)
            return web.json_response(
                {"success": False, "error": "Failed to fetch statistics"},
                status=500
            )

        return web.json_response(stats, status=200)


class HealthHandler:
    """Health check HTTP handler."""

    def __init__(self, queue: RedisEventQueue, ingest: EventIngestHandler):
        self.queue = queue
        self.ingest = ingest

    async def health(self, request: web_request.Request) -> Response:
        queue_health = await self.queue.health_check()

        health_data = {
            "service": "ingest-api",
            "status": queue_health["status"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {"queue": queue_health},
            "ingest": {**self.ingest.stats, "pending_enqueues": self.ingest.pending_count}
        }

        # Degraded still serves traffic
        status = 200 if health_data["status"] in ("healthy", "degraded") else 503
        return web.json_response(health_data, status=status)


async def options(request: web_request.Request) -> Response:
    """CORS preflight."""
    return web.json_response({}, status=200)


@web.middleware
async def cors_middleware(request: web_request.Request, handler):
    """Permissive CORS so browser clients on other origins can post events."""
    response = await handler(request)
    response.headers['Access-Control-Allow-Origin'] = '*'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
    return response


def create_app(
    queue: RedisEventQueue,
    stats_reader: StatsReader,
    enqueue_drain_seconds: float = 5.0
) -> web.Application:
    """Build the aiohttp application with all routes wired."""
    app = web.Application(middlewares=[cors_middleware])

    ingest = EventIngestHandler(queue)
    stats = StatsHandler(stats_reader)
    health = HealthHandler(queue, ingest)
    app[INGEST_HANDLER] = ingest

    app.router.add_post('/api/event', ingest.post_event)
    app.router.add_route('OPTIONS', '/api/event', options)
    app.router.add_get('/api/stats', stats.get_stats)
    app.router.add_route('OPTIONS', '/api/stats', options)
    app.router.add_get('/health', health.health)

    async def drain_pending_enqueues(app: web.Application):
        await ingest.drain(enqueue_drain_seconds)

    app.on_shutdown.append(drain_pending_enqueues)
    return app
