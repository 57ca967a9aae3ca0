"""Ingest API Service - HTTP event intake and statistics."""

import asyncio
import logging
import os
import sys
from typing import Optional

from aiohttp import web
from asyncpg import Pool

from ....common.config.settings import PipelineConfig, load_config
from ....common.database import create_pool
from ....common.errors import StartupError
from ....common.queue_client import RedisEventQueue
from ....common.utils.logging import setup_logging
from ....common.utils.signals import install_shutdown_handlers
from .handlers import create_app
from .stats_reader import StatsReader


logger = logging.getLogger(__name__)


class IngestApiService:
    """HTTP server for the ingestion and statistics endpoints."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.queue = RedisEventQueue(config.redis, config.queue)
        self.pool: Optional[Pool] = None
        self.app: Optional[web.Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self._shutdown_event = asyncio.Event()

    @classmethod
    def from_file(cls, config_file: str = "config/local.yaml") -> "IngestApiService":
        config = load_config(config_file)
        setup_logging(config.logging, service_name="ingest-api")
        logger.info("Ingest API Service initialized")
        return cls(config)

    async def start(self):
        """Start serving and block until a shutdown signal arrives."""
        host, port = self.config.api.host, self.config.api.port
        logger.info(f"Starting ingest API on {host}:{port}")

        try:
            await self.queue.initialize()
            self.pool = await create_pool(self.config.database)
        except StartupError:
            await self.queue.close()
            raise

        self.app = create_app(
            self.queue,
            StatsReader(self.pool),
            enqueue_drain_seconds=self.config.api.enqueue_drain_seconds
        )

        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, host, port)
        await self.site.start()

        logger.info(f"Ingest API started on http://{host}:{port}")

        install_shutdown_handlers(self._shutdown_event)
        await self._shutdown_event.wait()
        await self.stop()

    async def stop(self):
        """Stop the server, letting pending enqueues finish before Redis closes."""
        logger.info("Stopping ingest API")

        if self.runner:
            # Runs on_shutdown, which drains background enqueues
            await self.runner.cleanup()
            self.runner = None
            self.site = None

        if self.pool:
            pool, self.pool = self.pool, None
            await pool.close()

        await self.queue.close()

        logger.info("Ingest API stopped")


async def main():
    """Main entry point."""
    config_file = os.getenv("CONFIG_FILE", "config/local.yaml")

    try:
        service = IngestApiService.from_file(config_file)
        await service.start()
    except Exception as e:
        logger.error(f"Service failed: {e}", exc_info=True)
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
