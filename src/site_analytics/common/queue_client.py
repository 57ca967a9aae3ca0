"""Redis-backed durable event queue."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from .config.settings import RedisConfig, QueueConfig
from .errors import QueueUnavailable, StartupError
from .events import Event


logger = logging.getLogger(__name__)


class RedisEventQueue:
    """FIFO event queue over a single Redis list.

    Producers LPUSH onto the tail and consumers BRPOP from the head, so a
    single producer and a single consumer observe enqueue order.
    """

    def __init__(self, redis_config: RedisConfig, queue_config: QueueConfig,
                 client: Optional[redis.Redis] = None):
        self.redis_config = redis_config
        self.queue_name = queue_config.name
        self.redis_client: Optional[redis.Redis] = client

        # Statistics
        self.stats = {
            "events_enqueued": 0,
            "events_dequeued": 0,
            "connection_errors": 0,
            "last_enqueue_time": None
        }
        self._last_op_failed = False

        logger.info(
            f"RedisEventQueue initialized for {redis_config.host}:{redis_config.port} "
            f"list '{self.queue_name}'"
        )

    async def initialize(self):
        """Initialize Redis connection."""
        try:
            if self.redis_client is None:
                self.redis_client = redis.Redis(
                    host=self.redis_config.host,
                    port=self.redis_config.port,
                    password=self.redis_config.password,
                    db=self.redis_config.db,
                    socket_timeout=self.redis_config.socket_timeout,
                    socket_connect_timeout=self.redis_config.socket_connect_timeout,
                    health_check_interval=30,
                    retry_on_timeout=True,
                    decode_responses=False
                )

            # Test connection
            await self.redis_client.ping()

            logger.info("Redis connection initialized successfully")

        except (RedisError, OSError) as e:
            logger.error(f"Failed to initialize Redis connection: {e}")
            self.stats["connection_errors"] += 1
            raise StartupError(f"Redis unavailable at startup: {e}") from e

    async def close(self):
        """Close Redis connection."""
        if self.redis_client:
            logger.info("Closing Redis connection")
            client, self.redis_client = self.redis_client, None
            await client.aclose()

    def _require_client(self) -> redis.Redis:
        if not self.redis_client:
            raise QueueUnavailable("Redis client not initialized")
        return self.redis_client

    async def enqueue(self, event: Event) -> None:
        """Append an event to the tail of the queue."""
        client = self._require_client()

        try:
            await client.lpush(self.queue_name, event.to_json())
        except (RedisError, OSError) as e:
            self.stats["connection_errors"] += 1
            self._last_op_failed = True
            raise QueueUnavailable(f"Failed to push event to '{self.queue_name}': {e}") from e

        self._last_op_failed = False
        self.stats["events_enqueued"] += 1
        self.stats["last_enqueue_time"] = datetime.now().isoformat()

    async def dequeue(self, timeout: float) -> Optional[Event]:
        """
        Pop the oldest event, waiting up to `timeout` seconds for one.

        Returns None when the wait times out. The element is removed before
        decoding, so a payload that fails to decode is gone from the queue
        when DeserializationError is raised.
        """
        client = self._require_client()

        try:
            result = await client.brpop([self.queue_name], timeout=timeout)
        except (RedisError, OSError) as e:
            self.stats["connection_errors"] += 1
            self._last_op_failed = True
            raise QueueUnavailable(f"Failed to pop from '{self.queue_name}': {e}") from e

        self._last_op_failed = False
        if result is None:
            return None

        self.stats["events_dequeued"] += 1
        _, raw = result
        return Event.from_json(raw)

    async def length(self) -> int:
        """Number of buffered events. Returns 0 when Redis cannot answer."""
        try:
            return await self._require_client().llen(self.queue_name)
        except (RedisError, OSError, QueueUnavailable) as e:
            logger.error(f"Error getting queue length: {e}")
            return 0

    async def health_check(self) -> Dict[str, Any]:
        """Report `healthy`, `degraded` or `unhealthy` for the Redis connection."""

        health_status = {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "stats": self.stats.copy()
        }

        try:
            if not self.redis_client:
                health_status["status"] = "unhealthy"
                health_status["error"] = "Redis client not initialized"
                return health_status

            await self.redis_client.ping()
            health_status["queue_length"] = await self.length()

            # Reachable now, but the last push or pop failed
            if self._last_op_failed:
                health_status["status"] = "degraded"

        except (RedisError, OSError) as e:
            health_status["status"] = "unhealthy"
            health_status["error"] = str(e)

        return health_status
