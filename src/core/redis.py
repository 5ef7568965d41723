"""Valkey/Redis fast cache client that degrades to misses."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Async fast cache client with connection pooling.

    The cache only ever accelerates lookups, so every operation turns a disabled,
    unreachable or failing server into a miss (`None` / `False`) and logs it.
    Callers then go to the durable store.
    """

    def __init__(self, url: str, enabled: bool = True, pool_size: int = 20) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Create the pool and check the server answers; stay offline if not."""
        if not self._enabled:
            logger.info("cache_disabled")
            return
        pool = ConnectionPool.from_url(self._url, max_connections=self._pool_size)
        client = Redis(connection_pool=pool)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning("cache_unavailable error=%s; serving from the database only", e)
            await client.aclose()
            return
        self._pool = pool
        self._client = client
        logger.info("cache_connected pool_size=%s", self._pool_size)

    async def close(self) -> None:
        """Release the pool."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        self._pool = None
        logger.info("cache_closed")

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def ping(self) -> bool:
        """Report whether the server currently answers."""
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def get(self, key: str) -> bytes | None:
        """Return the raw value at `key`, or None on a missing key or any failure."""
        if self._client is None:
            return None
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.warning("cache_get_failed key=%s error=%s", key, e)
            return None

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        """Store `value` at `key` for `seconds`; False when it was not stored."""
        if self._client is None:
            return False
        try:
            await self._client.setex(key, seconds, value)
        except RedisError as e:
            logger.warning("cache_set_failed key=%s error=%s", key, e)
            return False
        return True
