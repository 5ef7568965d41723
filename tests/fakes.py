"""Test doubles shared across test modules."""


class FakeRedisClient:
    """
    In-memory stand-in for core.redis.RedisClient.

    Mirrors the RedisClient contract: get returns bytes or None, setex returns
    whether the value was stored.
    """

    def __init__(self, *, connected: bool = True) -> None:
        self.store: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}
        self.get_calls: list[str] = []
        self._connected = connected

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def ping(self) -> bool:
        return self._connected

    async def get(self, key: str) -> bytes | None:
        self.get_calls.append(key)
        if not self._connected:
            return None
        return self.store.get(key)

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        if not self._connected:
            return False
        self.store[key] = value.encode() if isinstance(value, str) else value
        self.ttls[key] = seconds
        return True
