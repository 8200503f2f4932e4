import logging
import threading
import time
from typing import Dict, Optional

from redis.asyncio import Redis as AsyncRedis

from backend.core.config import settings

logger = logging.getLogger(__name__)

# Keys are "rl:{ip}:{window}"; the window number is the last segment.
SWEEP_THRESHOLD = 1000

def current_window(now: Optional[float] = None, window_seconds: Optional[int] = None) -> int:
    window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
    return int((now if now is not None else time.time()) // window_seconds)

def rate_limit_key(ip: str, window: int) -> str:
    return f"rl:{ip}:{window}"

class CounterStore:
    """Atomic increment-and-expire counters used by the API rate limiter."""

    async def incr(self, key: str, ttl_seconds: int) -> int:
        raise NotImplementedError

    async def close(self) -> None:
        return None

class InMemoryCounterStore(CounterStore):
    """Single-process store. Windows older than the previous one are swept once the map grows."""

    def __init__(self, sweep_threshold: int = SWEEP_THRESHOLD):
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()
        self.sweep_threshold = sweep_threshold

    async def incr(self, key: str, ttl_seconds: int) -> int:
        with self._lock:
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            if len(self._counts) > self.sweep_threshold:
                self._sweep(current_window(window_seconds=ttl_seconds))
            return count

    def _sweep(self, window: int) -> None:
        stale = [k for k in self._counts if _window_of(k) < window - 1]
        for k in stale:
            del self._counts[k]
        logger.debug(f"Rate limit sweep removed {len(stale)} stale counters.")

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)

def _window_of(key: str) -> int:
    try:
        return int(key.rsplit(":", 1)[1])
    except (IndexError, ValueError):
        return -1

class RedisCounterStore(CounterStore):
    """Shared store for multi-instance deployments: INCR and EXPIRE in one transaction."""

    def __init__(self, url: str):
        self.client = AsyncRedis.from_url(url, decode_responses=True)

    async def incr(self, key: str, ttl_seconds: int) -> int:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            count, _ = await pipe.execute()
        return int(count)

    async def close(self) -> None:
        await self.client.aclose()

_store: Optional[CounterStore] = None

def get_counter_store() -> CounterStore:
    global _store
    if _store is None:
        if settings.RATE_LIMIT_REDIS_URL:
            logger.info("Rate limiting uses the shared Redis counter store.")
            _store = RedisCounterStore(settings.RATE_LIMIT_REDIS_URL)
        else:
            logger.info("Rate limiting uses the in-process counter store.")
            _store = InMemoryCounterStore()
    return _store

def set_counter_store(store: Optional[CounterStore]) -> None:
    global _store
    _store = store
