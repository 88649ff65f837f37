import json
import logging
from typing import Any, Dict, Optional

from upstash_redis import Redis

from hellogt.config import settings
from hellogt.core.errors import StoreUnavailable


logger = logging.getLogger(__name__)

# Global Redis client
redis_client: Optional[Redis] = None


async def init_redis() -> Optional[Redis]:
    """Initialize Upstash Redis connection."""
    global redis_client
    if not settings.redis_configured:
        logger.warning("Upstash Redis not configured - per-device state kept in memory")
        return None
    redis_client = Redis(
        url=settings.UPSTASH_REDIS_URL,
        token=settings.UPSTASH_REDIS_TOKEN,
    )
    logger.info("Redis (Upstash) initialized")
    return redis_client


async def close_redis():
    """Close Redis connection."""
    global redis_client
    redis_client = None
    logger.info("Redis connection closed")


class MemoryKeyValue:
    """Dict-backed stand-in exposing the get/set/delete calls LocalStateService makes."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        self._data[key] = value
        return True

    def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._data.pop(key, None) is not None)


class LocalStateService:
    """
    Per-device state (notification list, saved profiles).
    Every key carries the signed-in user's id so accounts sharing a device
    never see each other's state.
    """

    def __init__(self, client=None):
        self.client = client if client is not None else (redis_client or MemoryKeyValue())

    # ==================== Keys ====================

    @staticmethod
    def notifications_key(user_id: str) -> str:
        return f"matchNotifications:{user_id}"

    @staticmethod
    def saved_profiles_key(user_id: str) -> str:
        return f"savedProfiles:{user_id}"

    # ==================== JSON Values ====================

    async def get_json(self, key: str) -> Optional[Any]:
        """Load a JSON value, None when absent."""
        try:
            raw = self.client.get(key)
        except Exception as e:
            raise StoreUnavailable(f"local state read {key} failed: {e}") from e
        if raw is None:
            return None
        return json.loads(raw)

    async def put_json(self, key: str, value: Any) -> None:
        try:
            self.client.set(key, json.dumps(value))
        except Exception as e:
            raise StoreUnavailable(f"local state write {key} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except Exception as e:
            raise StoreUnavailable(f"local state delete {key} failed: {e}") from e
