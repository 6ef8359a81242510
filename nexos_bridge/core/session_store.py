"""Current-chat pointer storage with file, Redis and in-memory backends"""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

from redis.exceptions import RedisError

from ..models.config import StorageConfig
from ..utils import logger


CONFIG_SOURCE = "config"


class SessionStore(ABC):
    """Holds the upstream chat id that completions use by default"""

    source_name = "store"
    # Errors a backend may raise while saving
    write_errors: Tuple[type, ...] = (OSError,)

    def __init__(self, default_chat_id: str):
        self.default_chat_id = default_chat_id

    @abstractmethod
    async def load(self) -> Optional[str]:
        """Return the stored chat id, or None when absent or unreadable"""
        pass

    @abstractmethod
    async def save(self, chat_id: str) -> None:
        """Persist the chat id, raising one of ``write_errors`` on failure"""
        pass

    async def get_current(self) -> str:
        """Stored chat id, falling back to the configured default"""
        stored = await self.load()
        return stored or self.default_chat_id

    async def describe(self) -> Tuple[str, str]:
        """Current chat id and where it came from"""
        stored = await self.load()
        if stored:
            return stored, self.source_name
        return self.default_chat_id, CONFIG_SOURCE

    async def set_current(self, chat_id: str) -> bool:
        """
        Replace the current chat id

        Returns:
            True when persisted, False when the backend failed (logged)
        """
        try:
            await self.save(chat_id)
        except self.write_errors as e:
            logger.error(
                f"Failed to save current chat ID: {e}",
                event_type="storage_error",
                storage=self.source_name,
            )
            return False
        logger.log_chat_switch(chat_id, self.source_name)
        return True

    async def close(self) -> None:
        return None


class FileSessionStore(SessionStore):
    """JSON file holding ``{"chatId": "..."}``"""

    source_name = "file"

    def __init__(self, path: str, default_chat_id: str):
        super().__init__(default_chat_id)
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def load(self) -> Optional[str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read current chat ID: {e}", path=str(self.path))
            return None

        if not isinstance(data, dict):
            return None
        chat_id = data.get("chatId")
        return chat_id if isinstance(chat_id, str) and chat_id else None

    async def save(self, chat_id: str) -> None:
        # Write a sibling temp file then rename over the target so readers
        # see either the old or the new pointer, never a partial one.
        async with self._lock:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({"chatId": chat_id}, f, indent=2)
                os.replace(tmp_path, self.path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise


class RedisSessionStore(SessionStore):
    """Redis-backed pointer, for deployments without a writable disk"""

    source_name = "redis"
    write_errors = (RedisError, OSError)

    def __init__(self, redis_url: str, default_chat_id: str, redis_db: int = 0,
                 key: str = "nexos_bridge:current_chat"):
        """
        Initialize Redis storage

        Args:
            redis_url: Redis connection URL
            default_chat_id: Chat used when nothing is stored
            redis_db: Redis database number
            key: Key holding the chat id
        """
        super().__init__(default_chat_id)
        self.redis_url = redis_url
        self.redis_db = redis_db
        self.key = key
        self._redis = None

    async def _get_redis(self):
        """Get or create Redis connection"""
        if self._redis is None:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(
                self.redis_url,
                db=self.redis_db,
                decode_responses=True
            )
        return self._redis

    async def load(self) -> Optional[str]:
        try:
            redis = await self._get_redis()
            chat_id = await redis.get(self.key)
        except (RedisError, OSError) as e:
            logger.warning(f"Failed to read current chat ID: {e}", key=self.key)
            return None
        return chat_id or None

    async def save(self, chat_id: str) -> None:
        redis = await self._get_redis()
        await redis.set(self.key, chat_id)

    async def close(self) -> None:
        """Close Redis connection"""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class InMemorySessionStore(SessionStore):
    """Process-local pointer; lost on restart"""

    source_name = "memory"

    def __init__(self, default_chat_id: str):
        super().__init__(default_chat_id)
        self._chat_id: Optional[str] = None

    async def load(self) -> Optional[str]:
        return self._chat_id

    async def save(self, chat_id: str) -> None:
        self._chat_id = chat_id


def create_session_store(storage: StorageConfig, default_chat_id: str) -> SessionStore:
    """
    Factory function to create the configured pointer store

    Args:
        storage: Storage configuration
        default_chat_id: Chat used when nothing is stored

    Returns:
        Configured SessionStore instance

    Raises:
        ValueError: If storage type is invalid or redis_url is missing for redis storage
    """
    if storage.type == "file":
        return FileSessionStore(storage.path, default_chat_id)
    elif storage.type == "redis":
        if not storage.redis_url:
            raise ValueError("redis_url is required for redis storage")
        return RedisSessionStore(
            storage.redis_url, default_chat_id, storage.redis_db, storage.redis_key
        )
    elif storage.type == "memory":
        return InMemorySessionStore(default_chat_id)
    raise ValueError(f"Invalid storage type: {storage.type}")
