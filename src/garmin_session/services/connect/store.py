"""
Session State Stores

Persist exported ``SessionState`` so the password is only needed once.

Backends:
    FileSessionStore   - one JSON file per key, owner-only permissions
    RedisSessionStore  - redis with TTL, in-memory fallback for development

Key Schema (redis):
    garmin:session:{key}  -> JSON {"cookies": <base64 blob>, "user_identifier": ...}
"""

import asyncio
import json
import logging
import os
import re
import stat
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .exceptions import SessionStoreError
from .session import SessionState

logger = logging.getLogger(__name__)

DEFAULT_SESSION_DIR = Path.home() / ".garmin_session"
DEFAULT_KEY = "default"
_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.@-]")


class FileSessionStore:
    """Stores each session as ``<directory>/<key>.json``.

    Directory: 0700 (rwx------)
    File:      0600 (rw-------)
    """

    def __init__(self, directory: str | Path = DEFAULT_SESSION_DIR) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        return self._directory / f"{_SAFE_KEY.sub('_', key) or DEFAULT_KEY}.json"

    def _write(self, path: Path, payload: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        os.chmod(self._directory, stat.S_IRWXU)  # 0700

        path.write_text(payload)
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)  # 0600

    async def save(self, key: str, state: SessionState) -> None:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._write, path, json.dumps(state.to_dict(), indent=2))
        except OSError as e:
            raise SessionStoreError(f"Failed to save session: {e}", key=key, operation="save") from e
        logger.debug(f"Saved session {key} to {path}")

    async def load(self, key: str) -> SessionState | None:
        """Load a saved session; None when nothing is stored under ``key``."""
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            data = json.loads(await asyncio.to_thread(path.read_text))
            return SessionState.from_dict(data)
        except (OSError, ValueError) as e:
            raise SessionStoreError(f"Failed to load session: {e}", key=key, operation="load") from e

    async def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.exists():
            return False
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise SessionStoreError(f"Failed to delete session: {e}", key=key, operation="delete") from e
        logger.info(f"Deleted session {key}")
        return True


class RedisSessionStore:
    """Redis-based session store with TTL.

    Uses the in-memory dict when no redis client is supplied.
    """

    def __init__(
        self,
        redis_client: Any = None,
        key_prefix: str = "garmin:session:",
        ttl_seconds: int = 30 * 24 * 3600,
    ) -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._ttl_seconds = ttl_seconds
        self._memory_store: dict[str, dict[str, Any]] = {}
        self._use_redis = redis_client is not None

        logger.info(f"RedisSessionStore initialized: backend={'redis' if self._use_redis else 'memory'}")

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def save(self, key: str, state: SessionState, ttl: int | None = None) -> None:
        ttl = ttl or self._ttl_seconds
        redis_key = self._key(key)

        try:
            if self._use_redis:
                await self._redis.setex(redis_key, ttl, json.dumps(state.to_dict()))
            else:
                self._memory_store[redis_key] = {
                    "data": state.to_dict(),
                    "expires_at": datetime.now(UTC).timestamp() + ttl,
                }
            logger.debug(f"Saved session {key}")

        except Exception as e:
            raise SessionStoreError(f"Failed to save session: {e}", key=key, operation="save") from e

    async def load(self, key: str) -> SessionState | None:
        redis_key = self._key(key)

        try:
            if self._use_redis:
                raw = await self._redis.get(redis_key)
                if not raw:
                    return None
                data = json.loads(raw)
            else:
                stored = self._memory_store.get(redis_key)
                if not stored:
                    return None
                if stored["expires_at"] < datetime.now(UTC).timestamp():
                    del self._memory_store[redis_key]
                    return None
                data = stored["data"]

            return SessionState.from_dict(data)

        except Exception as e:
            raise SessionStoreError(f"Failed to load session: {e}", key=key, operation="load") from e

    async def delete(self, key: str) -> bool:
        redis_key = self._key(key)

        try:
            if self._use_redis:
                deleted = await self._redis.delete(redis_key) > 0
            else:
                deleted = self._memory_store.pop(redis_key, None) is not None
        except Exception as e:
            raise SessionStoreError(f"Failed to delete session: {e}", key=key, operation="delete") from e

        if deleted:
            logger.info(f"Deleted session {key}")
        return deleted
