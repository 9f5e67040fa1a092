"""Short-lived local cache used to seed a channel view before the live feed answers."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from pairchat.core.constants import MESSAGE_CACHE_TTL_SECONDS

from .models import Message, deserialize_message, is_provisional, serialize_message

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "chat_cache_"


class CacheStore(Protocol):
    """Key/value store provided by the hosting client (file, keyring, browser storage)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryCacheStore:
    """A process-local cache store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class MessageCache:
    """Stores the last confirmed messages of each channel with a save time.

    The store itself has no expiry; freshness is checked here on read and
    stale entries are deleted.
    """

    def __init__(
        self,
        store: CacheStore,
        ttl_seconds: float = MESSAGE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @staticmethod
    def key_for(channel: str) -> str:
        return f"{CACHE_KEY_PREFIX}{channel}"

    def load(self, channel: str) -> list[Message] | None:
        """Return cached messages for a channel, or None when missing or expired."""
        key = self.key_for(channel)
        try:
            raw = self.store.get(key)
        except Exception as e:
            logger.warning(f"Message cache read failed for {channel}: {e}")
            return None
        if not raw:
            return None

        try:
            entry = json.loads(raw)
            saved_at = float(entry["savedAt"])
            items = entry["messages"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry for {channel}: {e}")
            self.invalidate(channel)
            return None

        if self._clock() - saved_at > self.ttl_seconds:
            self.invalidate(channel)
            return None
        return [deserialize_message(item) for item in items]

    def save(self, channel: str, messages: Iterable[Message]) -> None:
        """Persist the confirmed messages of a channel."""
        confirmed = [serialize_message(m) for m in messages if not is_provisional(m)]
        entry: dict[str, Any] = {"savedAt": self._clock(), "messages": confirmed}
        try:
            self.store.set(self.key_for(channel), json.dumps(entry, default=str))
        except Exception as e:
            logger.warning(f"Message cache write failed for {channel}: {e}")

    def invalidate(self, channel: str) -> None:
        try:
            self.store.delete(self.key_for(channel))
        except Exception as e:
            logger.warning(f"Message cache delete failed for {channel}: {e}")
