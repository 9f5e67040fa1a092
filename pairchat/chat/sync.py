"""Live, ordered view of one two-party channel.

A ``ChannelSession`` is created by the caller for the channel it shows,
opened, and closed when the view goes away. It owns the ordered message
list and merges three sources into it: the live window of the newest
messages, older pages fetched on demand, and provisional messages inserted
by optimistic sends.

Firestore delivers snapshot callbacks on a background thread, so every
mutation of the list happens under the session lock. Listeners are notified
after the lock is released.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from pairchat.core.constants import MESSAGES_PAGE_SIZE, MSG_LOAD_FAILED

from .identity import require_channel_key
from .models import Message, sort_messages, to_datetime
from .reconciler import match_pending
from .transport import ADDED, MODIFIED, REMOVED, ChangeBatch, MessageChange

if TYPE_CHECKING:
    from .cache import MessageCache
    from .transport import MessageTransport, Subscription

logger = logging.getLogger(__name__)

Listener = Callable[["ChannelSession"], None]


class ChannelSession:
    """The authoritative in-memory message list for one open channel."""

    def __init__(
        self,
        transport: MessageTransport,
        current_user_id: str,
        other_user_id: str,
        cache: MessageCache | None = None,
        page_size: int = MESSAGES_PAGE_SIZE,
    ) -> None:
        self.channel = require_channel_key(current_user_id, other_user_id)
        self.current_user_id = current_user_id
        self.other_user_id = other_user_id
        self.transport = transport
        self.cache = cache
        self.page_size = page_size

        self.is_open = False
        self.loading_initial = False
        self.loading_more = False
        self.from_cache = False
        self.has_more = False
        self.cursor: Any = None
        self.error: str | None = None

        self._messages: list[Message] = []
        self._max_loaded_count = 0
        self._paged_older = False
        self._generation = 0
        self._subscription: Subscription | None = None
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    # -- lifecycle -----------------------------------------------------------

    @property
    def generation(self) -> int:
        """Incremented on every open; stale async results compare against it."""
        return self._generation

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def open(self) -> None:
        """Seed from cache and start the live subscription."""
        with self._lock:
            if self.is_open:
                return
            self._generation += 1
            generation = self._generation
            self._reset()
            self.is_open = True
            self.loading_initial = True

            cached = self.cache.load(self.channel) if self.cache else None
            if cached:
                self._messages = sort_messages(cached)
                self.from_cache = True
                self.loading_initial = False
                logger.info(f"Seeded {self.channel} with {len(cached)} cached messages")

            try:
                self._subscription = self.transport.subscribe(
                    self.channel,
                    self.page_size,
                    lambda batch: self.apply_batch(batch, generation),
                    lambda error: self._on_subscription_error(error, generation),
                )
            except Exception as e:
                self._fail_subscription(e)
        self.notify()

    def close(self) -> None:
        """Stop the live feed and discard the list; the cache keeps a copy."""
        with self._lock:
            if not self.is_open:
                return
            subscription = self._subscription
            self._subscription = None
            self.is_open = False
            self._generation += 1
            if self.cache and self._messages:
                self.cache.save(self.channel, self._messages)
            self._reset()

        if subscription is not None:
            try:
                subscription.unsubscribe()
            except Exception as e:
                logger.error(f"Error unsubscribing from {self.channel}: {e}")

    def __enter__(self) -> ChannelSession:
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _reset(self) -> None:
        self._messages = []
        self._max_loaded_count = 0
        self._paged_older = False
        self.cursor = None
        self.has_more = False
        self.loading_initial = False
        self.loading_more = False
        self.from_cache = False
        self.error = None

    def _on_subscription_error(self, error: Exception, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self.is_open:
                return
            self._fail_subscription(error)
        self.notify()

    def _fail_subscription(self, error: Exception) -> None:
        logger.error(f"Live subscription for {self.channel} failed: {error}")
        self._subscription = None
        self.error = MSG_LOAD_FAILED
        self.loading_initial = False

    # -- reading -------------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        """A copy of the ordered message list."""
        with self._lock:
            return [dict(m) for m in self._messages]  # type: ignore[misc]

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def has_message(self, message_id: str) -> bool:
        with self._lock:
            return any(m.get("id") == message_id for m in self._messages)

    def get_message(self, message_id: str) -> Message | None:
        with self._lock:
            for m in self._messages:
                if m.get("id") == message_id:
                    return Message(**m)  # type: ignore[typeddict-item]
        return None

    # -- listeners -----------------------------------------------------------

    def on_change(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every list change."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def notify(self) -> None:
        """Run every listener. Must be called without the session lock held."""
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Channel listener failed for {self.channel}: {e}")

    # -- live merge ----------------------------------------------------------

    def apply_batch(self, batch: ChangeBatch, generation: int | None = None) -> None:
        """Merge one live snapshot into the list."""
        with self._lock:
            if not self.is_open:
                return
            if generation is not None and generation != self._generation:
                return
            if self.from_cache:
                # Live data supersedes the cached seed.
                self._messages = [m for m in self._messages if m.get("pending")]
                self.from_cache = False

            for change in batch.changes:
                self._merge_change(change)
            self._messages = sort_messages(self._messages)
            self._update_boundary(batch)
            self.error = None
            self.loading_initial = False
        self.notify()

    def _merge_change(self, change: MessageChange) -> None:
        incoming = change.message
        message_id = incoming.get("id")

        if change.type == ADDED:
            index = self._index_of(message_id)
            if index is None:
                index = match_pending(self._messages, incoming)
            if index is not None:
                self._messages[index] = incoming
            else:
                self._messages.append(incoming)
        elif change.type == MODIFIED:
            index = self._index_of(message_id)
            if index is not None:
                self._messages[index] = incoming
        elif change.type == REMOVED:
            self._messages = [m for m in self._messages if m.get("id") != message_id]
        else:
            logger.warning(f"Ignoring unknown change type {change.type!r}")

    def _index_of(self, message_id: str | None) -> int | None:
        if message_id is None:
            return None
        for i, m in enumerate(self._messages):
            if m.get("id") == message_id:
                return i
        return None

    def _update_boundary(self, batch: ChangeBatch) -> None:
        if batch.count == 0:
            self.cursor = None
            self.has_more = False
            self._max_loaded_count = 0
            return
        # A live window smaller than one already seen is stale and must not
        # move the cursor or clear has_more.
        if batch.count <= self._max_loaded_count:
            return
        self._max_loaded_count = batch.count
        if self._paged_older and not self._is_older(batch.oldest, self.cursor):
            return
        self.cursor = batch.oldest
        self.has_more = batch.count == self.page_size

    @staticmethod
    def _is_older(candidate: Any, current: Any) -> bool:
        if current is None:
            return True
        candidate_at = to_datetime(_cursor_field(candidate, "createdAt"))
        current_at = to_datetime(_cursor_field(current, "createdAt"))
        if candidate_at is None or current_at is None:
            return False
        return candidate_at < current_at

    # -- local mutations (optimistic writes and pagination) ------------------

    def insert_provisional(self, message: Message) -> None:
        """Append a provisional message at the tail."""
        with self._lock:
            self._messages.append(message)
        self.notify()

    def remove_where(self, predicate: Callable[[Message], bool]) -> int:
        """Drop every message matching ``predicate``; returns how many went."""
        with self._lock:
            before = len(self._messages)
            self._messages = [m for m in self._messages if not predicate(m)]
            removed = before - len(self._messages)
        if removed:
            self.notify()
        return removed

    def update_local(self, message_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        """Patch a message in place; returns the previous values of the patched fields."""
        with self._lock:
            index = self._index_of(message_id)
            if index is None:
                return None
            current = self._messages[index]
            previous = {key: current.get(key) for key in fields}
            self._messages[index] = Message(**{**current, **fields})  # type: ignore[typeddict-item]
        self.notify()
        return previous

    def prepend_older(self, older: Iterable[Message], notify: bool = True) -> int:
        """Put older messages (ascending) in front, skipping ids already present.

        Callers that already hold the session lock pass ``notify=False`` and call
        ``notify()`` once they release it.
        """
        with self._lock:
            present = {m.get("id") for m in self._messages}
            fresh = [m for m in older if m.get("id") not in present]
            if fresh:
                self._messages = sort_messages(fresh + self._messages)
        if fresh and notify:
            self.notify()
        return len(fresh)

    def advance_cursor(self, cursor: Any, has_more: bool) -> None:
        """Move the pagination boundary to an older page."""
        with self._lock:
            if cursor is not None:
                self.cursor = cursor
                self._paged_older = True
            self.has_more = has_more

    def set_error(self, message: str | None) -> None:
        with self._lock:
            self.error = message
        self.notify()


def _cursor_field(cursor: Any, name: str) -> Any:
    """Read a field from a cursor snapshot or a plain mapping."""
    if cursor is None:
        return None
    if isinstance(cursor, dict):
        return cursor.get(name)
    getter = getattr(cursor, "get", None)
    if callable(getter):
        try:
            return getter(name)
        except (KeyError, ValueError):
            return None
    return None
