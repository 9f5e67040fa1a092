"""Firestore access for channel sessions.

This is the only part of the client library that talks to the Firestore
client. Raw ``google.api_core`` exceptions are converted here into
``TransportError`` (reads) or ``WriteRejectedError`` (writes) so callers
never see transport exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from pairchat.core.constants import (
    CHATS_COLLECTION,
    FIRESTORE_BATCH_LIMIT,
    MESSAGES_COLLECTION,
)
from pairchat.errors import TransportError, WriteRejectedError

from .models import Message, message_from_snapshot

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

ADDED = "added"
MODIFIED = "modified"
REMOVED = "removed"


@dataclass
class MessageChange:
    """One incremental change delivered by the live window."""

    type: str
    message: Message


@dataclass
class ChangeBatch:
    """All changes from one live snapshot.

    ``count`` is the number of documents currently in the live window and
    ``oldest`` the cursor for its oldest document (None if empty).
    """

    changes: list[MessageChange] = field(default_factory=list)
    count: int = 0
    oldest: Any = None


@dataclass
class Page:
    """A one-shot page of older messages, newest first as fetched."""

    messages: list[Message] = field(default_factory=list)
    cursor: Any = None


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class MessageTransport(Protocol):
    """What a channel session needs from the document store."""

    def subscribe(
        self,
        channel: str,
        page_size: int,
        on_batch: Callable[[ChangeBatch], None],
        on_error: Callable[[Exception], None],
    ) -> Subscription: ...

    def fetch_older(self, channel: str, cursor: Any, page_size: int) -> Page: ...

    def add_message(self, channel: str, data: dict[str, Any]) -> str: ...

    def update_message(self, channel: str, message_id: str, fields: dict[str, Any]) -> None: ...

    def delete_message(self, channel: str, message_id: str) -> None: ...

    def mark_seen(self, channel: str, message_ids: list[str]) -> None: ...


def _rejection_reason(error: Exception) -> str:
    if isinstance(error, gcp_exceptions.PermissionDenied):
        return "permission-denied"
    if isinstance(error, gcp_exceptions.ResourceExhausted):
        return "resource-exhausted"
    if isinstance(error, gcp_exceptions.NotFound):
        return "not-found"
    return "unavailable"


class FirestoreTransport:
    """Message transport backed by a Firestore client."""

    def __init__(self, db: Client | None = None) -> None:
        self.db = db or firestore.client()

    def _messages(self, channel: str) -> Any:
        return (
            self.db.collection(CHATS_COLLECTION)
            .document(channel)
            .collection(MESSAGES_COLLECTION)
        )

    def subscribe(
        self,
        channel: str,
        page_size: int,
        on_batch: Callable[[ChangeBatch], None],
        on_error: Callable[[Exception], None],
    ) -> Subscription:
        """Listen to the newest ``page_size`` messages of a channel."""
        query = (
            self._messages(channel)
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(page_size)
        )

        def on_snapshot(docs: list[Any], changes: list[Any], read_time: Any) -> None:
            try:
                batch = ChangeBatch(
                    changes=[
                        MessageChange(
                            type=change.type.name.lower(),
                            message=message_from_snapshot(change.document),
                        )
                        for change in changes
                    ],
                    count=len(docs),
                    oldest=docs[-1] if docs else None,
                )
            except Exception as e:
                logger.error(f"Malformed snapshot for channel {channel}: {e}")
                on_error(TransportError(str(e)))
                return
            on_batch(batch)

        try:
            return query.on_snapshot(on_snapshot)
        except gcp_exceptions.GoogleAPICallError as e:
            raise TransportError(f"Unable to subscribe to {channel}: {e}") from e

    def fetch_older(self, channel: str, cursor: Any, page_size: int) -> Page:
        """Fetch the page of messages strictly older than ``cursor``."""
        query = (
            self._messages(channel)
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .start_after(cursor)
            .limit(page_size)
        )
        try:
            docs = list(query.stream())
        except gcp_exceptions.GoogleAPICallError as e:
            raise TransportError(f"Unable to fetch older messages: {e}") from e
        return Page(
            messages=[message_from_snapshot(doc) for doc in docs],
            cursor=docs[-1] if docs else None,
        )

    def add_message(self, channel: str, data: dict[str, Any]) -> str:
        """Create a message with a server timestamp and return its id."""
        payload = dict(data)
        payload["createdAt"] = firestore.SERVER_TIMESTAMP
        try:
            _, doc_ref = self._messages(channel).add(payload)
        except gcp_exceptions.GoogleAPICallError as e:
            raise WriteRejectedError(str(e), reason=_rejection_reason(e)) from e
        return doc_ref.id

    def update_message(self, channel: str, message_id: str, fields: dict[str, Any]) -> None:
        try:
            self._messages(channel).document(message_id).update(fields)
        except gcp_exceptions.GoogleAPICallError as e:
            raise WriteRejectedError(str(e), reason=_rejection_reason(e)) from e

    def delete_message(self, channel: str, message_id: str) -> None:
        try:
            self._messages(channel).document(message_id).delete()
        except gcp_exceptions.GoogleAPICallError as e:
            raise WriteRejectedError(str(e), reason=_rejection_reason(e)) from e

    def mark_seen(self, channel: str, message_ids: list[str]) -> None:
        """Flag the given messages as seen in one batched write."""
        for start in range(0, len(message_ids), FIRESTORE_BATCH_LIMIT):
            batch = self.db.batch()
            for message_id in message_ids[start : start + FIRESTORE_BATCH_LIMIT]:
                batch.update(
                    self._messages(channel).document(message_id), {"seen": True}
                )
            try:
                batch.commit()
            except gcp_exceptions.GoogleAPICallError as e:
                raise WriteRejectedError(str(e), reason=_rejection_reason(e)) from e
