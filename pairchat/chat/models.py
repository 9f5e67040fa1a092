"""Data models for the chat package."""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypedDict

from pairchat.core.constants import PROVISIONAL_ID_PREFIX

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot

# Epoch values above this are treated as milliseconds.
_MILLIS_THRESHOLD = 10**11


class Message(TypedDict, total=False):
    """A message document in a channel's ``messages`` sub-collection."""

    id: str
    text: str
    senderId: str
    receiverId: str
    createdAt: Any
    seen: bool
    edited: bool
    clientMessageId: str
    pending: bool


def to_datetime(value: Any) -> datetime.datetime | None:
    """Convert a Firestore timestamp-like value to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > _MILLIS_THRESHOLD else value
        return datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc)
    if isinstance(value, Mapping) and "seconds" in value:
        seconds = value["seconds"] + value.get("nanoseconds", 0) / 1e9
        return datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc)
    if isinstance(value, str):
        try:
            return to_datetime(datetime.datetime.fromisoformat(value))
        except ValueError:
            return None
    return None


def message_from_snapshot(snapshot: DocumentSnapshot) -> Message:
    """Build a message dict from a Firestore document snapshot."""
    data = snapshot.to_dict() or {}
    message = Message(**data)  # type: ignore[typeddict-item]
    message["id"] = snapshot.id
    message.pop("pending", None)
    return message


def is_provisional(message: Mapping[str, Any]) -> bool:
    """Return True for a locally inserted message not yet confirmed."""
    return bool(message.get("pending")) or str(message.get("id", "")).startswith(
        PROVISIONAL_ID_PREFIX
    )


def sort_messages(
    messages: Iterable[Message], now: datetime.datetime | None = None
) -> list[Message]:
    """Return messages ascending by creation time.

    A message whose server timestamp has not resolved yet sorts as ``now``,
    which keeps fresh sends at the tail.
    """
    fallback = now or datetime.datetime.now(datetime.timezone.utc)

    def sort_key(message: Message) -> tuple[datetime.datetime, str]:
        return (to_datetime(message.get("createdAt")) or fallback, message.get("id", ""))

    return sorted(messages, key=sort_key)


def serialize_message(message: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-safe copy of a message for the local cache."""
    data = dict(message)
    created = to_datetime(data.get("createdAt"))
    data["createdAt"] = created.isoformat() if created else None
    return data


def deserialize_message(data: Mapping[str, Any]) -> Message:
    """Rebuild a message stored by ``serialize_message``."""
    message = Message(**data)  # type: ignore[typeddict-item]
    message["createdAt"] = to_datetime(data.get("createdAt"))
    return message
