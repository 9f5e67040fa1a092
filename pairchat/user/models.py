"""Data models for the user blueprint."""

from __future__ import annotations

from typing import Any, TypedDict

from pairchat.core.types import FirestoreDocument


class FriendRequest(FirestoreDocument, total=False):
    """A friend request document in Firestore."""

    senderId: str
    receiverId: str
    status: str
    senderInfo: dict[str, Any]


class UsernameReservation(TypedDict):
    """A document in the usernames collection, keyed by the handle."""

    uid: str


class User(FirestoreDocument, total=False):
    """A user document in Firestore."""

    uid: str
    email: str
    username: str
    plan: str
    dailyMessageCount: int
    isAdmin: bool
    isBanned: bool
    friends: list[str]
    savedChats: list[str]
    friendsTab: list[str]
