"""Deterministic channel keys for two-party conversations."""

from __future__ import annotations

from pairchat.errors import ChannelUnavailableError

KEY_SEPARATOR = "_"


def channel_key(user_a: str | None, user_b: str | None) -> str | None:
    """Return the channel key shared by two users, or None if either id is missing.

    The key is symmetric: ``channel_key(a, b) == channel_key(b, a)``.
    """
    if not user_a or not user_b:
        return None
    low, high = sorted((user_a, user_b))
    return f"{low}{KEY_SEPARATOR}{high}"


def require_channel_key(user_a: str | None, user_b: str | None) -> str:
    """Return the channel key or raise if the channel cannot be opened."""
    key = channel_key(user_a, user_b)
    if key is None:
        raise ChannelUnavailableError()
    return key

