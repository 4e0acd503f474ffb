"""Helpers for the persisted key layout.

Registry and watermark records share one associative store, so every key is
namespaced and the two components never touch each other's prefixes.
"""

from __future__ import annotations

NAMESPACE = "untappd"
FORWARD_PREFIX = f"{NAMESPACE}:user:"
REVERSE_PREFIX = f"{NAMESPACE}:owner:"
WATERMARK_PREFIX = f"{NAMESPACE}:last:"
USERNAMES_SET = f"{NAMESPACE}:usernames"


def forward_key(local_user_id: str) -> str:
    """Key holding the Untappd username of a chat user."""

    return f"{FORWARD_PREFIX}{local_user_id}"


def reverse_key(external_username: str) -> str:
    """Key holding the chat user id that owns an Untappd username."""

    return f"{REVERSE_PREFIX}{external_username}"


def watermark_key(external_username: str) -> str:
    return f"{WATERMARK_PREFIX}{external_username}"
