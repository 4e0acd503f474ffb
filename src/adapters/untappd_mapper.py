"""Untappd-to-core payload mapping adapter.

This keeps Untappd JSON shapes out of the core; anything that does not look
like a check-in is reported as an ExternalServiceError.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from core.errors import ExternalServiceError
from core.models import Checkin, UserInfo

CREATED_AT_FORMAT = "%a, %d %b %Y %H:%M:%S %z"


def parse_created_at(value: str) -> datetime:
    """Parse Untappd's RFC 2822 style timestamp into an aware UTC datetime."""

    try:
        parsed = datetime.strptime(value, CREATED_AT_FORMAT)
    except (TypeError, ValueError) as exc:
        raise ExternalServiceError(f"Unparseable created_at: {value!r}") from exc
    return parsed.astimezone(timezone.utc)


def checkin_from_payload(item: dict[str, Any]) -> Checkin:
    """Build a Checkin from one entry of `response.checkins.items`."""

    try:
        return Checkin(
            checkin_id=int(item["checkin_id"]),
            timestamp=parse_created_at(item["created_at"]),
            beer_name=str(item["beer"]["beer_name"]),
            brewery_name=str(item["brewery"]["brewery_name"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ExternalServiceError(f"Malformed checkin payload: {exc!r}") from exc


def _response(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict) or not isinstance(payload.get("response"), dict):
        raise ExternalServiceError("Untappd payload has no response object")
    return payload["response"]


def checkins_from_payload(payload: Any) -> list[Checkin]:
    """Return the feed page, newest first, as delivered by Untappd.

    An empty or missing `checkins` block is "no data", not an error.
    """

    checkins = _response(payload).get("checkins")
    if not checkins:
        return []
    items = checkins.get("items") if isinstance(checkins, dict) else None
    if not items:
        return []
    return [checkin_from_payload(item) for item in items]


def user_info_from_payload(payload: Any) -> Optional[UserInfo]:
    """Build a UserInfo, or None when Untappd says the user does not exist."""

    meta = payload.get("meta") if isinstance(payload, dict) else None
    if isinstance(meta, dict) and meta.get("code") == 404:
        return None

    user = _response(payload).get("user")
    if not isinstance(user, dict):
        return None

    username = user.get("user_name")
    if not isinstance(username, str) or not username:
        raise ExternalServiceError("Malformed user payload: no user_name")
    return UserInfo(username=username)
