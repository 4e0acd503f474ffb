"""Shared notification formatting helpers.

Keeping formatting here prevents drift between the channel announcer and
command replies, so a check-in reads the same wherever it shows up.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from core.models import Checkin

NOT_IMPLEMENTED = "Sorry, that's not implemented yet."
NOT_ALLOWED = "You're not allowed to do that."
NO_NEW_CHECKINS = "No new check-ins."
NOBODY_KNOWN = "Nobody has told me their Untappd username yet."
UNTAPPD_DOWN = "Untappd isn't answering right now, try again later."
STORE_DOWN = "Something went wrong talking to storage."


def format_announcement(display_name: str, checkin: Checkin) -> str:
    """One line per check-in, used by the channel and by `fetch` replies."""

    return f"{display_name} drank a {checkin.beer_name} by {checkin.brewery_name}"


def format_timestamp(checkin: Checkin) -> str:
    return checkin.timestamp.astimezone().strftime("%H:%M %d-%m-%Y").strip()


def format_recent(username: str, checkins: Sequence[Checkin]) -> str:
    """Reply body for `last`: a header plus one line per check-in."""

    if not checkins:
        return f"{username} hasn't checked in anything yet."

    lines = [f"Recent check-ins for {username}:"]
    for checkin in checkins:
        lines.append(
            f"[{format_timestamp(checkin)}] {checkin.beer_name} by {checkin.brewery_name}"
        )
    return "\n".join(lines)


def format_known(known: Iterable[Tuple[str, str]]) -> str:
    """Reply body for `known`."""

    rows = sorted(known, key=lambda pair: pair[0].lower())
    if not rows:
        return NOBODY_KNOWN
    lines = ["I know these Untappd users:"]
    lines.extend(f"{name} is {username}" for name, username in rows)
    return "\n".join(lines)


def format_mention(display_name: str, text: str) -> str:
    return f"{display_name}: {text}"
