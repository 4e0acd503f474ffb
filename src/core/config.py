"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class AnnouncerConfig:
    """Where and how often new check-ins are announced."""

    channel: Optional[Union[int, str]]
    interval_minutes: float = 5

    @property
    def period_seconds(self) -> float:
        return self.interval_minutes * 60


@dataclass(frozen=True)
class QueryConfig:
    """Selection rule for the "last check-ins" query."""

    window_hours: int = 24
    minimum: int = 3


@dataclass(frozen=True)
class UntappdConfig:
    """Credentials and limits for the Untappd API client."""

    client_id: str
    client_secret: str
    base_url: str = "https://api.untappd.com/v4"
    timeout_seconds: float = 10
