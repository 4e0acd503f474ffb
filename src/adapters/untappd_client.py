"""Untappd API v4 client adapter.

Implements the core FeedClientPort. Requests are plain blocking urllib calls
with a bounded timeout, pushed onto a worker thread so the bot keeps handling
other commands while one feed is loading.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional

from adapters.untappd_mapper import checkins_from_payload, user_info_from_payload
from core.config import UntappdConfig
from core.errors import ExternalServiceError
from core.models import Checkin, UserInfo

LOGGER = logging.getLogger(__name__)


class UserNotFound(ExternalServiceError):
    """Untappd answered 404 for a user endpoint."""


class UntappdClient:
    """Read-only Untappd client covering the feed and user info endpoints."""

    def __init__(self, config: UntappdConfig) -> None:
        self._config = config

    def _endpoint(self, path: str) -> str:
        query = urllib.parse.urlencode(
            {
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
            }
        )
        return f"{self._config.base_url.rstrip('/')}/{path}?{query}"

    def _get_json(self, path: str) -> Any:
        request = urllib.request.Request(self._endpoint(path), method="GET")
        request.add_header("Accept", "application/json")
        request.add_header("User-Agent", "beerscope")
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout_seconds) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise UserNotFound(f"Untappd 404 for {path}") from e
            body = e.read().decode("utf-8", errors="replace")
            raise ExternalServiceError(f"Untappd API error {e.code}: {body[:200]}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise ExternalServiceError(f"Untappd request failed: {e}") from e
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise ExternalServiceError(f"Untappd returned invalid JSON: {e}") from e

    async def fetch_feed(self, username: str) -> list[Checkin]:
        path = f"user/checkins/{urllib.parse.quote(username)}"
        LOGGER.debug("Fetching feed for %s", username)
        payload = await asyncio.to_thread(self._get_json, path)
        return checkins_from_payload(payload)

    async def fetch_user_info(self, username: str) -> Optional[UserInfo]:
        path = f"user/info/{urllib.parse.quote(username)}"
        try:
            payload = await asyncio.to_thread(self._get_json, path)
        except UserNotFound:
            return None
        return user_info_from_payload(payload)
