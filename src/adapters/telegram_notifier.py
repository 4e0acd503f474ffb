"""Telegram announcement adapter.

Posts each new check-in to the configured announcement chat.
"""

from __future__ import annotations

from typing import Union

from adapters.notification_formatting import format_announcement
from core.models import NewCheckin
from core.ports import DirectoryPort


class TelegramChannelNotifier:
    """Notifier adapter that sends announcements to one chat or channel."""

    def __init__(self, client, channel: Union[int, str], directory: DirectoryPort) -> None:
        self._client = client
        self._channel = channel
        self._directory = directory

    async def send(self, item: NewCheckin) -> None:
        """Send the formatted announcement to the configured chat."""

        name = await display_name_for(self._directory, item)
        await self._client.send_message(self._channel, format_announcement(name, item.checkin))


async def display_name_for(directory: DirectoryPort, item: NewCheckin) -> str:
    """Chat display name of the drinker, or the Untappd username."""

    if item.local_user_id is None:
        return item.external_username
    return await directory.resolve_display_name(item.local_user_id)
