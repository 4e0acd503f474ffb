"""Periodic announcer for newly observed check-ins.

The announcer owns its background task explicitly: `start()` on connect,
`stop()` on shutdown. Runs never overlap; a scheduled tick that comes due
while another run is in flight is skipped, while on-demand runs wait.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from core.config import AnnouncerConfig
from core.models import NewCheckin
from core.ports import NotifierPort
from core.sync import SyncEngine
from core.watermarks import WatermarkStore

LOGGER = logging.getLogger(__name__)


class Announcer:
    """Runs `sync_all` on a fixed period and forwards results to a notifier."""

    def __init__(
        self,
        engine: SyncEngine,
        watermarks: WatermarkStore,
        notifier: NotifierPort,
        config: AnnouncerConfig,
    ) -> None:
        self._engine = engine
        self._watermarks = watermarks
        self._notifier = notifier
        self._config = config
        self._run_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the periodic task; returns False when no channel is configured."""

        if self._config.channel is None:
            LOGGER.info("Not configured to announce in a channel.")
            return False
        if self.running:
            return True
        self._task = asyncio.create_task(self._loop(), name="beerscope-announcer")
        LOGGER.info(
            "Announcer started (every %s minutes to %s)",
            self._config.interval_minutes,
            self._config.channel,
        )
        return True

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        LOGGER.info("Announcer stopped.")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.period_seconds)
            try:
                await self.tick()
            except Exception:
                LOGGER.exception("Announcer tick failed")

    async def tick(self) -> int:
        """One scheduled cycle; returns the number of announced check-ins."""

        if self._run_lock.locked():
            LOGGER.info("Previous sync still running, skipping this tick")
            return 0
        announced = 0
        async with self._run_lock:
            fetched = await self._engine.sync_all()
            # Watermarks already moved past these; one failed send must not
            # cost the rest of the cycle.
            for item in fetched:
                try:
                    await self._notifier.send(item)
                except Exception:
                    LOGGER.exception(
                        "Failed to announce checkin %s for %s",
                        item.checkin.checkin_id,
                        item.external_username,
                    )
                    continue
                announced += 1
        if fetched:
            LOGGER.info("Announced %s of %s new checkins", announced, len(fetched))
        return announced

    async def run_now(self) -> list[NewCheckin]:
        """On-demand sync of every user; results go to the caller, not the channel."""

        async with self._run_lock:
            return await self._engine.sync_all()

    async def debug_fetch(
        self, external_username: str, local_user_id: Optional[str] = None
    ) -> list[NewCheckin]:
        """Replay one user's entire visible feed."""

        async with self._run_lock:
            async with self._engine.lock_for(external_username):
                self._watermarks.reset(external_username)
            return await self._engine.sync_one(external_username, local_user_id=local_user_id)
