"""Per-username high-water marks of processed check-in ids."""

from __future__ import annotations

import logging
from typing import Optional

from core.keys import watermark_key
from core.ports import KeyValueOps

LOGGER = logging.getLogger(__name__)


class WatermarkStore:
    """Reads and writes `untappd:last:<username>` records.

    Absence means "never synchronized" and reads as 0.
    """

    def __init__(self, store: KeyValueOps) -> None:
        self._store = store

    def get(self, external_username: str) -> int:
        raw: Optional[str] = self._store.get(watermark_key(external_username))
        if raw is None:
            return 0
        return int(raw)

    def set(self, external_username: str, value: int) -> None:
        self._store.set(watermark_key(external_username), str(int(value)))

    def delete(self, external_username: str) -> None:
        self._store.delete(watermark_key(external_username))

    def reset(self, external_username: str) -> None:
        """Force a full replay of the visible feed on the next sync."""

        LOGGER.info("Resetting watermark for %s", external_username)
        self.set(external_username, 0)
