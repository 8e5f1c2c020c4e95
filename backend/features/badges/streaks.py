from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from backend.core.errors import StorageError
from backend.features.badges.catalog import BadgeCatalog, default_catalog
from backend.features.badges.storage import KeyValueStore
from backend.models.streak import StreakCounter

logger = logging.getLogger("smi")

LAST_UPDATED_SUFFIX = "_last_updated"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class StreakTracker:
    """Day-granular consecutive counter persisted in key-value storage.

    Same day -> unchanged, next day -> +1, any longer gap or no record -> 1.
    Storage failures are logged and reported as 0; nothing is raised.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        namespace: str = "",
        catalog: BadgeCatalog = default_catalog,
        today: Callable[[], date] = _utc_today,
    ):
        self._storage = storage
        self._namespace = f"{namespace}:" if namespace else ""
        self._catalog = catalog
        self._today = today

    def get_streak_key_for_task(self, task_id: str) -> Optional[str]:
        return self._catalog.streak_key_for_task(task_id)

    async def read(self, streak_key: str) -> StreakCounter:
        count_raw = await self._storage.get(self._count_key(streak_key))
        marker_raw = await self._storage.get(self._marker_key(streak_key))
        return StreakCounter(
            count=_parse_count(count_raw),
            last_updated=_parse_date(marker_raw),
        )

    async def get_streak(self, streak_key: str) -> int:
        try:
            return (await self.read(streak_key)).count
        except StorageError as e:
            logger.error(f"[STREAK] read failed for {streak_key}: {e}")
            return 0

    async def update_streak(self, streak_key: str, today: Optional[date] = None) -> int:
        day = today or self._today()
        try:
            counter = await self.read(streak_key)

            if counter.last_updated == day:
                return counter.count

            new_count = counter.advanced_to(day)
            await self._storage.set(self._count_key(streak_key), str(new_count))
            await self._storage.set(self._marker_key(streak_key), day.isoformat())
        except StorageError as e:
            logger.error(f"[STREAK] update failed for {streak_key}: {e}")
            return 0

        logger.info(f"[STREAK] {self._namespace}{streak_key} -> {new_count} (last updated: {day.isoformat()})")
        return new_count

    # Internal helpers -------------------------------------------------
    def _count_key(self, streak_key: str) -> str:
        return f"{self._namespace}{streak_key}"

    def _marker_key(self, streak_key: str) -> str:
        return f"{self._namespace}{streak_key}{LAST_UPDATED_SUFFIX}"


def _parse_count(raw: Optional[str]) -> int:
    if not raw:
        return 0
    try:
        return max(0, int(raw))
    except ValueError:
        return 0


def _parse_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None
