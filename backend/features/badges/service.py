from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union
from zoneinfo import ZoneInfo

from backend.core.config import Settings, settings as default_settings
from backend.core.errors import StorageError
from backend.core.logging import log_event
from backend.features.badges.catalog import BadgeCatalog, default_catalog
from backend.features.badges.matcher import badge_matches
from backend.features.badges.persistence import BadgeDocumentStore, build_document_store
from backend.features.badges.storage import InMemoryKeyValueStore, KeyValueStore, build_key_value_store
from backend.features.badges.streaks import StreakTracker
from backend.models.badge import BadgeDefinition, BadgeProgress, BadgeState, BadgeSummary, BadgeView
from backend.models.quest import QuestEvent, parse_event_id
from backend.realtime.hub import BadgeNotifier, hub

logger = logging.getLogger("smi")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_clock(tz_name: str) -> Clock:
    tz = ZoneInfo(tz_name)
    return lambda: datetime.now(tz)


class BadgeService:
    """Owns one user's badge progress.

    Events are applied by a single pass at a time. Events submitted while a
    pass is running join one pending batch that the running pass drains
    before it returns, so nothing submitted mid-pass is lost. Callers that
    joined a running pass wait for it and receive every badge it earned.
    """

    def __init__(
        self,
        *,
        user_id: Optional[str] = None,
        catalog: BadgeCatalog = default_catalog,
        documents: Optional[BadgeDocumentStore] = None,
        tracker: Optional[StreakTracker] = None,
        notifier: Optional[BadgeNotifier] = None,
        clock: Clock = _utc_now,
    ):
        self.user_id = user_id
        self.catalog = catalog
        self._documents = documents
        self._tracker = tracker or StreakTracker(
            InMemoryKeyValueStore(), namespace=user_id or "anonymous", catalog=catalog
        )
        self._notifier = notifier
        self._clock = clock

        self._states: Dict[str, BadgeState] = catalog.initial_states()
        self.loaded = False
        self.load_error: Optional[str] = None

        self._in_flight = False
        self._pass_result: Optional[asyncio.Future] = None
        self._pending: List[QuestEvent] = []
        self._processed: Set[Tuple[date, str]] = set()
        self._announced: Set[str] = set()

    @property
    def persistent(self) -> bool:
        return bool(self.user_id) and self._documents is not None

    @property
    def tracker(self) -> StreakTracker:
        return self._tracker

    # Loading ----------------------------------------------------------
    async def load(self) -> None:
        """Merge the user's stored document over the catalog, or seed it."""
        self._states = self.catalog.initial_states()
        self.load_error = None

        if not self.persistent:
            logger.info("[BADGES] No user, using in-memory catalog defaults")
            self._mark_loaded()
            return

        try:
            document = await self._documents.get_document(self.user_id)
            if document is not None:
                self._states = self._merge_persisted(document.get("badges") or {})
                log_event("info", "badges.loaded", user_id=self.user_id, event_type="badges.loaded")
            else:
                await self._documents.create_document(self.user_id, self._seed_document())
                log_event("info", "badges.seeded", user_id=self.user_id, event_type="badges.seeded")
        except StorageError as e:
            self.load_error = str(e)
            self._states = self.catalog.initial_states()
            log_event(
                "error",
                "badges.load_failed",
                user_id=self.user_id,
                event_type="badges.load_failed",
                error_code=e.code,
                extra={"error": e.message},
            )
        finally:
            self._mark_loaded()

    def _mark_loaded(self) -> None:
        self.loaded = True
        self._announced = {badge_id for badge_id, state in self._states.items() if state.earned}

    def _merge_persisted(self, persisted: Mapping[str, Any]) -> Dict[str, BadgeState]:
        states = self.catalog.initial_states()
        for definition in self.catalog:
            saved = persisted.get(definition.id)
            if not isinstance(saved, Mapping):
                continue
            progress = saved.get("progress") if isinstance(saved.get("progress"), Mapping) else {}
            current = _coerce_int(progress.get("current"))
            states[definition.id] = BadgeState(
                badge_id=definition.id,
                earned=saved.get("earned") is True,
                progress=BadgeProgress(current=min(max(current, 0), definition.target), target=definition.target),
                last_updated=_parse_datetime(saved.get("lastUpdated")),
            )
        return states

    def _seed_document(self) -> Dict[str, Any]:
        badges = {}
        for definition in self.catalog:
            data = BadgeView.build(definition, self._states[definition.id]).to_document()
            data["requirements"] = [req.model_dump(mode="json") for req in definition.requirements]
            badges[definition.id] = data
        return {"userId": self.user_id, "badges": badges}

    # Updates ----------------------------------------------------------
    async def update_badge_progress(self, event: Union[QuestEvent, str], is_complete: bool = True) -> List[BadgeView]:
        """Apply one completed task or session event. Returns badges earned by it."""
        if not is_complete:
            return []
        return await self.process_events([event])

    async def process_events(self, events: Iterable[Union[QuestEvent, str]]) -> List[BadgeView]:
        if not self.loaded:
            logger.debug("[BADGES] Skipping update, badges not loaded")
            return []

        pending_ids = {e.event_id for e in self._pending}
        for raw in events:
            event = parse_event_id(raw) if isinstance(raw, str) else raw
            if event.event_id not in pending_ids:
                pending_ids.add(event.event_id)
                self._pending.append(event)

        if self._in_flight:
            logger.debug(f"[BADGES] Pass in flight, {len(self._pending)} event(s) pending")
            return list(await asyncio.shield(self._pass_result))

        self._in_flight = True
        self._pass_result = result = asyncio.get_running_loop().create_future()
        earned: List[BadgeView] = []
        try:
            while self._pending:
                batch, self._pending = self._pending, []
                for event in batch:
                    earned.extend(await self._apply_event(event))
        finally:
            self._in_flight = False
            self._pass_result = None
            # Joined callers get whatever was earned, even if the pass failed
            result.set_result(list(earned))
        return earned

    async def _apply_event(self, event: QuestEvent) -> List[BadgeView]:
        now = self._clock()
        day = now.date()
        key = (day, event.event_id)
        if key in self._processed:
            logger.debug(f"[BADGES] Skipping already processed event {event.event_id}")
            return []
        # Dedupe window is one calendar day
        self._processed = {k for k in self._processed if k[0] == day}
        self._processed.add(key)

        newly_earned: List[BadgeView] = []
        for definition in self.catalog:
            if self._states[definition.id].earned:
                continue
            if not badge_matches(definition, event):
                continue

            if definition.is_consecutive:
                streak_key = self._tracker.get_streak_key_for_task(definition.streak_task_id)
                if not streak_key:
                    logger.warning(f"[BADGES] No streak key for {definition.id} ({definition.streak_task_id})")
                    continue
                streak = await self._tracker.update_streak(streak_key, today=day)
                current = min(streak, definition.target)
                reached = streak >= definition.target
            else:
                current = min(self._states[definition.id].progress.current + 1, definition.target)
                reached = self._states[definition.id].progress.current + 1 >= definition.target

            view = self._commit(definition, current, reached, now)
            logger.info(f"[BADGES] {definition.id} -> {view.progress.current}/{view.progress.target} for {event.event_id}")
            await self._save_badge(view)

            if view.earned and definition.id not in self._announced:
                self._announced.add(definition.id)
                newly_earned.append(view)
                await self._notify(view)

        return newly_earned

    def _commit(self, definition: BadgeDefinition, current: int, reached: bool, now: datetime) -> BadgeView:
        state = self._states[definition.id]
        earned = state.earned or reached
        state.earned = earned
        state.progress.current = definition.target if earned else max(0, current)
        state.last_updated = now
        return BadgeView.build(definition, state)

    async def _save_badge(self, view: BadgeView) -> None:
        if not self.persistent:
            return
        data = view.to_document()
        try:
            existing = await self._documents.get_document(self.user_id)
            if existing is not None:
                await self._documents.merge_badge(self.user_id, view.id, data)
            else:
                await self._documents.create_document(
                    self.user_id, {"userId": self.user_id, "badges": {view.id: data}}
                )
        except StorageError as e:
            log_event(
                "error",
                "badges.save_failed",
                user_id=self.user_id,
                badge_id=view.id,
                event_type="badges.save_failed",
                error_code=e.code,
                extra={"error": e.message},
            )

    async def _notify(self, view: BadgeView) -> None:
        log_event("info", "badges.earned", user_id=self.user_id, badge_id=view.id, event_type="badge.earned")
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_badge_earned(self.user_id, view)
        except Exception as e:
            logger.warning(f"[BADGES] Earned notification for {view.id} failed: {e}")

    # Views ------------------------------------------------------------
    def get(self, badge_id: str) -> Optional[BadgeView]:
        definition = self.catalog.get(badge_id)
        if definition is None:
            return None
        return BadgeView.build(definition, self._states[badge_id])

    def badges(self, category: Optional[str] = None) -> List[BadgeView]:
        return [
            BadgeView.build(d, self._states[d.id])
            for d in self.catalog
            if category in (None, "all") or d.category == category
        ]

    def summary(self) -> BadgeSummary:
        by_category: Dict[str, Dict[str, int]] = {}
        earned_count = 0
        for d in self.catalog:
            bucket = by_category.setdefault(d.category, {"earned": 0, "total": 0})
            bucket["total"] += 1
            if self._states[d.id].earned:
                bucket["earned"] += 1
                earned_count += 1
        return BadgeSummary(earned_count=earned_count, total=len(self.catalog), by_category=by_category)


class BadgeRegistry:
    """One loaded BadgeService per user id, built from configured backends."""

    def __init__(
        self,
        *,
        catalog: BadgeCatalog = default_catalog,
        documents: Optional[BadgeDocumentStore] = None,
        storage: Optional[KeyValueStore] = None,
        notifier: Optional[BadgeNotifier] = None,
        clock: Optional[Clock] = None,
        cfg: Optional[Settings] = None,
    ):
        self._cfg = cfg or default_settings
        self.catalog = catalog
        self._documents = documents
        self._storage = storage
        self._notifier = notifier
        self._clock = clock
        self._services: Dict[str, BadgeService] = {}
        self._lock = asyncio.Lock()

    def configure(self, **overrides) -> None:
        """Swap backends (app startup, tests). Drops cached services."""
        for name in ("catalog", "documents", "storage", "notifier", "clock"):
            if name in overrides:
                attr = name if name == "catalog" else f"_{name}"
                setattr(self, attr, overrides[name])
        self._services.clear()

    def reset(self) -> None:
        self._services.clear()

    @property
    def documents(self) -> BadgeDocumentStore:
        if self._documents is None:
            self._documents = build_document_store(self._cfg)
        return self._documents

    @property
    def storage(self) -> KeyValueStore:
        if self._storage is None:
            self._storage = build_key_value_store(self._cfg)
        return self._storage

    @property
    def clock(self) -> Clock:
        if self._clock is None:
            self._clock = make_clock(self._cfg.BADGE_TIMEZONE)
        return self._clock

    def tracker_for(self, user_id: str) -> StreakTracker:
        return StreakTracker(self.storage, namespace=user_id, catalog=self.catalog)

    async def get(self, user_id: str) -> BadgeService:
        async with self._lock:
            service = self._services.get(user_id)
            if service is None:
                service = BadgeService(
                    user_id=user_id,
                    catalog=self.catalog,
                    documents=self.documents,
                    tracker=self.tracker_for(user_id),
                    notifier=self._notifier,
                    clock=self.clock,
                )
                await service.load()
                self._services[user_id] = service
            return service

    async def anonymous(self, notifier: Optional[BadgeNotifier] = None) -> BadgeService:
        """Unregistered, purely in-memory service for callers without a user."""
        service = BadgeService(catalog=self.catalog, notifier=notifier, clock=self.clock)
        await service.load()
        return service


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return 0
    return 0


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


badge_registry = BadgeRegistry(notifier=hub)
