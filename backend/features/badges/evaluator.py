"""Turns a quest state snapshot into events and feeds them to a BadgeService."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from backend.features.badges.completion import is_session_complete, is_task_complete, session_tasks
from backend.features.badges.service import BadgeService
from backend.models.badge import BadgeView
from backend.models.quest import (
    SESSIONS,
    AllSessionsCompleteEvent,
    QuestEvent,
    SessionCompleteEvent,
    TaskEvent,
)

logger = logging.getLogger("smi")


def _session_done(session_data: Any, session: str) -> bool:
    # Empty sessions are vacuously complete; they must not earn anything
    return bool(session_tasks(session_data, session)) and is_session_complete(session_data, session)


def events_for_state(quest_state: Optional[Mapping[str, Any]]) -> List[QuestEvent]:
    """
    Events implied by a quest state, in evaluation order:
    session completions and completed tasks per session, then all-sessions.
    """
    if not isinstance(quest_state, Mapping) or not quest_state:
        return []

    events: List[QuestEvent] = []
    for session in SESSIONS:
        session_data = quest_state.get(session)
        if not session_data:
            continue

        if _session_done(session_data, session):
            events.append(SessionCompleteEvent(session))

        for task_id, task_state in session_tasks(session_data, session).items():
            if is_task_complete(task_state):
                events.append(TaskEvent(task_id=str(task_id), session=session))

    if all(_session_done(quest_state.get(s), s) for s in SESSIONS):
        events.append(AllSessionsCompleteEvent())

    return events


class QuestEvaluator:
    def __init__(self, service: BadgeService):
        self.service = service

    async def evaluate(self, quest_state: Optional[Mapping[str, Any]]) -> List[BadgeView]:
        if not quest_state:
            return []
        events = events_for_state(quest_state)
        if not events:
            return []
        logger.debug(f"[BADGES] Evaluating {len(events)} event(s) for {self.service.user_id or 'anonymous'}")
        return await self.service.process_events(events)
