"""
backend/models/quest.py
Quest state vocabulary and the events derived from it.

Quest state is a plain mapping owned by the client:
    {"morning": {"1": {"checked": true}, ...}, "daily": {"daily": {...}}, ...}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

SESSIONS = ("morning", "afternoon", "evening", "workout", "daily")

SESSION_COMPLETE_SUFFIX = "_all"
ALL_SESSIONS_ID = "all_sessions"

QuestState = Dict[str, Dict[str, Any]]


@dataclass(frozen=True)
class TaskEvent:
    """A single task reported complete, optionally scoped to a session."""

    task_id: str
    session: Optional[str] = None

    @property
    def event_id(self) -> str:
        return f"{self.session}.{self.task_id}" if self.session else self.task_id


@dataclass(frozen=True)
class SessionCompleteEvent:
    session: str

    @property
    def event_id(self) -> str:
        return f"{self.session}{SESSION_COMPLETE_SUFFIX}"


@dataclass(frozen=True)
class AllSessionsCompleteEvent:
    @property
    def event_id(self) -> str:
        return ALL_SESSIONS_ID


QuestEvent = Union[TaskEvent, SessionCompleteEvent, AllSessionsCompleteEvent]


def parse_event_id(raw: str) -> QuestEvent:
    """
    Map a legacy string id onto the event union.

    "all_sessions" -> AllSessionsCompleteEvent
    "morning_all"  -> SessionCompleteEvent("morning")
    "workout.6"    -> TaskEvent("6", session="workout")
    anything else  -> TaskEvent(raw)
    """
    if raw == ALL_SESSIONS_ID:
        return AllSessionsCompleteEvent()
    if raw.endswith(SESSION_COMPLETE_SUFFIX) and len(raw) > len(SESSION_COMPLETE_SUFFIX):
        return SessionCompleteEvent(raw[: -len(SESSION_COMPLETE_SUFFIX)])
    session, sep, task_id = raw.partition(".")
    if sep and session and task_id:
        return TaskEvent(task_id=task_id, session=session)
    return TaskEvent(task_id=raw)


class QuestStateIn(BaseModel):
    quest_state: QuestState = Field(default_factory=dict, alias="questState")

    model_config = {"populate_by_name": True}


class BadgeEventIn(BaseModel):
    event_id: str = Field(..., min_length=1, alias="eventId")
    is_complete: bool = Field(default=True, alias="isComplete")

    model_config = {"populate_by_name": True}
