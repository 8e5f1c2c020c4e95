"""
Requirement matching.

Each rule is checked against a single QuestEvent. Precedence:
1. all-tasks session requirements only accept that session's completion
2. canonical event id equals the requirement's task id
3. session-scoped requirements accept any event from that session
4. session completion for all-tasks requirements without a fixed session
"""

from __future__ import annotations

from typing import Union

from backend.models.badge import BadgeDefinition, BadgeRequirement
from backend.models.quest import (
    QuestEvent,
    SessionCompleteEvent,
    TaskEvent,
    parse_event_id,
)


def _as_event(event: Union[QuestEvent, str]) -> QuestEvent:
    return parse_event_id(event) if isinstance(event, str) else event


def requirement_matches(requirement: BadgeRequirement, event: Union[QuestEvent, str]) -> bool:
    event = _as_event(event)
    session = requirement.session

    if requirement.requires_all_tasks and session:
        return isinstance(event, SessionCompleteEvent) and event.session == session

    if event.event_id == requirement.task_id:
        return True

    if session:
        if isinstance(event, TaskEvent) and event.session == session:
            return True
        if isinstance(event, SessionCompleteEvent) and event.session == session:
            return True
        # Raw ids the parser could not attribute: "morning_stretch", "morning.", "morning.x_all"
        if event.event_id.startswith((f"{session}_", f"{session}.")):
            return True

    if isinstance(event, SessionCompleteEvent) and requirement.requires_all_tasks:
        return event.session == session

    return False


def badge_matches(definition: BadgeDefinition, event: Union[QuestEvent, str]) -> bool:
    """Every requirement must accept the same event."""
    event = _as_event(event)
    return all(requirement_matches(req, event) for req in definition.requirements)
