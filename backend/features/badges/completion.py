"""Task and session completion rules. Pure functions, no I/O."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from backend.models.quest import SESSIONS


def is_task_complete(task_state: Any) -> bool:
    """
    Decide whether a raw task blob counts as done.

    Accepts {"checked"|"count"|"value": ...} or the same wrapped once under
    "state". Anything malformed is simply not complete.
    """
    if not isinstance(task_state, Mapping):
        return False

    inner = task_state.get("state")
    if isinstance(inner, Mapping):
        task_state = inner

    if task_state.get("checked") is True:
        return True

    count = task_state.get("count")
    if isinstance(count, (int, float)) and not isinstance(count, bool) and count > 0:
        return True

    value = task_state.get("value")
    if isinstance(value, str) and value.strip():
        return True

    return False


def session_tasks(session_data: Any, session_name: str) -> Dict[str, Any]:
    """
    Task entries that count toward a session.

    Prefers the nested convention (session_data[session_name] is itself the
    task mapping) and falls back to session_data's own entries. Keys named
    after a session are never treated as tasks.
    """
    if not isinstance(session_data, Mapping):
        return {}

    nested = session_data.get(session_name)
    source = nested if isinstance(nested, Mapping) else session_data
    return {task_id: state for task_id, state in source.items() if task_id not in SESSIONS}


def is_session_complete(session_data: Any, session_name: str) -> bool:
    """
    True iff every task in the session is complete.

    A session with no tasks is vacuously complete; callers that must not
    reward empty sessions check session_tasks() first.
    """
    if not isinstance(session_data, Mapping):
        return False
    return all(is_task_complete(state) for state in session_tasks(session_data, session_name).values())
