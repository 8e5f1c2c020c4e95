import pytest

from backend.features.badges.catalog import default_catalog
from backend.features.badges.matcher import badge_matches, requirement_matches
from backend.models.badge import BadgeDefinition, BadgePeriod, BadgeRequirement
from backend.models.quest import (
    AllSessionsCompleteEvent,
    SessionCompleteEvent,
    TaskEvent,
    parse_event_id,
)


def _req(**kwargs):
    kwargs.setdefault("required_completions", 1)
    kwargs.setdefault("period", BadgePeriod.ALL_TIME)
    return BadgeRequirement(**kwargs)


class TestParseEventId:
    def test_all_sessions(self):
        assert parse_event_id("all_sessions") == AllSessionsCompleteEvent()

    def test_session_complete(self):
        assert parse_event_id("morning_all") == SessionCompleteEvent("morning")

    def test_dotted_task(self):
        assert parse_event_id("workout.6") == TaskEvent(task_id="6", session="workout")

    def test_bare_task(self):
        assert parse_event_id("6") == TaskEvent(task_id="6")
        assert parse_event_id("_all") == TaskEvent(task_id="_all")

    def test_event_ids_round_trip(self):
        for raw in ("all_sessions", "daily_all", "workout.6", "6"):
            assert parse_event_id(raw).event_id == raw


class TestRequirementMatches:
    def test_all_tasks_session_only_accepts_session_complete(self):
        req = _req(task_id="morning_all", session="morning", requires_all_tasks=True)
        assert requirement_matches(req, SessionCompleteEvent("morning"))
        assert not requirement_matches(req, TaskEvent("1", session="morning"))
        assert not requirement_matches(req, SessionCompleteEvent("evening"))
        assert not requirement_matches(req, "morning_stretch")

    def test_exact_task_id(self):
        req = _req(task_id="all_sessions", requires_all_sessions=True)
        assert requirement_matches(req, AllSessionsCompleteEvent())
        assert requirement_matches(req, "all_sessions")
        assert not requirement_matches(req, "morning_all")

    def test_session_scoped_accepts_any_event_of_session(self):
        req = _req(task_id="6", session="workout")
        assert requirement_matches(req, "workout.6")
        assert requirement_matches(req, TaskEvent("2", session="workout"))
        assert requirement_matches(req, SessionCompleteEvent("workout"))
        assert requirement_matches(req, "workout_legs")
        assert not requirement_matches(req, TaskEvent("6", session="morning"))

    def test_session_dot_prefix_on_unparsed_ids(self):
        req = default_catalog.get("gratitude_guardian").requirements[0]
        # "morning." has no task id, "morning.x_all" parses as a session completion
        assert requirement_matches(req, "morning.")
        assert requirement_matches(req, "morning.x_all")
        assert not requirement_matches(req, "mornings.1")
        assert not requirement_matches(req, "evening.x_all")

    def test_bare_task_id_matches_without_session(self):
        req = _req(task_id="6", session="workout")
        assert requirement_matches(req, "6")

    def test_unrelated_event(self):
        req = _req(task_id="5", session="daily")
        assert not requirement_matches(req, "evening.1")
        assert not requirement_matches(req, AllSessionsCompleteEvent())

    def test_all_tasks_without_session_accepts_sessionless_completion_only(self):
        req = _req(task_id="any_session_all", requires_all_tasks=True)
        assert not requirement_matches(req, SessionCompleteEvent("morning"))


class TestBadgeMatches:
    def test_default_catalog_routing(self):
        matches = {
            event: {d.id for d in default_catalog if badge_matches(d, event)}
            for event in ("morning_all", "workout.6", "all_sessions", "daily_all", "daily.5")
        }
        assert matches["morning_all"] == {"hygiene_hero", "gratitude_guardian"}
        assert matches["workout.6"] == {"teamwork_champ"}
        assert matches["all_sessions"] == {"discipline_master"}
        assert matches["daily_all"] == {"focus_fighter", "health_hero"}
        assert matches["daily.5"] == {"health_hero"}

    def test_all_requirements_must_match_same_event(self):
        definition = BadgeDefinition(
            id="combo",
            name="Combo",
            icon="*",
            description="",
            target=1,
            requirements=(
                _req(task_id="6", session="workout"),
                _req(task_id="morning_all", session="morning", requires_all_tasks=True),
            ),
        )
        assert not badge_matches(definition, "workout.6")
        assert not badge_matches(definition, "morning_all")

    def test_requirements_required(self):
        with pytest.raises(ValueError):
            BadgeDefinition(id="x", name="x", icon="x", description="", target=1, requirements=())
