"""
Default badge catalog and streak key table.

The catalog is immutable configuration handed to each BadgeService; per-user
progress is never stored here.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Tuple

from backend.models.badge import (
    BadgeDefinition,
    BadgePeriod,
    BadgeProgress,
    BadgeRarity,
    BadgeRequirement,
    BadgeState,
)

# Storage keys for streak counters
MORNING_ROUTINE_STREAK = "@morning_routine_streak"
ALL_SESSIONS_STREAK = "@all_sessions_streak"
THANKED_CREATOR_STREAK = "@thanked_creator_streak"
DAILY_HABITS_STREAK = "@daily_habits_streak"
NO_OUTSIDE_FOOD_STREAK = "@no_outside_food_streak"

DEFAULT_STREAK_KEYS: Dict[str, str] = {
    "morning_all": MORNING_ROUTINE_STREAK,
    "all_sessions": ALL_SESSIONS_STREAK,
    "daily_all": DAILY_HABITS_STREAK,
    "6": THANKED_CREATOR_STREAK,  # thank-your-creator task
    "5": NO_OUTSIDE_FOOD_STREAK,  # no-outside-food task
}


class BadgeCatalog:
    """Ordered, read-only set of badge definitions plus the streak key table."""

    def __init__(self, definitions: Iterable[BadgeDefinition], streak_keys: Mapping[str, str]):
        self._definitions: Tuple[BadgeDefinition, ...] = tuple(definitions)
        self._by_id = {d.id: d for d in self._definitions}
        if len(self._by_id) != len(self._definitions):
            raise ValueError("Badge ids must be unique")
        self._streak_keys = dict(streak_keys)

    def __iter__(self):
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, badge_id: str) -> Optional[BadgeDefinition]:
        return self._by_id.get(badge_id)

    def streak_key_for_task(self, task_id: str) -> Optional[str]:
        """Unmapped task ids are not streak-tracked."""
        return self._streak_keys.get(task_id)

    def categories(self) -> list[str]:
        seen: list[str] = []
        for d in self._definitions:
            if d.category not in seen:
                seen.append(d.category)
        return seen

    def initial_states(self) -> Dict[str, BadgeState]:
        return {
            d.id: BadgeState(badge_id=d.id, progress=BadgeProgress(current=0, target=d.target))
            for d in self._definitions
        }


DEFAULT_BADGES: Tuple[BadgeDefinition, ...] = (
    BadgeDefinition(
        id="hygiene_hero",
        name="Hygiene Hero",
        icon="🦷",
        description="Complete all morning routine tasks for 7 consecutive days",
        target=7,
        category="wellness",
        rarity=BadgeRarity.RARE,
        requirements=(
            BadgeRequirement(
                task_id="morning_all",
                required_completions=7,
                period=BadgePeriod.CONSECUTIVE,
                requires_all_tasks=True,
                session="morning",
            ),
        ),
    ),
    BadgeDefinition(
        id="teamwork_champ",
        name="Teamwork Champ",
        icon="⚽",
        description="Practiced with team members only",
        target=1,
        category="social",
        rarity=BadgeRarity.COMMON,
        requirements=(
            BadgeRequirement(
                task_id="6",
                required_completions=1,
                period=BadgePeriod.ALL_TIME,
                session="workout",
            ),
        ),
    ),
    BadgeDefinition(
        id="discipline_master",
        name="Discipline Master",
        icon="💪",
        description="30 days continuous streak of completing all 5 sessions",
        target=30,
        category="fitness",
        rarity=BadgeRarity.LEGENDARY,
        requirements=(
            BadgeRequirement(
                task_id="all_sessions",
                required_completions=30,
                period=BadgePeriod.CONSECUTIVE,
                requires_all_sessions=True,
            ),
        ),
    ),
    BadgeDefinition(
        id="gratitude_guardian",
        name="Gratitude Guardian",
        icon="🙏",
        description="7 days continuous streak of thanking your creator",
        target=7,
        category="wellness",
        rarity=BadgeRarity.EPIC,
        requirements=(
            BadgeRequirement(
                task_id="6",
                required_completions=7,
                period=BadgePeriod.CONSECUTIVE,
                session="morning",
            ),
        ),
    ),
    BadgeDefinition(
        id="focus_fighter",
        name="Focus Fighter",
        icon="🎯",
        description="14 days of completing all daily habits",
        target=14,
        category="learning",
        rarity=BadgeRarity.RARE,
        requirements=(
            BadgeRequirement(
                task_id="daily_all",
                required_completions=14,
                period=BadgePeriod.CONSECUTIVE,
                requires_all_tasks=True,
                session="daily",
            ),
        ),
    ),
    BadgeDefinition(
        id="health_hero",
        name="Health Hero",
        icon="🥗",
        description="21 days continuous streak of no outside food",
        target=21,
        category="wellness",
        rarity=BadgeRarity.EPIC,
        requirements=(
            BadgeRequirement(
                task_id="5",
                required_completions=21,
                period=BadgePeriod.CONSECUTIVE,
                session="daily",
            ),
        ),
    ),
)

default_catalog = BadgeCatalog(DEFAULT_BADGES, DEFAULT_STREAK_KEYS)
