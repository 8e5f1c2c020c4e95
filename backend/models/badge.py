"""
backend/models/badge.py
Badge models: immutable catalog definitions kept apart from per-user progress.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BadgePeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    ALL_TIME = "all-time"
    CONSECUTIVE = "consecutive"


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class BadgeRequirement(BaseModel):
    """One clause of a badge's unlock condition."""

    model_config = ConfigDict(frozen=True)

    task_id: str = Field(min_length=1)
    required_completions: int = Field(ge=1)
    period: BadgePeriod
    session: Optional[str] = None
    requires_all_tasks: bool = False
    requires_all_sessions: bool = False
    requires_verification: bool = False


class BadgeDefinition(BaseModel):
    """Static catalog entry. Never mutated; progress lives in BadgeState."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    icon: str
    description: str
    target: int = Field(ge=1)
    requirements: Tuple[BadgeRequirement, ...] = Field(min_length=1)
    category: str = "general"
    rarity: BadgeRarity = BadgeRarity.COMMON

    @property
    def is_consecutive(self) -> bool:
        return any(req.period == BadgePeriod.CONSECUTIVE for req in self.requirements)

    @property
    def streak_task_id(self) -> str:
        # Streak identity always comes from the first requirement
        return self.requirements[0].task_id


class BadgeProgress(BaseModel):
    current: int = Field(default=0, ge=0)
    target: int = Field(ge=1)


class BadgeState(BaseModel):
    """Mutable per-user state for one badge."""

    badge_id: str
    earned: bool = False
    progress: BadgeProgress
    last_updated: Optional[datetime] = None

    @model_validator(mode="after")
    def _clamp(self) -> "BadgeState":
        if self.progress.current > self.progress.target:
            self.progress.current = self.progress.target
        if self.earned:
            # Earned badges stay earned; keep current consistent with the flag
            self.progress.current = self.progress.target
        elif self.progress.current >= self.progress.target:
            self.earned = True
        return self


class BadgeView(BaseModel):
    """Definition and state flattened for API responses and remote documents."""

    id: str
    name: str
    icon: str
    description: str
    category: str
    rarity: BadgeRarity
    earned: bool
    progress: BadgeProgress
    last_updated: Optional[datetime] = None

    @classmethod
    def build(cls, definition: BadgeDefinition, state: BadgeState) -> "BadgeView":
        return cls(
            id=definition.id,
            name=definition.name,
            icon=definition.icon,
            description=definition.description,
            category=definition.category,
            rarity=definition.rarity,
            earned=state.earned,
            progress=state.progress.model_copy(),
            last_updated=state.last_updated,
        )

    def to_document(self) -> Dict[str, Any]:
        """Shape stored under badges.<id> in the user's remote document."""
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "earned": self.earned,
            "progress": {"current": self.progress.current, "target": self.progress.target},
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


class BadgeSummary(BaseModel):
    earned_count: int
    total: int
    by_category: Dict[str, Dict[str, int]] = Field(default_factory=dict)
