from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.core.auth import get_current_user_id, get_optional_user_id
from backend.core.errors import NotFoundError
from backend.features.badges.evaluator import QuestEvaluator
from backend.features.badges.service import badge_registry
from backend.models.quest import BadgeEventIn, QuestStateIn

router = APIRouter()


def _badge_payload(service, category: Optional[str] = None) -> dict:
    return {
        "badges": [b.model_dump(mode="json") for b in service.badges(category)],
        "summary": service.summary().model_dump(),
        "load_error": service.load_error,
    }


@router.get("/v1/badges/catalog")
def get_catalog():
    """Static badge definitions."""
    return {
        "badges": [d.model_dump(mode="json") for d in badge_registry.catalog],
        "categories": badge_registry.catalog.categories(),
    }


@router.get("/v1/badges")
async def list_badges(
    category: Optional[str] = Query(None, description="Filter by category; 'all' for every badge"),
    user_id: str = Depends(get_current_user_id),
):
    service = await badge_registry.get(user_id)
    return _badge_payload(service, category)


@router.get("/v1/badges/{badge_id}")
async def get_badge(badge_id: str, user_id: str = Depends(get_current_user_id)):
    service = await badge_registry.get(user_id)
    badge = service.get(badge_id)
    if badge is None:
        raise NotFoundError(f"Unknown badge: {badge_id}")
    return badge.model_dump(mode="json")


@router.put("/v1/quests/state")
async def submit_quest_state(body: QuestStateIn, user_id: Optional[str] = Depends(get_optional_user_id)):
    """
    Evaluate a quest state snapshot immediately.

    Without a user the snapshot is scored against a fresh in-memory service,
    so nothing is persisted between calls.
    """
    if user_id:
        service = await badge_registry.get(user_id)
    else:
        service = await badge_registry.anonymous()
    earned = await QuestEvaluator(service).evaluate(body.quest_state)
    payload = _badge_payload(service)
    payload["earned"] = [b.model_dump(mode="json") for b in earned]
    return payload


@router.post("/v1/badges/events")
async def submit_badge_event(body: BadgeEventIn, user_id: str = Depends(get_current_user_id)):
    """Apply a single event id such as "workout.6" or "morning_all"."""
    service = await badge_registry.get(user_id)
    earned = await service.update_badge_progress(body.event_id, body.is_complete)
    return {"earned": [b.model_dump(mode="json") for b in earned]}


@router.get("/v1/streaks/{streak_key}")
async def get_streak(streak_key: str, user_id: str = Depends(get_current_user_id)):
    service = await badge_registry.get(user_id)
    return {"streak_key": streak_key, "count": await service.tracker.get_streak(streak_key)}
