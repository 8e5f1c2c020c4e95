"""
backend/features/badges/persistence.py

Per-user badge documents.

Document shape:
    {
        "userId": "...",
        "badges": {"<badge_id>": {"id", "name", "icon", "description",
                                  "earned", "progress", "lastUpdated"}},
        "createdAt": "...",
        "updatedAt": "...",
    }

merge_badge() writes a single badge subtree and leaves siblings untouched.
Both stores expose the same async API; the SQL store runs its blocking
SQLAlchemy calls in a worker thread.
"""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.core.config import Settings, settings as default_settings
from backend.core.database import get_db_session, get_engine, user_badges
from backend.core.errors import DocumentNotFoundError, StorageError

Document = Dict[str, Any]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BadgeDocumentStore(Protocol):
    async def get_document(self, user_id: str) -> Optional[Document]: ...

    async def create_document(self, user_id: str, document: Document) -> None: ...

    async def merge_badge(self, user_id: str, badge_id: str, data: Dict[str, Any]) -> None: ...


class InMemoryBadgeDocumentStore:
    """Dict-backed store. Returns copies so callers never alias stored state."""

    def __init__(self):
        self._documents: Dict[str, Document] = {}

    async def get_document(self, user_id: str) -> Optional[Document]:
        doc = self._documents.get(user_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def create_document(self, user_id: str, document: Document) -> None:
        doc = copy.deepcopy(document)
        doc.setdefault("userId", user_id)
        doc.setdefault("badges", {})
        now = _now_iso()
        doc.setdefault("createdAt", now)
        doc.setdefault("updatedAt", now)
        self._documents[user_id] = doc

    async def merge_badge(self, user_id: str, badge_id: str, data: Dict[str, Any]) -> None:
        doc = self._documents.get(user_id)
        if doc is None:
            raise DocumentNotFoundError(f"No badge document for user {user_id}")
        doc.setdefault("badges", {})[badge_id] = copy.deepcopy(data)
        doc["updatedAt"] = _now_iso()


class SqlBadgeDocumentStore:
    """user_badges table with the whole document in a JSON column."""

    def __init__(self, engine=None):
        self._engine = engine

    def _bind(self):
        return self._engine or get_engine()

    async def get_document(self, user_id: str) -> Optional[Document]:
        return await asyncio.to_thread(self._get_document, user_id)

    async def create_document(self, user_id: str, document: Document) -> None:
        await asyncio.to_thread(self._create_document, user_id, document)

    async def merge_badge(self, user_id: str, badge_id: str, data: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._merge_badge, user_id, badge_id, data)

    # Blocking helpers -------------------------------------------------
    def _get_document(self, user_id: str) -> Optional[Document]:
        try:
            with get_db_session(self._bind()) as session:
                row = session.execute(
                    select(user_badges.c.document).where(user_badges.c.user_id == user_id)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read badge document for {user_id}: {e}") from e
        if not row:
            return None
        return copy.deepcopy(row.document)

    def _create_document(self, user_id: str, document: Document) -> None:
        doc = copy.deepcopy(document)
        doc.setdefault("userId", user_id)
        doc.setdefault("badges", {})
        now = _now_iso()
        doc.setdefault("createdAt", now)
        doc.setdefault("updatedAt", now)
        try:
            with get_db_session(self._bind()) as session:
                session.execute(insert(user_badges).values(user_id=user_id, document=doc))
        except IntegrityError as e:
            # Another writer created it first
            raise StorageError(f"Badge document already exists for {user_id}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create badge document for {user_id}: {e}") from e

    def _merge_badge(self, user_id: str, badge_id: str, data: Dict[str, Any]) -> None:
        try:
            with get_db_session(self._bind()) as session:
                row = session.execute(
                    select(user_badges.c.document).where(user_badges.c.user_id == user_id)
                ).first()
                if not row:
                    raise DocumentNotFoundError(f"No badge document for user {user_id}")

                doc = copy.deepcopy(row.document)
                doc.setdefault("badges", {})[badge_id] = copy.deepcopy(data)
                doc["updatedAt"] = _now_iso()
                session.execute(
                    update(user_badges)
                    .where(user_badges.c.user_id == user_id)
                    .values(document=doc)
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to merge badge {badge_id} for {user_id}: {e}") from e


def build_document_store(cfg: Optional[Settings] = None) -> BadgeDocumentStore:
    cfg = cfg or default_settings
    if cfg.BADGE_DOCUMENT_BACKEND == "sql":
        return SqlBadgeDocumentStore()
    return InMemoryBadgeDocumentStore()
