"""
Badge document stores: in-memory and SQL (sqlite, single shared connection).
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from backend.core.config import Settings
from backend.core.database import create_all_tables, drop_all_tables
from backend.core.errors import DocumentNotFoundError, StorageError
from backend.features.badges.persistence import (
    InMemoryBadgeDocumentStore,
    SqlBadgeDocumentStore,
    build_document_store,
)

SEED = {
    "badges": {
        "hygiene_hero": {"id": "hygiene_hero", "earned": False, "progress": {"current": 0, "target": 7}},
        "teamwork_champ": {"id": "teamwork_champ", "earned": False, "progress": {"current": 0, "target": 1}},
    }
}


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all_tables(engine)
    yield engine
    drop_all_tables(engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request, sqlite_engine):
    if request.param == "sql":
        return SqlBadgeDocumentStore(sqlite_engine)
    return InMemoryBadgeDocumentStore()


@pytest.mark.asyncio
async def test_missing_document_is_none(store):
    assert await store.get_document("nobody") is None


@pytest.mark.asyncio
async def test_create_then_read(store):
    await store.create_document("u1", SEED)

    doc = await store.get_document("u1")
    assert doc["userId"] == "u1"
    assert doc["badges"] == SEED["badges"]
    assert doc["createdAt"] and doc["updatedAt"]


@pytest.mark.asyncio
async def test_merge_keeps_sibling_badges(store):
    await store.create_document("u1", SEED)

    update = {"id": "teamwork_champ", "earned": True, "progress": {"current": 1, "target": 1}}
    await store.merge_badge("u1", "teamwork_champ", update)

    doc = await store.get_document("u1")
    assert doc["badges"]["teamwork_champ"] == update
    assert doc["badges"]["hygiene_hero"] == SEED["badges"]["hygiene_hero"]


@pytest.mark.asyncio
async def test_merge_is_idempotent(store):
    await store.create_document("u1", SEED)
    update = {"id": "hygiene_hero", "earned": False, "progress": {"current": 2, "target": 7}}

    await store.merge_badge("u1", "hygiene_hero", update)
    once = (await store.get_document("u1"))["badges"]
    await store.merge_badge("u1", "hygiene_hero", update)
    twice = (await store.get_document("u1"))["badges"]

    assert once == twice


@pytest.mark.asyncio
async def test_merge_without_document_raises(store):
    with pytest.raises(DocumentNotFoundError):
        await store.merge_badge("ghost", "teamwork_champ", {"earned": True})


@pytest.mark.asyncio
async def test_returned_documents_are_copies(store):
    await store.create_document("u1", SEED)

    doc = await store.get_document("u1")
    doc["badges"]["hygiene_hero"]["earned"] = True

    fresh = await store.get_document("u1")
    assert fresh["badges"]["hygiene_hero"]["earned"] is False
    assert SEED["badges"]["hygiene_hero"]["earned"] is False


@pytest.mark.asyncio
async def test_sql_duplicate_create_is_storage_error(sqlite_engine):
    store = SqlBadgeDocumentStore(sqlite_engine)
    await store.create_document("u1", SEED)

    with pytest.raises(StorageError):
        await store.create_document("u1", SEED)


@pytest.mark.asyncio
async def test_sql_missing_table_is_storage_error():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    store = SqlBadgeDocumentStore(engine)

    with pytest.raises(StorageError):
        await store.get_document("u1")


def test_backend_selection():
    assert isinstance(build_document_store(Settings(BADGE_DOCUMENT_BACKEND="memory")), InMemoryBadgeDocumentStore)
    assert isinstance(build_document_store(Settings(BADGE_DOCUMENT_BACKEND="sql")), SqlBadgeDocumentStore)
