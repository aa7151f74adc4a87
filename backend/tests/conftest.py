"""Shared fixtures: an in-memory stand-in for the Prisma client and a wired test app."""

from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Any, AsyncIterator, Dict, List, Optional

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("ALGORITHM", "HS256")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backoffice.auth.dependencies import get_current_user
from backoffice.availability.loader import clear_display_rules_cache
from backoffice.db.prisma_client import get_db
from backoffice.display_rules.routes import router as display_rules_router
from backoffice.inventory.routes import router as inventory_router


def _matches(record: Any, where: Optional[Dict[str, Any]]) -> bool:
    for key, expected in (where or {}).items():
        if key == "NOT":
            if _matches(record, expected):
                return False
            continue
        if key == "scenario_view":
            if not _matches(record, expected):
                return False
            continue
        actual = getattr(record, key, None)
        if isinstance(expected, dict):
            if "not" in expected and actual == expected["not"]:
                return False
            continue
        if actual != expected:
            return False
    return True


def _sorted(records: List[Any], order: Any) -> List[Any]:
    if not order:
        return records
    clauses = order if isinstance(order, list) else [order]
    result = list(records)
    for clause in reversed(clauses):
        for key, direction in clause.items():
            result.sort(key=lambda record: getattr(record, key), reverse=direction == "desc")
    return result


class FakeTable:
    def __init__(self, defaults: Optional[Dict[str, Any]] = None) -> None:
        self.records: List[SimpleNamespace] = []
        self.defaults = defaults or {}
        self.find_many_calls = 0
        self._next_id = 1

    def add(self, **data: Any) -> SimpleNamespace:
        record = SimpleNamespace(id=self._next_id, **{**self.defaults, **data})
        self._next_id += 1
        self.records.append(record)
        return record

    async def find_many(self, where=None, include=None, order=None, take=None) -> List[SimpleNamespace]:  # noqa: ANN001
        self.find_many_calls += 1
        rows = _sorted([r for r in self.records if _matches(r, where)], order)
        return rows[:take] if take else rows

    async def find_unique(self, where, include=None) -> Optional[SimpleNamespace]:  # noqa: ANN001
        return next((r for r in self.records if _matches(r, where)), None)

    async def find_first(self, where=None) -> Optional[SimpleNamespace]:  # noqa: ANN001
        return next((r for r in self.records if _matches(r, where)), None)

    async def create(self, data: Dict[str, Any]) -> SimpleNamespace:
        return self.add(**data)

    async def update(self, where: Dict[str, Any], data: Dict[str, Any]) -> SimpleNamespace:
        record = await self.find_unique(where)
        if record is None:
            raise KeyError("Record not found")
        for key, value in data.items():
            setattr(record, key, value)
        return record

    async def upsert(self, where: Dict[str, Any], data: Dict[str, Any]) -> SimpleNamespace:
        record = await self.find_unique(where)
        if record is None:
            return await self.create(data["create"])
        return await self.update({"id": record.id}, data["update"])

    async def delete(self, where: Dict[str, Any]) -> SimpleNamespace:
        record = await self.find_unique(where)
        self.records.remove(record)
        return record


class FakeDB:
    def __init__(self) -> None:
        self.user = FakeTable({"isActive": True})
        self.displayrule = FakeTable({"label": "", "rowBehavior": "show"})
        self.calculatedfield = FakeTable({"description": None, "isSystem": False})
        self.sku = FakeTable({"description": None, "orderEntryDescription": None, "incoming": None, "committed": None})
        self.transactions = 0
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    @asynccontextmanager
    async def tx(self) -> AsyncIterator["FakeDB"]:
        self.transactions += 1
        yield self


def add_sku(db: FakeDB, sku_id: str, collection_type: Optional[str], **fields: Any) -> SimpleNamespace:
    collection = None
    if collection_type is not None:
        collection = SimpleNamespace(id=1, name=f"{collection_type} collection", type=collection_type)
    return db.sku.add(
        skuId=sku_id,
        collectionId=collection.id if collection else None,
        collection=collection,
        **fields,
    )


@pytest.fixture(autouse=True)
def _reset_rules_cache():
    clear_display_rules_cache()
    yield
    clear_display_rules_cache()


@pytest.fixture()
def fake_db() -> FakeDB:
    return FakeDB()


@pytest.fixture()
def admin_user() -> SimpleNamespace:
    return SimpleNamespace(id="admin-1", email="admin@example.com", role="admin", isActive=True)


@pytest.fixture()
def app(fake_db: FakeDB, admin_user: SimpleNamespace) -> FastAPI:
    api = FastAPI()
    api.include_router(display_rules_router)
    api.include_router(inventory_router)
    api.dependency_overrides[get_db] = lambda: fake_db
    api.dependency_overrides[get_current_user] = lambda: admin_user
    return api


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
