from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from backoffice.db import prisma_client

from conftest import FakeDB


def test_root_and_routes_are_mounted() -> None:
    from main import app

    client = TestClient(app)
    response = client.get("/")
    assert response.status_code == 200
    assert "availability" in response.json()["message"]

    paths = {route.path for route in app.routes}
    assert {
        "/admin/display-rules",
        "/admin/display-rules/preview",
        "/admin/calculated-fields",
        "/admin/calculated-fields/{field_id}",
        "/admin/calculated-fields/validate",
        "/availability/resolve",
        "/inventory/skus",
        "/inventory/export.xlsx",
        "/inventory/export.pdf",
    } <= paths


def test_app_lifecycle_owns_the_connection(monkeypatch: pytest.MonkeyPatch) -> None:
    from main import app

    fake = FakeDB()
    monkeypatch.setattr(prisma_client, "_client", fake)

    with TestClient(app):
        assert fake.is_connected()
    assert not fake.is_connected()


@pytest.mark.asyncio
async def test_overlapping_requests_keep_the_connection(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = FakeDB()
    monkeypatch.setattr(prisma_client, "_client", fake)
    await prisma_client.connect_db()
    connected_during_query = []

    async def _request(delay: float) -> None:
        session = prisma_client.get_db()
        client = await session.__anext__()
        await asyncio.sleep(delay)
        connected_during_query.append(client.is_connected())
        await session.aclose()

    await asyncio.gather(_request(0.01), _request(0.05))

    assert connected_during_query == [True, True]
    assert fake.is_connected()

    await prisma_client.disconnect_db()
    assert not fake.is_connected()
