from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

HEADERS = {"X-API-Key": "test_secret", "X-User-Id": "user-1"}
OTHER_USER = {"X-API-Key": "test_secret", "X-User-Id": "user-2"}


async def _create(client, name="Gold", capital=1000.0, session_type="Forex", headers=HEADERS):
    response = await client.post(
        "/api/v1/sessions",
        json={"name": name, "initial_capital": capital, "session_type": session_type},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_requires_auth(client):
    response = await client.get("/api/v1/sessions")
    assert response.status_code == 422  # Missing headers


@pytest.mark.asyncio
async def test_rejects_bad_key(client):
    response = await client.get("/api/v1/sessions", headers={"X-API-Key": "wrong", "X-User-Id": "user-1"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_and_list(client):
    created = await _create(client, "Crypto perps", 2500.0, "Crypto")
    assert created["initial_capital"] == 2500.0
    assert created["current_capital"] == 2500.0
    assert created["session_type"] == "Crypto"

    response = await client.get("/api/v1/sessions", headers=HEADERS)
    assert [s["id"] for s in response.json()] == [created["id"]]


@pytest.mark.asyncio
async def test_sessions_are_per_user(client):
    await _create(client)
    response = await client.get("/api/v1/sessions", headers=OTHER_USER)
    assert response.json() == []


@pytest.mark.asyncio
async def test_create_validates_input(client):
    response = await client.post(
        "/api/v1/sessions",
        json={"name": "", "initial_capital": -1, "session_type": "Stocks"},
        headers=HEADERS,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_capital(client):
    created = await _create(client)
    response = await client.patch(
        f"/api/v1/sessions/{created['id']}/capital",
        json={"current_capital": 1234.5},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["current_capital"] == 1234.5
    assert response.json()["initial_capital"] == 1000.0


@pytest.mark.asyncio
async def test_delete_session(client):
    created = await _create(client)
    await client.post(
        f"/api/v1/sessions/{created['id']}/trades",
        json={"margin": 100, "entry_side": "Long", "profit_loss": 10, "details": {"kind": "Forex"}},
        headers=HEADERS,
    )

    response = await client.delete(f"/api/v1/sessions/{created['id']}", headers=HEADERS)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/sessions/{created['id']}/trades", headers=HEADERS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_other_users_session_is_404(client):
    created = await _create(client)
    response = await client.delete(f"/api/v1/sessions/{created['id']}", headers=OTHER_USER)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_session_stats(client):
    created = await _create(client, capital=1000.0)
    for pnl in (100, -50, 0):
        await client.post(
            f"/api/v1/sessions/{created['id']}/trades",
            json={"margin": 100, "entry_side": "Long", "profit_loss": pnl, "details": {"kind": "Forex"}},
            headers=HEADERS,
        )

    response = await client.get(f"/api/v1/sessions/{created['id']}/stats", headers=HEADERS)
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_trades"] == 3
    assert stats["winning_trades"] == 1
    assert stats["losing_trades"] == 1
    assert stats["net_profit_loss"] == 50
    assert stats["net_profit_loss_percentage"] == pytest.approx(5.0)
    assert stats["current_capital"] == 1050.0


@pytest.mark.asyncio
async def test_store_error_returns_action_failed(client):
    with patch(
        "trading_journal.services.trade_store.TradeStore.list_sessions",
        new=AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("disk I/O error"))),
    ):
        response = await client.get("/api/v1/sessions", headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"detail": "Action failed"}
