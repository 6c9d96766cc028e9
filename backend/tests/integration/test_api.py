"""HTTP API tests using FastAPI's TestClient with an in-memory gateway."""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from pledge.api import create_app
from pledge.api.dependencies import get_service
from pledge.config import Settings

ALICE = {"X-Owner-Id": "alice"}
BOB = {"X-Owner-Id": "bob"}


@pytest.fixture
def client(tmp_path, service) -> TestClient:
    app = create_app(Settings(data_dir=tmp_path, _env_file=None))
    app.dependency_overrides[get_service] = lambda: service
    return TestClient(app)


def create_bet(client: TestClient, headers=ALICE, **overrides) -> dict:
    body = {
        "title": "Emergency fund",
        "description": "Three months of expenses",
        "category": "savings",
        "target_value": "1000",
        "stake_amount": "50",
        "duration_days": 30,
        "charity": {"name": "Food Bank"},
    }
    body.update(overrides)
    response = client.post("/api/bets", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_get_bet(client) -> None:
    created = create_bet(client)

    assert created["bet"]["phase"] == "draft"
    assert created["status"]["label"] == "pending"
    assert Decimal(created["bet"]["stake_amount"]) == Decimal("50")

    bet_id = created["bet"]["id"]
    response = client.get(f"/api/bets/{bet_id}", headers=ALICE)
    assert response.status_code == 200
    assert response.json()["bet"]["charity"]["name"] == "Food Bank"


def test_other_owner_gets_404(client) -> None:
    bet_id = create_bet(client)["bet"]["id"]

    response = client.get(f"/api/bets/{bet_id}", headers=BOB)

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_missing_owner_header_is_rejected(client) -> None:
    assert client.get("/api/bets").status_code == 422


def test_invalid_input_maps_to_422(client) -> None:
    response = client.post(
        "/api/bets",
        json={
            "title": "Goal",
            "category": "savings",
            "target_value": "1000",
            "stake_amount": "50",
            "duration_days": 45,
        },
        headers=ALICE,
    )

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_input"


def test_payment_and_activation_flow(client) -> None:
    bet_id = create_bet(client)["bet"]["id"]

    response = client.post(f"/api/bets/{bet_id}/payment-intent", headers=ALICE)
    assert response.status_code == 200
    intent = response.json()
    assert intent["client_secret"]

    response = client.post(
        f"/api/bets/{bet_id}/activate",
        json={"payment_intent_id": intent["intent_id"], "amount_paid": "50.00"},
        headers=ALICE,
    )
    assert response.status_code == 200
    assert response.json()["bet"]["phase"] == "active"
    assert response.json()["status"]["label"] == "active"

    response = client.get("/api/bets", params={"phase": "active"}, headers=ALICE)
    assert [b["bet"]["id"] for b in response.json()] == [bet_id]


def test_activation_mismatch_is_409(client) -> None:
    bet_id = create_bet(client)["bet"]["id"]
    intent = client.post(f"/api/bets/{bet_id}/payment-intent", headers=ALICE).json()

    response = client.post(
        f"/api/bets/{bet_id}/activate",
        json={"payment_intent_id": intent["intent_id"], "amount_paid": "49.99"},
        headers=ALICE,
    )

    assert response.status_code == 409
    assert response.json()["error"] == "payment_mismatch"


def test_gateway_failure_is_502(client, gateway) -> None:
    gateway.mode = "fail"
    bet_id = create_bet(client)["bet"]["id"]

    response = client.post(f"/api/bets/{bet_id}/payment-intent", headers=ALICE)

    assert response.status_code == 502
    assert response.json()["error"] == "gateway_error"


def test_abandon_draft_only(client) -> None:
    draft_id = create_bet(client)["bet"]["id"]
    assert client.delete(f"/api/bets/{draft_id}", headers=ALICE).status_code == 204
    assert client.get(f"/api/bets/{draft_id}", headers=ALICE).status_code == 404

    paid_id = create_bet(client)["bet"]["id"]
    client.post(f"/api/bets/{paid_id}/payment-intent", headers=ALICE)
    response = client.delete(f"/api/bets/{paid_id}", headers=ALICE)
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"


def test_leaderboard_and_overview(client, service, open_bet) -> None:
    async def settle() -> None:
        bet = await open_bet(owner_id="alice")
        await service.resolve(bet.id, bet.start_date + timedelta(days=3), 1000)

    asyncio.run(settle())
    create_bet(client)

    board = client.get("/api/bets/leaderboard").json()
    assert board[0]["player_id"] == "alice"
    assert board[0]["rank"] == 1
    assert Decimal(board[0]["points"]) == Decimal("50")

    overview = client.get("/api/bets/analytics/overview", headers=ALICE).json()
    assert overview["total"] == 2
    assert overview["won"] == 1
    assert overview["pending"] == 1
    assert Decimal(overview["win_rate"]) == Decimal("100")
