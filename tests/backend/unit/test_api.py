import random
from dataclasses import replace
from datetime import datetime, timezone

import pytest

fastapi = pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from giftexchange.backend.api import create_app
from giftexchange.backend.config import load_settings
from giftexchange.backend.errors import TransientFetchError
from giftexchange.backend.inventory import StaticInventorySource
from giftexchange.backend.models import AssetRecord, InventoryScope, InventorySnapshot
from giftexchange.backend.security import hash_token
from giftexchange.backend.service import ExchangeContext, GiftExchangeService
from giftexchange.backend.store import InMemoryParticipantStore

SALT = "test-salt"
ADMIN = {"X-Admin-Token": "admin-secret"}
INTERESTS = ["Stickers", "Souvenirs", "Katowice2019"]


class _DownSource:
    async def fetch_snapshot(self, scope: InventoryScope) -> InventorySnapshot:
        raise TransientFetchError("inventory unavailable")


def _client(inventory=None) -> TestClient:
    snapshot = InventorySnapshot(
        scope=InventoryScope(owner_id="custody", app_id=730, context_id="2"),
        assets=[AssetRecord(handle="h1", class_identifier="310776560", instance_identifier="0", context_scope="2")],
        descriptions={},
        fetched_at=datetime.now(timezone.utc),
    )
    context = ExchangeContext(
        store=InMemoryParticipantStore(),
        inventory=inventory if inventory is not None else StaticInventorySource(snapshot),
        settings=replace(load_settings(), custody_account_id="custody", inventory_context_id="2"),
        rng=random.Random(1),
    )
    app = create_app(
        service=GiftExchangeService(context),
        admin_token_hash=hash_token("admin-secret", SALT),
        server_salt=SALT,
    )
    return TestClient(app)


def _signup(client: TestClient, participant_id: str, partner: int):
    return client.post(
        "/api/participants",
        json={
            "participant_id": participant_id,
            "display_name": participant_id.upper(),
            "trade_link": f"https://steamcommunity.com/tradeoffer/new/?partner={partner}&token=x",
            "interests": INTERESTS,
        },
    )


def test_signup_returns_participant_without_recipient() -> None:
    client = _client()

    response = _signup(client, "a", 1)

    assert response.status_code == 200
    participant = response.json()["participant"]
    assert participant["id"] == "a"
    assert participant["hasAssignment"] is False
    assert "assignedRecipientId" not in participant


def test_duplicate_signup_is_conflict_and_bad_link_is_unprocessable() -> None:
    client = _client()
    _signup(client, "a", 1)

    duplicate = _signup(client, "a", 2)
    bad_link = client.post(
        "/api/participants",
        json={"participant_id": "b", "display_name": "B", "trade_link": "nope", "interests": INTERESTS},
    )

    assert duplicate.status_code == 409
    assert bad_link.status_code == 422


def test_get_unknown_participant_is_not_found() -> None:
    response = _client().get("/api/participants/ghost")

    assert response.status_code == 404


def test_admin_endpoints_require_token() -> None:
    client = _client()
    _signup(client, "a", 1)
    _signup(client, "b", 2)

    missing = client.post("/api/assignments")
    wrong = client.post("/api/assignments", headers={"X-Admin-Token": "guess"})
    redistribute = client.post("/api/redistributions")
    reset = client.post("/api/admin/reset")

    assert missing.status_code == 403
    assert wrong.status_code == 403
    assert redistribute.status_code == 403
    assert reset.status_code == 403


def test_roll_with_single_participant_is_conflict() -> None:
    client = _client()
    _signup(client, "a", 1)

    response = client.post("/api/assignments", headers=ADMIN)

    assert response.status_code == 409


def test_roll_receipt_and_redistribution_flow() -> None:
    client = _client()
    _signup(client, "a", 1)
    _signup(client, "b", 2)

    roll = client.post("/api/assignments", headers=ADMIN)
    receipt = client.post("/api/participants/a/receipts", json={"items": [{"classid": "310776560"}]})
    run = client.post("/api/redistributions", headers=ADMIN)
    status = client.get("/api/status")

    assert roll.status_code == 200
    assert roll.json()["assignment"] == {"a": "b", "b": "a"}
    assert receipt.status_code == 200
    assert receipt.json()["recorded"] == [{"classIdentifier": "310776560"}]
    assert run.status_code == 200
    transfers = run.json()["transfers"]
    assert len(transfers) == 1
    assert transfers[0]["recipientId"] == "b"
    assert transfers[0]["items"][0]["handle"] == "h1"
    assert run.json()["issues"] == []
    assert status.json()["lastRun"]["transferCount"] == 1
    assert status.json()["pendingItemCount"] == 1


def test_roll_accepts_explicit_ids() -> None:
    client = _client()
    for offset, participant_id in enumerate(["a", "b", "c"], start=1):
        _signup(client, participant_id, offset)

    response = client.post("/api/assignments", headers=ADMIN, json={"ids": ["a", "c"]})

    assert response.json()["assignment"] == {"a": "c", "c": "a"}


def test_receipt_without_class_identifier_is_unprocessable() -> None:
    client = _client()
    _signup(client, "a", 1)

    response = client.post("/api/participants/a/receipts", json={"items": [{"name": "mystery"}]})

    assert response.status_code == 422


def test_redistribution_fetch_failure_is_service_unavailable() -> None:
    client = _client(inventory=_DownSource())
    _signup(client, "a", 1)
    _signup(client, "b", 2)
    client.post("/api/assignments", headers=ADMIN)

    response = client.post("/api/redistributions", headers=ADMIN)

    assert response.status_code == 503
    assert client.get("/api/status").json()["redistributionState"] == "idle"


def test_reset_clears_round() -> None:
    client = _client()
    _signup(client, "a", 1)
    _signup(client, "b", 2)
    client.post("/api/assignments", headers=ADMIN)

    response = client.post("/api/admin/reset", headers=ADMIN, json={"clear_participants": False})

    assert response.status_code == 200
    status = client.get("/api/status").json()
    assert status["participantCount"] == 2
    assert status["assignedCount"] == 0


class _CrashingSource:
    async def fetch_snapshot(self, scope: InventoryScope) -> InventorySnapshot:
        raise ConnectionResetError("connection reset by peer")


def test_unexpected_inventory_failure_is_service_unavailable() -> None:
    client = _client(inventory=_CrashingSource())
    _signup(client, "a", 1)
    _signup(client, "b", 2)
    client.post("/api/assignments", headers=ADMIN)

    first = client.post("/api/redistributions", headers=ADMIN)
    second = client.post("/api/redistributions", headers=ADMIN)

    assert first.status_code == 503
    assert second.status_code == 503
    assert client.get("/api/status").json()["redistributionState"] == "idle"


def test_recipient_briefing_endpoint_follows_the_roll() -> None:
    client = _client()
    _signup(client, "a", 1)
    _signup(client, "b", 2)

    before_roll = client.get("/api/participants/a/recipient")
    client.post("/api/assignments", headers=ADMIN)
    briefing = client.get("/api/participants/a/recipient")
    unknown = client.get("/api/participants/ghost/recipient")

    assert before_roll.status_code == 409
    assert briefing.status_code == 200
    assert briefing.json()["briefing"] == {
        "giverId": "a",
        "recipientDisplayName": "B",
        "recipientInterests": INTERESTS,
        "custodyAccountId": "custody",
    }
    assert unknown.status_code == 404
