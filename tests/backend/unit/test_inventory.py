import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from giftexchange.backend.errors import TransientFetchError
from giftexchange.backend.inventory import SteamInventoryClient, StaticInventorySource, parse_inventory
from giftexchange.backend.models import AssetRecord, InventoryScope, InventorySnapshot

SCOPE = InventoryScope(owner_id="76561199144623922", app_id=730, context_id="2")

STEAM_PAYLOAD = {
    "success": 1,
    "assets": [
        {"appid": 730, "contextid": "2", "assetid": "101", "classid": "310776560", "instanceid": "0", "amount": "1"},
        {"appid": 730, "contextid": "2", "assetid": "102", "classid": "4141779348", "instanceid": "519977179", "amount": "1"},
    ],
    "descriptions": [
        {"appid": 730, "classid": "310776560", "instanceid": "0", "market_hash_name": "Sticker | Katowice 2019"},
        {
            "appid": 730,
            "classid": "4141779348",
            "instanceid": "519977179",
            "market_hash_name": "AK-47 | Redline (Field-Tested)",
            "paintseed": 661,
            "paintwear": 0.1532,
        },
    ],
}


def test_parse_inventory_builds_assets_and_descriptions() -> None:
    snapshot = parse_inventory(STEAM_PAYLOAD, SCOPE)

    assert [asset.handle for asset in snapshot.assets] == ["101", "102"]
    assert snapshot.assets[1].instance_identifier == "519977179"
    sticker = snapshot.descriptions[("310776560", "0")]
    rifle = snapshot.descriptions[("4141779348", "519977179")]
    assert sticker.display_name == "Sticker | Katowice 2019"
    assert sticker.pattern_index is None
    assert rifle.pattern_index == 661
    assert rifle.wear_float == pytest.approx(0.1532)


def test_parse_inventory_skips_descriptions_with_malformed_attributes() -> None:
    payload = {
        "success": 1,
        "assets": [{"assetid": "7", "classid": "A", "instanceid": "0"}],
        "descriptions": [
            {"classid": "A", "instanceid": "0", "paintwear": "nan"},
            {"classid": "B", "instanceid": "0", "name": "Fine"},
        ],
    }

    snapshot = parse_inventory(payload, SCOPE)

    assert [asset.handle for asset in snapshot.assets] == ["7"]
    assert list(snapshot.descriptions) == [("B", "0")]


def test_parse_inventory_accepts_empty_inventory() -> None:
    snapshot = parse_inventory({"success": 1, "total_inventory_count": 0}, SCOPE)

    assert snapshot.assets == []
    assert snapshot.descriptions == {}


def test_steam_client_requests_scope_url_and_parses_response() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=STEAM_PAYLOAD)

    client = SteamInventoryClient(base_url="https://steam.test/", transport=httpx.MockTransport(handler))

    snapshot = asyncio.run(client.fetch_snapshot(SCOPE))

    assert len(snapshot.assets) == 2
    assert seen[0].url.path == "/inventory/76561199144623922/730/2"
    assert seen[0].url.params["count"] == "5000"
    assert seen[0].url.params["l"] == "english"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="busy"),
        httpx.Response(429, text="slow down"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"success": 0}),
        httpx.Response(200, json={"success": 1, "assets": [{"classid": "1"}]}),
    ],
)
def test_steam_client_turns_failures_into_transient_errors(response: httpx.Response) -> None:
    client = SteamInventoryClient(transport=httpx.MockTransport(lambda request: response))

    with pytest.raises(TransientFetchError):
        asyncio.run(client.fetch_snapshot(SCOPE))


def test_steam_client_turns_network_errors_into_transient_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = SteamInventoryClient(transport=httpx.MockTransport(handler))

    with pytest.raises(TransientFetchError):
        asyncio.run(client.fetch_snapshot(SCOPE))


def test_static_source_rescopes_snapshot() -> None:
    base = InventorySnapshot(
        scope=InventoryScope(owner_id="other", app_id=730, context_id="2"),
        assets=[AssetRecord(handle="1", class_identifier="A", instance_identifier="0", context_scope="2")],
        descriptions={},
        fetched_at=datetime(2024, 12, 25, tzinfo=timezone.utc),
    )

    snapshot = asyncio.run(StaticInventorySource(base).fetch_snapshot(SCOPE))

    assert snapshot.scope == SCOPE
    assert snapshot.assets == base.assets
    assert snapshot.fetched_at > base.fetched_at
