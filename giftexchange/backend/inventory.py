"""Inventory collaborators that produce custody account snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from giftexchange.backend.errors import TransientFetchError
from giftexchange.backend.fingerprint import read_attributes, read_class_identifier
from giftexchange.backend.models import (
    NO_INSTANCE,
    AssetRecord,
    DescriptionRecord,
    InventoryScope,
    InventorySnapshot,
)

logger = logging.getLogger(__name__)

INVENTORY_PAGE_SIZE = 5000


class InventorySource(Protocol):
    async def fetch_snapshot(self, scope: InventoryScope) -> InventorySnapshot:
        """Return a fresh point-in-time view of the scope. Raises TransientFetchError."""


def parse_inventory(payload: dict[str, Any], scope: InventoryScope) -> InventorySnapshot:
    """Build a snapshot from a Steam community inventory payload."""
    assets: list[AssetRecord] = []
    for raw in payload.get("assets") or []:
        instance = raw.get("instanceid")
        assets.append(
            AssetRecord(
                handle=str(raw["assetid"]),
                class_identifier=str(raw["classid"]),
                instance_identifier=str(instance) if instance is not None else None,
                context_scope=str(raw.get("contextid", scope.context_id)),
            )
        )

    descriptions: dict[tuple[str, str], DescriptionRecord] = {}
    for raw in payload.get("descriptions") or []:
        class_identifier = read_class_identifier(raw)
        if class_identifier is None:
            continue
        try:
            attributes = read_attributes(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping description for class %s with malformed attributes: %s", class_identifier, exc)
            continue
        instance = attributes.pop("instance_identifier", NO_INSTANCE)
        descriptions[(class_identifier, instance)] = DescriptionRecord(
            class_identifier=class_identifier,
            instance_identifier=instance,
            **attributes,
        )

    return InventorySnapshot(
        scope=scope,
        assets=assets,
        descriptions=descriptions,
        fetched_at=datetime.now(timezone.utc),
    )


@dataclass
class SteamInventoryClient:
    base_url: str = "https://steamcommunity.com"
    timeout_s: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None

    def _url(self, scope: InventoryScope) -> str:
        return f"{self.base_url.rstrip('/')}/inventory/{scope.owner_id}/{scope.app_id}/{scope.context_id}"

    async def fetch_snapshot(self, scope: InventoryScope) -> InventorySnapshot:
        params = {"l": "english", "count": INVENTORY_PAGE_SIZE}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                response = await client.get(self._url(scope), params=params)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Inventory fetch for %s failed: %s", scope.owner_id, exc)
            raise TransientFetchError(f"Inventory fetch failed: {exc}") from exc
        except ValueError as exc:
            raise TransientFetchError("Inventory response was not valid JSON") from exc

        if not isinstance(payload, dict) or payload.get("success", 1) != 1:
            raise TransientFetchError("Inventory response reported failure")
        try:
            return parse_inventory(payload, scope)
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientFetchError(f"Inventory response was malformed: {exc}") from exc


@dataclass
class StaticInventorySource:
    """Serves a fixed snapshot, re-scoped to the requested scope."""

    snapshot: InventorySnapshot

    async def fetch_snapshot(self, scope: InventoryScope) -> InventorySnapshot:
        return InventorySnapshot(
            scope=scope,
            assets=list(self.snapshot.assets),
            descriptions=dict(self.snapshot.descriptions),
            fetched_at=datetime.now(timezone.utc),
        )
