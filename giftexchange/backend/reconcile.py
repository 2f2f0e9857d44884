"""Inventory reconciliation: map ledger fingerprints onto live custody assets.

Asset handles are reissued by every transfer, so a handle recorded at
receipt time is useless later. Items are re-identified by class, instance
and the descriptive attributes the fingerprint carries. Every attribute a
fingerprint specifies must agree with the asset's description; agreeing on
some of them is a rejection, so a different item of the same class is never
silently sent in place of the one received.
"""

from __future__ import annotations

import logging
from typing import Iterable

from giftexchange.backend.models import (
    NO_INSTANCE,
    AssetRecord,
    DescriptionRecord,
    InventorySnapshot,
    ItemFingerprint,
    Resolution,
)

logger = logging.getLogger(__name__)

# Absorbs float round-tripping noise only; distinct items differ by far more.
WEAR_TOLERANCE = 1e-6


class DescriptionIndex:
    """Lookup of description records by (class, instance) with class fallback."""

    def __init__(self, descriptions: dict[tuple[str, str], DescriptionRecord]) -> None:
        self._exact = descriptions
        self._by_class: dict[str, DescriptionRecord] = {}
        for description in descriptions.values():
            self._by_class.setdefault(description.class_identifier, description)

    def find(self, class_identifier: str, instance_identifier: str | None) -> DescriptionRecord | None:
        instance = instance_identifier or NO_INSTANCE
        description = self._exact.get((class_identifier, instance))
        if description is None:
            description = self._exact.get((class_identifier, NO_INSTANCE))
        if description is None:
            description = self._by_class.get(class_identifier)
        return description


def attributes_match(
    fingerprint: ItemFingerprint,
    description: DescriptionRecord | None,
    wear_tolerance: float = WEAR_TOLERANCE,
) -> bool:
    """Check every descriptive attribute the fingerprint specifies."""
    if not fingerprint.specified_attributes():
        return True
    if description is None:
        return False

    if fingerprint.display_name is not None and fingerprint.display_name != description.display_name:
        return False
    if fingerprint.pattern_index is not None and fingerprint.pattern_index != description.pattern_index:
        return False
    if fingerprint.wear_float is not None:
        if description.wear_float is None:
            return False
        if abs(fingerprint.wear_float - description.wear_float) > wear_tolerance:
            return False
    return True


def _identity_matches(fingerprint: ItemFingerprint, asset: AssetRecord) -> bool:
    if asset.class_identifier != fingerprint.class_identifier:
        return False
    if fingerprint.instance_identifier is not None:
        if (asset.instance_identifier or NO_INSTANCE) != fingerprint.instance_identifier:
            return False
    return True


def resolve(
    pending: Iterable[ItemFingerprint],
    snapshot: InventorySnapshot,
    consumed: set[str] | None = None,
    wear_tolerance: float = WEAR_TOLERANCE,
    index: DescriptionIndex | None = None,
) -> list[Resolution]:
    """Resolve fingerprints in order against one snapshot.

    ``consumed`` holds handles already claimed; it is updated in place so a
    caller can thread one set through several calls. Unmatched fingerprints
    come back with ``asset=None`` and do not stop the batch.
    """
    consumed = consumed if consumed is not None else set()
    index = index if index is not None else DescriptionIndex(snapshot.descriptions)
    context_scope = snapshot.scope.context_id
    resolutions: list[Resolution] = []

    for fingerprint in pending:
        selected: AssetRecord | None = None
        for asset in snapshot.assets:
            if asset.handle in consumed or asset.context_scope != context_scope:
                continue
            if not _identity_matches(fingerprint, asset):
                continue
            description = index.find(asset.class_identifier, asset.instance_identifier)
            if attributes_match(fingerprint, description, wear_tolerance):
                selected = asset
                break

        if selected is None:
            logger.debug("No custody asset matches fingerprint %s", fingerprint.to_dict())
        else:
            consumed.add(selected.handle)
        resolutions.append(Resolution(fingerprint=fingerprint, asset=selected))

    return resolutions
