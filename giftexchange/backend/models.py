"""Domain models for participants, item fingerprints and custody inventory."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from giftexchange.backend.errors import InvalidObservation

# Steam reports "0" for items without an instance id.
NO_INSTANCE = "0"

DESCRIPTIVE_ATTRIBUTES = ("display_name", "pattern_index", "wear_float")

_FINGERPRINT_KEYS = {
    "class_identifier": "classIdentifier",
    "instance_identifier": "instanceIdentifier",
    "display_name": "displayName",
    "pattern_index": "patternIndex",
    "wear_float": "wearFloat",
}


def normalize_pattern_index(value: Any) -> int:
    """Coerce an observed pattern index, rejecting non-integral values."""
    if isinstance(value, bool):
        raise ValueError(f"pattern index must be an integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"pattern index must be an integer, got {value!r}")
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    return int(value)


def normalize_wear_float(value: Any) -> float:
    """Coerce an observed wear value. Wear is a finite number in [0, 1]."""
    if isinstance(value, bool):
        raise ValueError(f"wear must be a number, got {value!r}")
    wear = float(value)
    if not math.isfinite(wear) or not 0.0 <= wear <= 1.0:
        raise ValueError(f"wear must be a finite number in [0, 1], got {value!r}")
    return wear


@dataclass(frozen=True)
class ItemFingerprint:
    """Durable identity of a received item.

    ``None`` marks an attribute the observation did not expose. It is never
    a value: ``pattern_index=0`` and ``wear_float=0.0`` are concrete values
    and take part in matching, an absent attribute does not.
    """

    class_identifier: str
    instance_identifier: str | None = None
    display_name: str | None = None
    pattern_index: int | None = None
    wear_float: float | None = None

    def specified_attributes(self) -> tuple[str, ...]:
        return tuple(name for name in DESCRIPTIVE_ATTRIBUTES if getattr(self, name) is not None)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for attribute, key in _FINGERPRINT_KEYS.items():
            value = getattr(self, attribute)
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ItemFingerprint":
        pattern_index = payload.get("patternIndex")
        wear_float = payload.get("wearFloat")
        instance_identifier = payload.get("instanceIdentifier")
        try:
            pattern_index = normalize_pattern_index(pattern_index) if pattern_index is not None else None
            wear_float = normalize_wear_float(wear_float) if wear_float is not None else None
        except (TypeError, ValueError) as exc:
            raise InvalidObservation(str(exc)) from exc
        return cls(
            class_identifier=str(payload["classIdentifier"]),
            instance_identifier=str(instance_identifier) if instance_identifier is not None else None,
            display_name=payload.get("displayName"),
            pattern_index=pattern_index,
            wear_float=wear_float,
        )


@dataclass
class Participant:
    id: str
    display_name: str
    trade_link: str | None = None
    steam_id64: str | None = None
    interests: list[str] = field(default_factory=list)
    assigned_recipient_id: str | None = None
    received_items: list[ItemFingerprint] = field(default_factory=list)

    @property
    def has_destination(self) -> bool:
        return bool(self.trade_link)


@dataclass(frozen=True)
class InventoryScope:
    owner_id: str
    app_id: int
    context_id: str


@dataclass(frozen=True)
class AssetRecord:
    handle: str
    class_identifier: str
    instance_identifier: str | None
    context_scope: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "classIdentifier": self.class_identifier,
            "instanceIdentifier": self.instance_identifier,
            "contextScope": self.context_scope,
        }


@dataclass(frozen=True)
class DescriptionRecord:
    class_identifier: str
    instance_identifier: str
    display_name: str | None = None
    pattern_index: int | None = None
    wear_float: float | None = None


@dataclass(frozen=True)
class InventorySnapshot:
    """Point-in-time view of the custody account. Handles expire on transfer."""

    scope: InventoryScope
    assets: list[AssetRecord]
    descriptions: dict[tuple[str, str], DescriptionRecord]
    fetched_at: datetime


@dataclass(frozen=True)
class Resolution:
    fingerprint: ItemFingerprint
    asset: AssetRecord | None

    @property
    def matched(self) -> bool:
        return self.asset is not None


@dataclass(frozen=True)
class TransferRequest:
    recipient_id: str
    sender_id: str
    destination: str
    items: list[AssetRecord]

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipientId": self.recipient_id,
            "senderId": self.sender_id,
            "destination": self.destination,
            "items": [item.to_dict() for item in self.items],
        }


class IssueKind(str, enum.Enum):
    UNMATCHED_ITEM = "unmatched_item"
    MISSING_DESTINATION = "missing_destination"
    NOTHING_TO_SEND = "nothing_to_send"


@dataclass(frozen=True)
class RedistributionIssue:
    kind: IssueKind
    participant_id: str
    detail: str
    fingerprint: ItemFingerprint | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind.value,
            "participantId": self.participant_id,
            "detail": self.detail,
        }
        if self.fingerprint is not None:
            payload["fingerprint"] = self.fingerprint.to_dict()
        return payload


@dataclass(frozen=True)
class RedistributionResult:
    transfers: list[TransferRequest]
    issues: list[RedistributionIssue]
    snapshot_fetched_at: datetime | None = None


@dataclass(frozen=True)
class RunSummary:
    finished_at: datetime
    transfer_count: int
    item_count: int
    issue_count: int


@dataclass(frozen=True)
class StatusReport:
    participant_count: int
    assigned_count: int
    pending_item_count: int
    without_destination: list[str]
    redistribution_state: str
    last_run: RunSummary | None


@dataclass(frozen=True)
class RecipientBriefing:
    """What a giver is told about their recipient after a roll."""

    giver_id: str
    recipient_display_name: str
    recipient_interests: tuple[str, ...]
    custody_account_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "giverId": self.giver_id,
            "recipientDisplayName": self.recipient_display_name,
            "recipientInterests": list(self.recipient_interests),
            "custodyAccountId": self.custody_account_id,
        }
