"""Persistence interfaces and implementations for participant records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Protocol

from giftexchange.backend.models import ItemFingerprint, Participant

logger = logging.getLogger(__name__)


class ParticipantStore(Protocol):
    def list_participants(self) -> list[Participant]:
        """Return all participants in registration order."""

    def get_participant(self, participant_id: str) -> Participant | None:
        """Return one participant or None when unknown."""

    def save(self, participants: Participant | Iterable[Participant]) -> None:
        """Insert or replace one participant or a batch of them atomically."""

    def delete_all(self) -> None:
        """Remove every participant record."""


def participant_to_record(participant: Participant) -> dict[str, Any]:
    return {
        "id": participant.id,
        "displayName": participant.display_name,
        "tradeLink": participant.trade_link,
        "steamId64": participant.steam_id64,
        "interests": list(participant.interests),
        "assignedRecipientId": participant.assigned_recipient_id,
        "receivedItems": [item.to_dict() for item in participant.received_items],
    }


def participant_from_record(record: dict[str, Any]) -> Participant:
    """Build a participant from a stored record, accepting older bot layouts."""
    participant_id = str(record.get("id", record.get("userId")))
    received_items = [ItemFingerprint.from_dict(item) for item in record.get("receivedItems", [])]

    legacy_class_ids = record.get("sentItemClassIDs") or []
    received_items.extend(ItemFingerprint(class_identifier=str(class_id)) for class_id in legacy_class_ids)

    legacy_asset_ids = record.get("sentItemAssetIDs") or []
    if legacy_asset_ids:
        logger.warning(
            "Dropping %d legacy asset handles for participant %s; they cannot be re-identified",
            len(legacy_asset_ids),
            participant_id,
        )

    steam_id64 = record.get("steamId64", record.get("steamID64"))
    return Participant(
        id=participant_id,
        display_name=record.get("displayName", record.get("name", "")),
        trade_link=record.get("tradeLink", record.get("tradelink")),
        steam_id64=str(steam_id64) if steam_id64 is not None else None,
        interests=list(record.get("interests", [])),
        assigned_recipient_id=record.get("assignedRecipientId", record.get("assigned")),
        received_items=received_items,
    )


def _as_batch(participants: Participant | Iterable[Participant]) -> list[Participant]:
    if isinstance(participants, Participant):
        return [participants]
    return list(participants)


@dataclass
class InMemoryParticipantStore:
    def __post_init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def list_participants(self) -> list[Participant]:
        return [participant_from_record(record) for record in self._records.values()]

    def get_participant(self, participant_id: str) -> Participant | None:
        record = self._records.get(participant_id)
        if record is None:
            return None
        return participant_from_record(record)

    def save(self, participants: Participant | Iterable[Participant]) -> None:
        for participant in _as_batch(participants):
            self._records[participant.id] = participant_to_record(participant)

    def delete_all(self) -> None:
        self._records.clear()


@dataclass
class PostgresParticipantStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def list_participants(self) -> list[Participant]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT record FROM participants ORDER BY created_at, id")
                rows = cur.fetchall()
        return [participant_from_record(_load_record(row[0])) for row in rows]

    def get_participant(self, participant_id: str) -> Participant | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT record FROM participants WHERE id = %s", (participant_id,))
                row = cur.fetchone()
        if row is None:
            return None
        return participant_from_record(_load_record(row[0]))

    def save(self, participants: Participant | Iterable[Participant]) -> None:
        batch = _as_batch(participants)
        if not batch:
            return
        started = datetime.now(timezone.utc)
        with self._connect() as conn:
            with conn.cursor() as cur:
                for offset, participant in enumerate(batch):
                    # Rows in one batch get strictly increasing stamps so that
                    # ordering by created_at keeps the batch order.
                    stamp = started + timedelta(microseconds=offset)
                    cur.execute(
                        """
                        INSERT INTO participants (id, record, created_at, updated_at)
                        VALUES (%s, %s::jsonb, %s, %s)
                        ON CONFLICT (id) DO UPDATE
                        SET record = EXCLUDED.record, updated_at = EXCLUDED.updated_at
                        """,
                        (participant.id, json.dumps(participant_to_record(participant)), stamp, stamp),
                    )
            conn.commit()

    def delete_all(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM participants")
            conn.commit()


def _load_record(raw: Any) -> dict[str, Any]:
    return raw if isinstance(raw, dict) else json.loads(raw)


def create_store(database_url: str | None) -> ParticipantStore:
    if database_url:
        return PostgresParticipantStore(database_url=database_url)
    return InMemoryParticipantStore()
