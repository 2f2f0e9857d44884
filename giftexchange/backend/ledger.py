"""Custody ledger: append-only record of items each participant sent in."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from giftexchange.backend.errors import UnknownParticipant
from giftexchange.backend.models import ItemFingerprint, Participant
from giftexchange.backend.store import ParticipantStore

logger = logging.getLogger(__name__)


@dataclass
class CustodyLedger:
    store: ParticipantStore

    def _require(self, participant_id: str) -> Participant:
        participant = self.store.get_participant(participant_id)
        if participant is None:
            raise UnknownParticipant(participant_id)
        return participant

    def record(self, participant_id: str, fingerprints: Iterable[ItemFingerprint]) -> list[ItemFingerprint]:
        """Append fingerprints in arrival order and return the full ledger."""
        participant = self._require(participant_id)
        added = list(fingerprints)
        participant.received_items.extend(added)
        self.store.save(participant)
        logger.info(
            "Recorded %d item(s) for participant %s (%d held)",
            len(added),
            participant_id,
            len(participant.received_items),
        )
        return list(participant.received_items)

    def pending(self, participant_id: str) -> list[ItemFingerprint]:
        return list(self._require(participant_id).received_items)
