"""Redistribution orchestrator: turn custody ledgers into outbound transfers."""

from __future__ import annotations

import enum
import logging
import threading
from datetime import datetime, timezone

from giftexchange.backend.errors import RedistributionInProgress, TransientFetchError
from giftexchange.backend.inventory import InventorySource
from giftexchange.backend.models import (
    InventoryScope,
    InventorySnapshot,
    IssueKind,
    Participant,
    RedistributionIssue,
    RedistributionResult,
    RunSummary,
    TransferRequest,
)
from giftexchange.backend.reconcile import DescriptionIndex, resolve
from giftexchange.backend.store import ParticipantStore

logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    IDLE = "idle"
    FETCHING_SNAPSHOT = "fetching_snapshot"
    RESOLVING = "resolving"
    EMITTING = "emitting"


def plan_redistribution(participants: list[Participant], snapshot: InventorySnapshot) -> RedistributionResult:
    """Resolve every sender's ledger against one snapshot.

    One consumed-handle set spans all senders, so no asset can be claimed
    for two transfers in the same run.
    """
    by_id = {participant.id: participant for participant in participants}
    index = DescriptionIndex(snapshot.descriptions)
    consumed: set[str] = set()
    transfers: list[TransferRequest] = []
    issues: list[RedistributionIssue] = []

    for sender in participants:
        if sender.assigned_recipient_id is None or not sender.received_items:
            continue

        recipient = by_id.get(sender.assigned_recipient_id)
        if recipient is None or not recipient.has_destination:
            issues.append(
                RedistributionIssue(
                    kind=IssueKind.MISSING_DESTINATION,
                    participant_id=sender.id,
                    detail=f"Recipient {sender.assigned_recipient_id} has no trade link",
                )
            )
            continue

        resolutions = resolve(sender.received_items, snapshot, consumed=consumed, index=index)
        items = [resolution.asset for resolution in resolutions if resolution.asset is not None]
        for resolution in resolutions:
            if not resolution.matched:
                issues.append(
                    RedistributionIssue(
                        kind=IssueKind.UNMATCHED_ITEM,
                        participant_id=sender.id,
                        detail=f"No custody asset matches class {resolution.fingerprint.class_identifier}",
                        fingerprint=resolution.fingerprint,
                    )
                )

        if not items:
            issues.append(
                RedistributionIssue(
                    kind=IssueKind.NOTHING_TO_SEND,
                    participant_id=sender.id,
                    detail=f"Nothing to send to {recipient.id}",
                )
            )
            continue

        transfers.append(
            TransferRequest(
                recipient_id=recipient.id,
                sender_id=sender.id,
                destination=recipient.trade_link or "",
                items=items,
            )
        )

    return RedistributionResult(transfers=transfers, issues=issues, snapshot_fetched_at=snapshot.fetched_at)


class RedistributionOrchestrator:
    """Runs one redistribution at a time against a freshly fetched snapshot.

    The orchestrator reads participants but never writes them, so an
    aborted run leaves ledgers and assignments exactly as they were.
    """

    def __init__(self, store: ParticipantStore, inventory: InventorySource, scope: InventoryScope) -> None:
        self._store = store
        self._inventory = inventory
        self._scope = scope
        self._guard = threading.Lock()
        self._state = RunState.IDLE
        self._last_run: RunSummary | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def last_run(self) -> RunSummary | None:
        return self._last_run

    async def run(self) -> RedistributionResult:
        if not self._guard.acquire(blocking=False):
            raise RedistributionInProgress()
        try:
            self._state = RunState.FETCHING_SNAPSHOT
            try:
                snapshot = await self._inventory.fetch_snapshot(self._scope)
            except TransientFetchError:
                logger.error("Redistribution aborted: custody snapshot unavailable")
                raise
            except Exception as exc:
                logger.exception("Redistribution aborted: inventory source failed")
                raise TransientFetchError(f"Inventory source failed: {exc}") from exc

            self._state = RunState.RESOLVING
            participants = self._store.list_participants()
            result = plan_redistribution(participants, snapshot)

            self._state = RunState.EMITTING
            for transfer in result.transfers:
                logger.info(
                    "Transfer %d item(s) from %s to %s",
                    len(transfer.items),
                    transfer.sender_id,
                    transfer.recipient_id,
                )
            for issue in result.issues:
                logger.warning("%s for %s: %s", issue.kind.value, issue.participant_id, issue.detail)

            self._last_run = RunSummary(
                finished_at=datetime.now(timezone.utc),
                transfer_count=len(result.transfers),
                item_count=sum(len(transfer.items) for transfer in result.transfers),
                issue_count=len(result.issues),
            )
            return result
        finally:
            self._state = RunState.IDLE
            self._guard.release()
