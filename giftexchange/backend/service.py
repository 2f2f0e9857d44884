"""Exchange operations exposed to a dispatch layer.

All collaborators travel in an explicit ``ExchangeContext``; nothing here
reaches for module-level clients.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from giftexchange.backend.config import ExchangeSettings, load_settings
from giftexchange.backend.contacts import extract_steam_id64
from giftexchange.backend.errors import (
    DuplicateSignup,
    InvalidSignup,
    InvalidTradeLink,
    NoAssignment,
    UnknownParticipant,
)
from giftexchange.backend.fingerprint import extract_many
from giftexchange.backend.inventory import InventorySource, SteamInventoryClient
from giftexchange.backend.ledger import CustodyLedger
from giftexchange.backend.models import (
    InventoryScope,
    ItemFingerprint,
    Participant,
    RecipientBriefing,
    RedistributionResult,
    StatusReport,
)
from giftexchange.backend.orchestrator import RedistributionOrchestrator
from giftexchange.backend.pairing import assign, cycles
from giftexchange.backend.store import ParticipantStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class ExchangeContext:
    store: ParticipantStore
    inventory: InventorySource
    settings: ExchangeSettings
    rng: random.Random = field(default_factory=random.Random)

    @property
    def scope(self) -> InventoryScope:
        return InventoryScope(
            owner_id=self.settings.custody_account_id,
            app_id=self.settings.inventory_app_id,
            context_id=self.settings.inventory_context_id,
        )


def build_context(settings: ExchangeSettings | None = None) -> ExchangeContext:
    settings = settings if settings is not None else load_settings()
    return ExchangeContext(
        store=create_store(settings.database_url),
        inventory=SteamInventoryClient(base_url=settings.inventory_base_url),
        settings=settings,
    )


class GiftExchangeService:
    def __init__(self, context: ExchangeContext) -> None:
        self._context = context
        self._ledger = CustodyLedger(context.store)
        self._orchestrator = RedistributionOrchestrator(
            store=context.store,
            inventory=context.inventory,
            scope=context.scope,
        )

    @property
    def context(self) -> ExchangeContext:
        return self._context

    def signup(
        self,
        participant_id: str,
        display_name: str,
        trade_link: str,
        interests: Iterable[str],
    ) -> Participant:
        store = self._context.store
        interests = [interest.strip() for interest in interests if interest.strip()]
        if len(interests) < self._context.settings.min_interests:
            raise InvalidSignup(f"At least {self._context.settings.min_interests} interests are required")

        steam_id64 = extract_steam_id64(trade_link)
        if steam_id64 is None:
            raise InvalidTradeLink("Trade link does not contain a partner id")

        for existing in store.list_participants():
            if existing.id == participant_id:
                raise DuplicateSignup(f"Participant {participant_id} has already signed up")
            if existing.steam_id64 == steam_id64:
                raise DuplicateSignup(f"Steam account {steam_id64} is already registered")

        participant = Participant(
            id=participant_id,
            display_name=display_name,
            trade_link=trade_link,
            steam_id64=steam_id64,
            interests=interests,
        )
        store.save(participant)
        logger.info("Participant %s signed up", participant_id)
        return participant

    def get_participant(self, participant_id: str) -> Participant:
        participant = self._context.store.get_participant(participant_id)
        if participant is None:
            raise UnknownParticipant(participant_id)
        return participant

    def roll_assignment(self, ids: Iterable[str] | None = None) -> dict[str, str]:
        """Draw a new round and persist it, replacing every previous assignment."""
        participants = self._context.store.list_participants()
        known = {participant.id for participant in participants}
        selected = set(ids) if ids is not None else known
        unknown = sorted(selected - known)
        if unknown:
            raise UnknownParticipant(unknown[0])

        settings = self._context.settings
        mapping = assign(
            selected,
            strategy=settings.pairing_strategy,
            rng=self._context.rng,
            max_attempts=settings.pairing_max_attempts,
        )

        for participant in participants:
            participant.assigned_recipient_id = mapping.get(participant.id)
        self._context.store.save(participants)
        logger.info("Rolled %d participants into %d gift cycle(s)", len(mapping), len(cycles(mapping)))
        return mapping

    def recipient_briefing(self, participant_id: str) -> RecipientBriefing:
        """Tell a giver who they are buying for, without exposing the recipient's account."""
        giver = self.get_participant(participant_id)
        if giver.assigned_recipient_id is None:
            raise NoAssignment(participant_id)
        recipient = self._context.store.get_participant(giver.assigned_recipient_id)
        if recipient is None:
            logger.warning("Participant %s is assigned to a removed participant", participant_id)
            raise NoAssignment(participant_id)
        return RecipientBriefing(
            giver_id=giver.id,
            recipient_display_name=recipient.display_name,
            recipient_interests=tuple(recipient.interests),
            custody_account_id=self._context.settings.custody_account_id,
        )

    def record_receipt(
        self,
        participant_id: str,
        observed_items: Iterable[Mapping[str, Any]],
    ) -> list[ItemFingerprint]:
        fingerprints = extract_many(observed_items)
        self._ledger.record(participant_id, fingerprints)
        return fingerprints

    def record_receipt_from_account(
        self,
        steam_id64: str,
        observed_items: Iterable[Mapping[str, Any]],
    ) -> list[ItemFingerprint]:
        """Record items from a custody event identified by the sending account."""
        for participant in self._context.store.list_participants():
            if participant.steam_id64 == steam_id64:
                return self.record_receipt(participant.id, observed_items)
        logger.warning("Received items from unregistered account %s", steam_id64)
        raise UnknownParticipant(steam_id64)

    async def run_redistribution(self) -> RedistributionResult:
        return await self._orchestrator.run()

    def status_report(self) -> StatusReport:
        participants = self._context.store.list_participants()
        return StatusReport(
            participant_count=len(participants),
            assigned_count=sum(1 for p in participants if p.assigned_recipient_id is not None),
            pending_item_count=sum(len(p.received_items) for p in participants),
            without_destination=[p.id for p in participants if not p.has_destination],
            redistribution_state=self._orchestrator.state.value,
            last_run=self._orchestrator.last_run,
        )

    def reset(self, clear_participants: bool = False) -> None:
        store = self._context.store
        if clear_participants:
            store.delete_all()
            logger.info("All participants removed")
            return
        participants = store.list_participants()
        for participant in participants:
            participant.assigned_recipient_id = None
            participant.received_items = []
        store.save(participants)
        logger.info("Cleared assignments and ledgers for %d participants", len(participants))
