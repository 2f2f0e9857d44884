"""Backend package for the gift exchange."""

from .config import ExchangeSettings, load_settings
from .errors import (
    AssignmentIntegrityError,
    GiftExchangeError,
    InsufficientParticipants,
    RedistributionInProgress,
    TransientFetchError,
)
from .fingerprint import extract
from .models import AssetRecord, InventorySnapshot, ItemFingerprint, Participant, TransferRequest
from .pairing import PairingStrategy, assign
from .reconcile import resolve
from .service import ExchangeContext, GiftExchangeService, build_context
from .store import InMemoryParticipantStore, ParticipantStore, PostgresParticipantStore, create_store

__all__ = [
    "assign",
    "AssetRecord",
    "AssignmentIntegrityError",
    "build_context",
    "create_store",
    "ExchangeContext",
    "ExchangeSettings",
    "extract",
    "GiftExchangeError",
    "GiftExchangeService",
    "InMemoryParticipantStore",
    "InsufficientParticipants",
    "InventorySnapshot",
    "ItemFingerprint",
    "load_settings",
    "PairingStrategy",
    "Participant",
    "ParticipantStore",
    "PostgresParticipantStore",
    "RedistributionInProgress",
    "resolve",
    "TransferRequest",
    "TransientFetchError",
]
