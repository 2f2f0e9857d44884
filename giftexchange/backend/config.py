"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ExchangeSettings:
    server_salt: str
    admin_token_hash: str | None
    database_url: str | None
    host: str
    port: int
    custody_account_id: str
    inventory_app_id: int
    inventory_context_id: str
    inventory_base_url: str
    pairing_strategy: str
    pairing_max_attempts: int
    min_interests: int
    log_level: str


def load_settings() -> ExchangeSettings:
    port_raw = os.getenv("GIFTEXCHANGE_PORT", "8000")
    return ExchangeSettings(
        server_salt=os.getenv("GIFTEXCHANGE_SERVER_SALT", "dev-salt"),
        admin_token_hash=os.getenv("GIFTEXCHANGE_ADMIN_TOKEN_HASH") or None,
        database_url=os.getenv("GIFTEXCHANGE_DATABASE_URL"),
        host=os.getenv("GIFTEXCHANGE_HOST", "127.0.0.1"),
        port=int(port_raw),
        custody_account_id=os.getenv("GIFTEXCHANGE_CUSTODY_ACCOUNT", ""),
        inventory_app_id=int(os.getenv("GIFTEXCHANGE_APP_ID", "730")),
        inventory_context_id=os.getenv("GIFTEXCHANGE_CONTEXT_ID", "2"),
        inventory_base_url=os.getenv("GIFTEXCHANGE_INVENTORY_URL", "https://steamcommunity.com"),
        pairing_strategy=os.getenv("GIFTEXCHANGE_PAIRING_STRATEGY", "rejection"),
        pairing_max_attempts=int(os.getenv("GIFTEXCHANGE_PAIRING_MAX_ATTEMPTS", "100")),
        min_interests=int(os.getenv("GIFTEXCHANGE_MIN_INTERESTS", "3")),
        log_level=os.getenv("GIFTEXCHANGE_LOG_LEVEL", "INFO").upper(),
    )
