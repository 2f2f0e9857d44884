"""Apply SQL schema for the participant registry on PostgreSQL."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Callable

from giftexchange.backend.config import load_settings

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("db_schema.sql")


def load_schema() -> str:
    return SCHEMA_PATH.read_text(encoding="utf-8")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Create or update the participant registry tables")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--print-sql", action="store_true", help="print the schema instead of applying it")
    parser.add_argument("--log-level", default=settings.log_level)
    return parser.parse_args(argv)


def apply_schema(database_url: str, schema_sql: str, connect: Callable[[str], Any] | None = None) -> None:
    """Run the schema in one transaction. ``connect`` defaults to ``psycopg.connect``."""
    if connect is None:
        import psycopg

        connect = psycopg.connect

    with connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
        conn.commit()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    schema_sql = load_schema()

    if args.print_sql:
        print(schema_sql)
        return 0

    if not args.database_url:
        raise RuntimeError("GIFTEXCHANGE_DATABASE_URL or --database-url is required for migration")

    apply_schema(args.database_url, schema_sql)
    logger.info("Applied participant registry schema from %s", SCHEMA_PATH.name)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
