"""Apply SQL migrations to the configured PostgreSQL database.

Migrations are plain `.sql` files under `voicepay/db/migrations/`, applied in lexicographic order.
Applied migration filenames are tracked in the `schema_migrations` table.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import LiteralString, cast

import psycopg
from dotenv import load_dotenv

from voicepay.config.logging import configure_logging
from voicepay.db.pool import connect_utc, require_database_url

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_DROP_ALL = """
DROP TABLE IF EXISTS rate_limit_buckets;
DROP TABLE IF EXISTS voice_sessions;
DROP TABLE IF EXISTS transactions;
DROP TABLE IF EXISTS users;
DROP TABLE IF EXISTS schema_migrations;
"""


def _ensure_schema_migrations(conn: psycopg.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations
        (
            filename   TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
        prepare=False,
    )


def list_migration_files() -> list[Path]:
    if not MIGRATIONS_DIR.exists():
        raise RuntimeError(f"Migrations directory does not exist: {MIGRATIONS_DIR}")

    files = sorted(p for p in MIGRATIONS_DIR.iterdir() if p.is_file() and p.suffix == ".sql")
    if not files:
        raise RuntimeError(f"No .sql migration files found in {MIGRATIONS_DIR}")
    return files


def _get_applied_migrations(conn: psycopg.Connection) -> set[str]:
    rows = conn.execute("SELECT filename FROM schema_migrations", prepare=False).fetchall()
    return {r[0] for r in rows}


def apply_migration(conn: psycopg.Connection, filename: str, sql_text: str) -> None:
    with conn.transaction():
        conn.execute(cast(LiteralString, sql_text), prepare=False)
        conn.execute(
            "INSERT INTO schema_migrations(filename) VALUES (%s)",
            (filename,),
            prepare=False,
        )


def migrate(*, recreate: bool) -> list[str]:
    """Run pending migrations against `DATABASE_URL`; return the filenames applied."""

    load_dotenv(".env")
    database_url = require_database_url()

    applied_now: list[str] = []
    with connect_utc(database_url) as conn:
        if recreate:
            logger.warning("dropping all tables before migrating")
            conn.execute(_DROP_ALL, prepare=False)

        _ensure_schema_migrations(conn)
        applied = _get_applied_migrations(conn)

        for file_path in list_migration_files():
            if file_path.name in applied:
                continue

            apply_migration(conn, file_path.name, file_path.read_text(encoding="utf-8"))
            logger.info("migration applied file=%s", file_path.name)
            applied_now.append(file_path.name)

    return applied_now


def main() -> None:
    """CLI entry point for applying migrations."""

    parser = argparse.ArgumentParser(description="Apply SQL migrations to Postgres.")
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Drop existing tables and re-apply all migrations (destructive).",
    )
    args = parser.parse_args()

    configure_logging()
    migrate(recreate=args.recreate)


if __name__ == "__main__":
    main()
