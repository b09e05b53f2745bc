"""Tests for migration 001: verification tables.

Upgrades an empty test database to head, checks the tables and constraints
the store relies on, then downgrades back to base.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from profilelink.core.config import settings
from tests.conftest import TEST_DATABASE_URL

if TYPE_CHECKING:
    from alembic.config import Config
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

_MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

_TABLES = {
    "pending_verifications",
    "verified_links",
    "server_policies",
    "verification_audit_log",
}


# =============================================================================
# Helpers
# =============================================================================


async def _reset_schema(conn: AsyncConnection) -> None:
    """Drop and recreate the public schema."""
    await conn.execute(text("DROP SCHEMA public CASCADE"))
    await conn.execute(text("CREATE SCHEMA public"))


def _create_alembic_config() -> Config:
    """Create alembic Config without ini file.

    Avoids fileConfig() which disables existing loggers and breaks
    pytest's caplog fixture for tests running after migration tests.
    """
    from alembic.config import Config

    cfg = Config()
    cfg.set_main_option("script_location", str(_MIGRATIONS_DIR))
    return cfg


async def _run_alembic(action: str, revision: str) -> None:
    """Run an alembic command against the test database."""
    from alembic import command

    original = settings.database_name
    settings.database_name = f"{original}_test"
    try:
        await asyncio.to_thread(
            getattr(command, action), _create_alembic_config(), revision
        )
    finally:
        settings.database_name = original


async def _table_names(engine: AsyncEngine) -> set[str]:
    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT tablename FROM pg_tables WHERE schemaname = 'public'")
        )
        return {row[0] for row in result.fetchall()}


# =============================================================================
# Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def migration_engine():
    """Engine on an empty test schema; the schema is reset afterwards."""
    from tests.conftest import skip_if_no_postgres

    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await _reset_schema(conn)

    yield engine

    async with engine.begin() as conn:
        await _reset_schema(conn)
    await engine.dispose()


# =============================================================================
# Tests
# =============================================================================


class TestVerificationTablesMigration:
    """Upgrade and downgrade of 001_verification_tables."""

    async def test_upgrade_creates_tables(self, migration_engine) -> None:
        await _run_alembic("upgrade", "head")

        assert _TABLES <= await _table_names(migration_engine)

    async def test_one_pending_per_key(self, migration_engine) -> None:
        """The unique constraint that backs supersession exists."""
        await _run_alembic("upgrade", "head")

        async with migration_engine.connect() as conn:
            result = await conn.execute(
                text(
                    "SELECT conname FROM pg_constraint "
                    "WHERE conname = 'uq_pending_verifications_subject_server'"
                )
            )
            assert result.scalar_one_or_none() is not None

    async def test_downgrade_drops_tables(self, migration_engine) -> None:
        await _run_alembic("upgrade", "head")
        await _run_alembic("downgrade", "base")

        assert not (_TABLES & await _table_names(migration_engine))
