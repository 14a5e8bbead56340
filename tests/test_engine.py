"""Tests for async engine and session factory helpers."""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from panel_adapter.adapters.engine import (
    create_async_engine_pooled,
    create_session_factory,
    normalize_database_url,
)


class TestNormalizeDatabaseUrl:
    """Verify driver scheme rewriting."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql+asyncpg://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("sqlite+aiosqlite:///panel.db", "sqlite+aiosqlite:///panel.db"),
        ],
    )
    def test_urls(self, url, expected):
        assert normalize_database_url(url) == expected


class TestEngine:
    """Verify engine creation defaults."""

    async def test_postgres_pool_defaults(self):
        engine = create_async_engine_pooled("postgres://u:p@localhost/db")
        try:
            assert isinstance(engine, AsyncEngine)
            assert engine.url.drivername == "postgresql+asyncpg"
            assert engine.pool.size() == 5
        finally:
            await engine.dispose()

    async def test_caller_overrides_defaults(self):
        engine = create_async_engine_pooled("postgresql://u:p@localhost/db", pool_size=2)
        try:
            assert engine.pool.size() == 2
        finally:
            await engine.dispose()

    async def test_sqlite_without_pool_settings(self, tmp_path):
        engine = create_async_engine_pooled(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
        try:
            assert engine.url.drivername == "sqlite+aiosqlite"
        finally:
            await engine.dispose()

    async def test_session_factory(self, tmp_path):
        factory = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
        assert isinstance(factory, async_sessionmaker)
        assert factory.kw["expire_on_commit"] is False
        await factory.kw["bind"].dispose()
