"""
Unit tests for the error taxonomy and transaction scope error translation.
"""

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from training_assets.db.database import _get_async_url, async_session_scope, make_session_factory
from training_assets.errors import (
    CircularReferenceError,
    NotFoundError,
    TrainingAssetError,
    TransientStoreError,
    TypeMismatchError,
    ValidationFailure,
)


class TestErrorTaxonomy:
    def test_not_found_message(self):
        error = NotFoundError("Material", 42)
        assert str(error) == "Material 42 not found"
        assert error.entity_id == 42

    def test_circular_reference_is_type_mismatch(self):
        error = CircularReferenceError(1, 2)
        assert isinstance(error, TypeMismatchError)
        assert error.parent_id == 1
        assert error.child_id == 2

    def test_validation_failure_defaults_errors(self):
        assert ValidationFailure("bad payload").errors == ["bad payload"]

    def test_transient_error_hides_detail(self):
        error = TransientStoreError("create material")
        assert "create material" in str(error)
        assert isinstance(error, TrainingAssetError)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql+psycopg2://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("sqlite+aiosqlite://", "sqlite+aiosqlite://"),
    ],
)
def test_async_url(url, expected):
    assert _get_async_url(url) == expected


class TestSessionScope:
    @pytest_asyncio.fixture
    async def factory(self):
        engine = create_async_engine(
            "sqlite+aiosqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
        async with engine.begin() as conn:
            await conn.execute(text("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)"))
        yield make_session_factory(engine)
        await engine.dispose()

    async def _count(self, factory):
        async with async_session_scope(factory) as session:
            return await session.scalar(text("SELECT COUNT(*) FROM notes"))

    @pytest.mark.asyncio
    async def test_commits_on_success(self, factory):
        async with async_session_scope(factory) as session:
            await session.execute(text("INSERT INTO notes (body) VALUES ('kept')"))
        assert await self._count(factory) == 1

    @pytest.mark.asyncio
    async def test_domain_error_rolls_back_unchanged(self, factory):
        with pytest.raises(NotFoundError):
            async with async_session_scope(factory) as session:
                await session.execute(text("INSERT INTO notes (body) VALUES ('lost')"))
                raise NotFoundError("Material", 1)
        assert await self._count(factory) == 0

    @pytest.mark.asyncio
    async def test_store_error_becomes_transient(self, factory):
        with pytest.raises(TransientStoreError) as exc_info:
            async with async_session_scope(factory, "write notes") as session:
                await session.execute(text("INSERT INTO notes (body) VALUES ('lost')"))
                await session.execute(text("INSERT INTO missing_table VALUES (1)"))
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert "missing_table" not in str(exc_info.value)
        assert await self._count(factory) == 0
