"""Tests for high-score persistence."""
import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mathcross.db import Base
from mathcross.errors import PersistenceUnavailable
from mathcross.highscore import HIGH_SCORE_KEY, HighScoreStore
from mathcross.models import KeyValue


async def _with_store(scenario, create_tables=True):
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    try:
        if create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        return await scenario(HighScoreStore(factory), factory)
    finally:
        await engine.dispose()


class TestHighScoreStore:
    """Tests for the key/value high-score row."""

    def test_load_missing_is_zero(self):
        async def scenario(store, factory):
            return await store.load()

        assert asyncio.run(_with_store(scenario)) == 0

    def test_save_then_load(self):
        async def scenario(store, factory):
            await store.save(120)
            return await store.load()

        assert asyncio.run(_with_store(scenario)) == 120

    def test_save_overwrites(self):
        async def scenario(store, factory):
            await store.save(120)
            await store.save(340)
            return await store.load()

        assert asyncio.run(_with_store(scenario)) == 340

    def test_stored_as_string_under_key(self):
        """The score is kept as a string under the fixed key."""
        async def scenario(store, factory):
            await store.save(90)
            async with factory() as db:
                row = await db.get(KeyValue, HIGH_SCORE_KEY)
                return row.value

        assert asyncio.run(_with_store(scenario)) == "90"

    def test_unparseable_value_is_zero(self):
        async def scenario(store, factory):
            async with factory() as db:
                db.add(KeyValue(key=HIGH_SCORE_KEY, value="lots"))
                await db.commit()
            return await store.load()

        assert asyncio.run(_with_store(scenario)) == 0

    def test_missing_table_raises(self):
        """Database failures surface as PersistenceUnavailable."""
        async def scenario(store, factory):
            with pytest.raises(PersistenceUnavailable):
                await store.load()
            with pytest.raises(PersistenceUnavailable):
                await store.save(10)

        asyncio.run(_with_store(scenario, create_tables=False))
