"""Best-score persistence: a single key/value row."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mathcross.errors import PersistenceUnavailable
from mathcross.models import KeyValue

logger = logging.getLogger(__name__)

HIGH_SCORE_KEY = "mathCrosswordHighScore"


class HighScoreStore:
    """Reads and writes the high score as a string under HIGH_SCORE_KEY."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], key: str = HIGH_SCORE_KEY):
        self._session_factory = session_factory
        self.key = key

    async def load(self) -> int:
        """Return the stored high score, or 0 if none is stored."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(KeyValue).where(KeyValue.key == self.key))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"Could not read {self.key}: {e}") from e

        if not row:
            return 0
        try:
            return int(row.value)
        except ValueError:
            logger.warning(f"Ignoring unparseable {self.key} value: {row.value!r}")
            return 0

    async def save(self, score: int) -> None:
        try:
            async with self._session_factory() as db:
                row = await db.get(KeyValue, self.key)
                if row:
                    row.value = str(score)
                else:
                    db.add(KeyValue(key=self.key, value=str(score)))
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"Could not write {self.key}: {e}") from e
