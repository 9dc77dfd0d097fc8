from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.database.models import NumberSequence
from labforms.repositories.base_repository import BaseRepository


class SequenceRepository(BaseRepository[NumberSequence]):
    """Named counters incremented under a row lock."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, NumberSequence)

    async def get_for_update(self, name: str) -> Optional[NumberSequence]:
        """Load a counter and lock its row until the transaction ends."""
        query = select(NumberSequence).where(NumberSequence.name == name).with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def insert(self, name: str, last_value: int) -> NumberSequence:
        """Create a counter. Raises IntegrityError if another writer got there first."""
        return await self.create(name=name, last_value=last_value)

    async def advance(self, sequence: NumberSequence) -> int:
        sequence.last_value = sequence.last_value + 1
        await self.session.flush()
        return sequence.last_value
