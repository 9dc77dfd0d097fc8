from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.database.models import FacilityDocumentConfig
from labforms.repositories.base_repository import BaseRepository

SINGLETON_KEY = "default"


class DocumentConfigRepository(BaseRepository[FacilityDocumentConfig]):
    """Access to the singleton facility document configuration row."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, FacilityDocumentConfig)

    async def get_singleton(self) -> Optional[FacilityDocumentConfig]:
        query = select(FacilityDocumentConfig).where(
            FacilityDocumentConfig.singleton_key == SINGLETON_KEY
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
