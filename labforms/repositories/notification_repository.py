from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.database.models import Notification
from labforms.repositories.base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """In-app notifications."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Notification)

    async def list_for_user(self, user_id: UUID) -> List[Notification]:
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
