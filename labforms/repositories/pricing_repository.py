from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.database.models import Service, ServicePricing
from labforms.repositories.base_repository import BaseRepository

WORKING_SPACE_CATEGORY = "working_space"


class PricingRepository(BaseRepository[ServicePricing]):
    """Lookups against the live service pricing table."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ServicePricing)

    async def get_workspace_service(self) -> Optional[Service]:
        query = (
            select(Service)
            .where(Service.category == WORKING_SPACE_CATEGORY)
            .order_by(Service.name)
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_service(self, service_id: UUID, user_type: str) -> List[ServicePricing]:
        """All pricing rows of a service for one user type, newest first."""
        query = (
            select(ServicePricing)
            .where(
                ServicePricing.service_id == service_id,
                ServicePricing.user_type == user_type,
            )
            .order_by(ServicePricing.effective_from.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
