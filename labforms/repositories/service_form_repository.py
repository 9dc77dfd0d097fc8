from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.database.models import ServiceForm
from labforms.repositories.base_repository import BaseRepository
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

STATUS_GENERATED = "generated"
STATUS_SUPERSEDED = "superseded"


class ServiceFormRepository(BaseRepository[ServiceForm]):
    """Repository for versioned ServiceForm records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ServiceForm)

    async def get_first_for_booking(self, booking_id: UUID) -> Optional[ServiceForm]:
        """Return the earliest form of a booking, live or superseded."""
        query = (
            select(ServiceForm)
            .where(ServiceForm.booking_id == booking_id)
            .order_by(ServiceForm.generated_at.asc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_live_for_booking(self, booking_id: UUID) -> Optional[ServiceForm]:
        """Return the form currently in effect for a booking, if any."""
        query = (
            select(ServiceForm)
            .where(
                ServiceForm.booking_id == booking_id,
                ServiceForm.status == STATUS_GENERATED,
            )
            .order_by(ServiceForm.version.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_numbers_with_prefix(self, prefix: str) -> List[str]:
        """List every form number starting with ``prefix``.

        Args:
            prefix: Literal prefix such as ``SF-2025-``

        Returns:
            Matching form numbers in no particular order
        """
        query = select(ServiceForm.form_number).where(
            ServiceForm.form_number.startswith(prefix, autoescape=True)
        )
        try:
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error scanning form numbers with prefix {prefix}: {str(e)}",
                exc_info=True
            )
            raise

    async def list_forms(
        self,
        booking_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[ServiceForm]:
        """List forms newest first, optionally filtered by booking and status."""
        query = self._apply_filters(
            select(ServiceForm), {"booking_id": booking_id, "status": status}
        )
        query = query.order_by(ServiceForm.generated_at.desc(), ServiceForm.version.desc())
        result = await self.session.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def supersede_for_booking(self, booking_id: UUID, superseded_at: datetime) -> int:
        """Retire every live form of a booking.

        Number, version and totals are kept for the audit trail; the document
        pointers are cleared because the documents they name are being
        replaced.

        Returns:
            Number of rows superseded
        """
        stmt = (
            update(ServiceForm)
            .where(
                ServiceForm.booking_id == booking_id,
                ServiceForm.status == STATUS_GENERATED,
            )
            .values(
                status=STATUS_SUPERSEDED,
                superseded_at=superseded_at,
                service_form_unsigned_url=None,
                service_form_signed_url=None,
                working_area_agreement_unsigned_url=None,
                working_area_agreement_signed_url=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
