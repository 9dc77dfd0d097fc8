from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from labforms.database.models import BookingRequest, BookingServiceItem, WorkspaceBooking
from labforms.repositories.base_repository import BaseRepository
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BookingRepository(BaseRepository[BookingRequest]):
    """Read access to bookings and the row lock used while swapping documents."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, BookingRequest)

    async def get_snapshot(self, booking_id: UUID) -> Optional[BookingRequest]:
        """Load a booking with everything the document composer reads.

        Owner, service items with their services, workspace reservations with
        add-ons, and prior service forms are eagerly loaded so the returned
        object can be used after the session closes.

        Args:
            booking_id: Booking ID

        Returns:
            The booking if found, None otherwise
        """
        query = (
            select(BookingRequest)
            .where(BookingRequest.id == booking_id)
            .options(
                selectinload(BookingRequest.user),
                selectinload(BookingRequest.service_items).selectinload(BookingServiceItem.service),
                selectinload(BookingRequest.workspace_bookings).selectinload(WorkspaceBooking.add_ons),
                selectinload(BookingRequest.service_forms),
            )
        )
        try:
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error loading booking snapshot {booking_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def lock_for_update(self, booking_id: UUID) -> Optional[UUID]:
        """Take a row lock on the booking for the rest of the transaction.

        Concurrent document swaps for the same booking queue behind this lock.

        Returns:
            The booking ID if the row exists, None otherwise
        """
        query = (
            select(BookingRequest.id)
            .where(BookingRequest.id == booking_id)
            .with_for_update()
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
