"""In-app notifications about generated documents."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from labforms.repositories.notification_repository import NotificationRepository
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

SERVICE_FORM_READY = "service_form_ready"


class ServiceFormNotifier:
    """Tells a booking owner that their service form is ready."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def notify(
        self,
        user_id: UUID,
        booking_id: UUID,
        form_id: UUID,
        form_number: str,
        valid_until: datetime,
        requires_working_area_agreement: bool,
        booking_reference: str = "",
    ) -> None:
        """Write a ``service_form_ready`` notification in its own transaction."""
        valid_until_text = valid_until.date().isoformat()
        message = f"Service form {form_number} is ready for download. Valid until {valid_until_text}."

        async with self.session_maker() as session:
            async with session.begin():
                await NotificationRepository(session).create(
                    user_id=user_id,
                    type=SERVICE_FORM_READY,
                    related_entity_type="service_form",
                    related_entity_id=str(form_id),
                    title="Service Form Ready",
                    message=message,
                )

        LOGGER.info(
            "Service form notification dispatched",
            extra={
                "user_id": str(user_id),
                "booking_id": str(booking_id),
                "booking_reference": booking_reference,
                "form_number": form_number,
                "requires_working_area_agreement": requires_working_area_agreement,
            }
        )
