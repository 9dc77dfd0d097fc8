"""Atomic swap of a booking's document set, and cleanup after it.

Storage has no transactions, so a generation attempt is a commit-then-cleanup
saga:

1. new objects are uploaded before anything is written to the database;
2. one database transaction retires the old document rows and inserts the
   new ones together with the service form and an audit entry;
3. once that transaction has committed, the retired objects are deleted
   from storage on a best-effort basis.

The database is the source of truth. A failed transaction leaves the new
uploads behind as orphans; they are logged for the external sweep and never
deleted inline, since a commit whose outcome is unknown may have succeeded.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labforms.core.exceptions import (
    AppError,
    BookingNotFoundError,
    DocumentCommitError,
    FormsAlreadyGeneratedError,
)
from labforms.database.models import ServiceForm
from labforms.repositories.audit_log_repository import AuditLogRepository
from labforms.repositories.booking_document_repository import BookingDocumentRepository
from labforms.repositories.booking_repository import BookingRepository
from labforms.repositories.service_form_repository import STATUS_GENERATED, ServiceFormRepository
from labforms.schemas.documents import (
    FORM_DOCUMENT_TYPES,
    CommitOutcome,
    ComposedForm,
    GenerationOperation,
    ProductionResult,
)
from labforms.services.numbering.number_allocator import AllocatedNumber
from labforms.services.storage_service import BaseBlobStore
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

AUDIT_ENTITY = "service_form"
AUDIT_ACTIONS = {
    GenerationOperation.INITIAL: "GENERATE_FORM",
    GenerationOperation.REGENERATE: "REGENERATE_FORM",
}


class ConsistencyCoordinator:
    """Commits produced artifacts and cleans up the ones they replace."""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        blob_store: BaseBlobStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_maker = session_maker
        self.blob_store = blob_store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def commit(
        self,
        operation: GenerationOperation,
        booking_id: UUID,
        actor_id: str,
        allocated: AllocatedNumber,
        composed: ComposedForm,
        production: ProductionResult,
        valid_until: datetime,
        facility_lab: str,
    ) -> CommitOutcome:
        """Swap the booking's document set in a single transaction.

        Raises:
            BookingNotFoundError: If the booking disappeared since it was read
            FormsAlreadyGeneratedError: If an initial generation lost a race
                with another one
            DocumentCommitError: If the transaction failed for any other reason
        """
        new_keys = [artifact.key for artifact in production.artifacts]

        try:
            async with self.session_maker() as session:
                async with session.begin():
                    outcome = await self._swap(
                        session,
                        operation=operation,
                        booking_id=booking_id,
                        actor_id=actor_id,
                        allocated=allocated,
                        composed=composed,
                        production=production,
                        valid_until=valid_until,
                        facility_lab=facility_lab,
                    )
        except AppError:
            self._log_orphans(booking_id, allocated.number, new_keys)
            raise
        except Exception as e:
            self._log_orphans(booking_id, allocated.number, new_keys)
            LOGGER.error(
                f"Document transaction rolled back: {str(e)}",
                exc_info=True,
                extra={"booking_id": str(booking_id), "form_number": allocated.number}
            )
            raise DocumentCommitError(
                "Failed to save generated documents", original_error=e
            ) from e

        LOGGER.info(
            "Document set committed",
            extra={
                "booking_id": str(booking_id),
                "form_id": str(outcome.service_form_id),
                "form_number": outcome.form_number,
                "superseded_keys": outcome.superseded_keys,
            }
        )
        return outcome

    async def _swap(
        self,
        session: AsyncSession,
        operation: GenerationOperation,
        booking_id: UUID,
        actor_id: str,
        allocated: AllocatedNumber,
        composed: ComposedForm,
        production: ProductionResult,
        valid_until: datetime,
        facility_lab: str,
    ) -> CommitOutcome:
        # Serializes concurrent swaps for the same booking
        if await BookingRepository(session).lock_for_update(booking_id) is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

        forms = ServiceFormRepository(session)
        documents = BookingDocumentRepository(session)
        now = self.clock()

        superseded_keys: List[str] = []
        previous_number: Optional[str] = None

        if operation == GenerationOperation.INITIAL:
            existing = await forms.get_first_for_booking(booking_id)
            if existing is not None:
                raise FormsAlreadyGeneratedError(
                    booking_id, form_id=existing.id, form_number=existing.form_number
                )
        else:
            live = await forms.get_live_for_booking(booking_id)
            previous_number = live.form_number if live else None
            prior = await documents.list_current(booking_id, [t.value for t in FORM_DOCUMENT_TYPES])
            superseded_keys = await documents.delete_with_blobs(prior)
            await forms.supersede_for_booking(booking_id, now)

        working_area = production.working_area
        service_form: ServiceForm = await forms.create(
            booking_id=booking_id,
            form_number=allocated.number,
            version=allocated.version,
            facility_lab=facility_lab,
            subtotal=composed.subtotal,
            total_amount=composed.total_amount,
            valid_until=valid_until,
            status=STATUS_GENERATED,
            requires_working_area_agreement=composed.requires_working_area_agreement,
            service_form_unsigned_url=production.service_form.url,
            service_form_signed_url=None,
            working_area_agreement_unsigned_url=working_area.url if working_area else None,
            working_area_agreement_signed_url=None,
            generated_by=actor_id,
            generated_at=now,
        )

        for artifact in production.artifacts:
            await documents.create_with_blob(
                booking_id=booking_id,
                document_type=artifact.document_type.value,
                key=artifact.key,
                url=artifact.url,
                file_name=artifact.file_name,
                size_bytes=artifact.byte_length,
                actor_id=actor_id,
            )

        metadata = {
            "bookingId": str(booking_id),
            "bookingReference": composed.booking_reference,
        }
        if operation == GenerationOperation.INITIAL:
            metadata["formNumber"] = allocated.number
        else:
            metadata["oldFormNumber"] = previous_number
            metadata["newFormNumber"] = allocated.number
            metadata["supersededKeys"] = superseded_keys

        await AuditLogRepository(session).append(
            actor_id=actor_id,
            action=AUDIT_ACTIONS[operation],
            entity=AUDIT_ENTITY,
            entity_id=str(service_form.id),
            metadata=metadata,
        )

        return CommitOutcome(
            service_form_id=service_form.id,
            form_number=service_form.form_number,
            valid_until=valid_until,
            superseded_keys=superseded_keys,
            previous_form_number=previous_number,
        )

    async def cleanup(self, booking_id: UUID, keys: Sequence[str]) -> bool:
        """Delete superseded objects from storage.

        Failures are logged and left for the external sweep; the committed
        database state is already correct.

        Returns:
            True if every key was deleted or there was nothing to delete
        """
        if not keys:
            return True
        try:
            await self.blob_store.delete(list(keys))
            LOGGER.info(
                "Removed superseded documents from storage",
                extra={"booking_id": str(booking_id), "storage_keys": list(keys)}
            )
            return True
        except Exception as e:
            LOGGER.error(
                f"Failed to remove superseded documents from storage: {str(e)}",
                exc_info=True,
                extra={"booking_id": str(booking_id), "storage_keys": list(keys)}
            )
            return False

    @staticmethod
    def _log_orphans(booking_id: UUID, form_number: str, keys: List[str]) -> None:
        LOGGER.warning(
            "Uploaded documents left unreferenced after rollback",
            extra={"booking_id": str(booking_id), "form_number": form_number, "orphaned_keys": keys}
        )
