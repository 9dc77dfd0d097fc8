"""Initial generation and regeneration of a booking's service forms.

One attempt moves through these stages:

    composing -> producing -> committing -> cleaning_up -> notifying -> done

and ends in ``aborted`` when composing or producing fails, before anything is
written to the database. Failures up to and including the commit propagate
to the caller. After the commit, cleanup and notification failures are only
logged.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from labforms.core.config import settings
from labforms.core.exceptions import (
    AppError,
    BookingNotApprovedError,
    BookingNotFoundError,
    FormsAlreadyGeneratedError,
    ServiceFormNotFoundError,
    ValidationError,
)
from labforms.database.models import BookingRequest
from labforms.repositories.booking_repository import BookingRepository
from labforms.repositories.pricing_repository import PricingRepository
from labforms.repositories.service_form_repository import ServiceFormRepository
from labforms.schemas.documents import (
    CommitOutcome,
    GenerationOperation,
    GenerationResult,
    GenerationStage,
    PricingRow,
    ProductionResult,
    WorkspacePricingCatalog,
)
from labforms.services.base_service import BaseService
from labforms.services.documents.artifact_producer import ArtifactProducer
from labforms.services.documents.composer import DocumentComposer
from labforms.services.documents.consistency_coordinator import ConsistencyCoordinator
from labforms.services.documents.pdf_renderer import BaseDocumentRenderer
from labforms.services.facility_config_service import FacilityConfigProvider
from labforms.services.notification_service import ServiceFormNotifier
from labforms.services.numbering.number_allocator import NumberAllocator
from labforms.services.storage_service import BaseBlobStore
from labforms.utils.locks import KeyedLock
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

APPROVED = "approved"
ABORTABLE_STAGES = (GenerationStage.COMPOSING, GenerationStage.PRODUCING)


class FormGenerationService(BaseService):
    """Produces, commits and announces a booking's document set."""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        renderer: BaseDocumentRenderer,
        blob_store: BaseBlobStore,
        notifier: Optional[ServiceFormNotifier] = None,
        config_provider: Optional[FacilityConfigProvider] = None,
        allocator: Optional[NumberAllocator] = None,
        producer: Optional[ArtifactProducer] = None,
        coordinator: Optional[ConsistencyCoordinator] = None,
        composer: Optional[DocumentComposer] = None,
        locks: Optional[KeyedLock] = None,
        clock: Optional[Callable[[], datetime]] = None,
        validity_days: Optional[int] = None,
    ):
        super().__init__()
        self.session_maker = session_maker
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.notifier = notifier or ServiceFormNotifier(session_maker)
        self.config_provider = config_provider or FacilityConfigProvider(session_maker)
        self.allocator = allocator or NumberAllocator(session_maker, clock=self.clock)
        self.producer = producer or ArtifactProducer(renderer, blob_store)
        self.coordinator = coordinator or ConsistencyCoordinator(session_maker, blob_store, clock=self.clock)
        self.composer = composer or DocumentComposer()
        self.locks = locks or KeyedLock()
        self.validity_days = validity_days or settings.documents.validity_days

    async def generate_initial(self, booking_id: UUID, actor_id: str) -> GenerationResult:
        """Generate the first document set for an approved booking.

        Raises:
            BookingNotFoundError: If the booking does not exist
            FormsAlreadyGeneratedError: If the booking already has a service form
            BookingNotApprovedError: If the booking is not approved
            CompositionError: If the booking cannot be priced or is inconsistent
            ArtifactProductionError: If the service form cannot be produced
            DocumentCommitError: If the database transaction fails
        """
        return await self.execute(GenerationOperation.INITIAL, booking_id, actor_id)

    async def regenerate(self, form_id: UUID, actor_id: str) -> GenerationResult:
        """Replace a booking's document set with a new version.

        Raises:
            ServiceFormNotFoundError: If the form does not exist
            plus everything ``generate_initial`` raises after its preconditions
        """
        return await self.execute(GenerationOperation.REGENERATE, form_id, actor_id)

    def validate(self, operation: GenerationOperation, target_id: UUID, actor_id: str):
        if not actor_id:
            raise ValidationError("An actor is required to generate documents")

    async def run(self, operation: GenerationOperation, target_id: UUID, actor_id: str) -> GenerationResult:
        current_number: Optional[str] = None

        if operation == GenerationOperation.REGENERATE:
            async with self.session_maker() as session:
                form = await ServiceFormRepository(session).get_by_id(target_id)
            if form is None:
                raise ServiceFormNotFoundError(f"Service form {target_id} not found")
            booking_id, current_number = form.booking_id, form.form_number
        else:
            booking_id = target_id

        async with self.locks.hold(booking_id):
            return await self._attempt(operation, booking_id, actor_id, current_number)

    async def _attempt(
        self,
        operation: GenerationOperation,
        booking_id: UUID,
        actor_id: str,
        current_number: Optional[str],
    ) -> GenerationResult:
        stage = GenerationStage.COMPOSING
        log_extra = {"booking_id": str(booking_id), "operation": operation.value}

        try:
            self._enter(stage, log_extra)
            booking, catalog = await self._load_snapshot(booking_id)
            self._check_preconditions(operation, booking_id, booking)
            composed = self.composer.compose(booking, catalog)
            facility = await self.config_provider.get_effective_config()

            if operation == GenerationOperation.INITIAL:
                allocated = await self.allocator.allocate_initial()
            else:
                allocated = await self.allocator.allocate_version(current_number)
            log_extra["form_number"] = allocated.number

            issued_at = self.clock()
            valid_until = issued_at + timedelta(days=self.validity_days)
            service_form_input = self.composer.build_service_form_input(
                composed, allocated.number, issued_at.date(), valid_until.date(), facility
            )
            working_area_input = self.composer.build_working_area_input(
                composed, allocated.number, issued_at.date(), facility
            )

            stage = GenerationStage.PRODUCING
            self._enter(stage, log_extra)
            production: ProductionResult = await self.producer.produce(
                booking_id, allocated.number, service_form_input, working_area_input
            )

            stage = GenerationStage.COMMITTING
            self._enter(stage, log_extra)
            outcome: CommitOutcome = await self.coordinator.commit(
                operation=operation,
                booking_id=booking_id,
                actor_id=actor_id,
                allocated=allocated,
                composed=composed,
                production=production,
                valid_until=valid_until,
                facility_lab=facility.facility_name,
            )

        except AppError as e:
            if stage in ABORTABLE_STAGES:
                LOGGER.warning(
                    f"Generation aborted during {stage.value}: {str(e)}",
                    extra={**log_extra, "stage": GenerationStage.ABORTED.value}
                )
            raise

        stage = GenerationStage.CLEANING_UP
        self._enter(stage, log_extra)
        await self.coordinator.cleanup(booking_id, outcome.superseded_keys)

        stage = GenerationStage.NOTIFYING
        self._enter(stage, log_extra)
        await self._notify(booking, outcome, composed.requires_working_area_agreement)

        self._enter(GenerationStage.DONE, log_extra)

        working_area = production.working_area
        return GenerationResult(
            service_form_id=outcome.service_form_id,
            form_number=outcome.form_number,
            service_form_url=production.service_form.url,
            working_area_form_url=working_area.url if working_area else None,
            valid_until=outcome.valid_until,
            working_area_upload_failed=True if production.working_area_failed else None,
            working_area_upload_error=production.working_area_error,
        )

    async def _load_snapshot(
        self, booking_id: UUID
    ) -> Tuple[Optional[BookingRequest], Optional[WorkspacePricingCatalog]]:
        async with self.session_maker() as session:
            booking = await BookingRepository(session).get_snapshot(booking_id)
            if booking is None or not booking.workspace_bookings:
                return booking, None

            pricing = PricingRepository(session)
            service = await pricing.get_workspace_service()
            if service is None:
                return booking, WorkspacePricingCatalog(user_type=booking.user.user_type)

            rows = await pricing.list_for_service(service.id, booking.user.user_type)
            catalog = WorkspacePricingCatalog(
                service_id=service.id,
                service_name=service.name or "Working Space",
                service_code=service.code or "WS",
                user_type=booking.user.user_type,
                rows=[
                    PricingRow(
                        price=row.price,
                        unit=row.unit,
                        effective_from=row.effective_from,
                        effective_to=row.effective_to,
                    )
                    for row in rows
                ],
            )
            return booking, catalog

    @staticmethod
    def _check_preconditions(
        operation: GenerationOperation,
        booking_id: UUID,
        booking: Optional[BookingRequest],
    ) -> None:
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

        if operation == GenerationOperation.INITIAL:
            if booking.service_forms:
                existing = booking.service_forms[0]
                raise FormsAlreadyGeneratedError(
                    booking_id, form_id=existing.id, form_number=existing.form_number
                )
            if booking.status != APPROVED:
                raise BookingNotApprovedError(booking_id, booking.status)

    async def _notify(
        self,
        booking: BookingRequest,
        outcome: CommitOutcome,
        requires_working_area_agreement: bool,
    ) -> None:
        try:
            await self.notifier.notify(
                user_id=booking.user_id,
                booking_id=booking.id,
                form_id=outcome.service_form_id,
                form_number=outcome.form_number,
                valid_until=outcome.valid_until,
                requires_working_area_agreement=requires_working_area_agreement,
                booking_reference=booking.reference_number,
            )
        except Exception as e:
            LOGGER.error(
                f"Failed to send service form notification: {str(e)}",
                exc_info=True,
                extra={"booking_id": str(booking.id), "form_number": outcome.form_number}
            )

    @staticmethod
    def _enter(stage: GenerationStage, log_extra: dict) -> None:
        LOGGER.info(f"Form generation stage: {stage.value}", extra={**log_extra, "stage": stage.value})
