"""Turns a booking snapshot into the structured input of each document.

Composition is pure: every database read happens before it is called and
nothing here performs I/O. All validation that can fail does so here, before
any document is rendered or uploaded.
"""

import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from labforms.core.exceptions import CompositionError, WorkspacePricingNotConfiguredError
from labforms.database.models import BookingRequest, BookingServiceItem, WorkspaceBooking
from labforms.schemas.documents import (
    ComposedForm,
    CustomerInfo,
    FacilityConfig,
    RenderLineItem,
    ServiceFormRenderInput,
    WorkingAreaDetails,
    WorkingAreaRenderInput,
    WorkspacePricingCatalog,
)
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

CENT = Decimal("0.01")
DAYS_PER_BILLING_MONTH = 30
WORKSPACE_BILLING_UNIT = "months"


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def billable_months(start: date, end: date) -> int:
    """Months billed for a reservation; the day count is inclusive."""
    days = abs((end - start).days) + 1
    return max(1, math.ceil(days / DAYS_PER_BILLING_MONTH))


def duration_text(start: date, end: date) -> str:
    """Duration printed on the working area agreement."""
    days = abs((end - start).days)
    if days > DAYS_PER_BILLING_MONTH:
        return f"{math.ceil(days / DAYS_PER_BILLING_MONTH)} month(s)"
    return f"{days} day(s)"


def service_form_ref(form_number: str) -> str:
    return f"TOR-{form_number}"


def working_area_ref(form_number: str) -> str:
    return f"WA-{form_number}"


class DocumentComposer:
    """Builds render inputs from booking, pricing and facility data."""

    def compose(
        self,
        booking: BookingRequest,
        catalog: Optional[WorkspacePricingCatalog] = None,
    ) -> ComposedForm:
        """Resolve line items and totals for a booking.

        Args:
            booking: Booking with owner, service items and workspace
                reservations (with add-ons) loaded
            catalog: Working space pricing for the owner's user type; only
                consulted for reservations without stored pricing

        Returns:
            ComposedForm

        Raises:
            CompositionError: If the booking has nothing to bill or a
                reservation has an invalid date range
            WorkspacePricingNotConfiguredError: If a reservation's price
                cannot be resolved
        """
        if not booking.service_items and not booking.workspace_bookings:
            raise CompositionError(
                f"Booking {booking.reference_number} has no service items or workspace reservations",
                details={"booking_id": str(booking.id)},
            )

        for workspace in booking.workspace_bookings:
            if workspace.end_date < workspace.start_date:
                raise CompositionError(
                    f"Workspace reservation {workspace.id} ends before it starts",
                    details={
                        "booking_id": str(booking.id),
                        "workspace_id": str(workspace.id),
                        "date_range": self._date_range(workspace),
                    },
                )

        analysis_items = [self._analysis_line(item) for item in booking.service_items]
        workspace_items = [
            self._workspace_line(booking, workspace, catalog)
            for workspace in booking.workspace_bookings
        ]

        # Subtotal covers stored analysis totals; the booking total is authoritative
        subtotal = _money(sum((item.total_price for item in booking.service_items), Decimal("0")))
        requires_agreement = bool(booking.workspace_bookings)

        return ComposedForm(
            booking_id=booking.id,
            booking_reference=booking.reference_number,
            customer=self._customer(booking),
            line_items=analysis_items + workspace_items,
            subtotal=subtotal,
            total_amount=_money(booking.total_amount),
            requires_working_area_agreement=requires_agreement,
            working_area=self._working_area(booking) if requires_agreement else None,
        )

    def build_service_form_input(
        self,
        composed: ComposedForm,
        form_number: str,
        issue_date: date,
        valid_until: date,
        facility: FacilityConfig,
    ) -> ServiceFormRenderInput:
        return ServiceFormRenderInput(
            ref_no=service_form_ref(form_number),
            form_number=form_number,
            booking_reference=composed.booking_reference,
            issue_date=issue_date,
            valid_until=valid_until,
            customer=composed.customer,
            line_items=composed.line_items,
            subtotal=composed.subtotal,
            total_amount=composed.total_amount,
            facility=facility,
        )

    def build_working_area_input(
        self,
        composed: ComposedForm,
        form_number: str,
        issue_date: date,
        facility: FacilityConfig,
    ) -> Optional[WorkingAreaRenderInput]:
        """Agreement input, or None when the booking does not need one."""
        if not composed.requires_working_area_agreement:
            return None
        if composed.working_area is None:
            raise CompositionError(
                "Booking requires a working area agreement but has no workspace reservation data",
                details={"booking_id": str(composed.booking_id)},
            )

        return WorkingAreaRenderInput(
            ref_no=working_area_ref(form_number),
            form_number=form_number,
            booking_reference=composed.booking_reference,
            issue_date=issue_date,
            customer=composed.customer,
            working_area=composed.working_area,
            facility=facility,
        )

    def _analysis_line(self, item: BookingServiceItem) -> RenderLineItem:
        return RenderLineItem(
            kind="analysis",
            service_name=item.service.name,
            service_code=item.service.code,
            quantity=Decimal(item.quantity),
            unit="sample",
            unit_price=_money(item.unit_price),
            total_price=_money(item.total_price),
            sample_name=item.sample_name,
        )

    def _workspace_line(
        self,
        booking: BookingRequest,
        workspace: WorkspaceBooking,
        catalog: Optional[WorkspacePricingCatalog],
    ) -> RenderLineItem:
        months = billable_months(workspace.start_date, workspace.end_date)
        add_ons = list(workspace.add_ons)

        if workspace.unit_price is not None and workspace.total_price is not None:
            # Stored total already includes add-ons
            unit_price = _money(workspace.unit_price)
            total_price = _money(workspace.total_price)
        else:
            rate = catalog.rate_on(workspace.start_date) if catalog else None
            if rate is None:
                raise self._pricing_error(booking, workspace, catalog)
            unit_price = _money(rate.price)
            add_on_total = sum((Decimal(add_on.amount) for add_on in add_ons), Decimal("0"))
            total_price = _money(unit_price * months + add_on_total)
            LOGGER.info(
                "Priced legacy workspace reservation from pricing table",
                extra={"booking_id": str(booking.id), "workspace_id": str(workspace.id)}
            )

        details = self._date_range(workspace)
        if add_ons:
            details += "; add-ons: " + ", ".join(add_on.name for add_on in add_ons)

        return RenderLineItem(
            kind="workspace",
            service_name=(catalog.service_name if catalog else None) or "Working Space",
            service_code=(catalog.service_code if catalog else None) or "WS",
            quantity=Decimal(months),
            unit=WORKSPACE_BILLING_UNIT,
            unit_price=unit_price,
            total_price=total_price,
            details=details,
        )

    def _pricing_error(
        self,
        booking: BookingRequest,
        workspace: WorkspaceBooking,
        catalog: Optional[WorkspacePricingCatalog],
    ) -> WorkspacePricingNotConfiguredError:
        details = {
            "booking_id": str(booking.id),
            "workspace_id": str(workspace.id),
            "date_range": self._date_range(workspace),
            "user_type": booking.user.user_type,
            "service_id": str(catalog.service_id) if catalog and catalog.service_id else None,
            "service_name": catalog.service_name if catalog else "Working Space",
            "service_code": catalog.service_code if catalog else "N/A",
        }
        LOGGER.warning("Missing workspace service pricing", extra=details)
        return WorkspacePricingNotConfiguredError(
            "Cannot generate document: workspace pricing not configured for user type "
            f"{details['user_type']} and date range {details['date_range']}. Please configure pricing.",
            details=details,
        )

    @staticmethod
    def _date_range(workspace: WorkspaceBooking) -> str:
        return f"{workspace.start_date.isoformat()} to {workspace.end_date.isoformat()}"

    @staticmethod
    def _customer(booking: BookingRequest) -> CustomerInfo:
        user = booking.user
        return CustomerInfo(
            name=user.full_name,
            email=user.email,
            phone=user.phone,
            address=user.address,
            user_type=user.user_type,
            supervisor_name=user.supervisor_name,
            faculty=user.faculty,
            department=user.department,
            ikohza=user.ikohza,
            company=user.company,
            company_branch=user.company_branch,
        )

    @staticmethod
    def _working_area(booking: BookingRequest) -> WorkingAreaDetails:
        first: WorkspaceBooking = booking.workspace_bookings[0]
        purpose = booking.project_description or first.purpose or "Not specified"
        return WorkingAreaDetails(
            start_date=first.start_date,
            end_date=first.end_date,
            duration_text=duration_text(first.start_date, first.end_date),
            purpose=purpose,
        )
