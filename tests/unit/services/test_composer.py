"""Unit tests for DocumentComposer."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from labforms.core.exceptions import CompositionError, WorkspacePricingNotConfiguredError
from labforms.database.models import (
    BookingRequest,
    BookingServiceItem,
    Service,
    User,
    WorkspaceBooking,
    WorkspaceServiceAddOn,
)
from labforms.schemas.documents import PricingRow, WorkspacePricingCatalog
from labforms.services.documents.composer import (
    DocumentComposer,
    billable_months,
    duration_text,
    service_form_ref,
    working_area_ref,
)
from labforms.services.facility_config_service import default_facility_config


def _booking(analysis: bool = True, workspace: WorkspaceBooking = None) -> BookingRequest:
    booking = BookingRequest(
        id=uuid4(),
        reference_number="BK-2025-0001",
        status="approved",
        project_description=None,
        total_amount=Decimal("850"),
        user=User(
            id=uuid4(),
            email="researcher@labforms.my",
            first_name="Nur",
            last_name="Aisyah",
            user_type="utm_member",
            faculty="MJIIT",
        ),
    )
    if analysis:
        booking.service_items.append(
            BookingServiceItem(
                service=Service(code="XRD", name="X-Ray Diffraction", category="analysis"),
                quantity=2,
                unit_price=Decimal("100"),
                total_price=Decimal("200"),
                sample_name="Sample A",
            )
        )
    if workspace is not None:
        booking.workspace_bookings.append(workspace)
    return booking


def _workspace(start=date(2025, 3, 10), end=date(2025, 4, 20), stored: bool = False) -> WorkspaceBooking:
    workspace = WorkspaceBooking(id=uuid4(), start_date=start, end_date=end, purpose="Sample prep")
    workspace.add_ons.append(WorkspaceServiceAddOn(name="Locker", amount=Decimal("50")))
    if stored:
        workspace.unit_price = Decimal("280")
        workspace.total_price = Decimal("610")
        workspace.billing_unit = "months"
    return workspace


def _catalog(*rows: PricingRow) -> WorkspacePricingCatalog:
    return WorkspacePricingCatalog(service_id=uuid4(), user_type="utm_member", rows=list(rows))


class TestBillingHelpers:
    """Tests for duration and billing helpers."""

    def test_billable_months_counts_days_inclusively(self):
        assert billable_months(date(2025, 3, 1), date(2025, 3, 1)) == 1
        assert billable_months(date(2025, 3, 1), date(2025, 3, 30)) == 1
        assert billable_months(date(2025, 3, 1), date(2025, 3, 31)) == 2
        assert billable_months(date(2025, 3, 10), date(2025, 4, 20)) == 2

    def test_duration_text(self):
        assert duration_text(date(2025, 3, 1), date(2025, 3, 11)) == "10 day(s)"
        assert duration_text(date(2025, 3, 1), date(2025, 3, 31)) == "30 day(s)"
        assert duration_text(date(2025, 3, 1), date(2025, 4, 10)) == "2 month(s)"

    def test_document_references(self):
        assert service_form_ref("SF-2025-00001") == "TOR-SF-2025-00001"
        assert working_area_ref("SF-2025-00001-v2") == "WA-SF-2025-00001-v2"

    def test_catalog_picks_latest_effective_rate(self):
        catalog = _catalog(
            PricingRow(price=Decimal("250"), effective_from=date(2024, 1, 1)),
            PricingRow(price=Decimal("300"), effective_from=date(2025, 1, 1)),
            PricingRow(price=Decimal("900"), effective_from=date(2026, 1, 1)),
            PricingRow(
                price=Decimal("100"), effective_from=date(2023, 1, 1), effective_to=date(2023, 12, 31)
            ),
        )

        assert catalog.rate_on(date(2025, 3, 10)).price == Decimal("300")
        assert catalog.rate_on(date(2023, 6, 1)).price == Decimal("100")
        assert catalog.rate_on(date(2022, 6, 1)) is None


class TestDocumentComposer:
    """Tests for DocumentComposer.compose and render input builders."""

    def test_analysis_only_booking(self):
        composed = DocumentComposer().compose(_booking())

        assert composed.requires_working_area_agreement is False
        assert composed.working_area is None
        assert len(composed.line_items) == 1
        item = composed.line_items[0]
        assert item.kind == "analysis"
        assert item.service_code == "XRD"
        assert item.total_price == Decimal("200.00")
        assert composed.subtotal == Decimal("200.00")
        assert composed.total_amount == Decimal("850.00")
        assert composed.customer.name == "Nur Aisyah"

    def test_stored_workspace_pricing_is_used_as_is(self):
        composed = DocumentComposer().compose(_booking(workspace=_workspace(stored=True)))

        workspace_item = composed.line_items[-1]
        assert workspace_item.kind == "workspace"
        assert workspace_item.unit_price == Decimal("280.00")
        assert workspace_item.total_price == Decimal("610.00")
        assert workspace_item.quantity == Decimal(2)
        assert "Locker" in workspace_item.details
        assert composed.requires_working_area_agreement is True

    def test_legacy_workspace_priced_from_catalog(self):
        catalog = _catalog(PricingRow(price=Decimal("300"), effective_from=date(2025, 1, 1)))

        composed = DocumentComposer().compose(_booking(workspace=_workspace()), catalog)

        workspace_item = composed.line_items[-1]
        assert workspace_item.unit_price == Decimal("300.00")
        assert workspace_item.total_price == Decimal("650.00")
        assert workspace_item.service_name == "Working Space"
        # Subtotal only covers analysis items
        assert composed.subtotal == Decimal("200.00")

    def test_legacy_workspace_without_pricing_fails(self):
        catalog = _catalog(PricingRow(price=Decimal("300"), effective_from=date(2026, 1, 1)))

        with pytest.raises(WorkspacePricingNotConfiguredError) as exc_info:
            DocumentComposer().compose(_booking(workspace=_workspace()), catalog)

        details = exc_info.value.details
        assert details["user_type"] == "utm_member"
        assert details["date_range"] == "2025-03-10 to 2025-04-20"
        assert details["service_code"] == "WS"
        assert "Please configure pricing" in str(exc_info.value)

    def test_legacy_workspace_without_catalog_fails(self):
        with pytest.raises(WorkspacePricingNotConfiguredError) as exc_info:
            DocumentComposer().compose(_booking(workspace=_workspace()), None)

        assert exc_info.value.details["service_id"] is None
        assert exc_info.value.details["service_code"] == "N/A"

    def test_empty_booking_fails(self):
        with pytest.raises(CompositionError):
            DocumentComposer().compose(_booking(analysis=False))

    def test_reversed_date_range_fails(self):
        workspace = _workspace(start=date(2025, 4, 20), end=date(2025, 3, 10), stored=True)

        with pytest.raises(CompositionError) as exc_info:
            DocumentComposer().compose(_booking(workspace=workspace))

        assert "ends before it starts" in str(exc_info.value)

    def test_working_area_purpose_falls_back_to_reservation(self):
        composed = DocumentComposer().compose(_booking(workspace=_workspace(stored=True)))

        assert composed.working_area.purpose == "Sample prep"
        assert composed.working_area.duration_text == "2 month(s)"

    def test_render_inputs(self):
        composer = DocumentComposer()
        facility = default_facility_config()

        with_workspace = composer.compose(_booking(workspace=_workspace(stored=True)))
        service_form = composer.build_service_form_input(
            with_workspace, "SF-2025-00001", date(2025, 3, 1), date(2025, 3, 31), facility
        )
        working_area = composer.build_working_area_input(
            with_workspace, "SF-2025-00001", date(2025, 3, 1), facility
        )

        assert service_form.ref_no == "TOR-SF-2025-00001"
        assert service_form.valid_until == date(2025, 3, 31)
        assert service_form.booking_reference == "BK-2025-0001"
        assert working_area.ref_no == "WA-SF-2025-00001"
        assert working_area.working_area.start_date == date(2025, 3, 10)

        analysis_only = composer.compose(_booking())
        assert composer.build_working_area_input(
            analysis_only, "SF-2025-00002", date(2025, 3, 1), facility
        ) is None
