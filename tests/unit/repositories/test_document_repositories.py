"""Unit tests for service form and booking document repositories."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from labforms.database.models import FileBlob, ServiceForm, ServicePricing
from labforms.repositories.booking_document_repository import BookingDocumentRepository
from labforms.repositories.booking_repository import BookingRepository
from labforms.repositories.service_form_repository import ServiceFormRepository


def _form(booking_id, form_number: str, version: int = 0) -> ServiceForm:
    return ServiceForm(
        booking_id=booking_id,
        form_number=form_number,
        version=version,
        facility_lab="ChECA iKohza",
        subtotal=Decimal("200"),
        total_amount=Decimal("850"),
        valid_until=datetime(2025, 3, 31, tzinfo=timezone.utc),
        status="generated",
        requires_working_area_agreement=True,
        service_form_unsigned_url=f"https://storage.test/{form_number}.pdf",
        generated_by="admin-1",
    )


class TestServiceFormRepository:
    """Tests for ServiceFormRepository."""

    @pytest.mark.asyncio
    async def test_prefix_scan_treats_wildcards_literally(self, session_maker, seeder):
        seeded = await seeder.booking(session_maker)
        async with session_maker() as session:
            async with session.begin():
                session.add(_form(seeded.booking_id, "SF-2025-00001"))
                session.add(_form(seeded.booking_id, "SF-2025-00001-v1", version=1))
                session.add(_form(seeded.booking_id, "SFX2025-00009"))

            numbers = await ServiceFormRepository(session).list_numbers_with_prefix("SF-2025-")
            wildcard = await ServiceFormRepository(session).list_numbers_with_prefix("SF_2025%")

        assert sorted(numbers) == ["SF-2025-00001", "SF-2025-00001-v1"]
        assert wildcard == []

    @pytest.mark.asyncio
    async def test_supersede_clears_pointers_and_keeps_totals(self, session_maker, seeder):
        seeded = await seeder.booking(session_maker)
        superseded_at = datetime(2025, 3, 2, tzinfo=timezone.utc)
        async with session_maker() as session:
            async with session.begin():
                session.add(_form(seeded.booking_id, "SF-2025-00001"))

            async with session.begin():
                repo = ServiceFormRepository(session)
                assert (await repo.get_live_for_booking(seeded.booking_id)).form_number == "SF-2025-00001"
                count = await repo.supersede_for_booking(seeded.booking_id, superseded_at)

        assert count == 1
        async with session_maker() as session:
            repo = ServiceFormRepository(session)
            assert await repo.get_live_for_booking(seeded.booking_id) is None
            form = await repo.get_first_for_booking(seeded.booking_id)

        assert form.status == "superseded"
        assert form.superseded_at is not None
        assert form.service_form_unsigned_url is None
        assert form.total_amount == Decimal("850")


class TestBookingDocumentRepository:
    """Tests for BookingDocumentRepository."""

    @pytest.mark.asyncio
    async def test_delete_with_blobs_returns_storage_keys(self, session_maker, seeder):
        seeded = await seeder.booking(session_maker)
        async with session_maker() as session:
            async with session.begin():
                repo = BookingDocumentRepository(session)
                for document_type in ("service_form_unsigned", "payment_receipt"):
                    await repo.create_with_blob(
                        booking_id=seeded.booking_id,
                        document_type=document_type,
                        key=f"forms/{document_type}.pdf",
                        url=f"https://storage.test/{document_type}.pdf",
                        file_name=f"{document_type}.pdf",
                        size_bytes=42,
                        actor_id="admin-1",
                    )

            async with session.begin():
                repo = BookingDocumentRepository(session)
                forms = await repo.list_current(seeded.booking_id, ["service_form_unsigned"])
                keys = await repo.delete_with_blobs(forms)

        assert keys == ["forms/service_form_unsigned.pdf"]
        async with session_maker() as session:
            remaining = await BookingDocumentRepository(session).list_current(seeded.booking_id)
            blob_count = await session.scalar(select(func.count()).select_from(FileBlob))

        assert [doc.type for doc in remaining] == ["payment_receipt"]
        assert remaining[0].blob.size_bytes == 42
        assert blob_count == 1


class TestBookingRepository:
    """Tests for BookingRepository."""

    @pytest.mark.asyncio
    async def test_snapshot_loads_everything_composition_needs(self, session_maker, seeder):
        seeded = await seeder.booking(session_maker)

        async with session_maker() as session:
            booking = await BookingRepository(session).get_snapshot(seeded.booking_id)
            locked = await BookingRepository(session).lock_for_update(seeded.booking_id)

        # Relationships stay usable after the session closes
        assert booking.user.user_type == "external_member"
        assert booking.service_items[0].service.code == "XRD"
        assert booking.workspace_bookings[0].add_ons[0].name == "Locker"
        assert booking.service_forms == []
        assert locked == seeded.booking_id

    @pytest.mark.asyncio
    async def test_second_workspace_booking_shares_pricing(self, session_maker, seeder):
        first = await seeder.booking(session_maker)
        second = await seeder.booking(session_maker, stored_workspace_pricing=True)

        async with session_maker() as session:
            repo = BookingRepository(session)
            bookings = [await repo.get_snapshot(b.booking_id) for b in (first, second)]
            pricing_rows = await session.scalar(select(func.count()).select_from(ServicePricing))

        assert [len(b.workspace_bookings) for b in bookings] == [1, 1]
        assert [len(b.service_items) for b in bookings] == [1, 1]
        assert bookings[1].workspace_bookings[0].unit_price == Decimal("300.00")
        assert bookings[1].total_amount == Decimal("850.00")
        assert pricing_rows == 1
