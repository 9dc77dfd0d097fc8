"""Unit tests for form number and version allocation."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from labforms.database.models import ServiceForm
from labforms.services.numbering.number_allocator import (
    NumberAllocator,
    format_form_number,
    next_sequence_from_numbers,
    next_version_from_numbers,
    parse_version_suffix,
    strip_version_suffix,
)


def _fixed_clock(year: int):
    return lambda: datetime(year, 6, 1, tzinfo=timezone.utc)


async def _insert_form(session_maker, booking_id, form_number: str, version: int = 0):
    async with session_maker() as session:
        async with session.begin():
            session.add(
                ServiceForm(
                    booking_id=booking_id,
                    form_number=form_number,
                    version=version,
                    facility_lab="ChECA iKohza",
                    subtotal=Decimal("0"),
                    total_amount=Decimal("0"),
                    valid_until=datetime(2025, 7, 1, tzinfo=timezone.utc),
                    status="superseded",
                    requires_working_area_agreement=False,
                    generated_by="admin-1",
                )
            )


class TestNumberHelpers:
    """Tests for the pure numbering helpers."""

    def test_format_pads_sequence(self):
        assert format_form_number("SF", 2025, 7) == "SF-2025-00007"
        assert format_form_number("SF", 2025, 123456) == "SF-2025-123456"

    def test_version_suffix_parsing(self):
        assert strip_version_suffix("SF-2025-00001-v12") == "SF-2025-00001"
        assert strip_version_suffix("SF-2025-00001") == "SF-2025-00001"
        assert parse_version_suffix("SF-2025-00001-v12") == 12
        assert parse_version_suffix("SF-2025-00001") == 0

    def test_next_sequence_ignores_versions_and_other_years(self):
        numbers = ["SF-2025-00003", "SF-2025-00009-v2", "SF-2024-00050", "XX-2025-00099"]
        assert next_sequence_from_numbers(numbers, "SF-2025-") == 10
        assert next_sequence_from_numbers([], "SF-2025-") == 1

    def test_next_version(self):
        base = "SF-2025-00001"
        assert next_version_from_numbers([base], base) == 1
        assert next_version_from_numbers([base, f"{base}-v1", f"{base}-v4"], base) == 5
        assert next_version_from_numbers(["SF-2025-00002-v7"], base) == 1


class TestNumberAllocator:
    """Tests for NumberAllocator against the sequence table."""

    @pytest.mark.asyncio
    async def test_initial_numbers_increase(self, session_maker):
        allocator = NumberAllocator(session_maker, prefix="SF", clock=_fixed_clock(2025))

        first = await allocator.allocate_initial()
        second = await allocator.allocate_initial()

        assert first.number == "SF-2025-00001"
        assert first.version == 0
        assert first.base == first.number
        assert second.number == "SF-2025-00002"

    @pytest.mark.asyncio
    async def test_counter_restarts_each_year(self, session_maker):
        await NumberAllocator(session_maker, prefix="SF", clock=_fixed_clock(2025)).allocate_initial()

        allocated = await NumberAllocator(
            session_maker, prefix="SF", clock=_fixed_clock(2026)
        ).allocate_initial()

        assert allocated.number == "SF-2026-00001"

    @pytest.mark.asyncio
    async def test_counter_is_seeded_from_existing_numbers(self, session_maker, seeder):
        seeded = await seeder.booking(session_maker)
        await _insert_form(session_maker, seeded.booking_id, "SF-2025-00041")
        await _insert_form(session_maker, seeded.booking_id, "SF-2025-00041-v3", version=3)

        allocator = NumberAllocator(session_maker, prefix="SF", clock=_fixed_clock(2025))

        assert (await allocator.allocate_initial()).number == "SF-2025-00042"

        version = await allocator.allocate_version("SF-2025-00041")
        assert version.number == "SF-2025-00041-v4"
        assert version.base == "SF-2025-00041"
        assert version.version == 4

    @pytest.mark.asyncio
    async def test_versions_come_from_the_base_number(self, session_maker):
        allocator = NumberAllocator(session_maker, prefix="SF", clock=_fixed_clock(2025))

        first = await allocator.allocate_version("SF-2025-00001")
        second = await allocator.allocate_version("SF-2025-00001-v1")

        assert first.number == "SF-2025-00001-v1"
        assert second.number == "SF-2025-00001-v2"

    @pytest.mark.asyncio
    async def test_sequential_allocations_never_repeat(self, session_maker):
        allocator = NumberAllocator(session_maker, prefix="SF", clock=_fixed_clock(2025))

        numbers = []
        for _ in range(5):
            numbers.append((await allocator.allocate_initial()).number)

        assert len(set(numbers)) == 5
        assert numbers[-1] == "SF-2025-00005"

    @pytest.mark.asyncio
    async def test_custom_prefix(self, session_maker):
        allocator = NumberAllocator(session_maker, prefix="TOR", clock=_fixed_clock(2025))

        allocated = await asyncio.wait_for(allocator.allocate_initial(), timeout=5)

        assert allocated.number == "TOR-2025-00001"
