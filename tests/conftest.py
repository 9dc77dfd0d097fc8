"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_AUTO_MIGRATE"] = "false"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["JWT_AUDIENCE"] = "authenticated"
os.environ["SUPABASE_URL"] = "https://storage.test"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service-role-key"

import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Sequence
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from labforms.core.database import Base
from labforms.core.exceptions import RenderError, StorageError
from labforms.database import models  # noqa: F401
from labforms.database.models import (
    BookingRequest,
    BookingServiceItem,
    Service,
    ServicePricing,
    User,
    WorkspaceBooking,
    WorkspaceServiceAddOn,
)
from labforms.schemas.documents import DocumentKind, StoredObject
from labforms.services.form_generation_service import FormGenerationService
from labforms.utils.locks import KeyedLock


class FakeClock:
    """Clock that advances one second per reading."""

    def __init__(self, start: datetime = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class FakeRenderer:
    """Renderer returning small fake PDFs and recording what it rendered."""

    def __init__(self, fail_kinds: Sequence[DocumentKind] = (), delay: float = 0.0):
        self.fail_kinds = set(fail_kinds)
        self.delay = delay
        self.calls: List[DocumentKind] = []

    def render(self, kind, data) -> bytes:
        self.calls.append(kind)
        if self.delay:
            time.sleep(self.delay)
        if kind in self.fail_kinds:
            raise RenderError(f"Template failure for {kind.value}")
        return b"%PDF-1.4 fake " + kind.value.encode() + b" " + data.form_number.encode()


class FakeBlobStore:
    """In-memory blob store with switchable failures."""

    def __init__(self):
        self.objects = {}
        self.uploads: List[str] = []
        self.deleted: List[str] = []
        self.fail_upload_for: Optional[str] = None
        self.fail_delete = False
        self._counter = 0

    async def upload(self, content, file_name, idempotency_hint, content_type="application/pdf"):
        if self.fail_upload_for and file_name.startswith(self.fail_upload_for):
            raise StorageError(f"Upload failed: {file_name}")
        self._counter += 1
        key = f"forms/{idempotency_hint}/{self._counter:04d}/{file_name}"
        self.objects[key] = content
        self.uploads.append(key)
        return StoredObject(key=key, url=f"https://storage.test/object/public/docs/{key}")

    async def delete(self, keys):
        if self.fail_delete:
            raise StorageError("Delete failed: storage unavailable")
        for key in keys:
            self.objects.pop(key, None)
            self.deleted.append(key)


@dataclass
class SeededBooking:
    booking_id: UUID
    user_id: UUID
    reference: str


class BookingSeeder:
    """Creates bookings with analysis items and workspace reservations."""

    def __init__(self):
        self._count = 0

    async def booking(
        self,
        session_maker: async_sessionmaker,
        status: str = "approved",
        with_analysis: bool = True,
        with_workspace: bool = True,
        stored_workspace_pricing: bool = False,
        workspace_pricing: bool = True,
        user_type: str = "external_member",
    ) -> SeededBooking:
        self._count += 1
        async with session_maker() as session:
            async with session.begin():
                if with_workspace and workspace_pricing:
                    await self._ensure_workspace_pricing(session, user_type)

                user = User(
                    email=f"researcher{self._count}@labforms.my",
                    first_name="Nur",
                    last_name=f"Aisyah {self._count}",
                    phone="+60 12-345 6789",
                    address="Jalan Semarak, Kuala Lumpur",
                    user_type=user_type,
                    company="Acme Materials Sdn Bhd",
                )
                session.add(user)

                booking = BookingRequest(
                    reference_number=f"BK-2025-{self._count:04d}",
                    user=user,
                    status=status,
                    project_description="Catalyst synthesis",
                    total_amount=Decimal("0"),
                    service_items=[],
                    workspace_bookings=[],
                )
                session.add(booking)

                total = Decimal("0")
                if with_analysis:
                    service = Service(code="XRD", name="X-Ray Diffraction", category="analysis")
                    session.add(service)
                    booking.service_items.append(
                        BookingServiceItem(
                            service=service,
                            quantity=2,
                            unit_price=Decimal("100.00"),
                            total_price=Decimal("200.00"),
                            sample_name="Sample A",
                        )
                    )
                    total += Decimal("200.00")

                if with_workspace:
                    workspace = WorkspaceBooking(
                        start_date=date(2025, 3, 10),
                        end_date=date(2025, 4, 20),
                        purpose="Sample preparation",
                    )
                    workspace.add_ons.append(WorkspaceServiceAddOn(name="Locker", amount=Decimal("50.00")))
                    if stored_workspace_pricing:
                        workspace.unit_price = Decimal("300.00")
                        workspace.total_price = Decimal("650.00")
                        workspace.billing_unit = "months"
                    booking.workspace_bookings.append(workspace)
                    total += Decimal("650.00")

                booking.total_amount = total

            return SeededBooking(booking_id=booking.id, user_id=user.id, reference=booking.reference_number)

    @staticmethod
    async def _ensure_workspace_pricing(session: AsyncSession, user_type: str) -> None:
        result = await session.execute(select(Service).where(Service.category == "working_space"))
        service = result.scalars().first()
        if service is None:
            service = Service(code="WS", name="Working Space", category="working_space")
            session.add(service)
            await session.flush()

        existing = await session.execute(
            select(ServicePricing).where(
                ServicePricing.service_id == service.id,
                ServicePricing.user_type == user_type,
            )
        )
        if existing.scalars().first() is None:
            session.add(
                ServicePricing(
                    service_id=service.id,
                    user_type=user_type,
                    price=Decimal("300.00"),
                    unit="months",
                    effective_from=date(2025, 1, 1),
                )
            )
            await session.flush()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File backed SQLite engine with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'labforms.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def seeder() -> BookingSeeder:
    return BookingSeeder()


@pytest.fixture
def make_service(session_maker, renderer, blob_store, clock):
    """Factory for a FormGenerationService wired to the fakes."""

    def factory(**overrides) -> FormGenerationService:
        options = {
            "session_maker": session_maker,
            "renderer": renderer,
            "blob_store": blob_store,
            "locks": KeyedLock(),
            "clock": clock,
        }
        options.update(overrides)
        return FormGenerationService(**options)

    return factory


@pytest.fixture
def render_inputs():
    """Service form and working area agreement inputs for SF-2025-00001."""
    from labforms.schemas.documents import (
        CustomerInfo,
        RenderLineItem,
        ServiceFormRenderInput,
        WorkingAreaDetails,
        WorkingAreaRenderInput,
    )
    from labforms.services.facility_config_service import default_facility_config

    facility = default_facility_config()
    customer = CustomerInfo(
        name="Nur Aisyah",
        email="researcher@labforms.my",
        phone="+60 12-345 6789",
        user_type="external_member",
        company="Acme Materials Sdn Bhd",
    )
    service_form = ServiceFormRenderInput(
        ref_no="TOR-SF-2025-00001",
        form_number="SF-2025-00001",
        booking_reference="BK-2025-0001",
        issue_date=date(2025, 3, 1),
        valid_until=date(2025, 3, 31),
        customer=customer,
        line_items=[
            RenderLineItem(
                kind="analysis",
                service_name="X-Ray Diffraction",
                service_code="XRD",
                quantity=Decimal(2),
                unit="sample",
                unit_price=Decimal("100.00"),
                total_price=Decimal("200.00"),
                sample_name="Sample A",
            ),
            RenderLineItem(
                kind="workspace",
                service_name="Working Space",
                service_code="WS",
                quantity=Decimal(2),
                unit="months",
                unit_price=Decimal("300.00"),
                total_price=Decimal("650.00"),
                details="2025-03-10 to 2025-04-20; add-ons: Locker",
            ),
        ],
        subtotal=Decimal("200.00"),
        total_amount=Decimal("850.00"),
        facility=facility,
    )
    working_area = WorkingAreaRenderInput(
        ref_no="WA-SF-2025-00001",
        form_number="SF-2025-00001",
        booking_reference="BK-2025-0001",
        issue_date=date(2025, 3, 1),
        customer=customer,
        working_area=WorkingAreaDetails(
            start_date=date(2025, 3, 10),
            end_date=date(2025, 4, 20),
            duration_text="2 month(s)",
            purpose="Catalyst synthesis",
        ),
        facility=facility,
    )
    return service_form, working_area
