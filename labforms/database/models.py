"""SQLAlchemy models for all database tables."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from labforms.core.database import Base

JSONType = JSONB().with_variant(JSON(), "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Lab user who owns bookings."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_type: Mapped[str] = mapped_column(
        String, nullable=False, default="external_member"
    )  # mjiit_member | utm_member | external_member | lab_administrator
    supervisor_name: Mapped[str | None] = mapped_column(String, nullable=True)
    faculty: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    ikohza: Mapped[str | None] = mapped_column(String, nullable=True)
    company: Mapped[str | None] = mapped_column(String, nullable=True)
    company_branch: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )

    bookings: Mapped[list["BookingRequest"]] = relationship("BookingRequest", back_populates="user")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Service(Base):
    """Billable lab service (analysis, working space, ...)."""

    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str | None] = mapped_column(String, nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(
        String, nullable=False, default="analysis"
    )  # analysis | working_space | equipment

    pricing: Mapped[list["ServicePricing"]] = relationship(
        "ServicePricing", back_populates="service", cascade="all, delete-orphan"
    )


class ServicePricing(Base):
    """Price of a service for one user type over an effective date range."""

    __tablename__ = "service_pricing"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    user_type: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    unit: Mapped[str] = mapped_column(String, nullable=False, default="months")
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    service: Mapped["Service"] = relationship("Service", back_populates="pricing")


class BookingRequest(Base):
    """Lab booking; only the fields document generation reads."""

    __tablename__ = "booking_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_number: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending_approval"
    )  # draft | pending_approval | approved | rejected | cancelled | completed
    project_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="bookings")
    service_items: Mapped[list["BookingServiceItem"]] = relationship(
        "BookingServiceItem", back_populates="booking", cascade="all, delete-orphan"
    )
    workspace_bookings: Mapped[list["WorkspaceBooking"]] = relationship(
        "WorkspaceBooking", back_populates="booking", cascade="all, delete-orphan",
        order_by="WorkspaceBooking.start_date",
    )
    service_forms: Mapped[list["ServiceForm"]] = relationship(
        "ServiceForm", back_populates="booking", order_by="ServiceForm.generated_at"
    )
    documents: Mapped[list["BookingDocument"]] = relationship("BookingDocument", back_populates="booking")


class BookingServiceItem(Base):
    """Analysis service line item with pricing captured at booking time."""

    __tablename__ = "booking_service_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("services.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    sample_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )

    booking: Mapped["BookingRequest"] = relationship("BookingRequest", back_populates="service_items")
    service: Mapped["Service"] = relationship("Service")


class WorkspaceBooking(Base):
    """Working space reservation attached to a booking."""

    __tablename__ = "workspace_bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pricing captured at booking time; null on reservations created before it existed
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    billing_unit: Mapped[str | None] = mapped_column(String, nullable=True)

    booking: Mapped["BookingRequest"] = relationship("BookingRequest", back_populates="workspace_bookings")
    add_ons: Mapped[list["WorkspaceServiceAddOn"]] = relationship(
        "WorkspaceServiceAddOn", back_populates="workspace_booking", cascade="all, delete-orphan"
    )


class WorkspaceServiceAddOn(Base):
    """Extra charge attached to a workspace reservation."""

    __tablename__ = "workspace_service_addons"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspace_bookings.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    workspace_booking: Mapped["WorkspaceBooking"] = relationship("WorkspaceBooking", back_populates="add_ons")


class ServiceForm(Base):
    """One generation event: number, totals, validity and document pointers."""

    __tablename__ = "service_forms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    form_number: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    facility_lab: Mapped[str] = mapped_column(String, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="generated"
    )  # generated | superseded
    requires_working_area_agreement: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    service_form_unsigned_url: Mapped[str | None] = mapped_column(String, nullable=True)
    service_form_signed_url: Mapped[str | None] = mapped_column(String, nullable=True)
    working_area_agreement_unsigned_url: Mapped[str | None] = mapped_column(String, nullable=True)
    working_area_agreement_signed_url: Mapped[str | None] = mapped_column(String, nullable=True)

    generated_by: Mapped[str] = mapped_column(String, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )
    superseded_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    booking: Mapped["BookingRequest"] = relationship("BookingRequest", back_populates="service_forms")

    __table_args__ = (
        {"comment": "Versioned service form records; superseded rows keep number and totals"},
    )


class FileBlob(Base):
    """Metadata mirror of one object in the blob store."""

    __tablename__ = "file_blobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    key: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    mime_type: Mapped[str] = mapped_column(String, nullable=False, default="application/pdf")
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uploaded_by_id: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )


class BookingDocument(Base):
    """Typed pointer from a booking to its current stored artifact."""

    __tablename__ = "booking_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(
        String, nullable=False
    )  # service_form_unsigned | service_form_signed | workspace_form_unsigned | ...
    blob_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("file_blobs.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    created_by_id: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )

    booking: Mapped["BookingRequest"] = relationship("BookingRequest", back_populates="documents")
    blob: Mapped["FileBlob"] = relationship("FileBlob")

    __table_args__ = (
        UniqueConstraint("booking_id", "type", name="uq_booking_documents_booking_type"),
    )


class AuditLog(Base):
    """Append-only record of document generation events."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_id: Mapped[str] = mapped_column(String, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)  # GENERATE_FORM | REGENERATE_FORM
    entity: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )


class NumberSequence(Base):
    """Atomically incremented counter backing form numbers and versions."""

    __tablename__ = "number_sequences"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow
    )


class Notification(Base):
    """In-app notification shown to a user."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    related_entity_type: Mapped[str] = mapped_column(String, nullable=False)
    related_entity_id: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow
    )


class FacilityDocumentConfig(Base):
    """Singleton facility configuration printed on generated documents."""

    __tablename__ = "facility_document_configs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    singleton_key: Mapped[str] = mapped_column(String, unique=True, nullable=False, default="default")
    facility_name: Mapped[str] = mapped_column(String, nullable=False)

    address_title: Mapped[str] = mapped_column(String, nullable=False)
    address_institute: Mapped[str] = mapped_column(String, nullable=False)
    address_university: Mapped[str] = mapped_column(String, nullable=False)
    address_street: Mapped[str] = mapped_column(String, nullable=False)
    address_city: Mapped[str] = mapped_column(String, nullable=False)
    address_email: Mapped[str] = mapped_column(String, nullable=False)

    staff_pic_name: Mapped[str] = mapped_column(String, nullable=False)
    staff_pic_full_name: Mapped[str] = mapped_column(String, nullable=False)
    staff_pic_email: Mapped[str] = mapped_column(String, nullable=False)
    staff_pic_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    staff_pic_signature_url: Mapped[str | None] = mapped_column(String, nullable=True)

    ikohza_head_name: Mapped[str] = mapped_column(String, nullable=False)
    ikohza_head_title: Mapped[str | None] = mapped_column(String, nullable=True)
    ikohza_head_department: Mapped[str] = mapped_column(String, nullable=False)
    ikohza_head_institute: Mapped[str] = mapped_column(String, nullable=False)
    ikohza_head_university: Mapped[str] = mapped_column(String, nullable=False)
    ikohza_head_address: Mapped[str] = mapped_column(String, nullable=False)
    ikohza_head_signature_url: Mapped[str | None] = mapped_column(String, nullable=True)

    cc_recipients: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    facilities: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow
    )
