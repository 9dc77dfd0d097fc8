"""Schemas shared by the document generation pipeline.

Render inputs and facility configuration are pydantic models so they can be
validated and logged; the in-flight results passed between pipeline stages
are plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DocumentType(str, Enum):
    """Type tag of a BookingDocument."""

    SERVICE_FORM_UNSIGNED = "service_form_unsigned"
    SERVICE_FORM_SIGNED = "service_form_signed"
    WORKSPACE_FORM_UNSIGNED = "workspace_form_unsigned"
    WORKSPACE_FORM_SIGNED = "workspace_form_signed"
    PAYMENT_RECEIPT = "payment_receipt"
    SAMPLE_RESULT = "sample_result"


# Every type replaced when a booking's forms are regenerated
FORM_DOCUMENT_TYPES = (
    DocumentType.SERVICE_FORM_UNSIGNED,
    DocumentType.SERVICE_FORM_SIGNED,
    DocumentType.WORKSPACE_FORM_UNSIGNED,
    DocumentType.WORKSPACE_FORM_SIGNED,
)


class DocumentKind(str, Enum):
    """Template the renderer should use."""

    SERVICE_FORM = "service_form"
    WORKING_AREA_AGREEMENT = "working_area_agreement"


class GenerationOperation(str, Enum):
    INITIAL = "initial"
    REGENERATE = "regenerate"


class GenerationStage(Enum):
    COMPOSING = "composing"
    PRODUCING = "producing"
    COMMITTING = "committing"
    CLEANING_UP = "cleaning_up"
    NOTIFYING = "notifying"
    DONE = "done"
    ABORTED = "aborted"


# Facility configuration


class FacilityAddress(BaseModel):
    title: str
    institute: str
    university: str
    street: str
    city: str
    email: str


class StaffContact(BaseModel):
    """Staff person in charge, printed as the facility contact."""

    name: str
    full_name: str
    email: str
    phone: Optional[str] = None
    signature_url: Optional[str] = None


class IkohzaHead(BaseModel):
    """Signatory addressed on the service form."""

    name: str
    title: Optional[str] = None
    department: str
    institute: str
    university: str
    address: str
    signature_url: Optional[str] = None


class FacilityConfig(BaseModel):
    """Names, addresses and signatories printed on generated documents."""

    facility_name: str
    address: FacilityAddress
    staff_pic: StaffContact
    ikohza_head: IkohzaHead
    cc_recipients: List[str] = Field(default_factory=list)
    facilities: List[str] = Field(default_factory=list)


# Pricing catalog handed to the composer


class PricingRow(BaseModel):
    price: Decimal
    unit: str = "months"
    effective_from: date
    effective_to: Optional[date] = None

    def is_effective_on(self, day: date) -> bool:
        if self.effective_from > day:
            return False
        return self.effective_to is None or self.effective_to >= day


class WorkspacePricingCatalog(BaseModel):
    """Working space service and its pricing rows for one user type."""

    service_id: Optional[UUID] = None
    service_name: str = "Working Space"
    service_code: str = "WS"
    user_type: str
    rows: List[PricingRow] = Field(default_factory=list)

    def rate_on(self, day: date) -> Optional[PricingRow]:
        """Most recent row effective on ``day``."""
        effective = [row for row in self.rows if row.is_effective_on(day)]
        if not effective:
            return None
        return max(effective, key=lambda row: row.effective_from)


# Render inputs


class CustomerInfo(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    user_type: str
    supervisor_name: Optional[str] = None
    faculty: Optional[str] = None
    department: Optional[str] = None
    ikohza: Optional[str] = None
    company: Optional[str] = None
    company_branch: Optional[str] = None


class RenderLineItem(BaseModel):
    """One billable row of the service form."""

    kind: str = Field(..., description="analysis or workspace")
    service_name: str
    service_code: Optional[str] = None
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total_price: Decimal
    sample_name: Optional[str] = None
    details: Optional[str] = None


class WorkingAreaDetails(BaseModel):
    start_date: date
    end_date: date
    duration_text: str
    purpose: str


class ComposedForm(BaseModel):
    """Booking data resolved into billable lines and totals."""

    booking_id: UUID
    booking_reference: str
    customer: CustomerInfo
    line_items: List[RenderLineItem]
    subtotal: Decimal
    total_amount: Decimal
    requires_working_area_agreement: bool
    working_area: Optional[WorkingAreaDetails] = None


class ServiceFormRenderInput(BaseModel):
    ref_no: str
    form_number: str
    booking_reference: str
    issue_date: date
    valid_until: date
    customer: CustomerInfo
    line_items: List[RenderLineItem]
    subtotal: Decimal
    total_amount: Decimal
    facility: FacilityConfig


class WorkingAreaRenderInput(BaseModel):
    ref_no: str
    form_number: str
    booking_reference: str
    issue_date: date
    customer: CustomerInfo
    working_area: WorkingAreaDetails
    facility: FacilityConfig


# Pipeline results


@dataclass
class StoredObject:
    """Durable reference returned by the blob store."""

    key: str
    url: str


@dataclass
class ProducedArtifact:
    document_type: DocumentType
    kind: DocumentKind
    key: str
    url: str
    byte_length: int
    file_name: str


@dataclass
class ProductionResult:
    service_form: ProducedArtifact
    working_area: Optional[ProducedArtifact] = None
    working_area_error: Optional[str] = None

    @property
    def working_area_failed(self) -> bool:
        return self.working_area_error is not None

    @property
    def artifacts(self) -> List[ProducedArtifact]:
        produced = [self.service_form]
        if self.working_area is not None:
            produced.append(self.working_area)
        return produced


@dataclass
class CommitOutcome:
    """What the document swap transaction wrote and what it retired."""

    service_form_id: UUID
    form_number: str
    valid_until: datetime
    superseded_keys: List[str] = field(default_factory=list)
    previous_form_number: Optional[str] = None


# API payloads


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerationResult(CamelModel):
    """Result of an initial generation or a regeneration."""

    service_form_id: UUID
    form_number: str
    service_form_url: str
    working_area_form_url: Optional[str] = None
    valid_until: datetime
    working_area_upload_failed: Optional[bool] = None
    working_area_upload_error: Optional[str] = None

    def to_payload(self) -> dict:
        """camelCase dict; the upload warning keys are present only on failure."""
        payload = self.model_dump(mode="json", by_alias=True)
        if not self.working_area_upload_failed:
            payload.pop("workingAreaUploadFailed")
            payload.pop("workingAreaUploadError")
        return payload


class ServiceFormResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    booking_id: UUID
    form_number: str
    version: int
    status: str
    subtotal: Decimal
    total_amount: Decimal
    valid_until: datetime
    requires_working_area_agreement: bool
    service_form_unsigned_url: Optional[str] = None
    working_area_agreement_unsigned_url: Optional[str] = None
    generated_by: str
    generated_at: datetime
    superseded_at: Optional[datetime] = None


class BookingDocumentResponse(CamelModel):
    id: UUID
    type: str
    file_name: str
    url: str
    size_bytes: int
    mime_type: str
    created_by_id: str
    created_at: datetime
