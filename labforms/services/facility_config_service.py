"""Facility configuration printed on generated documents."""

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from labforms.core.config import DocumentSettings, settings
from labforms.database.models import FacilityDocumentConfig
from labforms.repositories.document_config_repository import DocumentConfigRepository
from labforms.schemas.documents import FacilityAddress, FacilityConfig, IkohzaHead, StaffContact
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)


def default_facility_config(documents: DocumentSettings = None) -> FacilityConfig:
    """Facility configuration built from settings alone."""
    documents = documents or settings.documents
    address = documents.address
    return FacilityConfig(
        facility_name=documents.facility_name,
        address=FacilityAddress(
            title=address.title,
            institute=address.institute,
            university=address.university,
            street=address.street,
            city=address.city,
            email=address.email,
        ),
        staff_pic=StaffContact(
            name=documents.staff_pic_name,
            full_name=documents.staff_pic_full_name,
            email=documents.staff_pic_email,
            signature_url=documents.staff_pic_signature_url,
        ),
        ikohza_head=IkohzaHead(
            name=documents.ikohza_head_name,
            department=documents.ikohza_head_department,
            institute=address.institute,
            university=address.university,
            address=documents.ikohza_head_address,
            signature_url=documents.ikohza_head_signature_url,
        ),
        cc_recipients=list(documents.cc_recipients),
        facilities=list(documents.facilities),
    )


def config_from_row(row: FacilityDocumentConfig) -> FacilityConfig:
    return FacilityConfig(
        facility_name=row.facility_name,
        address=FacilityAddress(
            title=row.address_title,
            institute=row.address_institute,
            university=row.address_university,
            street=row.address_street,
            city=row.address_city,
            email=row.address_email,
        ),
        staff_pic=StaffContact(
            name=row.staff_pic_name,
            full_name=row.staff_pic_full_name,
            email=row.staff_pic_email,
            phone=row.staff_pic_phone,
            signature_url=row.staff_pic_signature_url,
        ),
        ikohza_head=IkohzaHead(
            name=row.ikohza_head_name,
            title=row.ikohza_head_title,
            department=row.ikohza_head_department,
            institute=row.ikohza_head_institute,
            university=row.ikohza_head_university,
            address=row.ikohza_head_address,
            signature_url=row.ikohza_head_signature_url,
        ),
        cc_recipients=row.cc_recipients or [],
        facilities=row.facilities or [],
    )


class FacilityConfigProvider:
    """Reads the effective facility configuration.

    The singleton database row wins; settings defaults are used when the row
    is missing or does not validate. Nothing is cached between calls.
    """

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def get_effective_config(self) -> FacilityConfig:
        async with self.session_maker() as session:
            row = await DocumentConfigRepository(session).get_singleton()

        if row is None:
            return default_facility_config()

        try:
            return config_from_row(row)
        except PydanticValidationError as e:
            LOGGER.warning(
                f"Stored facility configuration is invalid, using defaults: {e}",
                extra={"config_id": str(row.id)}
            )
            return default_facility_config()
