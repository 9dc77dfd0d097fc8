"""Booking document endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.core.auth import get_current_user
from labforms.core.config import settings
from labforms.core.database import get_async_session as get_session
from labforms.repositories.booking_document_repository import BookingDocumentRepository
from labforms.repositories.booking_repository import BookingRepository
from labforms.schemas.api import ApiResponse
from labforms.schemas.auth import CurrentUser
from labforms.schemas.documents import BookingDocumentResponse
from labforms.utils.logging import get_logger
from labforms.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "/{booking_id}/documents",
    response_model=ApiResponse,
    summary="List a booking's current documents",
    operation_id="list_booking_documents",
)
async def list_booking_documents(
    request: Request,
    booking_id: UUID,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db_session: Annotated[AsyncSession, Depends(get_session)],
) -> ApiResponse:
    """Return the booking's current documents, read from the database."""
    booking = await BookingRepository(db_session).get_by_id(booking_id)
    if booking is None:
        error_detail = create_error_detail(
            title="Booking Not Found",
            status=status.HTTP_404_NOT_FOUND,
            detail=f"Booking {booking_id} not found",
            request=request
        )
        raise HTTPException(status_code=404, detail=error_detail.model_dump(mode="json"))

    is_admin = current_user.role in settings.auth.admin_roles
    if not is_admin and str(booking.user_id) != current_user.id:
        error_detail = create_error_detail(
            title="Forbidden",
            status=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this booking",
            request=request
        )
        raise HTTPException(status_code=403, detail=error_detail.model_dump(mode="json"))

    documents = await BookingDocumentRepository(db_session).list_current(booking_id)
    items = [
        BookingDocumentResponse(
            id=doc.id,
            type=doc.type,
            file_name=doc.blob.file_name,
            url=doc.blob.url,
            size_bytes=doc.blob.size_bytes,
            mime_type=doc.blob.mime_type,
            created_by_id=doc.created_by_id,
            created_at=doc.created_at,
        )
        for doc in documents
    ]

    return create_api_response(
        data=items,
        message="Booking documents retrieved successfully",
        request=request
    )
