"""Service form generation endpoints."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from labforms.api.dependencies import get_form_generation_service
from labforms.api.errors import http_error
from labforms.core.auth import require_admin
from labforms.core.database import get_async_session as get_session
from labforms.core.exceptions import AppError
from labforms.repositories.service_form_repository import ServiceFormRepository
from labforms.schemas.api import ApiResponse
from labforms.schemas.auth import CurrentUser
from labforms.schemas.documents import ServiceFormResponse
from labforms.services.form_generation_service import FormGenerationService
from labforms.utils.logging import get_logger
from labforms.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


def _message(result) -> str:
    if result.working_area_upload_failed:
        return "Service form generated; working area agreement upload failed"
    return "Forms generated successfully"


@router.post(
    "/generate/{booking_id}",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate the service form for an approved booking",
    operation_id="generate_service_form",
)
async def generate_forms(
    request: Request,
    booking_id: UUID,
    current_user: Annotated[CurrentUser, Depends(require_admin)],
    service: Annotated[FormGenerationService, Depends(get_form_generation_service)],
) -> ApiResponse:
    """Render, store and record the first document set of a booking."""
    try:
        result = await service.generate_initial(booking_id, actor_id=current_user.id)
    except AppError as e:
        raise http_error(request, e) from e

    return create_api_response(data=result.to_payload(), message=_message(result), request=request)


@router.post(
    "/{form_id}/regenerate",
    response_model=ApiResponse,
    summary="Regenerate a service form as a new version",
    operation_id="regenerate_service_form",
)
async def regenerate_forms(
    request: Request,
    form_id: UUID,
    current_user: Annotated[CurrentUser, Depends(require_admin)],
    service: Annotated[FormGenerationService, Depends(get_form_generation_service)],
) -> ApiResponse:
    """Supersede the booking's current documents with a new version."""
    try:
        result = await service.regenerate(form_id, actor_id=current_user.id)
    except AppError as e:
        raise http_error(request, e) from e

    return create_api_response(data=result.to_payload(), message=_message(result), request=request)


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List service forms",
    operation_id="list_service_forms",
)
async def list_forms(
    request: Request,
    current_user: Annotated[CurrentUser, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_session)],
    booking_id: Optional[UUID] = Query(None),
    form_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    """List service forms, newest first."""
    forms = await ServiceFormRepository(db_session).list_forms(
        booking_id=booking_id, status=form_status, skip=offset, limit=limit
    )
    items = [ServiceFormResponse.model_validate(form) for form in forms]

    return create_api_response(
        data={
            "items": [item.model_dump(mode="json", by_alias=True) for item in items],
            "limit": limit,
            "offset": offset,
        },
        message="Service forms retrieved successfully",
        request=request,
    )
