"""FastAPI dependencies that assemble services from their collaborators."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from labforms.core.database import get_session_maker
from labforms.services.documents.pdf_renderer import BaseDocumentRenderer, PDFDocumentRenderer
from labforms.services.form_generation_service import FormGenerationService
from labforms.services.storage_service import BaseBlobStore, StorageService
from labforms.utils.locks import KeyedLock

# Shared by every request so attempts for the same booking queue up
booking_locks = KeyedLock()


def get_renderer() -> BaseDocumentRenderer:
    return PDFDocumentRenderer()


def get_blob_store() -> BaseBlobStore:
    return StorageService()


def get_form_generation_service(
    session_maker: Annotated[async_sessionmaker, Depends(get_session_maker)],
    renderer: Annotated[BaseDocumentRenderer, Depends(get_renderer)],
    blob_store: Annotated[BaseBlobStore, Depends(get_blob_store)],
) -> FormGenerationService:
    return FormGenerationService(
        session_maker=session_maker,
        renderer=renderer,
        blob_store=blob_store,
        locks=booking_locks,
    )
