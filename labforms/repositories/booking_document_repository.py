from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from labforms.database.models import BookingDocument, FileBlob
from labforms.repositories.base_repository import BaseRepository
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BookingDocumentRepository(BaseRepository[BookingDocument]):
    """Repository for BookingDocument pointers and the FileBlob rows they own."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, BookingDocument)

    async def list_current(
        self,
        booking_id: UUID,
        types: Optional[Iterable[str]] = None,
    ) -> List[BookingDocument]:
        """Return the booking's current documents with their blobs loaded.

        Args:
            booking_id: Booking ID
            types: Restrict to these document types

        Returns:
            Documents ordered by type
        """
        query = (
            select(BookingDocument)
            .where(BookingDocument.booking_id == booking_id)
            .options(selectinload(BookingDocument.blob))
            .order_by(BookingDocument.type)
        )
        if types is not None:
            query = query.where(BookingDocument.type.in_(list(types)))

        try:
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error listing documents for booking {booking_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def delete_with_blobs(self, documents: Sequence[BookingDocument]) -> List[str]:
        """Delete documents, then their blob rows.

        The underlying storage objects are left alone; the returned keys are
        for the caller to remove once the transaction has committed.

        Returns:
            Storage keys of the deleted blobs
        """
        if not documents:
            return []

        document_ids = [doc.id for doc in documents]
        blob_ids = [doc.blob_id for doc in documents]
        keys = [doc.blob.key for doc in documents]

        await self.session.execute(
            delete(BookingDocument)
            .where(BookingDocument.id.in_(document_ids))
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            delete(FileBlob)
            .where(FileBlob.id.in_(blob_ids))
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()

        LOGGER.info(
            f"Deleted {len(document_ids)} superseded documents",
            extra={"document_ids": [str(i) for i in document_ids], "storage_keys": keys}
        )
        return keys

    async def create_with_blob(
        self,
        booking_id: UUID,
        document_type: str,
        key: str,
        url: str,
        file_name: str,
        size_bytes: int,
        actor_id: str,
        mime_type: str = "application/pdf",
    ) -> Tuple[BookingDocument, FileBlob]:
        """Insert a FileBlob and the BookingDocument that points at it."""
        blob = FileBlob(
            key=key,
            url=url,
            mime_type=mime_type,
            file_name=file_name,
            size_bytes=size_bytes,
            uploaded_by_id=actor_id,
        )
        self.session.add(blob)
        await self.session.flush()

        document = BookingDocument(
            booking_id=booking_id,
            type=document_type,
            blob_id=blob.id,
            created_by_id=actor_id,
        )
        self.session.add(document)
        await self.session.flush()
        return document, blob
