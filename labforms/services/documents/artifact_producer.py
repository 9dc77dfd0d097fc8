"""Renders and uploads the documents of one generation attempt."""

import asyncio
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from labforms.core.config import settings
from labforms.core.exceptions import APITimeoutError, ArtifactProductionError, RenderError
from labforms.schemas.documents import (
    DocumentKind,
    DocumentType,
    ProducedArtifact,
    ProductionResult,
    ServiceFormRenderInput,
    WorkingAreaRenderInput,
)
from labforms.services.documents.pdf_renderer import BaseDocumentRenderer
from labforms.services.storage_service import BaseBlobStore
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ArtifactJob:
    document_type: DocumentType
    kind: DocumentKind
    render_input: BaseModel
    file_name: str
    idempotency_hint: str
    mandatory: bool


def service_form_file_name(form_number: str) -> str:
    return f"service-form-TOR-{form_number}.pdf"


def working_area_file_name(form_number: str) -> str:
    return f"working-area-WA-{form_number}.pdf"


class ArtifactProducer:
    """Runs render then upload for each required document.

    The service form is mandatory: if it cannot be produced the attempt
    aborts with ArtifactProductionError. The working area agreement is
    optional: its failure is reported in the result and the service form
    still goes ahead.
    """

    def __init__(
        self,
        renderer: BaseDocumentRenderer,
        blob_store: BaseBlobStore,
        render_timeout: Optional[float] = None,
        upload_timeout: Optional[float] = None,
        parallel: Optional[bool] = None,
    ):
        self.renderer = renderer
        self.blob_store = blob_store
        self.render_timeout = render_timeout or settings.documents.render_timeout_seconds
        self.upload_timeout = upload_timeout or settings.documents.upload_timeout_seconds
        self.parallel = settings.documents.render_in_parallel if parallel is None else parallel

    def plan(
        self,
        booking_id: UUID,
        form_number: str,
        service_form_input: ServiceFormRenderInput,
        working_area_input: Optional[WorkingAreaRenderInput] = None,
    ) -> List[ArtifactJob]:
        jobs = [
            ArtifactJob(
                document_type=DocumentType.SERVICE_FORM_UNSIGNED,
                kind=DocumentKind.SERVICE_FORM,
                render_input=service_form_input,
                file_name=service_form_file_name(form_number),
                idempotency_hint=f"tor-{booking_id}",
                mandatory=True,
            )
        ]
        if working_area_input is not None:
            jobs.append(
                ArtifactJob(
                    document_type=DocumentType.WORKSPACE_FORM_UNSIGNED,
                    kind=DocumentKind.WORKING_AREA_AGREEMENT,
                    render_input=working_area_input,
                    file_name=working_area_file_name(form_number),
                    idempotency_hint=f"wa-{booking_id}",
                    mandatory=False,
                )
            )
        return jobs

    async def produce(
        self,
        booking_id: UUID,
        form_number: str,
        service_form_input: ServiceFormRenderInput,
        working_area_input: Optional[WorkingAreaRenderInput] = None,
    ) -> ProductionResult:
        """Render and upload every required document.

        Returns:
            ProductionResult with a durable reference for the service form and,
            when produced, for the working area agreement

        Raises:
            ArtifactProductionError: If the service form cannot be rendered or uploaded
        """
        jobs = self.plan(booking_id, form_number, service_form_input, working_area_input)

        if self.parallel and len(jobs) > 1:
            outcomes = await asyncio.gather(
                *(self._run_job(job) for job in jobs), return_exceptions=True
            )
        else:
            outcomes = []
            for job in jobs:
                try:
                    outcomes.append(await self._run_job(job))
                except Exception as e:
                    outcomes.append(e)
                    if job.mandatory:
                        break

        mandatory_job, mandatory_outcome = jobs[0], outcomes[0]
        if isinstance(mandatory_outcome, BaseException):
            await self._discard_unreferenced(
                [o for o in outcomes[1:] if isinstance(o, ProducedArtifact)]
            )
            LOGGER.error(
                f"Mandatory document failed: {mandatory_outcome}",
                extra={"booking_id": str(booking_id), "form_number": form_number}
            )
            raise ArtifactProductionError(
                f"Failed to produce {mandatory_job.file_name}: {mandatory_outcome}",
                document_type=mandatory_job.document_type.value,
                original_error=mandatory_outcome if isinstance(mandatory_outcome, Exception) else None,
            )

        result = ProductionResult(service_form=mandatory_outcome)
        if len(jobs) > 1:
            optional_outcome = outcomes[1]
            if isinstance(optional_outcome, BaseException):
                result.working_area_error = str(optional_outcome) or type(optional_outcome).__name__
                LOGGER.warning(
                    f"Working area agreement failed, continuing with service form: {result.working_area_error}",
                    extra={"booking_id": str(booking_id), "form_number": form_number}
                )
            else:
                result.working_area = optional_outcome

        return result

    async def _run_job(self, job: ArtifactJob) -> ProducedArtifact:
        try:
            content = await asyncio.wait_for(
                asyncio.to_thread(self.renderer.render, job.kind, job.render_input),
                timeout=self.render_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RenderError(
                f"Rendering {job.file_name} timed out after {self.render_timeout}s", original_error=e
            ) from e

        try:
            stored = await asyncio.wait_for(
                self.blob_store.upload(content, job.file_name, job.idempotency_hint),
                timeout=self.upload_timeout,
            )
        except asyncio.TimeoutError as e:
            raise APITimeoutError(
                f"Uploading {job.file_name} timed out after {self.upload_timeout}s", original_error=e
            ) from e

        LOGGER.info(
            f"Produced {job.document_type.value}",
            extra={"key": stored.key, "file_name": job.file_name, "byte_length": len(content)}
        )
        return ProducedArtifact(
            document_type=job.document_type,
            kind=job.kind,
            key=stored.key,
            url=stored.url,
            byte_length=len(content),
            file_name=job.file_name,
        )

    async def _discard_unreferenced(self, artifacts: List[ProducedArtifact]) -> None:
        """Best-effort removal of uploads that no database row will reference."""
        keys = [artifact.key for artifact in artifacts]
        if not keys:
            return
        try:
            await self.blob_store.delete(keys)
        except Exception as e:
            LOGGER.warning(
                f"Could not remove unreferenced uploads: {e}",
                exc_info=True,
                extra={"orphaned_keys": keys}
            )
