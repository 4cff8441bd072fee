"""
Client-side upload orchestration.

Drives one file from local selection to a persisted metadata record:
validate locally, obtain a write credential from the access broker, PUT the
bytes straight to object storage, then record the file against its owner.
Each call is an independent attempt; nothing is retried automatically.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, List, Optional, Union

import httpx

from adapters.storage_adapter import BaseStorageAdapter
from common.exceptions import (
    AuthenticationException,
    AuthorizationException,
    BaseLicensingException,
    BusinessLogicException,
    InvalidFileException,
    InvalidRequestException,
    ResourceNotFoundException,
    StorageUnavailableException,
    TransferFailedException,
)
from common.logging import get_logger, log_business_event
from common.responses import extract_error_message
from entities.process_document import ProcessDocument, ProcessDocumentCreate
from entities.upload import (
    DeleteResult,
    FileCandidate,
    StoredFileMetadata,
    TERMINAL_UPLOAD_STATES,
    UploadAttempt,
    UploadResult,
    UploadState,
    ValidationResult,
    WriteCredential,
)
from repositories.collaborator_repository import CollaboratorRepository
from repositories.process_document_repository import ProcessDocumentRepository
from security.upload_validation import FileUploadValidator

logger = get_logger("upload_orchestrator")

ProgressCallback = Callable[[int], Union[None, Awaitable[None]]]
StateCallback = Callable[[UploadState], Union[None, Awaitable[None]]]

ALLOWED_TRANSITIONS: Dict[UploadState, frozenset] = {
    UploadState.IDLE: frozenset({UploadState.SELECTED}),
    UploadState.SELECTED: frozenset({UploadState.VALIDATING}),
    UploadState.VALIDATING: frozenset({UploadState.REJECTED, UploadState.VALIDATED}),
    UploadState.REJECTED: frozenset({UploadState.IDLE}),
    UploadState.VALIDATED: frozenset({UploadState.REQUESTING_CREDENTIAL}),
    UploadState.REQUESTING_CREDENTIAL: frozenset({UploadState.TRANSFERRING}),
    UploadState.TRANSFERRING: frozenset({UploadState.PERSISTING, UploadState.DONE}),
    UploadState.PERSISTING: frozenset({UploadState.DONE}),
    UploadState.DONE: frozenset(),
    UploadState.FAILED: frozenset({UploadState.IDLE}),
}

_BROKER_STATUS_ERRORS = {
    400: lambda msg: InvalidRequestException(detail=msg),
    401: lambda msg: AuthenticationException(detail=msg),
    403: lambda msg: AuthorizationException(detail=msg),
    404: lambda msg: ResourceNotFoundException(resource_type="Process", resource_id="", detail=msg),
}


async def _notify(callback, value) -> None:
    if callback is None:
        return
    result = callback(value)
    if asyncio.iscoroutine(result):
        await result


class SynthesizedProgress:
    """
    Timer-driven progress indicator for an in-flight upload.

    This is a UX approximation, not a measurement: the transport exposes no
    byte-level progress, so the value simply advances by `step` every
    `interval` seconds up to `ceiling` and is snapped to 100 (success) or 0
    (failure) once the transfer resolves.
    """

    def __init__(
        self,
        on_progress: Optional[ProgressCallback] = None,
        step: int = 10,
        interval: float = 0.2,
        ceiling: int = 90,
    ):
        self.on_progress = on_progress
        self.step = step
        self.interval = interval
        self.ceiling = ceiling
        self.value = 0
        self._task: Optional[asyncio.Task] = None

    async def _tick(self) -> None:
        while self.value < self.ceiling:
            await asyncio.sleep(self.interval)
            self.value = min(self.value + self.step, self.ceiling)
            await _notify(self.on_progress, self.value)

    def start(self) -> None:
        self.value = 0
        self._task = asyncio.create_task(self._tick())

    async def finish(self, success: bool) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.value = 100 if success else 0
        await _notify(self.on_progress, self.value)


class UploadOrchestrator:
    """
    Client for the signed-upload flow.

    The caller's access token is passed into every network-bound call; the
    orchestrator holds no session.
    """

    def __init__(
        self,
        broker_url: str,
        storage: BaseStorageAdapter,
        collaborator_repository: CollaboratorRepository,
        document_repository: Optional[ProcessDocumentRepository] = None,
        validator: Optional[FileUploadValidator] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        download_url_ttl: int = 3600,
        progress_step: int = 10,
        progress_interval: float = 0.2,
        progress_ceiling: int = 90,
    ):
        self.broker_url = broker_url
        self.storage = storage
        self.collaborator_repository = collaborator_repository
        self.document_repository = document_repository
        self.validator = validator or FileUploadValidator()
        self.http_client = http_client
        self.download_url_ttl = download_url_ttl
        self.progress_step = progress_step
        self.progress_interval = progress_interval
        self.progress_ceiling = progress_ceiling

    @asynccontextmanager
    async def _client(self):
        if self.http_client is not None:
            yield self.http_client
        else:
            async with httpx.AsyncClient() as client:
                yield client

    async def _transition(
        self,
        attempt: UploadAttempt,
        state: UploadState,
        on_state: Optional[StateCallback] = None,
    ) -> None:
        allowed = ALLOWED_TRANSITIONS[attempt.state]
        if state is UploadState.FAILED:
            if attempt.state in TERMINAL_UPLOAD_STATES:
                raise RuntimeError(f"Cannot fail a finished attempt ({attempt.state.value})")
        elif state not in allowed:
            raise RuntimeError(f"Invalid upload transition {attempt.state.value} -> {state.value}")
        attempt.state = state
        attempt.history.append(state)
        await _notify(on_state, state)

    def validate(self, candidate: FileCandidate) -> ValidationResult:
        """Local size and type checks; performs no I/O."""
        return self.validator.validate(candidate)

    async def request_credential(
        self,
        access_token: str,
        process_id: str,
        candidate: FileCandidate,
    ) -> WriteCredential:
        """POST to the broker; non-2xx responses are mapped back onto the error taxonomy."""
        payload = {
            "process_id": process_id,
            "filename": candidate.filename,
            "contentType": candidate.content_type,
        }
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with self._client() as client:
                response = await client.post(self.broker_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Error getting signed upload URL: {e}")
            raise StorageUnavailableException(
                detail="Failed to get signed upload URL",
                operation="request_credential"
            )

        if response.is_success:
            try:
                return WriteCredential.model_validate(response.json())
            except ValueError:
                # ValidationError and JSONDecodeError are both ValueErrors
                logger.error(
                    "Upload broker answered 2xx with an unusable body",
                    extra={"status_code": response.status_code, "broker_url": self.broker_url}
                )
                raise StorageUnavailableException(
                    detail="Invalid response from upload broker",
                    operation="request_credential"
                )

        try:
            body = response.json()
        except ValueError:
            body = None
        message = extract_error_message(body, "Failed to get signed upload URL")
        factory = _BROKER_STATUS_ERRORS.get(response.status_code)
        if factory is not None:
            raise factory(message)
        raise StorageUnavailableException(detail=message, operation="request_credential")

    async def transfer(self, credential: WriteCredential, candidate: FileCandidate) -> None:
        """PUT the raw bytes to the signed URL."""
        headers = {
            "Content-Type": candidate.content_type,
            "x-upsert": "true",
        }
        try:
            async with self._client() as client:
                response = await client.put(credential.upload_url, content=candidate.content, headers=headers)
        except httpx.HTTPError as e:
            raise TransferFailedException(detail=f"Upload failed: {e}")

        if not response.is_success:
            raise TransferFailedException(
                detail=f"Upload failed: {response.reason_phrase or response.status_code}",
                status_code_received=response.status_code
            )

    async def _run_upload(
        self,
        attempt: UploadAttempt,
        access_token: str,
        process_id: str,
        candidate: FileCandidate,
        on_progress: Optional[ProgressCallback],
        on_state: Optional[StateCallback],
    ) -> WriteCredential:
        await self._transition(attempt, UploadState.SELECTED, on_state)
        await self._transition(attempt, UploadState.VALIDATING, on_state)
        validation = self.validate(candidate)
        if not validation.valid:
            await self._transition(attempt, UploadState.REJECTED, on_state)
            raise InvalidFileException(
                detail=validation.error or "Arquivo inválido",
                filename=candidate.filename,
                file_type=candidate.content_type
            )
        await self._transition(attempt, UploadState.VALIDATED, on_state)

        progress = SynthesizedProgress(
            on_progress=on_progress,
            step=self.progress_step,
            interval=self.progress_interval,
            ceiling=self.progress_ceiling,
        )
        progress.start()
        transferred = False
        try:
            await self._transition(attempt, UploadState.REQUESTING_CREDENTIAL, on_state)
            credential = await self.request_credential(access_token, process_id, candidate)
            await self._transition(attempt, UploadState.TRANSFERRING, on_state)
            await self.transfer(credential, candidate)
            transferred = True
        finally:
            await progress.finish(success=transferred)
            attempt.progress = progress.value
        return credential

    async def _fail(
        self,
        attempt: UploadAttempt,
        error: BaseLicensingException,
        on_state: Optional[StateCallback],
    ) -> UploadResult:
        if attempt.state is UploadState.REJECTED:
            await self._transition(attempt, UploadState.IDLE, on_state)
        else:
            await self._transition(attempt, UploadState.FAILED, on_state)
            attempt.error = error.detail
            await self._transition(attempt, UploadState.IDLE, on_state)
        attempt.progress = 0
        return UploadResult(success=False, error=error.detail, error_code=error.error_code)

    async def upload(
        self,
        process_id: str,
        candidate: FileCandidate,
        access_token: str,
        on_progress: Optional[ProgressCallback] = None,
        on_state: Optional[StateCallback] = None,
    ) -> UploadResult:
        """Validate, obtain a credential and transfer; does not persist metadata."""
        attempt = UploadAttempt(candidate=candidate)
        try:
            credential = await self._run_upload(attempt, access_token, process_id, candidate, on_progress, on_state)
        except BaseLicensingException as e:
            logger.error(f"Upload error for {candidate.filename}: {e.detail}")
            return await self._fail(attempt, e, on_state)

        await self._transition(attempt, UploadState.DONE, on_state)
        return UploadResult(success=True, storage_path=credential.storage_path, file_id=credential.file_id)

    async def persist_metadata(
        self,
        owner_id: str,
        storage_path: str,
        file_id: str,
        metadata: StoredFileMetadata,
    ) -> None:
        """Overwrite the procuration reference on a collaborator; blank values clear it."""
        await self.collaborator_repository.update_procuration(owner_id, storage_path, file_id, metadata)

    async def upload_procuration(
        self,
        process_id: str,
        collaborator_id: str,
        candidate: FileCandidate,
        access_token: str,
        on_progress: Optional[ProgressCallback] = None,
        on_state: Optional[StateCallback] = None,
    ) -> UploadResult:
        """Full flow for a power-of-attorney file, ending with the collaborator row updated."""
        attempt = UploadAttempt(candidate=candidate)
        try:
            credential = await self._run_upload(attempt, access_token, process_id, candidate, on_progress, on_state)
            await self._transition(attempt, UploadState.PERSISTING, on_state)
            await self.persist_metadata(
                collaborator_id,
                credential.storage_path,
                credential.file_id,
                StoredFileMetadata.for_file(candidate),
            )
        except BaseLicensingException as e:
            logger.error(f"Procuration upload failed for collaborator {collaborator_id}: {e.detail}")
            return await self._fail(attempt, e, on_state)

        await self._transition(attempt, UploadState.DONE, on_state)
        log_business_event(
            event_type="PROCURATION_UPLOADED",
            entity_type="process_collaborator",
            entity_id=collaborator_id,
            action="upload",
            details={"process_id": process_id, "storage_path": credential.storage_path}
        )
        return UploadResult(success=True, storage_path=credential.storage_path, file_id=credential.file_id)

    async def delete(self, storage_path: str, owner_id: str) -> DeleteResult:
        """
        Remove the object, then clear the owner's metadata regardless.

        The metadata is cleared even when the store-side remove fails or
        reports nothing removed; `storage_removed` exposes that drift.
        """
        storage_removed = False
        storage_error = None
        try:
            removed = await self.storage.remove([storage_path])
            storage_removed = storage_path in removed
            if not storage_removed:
                storage_error = "Object not reported as removed"
        except StorageUnavailableException as e:
            storage_error = e.detail

        if not storage_removed:
            logger.warning(
                f"Storage remove did not confirm deletion of {storage_path}; clearing metadata anyway",
                extra={"storage_path": storage_path, "owner_id": owner_id, "storage_error": storage_error}
            )

        await self.persist_metadata(owner_id, "", "", StoredFileMetadata.cleared())
        log_business_event(
            event_type="PROCURATION_DELETED",
            entity_type="process_collaborator",
            entity_id=owner_id,
            action="delete",
            details={"storage_path": storage_path, "storage_removed": storage_removed}
        )
        return DeleteResult(
            storage_path=storage_path,
            storage_removed=storage_removed,
            storage_error=storage_error,
        )

    async def get_download_url(self, storage_path: str) -> str:
        return await self.storage.create_signed_url(storage_path, self.download_url_ttl)

    async def upload_process_documents(
        self,
        process_id: str,
        candidates: List[FileCandidate],
        access_token: str,
        uploaded_by: str,
    ) -> List[ProcessDocument]:
        """Upload several files concurrently and record a process_documents row for each.

        Every upload runs to completion; then the first failure in input order
        is raised and the others are logged.
        """
        if self.document_repository is None:
            raise RuntimeError("UploadOrchestrator was created without a document repository")

        async def upload_one(candidate: FileCandidate) -> ProcessDocument:
            result = await self.upload(process_id, candidate, access_token)
            if not result.success:
                raise BusinessLogicException(
                    detail=f"Erro ao fazer upload de {candidate.filename}: {result.error}",
                    error_code="DOCUMENT_UPLOAD_FAILED",
                    context={"filename": candidate.filename, "cause": result.error_code}
                )
            return await self.document_repository.create(ProcessDocumentCreate(
                process_id=process_id,
                name=candidate.filename,
                file_path=result.storage_path,
                file_size=candidate.size,
                file_type=candidate.content_type,
                uploaded_by=uploaded_by,
            ))

        logger.info(f"Starting upload of {len(candidates)} files for process {process_id}")
        outcomes = await asyncio.gather(*(upload_one(c) for c in candidates), return_exceptions=True)
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        for extra_failure in failures[1:]:
            logger.warning(f"Additional upload failure for process {process_id}: {extra_failure}")
        if failures:
            raise failures[0]
        return list(outcomes)
