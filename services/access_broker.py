"""
Access broker for direct-to-storage uploads.

Given a bearer token and a license process id, decides whether the caller may
write a new file under that process and, if so, mints a single-use signed
upload URL bound to a freshly generated storage path. Nothing is remembered
between calls; the provider enforces the credential's expiry.
"""

import time
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import ValidationError

from adapters.storage_adapter import BaseStorageAdapter
from common.exceptions import (
    AuthorizationException,
    InvalidRequestException,
    ResourceNotFoundException,
)
from common.logging import log_business_event, log_performance, log_security_event
from entities.upload import UploadRequest, WriteCredential
from repositories.license_process_repository import LicenseProcessRepository
from security.upload_validation import build_storage_path, random_suffix
from services.auth_service import AuthService

MISSING_FIELDS_MESSAGE = "Missing required fields: process_id, filename, contentType"


def parse_upload_request(payload: Any) -> UploadRequest:
    """Build the request from a decoded JSON body.

    `payload` is whatever the body decoded to (None when empty); anything other
    than an object with string fields is a 400.
    """
    if isinstance(payload, UploadRequest):
        return payload
    if payload is None:
        return UploadRequest()
    if not isinstance(payload, dict):
        raise InvalidRequestException(detail="Request body must be a JSON object", error_code="INVALID_BODY")
    try:
        return UploadRequest.model_validate(payload)
    except ValidationError as e:
        raise InvalidRequestException(
            detail=MISSING_FIELDS_MESSAGE,
            error_code="INVALID_BODY",
            context={"fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]}
        )


class AccessBroker:

    def __init__(
        self,
        auth_service: AuthService,
        process_repository: LicenseProcessRepository,
        storage: BaseStorageAdapter,
        clock: Callable[[], Optional[datetime]] = lambda: None,
        suffix_factory: Callable[[], str] = random_suffix,
    ):
        self.auth_service = auth_service
        self.process_repository = process_repository
        self.storage = storage
        self.clock = clock
        self.suffix_factory = suffix_factory

    async def issue_write_credential(
        self,
        caller_token: Optional[str],
        payload: Any,
    ) -> WriteCredential:
        """
        Authorize and mint an upload credential.

        Raises, in check order:
            AuthenticationException: token absent or not resolvable (401)
            InvalidRequestException: body unreadable, or process_id, filename or
                contentType absent (400)
            ResourceNotFoundException: the process does not exist (404)
            AuthorizationException: the caller does not own the process (403)
            StorageUnavailableException: the provider refused to sign (500)
        """
        start_time = time.time()
        user = await self.auth_service.get_current_user(caller_token)

        request = parse_upload_request(payload)
        missing = request.missing_fields()
        if missing:
            raise InvalidRequestException(
                detail=MISSING_FIELDS_MESSAGE,
                missing_fields=missing
            )

        process = await self.process_repository.get_by_id(request.process_id)
        if process is None:
            raise ResourceNotFoundException(
                resource_type="Process",
                resource_id=request.process_id,
                detail="Process not found"
            )

        # Owner-only: accepted collaborators are not granted upload credentials here.
        if not process.is_owned_by(user.id):
            log_security_event(
                event_type="UPLOAD_CREDENTIAL_DENIED",
                user_id=user.id,
                details={"process_id": request.process_id}
            )
            raise AuthorizationException(
                detail="You do not have permission to upload files to this process",
                error_code="NOT_PROCESS_OWNER",
                context={"process_id": request.process_id}
            )

        storage_path = build_storage_path(
            request.process_id,
            request.filename,
            now=self.clock(),
            suffix_factory=self.suffix_factory,
        )
        signed = await self.storage.create_signed_upload_url(storage_path)

        log_business_event(
            event_type="UPLOAD_CREDENTIAL_ISSUED",
            entity_type="license_process",
            entity_id=request.process_id,
            action="issue_credential",
            user_id=user.id,
            details={"storage_path": storage_path, "content_type": request.content_type}
        )
        log_performance(
            operation="issue_write_credential",
            duration_ms=(time.time() - start_time) * 1000
        )

        return WriteCredential(
            upload_url=signed.url,
            storage_path=storage_path,
            file_id=signed.token,
        )


def create_access_broker(
    auth_service: AuthService,
    process_repository: LicenseProcessRepository,
    storage: BaseStorageAdapter,
) -> AccessBroker:
    return AccessBroker(auth_service, process_repository, storage)
