import json

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse

from auth.decorators import BearerToken, CurrentUser
from config.cors import CORS_HEADERS
from dependencies import AccessBrokerDep, ProcessServiceDep, UploadOrchestratorDep
from entities.upload import UploadRequest

from common.exceptions import AuthorizationException, InvalidRequestException
from common.logging import log_security_event
from common.responses import create_success_response

router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.options("/signed-url",
    summary="Preflight for signed upload URL",
    description="CORS preflight; always answers 200 with the permissive CORS headers."
)
async def signed_upload_url_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/signed-url",
    summary="Issue a signed upload URL",
    description=(
        "Verifies the caller owns the process and returns a single-use signed URL "
        "for a fresh storage path under that process. Authentication is checked "
        "before the body is read."
    ),
    openapi_extra={"requestBody": {
        "content": {"application/json": {"schema": UploadRequest.model_json_schema(by_alias=True)}}
    }},
)
async def create_signed_upload_url(
    request: Request,
    broker: AccessBrokerDep,
    token: BearerToken,
) -> JSONResponse:
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw.strip() else None
    except ValueError:
        # handed on as-is; the broker rejects it once the caller is authenticated
        payload = raw
    credential = await broker.issue_write_credential(token, payload)
    return JSONResponse(content=credential.to_wire(), headers=CORS_HEADERS)


@router.get("/download-url",
    summary="Get a signed download URL",
    description="Returns a time-limited read URL for a stored file the caller can see."
)
async def get_download_url(
    request: Request,
    current_user: CurrentUser,
    process_service: ProcessServiceDep,
    orchestrator: UploadOrchestratorDep,
    storage_path: str = Query(..., min_length=1, description="Path of the object inside the bucket"),
):
    process_id, _, name = storage_path.partition("/")
    if not process_id or not name:
        raise InvalidRequestException(
            detail="Invalid storage path",
            context={"storage_path": storage_path}
        )

    if not await process_service.can_read_process(current_user.id, process_id):
        log_security_event(
            event_type="DOWNLOAD_DENIED",
            user_id=current_user.id,
            ip_address=request.client.host if request.client else None,
            details={"storage_path": storage_path}
        )
        raise AuthorizationException(
            detail="You do not have permission to access this file",
            context={"storage_path": storage_path}
        )

    url = await orchestrator.get_download_url(storage_path)
    return create_success_response(
        data={"url": url, "expires_in": orchestrator.download_url_ttl}
    )
