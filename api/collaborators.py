from fastapi import APIRouter, Path

from auth.decorators import CurrentUser
from dependencies import ProcurationServiceDep
from entities.collaborator import ProcurationUpdate

from common.logging import get_logger, log_business_event
from common.responses import create_success_response

router = APIRouter(prefix="/collaborators", tags=["Collaborators"])
logger = get_logger("collaborators")


@router.get("/{collaborator_id}/procuration",
    summary="Get procuration file reference",
    description="Stored path, file id and metadata of a collaborator's power of attorney."
)
async def get_procuration(
    current_user: CurrentUser,
    procuration_service: ProcurationServiceDep,
    collaborator_id: str = Path(..., description="Collaborator id"),
):
    procuration = await procuration_service.get_procuration(current_user, collaborator_id)
    return create_success_response(data=procuration.model_dump(by_alias=True))


@router.put("/{collaborator_id}/procuration",
    summary="Record procuration file reference",
    description=(
        "Records a file already transferred with a signed upload URL. "
        "Overwrites any previous reference."
    )
)
async def save_procuration(
    body: ProcurationUpdate,
    current_user: CurrentUser,
    procuration_service: ProcurationServiceDep,
    collaborator_id: str = Path(..., description="Collaborator id"),
):
    procuration = await procuration_service.save_procuration(
        current_user,
        collaborator_id,
        body.storage_path,
        body.file_id,
        body.metadata,
    )
    log_business_event(
        event_type="PROCURATION_RECORDED",
        entity_type="process_collaborator",
        entity_id=collaborator_id,
        action="update",
        user_id=current_user.id,
        details={"storage_path": body.storage_path}
    )
    return create_success_response(data=procuration.model_dump(by_alias=True))


@router.delete("/{collaborator_id}/procuration",
    summary="Delete procuration file",
    description=(
        "Removes the stored object and clears the reference. The reference is "
        "cleared even when storage does not confirm the removal; "
        "`storage_removed` reports the outcome."
    )
)
async def delete_procuration(
    current_user: CurrentUser,
    procuration_service: ProcurationServiceDep,
    collaborator_id: str = Path(..., description="Collaborator id"),
):
    result = await procuration_service.delete_procuration(current_user, collaborator_id)
    if not result.storage_removed:
        logger.warning(f"Procuration reference cleared for {collaborator_id} but object may remain in storage")
    return create_success_response(
        data={
            "storage_path": result.storage_path,
            "storage_removed": result.storage_removed,
            "metadata_cleared": result.metadata_cleared,
            "storage_error": result.storage_error,
        }
    )


@router.get("/{collaborator_id}/procuration/download-url",
    summary="Get procuration download URL",
    description="Time-limited signed URL for the collaborator's procuration file."
)
async def get_procuration_download_url(
    current_user: CurrentUser,
    procuration_service: ProcurationServiceDep,
    collaborator_id: str = Path(..., description="Collaborator id"),
):
    url = await procuration_service.get_download_url(current_user, collaborator_id)
    return create_success_response(data={"url": url})
