from typing import Optional
from fastapi import APIRouter, Path, Query

from auth.decorators import CurrentUser
from dependencies import ProcessServiceDep
from entities.license_process import LicenseType, ProcessCreate, ProcessFilter, ProcessUpdate

from common.exceptions import ValidationException
from common.logging import log_business_event, process_id_var
from common.responses import create_success_response

router = APIRouter(prefix="/processes", tags=["Processes"])


@router.get("",
    summary="List license processes",
    description=(
        "Processes owned by the caller plus those shared with them through an "
        "accepted collaboration. Search matches company name or activity."
    )
)
async def list_processes(
    current_user: CurrentUser,
    process_service: ProcessServiceDep,
    status: Optional[str] = Query(None, description="Process status, or 'all'"),
    license_type: Optional[LicenseType] = Query(None, alias="type", description="LP, LI or LO"),
    search: Optional[str] = Query(None, max_length=200, description="Company name or activity"),
):
    filters = ProcessFilter(status=status, license_type=license_type, search=search)
    processes = await process_service.list_processes(current_user.id, filters)
    return create_success_response(
        data=[p.model_dump(mode="json") for p in processes],
        meta={"total": len(processes)}
    )


@router.get("/stats",
    summary="Process statistics",
    description="Counts of the caller's own processes by status."
)
async def get_process_stats(current_user: CurrentUser, process_service: ProcessServiceDep):
    stats = await process_service.get_process_stats(current_user.id)
    return create_success_response(data=stats.model_dump())


@router.post("",
    summary="Create a license process",
    description="Creates the company when no company_id is given, then the process with its expected date.",
    status_code=201
)
async def create_process(
    data: ProcessCreate,
    current_user: CurrentUser,
    process_service: ProcessServiceDep,
):
    process = await process_service.create_process(current_user.id, current_user.email, data)
    return create_success_response(
        data=process.model_dump(mode="json"),
        meta={"message": "Process created successfully"},
        status_code=201
    )


@router.get("/{process_id}",
    summary="Get a license process",
    description="Returns one of the caller's own processes with its company."
)
async def get_process(
    current_user: CurrentUser,
    process_service: ProcessServiceDep,
    process_id: str = Path(..., description="Process id"),
):
    process_id_var.set(process_id)
    process = await process_service.get_process(current_user.id, process_id)
    return create_success_response(data=process.model_dump(mode="json"))


@router.put("/{process_id}",
    summary="Update a license process",
    description="Partial update of an owned process; unset fields are left unchanged."
)
async def update_process(
    updates: ProcessUpdate,
    current_user: CurrentUser,
    process_service: ProcessServiceDep,
    process_id: str = Path(..., description="Process id"),
):
    process_id_var.set(process_id)
    if not updates.changes():
        raise ValidationException(detail="No fields to update")
    process = await process_service.update_process(current_user.id, process_id, updates)
    return create_success_response(data=process.model_dump(mode="json"))


@router.delete("/{process_id}",
    summary="Delete a license process",
    description="Deletes an owned process."
)
async def delete_process(
    current_user: CurrentUser,
    process_service: ProcessServiceDep,
    process_id: str = Path(..., description="Process id"),
):
    process_id_var.set(process_id)
    await process_service.delete_process(current_user.id, process_id)
    return create_success_response(
        data={"id": process_id},
        meta={"message": "Process deleted successfully"}
    )


@router.get("/{process_id}/documents",
    summary="List process documents",
    description="Documents uploaded against an owned process."
)
async def list_process_documents(
    current_user: CurrentUser,
    process_service: ProcessServiceDep,
    process_id: str = Path(..., description="Process id"),
):
    process_id_var.set(process_id)
    documents = await process_service.list_documents(current_user.id, process_id)
    log_business_event(
        event_type="PROCESS_DOCUMENTS_LISTED",
        entity_type="license_process",
        entity_id=process_id,
        action="read",
        user_id=current_user.id,
        details={"count": len(documents)}
    )
    return create_success_response(
        data=[d.model_dump(mode="json") for d in documents],
        meta={"total": len(documents)}
    )
