"""
License process service using Repository pattern.
"""
import calendar
from datetime import date
from typing import List, Optional

from entities.company import CompanyCreate
from entities.license_process import (
    LicenseProcess,
    ProcessCreate,
    ProcessFilter,
    ProcessStats,
    ProcessStatus,
    ProcessUpdate,
)
from entities.process_document import ProcessDocument
from repositories.collaborator_repository import CollaboratorRepository
from repositories.company_repository import CompanyRepository
from repositories.license_process_repository import LicenseProcessRepository
from repositories.process_document_repository import ProcessDocumentRepository
from common.exceptions import ResourceNotFoundException, SupabaseException
from common.logging import get_logger, log_business_event
from config.config import Settings

logger = get_logger("process_service")


def add_months(start: date, months: int) -> date:
    """Calendar-month addition, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class ProcessService:
    """
    Process operations scoped to an explicit caller id.
    """

    def __init__(
        self,
        process_repo: LicenseProcessRepository,
        company_repo: CompanyRepository,
        document_repo: ProcessDocumentRepository,
        collaborator_repo: CollaboratorRepository,
        settings: Settings,
    ):
        self.process_repo = process_repo
        self.company_repo = company_repo
        self.document_repo = document_repo
        self.collaborator_repo = collaborator_repo
        self.settings = settings

    async def list_processes(self, user_id: str, filters: Optional[ProcessFilter] = None) -> List[LicenseProcess]:
        """Owned processes first, then accepted collaborations not already owned."""
        owned = await self.process_repo.list_owned(user_id, filters)

        try:
            collaborated = await self.process_repo.list_collaborated(user_id, filters)
        except SupabaseException:
            logger.warning("Could not load collaborated processes, continuing with owned only")
            collaborated = []

        owned_ids = {p.id for p in owned}
        processes = owned + [p for p in collaborated if p.id not in owned_ids]
        logger.info(f"Loaded {len(owned)} owned + {len(collaborated)} collaborated processes")

        if filters and filters.search:
            processes = [p for p in processes if p.matches_search(filters.search)]
        return processes

    async def get_process(self, user_id: str, process_id: str) -> LicenseProcess:
        process = await self.process_repo.get_for_owner(process_id, user_id)
        if process is None:
            raise ResourceNotFoundException(resource_type="Process", resource_id=process_id)
        return process

    async def create_process(
        self,
        user_id: str,
        user_email: Optional[str],
        data: ProcessCreate,
        today: Optional[date] = None,
    ) -> LicenseProcess:
        today = today or date.today()

        company_id = data.company_id
        if not company_id:
            company = await self.company_repo.create(CompanyCreate(
                user_id=user_id,
                name=data.company,
                cnpj=data.cnpj,
                email=data.email or user_email or "",
                city=data.city,
                state=data.state,
                address=data.location,
            ))
            company_id = company.id

        license_type = data.license_type.value
        expected_date = add_months(today, self.settings.expected_months_for(license_type))

        process = await self.process_repo.create({
            "user_id": user_id,
            "company_id": company_id,
            "license_type": license_type,
            "activity": data.activity,
            "municipality": data.city,
            "project_description": data.description,
            "status": ProcessStatus.SUBMITTED.value,
            "progress": 0,
            "submit_date": today.isoformat(),
            "expected_date": expected_date.isoformat(),
            "location": data.location,
            "area": data.area,
            "coordinates": data.coordinates or None,
            "environmental_impact": data.environmental_impact.value,
            "estimated_value": data.estimated_value,
        })

        log_business_event(
            event_type="PROCESS_CREATED",
            entity_type="license_process",
            entity_id=process.id,
            action="create",
            user_id=user_id,
            details={"license_type": license_type, "company_id": company_id}
        )
        return process

    async def update_process(self, user_id: str, process_id: str, updates: ProcessUpdate) -> LicenseProcess:
        process = await self.process_repo.update_for_owner(process_id, user_id, updates.changes())
        if process is None:
            raise ResourceNotFoundException(
                resource_type="Process",
                resource_id=process_id,
                detail="No process found with the given ID for this user"
            )
        log_business_event(
            event_type="PROCESS_UPDATED",
            entity_type="license_process",
            entity_id=process_id,
            action="update",
            user_id=user_id,
            details={"fields": sorted(updates.changes())}
        )
        return process

    async def delete_process(self, user_id: str, process_id: str) -> None:
        deleted = await self.process_repo.delete_for_owner(process_id, user_id)
        if not deleted:
            raise ResourceNotFoundException(resource_type="Process", resource_id=process_id)
        log_business_event(
            event_type="PROCESS_DELETED",
            entity_type="license_process",
            entity_id=process_id,
            action="delete",
            user_id=user_id
        )

    async def get_process_stats(self, user_id: str) -> ProcessStats:
        statuses = await self.process_repo.list_statuses(user_id)
        # expired is not tracked yet
        return ProcessStats(
            total=len(statuses),
            pending=statuses.count(ProcessStatus.SUBMITTED.value),
            analysis=statuses.count(ProcessStatus.UNDER_ANALYSIS.value),
            approved=statuses.count(ProcessStatus.APPROVED.value),
            rejected=statuses.count(ProcessStatus.REJECTED.value),
            expired=0,
        )

    async def can_read_process(self, user_id: str, process_id: str) -> bool:
        """Owners and accepted collaborators may read a process and its files."""
        process = await self.process_repo.get_by_id(process_id)
        if process is None:
            return False
        if process.is_owned_by(user_id):
            return True
        return await self.collaborator_repo.is_accepted_collaborator(process_id, user_id)

    async def list_documents(self, user_id: str, process_id: str) -> List[ProcessDocument]:
        await self.get_process(user_id, process_id)
        return await self.document_repo.list_for_process(process_id)


def create_process_service(
    process_repo: LicenseProcessRepository,
    company_repo: CompanyRepository,
    document_repo: ProcessDocumentRepository,
    collaborator_repo: CollaboratorRepository,
    settings: Settings,
) -> ProcessService:
    return ProcessService(process_repo, company_repo, document_repo, collaborator_repo, settings)
