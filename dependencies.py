"""
Dependency injection setup for repositories and services.
"""

from functools import lru_cache
from typing import Annotated
from fastapi import Depends

from db.supabase_client import create_supabase_client, create_supabase_admin_client
from adapters.storage_adapter import BaseStorageAdapter, SupabaseStorageAdapter
from repositories.license_process_repository import LicenseProcessRepository
from repositories.company_repository import CompanyRepository
from repositories.collaborator_repository import CollaboratorRepository
from repositories.process_document_repository import ProcessDocumentRepository
from services.auth_service import AuthService, create_auth_service
from services.access_broker import AccessBroker, create_access_broker
from services.process_service import ProcessService, create_process_service
from services.procuration_service import ProcurationService, create_procuration_service
from services.upload_orchestrator import UploadOrchestrator
from security.upload_validation import FileUploadValidator
from config.config import settings


@lru_cache()
def get_supabase_auth_client():
    """Anon client used only by AuthService."""
    return create_supabase_client()


@lru_cache()
def get_supabase_admin_client():
    """Service-role client shared by the repositories and storage."""
    return create_supabase_admin_client()


@lru_cache()
def get_storage_adapter() -> BaseStorageAdapter:
    return SupabaseStorageAdapter(get_supabase_admin_client(), settings.storage_bucket)


@lru_cache()
def get_license_process_repository() -> LicenseProcessRepository:
    return LicenseProcessRepository(get_supabase_admin_client(), settings.supabase_table_license_processes)


@lru_cache()
def get_company_repository() -> CompanyRepository:
    return CompanyRepository(get_supabase_admin_client(), settings.supabase_table_companies)


@lru_cache()
def get_collaborator_repository() -> CollaboratorRepository:
    return CollaboratorRepository(get_supabase_admin_client(), settings.supabase_table_process_collaborators)


@lru_cache()
def get_process_document_repository() -> ProcessDocumentRepository:
    return ProcessDocumentRepository(get_supabase_admin_client(), settings.supabase_table_process_documents)


@lru_cache()
def get_auth_service() -> AuthService:
    """Get singleton AuthService with dependencies."""
    return create_auth_service(get_supabase_auth_client())


@lru_cache()
def get_access_broker() -> AccessBroker:
    return create_access_broker(get_auth_service(), get_license_process_repository(), get_storage_adapter())


@lru_cache()
def get_upload_orchestrator() -> UploadOrchestrator:
    return UploadOrchestrator(
        broker_url=settings.upload_broker_url,
        storage=get_storage_adapter(),
        collaborator_repository=get_collaborator_repository(),
        document_repository=get_process_document_repository(),
        validator=FileUploadValidator(settings.max_upload_size_bytes),
        download_url_ttl=settings.signed_download_url_ttl_seconds,
        progress_step=settings.upload_progress_step,
        progress_interval=settings.upload_progress_interval_seconds,
        progress_ceiling=settings.upload_progress_ceiling,
    )


@lru_cache()
def get_process_service() -> ProcessService:
    return create_process_service(
        get_license_process_repository(),
        get_company_repository(),
        get_process_document_repository(),
        get_collaborator_repository(),
        settings,
    )


@lru_cache()
def get_procuration_service() -> ProcurationService:
    return create_procuration_service(
        get_collaborator_repository(),
        get_license_process_repository(),
        get_upload_orchestrator(),
    )


# Dependency annotations for FastAPI
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
AccessBrokerDep = Annotated[AccessBroker, Depends(get_access_broker)]
UploadOrchestratorDep = Annotated[UploadOrchestrator, Depends(get_upload_orchestrator)]
ProcessServiceDep = Annotated[ProcessService, Depends(get_process_service)]
ProcurationServiceDep = Annotated[ProcurationService, Depends(get_procuration_service)]
