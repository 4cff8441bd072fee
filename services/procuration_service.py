"""
Procuration (power of attorney) file management for process collaborators.
"""
from auth.models import AuthenticatedUser
from entities.collaborator import ProcessCollaborator, ProcurationFile
from entities.upload import DeleteResult, StoredFileMetadata
from repositories.collaborator_repository import CollaboratorRepository
from repositories.license_process_repository import LicenseProcessRepository
from services.upload_orchestrator import UploadOrchestrator
from common.exceptions import AuthorizationException, InvalidRequestException, ResourceNotFoundException


class ProcurationService:

    def __init__(
        self,
        collaborator_repo: CollaboratorRepository,
        process_repo: LicenseProcessRepository,
        orchestrator: UploadOrchestrator,
    ):
        self.collaborator_repo = collaborator_repo
        self.process_repo = process_repo
        self.orchestrator = orchestrator

    async def _authorized_collaborator(self, user: AuthenticatedUser, collaborator_id: str) -> ProcessCollaborator:
        """The process owner or the collaborator themself may manage the file."""
        collaborator = await self.collaborator_repo.get_by_id(collaborator_id)
        if collaborator is None:
            raise ResourceNotFoundException(resource_type="Collaborator", resource_id=collaborator_id)

        if collaborator.user_id == user.id:
            return collaborator

        process = await self.process_repo.get_by_id(collaborator.process_id)
        if process is None or not process.is_owned_by(user.id):
            raise AuthorizationException(
                detail="You do not have permission to manage this collaborator's files",
                context={"collaborator_id": collaborator_id}
            )
        return collaborator

    async def get_procuration(self, user: AuthenticatedUser, collaborator_id: str) -> ProcurationFile:
        collaborator = await self._authorized_collaborator(user, collaborator_id)
        return ProcurationFile.from_collaborator(collaborator)

    async def save_procuration(
        self,
        user: AuthenticatedUser,
        collaborator_id: str,
        storage_path: str,
        file_id: str,
        metadata: StoredFileMetadata,
    ) -> ProcurationFile:
        collaborator = await self._authorized_collaborator(user, collaborator_id)
        # Paths are namespaced by process id
        if storage_path and not storage_path.startswith(f"{collaborator.process_id}/"):
            raise InvalidRequestException(
                detail="Storage path does not belong to this collaborator's process",
                context={"storage_path": storage_path, "process_id": collaborator.process_id}
            )
        await self.orchestrator.persist_metadata(collaborator_id, storage_path, file_id, metadata)
        return ProcurationFile(
            collaborator_id=collaborator_id,
            storage_path=storage_path,
            file_id=file_id,
            metadata=metadata,
        )

    async def delete_procuration(self, user: AuthenticatedUser, collaborator_id: str) -> DeleteResult:
        collaborator = await self._authorized_collaborator(user, collaborator_id)
        if not collaborator.has_procuration():
            raise ResourceNotFoundException(
                resource_type="Procuration",
                resource_id=collaborator_id,
                detail="Collaborator has no procuration file"
            )
        return await self.orchestrator.delete(collaborator.procuracao_storage_path, collaborator_id)

    async def get_download_url(self, user: AuthenticatedUser, collaborator_id: str) -> str:
        collaborator = await self._authorized_collaborator(user, collaborator_id)
        if not collaborator.has_procuration():
            raise ResourceNotFoundException(
                resource_type="Procuration",
                resource_id=collaborator_id,
                detail="Collaborator has no procuration file"
            )
        return await self.orchestrator.get_download_url(collaborator.procuracao_storage_path)


def create_procuration_service(
    collaborator_repo: CollaboratorRepository,
    process_repo: LicenseProcessRepository,
    orchestrator: UploadOrchestrator,
) -> ProcurationService:
    return ProcurationService(collaborator_repo, process_repo, orchestrator)
