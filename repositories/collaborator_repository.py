"""
Process collaborator repository implementation using Supabase.
"""

from typing import Optional

from repositories.base import SupabaseRepository
from entities.collaborator import ProcessCollaborator
from entities.upload import StoredFileMetadata
from common.exceptions import PersistFailedException, SupabaseException
from common.logging import get_logger

logger = get_logger("collaborator_repository")


class CollaboratorRepository(SupabaseRepository[ProcessCollaborator]):

    def __init__(self, supabase_client, table_name: str = "process_collaborators"):
        super().__init__(supabase_client, table_name)

    async def get_by_id(self, collaborator_id: str) -> Optional[ProcessCollaborator]:
        try:
            result = self._table()\
                .select("*")\
                .eq("id", collaborator_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return None
            logger.error(f"Failed to get collaborator {collaborator_id}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to retrieve collaborator",
                table=self.table_name,
                operation="select"
            )
        if not result.data:
            return None
        return ProcessCollaborator.from_dict(result.data[0])

    async def update_procuration(
        self,
        collaborator_id: str,
        storage_path: str,
        file_id: str,
        metadata: StoredFileMetadata,
    ) -> None:
        """Overwrite the procuration reference; empty values clear it."""
        try:
            self._table()\
                .update({
                    "procuracao_file_id": file_id,
                    "procuracao_storage_path": storage_path,
                    "procuracao_file_metadata": metadata.to_wire(),
                })\
                .eq("id", collaborator_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error saving procuration file reference for {collaborator_id}: {e}", exc_info=True)
            raise PersistFailedException(
                detail="Erro ao salvar referência do arquivo de procuração",
                table=self.table_name,
                owner_id=collaborator_id
            )

    async def is_accepted_collaborator(self, process_id: str, user_id: str) -> bool:
        try:
            result = self._table()\
                .select("id")\
                .eq("process_id", process_id)\
                .eq("user_id", user_id)\
                .eq("status", "accepted")\
                .limit(1)\
                .execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return False
            logger.error(f"Failed to check collaboration on {process_id}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to check collaboration",
                table=self.table_name,
                operation="select"
            )
        return bool(result.data)
