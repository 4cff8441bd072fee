"""
Process document repository implementation using Supabase.
"""

from typing import List, Optional

from repositories.base import SupabaseRepository
from entities.process_document import ProcessDocument, ProcessDocumentCreate
from common.exceptions import PersistFailedException, SupabaseException
from common.logging import get_logger

logger = get_logger("process_document_repository")


class ProcessDocumentRepository(SupabaseRepository[ProcessDocument]):

    def __init__(self, supabase_client, table_name: str = "process_documents"):
        super().__init__(supabase_client, table_name)

    async def create(self, document: ProcessDocumentCreate) -> ProcessDocument:
        try:
            result = self._table().insert(document.model_dump()).execute()
        except Exception as e:
            logger.error(f"Error saving document metadata for {document.name}: {e}", exc_info=True)
            raise PersistFailedException(
                detail=f"Erro ao salvar metadados de {document.name}",
                table=self.table_name,
                owner_id=document.process_id
            )
        if not result.data:
            raise PersistFailedException(
                detail=f"Erro ao salvar metadados de {document.name}",
                table=self.table_name,
                owner_id=document.process_id
            )
        return ProcessDocument.from_dict(result.data[0])

    async def get_by_id(self, document_id: str) -> Optional[ProcessDocument]:
        try:
            result = self._table().select("*").eq("id", document_id).limit(1).execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return None
            raise SupabaseException(
                detail="Failed to retrieve document",
                table=self.table_name,
                operation="select"
            )
        if not result.data:
            return None
        return ProcessDocument.from_dict(result.data[0])

    async def list_for_process(self, process_id: str) -> List[ProcessDocument]:
        try:
            q = self._table().select("*").eq("process_id", process_id)
            result = self._apply_ordering(q, "-created_at").execute()
        except Exception as e:
            logger.error(f"Failed to list documents for process {process_id}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to list process documents",
                table=self.table_name,
                operation="select"
            )
        return [ProcessDocument.from_dict(r) for r in result.data or []]
