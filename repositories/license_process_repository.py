"""
License process repository implementation using Supabase.
"""

from typing import Optional, List, Dict, Any

from repositories.base import SupabaseRepository
from entities.license_process import LicenseProcess, ProcessFilter
from common.exceptions import SupabaseException
from common.logging import get_logger

logger = get_logger("license_process_repository")

WITH_COMPANY = "*, companies(*)"
WITH_COMPANY_AND_COLLABORATION = "*, companies(*), process_collaborators!inner(permission_level)"


class LicenseProcessRepository(SupabaseRepository[LicenseProcess]):
    """Repository for LicenseProcess operations with Supabase."""

    def __init__(self, supabase_client, table_name: str = "license_processes"):
        super().__init__(supabase_client, table_name)

    async def get_by_id(self, process_id: str) -> Optional[LicenseProcess]:
        """Unscoped lookup; callers decide what the requester may do with it."""
        try:
            result = self._table()\
                .select("*")\
                .eq("id", process_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return None
            logger.error(f"Failed to get process {process_id}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to retrieve process",
                table=self.table_name,
                operation="select"
            )

        if not result.data:
            return None
        return LicenseProcess.from_dict(result.data[0])

    async def get_for_owner(self, process_id: str, user_id: str) -> Optional[LicenseProcess]:
        try:
            result = self._table()\
                .select(WITH_COMPANY)\
                .eq("id", process_id)\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return None
            logger.error(f"Failed to get process {process_id} for owner: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to retrieve process",
                table=self.table_name,
                operation="select"
            )

        if not result.data:
            return None
        return LicenseProcess.from_dict(result.data[0])

    def _apply_process_filters(self, query, filters: Optional[ProcessFilter]):
        if not filters:
            return query
        simple_filters: Dict[str, Any] = {}
        if filters.status and filters.status != "all":
            simple_filters["status"] = filters.status
        if filters.license_type:
            simple_filters["license_type"] = filters.license_type
        return self._build_filters(query, simple_filters)

    async def list_owned(self, user_id: str, filters: Optional[ProcessFilter] = None) -> List[LicenseProcess]:
        try:
            q = self._table().select(WITH_COMPANY).eq("user_id", user_id)
            q = self._apply_process_filters(q, filters)
            res = self._apply_ordering(q, "-created_at").execute()
            return [LicenseProcess.from_dict(r, is_owner=True) for r in res.data or []]
        except Exception as e:
            logger.error(f"Failed to list owned processes: {e}", exc_info=True)
            raise SupabaseException(
                detail="Erro ao carregar processos próprios",
                table=self.table_name,
                operation="select"
            )

    async def list_collaborated(self, user_id: str, filters: Optional[ProcessFilter] = None) -> List[LicenseProcess]:
        """Processes shared with the user through an accepted collaboration."""
        try:
            q = self._table()\
                .select(WITH_COMPANY_AND_COLLABORATION)\
                .eq("process_collaborators.user_id", user_id)\
                .eq("process_collaborators.status", "accepted")
            q = self._apply_process_filters(q, filters)
            res = self._apply_ordering(q, "-created_at").execute()
            return [LicenseProcess.from_dict(r, is_owner=False) for r in res.data or []]
        except Exception as e:
            logger.error(f"Failed to list collaborated processes: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to list collaborated processes",
                table=self.table_name,
                operation="select"
            )

    async def create(self, data: Dict[str, Any]) -> LicenseProcess:
        try:
            result = self._table().insert(data).execute()
        except Exception as e:
            logger.error(f"Failed to create process: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to create process",
                table=self.table_name,
                operation="insert"
            )
        if not result.data:
            raise SupabaseException(
                detail="Failed to create process",
                table=self.table_name,
                operation="insert"
            )
        return LicenseProcess.from_dict(result.data[0])

    async def update_for_owner(self, process_id: str, user_id: str, changes: Dict[str, Any]) -> Optional[LicenseProcess]:
        update_data = dict(changes)
        update_data["updated_at"] = self._now()
        try:
            result = self._table()\
                .update(update_data)\
                .eq("id", process_id)\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return None
            logger.error(f"Failed to update process {process_id}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to update process",
                table=self.table_name,
                operation="update"
            )
        if not result.data:
            return None
        return LicenseProcess.from_dict(result.data[0])

    async def delete_for_owner(self, process_id: str, user_id: str) -> bool:
        try:
            result = self._table()\
                .delete()\
                .eq("id", process_id)\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return False
            logger.error(f"Failed to delete process {process_id}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to delete process",
                table=self.table_name,
                operation="delete"
            )
        return bool(result.data)

    async def list_statuses(self, user_id: str) -> List[str]:
        try:
            result = self._table().select("status").eq("user_id", user_id).execute()
        except Exception as e:
            logger.error(f"Failed to load process statuses: {e}", exc_info=True)
            raise SupabaseException(
                detail="Erro ao carregar estatísticas",
                table=self.table_name,
                operation="select"
            )
        return [row.get("status") for row in result.data or []]
