"""
Company repository implementation using Supabase.
"""

from typing import Optional

from repositories.base import SupabaseRepository
from entities.company import Company, CompanyCreate
from common.exceptions import SupabaseException
from common.logging import get_logger

logger = get_logger("company_repository")


class CompanyRepository(SupabaseRepository[Company]):

    def __init__(self, supabase_client, table_name: str = "companies"):
        super().__init__(supabase_client, table_name)

    async def create(self, company: CompanyCreate) -> Company:
        try:
            result = self._table().insert(company.model_dump()).execute()
        except Exception as e:
            logger.error(f"Failed to create company {company.name}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to create company",
                table=self.table_name,
                operation="insert"
            )
        if not result.data:
            raise SupabaseException(
                detail="Failed to create company",
                table=self.table_name,
                operation="insert"
            )
        created = Company.from_dict(result.data[0])
        logger.info(f"Created company {created.id}")
        return created

    async def get_by_id(self, company_id: str) -> Optional[Company]:
        try:
            result = self._table().select("*").eq("id", company_id).limit(1).execute()
        except Exception as e:
            if self._is_malformed_id_error(e):
                return None
            logger.error(f"Failed to get company {company_id}: {e}", exc_info=True)
            raise SupabaseException(
                detail="Failed to retrieve company",
                table=self.table_name,
                operation="select"
            )
        if not result.data:
            return None
        return Company.from_dict(result.data[0])
