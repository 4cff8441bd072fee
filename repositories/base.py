"""
Repository contract and the Supabase helpers shared by every table.
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Optional, Dict, Any
from datetime import datetime, timezone

T = TypeVar('T')

# Postgres invalid_text_representation, raised for a malformed uuid literal
INVALID_TEXT_REPRESENTATION = "22P02"


class BaseRepository(ABC, Generic[T]):

    @abstractmethod
    async def get_by_id(self, entity_id: str) -> Optional[T]:
        """Return the row with this id, or None when there is none."""


class SupabaseRepository(BaseRepository[T], ABC):
    """Binds a repository to one PostgREST table of the Supabase client."""

    def __init__(self, supabase_client, table_name: str):
        self.supabase = supabase_client
        self.table_name = table_name

    def _table(self):
        return self.supabase.table(self.table_name)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _is_malformed_id_error(error: Exception) -> bool:
        """A malformed id can never match a row, so callers treat it as not found."""
        return getattr(error, "code", None) == INVALID_TEXT_REPRESENTATION

    @staticmethod
    def _build_filters(query, filters: Dict[str, Any]):
        """Equality filter per key; list values become `in`; None values are skipped."""
        for field, value in (filters or {}).items():
            if value is None:
                continue
            query = query.in_(field, value) if isinstance(value, list) else query.eq(field, value)
        return query

    @staticmethod
    def _apply_ordering(query, order_by: str = "-created_at"):
        """`-field` sorts descending."""
        descending = order_by.startswith("-")
        return query.order(order_by.lstrip("-"), desc=descending)
