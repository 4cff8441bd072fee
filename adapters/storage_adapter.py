"""
Object storage adapter.
This handles all direct communication with the Supabase Storage API.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List
import time

from common.exceptions import StorageUnavailableException
from common.logging import get_logger, log_performance

logger = get_logger("storage_adapter")


@dataclass
class SignedUpload:
    """Provider answer to a signed-upload request."""
    url: str
    token: str
    path: str


class BaseStorageAdapter(ABC):
    """Abstract base class for object storage providers."""

    @abstractmethod
    async def create_signed_upload_url(self, path: str) -> SignedUpload:
        """Mint a single-use write URL for exactly `path`."""
        pass

    @abstractmethod
    async def create_signed_url(self, path: str, expires_in: int) -> str:
        """Mint a read URL for `path` valid for `expires_in` seconds."""
        pass

    @abstractmethod
    async def remove(self, paths: List[str]) -> List[str]:
        """Remove objects; returns the paths the provider reports as removed."""
        pass


class SupabaseStorageAdapter(BaseStorageAdapter):
    """
    Supabase Storage adapter bound to one bucket.
    """

    def __init__(self, supabase_client, bucket: str = "docs"):
        self.supabase = supabase_client
        self.bucket = bucket

    def _bucket(self):
        return self.supabase.storage.from_(self.bucket)

    async def create_signed_upload_url(self, path: str) -> SignedUpload:
        start_time = time.time()
        try:
            data = self._bucket().create_signed_upload_url(path)
        except Exception as e:
            logger.error(f"Error creating signed URL for {path}: {e}", exc_info=True)
            raise StorageUnavailableException(
                detail="Failed to create signed upload URL",
                operation="create_signed_upload_url",
                storage_path=path,
                context={"provider_message": str(e), "storage_path": path}
            )

        url = data.get("signed_url") or data.get("signedUrl")
        token = data.get("token")
        if not url or not token:
            raise StorageUnavailableException(
                detail="Failed to create signed upload URL",
                operation="create_signed_upload_url",
                storage_path=path
            )

        log_performance(
            operation="storage_create_signed_upload_url",
            duration_ms=(time.time() - start_time) * 1000,
            bucket=self.bucket
        )
        return SignedUpload(url=url, token=token, path=data.get("path") or path)

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        try:
            data = self._bucket().create_signed_url(path, expires_in)
        except Exception as e:
            logger.error(f"Error getting download URL for {path}: {e}", exc_info=True)
            raise StorageUnavailableException(
                detail="Erro ao gerar link de download",
                operation="create_signed_url",
                storage_path=path
            )

        url = data.get("signedURL") or data.get("signedUrl") or data.get("signed_url")
        if not url:
            raise StorageUnavailableException(
                detail="Erro ao gerar link de download",
                operation="create_signed_url",
                storage_path=path
            )
        return url

    async def remove(self, paths: List[str]) -> List[str]:
        try:
            removed = self._bucket().remove(paths)
        except Exception as e:
            logger.error(f"Error deleting files {paths}: {e}", exc_info=True)
            raise StorageUnavailableException(
                detail="Erro ao excluir arquivo",
                operation="remove",
                context={"paths": paths}
            )
        # Missing objects are not an error for the provider, they are just absent here
        return [item.get("name", "") for item in removed or [] if isinstance(item, dict)]
