"""
Process collaborator entity, including the procuration (power of attorney)
file reference stored on the collaborator row.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from entities.upload import StoredFileMetadata


class CollaborationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ProcessCollaborator(BaseModel):
    id: str
    process_id: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    permission_level: Optional[str] = None
    status: CollaborationStatus = CollaborationStatus.PENDING

    procuracao_file_id: Optional[str] = None
    procuracao_storage_path: Optional[str] = None
    procuracao_file_metadata: Optional[StoredFileMetadata] = None

    class Config:
        from_attributes = True
        use_enum_values = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessCollaborator":
        data = dict(data)
        meta = data.get("procuracao_file_metadata")
        if meta is not None and not isinstance(meta, dict):
            data["procuracao_file_metadata"] = None
        return cls(**data)

    def is_accepted(self) -> bool:
        return self.status == CollaborationStatus.ACCEPTED.value

    def has_procuration(self) -> bool:
        return bool(self.procuracao_storage_path)


class ProcurationFile(BaseModel):
    """API view of a collaborator's stored procuration."""
    collaborator_id: str
    storage_path: str = ""
    file_id: str = ""
    metadata: StoredFileMetadata = Field(default_factory=StoredFileMetadata)

    @classmethod
    def from_collaborator(cls, collaborator: ProcessCollaborator) -> "ProcurationFile":
        return cls(
            collaborator_id=collaborator.id,
            storage_path=collaborator.procuracao_storage_path or "",
            file_id=collaborator.procuracao_file_id or "",
            metadata=collaborator.procuracao_file_metadata or StoredFileMetadata(),
        )


class ProcurationUpdate(BaseModel):
    """Reference to an already transferred procuration file."""
    model_config = ConfigDict(populate_by_name=True)

    storage_path: str = Field(..., min_length=1, alias="storagePath")
    file_id: str = Field(..., min_length=1, alias="fileId")
    metadata: StoredFileMetadata

    @model_validator(mode="after")
    def stamp_upload_time(self) -> "ProcurationUpdate":
        # a recorded file always carries its upload time
        if not self.metadata.uploaded_at:
            self.metadata.uploaded_at = datetime.now(timezone.utc).isoformat()
        return self
