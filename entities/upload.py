"""
Upload flow entities: credential requests, signed write credentials and the
file metadata recorded against an owning record.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadRequest(BaseModel):
    """Body of a credential request.

    Fields are optional at the schema level so that absent values surface as
    a 400 from the broker rather than a framework-level 422.
    """
    model_config = ConfigDict(populate_by_name=True)

    process_id: Optional[str] = None
    filename: Optional[str] = None
    content_type: Optional[str] = Field(None, alias="contentType")

    def missing_fields(self) -> list:
        missing = []
        if not self.process_id:
            missing.append("process_id")
        if not self.filename:
            missing.append("filename")
        if not self.content_type:
            missing.append("contentType")
        return missing


class WriteCredential(BaseModel):
    """A single-use signed write grant for one storage path."""
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(..., alias="uploadUrl")
    storage_path: str = Field(..., alias="storagePath")
    file_id: str = Field(..., alias="fileId")

    def to_wire(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


class StoredFileMetadata(BaseModel):
    """Metadata object persisted next to a stored file reference."""
    model_config = ConfigDict(populate_by_name=True)

    filename: str = ""
    file_size: int = Field(0, alias="fileSize")
    file_type: str = Field("", alias="fileType")
    uploaded_at: str = Field("", alias="uploadedAt")

    @classmethod
    def for_file(cls, candidate: "FileCandidate", uploaded_at: Optional[datetime] = None) -> "StoredFileMetadata":
        stamp = uploaded_at or datetime.now(timezone.utc)
        return cls(
            filename=candidate.filename,
            file_size=candidate.size,
            file_type=candidate.content_type,
            uploaded_at=stamp.isoformat(),
        )

    @classmethod
    def cleared(cls) -> "StoredFileMetadata":
        return cls()

    def is_cleared(self) -> bool:
        return not (self.filename or self.file_size or self.file_type or self.uploaded_at)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class FileCandidate:
    """A local file selected for upload."""
    filename: str
    content_type: str
    content: bytes = b""
    size: int = -1

    def __post_init__(self):
        if self.size < 0:
            self.size = len(self.content)


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


@dataclass
class UploadResult:
    success: bool
    storage_path: Optional[str] = None
    file_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class DeleteResult:
    """Outcome of a delete; metadata is always cleared, storage removal may not be."""
    storage_path: str
    storage_removed: bool
    metadata_cleared: bool = True
    storage_error: Optional[str] = None


class UploadState(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    VALIDATING = "validating"
    REJECTED = "rejected"
    VALIDATED = "validated"
    REQUESTING_CREDENTIAL = "requesting_credential"
    TRANSFERRING = "transferring"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


TERMINAL_UPLOAD_STATES = frozenset({UploadState.DONE, UploadState.FAILED, UploadState.REJECTED})


@dataclass
class UploadAttempt:
    """Per-attempt state tracked by the orchestrator."""
    candidate: Optional[FileCandidate] = None
    state: UploadState = UploadState.IDLE
    progress: int = 0
    error: Optional[str] = None
    history: list = field(default_factory=list)
