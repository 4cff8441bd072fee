import re
import secrets
import string
from datetime import datetime, timezone
from typing import Callable, Optional

from common.logging import get_logger
from entities.upload import FileCandidate, ValidationResult

logger = get_logger("upload_validation")

STORAGE_PATH_SEPARATOR = "/"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_BASE36 = string.digits + string.ascii_lowercase


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9._-] with '_'.

    Slashes and backslashes are replaced too, so the result is always a
    single path segment.
    """
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def storage_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with millisecond precision, ':' and '.' replaced by '-'.

    2024-05-01T12:30:45.123Z -> 2024-05-01T12-30-45-123Z
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def build_storage_path(
    parent_id: str,
    filename: str,
    now: Optional[datetime] = None,
    suffix_factory: Callable[[], str] = random_suffix,
) -> str:
    """`<parent_id>/<timestamp>-<random>-<sanitized filename>`."""
    return (
        f"{parent_id}{STORAGE_PATH_SEPARATOR}"
        f"{storage_timestamp(now)}-{suffix_factory()}-{sanitize_filename(filename)}"
    )


class FileUploadValidator:
    """
    Client-side checks run before any network call: size ceiling and a
    MIME allow-list covering PDF, JPEG/PNG images and Word documents.
    """

    MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB

    ALLOWED_MIME_TYPES = frozenset({
        "application/pdf",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    })

    SIZE_ERROR = "O arquivo deve ter no máximo {limit_mb}MB"
    TYPE_ERROR = "Tipo de arquivo não permitido. Use PDF, imagens ou documentos Word."

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or self.MAX_FILE_SIZE

    def validate(self, candidate: FileCandidate) -> ValidationResult:
        if candidate.size > self.max_file_size:
            logger.info(f"Rejected {candidate.filename!r}: {candidate.size} bytes over limit")
            limit_mb = self.max_file_size // (1024 * 1024)
            return ValidationResult(valid=False, error=self.SIZE_ERROR.format(limit_mb=limit_mb))

        if candidate.content_type not in self.ALLOWED_MIME_TYPES:
            logger.info(f"Rejected {candidate.filename!r}: type {candidate.content_type!r} not allowed")
            return ValidationResult(valid=False, error=self.TYPE_ERROR)

        return ValidationResult(valid=True)
