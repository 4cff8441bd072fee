"""
Centralized exception classes for the license process application.

Every error carries an HTTP status, a stable `error_code` and a `context`
dict; subclasses only declare their defaults and the context they record.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException, status


class BaseLicensingException(HTTPException):
    """Base exception class for all application errors."""

    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error_code = "INTERNAL_ERROR"
    default_detail = "Internal server error"
    default_headers: Optional[Dict[str, str]] = None

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status_code or self.default_status_code,
            detail=detail or self.default_detail,
            headers=headers or self.default_headers,
        )
        self.error_code = error_code or self.default_error_code
        self.context = context or {}


# Authentication & Authorization
class AuthenticationException(BaseLicensingException):
    default_status_code = status.HTTP_401_UNAUTHORIZED
    default_error_code = "AUTH_FAILED"
    default_detail = "Authentication failed"
    default_headers = {"WWW-Authenticate": "Bearer"}


class InvalidTokenException(AuthenticationException):
    default_error_code = "INVALID_TOKEN"
    default_detail = "Invalid or expired token"


class AuthorizationException(BaseLicensingException):
    default_status_code = status.HTTP_403_FORBIDDEN
    default_error_code = "ACCESS_DENIED"
    default_detail = "Access denied"


# Request validation
class ValidationException(BaseLicensingException):
    """Well-formed request whose values are not acceptable."""
    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        detail: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(detail, context=context or {"field": field, "value": value})


class InvalidRequestException(BaseLicensingException):
    """Missing fields or an otherwise unusable request (400)."""
    default_status_code = status.HTTP_400_BAD_REQUEST
    default_error_code = "INVALID_REQUEST"

    def __init__(
        self,
        detail: str,
        missing_fields: Optional[list] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail,
            error_code=error_code,
            context=context or {"missing_fields": missing_fields or []}
        )


class InvalidFileException(InvalidRequestException):
    """File candidate rejected on size or type."""
    default_error_code = "INVALID_FILE"

    def __init__(self, detail: str, filename: Optional[str] = None, file_type: Optional[str] = None):
        super().__init__(detail, context={"filename": filename, "file_type": file_type})


# Resources
class ResourceNotFoundException(BaseLicensingException):
    default_status_code = status.HTTP_404_NOT_FOUND
    default_error_code = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        detail: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail or f"{resource_type} with ID '{resource_id}' not found",
            context=context or {"resource_type": resource_type, "resource_id": resource_id}
        )


class BusinessLogicException(BaseLicensingException):
    default_status_code = status.HTTP_400_BAD_REQUEST
    default_error_code = "BUSINESS_LOGIC_ERROR"


# Backing services
class ExternalServiceException(BaseLicensingException):
    """A call to Supabase (database or storage) failed."""
    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_error_code = "EXTERNAL_SERVICE_ERROR"
    service_name = "supabase"


class SupabaseException(ExternalServiceException):
    default_error_code = "SUPABASE_ERROR"

    def __init__(
        self,
        detail: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(detail, context=context or {"table": table, "operation": operation})


class StorageUnavailableException(ExternalServiceException):
    """Object store refused to mint a URL or perform an operation."""
    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error_code = "STORAGE_UNAVAILABLE"
    default_detail = "Failed to create signed upload URL"
    service_name = "storage"

    def __init__(
        self,
        detail: Optional[str] = None,
        operation: Optional[str] = None,
        storage_path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(detail, context=context or {"operation": operation, "storage_path": storage_path})


class TransferFailedException(ExternalServiceException):
    """Direct PUT of file bytes to a signed URL was not accepted."""
    default_status_code = status.HTTP_502_BAD_GATEWAY
    default_error_code = "TRANSFER_FAILED"
    service_name = "storage"

    def __init__(self, detail: str, status_code_received: Optional[int] = None):
        super().__init__(detail, context={"status_code_received": status_code_received})


class PersistFailedException(ExternalServiceException):
    """File metadata could not be written to the owning record."""
    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error_code = "PERSIST_FAILED"
    default_detail = "Failed to save file reference"

    def __init__(
        self,
        detail: Optional[str] = None,
        table: Optional[str] = None,
        owner_id: Optional[str] = None
    ):
        super().__init__(detail, context={"table": table, "owner_id": owner_id})
