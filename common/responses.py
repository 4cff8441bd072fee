"""
Response envelopes shared by every route.

Success: `{"success": true, "data": ..., "meta": ..., "request_id", "timestamp"}`
Failure: `{"success": false, "error": {"code", "message", ...}, "request_id", "timestamp"}`
"""

import json
from typing import Any, Dict, List, Optional
from datetime import date, datetime, timezone
from uuid import UUID
from pydantic import BaseModel
from fastapi import status
from fastapi.responses import JSONResponse

from common.logging import request_id_var


class ErrorDetail(BaseModel):
    code: str
    message: str
    field: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class APIResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[ErrorDetail] = None
    validation_errors: Optional[List[Dict[str, Any]]] = None
    meta: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None
    timestamp: str


def _ensure_jsonable(value: Any) -> Any:
    """Convert what the json module cannot encode; unknown objects become str()."""
    if isinstance(value, BaseModel):
        return _ensure_jsonable(value.model_dump(exclude_none=True))
    if isinstance(value, dict):
        return {k: _ensure_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_ensure_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def _envelope(status_code: int, headers: Optional[Dict[str, str]] = None, **fields) -> JSONResponse:
    body = APIResponse(
        request_id=request_id_var.get(),
        timestamp=datetime.now(timezone.utc).isoformat(),
        **fields
    )
    return JSONResponse(
        content=_ensure_jsonable(body.model_dump(exclude_none=True)),
        status_code=status_code,
        headers=headers
    )


def create_success_response(
    data: Any,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    return _envelope(status_code, success=True, data=data, meta=meta)


def create_error_response(
    error_code: str,
    message: str,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    field: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    error = ErrorDetail(code=error_code, message=message, field=field, context=context)
    return _envelope(status_code, headers, success=False, error=error)


def create_validation_error_response(
    validation_errors: List[Dict[str, Any]],
    message: str = "Validation failed",
    status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY
) -> JSONResponse:
    """Error envelope plus one `{"field", "message", "type"}` entry per failed field."""
    return _envelope(
        status_code,
        success=False,
        error=ErrorDetail(code="VALIDATION_ERROR", message=message),
        validation_errors=_ensure_jsonable(validation_errors),
    )


def extract_error_message(payload: Any, default: str) -> str:
    """Pull a human message out of an error body produced by this API.

    Accepts the envelope (`{"error": {"message": ...}}`), a plain
    `{"error": "..."}` body, or FastAPI's `{"detail": ...}`.
    """
    if not isinstance(payload, dict):
        return default
    error = payload.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    detail = payload.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    return default
