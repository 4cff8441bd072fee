from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from auth.models import AuthenticatedUser
from common.logging import log_security_event, user_id_var
from dependencies import AuthServiceDep

# auto_error=False so a missing header becomes our 401 envelope instead of FastAPI's default
security = HTTPBearer(auto_error=False)


def bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


async def get_current_user(
    request: Request,
    auth_service: AuthServiceDep,
    token: Optional[str] = Depends(bearer_token),
) -> AuthenticatedUser:
    try:
        user = await auth_service.get_current_user(token)
    except Exception:
        log_security_event(
            event_type="AUTHENTICATION_REJECTED",
            ip_address=request.client.host if request.client else None,
            details={"path": request.url.path, "token_present": bool(token)}
        )
        raise
    user_id_var.set(user.id)
    return user


BearerToken = Annotated[Optional[str], Depends(bearer_token)]
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
