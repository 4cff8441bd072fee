from fastapi import APIRouter, Request, status

from auth.decorators import CurrentUser
from auth.models import UserSignup, UserLogin
from dependencies import AuthServiceDep

from common.exceptions import BaseLicensingException
from common.logging import log_security_event
from common.responses import create_success_response

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.post("/signup", summary="Create an account", status_code=status.HTTP_201_CREATED)
async def signup(user_data: UserSignup, request: Request, auth_service: AuthServiceDep):
    try:
        tokens = await auth_service.signup(user_data)
    except BaseLicensingException as e:
        log_security_event(
            event_type="SIGNUP_FAILED",
            ip_address=_client_ip(request),
            details={"email": user_data.email, "error": e.error_code}
        )
        raise

    log_security_event(event_type="SIGNUP", ip_address=_client_ip(request), details={"email": user_data.email})
    return create_success_response(data=tokens.model_dump(), status_code=status.HTTP_201_CREATED)


@router.post("/login", summary="Exchange email and password for tokens")
async def login(login_data: UserLogin, request: Request, auth_service: AuthServiceDep):
    try:
        tokens = await auth_service.login(login_data)
    except BaseLicensingException as e:
        log_security_event(
            event_type="LOGIN_FAILED",
            ip_address=_client_ip(request),
            details={"email": login_data.email, "error": e.error_code}
        )
        raise

    log_security_event(event_type="LOGIN", ip_address=_client_ip(request), details={"email": login_data.email})
    return create_success_response(data=tokens.model_dump())


@router.post("/logout", summary="Revoke the caller's session")
async def logout(current_user: CurrentUser, request: Request, auth_service: AuthServiceDep):
    result = await auth_service.logout(current_user.access_token)
    log_security_event(event_type="LOGOUT", user_id=current_user.id, ip_address=_client_ip(request))
    return create_success_response(data=result)


@router.get("/me", summary="Identity behind the bearer token")
async def get_me(current_user: CurrentUser):
    return create_success_response(data={
        "id": current_user.id,
        "email": current_user.email,
        "full_name": current_user.full_name,
        "role": current_user.role,
    })
