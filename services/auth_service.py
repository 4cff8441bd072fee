"""
Identity on top of Supabase Auth.

The service is stateless: each call receives the caller's token and the
result never outlives the request.
"""

from typing import Optional

from supabase import Client
from auth.models import AuthenticatedUser, TokenResponse, UserLogin, UserSignup
from common.exceptions import (
    AuthenticationException,
    InvalidTokenException,
    ValidationException,
)
from common.logging import get_logger

logger = get_logger("auth_service")


def _bad_credentials() -> AuthenticationException:
    return AuthenticationException(detail="Invalid email or password", error_code="INVALID_CREDENTIALS")


class AuthService:

    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    async def get_current_user(self, access_token: Optional[str]) -> AuthenticatedUser:
        """Resolve a bearer token; a missing, expired or revoked token raises a 401."""
        if not access_token:
            raise AuthenticationException(detail="Missing authorization header", error_code="MISSING_TOKEN")

        try:
            response = self.supabase.auth.get_user(access_token)
        except Exception as e:
            logger.warning("Token rejected by auth provider", extra={"reason": str(e)})
            raise InvalidTokenException(detail="Unauthorized")

        user = getattr(response, "user", None)
        if user is None:
            raise InvalidTokenException(detail="Unauthorized")
        return AuthenticatedUser.from_supabase(user, access_token)

    async def signup(self, data: UserSignup) -> TokenResponse:
        credentials = {
            "email": data.email,
            "password": data.password,
            "options": {"data": {"full_name": data.full_name, "role": data.role}},
        }
        try:
            response = self.supabase.auth.sign_up(credentials)
        except Exception as e:
            if "already registered" in str(e).lower():
                raise ValidationException(
                    detail="User with this email already exists",
                    field="email",
                    value=data.email
                )
            logger.error("Signup rejected by auth provider", extra={"email": data.email}, exc_info=True)
            raise AuthenticationException(
                detail="Registration failed",
                error_code="SIGNUP_FAILED",
                context={"email": data.email}
            )

        # Projects with email confirmation enabled return a user but no session
        if response.session is None:
            raise AuthenticationException(
                detail="Authentication session not created. Please confirm your email.",
                error_code="SESSION_CREATION_FAILED"
            )
        logger.info("Account created", extra={"email": data.email})
        return self._token_response(response.session)

    async def login(self, data: UserLogin) -> TokenResponse:
        try:
            response = self.supabase.auth.sign_in_with_password({"email": data.email, "password": data.password})
        except Exception as e:
            logger.warning("Login rejected", extra={"email": data.email, "reason": str(e)})
            raise _bad_credentials()

        if response.session is None:
            raise _bad_credentials()
        return self._token_response(response.session)

    async def logout(self, access_token: str) -> dict:
        """Revoke the session; a token the provider already forgot still counts as logged out."""
        try:
            self.supabase.auth.admin.sign_out(access_token)
        except Exception as e:
            logger.warning("Session revocation failed", extra={"reason": str(e)})
            return {"message": "Logout completed", "note": "Session may already be invalid"}
        return {"message": "Logout successful"}

    @staticmethod
    def _token_response(session) -> TokenResponse:
        return TokenResponse(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
        )


def create_auth_service(supabase_client: Client) -> AuthService:
    return AuthService(supabase_client)
