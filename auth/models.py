from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthenticatedUser:
    """Caller identity resolved from a bearer token, carrying the token for later calls."""

    def __init__(self, id: str, email: Optional[str], user_data: Dict[str, Any], access_token: str = ""):
        self.id = id
        self.email = email
        self.user_data = user_data
        self.access_token = access_token

    @classmethod
    def from_supabase(cls, user, access_token: str) -> "AuthenticatedUser":
        return cls(
            id=user.id,
            email=getattr(user, "email", None),
            user_data=dict(getattr(user, "user_metadata", None) or {}),
            access_token=access_token,
        )

    @property
    def full_name(self) -> Optional[str]:
        # older accounts stored the display name under "name"
        return self.user_data.get("full_name") or self.user_data.get("name")

    @property
    def role(self) -> Optional[str]:
        return self.user_data.get("role")

    def __repr__(self):
        return f"AuthenticatedUser(id={self.id!r}, email={self.email!r})"


class UserSignup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    full_name: str = Field("", alias="name")
    role: str = ""


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
