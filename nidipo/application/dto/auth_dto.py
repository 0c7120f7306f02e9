from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RoleName = Literal["admin", "researcher", "data-entry"]
AuthEventName = Literal["SIGNED_IN", "SIGNED_OUT", "PASSWORD_RECOVERY", "ADMIN_REGISTERED"]


class SignInRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class SignUpRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6)


class InvitationSignUpRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    token: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)


class SessionContext(BaseModel):
    user_id: int
    email: str
    role: RoleName
    center_id: int | None = None


class AuthSession(BaseModel):
    user_id: int
    email: str
    issued_at: datetime
    recovery: bool = False


class ProfileDto(BaseModel):
    id: int
    name: str
    email: str
    role: RoleName
    center_id: int | None = None
    center_name: str | None = None

    def to_session_context(self) -> SessionContext:
        return SessionContext(user_id=self.id, email=self.email, role=self.role, center_id=self.center_id)
