from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from nidipo.application.dto.auth_dto import RoleName


class InviteUserRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    role: RoleName = "data-entry"
    center_id: int


class InvitationDto(BaseModel):
    id: int
    email: str
    role: RoleName
    center_id: int | None = None
    center_name: str | None = None
    token: str
    link: str
    created_at: datetime


class UpdateUserRequest(BaseModel):
    role: RoleName
    center_id: int | None = None


class CenterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)


class CenterDto(BaseModel):
    id: int
    name: str
    location: str
