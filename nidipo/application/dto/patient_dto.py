from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PatientSubmitRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    patient_id: str = Field(..., min_length=1)
    age: int | float | str
    sex: str = Field(..., min_length=1)
    center_id: int | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)


class PatientRecordDto(BaseModel):
    id: int
    patient_id: str
    age: int
    sex: str
    center_id: int
    center_name: str | None = None
    created_at: datetime
    updated_at: datetime
    form_data: dict[str, Any] = Field(default_factory=dict)


class DraftSaveRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    patient_id: str = Field(..., min_length=1)
    center_id: int | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)


class DraftDto(BaseModel):
    id: int
    user_id: int
    center_id: int | None = None
    patient_id: str
    updated_at: datetime
    form_data: dict[str, Any] = Field(default_factory=dict)
