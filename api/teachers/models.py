# api/teachers/models.py
"""
Pydantic models for roster requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class TeacherCreate(BaseModel):
    telegram_id: int = Field(..., gt=0, description="Telegram user id")
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str | None = Field(None, max_length=255)


class TeacherResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    telegram_id: int
    first_name: str
    last_name: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TeacherListResponse(BaseModel):
    teachers: list[TeacherResponse]
    total: int
