# api/notifications/models.py
"""
Pydantic models for notification workflow requests and responses.
"""
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field

from .constants import CycleType, InteractionStatus


class InitiateRequest(BaseModel):
    cycle_type: CycleType
    cycle_date: date | None = Field(None, description="Defaults to today in the scheduler time zone")


class InitiationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cycle_id: int
    cycle_type: str
    cycle_date: date
    teachers: int
    rows_created: int
    questions_sent: int
    send_failures: int


class SweepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    examined: int
    reminded: int
    failed: int
    skipped: int


class ReportStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    teacher_id: int
    cycle_id: int
    report_key: str
    status: InteractionStatus
    last_notified_at: datetime | None = None
    remind_at: datetime | None = None
    response_attempts: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
