# api/dashboard/models.py
"""
Pydantic models for dashboard responses.
"""
from datetime import date
from pydantic import BaseModel

from api.cycles.models import CycleStats


class TeacherProgress(BaseModel):
    """Where one teacher stands in a cycle."""
    teacher_id: int
    telegram_id: int
    name: str
    is_active: bool
    statuses: dict[str, str]
    response_attempts: int
    completed: bool
    waiting_on: str | None = None


class CycleDashboard(BaseModel):
    cycle_id: int
    cycle_date: date
    cycle_type: str
    expected_report_keys: list[str]
    status_counts: dict[str, int]
    total_teachers: int
    completed_teachers: list[str]
    completion_percentage: float
    teachers: list[TeacherProgress]


class DashboardOverview(BaseModel):
    total_teachers: int
    active_teachers: int
    total_cycles: int
    recent_cycles: list[CycleStats]
