# api/cycles/models.py
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict


class CycleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cycle_date: date
    cycle_type: str
    created_at: datetime | None = None


class CycleStats(BaseModel):
    """Answer statistics for a single notification cycle."""
    cycle_id: int
    cycle_date: date
    cycle_type: str
    total_teachers: int
    total_statuses: int
    status_counts: dict[str, int]
    completed_teachers: int
    completion_percentage: float
