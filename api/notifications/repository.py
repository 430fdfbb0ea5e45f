# api/notifications/repository.py
"""
Contracts the workflow engine depends on.

The SQL implementations live in the db_manager modules; tests substitute
in-memory doubles that satisfy the same protocols.
"""
from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol

from db_models.notification_cycle import NotificationCycle
from db_models.report_status import ReportStatus
from db_models.teacher import Teacher
from .responses import ResponseButton


class CycleRepository(Protocol):
    async def get_by_id(self, cycle_id: int) -> NotificationCycle: ...

    async def get_by_date_and_type(self, cycle_date: date, cycle_type: str) -> NotificationCycle | None: ...

    async def create(self, cycle_date: date, cycle_type: str) -> NotificationCycle:
        """Insert a cycle; raises DuplicateCycleError on the (date, type) key."""
        ...


class StatusStore(Protocol):
    async def create(self, row: ReportStatus) -> ReportStatus: ...

    async def bulk_create(self, rows: Sequence[ReportStatus]) -> int:
        """Insert rows that do not exist yet; returns how many were inserted."""
        ...

    async def get_by_id(self, status_id: int) -> ReportStatus: ...

    async def get_by_composite_key(self, teacher_id: int, cycle_id: int, report_key: str) -> ReportStatus | None: ...

    async def update(self, row: ReportStatus, expected_status: str | None = None) -> ReportStatus: ...

    async def claim_first_question(self, status_id: int, claimed_at: datetime) -> bool:
        """Stamp an unasked pending row; False when another caller already did."""
        ...

    async def release_claim(self, status_id: int, claimed_at: datetime) -> bool: ...

    async def list_by_cycle(self, cycle_id: int) -> list[ReportStatus]: ...

    async def list_by_status(self, cycle_id: int, status: str) -> list[ReportStatus]: ...

    async def list_by_teacher_and_cycle(self, teacher_id: int, cycle_id: int) -> list[ReportStatus]: ...

    async def list_due_first_reminders(self, now: datetime) -> list[ReportStatus]: ...

    async def list_stalled_from_previous_day(self, day_start: datetime, day_end: datetime) -> list[ReportStatus]: ...

    async def all_confirmed(self, teacher_id: int, cycle_id: int, expected_keys: Sequence[str]) -> bool: ...


class RosterDirectory(Protocol):
    async def list_active(self) -> list[Teacher]: ...

    async def get(self, teacher_id: int) -> Teacher: ...

    async def get_by_telegram_id(self, telegram_id: int) -> Teacher | None: ...


class NotifierGateway(Protocol):
    async def send(
        self,
        chat_id: int,
        text: str,
        buttons: Sequence[ResponseButton] | None = None,
    ) -> None:
        """Deliver one message; raises TransientIOError when delivery fails."""
        ...
