# api/notifications/workflow.py
"""
Notification workflow engine.

Owns the per-question status state machine:

    PENDING_QUESTION -> ANSWERED_YES | ANSWERED_NO
    ANSWERED_NO -> AWAITING_REMINDER_1H
    PENDING_QUESTION | AWAITING_REMINDER_1H -> NEXT_DAY_REMINDER_SENT

Completion of a cycle by a teacher is derived (every expected key answered
"Yes") and never stored as a status. Every transition re-reads the row and
writes conditionally on the status it read, so a click racing a sweep loses
cleanly instead of overwriting the other side.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum

from core.errors import NotFoundError, TransientIOError, UnrecognizedError
from db_models.notification_cycle import NotificationCycle
from db_models.report_status import ReportStatus
from db_models.teacher import Teacher
from api.cycles.db_manager import CycleManager
from .constants import (
    CYCLE_LABELS,
    ESCALATED_STATUSES,
    FINAL_THANK_YOU_TEXT,
    FIRST_REPORT_KEY,
    MANAGER_COMPLETION_TEXT,
    NO_ACKNOWLEDGEMENT_TEXT,
    CycleType,
    InteractionStatus,
    ReportKey,
    expected_report_keys,
    parse_cycle_type,
    question_text,
)
from .db_manager import DuplicateReportStatusError, ReportStatusNotFoundError, StaleStatusError, utc_now
from .repository import NotifierGateway, RosterDirectory, StatusStore
from .responses import answer_buttons

logger = logging.getLogger(__name__)

# A click that keeps losing to concurrent sweeps gives up after this many reads
_MAX_TRANSITION_ATTEMPTS = 3


class ResponseOutcome(str, Enum):
    STALE = "stale"                        # row is gone or kept moving underneath us
    ALREADY_RECORDED = "already_recorded"  # duplicate click, nothing changed
    RECORDED = "recorded"
    COMPLETED = "completed"                # the teacher just confirmed the whole cycle


@dataclass
class InitiationResult:
    cycle_id: int
    cycle_type: str
    cycle_date: date
    teachers: int = 0
    rows_created: int = 0
    questions_sent: int = 0
    send_failures: int = 0


@dataclass
class SweepResult:
    examined: int = 0
    reminded: int = 0
    failed: int = 0
    skipped: int = 0


def previous_day_window(now: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    Yesterday's [00:00, 24:00) in tz, returned as UTC instants.
    """
    today = now.astimezone(tz).date()
    start = datetime.combine(today - timedelta(days=1), time.min, tzinfo=tz)
    end = datetime.combine(today, time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class WorkflowEngine:
    def __init__(
        self,
        cycles: CycleManager,
        store: StatusStore,
        roster: RosterDirectory,
        notifier: NotifierGateway,
        *,
        manager_chat_id: int | None = None,
        reminder_delay: timedelta = timedelta(hours=1),
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = utc_now,
        log: logging.Logger | None = None,
    ):
        self._cycles = cycles
        self._store = store
        self._roster = roster
        self._notifier = notifier
        self._manager_chat_id = manager_chat_id
        self._reminder_delay = reminder_delay
        self._tz = tz
        self._clock = clock
        self._log = log or logger

    # ---------- Cycle initiation ----------

    async def initiate(self, cycle_type: CycleType | str, cycle_date: date) -> InitiationResult:
        """
        Start (or re-trigger) the cycle for (cycle_date, cycle_type).

        Creates the missing status rows for every active teacher and sends the
        first question to each teacher who has not been asked it yet. Safe to
        call repeatedly for the same cycle, also concurrently: a row is claimed
        in the store before its question goes out, and the claim is released
        again when the send fails.
        """
        cycle_type = parse_cycle_type(cycle_type)
        cycle = await self._cycles.resolve(cycle_date, cycle_type)
        result = InitiationResult(cycle_id=cycle.id, cycle_type=cycle.cycle_type, cycle_date=cycle.cycle_date)

        teachers = await self._roster.list_active()
        if not teachers:
            self._log.info("initiate: no active teachers for cycle %s (%s %s)", cycle.id, cycle_type.value, cycle_date)
            return result
        result.teachers = len(teachers)

        keys = expected_report_keys(cycle_type)
        existing = {(r.teacher_id, r.report_key) for r in await self._store.list_by_cycle(cycle.id)}
        staged = [
            ReportStatus(
                teacher_id=teacher.id,
                cycle_id=cycle.id,
                report_key=key.value,
                status=InteractionStatus.PENDING_QUESTION.value,
                response_attempts=0,
            )
            for teacher in teachers
            for key in keys
            if (teacher.id, key.value) not in existing
        ]
        result.rows_created = await self._store.bulk_create(staged)

        first_rows = {
            r.teacher_id: r
            for r in await self._store.list_by_cycle(cycle.id)
            if r.report_key == FIRST_REPORT_KEY.value
        }
        for teacher in teachers:
            row = first_rows.get(teacher.id)
            if row is None:
                self._log.warning("initiate: teacher %s has no %s row in cycle %s", teacher.id, FIRST_REPORT_KEY.value, cycle.id)
                continue
            if row.status != InteractionStatus.PENDING_QUESTION.value or row.last_notified_at is not None:
                continue
            claimed_at = self._clock()
            if not await self._store.claim_first_question(row.id, claimed_at):
                self._log.info("initiate: row %s already asked by an overlapping run", row.id)
                continue
            if not await self._ask(teacher, row):
                result.send_failures += 1
                await self._store.release_claim(row.id, claimed_at)
                continue
            result.questions_sent += 1

        self._log.info(
            "initiate: cycle %s (%s %s) teachers=%d created=%d sent=%d failed=%d",
            cycle.id, cycle_type.value, cycle_date, result.teachers,
            result.rows_created, result.questions_sent, result.send_failures,
        )
        return result

    # ---------- Answers ----------

    async def process_yes(self, status_id: int) -> ResponseOutcome:
        """
        Record a "Yes" and move the teacher on: either the next unanswered
        question, or the completion notices when nothing is left.
        """
        for _ in range(_MAX_TRANSITION_ATTEMPTS):
            row = await self._load(status_id)
            if row is None:
                return ResponseOutcome.STALE
            if row.status == InteractionStatus.ANSWERED_YES.value:
                return ResponseOutcome.ALREADY_RECORDED
            previous = row.status
            row.status = InteractionStatus.ANSWERED_YES.value
            row.remind_at = None
            try:
                await self._store.update(row, expected_status=previous)
            except StaleStatusError:
                continue
            break
        else:
            self._log.warning("process_yes: row %s kept changing, giving up", status_id)
            return ResponseOutcome.STALE

        teacher, cycle = await self._context_for(row)
        if teacher is None or cycle is None:
            return ResponseOutcome.RECORDED

        keys = expected_report_keys(cycle.cycle_type)
        if await self._store.all_confirmed(teacher.id, cycle.id, [k.value for k in keys]):
            await self._notify_completion(teacher, cycle)
            return ResponseOutcome.COMPLETED

        next_row = await self._first_unconfirmed_row(teacher, cycle, keys)
        if next_row is None:
            return ResponseOutcome.RECORDED
        if not await self._ask(teacher, next_row):
            self._log.warning("process_yes: next question %s not delivered, next-day sweep will retry", next_row.id)
        previous = next_row.status
        next_row.status = InteractionStatus.PENDING_QUESTION.value
        next_row.remind_at = None
        next_row.last_notified_at = self._clock()
        try:
            await self._store.update(next_row, expected_status=previous)
        except StaleStatusError:
            self._log.info("process_yes: next row %s changed concurrently", next_row.id)
        return ResponseOutcome.RECORDED

    async def process_no(self, status_id: int) -> ResponseOutcome:
        """
        Record a "No" and arm the 1-hour reminder. Does not advance to the
        next question. A "No" on an already escalated row is ignored so the
        reminder in flight is not re-armed.
        """
        for _ in range(_MAX_TRANSITION_ATTEMPTS):
            row = await self._load(status_id)
            if row is None:
                return ResponseOutcome.STALE
            if InteractionStatus(row.status) in ESCALATED_STATUSES:
                return ResponseOutcome.ALREADY_RECORDED
            previous = row.status
            row.status = InteractionStatus.ANSWERED_NO.value
            row.remind_at = self._clock() + self._reminder_delay
            row.response_attempts = (row.response_attempts or 0) + 1
            try:
                await self._store.update(row, expected_status=previous)
            except StaleStatusError:
                continue
            break
        else:
            self._log.warning("process_no: row %s kept changing, giving up", status_id)
            return ResponseOutcome.STALE

        teacher = await self._teacher(row.teacher_id)
        if teacher is not None:
            await self._send(teacher.telegram_id, NO_ACKNOWLEDGEMENT_TEXT)
        return ResponseOutcome.RECORDED

    # ---------- Sweeps ----------

    async def sweep_first_reminder(self) -> SweepResult:
        """
        Re-ask every question answered "No" whose reminder time has passed.
        Rows whose resend fails stay due and are retried by the next sweep.
        """
        now = self._clock()
        rows = await self._store.list_due_first_reminders(now)
        result = SweepResult(examined=len(rows))
        teachers: dict[int, Teacher | None] = {}
        for row in rows:
            teacher = await self._cached_teacher(row.teacher_id, teachers)
            if teacher is None or not await self._ask(teacher, row):
                result.failed += 1
                continue
            row.status = InteractionStatus.AWAITING_REMINDER_1H.value
            row.remind_at = None
            row.last_notified_at = now
            await self._sweep_update(result, row, InteractionStatus.ANSWERED_NO.value)
        if rows:
            self._log.info(
                "sweep_first_reminder: examined=%d reminded=%d failed=%d skipped=%d",
                result.examined, result.reminded, result.failed, result.skipped,
            )
        return result

    async def sweep_next_day(self) -> SweepResult:
        """
        Last automated reminder for questions still open since yesterday.
        Rows leave the target statuses here, so a second run the same day
        finds nothing.
        """
        now = self._clock()
        day_start, day_end = previous_day_window(now, self._tz)
        rows = await self._store.list_stalled_from_previous_day(day_start, day_end)
        result = SweepResult(examined=len(rows))
        teachers: dict[int, Teacher | None] = {}
        for row in rows:
            teacher = await self._cached_teacher(row.teacher_id, teachers)
            if teacher is None or not await self._ask(teacher, row):
                result.failed += 1
                continue
            previous = row.status
            row.status = InteractionStatus.NEXT_DAY_REMINDER_SENT.value
            row.response_attempts = (row.response_attempts or 0) + 1
            row.remind_at = None
            row.last_notified_at = now
            await self._sweep_update(result, row, previous)
        self._log.info(
            "sweep_next_day: window=[%s, %s) examined=%d reminded=%d failed=%d skipped=%d",
            day_start.isoformat(), day_end.isoformat(),
            result.examined, result.reminded, result.failed, result.skipped,
        )
        return result

    # ---------- Helpers ----------

    async def _load(self, status_id: int) -> ReportStatus | None:
        try:
            return await self._store.get_by_id(status_id)
        except ReportStatusNotFoundError:
            self._log.info("Callback for unknown report status %s ignored", status_id)
            return None

    async def _teacher(self, teacher_id: int) -> Teacher | None:
        try:
            return await self._roster.get(teacher_id)
        except NotFoundError:
            self._log.error("Teacher %s referenced by a report status does not exist", teacher_id)
            return None

    async def _cached_teacher(self, teacher_id: int, cache: dict[int, Teacher | None]) -> Teacher | None:
        if teacher_id not in cache:
            cache[teacher_id] = await self._teacher(teacher_id)
        return cache[teacher_id]

    async def _context_for(self, row: ReportStatus) -> tuple[Teacher | None, NotificationCycle | None]:
        teacher = await self._teacher(row.teacher_id)
        try:
            cycle = await self._cycles.get(row.cycle_id)
        except NotFoundError:
            self._log.error("Cycle %s referenced by report status %s does not exist", row.cycle_id, row.id)
            cycle = None
        return teacher, cycle

    async def _first_unconfirmed_row(
        self,
        teacher: Teacher,
        cycle: NotificationCycle,
        keys: tuple[ReportKey, ...],
    ) -> ReportStatus | None:
        """
        The first expected key, in asking order, not yet answered "Yes".
        A key with no row at all is created on the spot as pending.
        """
        by_key = {r.report_key: r for r in await self._store.list_by_teacher_and_cycle(teacher.id, cycle.id)}
        for key in keys:
            row = by_key.get(key.value)
            if row is None:
                return await self._create_missing_row(teacher, cycle, key)
            if row.status != InteractionStatus.ANSWERED_YES.value:
                return row
        return None

    async def _create_missing_row(self, teacher: Teacher, cycle: NotificationCycle, key: ReportKey) -> ReportStatus:
        self._log.warning("Teacher %s has no %s row in cycle %s, creating it", teacher.id, key.value, cycle.id)
        row = ReportStatus(
            teacher_id=teacher.id,
            cycle_id=cycle.id,
            report_key=key.value,
            status=InteractionStatus.PENDING_QUESTION.value,
            response_attempts=0,
        )
        try:
            return await self._store.create(row)
        except DuplicateReportStatusError:
            existing = await self._store.get_by_composite_key(teacher.id, cycle.id, key.value)
            if existing is None:
                raise
            return existing

    async def _notify_completion(self, teacher: Teacher, cycle: NotificationCycle) -> None:
        cycle_type = parse_cycle_type(cycle.cycle_type)
        self._log.info("Teacher %s confirmed every table for cycle %s", teacher.id, cycle.id)
        if self._manager_chat_id is None:
            self._log.warning("No manager chat configured, completion notice for teacher %s not sent", teacher.id)
        else:
            text = MANAGER_COMPLETION_TEXT.format(
                teacher_name=teacher.display_name,
                cycle_label=CYCLE_LABELS[cycle_type],
                cycle_date=cycle.cycle_date.isoformat(),
            )
            await self._send(self._manager_chat_id, text)
        await self._send(teacher.telegram_id, FINAL_THANK_YOU_TEXT)

    async def _ask(self, teacher: Teacher, row: ReportStatus) -> bool:
        """Send the question for row with its Yes/No buttons. True when delivered."""
        try:
            text = question_text(row.report_key, teacher.first_name)
        except UnrecognizedError:
            self._log.error("Report status %s has unknown report key %r", row.id, row.report_key)
            return False
        return await self._send(teacher.telegram_id, text, answer_buttons(row.id))

    async def _send(self, chat_id: int, text: str, buttons=None) -> bool:
        try:
            await self._notifier.send(chat_id, text, buttons)
        except TransientIOError as exc:
            self._log.warning("Delivery to chat %s failed: %s", chat_id, exc)
            return False
        return True

    async def _sweep_update(self, result: SweepResult, row: ReportStatus, expected_status: str) -> None:
        """Persist a reminded row; a row that moved meanwhile is skipped, not failed."""
        try:
            await self._store.update(row, expected_status=expected_status)
        except (StaleStatusError, ReportStatusNotFoundError) as exc:
            self._log.info("Report status %s skipped: %s", row.id, exc)
            result.skipped += 1
        except TransientIOError:
            self._log.exception("Report status %s reminded but not updated", row.id)
            result.failed += 1
        else:
            result.reminded += 1
