import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from db_models.notification_cycle import NotificationCycle
from db_models.report_status import ReportStatus
from db_models.teacher import Teacher
from api.notifications.constants import CycleType, InteractionStatus
from api.notifications.db_manager import (
    DuplicateReportStatusError,
    ReportStatusNotFoundError,
    SqlStatusStore,
    StaleStatusError,
)

NOW = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)

PENDING = InteractionStatus.PENDING_QUESTION.value
YES = InteractionStatus.ANSWERED_YES.value
NO = InteractionStatus.ANSWERED_NO.value
AWAITING = InteractionStatus.AWAITING_REMINDER_1H.value
NEXT_DAY = InteractionStatus.NEXT_DAY_REMINDER_SENT.value


@pytest.fixture
def store(session_factory):
    return SqlStatusStore(session_factory, clock=lambda: NOW)


@pytest.fixture
async def seeded(session_factory):
    """Two teachers and one mid-month cycle; returns their ids."""
    async with session_factory() as db:
        anna = Teacher(telegram_id=101, first_name="Anna", last_name="Smith", is_active=True)
        boris = Teacher(telegram_id=102, first_name="Boris", is_active=True)
        cycle = NotificationCycle(cycle_date=date(2024, 5, 15), cycle_type="MID_MONTH")
        db.add_all([anna, boris, cycle])
        await db.commit()
        return anna.id, boris.id, cycle.id


def _row(teacher_id, cycle_id, key, status=PENDING, **fields):
    return ReportStatus(
        teacher_id=teacher_id,
        cycle_id=cycle_id,
        report_key=key,
        status=status,
        response_attempts=fields.pop("response_attempts", 0),
        **fields,
    )


@pytest.mark.anyio
async def test_create_and_read_back(store, seeded):
    anna, _, cycle = seeded
    created = await store.create(_row(anna, cycle, "TABLE_1"))
    assert created.id is not None

    fetched = await store.get_by_id(created.id)
    assert fetched.report_key == "TABLE_1"
    assert fetched.status == PENDING
    assert fetched.response_attempts == 0

    by_key = await store.get_by_composite_key(anna, cycle, "TABLE_1")
    assert by_key.id == created.id
    assert await store.get_by_composite_key(anna, cycle, "TABLE_2") is None


@pytest.mark.anyio
async def test_create_duplicate_composite_key(store, seeded):
    anna, _, cycle = seeded
    await store.create(_row(anna, cycle, "TABLE_1"))
    with pytest.raises(DuplicateReportStatusError):
        await store.create(_row(anna, cycle, "TABLE_1", status=NO))


@pytest.mark.anyio
async def test_get_by_id_not_found(store, seeded):
    with pytest.raises(ReportStatusNotFoundError):
        await store.get_by_id(12345)


@pytest.mark.anyio
async def test_bulk_create_skips_existing_rows(store, seeded):
    anna, boris, cycle = seeded
    await store.create(_row(anna, cycle, "TABLE_1"))

    inserted = await store.bulk_create([
        _row(anna, cycle, "TABLE_1"),
        _row(anna, cycle, "TABLE_3"),
        _row(boris, cycle, "TABLE_1"),
        _row(boris, cycle, "TABLE_3"),
    ])
    assert inserted == 3

    rows = await store.list_by_cycle(cycle)
    assert len(rows) == 4
    assert [r.teacher_id for r in rows] == [anna, anna, boris, boris]

    assert await store.bulk_create([]) == 0
    assert await store.bulk_create([_row(boris, cycle, "TABLE_3")]) == 0


@pytest.mark.anyio
async def test_conditional_update(store, seeded):
    anna, _, cycle = seeded
    row = await store.create(_row(anna, cycle, "TABLE_1"))

    row.status = NO
    row.remind_at = NOW + timedelta(hours=1)
    row.response_attempts = 1
    await store.update(row, expected_status=PENDING)
    assert row.updated_at == NOW

    stored = await store.get_by_id(row.id)
    assert stored.status == NO
    assert stored.remind_at == NOW + timedelta(hours=1)
    assert stored.response_attempts == 1

    # The stored status is no longer PENDING_QUESTION
    row.status = YES
    with pytest.raises(StaleStatusError):
        await store.update(row, expected_status=PENDING)
    assert (await store.get_by_id(row.id)).status == NO

    # Unconditional write always applies
    await store.update(row)
    assert (await store.get_by_id(row.id)).status == YES


@pytest.mark.anyio
async def test_update_missing_row(store, seeded):
    anna, _, cycle = seeded
    ghost = _row(anna, cycle, "TABLE_1")
    ghost.id = 999
    with pytest.raises(ReportStatusNotFoundError):
        await store.update(ghost, expected_status=PENDING)
    with pytest.raises(ReportStatusNotFoundError):
        await store.update(ghost)


@pytest.mark.anyio
async def test_datetimes_come_back_timezone_aware(store, seeded):
    anna, _, cycle = seeded
    tashkent_morning = datetime(2024, 5, 15, 9, 0, tzinfo=timezone(timedelta(hours=5)))
    row = await store.create(_row(anna, cycle, "TABLE_1", last_notified_at=tashkent_morning))

    fetched = await store.get_by_id(row.id)
    assert fetched.last_notified_at.tzinfo is not None
    assert fetched.last_notified_at == datetime(2024, 5, 15, 4, 0, tzinfo=timezone.utc)


@pytest.mark.anyio
async def test_due_first_reminders_boundary(store, seeded):
    anna, boris, cycle = seeded
    due = await store.create(_row(anna, cycle, "TABLE_1", status=NO, remind_at=NOW))
    await store.create(_row(anna, cycle, "TABLE_3", status=NO, remind_at=NOW + timedelta(seconds=1)))
    await store.create(_row(boris, cycle, "TABLE_1", status=AWAITING, remind_at=NOW - timedelta(hours=1)))
    await store.create(_row(boris, cycle, "TABLE_3", status=NO))

    rows = await store.list_due_first_reminders(NOW)
    assert [r.id for r in rows] == [due.id]


@pytest.mark.anyio
async def test_stalled_from_previous_day_window(store, seeded):
    anna, boris, cycle = seeded
    day_start = datetime(2024, 5, 14, tzinfo=timezone.utc)
    day_end = datetime(2024, 5, 15, tzinfo=timezone.utc)

    at_start = await store.create(_row(anna, cycle, "TABLE_1", last_notified_at=day_start))
    awaiting = await store.create(
        _row(anna, cycle, "TABLE_3", status=AWAITING, last_notified_at=day_start + timedelta(hours=12))
    )
    # Excluded: at the end bound, never notified, already escalated, confirmed
    await store.create(_row(boris, cycle, "TABLE_1", last_notified_at=day_end))
    await store.create(_row(boris, cycle, "TABLE_3"))
    await store.create(_row(boris, cycle, "TABLE_2", status=NEXT_DAY, last_notified_at=day_start))
    await store.create(_row(anna, cycle, "TABLE_2", status=YES, last_notified_at=day_start))

    rows = await store.list_stalled_from_previous_day(day_start, day_end)
    assert [r.id for r in rows] == [at_start.id, awaiting.id]


@pytest.mark.anyio
async def test_all_confirmed_requires_every_key(store, seeded):
    anna, boris, cycle = seeded
    keys = ["TABLE_1", "TABLE_3"]

    await store.create(_row(anna, cycle, "TABLE_1", status=YES))
    # TABLE_3 row missing
    assert await store.all_confirmed(anna, cycle, keys) is False

    t3 = await store.create(_row(anna, cycle, "TABLE_3", status=NO))
    assert await store.all_confirmed(anna, cycle, keys) is False

    t3.status = YES
    await store.update(t3)
    assert await store.all_confirmed(anna, cycle, keys) is True

    # Boris has nothing at all
    assert await store.all_confirmed(boris, cycle, keys) is False


@pytest.mark.anyio
async def test_list_filters(store, seeded):
    anna, boris, cycle = seeded
    await store.bulk_create([
        _row(anna, cycle, "TABLE_1", status=YES),
        _row(anna, cycle, "TABLE_3"),
        _row(boris, cycle, "TABLE_1"),
    ])

    pending = await store.list_by_status(cycle, PENDING)
    assert {(r.teacher_id, r.report_key) for r in pending} == {(anna, "TABLE_3"), (boris, "TABLE_1")}

    mine = await store.list_by_teacher_and_cycle(anna, cycle)
    assert [r.report_key for r in mine] == ["TABLE_1", "TABLE_3"]


@pytest.mark.anyio
async def test_claim_first_question_only_once(store, seeded):
    anna, _, cycle = seeded
    row = await store.create(_row(anna, cycle, "TABLE_1"))

    assert await store.claim_first_question(row.id, NOW) is True
    assert await store.claim_first_question(row.id, NOW + timedelta(seconds=1)) is False
    assert (await store.get_by_id(row.id)).last_notified_at == NOW

    # Only the holder of the claim can release it
    assert await store.release_claim(row.id, NOW + timedelta(seconds=1)) is False
    assert await store.release_claim(row.id, NOW) is True
    assert (await store.get_by_id(row.id)).last_notified_at is None
    assert await store.claim_first_question(row.id, NOW) is True


@pytest.mark.anyio
async def test_claim_ignores_answered_rows(store, seeded):
    anna, _, cycle = seeded
    answered = await store.create(_row(anna, cycle, "TABLE_1", status=NO))
    assert await store.claim_first_question(answered.id, NOW) is False
    assert await store.claim_first_question(999, NOW) is False


@pytest.mark.anyio
async def test_overlapping_initiations_ask_each_teacher_once(services, notifier, seeded):
    first, second = await asyncio.gather(
        services.engine.initiate(CycleType.MID_MONTH, date(2024, 5, 15)),
        services.engine.initiate(CycleType.MID_MONTH, date(2024, 5, 15)),
    )

    assert first.cycle_id == second.cycle_id
    assert first.questions_sent + second.questions_sent == 2
    assert len(notifier.to(101)) == 1
    assert len(notifier.to(102)) == 1
    assert len(await services.store.list_by_cycle(first.cycle_id)) == 4


@pytest.mark.anyio
async def test_failed_first_question_is_retried_by_next_initiation(services, notifier, seeded):
    notifier.fail_for.add(101)
    result = await services.engine.initiate(CycleType.MID_MONTH, date(2024, 5, 15))
    assert result.send_failures == 1
    anna, _, cycle = seeded
    assert (await services.store.get_by_composite_key(anna, cycle, "TABLE_1")).last_notified_at is None

    notifier.fail_for.clear()
    retry = await services.engine.initiate(CycleType.MID_MONTH, date(2024, 5, 15))
    assert retry.questions_sent == 1
    assert len(notifier.to(101)) == 1
    assert len(notifier.to(102)) == 1
