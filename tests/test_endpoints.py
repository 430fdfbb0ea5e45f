import pytest

from main import app as fastapi_app


async def _add_teacher(async_client, telegram_id: int, first_name: str, last_name: str | None = None) -> dict:
    resp = await async_client.post(
        "/api/v1/teachers",
        json={"telegram_id": telegram_id, "first_name": first_name, "last_name": last_name},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _initiate(async_client, cycle_type: str = "MID_MONTH", cycle_date: str = "2024-05-15") -> dict:
    resp = await async_client.post(
        "/api/v1/notifications/initiate",
        json={"cycle_type": cycle_type, "cycle_date": cycle_date},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.mark.anyio
async def test_health(async_client):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


# ---------- Teachers ----------

@pytest.mark.anyio
async def test_teacher_roster_lifecycle(async_client):
    anna = await _add_teacher(async_client, 5001, "  Anna ", "Smith")
    assert anna["first_name"] == "Anna"
    assert anna["is_active"] is True

    resp = await async_client.post("/api/v1/teachers", json={"telegram_id": 5001, "first_name": "Again"})
    assert resp.status_code == 409

    await _add_teacher(async_client, 5002, "Boris")

    resp = await async_client.get(f"/api/v1/teachers/{anna['id']}")
    assert resp.status_code == 200
    assert resp.json()["telegram_id"] == 5001

    resp = await async_client.post("/api/v1/teachers/5001/deactivate")
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_active"] is False

    resp = await async_client.post("/api/v1/teachers/5001/deactivate")
    assert resp.status_code == 409

    resp = await async_client.get("/api/v1/teachers", params={"active_only": True})
    body = resp.json()
    assert body["total"] == 1
    assert body["teachers"][0]["first_name"] == "Boris"

    resp = await async_client.get("/api/v1/teachers")
    assert resp.json()["total"] == 2


@pytest.mark.anyio
async def test_teacher_not_found(async_client):
    assert (await async_client.get("/api/v1/teachers/999")).status_code == 404
    assert (await async_client.post("/api/v1/teachers/999/deactivate")).status_code == 404


@pytest.mark.anyio
async def test_teacher_validation(async_client):
    resp = await async_client.post("/api/v1/teachers", json={"telegram_id": 0, "first_name": "Zero"})
    assert resp.status_code == 422
    resp = await async_client.post("/api/v1/teachers", json={"telegram_id": 7, "first_name": ""})
    assert resp.status_code == 422


# ---------- Notifications ----------

@pytest.mark.anyio
async def test_initiate_is_idempotent(async_client, notifier):
    await _add_teacher(async_client, 5001, "Anna")
    await _add_teacher(async_client, 5002, "Boris")

    first = await _initiate(async_client)
    assert first["teachers"] == 2
    assert first["rows_created"] == 4
    assert first["questions_sent"] == 2
    assert first["cycle_type"] == "MID_MONTH"

    second = await _initiate(async_client)
    assert second["cycle_id"] == first["cycle_id"]
    assert second["rows_created"] == 0
    assert second["questions_sent"] == 0
    assert len(notifier.sent) == 2

    resp = await async_client.get(f"/api/v1/notifications/cycles/{first['cycle_id']}/statuses")
    assert resp.status_code == 200
    rows = resp.json()
    assert len(rows) == 4
    assert {r["status"] for r in rows} == {"PENDING_QUESTION"}


@pytest.mark.anyio
async def test_initiate_rejects_unknown_cycle_type(async_client):
    resp = await async_client.post("/api/v1/notifications/initiate", json={"cycle_type": "WEEKLY"})
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_status_filter_and_missing_cycle(async_client, services, notifier):
    await _add_teacher(async_client, 5001, "Anna")
    cycle = await _initiate(async_client)
    t1_id = int(notifier.sent[0].tokens[0].rsplit("_", 1)[1])
    await services.engine.process_no(t1_id)

    resp = await async_client.get(
        f"/api/v1/notifications/cycles/{cycle['cycle_id']}/statuses",
        params={"status": "ANSWERED_NO"},
    )
    assert resp.status_code == 200
    [row] = resp.json()
    assert row["id"] == t1_id
    assert row["response_attempts"] == 1
    assert row["remind_at"] is not None

    resp = await async_client.get("/api/v1/notifications/cycles/999/statuses")
    assert resp.status_code == 404

    resp = await async_client.get(
        f"/api/v1/notifications/cycles/{cycle['cycle_id']}/statuses",
        params={"status": "DONE"},
    )
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_sweeps_with_nothing_due(async_client):
    for path in ("/api/v1/notifications/sweeps/first-reminder", "/api/v1/notifications/sweeps/next-day"):
        resp = await async_client.post(path)
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"examined": 0, "reminded": 0, "failed": 0, "skipped": 0}


@pytest.mark.anyio
async def test_services_missing_returns_503(async_client):
    fastapi_app.state.services = None
    resp = await async_client.post("/api/v1/notifications/sweeps/next-day")
    assert resp.status_code == 503


# ---------- Cycles & dashboard ----------

@pytest.mark.anyio
async def test_cycle_read_endpoints(async_client, services, notifier):
    await _add_teacher(async_client, 5001, "Anna", "Smith")
    await _add_teacher(async_client, 5002, "Boris")
    mid = await _initiate(async_client)
    end = await _initiate(async_client, "END_MONTH", "2024-05-31")

    resp = await async_client.get("/api/v1/cycles")
    assert [c["id"] for c in resp.json()] == [end["cycle_id"], mid["cycle_id"]]
    resp = await async_client.get("/api/v1/cycles", params={"limit": 1})
    assert len(resp.json()) == 1

    resp = await async_client.get(f"/api/v1/cycles/{mid['cycle_id']}")
    assert resp.status_code == 200
    assert resp.json()["cycle_date"] == "2024-05-15"
    assert (await async_client.get("/api/v1/cycles/999")).status_code == 404

    # Anna confirms both mid-month tables
    anna_questions = [m for m in notifier.to(5001) if m.tokens]
    await services.engine.process_yes(int(anna_questions[0].tokens[0].rsplit("_", 1)[1]))
    t3 = notifier.to(5001)[-1]
    await services.engine.process_yes(int(t3.tokens[0].rsplit("_", 1)[1]))

    resp = await async_client.get(f"/api/v1/cycles/{mid['cycle_id']}/stats")
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["total_teachers"] == 2
    assert stats["total_statuses"] == 4
    assert stats["status_counts"]["ANSWERED_YES"] == 2
    assert stats["completed_teachers"] == 1
    assert stats["completion_percentage"] == 50.0
    assert (await async_client.get("/api/v1/cycles/999/stats")).status_code == 404

    resp = await async_client.get(f"/api/v1/dashboard/cycles/{mid['cycle_id']}")
    assert resp.status_code == 200
    board = resp.json()
    assert board["expected_report_keys"] == ["TABLE_1", "TABLE_3"]
    assert board["completed_teachers"] == ["Anna Smith"]
    by_name = {t["name"]: t for t in board["teachers"]}
    assert by_name["Anna Smith"]["completed"] is True
    assert by_name["Anna Smith"]["waiting_on"] is None
    assert by_name["Boris"]["waiting_on"] == "TABLE_1"
    assert (await async_client.get("/api/v1/dashboard/cycles/999")).status_code == 404

    resp = await async_client.get("/api/v1/dashboard/overview", params={"recent": 5})
    assert resp.status_code == 200
    overview = resp.json()
    assert overview["total_teachers"] == 2
    assert overview["active_teachers"] == 2
    assert overview["total_cycles"] == 2
    assert [c["cycle_type"] for c in overview["recent_cycles"]] == ["END_MONTH", "MID_MONTH"]
