from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient

TIMETABLES = "/api/v1/timetables"
ASSIGNMENTS = "/api/v1/timetable-assignments"
TEMPLATES = "/api/v1/timetable-templates"


def _period_id(body, day: str, name: str) -> str:
    return next(p["id"] for p in body["periods_by_day"][day] if p["period_name"] == name)


async def _create(client: AsyncClient, headers, class_id: str, **extra) -> dict:
    response = await client.post(TIMETABLES, json={"class_id": class_id, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client: AsyncClient, roster) -> None:
    response = await client.get(TIMETABLES)
    assert response.status_code == 401

    response = await client.get(TIMETABLES, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_permissions_are_checked_per_action(client: AsyncClient, roster, make_headers) -> None:
    reader = make_headers(role="TEACHER", permissions={"timetable": {"read": True}})

    response = await client.get(TIMETABLES, headers=reader)
    assert response.status_code == 200
    assert response.json() == []

    response = await client.post(TIMETABLES, json={"class_id": "6A"}, headers=reader)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_and_read_timetable(client: AsyncClient, roster, admin_headers) -> None:
    body = await _create(
        client,
        admin_headers,
        "6A",
        days=["monday", "tuesday"],
        slots=[
            {"period_name": "Period1", "start_time": "08:00", "end_time": "09:00"},
            {"period_name": "Break", "start_time": "09:00", "end_time": "09:15", "period_type": "break"},
        ],
    )
    timetable_id = body["timetable"]["id"]
    UUID(timetable_id)
    assert body["timetable"]["created_by"] == "admin-1"
    assert body["periods_by_day"]["monday"][0]["start_time"] == "08:00"
    assert body["symmetry"]["is_symmetric"] is True

    response = await client.get(f"{TIMETABLES}/{timetable_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["timetable"]["class_name"] == "Grade 6A"

    response = await client.get(TIMETABLES, params={"class_id": "6A", "status": "active"}, headers=admin_headers)
    assert [t["id"] for t in response.json()] == [timetable_id]


@pytest.mark.asyncio
async def test_error_bodies_carry_code(client: AsyncClient, roster, admin_headers) -> None:
    await _create(client, admin_headers, "6A")

    response = await client.post(TIMETABLES, json={"class_id": "6A"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "DuplicateTimetable"
    assert response.json()["detail"]["message"] == "Weekly timetable for Grade 6A already exists"

    response = await client.post(TIMETABLES, json={"class_id": "NOPE"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InvalidRosterReference"

    response = await client.post(
        TIMETABLES,
        json={"class_id": "6B", "slots": [{"period_name": "P1", "start_time": "10:00", "end_time": "09:00"}]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InvalidTimeRange"

    response = await client.get(f"{TIMETABLES}/{uuid4()}", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NotFound"

    response = await client.post(TIMETABLES, json={"class_id": "6B", "days": ["saturday"]}, headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_assignment_scenario(client: AsyncClient, roster, admin_headers) -> None:
    slots = [
        {"period_name": "Period1", "start_time": "08:00", "end_time": "09:00"},
        {"period_name": "Break", "start_time": "09:00", "end_time": "09:15", "period_type": "break"},
    ]
    tt_6a = await _create(client, admin_headers, "6A", days=["monday", "tuesday"], slots=slots)
    tt_6b = await _create(
        client,
        admin_headers,
        "6B",
        days=["monday"],
        slots=[{"period_name": "Period1", "start_time": "08:30", "end_time": "09:30"}],
    )

    response = await client.post(
        ASSIGNMENTS,
        json={"period_id": _period_id(tt_6a, "monday", "Period1"), "teacher_id": "T1", "subject_id": "MATH"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["teacher_name"] == "Asha Rao"

    response = await client.post(
        ASSIGNMENTS,
        json={"period_id": _period_id(tt_6a, "tuesday", "Period1"), "teacher_id": "T1", "subject_id": "MATH"},
        headers=admin_headers,
    )
    assert response.status_code == 201

    response = await client.post(
        ASSIGNMENTS,
        json={"period_id": _period_id(tt_6b, "monday", "Period1"), "teacher_id": "T1", "subject_id": "MATH"},
        headers=admin_headers,
    )
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "TeacherConflict"
    assert detail["conflicting_class_name"] == "Grade 6A"
    assert (detail["start_time"], detail["end_time"]) == ("08:00", "09:00")

    response = await client.post(
        ASSIGNMENTS,
        json={"period_id": _period_id(tt_6a, "monday", "Break"), "teacher_id": "T2", "subject_id": "SCI"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "CannotAssignBreakSlot"

    response = await client.get(ASSIGNMENTS, params={"teacher_id": "T1"}, headers=admin_headers)
    assert [a["day"] for a in response.json()] == ["monday", "tuesday"]

    response = await client.get(f"{TIMETABLES}/by-teacher/T1", headers=admin_headers)
    assert [t["class_id"] for t in response.json()] == ["6A"]


@pytest.mark.asyncio
async def test_reassign_and_unassign(client: AsyncClient, roster, admin_headers) -> None:
    tt = await _create(client, admin_headers, "6A", days=["monday"])
    period_id = _period_id(tt, "monday", "Period 1")

    response = await client.put(
        f"{ASSIGNMENTS}/periods/{period_id}", json={"teacher_id": "T2", "subject_id": "SCI"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["subject_name"] == "Science"

    response = await client.post(
        ASSIGNMENTS, json={"period_id": period_id, "teacher_id": "T1", "subject_id": "MATH"}, headers=admin_headers
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "SlotOccupied"

    for _ in range(2):
        response = await client.delete(f"{ASSIGNMENTS}/periods/{period_id}", headers=admin_headers)
        assert response.status_code == 204

    response = await client.get(ASSIGNMENTS, params={"class_id": "6A"}, headers=admin_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_period_endpoints(client: AsyncClient, roster, admin_headers) -> None:
    tt = await _create(client, admin_headers, "6A", days=["monday", "tuesday"])
    timetable_id = tt["timetable"]["id"]
    period_id = _period_id(tt, "tuesday", "Period 6")

    response = await client.put(
        f"{TIMETABLES}/periods/{period_id}",
        json={"start_time": "14:50", "end_time": "15:40"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["duration"] == 50

    response = await client.delete(f"{TIMETABLES}/periods/{period_id}", headers=admin_headers)
    assert response.status_code == 204
    body = (await client.get(f"{TIMETABLES}/{timetable_id}", headers=admin_headers)).json()
    assert body["symmetry"]["missing"] == {"tuesday": ["Period 6"]}

    response = await client.post(
        f"{TIMETABLES}/{timetable_id}/periods",
        json={"day": "tuesday", "period_name": "Period 6", "start_time": "14:45", "end_time": "15:55"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    body = (await client.get(f"{TIMETABLES}/{timetable_id}", headers=admin_headers)).json()
    assert body["symmetry"]["is_symmetric"] is True


@pytest.mark.asyncio
async def test_status_and_delete_endpoints(client: AsyncClient, roster, admin_headers) -> None:
    first = (await _create(client, admin_headers, "6A"))["timetable"]["id"]
    second = (await _create(client, admin_headers, "6B"))["timetable"]["id"]

    response = await client.patch(f"{TIMETABLES}/{first}", json={"status": "inactive"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "inactive"

    response = await client.delete(f"{TIMETABLES}/{first}", headers=admin_headers)
    assert response.status_code == 204

    missing = str(uuid4())
    response = await client.post(
        f"{TIMETABLES}/bulk-delete", json={"timetable_ids": [second, missing]}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json() == {"deleted": 1, "not_found": [missing]}


@pytest.mark.asyncio
async def test_clone_template_and_conflict_endpoints(client: AsyncClient, roster, admin_headers) -> None:
    tt = await _create(client, admin_headers, "6A", days=["monday"])
    timetable_id = tt["timetable"]["id"]
    await client.post(
        ASSIGNMENTS,
        json={"period_id": _period_id(tt, "monday", "Period 1"), "teacher_id": "T1", "subject_id": "MATH"},
        headers=admin_headers,
    )

    response = await client.post(f"{TIMETABLES}/{timetable_id}/clone", json={"class_id": "6B"}, headers=admin_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["cloned_count"] == 0
    assert [s["reason"] for s in body["skipped"]] == ["TeacherConflict"]

    response = await client.get(f"{TIMETABLES}/{timetable_id}/conflicts", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["has_errors"] is False

    response = await client.post(
        TEMPLATES, json={"timetable_id": timetable_id, "template_name": "Grade 6"}, headers=admin_headers
    )
    assert response.status_code == 201
    template = response.json()
    assert all("teacher_id" not in s or s["teacher_id"] is None for s in template["slots"])

    response = await client.get(TEMPLATES, headers=admin_headers)
    assert [t["id"] for t in response.json()] == [template["id"]]

    response = await client.post(f"{TEMPLATES}/{template['id']}/apply", json={"class_id": "7A"}, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["assigned_count"] == 0

    response = await client.get(f"{TEMPLATES}/{template['id']}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.delete(f"{TEMPLATES}/{template['id']}", headers=admin_headers)
    assert response.status_code == 204
    response = await client.get(f"{TEMPLATES}/{template['id']}", headers=admin_headers)
    assert response.status_code == 404
