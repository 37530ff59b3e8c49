from __future__ import annotations

import datetime as dt

import pytest

from conftest import bearer, seed_account
from core.domain import Role
from core.models import AuditEvent, IdempotencyRecord, Salary, SalaryPayment
from core.services import idempotency
from office_api.schemas import SalaryGenerateRequest


@pytest.fixture()
def owner(app_db):
    with app_db() as s:
        return seed_account(s, "olivia")


@pytest.fixture()
def employee(client, owner):
    r = client.post(
        "/api/employees",
        json={
            "username": "esha",
            "password": "secret12",
            "designation": "Draughtsperson",
            "basicSalary": 20000,
            "travelingAllowance": 3000,
            "medicalAllowance": 2000,
            "foodAllowance": 1000,
        },
        headers=bearer(owner),
    )
    assert r.status_code == 201, r.text
    user = r.json()["user"]
    day = dt.date(2025, 9, 1)
    recorded = 0
    while recorded < 24:
        if day.weekday() != 6:
            r = client.post(
                "/api/attendance",
                json={"employeeId": user["id"], "attendanceDate": day.isoformat()},
                headers=bearer(owner),
            )
            assert r.status_code == 201, r.text
            recorded += 1
        day += dt.timedelta(days=1)
    return user


def test_generate_and_settle_salary(client, app_db, owner, employee):
    headers = bearer(owner)
    r = client.post(
        "/api/salary-advances",
        json={"employeeId": employee["id"], "amount": 2000, "advanceDate": "2025-09-03", "period": "2025-09"},
        headers=headers,
    )
    assert r.status_code == 201, r.text

    r = client.post("/api/salaries/generate", json={"employeeId": employee["id"], "month": "2025-09"}, headers=headers)
    assert r.status_code == 201, r.text
    salary = r.json()
    assert salary["totalWorkingDays"] == 26
    assert salary["attendanceDays"] == 24
    assert salary["absentDeductions"] == 2000
    assert salary["advancePaid"] == 2000
    assert salary["netSalary"] == 22000
    assert salary["isHeld"] is False

    r = client.post(
        "/api/salary-payments",
        json={"salaryId": salary["id"], "amount": 22000, "paymentDate": "2025-10-10"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["salary"]["isPaid"] is True
    assert body["salary"]["paidDate"] == "2025-10-10"
    assert body["payment"]["amount"] == 22000

    ledger = client.get(f"/api/salaries/{salary['id']}/payments", headers=headers).json()["items"]
    assert len(ledger) == 1

    with app_db() as s:
        actions = {e.action for e in s.query(AuditEvent).all()}
    assert {"salaries.generate", "salaries.payment", "salaries.advance"} <= actions


def test_generate_is_idempotent_with_key(client, app_db, owner, employee):
    headers = {**bearer(owner), "Idempotency-Key": "gen-sept"}
    payload = {"employeeId": employee["id"], "month": "2025-09"}

    first = client.post("/api/salaries/generate", json=payload, headers=headers)
    replay = client.post("/api/salaries/generate", json=payload, headers=headers)
    assert first.status_code == replay.status_code == 201
    assert first.json() == replay.json()
    with app_db() as s:
        assert s.query(Salary).count() == 1
        assert s.query(AuditEvent).filter(AuditEvent.action == "salaries.generate").count() == 1

    r = client.post("/api/salaries/generate", json={**payload, "otherDeductions": 5}, headers=headers)
    assert r.status_code == 409
    assert r.json()["code"] == "idempotency_conflict"

    # without a key a second run is a plain duplicate
    r = client.post("/api/salaries/generate", json=payload, headers=bearer(owner))
    assert r.status_code == 409
    assert r.json()["code"] == "salary_exists"


def test_concurrent_payments_under_one_key_write_one_ledger_entry(client, app_db, monkeypatch, owner, employee):
    headers = bearer(owner)
    salary = client.post(
        "/api/salaries/generate", json={"employeeId": employee["id"], "month": "2025-09"}, headers=headers
    ).json()

    # both requests pass the up-front lookup, as when they arrive together
    real_lookup = idempotency._lookup
    misses = iter([None, None])
    monkeypatch.setattr(idempotency, "_lookup", lambda *args: next(misses, real_lookup(*args)))

    keyed = {**headers, "Idempotency-Key": "pay-1"}
    payload = {"salaryId": salary["id"], "amount": 5000, "paymentDate": "2025-10-01"}
    first = client.post("/api/salary-payments", json=payload, headers=keyed)
    second = client.post("/api/salary-payments", json=payload, headers=keyed)

    assert first.status_code == second.status_code == 201
    assert first.json() == second.json()
    with app_db() as s:
        assert s.query(SalaryPayment).count() == 1
        assert s.query(Salary).one().paid_amount == 5000
        assert s.query(AuditEvent).filter(AuditEvent.action == "salaries.payment").count() == 1


def test_failed_write_releases_the_key(client, app_db, owner, employee):
    headers = bearer(owner)
    payload = {"employeeId": employee["id"], "month": "2025-09"}
    assert client.post("/api/salaries/generate", json=payload, headers=headers).status_code == 201

    keyed = {**headers, "Idempotency-Key": "gen-again"}
    r = client.post("/api/salaries/generate", json=payload, headers=keyed)
    assert r.status_code == 409
    assert r.json()["code"] == "salary_exists"
    with app_db() as s:
        assert s.query(IdempotencyRecord).filter_by(key="gen-again").count() == 0


def test_key_still_in_flight_is_a_conflict(client, app_db, owner, employee):
    with app_db() as s:
        s.add(
            IdempotencyRecord(
                key="gen-busy",
                method="POST",
                path="/api/salaries/generate",
                body_hash=idempotency.fingerprint(
                    SalaryGenerateRequest.model_validate({"employeeId": employee["id"], "month": "2025-09"}).model_dump(mode="json")
                ),
                tenant_root="studio_office/data",
            )
        )
        s.commit()

    r = client.post(
        "/api/salaries/generate",
        json={"employeeId": employee["id"], "month": "2025-09"},
        headers={**bearer(owner), "Idempotency-Key": "gen-busy"},
    )
    assert r.status_code == 409
    assert r.json()["code"] == "idempotency_in_progress"
    with app_db() as s:
        assert s.query(Salary).count() == 0


def test_open_task_holds_salary_until_released(client, owner, employee):
    headers = bearer(owner)
    client.post("/api/tasks", json={"employeeId": employee["id"], "taskType": "3D Rendering"}, headers=headers)
    salary = client.post(
        "/api/salaries/generate", json={"employeeId": employee["id"], "month": "2025-09"}, headers=headers
    ).json()
    assert salary["isHeld"] is True

    r = client.post(f"/api/salaries/{salary['id']}/release", headers=headers)
    assert r.status_code == 200
    assert r.json()["isHeld"] is False
    r = client.post(f"/api/salaries/{salary['id']}/hold", headers=headers)
    assert r.json()["isHeld"] is True


def test_employee_sees_only_own_salary(client, app_db, owner, employee):
    with app_db() as s:
        other = seed_account(s, "carl", Role.EMPLOYEE)
    headers = bearer(owner)
    salary = client.post(
        "/api/salaries/generate", json={"employeeId": employee["id"], "month": "2025-09"}, headers=headers
    ).json()

    r = client.post("/api/auth/login", json={"username": "esha", "password": "secret12"})
    own = {"Authorization": f"Bearer {r.json()['token']}"}
    client.cookies.clear()
    assert client.get(f"/api/salaries/{salary['id']}", headers=own).status_code == 200
    assert [s["id"] for s in client.get("/api/salaries", headers=own).json()["items"]] == [salary["id"]]

    assert client.get(f"/api/salaries/{salary['id']}", headers=bearer(other)).status_code == 404
    assert client.get("/api/salaries", headers=bearer(other)).json()["items"] == []

    r = client.post(
        "/api/salary-payments",
        json={"salaryId": salary["id"], "amount": 10, "paymentDate": "2025-10-10"},
        headers=own,
    )
    assert r.status_code == 403


def test_generate_validates_input(client, owner, employee):
    headers = bearer(owner)
    r = client.post("/api/salaries/generate", json={"employeeId": employee["id"], "month": "Sept"}, headers=headers)
    assert r.status_code == 400
    r = client.post("/api/salaries/generate", json={"employeeId": "nobody", "month": "2025-09"}, headers=headers)
    assert r.status_code == 404
    r = client.post(
        "/api/salaries/generate",
        json={"employeeId": employee["id"], "month": "2025-09", "otherDeductions": -1},
        headers=headers,
    )
    assert r.status_code == 400
