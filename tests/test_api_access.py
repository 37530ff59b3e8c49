from __future__ import annotations

import datetime as dt

import pytest

from conftest import bearer, seed_account
from core.domain import Role


@pytest.fixture()
def studio(client, app_db):
    """A house tenant with one project plus an unrelated individual tenant."""
    with app_db() as s:
        people = {
            "owner": seed_account(s, "olivia"),
            "employee": seed_account(s, "esha", Role.EMPLOYEE),
            "colleague": seed_account(s, "carl", Role.EMPLOYEE),
            "client": seed_account(s, "kamal", Role.CLIENT),
            "buyer": seed_account(s, "pria", Role.PROCUREMENT),
            "outsider": seed_account(s, "ivan", account_type="individual"),
        }
    headers = {name: bearer(account) for name, account in people.items()}
    owner = headers["owner"]

    assigned = client.post("/api/projects", json={"name": "Villa 12"}, headers=owner).json()
    private = client.post("/api/projects", json={"name": "Penthouse"}, headers=owner).json()
    for who in ("employee", "client"):
        r = client.post(f"/api/projects/{assigned['id']}/assign", json={"userId": people[who].id}, headers=owner)
        assert r.status_code == 201, r.text

    return {"people": people, "headers": headers, "assigned": assigned, "private": private}


def test_other_tenants_cannot_see_house_records(client, studio):
    outsider = studio["headers"]["outsider"]
    project_id = studio["assigned"]["id"]

    assert client.get("/api/projects", headers=outsider).json()["items"] == []
    assert client.get(f"/api/projects/{project_id}", headers=outsider).status_code == 404
    r = client.patch(f"/api/projects/{project_id}", json={"name": "mine"}, headers=outsider)
    assert r.status_code == 404
    assert client.delete(f"/api/projects/{project_id}", headers=outsider).status_code == 404

    # the outsider's own project lives in its own namespace
    r = client.post("/api/projects", json={"name": "Studio flat"}, headers=outsider)
    assert r.status_code == 201
    names = [p["name"] for p in client.get("/api/projects", headers=studio["headers"]["owner"]).json()["items"]]
    assert "Studio flat" not in names


def test_employee_sees_only_assigned_projects(client, studio):
    employee = studio["headers"]["employee"]
    listed = [p["id"] for p in client.get("/api/projects", headers=employee).json()["items"]]
    assert listed == [studio["assigned"]["id"]]
    assert client.get(f"/api/projects/{studio['private']['id']}", headers=employee).status_code == 404
    assert client.get(f"/api/projects/{studio['assigned']['id']}/summary", headers=employee).status_code == 200

    r = client.post("/api/projects", json={"name": "Side gig"}, headers=employee)
    assert r.status_code == 403
    assert r.json()["code"] == "forbidden"

    # financial figures stay with owners
    r = client.get(f"/api/projects/{studio['assigned']['id']}/financials", headers=employee)
    assert r.status_code == 404


def test_employee_may_only_move_own_task_forward(client, studio):
    owner = studio["headers"]["owner"]
    employee = studio["headers"]["employee"]
    people = studio["people"]

    mine = client.post(
        "/api/tasks",
        json={"employeeId": people["employee"].id, "taskType": "Design CAD", "projectId": studio["assigned"]["id"]},
        headers=owner,
    ).json()
    theirs = client.post(
        "/api/tasks", json={"employeeId": people["colleague"].id, "taskType": "IFCs"}, headers=owner
    ).json()

    r = client.patch(f"/api/tasks/{mine['id']}", json={"status": "Done", "remarks": "sent"}, headers=employee)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "Done"

    r = client.patch(f"/api/tasks/{mine['id']}", json={"description": "rewrite"}, headers=employee)
    assert r.status_code == 403

    assert client.get(f"/api/tasks/{theirs['id']}", headers=employee).status_code == 404
    listed = [t["id"] for t in client.get("/api/tasks", headers=employee).json()["items"]]
    assert listed == [mine["id"]]


def test_employee_records_only_own_attendance(client, studio):
    employee = studio["headers"]["employee"]
    r = client.post("/api/attendance", json={"attendanceDate": "2025-09-01"}, headers=employee)
    assert r.status_code == 201
    assert r.json()["employeeId"] == studio["people"]["employee"].id

    r = client.post(
        "/api/attendance",
        json={"attendanceDate": "2025-09-01", "employeeId": studio["people"]["colleague"].id},
        headers=employee,
    )
    assert r.status_code == 403

    r = client.post("/api/attendance", json={"attendanceDate": "2025-09-01"}, headers=employee)
    assert r.status_code == 409
    assert r.json()["code"] == "attendance_exists"


def test_client_sees_project_but_not_execution_cost(client, studio):
    owner = studio["headers"]["owner"]
    buyer = studio["headers"]["buyer"]
    client_headers = studio["headers"]["client"]
    project_id = studio["assigned"]["id"]

    r = client.post(
        "/api/procurement",
        json={"projectId": project_id, "itemName": "Marble", "projectCost": 1200, "executionCost": 800},
        headers=buyer,
    )
    assert r.status_code == 201, r.text
    client.post(
        "/api/procurement",
        json={"projectId": studio["private"]["id"], "itemName": "Glass", "executionCost": 50},
        headers=owner,
    )

    rows = client.get("/api/procurement", headers=client_headers).json()["items"]
    assert [row["itemName"] for row in rows] == ["Marble"]
    assert rows[0]["executionCost"] == 0
    assert rows[0]["projectCost"] == 1200

    owner_rows = client.get("/api/procurement", headers=owner).json()["items"]
    assert {row["itemName"]: row["executionCost"] for row in owner_rows} == {"Marble": 800, "Glass": 50}

    r = client.post(
        "/api/procurement", json={"projectId": project_id, "itemName": "Paint"}, headers=client_headers
    )
    assert r.status_code == 403


def test_members_created_by_owner_share_the_tenant(client, studio):
    owner = studio["headers"]["owner"]
    r = client.post(
        "/api/users", json={"username": "newbie", "password": "secret12", "role": "employee"}, headers=owner
    )
    assert r.status_code == 201, r.text
    assert r.json()["organizationId"] == "studio-office"
    usernames = {u["username"] for u in client.get("/api/users", headers=owner).json()["items"]}
    assert {"olivia", "esha", "newbie"} <= usernames
    assert "ivan" not in usernames

    # non-owners only see themselves
    employee_view = client.get("/api/users", headers=studio["headers"]["employee"]).json()["items"]
    assert [u["username"] for u in employee_view] == ["esha"]

    r = client.post(
        "/api/users", json={"username": "boss", "password": "secret12", "role": "admin"}, headers=owner
    )
    assert r.status_code == 403


def test_owner_cannot_delete_itself(client, studio):
    owner = studio["people"]["owner"]
    r = client.delete(f"/api/users/{owner.id}", headers=studio["headers"]["owner"])
    assert r.status_code == 400


def test_comments_follow_project_visibility(client, studio):
    employee = studio["headers"]["employee"]
    colleague = studio["headers"]["colleague"]
    project_id = studio["assigned"]["id"]

    r = client.post("/api/comments", json={"projectId": project_id, "body": "Site ready"}, headers=employee)
    assert r.status_code == 201
    comment_id = r.json()["id"]

    r = client.post("/api/comments", json={"projectId": project_id, "body": "me too"}, headers=colleague)
    assert r.status_code == 403
    assert client.delete(f"/api/comments/{comment_id}", headers=colleague).status_code == 403
    assert client.delete(f"/api/comments/{comment_id}", headers=employee).status_code == 200


def test_monthly_task_stats_follow_task_visibility(client, studio):
    owner = studio["headers"]["owner"]
    people = studio["people"]
    for employee, status in (("employee", "Done"), ("employee", None), ("colleague", None)):
        r = client.post("/api/tasks", json={"employeeId": people[employee].id, "taskType": "IFCs"}, headers=owner)
        assert r.status_code == 201, r.text
        if status:
            client.patch(f"/api/tasks/{r.json()['id']}", json={"status": status}, headers=owner)
    month = dt.datetime.now(dt.timezone.utc).strftime("%Y-%m")

    rows = client.get(f"/api/tasks/stats/monthly?month={month}", headers=owner).json()["items"]
    by_employee = {row["employeeId"]: row for row in rows}
    mine = by_employee[people["employee"].id]
    assert mine["total"] == 2
    assert mine["byStatus"]["Done"] == 1
    assert mine["completionRate"] == 50.0
    assert by_employee[people["colleague"].id]["total"] == 1

    rows = client.get(f"/api/tasks/stats/monthly?month={month}", headers=studio["headers"]["employee"]).json()["items"]
    assert [row["employeeId"] for row in rows] == [people["employee"].id]

    assert client.get("/api/tasks/stats/monthly?month=2025-13", headers=owner).status_code == 400
