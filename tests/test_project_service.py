from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import seed_account
from core.domain import ResourceKind, Role
from core.errors import Conflict, NotFound, ValidationFailure
from core.models import Assignment, Comment, Division, Item, ProcurementItem, Project, ProjectFinancials, Task
from core.services import comments, procurement, projects, staff


@pytest.fixture()
def owner(session):
    return seed_account(session, "olivia")


@pytest.fixture()
def project(session, house_paths, owner):
    return projects.create_project(session, house_paths, {"name": "Villa 12", "client_name": "Karim"}, created_by=owner.id)


def _item(session, paths, division, **fields):
    data = {"description": "Tile", "quantity": Decimal("2"), "rate": Decimal("150"), "priority": "High"}
    data.update(fields)
    return projects.create_item(session, paths, division.id, data)


def test_divisions_append_in_order(session, house_paths, project):
    first = projects.create_division(session, house_paths, project.id, "Kitchen")
    second = projects.create_division(session, house_paths, project.id, "Lounge")
    assert (first.position, second.position) == (0, 1)
    names = [d.name for d in projects.list_divisions(session, house_paths, project.id)]
    assert names == ["Kitchen", "Lounge"]


def test_summary_aggregates_costs_and_progress(session, house_paths, project):
    kitchen = projects.create_division(session, house_paths, project.id, "Kitchen")
    lounge = projects.create_division(session, house_paths, project.id, "Lounge")
    _item(session, house_paths, kitchen, status="Delivered")
    _item(session, house_paths, kitchen, description="Sink", quantity=Decimal("1"), rate=Decimal("99.99"), priority="Low", status="Purchased")
    _item(session, house_paths, lounge, description="Sofa", quantity=Decimal("1"), rate=Decimal("1200"), priority="Mid")

    summary = projects.summarize(
        projects.list_divisions(session, house_paths, project.id),
        projects.list_items(session, house_paths, project_id=project.id),
    )

    assert summary["totalItems"] == 3
    assert summary["totalCost"] == pytest.approx(1599.99)
    assert summary["costByPriority"] == {"High": 300.0, "Mid": 1200.0, "Low": pytest.approx(99.99)}
    assert summary["countByPriority"] == {"High": 1, "Mid": 1, "Low": 1}
    assert summary["statusBreakdown"]["Delivered"] == 1
    assert summary["statusBreakdown"]["Not Started"] == 1
    # (100 + 25 + 0) / 3
    assert summary["overallProgress"] == pytest.approx(41.67)
    by_name = {row["divisionName"]: row for row in summary["divisionBreakdown"]}
    assert by_name["Kitchen"]["itemCount"] == 2
    assert by_name["Lounge"]["totalCost"] == 1200.0


def test_empty_project_summary():
    summary = projects.summarize([], [])
    assert summary["totalItems"] == 0
    assert summary["totalCost"] == 0
    assert summary["overallProgress"] == 0


def test_items_cannot_move_between_projects(session, house_paths, owner, project):
    other = projects.create_project(session, house_paths, {"name": "Office Fitout"}, created_by=owner.id)
    source = projects.create_division(session, house_paths, project.id, "Kitchen")
    sibling = projects.create_division(session, house_paths, project.id, "Pantry")
    foreign = projects.create_division(session, house_paths, other.id, "Reception")
    item = _item(session, house_paths, source)

    moved = projects.update_item(session, house_paths, item.id, {"division_id": sibling.id})
    assert moved.division_id == sibling.id
    with pytest.raises(ValidationFailure):
        projects.update_item(session, house_paths, item.id, {"division_id": foreign.id})
    with pytest.raises(ValidationFailure):
        projects.update_item(session, house_paths, item.id, {"rate": Decimal("-1")})


def test_delete_project_cascades_and_detaches_tasks(session, house_paths, owner, project):
    worker = seed_account(session, "wasim", Role.EMPLOYEE)
    division = projects.create_division(session, house_paths, project.id, "Kitchen")
    _item(session, house_paths, division)
    projects.assign_user(session, house_paths, project.id, worker.id, assigned_by=owner.id)
    comments.add_comment(session, house_paths, project.id, owner.id, "Measure again")
    procurement.create_item(session, house_paths, {"project_id": project.id, "item_name": "Grout"})
    projects.upsert_financials(session, house_paths, project.id, {"contract_value": Decimal("5000")})
    task = staff.create_task(
        session, house_paths, {"employee_id": worker.id, "project_id": project.id, "task_type": "IFCs"}, assigned_by=owner.id
    )

    projects.delete_project(session, house_paths, project.id)

    for model in (Division, Item, Assignment, Comment, ProcurementItem, ProjectFinancials):
        assert session.query(model).count() == 0, model.__name__
    remaining = session.get(Task, task.id)
    session.refresh(remaining)
    assert remaining.project_id is None
    with pytest.raises(NotFound):
        projects.delete_project(session, house_paths, project.id)


def test_failed_project_delete_leaves_everything_in_place(session, house_paths, owner, project, monkeypatch):
    worker = seed_account(session, "wasim", Role.EMPLOYEE)
    division = projects.create_division(session, house_paths, project.id, "Kitchen")
    _item(session, house_paths, division)
    projects.assign_user(session, house_paths, project.id, worker.id, assigned_by=owner.id)
    comments.add_comment(session, house_paths, project.id, owner.id, "Measure again")
    task = staff.create_task(
        session, house_paths, {"employee_id": worker.id, "project_id": project.id, "task_type": "IFCs"}, assigned_by=owner.id
    )

    # the dependent rows are already gone inside the transaction when this fails
    def _fail(instance):
        raise OperationalError("DELETE FROM projects", {}, Exception("disk I/O error"))

    monkeypatch.setattr(session, "delete", _fail)
    with pytest.raises(OperationalError):
        projects.delete_project(session, house_paths, project.id)
    monkeypatch.undo()

    assert session.get(Project, project.id) is not None
    for model in (Division, Item, Assignment, Comment):
        assert session.query(model).count() == 1, model.__name__
    session.refresh(task)
    assert task.project_id == project.id


def test_assignment_rules(session, house_paths, owner, project):
    worker = seed_account(session, "wasim", Role.EMPLOYEE)
    outsider = seed_account(session, "ivan", account_type="individual")
    projects.assign_user(session, house_paths, project.id, worker.id, assigned_by=owner.id)
    with pytest.raises(Conflict):
        projects.assign_user(session, house_paths, project.id, worker.id, assigned_by=owner.id)
    with pytest.raises(NotFound):
        projects.assign_user(session, house_paths, project.id, outsider.id, assigned_by=owner.id)


def test_financials_track_archive_date(session, house_paths, project):
    record = projects.upsert_financials(
        session, house_paths, project.id, {"contract_value": Decimal("9000"), "amount_received": Decimal("4000")}
    )
    assert record.collection == house_paths[ResourceKind.FINANCIALS]
    assert record.archived_date is None

    record = projects.upsert_financials(session, house_paths, project.id, {"is_archived": True})
    assert record.archived_date == dt.date.today()
    assert session.query(ProjectFinancials).count() == 1

    record = projects.upsert_financials(session, house_paths, project.id, {"is_archived": False})
    assert record.archived_date is None

    with pytest.raises(ValidationFailure):
        projects.upsert_financials(session, house_paths, project.id, {"work_completed": 150})


def test_empty_comment_rejected(session, house_paths, owner, project):
    with pytest.raises(ValidationFailure):
        comments.add_comment(session, house_paths, project.id, owner.id, "   ")
