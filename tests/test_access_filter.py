from __future__ import annotations

import pytest

from core.access import CLIENT_VISIBLE, AccessFilter
from core.domain import Action, ResourceKind, Role
from core.errors import Unauthorized
from core.principal import Principal

K = ResourceKind


def _filter(role: Role, assigned=("p1",), uid: str = "me") -> AccessFilter:
    return AccessFilter(Principal(id=uid, username=uid, role=role), assigned)


def test_owner_reads_and_mutates_everything():
    f = _filter(Role.OWNER, assigned=())
    for kind in K:
        assert f.can_read(kind, {"project_id": "elsewhere", "employee_id": "other"})
        assert f.authorize_mutation(kind, Action.DELETE, {"project_id": "x"})


def test_employee_sees_assigned_projects_and_own_personal_records():
    f = _filter(Role.EMPLOYEE)
    assert f.can_read(K.PROJECTS, {"id": "p1"})
    assert not f.can_read(K.PROJECTS, {"id": "p2"})
    assert f.can_read(K.PROCUREMENT, {"project_id": "p1"})
    assert f.can_read(K.SALARIES, {"employee_id": "me"})
    assert not f.can_read(K.SALARIES, {"employee_id": "other"})
    # tasks are personal even on an assigned project
    assert not f.can_read(K.TASKS, {"project_id": "p1", "employee_id": "other"})
    assert not f.can_read(K.FINANCIALS, {"project_id": "p1"})


def test_employee_task_updates_limited_to_status_and_remarks():
    f = _filter(Role.EMPLOYEE)
    own = {"employee_id": "me", "project_id": "p1"}
    assert f.authorize_mutation(K.TASKS, Action.UPDATE, own, {"status": "Done", "remarks": "ok"})
    assert not f.authorize_mutation(K.TASKS, Action.UPDATE, own, {"description": "rewrite"})
    assert not f.authorize_mutation(K.TASKS, Action.UPDATE, {"employee_id": "other"}, {"status": "Done"})
    assert not f.authorize_mutation(K.PROJECTS, Action.CREATE)
    with pytest.raises(Unauthorized):
        f.require_mutation(K.SALARIES, Action.CREATE, {"employee_id": "me"})


def test_employee_may_only_mark_own_attendance():
    f = _filter(Role.EMPLOYEE)
    assert f.authorize_mutation(K.ATTENDANCE, Action.CREATE, {"employee_id": "me"})
    assert not f.authorize_mutation(K.ATTENDANCE, Action.CREATE, {"employee_id": "other"})


def test_procurement_agent_manages_procurement_only():
    f = _filter(Role.PROCUREMENT, assigned=())
    assert f.authorize_mutation(K.PROCUREMENT, Action.CREATE, {"project_id": "any"})
    assert f.authorize_mutation(K.PROCUREMENT, Action.DELETE, {"project_id": "any"})
    assert not f.authorize_mutation(K.PROJECTS, Action.UPDATE, {"id": "any"})
    assert f.can_read(K.PROJECTS, {"id": "any"})
    assert not f.can_read(K.SALARIES, {"employee_id": "other"})


def test_comment_rules():
    f = _filter(Role.CLIENT)
    assert f.authorize_mutation(K.COMMENTS, Action.CREATE, {"project_id": "p1"})
    assert not f.authorize_mutation(K.COMMENTS, Action.CREATE, {"project_id": "p2"})
    assert f.authorize_mutation(K.COMMENTS, Action.DELETE, {"user_id": "me"})
    assert not f.authorize_mutation(K.COMMENTS, Action.DELETE, {"user_id": "other"})


def test_client_procurement_view_hides_execution_cost():
    payload = {"id": "x", "projectCost": 500.0, "executionCost": 320.0}
    redacted = _filter(Role.CLIENT).redact(K.PROCUREMENT, payload)
    assert redacted["executionCost"] == 0
    assert redacted["projectCost"] == 500.0
    assert payload["executionCost"] == 320.0
    assert _filter(Role.OWNER).redact(K.PROCUREMENT, payload)["executionCost"] == 320.0


def test_scope_drops_invisible_rows():
    rows = [{"id": "p1"}, {"id": "p2"}, {"id": "p3"}]
    assert _filter(Role.CLIENT).scope(K.PROJECTS, rows) == [{"id": "p1"}]


hypothesis = pytest.importorskip("hypothesis")
st = pytest.importorskip("hypothesis.strategies")


@hypothesis.given(
    kind=st.sampled_from(list(K)),
    project=st.sampled_from(["p1", "p2", "p3", None]),
    person=st.sampled_from(["me", "other"]),
    assigned=st.sets(st.sampled_from(["p1", "p2", "p3"]), max_size=3),
)
def test_client_reads_only_assigned_project_records(kind, project, person, assigned):
    f = _filter(Role.CLIENT, assigned=assigned)
    record = {"id": project, "project_id": project, "employee_id": person, "user_id": person}
    if not f.can_read(kind, record):
        return
    if kind in (K.USERS, K.ASSIGNMENTS, K.CLIENTS):
        assert person == "me"
    else:
        assert kind in CLIENT_VISIBLE
        assert project in assigned
