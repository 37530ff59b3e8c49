from __future__ import annotations

import pytest

from core.domain import ResourceKind, Role
from core.errors import Unauthorized
from core.principal import Principal
from core.settings import reset_settings_cache
from core.tenancy import (
    CustomBusinessTenant,
    HouseTenant,
    IndividualTenant,
    OrganizationTenant,
    UnclassifiedTenant,
    classify,
    inherit_tenant,
    resolve,
)


def _principal(**kw) -> Principal:
    base = {"id": "u1", "username": "u1", "role": Role.OWNER}
    base.update(kw)
    return Principal(**base)


@pytest.mark.parametrize(
    "kw,expected_root",
    [
        ({"is_founder": True, "account_type": "individual"}, "studio_office/data"),
        ({"is_platform_admin": True}, "studio_office/data"),
        ({"organization_id": "studio-office", "account_type": "custom"}, "studio_office/data"),
        ({"account_type": "office"}, "studio_office/data"),
        ({"account_type": "individual"}, "individuals/u1/data"),
        ({"account_type": "individual", "owner_id": "boss"}, "individuals/boss/data"),
        ({"account_type": "custom", "organization_id": "acme"}, "custom_businesses/acme/data"),
        ({"account_type": "custom"}, "custom_businesses/cust_u1/data"),
        ({"account_type": "organization", "organization_id": "guild"}, "organizations/guild/data"),
        ({"account_type": "organization"}, "organizations/org_u1/data"),
    ],
)
def test_root_per_classification(kw, expected_root):
    paths = resolve(_principal(**kw))
    assert paths.root == expected_root
    assert paths[ResourceKind.PROJECTS] == f"{expected_root}/projects"
    assert paths[ResourceKind.PROCUREMENT] == f"{expected_root}/procurementItems"


def test_every_kind_has_a_path_under_the_root():
    paths = resolve(_principal(account_type="organization", organization_id="guild"))
    assert set(paths.paths) == set(ResourceKind)
    assert all(p.startswith("organizations/guild/data/") for p in paths.paths.values())


def test_classification_variants():
    assert classify(_principal(account_type="office")) == HouseTenant()
    assert classify(_principal(account_type="individual")) == IndividualTenant("u1")
    assert classify(_principal(account_type="custom", organization_id="x")) == CustomBusinessTenant("x")
    assert classify(_principal(account_type="organization", organization_id="y")) == OrganizationTenant("y")
    assert classify(_principal(account_type="")) == UnclassifiedTenant("")


def test_unclassified_falls_back_to_house_with_warning(caplog):
    with caplog.at_level("WARNING", logger="office_core.tenancy"):
        paths = resolve(_principal(account_type="mystery"))
    assert paths.root == "studio_office/data"
    assert any("falling back" in r.getMessage() for r in caplog.records)


def test_unclassified_rejected_when_configured(monkeypatch):
    monkeypatch.setenv("TENANT_FALLBACK", "reject")
    reset_settings_cache()
    with pytest.raises(Unauthorized) as exc:
        resolve(_principal(account_type=""))
    assert exc.value.code == "tenant_unresolved"


def test_members_inherit_their_creators_root():
    creators = [
        _principal(account_type="office"),
        _principal(account_type="individual"),
        _principal(account_type="custom", organization_id="acme"),
        _principal(account_type="organization"),
        _principal(account_type="freelance"),
    ]
    for creator in creators:
        member = _principal(id="m9", username="m9", role=Role.EMPLOYEE, **inherit_tenant(creator))
        assert resolve(member) == resolve(creator)


hypothesis = pytest.importorskip("hypothesis")
st = pytest.importorskip("hypothesis.strategies")


@hypothesis.given(
    uid=st.text(alphabet="abcdef0123456789", min_size=1, max_size=12),
    account_type=st.sampled_from(["office", "individual", "custom", "organization", "", "other"]),
    org=st.one_of(st.none(), st.text(alphabet="abcxyz-", min_size=1, max_size=10)),
    founder=st.booleans(),
)
def test_resolution_is_deterministic_and_isolated(uid, account_type, org, founder):
    p = _principal(id=uid, username=uid, account_type=account_type, organization_id=org, is_founder=founder)
    first, second = resolve(p), resolve(p)
    assert first == second
    paths = list(first.paths.values())
    assert len(paths) == len(set(paths))
    assert all(path.startswith(first.root + "/") for path in paths)
