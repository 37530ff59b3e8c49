"""Tenant namespace resolution.

Every account is classified into exactly one variant of ``TenantClassification``.
``resolve`` maps that variant onto a storage root and expands the root into a
``TenantPathSet`` holding one physical collection path per ``ResourceKind``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Union, assert_never

from core.domain import AccountType, ResourceKind
from core.errors import Unauthorized
from core.principal import Principal
from core.settings import OfficeSettings, get_settings

logger = logging.getLogger("office_core.tenancy")


@dataclass(frozen=True)
class HouseTenant:
    pass


@dataclass(frozen=True)
class IndividualTenant:
    owner_id: str


@dataclass(frozen=True)
class CustomBusinessTenant:
    org_key: str


@dataclass(frozen=True)
class OrganizationTenant:
    org_key: str


@dataclass(frozen=True)
class UnclassifiedTenant:
    account_type: str


TenantClassification = Union[
    HouseTenant,
    IndividualTenant,
    CustomBusinessTenant,
    OrganizationTenant,
    UnclassifiedTenant,
]


@dataclass(frozen=True)
class TenantPathSet:
    root: str
    paths: Mapping[ResourceKind, str] = field(repr=False)

    @classmethod
    def under(cls, root: str) -> "TenantPathSet":
        paths = {kind: f"{root}/{kind.value}" for kind in ResourceKind}
        return cls(root=root, paths=MappingProxyType(paths))

    def __getitem__(self, kind: ResourceKind) -> str:
        return self.paths[kind]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TenantPathSet):
            return NotImplemented
        return self.root == other.root and dict(self.paths) == dict(other.paths)

    def __hash__(self) -> int:
        return hash(self.root)


def classify(principal: Principal, settings: Optional[OfficeSettings] = None) -> TenantClassification:
    """Pick the tenant variant for a principal, in fixed priority order."""
    cfg = settings or get_settings()
    if principal.is_founder or principal.is_platform_admin:
        return HouseTenant()
    if principal.organization_id and principal.organization_id == cfg.house_organization_id:
        return HouseTenant()
    account_type = (principal.account_type or "").strip().lower()
    if account_type == AccountType.OFFICE.value:
        return HouseTenant()
    if account_type == AccountType.INDIVIDUAL.value:
        return IndividualTenant(owner_id=principal.owner_id or principal.id)
    if account_type == AccountType.CUSTOM.value:
        return CustomBusinessTenant(org_key=principal.organization_id or f"cust_{principal.id}")
    if account_type == AccountType.ORGANIZATION.value:
        return OrganizationTenant(org_key=principal.organization_id or f"org_{principal.id}")
    return UnclassifiedTenant(account_type=account_type)


def root_for(classification: TenantClassification, settings: Optional[OfficeSettings] = None) -> str:
    cfg = settings or get_settings()
    match classification:
        case HouseTenant():
            return f"{cfg.house_namespace}/data"
        case IndividualTenant(owner_id=owner_id):
            return f"individuals/{owner_id}/data"
        case CustomBusinessTenant(org_key=org_key):
            return f"custom_businesses/{org_key}/data"
        case OrganizationTenant(org_key=org_key):
            return f"organizations/{org_key}/data"
        case UnclassifiedTenant(account_type=account_type):
            if cfg.tenant_fallback == "reject":
                raise Unauthorized("account has no tenant classification", code="tenant_unresolved")
            logger.warning("Unclassified account type %r; falling back to the house namespace", account_type)
            return f"{cfg.house_namespace}/data"
        case _:
            assert_never(classification)


def resolve(principal: Principal, settings: Optional[OfficeSettings] = None) -> TenantPathSet:
    """Compute the tenant path set for a principal. Pure apart from the fallback warning."""
    cfg = settings or get_settings()
    return TenantPathSet.under(root_for(classify(principal, cfg), cfg))


def inherit_tenant(principal: Principal, settings: Optional[OfficeSettings] = None) -> dict[str, Optional[str]]:
    """Classification columns for an account created by ``principal`` so both resolve to one root."""
    cfg = settings or get_settings()
    classification = classify(principal, cfg)
    match classification:
        case HouseTenant():
            return {"account_type": AccountType.OFFICE.value, "organization_id": cfg.house_organization_id, "owner_id": None}
        case IndividualTenant(owner_id=owner_id):
            return {"account_type": AccountType.INDIVIDUAL.value, "organization_id": None, "owner_id": owner_id}
        case CustomBusinessTenant(org_key=org_key):
            return {"account_type": AccountType.CUSTOM.value, "organization_id": org_key, "owner_id": None}
        case OrganizationTenant(org_key=org_key):
            return {"account_type": AccountType.ORGANIZATION.value, "organization_id": org_key, "owner_id": None}
        case UnclassifiedTenant(account_type=account_type):
            return {"account_type": account_type, "organization_id": principal.organization_id, "owner_id": None}
        case _:
            assert_never(classification)
