"""Permission catalog and the role -> permission table.

The reference data below is the shipped policy. A deployment can replace it with a
policy file (see `coach.authz.config`), but the shape stays the same:

- an ordered hierarchy (lowest privilege first)
- a catalog of `resource:action` keys with human-readable descriptions
- a mapping of role -> granted keys

Each higher role's grant list is a superset of the one below. That is an authoring
rule for this data, not something the engine checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from coach.authz.roles import DEFAULT_HIERARCHY, Role, parse_role

PERMISSION_CATALOG: Dict[str, str] = {
    # Training
    "training:start": "Start a training session",
    "training:view_own": "View own training sessions",
    "training:view_team": "View team training sessions",
    "training:view_all": "View all organization training sessions",
    # Assignments
    "assignments:view_own": "View own assignments",
    "assignments:view_team": "View team assignments",
    "assignments:view_all": "View all assignments",
    "assignments:create": "Create assignments",
    "assignments:edit": "Edit assignments",
    "assignments:delete": "Delete assignments",
    # Suites
    "suites:view": "View training suites",
    "suites:create": "Create training suites",
    "suites:edit": "Edit training suites",
    "suites:delete": "Delete training suites",
    # User management
    "users:view_own": "View own profile",
    "users:view_team": "View team members",
    "users:view_all": "View all users",
    "users:invite": "Invite new users",
    "users:edit": "Edit user profiles",
    "users:delete": "Delete users",
    "users:change_role": "Change user roles",
    # Branches
    "branches:view": "View branches",
    "branches:create": "Create branches",
    "branches:edit": "Edit branches",
    "branches:delete": "Delete branches",
    # Reports
    "reports:view_own": "View own reports",
    "reports:view_team": "View team reports",
    "reports:view_all": "View organization reports",
    "reports:export": "Export reports",
    # Billing
    "billing:view": "View billing information",
    "billing:manage": "Manage billing and subscriptions",
    # Settings
    "settings:view": "View organization settings",
    "settings:edit": "Edit organization settings",
    "settings:ai": "Configure AI settings",
    # Gamification
    "leaderboard:view": "View leaderboards",
    "badges:view": "View badges",
    "badges:create": "Create custom badges",
    # Notifications
    "notifications:view_own": "View own notifications",
    "notifications:send": "Send notifications to users",
}

_TRAINEE = [
    "training:start",
    "training:view_own",
    "assignments:view_own",
    "suites:view",
    "users:view_own",
    "reports:view_own",
    "leaderboard:view",
    "badges:view",
    "notifications:view_own",
]

_MANAGER = _TRAINEE + [
    "training:view_team",
    "assignments:view_team",
    "assignments:create",
    "assignments:edit",
    "suites:create",
    "users:view_team",
    "users:invite",
    "branches:view",
    "reports:view_team",
    "reports:export",
    "notifications:send",
]

# Not granted to admin: users:delete, branches:delete, billing:manage.
_ADMIN = _MANAGER + [
    "training:view_all",
    "assignments:view_all",
    "assignments:delete",
    "suites:edit",
    "suites:delete",
    "users:view_all",
    "users:edit",
    "users:change_role",
    "branches:create",
    "branches:edit",
    "reports:view_all",
    "billing:view",
    "settings:view",
    "settings:edit",
    "settings:ai",
    "badges:create",
]

# `owner` is not listed: it is always derived from the catalog.
REFERENCE_ROLE_PERMISSIONS: Dict[Role, List[str]] = {
    Role.TRAINEE: _TRAINEE,
    Role.MANAGER: _MANAGER,
    Role.ADMIN: _ADMIN,
}

# How `super_admin` gets its grants. The reference data has no entry for it.
SUPER_ADMIN_AS_OWNER = "owner"
SUPER_ADMIN_NO_ENTRY = "none"
SUPER_ADMIN_TIERS = (SUPER_ADMIN_AS_OWNER, SUPER_ADMIN_NO_ENTRY)


@dataclass(frozen=True)
class PolicyTable:
    """Immutable policy data shared by every `PolicyEngine` call."""

    hierarchy: Tuple[Role, ...]
    catalog: Mapping[str, str]
    role_permissions: Mapping[Role, FrozenSet[str]]

    def permissions_for(self, role: Role) -> FrozenSet[str]:
        return self.role_permissions.get(role, frozenset())

    def describe(self, permission: str) -> Optional[str]:
        return self.catalog.get(permission)


def build_policy_table(
    *,
    hierarchy: Sequence[Union[Role, str]] = DEFAULT_HIERARCHY,
    catalog: Optional[Mapping[str, str]] = None,
    role_permissions: Optional[Mapping[Union[Role, str], Iterable[str]]] = None,
    super_admin_tier: str = SUPER_ADMIN_AS_OWNER,
) -> PolicyTable:
    """
    Assemble a `PolicyTable` from plain data.

    `owner` always receives every catalog key. `super_admin` is wired according to
    `super_admin_tier` unless `role_permissions` gives it an explicit entry.
    """
    if super_admin_tier not in SUPER_ADMIN_TIERS:
        raise ValueError(f"Invalid super_admin tier: {super_admin_tier!r} (expected one of {SUPER_ADMIN_TIERS})")
    ranked = [parse_role(r) for r in hierarchy]
    if Role.UNKNOWN in ranked:
        raise ValueError(f"Role hierarchy contains unknown roles: {list(hierarchy)}")
    # owner holds the whole catalog and must stay unranked.
    if Role.OWNER in ranked:
        raise ValueError("The owner role cannot be part of the hierarchy")
    if len(set(ranked)) != len(ranked):
        raise ValueError("Role hierarchy contains duplicates")

    cat = dict(PERMISSION_CATALOG if catalog is None else catalog)
    grants = REFERENCE_ROLE_PERMISSIONS if role_permissions is None else role_permissions

    table: Dict[Role, FrozenSet[str]] = {}
    for name, keys in grants.items():
        role = parse_role(name)
        if role in (Role.UNKNOWN, Role.OWNER):
            raise ValueError(f"Role {name!r} cannot carry an explicit permission list")
        granted = frozenset(keys)
        missing = sorted(granted - set(cat))
        if missing:
            raise ValueError(f"Role {role.value!r} references unknown permissions: {', '.join(missing)}")
        table[role] = granted

    table[Role.OWNER] = frozenset(cat)
    if Role.SUPER_ADMIN not in table and super_admin_tier == SUPER_ADMIN_AS_OWNER:
        table[Role.SUPER_ADMIN] = table[Role.OWNER]

    return PolicyTable(
        hierarchy=tuple(ranked),
        catalog=MappingProxyType(cat),
        role_permissions=MappingProxyType(table),
    )
