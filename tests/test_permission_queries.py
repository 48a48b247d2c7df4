from __future__ import annotations

import pytest

from coach.authz.catalog import PERMISSION_CATALOG, REFERENCE_ROLE_PERMISSIONS
from coach.authz.roles import DEFAULT_HIERARCHY, Role

ALL_ROLES = [r.value for r in DEFAULT_HIERARCHY] + ["owner", "janitor"]


@pytest.mark.parametrize("role", ALL_ROLES)
def test_has_permission_false_outside_granted_set(engine, role: str) -> None:
    granted = engine.role_permissions(role)
    for perm in PERMISSION_CATALOG:
        assert engine.has_permission(role, perm) is (perm in granted)
    assert engine.has_permission(role, "nonexistent:thing") is False


@pytest.mark.parametrize("role", ALL_ROLES)
def test_empty_list_identities(engine, role: str) -> None:
    assert engine.has_all_permissions(role, []) is True
    assert engine.has_any_permission(role, []) is False


def test_trainee_basics(engine) -> None:
    assert engine.has_permission("trainee", "training:start") is True
    assert engine.has_permission("trainee", "training:view_team") is False
    assert engine.has_any_permission("trainee", ["users:invite", "suites:view"]) is True
    assert engine.has_all_permissions("trainee", ["users:invite", "suites:view"]) is False


def test_reference_grants_are_monotonic() -> None:
    trainee = set(REFERENCE_ROLE_PERMISSIONS[Role.TRAINEE])
    manager = set(REFERENCE_ROLE_PERMISSIONS[Role.MANAGER])
    admin = set(REFERENCE_ROLE_PERMISSIONS[Role.ADMIN])
    assert trainee < manager < admin <= set(PERMISSION_CATALOG)


def test_owner_holds_entire_catalog(engine) -> None:
    assert engine.role_permissions("owner") == frozenset(PERMISSION_CATALOG)
    assert engine.has_all_permissions("owner", list(PERMISSION_CATALOG)) is True


def test_admin_can_change_roles_but_not_manage_billing(engine) -> None:
    assert engine.has_permission("admin", "users:change_role") is True
    assert engine.has_permission("admin", "billing:manage") is False
    assert engine.has_permission("admin", "users:delete") is False
    assert engine.has_permission("manager", "users:change_role") is False


def test_unknown_role_has_nothing(engine) -> None:
    assert engine.role_permissions("janitor") == frozenset()
    assert engine.role_permissions("Admin") == frozenset()
    assert engine.has_any_permission("janitor", list(PERMISSION_CATALOG)) is False


def test_permissions_object_covers_catalog(engine) -> None:
    obj = engine.permissions_object("manager")
    assert set(obj) == set(PERMISSION_CATALOG)
    assert obj["users:invite"] is True
    assert obj["users:view_all"] is False
    assert not any(engine.permissions_object("janitor").values())


def test_queries_are_repeatable(engine) -> None:
    first = (engine.role_permissions("admin"), engine.data_scope("admin"), engine.assignable_roles("admin"))
    second = (engine.role_permissions("admin"), engine.data_scope("admin"), engine.assignable_roles("admin"))
    assert first == second
    assert engine.scope_filter({"role": "trainee", "id": "U1"}, "users") == engine.scope_filter(
        {"role": "trainee", "id": "U1"}, "users"
    )
