"""Role-based access control engine.

Every operation is a pure function of the injected `PolicyTable` and `ScopeRegistry`
plus its arguments. Unknown roles or permissions never raise: they resolve to the most
restrictive answer (no permission, rank -1, `own` scope).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from coach.authz.catalog import PolicyTable, build_policy_table
from coach.authz.roles import RANK_NOT_FOUND, Role, parse_role
from coach.authz.scope import DataScope, ScopeFilter, ScopeRegistry, default_scope_registry, user_field

RoleLike = Union[Role, str, None]

CHANGE_ROLE_PERMISSION = "users:change_role"

MSG_NO_PERMISSION = "You do not have permission to change roles"
MSG_NEW_ROLE_TOO_HIGH = "Cannot assign a role equal to or higher than your own"
MSG_NEW_ROLE_UNRANKED = "Cannot assign a role outside the role hierarchy"
MSG_TARGET_TOO_HIGH = "Cannot modify the role of a user at or above your level"


@dataclass(frozen=True)
class RoleTransitionRequest:
    actor_role: RoleLike
    target_current_role: RoleLike
    target_new_role: RoleLike


@dataclass(frozen=True)
class RoleTransitionResult:
    valid: bool
    # User-facing explanation; None when the transition is allowed.
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"valid": self.valid}
        if self.message is not None:
            out["message"] = self.message
        return out


class PolicyEngine:
    def __init__(self, table: Optional[PolicyTable] = None, scopes: Optional[ScopeRegistry] = None):
        self._table = table if table is not None else build_policy_table()
        self._scopes = scopes if scopes is not None else default_scope_registry()

    @property
    def table(self) -> PolicyTable:
        return self._table

    @property
    def scopes(self) -> ScopeRegistry:
        return self._scopes

    # ---- Permission queries ----

    def role_permissions(self, role: RoleLike) -> FrozenSet[str]:
        return self._table.permissions_for(parse_role(role))

    def has_permission(self, role: RoleLike, permission: str) -> bool:
        return permission in self.role_permissions(role)

    def has_any_permission(self, role: RoleLike, permissions: Iterable[str]) -> bool:
        granted = self.role_permissions(role)
        return any(p in granted for p in permissions)

    def has_all_permissions(self, role: RoleLike, permissions: Iterable[str]) -> bool:
        # Vacuously true for an empty list, even for unknown roles.
        granted = self.role_permissions(role)
        return all(p in granted for p in permissions)

    def permissions_object(self, role: RoleLike) -> Dict[str, bool]:
        """Every catalog key mapped to whether `role` holds it (for the frontend)."""
        granted = self.role_permissions(role)
        return {key: key in granted for key in self._table.catalog}

    # ---- Role comparison ----

    def rank(self, role: RoleLike) -> int:
        r = parse_role(role)
        try:
            return self._table.hierarchy.index(r)
        except ValueError:
            return RANK_NOT_FOUND

    def is_higher_role(self, role_a: RoleLike, role_b: RoleLike) -> bool:
        return self.rank(role_a) > self.rank(role_b)

    def is_role_at_least(self, role_a: RoleLike, role_b: RoleLike) -> bool:
        return self.rank(role_a) >= self.rank(role_b)

    def assignable_roles(self, role: RoleLike) -> List[Role]:
        """Roles strictly below `role`, lowest first. Empty for the bottom rank or unknown roles."""
        idx = self.rank(role)
        if idx <= 0:
            return []
        return list(self._table.hierarchy[:idx])

    def can_invite(self, actor_role: RoleLike, role: RoleLike) -> bool:
        r = parse_role(role)
        if r is Role.UNKNOWN:
            return False
        return r in self.assignable_roles(actor_role)

    # ---- Data scope ----

    def data_scope(self, role: RoleLike) -> DataScope:
        r = parse_role(role)
        if r in (Role.ADMIN, Role.SUPER_ADMIN):
            return DataScope.ALL
        if r is Role.MANAGER:
            return DataScope.TEAM
        return DataScope.OWN

    def scope_filter(self, user: Any, table_name: str) -> ScopeFilter:
        """
        Row filter the query layer must AND onto reads/writes of `table_name`.

        `user` is a mapping or object exposing `role`, `id` and `branch_id`.
        """
        scope = self.data_scope(user_field(user, "role"))
        return self._scopes.resolve(scope, user, table_name)

    # ---- Role transitions ----

    def validate_role_transition(
        self,
        actor_role: RoleLike,
        target_current_role: RoleLike,
        target_new_role: RoleLike,
    ) -> RoleTransitionResult:
        """
        Decide whether `actor_role` may move a user from `target_current_role` to
        `target_new_role`. Guards run in order and the first failure wins.

        No side effects: the caller persists the change only on `valid=True`.
        """
        if not self.has_permission(actor_role, CHANGE_ROLE_PERMISSION):
            return RoleTransitionResult(valid=False, message=MSG_NO_PERMISSION)

        # Unranked roles (owner, unknown labels) are never "below" the actor.
        if self.rank(target_new_role) == RANK_NOT_FOUND:
            return RoleTransitionResult(valid=False, message=MSG_NEW_ROLE_UNRANKED)
        if not self.is_higher_role(actor_role, target_new_role):
            return RoleTransitionResult(valid=False, message=MSG_NEW_ROLE_TOO_HIGH)

        if self.rank(target_current_role) == RANK_NOT_FOUND:
            return RoleTransitionResult(valid=False, message=MSG_TARGET_TOO_HIGH)
        if self.is_role_at_least(target_current_role, actor_role):
            return RoleTransitionResult(valid=False, message=MSG_TARGET_TOO_HIGH)

        return RoleTransitionResult(valid=True)

    def evaluate_transition(self, request: RoleTransitionRequest) -> RoleTransitionResult:
        return self.validate_role_transition(
            request.actor_role,
            request.target_current_role,
            request.target_new_role,
        )
