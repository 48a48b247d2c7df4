"""Data-scope resolution: which rows of which tables a role may see.

Filters are declarative `{column: required_value}` dicts that the query layer ANDs onto
its predicates. Only registered (scope, table) pairs restrict anything; every other
pair resolves to `{}` (no restriction). Adding a new table therefore needs an explicit
registration here, or it stays open under every scope.

Tenant/organization isolation is enforced by an outer layer and is not re-derived here.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

ScopeFilter = Dict[str, Any]
FilterBuilder = Callable[[Any], ScopeFilter]


class DataScope(str, Enum):
    OWN = "own"
    TEAM = "team"
    ALL = "all"


def user_field(user: Any, name: str) -> Any:
    """Read `name` from a mapping or attribute-style user record (None when absent)."""
    if user is None:
        return None
    if isinstance(user, Mapping):
        return user.get(name)
    return getattr(user, name, None)


def _branch_filter(user: Any) -> ScopeFilter:
    branch_id = user_field(user, "branch_id")
    return {"branch_id": branch_id} if branch_id else {}


def _owner_filter(user: Any) -> ScopeFilter:
    return {"user_id": user_field(user, "id")}


def _self_filter(user: Any) -> ScopeFilter:
    return {"id": user_field(user, "id")}


class ScopeRegistry:
    """Read-only mapping of (scope, table name) -> filter builder."""

    def __init__(self, entries: Iterable[Tuple[DataScope, str, FilterBuilder]] = ()):
        table: Dict[Tuple[DataScope, str], FilterBuilder] = {}
        for scope, table_name, builder in entries:
            table[(DataScope(scope), table_name)] = builder
        self._entries: Mapping[Tuple[DataScope, str], FilterBuilder] = MappingProxyType(table)

    def builder_for(self, scope: DataScope, table_name: str) -> Optional[FilterBuilder]:
        return self._entries.get((scope, table_name))

    def tables_for(self, scope: DataScope) -> Tuple[str, ...]:
        return tuple(sorted(t for (s, t) in self._entries if s == scope))

    def resolve(self, scope: DataScope, user: Any, table_name: str) -> ScopeFilter:
        builder = self.builder_for(scope, table_name)
        if builder is None:
            return {}
        return dict(builder(user))

    def with_entry(self, scope: DataScope, table_name: str, builder: FilterBuilder) -> "ScopeRegistry":
        """Return a new registry with one more (or a replaced) registration."""
        entries = [(s, t, b) for (s, t), b in self._entries.items()]
        entries.append((scope, table_name, builder))
        return ScopeRegistry(entries)

    def __len__(self) -> int:
        return len(self._entries)


def default_scope_registry() -> ScopeRegistry:
    # `all` has no registrations: admins see every row of the tenant.
    return ScopeRegistry(
        [
            (DataScope.TEAM, "users", _branch_filter),
            (DataScope.TEAM, "training_sessions", _branch_filter),
            (DataScope.OWN, "training_sessions", _owner_filter),
            (DataScope.OWN, "training_assignments", _owner_filter),
            (DataScope.OWN, "users", _self_filter),
        ]
    )
