"""Authorization / RBAC policy layer.

The engine is pure: it answers permission, rank and scope questions over an immutable
`PolicyTable` built once at startup and injected where it is needed.
"""

from coach.authz.catalog import PolicyTable, build_policy_table
from coach.authz.policy import PolicyEngine, RoleTransitionRequest, RoleTransitionResult
from coach.authz.roles import Role, parse_role
from coach.authz.scope import DataScope, ScopeRegistry, default_scope_registry

__all__ = [
    "DataScope",
    "PolicyEngine",
    "PolicyTable",
    "Role",
    "RoleTransitionRequest",
    "RoleTransitionResult",
    "ScopeRegistry",
    "build_policy_table",
    "default_scope_registry",
    "parse_role",
]
