from __future__ import annotations

from enum import Enum
from typing import Any, Tuple


class Role(str, Enum):
    """Privilege tiers a user can hold.

    `UNKNOWN` is what every unrecognized label maps to: it has no rank and no
    permissions, so lookups fail closed without special-casing at call sites.
    """

    TRAINEE = "trainee"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    # Assignable tier holding the full catalog; deliberately absent from the hierarchy.
    OWNER = "owner"
    UNKNOWN = "unknown"


# Lowest privilege first; index == rank.
DEFAULT_HIERARCHY: Tuple[Role, ...] = (Role.TRAINEE, Role.MANAGER, Role.ADMIN, Role.SUPER_ADMIN)

# Sentinel rank for roles outside the hierarchy (strictly below index 0).
RANK_NOT_FOUND = -1

_BY_VALUE = {r.value: r for r in Role if r is not Role.UNKNOWN}


def parse_role(value: Any) -> Role:
    """
    Map a raw role label (session claim, request body, DB column) to a `Role`.

    Exact string match only: no case folding, no aliasing. The literal string
    "unknown" is not a real role either.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return Role.UNKNOWN
    return _BY_VALUE.get(value, Role.UNKNOWN)
