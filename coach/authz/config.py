"""Policy configuration (env/ConfigMap driven).

Recommended vars:
- AUTHZ_POLICY_FILE=/etc/coach/policy.yaml   (optional; defaults to the shipped policy)
- AUTHZ_SUPER_ADMIN_PERMISSIONS=owner|none

Policy file shape (YAML):

    hierarchy: [trainee, manager, admin, super_admin]
    permissions:
      training:start: Start a training session
      ...
    roles:
      trainee: [training:start, ...]
      manager: [...]
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from coach.authz.catalog import SUPER_ADMIN_AS_OWNER, SUPER_ADMIN_TIERS, PolicyTable, build_policy_table
from coach.authz.roles import DEFAULT_HIERARCHY, Role, parse_role

logger = logging.getLogger(__name__)

_PERMISSION_KEY = re.compile(r"^[a-z_]+:[a-z_]+$")


@dataclass(frozen=True)
class AuthzConfig:
    policy_file: Optional[str] = None
    super_admin_tier: str = SUPER_ADMIN_AS_OWNER


def load_authz_config() -> AuthzConfig:
    policy_file = (os.getenv("AUTHZ_POLICY_FILE", "") or "").strip() or None
    tier = (os.getenv("AUTHZ_SUPER_ADMIN_PERMISSIONS", "") or SUPER_ADMIN_AS_OWNER).strip().lower()
    if tier not in SUPER_ADMIN_TIERS:
        logger.warning("Ignoring invalid AUTHZ_SUPER_ADMIN_PERMISSIONS=%s; using %s", tier, SUPER_ADMIN_AS_OWNER)
        tier = SUPER_ADMIN_AS_OWNER
    return AuthzConfig(policy_file=policy_file, super_admin_tier=tier)


def _to_role(value: str) -> Role:
    role = parse_role(value)
    if role is Role.UNKNOWN:
        raise ValueError(f"unknown role {value!r}")
    return role


class PolicyFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hierarchy: List[str] = Field(default_factory=lambda: [r.value for r in DEFAULT_HIERARCHY])
    permissions: Dict[str, str]
    roles: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("hierarchy")
    @classmethod
    def _known_hierarchy(cls, v: List[str]) -> List[str]:
        for name in v:
            _to_role(name)
        return v

    @field_validator("permissions")
    @classmethod
    def _well_formed_keys(cls, v: Dict[str, str]) -> Dict[str, str]:
        bad = [k for k in v if not _PERMISSION_KEY.match(k)]
        if bad:
            raise ValueError(f"permission keys must look like resource:action: {', '.join(sorted(bad))}")
        return v

    @field_validator("roles")
    @classmethod
    def _known_roles(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for name in v:
            _to_role(name)
        return v


def parse_policy_document(doc: object, *, super_admin_tier: str = SUPER_ADMIN_AS_OWNER) -> PolicyTable:
    """Validate an already-parsed policy document and build the table."""
    if not isinstance(doc, dict):
        raise ValueError("Policy document must be a mapping")
    try:
        pf = PolicyFile.model_validate(doc)
    except ValidationError as e:
        raise ValueError(f"Invalid policy document: {e}") from e
    return build_policy_table(
        hierarchy=[_to_role(r) for r in pf.hierarchy],
        catalog=pf.permissions,
        role_permissions={_to_role(r): keys for r, keys in pf.roles.items()},
        super_admin_tier=super_admin_tier,
    )


def load_policy_file(path: str, *, super_admin_tier: str = SUPER_ADMIN_AS_OWNER) -> PolicyTable:
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Policy file not found: {path}")
    try:
        with open(p) as f:
            doc = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Invalid policy file {path}: {e}") from e
    return parse_policy_document(doc, super_admin_tier=super_admin_tier)


def load_policy_table(cfg: Optional[AuthzConfig] = None) -> PolicyTable:
    """
    Build the policy table once at startup.

    Invalid policy files raise `ValueError`: starting with a half-loaded policy is
    worse than not starting.
    """
    cfg = cfg or load_authz_config()
    if cfg.policy_file:
        table = load_policy_file(cfg.policy_file, super_admin_tier=cfg.super_admin_tier)
        logger.info(
            "Loaded policy file %s: roles=%d permissions=%d",
            cfg.policy_file,
            len(table.role_permissions),
            len(table.catalog),
        )
        return table
    logger.info("Using built-in policy (super_admin tier=%s)", cfg.super_admin_tier)
    return build_policy_table(super_admin_tier=cfg.super_admin_tier)
