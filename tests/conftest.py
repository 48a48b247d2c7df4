"""
Pytest config.

Pins the repo root on sys.path so `import coach` works whether or not the project
is installed, and provides a policy engine built from the shipped policy.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture
def engine():
    from coach.authz.catalog import build_policy_table
    from coach.authz.policy import PolicyEngine

    return PolicyEngine(build_policy_table())


@pytest.fixture(autouse=True)
def _fresh_auth_config(monkeypatch: pytest.MonkeyPatch):
    """`load_auth_config` is cached; clear it around every test so env changes apply."""
    from coach.auth.config import load_auth_config

    monkeypatch.delenv("AUTHZ_POLICY_FILE", raising=False)
    monkeypatch.delenv("AUTHZ_SUPER_ADMIN_PERMISSIONS", raising=False)
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()
