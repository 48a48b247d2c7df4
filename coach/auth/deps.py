from __future__ import annotations

from typing import Callable, Optional

from fastapi import HTTPException, Request

from coach.auth.config import load_auth_config
from coach.auth.models import SessionUser
from coach.auth.session import decode_session, session_cookie_name
from coach.authz.policy import PolicyEngine


def authenticate_request(request: Request) -> Optional[SessionUser]:
    """
    Authenticate a request and return a SessionUser if present/valid.

    Authentication is always required (no "disabled" mode).
    """
    cfg = load_auth_config()
    return decode_session(cfg, request.cookies.get(session_cookie_name(cfg)))


def get_policy_engine(request: Request) -> PolicyEngine:
    engine = getattr(request.app.state, "policy_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Authorization policy not loaded")
    return engine


def current_user(request: Request) -> SessionUser:
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_role(*allowed_roles: str) -> Callable[[Request], SessionUser]:
    """Dependency: the caller's role must be one of `allowed_roles` (exact match)."""
    allowed = tuple(allowed_roles)

    def _dep(request: Request) -> SessionUser:
        user = current_user(request)
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail=f"This action requires one of: {', '.join(allowed)}")
        return user

    return _dep


def require_permission(permission: str) -> Callable[[Request], SessionUser]:
    """Dependency: the caller's role must hold `permission` under the loaded policy."""

    def _dep(request: Request) -> SessionUser:
        user = current_user(request)
        engine = get_policy_engine(request)
        if not engine.has_permission(user.role, permission):
            raise HTTPException(status_code=403, detail=f"Missing required permission: {permission}")
        return user

    return _dep
