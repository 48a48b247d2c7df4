"""
Coach API server.

Exposes the authorization policy to the UI and to the user-management flows:
the caller's permission map and data scope, the role-change check and the invite
check. Persistence of users/roles is handled elsewhere; these endpoints only decide.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from coach.auth.config import load_auth_config
from coach.auth.deps import authenticate_request, current_user, get_policy_engine, require_permission, require_role
from coach.auth.models import SessionUser
from coach.auth.session import clear_session_cookie_kwargs
from coach.authz.config import load_policy_table
from coach.authz.policy import PolicyEngine

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=7)

# Roles allowed to reach the user-management endpoints at all; the policy engine
# then decides the specific request.
USER_ADMIN_ROLES = ("admin", "super_admin")


def _is_public_path(path: str) -> bool:
    if path == "/healthz":
        return True
    # Allow logout even if the cookie is already missing/invalid.
    if path == "/api/auth/logout":
        return True
    return False


class RoleChangeRequest(BaseModel):
    target_user_id: Optional[str] = None
    # Only honoured when the app has no stored-role lookup (offline checks, tests).
    target_current_role: Optional[str] = None
    role: Optional[str] = None


# user id -> stored role, or None when the user does not exist.
UserRoleLookup = Callable[[str], Optional[str]]


class InviteRequest(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None
    branch_id: Optional[str] = None


class PermissionsResponse(BaseModel):
    role: str
    scope: str
    permissions: Dict[str, bool]
    assignable_roles: List[str]


def create_app(engine: Optional[PolicyEngine] = None, role_lookup: Optional[UserRoleLookup] = None) -> FastAPI:
    """
    Build the API application.

    The policy engine is constructed once here (from env/policy file unless given) and
    shared read-only by every request via `app.state`.

    `role_lookup` resolves a user id to the role stored for that user. When set, the
    role-change check uses the stored role and ignores any role the client reports.
    """
    app = FastAPI(title="CSR Coach API")
    app.state.policy_engine = engine if engine is not None else PolicyEngine(load_policy_table())
    app.state.user_role_lookup = role_lookup

    @app.middleware("http")
    async def authenticate_requests(request: Request, call_next):
        start_time = time.time()
        path = request.url.path or ""
        try:
            if request.method != "OPTIONS" and not _is_public_path(path):
                # Fail closed: anything not explicitly public requires auth.
                user = authenticate_request(request)
                if user is None:
                    # No `WWW-Authenticate`: browsers would show a basic-auth modal.
                    return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
                if not user.is_active:
                    return JSONResponse(status_code=403, content={"detail": "User account is not active"})
                request.state.user = user

            response = await call_next(request)
            process_time = time.time() - start_time
            logger.debug("%s %s - %d (%.3fs)", request.method, path, response.status_code, process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, path, process_time, str(e))
            raise

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.post("/api/auth/logout")
    async def auth_logout() -> JSONResponse:
        cfg = load_auth_config()
        resp = JSONResponse(content={"ok": True})
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**clear_session_cookie_kwargs(cfg))
        return resp

    @app.get("/api/auth/me")
    async def auth_me(user: SessionUser = Depends(current_user)) -> Dict[str, Any]:
        return {
            "ok": True,
            "user": {
                "id": user.id,
                "role": user.role,
                "email": user.email,
                "name": user.name,
                "branch_id": user.branch_id,
                "organization_id": user.organization_id,
            },
        }

    @app.get("/api/permissions/me")
    async def permissions_me(
        user: SessionUser = Depends(current_user),
        engine: PolicyEngine = Depends(get_policy_engine),
    ) -> Dict[str, Any]:
        return PermissionsResponse(
            role=user.role,
            scope=engine.data_scope(user.role).value,
            permissions=engine.permissions_object(user.role),
            assignable_roles=[r.value for r in engine.assignable_roles(user.role)],
        ).model_dump(mode="json")

    @app.get("/api/permissions/catalog")
    async def permissions_catalog(
        _user: SessionUser = Depends(require_permission("settings:view")),
        engine: PolicyEngine = Depends(get_policy_engine),
    ) -> Dict[str, Any]:
        table = engine.table
        return {
            "ok": True,
            "hierarchy": [r.value for r in table.hierarchy],
            "permissions": dict(table.catalog),
        }

    @app.get("/api/scope/{table_name}")
    async def scope_for_table(
        table_name: str,
        user: SessionUser = Depends(current_user),
        engine: PolicyEngine = Depends(get_policy_engine),
    ) -> Dict[str, Any]:
        return {
            "ok": True,
            "table": table_name,
            "scope": engine.data_scope(user.role).value,
            "filter": engine.scope_filter(user, table_name),
        }

    @app.post("/api/users/role/validate")
    async def validate_role_change(
        request: Request,
        req: RoleChangeRequest,
        user: SessionUser = Depends(require_role(*USER_ADMIN_ROLES)),
        engine: PolicyEngine = Depends(get_policy_engine),
    ) -> Dict[str, Any]:
        """
        Decide whether the caller may move the target user to `role`.

        The target's current role must be the stored one: with a lookup configured it is
        read from there, otherwise the caller is trusted to pass the persisted value.
        """
        if not req.role:
            raise HTTPException(status_code=400, detail="Role required")

        lookup: Optional[UserRoleLookup] = getattr(request.app.state, "user_role_lookup", None)
        if lookup is not None:
            if not req.target_user_id:
                raise HTTPException(status_code=400, detail="Target user id required")
            current_role = lookup(req.target_user_id)
            if current_role is None:
                raise HTTPException(status_code=404, detail="User not found")
        else:
            current_role = req.target_current_role
        if not current_role:
            raise HTTPException(status_code=400, detail="Target user's current role required")

        result = engine.validate_role_transition(user.role, current_role, req.role)
        if not result.valid:
            logger.info(
                "Role change denied: actor=%s actor_role=%s target=%s from=%s to=%s reason=%s",
                user.id,
                user.role,
                req.target_user_id,
                current_role,
                req.role,
                result.message,
            )
            raise HTTPException(status_code=403, detail=result.message)
        return {"ok": True, **result.to_dict()}

    @app.post("/api/users/invite/validate")
    async def validate_invite(
        req: InviteRequest,
        user: SessionUser = Depends(require_role(*USER_ADMIN_ROLES)),
        engine: PolicyEngine = Depends(get_policy_engine),
    ) -> Dict[str, Any]:
        if not req.email or not req.role:
            raise HTTPException(status_code=400, detail="Email and role required")
        if not engine.can_invite(user.role, req.role):
            logger.info("Invite denied: actor=%s actor_role=%s role=%s", user.id, user.role, req.role)
            raise HTTPException(status_code=403, detail="Cannot invite user with this role")

        expires_at = datetime.now(timezone.utc) + INVITATION_TTL
        return {
            "ok": True,
            "invitation": {
                "email": req.email,
                "role": req.role,
                "branch_id": req.branch_id,
                "expires_at": expires_at.isoformat(),
            },
        }

    return app


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import os

    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app = create_app()
    logger.info("Starting API server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
