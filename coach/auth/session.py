from __future__ import annotations

import json
from dataclasses import asdict
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from coach.auth.config import AuthConfig
from coach.auth.models import SessionUser


def session_cookie_name(cfg: AuthConfig) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers may reject it on HTTP.
    return "__Host-coach_session" if cfg.cookie_secure else "coach_session"


SESSION_SALT = "coach-api-session-v1"


def _serializer(cfg: AuthConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def _opt_str(value: object) -> Optional[str]:
    return str(value) if value else None


def encode_session(cfg: AuthConfig, user: SessionUser) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    raw = json.dumps(asdict(user), separators=(",", ":"), sort_keys=True)
    return s.dumps(raw)


def decode_session(cfg: AuthConfig, value: str | None) -> Optional[SessionUser]:
    if not value:
        return None
    s = _serializer(cfg)
    if s is None:
        return None
    try:
        raw = s.loads(value, max_age=cfg.session_ttl_seconds)
        data = json.loads(raw)
        if not isinstance(data, dict):
            return None
        user_id = str(data.get("id") or "").strip()
        if not user_id:
            return None
        return SessionUser(
            id=user_id,
            # Keep the raw label: unknown roles must reach the engine and fail closed there.
            role=str(data.get("role") or ""),
            email=_opt_str(data.get("email")),
            name=_opt_str(data.get("name")),
            branch_id=_opt_str(data.get("branch_id")),
            organization_id=_opt_str(data.get("organization_id")),
            status=str(data.get("status") or "active"),
        )
    except (BadSignature, BadTimeSignature, ValueError):
        return None


def clear_session_cookie_kwargs(cfg: AuthConfig) -> dict:
    return {
        "key": session_cookie_name(cfg),
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }

