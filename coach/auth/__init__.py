"""
Authentication helpers for the Coach API.

Design goals:
- Server-enforced auth: every non-public path needs a valid session.
- Cookie-based session (HttpOnly) for the same-origin UI.
- Authorization decisions are delegated to `coach.authz`; this package only
  establishes who the caller is and wires the guards into FastAPI.
"""
