from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SessionUser:
    """Authenticated user as carried in the session cookie."""

    id: str
    role: str  # raw label; parsed by the policy engine
    email: Optional[str] = None
    name: Optional[str] = None
    branch_id: Optional[str] = None
    organization_id: Optional[str] = None
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"
