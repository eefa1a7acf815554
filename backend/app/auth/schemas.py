from __future__ import annotations

from typing import Any, Dict, Optional
from pydantic import BaseModel


class AuthContext(BaseModel):
    """Represents the authenticated principal derived from a JWT."""

    subject: str
    role: str
    email: Optional[str]
    issued_at: Optional[int]
    expires_at: Optional[int]
    raw_token: str
    claims: Dict[str, Any]

    @property
    def user_id(self) -> str:
        return self.subject

    @property
    def researcher_id(self) -> Optional[int]:
        return int(self.subject) if self.subject.isdigit() else None

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == "admin"
