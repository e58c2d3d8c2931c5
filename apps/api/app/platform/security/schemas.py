from __future__ import annotations

from pydantic import BaseModel

from app.platform.security.access_levels import AccessLevel


class RecordScopeRead(BaseModel):
    module: str
    access_level: AccessLevel
    has_full_access: bool
    visible_owner_ids: list[str] | None = None
