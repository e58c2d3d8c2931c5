from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class AuthContext:
    """Identity of the requester a record scope is resolved for."""

    user_id: str
    tenant_id: str | None = None
    correlation_id: str | None = None
