from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error for record-scope enforcement failures."""


class ScopeResolutionError(AuthorizationError):
    """Raised when a record scope cannot be computed; callers must fail the whole operation."""


class UnknownPrincipalError(ScopeResolutionError):
    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"Unknown principal '{user_id}'")


class OrgGraphUnavailableError(ScopeResolutionError):
    """Raised when the org-graph store cannot be read."""
