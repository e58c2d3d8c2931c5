from app.platform.security.access_levels import AccessLevel
from app.platform.security.context import AuthContext
from app.platform.security.errors import AuthorizationError, ScopeResolutionError
from app.platform.security.record_scope import RecordScopeService
from app.platform.security.repository import BaseRepository

__all__ = [
    "AccessLevel",
    "AuthContext",
    "AuthorizationError",
    "ScopeResolutionError",
    "RecordScopeService",
    "BaseRepository",
]
