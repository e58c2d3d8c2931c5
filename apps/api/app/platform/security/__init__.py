from app.platform.security.access_levels import AccessLevel, ModuleAction, parse_access_level
from app.platform.security.context import AuthContext
from app.platform.security.errors import (
    AuthorizationError,
    OrgGraphUnavailableError,
    ScopeResolutionError,
    UnknownPrincipalError,
)
from app.platform.security.org_graph import InMemoryOrgGraphRepository, OrgGraphRepository, Principal, RoleConfig
from app.platform.security.org_graph_sql import SqlOrgGraphRepository
from app.platform.security.record_scope import RecordScopeService, ResolvedScope
from app.platform.security.repository import BaseRepository
from app.platform.security.resolver import AccessLevelResolver
from app.platform.security.scope_filter import ScopeFilter, compile_scope_filter, scope_clause
from app.platform.security.scope_sets import ScopeSetBuilder

__all__ = [
    "AccessLevel",
    "ModuleAction",
    "parse_access_level",
    "AuthContext",
    "AuthorizationError",
    "ScopeResolutionError",
    "UnknownPrincipalError",
    "OrgGraphUnavailableError",
    "OrgGraphRepository",
    "InMemoryOrgGraphRepository",
    "SqlOrgGraphRepository",
    "Principal",
    "RoleConfig",
    "AccessLevelResolver",
    "ScopeSetBuilder",
    "ScopeFilter",
    "compile_scope_filter",
    "scope_clause",
    "RecordScopeService",
    "ResolvedScope",
    "BaseRepository",
]
