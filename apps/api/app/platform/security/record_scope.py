from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from app.core.config import Settings, get_settings
from app.metrics import (
    observe_record_scope_fail_closed,
    observe_record_scope_failure,
    observe_record_scope_resolution,
)
from app.platform.security.access_levels import AccessLevel, ModuleAction
from app.platform.security.context import AuthContext
from app.platform.security.org_graph import OrgGraphRepository
from app.platform.security.org_graph_sql import SqlOrgGraphRepository
from app.platform.security.resolver import AccessLevelResolver
from app.platform.security.scope_filter import ScopeFilter, compile_scope_filter, scope_clause, validate_owner_column
from app.platform.security.scope_sets import ScopeSetBuilder


logger = logging.getLogger("app.security.record_scope")


@contextmanager
def _recording_failures(ctx: AuthContext, module: str) -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        observe_record_scope_failure(module)
        logger.error(
            "record_scope.resolution_failed",
            exc_info=True,
            extra={"user_id": ctx.user_id, "crm_module": module, "error": str(exc)},
        )
        raise


@dataclass(frozen=True, slots=True)
class ResolvedScope:
    user_id: str
    module: str
    level: AccessLevel
    principals: frozenset[str] | None

    @property
    def is_unrestricted(self) -> bool:
        return self.principals is None


class RecordScopeService:
    """Record-level access contract consumed by module listing/detail services.

    Nothing is cached: each call reads the current org graph. Any failure while
    resolving propagates so the calling operation fails instead of running an
    unscoped query.
    """

    def __init__(self, repository: OrgGraphRepository) -> None:
        self._resolver = AccessLevelResolver(repository)
        self._builder = ScopeSetBuilder(repository)

    @classmethod
    def for_session(cls, session: Session, settings: Settings | None = None) -> RecordScopeService:
        settings = settings or get_settings()
        repository = SqlOrgGraphRepository(
            session,
            strategy=settings.record_scope_closure_strategy,
            max_depth=settings.record_scope_max_depth,
        )
        return cls(repository)

    def resolve_access_level(self, ctx: AuthContext, module: str) -> AccessLevel:
        with _recording_failures(ctx, module):
            return self._resolver.get_access_level(ctx.user_id, module)

    def has_full_access(self, ctx: AuthContext, module: str) -> bool:
        with _recording_failures(ctx, module):
            return self._resolver.has_full_access(ctx.user_id, module)

    def has_permission(self, ctx: AuthContext, module: str, action: ModuleAction | str) -> bool:
        with _recording_failures(ctx, module):
            return self._resolver.has_permission(ctx.user_id, module, action)

    def resolve(self, ctx: AuthContext, module: str) -> ResolvedScope:
        with _recording_failures(ctx, module):
            principal = self._resolver.require_principal(ctx.user_id)
            role = self._resolver.role_of(principal)
            if role is not None and role.wildcard_access:
                level = AccessLevel.ALL
            else:
                level = self._resolver.level_for_role(principal, role, module)
            principals = self._builder.build(level, principal.id)

        principal_count = None if principals is None else len(principals)
        observe_record_scope_resolution(module, level.value, principal_count)
        logger.debug(
            "record_scope.resolved",
            extra={
                "user_id": ctx.user_id,
                "crm_module": module,
                "access_level": level.value,
                "principal_count": principal_count,
            },
        )
        return ResolvedScope(user_id=ctx.user_id, module=module, level=level, principals=principals)

    def visible_owner_ids(self, ctx: AuthContext, module: str) -> frozenset[str] | None:
        return self.resolve(ctx, module).principals

    def build_scope_filter(
        self,
        ctx: AuthContext,
        module: str,
        owner_column: str,
        parameter_cursor: int = 1,
    ) -> ScopeFilter:
        validate_owner_column(owner_column)
        scope = self.resolve(ctx, module)
        compiled = compile_scope_filter(
            scope.level,
            scope.principals,
            owner_column,
            requester_id=ctx.user_id,
            parameter_cursor=parameter_cursor,
        )
        if compiled.matches_nothing:
            self._report_fail_closed(scope)
        return compiled

    def scope_clause(self, ctx: AuthContext, module: str, owner_column: ColumnElement[Any]) -> ColumnElement[bool]:
        return self._clause_for(self.resolve(ctx, module), owner_column)

    def apply_scope_query(
        self,
        query: Select[Any],
        ctx: AuthContext,
        module: str,
        owner_column: ColumnElement[Any],
    ) -> Select[Any]:
        scope = self.resolve(ctx, module)
        if scope.is_unrestricted:
            return query
        return query.where(self._clause_for(scope, owner_column))

    def _clause_for(self, scope: ResolvedScope, owner_column: ColumnElement[Any]) -> ColumnElement[bool]:
        if scope.level not in (AccessLevel.ALL, AccessLevel.OWN) and not scope.principals:
            self._report_fail_closed(scope)
        return scope_clause(scope.level, scope.principals, owner_column, requester_id=scope.user_id)

    @staticmethod
    def _report_fail_closed(scope: ResolvedScope) -> None:
        observe_record_scope_fail_closed(scope.module)
        logger.error(
            "record_scope.fail_closed",
            extra={
                "user_id": scope.user_id,
                "crm_module": scope.module,
                "access_level": scope.level.value,
                "principal_count": 0,
            },
        )
