from __future__ import annotations

from typing import Any

from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from app.platform.security.context import AuthContext
from app.platform.security.record_scope import RecordScopeService
from app.platform.security.scope_filter import ScopeFilter


class BaseRepository:
    """Base for module repositories whose rows carry an owning user.

    Subclasses set ``module`` (the key in a role's record-access map),
    ``owner_column`` (the mapped owner attribute) and ``owner_column_name``
    (the owner column as it appears in hand-written SQL).
    """

    module = ""
    owner_column: ColumnElement[Any] | None = None
    owner_column_name = "owner_id"

    def __init__(self, record_scope: RecordScopeService) -> None:
        self._record_scope = record_scope

    def apply_scope_query(self, query: Select[Any], ctx: AuthContext) -> Select[Any]:
        if self.owner_column is None:
            raise NotImplementedError(f"{type(self).__name__} does not declare an owner column")
        return self._record_scope.apply_scope_query(query, ctx, self.module, self.owner_column)

    def scope_filter(self, ctx: AuthContext, *, parameter_cursor: int = 1) -> ScopeFilter:
        return self._record_scope.build_scope_filter(
            ctx,
            self.module,
            self.owner_column_name,
            parameter_cursor=parameter_cursor,
        )

    def has_full_access(self, ctx: AuthContext) -> bool:
        return self._record_scope.has_full_access(ctx, self.module)
