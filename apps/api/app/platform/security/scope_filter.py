from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import false, true
from sqlalchemy.sql.elements import ColumnElement

from app.platform.security.access_levels import AccessLevel


MATCH_ALL = "TRUE"
MATCH_NONE = "FALSE"

_OWNER_COLUMN_RE = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*\.)?[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True, slots=True)
class ScopeFilter:
    """A predicate fragment using PostgreSQL positional placeholders (``$N``).

    ``parameters`` are appended to the caller's parameter list in order;
    ``cursor_delta`` is how far the caller's placeholder cursor must advance.
    """

    predicate: str
    parameters: tuple[Any, ...] = ()
    cursor_delta: int = 0

    @property
    def is_unrestricted(self) -> bool:
        return self.predicate == MATCH_ALL

    @property
    def matches_nothing(self) -> bool:
        return self.predicate == MATCH_NONE


def validate_owner_column(owner_column: str) -> str:
    if not _OWNER_COLUMN_RE.match(owner_column):
        raise ValueError(f"Invalid owner column identifier '{owner_column}'")
    return owner_column


def compile_scope_filter(
    level: AccessLevel,
    principals: Iterable[str] | None,
    owner_column: str,
    *,
    requester_id: str,
    parameter_cursor: int = 1,
) -> ScopeFilter:
    validate_owner_column(owner_column)
    if parameter_cursor < 1:
        raise ValueError("parameter_cursor must be >= 1")

    if level == AccessLevel.ALL:
        return ScopeFilter(MATCH_ALL)
    if level == AccessLevel.OWN:
        return ScopeFilter(f"{owner_column} = ${parameter_cursor}", (requester_id,), 1)

    members = sorted(set(principals or ()))
    if not members:
        return ScopeFilter(MATCH_NONE)
    if len(members) == 1:
        return ScopeFilter(f"{owner_column} = ${parameter_cursor}", (members[0],), 1)

    placeholders = ", ".join(f"${parameter_cursor + offset}" for offset in range(len(members)))
    return ScopeFilter(f"{owner_column} IN ({placeholders})", tuple(members), len(members))


def scope_clause(
    level: AccessLevel,
    principals: Iterable[str] | None,
    owner_column: ColumnElement[Any],
    *,
    requester_id: str,
) -> ColumnElement[bool]:
    """SQLAlchemy counterpart of :func:`compile_scope_filter` for ORM queries."""

    if level == AccessLevel.ALL:
        return true()
    if level == AccessLevel.OWN:
        return owner_column == requester_id

    members = sorted(set(principals or ()))
    if not members:
        return false()
    if len(members) == 1:
        return owner_column == members[0]
    return owner_column.in_(members)
