from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import CTE, Integer, func, literal_column, select, union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.org.models import Department, OrgRole, OrgUser, Team, TeamMembership
from app.platform.security.errors import OrgGraphUnavailableError
from app.platform.security.org_graph import DEFAULT_MAX_DEPTH, Principal, RoleConfig, walk_closure


ITERATIVE = "iterative"
RECURSIVE = "recursive"
CLOSURE_STRATEGIES = (ITERATIVE, RECURSIVE)

logger = logging.getLogger("app.security.record_scope")

_ACTIVE_USER = (OrgUser.deleted_at.is_(None), OrgUser.status == "active")


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise OrgGraphUnavailableError(f"Org graph read failed during {operation}") from exc


class SqlOrgGraphRepository:
    """Org-graph reads over a single SQLAlchemy session.

    ``iterative`` expands closures one level per query in application code;
    ``recursive`` hands the whole walk to a ``WITH RECURSIVE ... UNION`` query.
    Both stop at ``max_depth`` levels below the roots.
    """

    def __init__(self, session: Session, *, strategy: str = ITERATIVE, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if strategy not in CLOSURE_STRATEGIES:
            raise ValueError(f"Unsupported closure strategy '{strategy}'")
        self._session = session
        self._strategy = strategy
        self._max_depth = max_depth

    @property
    def strategy(self) -> str:
        return self._strategy

    def get_principal(self, user_id: str) -> Principal | None:
        with _store_errors("get_principal"):
            user = self._session.scalar(select(OrgUser).where(OrgUser.id == user_id))
        if user is None:
            return None
        return Principal(
            id=user.id,
            department_id=user.department_id,
            manager_id=user.manager_id,
            role_id=user.role_id,
            active=user.deleted_at is None and user.status == "active",
        )

    def get_role(self, role_id: str) -> RoleConfig | None:
        with _store_errors("get_role"):
            role = self._session.scalar(select(OrgRole).where(OrgRole.id == role_id))
        if role is None:
            return None
        return RoleConfig(
            id=role.id,
            record_access=_as_mapping(role.record_access),
            permissions=_as_mapping(role.permissions),
            wildcard_access=bool(role.wildcard_access),
        )

    def team_peers_of(self, user_id: str) -> set[str]:
        own_teams = select(TeamMembership.team_id).where(TeamMembership.user_id == user_id)
        stmt = (
            select(OrgUser.id)
            .join(TeamMembership, TeamMembership.user_id == OrgUser.id)
            .where(TeamMembership.team_id.in_(own_teams), *_ACTIVE_USER)
            .distinct()
        )
        with _store_errors("team_peers_of"):
            return set(self._session.scalars(stmt).all())

    def home_departments_of(self, user_id: str) -> set[str]:
        direct = select(OrgUser.department_id).where(OrgUser.id == user_id, OrgUser.department_id.is_not(None))
        via_team = (
            select(Team.department_id)
            .join(TeamMembership, TeamMembership.team_id == Team.id)
            .where(TeamMembership.user_id == user_id, Team.department_id.is_not(None))
        )
        with _store_errors("home_departments_of"):
            return set(self._session.execute(union(direct, via_team)).scalars().all())

    def department_subtree_of(self, department_ids: Iterable[str]) -> set[str]:
        roots = sorted(set(department_ids))
        if not roots:
            return set()

        with _store_errors("department_subtree_of"):
            if self._strategy == RECURSIVE:
                subtree = (
                    select(Department.id.label("id"), literal_column("0", Integer).label("depth"))
                    .where(Department.id.in_(roots))
                    .cte("department_subtree", recursive=True)
                )
                parent = subtree.alias("parent_department")
                subtree = subtree.union(
                    select(Department.id, parent.c.depth + 1)
                    .join(parent, Department.parent_department_id == parent.c.id)
                    .where(parent.c.depth < self._max_depth)
                )
                return self._capped_closure(subtree)

            existing = self._session.scalars(select(Department.id).where(Department.id.in_(roots))).all()
            return walk_closure(existing, self._child_departments, max_depth=self._max_depth)

    def members_of_departments(self, department_ids: Iterable[str]) -> set[str]:
        wanted = sorted(set(department_ids))
        if not wanted:
            return set()

        direct = select(OrgUser.id).where(OrgUser.department_id.in_(wanted), *_ACTIVE_USER)
        via_team = (
            select(OrgUser.id)
            .join(TeamMembership, TeamMembership.user_id == OrgUser.id)
            .join(Team, Team.id == TeamMembership.team_id)
            .where(Team.department_id.in_(wanted), *_ACTIVE_USER)
        )
        with _store_errors("members_of_departments"):
            return set(self._session.execute(union(direct, via_team)).scalars().all())

    def reports_of(self, manager_id: str) -> set[str]:
        with _store_errors("reports_of"):
            if self._strategy == RECURSIVE:
                chain = (
                    select(OrgUser.id.label("id"), literal_column("1", Integer).label("depth"))
                    .where(OrgUser.manager_id == manager_id)
                    .cte("reporting_line", recursive=True)
                )
                manager = chain.alias("manager")
                chain = chain.union(
                    select(OrgUser.id, manager.c.depth + 1)
                    .join(manager, OrgUser.manager_id == manager.c.id)
                    .where(manager.c.depth < self._max_depth)
                )
                closure = self._capped_closure(chain)
            else:
                closure = walk_closure([manager_id], self._direct_reports, max_depth=self._max_depth)
            closure.discard(manager_id)
            if not closure:
                return set()
            stmt = select(OrgUser.id).where(OrgUser.id.in_(sorted(closure)), *_ACTIVE_USER)
            return set(self._session.scalars(stmt).all())

    def _capped_closure(self, closure: CTE) -> set[str]:
        # A node reached along several paths counts at its shallowest depth.
        stmt = (
            select(closure.c.id, func.min(closure.c.depth))
            .where(closure.c.depth <= self._max_depth)
            .group_by(closure.c.id)
        )
        rows = self._session.execute(stmt).all()
        if any(depth >= self._max_depth for _, depth in rows):
            logger.warning("record_scope.depth_limit", extra={"max_depth": self._max_depth})
        return {node for node, _ in rows}

    def _child_departments(self, frontier: set[str]) -> list[str]:
        stmt = select(Department.id).where(Department.parent_department_id.in_(sorted(frontier)))
        return list(self._session.scalars(stmt).all())

    def _direct_reports(self, frontier: set[str]) -> list[str]:
        stmt = select(OrgUser.id).where(OrgUser.manager_id.in_(sorted(frontier)))
        return list(self._session.scalars(stmt).all())


def _as_mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}
