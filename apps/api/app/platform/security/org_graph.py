from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol


logger = logging.getLogger("app.security.record_scope")

DEFAULT_MAX_DEPTH = 64


@dataclass(frozen=True, slots=True)
class Principal:
    id: str
    department_id: str | None = None
    manager_id: str | None = None
    role_id: str | None = None
    active: bool = True


@dataclass(frozen=True, slots=True)
class RoleConfig:
    id: str
    record_access: dict[str, Any] = field(default_factory=dict)
    permissions: dict[str, Any] = field(default_factory=dict)
    wildcard_access: bool = False


class OrgGraphRepository(Protocol):
    """Read-only view of users, teams, departments and roles.

    Closure methods may be computed by the store itself (recursive query) or
    in application code; callers only see the resulting identity sets.
    """

    def get_principal(self, user_id: str) -> Principal | None:
        ...

    def get_role(self, role_id: str) -> RoleConfig | None:
        ...

    def team_peers_of(self, user_id: str) -> set[str]:
        ...

    def home_departments_of(self, user_id: str) -> set[str]:
        ...

    def department_subtree_of(self, department_ids: Iterable[str]) -> set[str]:
        ...

    def members_of_departments(self, department_ids: Iterable[str]) -> set[str]:
        ...

    def reports_of(self, manager_id: str) -> set[str]:
        ...


def walk_closure(
    roots: Iterable[str],
    expand: Callable[[set[str]], Iterable[str]],
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> set[str]:
    """Breadth-first closure over ``expand`` starting at (and including) ``roots``.

    ``expand`` receives a whole frontier so stores can answer one level per query.
    The visited set guarantees termination on cyclic parent/manager data.
    """

    visited: set[str] = set(roots)
    frontier = set(visited)
    depth = 0
    while frontier:
        if depth >= max_depth:
            logger.warning("record_scope.depth_limit", extra={"max_depth": max_depth})
            break
        frontier = {node for node in expand(frontier) if node not in visited}
        visited.update(frontier)
        depth += 1
    return visited


class InMemoryOrgGraphRepository:
    """Org-graph snapshot held in memory."""

    def __init__(
        self,
        *,
        principals: Iterable[Principal] = (),
        roles: Iterable[RoleConfig] = (),
        departments: dict[str, str | None] | None = None,
        teams: dict[str, str | None] | None = None,
        memberships: Iterable[tuple[str, str]] = (),
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._principals = {principal.id: principal for principal in principals}
        self._roles = {role.id: role for role in roles}
        self._department_parent = dict(departments or {})
        self._team_department = dict(teams or {})
        self._max_depth = max_depth

        self._teams_by_user: dict[str, set[str]] = defaultdict(set)
        self._users_by_team: dict[str, set[str]] = defaultdict(set)
        for user_id, team_id in memberships:
            self._teams_by_user[user_id].add(team_id)
            self._users_by_team[team_id].add(user_id)

        self._department_children: dict[str, set[str]] = defaultdict(set)
        for department_id, parent_id in self._department_parent.items():
            if parent_id is not None:
                self._department_children[parent_id].add(department_id)

        self._direct_reports: dict[str, set[str]] = defaultdict(set)
        for principal in self._principals.values():
            if principal.manager_id is not None:
                self._direct_reports[principal.manager_id].add(principal.id)

    def get_principal(self, user_id: str) -> Principal | None:
        return self._principals.get(user_id)

    def get_role(self, role_id: str) -> RoleConfig | None:
        return self._roles.get(role_id)

    def team_peers_of(self, user_id: str) -> set[str]:
        peers: set[str] = set()
        for team_id in self._teams_by_user.get(user_id, set()):
            peers.update(self._users_by_team[team_id])
        return self._active(peers)

    def home_departments_of(self, user_id: str) -> set[str]:
        principal = self._principals.get(user_id)
        homes: set[str] = set()
        if principal is not None and principal.department_id is not None:
            homes.add(principal.department_id)
        for team_id in self._teams_by_user.get(user_id, set()):
            department_id = self._team_department.get(team_id)
            if department_id is not None:
                homes.add(department_id)
        return homes

    def department_subtree_of(self, department_ids: Iterable[str]) -> set[str]:
        roots = [department_id for department_id in department_ids if department_id in self._department_parent]
        return walk_closure(roots, self._child_departments, max_depth=self._max_depth)

    def members_of_departments(self, department_ids: Iterable[str]) -> set[str]:
        wanted = set(department_ids)
        members = {
            principal.id
            for principal in self._principals.values()
            if principal.department_id is not None and principal.department_id in wanted
        }
        for team_id, department_id in self._team_department.items():
            if department_id in wanted:
                members.update(self._users_by_team.get(team_id, set()))
        return self._active(members)

    def reports_of(self, manager_id: str) -> set[str]:
        closure = walk_closure([manager_id], self._reports_of_frontier, max_depth=self._max_depth)
        closure.discard(manager_id)
        return self._active(closure)

    def _child_departments(self, frontier: set[str]) -> set[str]:
        children: set[str] = set()
        for department_id in frontier:
            children.update(self._department_children.get(department_id, set()))
        return children

    def _reports_of_frontier(self, frontier: set[str]) -> set[str]:
        reports: set[str] = set()
        for manager_id in frontier:
            reports.update(self._direct_reports.get(manager_id, set()))
        return reports

    def _active(self, user_ids: Iterable[str]) -> set[str]:
        active: set[str] = set()
        for user_id in user_ids:
            principal = self._principals.get(user_id)
            if principal is not None and principal.active:
                active.add(user_id)
        return active
