from __future__ import annotations

import logging
from collections.abc import Callable

from app.otel import get_tracer
from app.platform.security.access_levels import AccessLevel
from app.platform.security.org_graph import OrgGraphRepository


logger = logging.getLogger("app.security.record_scope")
tracer = get_tracer("app.security.record_scope")


class ScopeSetBuilder:
    """Computes the set of owners whose records a user may see at a given level.

    Every non-``all`` set contains the requester. ``all`` has no set and
    resolves to ``None``.
    """

    def __init__(self, repository: OrgGraphRepository) -> None:
        self._repository = repository
        self._closures: dict[AccessLevel, Callable[[str], frozenset[str]]] = {
            AccessLevel.OWN: self.own_closure,
            AccessLevel.TEAM: self.team_closure,
            AccessLevel.DEPARTMENT: self.department_closure,
            AccessLevel.REPORTING_LINE: self.reporting_line_closure,
        }

    def build(self, level: AccessLevel, user_id: str) -> frozenset[str] | None:
        if level == AccessLevel.ALL:
            return None

        closure = self._closures[level]
        with tracer.start_as_current_span("record_scope.closure") as span:
            span.set_attribute("user_id", user_id)
            span.set_attribute("access_level", level.value)
            principals = closure(user_id)
            span.set_attribute("principal_count", len(principals))
        return principals

    def own_closure(self, user_id: str) -> frozenset[str]:
        return frozenset({user_id})

    def team_closure(self, user_id: str) -> frozenset[str]:
        """Users sharing at least one team with ``user_id``."""

        return frozenset(self._repository.team_peers_of(user_id) | {user_id})

    def department_closure(self, user_id: str) -> frozenset[str]:
        """Users in the requester's departments or any of their sub-departments.

        Home departments are the direct assignment plus the departments of the
        requester's teams. Membership of an expanded department is either a
        direct assignment or belonging to a team attached to it.
        """

        home_departments = self._repository.home_departments_of(user_id)
        if not home_departments:
            logger.info(
                "record_scope.no_department_context",
                extra={"user_id": user_id, "access_level": AccessLevel.OWN.value},
            )
            return self.own_closure(user_id)

        expanded = self._repository.department_subtree_of(home_departments)
        if not expanded:
            # Assigned departments no longer exist.
            logger.warning(
                "record_scope.no_department_context",
                extra={"user_id": user_id, "access_level": AccessLevel.OWN.value},
            )
            return self.own_closure(user_id)

        return frozenset(self._repository.members_of_departments(expanded) | {user_id})

    def reporting_line_closure(self, user_id: str) -> frozenset[str]:
        """The requester plus everyone who transitively reports to them."""

        return frozenset(self._repository.reports_of(user_id) | {user_id})
