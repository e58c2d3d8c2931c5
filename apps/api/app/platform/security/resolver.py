from __future__ import annotations

import logging

from app.metrics import observe_record_scope_level_fallback
from app.platform.security.access_levels import AccessLevel, ModuleAction, module_action_granted, parse_access_level
from app.platform.security.errors import UnknownPrincipalError
from app.platform.security.org_graph import OrgGraphRepository, Principal, RoleConfig


logger = logging.getLogger("app.security.record_scope")


class AccessLevelResolver:
    """Reads a user's role configuration to answer per-module access questions.

    Every call re-reads the principal and role, so role edits take effect on
    the next request.
    """

    def __init__(self, repository: OrgGraphRepository) -> None:
        self._repository = repository

    def require_principal(self, user_id: str) -> Principal:
        principal = self._repository.get_principal(user_id)
        if principal is None:
            raise UnknownPrincipalError(user_id)
        return principal

    def role_of(self, principal: Principal) -> RoleConfig | None:
        if principal.role_id is None:
            return None
        return self._repository.get_role(principal.role_id)

    def get_access_level(self, user_id: str, module: str) -> AccessLevel:
        principal = self.require_principal(user_id)
        return self.level_for_role(principal, self.role_of(principal), module)

    def level_for_role(self, principal: Principal, role: RoleConfig | None, module: str) -> AccessLevel:
        configured = role.record_access.get(module) if role is not None else None
        level = parse_access_level(configured)
        if level is not None:
            return level

        # Narrowest level wins when the configuration is missing or unreadable.
        observe_record_scope_level_fallback(module)
        logger.warning(
            "record_scope.level_fallback",
            extra={
                "user_id": principal.id,
                "crm_module": module,
                "configured_level": None if configured is None else str(configured),
                "access_level": AccessLevel.OWN.value,
            },
        )
        return AccessLevel.OWN

    def has_full_access(self, user_id: str, module: str) -> bool:
        principal = self.require_principal(user_id)
        role = self.role_of(principal)
        if role is not None and role.wildcard_access:
            return True
        return self.level_for_role(principal, role, module) == AccessLevel.ALL

    def has_permission(self, user_id: str, module: str, action: ModuleAction | str) -> bool:
        principal = self.require_principal(user_id)
        role = self.role_of(principal)
        if role is None:
            return False
        if role.wildcard_access:
            return True
        return module_action_granted(role.permissions, module, str(action))
