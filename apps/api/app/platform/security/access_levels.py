from __future__ import annotations

from enum import StrEnum
from typing import Any


class AccessLevel(StrEnum):
    """Granularity at which a user may view a module's records, narrowest first."""

    OWN = "own"
    TEAM = "team"
    DEPARTMENT = "department"
    REPORTING_LINE = "reporting_line"
    ALL = "all"


class ModuleAction(StrEnum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"
    IMPORT = "import"
    INVITE = "invite"


WILDCARD = "*"


def parse_access_level(value: Any) -> AccessLevel | None:
    """Return the level for a stored value, or None when it is not one of the recognized levels."""

    if not isinstance(value, str):
        return None
    try:
        return AccessLevel(value)
    except ValueError:
        return None


def module_action_granted(permissions: dict[str, Any], module: str, action: str) -> bool:
    """Check a role's module/action permission matrix.

    ``{"*": {"*": true}}`` grants everything and ``{module: {"*": true}}`` grants
    every action on that module. Only literal ``True`` counts as a grant.
    """

    global_grants = permissions.get(WILDCARD)
    if isinstance(global_grants, dict) and global_grants.get(WILDCARD) is True:
        return True

    module_grants = permissions.get(module)
    if not isinstance(module_grants, dict):
        return False
    return module_grants.get(WILDCARD) is True or module_grants.get(action) is True
