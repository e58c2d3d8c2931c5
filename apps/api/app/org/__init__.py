from app.org.models import Department, OrgRole, OrgUser, Team, TeamMembership

__all__ = [
    "OrgUser",
    "OrgRole",
    "Team",
    "TeamMembership",
    "Department",
]
