# CRM modules whose records carry an owning user.
RECORD_SCOPED_MODULES: tuple[str, ...] = (
    "contacts",
    "accounts",
    "leads",
    "opportunities",
    "deals",
    "tasks",
    "reports",
)
