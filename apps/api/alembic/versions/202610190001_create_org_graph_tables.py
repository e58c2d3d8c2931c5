"""create org graph tables and baseline roles

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "org_role",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("record_access", sa.JSON(), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("wildcard_access", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "org_department",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("parent_department_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_org_department_parent_department_id"),
        "org_department",
        ["parent_department_id"],
        unique=False,
    )

    op.create_table(
        "org_user",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("department_id", sa.String(length=36), nullable=True),
        sa.Column("manager_id", sa.String(length=36), nullable=True),
        sa.Column("role_id", sa.String(length=36), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_org_user_department_id"), "org_user", ["department_id"], unique=False)
    op.create_index(op.f("ix_org_user_manager_id"), "org_user", ["manager_id"], unique=False)

    op.create_table(
        "org_team",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("department_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_org_team_department_id"), "org_team", ["department_id"], unique=False)

    op.create_table(
        "org_team_membership",
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("team_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["team_id"], ["org_team.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["org_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "team_id"),
    )
    op.create_index("ix_org_team_membership_team_id", "org_team_membership", ["team_id"], unique=False)

    _seed_baseline_roles()


def downgrade() -> None:
    op.drop_index("ix_org_team_membership_team_id", table_name="org_team_membership")
    op.drop_table("org_team_membership")
    op.drop_index(op.f("ix_org_team_department_id"), table_name="org_team")
    op.drop_table("org_team")
    op.drop_index(op.f("ix_org_user_manager_id"), table_name="org_user")
    op.drop_index(op.f("ix_org_user_department_id"), table_name="org_user")
    op.drop_table("org_user")
    op.drop_index(op.f("ix_org_department_parent_department_id"), table_name="org_department")
    op.drop_table("org_department")
    op.drop_table("org_role")


def _seed_baseline_roles() -> None:
    now = datetime.now(timezone.utc)
    role_table = sa.table(
        "org_role",
        sa.column("id", sa.String()),
        sa.column("name", sa.String()),
        sa.column("record_access", sa.JSON()),
        sa.column("permissions", sa.JSON()),
        sa.column("wildcard_access", sa.Boolean()),
        sa.column("created_at", sa.DateTime(timezone=True)),
    )
    op.bulk_insert(
        role_table,
        [
            {
                "id": "9b0d4c1e-58f1-4e0c-9d0a-2f4f1f3b7a01",
                "name": "Admin",
                "record_access": {},
                "permissions": {"*": {"*": True}},
                "wildcard_access": True,
                "created_at": now,
            },
            {
                "id": "3c7e2a90-1d54-4b8e-a6f2-8e5b0c9d4a02",
                "name": "Sales Manager",
                "record_access": {
                    "contacts": "reporting_line",
                    "accounts": "department",
                    "leads": "reporting_line",
                    "opportunities": "reporting_line",
                    "deals": "reporting_line",
                    "tasks": "team",
                    "reports": "department",
                },
                "permissions": {
                    "contacts": {"*": True},
                    "accounts": {"*": True},
                    "leads": {"*": True},
                    "opportunities": {"*": True},
                    "deals": {"*": True},
                    "tasks": {"*": True},
                    "reports": {"view": True, "export": True},
                },
                "wildcard_access": False,
                "created_at": now,
            },
            {
                "id": "d41f6b27-0a3c-4f9e-b812-6c0e7a5d3b03",
                "name": "Sales Rep",
                "record_access": {
                    "contacts": "own",
                    "accounts": "team",
                    "leads": "own",
                    "opportunities": "own",
                    "deals": "own",
                    "tasks": "own",
                    "reports": "own",
                },
                "permissions": {
                    "contacts": {"view": True, "create": True, "edit": True},
                    "accounts": {"view": True},
                    "leads": {"view": True, "create": True, "edit": True},
                    "opportunities": {"view": True, "create": True, "edit": True},
                    "deals": {"view": True},
                    "tasks": {"view": True, "create": True, "edit": True, "delete": True},
                    "reports": {"view": True},
                },
                "wildcard_access": False,
                "created_at": now,
            },
        ],
    )
