"""Permission schema: permission_modules, role_templates, users

Revision ID: 0001
Revises: None
Create Date: 2026-09-28

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the permission engine tables."""

    # --- permission_modules ---
    op.create_table(
        "permission_modules",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(50), nullable=False, server_default="core"),
        sa.Column("available_actions", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("default_permissions", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("menu_order", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("version", sa.String(20), nullable=False, server_default="1.0.0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_permission_modules"),
        sa.UniqueConstraint("key", name="uq_permission_modules_key"),
    )
    op.create_index("ix_permission_modules_key", "permission_modules", ["key"])
    op.create_index("ix_permission_modules_is_active", "permission_modules", ["is_active"])

    # --- role_templates ---
    op.create_table(
        "role_templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("auto_grant_rules", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_role_templates"),
        sa.UniqueConstraint("role", name="uq_role_templates_role"),
    )
    op.create_index("ix_role_templates_role", "role_templates", ["role"])

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="editor"),
        sa.Column("permissions", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])


def downgrade() -> None:
    """Drop the permission engine tables."""
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_role_templates_role", table_name="role_templates")
    op.drop_table("role_templates")
    op.drop_index("ix_permission_modules_is_active", table_name="permission_modules")
    op.drop_index("ix_permission_modules_key", table_name="permission_modules")
    op.drop_table("permission_modules")
