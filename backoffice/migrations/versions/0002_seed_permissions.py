"""Seed default role templates and core permission modules

Revision ID: 0002
Revises: 0001
Create Date: 2026-09-28

Creates the 4 role templates (Super Admin, Admin, Editor, Moderator) and the
5 core modules (team, users, articles, content, settings).
"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy.orm import Session

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Seed role templates and core modules, keeping any that already exist."""
    from backoffice.db.seed import seed_permission_modules, seed_role_templates

    session = Session(bind=op.get_bind())
    seed_role_templates(session)
    seed_permission_modules(session)
    session.flush()


def downgrade() -> None:
    """Remove seeded system modules and templates."""
    from backoffice.core.rbac.roles import get_default_modules
    import sqlalchemy as sa

    connection = op.get_bind()
    for module in get_default_modules():
        connection.execute(
            sa.text("DELETE FROM permission_modules WHERE key = :key AND is_system = true"),
            {"key": module.key},
        )
    connection.execute(sa.text("DELETE FROM role_templates WHERE is_system = true"))
