"""Database models for the back office."""

from backoffice.db.models.permission_module import PermissionModuleRecord
from backoffice.db.models.role_template import RoleTemplateRecord
from backoffice.db.models.user import User

__all__ = [
    "PermissionModuleRecord",
    "RoleTemplateRecord",
    "User",
]
