"""RBAC (Role-Based Access Control) module for the back office.

Defines the permission vocabulary, module catalogue, role templates, and the
engine that checks access and assigns grants automatically.
"""

from .permissions import Action, GrantCondition, ModuleCategory, Role
from .models import ModuleGrant, PermissionModule, Principal, RoleTemplate, AutoGrantRule
from .checker import (
    PermissionChecker,
    has_permission,
    require_module_permission,
    require_permission,
)
from .engine import PermissionEngine

__all__ = [
    "Action",
    "AutoGrantRule",
    "GrantCondition",
    "ModuleCategory",
    "ModuleGrant",
    "PermissionChecker",
    "PermissionEngine",
    "PermissionModule",
    "Principal",
    "Role",
    "RoleTemplate",
    "has_permission",
    "require_module_permission",
    "require_permission",
]
