"""Default role templates and core permission modules.

Defines the 4 back office roles with their auto-grant rules:
1. Super Admin - Every category, reconciled continuously (and bypasses checks)
2. Admin - Core, content and user management at creation; tools by hand
3. Editor - Content at creation; core modules by hand
4. Moderator - Content at creation, limited to reading and editing

and the 5 core modules the admin panel ships with (team, users, articles,
content, settings).
"""

from typing import Dict, Iterable, List

from .exceptions import InvalidPermissionData
from .models import AutoGrantRule, PermissionModule, RoleTemplate
from .permissions import (
    Action,
    CRUD_ACTIONS,
    GrantCondition,
    ModuleCategory,
    ROLE_LEVELS,
    Role,
)


def _rule(category: ModuleCategory, condition: GrantCondition, *actions: Action) -> AutoGrantRule:
    return AutoGrantRule(module_category=category, actions=actions, condition=condition)


READ_UPDATE = (Action.READ, Action.UPDATE)
CRUD_PUBLISH = CRUD_ACTIONS + (Action.PUBLISH,)


SUPER_ADMIN_TEMPLATE = RoleTemplate(
    role=Role.SUPER_ADMIN,
    name="Super Admin",
    description="Full system access",
    level=ROLE_LEVELS[Role.SUPER_ADMIN],
    auto_grant_rules=(
        _rule(ModuleCategory.CORE, GrantCondition.ALWAYS, *CRUD_ACTIONS),
        _rule(ModuleCategory.CONTENT, GrantCondition.ALWAYS, *CRUD_PUBLISH),
        _rule(ModuleCategory.USERS, GrantCondition.ALWAYS, *CRUD_ACTIONS),
        _rule(ModuleCategory.SETTINGS, GrantCondition.ALWAYS, *READ_UPDATE),
        _rule(ModuleCategory.TOOLS, GrantCondition.ALWAYS, *CRUD_ACTIONS),
    ),
)

ADMIN_TEMPLATE = RoleTemplate(
    role=Role.ADMIN,
    name="Admin",
    description="Advanced management of team, content and users",
    level=ROLE_LEVELS[Role.ADMIN],
    auto_grant_rules=(
        _rule(ModuleCategory.CORE, GrantCondition.ON_CREATE, *CRUD_ACTIONS),
        _rule(ModuleCategory.CONTENT, GrantCondition.ON_CREATE, *CRUD_PUBLISH),
        _rule(ModuleCategory.USERS, GrantCondition.ON_CREATE, *READ_UPDATE),
        _rule(ModuleCategory.TOOLS, GrantCondition.MANUAL, *READ_UPDATE),
    ),
)

EDITOR_TEMPLATE = RoleTemplate(
    role=Role.EDITOR,
    name="Editor",
    description="Creates and edits articles and site content",
    level=ROLE_LEVELS[Role.EDITOR],
    auto_grant_rules=(
        _rule(ModuleCategory.CONTENT, GrantCondition.ON_CREATE, Action.CREATE, *READ_UPDATE),
        _rule(ModuleCategory.CORE, GrantCondition.MANUAL, *READ_UPDATE),
    ),
)

MODERATOR_TEMPLATE = RoleTemplate(
    role=Role.MODERATOR,
    name="Moderator",
    description="Limited viewing and editing of content",
    level=ROLE_LEVELS[Role.MODERATOR],
    auto_grant_rules=(
        _rule(ModuleCategory.CONTENT, GrantCondition.ON_CREATE, *READ_UPDATE),
    ),
)


DEFAULT_ROLE_TEMPLATES: Dict[Role, RoleTemplate] = {
    template.role: template
    for template in (
        SUPER_ADMIN_TEMPLATE,
        ADMIN_TEMPLATE,
        EDITOR_TEMPLATE,
        MODERATOR_TEMPLATE,
    )
}


# Core modules
DEFAULT_MODULES: List[PermissionModule] = [
    PermissionModule(
        key="team",
        name="Team Management",
        description="Manage the firm's lawyers and staff bios",
        category=ModuleCategory.CORE,
        menu_order=10,
        is_system=True,
        available_actions=CRUD_ACTIONS,
        default_permissions={
            Role.SUPER_ADMIN: CRUD_ACTIONS,
            Role.ADMIN: CRUD_ACTIONS,
            Role.EDITOR: READ_UPDATE,
            Role.MODERATOR: (Action.READ,),
        },
    ),
    PermissionModule(
        key="users",
        name="User Management",
        description="Manage back office accounts",
        category=ModuleCategory.USERS,
        menu_order=20,
        is_system=True,
        available_actions=CRUD_ACTIONS,
        default_permissions={
            Role.SUPER_ADMIN: CRUD_ACTIONS,
            Role.ADMIN: READ_UPDATE,
            Role.EDITOR: (),
            Role.MODERATOR: (),
        },
    ),
    PermissionModule(
        key="articles",
        name="Article Management",
        description="Write, edit and publish legal articles",
        category=ModuleCategory.CONTENT,
        menu_order=30,
        is_system=True,
        available_actions=CRUD_PUBLISH,
        default_permissions={
            Role.SUPER_ADMIN: CRUD_PUBLISH,
            Role.ADMIN: CRUD_PUBLISH,
            Role.EDITOR: (Action.CREATE,) + READ_UPDATE,
            Role.MODERATOR: READ_UPDATE,
        },
    ),
    PermissionModule(
        key="content",
        name="Site Content",
        description="Edit practice area pages and static site content",
        category=ModuleCategory.CONTENT,
        menu_order=40,
        is_system=True,
        available_actions=READ_UPDATE,
        default_permissions={
            Role.SUPER_ADMIN: READ_UPDATE,
            Role.ADMIN: READ_UPDATE,
            Role.EDITOR: READ_UPDATE,
            Role.MODERATOR: (Action.READ,),
        },
    ),
    PermissionModule(
        key="settings",
        name="System Settings",
        description="General system settings",
        category=ModuleCategory.SETTINGS,
        menu_order=90,
        is_system=True,
        available_actions=READ_UPDATE,
        default_permissions={
            Role.SUPER_ADMIN: READ_UPDATE,
            Role.ADMIN: (Action.READ,),
            Role.EDITOR: (),
            Role.MODERATOR: (),
        },
    ),
]


def validate_role_templates(templates: Iterable[RoleTemplate]) -> Dict[Role, RoleTemplate]:
    """Check there is exactly one template per role and index them by role."""
    indexed: Dict[Role, RoleTemplate] = {}
    for template in templates:
        if template.role in indexed:
            raise InvalidPermissionData(
                f"Duplicate role template: {template.role.value}",
                field="role",
                value=template.role.value,
            )
        indexed[template.role] = template

    missing = [role.value for role in Role if role not in indexed]
    if missing:
        raise InvalidPermissionData(
            f"Missing role templates: {', '.join(missing)}", field="role", value=missing
        )
    return indexed


def get_default_role_template(role) -> RoleTemplate:
    """Get the default template for a role."""
    try:
        return DEFAULT_ROLE_TEMPLATES[Role(role)]
    except ValueError:
        raise InvalidPermissionData(f"Unknown role: {role}", field="role", value=role) from None


def get_all_default_templates() -> Dict[Role, RoleTemplate]:
    """Get all default role templates."""
    return DEFAULT_ROLE_TEMPLATES.copy()


def get_default_modules() -> List[PermissionModule]:
    """Get the core module catalogue."""
    return list(DEFAULT_MODULES)
