"""Permission vocabulary for the back office RBAC engine.

Roles, actions, module categories and auto-grant conditions are closed sets.
Every value read back from storage goes through the ``parse_*`` helpers so
that an unknown value is rejected instead of silently passed along.

Permission string format used by the admin API: "module:action"
Examples:
  - articles:publish
  - users:read
  - settings:update
"""

from enum import Enum
from typing import Iterable, Tuple, Type, TypeVar

from .exceptions import InvalidPermissionData


class Role(str, Enum):
    """Back office roles, most privileged first."""

    SUPER_ADMIN = "super-admin"
    ADMIN = "admin"
    EDITOR = "editor"
    MODERATOR = "moderator"


class Action(str, Enum):
    """Operations that can be granted within a module."""

    # Standard CRUD actions
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    # Specialized actions
    EXPORT = "export"
    IMPORT = "import"
    APPROVE = "approve"
    PUBLISH = "publish"


class ModuleCategory(str, Enum):
    """Categories that role templates match their auto-grant rules against."""

    CORE = "core"
    CONTENT = "content"
    USERS = "users"
    SETTINGS = "settings"
    TOOLS = "tools"


class GrantCondition(str, Enum):
    """When an auto-grant rule applies."""

    ALWAYS = "always"         # new users and retrofits
    ON_CREATE = "on-create"   # new users and retrofits of newly registered modules
    MANUAL = "manual"         # administrator grants by hand
    NEVER = "never"

    @property
    def auto_grants(self) -> bool:
        return self in (GrantCondition.ALWAYS, GrantCondition.ON_CREATE)


# Lower level = more privileged
ROLE_LEVELS = {
    Role.SUPER_ADMIN: 1,
    Role.ADMIN: 2,
    Role.EDITOR: 3,
    Role.MODERATOR: 4,
}

ALL_ACTIONS: Tuple[Action, ...] = tuple(Action)
CRUD_ACTIONS: Tuple[Action, ...] = (
    Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE,
)

E = TypeVar("E", bound=Enum)


def _parse(enum_cls: Type[E], value, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidPermissionData(
            f"Unknown {field}: {value!r}", field=field, value=value
        ) from None


def parse_role(value) -> Role:
    return _parse(Role, value, "role")


def parse_action(value) -> Action:
    return _parse(Action, value, "action")


def parse_category(value) -> ModuleCategory:
    return _parse(ModuleCategory, value, "category")


def parse_condition(value) -> GrantCondition:
    return _parse(GrantCondition, value, "condition")


def parse_actions(values: Iterable) -> Tuple[Action, ...]:
    """Parse a list of actions, keeping first-seen order and dropping repeats."""
    actions = []
    for value in values or ():
        action = parse_action(value)
        if action not in actions:
            actions.append(action)
    return tuple(actions)


def permission_string(module_key: str, action: Action) -> str:
    return f"{module_key}:{Action(action).value}"


def split_permission_string(perm_str: str) -> Tuple[str, Action]:
    """Parse a permission string like 'articles:publish'."""
    parts = perm_str.split(":")
    if len(parts) != 2 or not parts[0]:
        raise InvalidPermissionData(
            f"Invalid permission format: {perm_str}", field="permission", value=perm_str
        )
    return parts[0], parse_action(parts[1])
