"""Value types for the permission engine.

These are the engine's view of the three persisted record kinds (permission
modules, role templates, and the grant list embedded in user records). They
are immutable and validated on construction: storage documents are converted
through ``from_dict`` and anything outside the closed vocabulary raises
``InvalidPermissionData``.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import InvalidPermissionData
from .permissions import (
    Action,
    GrantCondition,
    ModuleCategory,
    Role,
    parse_actions,
    parse_category,
    parse_condition,
    parse_role,
)


def _parse_defaults(raw) -> Dict[Role, Tuple[Action, ...]]:
    """Accept either ``{role: [actions]}`` or ``[{"role": r, "actions": [...]}]``."""
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        items = raw.items()
    else:
        items = [(entry["role"], entry.get("actions", [])) for entry in raw]

    defaults: Dict[Role, Tuple[Action, ...]] = {}
    for role, actions in items:
        role = parse_role(role)
        if role in defaults:
            raise InvalidPermissionData(
                f"Duplicate default permissions for role {role.value}",
                field="default_permissions",
                value=role.value,
            )
        defaults[role] = parse_actions(actions)
    return defaults


@dataclass(frozen=True)
class PermissionModule:
    """A named capability area that can be permissioned independently."""

    key: str
    name: str
    category: ModuleCategory = ModuleCategory.CORE
    available_actions: Tuple[Action, ...] = ()
    default_permissions: Dict[Role, Tuple[Action, ...]] = field(default_factory=dict)
    is_active: bool = True
    is_system: bool = False
    description: str = ""
    menu_order: int = 100
    version: str = "1.0.0"

    def __post_init__(self):
        key = (self.key or "").strip().lower()
        if not key:
            raise InvalidPermissionData("Module key is required", field="key", value=self.key)
        object.__setattr__(self, "key", key)
        object.__setattr__(self, "name", (self.name or key).strip())
        object.__setattr__(self, "category", parse_category(self.category))
        object.__setattr__(self, "available_actions", parse_actions(self.available_actions))
        defaults = _parse_defaults(self.default_permissions)
        for role, actions in defaults.items():
            unsupported = [a.value for a in actions if a not in self.available_actions]
            if unsupported:
                raise InvalidPermissionData(
                    f"Module {key}: default actions {unsupported} for role "
                    f"{role.value} are not in available actions",
                    field="default_permissions",
                    value=unsupported,
                )
        object.__setattr__(self, "default_permissions", defaults)

    def default_actions_for(self, role) -> Tuple[Action, ...]:
        """Baseline actions for ``role`` on this module (empty if none)."""
        return self.default_permissions.get(parse_role(role), ())

    def with_changes(self, **changes) -> "PermissionModule":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PermissionModule":
        """Build a module from a storage document or API payload.

        Accepts snake_case keys and the camelCase keys of the admin panel
        documents (``availableActions``, ``defaultPermissions``, ...).
        Available actions may be plain strings or ``{"key": ...}`` entries.
        """
        def pick(snake, camel, default=None):
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        actions = pick("available_actions", "availableActions", []) or []
        actions = [a["key"] if isinstance(a, Mapping) else a for a in actions]

        return cls(
            key=data.get("key", ""),
            name=data.get("name") or data.get("key", ""),
            category=data.get("category", ModuleCategory.CORE),
            available_actions=actions,
            default_permissions=pick("default_permissions", "defaultPermissions", {}),
            is_active=bool(pick("is_active", "isActive", True)),
            is_system=bool(pick("is_system", "isSystem", False)),
            description=data.get("description") or "",
            menu_order=int(pick("menu_order", "menuOrder", 100)),
            version=data.get("version") or "1.0.0",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "available_actions": [a.value for a in self.available_actions],
            "default_permissions": {
                role.value: [a.value for a in actions]
                for role, actions in self.default_permissions.items()
            },
            "is_active": self.is_active,
            "is_system": self.is_system,
            "menu_order": self.menu_order,
            "version": self.version,
        }


@dataclass(frozen=True)
class AutoGrantRule:
    """Role-template rule: which actions a role may receive for a module category."""

    module_category: ModuleCategory
    actions: Tuple[Action, ...] = ()
    condition: GrantCondition = GrantCondition.MANUAL

    def __post_init__(self):
        object.__setattr__(self, "module_category", parse_category(self.module_category))
        object.__setattr__(self, "actions", parse_actions(self.actions))
        object.__setattr__(self, "condition", parse_condition(self.condition))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AutoGrantRule":
        return cls(
            module_category=data.get("module_category", data.get("moduleCategory")),
            actions=data.get("actions", []),
            condition=data.get("condition", GrantCondition.MANUAL),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module_category": self.module_category.value,
            "actions": [a.value for a in self.actions],
            "condition": self.condition.value,
        }


@dataclass(frozen=True)
class RoleTemplate:
    """Per-role auto-grant policy, keyed by module category."""

    role: Role
    name: str
    level: int
    auto_grant_rules: Tuple[AutoGrantRule, ...] = ()
    description: str = ""
    is_system: bool = True

    def __post_init__(self):
        object.__setattr__(self, "role", parse_role(self.role))
        object.__setattr__(self, "auto_grant_rules", tuple(
            rule if isinstance(rule, AutoGrantRule) else AutoGrantRule.from_dict(rule)
            for rule in self.auto_grant_rules
        ))

    def rule_for(self, category) -> Optional[AutoGrantRule]:
        """First rule matching ``category``, or None."""
        category = parse_category(category)
        for rule in self.auto_grant_rules:
            if rule.module_category == category:
                return rule
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RoleTemplate":
        return cls(
            role=data["role"],
            name=data.get("name") or data["role"],
            level=int(data["level"]),
            auto_grant_rules=data.get("auto_grant_rules", data.get("autoGrantRules", [])),
            description=data.get("description") or "",
            is_system=bool(data.get("is_system", data.get("isSystem", True))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "name": self.name,
            "level": self.level,
            "description": self.description,
            "is_system": self.is_system,
            "auto_grant_rules": [rule.to_dict() for rule in self.auto_grant_rules],
        }


@dataclass(frozen=True)
class ModuleGrant:
    """A concrete, persisted (module, actions) pairing on a user."""

    module: str
    actions: Tuple[Action, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "actions", parse_actions(self.actions))

    def allows(self, action) -> bool:
        return action in self.actions

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModuleGrant":
        return cls(module=data["module"], actions=data.get("actions", []))

    def to_dict(self) -> Dict[str, Any]:
        return {"module": self.module, "actions": [a.value for a in self.actions]}


def parse_grants(raw: Optional[Iterable]) -> List[ModuleGrant]:
    """Convert stored grant entries (dicts or ModuleGrant) to ModuleGrant."""
    return [
        entry if isinstance(entry, ModuleGrant) else ModuleGrant.from_dict(entry)
        for entry in raw or ()
    ]


def normalize_grants(raw: Optional[Iterable]) -> List[ModuleGrant]:
    """Collapse grant entries to at most one per module key.

    Duplicate entries for the same module are merged (union of actions,
    first-seen order). Entries with no actions are dropped.
    """
    merged: Dict[str, List[Action]] = {}
    for grant in parse_grants(raw):
        actions = merged.setdefault(grant.module, [])
        actions.extend(a for a in grant.actions if a not in actions)
    return [ModuleGrant(key, tuple(actions)) for key, actions in merged.items() if actions]


def grants_to_dicts(grants: Iterable[ModuleGrant]) -> List[Dict[str, Any]]:
    return [grant.to_dict() for grant in grants]


@dataclass(frozen=True)
class UserRecord:
    """The engine's view of a back office user."""

    id: Any
    role: Role
    name: str = ""
    email: str = ""
    is_active: bool = True
    permissions: Tuple[ModuleGrant, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "role", parse_role(self.role))
        object.__setattr__(self, "permissions", tuple(parse_grants(self.permissions)))

    def granted_module_keys(self) -> List[str]:
        return [grant.module for grant in self.permissions]

    def grant_for(self, module_key: str) -> Optional[ModuleGrant]:
        for grant in self.permissions:
            if grant.module == module_key:
                return grant
        return None


@dataclass
class Principal:
    """Authenticated identity as supplied by the identity layer."""

    role: Any
    permissions: Optional[List[Any]] = field(default_factory=list)
    id: Any = None
