"""Permission checking utilities for the back office.

A principal is whatever the identity layer supplies: any object or mapping
exposing ``role`` and ``permissions`` (the user's stored grant list). Checks
never raise; every failure path denies.
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from fastapi import Depends, HTTPException, Request, status

from .permissions import (
    Action,
    Role,
    parse_action,
    permission_string,
    split_permission_string,
)
from .registry import ModuleRegistry

logger = logging.getLogger(__name__)

_MISSING = object()


def _field(principal: Any, name: str) -> Any:
    if isinstance(principal, Mapping):
        return principal.get(name, _MISSING)
    return getattr(principal, name, _MISSING)


def _grant_module(entry: Any) -> Any:
    if isinstance(entry, Mapping):
        return entry.get("module")
    return getattr(entry, "module", None)


def _grant_actions(entry: Any) -> Iterable:
    if isinstance(entry, Mapping):
        return entry.get("actions") or ()
    return getattr(entry, "actions", None) or ()


def _principal_role(principal: Any) -> Optional[Role]:
    role = _field(principal, "role")
    try:
        return Role(role)
    except ValueError:
        return None


def has_permission(
    principal: Any,
    module_key: str,
    action: Union[str, Action],
    *,
    registry: ModuleRegistry,
) -> bool:
    """
    Decide whether ``principal`` may perform ``action`` on ``module_key``.

    Super-admins bypass grant lookup entirely, even for unknown modules.
    Everyone else needs the module to be active and an explicit grant entry
    for it that lists the action.
    """
    if principal is None:
        return False

    permissions = _field(principal, "permissions")
    if permissions is _MISSING or _field(principal, "role") is _MISSING:
        return False

    role = _principal_role(principal)
    if role is None:
        return False
    if role is Role.SUPER_ADMIN:
        return True

    try:
        action = Action(action)
    except ValueError:
        return False

    if registry.get_active_module(module_key) is None:
        return False

    for entry in permissions or ():
        if _grant_module(entry) == module_key:
            return action in _grant_actions(entry)
    return False


class PermissionChecker:
    """Checks a single principal against many (module, action) pairs."""

    def __init__(self, principal: Any, registry: ModuleRegistry):
        """
        Initialize with the principal to check.

        Args:
            principal: Identity exposing ``role`` and ``permissions``
            registry: Module registry used to confirm modules are active
        """
        self.principal = principal
        self.registry = registry

    def has_permission(self, module_key: str, action: Union[str, Action]) -> bool:
        return has_permission(self.principal, module_key, action, registry=self.registry)

    def has_any_permission(self, checks: List[Tuple[str, Union[str, Action]]]) -> bool:
        """Check if principal has any of the given (module, action) pairs."""
        return any(self.has_permission(m, a) for m, a in checks)

    def has_all_permissions(self, checks: List[Tuple[str, Union[str, Action]]]) -> bool:
        """Check if principal has all of the given (module, action) pairs."""
        return all(self.has_permission(m, a) for m, a in checks)

    def accessible_modules(self, action: Union[str, Action]) -> List[str]:
        """Keys of active modules the principal can perform ``action`` on."""
        return [
            module.key
            for module in self.registry.get_active_modules()
            if self.has_permission(module.key, action)
        ]


def require_module_permission(
    module_key: str,
    action: Union[str, Action],
    get_registry: Callable[..., ModuleRegistry],
):
    """
    FastAPI dependency factory for admin endpoints.

    The identity layer places the principal on ``request.state.user``.
    Denials surface as a bare 403 with no detail about the rule.

    Args:
        module_key: Module being accessed
        action: Action being performed
        get_registry: FastAPI dependency returning a ModuleRegistry

    Usage:
        @router.get("/articles")
        async def list_articles(
            user=Depends(require_module_permission("articles", "read", get_registry)),
        ):
            ...
    """
    permission = permission_string(module_key, parse_action(action))

    def dependency(request: Request, registry: ModuleRegistry = Depends(get_registry)):
        principal = getattr(request.state, "user", None)
        if principal is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )

        if not has_permission(principal, module_key, action, registry=registry):
            user_id = _field(principal, "id")
            logger.info(
                "Permission denied: %s for user %s",
                permission,
                "unknown" if user_id is _MISSING else user_id,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return principal

    return dependency


def require_permission(perm_str: str, get_registry: Callable[..., ModuleRegistry]):
    """
    Same as ``require_module_permission`` for a "module:action" string.

    Usage:
        @router.post("/modules")
        async def register_module(
            user=Depends(require_permission("settings:update", get_registry)),
        ):
            ...
    """
    module_key, action = split_permission_string(perm_str)
    return require_module_permission(module_key, action, get_registry)
