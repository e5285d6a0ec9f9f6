"""Permission engine facade.

Wires the module registry, authorization checks, grant assignment and the
drift audit over one ``PermissionStore``. This is the surface the rest of the
application uses.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from .audit import PermissionDiscrepancy, audit_user_permissions
from .cache import ModuleCache
from .checker import PermissionChecker, has_permission
from .grants import GrantAssignmentEngine, RetrofitSummary
from .models import ModuleGrant, PermissionModule
from .permissions import Action
from .registry import ModuleRegistry
from .store import PermissionStore

logger = logging.getLogger(__name__)


class PermissionEngine:
    """
    High-level service for dynamic permissions.

    Handles:
    - Cached lookup of active modules
    - Authorization checks
    - Default grants for new users and role changes
    - Module registration with retrofit onto existing users
    - Drift audit
    """

    def __init__(self, store: PermissionStore, cache: Optional[ModuleCache] = None):
        """
        Initialize the engine.

        Args:
            store: Persistence collaborator
            cache: Module cache; the process-wide cache when omitted
        """
        self.store = store
        self.registry = ModuleRegistry(store, cache)
        self.grants = GrantAssignmentEngine(store, self.registry)

    # Registry

    def get_active_modules(self) -> List[PermissionModule]:
        return self.registry.get_active_modules()

    def clear_cache(self) -> None:
        self.registry.clear_cache()

    def register_module(
        self, module_data: Union[PermissionModule, Mapping[str, Any]]
    ) -> Tuple[PermissionModule, Optional[RetrofitSummary]]:
        """
        Register a module and grant it to existing users.

        Idempotent by key: an existing module is returned unchanged and no
        retrofit runs (the summary is None). Errors propagate.
        """
        module = module_data if isinstance(module_data, PermissionModule) \
            else PermissionModule.from_dict(module_data)

        registered, created = self.registry.add_module(module)
        if not created:
            return registered, None

        summary = self.grants.auto_grant_permissions_for_new_module(registered)
        return registered, summary

    def update_module(self, key: str, **changes) -> PermissionModule:
        return self.registry.update_module(key, **changes)

    def deactivate_module(self, key: str) -> PermissionModule:
        return self.registry.deactivate_module(key)

    # Authorization

    def has_permission(self, principal: Any, module_key: str, action: Union[str, Action]) -> bool:
        return has_permission(principal, module_key, action, registry=self.registry)

    def checker(self, principal: Any) -> PermissionChecker:
        return PermissionChecker(principal, self.registry)

    # Grants

    def assign_default_permissions(self, role) -> List[ModuleGrant]:
        return self.grants.assign_default_permissions(role)

    def resolve_user_permissions(
        self, role, custom_permissions: Optional[Iterable] = None
    ) -> List[ModuleGrant]:
        return self.grants.resolve_user_permissions(role, custom_permissions)

    def auto_grant_permissions_for_new_module(
        self, module_data: Union[PermissionModule, Mapping[str, Any]]
    ) -> RetrofitSummary:
        module = module_data if isinstance(module_data, PermissionModule) \
            else PermissionModule.from_dict(module_data)
        return self.grants.auto_grant_permissions_for_new_module(module)

    # Audit

    def audit_user_permissions(self) -> List[PermissionDiscrepancy]:
        return audit_user_permissions(self.store, self.registry)
