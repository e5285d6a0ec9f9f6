"""Module registry: the catalogue of permission modules.

Reads of the active module list go through the process-wide ``ModuleCache``.
Every write (create, update, deactivate, delete) invalidates it.
"""

import logging
from typing import List, Optional, Tuple

from .cache import ModuleCache, module_cache
from .exceptions import SystemModuleError, UnknownModuleError
from .models import PermissionModule
from .permissions import ModuleCategory
from .store import PermissionStore

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """Cached access to active modules plus administrator writes."""

    def __init__(self, store: PermissionStore, cache: Optional[ModuleCache] = None):
        self.store = store
        self.cache = cache if cache is not None else module_cache

    def get_active_modules(self, *, raise_on_error: bool = False) -> List[PermissionModule]:
        """
        Active modules sorted by menu order, then name.

        Served from the cache while it is fresh; otherwise reloaded from the
        store and cached again.

        Args:
            raise_on_error: Propagate store failures instead of returning an
                empty list. Authorization paths leave this off, so a
                registry outage denies access.
        """
        cached = self.cache.get()
        if cached is not None:
            return list(cached)

        try:
            modules = self.store.list_modules(active_only=True)
        except Exception:
            if raise_on_error:
                raise
            logger.exception("Failed to load active permission modules")
            return []

        # The store filters already; guard against one that does not
        modules = [m for m in modules if m.is_active]
        modules.sort(key=lambda m: (m.menu_order, m.name))
        return list(self.cache.set(modules))

    def get_active_module(self, key: str) -> Optional[PermissionModule]:
        for module in self.get_active_modules():
            if module.key == key:
                return module
        return None

    def clear_cache(self) -> None:
        self.cache.invalidate()

    def list_modules(
        self,
        active_only: bool = False,
        category: Optional[ModuleCategory] = None,
    ) -> List[PermissionModule]:
        """Uncached listing for the admin panel."""
        return self.store.list_modules(active_only=active_only, category=category)

    def add_module(self, module: PermissionModule) -> Tuple[PermissionModule, bool]:
        """
        Persist a module unless one with the same key already exists.

        Returns:
            (module, created) where ``module`` is the existing record when
            ``created`` is False.
        """
        existing = self.store.get_module(module.key)
        if existing is not None:
            logger.info("Permission module already registered: %s", module.key)
            return existing, False

        created = self.store.create_module(module)
        self.clear_cache()
        logger.info(
            "Registered permission module %s (%s)", created.key, created.category.value
        )
        return created, True

    def update_module(self, key: str, **changes) -> PermissionModule:
        if "key" in changes:
            raise ValueError("Module keys are immutable")
        if self.store.get_module(key) is None:
            raise UnknownModuleError(key)

        updated = self.store.update_module(key, **changes)
        self.clear_cache()
        logger.info("Updated permission module %s: %s", key, sorted(changes))
        return updated

    def deactivate_module(self, key: str) -> PermissionModule:
        """Flip ``is_active`` off. Existing user grants are left in place."""
        return self.update_module(key, is_active=False)

    def delete_module(self, key: str) -> None:
        module = self.store.get_module(key)
        if module is None:
            raise UnknownModuleError(key)
        if module.is_system:
            raise SystemModuleError(key)

        self.store.delete_module(key)
        self.clear_cache()
        logger.info("Deleted permission module %s", key)
