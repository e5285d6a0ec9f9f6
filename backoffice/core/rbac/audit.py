"""Permission drift report.

Compares each active user's stored grants with what the current module
catalogue says their role should have. Read-only; nothing is remediated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .permissions import Role
from .registry import ModuleRegistry
from .store import PermissionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionDiscrepancy:
    user_id: Any
    name: str
    email: str
    role: Role
    missing_modules: List[str] = field(default_factory=list)
    extra_modules: List[str] = field(default_factory=list)
    current_module_count: int = 0
    expected_module_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": {
                "id": str(self.user_id),
                "name": self.name,
                "email": self.email,
                "role": self.role.value,
            },
            "missing_modules": list(self.missing_modules),
            "extra_modules": list(self.extra_modules),
            "current_modules": self.current_module_count,
            "expected_modules": self.expected_module_count,
        }


def audit_user_permissions(
    store: PermissionStore, registry: ModuleRegistry
) -> List[PermissionDiscrepancy]:
    """
    Report users whose grants have drifted from the module defaults.

    missing_modules: active modules with a non-empty default for the user's
        role that the user holds no entry for.
    extra_modules: entries for keys that are no longer active modules
        (deactivated, renamed or removed).

    Raises whatever the store raises when users or modules cannot be read.
    """
    users = store.list_active_users()
    modules = registry.get_active_modules(raise_on_error=True)
    active_keys = {module.key for module in modules}

    logger.info("Auditing permissions for %d users", len(users))

    discrepancies = []
    for user in users:
        user_modules = user.granted_module_keys()
        expected = [m.key for m in modules if m.default_actions_for(user.role)]

        missing = [key for key in expected if key not in user_modules]
        extra = [key for key in user_modules if key not in active_keys]

        if missing or extra:
            discrepancies.append(PermissionDiscrepancy(
                user_id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                missing_modules=missing,
                extra_modules=extra,
                current_module_count=len(user_modules),
                expected_module_count=len(expected),
            ))

    logger.info("Permission audit complete: %d users with discrepancies", len(discrepancies))
    return discrepancies
