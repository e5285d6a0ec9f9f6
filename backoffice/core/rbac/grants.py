"""Automatic permission assignment.

Role templates decide *whether* a role receives a module automatically (by
category and condition). The module's own per-role defaults decide *what* it
receives. The template's action list only filters the defaults:

    granted = rule.actions ∩ module.defaults[role]
    if granted is empty: granted = module.defaults[role]

A rule narrows a role's default but never removes it: a role whose rule and
defaults share no action still receives its baseline.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .models import (
    ModuleGrant,
    PermissionModule,
    RoleTemplate,
    normalize_grants,
)
from .permissions import Action, Role, parse_role
from .registry import ModuleRegistry
from .store import PermissionStore

logger = logging.getLogger(__name__)


def resolve_granted_actions(
    rule_actions: Sequence[Action],
    module_default: Sequence[Action],
) -> Tuple[Action, ...]:
    """Intersect rule actions with the module default, falling back to the default."""
    if not module_default:
        return ()
    granted = tuple(a for a in rule_actions if a in module_default)
    if not granted:
        granted = tuple(module_default)
    return granted


def resolve_module_grant(
    template: RoleTemplate, module: PermissionModule
) -> Optional[ModuleGrant]:
    """Grant a template's role should receive for ``module``, or None."""
    rule = template.rule_for(module.category)
    if rule is None or not rule.condition.auto_grants:
        return None

    module_default = module.default_actions_for(template.role)
    if not module_default:
        logger.debug(
            "No %s default on module %s, nothing to grant", template.role.value, module.key
        )
        return None

    granted = resolve_granted_actions(rule.actions, module_default)
    return ModuleGrant(module.key, granted) if granted else None


class RetrofitStatus(str, Enum):
    GRANTED = "granted"
    SKIPPED = "skipped"   # user already holds an entry for the module
    FAILED = "failed"


@dataclass(frozen=True)
class RetrofitResult:
    user_id: Any
    role: Role
    status: RetrofitStatus
    actions: Tuple[Action, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "role": self.role.value,
            "status": self.status.value,
            "actions": [a.value for a in self.actions],
            "error": self.error,
        }


@dataclass
class RetrofitSummary:
    """Per-user outcome of granting a newly registered module to existing users."""

    module_key: str
    results: List[RetrofitResult] = field(default_factory=list)

    def _count(self, status: RetrofitStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def granted(self) -> int:
        return self._count(RetrofitStatus.GRANTED)

    @property
    def skipped(self) -> int:
        return self._count(RetrofitStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(RetrofitStatus.FAILED)

    def to_dict(self) -> dict:
        return {
            "module": self.module_key,
            "granted": self.granted,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


class GrantAssignmentEngine:
    """
    Computes and applies automatic grants.

    Handles:
    - Default grants for a role (user creation, role change)
    - Retrofitting a newly registered module onto existing users
    """

    def __init__(self, store: PermissionStore, registry: ModuleRegistry):
        self.store = store
        self.registry = registry

    def assign_default_permissions(self, role) -> List[ModuleGrant]:
        """
        Grant list a new user with ``role`` should start with.

        Nothing is persisted; the user creation or update flow stores the
        result. A missing role template yields an empty list.
        """
        role = parse_role(role)
        try:
            template = self.store.get_role_template(role)
        except Exception:
            logger.exception("Failed to load role template for %s", role.value)
            return []

        if template is None:
            logger.warning("No role template for %s, no default permissions assigned", role.value)
            return []

        grants = []
        for module in self.registry.get_active_modules():
            grant = resolve_module_grant(template, module)
            if grant is not None:
                grants.append(grant)
                logger.debug(
                    "%s -> %s: %s", role.value, module.key, [a.value for a in grant.actions]
                )

        logger.info("Assigned %d default module grants for role %s", len(grants), role.value)
        return grants

    def resolve_user_permissions(
        self, role, custom_permissions: Optional[Iterable] = None
    ) -> List[ModuleGrant]:
        """
        Grants to store on a user being created or moved to ``role``.

        An explicit, non-empty custom list wins (one entry per module);
        otherwise the role's defaults are assigned.
        """
        if custom_permissions:
            grants = normalize_grants(custom_permissions)
            logger.info("Using %d custom module grants", len(grants))
            return grants
        return self.assign_default_permissions(role)

    def auto_grant_permissions_for_new_module(self, module: PermissionModule) -> RetrofitSummary:
        """
        Grant a newly registered module to existing active users.

        Additive only: each user's current grants are re-read under a row
        lock, and users that already hold an entry for the module are left
        untouched, so repeated calls are harmless. Each user is updated
        independently; a failed update or an unreadable grant list is logged
        and recorded in the summary without stopping the others. Failures
        listing templates or users propagate.
        """
        summary = RetrofitSummary(module_key=module.key)
        if not module.is_active:
            logger.info("Module %s is inactive, skipping retrofit", module.key)
            return summary

        for template in self.store.list_role_templates():
            grant = resolve_module_grant(template, module)
            if grant is None:
                continue

            user_ids = self.store.list_active_user_ids(role=template.role)
            logger.info(
                "Retrofitting %s onto %d %s users", module.key, len(user_ids), template.role.value
            )
            for user_id in user_ids:
                summary.results.append(self._grant_to_user(user_id, template.role, grant))

        logger.info(
            "Retrofit of %s complete: %d granted, %d skipped, %d failed",
            module.key, summary.granted, summary.skipped, summary.failed,
        )
        return summary

    def _grant_to_user(self, user_id, role: Role, grant: ModuleGrant) -> RetrofitResult:
        try:
            added = self.store.add_user_grant(user_id, grant)
        except Exception as e:
            logger.exception("Failed to grant %s to user %s", grant.module, user_id)
            return RetrofitResult(user_id, role, RetrofitStatus.FAILED, error=str(e))

        if not added:
            return RetrofitResult(user_id, role, RetrofitStatus.SKIPPED)
        return RetrofitResult(user_id, role, RetrofitStatus.GRANTED, grant.actions)
