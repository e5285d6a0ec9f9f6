"""Database seeding for the back office.

Creates the default role templates and the core permission modules, and
optionally loads extra modules from a YAML catalogue.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from sqlalchemy.orm import Session

from backoffice.core.rbac.engine import PermissionEngine
from backoffice.core.rbac.models import PermissionModule, RoleTemplate
from backoffice.core.rbac.roles import (
    get_all_default_templates,
    get_default_modules,
    validate_role_templates,
)
from backoffice.core.rbac.store import SQLAlchemyPermissionStore

logger = logging.getLogger(__name__)


def seed_role_templates(
    db: Session, templates: Optional[List[RoleTemplate]] = None
) -> Dict[str, RoleTemplate]:
    """
    Create one role template per role.

    Seeding is idempotent - templates that already exist are returned as
    they are, never overwritten.

    Args:
        db: Database session
        templates: Templates to seed; the defaults when omitted

    Returns:
        Dict mapping role value to RoleTemplate
    """
    store = SQLAlchemyPermissionStore(db)
    if templates is None:
        templates = list(get_all_default_templates().values())
    indexed = validate_role_templates(templates)

    seeded = {}
    for role, template in indexed.items():
        existing = store.get_role_template(role)
        seeded[role.value] = existing if existing else store.save_role_template(template)
    return seeded


def seed_permission_modules(
    db: Session, modules: Optional[List[PermissionModule]] = None
) -> Dict[str, PermissionModule]:
    """
    Create the core permission modules.

    Existing modules (matched by key) are left untouched.

    Returns:
        Dict mapping module key to PermissionModule
    """
    store = SQLAlchemyPermissionStore(db)
    if modules is None:
        modules = get_default_modules()

    seeded = {}
    for module in modules:
        existing = store.get_module(module.key)
        seeded[module.key] = existing if existing else store.create_module(module)
    return seeded


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in the catalogue."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_seed_file(path: str) -> Tuple[List[PermissionModule], List[RoleTemplate]]:
    """Load a YAML catalogue of modules and (optionally) role templates.

    Expected layout::

        modules:
          - key: newsletter
            name: Newsletter
            category: tools
            available_actions: [create, read, update, export]
            default_permissions:
              admin: [read, export]
        role_templates: []   # optional, all four roles when present

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is invalid YAML
        InvalidPermissionData: If a value is outside the permission vocabulary
    """
    seed_path = Path(path)
    if not seed_path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    with seed_path.open("r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise TypeError(f"Seed file root must be a mapping, got {type(data).__name__}")

    data = _expand_env_vars(data)
    modules = [PermissionModule.from_dict(m) for m in data.get("modules") or []]
    templates = [RoleTemplate.from_dict(t) for t in data.get("role_templates") or []]
    return modules, templates


def seed_from_file(
    db: Session, path: str, engine: Optional[PermissionEngine] = None
) -> Tuple[Dict[str, RoleTemplate], Dict[str, PermissionModule]]:
    """Seed the templates and modules defined in ``path`` on top of the defaults.

    File templates are only used for roles that have no template yet; an
    existing template is never overwritten. File modules are registered
    through the permission engine, so a module new to a live database is
    granted to existing users and the module cache is cleared.
    """
    modules, templates = load_seed_file(path)
    seeded_templates = seed_role_templates(db, templates or None)
    seeded_modules = seed_permission_modules(db)

    if engine is None:
        engine = PermissionEngine(SQLAlchemyPermissionStore(db))
    for module in modules:
        registered, summary = engine.register_module(module)
        if summary is not None:
            logger.info(
                "Registered %s: granted to %d users (%d failed)",
                registered.key, summary.granted, summary.failed,
            )
        seeded_modules[registered.key] = registered
    return seeded_templates, seeded_modules


# CLI script for seeding
if __name__ == "__main__":
    import sys
    from backoffice.common import configure_from_settings
    from backoffice.core.config import get_settings
    from backoffice.db.session import SessionLocal

    settings = get_settings()
    configure_from_settings(settings)

    db = SessionLocal()
    try:
        if settings.seed_file:
            templates, modules = seed_from_file(db, settings.seed_file)
        else:
            templates = seed_role_templates(db)
            modules = seed_permission_modules(db)

        logger.info("Seeded %d role templates:", len(templates))
        for template in templates.values():
            logger.info("  - %s (%s), level %d", template.name, template.role.value, template.level)

        logger.info("Seeded %d permission modules:", len(modules))
        for module in modules.values():
            logger.info("  - %s (%s) - %s", module.name, module.key, module.category.value)

        db.commit()
        logger.info("Seeding complete")

    except Exception:
        db.rollback()
        logger.exception("Seeding failed")
        sys.exit(1)
    finally:
        db.close()
