"""Persistence collaborator for the permission engine.

The engine reads and writes three record kinds: permission modules, role
templates, and the grant list embedded in user records. ``PermissionStore``
is the narrow interface it depends on; ``SQLAlchemyPermissionStore`` backs it
with the ORM models in ``backoffice.db.models``.

Stores flush but never commit. The caller owns the transaction.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from .exceptions import UnknownModuleError, UnknownUserError
from .models import (
    ModuleGrant,
    PermissionModule,
    RoleTemplate,
    UserRecord,
    grants_to_dicts,
)
from .permissions import ModuleCategory, Role, parse_category, parse_role


class PermissionStore(ABC):
    """Read/write access to modules, role templates and user grants."""

    # Modules

    @abstractmethod
    def list_modules(
        self,
        active_only: bool = False,
        category: Optional[ModuleCategory] = None,
    ) -> List[PermissionModule]:
        """Modules sorted by menu order, then name."""

    @abstractmethod
    def get_module(self, key: str) -> Optional[PermissionModule]:
        ...

    @abstractmethod
    def create_module(self, module: PermissionModule) -> PermissionModule:
        ...

    @abstractmethod
    def update_module(self, key: str, **changes) -> PermissionModule:
        ...

    @abstractmethod
    def delete_module(self, key: str) -> None:
        ...

    # Role templates

    @abstractmethod
    def list_role_templates(self) -> List[RoleTemplate]:
        ...

    @abstractmethod
    def get_role_template(self, role: Role) -> Optional[RoleTemplate]:
        ...

    @abstractmethod
    def save_role_template(self, template: RoleTemplate) -> RoleTemplate:
        ...

    # Users

    @abstractmethod
    def list_active_users(self, role: Optional[Role] = None) -> List[UserRecord]:
        ...

    @abstractmethod
    def list_active_user_ids(self, role: Optional[Role] = None) -> List[Any]:
        """Ids of active users, oldest first. Rows are not validated."""

    @abstractmethod
    def get_user(self, user_id) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def update_user_permissions(
        self, user_id, grants: Iterable[ModuleGrant]
    ) -> UserRecord:
        """Replace a user's grant list in a single atomic update."""

    @abstractmethod
    def add_user_grant(self, user_id, grant: ModuleGrant) -> bool:
        """Append ``grant`` to the user's current grants in one atomic update.

        Returns False, writing nothing, when the user already holds an entry
        for the module.
        """


class SQLAlchemyPermissionStore(PermissionStore):
    """PermissionStore backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def list_modules(self, active_only=False, category=None):
        from backoffice.db.models import PermissionModuleRecord

        query = self.db.query(PermissionModuleRecord)
        if active_only:
            query = query.filter(PermissionModuleRecord.is_active == True)  # noqa: E712
        if category is not None:
            query = query.filter(
                PermissionModuleRecord.category == parse_category(category).value
            )
        rows = query.order_by(
            PermissionModuleRecord.menu_order, PermissionModuleRecord.name
        ).all()
        return [self._module_from_row(row) for row in rows]

    def get_module(self, key):
        row = self._module_row(key)
        return self._module_from_row(row) if row else None

    def create_module(self, module):
        from backoffice.db.models import PermissionModuleRecord

        data = module.to_dict()
        row = PermissionModuleRecord(**data)
        self.db.add(row)
        self.db.flush()
        return self._module_from_row(row)

    def update_module(self, key, **changes):
        row = self._module_row(key)
        if not row:
            raise UnknownModuleError(key)

        # Validate the result before touching the row
        updated = self._module_from_row(row).with_changes(**changes)
        for column, value in updated.to_dict().items():
            if column != "key":
                setattr(row, column, value)
        self.db.flush()
        return self._module_from_row(row)

    def delete_module(self, key):
        row = self._module_row(key)
        if not row:
            raise UnknownModuleError(key)
        self.db.delete(row)
        self.db.flush()

    def _module_row(self, key):
        from backoffice.db.models import PermissionModuleRecord

        return self.db.query(PermissionModuleRecord).filter(
            PermissionModuleRecord.key == key.strip().lower()
        ).first()

    @staticmethod
    def _module_from_row(row) -> PermissionModule:
        return PermissionModule(
            key=row.key,
            name=row.name,
            description=row.description or "",
            category=row.category,
            available_actions=row.available_actions or [],
            default_permissions=row.default_permissions or {},
            is_active=bool(row.is_active),
            is_system=bool(row.is_system),
            menu_order=row.menu_order if row.menu_order is not None else 100,
            version=row.version or "1.0.0",
        )

    # ------------------------------------------------------------------
    # Role templates
    # ------------------------------------------------------------------

    def list_role_templates(self):
        from backoffice.db.models import RoleTemplateRecord

        rows = self.db.query(RoleTemplateRecord).order_by(RoleTemplateRecord.level).all()
        return [self._template_from_row(row) for row in rows]

    def get_role_template(self, role):
        from backoffice.db.models import RoleTemplateRecord

        row = self.db.query(RoleTemplateRecord).filter(
            RoleTemplateRecord.role == parse_role(role).value
        ).first()
        return self._template_from_row(row) if row else None

    def save_role_template(self, template):
        from backoffice.db.models import RoleTemplateRecord

        data = template.to_dict()
        row = self.db.query(RoleTemplateRecord).filter(
            RoleTemplateRecord.role == data["role"]
        ).first()
        if row is None:
            row = RoleTemplateRecord(**data)
            self.db.add(row)
        else:
            for column, value in data.items():
                setattr(row, column, value)
        self.db.flush()
        return self._template_from_row(row)

    @staticmethod
    def _template_from_row(row) -> RoleTemplate:
        return RoleTemplate(
            role=row.role,
            name=row.name,
            level=row.level,
            auto_grant_rules=row.auto_grant_rules or [],
            description=row.description or "",
            is_system=bool(row.is_system),
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_active_users(self, role=None):
        from backoffice.db.models import User

        query = self.db.query(User).filter(User.is_active == True)  # noqa: E712
        if role is not None:
            query = query.filter(User.role == parse_role(role).value)
        return [self._user_from_row(row) for row in query.order_by(User.created_at).all()]

    def list_active_user_ids(self, role=None):
        from backoffice.db.models import User

        query = self.db.query(User.id).filter(User.is_active == True)  # noqa: E712
        if role is not None:
            query = query.filter(User.role == parse_role(role).value)
        return [user_id for (user_id,) in query.order_by(User.created_at).all()]

    def get_user(self, user_id):
        from backoffice.db.models import User

        row = self.db.query(User).filter(User.id == user_id).first()
        return self._user_from_row(row) if row else None

    def update_user_permissions(self, user_id, grants):
        from backoffice.db.models import User

        # Savepoint per user: a failed update rolls back alone
        with self.db.begin_nested():
            row = self.db.query(User).filter(User.id == user_id).with_for_update().first()
            if not row:
                raise UnknownUserError(user_id)
            row.permissions = grants_to_dicts(grants)
            self.db.flush()
        return self._user_from_row(row)

    def add_user_grant(self, user_id, grant):
        from backoffice.db.models import User

        with self.db.begin_nested():
            row = (
                self.db.query(User)
                .filter(User.id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
                .first()
            )
            if not row:
                raise UnknownUserError(user_id)

            # Raises InvalidPermissionData for a malformed grant list
            current = self._user_from_row(row)
            if current.grant_for(grant.module) is not None:
                return False

            row.permissions = list(row.permissions or []) + [grant.to_dict()]
            self.db.flush()
        return True

    @staticmethod
    def _user_from_row(row) -> UserRecord:
        return UserRecord(
            id=row.id,
            role=row.role,
            name=row.name or "",
            email=row.email or "",
            is_active=bool(row.is_active),
            permissions=row.permissions or [],
        )
