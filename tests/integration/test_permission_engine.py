"""PermissionEngine end to end over the seeded catalogue.

Run with: pytest tests/integration -m db
"""

import pytest

from backoffice.core.rbac.engine import PermissionEngine
from backoffice.core.rbac.grants import RetrofitStatus
from backoffice.core.rbac.models import ModuleGrant, PermissionModule
from backoffice.core.rbac.permissions import Action, Role
from backoffice.core.rbac.store import SQLAlchemyPermissionStore
from backoffice.db.models import User


pytestmark = [pytest.mark.db, pytest.mark.integration]


FAQ = {
    "key": "faq",
    "name": "FAQ",
    "category": "content",
    "available_actions": ["create", "read", "update", "delete"],
    "default_permissions": {
        "editor": ["read", "update"],
        "moderator": ["read"],
    },
    "menu_order": 50,
}


def _stored_grants(db_session, user):
    db_session.expire_all()
    return db_session.get(User, user.id).permissions


class FlakyStore(SQLAlchemyPermissionStore):
    """Store whose grant writes fail for selected users."""

    def __init__(self, db, failing_ids=()):
        super().__init__(db)
        self.failing_ids = set(failing_ids)

    def add_user_grant(self, user_id, grant):
        if user_id in self.failing_ids:
            raise RuntimeError("write conflict")
        return super().add_user_grant(user_id, grant)


class BrokenCatalogueStore(SQLAlchemyPermissionStore):

    def list_modules(self, active_only=False, category=None):
        raise RuntimeError("database down")


@pytest.mark.usefixtures("seeded_db")
class TestDefaultPermissions:

    def test_editor(self, permission_engine):
        grants = permission_engine.assign_default_permissions(Role.EDITOR)
        assert grants == [
            ModuleGrant("articles", (Action.CREATE, Action.READ, Action.UPDATE)),
            ModuleGrant("content", (Action.READ, Action.UPDATE)),
        ]

    def test_moderator(self, permission_engine):
        grants = permission_engine.assign_default_permissions("moderator")
        assert grants == [
            ModuleGrant("articles", (Action.READ, Action.UPDATE)),
            ModuleGrant("content", (Action.READ,)),
        ]

    def test_admin(self, permission_engine):
        keys = [g.module for g in permission_engine.assign_default_permissions(Role.ADMIN)]
        assert keys == ["team", "users", "articles", "content"]

    def test_super_admin_gets_every_module(self, permission_engine):
        keys = [g.module for g in permission_engine.assign_default_permissions(Role.SUPER_ADMIN)]
        assert keys == ["team", "users", "articles", "content", "settings"]

    def test_inactive_modules_not_assigned(self, permission_engine):
        permission_engine.deactivate_module("content")
        keys = [g.module for g in permission_engine.assign_default_permissions(Role.EDITOR)]
        assert keys == ["articles"]

    def test_resolve_with_custom_permissions(self, permission_engine):
        grants = permission_engine.resolve_user_permissions(
            Role.EDITOR, [{"module": "team", "actions": ["read"]}]
        )
        assert grants == [ModuleGrant("team", (Action.READ,))]


@pytest.mark.usefixtures("seeded_db")
class TestRegisterModule:

    def test_retrofit_onto_existing_users(self, permission_engine, user_factory, db_session):
        editor = user_factory(role="editor", permissions=[{"module": "team", "actions": ["read"]}])
        moderator = user_factory(role="moderator")
        admin = user_factory(role="admin")

        module, summary = permission_engine.register_module(FAQ)

        assert module.key == "faq"
        assert (summary.granted, summary.skipped, summary.failed) == (2, 0, 0)
        assert _stored_grants(db_session, editor) == [
            {"module": "team", "actions": ["read"]},
            {"module": "faq", "actions": ["read", "update"]},
        ]
        assert _stored_grants(db_session, moderator) == [{"module": "faq", "actions": ["read"]}]
        # No admin default on the module, so nothing to grant
        assert _stored_grants(db_session, admin) == []

    def test_inactive_users_not_retrofitted(self, permission_engine, user_factory, db_session):
        retired = user_factory(role="editor", is_active=False)

        permission_engine.register_module(FAQ)

        assert _stored_grants(db_session, retired) == []

    def test_register_is_idempotent(self, permission_engine, user_factory, db_session):
        editor = user_factory(role="editor")
        permission_engine.register_module(FAQ)
        late_editor = user_factory(role="editor")

        module, summary = permission_engine.register_module({**FAQ, "name": "Renamed"})

        assert summary is None
        assert module.name == "FAQ"
        assert _stored_grants(db_session, late_editor) == []
        assert len(_stored_grants(db_session, editor)) == 1

    def test_retrofit_twice_changes_nothing(self, permission_engine, user_factory, db_session):
        editor = user_factory(role="editor")
        permission_engine.register_module(FAQ)
        before = _stored_grants(db_session, editor)

        summary = permission_engine.auto_grant_permissions_for_new_module(FAQ)

        assert summary.granted == 0
        assert summary.skipped == 1
        assert _stored_grants(db_session, editor) == before

    def test_existing_entry_never_widened(self, permission_engine, user_factory, db_session):
        """An admin who holds team:read keeps exactly that."""
        admin = user_factory(role="admin", permissions=[{"module": "team", "actions": ["read"]}])
        team = permission_engine.registry.get_active_module("team")

        summary = permission_engine.auto_grant_permissions_for_new_module(team)

        [result] = [r for r in summary.results if r.user_id == admin.id]
        assert result.status is RetrofitStatus.SKIPPED
        assert _stored_grants(db_session, admin) == [{"module": "team", "actions": ["read"]}]

    def test_manual_rule_not_retrofitted(self, permission_engine, user_factory, db_session):
        editor = user_factory(role="editor")
        team = permission_engine.registry.get_active_module("team")

        permission_engine.auto_grant_permissions_for_new_module(team)

        assert _stored_grants(db_session, editor) == []

    def test_one_failing_user_does_not_stop_the_rest(
        self, db_session, module_cache, user_factory
    ):
        first = user_factory(role="editor")
        broken = user_factory(role="editor")
        last = user_factory(role="editor")
        engine = PermissionEngine(FlakyStore(db_session, {broken.id}), cache=module_cache)

        _, summary = engine.register_module(FAQ)

        assert (summary.granted, summary.failed) == (2, 1)
        assert _stored_grants(db_session, first) == [{"module": "faq", "actions": ["read", "update"]}]
        assert _stored_grants(db_session, last) == [{"module": "faq", "actions": ["read", "update"]}]
        assert _stored_grants(db_session, broken) == []

    def test_malformed_user_does_not_stop_the_rest(
        self, permission_engine, user_factory, db_session
    ):
        legacy = [{"module": "legacy", "actions": ["view"]}]
        malformed = user_factory(role="editor", permissions=legacy)
        editor = user_factory(role="editor")
        moderator = user_factory(role="moderator")

        _, summary = permission_engine.register_module(FAQ)

        assert (summary.granted, summary.failed) == (2, 1)
        [failed] = [r for r in summary.results if r.status is RetrofitStatus.FAILED]
        assert failed.user_id == malformed.id
        assert "view" in failed.error
        assert _stored_grants(db_session, editor) == [{"module": "faq", "actions": ["read", "update"]}]
        assert _stored_grants(db_session, moderator) == [{"module": "faq", "actions": ["read"]}]
        assert _stored_grants(db_session, malformed) == legacy

    def test_new_module_usable_after_registration(self, permission_engine, user_factory, db_session):
        editor = user_factory(role="editor")
        permission_engine.get_active_modules()  # warm the cache

        permission_engine.register_module(FAQ)
        db_session.refresh(editor)

        assert permission_engine.has_permission(editor, "faq", "update")
        assert not permission_engine.has_permission(editor, "faq", "delete")


@pytest.mark.usefixtures("seeded_db")
class TestModuleCache:

    def test_writes_through_registry_clear_cache(self, permission_engine):
        assert "content" in [m.key for m in permission_engine.get_active_modules()]

        permission_engine.deactivate_module("content")

        assert "content" not in [m.key for m in permission_engine.get_active_modules()]

    def test_out_of_band_writes_visible_after_clear(self, permission_engine, store, clock):
        permission_engine.get_active_modules()
        store.create_module(PermissionModule.from_dict(FAQ))

        assert "faq" not in [m.key for m in permission_engine.get_active_modules()]

        permission_engine.clear_cache()
        assert "faq" in [m.key for m in permission_engine.get_active_modules()]

    def test_out_of_band_writes_visible_after_ttl(self, permission_engine, store, clock):
        permission_engine.get_active_modules()
        store.create_module(PermissionModule.from_dict(FAQ))

        clock.advance(300)
        assert "faq" in [m.key for m in permission_engine.get_active_modules()]

    def test_deactivation_revokes_access(self, permission_engine, user_factory):
        editor = user_factory(role="editor", permissions=[{"module": "content", "actions": ["read"]}])
        assert permission_engine.has_permission(editor, "content", "read")

        permission_engine.deactivate_module("content")

        assert not permission_engine.has_permission(editor, "content", "read")
        # Grants stay in place
        assert editor.permissions == [{"module": "content", "actions": ["read"]}]


@pytest.mark.usefixtures("seeded_db")
class TestAudit:

    def test_reports_missing_and_extra(self, permission_engine, user_factory):
        defaults = permission_engine.assign_default_permissions(Role.EDITOR)
        editor = user_factory(
            role="editor",
            permissions=[g.to_dict() for g in defaults] + [{"module": "legacy", "actions": ["read"]}],
        )

        [discrepancy] = permission_engine.audit_user_permissions()

        assert discrepancy.user_id == editor.id
        # team has an editor default but the editor template grants it by hand
        assert discrepancy.missing_modules == ["team"]
        assert discrepancy.extra_modules == ["legacy"]

    def test_deactivated_module_becomes_extra(self, permission_engine, user_factory):
        user_factory(role="moderator", permissions=[
            {"module": "articles", "actions": ["read"]},
            {"module": "content", "actions": ["read"]},
            {"module": "team", "actions": ["read"]},
        ])
        assert permission_engine.audit_user_permissions() == []

        permission_engine.deactivate_module("team")

        [discrepancy] = permission_engine.audit_user_permissions()
        assert discrepancy.extra_modules == ["team"]

    def test_audit_raises_on_store_failure(self, db_session, module_cache, user_factory):
        user_factory(role="editor")
        engine = PermissionEngine(BrokenCatalogueStore(db_session), cache=module_cache)

        with pytest.raises(RuntimeError):
            engine.audit_user_permissions()

    def test_broken_catalogue_denies_checks(self, db_session, module_cache, user_factory):
        editor = user_factory(role="editor", permissions=[{"module": "content", "actions": ["read"]}])
        engine = PermissionEngine(BrokenCatalogueStore(db_session), cache=module_cache)

        assert not engine.has_permission(editor, "content", "read")
