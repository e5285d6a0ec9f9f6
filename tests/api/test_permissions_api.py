"""Tests for the permission module admin API."""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from backoffice.api.deps import get_db, get_permission_engine
from backoffice.api.routers import permissions
from backoffice.core.rbac.engine import PermissionEngine
from backoffice.core.rbac.store import SQLAlchemyPermissionStore
from backoffice.db.models import User


pytestmark = [pytest.mark.db]


SUPER_ADMIN = {"id": "root", "role": "super-admin", "permissions": []}
ADMIN = {
    "id": "admin-1",
    "role": "admin",
    "permissions": [
        {"module": "users", "actions": ["read", "update"]},
        {"module": "settings", "actions": ["read"]},
    ],
}
EDITOR = {"id": "editor-1", "role": "editor", "permissions": []}

FAQ = {
    "key": "faq",
    "name": "FAQ",
    "category": "content",
    "available_actions": ["create", "read", "update", "delete"],
    "default_permissions": {"editor": ["read", "update"]},
    "menu_order": 50,
}


class Identity:
    """Stands in for the authentication layer."""

    def __init__(self):
        self.user = None


@pytest.fixture
def identity():
    return Identity()


@pytest.fixture
def client(db_session, module_cache, seeded_db, identity):
    app = FastAPI()
    app.include_router(permissions.router, prefix="/api")

    @app.middleware("http")
    async def attach_user(request: Request, call_next):
        request.state.user = identity.user
        return await call_next(request)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_permission_engine] = lambda: PermissionEngine(
        SQLAlchemyPermissionStore(db_session), cache=module_cache
    )
    return TestClient(app)


class TestListModules:

    def test_requires_principal(self, client):
        response = client.get("/api/admin/permissions/modules")
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    def test_list(self, client, identity):
        identity.user = EDITOR
        response = client.get("/api/admin/permissions/modules")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 5
        assert [m["key"] for m in data["modules"]] == [
            "team", "users", "articles", "content", "settings",
        ]

    def test_filter_by_category(self, client, identity):
        identity.user = EDITOR
        response = client.get(
            "/api/admin/permissions/modules", params={"active": True, "category": "content"}
        )
        assert [m["key"] for m in response.json()["modules"]] == ["articles", "content"]


class TestRegisterModule:

    def test_forbidden_without_settings_update(self, client, identity):
        identity.user = ADMIN
        response = client.post("/api/admin/permissions/modules", json=FAQ)

        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden"}

    def test_register_and_retrofit(self, client, identity, user_factory, db_session):
        editor = user_factory(role="editor")
        identity.user = SUPER_ADMIN

        response = client.post("/api/admin/permissions/modules", json=FAQ)

        assert response.status_code == 201
        data = response.json()
        assert data["created"] is True
        assert data["module"]["key"] == "faq"
        assert data["retrofit"]["granted"] == 1
        db_session.expire_all()
        assert db_session.get(User, editor.id).permissions == [
            {"module": "faq", "actions": ["read", "update"]},
        ]

    def test_register_twice_is_noop(self, client, identity):
        identity.user = SUPER_ADMIN
        client.post("/api/admin/permissions/modules", json=FAQ)

        response = client.post("/api/admin/permissions/modules", json={**FAQ, "name": "Other"})

        assert response.status_code == 200
        data = response.json()
        assert data["created"] is False
        assert data["retrofit"] is None
        assert data["module"]["name"] == "FAQ"

    def test_registered_module_listed(self, client, identity):
        identity.user = SUPER_ADMIN
        client.post("/api/admin/permissions/modules", json=FAQ)

        keys = [m["key"] for m in client.get("/api/admin/permissions/modules").json()["modules"]]
        assert keys.index("faq") == keys.index("content") + 1

    def test_default_outside_available_actions(self, client, identity):
        identity.user = SUPER_ADMIN
        payload = {**FAQ, "default_permissions": {"editor": ["publish"]}}

        response = client.post("/api/admin/permissions/modules", json=payload)
        assert response.status_code == 400

    def test_unknown_action_rejected(self, client, identity):
        identity.user = SUPER_ADMIN
        payload = {**FAQ, "available_actions": ["read", "teleport"]}

        response = client.post("/api/admin/permissions/modules", json=payload)
        assert response.status_code == 422


class TestUpdateModule:

    def test_deactivate(self, client, identity):
        identity.user = SUPER_ADMIN
        response = client.patch("/api/admin/permissions/modules/content", json={"is_active": False})

        assert response.status_code == 200
        assert response.json()["is_active"] is False

        listed = client.get("/api/admin/permissions/modules", params={"active": True}).json()
        assert "content" not in [m["key"] for m in listed["modules"]]

    def test_unknown_module(self, client, identity):
        identity.user = SUPER_ADMIN
        response = client.patch("/api/admin/permissions/modules/missing", json={"name": "X"})
        assert response.status_code == 404

    def test_invalid_defaults(self, client, identity):
        identity.user = SUPER_ADMIN
        response = client.patch(
            "/api/admin/permissions/modules/settings",
            json={"default_permissions": {"editor": ["delete"]}},
        )
        assert response.status_code == 400


class TestAudit:

    def test_requires_users_read(self, client, identity):
        identity.user = EDITOR
        response = client.get("/api/admin/permissions/audit")
        assert response.status_code == 403

    def test_report(self, client, identity, user_factory):
        user_factory(role="moderator", email="mod@lawfirm.test", permissions=[
            {"module": "articles", "actions": ["read"]},
        ])
        identity.user = ADMIN

        response = client.get("/api/admin/permissions/audit")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        [entry] = data["discrepancies"]
        assert entry["user"]["email"] == "mod@lawfirm.test"
        assert entry["missing_modules"] == ["team", "content"]
        assert entry["extra_modules"] == []
