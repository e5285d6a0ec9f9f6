"""Pytest configuration and shared fixtures."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import backoffice.db.models  # noqa: F401  (registers tables on Base.metadata)
from backoffice.core.rbac.cache import ModuleCache
from backoffice.core.rbac.engine import PermissionEngine
from backoffice.core.rbac.registry import ModuleRegistry
from backoffice.core.rbac.store import PermissionStore, SQLAlchemyPermissionStore
from backoffice.db.base import Base
from backoffice.db.seed import seed_permission_modules, seed_role_templates

from tests import factories


class FakeClock:
    """Monotonic clock the tests can move forward by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def module_cache(clock):
    """Private cache per test so the process-wide one never leaks state."""
    return ModuleCache(ttl_seconds=300, clock=clock)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with working SAVEPOINT support."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db_session):
    return SQLAlchemyPermissionStore(db_session)


@pytest.fixture
def permission_engine(store, module_cache):
    return PermissionEngine(store, cache=module_cache)


@pytest.fixture
def seeded_db(db_session):
    """Default role templates and core modules."""
    templates = seed_role_templates(db_session)
    modules = seed_permission_modules(db_session)
    return templates, modules


@pytest.fixture
def user_factory(db_session):
    def _create(**kwargs):
        return factories.create_user(db_session, **kwargs)
    return _create


@pytest.fixture
def module_factory(db_session):
    def _create(**kwargs):
        return factories.create_module(db_session, **kwargs)
    return _create


# ---------------------------------------------------------------------------
# Store doubles
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_store():
    """PermissionStore double with empty defaults."""
    store = MagicMock(spec=PermissionStore)
    store.list_modules.return_value = []
    store.list_role_templates.return_value = []
    store.list_active_users.return_value = []
    store.list_active_user_ids.return_value = []
    store.add_user_grant.return_value = True
    store.get_role_template.return_value = None
    store.get_module.return_value = None
    return store


@pytest.fixture
def registry_for(module_cache):
    """Build a registry over a mock store serving ``modules``."""
    def _build(modules, store=None):
        if store is None:
            store = MagicMock(spec=PermissionStore)
        store.list_modules.return_value = list(modules)
        return ModuleRegistry(store, module_cache)
    return _build
