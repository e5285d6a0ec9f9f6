from typing import Any, Generator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from backoffice.db.session import SessionLocal
from backoffice.core.rbac.engine import PermissionEngine
from backoffice.core.rbac.registry import ModuleRegistry
from backoffice.core.rbac.store import SQLAlchemyPermissionStore


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_permission_engine(db: Session = Depends(get_db)) -> PermissionEngine:
    """Permission engine bound to the request's session and the shared module cache."""
    return PermissionEngine(SQLAlchemyPermissionStore(db))


def get_registry(engine: PermissionEngine = Depends(get_permission_engine)) -> ModuleRegistry:
    return engine.registry


def get_current_principal(request: Request) -> Any:
    """Principal placed on the request by the identity layer."""
    principal = getattr(request.state, "user", None)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return principal
