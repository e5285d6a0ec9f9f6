"""Permission module API endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backoffice.api.deps import (
    get_current_principal,
    get_db,
    get_permission_engine,
    get_registry,
)
from backoffice.core.rbac import require_permission
from backoffice.core.rbac.engine import PermissionEngine
from backoffice.core.rbac.exceptions import InvalidPermissionData, UnknownModuleError
from backoffice.core.rbac.models import PermissionModule
from backoffice.core.rbac.permissions import Action, ModuleCategory, Role

router = APIRouter(prefix="/admin/permissions", tags=["permissions"])


# Schemas
class ModuleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category: ModuleCategory = ModuleCategory.CORE
    available_actions: List[Action] = Field(default_factory=list)
    default_permissions: Dict[Role, List[Action]] = Field(default_factory=dict)
    menu_order: int = 100
    version: str = "1.0.0"
    is_active: bool = True
    is_system: bool = False

class ModuleCreate(ModuleBase):
    key: str = Field(..., min_length=1, max_length=100)

class ModuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    default_permissions: Optional[Dict[Role, List[Action]]] = None
    menu_order: Optional[int] = None
    is_active: Optional[bool] = None

class ModuleResponse(ModuleBase):
    key: str

class ModuleListResponse(BaseModel):
    modules: List[ModuleResponse]
    total: int
    timestamp: str

class RegisterResponse(BaseModel):
    module: ModuleResponse
    created: bool
    retrofit: Optional[Dict[str, Any]] = None


def _to_response(module: PermissionModule) -> ModuleResponse:
    return ModuleResponse(**module.to_dict())


# Endpoints
@router.get("/modules", response_model=ModuleListResponse)
async def list_modules(
    active: bool = Query(False, description="Only active modules"),
    category: Optional[ModuleCategory] = Query(None),
    engine: PermissionEngine = Depends(get_permission_engine),
    current_user: Any = Depends(get_current_principal),
):
    """List permission modules, ordered by menu order then name."""
    modules = engine.registry.list_modules(active_only=active, category=category)
    return ModuleListResponse(
        modules=[_to_response(m) for m in modules],
        total=len(modules),
        timestamp=datetime.utcnow().isoformat(),
    )


@router.post("/modules", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_module(
    module_data: ModuleCreate,
    response: Response,
    db: Session = Depends(get_db),
    engine: PermissionEngine = Depends(get_permission_engine),
    current_user: Any = Depends(require_permission("settings:update", get_registry)),
):
    """Register a module and grant it to existing users per their role templates."""
    try:
        module = PermissionModule.from_dict(module_data.model_dump(mode="json"))
    except InvalidPermissionData as e:
        raise HTTPException(status_code=400, detail=str(e))

    registered, summary = engine.register_module(module)
    db.commit()
    # Reloads that raced the commit may have cached the old list
    engine.clear_cache()

    if summary is None:
        response.status_code = status.HTTP_200_OK
    return RegisterResponse(
        module=_to_response(registered),
        created=summary is not None,
        retrofit=summary.to_dict() if summary else None,
    )


@router.patch("/modules/{key}", response_model=ModuleResponse)
async def update_module(
    key: str,
    module_data: ModuleUpdate,
    db: Session = Depends(get_db),
    engine: PermissionEngine = Depends(get_permission_engine),
    current_user: Any = Depends(require_permission("settings:update", get_registry)),
):
    """Update a module. Deactivation leaves existing user grants in place."""
    changes = {
        field: value
        for field, value in module_data.model_dump(exclude_unset=True, mode="json").items()
        if value is not None
    }
    try:
        module = engine.update_module(key, **changes)
    except UnknownModuleError:
        raise HTTPException(status_code=404, detail="Module not found")
    except InvalidPermissionData as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    engine.clear_cache()
    return _to_response(module)


@router.get("/audit")
async def audit_permissions(
    engine: PermissionEngine = Depends(get_permission_engine),
    current_user: Any = Depends(require_permission("users:read", get_registry)),
):
    """Users whose grants have drifted from the module defaults. Read-only."""
    discrepancies = engine.audit_user_permissions()
    return {
        "discrepancies": [d.to_dict() for d in discrepancies],
        "total": len(discrepancies),
    }
