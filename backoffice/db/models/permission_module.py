import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, DateTime, JSON, Boolean, Uuid

from backoffice.db.base import Base


class PermissionModuleRecord(Base):
    __tablename__ = "permission_modules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    key = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(50), nullable=False, default="core")
    available_actions = Column(JSON, nullable=False, default=list)
    # {"editor": ["read", "update"], ...}
    default_permissions = Column(JSON, nullable=False, default=dict)
    menu_order = Column(Integer, nullable=False, default=100)
    version = Column(String(20), nullable=False, default="1.0.0")
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
