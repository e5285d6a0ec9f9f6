import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, DateTime, JSON, Boolean, Uuid

from backoffice.db.base import Base


class RoleTemplateRecord(Base):
    __tablename__ = "role_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    role = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    level = Column(Integer, nullable=False)
    # [{"module_category": "content", "actions": [...], "condition": "on-create"}]
    auto_grant_rules = Column(JSON, nullable=False, default=list)
    is_system = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
