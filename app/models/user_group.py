from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, func

from app.core.database import Base


class UserGroup(Base):
    __tablename__ = "user_groups"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    group_type = Column(String, nullable=False, default="viewer")  # admin | editor | viewer
    # Overrides parciais: {"canSendMessages": true, ...}
    custom_permissions = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


Index("ix_user_groups_tenant_name", UserGroup.tenant_id, UserGroup.name)
