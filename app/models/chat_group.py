from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func

from app.core.database import Base


class ChatGroup(Base):
    """Grupo do WhatsApp (não confundir com UserGroup)."""

    __tablename__ = "chat_groups"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    group_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    invite_code = Column(String, nullable=True)
    invite_link = Column(String, nullable=True)
    is_announcement = Column(Boolean, nullable=False, default=False)
    is_community = Column(Boolean, nullable=False, default=False)
    participants = Column(JSON, nullable=False, default=list)
    profile_picture_url = Column(String, nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


Index("ix_chat_groups_tenant_group", ChatGroup.tenant_id, ChatGroup.group_id)
