from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func

from app.core.database import Base

DEVICE_STATUSES = ("connected", "disconnected", "connecting", "error")


class Device(Base):
    __tablename__ = "whatsapp_devices"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    # id da sessão no gateway WAHA
    device_id = Column(String, unique=True, index=True, nullable=False)
    device_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    phone_number = Column(String, nullable=True)

    status = Column(String, nullable=False, default="disconnected")
    error_message = Column(Text, nullable=True)
    qr_code = Column(Text, nullable=True)
    qr_code_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_seen = Column(DateTime(timezone=True), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    messages_sent = Column(Integer, nullable=False, default=0)
    messages_received = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


Index("ix_whatsapp_devices_tenant_status", Device.tenant_id, Device.status)
