from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from app.core.database import Base
from app.core.timeutils import utcnow

MESSAGE_TYPES = ("text", "image", "video", "audio", "document", "location", "contact")
MESSAGE_STATUSES = ("pending", "sent", "delivered", "read", "failed")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    sent_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    device_id = Column(String, nullable=False, index=True)
    phone_number = Column(String, nullable=False)
    message_type = Column(String, nullable=False, default="text")
    content = Column(Text, nullable=False)
    caption = Column(Text, nullable=True)
    group_id = Column(String, nullable=True, index=True)
    reply_to_message_id = Column(String, nullable=True)
    mentioned_phone_numbers = Column(JSON, nullable=False, default=list)
    broadcast = Column(Boolean, nullable=False, default=False)

    status = Column(String, nullable=False, default="pending")
    whatsapp_message_id = Column(String, nullable=True, index=True)
    error_message = Column(Text, nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)


Index("ix_messages_tenant_sent_at", Message.tenant_id, Message.sent_at)
Index("ix_messages_tenant_phone", Message.tenant_id, Message.phone_number)
