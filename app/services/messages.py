from __future__ import annotations

from datetime import timedelta
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.timeutils import utcnow
from app.models.message import MESSAGE_STATUSES, Message

STATS_PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def apply_message_status(message: Message, new_status: str) -> None:
    """Set the delivery status, stamping delivered_at/read_at the first time."""
    now = utcnow()
    message.status = new_status
    if new_status in {"delivered", "read"} and message.delivered_at is None:
        message.delivered_at = now
    if new_status == "read" and message.read_at is None:
        message.read_at = now


# ordem de entrega; "failed" fica fora e sempre é aplicado
_STATUS_RANK = {"pending": 0, "sent": 1, "delivered": 2, "read": 3}


def advance_message_status(message: Message, new_status: str) -> bool:
    """Apply a gateway ack only when it moves the message forward.

    Acks can arrive out of order; a late "sent" must not undo "read".
    """
    if new_status != "failed":
        current_rank = _STATUS_RANK.get(message.status, -1)
        if _STATUS_RANK.get(new_status, -1) <= current_rank:
            return False
    apply_message_status(message, new_status)
    return True


def _base_query(db: Session, tenant_id: int):
    return db.query(Message).filter(Message.tenant_id == tenant_id, Message.is_deleted.is_(False))


def list_messages(
    db: Session,
    *,
    tenant_id: int,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    device_id: str | None = None,
    status_filter: str | None = None,
    message_type: str | None = None,
) -> dict[str, Any]:
    query = _base_query(db, tenant_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Message.phone_number.ilike(pattern), Message.content.ilike(pattern)))
    if device_id:
        query = query.filter(Message.device_id == device_id)
    if status_filter:
        query = query.filter(Message.status == status_filter)
    if message_type:
        query = query.filter(Message.message_type == message_type)

    total = query.count()
    items = (
        query.order_by(Message.sent_at.desc(), Message.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"messages": items, "total": total, "page": page, "limit": limit}


def get_message(db: Session, *, tenant_id: int, message_id: int) -> Message:
    message = _base_query(db, tenant_id).filter(Message.id == message_id).first()
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return message


def message_stats(db: Session, *, tenant_id: int, period: str = "24h") -> dict[str, Any]:
    window = STATS_PERIODS.get(period)
    if window is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid period. Allowed: {', '.join(STATS_PERIODS)}",
        )
    since = utcnow() - window
    rows = (
        db.query(Message.status, func.count(Message.id))
        .filter(
            Message.tenant_id == tenant_id,
            Message.is_deleted.is_(False),
            Message.sent_at >= since,
        )
        .group_by(Message.status)
        .all()
    )
    counts = {message_status: 0 for message_status in MESSAGE_STATUSES}
    for message_status, count in rows:
        counts[message_status] = int(count)
    return {"period": period, "total": sum(counts.values()), **counts}


def update_message_status(db: Session, *, tenant_id: int, message_id: int, new_status: str) -> Message:
    if new_status not in MESSAGE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid message status")
    message = get_message(db, tenant_id=tenant_id, message_id=message_id)
    apply_message_status(message, new_status)
    db.commit()
    db.refresh(message)
    return message


def delete_message(db: Session, *, tenant_id: int, message_id: int) -> dict[str, str]:
    message = get_message(db, tenant_id=tenant_id, message_id=message_id)
    message.is_deleted = True
    db.commit()
    return {"message": "Message deleted successfully"}


def recent_messages_for_phone(db: Session, *, tenant_id: int, phone_numbers: list[str], limit: int = 50) -> list[Message]:
    return (
        _base_query(db, tenant_id)
        .filter(Message.phone_number.in_(phone_numbers))
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .limit(limit)
        .all()
    )
