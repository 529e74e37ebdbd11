from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.chat_group import ChatGroup
from app.models.message import Message

GROUP_FIELDS = (
    "name",
    "description",
    "invite_code",
    "invite_link",
    "is_announcement",
    "is_community",
    "profile_picture_url",
)


def _base_query(db: Session, tenant_id: int):
    return db.query(ChatGroup).filter(ChatGroup.tenant_id == tenant_id, ChatGroup.is_deleted.is_(False))


def create_group(db: Session, *, tenant_id: int, user_id: int, data: dict[str, Any]) -> ChatGroup:
    if _base_query(db, tenant_id).filter(ChatGroup.group_id == data["group_id"]).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Group with this ID already exists")

    participants = list(dict.fromkeys(data.get("participants") or []))
    group = ChatGroup(
        group_id=data["group_id"],
        tenant_id=tenant_id,
        created_by=user_id,
        participants=participants,
        is_deleted=False,
        **{field: data.get(field) for field in GROUP_FIELDS if data.get(field) is not None},
    )
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


def list_groups(
    db: Session,
    *,
    tenant_id: int,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
) -> dict[str, Any]:
    query = _base_query(db, tenant_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(ChatGroup.name.ilike(pattern), ChatGroup.description.ilike(pattern)))
    total = query.count()
    groups = (
        query.order_by(ChatGroup.created_at.desc(), ChatGroup.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"groups": groups, "total": total, "page": page, "limit": limit}


def get_group(db: Session, *, tenant_id: int, group_pk: int) -> ChatGroup:
    group = _base_query(db, tenant_id).filter(ChatGroup.id == group_pk).first()
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    return group


def update_group(db: Session, *, tenant_id: int, group_pk: int, changes: dict[str, Any]) -> ChatGroup:
    group = get_group(db, tenant_id=tenant_id, group_pk=group_pk)
    for field in GROUP_FIELDS:
        if changes.get(field) is not None:
            setattr(group, field, changes[field])
    if changes.get("participants") is not None:
        group.participants = list(dict.fromkeys(changes["participants"]))
    db.commit()
    db.refresh(group)
    return group


def delete_group(db: Session, *, tenant_id: int, group_pk: int) -> dict[str, str]:
    group = get_group(db, tenant_id=tenant_id, group_pk=group_pk)
    group.is_deleted = True
    db.commit()
    return {"message": "Group deleted successfully"}


def add_participant(db: Session, *, tenant_id: int, group_pk: int, phone_number: str) -> ChatGroup:
    group = get_group(db, tenant_id=tenant_id, group_pk=group_pk)
    participants = list(group.participants or [])
    if phone_number in participants:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Participant already in group")
    # lista nova para o SQLAlchemy detectar a mudança no JSON
    group.participants = participants + [phone_number]
    db.commit()
    db.refresh(group)
    return group


def remove_participant(db: Session, *, tenant_id: int, group_pk: int, phone_number: str) -> ChatGroup:
    group = get_group(db, tenant_id=tenant_id, group_pk=group_pk)
    participants = list(group.participants or [])
    if phone_number not in participants:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Participant not found in group")
    group.participants = [entry for entry in participants if entry != phone_number]
    db.commit()
    db.refresh(group)
    return group


def group_stats(db: Session, *, tenant_id: int, group_pk: int) -> dict[str, Any]:
    group = get_group(db, tenant_id=tenant_id, group_pk=group_pk)
    message_count, last_message_at = (
        db.query(func.count(Message.id), func.max(Message.sent_at))
        .filter(
            Message.tenant_id == tenant_id,
            Message.group_id == group.group_id,
            Message.is_deleted.is_(False),
        )
        .one()
    )
    return {
        "group_id": group.group_id,
        "participant_count": len(group.participants or []),
        "message_count": int(message_count or 0),
        "last_message_at": last_message_at,
    }
