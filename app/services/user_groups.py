from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.permissions import normalize_group_type, sanitize_overrides
from app.models.user import User
from app.models.user_group import UserGroup


def _base_query(db: Session, tenant_id: int):
    return db.query(UserGroup).filter(UserGroup.tenant_id == tenant_id, UserGroup.is_deleted.is_(False))


def _validated_type(value: Any) -> str:
    group_type = normalize_group_type(value)
    if group_type is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid group type")
    return group_type.value


def _ensure_name_available(db: Session, *, tenant_id: int, name: str, exclude_id: int | None = None) -> None:
    query = _base_query(db, tenant_id).filter(UserGroup.name == name)
    if exclude_id is not None:
        query = query.filter(UserGroup.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User group with this name already exists")


def list_user_groups(db: Session, *, tenant_id: int) -> list[UserGroup]:
    return _base_query(db, tenant_id).order_by(UserGroup.id.asc()).all()


def get_user_group(db: Session, *, tenant_id: int, group_id: int) -> UserGroup:
    group = _base_query(db, tenant_id).filter(UserGroup.id == group_id).first()
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User group not found")
    return group


def create_user_group(db: Session, *, tenant_id: int, data: dict[str, Any]) -> UserGroup:
    name = data["name"].strip()
    _ensure_name_available(db, tenant_id=tenant_id, name=name)
    group = UserGroup(
        tenant_id=tenant_id,
        name=name,
        group_type=_validated_type(data.get("group_type")),
        custom_permissions=sanitize_overrides(data.get("custom_permissions")),
        is_active=data.get("is_active", True),
        is_deleted=False,
    )
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


def update_user_group(db: Session, *, tenant_id: int, group_id: int, changes: dict[str, Any]) -> UserGroup:
    group = get_user_group(db, tenant_id=tenant_id, group_id=group_id)
    if changes.get("name"):
        name = changes["name"].strip()
        _ensure_name_available(db, tenant_id=tenant_id, name=name, exclude_id=group.id)
        group.name = name
    if changes.get("group_type") is not None:
        group.group_type = _validated_type(changes["group_type"])
    if changes.get("custom_permissions") is not None:
        group.custom_permissions = sanitize_overrides(changes["custom_permissions"])
    if changes.get("is_active") is not None:
        group.is_active = changes["is_active"]
    db.commit()
    db.refresh(group)
    return group


def delete_user_group(db: Session, *, tenant_id: int, group_id: int) -> dict[str, str]:
    group = get_user_group(db, tenant_id=tenant_id, group_id=group_id)
    in_use = (
        db.query(User.id)
        .filter(User.user_group_id == group.id, User.is_deleted.is_(False))
        .first()
    )
    if in_use:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User group still has users assigned")
    group.is_deleted = True
    db.commit()
    return {"message": "User group deleted successfully"}
