from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.user import User
from app.models.user_group import UserGroup
from app.services.auth import hash_password, verify_password

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "email": User.email,
    "firstName": User.first_name,
    "lastName": User.last_name,
    "lastLoginAt": User.last_login_at,
}


def _base_query(db: Session, tenant_id: int):
    return db.query(User).filter(User.tenant_id == tenant_id, User.is_deleted.is_(False))


def _ensure_email_available(db: Session, *, tenant_id: int, email: str, exclude_id: int | None = None) -> None:
    query = _base_query(db, tenant_id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User with this email already exists")


def _ensure_group_in_tenant(db: Session, *, tenant_id: int, group_id: int) -> UserGroup:
    group = (
        db.query(UserGroup)
        .filter(
            UserGroup.id == group_id,
            UserGroup.tenant_id == tenant_id,
            UserGroup.is_active.is_(True),
            UserGroup.is_deleted.is_(False),
        )
        .first()
    )
    if not group:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user group")
    return group


def create_user(db: Session, *, tenant_id: int, data: dict[str, Any]) -> User:
    email = data["email"].strip().lower()
    _ensure_email_available(db, tenant_id=tenant_id, email=email)
    _ensure_group_in_tenant(db, tenant_id=tenant_id, group_id=data["user_group_id"])

    user = User(
        email=email,
        password_hash=hash_password(data["password"]),
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        phone_number=data.get("phone_number"),
        user_group_id=data["user_group_id"],
        tenant_id=tenant_id,
        is_active=data.get("is_active", True),
        is_email_verified=False,
        is_deleted=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user created id=%s tenant_id=%s", user.id, tenant_id)
    return user


def list_users(
    db: Session,
    *,
    tenant_id: int,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    user_group_id: int | None = None,
    is_active: bool | None = None,
    is_email_verified: bool | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> dict[str, Any]:
    query = _base_query(db, tenant_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )
    if user_group_id is not None:
        query = query.filter(User.user_group_id == user_group_id)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))
    if is_email_verified is not None:
        query = query.filter(User.is_email_verified.is_(is_email_verified))

    column = SORTABLE_FIELDS.get(sort_by, User.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()

    total = query.count()
    users = query.order_by(ordering, User.id.asc()).offset((page - 1) * limit).limit(limit).all()
    return {"users": users, "total": total, "page": page, "limit": limit}


def get_user(db: Session, *, tenant_id: int, user_id: int) -> User:
    user = _base_query(db, tenant_id).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def update_user(db: Session, *, tenant_id: int, user_id: int, changes: dict[str, Any]) -> User:
    user = get_user(db, tenant_id=tenant_id, user_id=user_id)

    if changes.get("email"):
        email = changes["email"].strip().lower()
        if email != user.email:
            _ensure_email_available(db, tenant_id=tenant_id, email=email, exclude_id=user.id)
            user.email = email
    if changes.get("user_group_id") is not None:
        _ensure_group_in_tenant(db, tenant_id=tenant_id, group_id=changes["user_group_id"])
        user.user_group_id = changes["user_group_id"]
    for field in ("first_name", "last_name", "phone_number", "is_active"):
        if changes.get(field) is not None:
            setattr(user, field, changes[field])

    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, *, tenant_id: int, user_id: int, acting_user_id: int) -> dict[str, str]:
    if int(user_id) == int(acting_user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    user = get_user(db, tenant_id=tenant_id, user_id=user_id)
    user.is_deleted = True
    user.is_active = False
    db.commit()
    logger.info("user soft-deleted id=%s tenant_id=%s by=%s", user_id, tenant_id, acting_user_id)
    return {"message": "User deleted successfully"}


def change_password(
    db: Session,
    *,
    tenant_id: int,
    user_id: int,
    new_password: str,
    current_password: str | None = None,
    require_current: bool = False,
) -> dict[str, str]:
    user = get_user(db, tenant_id=tenant_id, user_id=user_id)
    if require_current and not verify_password(current_password or "", user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.commit()
    return {"message": "Password changed successfully"}
