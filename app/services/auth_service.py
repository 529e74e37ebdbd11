from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.permissions import GroupType
from app.core.timeutils import utcnow
from app.models.tenant import Tenant
from app.models.user import User
from app.models.user_group import UserGroup
from app.services.auth import (
    REFRESH_TOKEN_TYPE,
    TokenError,
    create_token_pair,
    decode_token,
    extract_user_id,
    hash_password,
    verify_password,
)
from app.services.tenant_resolver import TenantResolver

logger = logging.getLogger(__name__)
AUTH_PREFIX = "[AUTH]"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def serialize_auth_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "tenant_id": user.tenant_id,
        "user_group_id": user.user_group_id,
    }


class CredentialService:
    """Password verification and token pair issuance."""

    @staticmethod
    def build_auth_response(user: User) -> dict[str, Any]:
        tokens = create_token_pair(user)
        return {**tokens, "user": serialize_auth_user(user)}

    @staticmethod
    def _tenant_is_active(db: Session, tenant_id: int) -> bool:
        return (
            db.query(Tenant.id)
            .filter(Tenant.id == tenant_id, Tenant.is_active.is_(True), Tenant.is_deleted.is_(False))
            .first()
            is not None
        )

    @staticmethod
    def _group_is_active(db: Session, group_id: int, tenant_id: int) -> bool:
        return (
            db.query(UserGroup.id)
            .filter(
                UserGroup.id == group_id,
                UserGroup.tenant_id == tenant_id,
                UserGroup.is_active.is_(True),
                UserGroup.is_deleted.is_(False),
            )
            .first()
            is not None
        )

    @staticmethod
    def _ensure_tenant_name_available(db: Session, name: str) -> None:
        tenant = TenantResolver.find_tenant_by_name(db, name)
        if tenant is None:
            return
        if not tenant.is_active or tenant.is_deleted:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tenant is inactive")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant with this name already exists",
        )

    @staticmethod
    def _group_for_new_user(db: Session, tenant_id: int) -> UserGroup:
        # só quem cria o tenant vira admin; os demais entram como viewer
        has_members = db.query(User.id).filter(User.tenant_id == tenant_id).first() is not None
        if has_members:
            return TenantResolver.resolve_or_create_member_group(db, tenant_id)
        return TenantResolver.resolve_or_create_group(db, tenant_id, default_group_type=GroupType.ADMIN)

    @classmethod
    def register(
        cls,
        db: Session,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone_number: str | None = None,
        tenant_name: str | None = None,
    ) -> dict[str, Any]:
        normalized_email = email.strip().lower()
        normalized_tenant_name = (tenant_name or "").strip()
        try:
            if normalized_tenant_name:
                cls._ensure_tenant_name_available(db, normalized_tenant_name)
                tenant = TenantResolver.create_tenant(db, name=normalized_tenant_name)
            else:
                tenant = TenantResolver.resolve_or_create_tenant(db)

            existing = (
                db.query(User.id)
                .filter(
                    User.tenant_id == tenant.id,
                    User.email == normalized_email,
                    User.is_deleted.is_(False),
                )
                .first()
            )
            if existing:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="User with this email already exists",
                )

            group = cls._group_for_new_user(db, tenant.id)

            user = User(
                email=normalized_email,
                password_hash=hash_password(password),
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                phone_number=phone_number,
                tenant_id=tenant.id,
                user_group_id=group.id,
                is_active=True,
                is_email_verified=False,
                is_deleted=False,
            )
            db.add(user)
            # tenant, grupo e usuário entram num único commit
            db.commit()
        except HTTPException:
            db.rollback()
            raise
        except SQLAlchemyError:
            db.rollback()
            logger.exception("%s register failed email=%s", AUTH_PREFIX, normalized_email)
            raise
        db.refresh(user)

        logger.info(
            "%s user registered id=%s tenant_id=%s group_id=%s",
            AUTH_PREFIX,
            user.id,
            user.tenant_id,
            user.user_group_id,
        )
        return cls.build_auth_response(user)

    @classmethod
    def validate_user(cls, db: Session, *, email: str, password: str) -> User:
        normalized_email = (email or "").strip().lower()
        candidates = (
            db.query(User)
            .filter(
                User.email == normalized_email,
                User.is_active.is_(True),
                User.is_deleted.is_(False),
            )
            .order_by(User.id.asc())
            .all()
        )
        user = next((entry for entry in candidates if verify_password(password, entry.password_hash)), None)
        if user is None:
            logger.info("%s login rejected email=%s", AUTH_PREFIX, normalized_email)
            raise _unauthorized("Invalid credentials")

        if not cls._tenant_is_active(db, user.tenant_id):
            raise _unauthorized("Tenant is inactive or not found")
        if not cls._group_is_active(db, user.user_group_id, user.tenant_id):
            raise _unauthorized("User group is inactive or not found")
        return user

    @classmethod
    def login(cls, db: Session, *, email: str, password: str) -> dict[str, Any]:
        user = cls.validate_user(db, email=email, password=password)
        user.last_login_at = utcnow()
        db.commit()
        db.refresh(user)
        logger.info("%s login ok user_id=%s tenant_id=%s", AUTH_PREFIX, user.id, user.tenant_id)
        return cls.build_auth_response(user)

    @classmethod
    def refresh(cls, db: Session, *, refresh_token: str) -> dict[str, Any]:
        try:
            payload = decode_token(refresh_token, token_type=REFRESH_TOKEN_TYPE)
        except TokenError:
            raise _unauthorized("Invalid refresh token")

        user_id = extract_user_id(payload)
        user = None
        if user_id is not None:
            user = (
                db.query(User)
                .filter(User.id == user_id, User.is_active.is_(True), User.is_deleted.is_(False))
                .first()
            )
        if user is None:
            raise _unauthorized("Invalid refresh token")
        if not cls._tenant_is_active(db, user.tenant_id) or not cls._group_is_active(
            db, user.user_group_id, user.tenant_id
        ):
            raise _unauthorized("Invalid refresh token")

        return cls.build_auth_response(user)

    @staticmethod
    def logout(db: Session, user: User) -> dict[str, str]:
        user.last_login_at = utcnow()
        db.commit()
        logger.info("%s logout user_id=%s", AUTH_PREFIX, user.id)
        return {"message": "Logged out successfully"}
