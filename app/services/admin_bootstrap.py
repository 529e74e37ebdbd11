from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.core.permissions import GroupType
from app.models.user import User
from app.models.user_group import UserGroup
from app.services.auth import hash_password
from app.services.tenant_resolver import TenantResolver

ADMIN_GROUP_NAME = "Administrators"


def ensure_tables(engine: Engine) -> None:
    inspector = inspect(engine)
    missing = [table for table in ("tenants", "user_groups", "users") if not inspector.has_table(table)]
    if missing:
        raise RuntimeError(
            f"Tabelas ausentes: {', '.join(missing)}. Rode `alembic upgrade head` primeiro."
        )


def _admin_group(db: Session, tenant_id: int) -> UserGroup:
    group = (
        db.query(UserGroup)
        .filter(
            UserGroup.tenant_id == tenant_id,
            UserGroup.group_type == GroupType.ADMIN.value,
            UserGroup.is_active.is_(True),
            UserGroup.is_deleted.is_(False),
        )
        .order_by(UserGroup.id.asc())
        .first()
    )
    if group:
        return group
    group = UserGroup(
        tenant_id=tenant_id,
        name=ADMIN_GROUP_NAME,
        group_type=GroupType.ADMIN.value,
        custom_permissions={},
        is_active=True,
        is_deleted=False,
    )
    db.add(group)
    db.flush()
    return group


def bootstrap_admin(
    db: Session,
    *,
    email: str,
    password: str | None,
    tenant_name: str | None = None,
    first_name: str = "Admin",
    last_name: str = "User",
) -> tuple[User, bool]:
    """Create (or refresh) an admin account together with its tenant and group.

    Everything is committed at once; an existing user with the same email in
    the tenant is moved to the admin group and re-activated.
    """
    normalized_email = email.strip().lower()
    try:
        if tenant_name:
            tenant = TenantResolver.resolve_or_create_named_tenant(db, tenant_name)
        else:
            tenant = TenantResolver.resolve_or_create_tenant(db)
        group = _admin_group(db, tenant.id)

        existing = (
            db.query(User)
            .filter(
                User.tenant_id == tenant.id,
                User.email == normalized_email,
                User.is_deleted.is_(False),
            )
            .first()
        )
        if existing:
            existing.user_group_id = group.id
            existing.is_active = True
            if password:
                existing.password_hash = hash_password(password)
            db.commit()
            db.refresh(existing)
            return existing, False

        if not password:
            raise ValueError("Senha é obrigatória para criar um novo admin.")

        user = User(
            email=normalized_email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            tenant_id=tenant.id,
            user_group_id=group.id,
            is_active=True,
            is_email_verified=True,
            is_deleted=False,
        )
        db.add(user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user, True
