from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.config import DEFAULT_GROUP_NAME, DEFAULT_MEMBER_GROUP_NAME, DEFAULT_TENANT_NAME
from app.core.permissions import GroupType
from app.models.tenant import Tenant
from app.models.user_group import UserGroup

logger = logging.getLogger(__name__)
RESOLVER_PREFIX = "[TENANT_RESOLVER]"
DEFAULT_TENANT_DESCRIPTION = "Default tenant for the application"


class TenantResolver:
    """Find or lazily create the tenant and user group a new account lands in.

    Only used on registration so a fresh install needs no pre-provisioning.
    Nothing here commits: rows are flushed so the caller can keep tenant,
    group and user inside one transaction.
    """

    @staticmethod
    def _active_tenants(db: Session):
        return db.query(Tenant).filter(Tenant.is_active.is_(True), Tenant.is_deleted.is_(False))

    @staticmethod
    def _active_groups(db: Session):
        return db.query(UserGroup).filter(UserGroup.is_active.is_(True), UserGroup.is_deleted.is_(False))

    @classmethod
    def resolve_or_create_tenant(cls, db: Session) -> Tenant:
        tenant = cls._active_tenants(db).order_by(Tenant.id.asc()).first()
        if tenant:
            return tenant
        return cls.create_tenant(db, name=DEFAULT_TENANT_NAME, description=DEFAULT_TENANT_DESCRIPTION)

    @staticmethod
    def find_tenant_by_name(db: Session, name: str) -> Tenant | None:
        # nome é único na tabela inteira, inclusive inativos e removidos
        return db.query(Tenant).filter(Tenant.name == name.strip()).first()

    @classmethod
    def resolve_or_create_named_tenant(cls, db: Session, name: str) -> Tenant:
        normalized = (name or "").strip()
        if not normalized:
            return cls.resolve_or_create_tenant(db)

        tenant = cls.find_tenant_by_name(db, normalized)
        if tenant is None:
            return cls.create_tenant(db, name=normalized)
        if not tenant.is_active or tenant.is_deleted:
            raise ValueError(f"Tenant {normalized!r} is inactive")
        return tenant

    @staticmethod
    def create_tenant(db: Session, *, name: str, description: str | None = None) -> Tenant:
        tenant = Tenant(name=name, description=description, settings={}, is_active=True, is_deleted=False)
        db.add(tenant)
        db.flush()
        logger.info("%s tenant created id=%s name=%s", RESOLVER_PREFIX, tenant.id, tenant.name)
        return tenant

    @classmethod
    def resolve_or_create_group(
        cls,
        db: Session,
        tenant_id: int | None = None,
        *,
        default_group_type: GroupType = GroupType.VIEWER,
    ) -> UserGroup:
        query = cls._active_groups(db)
        if tenant_id is not None:
            query = query.filter(UserGroup.tenant_id == tenant_id)
        group = query.order_by(UserGroup.id.asc()).first()
        if group:
            return group

        if tenant_id is None:
            tenant_id = cls.resolve_or_create_tenant(db).id

        group = UserGroup(
            tenant_id=tenant_id,
            name=DEFAULT_GROUP_NAME,
            group_type=default_group_type.value,
            custom_permissions={},
            is_active=True,
            is_deleted=False,
        )
        db.add(group)
        db.flush()
        logger.info(
            "%s group created id=%s tenant_id=%s type=%s",
            RESOLVER_PREFIX,
            group.id,
            tenant_id,
            group.group_type,
        )
        return group

    @classmethod
    def resolve_or_create_member_group(cls, db: Session, tenant_id: int) -> UserGroup:
        """Viewer-level group for accounts joining a tenant someone else created."""
        candidates = (
            cls._active_groups(db)
            .filter(UserGroup.tenant_id == tenant_id, UserGroup.group_type == GroupType.VIEWER.value)
            .order_by(UserGroup.id.asc())
            .all()
        )
        for group in candidates:
            if not group.custom_permissions:
                return group

        group = UserGroup(
            tenant_id=tenant_id,
            name=DEFAULT_MEMBER_GROUP_NAME,
            group_type=GroupType.VIEWER.value,
            custom_permissions={},
            is_active=True,
            is_deleted=False,
        )
        db.add(group)
        db.flush()
        logger.info("%s member group created id=%s tenant_id=%s", RESOLVER_PREFIX, group.id, tenant_id)
        return group


def resolve_or_create_tenant(db: Session) -> Tenant:
    return TenantResolver.resolve_or_create_tenant(db)


def resolve_or_create_group(
    db: Session,
    tenant_id: int | None = None,
    *,
    default_group_type: GroupType = GroupType.VIEWER,
) -> UserGroup:
    return TenantResolver.resolve_or_create_group(db, tenant_id, default_group_type=default_group_type)
