# app/deps.py
from __future__ import annotations

import logging
from typing import Iterable

from fastapi import BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX
from app.core.database import get_db
from app.core.permissions import Permission
from app.core.request_context import bind_principal
from app.models.tenant import Tenant
from app.models.user import User
from app.models.user_group import UserGroup
from app.services.activity import ActivityTracker, get_activity_tracker
from app.services.auth import ACCESS_TOKEN_TYPE, TokenError, decode_token, extract_user_id
from app.services.authorization_service import AuthorizationService

# Swagger "Authorize" (OAuth2 password flow) vai chamar este endpoint:
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{API_PREFIX}/auth/token")

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def load_principal(db: Session, payload: dict) -> User:
    """Re-load user, tenant and group by the ids in the token.

    Only ids are taken from the token; everything else comes from storage.
    """
    user_id = extract_user_id(payload)
    if user_id is None:
        raise _unauthorized("Invalid token or user not found")

    user = (
        db.query(User)
        .filter(User.id == user_id, User.is_active.is_(True), User.is_deleted.is_(False))
        .first()
    )
    if not user:
        raise _unauthorized("Invalid token or user not found")

    tenant = (
        db.query(Tenant)
        .filter(Tenant.id == user.tenant_id, Tenant.is_active.is_(True), Tenant.is_deleted.is_(False))
        .first()
    )
    if not tenant:
        raise _unauthorized("Tenant not found or inactive")

    group = (
        db.query(UserGroup)
        .filter(
            UserGroup.id == user.user_group_id,
            UserGroup.tenant_id == user.tenant_id,
            UserGroup.is_active.is_(True),
            UserGroup.is_deleted.is_(False),
        )
        .first()
    )
    if not group:
        raise _unauthorized("User group not found or inactive")

    return user


def get_current_user(
    request: Request,
    background_tasks: BackgroundTasks,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    tracker: ActivityTracker = Depends(get_activity_tracker),
) -> User:
    """Lê o JWT, valida e retorna o usuário ativo do banco."""
    try:
        payload = decode_token(token, token_type=ACCESS_TOKEN_TYPE)
    except TokenError:
        raise _unauthorized("Invalid or expired token")

    user = load_principal(db, payload)

    request.state.user = user
    request.state.tenant_id = user.tenant_id
    request.state.user_id = user.id
    bind_principal(user)
    background_tasks.add_task(tracker.touch, user.id)
    return user


def require_permission(*permissions: Permission | Iterable[Permission]):
    """Dependency factory: the user must hold every listed capability."""
    required: list[Permission] = []
    for entry in permissions:
        if isinstance(entry, Permission):
            required.append(entry)
        else:
            required.extend(entry)

    def _dependency(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        for permission in required:
            AuthorizationService.ensure_permission(user=user, permission=permission, request=request)
        return user

    return _dependency
