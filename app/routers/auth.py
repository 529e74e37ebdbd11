# app/routers/auth.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX
from app.core.database import get_db
from app.core.permissions import effective_permissions
from app.deps import get_current_user
from app.models.user import User
from app.schemas.common import CamelModel, MessageResponse
from app.services.auth_service import CredentialService

router = APIRouter(prefix=f"{API_PREFIX}/auth", tags=["auth"])


class RegisterPayload(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    tenant_name: Optional[str] = None


class LoginPayload(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshPayload(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class AuthUser(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    tenant_id: int
    user_group_id: int


class AuthResponse(CamelModel):
    access_token: str
    refresh_token: str
    expires_in: int
    user: AuthUser


class TokenResponse(BaseModel):
    """Formato OAuth2 (snake_case) para o botão "Authorize" do Swagger."""

    access_token: str
    token_type: str = "bearer"


class ProfileTenant(CamelModel):
    id: int
    name: str


class ProfileGroup(CamelModel):
    id: int
    name: str
    group_type: str
    permissions: Dict[str, bool]


class ProfileResponse(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    is_email_verified: bool
    last_login_at: Optional[datetime] = None
    tenant: ProfileTenant
    user_group: ProfileGroup


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterPayload, db: Session = Depends(get_db)):
    return CredentialService.register(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone_number=payload.phone_number,
        tenant_name=payload.tenant_name,
    )


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    return CredentialService.login(db, email=payload.email, password=payload.password)


@router.post("/token", response_model=TokenResponse, include_in_schema=False)
def token(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    result = CredentialService.login(db, email=form.username, password=form.password)
    return {"access_token": result["access_token"], "token_type": "bearer"}


@router.post("/refresh", response_model=AuthResponse)
def refresh(payload: RefreshPayload, db: Session = Depends(get_db)):
    return CredentialService.refresh(db, refresh_token=payload.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return CredentialService.logout(db, user)


@router.get("/profile", response_model=ProfileResponse)
def profile(user: User = Depends(get_current_user)):
    group = user.user_group
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone_number": user.phone_number,
        "is_email_verified": bool(user.is_email_verified),
        "last_login_at": user.last_login_at,
        "tenant": {"id": user.tenant.id, "name": user.tenant.name},
        "user_group": {
            "id": group.id,
            "name": group.name,
            "group_type": group.group_type,
            "permissions": effective_permissions(group.group_type, group.custom_permissions),
        },
    }
