from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt

from app.core.config import (
    BCRYPT_ROUNDS,
    JWT_ALGORITHM,
    JWT_EXPIRES_IN,
    JWT_REFRESH_EXPIRES_IN,
    JWT_REFRESH_SECRET_KEY,
    JWT_SECRET_KEY,
)
from app.core.timeutils import utcnow

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(ValueError):
    """Token ausente, malformado, expirado ou do tipo errado."""


# =========================
# PASSWORD (bcrypt direto, sem passlib)
# =========================
def _normalize_password_for_bcrypt(password: str) -> bytes:
    # bcrypt só considera até 72 bytes
    return (password or "").encode("utf-8")[:72]


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_normalize_password_for_bcrypt(password), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            _normalize_password_for_bcrypt(plain_password),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # hash corrompido ou em outro formato
        return False


# =========================
# JWT HELPERS
# =========================
def _secret_for(token_type: str) -> str:
    return JWT_REFRESH_SECRET_KEY if token_type == REFRESH_TOKEN_TYPE else JWT_SECRET_KEY


def build_claims(user) -> Dict[str, Any]:
    return {
        "sub": str(user.id),
        "email": user.email,
        "tenantId": user.tenant_id,
        "userGroupId": user.user_group_id,
    }


def create_token(
    claims: Dict[str, Any],
    *,
    token_type: str,
    expires_seconds: Optional[int] = None,
) -> str:
    """
    "sub" precisa ser STRING (senão o jose recusa com 'Subject must be a string').
    """
    if expires_seconds is None:
        expires_seconds = JWT_REFRESH_EXPIRES_IN if token_type == REFRESH_TOKEN_TYPE else JWT_EXPIRES_IN
    now = utcnow()
    payload: Dict[str, Any] = dict(claims)
    payload.update(
        {
            "sub": str(claims["sub"]),
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=expires_seconds)).timestamp()),
        }
    )
    return jwt.encode(payload, _secret_for(token_type), algorithm=JWT_ALGORITHM)


def create_token_pair(user) -> Dict[str, Any]:
    claims = build_claims(user)
    return {
        "access_token": create_token(claims, token_type=ACCESS_TOKEN_TYPE),
        "refresh_token": create_token(claims, token_type=REFRESH_TOKEN_TYPE),
        "expires_in": JWT_EXPIRES_IN,
    }


def decode_token(token: str, *, token_type: str = ACCESS_TOKEN_TYPE) -> Dict[str, Any]:
    """
    Retorna o payload do JWT ou levanta TokenError se inválido.
    """
    if not token:
        raise TokenError("Token ausente")
    try:
        payload = jwt.decode(token, _secret_for(token_type), algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise TokenError("Token inválido ou expirado") from exc

    # Tokens antigos sem "type" são tratados como access.
    if payload.get("type", ACCESS_TOKEN_TYPE) != token_type:
        raise TokenError("Tipo de token inválido")
    return payload


def extract_user_id(payload: Dict[str, Any]) -> Optional[int]:
    raw = payload.get("sub")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None
