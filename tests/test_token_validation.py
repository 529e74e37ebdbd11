from datetime import timedelta

from jose import jwt

from app.core.config import JWT_ALGORITHM, JWT_SECRET_KEY
from app.core.timeutils import utcnow
from app.models.tenant import Tenant
from app.models.user import User
from app.models.user_group import UserGroup
from app.services.auth import ACCESS_TOKEN_TYPE, create_token
from tests.api_helpers import bearer, register

PROFILE_URL = "/api/v1/auth/profile"


def test_missing_and_garbage_tokens_are_rejected(client):
    missing = client.get(PROFILE_URL)
    garbage = client.get(PROFILE_URL, headers=bearer("not-a-jwt"))

    assert missing.status_code == 401
    assert garbage.status_code == 401
    assert garbage.json()["detail"] == "Invalid or expired token"
    assert garbage.headers["WWW-Authenticate"] == "Bearer"


def test_expired_token_is_rejected(client, admin):
    expired = create_token(
        {"sub": str(admin["id"]), "tenantId": admin["tenant_id"], "userGroupId": admin["group_id"]},
        token_type=ACCESS_TOKEN_TYPE,
        expires_seconds=-10,
    )

    response = client.get(PROFILE_URL, headers=bearer(expired))

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_refresh_token_cannot_be_used_as_access_token(client):
    body = register(client)

    response = client.get(PROFILE_URL, headers=bearer(body["refreshToken"]))

    assert response.status_code == 401


def test_token_signed_with_other_key_is_rejected(client, admin):
    forged = jwt.encode(
        {"sub": str(admin["id"]), "type": "access", "exp": int((utcnow() + timedelta(hours=1)).timestamp())},
        "someone-else",
        algorithm=JWT_ALGORITHM,
    )

    response = client.get(PROFILE_URL, headers=bearer(forged))

    assert response.status_code == 401


def test_claims_in_token_do_not_override_stored_tenant(client, admin):
    # tenantId no token é ignorado; o tenant vem do banco
    token = jwt.encode(
        {
            "sub": str(admin["id"]),
            "tenantId": 999,
            "type": "access",
            "exp": int((utcnow() + timedelta(hours=1)).timestamp()),
        },
        JWT_SECRET_KEY,
        algorithm=JWT_ALGORITHM,
    )

    response = client.get(PROFILE_URL, headers=bearer(token))

    assert response.status_code == 200
    assert response.json()["tenant"]["id"] == admin["tenant_id"]


def test_inactive_user_is_rejected(client, db, admin):
    db.query(User).filter(User.id == admin["id"]).update({User.is_active: False})
    db.commit()

    response = client.get(PROFILE_URL, headers=admin["headers"])

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token or user not found"


def test_deleted_user_is_rejected(client, db, admin):
    db.query(User).filter(User.id == admin["id"]).update({User.is_deleted: True})
    db.commit()

    response = client.get(PROFILE_URL, headers=admin["headers"])

    assert response.status_code == 401


def test_inactive_tenant_is_rejected(client, db, admin):
    db.query(Tenant).filter(Tenant.id == admin["tenant_id"]).update({Tenant.is_active: False})
    db.commit()

    response = client.get(PROFILE_URL, headers=admin["headers"])

    assert response.status_code == 401
    assert response.json()["detail"] == "Tenant not found or inactive"


def test_inactive_group_is_rejected(client, db, admin):
    db.query(UserGroup).filter(UserGroup.id == admin["group_id"]).update({UserGroup.is_active: False})
    db.commit()

    response = client.get(PROFILE_URL, headers=admin["headers"])

    assert response.status_code == 401
    assert response.json()["detail"] == "User group not found or inactive"


def test_authenticated_request_records_last_activity(client, db, admin):
    db.query(User).filter(User.id == admin["id"]).update({User.last_login_at: None})
    db.commit()

    response = client.get(PROFILE_URL, headers=admin["headers"])

    assert response.status_code == 200
    db.expire_all()
    user = db.query(User).filter(User.id == admin["id"]).one()
    assert user.last_login_at is not None
