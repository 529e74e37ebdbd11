import os

# precisa vir antes de qualquer import de app.*
os.environ["ENV"] = "test"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["WHATSAPP_PROVIDER"] = "mock"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["JWT_REFRESH_SECRET_KEY"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["WAHA_WEBHOOK_SECRET"] = ""
os.environ["LOG_FORMAT"] = "text"
os.environ["BOOTSTRAP_ADMIN_EMAIL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.services.activity import ActivityTracker, get_activity_tracker
from app.whatsapp.mock_provider import MockWhatsAppGateway
from app.whatsapp.service import WhatsAppService, get_whatsapp_service
from tests.api_helpers import bearer, login, register
from tests.fixtures_data import MEMBER_PASSWORD
import app.models  # noqa: F401


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return MockWhatsAppGateway()


@pytest.fixture
def client(monkeypatch, session_factory, gateway):
    from app import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    service = WhatsAppService(gateway, app_url="http://testserver")
    tracker = ActivityTracker(session_factory)

    main.app.dependency_overrides[get_db] = _get_db
    main.app.dependency_overrides[get_whatsapp_service] = lambda: service
    main.app.dependency_overrides[get_activity_tracker] = lambda: tracker

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()


@pytest.fixture
def admin(client):
    """Primeiro usuário do tenant: cai no grupo admin criado no registro."""
    body = register(client)
    return {
        "id": body["user"]["id"],
        "tenant_id": body["user"]["tenantId"],
        "group_id": body["user"]["userGroupId"],
        "token": body["accessToken"],
        "headers": bearer(body["accessToken"]),
    }


@pytest.fixture
def make_member(client, admin):
    """Cria um grupo do tipo solicitado e um usuário nele; devolve headers do usuário."""
    counter = {"n": 0}

    def _make(group_type: str = "viewer", custom_permissions: dict | None = None) -> dict:
        counter["n"] += 1
        group = client.post(
            "/api/v1/user-groups",
            json={
                "name": f"{group_type}-{counter['n']}",
                "groupType": group_type,
                "customPermissions": custom_permissions or {},
            },
            headers=admin["headers"],
        )
        assert group.status_code == 201, group.text
        email = f"{group_type}{counter['n']}@example.com"
        created = client.post(
            "/api/v1/users",
            json={
                "email": email,
                "password": MEMBER_PASSWORD,
                "firstName": "Membro",
                "lastName": group_type.title(),
                "userGroupId": group.json()["id"],
            },
            headers=admin["headers"],
        )
        assert created.status_code == 201, created.text
        logged_in = login(client, email, MEMBER_PASSWORD)
        assert logged_in.status_code == 200, logged_in.text
        return {
            "id": created.json()["id"],
            "group_id": group.json()["id"],
            "email": email,
            "headers": bearer(logged_in.json()["accessToken"]),
        }

    return _make


@pytest.fixture
def connected_device(client, admin, gateway):
    created = client.post("/api/v1/whatsapp/devices", json={"deviceName": "loja"}, headers=admin["headers"])
    assert created.status_code == 201, created.text
    device_id = created.json()["deviceId"]
    assert client.post(f"/api/v1/whatsapp/devices/{device_id}/qr", headers=admin["headers"]).status_code == 200
    gateway.mark_connected(device_id, "5511900000000")
    status_response = client.get(f"/api/v1/whatsapp/devices/{device_id}/status", headers=admin["headers"])
    assert status_response.json()["status"] == "connected"
    return device_id
