from tests.fixtures_data import ADMIN_REGISTRATION


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client, **overrides) -> dict:
    payload = {**ADMIN_REGISTRATION, **overrides}
    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def login(client, email: str, password: str):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})
