from fastapi.testclient import TestClient

from app.db import crud
from tests.conftest import PASSWORD, TEST_USERS, TestingSessionLocal, login, unique


def _register(client: TestClient, email: str, password: str = "secret123"):
    return client.post(
        "/api/auth/register",
        json={"first_name": "New", "last_name": "Member", "email": email, "password": password},
    )


def test_login(client: TestClient):
    response = client.post(
        "/api/auth/token", data={"username": TEST_USERS["member"][0], "password": PASSWORD}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]


def test_login_email_is_case_insensitive(client: TestClient):
    response = client.post(
        "/api/auth/token", data={"username": TEST_USERS["member"][0].upper(), "password": PASSWORD}
    )
    assert response.status_code == 200


def test_login_wrong_password(client: TestClient):
    response = client.post(
        "/api/auth/token", data={"username": TEST_USERS["member"][0], "password": "wrong"}
    )
    assert response.status_code == 401


def test_register_starts_pending(client: TestClient):
    email = f"{unique('reg')}@pharmzone.test"
    response = _register(client, email)
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == email
    assert data["status"] == "pending"
    assert data["role"] == "member"
    assert data["is_approved"] is False


def test_register_duplicate_email(client: TestClient):
    response = _register(client, TEST_USERS["member"][0].upper())
    assert response.status_code == 409


def test_register_invalid_email(client: TestClient):
    response = _register(client, "not-an-email")
    assert response.status_code == 422
    assert "email" in response.json()["detail"]


def test_pending_user_cannot_login(client: TestClient):
    email = f"{unique('pending')}@pharmzone.test"
    _register(client, email)
    response = client.post("/api/auth/token", data={"username": email, "password": "secret123"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Your account is pending"


def test_get_me(member_client: TestClient):
    response = member_client.get("/api/auth/me")
    assert response.status_code == 200
    assert response.json()["email"] == TEST_USERS["member"][0]


def test_me_requires_token(client: TestClient):
    assert client.get("/api/auth/me").status_code == 401


def test_update_me(member_client: TestClient):
    response = member_client.put("/api/auth/me", json={"phone": "08000000000"})
    assert response.status_code == 200
    assert response.json()["phone"] == "08000000000"


def test_change_password_rejects_wrong_current(client: TestClient, auth_client: TestClient):
    email = f"{unique('pw')}@pharmzone.test"
    user_id = _register(client, email).json()["id"]
    auth_client.put(f"/api/users/{user_id}/approve")
    user_client = login(client, email, "secret123")

    response = user_client.post(
        "/api/auth/change-password", json={"current_password": "nope", "new_password": "another1"}
    )
    assert response.status_code == 400

    response = user_client.post(
        "/api/auth/change-password", json={"current_password": "secret123", "new_password": "another1"}
    )
    assert response.status_code == 200
    login(client, email, "another1")


def test_forgot_password_does_not_reveal_accounts(client: TestClient):
    known = client.post("/api/auth/forgot-password", json={"email": TEST_USERS["other_member"][0]})
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@pharmzone.test"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


def test_reset_password(client: TestClient, auth_client: TestClient):
    email = f"{unique('reset')}@pharmzone.test"
    user_id = _register(client, email).json()["id"]
    auth_client.put(f"/api/users/{user_id}/approve")

    db = TestingSessionLocal()
    try:
        token = crud.create_password_reset_token(db, crud.get_user_by_email(db, email))
    finally:
        db.close()

    response = client.post("/api/auth/reset-password", json={"token": token, "password": "brandnew1"})
    assert response.status_code == 200
    login(client, email, "brandnew1")

    # tokens are single use
    response = client.post("/api/auth/reset-password", json={"token": token, "password": "again123"})
    assert response.status_code == 400


def test_reset_password_invalid_token(client: TestClient):
    response = client.post("/api/auth/reset-password", json={"token": "0" * 40, "password": "whatever1"})
    assert response.status_code == 400
