from fastapi.testclient import TestClient

from tests.conftest import create_pharmacy


def test_writes_are_audited(admin_client: TestClient, user_ids):
    pharmacy = create_pharmacy(admin_client)
    response = admin_client.get(
        "/api/audit", params={"resource_type": "pharmacy", "action": "create", "user_id": user_ids["admin"]}
    )
    assert response.status_code == 200
    entries = response.json()["entries"]
    assert entries[0]["resource_id"] == str(pharmacy["id"])
    assert entries[0]["user_id"] == user_ids["admin"]


def test_pagination(admin_client: TestClient):
    create_pharmacy(admin_client)
    create_pharmacy(admin_client)
    data = admin_client.get("/api/audit", params={"limit": 1, "page": 2}).json()
    assert len(data["entries"]) == 1
    assert data["total"] >= 2
    assert data["page"] == 2


def test_audit_is_admin_only(treasurer_client: TestClient, member_client: TestClient):
    assert treasurer_client.get("/api/audit").status_code == 403
    assert member_client.get("/api/audit").status_code == 403
