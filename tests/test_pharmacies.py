from fastapi.testclient import TestClient

from tests.conftest import create_pharmacy, unique


def test_officer_creates_pharmacy_for_member(auth_client: TestClient, user_ids):
    data = create_pharmacy(auth_client, user_id=user_ids["member"])
    assert data["user_id"] == user_ids["member"]
    assert data["registration_status"] == "active"


def test_officer_create_for_unknown_owner(auth_client: TestClient):
    response = auth_client.post(
        "/api/pharmacies",
        json={"name": "Ghost", "registration_number": unique("REG"), "user_id": 999999},
    )
    assert response.status_code == 404


def test_member_registers_own_pharmacy(other_member_client: TestClient, user_ids):
    data = create_pharmacy(other_member_client, user_id=user_ids["member"])
    # members cannot pick the owner nor the status
    assert data["user_id"] == user_ids["other_member"]
    assert data["registration_status"] == "pending"

    mine = other_member_client.get("/api/pharmacies/me").json()
    assert data["id"] in [p["id"] for p in mine]


def test_duplicate_registration_number(auth_client: TestClient):
    pharmacy = create_pharmacy(auth_client)
    response = auth_client.post(
        "/api/pharmacies",
        json={"name": "Copy", "registration_number": pharmacy["registration_number"]},
    )
    assert response.status_code == 409


def test_list_pharmacies(auth_client: TestClient, member_client: TestClient):
    pharmacy = create_pharmacy(auth_client, name=unique("Searchable"))
    response = auth_client.get("/api/pharmacies", params={"search": pharmacy["name"]})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["pharmacies"][0]["id"] == pharmacy["id"]

    assert member_client.get("/api/pharmacies").status_code == 403


def test_pharmacy_access(auth_client: TestClient, member_client: TestClient, other_member_client: TestClient,
                         user_ids):
    pharmacy = create_pharmacy(auth_client, user_id=user_ids["member"])
    assert member_client.get(f"/api/pharmacies/{pharmacy['id']}").status_code == 200
    assert other_member_client.get(f"/api/pharmacies/{pharmacy['id']}").status_code == 403
    assert auth_client.get("/api/pharmacies/999999").status_code == 404


def test_owner_updates_but_cannot_change_status(auth_client: TestClient, member_client: TestClient, user_ids):
    pharmacy = create_pharmacy(auth_client, user_id=user_ids["member"])
    response = member_client.put(f"/api/pharmacies/{pharmacy['id']}", json={"address": "1 New Street"})
    assert response.status_code == 200
    assert response.json()["address"] == "1 New Street"

    response = member_client.put(f"/api/pharmacies/{pharmacy['id']}", json={"registration_status": "active"})
    assert response.status_code == 403

    response = auth_client.put(f"/api/pharmacies/{pharmacy['id']}", json={"registration_status": "suspended"})
    assert response.status_code == 200
    assert response.json()["registration_status"] == "suspended"


def test_update_to_taken_registration_number(auth_client: TestClient):
    first = create_pharmacy(auth_client)
    second = create_pharmacy(auth_client)
    response = auth_client.put(
        f"/api/pharmacies/{second['id']}", json={"registration_number": first["registration_number"]}
    )
    assert response.status_code == 409


def test_pharmacy_stats(auth_client: TestClient):
    create_pharmacy(auth_client)
    response = auth_client.get("/api/pharmacies/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] >= 1
    assert set(data["by_status"]) == {"active", "pending", "expired", "suspended"}
    assert data["total"] == sum(data["by_status"].values())


def test_dues_status(auth_client: TestClient):
    pharmacy = create_pharmacy(auth_client)
    response = auth_client.get("/api/pharmacies/dues-status")
    assert response.status_code == 200
    row = next(r for r in response.json() if r["pharmacy_id"] == pharmacy["id"])
    assert row["dues_count"] == 0
    assert row["outstanding"] == 0


def test_delete_pharmacy(auth_client: TestClient, secretary_client: TestClient):
    pharmacy = create_pharmacy(auth_client)
    assert secretary_client.delete(f"/api/pharmacies/{pharmacy['id']}").status_code == 403
    assert auth_client.delete(f"/api/pharmacies/{pharmacy['id']}").status_code == 200
    assert auth_client.get(f"/api/pharmacies/{pharmacy['id']}").status_code == 404


def test_update_ignores_nulls_for_required_fields(auth_client: TestClient):
    pharmacy = create_pharmacy(auth_client)
    response = auth_client.put(
        f"/api/pharmacies/{pharmacy['id']}", json={"name": None, "registration_number": None}
    )
    assert response.status_code == 200, response.text
    assert response.json()["name"] == pharmacy["name"]
    assert response.json()["registration_number"] == pharmacy["registration_number"]

    # nullable fields can still be cleared
    response = auth_client.put(f"/api/pharmacies/{pharmacy['id']}", json={"address": None})
    assert response.status_code == 200
    assert response.json()["address"] is None
