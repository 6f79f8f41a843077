from datetime import datetime

from fastapi.testclient import TestClient

from app.db import crud
from app.db.models import Due
from tests.conftest import TestingSessionLocal, create_due, create_due_type, create_pharmacy


def test_create_due(treasurer_client: TestClient, auth_client: TestClient):
    pharmacy = create_pharmacy(auth_client)
    due_type = create_due_type(treasurer_client)
    data = create_due(treasurer_client, pharmacy["id"], due_type["id"], amount=2500)
    assert data["year"] == 2030
    assert data["total_amount"] == 2500
    assert data["balance"] == 2500
    assert data["payment_status"] == "pending"
    assert data["due_type_name"] == due_type["name"]
    assert data["pharmacy_name"] == pharmacy["name"]


def test_duplicate_due_same_year(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    create_due(treasurer_client, pharmacy["id"], due_type["id"])
    response = treasurer_client.post(
        f"/api/pharmacies/{pharmacy['id']}/dues",
        json={"due_type_id": due_type["id"], "title": "Again", "amount": 10, "due_date": "2030-12-01T00:00:00"},
    )
    assert response.status_code == 400

    # a different year is fine
    create_due(treasurer_client, pharmacy["id"], due_type["id"], due_date="2031-03-31T00:00:00")


def test_create_due_unknown_due_type(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    response = treasurer_client.post(
        f"/api/pharmacies/{pharmacy['id']}/dues",
        json={"due_type_id": 999999, "title": "x", "amount": 10, "due_date": "2030-01-01T00:00:00"},
    )
    assert response.status_code == 404


def test_past_due_date_is_overdue(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    data = create_due(treasurer_client, pharmacy["id"], due_type["id"], due_date="2020-01-31T00:00:00")
    assert data["payment_status"] == "overdue"

    overdue = treasurer_client.get("/api/dues/overdue", params={"limit": 100}).json()
    assert data["id"] in [d["id"] for d in overdue["dues"]]


def test_bulk_assign(treasurer_client: TestClient):
    first = create_pharmacy(treasurer_client)
    second = create_pharmacy(treasurer_client, registration_status="pending")
    due_type = create_due_type(treasurer_client)
    response = treasurer_client.post(
        "/api/dues/assign",
        json={
            "due_type_id": due_type["id"],
            "title": "Bulk levy",
            "amount": 1000,
            "due_date": "2030-06-30T00:00:00",
            "assignment_type": "bulk",
        },
    )
    assert response.status_code == 200
    data = response.json()
    assigned = {d["pharmacy_id"] for d in data["dues"]}
    assert first["id"] in assigned
    # only active pharmacies take part in a bulk assignment
    assert second["id"] not in assigned
    assert data["created"] == len(data["dues"])


def test_individual_assign_reports_duplicates(treasurer_client: TestClient):
    first = create_pharmacy(treasurer_client)
    second = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    create_due(treasurer_client, first["id"], due_type["id"], due_date="2030-01-15T00:00:00")

    response = treasurer_client.post(
        "/api/dues/assign",
        json={
            "due_type_id": due_type["id"],
            "title": "Levy",
            "amount": 300,
            "due_date": "2030-06-30T00:00:00",
            "assignment_type": "individual",
            "pharmacy_ids": [first["id"], second["id"], 999999],
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["created"] == 1
    assert data["errors"] == 2
    assert {e["pharmacy_id"] for e in data["error_details"]} == {first["id"], 999999}


def test_individual_assign_needs_pharmacies(treasurer_client: TestClient):
    due_type = create_due_type(treasurer_client)
    response = treasurer_client.post(
        "/api/dues/assign",
        json={
            "due_type_id": due_type["id"],
            "title": "Levy",
            "amount": 300,
            "due_date": "2030-06-30T00:00:00",
            "assignment_type": "individual",
        },
    )
    assert response.status_code == 400


def test_member_sees_only_own_dues(auth_client: TestClient, member_client: TestClient,
                                  other_member_client: TestClient, user_ids):
    pharmacy = create_pharmacy(auth_client, user_id=user_ids["member"])
    due_type = create_due_type(auth_client)
    due = create_due(auth_client, pharmacy["id"], due_type["id"])

    assert member_client.get(f"/api/dues/{due['id']}").status_code == 200
    assert other_member_client.get(f"/api/dues/{due['id']}").status_code == 403
    assert member_client.get("/api/dues").status_code == 403

    dues = member_client.get(f"/api/pharmacies/{pharmacy['id']}/dues").json()
    assert [d["id"] for d in dues] == [due["id"]]


def test_list_dues_filters(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"])
    response = treasurer_client.get("/api/dues", params={"pharmacy_id": pharmacy["id"], "year": 2030})
    assert response.status_code == 200
    assert [d["id"] for d in response.json()["dues"]] == [due["id"]]


def test_penalty_raises_total(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"], amount=1000)
    response = treasurer_client.post(f"/api/dues/{due['id']}/penalty", json={"amount": 250, "reason": "Late"})
    assert response.status_code == 200
    data = response.json()
    assert data["total_amount"] == 1250
    assert data["balance"] == 1250
    assert data["penalties"][0]["reason"] == "Late"


def test_update_due(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"], amount=1000)
    response = treasurer_client.put(f"/api/dues/{due['id']}", json={"amount": 1500})
    assert response.status_code == 200
    assert response.json()["balance"] == 1500


def test_update_due_year_clash(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    create_due(treasurer_client, pharmacy["id"], due_type["id"], due_date="2031-01-31T00:00:00")
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"])
    response = treasurer_client.put(f"/api/dues/{due['id']}", json={"due_date": "2031-05-01T00:00:00"})
    assert response.status_code == 400


def test_mark_paid_and_certificate(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"], amount=800)

    assert treasurer_client.get(f"/api/dues/{due['id']}/certificate").status_code == 400

    response = treasurer_client.patch(f"/api/dues/{due['id']}/pay")
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"
    assert response.json()["balance"] == 0

    response = treasurer_client.get(f"/api/dues/{due['id']}/certificate")
    assert response.status_code == 200
    data = response.json()
    assert data["certificate_number"] == f"CERT-2030-{due['id']:06d}"
    assert data["pharmacy"]["name"] == pharmacy["name"]
    assert data["amount_paid"] == 800


def test_delete_due(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"])
    assert treasurer_client.delete(f"/api/dues/{due['id']}").status_code == 200
    assert treasurer_client.get(f"/api/dues/{due['id']}").status_code == 404


def test_analytics(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    create_due(treasurer_client, pharmacy["id"], due_type["id"], amount=400, due_date="2035-01-31T00:00:00")

    response = treasurer_client.get("/api/dues/analytics", params={"year": 2035})
    assert response.status_code == 200
    data = response.json()
    assert data["year"] == 2035
    assert data["summary"]["total_amount"] >= 400
    assert due_type["id"] in [row["due_type_id"] for row in data["dues_by_type"]]

    response = treasurer_client.get(f"/api/dues/analytics/pharmacy/{pharmacy['id']}")
    assert response.status_code == 200
    assert response.json()["outstanding"] == 400


def test_mark_overdue_dues(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"], due_date="2030-02-01T00:00:00")

    db = TestingSessionLocal()
    try:
        assert crud.mark_overdue_dues(db, now=datetime(2030, 2, 2)) >= 1
        assert db.query(Due).filter(Due.id == due["id"]).one().payment_status.value == "overdue"
    finally:
        db.close()


def test_update_due_ignores_nulls_for_required_fields(treasurer_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"], amount=1200)
    response = treasurer_client.put(
        f"/api/dues/{due['id']}", json={"amount": None, "title": None, "due_date": None}
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["amount"] == 1200
    assert data["title"] == due["title"]
    assert data["due_date"] == due["due_date"]
    assert data["balance"] == 1200
