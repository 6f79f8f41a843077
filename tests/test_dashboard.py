from fastapi.testclient import TestClient

from tests.conftest import create_due, create_due_type, create_pharmacy, unique


def test_overview(treasurer_client: TestClient, secretary_client: TestClient, admin_client: TestClient):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    create_due(treasurer_client, pharmacy["id"], due_type["id"])
    event = secretary_client.post(
        "/api/events",
        json={
            "title": unique("Dashboard event"),
            "description": "Visible on the dashboard",
            "start_date": "2029-01-10T09:00:00",
            "end_date": "2029-01-10T12:00:00",
            "location": {"name": "Hall"},
            "status": "published",
        },
    ).json()
    admin_client.post(
        "/api/elections",
        json={"title": unique("Running"), "description": "x",
              "start_date": "2020-01-01T00:00:00", "end_date": "2099-01-01T00:00:00"},
    )

    response = secretary_client.get("/api/dashboard/overview")
    assert response.status_code == 200
    data = response.json()
    assert data["users"]["total"] >= 6
    assert data["users"]["active"] <= data["users"]["total"]
    assert data["pharmacies"]["total"] >= 1
    assert data["dues"]["total_dues"] >= 0
    assert data["pending_payments"] >= 0
    assert len(data["upcoming_events"]) <= 5
    assert event["id"] in [e["id"] for e in data["upcoming_events"]]
    assert data["active_elections"]
    assert all(e["status"] == "ongoing" for e in data["active_elections"])
    assert 0 < len(data["recent_activity"]) <= 10


def test_members_have_no_dashboard(member_client: TestClient):
    assert member_client.get("/api/dashboard/overview").status_code == 403


def test_member_dashboard(member_client: TestClient, other_member_client: TestClient,
                          treasurer_client: TestClient):
    pharmacy = create_pharmacy(member_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"])
    payment = member_client.post(
        f"/api/pharmacies/{pharmacy['id']}/dues/{due['id']}/payments",
        json={"amount": 2000, "payment_method": "bank_transfer",
              "receipt_url": "https://files.pharmzone.test/receipts/dashboard.pdf"},
    ).json()

    response = member_client.get("/api/dashboard/me")
    assert response.status_code == 200
    data = response.json()
    assert data["pharmacies"] >= 1
    assert data["financial"]["total_due"] >= 5000
    assert data["financial"]["remaining_balance"] <= data["financial"]["total_due"]
    attendance = data["attendance"]
    assert attendance["attended"] + attendance["missed"] == attendance["total_meetings"]
    assert data["upcoming_events"] >= 0
    assert payment["id"] in [p["id"] for p in data["recent_payments"]]

    mine = member_client.get("/api/dashboard/me/payments").json()
    assert payment["id"] in [p["id"] for p in mine["payments"]]
    assert mine["total"] >= 1

    theirs = other_member_client.get("/api/dashboard/me/payments", params={"limit": 100}).json()
    assert payment["id"] not in [p["id"] for p in theirs["payments"]]
