from fastapi.testclient import TestClient

from tests.conftest import create_due, create_due_type, create_pharmacy, unique


def create_event(client: TestClient, **overrides) -> dict:
    payload = {
        "title": unique("Event"),
        "description": "Quarterly meeting of the chapter",
        "event_type": "meetings",
        "start_date": "2030-05-10T09:00:00",
        "end_date": "2030-05-10T13:00:00",
        "location": {"name": "Pharmacy House", "city": "Ikeja"},
        "status": "published",
    }
    payload.update(overrides)
    response = client.post("/api/events", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_event(secretary_client: TestClient):
    data = create_event(secretary_client, capacity=50)
    assert data["location"]["name"] == "Pharmacy House"
    assert data["registration_count"] == 0
    assert data["is_registered"] is False


def test_create_event_validation(secretary_client: TestClient, member_client: TestClient):
    payload = {
        "title": "Bad dates",
        "description": "x",
        "start_date": "2030-05-10T09:00:00",
        "end_date": "2030-05-09T09:00:00",
        "location": {"name": "Hall"},
    }
    assert secretary_client.post("/api/events", json=payload).status_code == 422

    payload.update(end_date="2030-05-11T09:00:00", requires_payment=True)
    assert secretary_client.post("/api/events", json=payload).status_code == 422

    payload.update(requires_payment=False)
    assert member_client.post("/api/events", json=payload).status_code == 403


def test_drafts_hidden_from_members(secretary_client: TestClient, member_client: TestClient):
    draft = create_event(secretary_client, status="draft")
    published = create_event(secretary_client)

    assert member_client.get(f"/api/events/{draft['id']}").status_code == 404
    assert member_client.get(f"/api/events/{published['id']}").status_code == 200
    assert secretary_client.get(f"/api/events/{draft['id']}").status_code == 200

    ids = [e["id"] for e in member_client.get("/api/events", params={"limit": 100}).json()["events"]]
    assert draft["id"] not in ids


def test_list_events_filters(secretary_client: TestClient):
    workshop = create_event(secretary_client, event_type="workshop", title=unique("Compounding"))
    response = secretary_client.get("/api/events", params={"type": "workshop", "search": workshop["title"]})
    assert [e["id"] for e in response.json()["events"]] == [workshop["id"]]


def test_update_event(secretary_client: TestClient):
    event = create_event(secretary_client)
    response = secretary_client.put(f"/api/events/{event['id']}", json={"organizer": "PSN Lagos"})
    assert response.status_code == 200
    assert response.json()["organizer"] == "PSN Lagos"

    response = secretary_client.put(f"/api/events/{event['id']}", json={"end_date": "2030-05-01T00:00:00"})
    assert response.status_code == 400


def test_register_and_unregister(secretary_client: TestClient, member_client: TestClient):
    event = create_event(secretary_client)
    response = member_client.post(f"/api/events/{event['id']}/register")
    assert response.status_code == 201
    assert response.json()["payment_status"] == "not_required"
    assert response.json()["attendance_status"] == "registered"

    assert member_client.post(f"/api/events/{event['id']}/register").status_code == 400
    data = member_client.get(f"/api/events/{event['id']}").json()
    assert data["registration_count"] == 1
    assert data["is_registered"] is True

    assert member_client.delete(f"/api/events/{event['id']}/register").status_code == 200
    assert member_client.delete(f"/api/events/{event['id']}/register").status_code == 404


def test_register_rules(secretary_client: TestClient, member_client: TestClient,
                        other_member_client: TestClient):
    draft = create_event(secretary_client, status="draft")
    assert member_client.post(f"/api/events/{draft['id']}/register").status_code == 404

    closed = create_event(secretary_client, registration_deadline="2020-01-01T00:00:00")
    response = member_client.post(f"/api/events/{closed['id']}/register")
    assert response.status_code == 400
    assert "deadline" in response.json()["detail"]

    small = create_event(secretary_client, capacity=1)
    assert member_client.post(f"/api/events/{small['id']}/register").status_code == 201
    response = other_member_client.post(f"/api/events/{small['id']}/register")
    assert response.status_code == 400
    assert "capacity" in response.json()["detail"]


def test_attendance_and_attendees(secretary_client: TestClient, member_client: TestClient,
                                  treasurer_client: TestClient, user_ids):
    event = create_event(secretary_client)
    member_client.post(f"/api/events/{event['id']}/register")

    url = f"/api/events/{event['id']}/attendance/{user_ids['member']}"
    assert treasurer_client.put(url, json={"attendance_status": "attended"}).status_code == 403
    response = secretary_client.put(url, json={"attendance_status": "attended"})
    assert response.status_code == 200
    assert response.json()["attendance_status"] == "attended"

    missing = f"/api/events/{event['id']}/attendance/{user_ids['other_member']}"
    assert secretary_client.put(missing, json={"attendance_status": "absent"}).status_code == 404

    attendees = secretary_client.get(f"/api/events/{event['id']}/attendees").json()
    assert [a["user_id"] for a in attendees] == [user_ids["member"]]
    assert attendees[0]["user_email"] == "member@pharmzone.test"
    assert member_client.get(f"/api/events/{event['id']}/attendees").status_code == 403


def test_event_payment(secretary_client: TestClient, member_client: TestClient,
                       treasurer_client: TestClient, user_ids):
    free = create_event(secretary_client)
    member_client.post(f"/api/events/{free['id']}/register")
    url = f"/api/events/{free['id']}/payment/{user_ids['member']}"
    assert treasurer_client.put(url, json={"payment_status": "paid"}).status_code == 400

    paid = create_event(secretary_client, requires_payment=True, registration_fee=2500)
    registration = member_client.post(f"/api/events/{paid['id']}/register").json()
    assert registration["payment_status"] == "pending"

    url = f"/api/events/{paid['id']}/payment/{user_ids['member']}"
    assert secretary_client.put(url, json={"payment_status": "paid"}).status_code == 403
    response = treasurer_client.put(url, json={"payment_status": "paid", "payment_reference": "EVT-42"})
    assert response.status_code == 200
    assert response.json()["payment_reference"] == "EVT-42"

    # paid registrations stay
    assert member_client.delete(f"/api/events/{paid['id']}/register").status_code == 400


def test_cancel_event(secretary_client: TestClient):
    event = create_event(secretary_client)
    response = secretary_client.put(f"/api/events/{event['id']}/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    completed = create_event(secretary_client, status="completed")
    assert secretary_client.put(f"/api/events/{completed['id']}/cancel").status_code == 400


def test_delete_event(secretary_client: TestClient, member_client: TestClient):
    event = create_event(secretary_client)
    member_client.post(f"/api/events/{event['id']}/register")
    assert secretary_client.delete(f"/api/events/{event['id']}").status_code == 200
    assert secretary_client.get(f"/api/events/{event['id']}").status_code == 404


def test_event_stats(secretary_client: TestClient, member_client: TestClient):
    create_event(secretary_client, event_type="seminar")
    data = secretary_client.get("/api/events/stats").json()
    assert data["by_type"]["seminar"] >= 1
    assert data["total"] == sum(data["by_status"].values())
    assert data["upcoming"] >= 1
    assert member_client.get("/api/events/stats").status_code == 403


def test_penalty_config(admin_client: TestClient, secretary_client: TestClient):
    assert admin_client.get("/api/events/penalty-config/2039").status_code == 404
    payload = {
        "penalty_rules": [
            {"min_attendance": 0, "max_attendance": 0, "penalty_type": "multiplier",
             "penalty_value": 2, "description": "No meetings attended"},
        ],
        "default_penalty": {"penalty_type": "fixed", "penalty_value": 0},
    }
    response = admin_client.put("/api/events/penalty-config/2039", json=payload)
    assert response.status_code == 200
    assert response.json()["year"] == 2039
    assert response.json()["penalty_rules"][0]["penalty_type"] == "multiplier"

    payload["is_active"] = False
    admin_client.put("/api/events/penalty-config/2039", json=payload)
    assert admin_client.get("/api/events/penalty-config/2039").json()["is_active"] is False
    assert secretary_client.get("/api/events/penalty-config/2039").status_code == 403

    response = secretary_client.get("/api/events/penalties/2039", params={"base_amount": 1000})
    assert response.status_code == 400


def test_penalty_rule_range_validation(admin_client: TestClient):
    payload = {
        "penalty_rules": [
            {"min_attendance": 3, "max_attendance": 1, "penalty_type": "fixed",
             "penalty_value": 1, "description": "Backwards"},
        ],
        "default_penalty": {"penalty_type": "fixed", "penalty_value": 0},
    }
    assert admin_client.put("/api/events/penalty-config/2038", json=payload).status_code == 422


def test_member_penalties(admin_client: TestClient, secretary_client: TestClient,
                          member_client: TestClient, user_ids):
    for day in (10, 20):
        create_event(secretary_client, start_date=f"2041-03-{day}T09:00:00", end_date=f"2041-03-{day}T12:00:00")
    attended = create_event(secretary_client, start_date="2041-04-01T09:00:00", end_date="2041-04-01T12:00:00")
    member_client.post(f"/api/events/{attended['id']}/register")
    secretary_client.put(
        f"/api/events/{attended['id']}/attendance/{user_ids['member']}", json={"attendance_status": "attended"}
    )

    admin_client.put(
        "/api/events/penalty-config/2041",
        json={
            "penalty_rules": [
                {"min_attendance": 0, "max_attendance": 0, "penalty_type": "multiplier",
                 "penalty_value": 2, "description": "Missed every meeting"},
                {"min_attendance": 1, "max_attendance": 2, "penalty_type": "fixed",
                 "penalty_value": 500, "description": "Missed some meetings"},
            ],
            "default_penalty": {"penalty_type": "fixed", "penalty_value": 0},
        },
    )

    response = secretary_client.get("/api/events/penalties/2041", params={"base_amount": 1000})
    assert response.status_code == 200
    data = response.json()
    assert data["total_meetings"] == 3
    by_user = {p["user_id"]: p for p in data["penalties"]}
    assert by_user[user_ids["member"]]["meetings_attended"] == 1
    assert by_user[user_ids["member"]]["penalty"] == 500
    assert by_user[user_ids["other_member"]]["penalty"] == 2000
    assert by_user[user_ids["other_member"]]["rule"] == "Missed every meeting"
    # officers are not charged
    assert user_ids["secretary"] not in by_user


def test_update_event_ignores_nulls_for_required_fields(secretary_client: TestClient):
    event = create_event(secretary_client, capacity=20, organizer="PSN Lagos")
    url = f"/api/events/{event['id']}"

    response = secretary_client.put(url, json={"start_date": None})
    assert response.status_code == 200
    assert response.json()["start_date"] == event["start_date"]

    response = secretary_client.put(url, json={"title": None, "description": None, "location": None})
    assert response.status_code == 200
    assert response.json()["title"] == event["title"]
    assert response.json()["location"]["name"] == "Pharmacy House"

    # optional fields can still be cleared
    response = secretary_client.put(url, json={"capacity": None, "organizer": None})
    assert response.status_code == 200
    assert response.json()["capacity"] is None
    assert response.json()["organizer"] is None


def test_event_dates_with_mixed_offsets(secretary_client: TestClient):
    event = create_event(secretary_client, start_date="2030-05-10T09:00:00+01:00", end_date="2030-05-10T12:00:00")
    assert event["start_date"] == "2030-05-10T08:00:00"

    payload = {
        "title": "Offsets",
        "description": "x",
        "start_date": "2030-05-10T09:00:00",
        "end_date": "2030-05-10T09:30:00+02:00",
        "location": {"name": "Hall"},
    }
    assert secretary_client.post("/api/events", json=payload).status_code == 422

    response = secretary_client.put(
        f"/api/events/{event['id']}",
        json={"start_date": "2030-05-10T10:00:00", "end_date": "2030-05-10T10:30:00+02:00"},
    )
    assert response.status_code == 422


def test_publish_event(secretary_client: TestClient, member_client: TestClient):
    draft = create_event(secretary_client, status="draft")
    assert member_client.put(f"/api/events/{draft['id']}/publish").status_code == 403

    response = secretary_client.put(f"/api/events/{draft['id']}/publish")
    assert response.status_code == 200
    assert response.json()["status"] == "published"
    assert member_client.get(f"/api/events/{draft['id']}").status_code == 200

    assert secretary_client.put(f"/api/events/{draft['id']}/publish").status_code == 400


def test_my_registrations(secretary_client: TestClient, member_client: TestClient,
                          other_member_client: TestClient):
    event = create_event(secretary_client, event_type="workshop")
    member_client.post(f"/api/events/{event['id']}/register")

    response = member_client.get("/api/events/my-registrations", params={"limit": 100})
    assert response.status_code == 200
    mine = {r["event_id"]: r for r in response.json()["registrations"]}
    assert mine[event["id"]]["event_title"] == event["title"]
    assert mine[event["id"]]["event_type"] == "workshop"
    assert mine[event["id"]]["attendance_status"] == "registered"

    others = other_member_client.get("/api/events/my-registrations", params={"limit": 100}).json()
    assert event["id"] not in [r["event_id"] for r in others["registrations"]]


def test_my_penalties(admin_client: TestClient, secretary_client: TestClient, treasurer_client: TestClient,
                      member_client: TestClient, other_member_client: TestClient, user_ids):
    first = create_event(secretary_client, start_date="2043-02-01T09:00:00", end_date="2043-02-01T12:00:00")
    create_event(secretary_client, start_date="2043-03-01T09:00:00", end_date="2043-03-01T12:00:00")
    member_client.post(f"/api/events/{first['id']}/register")
    secretary_client.put(
        f"/api/events/{first['id']}/attendance/{user_ids['member']}", json={"attendance_status": "attended"}
    )

    pharmacy = create_pharmacy(treasurer_client, user_id=user_ids["other_member"])
    due_type = create_due_type(treasurer_client)
    create_due(treasurer_client, pharmacy["id"], due_type["id"], amount=3000, due_date="2043-06-30T00:00:00")

    admin_client.put(
        "/api/events/penalty-config/2043",
        json={
            "penalty_rules": [
                {"min_attendance": 0, "max_attendance": 0, "penalty_type": "multiplier",
                 "penalty_value": 2, "description": "Missed every meeting"},
                {"min_attendance": 1, "max_attendance": 1, "penalty_type": "fixed",
                 "penalty_value": 700, "description": "Missed one meeting"},
            ],
            "default_penalty": {"penalty_type": "fixed", "penalty_value": 0},
        },
    )

    data = member_client.get("/api/events/my-penalties", params={"year": 2043}).json()
    assert data["total_meetings"] == 2
    assert data["meetings_attended"] == 1
    assert data["missed_meetings"] == 1
    assert data["penalty_type"] == "fixed"
    assert data["penalty"] == 700

    data = other_member_client.get("/api/events/my-penalties", params={"year": 2043}).json()
    assert data["meetings_attended"] == 0
    assert data["penalty"] == 6000
    assert data["rule"] == "Missed every meeting"

    # no configuration for the year means no penalty
    data = member_client.get("/api/events/my-penalties", params={"year": 2044}).json()
    assert data["penalty"] == 0
    assert data["penalty_type"] is None
