from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.db import crud
from app.db.exceptions import AlreadyVotedError
from app.models.election import ElectionStatus
from tests.conftest import unique

POSITIONS = ["Chairman", "Secretary"]


def create_election(client: TestClient, **overrides) -> dict:
    payload = {
        "title": unique("Election"),
        "description": "Chapter executive elections",
        "start_date": "2030-06-01T08:00:00",
        "end_date": "2030-06-02T18:00:00",
        "positions": POSITIONS,
    }
    payload.update(overrides)
    response = client.post("/api/elections", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def add_candidate(client: TestClient, election_id: int, user_id: int, position: str = "Chairman"):
    return client.post(
        f"/api/elections/{election_id}/candidates",
        json={"user_id": user_id, "position": position, "manifesto": "Better services for members"},
    )


def open_election(client: TestClient, election_id: int) -> dict:
    response = client.put(
        f"/api/elections/{election_id}",
        json={"start_date": "2020-01-01T00:00:00", "end_date": "2099-01-01T00:00:00"},
    )
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "ongoing"
    return response.json()


def test_create_election(admin_client: TestClient):
    data = create_election(admin_client, positions=[" Chairman ", "Chairman", "Treasurer"])
    assert data["status"] == "upcoming"
    assert data["positions"] == ["Chairman", "Treasurer"]
    assert data["candidate_count"] == 0


def test_create_election_status_from_dates(admin_client: TestClient):
    data = create_election(admin_client, start_date="2020-01-01T00:00:00", end_date="2099-01-01T00:00:00")
    assert data["status"] == "ongoing"
    data = create_election(admin_client, start_date="2020-01-01T00:00:00", end_date="2020-01-02T00:00:00")
    assert data["status"] == "completed"


def test_create_election_rules(admin_client: TestClient, secretary_client: TestClient):
    response = admin_client.post(
        "/api/elections",
        json={"title": "Backwards", "description": "x",
              "start_date": "2030-06-02T00:00:00", "end_date": "2030-06-01T00:00:00"},
    )
    assert response.status_code == 400
    assert secretary_client.post(
        "/api/elections",
        json={"title": "Nope", "description": "x",
              "start_date": "2030-06-01T00:00:00", "end_date": "2030-06-02T00:00:00"},
    ).status_code == 403


def test_candidates(admin_client: TestClient, member_client: TestClient, user_ids):
    election = create_election(admin_client)
    response = add_candidate(admin_client, election["id"], user_ids["member"])
    assert response.status_code == 201
    assert response.json()["email"] == "member@pharmzone.test"

    assert add_candidate(admin_client, election["id"], user_ids["member"]).status_code == 400
    assert add_candidate(admin_client, election["id"], user_ids["member"], "Pope").status_code == 400
    assert add_candidate(admin_client, election["id"], 999999).status_code == 404
    assert add_candidate(member_client, election["id"], user_ids["member"], "Secretary").status_code == 403

    candidates = member_client.get(f"/api/elections/{election['id']}/candidates").json()
    assert [c["user_id"] for c in candidates] == [user_ids["member"]]


def test_election_detail(admin_client: TestClient, member_client: TestClient, user_ids):
    election = create_election(admin_client)
    add_candidate(admin_client, election["id"], user_ids["member"])

    data = member_client.get(f"/api/elections/{election['id']}").json()
    assert data["election"]["candidate_count"] == 1
    assert set(data["candidates_by_position"]) == set(POSITIONS)
    assert data["candidates_by_position"]["Secretary"] == []
    assert data["is_user_candidate"] is True
    assert data["user_vote_map"] == {}


def test_remove_candidate(admin_client: TestClient, user_ids):
    election = create_election(admin_client)
    candidate = add_candidate(admin_client, election["id"], user_ids["member"]).json()
    url = f"/api/elections/{election['id']}/candidates/{candidate['id']}"
    assert admin_client.delete(url).status_code == 200
    assert admin_client.delete(url).status_code == 404


def test_vote_only_while_ongoing(admin_client: TestClient, member_client: TestClient, user_ids):
    election = create_election(admin_client)
    candidate = add_candidate(admin_client, election["id"], user_ids["other_member"]).json()
    response = member_client.post(f"/api/elections/{election['id']}/vote", json={"candidate_id": candidate["id"]})
    assert response.status_code == 400


def test_vote(admin_client: TestClient, member_client: TestClient, other_member_client: TestClient, user_ids):
    election = create_election(admin_client)
    chairman = add_candidate(admin_client, election["id"], user_ids["other_member"]).json()
    secretary = add_candidate(admin_client, election["id"], user_ids["member"], "Secretary").json()
    open_election(admin_client, election["id"])

    url = f"/api/elections/{election['id']}/vote"
    response = member_client.post(url, json={"candidate_id": chairman["id"]})
    assert response.status_code == 201
    assert response.json()["position"] == "Chairman"

    response = member_client.post(url, json={"candidate_id": chairman["id"]})
    assert response.status_code == 400

    # one vote per position, not per election
    assert member_client.post(url, json={"candidate_id": secretary["id"]}).status_code == 201
    assert other_member_client.post(url, json={"candidate_id": chairman["id"]}).status_code == 201

    detail = member_client.get(f"/api/elections/{election['id']}").json()
    assert detail["user_vote_map"] == {"Chairman": chairman["id"], "Secretary": secretary["id"]}


def test_vote_for_foreign_candidate(admin_client: TestClient, member_client: TestClient, user_ids):
    first = create_election(admin_client)
    second = create_election(admin_client)
    candidate = add_candidate(admin_client, second["id"], user_ids["other_member"]).json()
    open_election(admin_client, first["id"])
    response = member_client.post(f"/api/elections/{first['id']}/vote", json={"candidate_id": candidate["id"]})
    assert response.status_code == 400


def test_ongoing_election_is_locked(admin_client: TestClient, user_ids):
    election = create_election(admin_client)
    open_election(admin_client, election["id"])
    assert admin_client.put(f"/api/elections/{election['id']}", json={"title": "Renamed"}).status_code == 400
    assert add_candidate(admin_client, election["id"], user_ids["member"]).status_code == 400
    assert admin_client.delete(f"/api/elections/{election['id']}").status_code == 400


def test_results_visibility(admin_client: TestClient, member_client: TestClient, user_ids):
    election = create_election(admin_client)
    candidate = add_candidate(admin_client, election["id"], user_ids["other_member"]).json()
    open_election(admin_client, election["id"])
    member_client.post(f"/api/elections/{election['id']}/vote", json={"candidate_id": candidate["id"]})

    assert member_client.get(f"/api/elections/{election['id']}/results").status_code == 403

    response = admin_client.get(f"/api/elections/{election['id']}/results")
    assert response.status_code == 200
    data = response.json()
    assert data["results"]["Chairman"][0]["votes"] == 1
    assert data["stats"] == {"total_votes": 1, "unique_voters": 1, "total_positions": 1, "total_candidates": 1}

    assert admin_client.put(f"/api/elections/{election['id']}/cancel").json()["status"] == "cancelled"
    assert member_client.get(f"/api/elections/{election['id']}/results").status_code == 200


def test_cancel_completed_election(admin_client: TestClient):
    election = create_election(admin_client, start_date="2020-01-01T00:00:00", end_date="2020-01-02T00:00:00")
    assert admin_client.put(f"/api/elections/{election['id']}/cancel").status_code == 400


def test_delete_election(admin_client: TestClient, user_ids):
    empty = create_election(admin_client)
    assert admin_client.delete(f"/api/elections/{empty['id']}").status_code == 200
    assert admin_client.get(f"/api/elections/{empty['id']}").status_code == 404

    with_candidate = create_election(admin_client)
    add_candidate(admin_client, with_candidate["id"], user_ids["member"])
    assert admin_client.delete(f"/api/elections/{with_candidate['id']}").status_code == 400


def test_list_and_stats(admin_client: TestClient, member_client: TestClient):
    election = create_election(admin_client, title=unique("Board"))
    listed = member_client.get("/api/elections", params={"search": election["title"]}).json()
    assert [e["id"] for e in listed["elections"]] == [election["id"]]

    stats = member_client.get("/api/elections/stats").json()
    assert stats["total"] == sum(stats["by_status"].values())
    assert stats["by_status"]["upcoming"] >= 1


def _start_without_status_sync(db, election_id: int) -> None:
    dbelection = crud.get_election(db, election_id)
    dbelection.start_date = datetime(2020, 1, 1)
    db.commit()
    assert dbelection.status == ElectionStatus.upcoming


def test_started_election_is_locked_before_job_runs(admin_client: TestClient, db, user_ids):
    election = create_election(admin_client)
    candidate = add_candidate(admin_client, election["id"], user_ids["other_member"]).json()
    _start_without_status_sync(db, election["id"])

    url = f"/api/elections/{election['id']}"
    assert admin_client.put(url, json={"title": "Renamed"}).status_code == 400
    assert add_candidate(admin_client, election["id"], user_ids["member"], "Secretary").status_code == 400
    assert admin_client.delete(f"{url}/candidates/{candidate['id']}").status_code == 400

    empty = create_election(admin_client)
    _start_without_status_sync(db, empty["id"])
    assert admin_client.delete(f"/api/elections/{empty['id']}").status_code == 400
    assert admin_client.get(f"/api/elections/{empty['id']}").json()["status"] == "ongoing"


def test_concurrent_duplicate_vote_hits_unique_constraint(admin_client: TestClient, db, user_ids, monkeypatch):
    election = create_election(admin_client)
    candidate = add_candidate(admin_client, election["id"], user_ids["other_member"]).json()
    open_election(admin_client, election["id"])

    dbcandidate = crud.get_candidate(db, candidate["id"])
    crud.create_vote(db, dbcandidate, user_ids["member"])

    # a second request that passed the position check before the first one committed
    monkeypatch.setattr("app.db.crud.election.has_voted_for_position", lambda *args: False)
    with pytest.raises(AlreadyVotedError):
        crud.create_vote(db, dbcandidate, user_ids["member"])

    assert crud.get_vote_counts(db, election["id"]) == {candidate["id"]: 1}


def test_update_election_cleans_positions(admin_client: TestClient):
    election = create_election(admin_client)
    response = admin_client.put(
        f"/api/elections/{election['id']}", json={"positions": [" Treasurer ", "Treasurer", "", "PRO"]}
    )
    assert response.status_code == 200
    assert response.json()["positions"] == ["Treasurer", "PRO"]
