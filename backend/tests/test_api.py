"""
HTTP surface: status codes, error bodies and end-to-end flows through the routers.
"""

import pytest
from fastapi.testclient import TestClient

DAY = "2099-06-01"


def _create_team(client: TestClient, name: str, level="Gold", gender="Male"):
    response = client.post("/api/teams", json={"name": name, "grade": "7th", "gender": gender, "level_of_competition": level})
    assert response.status_code == 201
    return response.json()


def _create_tournament(client: TestClient, name="City Cup", **fields):
    data = {"name": name, "year": 2026, "min_teams": 2, "level_of_competition": "Gold", "gender": "Male"}
    data.update(fields)
    response = client.post("/api/tournaments", json=data)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def seeded(client: TestClient):
    """Tournament with four registered teams, not yet bracketed"""
    teams = [_create_team(client, f"Hawks {i}") for i in range(4)]
    tournament = _create_tournament(client)
    response = client.post(f"/api/tournaments/{tournament['id']}/teams/batch", json={"team_ids": [t["id"] for t in teams]})
    assert response.status_code == 200
    return tournament, [t["id"] for t in teams]


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ============================================================================
# Error mapping
# ============================================================================


def test_not_found_body(client: TestClient):
    response = client.get("/api/tournaments/999")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": "NOT_FOUND",
        "message": "Tournament not found",
        "details": {"tournament_id": 999},
    }


def test_duplicate_tournament_is_conflict(client: TestClient):
    _create_tournament(client)
    response = client.post("/api/tournaments", json={"name": "City Cup", "year": 2026})

    assert response.status_code == 409
    assert response.json()["error"] == "CONFLICT"


def test_tournament_payload_validation(client: TestClient):
    response = client.post(
        "/api/tournaments",
        json={"name": "Backwards", "start_date": "2026-03-10", "end_date": "2026-03-08"},
    )
    assert response.status_code == 422

    response = client.post("/api/tournaments", json={"name": "Odd", "format": "swiss"})
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID"


def test_patch_refuses_status(client: TestClient):
    tournament = _create_tournament(client)

    response = client.patch(f"/api/tournaments/{tournament['id']}", json={"status": "completed"})
    assert response.status_code == 400
    assert response.json()["details"] == {"fields": ["status"]}

    response = client.patch(f"/api/tournaments/{tournament['id']}", json={"description": "Indoor"})
    assert response.status_code == 200
    assert response.json()["description"] == "Indoor"
    assert response.json()["status"] == "draft"


def test_team_payload_validation(client: TestClient):
    response = client.post("/api/teams", json={"name": "Mixers", "gender": "Mixed", "level_of_competition": "Gold"})
    assert response.status_code == 422
    response = client.post("/api/teams", json={"name": "Bronze", "gender": "Male", "level_of_competition": "Bronze"})
    assert response.status_code == 422
    assert client.get("/api/teams/12345").status_code == 404


# ============================================================================
# Roster
# ============================================================================


def test_roster_flow(client: TestClient):
    teams = [_create_team(client, f"Owls {i}") for i in range(3)]
    _create_team(client, "Silver Owls", level="Silver")
    tournament = _create_tournament(client, max_teams=2)
    tid = tournament["id"]

    eligible = client.get(f"/api/tournaments/{tid}/eligible-teams").json()
    assert sorted(t["id"] for t in eligible) == sorted(t["id"] for t in teams)

    response = client.post(f"/api/tournaments/{tid}/teams/{teams[0]['id']}")
    assert response.status_code == 201
    assert response.json()["payment_status"] == "pending"

    response = client.post(f"/api/tournaments/{tid}/teams/{teams[0]['id']}")
    assert response.status_code == 409
    assert response.json()["error"] == "ALREADY_REGISTERED"

    response = client.post(f"/api/tournaments/{tid}/teams/batch", json={"team_ids": [teams[1]["id"], teams[2]["id"], 9999]})
    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"added": 1, "skipped": 0, "failed": 2}
    assert body["registered_count"] == 2

    response = client.post(f"/api/tournaments/{tid}/teams/{teams[2]['id']}")
    assert response.status_code == 409
    assert response.json()["error"] == "AT_CAPACITY"

    listed = client.get(f"/api/tournaments/{tid}/teams").json()
    assert [e["team"]["id"] for e in listed["teams"]] == [teams[0]["id"], teams[1]["id"]]

    response = client.delete(f"/api/tournaments/{tid}/teams/{teams[0]['id']}")
    assert response.status_code == 200
    assert response.json()["registered_teams"] == [teams[1]["id"]]


# ============================================================================
# Knockout
# ============================================================================


def test_knockout_flow(client: TestClient, seeded):
    tournament, team_ids = seeded
    tid = tournament["id"]

    response = client.post(f"/api/tournaments/{tid}/brackets", json={"seeding": "manual", "seed_order": team_ids})
    assert response.status_code == 201
    bracket = response.json()
    assert bracket["match_count"] == 3
    assert bracket["status"] == "open"
    first, second = [m for m in bracket["matches"] if m["round"] == 1]

    assert client.post(f"/api/tournaments/{tid}/start").json()["status"] == "ongoing"

    response = client.post(f"/api/matches/{first['id']}/result", json={"team1_score": 30, "team2_score": 20})
    assert response.status_code == 200
    assert response.json()["winner_id"] == first["team1_id"]

    response = client.post(f"/api/matches/{first['id']}/result", json={"team1_score": 31, "team2_score": 20})
    assert response.status_code == 403

    summary = client.get(f"/api/tournaments/{tid}/rounds/1/summary").json()
    assert summary["matches_with_winners"] == 1
    assert summary["is_round_complete"] is False

    response = client.post(f"/api/matches/{second['id']}/quick-winner", json={"winner_id": second["team2_id"], "is_walkover": True})
    assert response.status_code == 200
    assert response.json()["status"] == "walkover"

    winners = client.get(f"/api/tournaments/{tid}/rounds/1/winners").json()
    assert sorted(w["team_id"] for w in winners) == sorted([first["team1_id"], second["team2_id"]])

    detail = client.get(f"/api/tournaments/{tid}").json()
    (final,) = [m for m in detail["matches"] if m["round"] == 2]
    assert {final["team1_id"], final["team2_id"]} == {first["team1_id"], second["team2_id"]}

    progress = client.get(f"/api/tournaments/{tid}/progress").json()
    assert progress["rounds"][0]["is_complete"] is True
    assert progress["current_round"] == 2

    response = client.post(f"/api/tournaments/{tid}/complete")
    assert response.status_code == 409
    assert response.json()["error"] == "INCOMPLETE"

    client.post(f"/api/matches/{final['id']}/result", json={"team1_score": 44, "team2_score": 41})
    assert client.post(f"/api/tournaments/{tid}/complete").json()["status"] == "completed"

    response = client.delete(f"/api/tournaments/{tid}/teams/{team_ids[0]}")
    assert response.status_code == 403


def test_reset_pulls_winner_back(client: TestClient, seeded):
    tournament, team_ids = seeded
    tid = tournament["id"]
    bracket = client.post(f"/api/tournaments/{tid}/brackets", json={"seeding": "manual", "seed_order": team_ids}).json()
    first = next(m for m in bracket["matches"] if m["round"] == 1)
    client.post(f"/api/matches/{first['id']}/result", json={"team1_score": 10, "team2_score": 12})

    response = client.post(f"/api/matches/{first['id']}/reset")

    assert response.status_code == 200
    assert response.json()["winner_id"] is None
    assert response.json()["status"] == "scheduled"
    final = next(m for m in client.get(f"/api/tournaments/{tid}").json()["matches"] if m["round"] == 2)
    assert final["team1_id"] is None and final["team2_id"] is None


def test_advance_round_when_next_round_exists(client: TestClient, seeded):
    tournament, team_ids = seeded
    tid = tournament["id"]
    bracket = client.post(f"/api/tournaments/{tid}/brackets", json={"seed": 3}).json()
    for match in [m for m in bracket["matches"] if m["round"] == 1]:
        client.post(f"/api/matches/{match['id']}/result", json={"team1_score": 2, "team2_score": 1})

    response = client.post(f"/api/tournaments/{tid}/rounds/1/advance")

    assert response.status_code == 200
    assert response.json()["created"] is False
    assert len(response.json()["matches"]) == 1

    assert client.post(f"/api/tournaments/{tid}/rounds/7/advance", json={"seed": 1}).status_code == 404


def test_hard_delete(client: TestClient, seeded):
    tournament, team_ids = seeded
    tid = tournament["id"]
    client.post(f"/api/tournaments/{tid}/brackets", json={"seed": 1})

    response = client.delete(f"/api/tournaments/{tid}/hard")

    assert response.status_code == 200
    assert response.json() == {"tournament_id": tid, "matches_deleted": 3, "standings_deleted": 0}
    assert client.get(f"/api/tournaments/{tid}").status_code == 404


def test_soft_delete_hides_from_listing(client: TestClient):
    kept = _create_tournament(client, name="Kept")
    hidden = _create_tournament(client, name="Hidden")

    assert client.delete(f"/api/tournaments/{hidden['id']}").json()["is_active"] is False

    listing = client.get("/api/tournaments", params={"limit": 5}).json()
    assert [t["id"] for t in listing["tournaments"]] == [kept["id"]]
    assert listing["pages"] == 1


# ============================================================================
# Round robin and scheduling
# ============================================================================


def test_round_robin_standings(client: TestClient, seeded):
    tournament, team_ids = seeded
    tid = tournament["id"]
    bracket = client.post(f"/api/tournaments/{tid}/brackets", json={"format": "round-robin", "seed": 5}).json()
    assert bracket["match_count"] == 6
    match = bracket["matches"][0]

    client.post(f"/api/matches/{match['id']}/result", json={"team1_score": 21, "team2_score": 14})

    standings = client.get(f"/api/tournaments/{tid}/standings").json()
    assert list(standings) == ["A"]
    top = standings["A"][0]
    assert top["team_id"] == match["team1_id"]
    assert (top["played"], top["wins"], top["points"], top["points_difference"]) == (1, 1, 3, 7)
    assert client.get(f"/api/tournaments/{tid}/standings", params={"group": "Z"}).json() == {}


def test_schedule_flow(client: TestClient, seeded):
    tournament, team_ids = seeded
    tid = tournament["id"]
    client.post(f"/api/tournaments/{tid}/brackets", json={"format": "round-robin", "seed": 5})

    response = client.post(
        f"/api/tournaments/{tid}/schedule/generate",
        json={
            "start_date": DAY,
            "end_date": DAY,
            "start_time": "09:00",
            "end_time": "17:00",
            "courts": ["Court 1", "Court 2"],
        },
    )
    assert response.status_code == 200
    assert response.json()["scheduled_count"] == 6

    day = client.get(f"/api/tournaments/{tid}/schedule", params={"date": DAY}).json()
    assert day["total_matches"] == 6
    assert sorted(day["by_court"]) == ["Court 1", "Court 2"]

    opener = day["matches"][0]
    assert opener["scheduled_time"] == f"{DAY}T09:00:00"
    clash = next(
        m
        for m in day["matches"]
        if m["id"] != opener["id"] and opener["team1_id"] in (m["team1_id"], m["team2_id"])
    )
    response = client.patch(f"/api/matches/{clash['id']}/schedule", json={"scheduled_time": f"{DAY}T09:30:00", "court": "Court 9"})
    assert response.status_code == 409
    assert opener["id"] in [c["match_id"] for c in response.json()["details"]["conflicts"]]

    slots = client.get(f"/api/tournaments/{tid}/schedule/available-slots", params={"date": DAY, "court": "Court 1"}).json()
    assert slots["total_slots"] == len(slots["time_slots"])
    assert slots["match_duration"] == 40

    report = client.get(f"/api/tournaments/{tid}/schedule/can-reset").json()
    assert report["can_reset"]["soft"] is True
    assert report["statistics"]["scheduled_matches"] == 6

    response = client.post(f"/api/tournaments/{tid}/schedule/reset")
    assert response.status_code == 200
    assert response.json()["mode"] == "soft"
    assert response.json()["matches_affected"] == 6
    assert len(client.get(f"/api/tournaments/{tid}/schedule/unscheduled").json()) == 6

    response = client.post(f"/api/tournaments/{tid}/schedule/reset", json={"mode": "nuke"})
    assert response.status_code == 400


def test_bulk_schedule_route(client: TestClient, seeded):
    tournament, team_ids = seeded
    tid = tournament["id"]
    bracket = client.post(f"/api/tournaments/{tid}/brackets", json={"seeding": "manual", "seed_order": team_ids}).json()
    first, second = [m for m in bracket["matches"] if m["round"] == 1]

    response = client.post(
        f"/api/tournaments/{tid}/schedule/bulk",
        json={
            "matches": [
                {"match_id": first["id"], "scheduled_time": f"{DAY}T09:00:00", "court": "Court 1"},
                {"match_id": second["id"], "scheduled_time": f"{DAY}T09:00:00", "court": "Court 2"},
            ]
        },
    )

    assert response.status_code == 200
    assert [s["match_id"] for s in response.json()["succeeded"]] == [first["id"], second["id"]]
    assert response.json()["failed"] == []
