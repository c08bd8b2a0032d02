import datetime

import pytest
from fastapi.testclient import TestClient

import main
from analysis.season_stats import build_season_profile
from db.db_insert.ingest_injury_reports_to_db import upsert_injury_reports
from db.db_insert.ingest_season_profiles_to_db import upsert_season_profile

SEASON = "2024-25"
TEAM_ID = 1610612747


@pytest.fixture
def client(session):
    def _override_db():
        yield session

    main.app.dependency_overrides[main.get_db] = _override_db
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def stored_profile(session, make_logs):
    profile = build_season_profile(make_logs([30.0] * 12))
    upsert_season_profile(session, profile)
    session.commit()
    return profile


def test_root_and_health(client) -> None:
    assert client.get("/").json()["service"] == "nba-minutes"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["scheduler_running"] is False


def test_profile_endpoint(client, stored_profile) -> None:
    resp = client.get(f"/api/v1/players/1/profile?season={SEASON}")

    assert resp.status_code == 200
    data = resp.json()
    assert data["player_id"] == 1
    assert data["games_played"] == 12
    assert data["last_10"]["games_count"] == 10
    assert data["minutes_trend"] == "stable"
    assert data["is_consistent"] is True


def test_profile_endpoint_404(client) -> None:
    resp = client.get(f"/api/v1/players/999/profile?season={SEASON}")

    assert resp.status_code == 404


def test_player_projection_endpoint(client, stored_profile) -> None:
    resp = client.post(
        "/api/v1/players/1/projection",
        json={"team_id": TEAM_ID, "season": SEASON, "is_home": True, "days_rest": 1},
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["projected_minutes"] == 31.0
    assert data["confidence_level"] == "high"
    assert data["breakdown"]["adjustments"] == [{"value": 1.0, "reason": "Home game"}]


def test_player_projection_without_profile(client) -> None:
    resp = client.post("/api/v1/players/5/projection", json={"season": SEASON})

    assert resp.status_code == 200
    assert resp.json() == {"success": False, "player_id": 5, "error": "insufficient data"}


def test_player_projection_for_injured_player(client, session, stored_profile) -> None:
    upsert_injury_reports(
        session,
        [
            {
                "player_id": 1,
                "player_name": "Player 1",
                "team_id": TEAM_ID,
                "report_date": datetime.date(2025, 1, 10),
                "game_date": datetime.date(2025, 1, 11),
                "status": "Doubtful",
                "is_active": True,
            }
        ],
    )
    session.commit()

    resp = client.post(
        "/api/v1/players/1/projection", json={"season": SEASON, "game_date": "2025-01-11"}
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": False, "player_id": 1, "error": "injured"}


def test_player_projection_rejects_negative_rest(client) -> None:
    resp = client.post("/api/v1/players/1/projection", json={"season": SEASON, "days_rest": -1})

    assert resp.status_code == 422


def test_team_projection_endpoint(client, stored_profile) -> None:
    resp = client.post(
        f"/api/v1/teams/{TEAM_ID}/projection",
        json={"season": SEASON, "game_date": "2025-01-11", "injured_teammates": [77]},
    )

    data = resp.json()
    assert data["success"] is True
    assert data["context"]["game_date"] == "2025-01-11"
    assert [p["player_id"] for p in data["projections"]] == [1]
    assert data["projections"][0]["projection"]["projected_minutes"] == 34.0
    assert data["summary"]["active_players"] == 1


def test_team_projection_unknown_team(client) -> None:
    resp = client.post("/api/v1/teams/42/projection", json={"season": SEASON})

    assert resp.status_code == 200
    assert resp.json()["error"] == "team not found"


def test_recalculate_profiles_runs_in_background(client, monkeypatch) -> None:
    calls = []

    async def fake_recalculation(season=None, player_id=None, month_only=False):
        calls.append((season, player_id, month_only))

    monkeypatch.setattr(main, "run_profile_recalculation", fake_recalculation)

    resp = client.post(
        "/api/v1/admin/recalculate-profiles", json={"season": SEASON, "player_id": 1}
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["task"] == "profile_recalculation"
    assert data["status"] == "started"
    assert calls == [(SEASON, 1, False)]


def test_recalculate_profiles_month_only(client, monkeypatch) -> None:
    calls = []

    async def fake_recalculation(season=None, player_id=None, month_only=False):
        calls.append((season, player_id, month_only))

    monkeypatch.setattr(main, "run_profile_recalculation", fake_recalculation)

    resp = client.post("/api/v1/admin/recalculate-profiles", json={"month_only": True})

    assert resp.status_code == 200
    assert calls == [(None, None, True)]


def test_scheduler_status(client) -> None:
    data = client.get("/api/v1/scheduler/status").json()

    assert data["running"] is False
    assert isinstance(data["jobs"], list)
