import datetime
from dataclasses import asdict
from pathlib import Path

import pandas as pd
import pytest
from sqlalchemy import create_engine, func, select

import db.run_profile_update as run_profile_update
from analysis.season_stats import build_season_profile
from db.create_tables import create_all_for_engine
from db.database import get_session_maker
from db.db_extract import (
    fetch_game_logs,
    find_profile_by_name,
    list_player_seasons,
    load_injured_player_ids,
    load_season_profile,
    load_team_profiles,
    resolve_team_id,
)
from db.db_insert.ingest_game_logs_to_db import prepare_game_logs, upsert_game_logs
from db.db_insert.ingest_injury_reports_to_db import load_injury_csv, upsert_injury_reports
from db.db_insert.ingest_season_profiles_to_db import upsert_season_profile
from db.models import InjuryReport, PlayerGameLog, PlayerSeasonProfile
from db.run_profile_update import recalculate_profiles, update_player_season

SEASON = "2024-25"
TEAM_ID = 1610612747


def _without_timestamp(profile) -> dict:
    data = profile.to_dict()
    data.pop("last_calculated")
    return data


def test_profile_round_trips_through_store(session, make_logs) -> None:
    profile = build_season_profile(make_logs([30, 22, 35, 18], is_home=[True, False] * 2))
    upsert_season_profile(session, profile)
    session.commit()

    loaded = load_season_profile(session, 1, SEASON)

    assert loaded is not None
    assert _without_timestamp(loaded) == _without_timestamp(profile)


def test_profile_upsert_replaces_row(session, make_logs) -> None:
    upsert_season_profile(session, build_season_profile(make_logs([30, 30])))
    session.commit()
    upsert_season_profile(session, build_season_profile(make_logs([20, 20, 20, 20, 20])))
    session.commit()

    rows = session.execute(select(func.count()).select_from(PlayerSeasonProfile)).scalar_one()
    loaded = load_season_profile(session, 1, SEASON)

    assert rows == 1
    assert loaded.games_played == 5
    assert loaded.averages.minutes == 20.0
    assert loaded.last_5.games_count == 5


def test_missing_profile_is_none(session) -> None:
    assert load_season_profile(session, 1, SEASON) is None


def test_fetch_game_logs_orders_and_filters(session, make_logs, store_logs) -> None:
    logs = make_logs([30, 0, 25], played=[True, False, True])
    store_logs(list(reversed(logs)))

    played = fetch_game_logs(session, 1, SEASON)
    everything = fetch_game_logs(session, 1, SEASON, played_only=False)

    assert [g.minutes for g in played] == [30, 25]
    assert [g.game_date for g in everything] == sorted(g.game_date for g in logs)
    assert played[0] == logs[0]


def test_list_player_seasons(session, make_logs, store_logs) -> None:
    store_logs(make_logs([30, 30, 30], player_id=1))
    store_logs(make_logs([20], player_id=2))
    store_logs(make_logs([0], player_id=3, played=False))
    store_logs(make_logs([25], player_id=1, season="2023-24", start=datetime.date(2023, 11, 1)))

    assert list_player_seasons(session) == [(1, SEASON), (1, "2023-24"), (2, SEASON)]
    assert list_player_seasons(session, season=SEASON) == [(1, SEASON), (2, SEASON)]
    assert list_player_seasons(session, player_id=2) == [(2, SEASON)]


def test_find_profile_by_name(session, make_logs) -> None:
    upsert_season_profile(
        session, build_season_profile(make_logs([30], player_id=1, player_name="LeBron James"))
    )
    upsert_season_profile(
        session, build_season_profile(make_logs([30], player_id=2, player_name="Bronny James"))
    )
    session.commit()

    assert find_profile_by_name(session, "  lebron   JAMES ", SEASON).player_id == 1
    assert find_profile_by_name(session, "Bronny", SEASON).player_id == 2
    # "James" matches both players
    assert find_profile_by_name(session, "James", SEASON) is None
    assert find_profile_by_name(session, "LeBron James", "2023-24") is None


def test_load_team_profiles_sorted_by_minutes(session, make_logs) -> None:
    upsert_season_profile(session, build_season_profile(make_logs([20], player_id=1)))
    upsert_season_profile(session, build_season_profile(make_logs([35], player_id=2)))
    upsert_season_profile(session, build_season_profile(make_logs([30], player_id=3, team_id=1)))
    session.commit()

    assert [p.player_id for p in load_team_profiles(session, TEAM_ID, SEASON)] == [2, 1]


def test_resolve_team_id(session, make_logs, store_logs) -> None:
    store_logs(make_logs([30]))

    assert resolve_team_id(session, "lal") == TEAM_ID
    assert resolve_team_id(session, "BOS") is None
    assert resolve_team_id(session, "") is None


def _injury(player_id, status="Out", game_date=None, is_active=True):
    return {
        "player_id": player_id,
        "player_name": f"Player {player_id}",
        "team_id": TEAM_ID,
        "report_date": datetime.date(2025, 1, 10),
        "game_date": game_date,
        "status": status,
        "is_active": is_active,
    }


def test_injured_player_ids(session) -> None:
    upsert_injury_reports(
        session,
        [
            _injury(1),
            _injury(2, status="Doubtful", game_date=datetime.date(2025, 1, 12)),
            _injury(3, status="Questionable"),
            _injury(4, is_active=False),
            _injury(5, game_date=datetime.date(2025, 1, 20)),
        ],
    )
    session.commit()

    assert load_injured_player_ids(session, TEAM_ID) == {1, 2, 5}
    assert load_injured_player_ids(session, TEAM_ID, as_of=datetime.date(2025, 1, 12)) == {1, 2}
    assert load_injured_player_ids(session, 1) == set()


def test_injury_reingest_replaces_report(session) -> None:
    upsert_injury_reports(session, [_injury(1, status="Questionable")])
    upsert_injury_reports(session, [_injury(1, status="Out")])
    session.commit()

    rows = session.execute(select(InjuryReport)).scalars().all()

    assert [(r.player_id, r.status) for r in rows] == [(1, "Out")]


def test_injury_status_validated(session) -> None:
    with pytest.raises(ValueError):
        upsert_injury_reports(session, [_injury(1, status="Sore")])


def test_load_injury_csv(tmp_path: Path) -> None:
    path = tmp_path / "injuries.csv"
    path.write_text(
        "playerId,playerName,teamId,reportDate,gameDate,status,isActive\n"
        "7,Player 7,1610612747,2025-01-10,,Out,true\n",
        encoding="utf-8",
    )

    rows = load_injury_csv(str(path))

    assert rows[0]["player_id"] == 7
    assert rows[0]["game_date"] is None
    assert rows[0]["status"] == "Out"


def test_prepare_game_logs_parses_and_derives() -> None:
    raw = pd.DataFrame(
        {
            "playerId": [1, 1, 1],
            "playerName": ["Player 1"] * 3,
            "teamId": [TEAM_ID] * 3,
            "gameDate": ["2024-11-05", "2024-11-01", "2024-11-02"],
            "minutes": ["PT12M30.00S", "PT36M34.00S", ""],
            "isHome": ["true", "false", "TRUE"],
        }
    )

    frame = prepare_game_logs(raw)

    assert list(frame["game_date"]) == [
        datetime.date(2024, 11, 1),
        datetime.date(2024, 11, 2),
        datetime.date(2024, 11, 5),
    ]
    assert list(frame["minutes"]) == [36.57, 0.0, 12.5]
    assert list(frame["played"]) == [True, False, True]
    assert list(frame["days_rest"]) == [99, 0, 2]
    assert list(frame["is_back_to_back"]) == [False, True, False]
    assert list(frame["is_home"]) == [False, True, True]
    assert set(frame["season"]) == {SEASON}


def test_prepare_game_logs_requires_columns() -> None:
    with pytest.raises(ValueError):
        prepare_game_logs(pd.DataFrame({"playerId": [1], "minutes": [30]}))


def test_upsert_game_logs_is_keyed_on_player_season_date(session) -> None:
    raw = pd.DataFrame(
        {
            "player_id": [1, 1],
            "player_name": ["Player 1", "Player 1"],
            "season": [SEASON, SEASON],
            "game_date": ["2024-11-01", "2024-11-03"],
            "minutes": [30.0, 28.0],
            "points": [20.0, None],
        }
    )
    assert upsert_game_logs(session, raw) == 2
    session.commit()

    raw.loc[0, "minutes"] = 33.0
    upsert_game_logs(session, raw)
    session.commit()

    logs = fetch_game_logs(session, 1, SEASON)
    assert session.execute(select(func.count()).select_from(PlayerGameLog)).scalar_one() == 2
    assert [g.minutes for g in logs] == [33.0, 28.0]
    assert logs[1].points is None


def test_recalculate_profiles(session_factory, session, make_logs, store_logs) -> None:
    store_logs(make_logs([30, 32], player_id=1))
    store_logs(make_logs([20], player_id=2))

    summary = recalculate_profiles(session_factory)

    assert summary.to_dict() == {"processed": 2, "skipped": 0, "errors": 0, "failed": []}
    assert load_season_profile(session, 1, SEASON).games_played == 2
    assert load_season_profile(session, 2, SEASON).averages.minutes == 20.0


def test_recalculate_isolates_failures(session_factory, session, make_logs, store_logs, monkeypatch) -> None:
    store_logs(make_logs([30, 32], player_id=1))
    store_logs(make_logs([20], player_id=2))
    real = run_profile_update.compute_season_profile

    def failing(session, player_id, season, month_only=False):
        if player_id == 1:
            raise RuntimeError("bad data")
        return real(session, player_id, season, month_only=month_only)

    monkeypatch.setattr(run_profile_update, "compute_season_profile", failing)

    summary = recalculate_profiles(session_factory, season=SEASON)

    assert summary.processed == 1
    assert summary.errors == 1
    assert summary.failed == [(1, SEASON)]
    assert load_season_profile(session, 1, SEASON) is None


def test_update_player_season_skips_without_games(session_factory) -> None:
    assert update_player_season(session_factory, 1, SEASON) == "skipped"


def test_recalculate_profiles_in_parallel(tmp_path: Path, make_logs) -> None:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'minutes.db'}",
        connect_args={"check_same_thread": False},
    )
    create_all_for_engine(engine)
    factory = get_session_maker(engine)
    with factory() as session:
        for pid in range(1, 5):
            for log in make_logs([20 + pid, 22 + pid], player_id=pid):
                session.add(PlayerGameLog(**asdict(log)))
        session.commit()

    summary = recalculate_profiles(factory, max_workers=3)

    assert summary.processed == 4
    assert summary.errors == 0
    with factory() as session:
        assert load_season_profile(session, 4, SEASON).averages.minutes == 25.0
    engine.dispose()


def test_recalculate_profiles_month_only(session_factory, session, make_logs, store_logs) -> None:
    store_logs(make_logs([20, 30], start=datetime.date(2024, 11, 5), step=365))

    summary = recalculate_profiles(session_factory, month_only=True)
    trend = load_season_profile(session, 1, SEASON).monthly_minutes_trend

    assert summary.processed == 1
    assert [(m.month_label, m.games_count) for m in trend] == [("November", 2)]
