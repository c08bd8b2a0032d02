import datetime
from dataclasses import asdict
from typing import List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from analysis.records import GameLogRecord
from db.create_tables import create_all_for_engine
from db.database import get_session_maker
from db.models import PlayerGameLog

SEASON = "2024-25"
TEAM_ID = 1610612747


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all_for_engine(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_maker(engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def make_logs():
    """
    Build one player's game logs, one per entry in `minutes`, every `step` days.

    Keyword values that are lists are applied per game; scalars apply to every game.
    """

    def _make(
        minutes,
        player_id: int = 1,
        season: str = SEASON,
        start: datetime.date = datetime.date(2024, 11, 1),
        step: int = 2,
        **overrides,
    ) -> List[GameLogRecord]:
        logs = []
        for i, mins in enumerate(minutes):
            fields = {
                "player_name": f"Player {player_id}",
                "team_id": TEAM_ID,
                "team_tricode": "LAL",
                "points": mins / 2.0,
                "days_rest": step - 1,
            }
            for key, value in overrides.items():
                fields[key] = value[i] if isinstance(value, list) else value
            logs.append(
                GameLogRecord(
                    player_id=player_id,
                    season=season,
                    game_date=start + datetime.timedelta(days=i * step),
                    minutes=mins,
                    **fields,
                )
            )
        return logs

    return _make


@pytest.fixture
def store_logs(session):
    def _store(logs: List[GameLogRecord]) -> None:
        session.add_all([PlayerGameLog(**asdict(log)) for log in logs])
        session.commit()

    return _store
