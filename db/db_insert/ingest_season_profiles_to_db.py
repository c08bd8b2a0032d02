"""
Persist season profiles.

Each (player_id, season) row is replaced wholesale on every recompute; nothing is
merged with the previous version.
"""
from dataclasses import asdict
from typing import Any, Dict

from sqlalchemy.orm import Session

from analysis.records import SeasonProfile
from db.database import dialect_insert
from db.models import PROFILE_AVERAGE_COLUMNS, PlayerSeasonProfile

CALC_VERSION = "v1"


def profile_to_row_values(profile: SeasonProfile) -> Dict[str, Any]:
    def window(size: int):
        w = profile.window(size)
        return asdict(w) if w is not None else None

    values: Dict[str, Any] = {
        "player_id": profile.player_id,
        "season": profile.season,
        "player_name": profile.player_name,
        "team_id": profile.team_id,
        "team_tricode": profile.team_tricode,
        "position": profile.position,
        "gp": profile.games_played,
        "gs": profile.games_started,
        "starter_rate": profile.starter_rate,
        "last_3": window(3),
        "last_5": window(5),
        "last_10": window(10),
        "last_15": window(15),
        "last_20": window(20),
        "splits": asdict(profile.splits),
        "monthly_minutes_trend": [asdict(m) for m in profile.monthly_minutes_trend],
        "minutes_std_dev": profile.minutes_std_dev,
        "minutes_range": asdict(profile.minutes_range),
        "minutes_distribution": asdict(profile.minutes_distribution),
        "last_game_date": profile.last_game_date,
        "last_game_minutes": profile.last_game_minutes,
        "last_calculated": profile.last_calculated,
        "games_processed": profile.games_processed,
        "calc_version": CALC_VERSION,
    }
    for attr, column in PROFILE_AVERAGE_COLUMNS.items():
        values[column] = getattr(profile.averages, attr)
    return values


def upsert_season_profile(session: Session, profile: SeasonProfile) -> None:
    """
    Insert or fully replace the stored profile for the profile's player-season.

    Does not commit; the caller owns the transaction.
    """
    insert = dialect_insert(session)
    stmt = insert(PlayerSeasonProfile.__table__).values(profile_to_row_values(profile))
    stmt = stmt.on_conflict_do_update(
        index_elements=[PlayerSeasonProfile.player_id, PlayerSeasonProfile.season],
        set_={
            c.name: getattr(stmt.excluded, c.name)
            for c in PlayerSeasonProfile.__table__.columns
            if c.name not in ("player_id", "season")
        },
    )
    session.execute(stmt)
