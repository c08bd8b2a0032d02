import datetime
from typing import List, Optional, Set, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from analysis.records import GameLogRecord, SeasonProfile

from ..models import OUT_STATUSES, PROFILE_AVERAGE_COLUMNS, InjuryReport, PlayerGameLog, PlayerSeasonProfile


GAME_LOG_FIELDS = (
    "player_id",
    "season",
    "game_date",
    "minutes",
    "player_name",
    "team_id",
    "team_tricode",
    "position",
    "game_id",
    "opponent_id",
    "opponent_tricode",
    "points",
    "assists",
    "rebounds",
    "steals",
    "blocks",
    "turnovers",
    "field_goals_percentage",
    "three_pointers_percentage",
    "free_throws_percentage",
    "plus_minus",
    "is_home",
    "is_back_to_back",
    "days_rest",
    "is_starter",
    "played",
)


def _norm_name(name: str) -> str:
    return " ".join((name or "").strip().split()).lower()


def _to_record(row: PlayerGameLog) -> GameLogRecord:
    return GameLogRecord(**{name: getattr(row, name) for name in GAME_LOG_FIELDS})


def fetch_game_logs(
    session: Session,
    player_id: int,
    season: str,
    played_only: bool = True,
) -> List[GameLogRecord]:
    """
    Return a player's game logs for a season, ordered by game date (oldest first).
    DNP rows are left out unless played_only is False.
    """
    stmt = select(PlayerGameLog).where(
        PlayerGameLog.player_id == player_id,
        PlayerGameLog.season == season,
    )
    if played_only:
        stmt = stmt.where(PlayerGameLog.played.is_(True))
    stmt = stmt.order_by(PlayerGameLog.game_date)
    return [_to_record(row) for row in session.execute(stmt).scalars()]


def list_player_seasons(
    session: Session,
    season: Optional[str] = None,
    player_id: Optional[int] = None,
) -> List[Tuple[int, str]]:
    """
    Distinct (player_id, season) pairs having at least one played game,
    busiest players first.
    """
    games = func.count(PlayerGameLog.id)
    stmt = (
        select(PlayerGameLog.player_id, PlayerGameLog.season)
        .where(PlayerGameLog.played.is_(True))
        .group_by(PlayerGameLog.player_id, PlayerGameLog.season)
        .order_by(games.desc(), PlayerGameLog.player_id, PlayerGameLog.season)
    )
    if season:
        stmt = stmt.where(PlayerGameLog.season == season)
    if player_id is not None:
        stmt = stmt.where(PlayerGameLog.player_id == player_id)
    return [(int(pid), s) for pid, s in session.execute(stmt).all()]


def profile_from_row(row: PlayerSeasonProfile) -> SeasonProfile:
    return SeasonProfile.from_dict(
        {
            "player_id": row.player_id,
            "season": row.season,
            "player_name": row.player_name,
            "team_id": row.team_id,
            "team_tricode": row.team_tricode,
            "position": row.position,
            "games_played": row.gp,
            "games_started": row.gs,
            "starter_rate": row.starter_rate,
            "averages": {
                attr: getattr(row, column) or 0.0
                for attr, column in PROFILE_AVERAGE_COLUMNS.items()
            },
            "last_3": row.last_3,
            "last_5": row.last_5,
            "last_10": row.last_10,
            "last_15": row.last_15,
            "last_20": row.last_20,
            "splits": row.splits,
            "monthly_minutes_trend": row.monthly_minutes_trend,
            "minutes_std_dev": row.minutes_std_dev,
            "minutes_range": row.minutes_range,
            "minutes_distribution": row.minutes_distribution,
            "last_game_date": row.last_game_date,
            "last_game_minutes": row.last_game_minutes,
            "last_calculated": row.last_calculated,
            "games_processed": row.games_processed,
        }
    )


def load_season_profile(session: Session, player_id: int, season: str) -> Optional[SeasonProfile]:
    row = session.get(PlayerSeasonProfile, (player_id, season))
    if row is None:
        return None
    return profile_from_row(row)


def find_profile_by_name(session: Session, player_name: str, season: str) -> Optional[SeasonProfile]:
    """
    Look a player up by name: exact (case/whitespace-insensitive) match first,
    then a unique substring match.
    """
    rows = session.execute(
        select(PlayerSeasonProfile).where(PlayerSeasonProfile.season == season)
    ).scalars().all()
    wanted = _norm_name(player_name)
    exact = [r for r in rows if _norm_name(r.player_name) == wanted]
    if exact:
        return profile_from_row(exact[0])
    partial = [r for r in rows if wanted and wanted in _norm_name(r.player_name)]
    if len(partial) == 1:
        return profile_from_row(partial[0])
    return None


def load_team_profiles(session: Session, team_id: int, season: str) -> List[SeasonProfile]:
    """Stored profiles for every player who has logged minutes for the team this season."""
    stmt = (
        select(PlayerSeasonProfile)
        .where(
            PlayerSeasonProfile.team_id == team_id,
            PlayerSeasonProfile.season == season,
            PlayerSeasonProfile.gp > 0,
        )
        .order_by(PlayerSeasonProfile.min.desc(), PlayerSeasonProfile.player_id)
    )
    return [profile_from_row(row) for row in session.execute(stmt).scalars()]


def load_injured_player_ids(
    session: Session,
    team_id: int,
    as_of: Optional[datetime.date] = None,
) -> Set[int]:
    """
    Distinct player ids with an active Out/Doubtful report for the team.
    With as_of, reports tied to a later game are ignored.
    """
    stmt = select(InjuryReport.player_id).where(
        InjuryReport.team_id == team_id,
        InjuryReport.is_active.is_(True),
        InjuryReport.status.in_(OUT_STATUSES),
    )
    if as_of is not None:
        stmt = stmt.where(
            or_(InjuryReport.game_date.is_(None), InjuryReport.game_date <= as_of)
        )
    return {int(pid) for pid in session.execute(stmt.distinct()).scalars()}


def resolve_team_id(session: Session, tricode: str) -> Optional[int]:
    """Map a team tricode (LAL, BOS, ...) to its numeric id via the game log store."""
    code = (tricode or "").strip().upper()
    if not code:
        return None
    row = session.execute(
        select(PlayerGameLog.team_id)
        .where(PlayerGameLog.team_tricode == code, PlayerGameLog.team_id.is_not(None))
        .limit(1)
    ).scalar_one_or_none()
    return int(row) if row is not None else None


def is_player_injured(
    session: Session,
    player_id: int,
    as_of: Optional[datetime.date] = None,
) -> bool:
    """True when the player has an active Out/Doubtful report (for a game on or before as_of)."""
    stmt = select(InjuryReport.id).where(
        InjuryReport.player_id == player_id,
        InjuryReport.is_active.is_(True),
        InjuryReport.status.in_(OUT_STATUSES),
    )
    if as_of is not None:
        stmt = stmt.where(
            or_(InjuryReport.game_date.is_(None), InjuryReport.game_date <= as_of)
        )
    return session.execute(stmt.limit(1)).first() is not None
