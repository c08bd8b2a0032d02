"""
Ingest player game logs from CSV into the game log store.

Accepts snake_case columns matching db.models.PlayerGameLog as well as the
camelCase box score names (playerId, reboundsTotal, plusMinusPoints, ...).
Minutes may be decimal, "mm:ss" or ISO-8601 durations ("PT36M34.00S").
When absent, days_rest / is_back_to_back are derived per player-season from the
game dates, and played is derived from minutes.
"""
import argparse
import logging
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

try:
    from db.database import dialect_insert, get_engine, get_session_maker
    from db.models import PlayerGameLog
    from analysis.utils.season_helper import (
        calculate_days_rest,
        date_to_season,
        is_back_to_back,
        parse_minutes,
    )
except ImportError:
    import sys
    from pathlib import Path
    ROOT = Path(__file__).resolve().parents[2]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from db.database import dialect_insert, get_engine, get_session_maker  # type: ignore
    from db.models import PlayerGameLog  # type: ignore
    from analysis.utils.season_helper import (  # type: ignore
        calculate_days_rest,
        date_to_season,
        is_back_to_back,
        parse_minutes,
    )

logger = logging.getLogger(__name__)


COLUMN_ALIASES: Dict[str, str] = {
    "playerId": "player_id",
    "personId": "player_id",
    "playerName": "player_name",
    "teamId": "team_id",
    "teamTricode": "team_tricode",
    "opponentId": "opponent_id",
    "opponentTricode": "opponent_tricode",
    "gameId": "game_id",
    "gameDate": "game_date",
    "isHome": "is_home",
    "isStarter": "is_starter",
    "isBackToBack": "is_back_to_back",
    "daysRest": "days_rest",
    "reboundsTotal": "rebounds",
    "fieldGoalsPercentage": "field_goals_percentage",
    "threePointersPercentage": "three_pointers_percentage",
    "freeThrowsPercentage": "free_throws_percentage",
    "plusMinusPoints": "plus_minus",
    "plusMinus": "plus_minus",
}

REQUIRED_COLUMNS = ("player_id", "game_date", "minutes")
FLAG_COLUMNS = ("is_home", "is_starter", "is_back_to_back")

# Rows per INSERT statement, under SQLite's bound parameter limit
CHUNK_SIZE = 500

_TRUTHY = {"true", "t", "1", "yes", "y"}


def _to_bool(series: pd.Series) -> pd.Series:
    if series.dtype == bool:
        return series
    return series.map(lambda v: str(v).strip().lower() in _TRUTHY if pd.notna(v) else False)


def _model_columns() -> List[str]:
    return [
        c.name for c in PlayerGameLog.__table__.columns
        if c.name not in ("id", "created_at", "updated_at")
    ]


def prepare_game_logs(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a raw game log frame to PlayerGameLog columns.

    Raises:
        ValueError: if a required column is missing
    """
    df = df.rename(columns=COLUMN_ALIASES).copy()
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Game log CSV is missing required columns: {missing}")

    df["game_date"] = pd.to_datetime(df["game_date"]).dt.date
    df["minutes"] = df["minutes"].map(parse_minutes)
    if "season" not in df.columns:
        df["season"] = df["game_date"].map(date_to_season)
    if "player_name" not in df.columns:
        df["player_name"] = ""
    df["player_name"] = df["player_name"].fillna("")

    for flag in FLAG_COLUMNS:
        if flag in df.columns:
            df[flag] = _to_bool(df[flag])
    for flag in ("is_home", "is_starter"):
        if flag not in df.columns:
            df[flag] = False

    if "played" in df.columns:
        df["played"] = _to_bool(df["played"])
    else:
        df["played"] = df["minutes"] > 0

    df = df.sort_values(["player_id", "season", "game_date"], kind="mergesort").reset_index(drop=True)
    previous = df.groupby(["player_id", "season"])["game_date"].shift(1)
    previous = [None if pd.isna(p) else p for p in previous]
    if "days_rest" not in df.columns:
        df["days_rest"] = [calculate_days_rest(d, p) for d, p in zip(df["game_date"], previous)]
    if "is_back_to_back" not in df.columns:
        df["is_back_to_back"] = [is_back_to_back(d, p) for d, p in zip(df["game_date"], previous)]
    df["days_rest"] = pd.to_numeric(df["days_rest"], errors="coerce").fillna(0).astype(int)

    keep = [c for c in _model_columns() if c in df.columns]
    return df[keep]


def upsert_game_logs(session: Session, df: pd.DataFrame) -> int:
    """
    Insert or update game logs keyed on (player_id, season, game_date).

    Does not commit; the caller owns the transaction.

    Returns:
        Number of rows written
    """
    frame = prepare_game_logs(df)
    if frame.empty:
        return 0
    records = frame.astype(object).where(pd.notna(frame), None).to_dict("records")

    insert = dialect_insert(session)
    for start in range(0, len(records), CHUNK_SIZE):
        stmt = insert(PlayerGameLog.__table__).values(records[start:start + CHUNK_SIZE])
        stmt = stmt.on_conflict_do_update(
            index_elements=[PlayerGameLog.player_id, PlayerGameLog.season, PlayerGameLog.game_date],
            set_={
                c.name: getattr(stmt.excluded, c.name)
                for c in PlayerGameLog.__table__.columns
                if c.name in records[0] and c.name not in ("player_id", "season", "game_date")
            },
        )
        session.execute(stmt)
    return len(records)


def ingest_csv(csv_path: str, database_url: Optional[str] = None) -> int:
    engine = get_engine(database_url)
    SessionLocal = get_session_maker(engine)
    PlayerGameLog.__table__.create(bind=engine, checkfirst=True)

    df = pd.read_csv(csv_path)
    logger.info("Loaded %d game log rows from %s", len(df), csv_path)
    with SessionLocal() as session:
        count = upsert_game_logs(session, df)
        session.commit()
    return count


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    parser = argparse.ArgumentParser(
        description="Ingest player game logs from CSV to database"
    )
    parser.add_argument(
        "--csv",
        required=True,
        help="Path to game logs CSV file",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: from DATABASE_URL env var)",
    )
    args = parser.parse_args()

    print(f"Loading game logs from {args.csv}...")
    count = ingest_csv(args.csv, args.database_url)
    print(f"Saved {count} game logs")


if __name__ == "__main__":
    main()
