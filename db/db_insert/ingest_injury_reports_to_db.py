"""
Ingest injury reports into the database.

A report is identified by (player_id, report_date, game_date). Re-ingesting the
same report replaces it rather than duplicating it.
"""
import argparse
import logging
from typing import Any, Dict, Iterable, List

import pandas as pd
from sqlalchemy import delete
from sqlalchemy.orm import Session

try:
    from db.database import get_engine, get_session_maker
    from db.models import InjuryReport
except ImportError:
    import sys
    from pathlib import Path
    ROOT = Path(__file__).resolve().parents[2]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from db.database import get_engine, get_session_maker  # type: ignore
    from db.models import InjuryReport  # type: ignore

logger = logging.getLogger(__name__)


VALID_STATUSES = ("Out", "Doubtful", "Questionable", "Probable", "GTD", "Available")

COLUMN_ALIASES: Dict[str, str] = {
    "playerId": "player_id",
    "playerName": "player_name",
    "teamId": "team_id",
    "teamTricode": "team_tricode",
    "reportDate": "report_date",
    "gameDate": "game_date",
    "isActive": "is_active",
    "resolvedDate": "resolved_date",
}


def _as_date(value: Any):
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return pd.Timestamp(value).date()


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "yes", "y")
    return bool(value)


def _normalize(row: Dict[str, Any]) -> Dict[str, Any]:
    status = row.get("status")
    if status not in VALID_STATUSES:
        raise ValueError(f"Unknown injury status {status!r} for player {row.get('player_id')}")

    values = {
        "player_id": int(row["player_id"]),
        "player_name": row.get("player_name") or "",
        "team_id": None if row.get("team_id") is None else int(row["team_id"]),
        "team_tricode": row.get("team_tricode"),
        "report_date": _as_date(row["report_date"]),
        "game_date": _as_date(row.get("game_date")),
        "status": status,
        "reason": row.get("reason"),
        "description": row.get("description"),
        "source": row.get("source") or "manual",
        "is_active": _as_bool(row.get("is_active"), default=True),
        "resolved_date": _as_date(row.get("resolved_date")),
    }
    return values


def upsert_injury_reports(session: Session, rows: Iterable[Dict[str, Any]]) -> int:
    """
    Save injury reports, replacing any stored report for the same
    (player_id, report_date, game_date).

    Does not commit; the caller owns the transaction.

    Returns:
        Number of reports written
    """
    reports = [_normalize(row) for row in rows]
    for values in reports:
        stmt = delete(InjuryReport).where(
            InjuryReport.player_id == values["player_id"],
            InjuryReport.report_date == values["report_date"],
        )
        if values["game_date"] is None:
            stmt = stmt.where(InjuryReport.game_date.is_(None))
        else:
            stmt = stmt.where(InjuryReport.game_date == values["game_date"])
        session.execute(stmt)
        session.add(InjuryReport(**values))
        session.flush()
    logger.info("Wrote %d injury reports", len(reports))
    return len(reports)


def load_injury_csv(csv_path: str) -> List[Dict[str, Any]]:
    df = pd.read_csv(csv_path).rename(columns=COLUMN_ALIASES)
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict("records")


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    parser = argparse.ArgumentParser(
        description="Ingest injury reports from CSV to database"
    )
    parser.add_argument(
        "--csv",
        required=True,
        help="Path to injury report CSV file",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: from DATABASE_URL env var)",
    )
    args = parser.parse_args()

    engine = get_engine(args.database_url)
    SessionLocal = get_session_maker(engine)
    InjuryReport.__table__.create(bind=engine, checkfirst=True)

    rows = load_injury_csv(args.csv)
    print(f"Loaded {len(rows)} injury reports from {args.csv}")
    with SessionLocal() as session:
        count = upsert_injury_reports(session, rows)
        session.commit()
    print(f"Saved {count} injury reports")


if __name__ == "__main__":
    main()
