import argparse
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

# Import DB infra
try:
    from analysis.season_stats import compute_season_profile
    from db.create_tables import create_all
    from db.database import get_engine, get_session_maker
    from db.db_extract import list_player_seasons
    from db.db_insert.ingest_season_profiles_to_db import upsert_season_profile
except ImportError:
    # Support running as a direct script via absolute path
    import sys
    from pathlib import Path

    ROOT = Path(__file__).resolve().parents[1]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from analysis.season_stats import compute_season_profile  # type: ignore
    from db.create_tables import create_all  # type: ignore
    from db.database import get_engine, get_session_maker  # type: ignore
    from db.db_extract import list_player_seasons  # type: ignore
    from db.db_insert.ingest_season_profiles_to_db import upsert_season_profile  # type: ignore

logger = logging.getLogger(__name__)

PROCESSED = "processed"
SKIPPED = "skipped"


@dataclass
class UpdateSummary:
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    failed: List[Tuple[int, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "failed": [{"player_id": pid, "season": season} for pid, season in self.failed],
        }


def update_player_season(
    session_factory: sessionmaker,
    player_id: int,
    season: str,
    month_only: bool = False,
) -> str:
    """
    Recompute and store one player-season profile in its own session.

    The profile is upserted and committed as a unit, so readers see either the
    previous profile or the new one.
    """
    with session_factory() as session:
        with session.begin():
            profile = compute_season_profile(session, player_id, season, month_only=month_only)
            if profile is None:
                return SKIPPED
            upsert_season_profile(session, profile)
    return PROCESSED


def recalculate_profiles(
    session_factory: sessionmaker,
    season: Optional[str] = None,
    player_id: Optional[int] = None,
    max_workers: int = 1,
    month_only: bool = False,
) -> UpdateSummary:
    """
    Recompute season profiles for every player-season with played games.

    Failures are logged and counted per player-season; the batch always runs to
    the end.
    """
    with session_factory() as session:
        pairs = list_player_seasons(session, season=season, player_id=player_id)
    logger.info("Recomputing %d player-season profiles", len(pairs))

    summary = UpdateSummary()

    def record(outcome: str) -> None:
        if outcome == PROCESSED:
            summary.processed += 1
        else:
            summary.skipped += 1

    def record_error(pair: Tuple[int, str], exc: Exception) -> None:
        logger.error("Profile update failed for player %s (%s): %s", pair[0], pair[1], exc, exc_info=exc)
        summary.errors += 1
        summary.failed.append(pair)

    if max_workers <= 1:
        for pair in pairs:
            try:
                record(update_player_season(session_factory, *pair, month_only=month_only))
            except Exception as exc:
                record_error(pair, exc)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(update_player_season, session_factory, *pair, month_only=month_only): pair
                for pair in pairs
            }
            for future in as_completed(futures):
                pair = futures[future]
                try:
                    record(future.result())
                except Exception as exc:
                    record_error(pair, exc)

    logger.info(
        "Profile update done: %d processed, %d skipped, %d errors",
        summary.processed,
        summary.skipped,
        summary.errors,
    )
    return summary


def run(
    database_url: Optional[str] = None,
    season: Optional[str] = None,
    player_id: Optional[int] = None,
    max_workers: Optional[int] = None,
    month_only: bool = False,
) -> UpdateSummary:
    if max_workers is None:
        max_workers = int(os.getenv("PROFILE_UPDATE_WORKERS", "1"))
    engine = get_engine(database_url)
    return recalculate_profiles(
        get_session_maker(engine),
        season=season,
        player_id=player_id,
        max_workers=max_workers,
        month_only=month_only,
    )


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    parser = argparse.ArgumentParser(description="Recompute player season profiles from stored game logs")
    parser.add_argument(
        "--database-url",
        default=os.getenv("DATABASE_URL"),
        help="SQLAlchemy database URL. If omitted, uses DATABASE_URL env var.",
    )
    parser.add_argument("--season", default=None, help="Only this season, e.g., 2024-25")
    parser.add_argument("--player-id", type=int, default=None, help="Only this player")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel player-seasons (default from PROFILE_UPDATE_WORKERS or 1)",
    )
    parser.add_argument(
        "--month-only",
        action="store_true",
        help="Bucket the monthly trend by month name, merging the same month across years",
    )
    args = parser.parse_args()

    if not args.database_url:
        raise RuntimeError("DATABASE_URL env var or --database-url must be provided")

    # 1) Ensure tables exist
    print("Ensuring database tables exist...")
    create_all(args.database_url)

    # 2) Recompute profiles
    print("Recomputing season profiles...")
    summary = run(
        database_url=args.database_url,
        season=args.season,
        player_id=args.player_id,
        max_workers=args.workers,
        month_only=args.month_only,
    )
    print(
        f"Processed {summary.processed}, skipped {summary.skipped}, errors {summary.errors}"
    )
    for pid, season in summary.failed:
        print(f"  failed: player {pid} ({season})")

    print("Profile update completed.")


if __name__ == "__main__":
    main()
