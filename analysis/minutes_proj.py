"""
Minutes Projection Engine

Projects a player's minutes for an upcoming game from their stored season profile:
1. Blends recent rolling windows with the season average into a baseline
2. Applies situational adjustments (rest, venue, injured teammates)
3. Clamps to a regulation game and scores confidence from sample size and volatility

Every adjustment is returned with its reason so a projection can be explained line by line.
"""
import argparse
import datetime
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# Handle imports for both direct and module execution
try:
    from analysis.errors import NoDataError
    from analysis.records import (
        Adjustment,
        GameContext,
        ProjectionBreakdown,
        ProjectionResult,
        SeasonProfile,
    )
    from analysis.utils import DataUtils
    from analysis.utils.season_helper import current_season, format_minutes
    from db.db_extract import is_player_injured, load_season_profile
except ImportError:
    from pathlib import Path

    ROOT = Path(__file__).resolve().parents[1]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from analysis.errors import NoDataError  # type: ignore
    from analysis.records import (  # type: ignore
        Adjustment,
        GameContext,
        ProjectionBreakdown,
        ProjectionResult,
        SeasonProfile,
    )
    from analysis.utils import DataUtils  # type: ignore
    from analysis.utils.season_helper import current_season, format_minutes  # type: ignore
    from db.db_extract import is_player_injured, load_season_profile  # type: ignore

logger = logging.getLogger(__name__)


MAX_GAME_MINUTES = 48.0

# Baseline blends as (rolling window size, weight); None is the season average.
# Established players lean on recent form, small samples fall back to the season.
ESTABLISHED_WEIGHTS = ((5, 0.5), (10, 0.3), (None, 0.2))
EMERGING_WEIGHTS = ((3, 0.6), (None, 0.4))

# Sample size tiers as (minimum games played, base confidence), checked in order
CONFIDENCE_TIERS = ((20, 0.90), (10, 0.75), (3, 0.55), (0, 0.30))

BACK_TO_BACK_REASON = "Back-to-back game — workload management"
EXTENDED_REST_REASON = "Extended rest — full availability expected"
HOME_GAME_REASON = "Home game"
INJURED_TEAMMATE_REASON = "Increased role — teammate unavailable"

INSUFFICIENT_DATA = "insufficient data"
PLAYER_INJURED = "injured"


@dataclass(frozen=True)
class ProjectionPolicy:
    """Tunable coefficients of the projection rules."""

    established_min_games: int = 10
    emerging_min_games: int = 3
    established_weights: Tuple[Tuple[Optional[int], float], ...] = ESTABLISHED_WEIGHTS
    emerging_weights: Tuple[Tuple[Optional[int], float], ...] = EMERGING_WEIGHTS

    back_to_back: float = -3.0
    extended_rest_days: int = 3
    extended_rest: float = 1.5
    home_game: float = 1.0
    injury_boost_per_teammate: float = 4.0
    injury_boost_cap: float = 10.0

    confidence_tiers: Tuple[Tuple[int, float], ...] = CONFIDENCE_TIERS
    volatility_divisor: float = 40.0
    volatility_penalty_cap: float = 0.30
    confidence_floor: float = 0.05
    confidence_ceiling: float = 0.95
    high_confidence: float = 0.75
    medium_confidence: float = 0.50


DEFAULT_POLICY = ProjectionPolicy()


def calculate_baseline_minutes(profile: SeasonProfile, policy: ProjectionPolicy = DEFAULT_POLICY) -> float:
    """
    Weighted blend of rolling windows and the season average.

    A missing window contributes the season average in its place.
    """
    season_avg = profile.averages.minutes
    if profile.games_played >= policy.established_min_games:
        weights = policy.established_weights
    elif profile.games_played >= policy.emerging_min_games:
        weights = policy.emerging_weights
    else:
        return season_avg

    baseline = 0.0
    for size, weight in weights:
        window = profile.window(size) if size is not None else None
        minutes = window.minutes if window is not None else season_avg
        baseline += weight * minutes
    return baseline


def calculate_adjustments(
    profile: SeasonProfile,
    context: GameContext,
    policy: ProjectionPolicy = DEFAULT_POLICY,
) -> List[Adjustment]:
    """Situational adjustments in application order; zero-valued ones are dropped."""
    adjustments: List[Adjustment] = []

    if context.days_rest == 0:
        adjustments.append(Adjustment(policy.back_to_back, BACK_TO_BACK_REASON))

    if context.days_rest >= policy.extended_rest_days:
        adjustments.append(Adjustment(policy.extended_rest, EXTENDED_REST_REASON))

    if context.is_home:
        adjustments.append(Adjustment(policy.home_game, HOME_GAME_REASON))

    # One entry per teammate until the cumulative boost reaches the cap
    injury_total = 0.0
    for _ in sorted(context.injured_teammates - {profile.player_id}):
        boost = min(policy.injury_boost_per_teammate, policy.injury_boost_cap - injury_total)
        if boost <= 0:
            break
        injury_total += boost
        adjustments.append(Adjustment(boost, INJURED_TEAMMATE_REASON))

    return [a for a in adjustments if a.value != 0]


def calculate_confidence(profile: SeasonProfile, policy: ProjectionPolicy = DEFAULT_POLICY) -> float:
    """Sample-size tier minus a volatility penalty from the season minutes std dev."""
    base = policy.confidence_tiers[-1][1]
    for min_games, score in policy.confidence_tiers:
        if profile.games_played >= min_games:
            base = score
            break

    penalty = min(
        policy.volatility_penalty_cap,
        DataUtils.safe_divide(profile.minutes_std_dev, policy.volatility_divisor),
    )
    confidence = DataUtils.clamp(base - penalty, policy.confidence_floor, policy.confidence_ceiling)
    return round(confidence, 3)


def confidence_level(confidence: float, policy: ProjectionPolicy = DEFAULT_POLICY) -> str:
    if confidence >= policy.high_confidence:
        return "high"
    if confidence >= policy.medium_confidence:
        return "medium"
    return "low"


def _require_profile(profile: Optional[SeasonProfile]) -> SeasonProfile:
    if profile is None:
        raise NoDataError("No season profile")
    if profile.games_played == 0:
        raise NoDataError("Season profile has no played games")
    return profile


def project_minutes(
    profile: Optional[SeasonProfile],
    context: GameContext,
    policy: ProjectionPolicy = DEFAULT_POLICY,
    player_id: Optional[int] = None,
    team_id: Optional[int] = None,
) -> ProjectionResult:
    """
    Project minutes for one player from an already-fetched profile.

    Never raises for missing data: a missing or empty profile comes back as
    ProjectionResult(success=False, error="insufficient data").
    """
    if player_id is None and profile is not None:
        player_id = profile.player_id
    try:
        profile = _require_profile(profile)
    except NoDataError as exc:
        logger.debug("Cannot project player %s: %s", player_id, exc)
        return ProjectionResult.failure(player_id, INSUFFICIENT_DATA)

    baseline = calculate_baseline_minutes(profile, policy)
    adjustments = calculate_adjustments(profile, context, policy)
    projected = DataUtils.clamp(
        baseline + sum(a.value for a in adjustments), 0.0, MAX_GAME_MINUTES
    )
    confidence = calculate_confidence(profile, policy)

    return ProjectionResult(
        success=True,
        player_id=player_id,
        player_name=profile.player_name,
        team_id=team_id if team_id is not None else profile.team_id,
        team_tricode=profile.team_tricode,
        projected_minutes=round(projected, 1),
        confidence=confidence,
        confidence_level=confidence_level(confidence, policy),
        breakdown=ProjectionBreakdown(baseline_minutes=baseline, adjustments=adjustments),
        context={
            "is_home": context.is_home,
            "days_rest": context.days_rest,
            "injured_teammates": len(context.injured_teammates - {player_id}),
            "is_starter": profile.starter_rate > 50,
            "season_average": profile.averages.minutes,
            "minutes_trend": profile.minutes_trend(),
        },
    )


def project_player_minutes(
    session: Session,
    player_id: int,
    team_id: Optional[int],
    season: str,
    context: GameContext,
    policy: ProjectionPolicy = DEFAULT_POLICY,
) -> ProjectionResult:
    """
    Fetch the player's stored season profile and project from it.

    A player with an active Out/Doubtful report for the game is not projected:
    the result fails with error "injured".
    """
    try:
        if is_player_injured(session, player_id, as_of=context.game_date):
            logger.info("Player %s is listed out for %s", player_id, context.game_date or "the next game")
            return ProjectionResult.failure(player_id, PLAYER_INJURED)
        profile = load_season_profile(session, player_id, season)
    except SQLAlchemyError as exc:
        logger.error("Failed to load data for player %s (%s): %s", player_id, season, exc, exc_info=True)
        return ProjectionResult.failure(player_id, f"profile lookup failed: {exc}")

    if profile is not None and team_id is not None and profile.team_id != team_id:
        logger.info(
            "Player %s profile is on team %s, projecting for team %s",
            player_id,
            profile.team_id,
            team_id,
        )
    return project_minutes(profile, context, policy, player_id=player_id, team_id=team_id)


def _print_projection(result: ProjectionResult) -> None:
    if not result.success:
        print(f"Player {result.player_id}: projection failed ({result.error})")
        return
    print(f"\n=== {result.player_name} ({result.team_tricode or result.team_id}) ===")
    print(f"Projected minutes: {result.projected_minutes:.1f} ({format_minutes(result.projected_minutes)})")
    print(f"Confidence:        {result.confidence:.3f} ({result.confidence_level})")
    print(f"Baseline:          {result.breakdown.baseline_minutes:.2f}")
    for adj in result.breakdown.adjustments:
        print(f"  {adj.value:+.1f}  {adj.reason}")


def _parse_ids(raw: Optional[str]) -> List[int]:
    if not raw:
        return []
    return [int(part) for part in raw.split(",") if part.strip()]


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    parser = argparse.ArgumentParser(
        description="Project NBA player minutes for an upcoming game"
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--player-id", type=int, default=None, help="NBA player id (e.g., 2544)")
    target.add_argument("--player", default=None, help="Player name (e.g., \"LeBron James\")")
    target.add_argument("--team", default=None, help="Team tricode or numeric id for a rotation projection")
    parser.add_argument("--season", default=None, help="Season, e.g., 2024-25 (default: current)")
    parser.add_argument("--date", default=None, help="Game date in YYYY-MM-DD format (default: today)")
    parser.add_argument("--home", action="store_true", help="Project a home game")
    parser.add_argument("--days-rest", type=int, default=1, help="Days of rest before the game (default: 1)")
    parser.add_argument("--injured", default=None, help="Comma-separated injured teammate ids")
    parser.add_argument("--workers", type=int, default=None, help="Max parallel player projections for --team")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: from DATABASE_URL env var)",
    )
    args = parser.parse_args()

    if args.date:
        game_date = datetime.datetime.strptime(args.date, "%Y-%m-%d").date()
    else:
        game_date = datetime.date.today()
    season = args.season or current_season(game_date)

    context = GameContext(
        is_home=args.home,
        days_rest=args.days_rest,
        injured_teammates=frozenset(_parse_ids(args.injured)),
        game_date=game_date,
    )

    from db.database import get_engine, get_session_maker
    from db.db_extract import find_profile_by_name, resolve_team_id

    engine = get_engine(args.database_url)
    SessionLocal = get_session_maker(engine)

    with SessionLocal() as session:
        if args.team:
            from analysis.team_rotation import project_team_minutes

            team_id = int(args.team) if args.team.isdigit() else resolve_team_id(session, args.team)
            if team_id is None:
                print(f"Error: unknown team {args.team}")
                sys.exit(1)
            team = project_team_minutes(session, team_id, season, context, max_workers=args.workers)
            if not team.success:
                print(f"Error: {team.error}")
                sys.exit(1)
            print(f"\n=== Rotation projection: team {team_id} ({season}) ===")
            for rank, entry in enumerate(team.projections, start=1):
                proj = entry.projection
                starter = "S" if entry.context.get("is_starter") else " "
                print(
                    f"{rank:2d}. {starter} {entry.player_name:28s} "
                    f"{proj.projected_minutes:5.1f} min  conf {proj.confidence:.2f} ({proj.confidence_level})"
                )
            for entry in team.injured:
                print(f"    OUT {entry.player_name}")
            for entry in team.errors:
                print(f"    ERR {entry.player_name}: {entry.error}")
            s = team.summary
            print(
                f"\nTotal: {s.total_projected_minutes:.1f} min | active {s.active_players} | "
                f"injured {s.injured_players} | avg confidence {s.average_confidence:.3f}"
            )
            return

        if args.player:
            profile = find_profile_by_name(session, args.player, season)
            if profile is None:
                print(f"Error: no {season} profile found for \"{args.player}\"")
                sys.exit(1)
            result = project_player_minutes(session, profile.player_id, None, season, context)
        else:
            result = project_player_minutes(session, args.player_id, None, season, context)

    _print_projection(result)
    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
