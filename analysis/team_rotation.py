"""
Team Rotation Projector

Projects every rostered player of a team for one game:
- injured players (Out/Doubtful reports plus caller-supplied ids) are listed but not projected
- everyone else goes through the minutes projection engine, fanned out over a thread pool
- active projections are ranked and summarized

All database reads happen up front; the workers only see plain records.
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from db.db_extract import load_injured_player_ids, load_team_profiles

from .errors import RosterNotFoundError
from .minutes_proj import DEFAULT_POLICY, ProjectionPolicy, project_minutes
from .records import (
    GameContext,
    PlayerRotationEntry,
    RosterEntry,
    SeasonProfile,
    TeamProjection,
    TeamSummary,
)

logger = logging.getLogger(__name__)

ACTIVE = "ACTIVE"
INJURED = "INJURED"
ERROR = "ERROR"

TEAM_NOT_FOUND = "team not found"
DEFAULT_MAX_WORKERS = 8


def workers_from_env() -> int:
    """ROTATION_MAX_WORKERS as a positive int; unusable values fall back to the default."""
    raw = os.getenv("ROTATION_MAX_WORKERS")
    if raw is None or not raw.strip():
        return DEFAULT_MAX_WORKERS
    try:
        workers = int(raw)
    except ValueError:
        logger.warning(
            "Ignoring ROTATION_MAX_WORKERS=%r (not an integer), using %d", raw, DEFAULT_MAX_WORKERS
        )
        return DEFAULT_MAX_WORKERS
    if workers < 1:
        logger.warning(
            "Ignoring ROTATION_MAX_WORKERS=%r (must be >= 1), using %d", raw, DEFAULT_MAX_WORKERS
        )
        return DEFAULT_MAX_WORKERS
    return workers


def _resolve_workers(max_workers: Optional[int]) -> int:
    if max_workers is None:
        return workers_from_env()
    return max(1, max_workers)


def build_roster(profiles: Iterable[SeasonProfile]) -> List[RosterEntry]:
    """Roster entries for every profile with at least one game played."""
    return [
        RosterEntry(
            player_id=p.player_id,
            player_name=p.player_name,
            is_starter=p.starter_rate > 50,
        )
        for p in profiles
        if p.games_played > 0
    ]


def _require_roster(roster: List[RosterEntry], team_id: int, season: str) -> None:
    if not roster:
        raise RosterNotFoundError(f"No roster for team {team_id} in {season}")


def _project_entry(
    entry: RosterEntry,
    profile: Optional[SeasonProfile],
    context: GameContext,
    policy: ProjectionPolicy,
    team_id: int,
) -> PlayerRotationEntry:
    entry_context = {"is_starter": entry.is_starter}
    player_context = replace(
        context, injured_teammates=context.injured_teammates - {entry.player_id}
    )
    try:
        result = project_minutes(
            profile, player_context, policy, player_id=entry.player_id, team_id=team_id
        )
    except Exception as exc:
        # One bad player must not sink the rest of the rotation
        logger.error("Projection failed for player %s: %s", entry.player_id, exc, exc_info=True)
        return PlayerRotationEntry(
            player_id=entry.player_id,
            player_name=entry.player_name,
            status=ERROR,
            context=entry_context,
            error=str(exc),
        )

    if not result.success:
        return PlayerRotationEntry(
            player_id=entry.player_id,
            player_name=entry.player_name,
            status=ERROR,
            context=entry_context,
            error=result.error,
        )
    return PlayerRotationEntry(
        player_id=entry.player_id,
        player_name=entry.player_name,
        status=ACTIVE,
        context=entry_context,
        projection=result,
    )


def _summarize(projections: List[PlayerRotationEntry], injured: int, errors: int) -> TeamSummary:
    total = sum(p.projection.projected_minutes for p in projections)
    confidences = [p.projection.confidence for p in projections]
    average_confidence = round(sum(confidences) / len(confidences), 3) if confidences else 0.0
    return TeamSummary(
        total_projected_minutes=round(total, 1),
        active_players=len(projections),
        injured_players=injured,
        error_players=errors,
        average_confidence=average_confidence,
    )


def build_team_projection(
    team_id: int,
    season: str,
    roster: List[RosterEntry],
    profiles: Dict[int, SeasonProfile],
    context: GameContext,
    max_workers: Optional[int] = None,
    policy: ProjectionPolicy = DEFAULT_POLICY,
) -> TeamProjection:
    """
    Project a whole roster from already-loaded inputs.

    context.injured_teammates is the full injury list for the game; each player is
    projected with that list minus themselves.

    Returns TeamProjection(success=False, error="team not found") for an empty roster.
    """
    try:
        _require_roster(roster, team_id, season)
    except RosterNotFoundError as exc:
        logger.warning("%s", exc)
        return TeamProjection(success=False, team_id=team_id, season=season, error=TEAM_NOT_FOUND)

    injured_ids = context.injured_teammates
    injured = [
        PlayerRotationEntry(
            player_id=entry.player_id,
            player_name=entry.player_name,
            status=INJURED,
            context={"is_starter": entry.is_starter},
        )
        for entry in roster
        if entry.player_id in injured_ids
    ]
    active = [entry for entry in roster if entry.player_id not in injured_ids]

    results: List[PlayerRotationEntry] = []
    if active:
        workers = min(_resolve_workers(max_workers), len(active))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(
                    _project_entry,
                    entry,
                    profiles.get(entry.player_id),
                    context,
                    policy,
                    team_id,
                ): entry
                for entry in active
            }
            for future in as_completed(futures):
                results.append(future.result())

    projections = sorted(
        (r for r in results if r.status == ACTIVE),
        key=lambda r: (-r.projection.projected_minutes, not r.context["is_starter"], r.player_id),
    )
    errors = sorted((r for r in results if r.status == ERROR), key=lambda r: r.player_id)

    logger.info(
        "Team %s (%s): %d projected, %d injured, %d errors",
        team_id,
        season,
        len(projections),
        len(injured),
        len(errors),
    )
    return TeamProjection(
        success=True,
        team_id=team_id,
        season=season,
        context=context.to_dict(),
        projections=projections,
        injured=injured,
        errors=errors,
        summary=_summarize(projections, len(injured), len(errors)),
    )


def project_team_minutes(
    session: Session,
    team_id: int,
    season: str,
    context: GameContext,
    max_workers: Optional[int] = None,
    policy: ProjectionPolicy = DEFAULT_POLICY,
) -> TeamProjection:
    """
    Load the team's roster and injury reports, then project the rotation.

    Stored Out/Doubtful reports on or before context.game_date are merged with
    context.injured_teammates.
    """
    team_profiles = load_team_profiles(session, team_id, season)
    reported = load_injured_player_ids(session, team_id, as_of=context.game_date)
    merged = replace(context, injured_teammates=context.injured_teammates | reported)

    return build_team_projection(
        team_id,
        season,
        build_roster(team_profiles),
        {p.player_id: p for p in team_profiles},
        merged,
        max_workers=max_workers,
        policy=policy,
    )
