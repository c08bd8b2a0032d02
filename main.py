"""
NBA Minutes API

FastAPI application with scheduled tasks and admin endpoints for:
- Season profile lookups
- Player and team minutes projections
- Nightly season profile recomputation
"""
import os
import asyncio
import datetime
from functools import partial
from typing import Iterator, List, Optional
import logging

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv
from sqlalchemy.orm import Session, sessionmaker

from analysis.minutes_proj import project_player_minutes
from analysis.records import GameContext
from analysis.team_rotation import project_team_minutes
from analysis.utils.season_helper import current_season
from db.database import get_engine, get_session_maker
from db.db_extract import load_season_profile

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="NBA Minutes API",
    version="0.1.0",
    description="NBA season profiles and minutes projections with nightly profile updates"
)

# Scheduler for automated tasks
scheduler = AsyncIOScheduler()

# Database URL from environment
DATABASE_URL = os.getenv("DATABASE_URL")

_session_factory: Optional[sessionmaker] = None


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = get_session_maker(get_engine(DATABASE_URL))
    return _session_factory


def get_db() -> Iterator[Session]:
    """Request-scoped database session"""
    with get_session_factory()() as session:
        yield session


# ============================================================================
# Pydantic Models
# ============================================================================

class TaskStatus(BaseModel):
    """Status response for async tasks"""
    task: str
    status: str
    message: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class GameContextParams(BaseModel):
    """Situation of the game being projected"""
    season: Optional[str] = None  # e.g. 2024-25, defaults to the season of game_date
    is_home: bool = False
    days_rest: int = Field(1, ge=0)
    injured_teammates: List[int] = Field(default_factory=list)
    opponent_id: Optional[int] = None
    game_date: Optional[datetime.date] = None

    def resolved_season(self) -> str:
        return self.season or current_season(self.game_date)

    def to_context(self) -> GameContext:
        return GameContext(
            is_home=self.is_home,
            days_rest=self.days_rest,
            injured_teammates=frozenset(self.injured_teammates),
            opponent_id=self.opponent_id,
            game_date=self.game_date,
        )


class PlayerProjectionRequest(GameContextParams):
    team_id: Optional[int] = None


class RecalculateParams(BaseModel):
    """Optional filters for a profile recompute"""
    season: Optional[str] = None
    player_id: Optional[int] = None
    month_only: bool = False


# ============================================================================
# Background Task Functions
# ============================================================================

async def run_profile_recalculation(
    season: Optional[str] = None,
    player_id: Optional[int] = None,
    month_only: bool = False,
):
    """Recompute stored season profiles from the game logs"""
    try:
        logger.info(f"Starting profile recalculation (season={season or 'all'}, player={player_id or 'all'})")

        # Import here to avoid circular imports
        from db.run_profile_update import recalculate_profiles

        # Run in executor to avoid blocking
        loop = asyncio.get_event_loop()
        summary = await loop.run_in_executor(
            None,
            partial(
                recalculate_profiles,
                get_session_factory(),
                season=season,
                player_id=player_id,
                month_only=month_only,
                max_workers=int(os.getenv("PROFILE_UPDATE_WORKERS", "1")),
            ),
        )

        logger.info(
            f"Profile recalculation completed: {summary.processed} processed, "
            f"{summary.skipped} skipped, {summary.errors} errors"
        )

    except Exception as e:
        logger.error(f"Profile recalculation failed: {e}", exc_info=True)
        raise


# ============================================================================
# Scheduled Tasks (05:00 EST)
# ============================================================================

async def scheduled_profile_update():
    """Scheduled task that recomputes the current season overnight"""
    try:
        logger.info("Running scheduled profile update")
        await run_profile_recalculation(season=current_season())
        logger.info("Scheduled profile update completed")
    except Exception as e:
        logger.error(f"Scheduled profile update failed: {e}", exc_info=True)


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/")
async def root():
    """Root endpoint with API info"""
    return {
        "status": "ok",
        "service": "nba-minutes",
        "version": "0.1.0",
        "endpoints": {
            "players": "/api/v1/players/*",
            "teams": "/api/v1/teams/*",
            "admin": "/api/v1/admin/*",
            "scheduler": "/api/v1/scheduler/*"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "database_configured": DATABASE_URL is not None,
        "scheduler_running": scheduler.running,
    }


# ============================================================================
# Profile & Projection Endpoints
# ============================================================================

@app.get("/api/v1/players/{player_id}/profile")
def get_player_profile(
    player_id: int,
    season: Optional[str] = None,
    session: Session = Depends(get_db),
):
    """Stored season profile for a player"""
    season = season or current_season()
    try:
        profile = load_season_profile(session, player_id, season)
    except Exception as exc:
        logger.error(f"Profile lookup failed for player {player_id}: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Unexpected error: {exc}")

    if profile is None:
        raise HTTPException(
            status_code=404,
            detail=f"No {season} profile for player {player_id}"
        )
    data = profile.to_dict()
    data["minutes_trend"] = profile.minutes_trend()
    data["is_consistent"] = profile.is_consistent()
    return data


@app.post("/api/v1/players/{player_id}/projection")
def project_player(
    player_id: int,
    params: PlayerProjectionRequest,
    session: Session = Depends(get_db),
):
    """
    Project minutes for one player.
    Missing data comes back as success=false rather than an HTTP error.
    """
    try:
        result = project_player_minutes(
            session,
            player_id,
            params.team_id,
            params.resolved_season(),
            params.to_context(),
        )
    except Exception as exc:
        logger.error(f"Projection failed for player {player_id}: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Unexpected error: {exc}")
    return result.to_dict()


@app.post("/api/v1/teams/{team_id}/projection")
def project_team(
    team_id: int,
    params: GameContextParams,
    session: Session = Depends(get_db),
):
    """
    Project minutes for a team's whole rotation.
    An unknown team comes back as success=false, error="team not found".
    """
    try:
        team = project_team_minutes(
            session,
            team_id,
            params.resolved_season(),
            params.to_context(),
        )
    except Exception as exc:
        logger.error(f"Team projection failed for team {team_id}: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Unexpected error: {exc}")
    return team.to_dict()


# ============================================================================
# Admin Endpoints - Manual Triggers
# ============================================================================

@app.post("/api/v1/admin/recalculate-profiles", response_model=TaskStatus)
async def trigger_profile_recalculation(
    background_tasks: BackgroundTasks,
    params: RecalculateParams
):
    """
    Manually trigger a season profile recompute.
    Runs: python -m db.run_profile_update
    """
    background_tasks.add_task(
        run_profile_recalculation, params.season, params.player_id, params.month_only
    )

    scope = params.season or "all seasons"
    if params.player_id is not None:
        scope = f"{scope}, player {params.player_id}"
    return TaskStatus(
        task="profile_recalculation",
        status="started",
        message=f"Profile recalculation started for {scope}",
        started_at=datetime.datetime.now().isoformat()
    )


# ============================================================================
# Scheduler Endpoints
# ============================================================================

@app.get("/api/v1/scheduler/status")
async def get_scheduler_status():
    """Get scheduler status and upcoming jobs"""
    jobs = scheduler.get_jobs()
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
                "trigger": str(job.trigger)
            }
            for job in jobs
        ]
    }


@app.post("/api/v1/scheduler/pause")
async def pause_scheduler():
    """Pause the scheduler (stops automatic tasks)"""
    scheduler.pause()
    return {"status": "paused", "message": "Scheduler paused. Automatic tasks will not run."}


@app.post("/api/v1/scheduler/resume")
async def resume_scheduler():
    """Resume the scheduler"""
    scheduler.resume()
    return {"status": "running", "message": "Scheduler resumed. Automatic tasks enabled."}


# ============================================================================
# Application Lifecycle
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize scheduler on startup"""
    logger.info("Starting NBA Minutes API...")

    # Nightly recompute after the previous day's games are final
    scheduler.add_job(
        scheduled_profile_update,
        trigger=CronTrigger(hour=5, minute=0, timezone='America/New_York'),
        id='nightly_profile_update',
        name='Nightly Profile Update (EST)',
        replace_existing=True
    )

    # Start scheduler
    scheduler.start()
    logger.info("Scheduler started. Nightly 05:00 EST job configured.")
    logger.info(f"Database URL configured: {DATABASE_URL is not None}")

    # Log next run time
    jobs = scheduler.get_jobs()
    for job in jobs:
        if job.next_run_time:
            logger.info(f"Next scheduled run: {job.next_run_time.isoformat()}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down...")
    scheduler.shutdown()
    logger.info("Scheduler stopped")


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
