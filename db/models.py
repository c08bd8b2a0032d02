from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


# Season average attribute (analysis.records.StatAverages) -> profile column
PROFILE_AVERAGE_COLUMNS = {
    "minutes": "min",
    "points": "pts",
    "assists": "ast",
    "rebounds": "reb",
    "steals": "stl",
    "blocks": "blk",
    "turnovers": "tov",
    "field_goals_percentage": "fg_pct",
    "three_pointers_percentage": "three_p_pct",
    "free_throws_percentage": "ft_pct",
    "plus_minus": "plus_minus",
}

# Injury statuses that keep a player out of the rotation
OUT_STATUSES = ("Out", "Doubtful")


class PlayerGameLog(Base):
    __tablename__ = "player_game_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    player_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    player_name: Mapped[str] = mapped_column(String(128), nullable=False)
    season: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    game_date: Mapped[object] = mapped_column(Date, nullable=False)
    game_id: Mapped[str] = mapped_column(String(32), nullable=True)

    team_id: Mapped[int] = mapped_column(Integer, nullable=True, index=True)
    team_tricode: Mapped[str] = mapped_column(String(8), nullable=True)
    opponent_id: Mapped[int] = mapped_column(Integer, nullable=True)
    opponent_tricode: Mapped[str] = mapped_column(String(8), nullable=True)
    position: Mapped[str] = mapped_column(String(16), nullable=True)

    # Game situation
    is_home: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_starter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_back_to_back: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    days_rest: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    played: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Minutes in decimal form (36.57 == 36:34)
    minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Box score
    points: Mapped[float] = mapped_column(Float, nullable=True)
    assists: Mapped[float] = mapped_column(Float, nullable=True)
    rebounds: Mapped[float] = mapped_column(Float, nullable=True)
    steals: Mapped[float] = mapped_column(Float, nullable=True)
    blocks: Mapped[float] = mapped_column(Float, nullable=True)
    turnovers: Mapped[float] = mapped_column(Float, nullable=True)
    field_goals_percentage: Mapped[float] = mapped_column(Float, nullable=True)
    three_pointers_percentage: Mapped[float] = mapped_column(Float, nullable=True)
    free_throws_percentage: Mapped[float] = mapped_column(Float, nullable=True)
    plus_minus: Mapped[float] = mapped_column(Float, nullable=True)

    created_at: Mapped[object] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[object] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "player_id", "season", "game_date", name="uq_player_game_log_player_season_date"
        ),
    )


class PlayerSeasonProfile(Base):
    __tablename__ = "player_season_profile"

    # One row per player-season, replaced wholesale on every recompute
    player_id: Mapped[int] = mapped_column(Integer, primary_key=True, nullable=False)
    season: Mapped[str] = mapped_column(String(16), primary_key=True, nullable=False)

    player_name: Mapped[str] = mapped_column(String(128), nullable=False)
    team_id: Mapped[int] = mapped_column(Integer, nullable=True)
    team_tricode: Mapped[str] = mapped_column(String(8), nullable=True)
    position: Mapped[str] = mapped_column(String(16), nullable=True)

    gp: Mapped[int] = mapped_column(Integer, nullable=False)
    gs: Mapped[int] = mapped_column(Integer, nullable=False)
    starter_rate: Mapped[float] = mapped_column(Float, nullable=False)

    # Season averages (per game)
    min: Mapped[float] = mapped_column(Float, nullable=True)
    pts: Mapped[float] = mapped_column(Float, nullable=True)
    ast: Mapped[float] = mapped_column(Float, nullable=True)
    reb: Mapped[float] = mapped_column(Float, nullable=True)
    stl: Mapped[float] = mapped_column(Float, nullable=True)
    blk: Mapped[float] = mapped_column(Float, nullable=True)
    tov: Mapped[float] = mapped_column(Float, nullable=True)
    fg_pct: Mapped[float] = mapped_column(Float, nullable=True)
    three_p_pct: Mapped[float] = mapped_column(Float, nullable=True)
    ft_pct: Mapped[float] = mapped_column(Float, nullable=True)
    plus_minus: Mapped[float] = mapped_column(Float, nullable=True)

    # Rolling windows, null when the window has no games
    last_3: Mapped[dict] = mapped_column(JSON, nullable=True)
    last_5: Mapped[dict] = mapped_column(JSON, nullable=True)
    last_10: Mapped[dict] = mapped_column(JSON, nullable=True)
    last_15: Mapped[dict] = mapped_column(JSON, nullable=True)
    last_20: Mapped[dict] = mapped_column(JSON, nullable=True)

    # Situational splits keyed home/away/back_to_back/rested/starter/bench
    splits: Mapped[dict] = mapped_column(JSON, nullable=False)
    monthly_minutes_trend: Mapped[list] = mapped_column(JSON, nullable=False)

    # Consistency
    minutes_std_dev: Mapped[float] = mapped_column(Float, nullable=False)
    minutes_range: Mapped[dict] = mapped_column(JSON, nullable=False)
    minutes_distribution: Mapped[dict] = mapped_column(JSON, nullable=False)

    last_game_date: Mapped[object] = mapped_column(Date, nullable=True)
    last_game_minutes: Mapped[float] = mapped_column(Float, nullable=True)

    # Metadata
    last_calculated: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False)
    games_processed: Mapped[int] = mapped_column(Integer, nullable=False)
    calc_version: Mapped[str] = mapped_column(String(16), nullable=True)

    __table_args__ = (
        Index("ix_player_season_profile_team_season", "team_id", "season"),
    )


class InjuryReport(Base):
    __tablename__ = "injury_report"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    player_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    player_name: Mapped[str] = mapped_column(String(128), nullable=False)
    team_id: Mapped[int] = mapped_column(Integer, nullable=True, index=True)
    team_tricode: Mapped[str] = mapped_column(String(8), nullable=True)

    report_date: Mapped[object] = mapped_column(Date, nullable=False)
    game_date: Mapped[object] = mapped_column(Date, nullable=True)

    # Out, Doubtful, Questionable, Probable, GTD, Available
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=True)
    description: Mapped[str] = mapped_column(String(256), nullable=True)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    resolved_date: Mapped[object] = mapped_column(Date, nullable=True)

    created_at: Mapped[object] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_injury_report_team_status", "team_id", "status", "is_active"),
    )
