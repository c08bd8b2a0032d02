"""
Typed records shared by the aggregator, the projection engine and the rotation projector.

Game logs come in as GameLogRecord, the aggregator folds them into a SeasonProfile,
and projections come out as ProjectionResult / TeamProjection. Everything here is
plain data; persistence lives in db.models.
"""
import datetime
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, FrozenSet, List, Optional


ROLLING_WINDOW_SIZES = (3, 5, 10, 15, 20)


@dataclass(frozen=True)
class GameLogRecord:
    """One player's line for one game, as supplied by the game log store."""

    player_id: int
    season: str
    game_date: datetime.date
    minutes: float = 0.0
    player_name: str = ""
    team_id: Optional[int] = None
    team_tricode: Optional[str] = None
    position: Optional[str] = None
    game_id: Optional[str] = None
    opponent_id: Optional[int] = None
    opponent_tricode: Optional[str] = None

    # Box score; None means the stat was not recorded
    points: Optional[float] = None
    assists: Optional[float] = None
    rebounds: Optional[float] = None
    steals: Optional[float] = None
    blocks: Optional[float] = None
    turnovers: Optional[float] = None
    field_goals_percentage: Optional[float] = None
    three_pointers_percentage: Optional[float] = None
    free_throws_percentage: Optional[float] = None
    plus_minus: Optional[float] = None

    # Game situation
    is_home: bool = False
    is_back_to_back: bool = False
    days_rest: int = 0
    is_starter: bool = False
    played: bool = True


@dataclass(frozen=True)
class StatAverages:
    minutes: float
    points: float
    assists: float
    rebounds: float
    steals: float
    blocks: float
    turnovers: float
    field_goals_percentage: float
    three_pointers_percentage: float
    free_throws_percentage: float
    plus_minus: float


# Column names the aggregator averages, taken from the typed record itself
AVERAGED_STATS = tuple(f.name for f in fields(StatAverages))


@dataclass(frozen=True)
class RollingWindow(StatAverages):
    games_count: int
    minutes_std_dev: float


@dataclass(frozen=True)
class SplitStats:
    games_count: int = 0
    minutes: float = 0.0
    points: float = 0.0


@dataclass(frozen=True)
class SeasonSplits:
    home: SplitStats
    away: SplitStats
    back_to_back: SplitStats
    rested: SplitStats
    starter: SplitStats
    bench: SplitStats


@dataclass(frozen=True)
class MonthlyTrendEntry:
    month_label: str
    games_count: int
    average_minutes: float


@dataclass(frozen=True)
class MinutesRange:
    min: float
    max: float


@dataclass(frozen=True)
class MinutesDistribution:
    under_20: float
    from_20_to_30: float
    from_30_to_35: float
    over_35: float


@dataclass(frozen=True)
class SeasonProfile:
    player_id: int
    season: str
    player_name: str
    team_id: Optional[int]
    team_tricode: Optional[str]
    position: Optional[str]

    games_played: int
    games_started: int
    starter_rate: float
    averages: StatAverages

    last_3: Optional[RollingWindow]
    last_5: Optional[RollingWindow]
    last_10: Optional[RollingWindow]
    last_15: Optional[RollingWindow]
    last_20: Optional[RollingWindow]

    splits: SeasonSplits
    monthly_minutes_trend: List[MonthlyTrendEntry]
    minutes_std_dev: float
    minutes_range: MinutesRange
    minutes_distribution: MinutesDistribution

    last_game_date: Optional[datetime.date]
    last_game_minutes: Optional[float]
    last_calculated: datetime.datetime
    games_processed: int

    def window(self, size: int) -> Optional[RollingWindow]:
        return getattr(self, f"last_{size}")

    def minutes_trend(self) -> str:
        """Direction of recent playing time: last 3 games against last 10."""
        if self.last_3 is None or self.last_10 is None:
            return "unknown"
        diff = self.last_3.minutes - self.last_10.minutes
        if diff > 3:
            return "increasing"
        if diff < -3:
            return "decreasing"
        return "stable"

    def is_consistent(self) -> bool:
        return self.minutes_std_dev < 5

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["last_game_date"] = self.last_game_date.isoformat() if self.last_game_date else None
        out["last_calculated"] = self.last_calculated.isoformat()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SeasonProfile":
        def window(raw: Optional[dict]) -> Optional[RollingWindow]:
            return RollingWindow(**raw) if raw else None

        last_game_date = data.get("last_game_date")
        if isinstance(last_game_date, str):
            last_game_date = datetime.date.fromisoformat(last_game_date)
        last_calculated = data["last_calculated"]
        if isinstance(last_calculated, str):
            last_calculated = datetime.datetime.fromisoformat(last_calculated)

        return cls(
            player_id=int(data["player_id"]),
            season=data["season"],
            player_name=data.get("player_name") or "",
            team_id=data.get("team_id"),
            team_tricode=data.get("team_tricode"),
            position=data.get("position"),
            games_played=int(data["games_played"]),
            games_started=int(data["games_started"]),
            starter_rate=float(data["starter_rate"]),
            averages=StatAverages(**data["averages"]),
            last_3=window(data.get("last_3")),
            last_5=window(data.get("last_5")),
            last_10=window(data.get("last_10")),
            last_15=window(data.get("last_15")),
            last_20=window(data.get("last_20")),
            splits=SeasonSplits(
                **{name: SplitStats(**raw) for name, raw in data["splits"].items()}
            ),
            monthly_minutes_trend=[
                MonthlyTrendEntry(**entry) for entry in data.get("monthly_minutes_trend") or []
            ],
            minutes_std_dev=float(data["minutes_std_dev"]),
            minutes_range=MinutesRange(**data["minutes_range"]),
            minutes_distribution=MinutesDistribution(**data["minutes_distribution"]),
            last_game_date=last_game_date,
            last_game_minutes=data.get("last_game_minutes"),
            last_calculated=last_calculated,
            games_processed=int(data["games_processed"]),
        )


@dataclass(frozen=True)
class GameContext:
    """Situation of the upcoming game being projected."""

    is_home: bool = False
    days_rest: int = 1
    injured_teammates: FrozenSet[int] = frozenset()
    opponent_id: Optional[int] = None
    game_date: Optional[datetime.date] = None

    def __post_init__(self):
        if self.days_rest < 0:
            raise ValueError(f"days_rest must be >= 0, got {self.days_rest}")
        # Accept any iterable of ids from callers
        object.__setattr__(self, "injured_teammates", frozenset(self.injured_teammates))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_home": self.is_home,
            "days_rest": self.days_rest,
            "injured_teammates": sorted(self.injured_teammates),
            "opponent_id": self.opponent_id,
            "game_date": self.game_date.isoformat() if self.game_date else None,
        }


@dataclass(frozen=True)
class Adjustment:
    value: float
    reason: str


@dataclass(frozen=True)
class ProjectionBreakdown:
    baseline_minutes: float
    adjustments: List[Adjustment] = field(default_factory=list)

    @property
    def total_adjustment(self) -> float:
        return round(sum(a.value for a in self.adjustments), 2)


@dataclass(frozen=True)
class ProjectionResult:
    success: bool
    player_id: int
    error: Optional[str] = None
    player_name: Optional[str] = None
    team_id: Optional[int] = None
    team_tricode: Optional[str] = None
    projected_minutes: Optional[float] = None
    confidence: Optional[float] = None
    confidence_level: Optional[str] = None
    breakdown: Optional[ProjectionBreakdown] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, player_id: int, error: str) -> "ProjectionResult":
        return cls(success=False, player_id=player_id, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "player_id": self.player_id, "error": self.error}
        out = asdict(self)
        out.pop("error")
        out["breakdown"]["total_adjustment"] = self.breakdown.total_adjustment
        return out


@dataclass(frozen=True)
class RosterEntry:
    player_id: int
    player_name: str
    is_starter: bool


@dataclass(frozen=True)
class PlayerRotationEntry:
    player_id: int
    player_name: str
    status: str  # ACTIVE, INJURED or ERROR
    context: Dict[str, Any]
    projection: Optional[ProjectionResult] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "status": self.status,
            "context": dict(self.context),
        }
        if self.projection is not None:
            out["projection"] = self.projection.to_dict()
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class TeamSummary:
    total_projected_minutes: float
    active_players: int
    injured_players: int
    error_players: int
    average_confidence: float


@dataclass(frozen=True)
class TeamProjection:
    success: bool
    team_id: int
    season: str
    error: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    projections: List[PlayerRotationEntry] = field(default_factory=list)
    injured: List[PlayerRotationEntry] = field(default_factory=list)
    errors: List[PlayerRotationEntry] = field(default_factory=list)
    summary: Optional[TeamSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {
                "success": False,
                "team_id": self.team_id,
                "season": self.season,
                "error": self.error,
            }
        return {
            "success": True,
            "team_id": self.team_id,
            "season": self.season,
            "context": dict(self.context),
            "projections": [p.to_dict() for p in self.projections],
            "injured": [p.to_dict() for p in self.injured],
            "errors": [p.to_dict() for p in self.errors],
            "summary": asdict(self.summary),
        }
