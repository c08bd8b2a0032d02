"""
Season Statistics Aggregator

Folds every played game of one player-season into a SeasonProfile:
1. Season averages for the box score stats
2. Rolling windows over the most recent 3/5/10/15/20 games
3. Situational splits (home/away, back-to-back/rested, starter/bench)
4. Monthly minutes trend
5. Minutes consistency (std dev, range) and distribution buckets

The fold is pure: the same set of game logs always yields the same profile,
apart from the last_calculated timestamp.
"""
import datetime
import logging
from dataclasses import asdict
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd
from sqlalchemy.orm import Session

from db.db_extract import fetch_game_logs

from .errors import NoDataError
from .records import (
    AVERAGED_STATS,
    ROLLING_WINDOW_SIZES,
    GameLogRecord,
    MinutesDistribution,
    MinutesRange,
    MonthlyTrendEntry,
    RollingWindow,
    SeasonProfile,
    SeasonSplits,
    SplitStats,
    StatAverages,
)
from .utils import DataUtils

logger = logging.getLogger(__name__)


def _r1(v) -> float:
    return DataUtils.round_to(v, 1)


def _r2(v) -> float:
    return DataUtils.round_to(v, 2)


def _games_frame(logs: Iterable[GameLogRecord]) -> pd.DataFrame:
    """
    Played games as a DataFrame in chronological order.

    Missing stats are filled with 0 so they stay in every denominator.
    """
    played = [asdict(log) for log in logs if log.played]
    if not played:
        raise NoDataError("No played games to aggregate")

    df = pd.DataFrame(played)
    keys = df[["player_id", "season"]].drop_duplicates()
    if len(keys) > 1:
        raise ValueError(
            f"Game logs span {len(keys)} player-seasons; aggregate one player-season at a time"
        )

    stat_cols = list(AVERAGED_STATS)
    df[stat_cols] = df[stat_cols].apply(pd.to_numeric, errors="coerce").fillna(0.0)
    for flag in ("is_home", "is_back_to_back", "is_starter"):
        df[flag] = df[flag].fillna(False).astype(bool)
    df["days_rest"] = pd.to_numeric(df["days_rest"], errors="coerce").fillna(0).astype(int)

    # Stable sort keeps input order for any same-day duplicates
    return df.sort_values("game_date", kind="mergesort").reset_index(drop=True)


def calculate_std_dev(values: pd.Series) -> float:
    """Population standard deviation, 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    arr = values.to_numpy(dtype=float)
    return _r2(np.sqrt(np.mean((arr - arr.mean()) ** 2)))


def calculate_averages(games: pd.DataFrame) -> StatAverages:
    means = games[list(AVERAGED_STATS)].mean()
    return StatAverages(**{stat: _r2(means[stat]) for stat in AVERAGED_STATS})


def calculate_rolling_window(recent_first: pd.DataFrame, size: int) -> Optional[RollingWindow]:
    """Averages over the `size` most recent games, None when there are none."""
    window = recent_first.head(size)
    if window.empty:
        return None
    return RollingWindow(
        **asdict(calculate_averages(window)),
        games_count=len(window),
        minutes_std_dev=calculate_std_dev(window["minutes"]),
    )


def _split(games: pd.DataFrame, mask: pd.Series) -> SplitStats:
    subset = games[mask]
    if subset.empty:
        return SplitStats()
    return SplitStats(
        games_count=len(subset),
        minutes=_r2(subset["minutes"].mean()),
        points=_r2(subset["points"].mean()),
    )


def calculate_splits(games: pd.DataFrame) -> SeasonSplits:
    # Predicates overlap on purpose: an away game can also be a rested game
    rested = ~games["is_back_to_back"] & (games["days_rest"] >= 2)
    return SeasonSplits(
        home=_split(games, games["is_home"]),
        away=_split(games, ~games["is_home"]),
        back_to_back=_split(games, games["is_back_to_back"]),
        rested=_split(games, rested),
        starter=_split(games, games["is_starter"]),
        bench=_split(games, ~games["is_starter"]),
    )


def calculate_monthly_trend(games: pd.DataFrame, month_only: bool = False) -> List[MonthlyTrendEntry]:
    """
    Average minutes per calendar month, in order of first appearance.

    Buckets are (year, month) and labelled "November 2024". With month_only the
    year is dropped, so the same month name from different years shares a bucket.
    """
    dates = pd.to_datetime(games["game_date"])
    labels = dates.dt.month_name()
    if not month_only:
        labels = labels + " " + dates.dt.year.astype(str)

    grouped = games.groupby(labels, sort=False)["minutes"].agg(["count", "sum"])
    return [
        MonthlyTrendEntry(
            month_label=str(label),
            games_count=int(row["count"]),
            average_minutes=_r2(row["sum"] / row["count"]),
        )
        for label, row in grouped.iterrows()
    ]


def calculate_minutes_distribution(minutes: pd.Series) -> MinutesDistribution:
    # Buckets are rounded independently and may not add up to exactly 100
    total = len(minutes)

    def pct(mask: pd.Series) -> float:
        return _r1(DataUtils.safe_divide(float(mask.sum()), total) * 100.0)

    return MinutesDistribution(
        under_20=pct(minutes < 20),
        from_20_to_30=pct((minutes >= 20) & (minutes < 30)),
        from_30_to_35=pct((minutes >= 30) & (minutes < 35)),
        over_35=pct(minutes >= 35),
    )


def build_season_profile(
    logs: Iterable[GameLogRecord],
    month_only: bool = False,
    calculated_at: Optional[datetime.datetime] = None,
) -> SeasonProfile:
    """
    Build the season profile for one player-season from its game logs.

    Args:
        logs: Game logs of a single player-season, any order; DNPs are ignored
        month_only: Collapse the monthly trend to month names (see calculate_monthly_trend)
        calculated_at: Timestamp recorded as last_calculated (default: now, UTC)

    Raises:
        NoDataError: if there is no played game
    """
    games = _games_frame(logs)
    recent_first = games.iloc[::-1]
    latest = recent_first.iloc[0]

    games_played = len(games)
    games_started = int(games["is_starter"].sum())
    minutes = games["minutes"]

    windows = {
        size: calculate_rolling_window(recent_first, size) for size in ROLLING_WINDOW_SIZES
    }

    return SeasonProfile(
        player_id=int(latest["player_id"]),
        season=str(latest["season"]),
        player_name=latest["player_name"] or "",
        team_id=None if pd.isna(latest["team_id"]) else int(latest["team_id"]),
        team_tricode=latest["team_tricode"],
        position=latest["position"],
        games_played=games_played,
        games_started=games_started,
        starter_rate=_r1(games_started / games_played * 100.0),
        averages=calculate_averages(games),
        last_3=windows[3],
        last_5=windows[5],
        last_10=windows[10],
        last_15=windows[15],
        last_20=windows[20],
        splits=calculate_splits(games),
        monthly_minutes_trend=calculate_monthly_trend(games, month_only=month_only),
        minutes_std_dev=calculate_std_dev(minutes),
        minutes_range=MinutesRange(min=_r2(minutes.min()), max=_r2(minutes.max())),
        minutes_distribution=calculate_minutes_distribution(minutes),
        last_game_date=latest["game_date"],
        last_game_minutes=_r2(latest["minutes"]),
        last_calculated=calculated_at or datetime.datetime.now(datetime.timezone.utc),
        games_processed=games_played,
    )


def compute_season_profile(
    session: Session,
    player_id: int,
    season: str,
    month_only: bool = False,
) -> Optional[SeasonProfile]:
    """
    Read a player-season's played games from the log store and aggregate them.

    Returns None when the player has no played games, so callers can tell
    "no data" apart from a profile full of zeros and skip the upsert.
    """
    logs = fetch_game_logs(session, player_id, season)
    try:
        return build_season_profile(logs, month_only=month_only)
    except NoDataError:
        logger.info("No played games for player %s in %s; no profile built", player_id, season)
        return None
