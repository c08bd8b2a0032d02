"""
Helpers for NBA season strings, rest-day derivation and box score minute formats.
"""
import datetime
import logging
import numbers
import re
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Rest days assigned to a player's first game of the season
FIRST_GAME_DAYS_REST = 99

_ISO_MINUTES_RE = re.compile(r"PT(\d+)M([\d.]+)S")


def year_to_season(year: int) -> str:
    """2023 -> '2023-24'"""
    return f"{year}-{str(year + 1)[-2:]}"


def date_to_season(day: datetime.date) -> str:
    # July-December belongs to the season starting that year
    if day.month >= 7:
        return year_to_season(day.year)
    return year_to_season(day.year - 1)


def current_season(today: Optional[datetime.date] = None) -> str:
    return date_to_season(today or datetime.date.today())


def days_between(later: datetime.date, earlier: datetime.date) -> int:
    return abs((later - earlier).days)


def calculate_days_rest(game_date: datetime.date, previous_game_date: Optional[datetime.date]) -> int:
    """Days off between games: 0 on a back-to-back, 1 with one day off, and so on."""
    if previous_game_date is None:
        return FIRST_GAME_DAYS_REST
    return max(0, days_between(game_date, previous_game_date) - 1)


def is_back_to_back(game_date: datetime.date, previous_game_date: Optional[datetime.date]) -> bool:
    if previous_game_date is None:
        return False
    return days_between(game_date, previous_game_date) == 1


def parse_minutes(raw: Union[str, float, int, None]) -> float:
    """
    Convert a box score minutes value to decimal minutes.

    Accepts ISO-8601 durations as published by the NBA live data feed
    (PT36M34.00S -> 36.57), clock strings (36:34) and plain numbers.
    Unparseable values count as zero minutes.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, numbers.Real):
        return 0.0 if raw != raw else round(float(raw), 2)

    text = raw.strip()
    if not text:
        return 0.0

    match = _ISO_MINUTES_RE.fullmatch(text)
    if match:
        return round(int(match.group(1)) + float(match.group(2)) / 60.0, 2)

    if ":" in text:
        mins, _, secs = text.partition(":")
        try:
            return round(int(mins) + float(secs) / 60.0, 2)
        except ValueError:
            pass
    else:
        try:
            return round(float(text), 2)
        except ValueError:
            pass

    logger.warning("Failed to parse minutes: %s", raw)
    return 0.0


def format_minutes(decimal_minutes: float) -> str:
    """36.57 -> '36:34'"""
    if not decimal_minutes:
        return "0:00"
    mins = int(decimal_minutes)
    secs = round((decimal_minutes - mins) * 60)
    if secs == 60:
        mins, secs = mins + 1, 0
    return f"{mins}:{secs:02d}"
