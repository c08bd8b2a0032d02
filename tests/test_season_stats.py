import datetime

import pytest

from analysis.errors import NoDataError
from analysis.season_stats import build_season_profile, compute_season_profile

CALCULATED_AT = datetime.datetime(2025, 1, 15, 5, 0, tzinfo=datetime.timezone.utc)


def test_season_averages_consistency_and_distribution(make_logs) -> None:
    profile = build_season_profile(make_logs([30, 32, 28, 34, 36]), calculated_at=CALCULATED_AT)

    assert profile.games_played == 5
    assert profile.games_processed == 5
    assert profile.averages.minutes == 32.0
    assert profile.averages.points == 16.0
    assert profile.minutes_std_dev == 2.83
    assert profile.minutes_range.min == 28.0
    assert profile.minutes_range.max == 36.0
    assert profile.minutes_distribution.under_20 == 0.0
    assert profile.minutes_distribution.from_20_to_30 == 20.0
    assert profile.minutes_distribution.from_30_to_35 == 60.0
    assert profile.minutes_distribution.over_35 == 20.0
    assert profile.last_game_date == datetime.date(2024, 11, 9)
    assert profile.last_game_minutes == 36.0
    assert profile.last_calculated == CALCULATED_AT
    assert profile.is_consistent()


def test_rolling_windows_use_most_recent_games(make_logs) -> None:
    profile = build_season_profile(make_logs([30, 32, 28, 34, 36]))

    assert profile.last_3.games_count == 3
    assert profile.last_3.minutes == 32.67
    assert profile.last_5.minutes == 32.0


def test_window_counts_are_capped_by_games_played(make_logs) -> None:
    profile = build_season_profile(make_logs([25.0] * 12))

    assert [profile.window(n).games_count for n in (3, 5, 10, 15, 20)] == [3, 5, 10, 12, 12]


def test_dnp_rows_are_ignored(make_logs) -> None:
    logs = make_logs([30, 0, 20], played=[True, False, True])
    profile = build_season_profile(logs)

    assert profile.games_played == 2
    assert profile.averages.minutes == 25.0


def test_missing_stats_count_as_zero(make_logs) -> None:
    profile = build_season_profile(make_logs([30, 30], points=[10.0, None]))

    assert profile.averages.points == 5.0


def test_home_away_split_covers_every_game(make_logs) -> None:
    logs = make_logs([30, 32, 28, 34, 36], is_home=[True, False, True, False, True])
    splits = build_season_profile(logs).splits

    assert splits.home.games_count == 3
    assert splits.away.games_count == 2
    assert splits.home.minutes == 31.33
    assert splits.away.minutes == 33.0


def test_starter_rate_and_starter_bench_split(make_logs) -> None:
    logs = make_logs([34, 33, 35, 18], is_starter=[True, True, True, False])
    profile = build_season_profile(logs)

    assert profile.games_started == 3
    assert profile.games_started <= profile.games_played
    assert profile.starter_rate == 75.0
    assert profile.splits.starter.games_count + profile.splits.bench.games_count == profile.games_played
    assert profile.splits.bench.minutes == 18.0


def test_rest_splits(make_logs) -> None:
    logs = make_logs(
        [30, 26, 32, 27],
        is_back_to_back=[False, True, False, True],
        days_rest=[99, 0, 2, 0],
    )
    splits = build_season_profile(logs).splits

    assert splits.back_to_back.games_count == 2
    assert splits.back_to_back.minutes == 26.5
    assert splits.rested.games_count == 2
    assert splits.rested.minutes == 31.0


def test_empty_split_is_zeroed(make_logs) -> None:
    splits = build_season_profile(make_logs([30, 30], is_home=True)).splits

    assert splits.away.games_count == 0
    assert splits.away.minutes == 0.0


def test_monthly_trend_buckets_by_year_and_month(make_logs) -> None:
    logs = make_logs([20, 30, 25, 35, 30, 40], start=datetime.date(2024, 11, 20), step=10)
    trend = build_season_profile(logs).monthly_minutes_trend

    assert [(m.month_label, m.games_count, m.average_minutes) for m in trend] == [
        ("November 2024", 2, 25.0),
        ("December 2024", 3, 30.0),
        ("January 2025", 1, 40.0),
    ]


def test_monthly_trend_month_only_merges_years(make_logs) -> None:
    logs = make_logs([20, 30], start=datetime.date(2024, 11, 5), step=365)

    by_year = build_season_profile(logs).monthly_minutes_trend
    merged = build_season_profile(logs, month_only=True).monthly_minutes_trend

    assert [m.month_label for m in by_year] == ["November 2024", "November 2025"]
    assert len(merged) == 1
    assert merged[0].month_label == "November"
    assert merged[0].games_count == 2
    assert merged[0].average_minutes == 25.0


def test_distribution_boundaries(make_logs) -> None:
    dist = build_season_profile(make_logs([10, 20, 30, 35])).minutes_distribution

    assert (dist.under_20, dist.from_20_to_30, dist.from_30_to_35, dist.over_35) == (
        25.0,
        25.0,
        25.0,
        25.0,
    )


def test_single_game_has_zero_std_dev(make_logs) -> None:
    profile = build_season_profile(make_logs([31.5]))

    assert profile.minutes_std_dev == 0.0
    assert profile.last_3.minutes_std_dev == 0.0
    assert profile.minutes_range.min == profile.minutes_range.max == 31.5


def test_rebuild_is_idempotent_regardless_of_input_order(make_logs) -> None:
    logs = make_logs([30, 22, 35, 18, 27, 31], is_home=[True, False] * 3)

    first = build_season_profile(logs, calculated_at=CALCULATED_AT)
    second = build_season_profile(list(reversed(logs)), calculated_at=CALCULATED_AT)

    assert first == second


def test_minutes_trend_direction(make_logs) -> None:
    rising = build_season_profile(make_logs([20] * 7 + [30, 30, 30]))
    falling = build_season_profile(make_logs([30] * 7 + [20, 20, 20]))
    flat = build_season_profile(make_logs([25] * 10))
    short = build_season_profile(make_logs([25, 25]))

    assert rising.minutes_trend() == "increasing"
    assert falling.minutes_trend() == "decreasing"
    assert flat.minutes_trend() == "stable"
    assert short.minutes_trend() == "stable"
    assert not build_season_profile(make_logs([10, 40, 12, 38])).is_consistent()


def test_identity_comes_from_latest_game(make_logs) -> None:
    logs = make_logs([30, 30], team_id=[1, 2], team_tricode=["BOS", "LAL"])
    profile = build_season_profile(logs)

    assert profile.team_id == 2
    assert profile.team_tricode == "LAL"


def test_no_played_games_raises(make_logs) -> None:
    with pytest.raises(NoDataError):
        build_season_profile(make_logs([0, 0], played=False))

    with pytest.raises(NoDataError):
        build_season_profile([])


def test_mixed_player_seasons_rejected(make_logs) -> None:
    logs = make_logs([30], player_id=1) + make_logs([30], player_id=2)

    with pytest.raises(ValueError):
        build_season_profile(logs)


def test_compute_from_store(session, make_logs, store_logs) -> None:
    store_logs(make_logs([30, 20, 0], played=[True, True, False]))

    profile = compute_season_profile(session, 1, "2024-25")

    assert profile is not None
    assert profile.games_played == 2
    assert profile.averages.minutes == 25.0


def test_compute_without_games_returns_none(session) -> None:
    assert compute_season_profile(session, 404, "2024-25") is None
