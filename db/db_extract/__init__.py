from .extractors import (
    fetch_game_logs,
    list_player_seasons,
    profile_from_row,
    load_season_profile,
    find_profile_by_name,
    load_team_profiles,
    load_injured_player_ids,
    is_player_injured,
    resolve_team_id,
)

__all__ = [
    "fetch_game_logs",
    "list_player_seasons",
    "profile_from_row",
    "load_season_profile",
    "find_profile_by_name",
    "load_team_profiles",
    "load_injured_player_ids",
    "is_player_injured",
    "resolve_team_id",
]
