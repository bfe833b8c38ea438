"""
Record Normalization Module

Turns raw game-log rows into a clean, duplicate-free set of
(player, team, season) memberships. A player appears once per team-season
no matter how many games they logged for that team.
"""

import pandas as pd
from typing import Any, Dict, Hashable, Iterable, List, Optional, Union
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PLAYER_COLUMN = 'player_id'
TEAM_COLUMN = 'team_id'
SEASON_COLUMN = 'season'


@dataclass(frozen=True, order=True)
class PlayerTeamSeason:
    """One player's membership on one team in one season."""
    player_id: Hashable
    team_id: Hashable
    season: str

    @property
    def team_season(self) -> tuple:
        return (self.team_id, self.season)


def sort_players(players: Iterable[Hashable]) -> List[Hashable]:
    """
    Sort player identifiers deterministically.

    Identifiers of one comparable type sort naturally; mixed types fall back
    to their string form.
    """
    players = list(players)
    try:
        return sorted(players)
    except TypeError:
        return sorted(players, key=lambda p: (type(p).__name__, str(p)))


def _clean_identifier(value: Any) -> Optional[Hashable]:
    """Return a usable identifier, or None for null/blank values."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, str):
        value = value.strip()
        return value or None
    # Integral floats come from pandas upcasting id columns that contained NaN
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if hasattr(value, 'item'):
        # numpy scalars -> python scalars so ids hash and compare consistently
        return value.item()
    return value


def normalize_records(game_logs: Union[pd.DataFrame, Iterable[Dict[str, Any]]],
                      player_column: str = PLAYER_COLUMN,
                      team_column: str = TEAM_COLUMN,
                      season_column: str = SEASON_COLUMN,
                      season_range: Optional[Iterable[str]] = None,
                      players: Optional[Iterable[Hashable]] = None) -> List[PlayerTeamSeason]:
    """
    Deduplicate game-log rows into PlayerTeamSeason records.

    Args:
        game_logs: DataFrame (or iterable of dict rows) of game logs. Box-score
            columns are allowed and ignored.
        player_column: Column holding the player identifier
        team_column: Column holding the team identifier
        season_column: Column holding the season identifier
        season_range: If given, only rows whose season is in this set are kept
        players: If given (e.g. a draft class), only these players are kept

    Returns:
        Sorted list of unique PlayerTeamSeason records
    """
    if not isinstance(game_logs, pd.DataFrame):
        game_logs = pd.DataFrame(list(game_logs))

    required = [player_column, team_column, season_column]
    if game_logs.empty and not set(required).issubset(game_logs.columns):
        logger.warning("No game-log rows to normalize")
        return []

    missing_columns = [c for c in required if c not in game_logs.columns]
    if missing_columns:
        raise ValueError(f"Game logs are missing required columns: {missing_columns}")

    season_filter = {str(s) for s in season_range} if season_range is not None else None
    player_filter = None
    if players is not None:
        player_filter = {_clean_identifier(p) for p in players}
        player_filter.discard(None)

    records = set()
    dropped = 0
    filtered = 0

    for player_id, team_id, season in game_logs[required].itertuples(index=False, name=None):
        player_id = _clean_identifier(player_id)
        team_id = _clean_identifier(team_id)
        season = _clean_identifier(season)

        if player_id is None or team_id is None or season is None:
            dropped += 1
            continue

        season = str(season)
        if season_filter is not None and season not in season_filter:
            filtered += 1
            continue
        if player_filter is not None and player_id not in player_filter:
            filtered += 1
            continue

        records.add(PlayerTeamSeason(player_id, team_id, season))

    if dropped:
        logger.warning(f"Dropped {dropped} game-log rows with missing player/team/season identifiers")
    if filtered:
        logger.info(f"Filtered out {filtered} rows outside the requested seasons/players")

    try:
        result = sorted(records)
    except TypeError:
        result = sorted(records, key=lambda r: (str(r.player_id), str(r.team_id), r.season))

    logger.info(f"Normalized {len(game_logs)} rows into {len(result)} player-team-seasons")
    return result


def extract_player_names(game_logs: pd.DataFrame,
                         player_column: str = PLAYER_COLUMN,
                         name_column: str = 'player_name') -> Dict[Hashable, str]:
    """Map player id -> display name (last non-null name seen wins)."""
    if game_logs.empty or player_column not in game_logs.columns or name_column not in game_logs.columns:
        return {}

    names = {}
    for player_id, name in game_logs[[player_column, name_column]].itertuples(index=False, name=None):
        player_id = _clean_identifier(player_id)
        name = _clean_identifier(name)
        if player_id is not None and name is not None:
            names[player_id] = str(name)
    return names


def records_to_frame(records: Iterable[PlayerTeamSeason]) -> pd.DataFrame:
    """Convert records to a DataFrame with the standard column names."""
    return pd.DataFrame(
        [(r.player_id, r.team_id, r.season) for r in records],
        columns=[PLAYER_COLUMN, TEAM_COLUMN, SEASON_COLUMN]
    )
