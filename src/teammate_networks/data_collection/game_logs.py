"""
Game Log Data Collection Module

Collects NBA player game logs and draft classes using nba_api. The network
core only needs (player, team, season) from each row; box-score columns are
kept so saved logs remain useful on their own.
"""

import pandas as pd
from nba_api.stats.endpoints import leaguegamelog, drafthistory
import os
import time
import logging
from typing import Iterable, Optional, Set

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# nba_api column -> pipeline column
GAME_LOG_COLUMNS = {
    'PLAYER_ID': 'player_id',
    'PLAYER_NAME': 'player_name',
    'TEAM_ID': 'team_id',
    'TEAM_ABBREVIATION': 'team_abbreviation',
    'GAME_ID': 'game_id',
    'GAME_DATE': 'game_date',
    'MATCHUP': 'matchup',
    'MIN': 'minutes',
    'PTS': 'points',
    'REB': 'rebounds',
    'AST': 'assists',
}


class GameLogCollector:
    """Collects NBA player game logs and draft classes."""

    def __init__(self, cache_dir: Optional[str] = "cache_nba_api", request_delay: float = 0.6):
        self.cache_dir = cache_dir
        self.request_delay = request_delay  # NBA API rate limiting
        if self.cache_dir:
            os.makedirs(self.cache_dir, exist_ok=True)

    def _cache_path(self, name: str) -> Optional[str]:
        if not self.cache_dir:
            return None
        return os.path.join(self.cache_dir, name)

    def get_season_game_logs(self, season: str,
                             season_type: str = 'Regular Season') -> pd.DataFrame:
        """
        Get every player game log for one season.

        Args:
            season: Season string (e.g., '2023-24')
            season_type: 'Regular Season' or 'Playoffs'

        Returns:
            DataFrame with standardized columns and a 'season' column
        """
        cache_file = self._cache_path(f"game_logs_{season}_{season_type.replace(' ', '_')}.csv")
        if cache_file and os.path.exists(cache_file):
            logger.info(f"Loading cached game logs from {cache_file}")
            return pd.read_csv(cache_file)

        logger.info(f"Fetching {season_type} game logs for {season}")
        time.sleep(self.request_delay)
        try:
            endpoint = leaguegamelog.LeagueGameLog(
                season=season,
                season_type_all_star=season_type,
                player_or_team_abbreviation='P'
            )
            logs = endpoint.get_data_frames()[0]
        except Exception as e:
            logger.error(f"Error fetching game logs for season {season}: {e}")
            raise

        logs = logs.rename(columns=GAME_LOG_COLUMNS)
        logs = logs[[c for c in GAME_LOG_COLUMNS.values() if c in logs.columns]].copy()
        logs['season'] = season

        logger.info(f"Collected {len(logs)} game-log rows for {season}")

        if cache_file:
            logs.to_csv(cache_file, index=False)
        return logs

    def collect_game_logs(self, seasons: Iterable[str],
                          season_type: str = 'Regular Season') -> pd.DataFrame:
        """Collect and concatenate game logs for several seasons."""
        frames = []
        for season in seasons:
            season_logs = self.get_season_game_logs(season, season_type)
            if season_logs.empty:
                logger.warning(f"No game logs returned for {season}")
                continue
            frames.append(season_logs)

        if not frames:
            logger.error("No game logs collected for any season")
            return pd.DataFrame(columns=list(GAME_LOG_COLUMNS.values()) + ['season'])

        combined = pd.concat(frames, ignore_index=True)
        logger.info(f"Total game-log rows: {len(combined)} across {len(frames)} seasons")
        return combined

    def get_draft_class(self, draft_year: int) -> Set[int]:
        """
        Player ids drafted in a given year.

        Args:
            draft_year: Draft year (e.g., 2020)

        Returns:
            Set of NBA player ids
        """
        logger.info(f"Fetching {draft_year} draft class")
        time.sleep(self.request_delay)
        try:
            endpoint = drafthistory.DraftHistory(season_year_nullable=str(draft_year))
            draft = endpoint.get_data_frames()[0]
        except Exception as e:
            logger.error(f"Error fetching draft class {draft_year}: {e}")
            raise

        player_ids = {int(pid) for pid in draft['PERSON_ID'].dropna()}
        logger.info(f"{draft_year} draft class: {len(player_ids)} players")
        return player_ids


def load_game_logs_csv(path: str) -> pd.DataFrame:
    """Load previously saved game logs, normalizing nba_api column names if present."""
    logs = pd.read_csv(path)
    logs = logs.rename(columns={k: v for k, v in GAME_LOG_COLUMNS.items() if k in logs.columns})
    if 'season' not in logs.columns and 'SEASON' in logs.columns:
        logs = logs.rename(columns={'SEASON': 'season'})
    logger.info(f"Loaded {len(logs)} game-log rows from {path}")
    return logs

