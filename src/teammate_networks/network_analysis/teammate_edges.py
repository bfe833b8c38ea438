"""
Teammate Edge Construction Module

Builds weighted, undirected teammate edges from player-team-season records:
- Two players are linked if they shared at least one team-season
- Edge weight = number of distinct team-seasons shared
- Provenance = the (team, season) labels that produced the edge
"""

import pandas as pd
from typing import Dict, FrozenSet, Hashable, Iterable, List, Set, Tuple
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations

from .records import PlayerTeamSeason, sort_players

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeammateEdge:
    """Undirected teammate relation between two distinct players."""
    player_a: Hashable
    player_b: Hashable
    weight: int
    provenance: FrozenSet[Tuple[Hashable, str]] = field(default_factory=frozenset)

    def __post_init__(self):
        if self.player_a == self.player_b:
            raise ValueError(f"A player cannot be their own teammate: {self.player_a!r}")
        # Canonical orientation so (a, b) and (b, a) are the same edge
        first, second = sort_players([self.player_a, self.player_b])
        if first != self.player_a:
            object.__setattr__(self, 'player_a', first)
            object.__setattr__(self, 'player_b', second)
        object.__setattr__(self, 'provenance', frozenset(self.provenance))

    @property
    def key(self) -> Tuple[Hashable, Hashable]:
        return (self.player_a, self.player_b)


def group_by_team_season(records: Iterable[PlayerTeamSeason]) -> Dict[Tuple[Hashable, str], List[Hashable]]:
    """Group records into rosters keyed by (team, season)."""
    rosters: Dict[Tuple[Hashable, str], Set[Hashable]] = defaultdict(set)
    for record in records:
        rosters[record.team_season].add(record.player_id)
    return {team_season: sort_players(players) for team_season, players in rosters.items()}


def build_teammate_edges(records: Iterable[PlayerTeamSeason],
                         min_shared_teams: int = 1) -> List[TeammateEdge]:
    """
    Aggregate every teammate pair across all team-seasons.

    Args:
        records: Deduplicated player-team-season records
        min_shared_teams: Pairs sharing fewer team-seasons are not emitted

    Returns:
        Edges sorted by player pair
    """
    if min_shared_teams < 1:
        raise ValueError(f"min_shared_teams must be at least 1, got {min_shared_teams}")

    rosters = group_by_team_season(records)

    shared: Dict[Tuple[Hashable, Hashable], Set[Tuple[Hashable, str]]] = defaultdict(set)
    skipped_rosters = 0

    for team_season, roster in rosters.items():
        if len(roster) < 2:
            skipped_rosters += 1
            continue
        # Mixed-type rosters sort differently from single-type ones, so key by the pair's own order
        for pair in combinations(roster, 2):
            shared[tuple(sort_players(pair))].add(team_season)

    if skipped_rosters:
        logger.info(f"Skipped {skipped_rosters} team-seasons with fewer than 2 players")

    edges = [
        TeammateEdge(player_a=p1, player_b=p2, weight=len(team_seasons), provenance=frozenset(team_seasons))
        for (p1, p2), team_seasons in shared.items()
        if len(team_seasons) >= min_shared_teams
    ]

    edges = _sorted_edges(edges)

    logger.info(
        f"Built {len(edges)} teammate edges from {len(rosters)} team-seasons "
        f"({len(shared) - len(edges)} pairs below min_shared_teams={min_shared_teams})"
    )
    return edges


def _sorted_edges(edges: List[TeammateEdge]) -> List[TeammateEdge]:
    try:
        return sorted(edges, key=lambda e: e.key)
    except TypeError:
        return sorted(edges, key=lambda e: (str(e.player_a), str(e.player_b)))


def edges_to_frame(edges: Iterable[TeammateEdge], names: Dict[Hashable, str] = None) -> pd.DataFrame:
    """Flatten edges into a table with one row per teammate pair."""
    names = names or {}
    rows = []
    for edge in edges:
        rows.append({
            'player_a': edge.player_a,
            'player_b': edge.player_b,
            'player_a_name': names.get(edge.player_a),
            'player_b_name': names.get(edge.player_b),
            'weight': edge.weight,
            'team_seasons': '; '.join(f"{team}:{season}" for team, season in sort_players(edge.provenance)),
        })
    return pd.DataFrame(rows, columns=['player_a', 'player_b', 'player_a_name', 'player_b_name',
                                       'weight', 'team_seasons'])
