"""
Centrality Module

Betweenness centrality of every player (Brandes' algorithm via networkx).
Shortest paths are unweighted: every teammate edge has length 1 regardless of
how many team-seasons it represents. Disconnected graphs are fine; pairs with
no path contribute nothing.
"""

import pandas as pd
import networkx as nx
from typing import Dict, Hashable, List, Optional, Tuple
import logging
from dataclasses import dataclass, field

from .records import sort_players

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CentralityResult:
    """Raw and normalized betweenness per vertex."""
    betweenness: Dict[Hashable, float] = field(default_factory=dict)
    normalized: Dict[Hashable, float] = field(default_factory=dict)
    insufficient_data: bool = False

    def top(self, n: int = 10) -> List[Tuple[Hashable, float]]:
        """Highest-betweenness players, ties in player id order."""
        order = {v: i for i, v in enumerate(sort_players(self.betweenness))}
        ranked = sorted(self.betweenness.items(), key=lambda item: (-item[1], order[item[0]]))
        return ranked[:n]

    def to_frame(self, names: Optional[Dict[Hashable, str]] = None,
                 precision: Optional[int] = None) -> pd.DataFrame:
        names = names or {}
        df = pd.DataFrame(
            [(v, names.get(v), b, self.normalized.get(v, 0.0)) for v, b in self.betweenness.items()],
            columns=['player_id', 'player_name', 'betweenness', 'betweenness_normalized']
        )
        if precision is not None:
            df[['betweenness', 'betweenness_normalized']] = df[
                ['betweenness', 'betweenness_normalized']
            ].round(precision)
        return df.sort_values('betweenness', ascending=False, kind='mergesort').reset_index(drop=True)


def max_betweenness(n: int) -> float:
    """Largest possible betweenness of a vertex in an undirected graph on n vertices."""
    if n <= 2:
        return 0.0
    return (n - 1) * (n - 2) / 2


def compute_betweenness(G: nx.Graph) -> CentralityResult:
    """
    Compute betweenness centrality for every vertex.

    Args:
        G: Undirected teammate graph

    Returns:
        CentralityResult; the normalized variant divides by (n-1)(n-2)/2
    """
    if G.number_of_nodes() < 2 or G.number_of_edges() == 0:
        logger.warning(
            f"Insufficient data for betweenness centrality "
            f"({G.number_of_nodes()} nodes, {G.number_of_edges()} edges)"
        )
        return CentralityResult(insufficient_data=True)

    nodes = sort_players(G.nodes())
    raw = nx.betweenness_centrality(G, normalized=False, weight=None)

    scale = max_betweenness(len(nodes))
    betweenness = {v: float(raw[v]) for v in nodes}
    normalized = {v: (betweenness[v] / scale if scale else 0.0) for v in nodes}

    if not nx.is_connected(G):
        logger.info(
            f"Betweenness computed on a disconnected graph "
            f"({nx.number_connected_components(G)} components)"
        )

    top = max(nodes, key=lambda v: betweenness[v])
    logger.info(f"Computed betweenness for {len(nodes)} players (max {betweenness[top]:.2f} at {top})")

    return CentralityResult(betweenness=betweenness, normalized=normalized)
