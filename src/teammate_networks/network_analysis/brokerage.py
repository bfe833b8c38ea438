"""
Brokerage Role Module

Gould-Fernandez brokerage roles relative to a community partition.

For every open two-path source -> broker -> target (source and target both
adjacent to the broker, not adjacent to each other) the broker is credited
with one role determined by the communities of the three players:

    source  broker  target    role
    A       A       A         coordinator
    A       B       A         consultant
    A       B       B         gatekeeper
    A       A       B         representative
    A       B       C         liaison

The undirected teammate graph is treated as its symmetric directed version, so
each two-path is counted once in each orientation. Under that reading a
representative path read backwards is a gatekeeper path, and the two counts
agree for every player.

Raw counts are converted to z-scores against the null model in which ties are
placed at random with the observed density and the same community sizes
(Gould & Fernandez 1989; the moments used by statnet's ``sna::brokerage``).
"""

import pandas as pd
import numpy as np
import networkx as nx
from typing import Dict, Hashable, Optional
import logging
from dataclasses import dataclass

from ..errors import PartitionMismatchError
from .records import sort_players

logger = logging.getLogger(__name__)

ROLES = ('coordinator', 'consultant', 'gatekeeper', 'representative', 'liaison')
SCORE_COLUMNS = ROLES + ('total',)

# Conventional two-sided 95% threshold for calling a z-score notable
NOTABLE_Z = 1.96


@dataclass(frozen=True)
class BrokerageScore:
    """Brokerage z-scores for one player."""
    player_id: Hashable
    coordinator: float
    consultant: float
    gatekeeper: float
    representative: float
    liaison: float
    total: float


@dataclass(frozen=True, eq=False)
class BrokerageResult:
    """Raw role counts, null-model moments and z-scores (indexed by player)."""
    counts: pd.DataFrame
    expected: pd.DataFrame
    std: pd.DataFrame
    z_scores: pd.DataFrame
    density: float
    insufficient_data: bool = False

    def scores(self, precision: int = 2) -> Dict[Hashable, BrokerageScore]:
        rounded = self.z_scores.round(precision)
        return {
            player: BrokerageScore(player_id=player, **{col: float(row[col]) for col in SCORE_COLUMNS})
            for player, row in rounded.iterrows()
        }

    def ranked(self, by: str = 'total', precision: int = 2,
               names: Optional[Dict[Hashable, str]] = None) -> pd.DataFrame:
        """Z-score table sorted by one role (descending), rounded for reporting."""
        if by not in SCORE_COLUMNS:
            raise ValueError(f"Unknown brokerage column {by!r}; expected one of {SCORE_COLUMNS}")
        df = self.z_scores.round(precision)
        df = df.sort_values(by, ascending=False, kind='mergesort')
        df.insert(0, 'player_name', [(names or {}).get(p) for p in df.index])
        df.insert(0, 'rank', range(1, len(df) + 1))
        return df.reset_index()

    def notable(self, threshold: float = NOTABLE_Z, precision: int = 2) -> pd.DataFrame:
        """Long table of (player, role, z) where |z| exceeds the threshold."""
        rows = []
        for player, row in self.z_scores.iterrows():
            for role in ROLES:
                z = row[role]
                if abs(z) > threshold:
                    rows.append({'player_id': player, 'role': role, 'z_score': round(float(z), precision),
                                 'raw_count': int(self.counts.at[player, role])})
        return pd.DataFrame(rows, columns=['player_id', 'role', 'z_score', 'raw_count'])


def classify_triad(source_community, broker_community, target_community) -> str:
    """Brokerage role credited to the broker of a two-path."""
    if source_community == broker_community:
        if broker_community == target_community:
            return 'coordinator'
        return 'representative'
    if broker_community == target_community:
        return 'gatekeeper'
    if source_community == target_community:
        return 'consultant'
    return 'liaison'


def check_partition(G: nx.Graph, partition: Dict[Hashable, int]) -> None:
    """Raise PartitionMismatchError unless every vertex has exactly one community."""
    vertices = set(G.nodes())
    assigned = set(partition)
    if vertices != assigned:
        raise PartitionMismatchError(missing=vertices - assigned, extra=assigned - vertices)


def count_roles(G: nx.Graph, partition: Dict[Hashable, int]) -> pd.DataFrame:
    """Raw role counts per broker, over ordered open two-paths."""
    nodes = sort_players(G.nodes())
    counts = {v: dict.fromkeys(ROLES, 0) for v in nodes}

    for broker in nodes:
        neighbors = sort_players(n for n in G[broker] if n != broker)
        broker_com = partition[broker]
        for source in neighbors:
            source_com = partition[source]
            for target in neighbors:
                if target == source or G.has_edge(source, target):
                    continue
                role = classify_triad(source_com, broker_com, partition[target])
                counts[broker][role] += 1

    df = pd.DataFrame.from_dict(counts, orient='index', columns=list(ROLES)).reindex(nodes)
    df.index.name = 'player_id'
    df['total'] = df[list(ROLES)].sum(axis=1)
    return df.astype(int)


def _choose2(x):
    return x * (x - 1) / 2.0


def null_moments(community_sizes: Dict[int, int], density: float) -> Dict[int, Dict[str, tuple]]:
    """
    Expected count and variance of each role for a broker in each community.

    Returns:
        community id -> {column: (expected, variance)}
    """
    d = density
    p = d ** 2 * (1 - d)
    q = d ** 3 * (1 - d) ** 3
    total = float(sum(community_sizes.values()))

    moments = {}
    for com, size in community_sizes.items():
        n_i = float(size)
        others = np.array([float(s) for c, s in community_sizes.items() if c != com])

        e_coord = p * (n_i - 1) * (n_i - 2)
        v_coord = e_coord * (1 - p) + 2 * (n_i - 1) * (n_i - 2) * (n_i - 3) * q

        e_cons = p * np.sum(others * (others - 1))
        v_cons = e_cons * (1 - p) + 2 * np.sum(others * (others - 1) * (others - 2)) * q

        e_rep = p * (total - n_i) * (n_i - 1)
        v_rep = e_rep * (1 - p) + 2 * ((n_i - 1) * _choose2(total - n_i)
                                       + (total - n_i) * _choose2(n_i - 1)) * q

        e_liaison = p * (np.sum(others) ** 2 - np.sum(others ** 2))
        v_liaison = e_liaison * (1 - p) + 4 * np.sum(others * _choose2(total - others - n_i)) * q

        e_total = p * (total - 1) * (total - 2)
        v_total = e_total * (1 - p) + 2 * (total - 1) * (total - 2) * (total - 3) * q

        moments[com] = {
            'coordinator': (e_coord, v_coord),
            'consultant': (float(e_cons), float(v_cons)),
            'gatekeeper': (e_rep, v_rep),
            'representative': (e_rep, v_rep),
            'liaison': (float(e_liaison), float(v_liaison)),
            'total': (e_total, v_total),
        }
    return moments


def compute_brokerage(G: nx.Graph, partition: Dict[Hashable, int]) -> BrokerageResult:
    """
    Score every player's brokerage roles relative to the partition.

    Args:
        G: Undirected teammate graph
        partition: vertex -> community id, covering exactly the graph's vertices

    Returns:
        BrokerageResult with counts, expectations, standard deviations and z-scores

    Raises:
        PartitionMismatchError: if the partition and graph vertex sets differ
    """
    check_partition(G, partition)

    nodes = sort_players(G.nodes())
    n = len(nodes)
    counts = count_roles(G, partition)

    if n < 3 or G.number_of_edges() == 0:
        logger.warning(
            f"Insufficient data for brokerage scoring ({n} nodes, {G.number_of_edges()} edges)"
        )
        zeros = pd.DataFrame(0.0, index=counts.index, columns=list(SCORE_COLUMNS))
        return BrokerageResult(
            counts=counts, expected=zeros, std=zeros.copy(), z_scores=zeros.copy(),
            density=nx.density(G) if n > 1 else 0.0, insufficient_data=True,
        )

    density = nx.density(G)
    sizes: Dict[int, int] = {}
    for v in nodes:
        sizes[partition[v]] = sizes.get(partition[v], 0) + 1
    moments = null_moments(sizes, density)

    expected = pd.DataFrame(
        [[moments[partition[v]][col][0] for col in SCORE_COLUMNS] for v in nodes],
        index=counts.index, columns=list(SCORE_COLUMNS), dtype=float
    )
    std = pd.DataFrame(
        [[np.sqrt(max(moments[partition[v]][col][1], 0.0)) for col in SCORE_COLUMNS] for v in nodes],
        index=counts.index, columns=list(SCORE_COLUMNS), dtype=float
    )

    # Zero variance only happens when the role is impossible, so the count equals its expectation
    safe_std = std.replace(0.0, np.nan)
    z_scores = ((counts.astype(float) - expected) / safe_std).fillna(0.0)

    flagged = int((z_scores[list(ROLES)].abs() > NOTABLE_Z).any(axis=1).sum())
    logger.info(
        f"Scored brokerage for {n} players across {len(sizes)} communities "
        f"(density={density:.4f}, {flagged} players with a notable role)"
    )

    return BrokerageResult(
        counts=counts, expected=expected, std=std, z_scores=z_scores, density=density,
    )
