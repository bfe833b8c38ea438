"""
Community Detection Module

Multi-level modularity optimization (Louvain; Blondel et al. 2008) over the
teammate graph. Each level moves single vertices between neighboring
communities while modularity increases, then aggregates communities into
super-vertices with ``community_louvain.induced_graph`` and repeats.

The result is deterministic: vertices are visited in ascending id order, a
vertex stays put when no move strictly improves modularity, and among equal
gains the lowest community label wins.
"""

import pandas as pd
import networkx as nx
from typing import Dict, Hashable, List, Optional
import logging
from collections import defaultdict
from dataclasses import dataclass, field
import community.community_louvain as community_louvain

from .records import sort_players

logger = logging.getLogger(__name__)

# Smallest modularity gain treated as an improvement
MIN_GAIN = 1e-10


@dataclass(frozen=True)
class CommunityResult:
    """Partition of the graph's vertices into numbered communities."""
    partition: Dict[Hashable, int]
    modularity: float
    levels: int = 0
    insufficient_data: bool = False
    community_sizes: Dict[int, int] = field(default_factory=dict)

    @property
    def num_communities(self) -> int:
        return len(self.community_sizes)

    def members(self, community_id: int) -> List[Hashable]:
        return sort_players(v for v, c in self.partition.items() if c == community_id)

    def to_frame(self, names: Optional[Dict[Hashable, str]] = None) -> pd.DataFrame:
        names = names or {}
        return pd.DataFrame(
            [(v, names.get(v), c) for v, c in self.partition.items()],
            columns=['player_id', 'player_name', 'community']
        )


def _one_level(G: nx.Graph, weight: str, resolution: float) -> Dict[Hashable, int]:
    """
    Local moving phase on one level of the hierarchy.

    Returns a vertex -> community label mapping (labels are positions in the
    sorted vertex order, so "lowest label" means "lowest vertex id").
    """
    nodes = sort_players(G.nodes())
    node2com = {node: i for i, node in enumerate(nodes)}

    m2 = 2.0 * G.size(weight=weight)
    degree = dict(G.degree(weight=weight))
    com_total = defaultdict(float)
    for node in nodes:
        com_total[node2com[node]] += degree[node]

    moved = True
    while moved:
        moved = False
        for node in nodes:
            current = node2com[node]
            k_i = degree[node]

            # Weight from node into each neighboring community, self-loops excluded
            links = defaultdict(float)
            for neighbor, data in G[node].items():
                if neighbor != node:
                    links[node2com[neighbor]] += data.get(weight, 1)

            com_total[current] -= k_i

            best_com = current
            best_gain = links.get(current, 0.0) - resolution * com_total[current] * k_i / m2

            for com in sorted(links):
                gain = links[com] - resolution * com_total[com] * k_i / m2
                if gain > best_gain + MIN_GAIN:
                    best_com = com
                    best_gain = gain

            com_total[best_com] += k_i
            if best_com != current:
                node2com[node] = best_com
                moved = True

    return node2com


def _renumber(node2com: Dict[Hashable, int], order: List[Hashable], start: int = 0) -> Dict[Hashable, int]:
    """Relabel communities consecutively by first appearance in ``order``."""
    mapping = {}
    for node in order:
        com = node2com[node]
        if com not in mapping:
            mapping[com] = len(mapping) + start
    return {node: mapping[com] for node, com in node2com.items()}


def partition_modularity(G: nx.Graph, partition: Dict[Hashable, int],
                         weight: str = 'weight', resolution: float = 1.0) -> float:
    """Newman modularity of a vertex -> community mapping."""
    if G.number_of_edges() == 0:
        return 0.0
    groups = defaultdict(set)
    for node, com in partition.items():
        groups[com].add(node)
    return nx.community.modularity(G, list(groups.values()), weight=weight, resolution=resolution)


def detect_communities(G: nx.Graph,
                       weight: str = 'weight',
                       resolution: float = 1.0) -> CommunityResult:
    """
    Partition the graph to (approximately) maximize modularity.

    Args:
        G: Undirected teammate graph (may be disconnected)
        weight: Edge attribute used as weight
        resolution: Modularity resolution; values above 1 favor smaller communities

    Returns:
        CommunityResult with community ids numbered from 1, ordered by each
        community's lowest vertex id
    """
    nodes = sort_players(G.nodes())

    if G.number_of_edges() == 0 or len(nodes) < 2:
        logger.warning(
            f"Insufficient data for community detection "
            f"({len(nodes)} nodes, {G.number_of_edges()} edges); using singleton communities"
        )
        partition = {node: i + 1 for i, node in enumerate(nodes)}
        return CommunityResult(
            partition=partition,
            modularity=0.0,
            levels=0,
            insufficient_data=True,
            community_sizes={c: 1 for c in partition.values()},
        )

    # Level 0 super-vertices are the vertices themselves
    partition = {node: node for node in nodes}
    modularity = partition_modularity(G, partition, weight, resolution)
    current = G
    levels = 0

    while True:
        level_nodes = sort_players(current.nodes())
        level = _renumber(_one_level(current, weight, resolution), level_nodes)
        candidate = {node: level[partition[node]] for node in nodes}
        new_modularity = partition_modularity(G, candidate, weight, resolution)

        if new_modularity - modularity <= MIN_GAIN:
            break

        partition, modularity = candidate, new_modularity
        levels += 1
        current = community_louvain.induced_graph(level, current, weight=weight)

    partition = _renumber(partition, nodes, start=1)

    sizes = defaultdict(int)
    for com in partition.values():
        sizes[com] += 1

    logger.info(
        f"Detected {len(sizes)} communities over {levels} levels (modularity={modularity:.4f})"
    )
    return CommunityResult(
        partition=partition,
        modularity=modularity,
        levels=levels,
        insufficient_data=False,
        community_sizes=dict(sorted(sizes.items())),
    )
