"""
Graph Assembly Module

Builds the simple undirected teammate graph from aggregated edges, optionally
restricted to the K most-connected players.
"""

import networkx as nx
from typing import Dict, Hashable, Iterable, List, Optional
import logging
from collections import defaultdict

from .records import sort_players
from .teammate_edges import TeammateEdge

logger = logging.getLogger(__name__)


def rank_by_degree(edges: Iterable[TeammateEdge]) -> List[Hashable]:
    """
    Rank players by the number of distinct teammates they have in the edge set.

    Ties are broken by player id order so the ranking is reproducible.
    """
    neighbors: Dict[Hashable, set] = defaultdict(set)
    for edge in edges:
        if edge.player_a == edge.player_b:
            continue
        neighbors[edge.player_a].add(edge.player_b)
        neighbors[edge.player_b].add(edge.player_a)

    ordered = sort_players(neighbors)
    position = {player: i for i, player in enumerate(ordered)}
    return sorted(ordered, key=lambda p: (-len(neighbors[p]), position[p]))


def simplify(G: nx.Graph) -> nx.Graph:
    """Remove self-loops; a networkx Graph already holds at most one edge per pair."""
    loops = list(nx.selfloop_edges(G))
    if loops:
        logger.warning(f"Removing {len(loops)} self-loops from teammate graph")
        G.remove_edges_from(loops)
    return G


def assemble_graph(edges: Iterable[TeammateEdge],
                   top_k: Optional[int] = 100,
                   weight_mode: str = "sum",
                   names: Optional[Dict[Hashable, str]] = None) -> nx.Graph:
    """
    Build the teammate graph.

    Args:
        edges: Teammate edges (duplicates of the same pair are collapsed)
        top_k: Keep only the K highest-degree players; None keeps everyone
        weight_mode: "sum" adds duplicate weights together, "drop" sets every weight to 1
        names: Optional player id -> name mapping stored as the node attribute 'name'

    Returns:
        Undirected simple graph with 'weight' and 'provenance' edge attributes
    """
    if weight_mode not in ("sum", "drop"):
        raise ValueError(f"Unknown weight_mode {weight_mode!r}")

    edges = list(edges)
    ranking = rank_by_degree(edges)

    if top_k is not None and top_k < len(ranking):
        kept = set(ranking[:top_k])
        logger.info(f"Restricting graph to top {top_k} of {len(ranking)} players by degree")
    else:
        kept = set(ranking)

    # Collapse duplicate pairs before building so attributes merge predictably
    merged_weight: Dict[tuple, int] = defaultdict(int)
    merged_provenance: Dict[tuple, set] = defaultdict(set)
    for edge in edges:
        if edge.player_a == edge.player_b:
            continue
        if edge.player_a not in kept or edge.player_b not in kept:
            continue
        merged_weight[edge.key] += edge.weight
        merged_provenance[edge.key].update(edge.provenance)

    G = nx.Graph()
    G.graph['top_k'] = top_k
    G.graph['weight_mode'] = weight_mode

    names = names or {}
    for player in sort_players(kept):
        if player in names:
            G.add_node(player, name=names[player])
        else:
            G.add_node(player)

    for key in sort_players(merged_weight):
        p1, p2 = key
        G.add_edge(
            p1, p2,
            weight=merged_weight[key] if weight_mode == "sum" else 1,
            provenance=sort_players(merged_provenance[key]),
        )

    simplify(G)

    components = nx.number_connected_components(G) if G.number_of_nodes() else 0
    logger.info(
        f"Built teammate graph: {G.number_of_nodes()} nodes, {G.number_of_edges()} edges, "
        f"{components} connected components"
    )
    return G
