"""
Main Pipeline for Teammate Brokerage Analysis

Integrates all components: game logs -> player-team-seasons -> teammate edges
-> teammate graph -> communities and betweenness -> brokerage roles, then
exports tables and figures.
"""

import pandas as pd
import numpy as np
import shutil
import sys
import logging
import argparse
from datetime import datetime
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Set

import networkx as nx

from .config import PipelineConfig, seasons_between
from .errors import InsufficientDataError
from .data_collection.game_logs import GameLogCollector, load_game_logs_csv
from .network_analysis.records import PlayerTeamSeason, extract_player_names, normalize_records, records_to_frame
from .network_analysis.teammate_edges import TeammateEdge, build_teammate_edges, edges_to_frame
from .network_analysis.graph_assembly import assemble_graph
from .network_analysis.community_detection import CommunityResult, detect_communities
from .network_analysis.centrality import CentralityResult, compute_betweenness
from .network_analysis.brokerage import ROLES, BrokerageResult, compute_brokerage

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Seasons pulled when no season range is configured (2021-22 through 2023-24)
DEFAULT_SEASONS = seasons_between(2022, 2024)


@dataclass(frozen=True)
class TeammateNetwork:
    """Output of the graph construction stages."""
    records: List[PlayerTeamSeason]
    edges: List[TeammateEdge]
    graph: nx.Graph
    names: Dict[Hashable, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NetworkAnalysis:
    """Output of the analysis stages for one teammate graph."""
    graph: nx.Graph
    communities: CommunityResult
    centrality: CentralityResult
    brokerage: BrokerageResult
    names: Dict[Hashable, str] = field(default_factory=dict)

    @property
    def insufficient_data(self) -> bool:
        return (self.communities.insufficient_data
                or self.centrality.insufficient_data
                or self.brokerage.insufficient_data)


def identify_key_players(analysis: NetworkAnalysis, top_n: int = 10,
                         precision: int = 2, notable_z: float = 1.96) -> Dict[str, pd.DataFrame]:
    """
    Hubs (highest betweenness) and brokers (highest total brokerage z-score).

    Returns:
        Dictionary with 'hubs' and 'brokers' DataFrames
    """
    partition = analysis.communities.partition
    names = analysis.names

    hubs = pd.DataFrame(
        [
            {
                'player_id': player,
                'player_name': names.get(player),
                'community': partition.get(player),
                'betweenness': round(score, precision),
                'betweenness_normalized': round(analysis.centrality.normalized.get(player, 0.0), precision),
            }
            for player, score in analysis.centrality.top(top_n)
        ],
        columns=['player_id', 'player_name', 'community', 'betweenness', 'betweenness_normalized']
    )

    brokers = analysis.brokerage.ranked(by='total', precision=precision, names=names).head(top_n).copy()
    brokers.insert(3, 'community', [partition.get(p) for p in brokers['player_id']])
    brokers['notable_roles'] = [
        ', '.join(role for role in ROLES if abs(row[role]) > notable_z)
        for _, row in brokers.iterrows()
    ]

    return {'hubs': hubs, 'brokers': brokers.reset_index(drop=True)}


class TeammateNetworkPipeline:
    """Main pipeline for teammate network brokerage analysis."""

    def __init__(self, config: Optional[PipelineConfig] = None,
                 data_dir: str = "data", results_dir: str = "results"):
        self.config = config or PipelineConfig()
        self.data_dir = Path(data_dir)
        self.results_dir = Path(results_dir)

        # Create directories if they don't exist
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.results_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Pipeline initialized - Data: {self.data_dir}, Results: {self.results_dir}")

    def collect_data(self, seasons: Optional[Iterable[str]] = None) -> Dict:
        """
        Collect game logs (and the configured draft class) from the NBA API.

        Returns:
            Dictionary with 'game_logs' DataFrame and 'draft_players' set (or None)
        """
        seasons = list(seasons or self.config.season_range or DEFAULT_SEASONS)
        logger.info(f"Starting data collection for seasons {seasons}")

        collector = GameLogCollector(cache_dir=str(self.data_dir / "cache_nba_api"))
        game_logs = collector.collect_game_logs(seasons)

        draft_players = None
        if self.config.draft_year_filter is not None:
            draft_players = collector.get_draft_class(self.config.draft_year_filter)

        if not game_logs.empty:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            logs_file = self.data_dir / f"game_logs_{seasons[0]}_{seasons[-1]}_{timestamp}.csv"
            game_logs.to_csv(logs_file, index=False)
            logger.info(f"Saved game logs to {logs_file}")

        return {
            'game_logs': game_logs,
            'draft_players': draft_players
        }

    def build_network(self, game_logs: pd.DataFrame,
                      draft_players: Optional[Set[Hashable]] = None) -> TeammateNetwork:
        """Normalize records, aggregate teammate edges and assemble the graph."""
        logger.info("Building teammate network...")

        if self.config.draft_year_filter is not None and draft_players is None:
            raise ValueError(
                f"draft_year_filter={self.config.draft_year_filter} is set but no draft class was supplied"
            )

        records = normalize_records(
            game_logs,
            season_range=self.config.season_range,
            players=draft_players,
        )
        names = extract_player_names(game_logs)
        edges = build_teammate_edges(records, min_shared_teams=self.config.min_shared_teams)
        graph = assemble_graph(
            edges,
            top_k=self.config.top_k_vertices,
            weight_mode=self.config.edge_weight_mode,
            names=names,
        )
        return TeammateNetwork(records=records, edges=edges, graph=graph, names=names)

    def analyze_network(self, graph: nx.Graph,
                        names: Optional[Dict[Hashable, str]] = None) -> NetworkAnalysis:
        """Detect communities, compute betweenness and score brokerage roles."""
        if graph.number_of_nodes() == 0:
            raise InsufficientDataError("Teammate graph is empty after filtering; nothing to analyze")

        logger.info("Running network analysis...")
        communities = detect_communities(graph, weight='weight', resolution=self.config.resolution)
        centrality = compute_betweenness(graph)
        brokerage = compute_brokerage(graph, communities.partition)

        analysis = NetworkAnalysis(
            graph=graph,
            communities=communities,
            centrality=centrality,
            brokerage=brokerage,
            names=names or {},
        )
        if analysis.insufficient_data:
            logger.warning("Graph too small for a meaningful analysis; results are flagged as insufficient")
        return analysis

    def _save_table(self, df: pd.DataFrame, stem: str, timestamp: str) -> Path:
        table_file = self.results_dir / f"{stem}_{timestamp}.csv"
        df.to_csv(table_file, index=False)
        shutil.copyfile(table_file, self.results_dir / f"{stem}_latest.csv")
        logger.info(f"Saved {stem} to {table_file}")
        return table_file

    def export_results(self, network: TeammateNetwork, analysis: NetworkAnalysis,
                       label: str = "network") -> Dict[str, Path]:
        """Write record, edge, community, centrality and brokerage tables as CSV."""
        precision = self.config.rounding_precision
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        names = analysis.names

        graph_edges = [
            TeammateEdge(u, v, data.get('weight', 1), frozenset(map(tuple, data.get('provenance', []))))
            for u, v, data in analysis.graph.edges(data=True)
        ]

        key_players = identify_key_players(analysis, precision=precision,
                                           notable_z=self.config.notable_z)

        tables = {
            'records': records_to_frame(network.records),
            'edges': edges_to_frame(graph_edges, names),
            'communities': analysis.communities.to_frame(names),
            'centrality': analysis.centrality.to_frame(names, precision=precision),
            'brokerage': analysis.brokerage.ranked(by='total', precision=precision, names=names),
            'brokerage_counts': analysis.brokerage.counts.reset_index(),
            'notable_brokerage': analysis.brokerage.notable(self.config.notable_z, precision=precision),
            'hubs': key_players['hubs'],
            'brokers': key_players['brokers'],
        }

        return {
            name: self._save_table(df, f"{label}_{name}", timestamp)
            for name, df in tables.items()
        }

    def create_visualizations(self, analysis: NetworkAnalysis, label: str = "network") -> Dict:
        """Create interactive visualizations and save them as HTML."""
        from .visualization.network_plots import create_visualizations

        logger.info("Creating visualizations...")
        figures = create_visualizations(
            analysis.graph, analysis.communities, analysis.centrality, analysis.brokerage,
            names=analysis.names, notable_z=self.config.notable_z
        )

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        for name, fig in figures.items():
            viz_file = self.results_dir / f"visualization_{label}_{name}_{timestamp}.html"
            fig.write_html(str(viz_file))
            shutil.copyfile(viz_file, self.results_dir / f"visualization_{label}_{name}_latest.html")
            logger.info(f"Saved {name} visualization to {viz_file}")

        return figures

    def run_full_pipeline(self, game_logs: Optional[pd.DataFrame] = None,
                          draft_players: Optional[Set[Hashable]] = None,
                          label: str = "network",
                          create_viz: bool = True) -> Dict:
        """
        Run the complete teammate network pipeline.

        Args:
            game_logs: Game logs to analyze; collected from the NBA API if None
            draft_players: Draft class used when draft_year_filter is configured
            label: Prefix for exported files
            create_viz: Whether to create visualizations

        Returns:
            Dictionary with all results
        """
        logger.info("=" * 60)
        logger.info("STARTING TEAMMATE NETWORK PIPELINE")
        logger.info("=" * 60)

        results = {}

        if game_logs is None:
            data = self.collect_data()
            game_logs = data['game_logs']
            draft_players = draft_players if draft_players is not None else data['draft_players']

        network = self.build_network(game_logs, draft_players)
        results['network'] = network

        analysis = self.analyze_network(network.graph, network.names)
        results['analysis'] = analysis

        results['files'] = self.export_results(network, analysis, label)

        if create_viz:
            results['visualizations'] = self.create_visualizations(analysis, label)

        self.print_summary(network, analysis)

        logger.info("=" * 60)
        logger.info("TEAMMATE NETWORK PIPELINE COMPLETED SUCCESSFULLY")
        logger.info("=" * 60)

        return results

    def print_summary(self, network: TeammateNetwork, analysis: NetworkAnalysis, top_n: int = 5):
        """Print summary of the analysis results."""
        precision = self.config.rounding_precision
        G = analysis.graph
        key_players = identify_key_players(analysis, top_n=top_n, precision=precision,
                                           notable_z=self.config.notable_z)

        print("=" * 80)
        print("TEAMMATE NETWORK BROKERAGE SUMMARY")
        print("=" * 80)
        print(f"\nNETWORK:")
        print(f"   Player-team-seasons: {len(network.records)}")
        print(f"   Teammate pairs: {len(network.edges)}")
        print(f"   Graph: {G.number_of_nodes()} players, {G.number_of_edges()} edges, "
              f"{nx.number_connected_components(G)} components")

        print(f"\nCOMMUNITIES:")
        print(f"   {analysis.communities.num_communities} communities, "
              f"modularity = {analysis.communities.modularity:.{precision}f}")

        if analysis.insufficient_data:
            print("\n   Not enough data for centrality/brokerage scoring.")
            print("=" * 80)
            return

        print(f"\nHUBS (betweenness):")
        for _, row in key_players['hubs'].iterrows():
            print(f"   {row['player_name'] or row['player_id']}: {row['betweenness']} "
                  f"(community {row['community']})")

        print(f"\nBROKERS (total brokerage z-score):")
        for _, row in key_players['brokers'].iterrows():
            roles = f" [{row['notable_roles']}]" if row['notable_roles'] else ""
            print(f"   {row['player_name'] or row['player_id']}: {row['total']}{roles}")

        print(f"\n|z| > {self.config.notable_z} is reported as notable (95% convention).")
        print("=" * 80)


def create_demo_data(seasons: Optional[List[str]] = None,
                     n_teams: int = 6,
                     players_per_team: int = 12,
                     games_per_season: int = 3,
                     move_rate: float = 0.25,
                     seed: int = 42) -> Dict:
    """
    Create synthetic game logs for testing when real data is not available.

    Players start on evenly sized rosters and a share of them change teams
    before every new season, which is what links rosters into one network.

    Returns:
        Dictionary with 'game_logs' DataFrame and 'draft_classes' (year -> player ids)
    """
    logger.info("Creating demo data for testing...")

    seasons = list(seasons or DEFAULT_SEASONS)
    rng = np.random.RandomState(seed)

    team_ids = list(range(1, n_teams + 1))
    player_ids = list(range(1001, 1001 + n_teams * players_per_team))
    assignment = {pid: team_ids[i // players_per_team] for i, pid in enumerate(player_ids)}
    draft_years = {pid: int(rng.choice([2018, 2019, 2020, 2021])) for pid in player_ids}

    rows = []
    for season_idx, season in enumerate(seasons):
        if season_idx > 0:
            movers = rng.choice(player_ids, size=int(move_rate * len(player_ids)), replace=False)
            for pid in movers:
                assignment[int(pid)] = int(rng.choice(team_ids))

        for pid in player_ids:
            team_id = assignment[pid]
            for game in range(games_per_season):
                rows.append({
                    'player_id': pid,
                    'player_name': f"Player_{pid}",
                    'team_id': team_id,
                    'season': season,
                    'game_id': f"{season}_{team_id}_{game}",
                    'points': int(rng.poisson(11)),
                    'rebounds': int(rng.poisson(4)),
                    'assists': int(rng.poisson(3)),
                })

    # A couple of malformed rows, as real feeds occasionally contain
    rows.append({'player_id': None, 'player_name': None, 'team_id': team_ids[0],
                 'season': seasons[0], 'game_id': None, 'points': 0, 'rebounds': 0, 'assists': 0})
    rows.append({'player_id': player_ids[0], 'player_name': f"Player_{player_ids[0]}", 'team_id': None,
                 'season': seasons[0], 'game_id': None, 'points': 0, 'rebounds': 0, 'assists': 0})

    game_logs = pd.DataFrame(rows)
    draft_classes = {
        year: {pid for pid, y in draft_years.items() if y == year}
        for year in sorted(set(draft_years.values()))
    }

    logger.info(f"Created demo data: {len(game_logs)} game-log rows, {len(player_ids)} players")

    return {
        'game_logs': game_logs,
        'draft_classes': draft_classes
    }


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Teammate Network Brokerage Analysis Pipeline')
    parser.add_argument('--demo', action='store_true', help='Use demo data instead of real data')
    parser.add_argument('--input-csv', help='Analyze previously saved game logs from a CSV file')
    parser.add_argument('--seasons', type=int, nargs=2, metavar=('FIRST', 'LAST'),
                        help='Season end years, inclusive (e.g. 2022 2024 = 2021-22..2023-24)')
    parser.add_argument('--draft-year', type=int, help='Restrict to players drafted in this year')
    parser.add_argument('--top-k', type=int, default=100,
                        help='Keep the K most-connected players (0 = keep all)')
    parser.add_argument('--min-shared-teams', type=int, default=1,
                        help='Minimum shared team-seasons for a teammate edge')
    parser.add_argument('--weight-mode', choices=['sum', 'drop'], default='sum',
                        help='Collapse duplicate edges by summing weights or dropping them')
    parser.add_argument('--precision', type=int, default=2, help='Decimals in reported scores')
    parser.add_argument('--data-dir', default='data', help='Directory for collected data')
    parser.add_argument('--results-dir', default='results', help='Directory for results')
    parser.add_argument('--no-viz', action='store_true', help='Skip visualization creation')
    return parser


def main(argv: Optional[List[str]] = None):
    """Main function for command-line usage."""
    args = build_arg_parser().parse_args(argv)
    config = PipelineConfig.from_args(args)

    pipeline = TeammateNetworkPipeline(config, data_dir=args.data_dir, results_dir=args.results_dir)

    game_logs = None
    draft_players = None

    if args.demo:
        logger.info("Running with demo data...")
        demo = create_demo_data(list(config.season_range) if config.season_range else None)
        game_logs = demo['game_logs']
        if config.draft_year_filter is not None:
            draft_players = demo['draft_classes'].get(config.draft_year_filter, set())
    elif args.input_csv:
        game_logs = load_game_logs_csv(args.input_csv)
        if config.draft_year_filter is not None:
            collector = GameLogCollector(cache_dir=str(pipeline.data_dir / "cache_nba_api"))
            draft_players = collector.get_draft_class(config.draft_year_filter)

    label = "demo" if args.demo else "network"
    try:
        pipeline.run_full_pipeline(
            game_logs=game_logs,
            draft_players=draft_players,
            label=label,
            create_viz=not args.no_viz
        )
    except InsufficientDataError as e:
        logger.error(f"Pipeline stopped: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
