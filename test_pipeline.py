"""
Test Script for the Teammate Network Pipeline

Validates configuration, data handling, the end-to-end pipeline and exports
with demo data. Runs under pytest, or directly: ``python test_pipeline.py``.
"""

import sys
import tempfile
import traceback
import logging
from pathlib import Path

import pandas as pd
import networkx as nx
import pytest
import community.community_louvain as community_louvain

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

# Add src directory to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from teammate_networks.config import PipelineConfig, seasons_between
from teammate_networks.errors import InsufficientDataError
from teammate_networks.main_pipeline import (
    TeammateNetworkPipeline, build_arg_parser, create_demo_data, identify_key_players, main
)
from teammate_networks.data_collection import game_logs as game_logs_module
from teammate_networks.data_collection.game_logs import GameLogCollector, load_game_logs_csv
from teammate_networks.network_analysis.brokerage import SCORE_COLUMNS
from teammate_networks.visualization.network_plots import TeammateNetworkVisualizer


def _pipeline(tmp_dir: str, **config) -> TeammateNetworkPipeline:
    return TeammateNetworkPipeline(
        PipelineConfig(**config),
        data_dir=str(Path(tmp_dir) / "data"),
        results_dir=str(Path(tmp_dir) / "results"),
    )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_config_defaults_and_validation():
    config = PipelineConfig()
    assert config.top_k_vertices == 100
    assert config.min_shared_teams == 1
    assert config.rounding_precision == 2
    assert config.edge_weight_mode == "sum"
    assert config.season_range is None
    assert config.draft_year_filter is None

    assert PipelineConfig(top_k_vertices=0).top_k_vertices is None, "0 should disable the cap"

    for bad in ({'top_k_vertices': -1}, {'min_shared_teams': 0}, {'rounding_precision': -1},
                {'edge_weight_mode': 'max'}, {'resolution': 0}):
        with pytest.raises(ValueError):
            PipelineConfig(**bad)


def test_seasons_between_uses_end_years():
    assert seasons_between(2022, 2024) == ['2021-22', '2022-23', '2023-24']
    assert seasons_between(2000, 2000) == ['1999-00']
    with pytest.raises(ValueError):
        seasons_between(2024, 2022)


def test_config_from_command_line():
    args = build_arg_parser().parse_args([
        '--seasons', '2023', '2024', '--draft-year', '2020', '--top-k', '50',
        '--min-shared-teams', '2', '--weight-mode', 'drop', '--precision', '3'
    ])
    config = PipelineConfig.from_args(args)

    assert config.season_range == ('2022-23', '2023-24')
    assert config.draft_year_filter == 2020
    assert config.top_k_vertices == 50
    assert config.min_shared_teams == 2
    assert config.edge_weight_mode == 'drop'
    assert config.rounding_precision == 3


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------

def test_demo_data_creation():
    data = create_demo_data()
    logs = data['game_logs']

    for col in ['player_id', 'player_name', 'team_id', 'season', 'game_id']:
        assert col in logs.columns, f"Missing column {col} in demo game logs"

    assert set(logs['season'].dropna()) == {'2021-22', '2022-23', '2023-24'}
    assert logs['player_id'].isna().sum() == 1, "Expected one row without a player id"
    assert sum(len(players) for players in data['draft_classes'].values()) == 72

    again = create_demo_data()
    pd.testing.assert_frame_equal(logs, again['game_logs'])


def test_load_game_logs_csv_renames_api_columns():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "logs.csv"
        pd.DataFrame({
            'PLAYER_ID': [1, 2], 'PLAYER_NAME': ['A', 'B'], 'TEAM_ID': [10, 10],
            'season': ['2023-24', '2023-24'], 'PTS': [12, 8]
        }).to_csv(path, index=False)

        logs = load_game_logs_csv(str(path))

    assert {'player_id', 'player_name', 'team_id', 'season', 'points'} <= set(logs.columns)


def test_collector_standardizes_api_frames():
    class FakeGameLog:
        def __init__(self, season, season_type_all_star, player_or_team_abbreviation):
            assert player_or_team_abbreviation == 'P'
            self.season = season

        def get_data_frames(self):
            return [pd.DataFrame({
                'SEASON_ID': ['22023', '22023'],
                'PLAYER_ID': [1, 2],
                'PLAYER_NAME': ['A', 'B'],
                'TEAM_ID': [10, 10],
                'TEAM_ABBREVIATION': ['AAA', 'AAA'],
                'GAME_ID': ['001', '001'],
                'PTS': [20, 10],
            })]

    class FakeDraftHistory:
        def __init__(self, season_year_nullable):
            self.year = season_year_nullable

        def get_data_frames(self):
            return [pd.DataFrame({'PERSON_ID': [1, 3], 'SEASON': [self.year, self.year]})]

    original_log = game_logs_module.leaguegamelog.LeagueGameLog
    original_draft = game_logs_module.drafthistory.DraftHistory
    game_logs_module.leaguegamelog.LeagueGameLog = FakeGameLog
    game_logs_module.drafthistory.DraftHistory = FakeDraftHistory
    try:
        collector = GameLogCollector(cache_dir=None, request_delay=0)
        logs = collector.collect_game_logs(['2023-24'])
        draft = collector.get_draft_class(2020)
    finally:
        game_logs_module.leaguegamelog.LeagueGameLog = original_log
        game_logs_module.drafthistory.DraftHistory = original_draft

    assert list(logs['season'].unique()) == ['2023-24']
    assert {'player_id', 'team_id', 'points'} <= set(logs.columns)
    assert 'SEASON_ID' not in logs.columns
    assert draft == {1, 3}


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def test_build_network_from_demo_data():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        network = _pipeline(tmp).build_network(data['game_logs'])

    G = network.graph
    assert G.number_of_nodes() == 72, f"Expected every demo player, got {G.number_of_nodes()}"
    assert G.number_of_edges() == len(network.edges)
    assert all(u != v for u, v in G.edges()), "Self-loop in teammate graph"
    assert all(data['weight'] >= 1 for _, _, data in G.edges(data=True))
    assert G.nodes[1001]['name'] == 'Player_1001'
    assert len(network.records) == len({(r.player_id, r.team_id, r.season) for r in network.records})


def test_top_k_restricts_graph():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        network = _pipeline(tmp, top_k_vertices=20).build_network(data['game_logs'])
    assert network.graph.number_of_nodes() == 20


def test_draft_class_filter():
    data = create_demo_data()
    draft_class = data['draft_classes'][2020]
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp, draft_year_filter=2020)
        network = pipeline.build_network(data['game_logs'], draft_players=draft_class)

        assert set(network.graph.nodes()) <= draft_class
        assert {r.player_id for r in network.records} <= draft_class

        with pytest.raises(ValueError):
            pipeline.build_network(data['game_logs'])


def test_analysis_covers_every_player():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp)
        network = pipeline.build_network(data['game_logs'])
        analysis = pipeline.analyze_network(network.graph, network.names)

    G = analysis.graph
    assert not analysis.insufficient_data
    assert set(analysis.communities.partition) == set(G.nodes())
    assert set(analysis.centrality.betweenness) == set(G.nodes())
    assert set(analysis.brokerage.z_scores.index) == set(G.nodes())
    assert list(analysis.brokerage.z_scores.columns) == list(SCORE_COLUMNS)

    recomputed = community_louvain.modularity(analysis.communities.partition, G, weight='weight')
    assert abs(recomputed - analysis.communities.modularity) < 1e-6


def test_key_players():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp)
        network = pipeline.build_network(data['game_logs'])
        analysis = pipeline.analyze_network(network.graph, network.names)

    key_players = identify_key_players(analysis, top_n=5)
    hubs = key_players['hubs']
    brokers = key_players['brokers']

    assert len(hubs) == 5 and len(brokers) == 5
    assert hubs['betweenness'].is_monotonic_decreasing
    assert brokers['total'].is_monotonic_decreasing
    assert hubs['community'].notna().all()
    assert 'notable_roles' in brokers.columns


def test_empty_graph_reports_insufficient_data():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp, season_range=('1990-91',))
        network = pipeline.build_network(data['game_logs'])

        assert network.graph.number_of_nodes() == 0
        with pytest.raises(InsufficientDataError):
            pipeline.analyze_network(network.graph)


def test_two_player_graph_is_flagged():
    logs = pd.DataFrame({
        'player_id': [1, 2], 'team_id': [10, 10], 'season': ['2023-24', '2023-24']
    })
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp)
        network = pipeline.build_network(logs)
        analysis = pipeline.analyze_network(network.graph)

    assert analysis.brokerage.insufficient_data
    assert analysis.insufficient_data
    assert set(analysis.communities.partition) == {1, 2}


def test_full_pipeline_is_deterministic():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp)
        first = pipeline.run_full_pipeline(game_logs=data['game_logs'], create_viz=False)
        second = pipeline.run_full_pipeline(game_logs=data['game_logs'].copy(), create_viz=False)

        for name, path in first['files'].items():
            assert Path(path).exists(), f"Missing export {name}"
        assert (Path(tmp) / "results" / "network_brokerage_latest.csv").exists()

    a, b = first['analysis'], second['analysis']
    assert sorted(a.graph.edges(data='weight')) == sorted(b.graph.edges(data='weight'))
    assert a.communities.partition == b.communities.partition
    assert a.communities.modularity == b.communities.modularity
    assert a.centrality.betweenness == b.centrality.betweenness
    pd.testing.assert_frame_equal(a.brokerage.z_scores, b.brokerage.z_scores)


def test_exported_brokerage_table_is_rounded():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp, rounding_precision=1)
        results = pipeline.run_full_pipeline(game_logs=data['game_logs'], create_viz=False)
        table = pd.read_csv(results['files']['brokerage'])

    assert list(table.columns[:3]) == ['player_id', 'rank', 'player_name']
    for col in SCORE_COLUMNS:
        assert ((table[col] * 10).round(6) % 1 == 0).all(), f"{col} not rounded to 1 decimal"


def test_visualizations():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp)
        results = pipeline.run_full_pipeline(game_logs=data['game_logs'], create_viz=True)
        figures = results['visualizations']

        assert set(figures) == {'network', 'brokerage', 'communities'}
        assert (Path(tmp) / "results" / "visualization_network_network_latest.html").exists()

    network_fig = figures['network']
    assert len(network_fig.data) == 2, "Expected edge and node traces"

    empty = TeammateNetworkVisualizer().plot_network_graph(nx.Graph())
    assert empty.layout.annotations[0].text == "No network data available"


def test_brokerage_figure_uses_configured_threshold():
    data = create_demo_data()
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = _pipeline(tmp, notable_z=3.0)
        results = pipeline.run_full_pipeline(game_logs=data['game_logs'], create_viz=True)

    shapes = results['visualizations']['brokerage'].layout.shapes
    assert sorted(shape.y0 for shape in shapes) == [-3.0, 3.0]


def test_command_line_demo_run():
    with tempfile.TemporaryDirectory() as tmp:
        main(['--demo', '--no-viz', '--top-k', '40',
              '--data-dir', str(Path(tmp) / "data"), '--results-dir', str(Path(tmp) / "results")])

        brokerage = pd.read_csv(Path(tmp) / "results" / "demo_brokerage_latest.csv")
        communities = pd.read_csv(Path(tmp) / "results" / "demo_communities_latest.csv")

    assert len(brokerage) == 40
    assert len(communities) == 40
    assert communities['community'].min() == 1


def test_command_line_exits_when_draft_class_is_empty():
    with tempfile.TemporaryDirectory() as tmp:
        # Demo draft classes cover 2018-2021 only
        with pytest.raises(SystemExit) as excinfo:
            main(['--demo', '--no-viz', '--draft-year', '1999',
                  '--data-dir', str(Path(tmp) / "data"), '--results-dir', str(Path(tmp) / "results")])

    assert excinfo.value.code == 1


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_tests(namespace: dict) -> bool:
    """Run every test_* function in a module namespace and report results."""
    results = {'tests_run': 0, 'tests_passed': 0, 'tests_failed': 0, 'failures': []}

    logger.info("=" * 60)
    logger.info("STARTING TEAMMATE NETWORK TESTS")
    logger.info("=" * 60)

    for name, func in list(namespace.items()):
        if not name.startswith('test_') or not callable(func):
            continue
        results['tests_run'] += 1
        try:
            func()
            results['tests_passed'] += 1
            logger.info(f"PASSED: {name}")
        except Exception as e:
            results['tests_failed'] += 1
            results['failures'].append({'test': name, 'error': str(e), 'traceback': traceback.format_exc()})
            logger.error(f"FAILED: {name} - {e}")

    logger.info("=" * 60)
    logger.info(f"Tests Run: {results['tests_run']}")
    logger.info(f"Tests Passed: {results['tests_passed']}")
    logger.info(f"Tests Failed: {results['tests_failed']}")
    for failure in results['failures']:
        logger.error(f"- {failure['test']}: {failure['error']}\n{failure['traceback']}")
    logger.info("=" * 60)

    return results['tests_failed'] == 0


if __name__ == "__main__":
    sys.exit(0 if run_tests(globals()) else 1)
