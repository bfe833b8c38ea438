"""
Interactive Visualization Module

Plotly figures over the pipeline outputs: the teammate graph colored by
community and sized by betweenness, and brokerage role profiles of the top
brokers.
"""

import pandas as pd
import plotly.graph_objects as go
import plotly.express as px
import networkx as nx
from typing import Dict, Hashable, Optional
import logging

from ..network_analysis.brokerage import NOTABLE_Z, ROLES, BrokerageResult
from ..network_analysis.centrality import CentralityResult
from ..network_analysis.community_detection import CommunityResult

logger = logging.getLogger(__name__)


class TeammateNetworkVisualizer:
    """Creates interactive visualizations for teammate network analysis."""

    def __init__(self, layout_seed: int = 42):
        self.layout_seed = layout_seed
        self.color_schemes = {
            'communities': px.colors.qualitative.Set3,
            'roles': px.colors.qualitative.Bold
        }

    def _empty_figure(self, message: str) -> go.Figure:
        fig = go.Figure()
        fig.add_annotation(text=message,
                           xref="paper", yref="paper",
                           x=0.5, y=0.5, showarrow=False)
        return fig

    def plot_network_graph(self,
                           G: nx.Graph,
                           communities: Optional[CommunityResult] = None,
                           centrality: Optional[CentralityResult] = None,
                           title: str = "Teammate Network",
                           layout_type: str = "spring") -> go.Figure:
        """
        Create interactive network visualization.

        Args:
            G: Teammate graph
            communities: Node color = community
            centrality: Node size = normalized betweenness
            title: Figure title
            layout_type: 'spring' or 'circular'

        Returns:
            Plotly figure object
        """
        if G.number_of_nodes() == 0:
            return self._empty_figure("No network data available")

        if layout_type == "circular":
            pos = nx.circular_layout(G)
        else:
            pos = nx.spring_layout(G, weight='weight', seed=self.layout_seed)

        nodes = list(G.nodes())
        partition = communities.partition if communities else {}
        normalized = centrality.normalized if centrality else {}
        palette = self.color_schemes['communities']

        hover_text = []
        for node in nodes:
            name = G.nodes[node].get('name', str(node))
            info = f"<b>{name}</b><br>"
            info += f"Community: {partition.get(node, '-')}<br>"
            info += f"Teammates: {G.degree(node)}<br>"
            info += f"Betweenness (norm.): {normalized.get(node, 0.0):.3f}"
            hover_text.append(info)

        node_trace = go.Scatter(
            x=[pos[node][0] for node in nodes],
            y=[pos[node][1] for node in nodes],
            mode='markers',
            hoverinfo='text',
            hovertext=hover_text,
            marker=dict(
                size=[8 + 40 * normalized.get(node, 0.0) for node in nodes],
                color=[palette[(partition.get(node, 1) - 1) % len(palette)] for node in nodes],
                line=dict(width=1, color='white')
            )
        )

        edge_x = []
        edge_y = []
        for u, v in G.edges():
            x0, y0 = pos[u]
            x1, y1 = pos[v]
            edge_x.extend([x0, x1, None])
            edge_y.extend([y0, y1, None])

        edge_trace = go.Scatter(
            x=edge_x, y=edge_y,
            line=dict(width=0.5, color='rgba(125,125,125,0.5)'),
            hoverinfo='none',
            mode='lines'
        )

        fig = go.Figure(data=[edge_trace, node_trace],
                        layout=go.Layout(
                            title=dict(text=title, font=dict(size=16)),
                            showlegend=False,
                            hovermode='closest',
                            margin=dict(b=20, l=5, r=5, t=40),
                            annotations=[dict(
                                text="Node color = Community | Node size = Betweenness",
                                showarrow=False,
                                xref="paper", yref="paper",
                                x=0.005, y=-0.002,
                                xanchor='left', yanchor='bottom',
                                font=dict(size=12)
                            )],
                            xaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
                            yaxis=dict(showgrid=False, zeroline=False, showticklabels=False)
                        ))
        return fig

    def plot_brokerage_profile(self,
                               brokerage: BrokerageResult,
                               top_n: int = 10,
                               names: Optional[Dict[Hashable, str]] = None,
                               notable_z: float = NOTABLE_Z) -> go.Figure:
        """Grouped bars of role z-scores for the top brokers, with guides at +-notable_z."""
        if brokerage.insufficient_data or brokerage.z_scores.empty:
            return self._empty_figure("Not enough data for brokerage scores")

        top = brokerage.ranked(by='total', names=names).head(top_n)
        labels = [name if isinstance(name, str) else str(pid)
                  for pid, name in zip(top['player_id'], top['player_name'])]

        fig = go.Figure()
        for role, color in zip(ROLES, self.color_schemes['roles']):
            fig.add_trace(go.Bar(x=labels, y=top[role], name=role.title(), marker_color=color))

        for level in (notable_z, -notable_z):
            fig.add_hline(y=level, line_dash="dash", line_color="gray")

        fig.update_layout(
            title=f"Brokerage Roles of Top {len(top)} Brokers (z-scores)",
            barmode='group',
            xaxis_title="Player",
            yaxis_title="z-score"
        )
        return fig

    def plot_community_sizes(self, communities: CommunityResult) -> go.Figure:
        """Bar chart of community sizes."""
        if not communities.community_sizes:
            return self._empty_figure("No communities detected")

        df = pd.DataFrame(
            list(communities.community_sizes.items()), columns=['community', 'players']
        )
        fig = px.bar(df, x='community', y='players',
                     title=f"Community Sizes (modularity = {communities.modularity:.3f})")
        fig.update_xaxes(type='category')
        return fig


def create_visualizations(G: nx.Graph,
                          communities: CommunityResult,
                          centrality: CentralityResult,
                          brokerage: BrokerageResult,
                          names: Optional[Dict[Hashable, str]] = None,
                          notable_z: float = NOTABLE_Z) -> Dict[str, go.Figure]:
    """
    Main function to create all visualizations.

    Returns:
        Dictionary of Plotly figures
    """
    visualizer = TeammateNetworkVisualizer()
    figures = {
        'network': visualizer.plot_network_graph(G, communities, centrality),
        'brokerage': visualizer.plot_brokerage_profile(brokerage, names=names, notable_z=notable_z),
        'communities': visualizer.plot_community_sizes(communities),
    }
    logger.info(f"Created {len(figures)} figures")
    return figures
