"""
Graph visualizer that produces an ECharts-compatible configuration for the
story canvas.

Input is a GraphProjection: nodes already carry their canvas positions, so
the graph series uses layout 'none' and ECharts draws nodes exactly where the
layout engine put them. NetworkX holds the structure while the option dict
is assembled, the same way the series is built for any directed graph.
"""

from typing import Dict, Any, Optional

import networkx as nx

from src.projection import GraphProjection, NodeKind

# Per-kind styling: (symbol size, default color, symbol)
NODE_STYLES: Dict[NodeKind, Dict[str, Any]] = {
    NodeKind.PLOT_POINT: {"size": 48, "color": "#3b82f6", "symbol": "circle"},
    NodeKind.SCENE: {"size": 30, "color": "#10b981", "symbol": "roundRect"},
    NodeKind.CHARACTER: {"size": 18, "color": "#f59e0b", "symbol": "circle"},
    NodeKind.SETTING: {"size": 18, "color": "#8b5cf6", "symbol": "diamond"},
    NodeKind.ITEM: {"size": 16, "color": "#ef4444", "symbol": "triangle"},
}

SELECTED_BORDER = {"borderColor": "#111827", "borderWidth": 4}
TEMP_BORDER = {"borderColor": "#9ca3af", "borderWidth": 2, "borderType": "dashed"}

UPDATE_ANIMATION_MS = 300


class GraphVisualizer:
    """
    Build an ECharts configuration (dict) from a GraphProjection.

    The returned dict has a single 'graph' series:
      {
        "series": [
          {
            "type": "graph",
            "layout": "none",
            "roam": True,
            "data": [...],   # one entry per VisualNode, id and x/y preserved
            "links": [...],  # one entry per VisualEdge, id preserved
          }
        ]
      }
    """

    def __init__(self):
        self.G = nx.DiGraph()

    @staticmethod
    def style_for(kind: NodeKind) -> Dict[str, Any]:
        return NODE_STYLES[kind]

    def generate_echarts(self, projection: GraphProjection,
                         selected_id: Optional[str] = None,
                         animate: bool = True) -> Dict[str, Any]:
        """
        Given a projection, construct the ECharts option dict.

        animate=False applies node changes in place (undo restores).
        """
        self.G = nx.DiGraph()
        for node in projection.nodes:
            self.G.add_node(node.id, node=node)
        for edge in projection.edges:
            # Only add edges if both nodes exist
            if edge.source in self.G.nodes and edge.target in self.G.nodes:
                self.G.add_edge(edge.source, edge.target, id=edge.id, kind=edge.kind)

        data = []
        for node_id, attrs in self.G.nodes(data=True):
            node = attrs["node"]
            style = self.style_for(node.kind)
            item_style = {"color": node.color or style["color"]}
            if node.is_temp:
                item_style.update(TEMP_BORDER)
            if node_id == selected_id:
                item_style.update(SELECTED_BORDER)

            data.append({
                "id": node_id,
                "name": node_id,
                "x": node.x,
                "y": node.y,
                "symbol": style["symbol"],
                "symbolSize": style["size"],
                "itemStyle": item_style,
                "label": {"show": True, "formatter": node.label or " "},
                "kind": node.kind.value,
                "entityId": node.entity_id,
                "parentId": node.parent_id,
            })

        links = []
        for src, tgt, attrs in self.G.edges(data=True):
            links.append({
                "id": attrs["id"],
                "source": src,
                "target": tgt,
                "lineStyle": {"color": "#bdbdbd", "width": 1.5, "opacity": 0.9},
            })

        return {
            "animationDurationUpdate": UPDATE_ANIMATION_MS if animate else 0,
            "series": [
                {
                    "type": "graph",
                    "layout": "none",
                    "roam": True,
                    "draggable": False,
                    "data": data,
                    "links": links,
                    "edgeSymbol": ["none", "arrow"],
                    "edgeSymbolSize": 6,
                    "emphasis": {"focus": "adjacency"},
                }
            ]
        }
