import pytest

from src.graph_viz import GraphVisualizer, SELECTED_BORDER, TEMP_BORDER, UPDATE_ANIMATION_MS
from src.models import PlotPoint, Position, ZoomLevel
from src.projection import GraphProjection, NodeKind, VisualEdge, VisualNode, project_graph


def find_link(links, src, tgt):
    for l in links:
        if l.get("source") == src and l.get("target") == tgt:
            return l
    return None


def find_node(data, node_id):
    return next((d for d in data if d["id"] == node_id), None)


def test_nodes_keep_their_canvas_positions(story_project):
    """
    The series uses the fixed layout, so every node is drawn exactly where
    the projection placed it and edges keep their ids.
    """
    projection = project_graph(story_project, ZoomLevel.PLOT_POINT_FOCUS)

    series = GraphVisualizer().generate_echarts(projection)["series"][0]

    assert series["type"] == "graph"
    assert series["layout"] == "none"
    assert [d["id"] for d in series["data"]] == projection.node_ids()
    for node in projection.nodes:
        entry = find_node(series["data"], node.id)
        assert (entry["x"], entry["y"]) == (node.x, node.y)
        assert entry["kind"] == node.kind.value

    link = find_link(series["links"], "pp-1", "sc-1")
    assert link is not None
    assert link["id"] == "pp-1-sc-1"


def test_plot_point_color_and_label(story_project):
    projection = project_graph(story_project)
    data = GraphVisualizer().generate_echarts(projection)["series"][0]["data"]

    turn = find_node(data, "pp-2")
    assert turn["itemStyle"]["color"] == "#10b981"
    assert turn["label"]["formatter"] == "Turn"
    assert turn["symbolSize"] == GraphVisualizer.style_for(NodeKind.PLOT_POINT)["size"]


def test_selection_and_temp_borders(story_project):
    temp = PlotPoint(id="temp-1", title="", position=Position(700.0, 700.0), color="#fff", act_id="act-a")
    projection = project_graph(story_project, temp_entity=temp)

    data = GraphVisualizer().generate_echarts(projection, selected_id="pp-1")["series"][0]["data"]

    assert find_node(data, "pp-1")["itemStyle"]["borderWidth"] == SELECTED_BORDER["borderWidth"]
    assert find_node(data, "temp-1")["itemStyle"]["borderType"] == TEMP_BORDER["borderType"]
    # Empty titles still render a label so the node stays clickable
    assert find_node(data, "temp-1")["label"]["formatter"] == " "
    assert "borderWidth" not in find_node(data, "pp-2")["itemStyle"]


def test_edges_to_missing_nodes_are_dropped():
    nodes = (VisualNode(id="a", kind=NodeKind.PLOT_POINT, label="A", x=0.0, y=0.0, entity_id="a"),)
    edges = (VisualEdge(id="a-b", source="a", target="b"),)

    option = GraphVisualizer().generate_echarts(GraphProjection(nodes=nodes, edges=edges))

    assert option["series"][0]["links"] == []


@pytest.mark.parametrize("kind", list(NodeKind))
def test_every_kind_has_a_style(kind):
    style = GraphVisualizer.style_for(kind)
    assert {"size", "color", "symbol"} <= set(style)


def test_in_place_updates_skip_animation(story_project):
    projection = project_graph(story_project)
    visualizer = GraphVisualizer()

    assert visualizer.generate_echarts(projection)["animationDurationUpdate"] == UPDATE_ANIMATION_MS
    assert visualizer.generate_echarts(projection, animate=False)["animationDurationUpdate"] == 0
