"""
Graph projection: domain model -> positioned node/edge lists.

project_graph is a pure function of (project, zoom level, expanded plot point,
temp entity). It never mutates its inputs, and identical inputs produce equal
GraphProjection values, which is what re-render diffing and undo rely on.

Visibility rules:
- only plot points of the current act are emitted
- scenes of a plot point are emitted when the zoom level is not the overview,
  or when that plot point is the expanded one
- character/setting/item nodes are emitted only at SCENE_DETAIL, and only for
  the scene that is the focused element
- a temp entity of the current act is projected like any other plot point
- every edge is a parent -> child 'contains' edge
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from src.layout import LayoutConfig, detail_position, satellite_position
from src.models import PlotPoint, Position, Project, Scene, ZoomLevel, is_temp_id


class NodeKind(str, Enum):
    """Discriminant of a visual node."""
    PLOT_POINT = "plot-point"
    SCENE = "scene"
    CHARACTER = "character"
    SETTING = "setting"
    ITEM = "item"


DETAIL_KINDS = (NodeKind.CHARACTER, NodeKind.SETTING, NodeKind.ITEM)


@dataclass(frozen=True)
class VisualNode:
    id: str
    kind: NodeKind
    label: str
    x: float
    y: float
    entity_id: str
    parent_id: Optional[str] = None
    color: Optional[str] = None
    is_temp: bool = False


@dataclass(frozen=True)
class VisualEdge:
    id: str
    source: str
    target: str
    kind: str = "contains"


@dataclass(frozen=True)
class GraphProjection:
    nodes: Tuple[VisualNode, ...] = ()
    edges: Tuple[VisualEdge, ...] = ()

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def find(self, node_id: str) -> Optional[VisualNode]:
        return next((n for n in self.nodes if n.id == node_id), None)


@dataclass
class ProjectionDiff:
    """Changes needed to turn one rendered projection into another."""
    added: List[VisualNode] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    updated: List[VisualNode] = field(default_factory=list)
    edges_changed: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.updated or self.edges_changed)


# A stored position closer than this to a slot holds that slot
SLOT_TOLERANCE = 1.0


def scene_anchors(plot_point: PlotPoint, radius: float) -> List[Position]:
    """
    Positions of every scene of plot_point, in scene order.

    Stored positions win. Unset scenes take the satellite slots (i of n) that
    no sibling's stored position holds, in slot order, so a scene added after
    a deletion never lands on a sibling.
    """
    total = len(plot_point.scenes)
    slots = [satellite_position(plot_point.position, i, total, radius) for i in range(total)]
    stored = [s.position for s in plot_point.scenes if s.position is not None]
    free = [slot for slot in slots
            if not any(slot.distance_to(p) < SLOT_TOLERANCE for p in stored)]

    anchors: List[Position] = []
    for index, scene in enumerate(plot_point.scenes):
        if scene.position is not None:
            anchors.append(scene.position)
        elif free:
            anchors.append(free.pop(0))
        else:
            anchors.append(slots[index])
    return anchors


def _emit_plot_point(nodes: List[VisualNode], edges: List[VisualEdge], project: Project,
                     plot_point: PlotPoint, zoom: ZoomLevel, expanded_id: Optional[str],
                     config: LayoutConfig) -> None:
    nodes.append(VisualNode(
        id=plot_point.id,
        kind=NodeKind.PLOT_POINT,
        label=plot_point.title,
        x=plot_point.position.x,
        y=plot_point.position.y,
        entity_id=plot_point.id,
        color=plot_point.color,
        is_temp=is_temp_id(plot_point.id),
    ))

    show_scenes = zoom != ZoomLevel.STORY_OVERVIEW or expanded_id == plot_point.id
    if not show_scenes:
        return

    anchors = scene_anchors(plot_point, config.scene_radius)
    for scene, anchor in zip(plot_point.scenes, anchors):
        nodes.append(VisualNode(
            id=scene.id,
            kind=NodeKind.SCENE,
            label=scene.title,
            x=anchor.x,
            y=anchor.y,
            entity_id=scene.id,
            parent_id=plot_point.id,
        ))
        edges.append(VisualEdge(id=f"{plot_point.id}-{scene.id}", source=plot_point.id, target=scene.id))

        if zoom == ZoomLevel.SCENE_DETAIL and project.focused_element_id == scene.id:
            _emit_scene_details(nodes, edges, project, scene, anchor, config)


def _emit_scene_details(nodes: List[VisualNode], edges: List[VisualEdge], project: Project,
                        scene: Scene, anchor: Position, config: LayoutConfig) -> None:
    def add(kind: NodeKind, node_id: str, entity_id: str, label: str, index: int) -> None:
        pos = detail_position(anchor, kind.value, index, config.detail_radius, config.detail_angle_step)
        nodes.append(VisualNode(
            id=node_id,
            kind=kind,
            label=label,
            x=pos.x,
            y=pos.y,
            entity_id=entity_id,
            parent_id=scene.id,
        ))
        edges.append(VisualEdge(id=f"{scene.id}-{node_id}", source=scene.id, target=node_id))

    index = 0
    for character_id in scene.character_ids:
        character = project.find_character(character_id)
        if character is None:
            continue
        add(NodeKind.CHARACTER, f"{scene.id}-char-{character.id}", character.id, character.name, index)
        index += 1

    if scene.setting is not None and (scene.setting.id or scene.setting.name):
        add(NodeKind.SETTING, f"{scene.id}-setting-{scene.setting.id}", scene.setting.id, scene.setting.name, 0)

    for index, item in enumerate(scene.items):
        add(NodeKind.ITEM, f"{scene.id}-item-{item.id}", item.id, item.name, index)


def project_graph(project: Project,
                  zoom_level: Optional[ZoomLevel] = None,
                  expanded_id: Optional[str] = None,
                  temp_entity: Optional[PlotPoint] = None,
                  config: Optional[LayoutConfig] = None) -> GraphProjection:
    """
    Build the visual graph for the current act.

    zoom_level defaults to the project's own current zoom level. The focused
    element is always read from the project.
    """
    config = config or LayoutConfig()
    zoom = zoom_level or project.current_zoom_level
    nodes: List[VisualNode] = []
    edges: List[VisualEdge] = []

    for plot_point in project.plot_points_for_act(project.current_act_id):
        _emit_plot_point(nodes, edges, project, plot_point, zoom, expanded_id, config)

    if temp_entity is not None and temp_entity.act_id == project.current_act_id:
        _emit_plot_point(nodes, edges, project, temp_entity, zoom, expanded_id, config)

    return GraphProjection(nodes=tuple(nodes), edges=tuple(edges))


def diff_projections(old: Optional[GraphProjection], new: GraphProjection) -> ProjectionDiff:
    """Node-level diff keyed by visual node id."""
    if old is None:
        return ProjectionDiff(added=list(new.nodes), edges_changed=bool(new.edges))

    old_nodes: Dict[str, VisualNode] = {n.id: n for n in old.nodes}
    new_ids = set()
    diff = ProjectionDiff()
    for node in new.nodes:
        new_ids.add(node.id)
        previous = old_nodes.get(node.id)
        if previous is None:
            diff.added.append(node)
        elif previous != node:
            diff.updated.append(node)
    diff.removed = [nid for nid in old_nodes if nid not in new_ids]
    diff.edges_changed = set(old.edges) != set(new.edges)
    return diff
