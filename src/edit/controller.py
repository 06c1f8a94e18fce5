"""
Interaction Controller - pointer semantics of the story canvas.

Translates clicks, double clicks and right clicks on the projected graph
into state changes and a CanvasEffect telling the UI what to do next.
The controller never touches NiceGUI; handlers.py applies the effects.

Rules:
- click on a node selects it, centers on it and opens its property panel;
  a plot point additionally toggles its expanded state
- double click on a plot point at the overview focuses it; double click on
  a scene while a plot point is focused zooms to scene detail
- click on empty canvas at the overview creates a temp plot point there,
  discarding any previous unsaved one;
  anywhere else it clears the selection
- right click opens the context menu for that node
"""

import logging
from dataclasses import dataclass
from typing import Optional

from src.models import (
    DEFAULT_PLOT_POINT_COLOR,
    DEFAULT_PLOT_POINT_TITLE,
    PlotPoint,
    Position,
    ZoomLevel,
    make_id,
)
from src.projection import NodeKind, VisualNode
from src.zoom import ZoomStateMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextTarget:
    node_id: str
    x: float
    y: float


@dataclass
class InteractionState:
    """Selection and expansion state shared by the controller and EditActions."""
    selected_id: Optional[str] = None
    expanded_id: Optional[str] = None
    temp_entity: Optional[PlotPoint] = None
    context_target: Optional[ContextTarget] = None

    def drop_temp(self) -> Optional[PlotPoint]:
        """Forget the temp plot point unsaved, with any selection or expansion of it."""
        temp = self.temp_entity
        if temp is None:
            return None
        self.temp_entity = None
        if self.selected_id == temp.id:
            self.selected_id = None
        if self.expanded_id == temp.id:
            self.expanded_id = None
        return temp


@dataclass
class CanvasEffect:
    """What the UI must do after an interaction."""
    center_on: Optional[str] = None
    open_panel: Optional[str] = None
    close_panel: bool = False
    reproject: bool = False
    zoom_changed: bool = False
    context_menu: Optional[ContextTarget] = None


class InteractionController:

    def __init__(self, state: InteractionState, zoom: ZoomStateMachine):
        self.state = state
        self.zoom = zoom

    def click(self, node: VisualNode) -> CanvasEffect:
        self.state.selected_id = node.id
        self.state.context_target = None

        if node.kind == NodeKind.PLOT_POINT:
            if self.state.expanded_id == node.id:
                self.state.expanded_id = None
            else:
                self.state.expanded_id = node.id

        return CanvasEffect(center_on=node.id, open_panel=node.id, reproject=True)

    def double_click(self, node: VisualNode) -> CanvasEffect:
        changed = False
        if node.kind == NodeKind.PLOT_POINT:
            changed = self.zoom.focus_plot_point(node.entity_id)
        elif node.kind == NodeKind.SCENE:
            changed = self.zoom.focus_scene(node.entity_id)

        if not changed:
            return CanvasEffect()
        logger.info(f"Zoomed to {self.zoom.level.value} on {node.entity_id}")
        return CanvasEffect(center_on=node.id, zoom_changed=True, reproject=True)

    def click_canvas(self, x: float, y: float, act_id: str) -> CanvasEffect:
        """Click on empty canvas at data coordinates (x, y)."""
        if self.zoom.level != ZoomLevel.STORY_OVERVIEW:
            return self.clear_selection()

        # A new click dismisses the previous temp plot point and its panel
        dropped = self.state.drop_temp()
        if dropped is not None:
            logger.info(f"Discarded unsaved temp plot point {dropped.id}")
        temp = PlotPoint(
            id=make_id("temp"),
            title=DEFAULT_PLOT_POINT_TITLE,
            position=Position(x, y),
            color=DEFAULT_PLOT_POINT_COLOR,
            act_id=act_id,
        )
        self.state.temp_entity = temp
        self.state.selected_id = temp.id
        self.state.context_target = None
        return CanvasEffect(open_panel=temp.id, close_panel=dropped is not None, reproject=True)

    def right_click(self, node_id: str, x: float, y: float) -> CanvasEffect:
        target = ContextTarget(node_id, x, y)
        self.state.context_target = target
        return CanvasEffect(context_menu=target)

    def close_context_menu(self) -> None:
        self.state.context_target = None

    def clear_selection(self) -> CanvasEffect:
        self.state.selected_id = None
        self.state.context_target = None
        return CanvasEffect(close_panel=True, reproject=True)
