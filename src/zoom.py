"""
Zoom / focus state machine.

STORY_OVERVIEW is the initial state and is always reachable. Transitions are
driven only by explicit user actions: double clicks, toolbar buttons and
navigation from search. Every transition method returns True when the state
changed.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from src.models import Project, ZoomLevel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZoomState:
    level: ZoomLevel = ZoomLevel.STORY_OVERVIEW
    focused_element_id: Optional[str] = None


class ZoomStateMachine:

    def __init__(self, state: Optional[ZoomState] = None):
        self._state = state or ZoomState()

    @property
    def state(self) -> ZoomState:
        return self._state

    @property
    def level(self) -> ZoomLevel:
        return self._state.level

    @property
    def focused_element_id(self) -> Optional[str]:
        return self._state.focused_element_id

    def _move(self, level: ZoomLevel, focused_element_id: Optional[str]) -> bool:
        new_state = ZoomState(level, focused_element_id)
        if new_state == self._state:
            return False
        logger.debug(f"Zoom {self._state.level.value} -> {level.value} (focus={focused_element_id})")
        self._state = new_state
        return True

    # --- Double click ---

    def focus_plot_point(self, plot_point_id: str) -> bool:
        """Double click on a plot point; only honoured at the overview."""
        if self.level != ZoomLevel.STORY_OVERVIEW:
            return False
        return self._move(ZoomLevel.PLOT_POINT_FOCUS, plot_point_id)

    def focus_scene(self, scene_id: str) -> bool:
        """Double click on a scene; only honoured while a plot point is focused."""
        if self.level != ZoomLevel.PLOT_POINT_FOCUS:
            return False
        return self._move(ZoomLevel.SCENE_DETAIL, scene_id)

    def focus_character(self, character_id: str) -> bool:
        return self._move(ZoomLevel.CHARACTER_FOCUS, character_id)

    # --- Toolbar / search ---

    def set_level(self, level: ZoomLevel, focused_element_id: Optional[str] = None) -> bool:
        """Toolbar zoom buttons. Going back to the overview drops the focus."""
        if level == ZoomLevel.STORY_OVERVIEW:
            focused_element_id = None
        elif focused_element_id is None:
            focused_element_id = self.focused_element_id
        return self._move(level, focused_element_id)

    def navigate_to(self, kind: str, element_id: str) -> bool:
        """Jump straight to an element picked from search results."""
        levels = {
            "plot-point": ZoomLevel.PLOT_POINT_FOCUS,
            "scene": ZoomLevel.SCENE_DETAIL,
            "character": ZoomLevel.CHARACTER_FOCUS,
        }
        if kind not in levels:
            raise ValueError(f"Cannot navigate to a {kind}")
        return self._move(levels[kind], element_id)

    def reset(self) -> bool:
        return self._move(ZoomLevel.STORY_OVERVIEW, None)

    # --- Project binding ---

    def load_from(self, project: Project) -> None:
        self._state = ZoomState(project.current_zoom_level, project.focused_element_id)

    def apply_to(self, project: Project) -> None:
        project.current_zoom_level = self.level
        project.focused_element_id = self.focused_element_id
