"""
ProjectStore: the single writer of the loaded Project.

One store exists per open workspace. It is created when a project is opened
and reset when the user switches projects. Every mutation stamps
lastModified and emits a 'change' event carrying the live project; listeners
that keep the project around must take their own copy (see snapshot()).
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from src.errors import EntityNotFoundError, InvariantViolation, ProjectNotLoadedError
from src.layout import LayoutEngine
from src.models import (
    Act,
    Character,
    DEFAULT_PLOT_POINT_COLOR,
    DEFAULT_PLOT_POINT_TITLE,
    DEFAULT_SCENE_TITLE,
    PlotPoint,
    Position,
    Project,
    Scene,
    ZoomLevel,
    make_id,
)

logger = logging.getLogger(__name__)


def _apply_changes(target: Any, changes: Dict[str, Any]) -> None:
    for key, value in changes.items():
        if key == "id" or not hasattr(target, key):
            raise ValueError(f"{type(target).__name__} has no editable field {key!r}")
        setattr(target, key, value)


class ProjectStore:
    """
    Holds the current Project and applies every edit to it.

    Events:
    - 'loaded': a project was loaded (data: project)
    - 'change': the project was mutated (data: project)
    - 'replaced': the project was swapped for a canonical copy (data: project)
    - 'reset': the store was cleared
    """

    def __init__(self, layout: Optional[LayoutEngine] = None):
        self.layout = layout or LayoutEngine()
        self._project: Optional[Project] = None
        self._callbacks: Dict[str, List[Callable]] = {
            'loaded': [],
            'change': [],
            'replaced': [],
            'reset': [],
        }

    # --- Events ---

    def on(self, event: str, callback: Callable) -> None:
        if event in self._callbacks:
            self._callbacks[event].append(callback)

    def off(self, event: str, callback: Callable) -> None:
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)

    def _emit(self, event: str, data: Any = None) -> None:
        for callback in self._callbacks.get(event, []):
            try:
                result = callback(data)
                if asyncio.iscoroutine(result):
                    asyncio.create_task(result)
            except Exception as e:
                logger.error(f"Error in callback for {event}: {e}")

    # --- Lifecycle ---

    @property
    def is_loaded(self) -> bool:
        return self._project is not None

    @property
    def project(self) -> Project:
        if self._project is None:
            raise ProjectNotLoadedError("No project is loaded")
        return self._project

    def load(self, project: Project) -> None:
        project.validate()
        self._project = project
        logger.info(f"Loaded project {project.id} ({project.title})")
        self._emit('loaded', project)

    def replace(self, project: Project) -> None:
        """Swap in a canonical copy without treating it as a user edit."""
        project.validate()
        self._project = project
        self._emit('replaced', project)

    def reset(self) -> None:
        self._project = None
        self._emit('reset')

    def snapshot(self) -> Project:
        return self.project.deep_copy()

    def _commit(self) -> Project:
        project = self.project
        project.touch()
        self._emit('change', project)
        return project

    # --- Project / view state ---

    def update_metadata(self, **changes) -> None:
        allowed = {"title", "description", "tags", "status"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Not project metadata: {sorted(unknown)}")
        _apply_changes(self.project, changes)
        self._commit()

    def set_current_act(self, act_id: str) -> None:
        if self.project.find_act(act_id) is None:
            raise EntityNotFoundError("act", act_id)
        self.project.current_act_id = act_id
        self._commit()

    def set_zoom(self, level: ZoomLevel, focused_element_id: Optional[str] = None) -> None:
        self.project.current_zoom_level = level
        self.project.focused_element_id = focused_element_id
        self._commit()

    # --- Acts ---

    def add_act(self, name: str, description: Optional[str] = None, order: Optional[int] = None) -> Act:
        acts = self.project.acts
        if order is None:
            order = max((a.order for a in acts), default=0) + 1
        act = Act(id=make_id("act"), name=name, order=order, description=description)
        acts.append(act)
        self._commit()
        return act

    def update_act(self, act_id: str, **changes) -> Act:
        act = self.project.find_act(act_id)
        if act is None:
            raise EntityNotFoundError("act", act_id)
        _apply_changes(act, changes)
        self._commit()
        return act

    def delete_act(self, act_id: str) -> None:
        """Remove an act and every plot point in it. The last act cannot be removed."""
        project = self.project
        if project.find_act(act_id) is None:
            raise EntityNotFoundError("act", act_id)
        if len(project.acts) == 1:
            raise InvariantViolation("A project must keep at least one act")

        project.acts = [a for a in project.acts if a.id != act_id]
        removed = [pp for pp in project.plot_points if pp.act_id == act_id]
        project.plot_points = [pp for pp in project.plot_points if pp.act_id != act_id]
        if project.current_act_id == act_id:
            project.current_act_id = project.sorted_acts()[0].id
        for pp in removed:
            self._clear_focus_for(pp)
        logger.info(f"Deleted act {act_id} with {len(removed)} plot points")
        self._commit()

    def ensure_act_exists(self, order: int) -> Act:
        act = self.project.act_by_order(order)
        if act is not None:
            return act
        return self.add_act(f"Act {order}", order=order)

    # --- Plot points ---

    def add_plot_point(self, title: str = DEFAULT_PLOT_POINT_TITLE, act_id: Optional[str] = None,
                       position: Optional[Position] = None, color: str = DEFAULT_PLOT_POINT_COLOR,
                       plot_point: Optional[PlotPoint] = None) -> PlotPoint:
        """
        Append a plot point.

        Pass a ready PlotPoint (e.g. a promoted temp entity) or let one be
        built; without a position the layout engine allocates one.
        """
        project = self.project
        if plot_point is None:
            if position is None:
                position = self.layout.allocate_position(pp.position for pp in project.plot_points)
            plot_point = PlotPoint(
                id=make_id("plot"),
                title=title,
                position=position,
                color=color,
                act_id=act_id or project.current_act_id,
            )
        if project.find_act(plot_point.act_id) is None:
            raise EntityNotFoundError("act", plot_point.act_id)
        if project.find_plot_point(plot_point.id) is not None:
            raise InvariantViolation(f"Duplicate plot point id {plot_point.id}")

        project.plot_points.append(plot_point)
        project.validate()
        self._commit()
        return plot_point

    def _require_plot_point(self, plot_point_id: str) -> PlotPoint:
        pp = self.project.find_plot_point(plot_point_id)
        if pp is None:
            raise EntityNotFoundError("plot point", plot_point_id)
        return pp

    def update_plot_point(self, plot_point_id: str, **changes) -> PlotPoint:
        pp = self._require_plot_point(plot_point_id)
        _apply_changes(pp, changes)
        self._commit()
        return pp

    def delete_plot_point(self, plot_point_id: str) -> PlotPoint:
        pp = self._require_plot_point(plot_point_id)
        self.project.plot_points.remove(pp)
        self._clear_focus_for(pp)
        self._commit()
        return pp

    def _clear_focus_for(self, pp: PlotPoint) -> None:
        owned = {pp.id} | {s.id for s in pp.scenes}
        if self.project.focused_element_id in owned:
            self.project.focused_element_id = None
            self.project.current_zoom_level = ZoomLevel.STORY_OVERVIEW

    # --- Scenes ---

    def add_scene(self, plot_point_id: str, title: str = DEFAULT_SCENE_TITLE) -> Scene:
        """New scenes take their satellite slot at projection time (position stays unset)."""
        pp = self._require_plot_point(plot_point_id)
        scene = Scene.new(title)
        pp.scenes.append(scene)
        self._commit()
        return scene

    def update_scene(self, scene_id: str, **changes) -> Scene:
        _, scene = self.project.find_scene(scene_id)
        if scene is None:
            raise EntityNotFoundError("scene", scene_id)
        _apply_changes(scene, changes)
        self._commit()
        return scene

    def delete_scene(self, scene_id: str) -> Scene:
        pp, scene = self.project.find_scene(scene_id)
        if scene is None:
            raise EntityNotFoundError("scene", scene_id)
        pp.scenes.remove(scene)
        if self.project.focused_element_id == scene_id:
            self.project.focused_element_id = pp.id
            self.project.current_zoom_level = ZoomLevel.PLOT_POINT_FOCUS
        self._commit()
        return scene

    # --- Characters ---

    def add_character(self, name: str, **fields) -> Character:
        character = Character(id=make_id("character"), name=name)
        _apply_changes(character, fields)
        self.project.characters.append(character)
        self._commit()
        return character

    def update_character(self, character_id: str, **changes) -> Character:
        character = self.project.find_character(character_id)
        if character is None:
            raise EntityNotFoundError("character", character_id)
        _apply_changes(character, changes)
        self._commit()
        return character

    def delete_character(self, character_id: str) -> None:
        """Remove a character and every scene reference to it."""
        project = self.project
        if project.find_character(character_id) is None:
            raise EntityNotFoundError("character", character_id)
        project.characters = [c for c in project.characters if c.id != character_id]
        for pp in project.plot_points:
            for scene in pp.scenes:
                if character_id in scene.character_ids:
                    scene.character_ids = [cid for cid in scene.character_ids if cid != character_id]
        if project.focused_element_id == character_id:
            project.focused_element_id = None
            project.current_zoom_level = ZoomLevel.STORY_OVERVIEW
        self._commit()
