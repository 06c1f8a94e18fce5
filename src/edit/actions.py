"""
Edit Actions Module for the story canvas.

Executes the edits the property panel and context menu ask for:
- the temp plot point lifecycle (edit in place, add scenes, save,
  auto-promote, discard)
- node deletion, with an undo snapshot taken first
- scene creation, which also expands the owning plot point

Temp plot points live only in InteractionState.temp_entity until they are
saved or promoted; only then do they enter Project.plot_points.
"""

import logging
from dataclasses import replace
from typing import Optional

from src.errors import EntityNotFoundError
from src.models import PlotPoint, Scene, Setting, is_temp_id, make_id
from src.projection import NodeKind
from src.store import ProjectStore
from src.undo import UndoManager
from src.edit.controller import InteractionState

logger = logging.getLogger(__name__)


class EditActions:
    """
    Handles execution of canvas edits.

    Each method mutates either the temp entity or the store; the store emits
    the change events that drive backup and sync.
    """

    def __init__(self, state: InteractionState, store: ProjectStore, undo: UndoManager):
        self.state = state
        self.store = store
        self.undo = undo

    # --- Temp entity ---

    @property
    def temp(self) -> Optional[PlotPoint]:
        return self.state.temp_entity

    def _require_temp(self, temp_id: Optional[str] = None) -> PlotPoint:
        temp = self.state.temp_entity
        if temp is None or (temp_id is not None and temp.id != temp_id):
            raise EntityNotFoundError("temp plot point", temp_id or "")
        return temp

    def update_temp(self, **changes) -> PlotPoint:
        temp = self._require_temp()
        for key, value in changes.items():
            if key == "id" or not hasattr(temp, key):
                raise ValueError(f"PlotPoint has no editable field {key!r}")
            setattr(temp, key, value)
        return temp

    def add_scene_to_temp(self) -> Scene:
        temp = self._require_temp()
        scene = Scene.new()
        temp.scenes.append(scene)
        self.state.expanded_id = temp.id
        return scene

    def save_temp(self) -> PlotPoint:
        """Give the temp plot point a permanent client id and add it to the project."""
        temp = self._require_temp()
        promoted = replace(temp, id=make_id("plot"))
        self.store.add_plot_point(plot_point=promoted)
        self.state.temp_entity = None
        self._rename(temp.id, promoted.id)
        logger.info(f"Saved temp plot point {temp.id} as {promoted.id}")
        return promoted

    def auto_promote(self) -> Optional[PlotPoint]:
        """Periodic promotion so an open panel never holds the only copy of an edit."""
        if self.state.temp_entity is None:
            return None
        return self.save_temp()

    def discard_temp(self) -> bool:
        temp = self.state.drop_temp()
        if temp is None:
            return False
        logger.debug(f"Discarded temp plot point {temp.id}")
        return True

    def _rename(self, old_id: str, new_id: str) -> None:
        if self.state.selected_id == old_id:
            self.state.selected_id = new_id
        if self.state.expanded_id == old_id:
            self.state.expanded_id = new_id

    # --- Plot points / scenes ---

    def update_plot_point(self, plot_point_id: str, **changes) -> PlotPoint:
        if is_temp_id(plot_point_id):
            self._require_temp(plot_point_id)
            return self.update_temp(**changes)
        return self.store.update_plot_point(plot_point_id, **changes)

    def add_scene(self, plot_point_id: str) -> Scene:
        """Add a scene and expand its plot point so the new scene is visible."""
        if is_temp_id(plot_point_id):
            self._require_temp(plot_point_id)
            return self.add_scene_to_temp()
        scene = self.store.add_scene(plot_point_id)
        self.state.expanded_id = plot_point_id
        return scene

    def delete_plot_point(self, plot_point_id: str) -> bool:
        if is_temp_id(plot_point_id):
            return self.discard_temp()
        self.undo.snapshot(self.store.project, self.state.expanded_id)
        self.store.delete_plot_point(plot_point_id)
        if self.state.expanded_id == plot_point_id:
            self.state.expanded_id = None
        if self.state.selected_id == plot_point_id:
            self.state.selected_id = None
        return True

    def delete_scene(self, scene_id: str) -> bool:
        temp = self.state.temp_entity
        if temp is not None and any(s.id == scene_id for s in temp.scenes):
            temp.scenes = [s for s in temp.scenes if s.id != scene_id]
            return True

        self.undo.snapshot(self.store.project, self.state.expanded_id)
        self.store.delete_scene(scene_id)
        if self.state.selected_id == scene_id:
            self.state.selected_id = None
        return True

    def delete_node(self, kind: NodeKind, entity_id: str, parent_id: Optional[str] = None) -> bool:
        """
        Delete whatever a canvas node stands for.

        Detail nodes only detach from their scene (parent_id): characters are
        project-wide, settings and items are scene-local.
        """
        if kind == NodeKind.PLOT_POINT:
            return self.delete_plot_point(entity_id)
        if kind == NodeKind.SCENE:
            return self.delete_scene(entity_id)

        if parent_id is None:
            raise ValueError(f"Deleting a {kind.value} node needs its scene id")
        _, scene = self.store.project.find_scene(parent_id)
        if scene is None:
            raise EntityNotFoundError("scene", parent_id)

        self.undo.snapshot(self.store.project, self.state.expanded_id)
        if kind == NodeKind.CHARACTER:
            self.store.update_scene(parent_id, character_ids=[c for c in scene.character_ids if c != entity_id])
        elif kind == NodeKind.ITEM:
            self.store.update_scene(parent_id, items=[i for i in scene.items if i.id != entity_id])
        else:
            self.store.update_scene(parent_id, setting=Setting(id="", name=""))
        return True
