"""
StoryWorkspace: everything that lives while one project is open.

Created when a project is opened and torn down (close) on project switch.
It owns the store, zoom machine, undo history, interaction state and the
save/sync manager, and routes every store change to backup, sync and
re-projection.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from nicegui import run

from src.config import AUTOSAVE_DELAY, LIGHTWEIGHT_SYNC_DELAY, UNDO_CAPACITY, AppSettings
from src.conversion import project_metadata_payload
from src.edit.actions import EditActions
from src.edit.controller import CanvasEffect, InteractionController, InteractionState
from src.edit.shortcuts import Shortcut
from src.errors import BackendError, EntityNotFoundError
from src.layout import LayoutEngine
from src.models import Project, ZoomLevel
from src.projection import GraphProjection, ProjectionDiff, diff_projections, project_graph
from src.storage.backup import LocalBackup
from src.storage.loader import load_project
from src.storage.protocol import StoryBackend
from src.store import ProjectStore
from src.sync import SaveSyncManager
from src.templates import new_project
from src.undo import UndoManager
from src.zoom import ZoomState, ZoomStateMachine

logger = logging.getLogger(__name__)

RenderCallback = Callable[[GraphProjection, ProjectionDiff], None]


class StoryWorkspace:
    """
    Lifecycle-scoped wiring of one open project.

    Usage:
        workspace = StoryWorkspace(backend, backup, settings)
        await workspace.open(project_id)
        workspace.handle_click(node_id)
        ...
        await workspace.close()
    """

    def __init__(
        self,
        backend: StoryBackend,
        backup: Optional[LocalBackup] = None,
        settings: Optional[AppSettings] = None,
        layout: Optional[LayoutEngine] = None,
        io_bound: Optional[Callable[..., Awaitable[Any]]] = None,
        undo_capacity: int = UNDO_CAPACITY,
    ):
        self.backend = backend
        self.backup = backup
        self.layout = layout or LayoutEngine()

        self.store = ProjectStore(self.layout)
        self.zoom = ZoomStateMachine()
        self.undo_manager = UndoManager(capacity=undo_capacity)
        self.state = InteractionState()
        self.controller = InteractionController(self.state, self.zoom)
        self.actions = EditActions(self.state, self.store, self.undo_manager)

        self.sync = SaveSyncManager(
            backend,
            autosave_delay=settings.autosave_delay if settings else AUTOSAVE_DELAY,
            lightweight_delay=settings.lightweight_sync_delay if settings else LIGHTWEIGHT_SYNC_DELAY,
            io_bound=io_bound,
        )
        self._io_bound = io_bound or run.io_bound

        self._render: Optional[RenderCallback] = None
        self._rendered: Optional[GraphProjection] = None
        self._plot_point_count = 0

        self.store.on('change', self._on_change)
        self.sync.on('ids_remapped', self._on_ids_remapped)
        self.sync.on('project_replaced', self._on_project_replaced)

    @property
    def project(self) -> Project:
        return self.store.project

    def set_render_callback(self, callback: Optional[RenderCallback]) -> None:
        self._render = callback

    # --- Lifecycle ---

    async def open(self, project_id: str) -> Project:
        """Load a project from the backend, falling back to the local backup."""
        saved = True
        try:
            project = await self._io_bound(load_project, self.backend, project_id)
        except BackendError as e:
            project = self.backup.load(project_id) if self.backup else None
            if project is None:
                raise
            logger.warning(f"Backend unavailable for {project_id} ({e}); opened local backup")
            saved = False
        self.attach(project, saved=saved)
        return project

    async def start_new(self, title: str, template: Optional[str] = None) -> Project:
        """Create a project on the backend; its acts follow with the first content sync."""
        project = new_project(title, template)
        record = await self._io_bound(self.backend.create_project, project_metadata_payload(project))
        project.id = record["id"]
        self.attach(project, saved=False)
        return project

    def attach(self, project: Project, saved: bool = True) -> None:
        """
        Make project the open project.

        saved=False means the backend does not hold this state yet, so the
        whole project is sent with an immediate content sync.
        """
        self.sync.set_baseline(project if saved else None)

        # Stale focus would ask the projection for nodes that may not exist
        project.current_zoom_level = ZoomLevel.STORY_OVERVIEW
        project.focused_element_id = None
        self.zoom.reset()
        self.state.selected_id = None
        self.state.expanded_id = None
        self.state.temp_entity = None
        self.state.context_target = None
        self.undo_manager.clear()
        self._rendered = None

        moved = self.layout.repair_overlaps(project)
        self._plot_point_count = len(project.plot_points)
        self.store.load(project)
        if self.backup:
            self.backup.save(project)

        if moved or not saved:
            if moved:
                logger.info(f"Repaired {moved} overlapping positions in {project.id}")
            self.commit(immediate=not saved)
        self.reproject()

    async def close(self) -> None:
        """Promote any temp plot point, push pending saves and drop the project."""
        if not self.store.is_loaded:
            return
        self.actions.auto_promote()
        await self.sync.flush_pending()
        project_id = self.project.id
        self.undo_manager.clear()
        self.zoom.reset()
        self.store.reset()
        self._rendered = None
        logger.info(f"Closed project {project_id}")

    # --- Persistence ---

    def commit(self, project: Optional[Project] = None, immediate: bool = False) -> None:
        """Back up the project and queue it for sync."""
        project = project or self.project
        if self.backup:
            self.backup.save(project)
        self.sync.queue_save(project, immediate=immediate)

    def _on_change(self, project: Project) -> None:
        # Deleting the focused element moves the project's zoom; follow it
        if self.zoom.state != ZoomState(project.current_zoom_level, project.focused_element_id):
            self.zoom.load_from(project)
        self.repair_if_needed()
        self.commit(project)
        if not self.undo_manager.is_restoring:
            self.reproject()

    def repair_if_needed(self) -> int:
        """Run overlap repair only when the plot point count changed."""
        project = self.project
        count = len(project.plot_points)
        if count == self._plot_point_count:
            return 0
        self._plot_point_count = count
        return self.layout.repair_overlaps(project)

    def tick_autosave(self) -> None:
        """Periodic backup and temp promotion."""
        if not self.store.is_loaded:
            return
        if self.backup:
            self.backup.save(self.project)
        promoted = self.actions.auto_promote()
        if promoted:
            logger.info(f"Auto-promoted temp plot point to {promoted.id}")

    def _on_ids_remapped(self, id_map: Dict[str, str]) -> None:
        if not self.store.is_loaded:
            return
        self.project.remap_ids(id_map)
        for attr in ("selected_id", "expanded_id"):
            value = getattr(self.state, attr)
            if value in id_map:
                setattr(self.state, attr, id_map[value])
        temp = self.state.temp_entity
        if temp is not None and temp.act_id in id_map:
            temp.act_id = id_map[temp.act_id]
        self.zoom.load_from(self.project)
        self.undo_manager.remap_ids(id_map)

    def _on_project_replaced(self, canonical: Project) -> None:
        if not self.store.is_loaded or canonical.id != self.project.id:
            return
        self.store.replace(canonical)
        self.zoom.load_from(canonical)
        self._plot_point_count = len(canonical.plot_points)
        if self.backup:
            self.backup.save(canonical)
        self.reproject()

    # --- Rendering ---

    def projection(self) -> GraphProjection:
        return project_graph(
            self.project,
            zoom_level=self.zoom.level,
            expanded_id=self.state.expanded_id,
            temp_entity=self.state.temp_entity,
            config=self.layout.config,
        )

    def reproject(self) -> ProjectionDiff:
        projection = self.projection()
        diff = diff_projections(self._rendered, projection)
        self._rendered = projection
        if self._render is not None:
            self._render(projection, diff)
        return diff

    # --- Undo ---

    def undo(self) -> bool:
        """Restore the latest snapshot; a no-op when the history is empty."""

        def apply(project: Project, expanded_id: Optional[str]) -> None:
            self.store.replace(project)
            self.state.expanded_id = expanded_id
            self.state.selected_id = None
            self.state.context_target = None
            self.zoom.load_from(project)
            self._plot_point_count = len(project.plot_points)

        if not self.undo_manager.restore(apply, self.reproject):
            return False
        self.commit()
        return True

    # --- Interaction ---

    def apply_effect(self, effect: CanvasEffect) -> CanvasEffect:
        if effect.zoom_changed:
            # The store change re-projects
            self.store.set_zoom(self.zoom.level, self.zoom.focused_element_id)
        elif effect.reproject:
            self.reproject()
        return effect

    def _node(self, node_id: str):
        node = self.projection().find(node_id)
        if node is None:
            raise EntityNotFoundError("node", node_id)
        return node

    def handle_click(self, node_id: str) -> CanvasEffect:
        return self.apply_effect(self.controller.click(self._node(node_id)))

    def handle_double_click(self, node_id: str) -> CanvasEffect:
        return self.apply_effect(self.controller.double_click(self._node(node_id)))

    def handle_canvas_click(self, x: float, y: float) -> CanvasEffect:
        return self.apply_effect(self.controller.click_canvas(x, y, self.project.current_act_id))

    def handle_right_click(self, node_id: str, x: float, y: float) -> CanvasEffect:
        return self.apply_effect(self.controller.right_click(node_id, x, y))

    def handle_shortcut(self, shortcut: Shortcut) -> bool:
        if shortcut.action == 'undo':
            return self.undo()
        if shortcut.action == 'switch_act':
            return self.switch_act_by_order(shortcut.act_order)
        return False

    # --- Navigation ---

    def set_zoom_level(self, level: ZoomLevel) -> bool:
        if not self.zoom.set_level(level):
            return False
        self.store.set_zoom(self.zoom.level, self.zoom.focused_element_id)
        return True

    def switch_act(self, act_id: str) -> None:
        if act_id == self.project.current_act_id:
            return
        self.controller.clear_selection()
        self.state.expanded_id = None
        self.zoom.reset()
        self.project.current_zoom_level = ZoomLevel.STORY_OVERVIEW
        self.project.focused_element_id = None
        self.store.set_current_act(act_id)

    def switch_act_by_order(self, order: int) -> bool:
        act = self.project.act_by_order(order)
        if act is None:
            logger.debug(f"No act with order {order}")
            return False
        self.switch_act(act.id)
        return True

    def navigate_to(self, kind: str, element_id: str) -> bool:
        """Search navigation: show the owning act, then zoom to the element."""
        project = self.project
        if kind == "plot-point":
            pp = project.find_plot_point(element_id)
            act_id = pp.act_id if pp else None
        elif kind == "scene":
            pp, _ = project.find_scene(element_id)
            act_id = pp.act_id if pp else None
        elif kind == "character":
            act_id = project.current_act_id if project.find_character(element_id) else None
        else:
            raise ValueError(f"Cannot navigate to a {kind}")
        if act_id is None:
            raise EntityNotFoundError(kind, element_id)

        self.switch_act(act_id)
        if not self.zoom.navigate_to(kind, element_id):
            return False
        self.store.set_zoom(self.zoom.level, self.zoom.focused_element_id)
        return True
