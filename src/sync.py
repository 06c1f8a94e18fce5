"""
Save/sync pipeline between the local Project and the backend.

Each mutation hands a snapshot to SaveSyncManager.queue_save(). The queue
holds only the latest snapshot: a newer one replaces the older entry and
restarts the debounce timer, so intermediate states under rapid edits are
dropped (last write wins). Flushes are serialized by a busy flag; a flush
requested while another runs is merged into one follow-up flush.

A flush classifies the snapshot against the last saved baseline:
- LIGHTWEIGHT: only currentZoomLevel / focusedElementId / currentActId moved,
  sent with one narrow project update
- CONTENT: anything structural changed, reconciled entity by entity in the
  order acts -> characters -> plot points -> scenes, then the canonical
  project is re-fetched so server-issued ids replace client-side ones
- NONE: nothing to send

Blocking backend calls run through nicegui's run.io_bound.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from nicegui import run

from src.config import AUTOSAVE_DELAY, LIGHTWEIGHT_SYNC_DELAY
from src.conversion import (
    act_payload,
    character_payload,
    lightweight_payload,
    plot_point_payload,
    project_metadata_payload,
    scene_payload,
)
from src.errors import BackendError
from src.layout import LayoutConfig
from src.models import (
    PlotPoint,
    Project,
    is_unsaved_plot_point_id,
    is_unsaved_scene_id,
)
from src.projection import scene_anchors
from src.storage.loader import load_project
from src.storage.protocol import StoryBackend

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    NONE = "none"
    LIGHTWEIGHT = "lightweight"
    CONTENT = "content"


LIGHTWEIGHT_KEYS = ("currentZoomLevel", "focusedElementId", "currentActId")
CONTENT_KEYS = ("title", "description", "tags", "status", "acts", "characters", "plotPoints")


def detect_changes(baseline: Optional[Project], project: Project) -> ChangeType:
    """Classify project against the last saved baseline. No baseline means CONTENT."""
    if baseline is None:
        return ChangeType.CONTENT

    old, new = baseline.to_dict(), project.to_dict()
    for key in CONTENT_KEYS:
        if json.dumps(old.get(key), sort_keys=True) != json.dumps(new.get(key), sort_keys=True):
            return ChangeType.CONTENT
    if any(old.get(key) != new.get(key) for key in LIGHTWEIGHT_KEYS):
        return ChangeType.LIGHTWEIGHT
    return ChangeType.NONE


@dataclass
class SaveState:
    """Tracks the save state of the workspace."""
    is_busy: bool = False
    has_pending: bool = False
    last_saved_at: Optional[float] = None
    last_change_type: Optional[ChangeType] = None
    error_count: int = 0


class SaveSyncManager:
    """
    Debounced, serialized save queue for one project.

    Events:
    - 'saved': a flush succeeded (data: {'change_type', 'project_id'})
    - 'project_replaced': canonical project fetched after a content sync
    - 'ids_remapped': client id -> server id mapping produced by a content sync
    - 'error': a flush failed (data: {'message'})
    - 'state_change': SaveState changed (data: SaveState)
    """

    def __init__(
        self,
        backend: StoryBackend,
        autosave_delay: float = AUTOSAVE_DELAY,
        lightweight_delay: float = LIGHTWEIGHT_SYNC_DELAY,
        io_bound: Optional[Callable[..., Awaitable[Any]]] = None
    ):
        """
        Initialize SaveSyncManager.

        Args:
            backend: StoryBackend receiving the writes
            autosave_delay: Debounce for content changes, in seconds
            lightweight_delay: Debounce for UI-state only changes
            io_bound: Coroutine runner for blocking calls (defaults to run.io_bound)
        """
        self._backend = backend
        self._autosave_delay = autosave_delay
        self._lightweight_delay = lightweight_delay
        self._io_bound = io_bound or run.io_bound
        self._scene_radius = LayoutConfig.scene_radius

        self._state = SaveState()
        self._callbacks: Dict[str, List[Callable]] = {
            'saved': [],
            'project_replaced': [],
            'ids_remapped': [],
            'error': [],
            'state_change': [],
        }

        self._baseline: Optional[Project] = None
        self._queue: Optional[Project] = None
        self._queue_version = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._follow_up = False

    # --- State ---

    @property
    def state(self) -> SaveState:
        return self._state

    @property
    def pending(self) -> Optional[Project]:
        return self._queue

    @property
    def baseline(self) -> Optional[Project]:
        return self._baseline

    def set_baseline(self, project: Optional[Project]) -> None:
        """Mark project as what the backend currently holds."""
        self._baseline = project.deep_copy() if project else None

    # --- Events ---

    def on(self, event: str, callback: Callable) -> None:
        """
        Register a callback for an event type.

        Event types: 'saved', 'project_replaced', 'ids_remapped', 'error',
        'state_change'.
        """
        if event in self._callbacks:
            self._callbacks[event].append(callback)

    def off(self, event: str, callback: Callable) -> None:
        """Remove a callback for an event type."""
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)

    def _emit(self, event: str, data: Any = None) -> None:
        """Emit an event to all registered callbacks."""
        for callback in self._callbacks.get(event, []):
            try:
                result = callback(data)
                # Handle async callbacks
                if asyncio.iscoroutine(result):
                    asyncio.create_task(result)
            except Exception as e:
                logger.error(f"Error in callback for {event}: {e}")

    def _update_state(self, **changes) -> None:
        for key, value in changes.items():
            setattr(self._state, key, value)
        self._state.has_pending = self._queue is not None
        self._emit('state_change', self._state)

    # --- Queue ---

    def queue_save(self, project: Project, immediate: bool = False) -> asyncio.Task:
        """
        Replace the pending snapshot with project and (re)schedule a flush.

        Must be called from the event loop. Returns the scheduled task.
        """
        self._queue = project.deep_copy()
        self._queue_version += 1
        self.cancel()

        if immediate:
            delay = 0.0
        elif detect_changes(self._baseline, self._queue) == ChangeType.LIGHTWEIGHT:
            delay = self._lightweight_delay
        else:
            delay = self._autosave_delay

        async def flush_later():
            if delay > 0:
                await asyncio.sleep(delay)
            # Past the debounce: a later cancel() must not abort the running flush
            if self._debounce_task is asyncio.current_task():
                self._debounce_task = None
            await self.flush()

        self._debounce_task = asyncio.create_task(flush_later())
        self._update_state()
        return self._debounce_task

    def cancel(self) -> None:
        """Drop the scheduled flush; the queued snapshot stays."""
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    async def flush_pending(self) -> None:
        """Flush whatever is queued right now (used when the workspace closes)."""
        self.cancel()
        while self._state.is_busy:
            await asyncio.sleep(0.05)
        if self._queue is not None:
            logger.info("Flushing pending save before close")
            await self.flush()

    async def flush(self) -> None:
        """Save the queued snapshot. A call made while a flush runs triggers one follow-up flush."""
        if self._state.is_busy:
            self._follow_up = True
            return
        if self._queue is None:
            return

        project = self._queue
        version = self._queue_version
        self._update_state(is_busy=True)

        try:
            change = detect_changes(self._baseline, project)
            id_map: Dict[str, str] = {}
            canonical: Optional[Project] = None

            if change == ChangeType.LIGHTWEIGHT:
                await self.lightweight_sync(project)
            elif change == ChangeType.CONTENT:
                canonical, id_map = await self.sync_content(project)

            superseded = self._queue_version != version
            if canonical is not None:
                self._baseline = canonical.deep_copy()
            elif change != ChangeType.NONE:
                self._baseline = project.deep_copy()

            if superseded:
                # A newer snapshot arrived mid-flight: keep it, with server ids applied
                self._queue.remap_ids(id_map)
            else:
                self._queue = None

            if id_map:
                self._emit('ids_remapped', dict(id_map))
            if canonical is not None and not superseded:
                self._emit('project_replaced', canonical)

            if change != ChangeType.NONE:
                logger.info(f"Saved project {project.id} ({change.value})")
                self._emit('saved', {'change_type': change, 'project_id': project.id})
            self._update_state(last_saved_at=time.time(), last_change_type=change)

        except Exception as e:
            logger.error(f"Failed to save project {project.id}: {e}")
            self._update_state(error_count=self._state.error_count + 1)
            self._emit('error', {'message': str(e)})
        finally:
            self._update_state(is_busy=False)

        if self._follow_up:
            self._follow_up = False
            await self.flush()

    # --- Backend calls ---

    async def _call(self, fn: Callable, *args) -> Any:
        return await self._io_bound(fn, *args)

    async def lightweight_sync(self, project: Project) -> None:
        await self._call(self._backend.update_project, project.id, lightweight_payload(project))
        logger.debug(f"Lightweight sync of {project.id} completed")

    async def sync_content(self, project: Project):
        """
        Reconcile every entity of project with the backend.

        Returns (canonical project, client id -> server id map). Per-entity
        failures are logged and skipped; failing list calls abort the pass.
        """
        id_map: Dict[str, str] = {}
        await self._sync_acts(project, id_map)

        metadata = project_metadata_payload(project)
        metadata["currentActId"] = id_map.get(project.current_act_id, project.current_act_id)
        await self._call(self._backend.update_project, project.id, metadata)

        await self._sync_characters(project, id_map)
        await self._sync_plot_points(project, id_map)

        canonical = await self._call(load_project, self._backend, project.id)
        # View state is local; keep it, pointing at server ids
        canonical.current_zoom_level = project.current_zoom_level
        canonical.focused_element_id = id_map.get(project.focused_element_id, project.focused_element_id)
        current_act = id_map.get(project.current_act_id, project.current_act_id)
        if canonical.find_act(current_act) is not None:
            canonical.current_act_id = current_act
        logger.info(f"Content sync of {project.id} done, {len(id_map)} ids remapped")
        return canonical, id_map

    async def _sync_acts(self, project: Project, id_map: Dict[str, str]) -> None:
        remote = await self._call(self._backend.list_acts, project.id)
        remote_ids = {a["id"] for a in remote}
        local_ids = {a.id for a in project.acts}

        for act in project.acts:
            payload = act_payload(act)
            try:
                if act.id in remote_ids:
                    await self._call(self._backend.update_act, project.id, act.id, payload)
                else:
                    created = await self._call(self._backend.create_act, project.id, payload)
                    id_map[act.id] = created["id"]
            except BackendError as e:
                logger.error(f"Failed to sync act {act.id} ({act.name}): {e}")

        for act_id in remote_ids - local_ids:
            try:
                await self._call(self._backend.delete_act, project.id, act_id)
            except BackendError as e:
                logger.error(f"Failed to delete act {act_id}: {e}")

    async def _sync_characters(self, project: Project, id_map: Dict[str, str]) -> None:
        remote = await self._call(self._backend.list_characters, project.id)
        remote_ids = {c["id"] for c in remote}
        local_ids = {c.id for c in project.characters}

        for character in project.characters:
            payload = character_payload(character)
            try:
                if character.id in remote_ids:
                    await self._call(self._backend.update_character, project.id, character.id, payload)
                else:
                    created = await self._call(self._backend.create_character, project.id, payload)
                    id_map[character.id] = created["id"]
            except BackendError as e:
                logger.error(f"Failed to sync character {character.id} ({character.name}): {e}")

        for character_id in remote_ids - local_ids:
            try:
                await self._call(self._backend.delete_character, project.id, character_id)
            except BackendError as e:
                logger.error(f"Failed to delete character {character_id}: {e}")

    async def _sync_plot_points(self, project: Project, id_map: Dict[str, str]) -> None:
        # Remote plot points per (server) act, for deletion of locally removed ones
        remote_acts: Dict[str, str] = {}
        for act in project.acts:
            act_id = id_map.get(act.id, act.id)
            try:
                for record in await self._call(self._backend.list_plot_points, project.id, act_id):
                    remote_acts[record["id"]] = act_id
            except BackendError as e:
                logger.warning(f"Could not list plot points of act {act_id}: {e}")

        local_ids: Set[str] = set()
        for pp in project.plot_points:
            act_id = id_map.get(pp.act_id, pp.act_id)
            payload = plot_point_payload(pp)
            payload["actId"] = act_id
            local_ids.add(pp.id)

            server_id = await self._upsert_plot_point(project.id, act_id, pp, payload)
            if server_id is None:
                continue
            if server_id != pp.id:
                id_map[pp.id] = server_id
            await self._sync_scenes(project, pp, server_id, id_map)

        for pp_id, act_id in remote_acts.items():
            if pp_id in local_ids:
                continue
            try:
                await self._call(self._backend.delete_plot_point, project.id, act_id, pp_id)
                logger.info(f"Deleted remote plot point {pp_id}")
            except BackendError as e:
                logger.error(f"Failed to delete plot point {pp_id}: {e}")

    async def _upsert_plot_point(self, project_id: str, act_id: str, pp: PlotPoint,
                                 payload: Dict[str, Any]) -> Optional[str]:
        """Update, falling back to create when the backend does not know the id."""
        if not is_unsaved_plot_point_id(pp.id):
            try:
                await self._call(self._backend.update_plot_point, project_id, act_id, pp.id, payload)
                return pp.id
            except BackendError as e:
                logger.warning(f"Update of plot point {pp.id} failed ({e}); creating it")
        try:
            created = await self._call(self._backend.create_plot_point, project_id, act_id, payload)
            return created["id"]
        except BackendError as e:
            logger.error(f"Failed to create plot point {pp.id} ({pp.title}): {e}")
            return None

    async def _sync_scenes(self, project: Project, pp: PlotPoint, server_pp_id: str,
                           id_map: Dict[str, str]) -> None:
        try:
            remote = await self._call(self._backend.list_scenes, project.id, server_pp_id)
        except BackendError as e:
            logger.warning(f"Failed to fetch scenes of plot point {server_pp_id}: {e}")
            remote = []

        local_ids = {s.id for s in pp.scenes}
        for record in remote:
            if record["id"] in local_ids:
                continue
            try:
                await self._call(self._backend.delete_scene, project.id, server_pp_id, record["id"])
                logger.info(f"Deleted remote scene {record['id']}")
            except BackendError as e:
                logger.error(f"Failed to delete scene {record['id']}: {e}")

        anchors = scene_anchors(pp, self._scene_radius)
        for scene, position in zip(pp.scenes, anchors):
            payload = scene_payload(scene, server_pp_id, position)
            payload["characterIds"] = [id_map.get(cid, cid) for cid in scene.character_ids]

            if not is_unsaved_scene_id(scene.id):
                try:
                    await self._call(self._backend.update_scene, project.id, server_pp_id, scene.id, payload)
                    continue
                except BackendError as e:
                    logger.warning(f"Update of scene {scene.id} failed ({e}); creating it")
            try:
                created = await self._call(self._backend.create_scene, project.id, server_pp_id, payload)
                id_map[scene.id] = created["id"]
            except BackendError as e:
                logger.error(f"Failed to create scene {scene.id} ({scene.title}): {e}")
