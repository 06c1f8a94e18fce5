"""
Bounded undo history for destructive edits.

Callers take a snapshot before deleting a plot point or scene. A snapshot is
a deep copy of the project paired with the expanded plot point id, because
restoring the model without the expansion state shows stale scene visibility.

While a restore is in progress the is_restoring guard is raised so the normal
reactive re-projection stays out of the way; the restore re-projects manually
and the guard drops after a short settle delay.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional

from src.models import Project

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10
SETTLE_DELAY = 0.1


@dataclass(frozen=True)
class UndoSnapshot:
    project: Project
    expanded_id: Optional[str] = None


class UndoManager:

    def __init__(self, capacity: int = DEFAULT_CAPACITY, settle_delay: float = SETTLE_DELAY):
        self.capacity = capacity
        self.settle_delay = settle_delay
        self._history: Deque[UndoSnapshot] = deque(maxlen=capacity)
        self._restoring = False
        self._release_task: Optional[asyncio.Task] = None

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @property
    def depth(self) -> int:
        return len(self._history)

    @property
    def is_restoring(self) -> bool:
        return self._restoring

    def snapshots(self) -> List[UndoSnapshot]:
        """Oldest first."""
        return list(self._history)

    def snapshot(self, project: Project, expanded_id: Optional[str] = None) -> None:
        """Record the state before a destructive edit; the oldest entry drops past capacity."""
        self._history.append(UndoSnapshot(project.deep_copy(), expanded_id))
        logger.debug(f"Undo snapshot taken ({len(self._history)}/{self.capacity})")

    def clear(self) -> None:
        self._history.clear()

    def remap_ids(self, id_map: Dict[str, str]) -> None:
        """Point stored snapshots at server-issued ids after a content sync."""
        if not id_map:
            return
        remapped = []
        for entry in self._history:
            entry.project.remap_ids(id_map)
            remapped.append(UndoSnapshot(entry.project, id_map.get(entry.expanded_id, entry.expanded_id)))
        self._history = deque(remapped, maxlen=self.capacity)

    def restore(self,
                apply: Callable[[Project, Optional[str]], None],
                reproject: Callable[[], None]) -> bool:
        """
        Pop the latest snapshot and hand it to apply(project, expanded_id),
        then call reproject() while the guard is still up.

        Returns False (and does nothing) when the history is empty.
        """
        if not self._history:
            return False

        entry = self._history.pop()
        self._restoring = True
        try:
            apply(entry.project, entry.expanded_id)
            reproject()
        except Exception:
            self._restoring = False
            raise

        self._schedule_release()
        logger.info(f"Undo restored project {entry.project.id} ({len(self._history)} left)")
        return True

    def _schedule_release(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._restoring = False
            return

        if self._release_task and not self._release_task.done():
            self._release_task.cancel()

        async def release():
            await asyncio.sleep(self.settle_delay)
            self._restoring = False

        self._release_task = asyncio.create_task(release())
