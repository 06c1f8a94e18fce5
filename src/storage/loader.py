"""
Assemble the full Project aggregate from a StoryBackend.

Acts, characters and per-act plot points are fetched sequentially. Scenes come
nested in the plot point records when the backend provides them, otherwise
they are listed per plot point.
"""

import logging
from typing import List

from src.conversion import (
    act_from_backend,
    character_from_backend,
    plot_point_from_backend,
    project_from_backend,
)
from src.errors import BackendError
from src.models import PlotPoint, Project
from src.storage.protocol import StoryBackend

logger = logging.getLogger(__name__)


def load_project(backend: StoryBackend, project_id: str) -> Project:
    """Fetch and convert one project. Raises BackendError if the project itself fails to load."""
    record = backend.get_project(project_id)
    acts = [act_from_backend(a) for a in backend.list_acts(project_id)]
    characters = [character_from_backend(c) for c in backend.list_characters(project_id)]

    plot_points: List[PlotPoint] = []
    for act in acts:
        try:
            records = backend.list_plot_points(project_id, act.id)
        except BackendError as e:
            logger.error(f"Failed to load plot points for act {act.id}: {e}")
            continue

        for pp in records:
            scenes = pp.get("scenes")
            if scenes is None:
                try:
                    scenes = backend.list_scenes(project_id, pp["id"])
                except BackendError as e:
                    logger.warning(f"Failed to load scenes for plot point {pp['id']}: {e}")
                    scenes = []
            plot_points.append(plot_point_from_backend(pp, scenes))

    project = project_from_backend(record, acts, plot_points, characters)
    logger.info(f"Loaded project {project.id}: {len(acts)} acts, {len(plot_points)} plot points")
    return project
