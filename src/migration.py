"""
Migration of legacy single-project documents.

Older builds kept exactly one project in campfire-project.json, without a
project id, tags or status. On startup that document is converted into a
regular project backup and the legacy file is removed.
"""

import json
import logging
import time
from typing import Dict, Any, Optional

from src.models import (
    Act,
    Character,
    PlotPoint,
    Project,
    ZoomLevel,
    now_iso,
)
from src.storage.backup import LocalBackup

logger = logging.getLogger(__name__)

LEGACY_FILENAME = "campfire-project.json"
LEGACY_TITLE = "Migrated Project"


def _default_acts():
    return [Act(id="act-1", name="Act 1", order=1, description="Beginning of the story")]


def migrate_legacy_project(data: Dict[str, Any]) -> Project:
    """Convert a legacy project document into a Project."""
    acts = [Act.from_dict(a) for a in data.get("acts") or []] or _default_acts()
    current_act_id = data.get("currentActId") or "act-1"
    if not any(a.id == current_act_id for a in acts):
        current_act_id = acts[0].id

    stamp = data.get("lastModified") or now_iso()
    return Project(
        id=f"migrated-project-{int(time.time() * 1000)}",
        title=data.get("title") or LEGACY_TITLE,
        description="",
        tags=[],
        status="in-progress",
        acts=acts,
        current_act_id=current_act_id,
        characters=[Character.from_dict(c) for c in data.get("characters") or []],
        plot_points=[PlotPoint.from_dict(pp) for pp in data.get("plotPoints") or []],
        current_zoom_level=ZoomLevel.parse(data.get("currentZoomLevel")),
        focused_element_id=data.get("focusedElementId"),
        created_date=stamp,
        last_modified=stamp,
    )


def migrate_legacy_backups(backup: LocalBackup) -> Optional[Project]:
    """
    Convert a legacy document found in the backup directory.

    Returns the migrated project, or None when there was nothing to migrate
    or the legacy file could not be read (it is left in place then).
    """
    legacy_path = backup.backup_dir / LEGACY_FILENAME
    if not legacy_path.exists():
        return None

    try:
        with open(legacy_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        project = migrate_legacy_project(data)
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Error migrating legacy project {legacy_path}: {e}")
        return None

    if not backup.save(project):
        return None
    legacy_path.unlink()
    logger.info(f"Migrated legacy project to {project.id}")
    return project
