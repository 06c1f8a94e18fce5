"""
Local backup copies of projects.

A best-effort JSON snapshot of the full Project, keyed by project id and
refreshed on every mutation and on a fixed interval. Never the source of
truth once the backend is reachable, so write failures are logged, not raised.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from src.models import Project

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "writing-graph-project-"


class LocalBackup:
    """Stores {dir}/writing-graph-project-{id}.json files."""

    def __init__(self, backup_dir: Union[str, Path]):
        self.backup_dir = Path(backup_dir)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, project_id: str) -> Path:
        return self.backup_dir / f"{BACKUP_PREFIX}{project_id}.json"

    def save(self, project: Project) -> bool:
        path = self.path_for(project.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(project.to_dict(), f, indent=2, ensure_ascii=False)
            tmp_path.replace(path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Backup of project {project.id} failed: {e}")
            return False

    def load(self, project_id: str) -> Optional[Project]:
        path = self.path_for(project_id)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return Project.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Unreadable backup {path}: {e}")
            return None

    def delete(self, project_id: str) -> None:
        path = self.path_for(project_id)
        if path.exists():
            path.unlink()

    def list_ids(self) -> List[str]:
        return sorted(p.stem[len(BACKUP_PREFIX):] for p in self.backup_dir.glob(f"{BACKUP_PREFIX}*.json"))
