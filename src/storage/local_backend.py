"""
Local file-based Storage Backend.

Implements the StoryBackend protocol with one JSON document per project.
Ids are issued here (uuid4), the same way a server would, so the sync
pipeline's temp-id remapping behaves identically against this backend.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Dict, Any, List, Union

from src.errors import NotFoundError
from src.models import now_iso

logger = logging.getLogger(__name__)


class LocalBackend:
    """
    Local JSON storage backend.

    Structure:
    - {root}/{project_id}.json: {"project": {...}, "acts": [...],
      "characters": [...], "plotpoints": [...], "scenes": [...]}

    Rows are flat; plot points carry actId and scenes carry plotPointId.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    # --- Backend Information ---

    @property
    def backend_type(self) -> str:
        return "local"

    # --- File I/O ---

    def _path(self, project_id: str) -> Path:
        return self.root / f"{project_id}.json"

    def _load(self, project_id: str) -> Dict[str, Any]:
        path = self._path(project_id)
        if not path.exists():
            raise NotFoundError(f"Project not found: {project_id}")
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save(self, project_id: str, doc: Dict[str, Any]) -> None:
        with open(self._path(project_id), "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, ensure_ascii=False)

    @staticmethod
    def _find(rows: List[Dict[str, Any]], row_id: str, kind: str) -> Dict[str, Any]:
        for row in rows:
            if row.get("id") == row_id:
                return row
        raise NotFoundError(f"{kind} not found: {row_id}")

    @staticmethod
    def _new_row(data: Dict[str, Any], **extra) -> Dict[str, Any]:
        now = now_iso()
        row = {k: v for k, v in data.items() if k != "id"}
        row.update(extra)
        row["id"] = str(uuid.uuid4())
        row["createdAt"] = now
        row["updatedAt"] = now
        return row

    @staticmethod
    def _patch(row: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in data.items():
            if key not in ("id", "createdAt"):
                row[key] = value
        row["updatedAt"] = now_iso()
        return row

    # --- Projects ---

    def list_projects(self) -> List[Dict[str, Any]]:
        projects = []
        for path in sorted(self.root.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    projects.append(json.load(f)["project"])
            except Exception as e:
                logger.warning(f"Failed to read project file {path}: {e}")
        return projects

    def get_project(self, project_id: str) -> Dict[str, Any]:
        return dict(self._load(project_id)["project"])

    def create_project(self, data: Dict[str, Any]) -> Dict[str, Any]:
        project = self._new_row(data)
        project.setdefault("status", "DRAFT")
        doc = {"project": project, "acts": [], "characters": [], "plotpoints": [], "scenes": []}
        self._save(project["id"], doc)
        logger.info(f"Created local project {project['id']} ({project.get('title')})")
        return dict(project)

    def update_project(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        self._patch(doc["project"], data)
        self._save(project_id, doc)
        return dict(doc["project"])

    def delete_project(self, project_id: str) -> None:
        path = self._path(project_id)
        if path.exists():
            path.unlink()

    # --- Acts ---

    def list_acts(self, project_id: str) -> List[Dict[str, Any]]:
        acts = self._load(project_id)["acts"]
        return sorted((dict(a) for a in acts), key=lambda a: a.get("order", 0))

    def create_act(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        act = self._new_row(data, projectId=project_id)
        doc["acts"].append(act)
        self._save(project_id, doc)
        return dict(act)

    def update_act(self, project_id: str, act_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        act = self._patch(self._find(doc["acts"], act_id, "Act"), data)
        self._save(project_id, doc)
        return dict(act)

    def delete_act(self, project_id: str, act_id: str) -> None:
        doc = self._load(project_id)
        self._find(doc["acts"], act_id, "Act")
        doomed = {pp["id"] for pp in doc["plotpoints"] if pp.get("actId") == act_id}
        doc["acts"] = [a for a in doc["acts"] if a["id"] != act_id]
        doc["plotpoints"] = [pp for pp in doc["plotpoints"] if pp["id"] not in doomed]
        doc["scenes"] = [s for s in doc["scenes"] if s.get("plotPointId") not in doomed]
        self._save(project_id, doc)

    # --- Characters ---

    def list_characters(self, project_id: str) -> List[Dict[str, Any]]:
        return [dict(c) for c in self._load(project_id)["characters"]]

    def create_character(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        character = self._new_row(data, projectId=project_id)
        doc["characters"].append(character)
        self._save(project_id, doc)
        return dict(character)

    def update_character(self, project_id: str, character_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        character = self._patch(self._find(doc["characters"], character_id, "Character"), data)
        self._save(project_id, doc)
        return dict(character)

    def delete_character(self, project_id: str, character_id: str) -> None:
        doc = self._load(project_id)
        self._find(doc["characters"], character_id, "Character")
        doc["characters"] = [c for c in doc["characters"] if c["id"] != character_id]
        for scene in doc["scenes"]:
            if character_id in scene.get("characterIds", []):
                scene["characterIds"] = [cid for cid in scene["characterIds"] if cid != character_id]
        self._save(project_id, doc)

    # --- Plot Points ---

    def list_plot_points(self, project_id: str, act_id: str) -> List[Dict[str, Any]]:
        doc = self._load(project_id)
        result = []
        for pp in doc["plotpoints"]:
            if pp.get("actId") != act_id:
                continue
            row = dict(pp)
            row["scenes"] = [dict(s) for s in doc["scenes"] if s.get("plotPointId") == pp["id"]]
            result.append(row)
        return result

    def create_plot_point(self, project_id: str, act_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        self._find(doc["acts"], act_id, "Act")
        plot_point = self._new_row(data, projectId=project_id, actId=act_id)
        doc["plotpoints"].append(plot_point)
        self._save(project_id, doc)
        return dict(plot_point)

    def update_plot_point(self, project_id: str, act_id: str, plot_point_id: str,
                          data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        plot_point = self._patch(self._find(doc["plotpoints"], plot_point_id, "Plot point"), data)
        self._save(project_id, doc)
        return dict(plot_point)

    def delete_plot_point(self, project_id: str, act_id: str, plot_point_id: str) -> None:
        doc = self._load(project_id)
        self._find(doc["plotpoints"], plot_point_id, "Plot point")
        doc["plotpoints"] = [pp for pp in doc["plotpoints"] if pp["id"] != plot_point_id]
        doc["scenes"] = [s for s in doc["scenes"] if s.get("plotPointId") != plot_point_id]
        self._save(project_id, doc)

    # --- Scenes ---

    def list_scenes(self, project_id: str, plot_point_id: str) -> List[Dict[str, Any]]:
        doc = self._load(project_id)
        self._find(doc["plotpoints"], plot_point_id, "Plot point")
        return [dict(s) for s in doc["scenes"] if s.get("plotPointId") == plot_point_id]

    def create_scene(self, project_id: str, plot_point_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        self._find(doc["plotpoints"], plot_point_id, "Plot point")
        scene = self._new_row(data, projectId=project_id, plotPointId=plot_point_id)
        doc["scenes"].append(scene)
        self._save(project_id, doc)
        return dict(scene)

    def update_scene(self, project_id: str, plot_point_id: str, scene_id: str,
                     data: Dict[str, Any]) -> Dict[str, Any]:
        doc = self._load(project_id)
        scene = self._patch(self._find(doc["scenes"], scene_id, "Scene"), data)
        scene["plotPointId"] = plot_point_id
        self._save(project_id, doc)
        return dict(scene)

    def delete_scene(self, project_id: str, plot_point_id: str, scene_id: str) -> None:
        doc = self._load(project_id)
        self._find(doc["scenes"], scene_id, "Scene")
        doc["scenes"] = [s for s in doc["scenes"] if s["id"] != scene_id]
        self._save(project_id, doc)
