"""
REST Storage Backend.

Implements the StoryBackend protocol against the story API server.

Endpoints:
- /api/projects[/{projectId}]
- /api/projects/{projectId}/acts[/{actId}]
- /api/projects/{projectId}/acts/{actId}/plotpoints[/{plotPointId}]
- /api/projects/{projectId}/plotpoints/{plotPointId}/scenes[/{sceneId}]
- /api/projects/{projectId}/characters[/{characterId}]

Responses are wrapped in a single key ({"project": ...}, {"acts": [...]}).
"""

import logging
from typing import Dict, Any, List, Optional

import requests

from src.errors import BackendError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class RestBackend:
    """
    HTTP backend over a shared requests.Session.

    Features:
    - Bearer token authentication
    - Response unwrapping by entity key
    - Transport and HTTP errors mapped to BackendError / NotFoundError
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize RestBackend.

        Args:
            base_url: Server root, e.g. http://localhost:3001
            token: Optional bearer token
            timeout: Per-request timeout in seconds
            session: Optional pre-configured session (tests inject a mock)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if token:
            self._session.headers.update({"Authorization": f"Bearer {token}"})

    @property
    def backend_type(self) -> str:
        return "rest"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/api{path}"
        try:
            response = self._session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if response.status_code >= 400:
            detail = ""
            try:
                detail = response.json().get("error", "")
            except ValueError:
                detail = response.text[:200]
            raise BackendError(f"{method} {path} returned {response.status_code}: {detail}",
                               status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{method} {path}: invalid JSON response") from e

    def _get(self, path: str, key: str) -> Any:
        return self._request("GET", path).get(key)

    # --- Projects ---

    def list_projects(self) -> List[Dict[str, Any]]:
        return self._get("/projects", "projects") or []

    def get_project(self, project_id: str) -> Dict[str, Any]:
        return self._get(f"/projects/{project_id}", "project")

    def create_project(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/projects", data).get("project")

    def update_project(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", f"/projects/{project_id}", data).get("project")

    def delete_project(self, project_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}")

    # --- Acts ---

    def list_acts(self, project_id: str) -> List[Dict[str, Any]]:
        return self._get(f"/projects/{project_id}/acts", "acts") or []

    def create_act(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/projects/{project_id}/acts", data).get("act")

    def update_act(self, project_id: str, act_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/projects/{project_id}/acts/{act_id}", data).get("act")

    def delete_act(self, project_id: str, act_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}/acts/{act_id}")

    # --- Characters ---

    def list_characters(self, project_id: str) -> List[Dict[str, Any]]:
        return self._get(f"/projects/{project_id}/characters", "characters") or []

    def create_character(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/projects/{project_id}/characters", data).get("character")

    def update_character(self, project_id: str, character_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/projects/{project_id}/characters/{character_id}", data).get("character")

    def delete_character(self, project_id: str, character_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}/characters/{character_id}")

    # --- Plot Points ---

    def list_plot_points(self, project_id: str, act_id: str) -> List[Dict[str, Any]]:
        return self._get(f"/projects/{project_id}/acts/{act_id}/plotpoints", "plotpoints") or []

    def create_plot_point(self, project_id: str, act_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        path = f"/projects/{project_id}/acts/{act_id}/plotpoints"
        return self._request("POST", path, data).get("plotpoint")

    def update_plot_point(self, project_id: str, act_id: str, plot_point_id: str,
                          data: Dict[str, Any]) -> Dict[str, Any]:
        path = f"/projects/{project_id}/acts/{act_id}/plotpoints/{plot_point_id}"
        return self._request("PUT", path, data).get("plotpoint")

    def delete_plot_point(self, project_id: str, act_id: str, plot_point_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}/acts/{act_id}/plotpoints/{plot_point_id}")

    # --- Scenes ---

    def list_scenes(self, project_id: str, plot_point_id: str) -> List[Dict[str, Any]]:
        return self._get(f"/projects/{project_id}/plotpoints/{plot_point_id}/scenes", "scenes") or []

    def create_scene(self, project_id: str, plot_point_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        path = f"/projects/{project_id}/plotpoints/{plot_point_id}/scenes"
        return self._request("POST", path, data).get("scene")

    def update_scene(self, project_id: str, plot_point_id: str, scene_id: str,
                     data: Dict[str, Any]) -> Dict[str, Any]:
        path = f"/projects/{project_id}/plotpoints/{plot_point_id}/scenes/{scene_id}"
        return self._request("PUT", path, data).get("scene")

    def delete_scene(self, project_id: str, plot_point_id: str, scene_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}/plotpoints/{plot_point_id}/scenes/{scene_id}")
