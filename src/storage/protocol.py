"""
StoryBackend Protocol Definition.

This module defines the persistence contract the sync pipeline talks to.
Both RestBackend (HTTP API) and LocalBackend (JSON files) conform to it.

All records are backend-shaped dicts (camelCase keys, server-issued ids).
Failures are raised as src.errors.BackendError; unknown ids raise
src.errors.NotFoundError.
"""

from typing import Protocol, Dict, Any, List, runtime_checkable


@runtime_checkable
class StoryBackend(Protocol):
    """
    Abstract protocol for story persistence backends.

    Entities are keyed project -> act -> plot point -> scene, and
    project -> character.
    """

    # --- Backend Information ---

    @property
    def backend_type(self) -> str:
        """Return the backend type identifier ('rest' or 'local')."""
        ...

    # --- Projects ---

    def list_projects(self) -> List[Dict[str, Any]]:
        """Return project records (without nested content)."""
        ...

    def get_project(self, project_id: str) -> Dict[str, Any]:
        """
        Load one project record.

        Returns:
            Dict with id, title, description, tags, status, currentActId,
            currentZoomLevel, focusedElementId, createdAt, updatedAt
        """
        ...

    def create_project(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a project and return its record with the issued id."""
        ...

    def update_project(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Patch project fields.

        Used both for the narrow UI-state update (currentActId,
        currentZoomLevel, focusedElementId) and for metadata.
        """
        ...

    def delete_project(self, project_id: str) -> None:
        ...

    # --- Acts ---

    def list_acts(self, project_id: str) -> List[Dict[str, Any]]:
        ...

    def create_act(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_act(self, project_id: str, act_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_act(self, project_id: str, act_id: str) -> None:
        """Delete an act and, server side, its plot points and scenes."""
        ...

    # --- Characters ---

    def list_characters(self, project_id: str) -> List[Dict[str, Any]]:
        ...

    def create_character(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_character(self, project_id: str, character_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_character(self, project_id: str, character_id: str) -> None:
        ...

    # --- Plot Points ---

    def list_plot_points(self, project_id: str, act_id: str) -> List[Dict[str, Any]]:
        """Return the act's plot points; each may carry nested 'scenes'."""
        ...

    def create_plot_point(self, project_id: str, act_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_plot_point(self, project_id: str, act_id: str, plot_point_id: str,
                          data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_plot_point(self, project_id: str, act_id: str, plot_point_id: str) -> None:
        ...

    # --- Scenes ---

    def list_scenes(self, project_id: str, plot_point_id: str) -> List[Dict[str, Any]]:
        ...

    def create_scene(self, project_id: str, plot_point_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_scene(self, project_id: str, plot_point_id: str, scene_id: str,
                     data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_scene(self, project_id: str, plot_point_id: str, scene_id: str) -> None:
        ...
