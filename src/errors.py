"""
Exception types for the story canvas.

Backends raise BackendError (or NotFoundError) so the sync pipeline can
isolate per-entity failures without catching unrelated programming errors.
"""

from typing import Optional


class StoryError(Exception):
    """Base class for all story canvas errors."""


class ProjectNotLoadedError(StoryError):
    """Raised when an operation needs a project but none is loaded."""


class EntityNotFoundError(StoryError):
    """Raised when an act, plot point, scene or character id is unknown locally."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class InvariantViolation(StoryError):
    """Raised when a mutation would break a project invariant."""


class BackendError(StoryError):
    """A call to the persistence backend failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(BackendError):
    """The backend does not know the requested entity."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)
