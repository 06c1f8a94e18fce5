"""
Backend Factory for the story canvas.

Creates the appropriate storage backend from resolved settings.
Handles instantiating RestBackend (API server) or LocalBackend (JSON files).
"""

import logging
from typing import Optional, TYPE_CHECKING

from src.config import AppSettings, get_settings
from src.storage.local_backend import LocalBackend
from src.storage.rest_backend import RestBackend

if TYPE_CHECKING:
    from src.storage.protocol import StoryBackend

logger = logging.getLogger(__name__)

# Default backend type
DEFAULT_BACKEND = "local"

SUPPORTED_BACKENDS = ("rest", "local")


def get_backend_type(settings: Optional[AppSettings] = None) -> str:
    """
    Get the storage backend type.

    Returns:
        'rest' or 'local'
    """
    settings = settings or get_settings()
    backend_type = (settings.backend or DEFAULT_BACKEND).lower()
    if backend_type not in SUPPORTED_BACKENDS:
        logger.warning(f"Unknown storage backend {backend_type!r}, falling back to {DEFAULT_BACKEND}")
        return DEFAULT_BACKEND
    return backend_type


def create_backend(
    settings: Optional[AppSettings] = None,
    force_backend: Optional[str] = None,
    session=None
) -> "StoryBackend":
    """
    Create a storage backend instance.

    Args:
        settings: Resolved settings (defaults to get_settings())
        force_backend: Override the configured backend type
        session: Optional requests.Session for the REST backend

    Returns:
        StoryBackend instance (RestBackend or LocalBackend)
    """
    settings = settings or get_settings()
    backend_type = force_backend or get_backend_type(settings)

    if backend_type == "rest":
        if not settings.api_url:
            raise ValueError("REST backend requires STORY_API_URL (or api_url in config.json)")
        logger.info(f"Using REST backend at {settings.api_url}")
        return RestBackend(
            base_url=settings.api_url,
            token=settings.api_token,
            timeout=settings.request_timeout,
            session=session
        )

    logger.info(f"Using local backend in {settings.db_dir}")
    return LocalBackend(settings.db_dir)
