"""
Storage backend abstraction for the story canvas.

Supports multiple storage backends:
- RestBackend: the story API server (default when an API url is configured)
- LocalBackend: JSON documents on disk

LocalBackup keeps best-effort copies of loaded projects regardless of backend.
"""

from src.storage.protocol import StoryBackend
from src.storage.rest_backend import RestBackend
from src.storage.local_backend import LocalBackend
from src.storage.backup import LocalBackup
from src.storage.loader import load_project
from src.storage.factory import create_backend, get_backend_type

__all__ = [
    'StoryBackend',
    'RestBackend',
    'LocalBackend',
    'LocalBackup',
    'load_project',
    'create_backend',
    'get_backend_type',
]
