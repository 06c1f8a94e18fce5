"""
Path utilities for the story canvas.

Handles path resolution for both development mode and frozen (PyInstaller) executables.
- In development: paths are relative to the project root
- When frozen: paths are relative to the executable location

External data (db/, backups/, config.json) lives NEXT TO the executable, not bundled inside.
"""

import sys
from pathlib import Path


def get_app_dir() -> Path:
    """
    Get the application directory.

    - In development: the project root (parent of src/)
    - When frozen: the directory containing the executable
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent.parent


def get_db_dir() -> Path:
    """Get the directory holding local-backend project documents."""
    return get_app_dir() / "db"


def get_backup_dir() -> Path:
    """Get the directory holding local backup copies of projects."""
    return get_app_dir() / "backups"


def get_config_path() -> Path:
    """Get the path to the config file (API url, token, timings)."""
    return get_app_dir() / "config.json"


def ensure_data_dirs() -> None:
    """Create db/ and backups/ if they are missing."""
    get_db_dir().mkdir(parents=True, exist_ok=True)
    get_backup_dir().mkdir(parents=True, exist_ok=True)
