"""
Configuration management for the story canvas.

Handles persistent configuration including:
- Which storage backend to use and where the API server lives
- Autosave and backup timings

Config is stored in config.json next to the executable/project root.
Environment variables (usually loaded from .env by app.py) take priority.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from src.paths import get_backup_dir, get_config_path, get_db_dir

logger = logging.getLogger(__name__)

AUTOSAVE_DELAY = 3.0           # seconds after the last change
LIGHTWEIGHT_SYNC_DELAY = 1.0   # seconds for UI-state only changes
BACKUP_INTERVAL = 10.0         # periodic backup and temp promotion
UNDO_CAPACITY = 10
REQUEST_TIMEOUT = 30.0


def load_config() -> dict:
    """Load configuration from config.json."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable config {config_path}: {e}")
            return {}
    return {}


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    config_path = get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number; using {default}")
        return default


@dataclass
class AppSettings:
    """Resolved runtime settings."""
    backend: str = "local"
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    db_dir: Path = None
    backup_dir: Path = None
    autosave_delay: float = AUTOSAVE_DELAY
    lightweight_sync_delay: float = LIGHTWEIGHT_SYNC_DELAY
    backup_interval: float = BACKUP_INTERVAL
    request_timeout: float = REQUEST_TIMEOUT
    log_level: str = "INFO"


def get_settings() -> AppSettings:
    """
    Resolve settings.

    Priority:
    1. Environment variables (STORY_BACKEND, STORY_API_URL, STORY_API_TOKEN,
       STORY_AUTOSAVE_DELAY, STORY_BACKUP_INTERVAL, STORY_LOG_LEVEL)
    2. config.json
    3. Module defaults
    """
    config = load_config()
    api_url = os.environ.get("STORY_API_URL") or config.get("api_url")
    backend = os.environ.get("STORY_BACKEND") or config.get("storage_backend")
    if not backend:
        backend = "rest" if api_url else "local"

    return AppSettings(
        backend=backend.lower(),
        api_url=api_url,
        api_token=os.environ.get("STORY_API_TOKEN") or config.get("api_token"),
        db_dir=Path(config["db_dir"]) if config.get("db_dir") else get_db_dir(),
        backup_dir=Path(config["backup_dir"]) if config.get("backup_dir") else get_backup_dir(),
        autosave_delay=_env_float("STORY_AUTOSAVE_DELAY", config.get("autosave_delay", AUTOSAVE_DELAY)),
        lightweight_sync_delay=config.get("lightweight_sync_delay", LIGHTWEIGHT_SYNC_DELAY),
        backup_interval=_env_float("STORY_BACKUP_INTERVAL", config.get("backup_interval", BACKUP_INTERVAL)),
        request_timeout=config.get("request_timeout", REQUEST_TIMEOUT),
        log_level=(os.environ.get("STORY_LOG_LEVEL") or config.get("log_level") or "INFO").upper(),
    )
