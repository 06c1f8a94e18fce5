"""
Project templates: the act sets a new project starts with.

Templates live in act_templates.yaml next to this module.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

from src.models import Act, Project, ZoomLevel, make_id, now_iso

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "act_templates.yaml"
DEFAULT_TEMPLATE = "novel"

_templates_cache: Optional[Dict[str, Any]] = None


def load_templates(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the template definitions (cached for the default path)."""
    global _templates_cache
    if path is None and _templates_cache is not None:
        return _templates_cache

    with open(path or TEMPLATES_PATH, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if path is None:
        _templates_cache = data
    return data


def template_names() -> List[str]:
    return list(load_templates().keys())


def template_acts(template: Optional[str] = None) -> List[Act]:
    """Fresh Act objects for a template; unknown names fall back to the novel set."""
    templates = load_templates()
    name = template or DEFAULT_TEMPLATE
    if name not in templates:
        logger.warning(f"Unknown project template {name!r}, using {DEFAULT_TEMPLATE}")
        name = DEFAULT_TEMPLATE

    return [
        Act(id=a["id"], name=a["name"], order=i + 1, description=a.get("description"))
        for i, a in enumerate(templates[name]["acts"])
    ]


def new_project(title: str, template: Optional[str] = None) -> Project:
    acts = template_acts(template)
    now = now_iso()
    return Project(
        id=make_id("project"),
        title=title,
        acts=acts,
        current_act_id=acts[0].id,
        status="draft",
        current_zoom_level=ZoomLevel.STORY_OVERVIEW,
        created_date=now,
        last_modified=now,
    )
