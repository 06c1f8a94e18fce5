"""
Domain model for the story canvas.

A Project owns ordered acts, story-wide characters and plot points. Plot
points own their scenes; scenes reference characters by id and carry their
own setting and items as value objects.

Every type serializes to the camelCase wire shape used by the backend and by
the local backup (see to_dict / from_dict).
"""

from __future__ import annotations

import copy
import math
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple

from src.errors import InvariantViolation

TEMP_PREFIX = "temp-"
PLOT_POINT_PREFIX = "plot-"
SCENE_PREFIX = "scene-"

DEFAULT_PLOT_POINT_COLOR = "#3b82f6"
DEFAULT_PLOT_POINT_TITLE = "New Plot Point"
DEFAULT_SCENE_TITLE = "New Scene"
DEFAULT_SETTING_NAME = "New Location"

PLOT_POINT_COLORS = ["#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6", "#06b6d4"]


class ZoomLevel(str, Enum):
    """Canvas zoom levels. Values are the wire strings."""
    STORY_OVERVIEW = "STORY_OVERVIEW"
    PLOT_POINT_FOCUS = "PLOT_POINT_FOCUS"
    SCENE_DETAIL = "SCENE_DETAIL"
    CHARACTER_FOCUS = "CHARACTER_FOCUS"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ZoomLevel":
        if not value:
            return cls.STORY_OVERVIEW
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.STORY_OVERVIEW


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def make_id(prefix: str) -> str:
    """Client-side id: '{prefix}-{epoch ms}-{random hex}'."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def is_temp_id(entity_id: Optional[str]) -> bool:
    return bool(entity_id) and entity_id.startswith(TEMP_PREFIX)


def is_unsaved_plot_point_id(entity_id: str) -> bool:
    """Plot point ids the backend has never issued."""
    return entity_id.startswith(TEMP_PREFIX) or entity_id.startswith(PLOT_POINT_PREFIX)


def is_unsaved_scene_id(entity_id: str) -> bool:
    return entity_id.startswith(TEMP_PREFIX) or entity_id.startswith(SCENE_PREFIX)


@dataclass
class Position:
    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: "Position") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def is_valid(self) -> bool:
        return all(isinstance(v, (int, float)) and math.isfinite(v) for v in (self.x, self.y))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Position"]:
        if not isinstance(data, dict):
            return None
        x, y = data.get("x"), data.get("y")
        if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
            return None
        return cls(float(x), float(y))


@dataclass
class Setting:
    id: str
    name: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Setting":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description") or "",
        )


@dataclass
class Item:
    id: str
    name: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description") or "",
        )


@dataclass
class Character:
    id: str
    name: str
    appearance: Optional[str] = None
    personality: Optional[str] = None
    motivation: Optional[str] = None
    character_type: Optional[str] = None  # protagonist | antagonist | supporting | minor

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "appearance": self.appearance,
            "personality": self.personality,
            "motivation": self.motivation,
            "characterType": self.character_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Character":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            appearance=data.get("appearance"),
            personality=data.get("personality"),
            motivation=data.get("motivation"),
            character_type=data.get("characterType"),
        )


@dataclass
class Scene:
    id: str
    title: str
    synopsis: str = ""
    character_ids: List[str] = field(default_factory=list)
    setting: Setting = field(default_factory=lambda: Setting(id="", name=""))
    items: List[Item] = field(default_factory=list)
    position: Optional[Position] = None

    @classmethod
    def new(cls, title: str = DEFAULT_SCENE_TITLE) -> "Scene":
        """A fresh scene with its own setting value object."""
        return cls(
            id=make_id("scene"),
            title=title,
            setting=Setting(id=make_id("setting"), name=DEFAULT_SETTING_NAME),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "synopsis": self.synopsis,
            "characterIds": list(self.character_ids),
            "setting": self.setting.to_dict(),
            "items": [i.to_dict() for i in self.items],
            "position": self.position.to_dict() if self.position else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scene":
        setting = data.get("setting")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            synopsis=data.get("synopsis") or "",
            character_ids=list(data.get("characterIds") or []),
            setting=Setting.from_dict(setting) if isinstance(setting, dict) else Setting(id="", name=""),
            items=[Item.from_dict(i) for i in data.get("items") or [] if isinstance(i, dict)],
            position=Position.from_dict(data.get("position")),
        )


@dataclass
class PlotPoint:
    id: str
    title: str
    position: Position
    color: str
    act_id: str
    scenes: List[Scene] = field(default_factory=list)
    description: Optional[str] = None
    event_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "position": self.position.to_dict(),
            "color": self.color,
            "actId": self.act_id,
            "scenes": [s.to_dict() for s in self.scenes],
            "description": self.description,
            "eventType": self.event_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlotPoint":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            position=Position.from_dict(data.get("position")) or Position(0.0, 0.0),
            color=data.get("color") or DEFAULT_PLOT_POINT_COLOR,
            act_id=data.get("actId", ""),
            scenes=[Scene.from_dict(s) for s in data.get("scenes") or []],
            description=data.get("description"),
            event_type=data.get("eventType"),
        )


@dataclass
class Act:
    id: str
    name: str
    order: int
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description, "order": self.order}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Act":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            order=int(data.get("order", 0)),
            description=data.get("description"),
        )


@dataclass
class Project:
    """Root aggregate. At least one act exists and current_act_id names one of them."""
    id: str
    title: str
    acts: List[Act]
    current_act_id: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    status: str = "draft"
    characters: List[Character] = field(default_factory=list)
    plot_points: List[PlotPoint] = field(default_factory=list)
    current_zoom_level: ZoomLevel = ZoomLevel.STORY_OVERVIEW
    focused_element_id: Optional[str] = None
    created_date: Optional[str] = None
    last_modified: Optional[str] = None

    # --- Lookups ---

    def find_act(self, act_id: str) -> Optional[Act]:
        return next((a for a in self.acts if a.id == act_id), None)

    def act_by_order(self, order: int) -> Optional[Act]:
        return next((a for a in self.acts if a.order == order), None)

    def sorted_acts(self) -> List[Act]:
        return sorted(self.acts, key=lambda a: a.order)

    def find_plot_point(self, plot_point_id: str) -> Optional[PlotPoint]:
        return next((pp for pp in self.plot_points if pp.id == plot_point_id), None)

    def find_scene(self, scene_id: str) -> Tuple[Optional[PlotPoint], Optional[Scene]]:
        for pp in self.plot_points:
            for scene in pp.scenes:
                if scene.id == scene_id:
                    return pp, scene
        return None, None

    def find_character(self, character_id: str) -> Optional[Character]:
        return next((c for c in self.characters if c.id == character_id), None)

    def plot_points_for_act(self, act_id: str) -> List[PlotPoint]:
        return [pp for pp in self.plot_points if pp.act_id == act_id]

    # --- Invariants ---

    def validate(self) -> None:
        if not self.acts:
            raise InvariantViolation(f"Project {self.id} has no acts")
        if self.find_act(self.current_act_id) is None:
            raise InvariantViolation(
                f"Project {self.id}: currentActId {self.current_act_id!r} does not reference an act"
            )
        for pp in self.plot_points:
            if is_temp_id(pp.id):
                raise InvariantViolation(f"Temporary plot point {pp.id} must not be persisted")

    def remap_ids(self, id_map: Dict[str, str]) -> None:
        """Rewrite client-side ids, and every foreign key holding them, in place."""
        if not id_map:
            return

        def m(value: Optional[str]) -> Optional[str]:
            return id_map.get(value, value) if value else value

        for act in self.acts:
            act.id = m(act.id)
        self.current_act_id = m(self.current_act_id)
        for character in self.characters:
            character.id = m(character.id)
        for pp in self.plot_points:
            pp.id = m(pp.id)
            pp.act_id = m(pp.act_id)
            for scene in pp.scenes:
                scene.id = m(scene.id)
                scene.character_ids = [m(cid) for cid in scene.character_ids]
        self.focused_element_id = m(self.focused_element_id)

    def touch(self) -> None:
        self.last_modified = now_iso()

    def deep_copy(self) -> "Project":
        return copy.deepcopy(self)

    # --- Serialization ---

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "status": self.status,
            "createdDate": self.created_date,
            "lastModified": self.last_modified,
            "acts": [a.to_dict() for a in self.acts],
            "currentActId": self.current_act_id,
            "characters": [c.to_dict() for c in self.characters],
            "plotPoints": [pp.to_dict() for pp in self.plot_points],
            "currentZoomLevel": self.current_zoom_level.value,
            "focusedElementId": self.focused_element_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        acts = [Act.from_dict(a) for a in data.get("acts") or []]
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description") or "",
            tags=list(data.get("tags") or []),
            status=data.get("status") or "draft",
            created_date=data.get("createdDate"),
            last_modified=data.get("lastModified"),
            acts=acts,
            current_act_id=data.get("currentActId") or (acts[0].id if acts else ""),
            characters=[Character.from_dict(c) for c in data.get("characters") or []],
            plot_points=[PlotPoint.from_dict(pp) for pp in data.get("plotPoints") or []],
            current_zoom_level=ZoomLevel.parse(data.get("currentZoomLevel")),
            focused_element_id=data.get("focusedElementId"),
        )
