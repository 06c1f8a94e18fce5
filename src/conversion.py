"""
Conversion between backend records and the local domain model.

The backend speaks upper-case enums (project status, character type), wraps
scene-character links, and may omit scene positions or settings. Everything
here is a pure function over plain dicts.
"""

from typing import Dict, Any, List, Optional

from src.layout import satellite_position
from src.models import (
    Act,
    Character,
    DEFAULT_PLOT_POINT_COLOR,
    Item,
    PlotPoint,
    Position,
    Project,
    Scene,
    Setting,
    ZoomLevel,
)

STATUS_TO_BACKEND = {
    "draft": "DRAFT",
    "in-progress": "IN_PROGRESS",
    "completed": "COMPLETED",
    "archived": "ARCHIVED",
}
STATUS_FROM_BACKEND = {v: k for k, v in STATUS_TO_BACKEND.items()}

CHARACTER_TYPES = ("protagonist", "antagonist", "supporting", "minor")


def status_to_backend(status: Optional[str]) -> Optional[str]:
    if not status:
        return None
    return STATUS_TO_BACKEND.get(status, status.upper().replace("-", "_"))


def status_from_backend(status: Optional[str]) -> str:
    if not status:
        return "draft"
    return STATUS_FROM_BACKEND.get(status, status.lower().replace("_", "-"))


def character_type_to_backend(character_type: Optional[str]) -> str:
    return (character_type or "minor").upper()


def character_type_from_backend(character_type: Optional[str]) -> Optional[str]:
    return character_type.lower() if character_type else None


# --- Backend -> domain ---

def act_from_backend(data: Dict[str, Any]) -> Act:
    return Act(
        id=data["id"],
        name=data.get("name", ""),
        order=int(data.get("order", 0)),
        description=data.get("description"),
    )


def character_from_backend(data: Dict[str, Any]) -> Character:
    return Character(
        id=data["id"],
        name=data.get("name", ""),
        appearance=data.get("appearance") or data.get("description"),
        personality=data.get("personality"),
        motivation=data.get("motivation"),
        character_type=character_type_from_backend(data.get("characterType")),
    )


def _scene_character_ids(data: Dict[str, Any]) -> List[str]:
    if data.get("characterIds") is not None:
        return list(data["characterIds"])
    ids = []
    for link in data.get("characters") or []:
        if not isinstance(link, dict):
            continue
        # Join rows come back as {character: {...}}, plain rows as {...}
        target = link.get("character") if isinstance(link.get("character"), dict) else link
        if target.get("id"):
            ids.append(target["id"])
    return ids


def _scene_items(data: Dict[str, Any]) -> List[Item]:
    items = []
    for link in data.get("items") or []:
        if not isinstance(link, dict):
            continue
        target = link.get("item") if isinstance(link.get("item"), dict) else link
        items.append(Item(id=target.get("id", ""), name=target.get("name", ""),
                          description=target.get("description") or ""))
    return items


def scene_from_backend(data: Dict[str, Any], anchor: Position, index: int, total: int) -> Scene:
    """Convert a backend scene; a missing position gets its satellite slot around anchor."""
    setting_data = data.get("setting")
    if isinstance(setting_data, dict):
        setting = Setting.from_dict(setting_data)
    else:
        setting = Setting(id=data.get("settingId") or "default-setting", name="Default Setting")

    return Scene(
        id=data["id"],
        title=data.get("title", ""),
        synopsis=data.get("synopsis") or data.get("content") or "",
        character_ids=_scene_character_ids(data),
        setting=setting,
        items=_scene_items(data),
        position=Position.from_dict(data.get("position")) or satellite_position(anchor, index, total),
    )


def plot_point_from_backend(data: Dict[str, Any],
                            scenes: Optional[List[Dict[str, Any]]] = None) -> PlotPoint:
    position = Position.from_dict(data.get("position")) or Position(0.0, 0.0)
    raw_scenes = scenes if scenes is not None else (data.get("scenes") or [])
    return PlotPoint(
        id=data["id"],
        title=data.get("title", ""),
        position=position,
        color=data.get("color") or DEFAULT_PLOT_POINT_COLOR,
        act_id=data.get("actId", ""),
        scenes=[scene_from_backend(s, position, i, len(raw_scenes)) for i, s in enumerate(raw_scenes)],
        description=data.get("synopsis"),
        event_type=data.get("eventType"),
    )


def project_from_backend(data: Dict[str, Any], acts: List[Act],
                         plot_points: List[PlotPoint], characters: List[Character]) -> Project:
    ordered = sorted(acts, key=lambda a: a.order)
    return Project(
        id=data["id"],
        title=data.get("title", ""),
        description=data.get("description") or "",
        tags=list(data.get("tags") or []),
        status=status_from_backend(data.get("status")),
        created_date=data.get("createdAt"),
        last_modified=data.get("updatedAt"),
        acts=ordered,
        current_act_id=data.get("currentActId") or (ordered[0].id if ordered else ""),
        characters=characters,
        plot_points=plot_points,
        current_zoom_level=ZoomLevel.parse(data.get("currentZoomLevel")),
        focused_element_id=data.get("focusedElementId"),
    )


# --- Domain -> backend payloads ---

def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


def lightweight_payload(project: Project) -> Dict[str, Any]:
    """UI-positioning fields only."""
    return {
        "currentActId": project.current_act_id,
        "currentZoomLevel": project.current_zoom_level.value,
        "focusedElementId": project.focused_element_id,
    }


def project_metadata_payload(project: Project) -> Dict[str, Any]:
    return _drop_none({
        "title": project.title,
        "description": project.description or None,
        "tags": project.tags,
        "status": status_to_backend(project.status),
        "currentActId": project.current_act_id,
        "currentZoomLevel": project.current_zoom_level.value,
        "focusedElementId": project.focused_element_id or None,
    })


def act_payload(act: Act) -> Dict[str, Any]:
    return {"name": act.name, "description": act.description or None, "order": act.order}


def character_payload(character: Character) -> Dict[str, Any]:
    return {
        "name": character.name,
        "description": character.appearance,
        "appearance": character.appearance,
        "personality": character.personality,
        "motivation": character.motivation,
        "characterType": character_type_to_backend(character.character_type),
    }


def plot_point_payload(plot_point: PlotPoint) -> Dict[str, Any]:
    return _drop_none({
        "actId": plot_point.act_id,
        "title": plot_point.title,
        "position": plot_point.position.to_dict(),
        "color": plot_point.color,
        "synopsis": plot_point.description,
        "eventType": plot_point.event_type,
    })


def scene_payload(scene: Scene, plot_point_id: str, position: Position) -> Dict[str, Any]:
    return {
        "plotPointId": plot_point_id,
        "title": scene.title,
        "synopsis": scene.synopsis,
        "content": scene.synopsis,
        "position": position.to_dict(),
        "characterIds": list(scene.character_ids),
        "setting": scene.setting.to_dict(),
        "items": [i.to_dict() for i in scene.items],
    }
