"""
Tests for backend record <-> domain conversion.
"""

import pytest

from src.conversion import (
    character_from_backend,
    character_payload,
    lightweight_payload,
    plot_point_from_backend,
    project_from_backend,
    project_metadata_payload,
    scene_from_backend,
    scene_payload,
    status_from_backend,
    status_to_backend,
)
from src.models import Act, Character, Position, ZoomLevel


class TestEnums:
    """Status and character type mapping."""

    @pytest.mark.parametrize("local,remote", [
        ("draft", "DRAFT"),
        ("in-progress", "IN_PROGRESS"),
        ("completed", "COMPLETED"),
    ])
    def test_status_round_trip(self, local, remote):
        assert status_to_backend(local) == remote
        assert status_from_backend(remote) == local

    def test_missing_status_is_draft(self):
        assert status_from_backend(None) == "draft"

    def test_character_type(self):
        record = {"id": "c1", "name": "Mara", "characterType": "PROTAGONIST", "description": "Tall"}
        character = character_from_backend(record)
        assert character.character_type == "protagonist"
        assert character.appearance == "Tall"
        assert character_payload(Character(id="c2", name="Ivo"))["characterType"] == "MINOR"


class TestScenes:
    """Scene records from the backend."""

    def test_missing_position_gets_satellite_slot(self):
        scene = scene_from_backend({"id": "s1", "title": "Arrival"}, Position(100.0, 100.0), 0, 1)
        assert scene.position.x == pytest.approx(220.0)
        assert scene.position.y == pytest.approx(100.0)

    def test_missing_setting_gets_default(self):
        scene = scene_from_backend({"id": "s1", "settingId": "set-9"}, Position(0.0, 0.0), 0, 1)
        assert (scene.setting.id, scene.setting.name) == ("set-9", "Default Setting")

    def test_joined_character_rows(self):
        record = {
            "id": "s1",
            "characters": [{"character": {"id": "c1"}}, {"id": "c2"}, "junk"],
            "items": [{"item": {"id": "i1", "name": "Lantern"}}],
        }
        scene = scene_from_backend(record, Position(0.0, 0.0), 0, 1)
        assert scene.character_ids == ["c1", "c2"]
        assert scene.items[0].name == "Lantern"

    def test_content_fills_synopsis(self):
        scene = scene_from_backend({"id": "s1", "content": "Fog rolls in."}, Position(0.0, 0.0), 0, 1)
        assert scene.synopsis == "Fog rolls in."

    def test_scene_payload_uses_given_position(self, story_project):
        _, scene = story_project.find_scene("sc-1")
        payload = scene_payload(scene, "srv-pp", Position(5.0, 6.0))
        assert payload["plotPointId"] == "srv-pp"
        assert payload["position"] == {"x": 5.0, "y": 6.0}
        assert payload["characterIds"] == ["char-hero"]


class TestProjects:
    """Project assembly and outgoing payloads."""

    def test_plot_point_with_nested_scenes(self):
        record = {"id": "p1", "title": "Opening", "actId": "a1", "synopsis": "Start",
                  "scenes": [{"id": "s1"}, {"id": "s2"}]}
        pp = plot_point_from_backend(record)
        assert pp.position == Position(0.0, 0.0)
        assert pp.description == "Start"
        assert [s.id for s in pp.scenes] == ["s1", "s2"]
        assert pp.scenes[1].position.x == pytest.approx(-120.0)

    def test_project_acts_are_sorted(self):
        acts = [Act(id="b", name="Two", order=2), Act(id="a", name="One", order=1)]
        project = project_from_backend({"id": "p", "title": "T", "status": "ARCHIVED"}, acts, [], [])
        assert [a.id for a in project.acts] == ["a", "b"]
        assert project.current_act_id == "a"
        assert project.status == "archived"
        assert project.current_zoom_level == ZoomLevel.STORY_OVERVIEW

    def test_lightweight_payload_has_only_ui_fields(self, story_project):
        assert set(lightweight_payload(story_project)) == {"currentActId", "currentZoomLevel", "focusedElementId"}

    def test_metadata_payload_drops_empty_values(self, story_project):
        payload = project_metadata_payload(story_project)
        assert payload["status"] == "DRAFT"
        assert "description" not in payload
        assert "focusedElementId" not in payload
