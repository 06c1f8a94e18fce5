"""
Tests for ProjectStore mutations, cascades and change events.
"""

import pytest

from src.errors import EntityNotFoundError, InvariantViolation, ProjectNotLoadedError
from src.models import Position, ZoomLevel
from src.store import ProjectStore


@pytest.fixture
def store(story_project):
    store = ProjectStore()
    store.load(story_project)
    return store


@pytest.fixture
def changes(store):
    seen = []
    store.on('change', seen.append)
    return seen


class TestLifecycle:
    """Loading, replacing and resetting."""

    def test_project_before_load_raises(self):
        with pytest.raises(ProjectNotLoadedError):
            ProjectStore().project

    def test_load_validates(self, make_project):
        broken = make_project()
        broken.current_act_id = "missing"
        with pytest.raises(InvariantViolation):
            ProjectStore().load(broken)

    def test_replace_is_not_a_change(self, store, changes, story_project):
        replaced = []
        store.on('replaced', replaced.append)
        copy = story_project.deep_copy()

        store.replace(copy)

        assert store.project is copy
        assert replaced == [copy]
        assert changes == []

    def test_reset(self, store):
        store.reset()
        assert not store.is_loaded

    def test_snapshot_is_independent(self, store):
        snap = store.snapshot()
        store.update_plot_point("pp-1", title="Changed")
        assert snap.find_plot_point("pp-1").title == "Opening"

    def test_every_mutation_emits_change_and_touches(self, store, changes):
        store.update_metadata(title="Winter")
        assert len(changes) == 1
        assert store.project.last_modified is not None

    def test_metadata_rejects_unknown_fields(self, store):
        with pytest.raises(ValueError):
            store.update_metadata(acts=[])

    def test_set_zoom_and_act(self, store):
        store.set_zoom(ZoomLevel.CHARACTER_FOCUS, "char-hero")
        assert store.project.current_zoom_level == ZoomLevel.CHARACTER_FOCUS
        store.set_current_act("act-b")
        assert store.project.current_act_id == "act-b"
        with pytest.raises(EntityNotFoundError):
            store.set_current_act("act-z")


class TestActs:
    """Acts and their cascades."""

    def test_add_act_appends_order(self, store):
        act = store.add_act("Act 3")
        assert act.order == 3
        assert store.project.act_by_order(3) is act

    def test_delete_act_removes_its_plot_points(self, store):
        store.set_current_act("act-b")
        store.delete_act("act-b")

        assert store.project.find_plot_point("pp-3") is None
        assert store.project.current_act_id == "act-a"
        assert len(store.project.plot_points) == 2

    def test_last_act_cannot_be_deleted(self, store):
        store.delete_act("act-b")
        with pytest.raises(InvariantViolation):
            store.delete_act("act-a")
        assert len(store.project.acts) == 1

    def test_ensure_act_exists(self, store):
        assert store.ensure_act_exists(2).id == "act-b"
        created = store.ensure_act_exists(4)
        assert created.name == "Act 4"
        assert created.order == 4


class TestPlotPointsAndScenes:
    """Plot points, scenes and characters."""

    def test_add_plot_point_allocates_free_position(self, store):
        pp = store.add_plot_point("Midpoint")
        assert pp.act_id == "act-a"
        for other in store.project.plot_points:
            if other is not pp:
                assert pp.position.distance_to(other.position) >= 150

    def test_add_plot_point_unknown_act(self, store):
        with pytest.raises(EntityNotFoundError):
            store.add_plot_point("Lost", act_id="act-z", position=Position(0.0, 0.0))

    def test_update_plot_point_rejects_unknown_field(self, store):
        with pytest.raises(ValueError):
            store.update_plot_point("pp-1", mood="grim")

    def test_deleting_focused_plot_point_returns_to_overview(self, store):
        store.set_zoom(ZoomLevel.SCENE_DETAIL, "sc-1")
        store.delete_plot_point("pp-1")
        assert store.project.current_zoom_level == ZoomLevel.STORY_OVERVIEW
        assert store.project.focused_element_id is None

    def test_add_scene_leaves_position_unset(self, store):
        scene = store.add_scene("pp-2")
        assert scene.position is None
        assert scene.setting.id.startswith("setting-")
        assert store.project.find_scene(scene.id)[0].id == "pp-2"

    def test_deleting_focused_scene_focuses_its_plot_point(self, store):
        store.set_zoom(ZoomLevel.SCENE_DETAIL, "sc-2")
        store.delete_scene("sc-2")
        assert store.project.focused_element_id == "pp-1"
        assert store.project.current_zoom_level == ZoomLevel.PLOT_POINT_FOCUS

    def test_delete_character_removes_scene_references(self, store):
        store.delete_character("char-hero")
        _, scene = store.project.find_scene("sc-1")
        assert scene.character_ids == []
        assert store.project.characters == []

    def test_add_and_update_character(self, store):
        character = store.add_character("Ivo", character_type="antagonist")
        store.update_character(character.id, motivation="Revenge")
        assert store.project.find_character(character.id).motivation == "Revenge"

    def test_unknown_scene(self, store):
        with pytest.raises(EntityNotFoundError):
            store.update_scene("nope", title="x")
