"""
Tests for the save/sync pipeline: change classification, the debounced
single-entry queue, serialized flushing and content reconciliation.

The backend calls run through an inline (or deliberately slow) io_bound
replacement instead of nicegui's thread pool.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from src.errors import BackendError
from src.models import (
    Act,
    Character,
    PlotPoint,
    Position,
    Project,
    Scene,
    Setting,
    ZoomLevel,
    make_id,
)
from src.storage.local_backend import LocalBackend
from src.sync import ChangeType, SaveSyncManager, detect_changes


def slow_io(delay=0.01, tracker=None):
    """io_bound replacement that yields to the loop and records concurrency."""
    tracker = tracker if tracker is not None else {}
    tracker.setdefault("active", 0)
    tracker.setdefault("max_active", 0)

    async def run(fn, *args):
        tracker["active"] += 1
        tracker["max_active"] = max(tracker["max_active"], tracker["active"])
        try:
            await asyncio.sleep(delay)
            return fn(*args)
        finally:
            tracker["active"] -= 1

    return run


def new_local_project(backend: LocalBackend) -> Project:
    """A client-side project whose acts, characters, plot points and scenes the backend has never seen."""
    record = backend.create_project({"title": "Draft"})
    hero = Character(id=make_id("character"), name="Mara")
    scenes = [
        Scene(id=make_id("scene"), title="Arrival", character_ids=[hero.id],
              setting=Setting(id=make_id("setting"), name="Harbor")),
        Scene(id=make_id("scene"), title="Storm", setting=Setting(id=make_id("setting"), name="Cliffs")),
    ]
    pp = PlotPoint(id=make_id("plot"), title="Opening", position=Position(100.0, 100.0),
                   color="#3b82f6", act_id="act-1", scenes=scenes)
    return Project(
        id=record["id"],
        title="Draft",
        acts=[Act(id="act-1", name="Act 1", order=1), Act(id="act-2", name="Act 2", order=2)],
        current_act_id="act-1",
        characters=[hero],
        plot_points=[pp],
    )


class TestDetectChanges:
    """Classification against the last saved baseline."""

    def test_no_baseline_is_content(self, story_project):
        assert detect_changes(None, story_project) == ChangeType.CONTENT

    def test_zoom_only_is_lightweight(self, story_project):
        changed = story_project.deep_copy()
        changed.current_zoom_level = ZoomLevel.PLOT_POINT_FOCUS
        assert detect_changes(story_project, changed) == ChangeType.LIGHTWEIGHT

    @pytest.mark.parametrize("field,value", [
        ("focused_element_id", "pp-1"),
        ("current_act_id", "act-b"),
    ])
    def test_ui_positioning_fields_are_lightweight(self, story_project, field, value):
        changed = story_project.deep_copy()
        setattr(changed, field, value)
        assert detect_changes(story_project, changed) == ChangeType.LIGHTWEIGHT

    def test_plot_point_title_is_content(self, story_project):
        changed = story_project.deep_copy()
        changed.plot_points[0].title = "Prologue"
        assert detect_changes(story_project, changed) == ChangeType.CONTENT

    def test_scene_edit_is_content(self, story_project):
        changed = story_project.deep_copy()
        changed.plot_points[0].scenes[1].synopsis = "Lightning."
        assert detect_changes(story_project, changed) == ChangeType.CONTENT

    def test_last_modified_alone_is_nothing(self, story_project):
        changed = story_project.deep_copy()
        changed.touch()
        assert detect_changes(story_project, changed) == ChangeType.NONE


class TestQueue:
    """Debounce, last-write-wins and coalesced flushing."""

    @pytest.fixture
    def backend(self):
        return MagicMock()

    def test_latest_snapshot_wins(self, backend, story_project, inline_io):
        sync = SaveSyncManager(backend, autosave_delay=0.01, lightweight_delay=0.01, io_bound=inline_io)
        sync.set_baseline(story_project)

        async def scenario():
            first = story_project.deep_copy()
            first.current_zoom_level = ZoomLevel.PLOT_POINT_FOCUS
            second = story_project.deep_copy()
            second.current_zoom_level = ZoomLevel.SCENE_DETAIL
            sync.queue_save(first)
            task = sync.queue_save(second)
            await task

        asyncio.run(scenario())

        # Intermediate state is dropped by design: only the newest snapshot is sent
        backend.update_project.assert_called_once()
        project_id, payload = backend.update_project.call_args[0]
        assert project_id == story_project.id
        assert payload["currentZoomLevel"] == "SCENE_DETAIL"
        assert sync.pending is None

    def test_queue_keeps_a_copy(self, backend, story_project, inline_io):
        sync = SaveSyncManager(backend, autosave_delay=10, io_bound=inline_io)

        async def scenario():
            sync.queue_save(story_project)
            story_project.title = "Edited after queueing"
            pending = sync.pending
            sync.cancel()
            return pending

        pending = asyncio.run(scenario())
        assert pending.title == "The Long Winter"

    def test_unchanged_project_sends_nothing(self, backend, story_project, inline_io):
        sync = SaveSyncManager(backend, io_bound=inline_io)
        sync.set_baseline(story_project)
        saved = []
        sync.on('saved', saved.append)

        async def scenario():
            await sync.queue_save(story_project.deep_copy(), immediate=True)

        asyncio.run(scenario())
        assert backend.method_calls == []
        assert saved == []
        assert sync.state.last_change_type == ChangeType.NONE

    def test_flush_requested_while_busy_runs_once_more(self, backend, story_project):
        tracker = {}
        sync = SaveSyncManager(backend, io_bound=slow_io(0.02, tracker))
        sync.set_baseline(story_project)

        async def scenario():
            first = story_project.deep_copy()
            first.current_zoom_level = ZoomLevel.PLOT_POINT_FOCUS
            task_one = sync.queue_save(first, immediate=True)
            await asyncio.sleep(0.005)
            assert sync.state.is_busy

            second = first.deep_copy()
            second.focused_element_id = "pp-1"
            task_two = sync.queue_save(second, immediate=True)
            await asyncio.gather(task_one, task_two)

        asyncio.run(scenario())

        assert tracker["max_active"] == 1
        assert backend.update_project.call_count == 2
        last_payload = backend.update_project.call_args_list[-1][0][1]
        assert last_payload["focusedElementId"] == "pp-1"
        assert sync.pending is None
        assert not sync.state.is_busy

    def test_failed_flush_keeps_queue_and_reports(self, backend, story_project, inline_io):
        backend.update_project.side_effect = BackendError("server down", status_code=503)
        sync = SaveSyncManager(backend, io_bound=inline_io)
        sync.set_baseline(story_project)
        errors = []
        sync.on('error', errors.append)

        async def scenario():
            changed = story_project.deep_copy()
            changed.current_zoom_level = ZoomLevel.PLOT_POINT_FOCUS
            await sync.queue_save(changed, immediate=True)

        asyncio.run(scenario())

        assert sync.pending is not None
        assert sync.state.error_count == 1
        assert errors == [{'message': 'server down'}]
        assert sync.baseline.current_zoom_level == ZoomLevel.STORY_OVERVIEW

    def test_state_change_events(self, backend, story_project, inline_io):
        sync = SaveSyncManager(backend, io_bound=inline_io)
        sync.set_baseline(story_project)
        states = []
        sync.on('state_change', lambda s: states.append((s.is_busy, s.has_pending)))

        async def scenario():
            changed = story_project.deep_copy()
            changed.current_act_id = "act-b"
            await sync.queue_save(changed, immediate=True)

        asyncio.run(scenario())
        assert (True, True) in states
        assert states[-1] == (False, False)

    def test_flush_pending_sends_queued_snapshot_now(self, backend, story_project, inline_io):
        sync = SaveSyncManager(backend, autosave_delay=60, lightweight_delay=60, io_bound=inline_io)
        sync.set_baseline(story_project)

        async def scenario():
            changed = story_project.deep_copy()
            changed.current_zoom_level = ZoomLevel.PLOT_POINT_FOCUS
            sync.queue_save(changed)
            await sync.flush_pending()

        asyncio.run(scenario())
        backend.update_project.assert_called_once()
        assert sync.pending is None


class TestContentSync:
    """Full reconciliation against a real (file based) backend."""

    @pytest.fixture
    def backend(self, tmp_path):
        return LocalBackend(tmp_path / "db")

    def test_new_entities_get_server_ids(self, backend, inline_io):
        project = new_local_project(backend)
        pp = project.plot_points[0]
        hero = project.characters[0]
        sync = SaveSyncManager(backend, io_bound=inline_io)

        canonical, id_map = asyncio.run(sync.sync_content(project))

        assert set(id_map) == {"act-1", "act-2", hero.id, pp.id, pp.scenes[0].id, pp.scenes[1].id}
        assert canonical.current_act_id == id_map["act-1"]
        assert [a.name for a in canonical.acts] == ["Act 1", "Act 2"]

        synced_pp = canonical.find_plot_point(id_map[pp.id])
        assert synced_pp.act_id == id_map["act-1"]
        assert [s.title for s in synced_pp.scenes] == ["Arrival", "Storm"]
        assert synced_pp.scenes[0].character_ids == [id_map[hero.id]]
        assert canonical.find_character(id_map[hero.id]).name == "Mara"

    def test_reconciliation_order(self, backend, inline_io):
        project = new_local_project(backend)
        recorder = MagicMock(wraps=backend)
        sync = SaveSyncManager(recorder, io_bound=inline_io)

        asyncio.run(sync.sync_content(project))

        names = [call[0] for call in recorder.method_calls]
        first = {name: names.index(name) for name in
                 ("create_act", "update_project", "create_character", "create_plot_point", "create_scene")}
        assert (first["create_act"] < first["update_project"] < first["create_character"]
                < first["create_plot_point"] < first["create_scene"])
        assert names[-1] in ("list_scenes", "list_plot_points")

    def test_unsaved_scene_positions_are_sent_as_satellite_slots(self, backend, inline_io):
        project = new_local_project(backend)
        sync = SaveSyncManager(backend, io_bound=inline_io)
        canonical, _ = asyncio.run(sync.sync_content(project))

        scenes = canonical.plot_points[0].scenes
        assert scenes[0].position.x == pytest.approx(220.0)
        assert scenes[0].position.y == pytest.approx(100.0)
        assert scenes[1].position.x == pytest.approx(-20.0)

    def test_locally_deleted_entities_are_removed_remotely(self, backend, inline_io):
        sync = SaveSyncManager(backend, io_bound=inline_io)
        canonical, _ = asyncio.run(sync.sync_content(new_local_project(backend)))

        pp = canonical.plot_points[0]
        pp.scenes.pop()
        second, _ = asyncio.run(sync.sync_content(canonical.deep_copy()))
        assert len(second.plot_points[0].scenes) == 1

        second.plot_points = []
        second.characters = []
        third, _ = asyncio.run(sync.sync_content(second))
        assert third.plot_points == []
        assert third.characters == []
        assert backend.list_plot_points(third.id, third.current_act_id) == []

    def test_one_failing_entity_does_not_block_the_rest(self, tmp_path, inline_io):

        class RejectingBackend(LocalBackend):
            def create_plot_point(self, project_id, act_id, data):
                if data.get("title") == "Broken":
                    raise BackendError("validation failed", status_code=422)
                return super().create_plot_point(project_id, act_id, data)

        backend = RejectingBackend(tmp_path / "db")
        project = new_local_project(backend)
        project.plot_points.insert(0, PlotPoint(
            id=make_id("plot"), title="Broken", position=Position(500.0, 500.0), color="#fff", act_id="act-1"))
        sync = SaveSyncManager(backend, io_bound=inline_io)

        canonical, _ = asyncio.run(sync.sync_content(project))

        assert [pp.title for pp in canonical.plot_points] == ["Opening"]
        assert len(canonical.plot_points[0].scenes) == 2

    def test_update_falls_back_to_create(self, backend, inline_io):
        project = new_local_project(backend)
        # A server-looking id the backend has never issued
        project.plot_points[0].id = "7c1e2f9a-0000-4000-8000-000000000000"
        sync = SaveSyncManager(backend, io_bound=inline_io)

        canonical, id_map = asyncio.run(sync.sync_content(project))

        assert len(canonical.plot_points) == 1
        assert id_map["7c1e2f9a-0000-4000-8000-000000000000"] == canonical.plot_points[0].id

    def test_flush_emits_remap_and_canonical_project(self, backend, inline_io):
        project = new_local_project(backend)
        sync = SaveSyncManager(backend, io_bound=inline_io)
        remaps, replaced = [], []
        sync.on('ids_remapped', remaps.append)
        sync.on('project_replaced', replaced.append)

        async def scenario():
            await sync.queue_save(project, immediate=True)

        asyncio.run(scenario())

        assert len(remaps) == 1 and "act-1" in remaps[0]
        assert len(replaced) == 1
        assert sync.pending is None
        assert detect_changes(sync.baseline, replaced[0]) == ChangeType.NONE

    def test_snapshot_queued_mid_sync_is_remapped_not_duplicated(self, backend):
        project = new_local_project(backend)
        sync = SaveSyncManager(backend, io_bound=slow_io(0.002))
        replaced = []
        sync.on('project_replaced', replaced.append)

        async def scenario():
            first = sync.queue_save(project, immediate=True)
            await asyncio.sleep(0.004)
            assert sync.state.is_busy

            edited = project.deep_copy()
            edited.plot_points[0].title = "Opening (revised)"
            second = sync.queue_save(edited, immediate=True)
            await asyncio.gather(first, second)

        asyncio.run(scenario())

        acts = backend.list_acts(project.id)
        assert len(acts) == 2
        stored = [pp for act in acts for pp in backend.list_plot_points(project.id, act["id"])]
        assert [pp["title"] for pp in stored] == ["Opening (revised)"]
        assert len(stored[0]["scenes"]) == 2
        assert len(backend.list_characters(project.id)) == 1
        # Only the follow-up flush replaces the local project
        assert len(replaced) == 1
        assert replaced[0].plot_points[0].title == "Opening (revised)"
