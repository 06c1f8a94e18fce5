"""
Tests for local backup copies and legacy document migration.
"""

import json

import pytest

from src.migration import LEGACY_FILENAME, migrate_legacy_backups, migrate_legacy_project
from src.models import ZoomLevel
from src.storage.backup import LocalBackup


@pytest.fixture
def backup(tmp_path):
    return LocalBackup(tmp_path / "backups")


class TestLocalBackup:
    """Per-project backup files."""

    def test_save_and_load(self, backup, story_project):
        assert backup.save(story_project) is True
        assert backup.path_for("proj-1").name == "writing-graph-project-proj-1.json"

        loaded = backup.load("proj-1")
        assert loaded.to_dict() == story_project.to_dict()

    def test_missing_backup_is_none(self, backup):
        assert backup.load("nope") is None

    def test_corrupt_backup_is_none(self, backup):
        backup.path_for("bad").write_text("{", encoding="utf-8")
        assert backup.load("bad") is None

    def test_list_and_delete(self, backup, make_project):
        backup.save(make_project(project_id="b"))
        backup.save(make_project(project_id="a"))
        assert backup.list_ids() == ["a", "b"]

        backup.delete("a")
        assert backup.list_ids() == ["b"]

    def test_write_failure_is_reported_not_raised(self, backup, story_project, tmp_path):
        backup.backup_dir = tmp_path / "gone"
        assert backup.save(story_project) is False


LEGACY_DOC = {
    "title": "Old Draft",
    "acts": [
        {"id": "act-1", "name": "Act 1", "order": 1},
        {"id": "act-2", "name": "Act 2", "order": 2},
    ],
    "currentActId": "act-2",
    "characters": [{"id": "c1", "name": "Mara"}],
    "plotPoints": [{
        "id": "pp-1", "title": "Opening", "position": {"x": 10, "y": 20},
        "color": "#fff", "actId": "act-1", "scenes": [],
    }],
    "currentZoomLevel": "PLOT_POINT_FOCUS",
    "focusedElementId": "pp-1",
    "lastModified": "2024-03-01T10:00:00Z",
}


class TestMigration:
    """Single-document legacy projects become regular backups."""

    def test_migrate_document(self):
        project = migrate_legacy_project(LEGACY_DOC)

        assert project.id.startswith("migrated-project-")
        assert project.title == "Old Draft"
        assert project.status == "in-progress"
        assert project.tags == []
        assert project.current_act_id == "act-2"
        assert project.plot_points[0].position.x == 10.0
        assert project.current_zoom_level == ZoomLevel.PLOT_POINT_FOCUS
        assert project.created_date == "2024-03-01T10:00:00Z"

    def test_missing_acts_get_a_default(self):
        project = migrate_legacy_project({"currentActId": "act-9"})
        assert [a.id for a in project.acts] == ["act-1"]
        assert project.current_act_id == "act-1"
        assert project.title == "Migrated Project"
        project.validate()

    def test_backup_dir_migration_removes_legacy_file(self, backup):
        legacy = backup.backup_dir / LEGACY_FILENAME
        legacy.write_text(json.dumps(LEGACY_DOC), encoding="utf-8")

        project = migrate_legacy_backups(backup)

        assert project is not None
        assert not legacy.exists()
        assert backup.list_ids() == [project.id]
        assert backup.load(project.id).title == "Old Draft"

    def test_nothing_to_migrate(self, backup):
        assert migrate_legacy_backups(backup) is None

    def test_unreadable_legacy_file_stays(self, backup):
        legacy = backup.backup_dir / LEGACY_FILENAME
        legacy.write_text("not json", encoding="utf-8")

        assert migrate_legacy_backups(backup) is None
        assert legacy.exists()
