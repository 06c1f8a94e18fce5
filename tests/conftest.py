"""Shared fixtures for the story canvas tests."""

import pytest

from src.models import Act, Character, PlotPoint, Position, Project, Scene, Setting


async def _inline_io(fn, *args):
    return fn(*args)


@pytest.fixture
def inline_io():
    """Stand-in for nicegui's run.io_bound that calls the function in place."""
    return _inline_io


def build_project(project_id="proj-1", plot_points=None, characters=None, acts=None):
    acts = acts or [
        Act(id="act-a", name="Act 1", order=1),
        Act(id="act-b", name="Act 2", order=2),
    ]
    return Project(
        id=project_id,
        title="The Long Winter",
        acts=acts,
        current_act_id=acts[0].id,
        characters=characters or [],
        plot_points=plot_points or [],
    )


def build_scene(scene_id, title="Scene", character_ids=None, position=None):
    return Scene(
        id=scene_id,
        title=title,
        character_ids=list(character_ids or []),
        setting=Setting(id=f"setting-of-{scene_id}", name="Harbor"),
        position=position,
    )


@pytest.fixture
def make_project():
    """Factory for small projects: make_project(plot_points=[...], characters=[...])."""
    return build_project


@pytest.fixture
def make_scene():
    return build_scene


@pytest.fixture
def story_project():
    """Two acts, one character, two plot points in act 1 (one with scenes) and one in act 2."""
    hero = Character(id="char-hero", name="Mara", character_type="protagonist")
    opening = PlotPoint(
        id="pp-1", title="Opening", position=Position(100.0, 100.0), color="#3b82f6", act_id="act-a",
        scenes=[
            build_scene("sc-1", "Arrival", character_ids=["char-hero"]),
            build_scene("sc-2", "Storm"),
        ],
    )
    turn = PlotPoint(id="pp-2", title="Turn", position=Position(400.0, 100.0), color="#10b981", act_id="act-a")
    finale = PlotPoint(id="pp-3", title="Finale", position=Position(100.0, 100.0), color="#ef4444", act_id="act-b")
    return build_project(plot_points=[opening, turn, finale], characters=[hero])
