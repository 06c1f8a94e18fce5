"""Tests for keyboard shortcut resolution."""

from types import SimpleNamespace

import pytest

from src.edit.shortcuts import Shortcut, resolve_shortcut, shortcut_from_event


@pytest.mark.parametrize("ctrl,meta", [(True, False), (False, True)])
def test_modifier_z_is_undo(ctrl, meta):
    assert resolve_shortcut("z", ctrl=ctrl, meta=meta) == Shortcut("undo")
    assert resolve_shortcut("Z", ctrl=ctrl, meta=meta) == Shortcut("undo")


def test_shift_z_is_not_undo():
    assert resolve_shortcut("z", ctrl=True, shift=True) is None


def test_digits_switch_acts():
    for digit in range(1, 6):
        assert resolve_shortcut(str(digit), ctrl=True) == Shortcut("switch_act", digit)


@pytest.mark.parametrize("key", ["0", "6", "9"])
def test_digits_outside_range_are_ignored(key):
    assert resolve_shortcut(key, ctrl=True) is None


def test_no_modifier_no_shortcut():
    assert resolve_shortcut("z") is None
    assert resolve_shortcut("1") is None


def _event(key, keydown=True, repeat=False, ctrl=False, meta=False, shift=False):
    return SimpleNamespace(
        key=SimpleNamespace(name=key),
        action=SimpleNamespace(keydown=keydown, repeat=repeat),
        modifiers=SimpleNamespace(ctrl=ctrl, meta=meta, shift=shift),
    )


class TestKeyEvents:
    """NiceGUI keyboard event adaptation."""

    def test_keydown_resolves(self):
        assert shortcut_from_event(_event("z", ctrl=True)) == Shortcut("undo")

    def test_keyup_is_ignored(self):
        assert shortcut_from_event(_event("z", keydown=False, ctrl=True)) is None

    def test_auto_repeat_is_ignored(self):
        assert shortcut_from_event(_event("2", repeat=True, meta=True)) is None
