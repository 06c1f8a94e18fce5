"""
Canvas interaction system of the story canvas.

This package provides pointer and keyboard handling:
- InteractionController: click / double click / right click semantics
- EditActions: temp plot point lifecycle and node deletion
- resolve_shortcut: undo and act switch shortcuts
- setup_canvas_handlers: NiceGUI event wiring for app.py (import from
  src.edit.handlers; it depends on the workspace)

Usage:
    from src.edit import InteractionController, InteractionState, EditActions
    from src.edit.handlers import setup_canvas_handlers
"""

from src.edit.constants import (
    CANVAS_CLICK_EVENT,
    CHART_EVENT_KEYS,
)
from src.edit.controller import CanvasEffect, ContextTarget, InteractionController, InteractionState
from src.edit.actions import EditActions
from src.edit.shortcuts import Shortcut, resolve_shortcut, shortcut_from_event

__all__ = [
    'InteractionController',
    'InteractionState',
    'CanvasEffect',
    'ContextTarget',
    'EditActions',
    'Shortcut',
    'resolve_shortcut',
    'shortcut_from_event',
    'CANVAS_CLICK_EVENT',
    'CHART_EVENT_KEYS',
]
