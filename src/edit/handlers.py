"""
Canvas Handlers - NiceGUI event wiring for the story canvas.

Keeps app.py focused on layout: chart clicks, double clicks, right clicks,
blank-canvas clicks (reported by an injected ZRender listener) and keyboard
shortcuts all end up here and are forwarded to the StoryWorkspace. The
returned CanvasEffect is then applied to the UI through the callbacks app.py
passes in.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

from nicegui import ui

from src.edit.constants import (
    CANVAS_CLICK_EVENT,
    CENTER_ANIMATION_MS,
    CHART_EVENT_KEYS,
)
from src.edit.controller import CanvasEffect, ContextTarget
from src.edit.shortcuts import shortcut_from_event
from src.errors import StoryError
from src.workspace import StoryWorkspace

logger = logging.getLogger(__name__)


def normalize_click_payload(raw_payload: Any) -> Dict[str, Any]:
    """Normalize NiceGUI chart event payloads into a dictionary for easier parsing."""
    if isinstance(raw_payload, dict):
        return raw_payload
    if isinstance(raw_payload, (list, tuple)):
        return {
            CHART_EVENT_KEYS[i]: raw_payload[i]
            for i in range(min(len(raw_payload), len(CHART_EVENT_KEYS)))
        }
    if isinstance(raw_payload, str):
        return {'name': raw_payload}
    return {}


def resolve_node_id(payload: Dict[str, Any], workspace: StoryWorkspace) -> Optional[str]:
    """Return the visual node id of a node event, validated against the current projection."""
    if payload.get('componentType') != 'series':
        return None
    if payload.get('dataType') not in (None, 'node'):
        return None
    node_id = payload.get('name')
    if not node_id:
        return None
    if workspace.projection().find(node_id) is None:
        return None
    return node_id


def canvas_listener_js(chart_id: int) -> str:
    """ZRender listeners reporting clicks on empty canvas in data coordinates."""
    return f'''
        setTimeout(function() {{
            const component = getElement({chart_id});
            if (!component || !component.chart) return;
            const chart = component.chart;
            window.storyChart = chart;
            const report = function(name, e) {{
                if (e.target) return;
                const point = chart.convertFromPixel({{seriesIndex: 0}}, [e.offsetX, e.offsetY]);
                if (!point) return;
                emitEvent(name, {{x: point[0], y: point[1]}});
            }};
            chart.getZr().on('click', e => report('{CANVAS_CLICK_EVENT}', e));
        }}, 500);
    '''


def center_on_js(x: float, y: float) -> str:
    return f'''
        if (window.storyChart) {{
            window.storyChart.setOption({{
                animationDurationUpdate: {CENTER_ANIMATION_MS},
                series: [{{center: {json.dumps([x, y])}}}]
            }});
        }}
    '''


def setup_canvas_handlers(
    workspace: StoryWorkspace,
    show_panel: Callable[[str], None],
    close_panel: Callable[[], None],
    show_context_menu: Callable[[ContextTarget], None],
):
    """
    Set up all canvas event handlers.

    Args:
        workspace: StoryWorkspace of the open project
        show_panel: Opens the property panel for a visual node id
        close_panel: Closes the property panel
        show_context_menu: Opens the context menu for a node

    Returns:
        Dict with handler functions for binding to UI events
    """

    def center_on(node_id: str) -> None:
        node = workspace.projection().find(node_id)
        if node is not None:
            ui.run_javascript(center_on_js(node.x, node.y))

    def apply(effect: CanvasEffect) -> None:
        if effect.close_panel:
            close_panel()
        if effect.open_panel:
            show_panel(effect.open_panel)
        if effect.center_on:
            center_on(effect.center_on)
        if effect.context_menu:
            show_context_menu(effect.context_menu)

    def guarded(action: Callable[[], CanvasEffect]) -> None:
        try:
            apply(action())
        except StoryError as e:
            logger.warning(f"Canvas interaction failed: {e}")
            ui.notify(str(e), type='negative', position='bottom')

    def node_from_event(event) -> Optional[str]:
        raw = event.args if hasattr(event, 'args') else event
        return resolve_node_id(normalize_click_payload(raw), workspace)

    def handle_chart_click(event):
        node_id = node_from_event(event)
        if node_id:
            guarded(lambda: workspace.handle_click(node_id))

    def handle_chart_dblclick(event):
        node_id = node_from_event(event)
        if node_id:
            guarded(lambda: workspace.handle_double_click(node_id))

    def handle_chart_contextmenu(event):
        raw = event.args if hasattr(event, 'args') else event
        payload = normalize_click_payload(raw)
        node_id = resolve_node_id(payload, workspace)
        if not node_id:
            return
        data = payload.get('data') or {}
        guarded(lambda: workspace.handle_right_click(node_id, data.get('x', 0.0), data.get('y', 0.0)))

    def handle_canvas_click(event):
        args = event.args or {}
        if 'x' not in args or 'y' not in args:
            return
        guarded(lambda: workspace.handle_canvas_click(float(args['x']), float(args['y'])))

    def handle_keyboard(e):
        shortcut = shortcut_from_event(e)
        if shortcut is None:
            return
        try:
            handled = workspace.handle_shortcut(shortcut)
        except StoryError as err:
            ui.notify(str(err), type='negative', position='bottom')
            return
        if shortcut.action == 'undo':
            if handled:
                close_panel()
                ui.notify('Undone', position='bottom', timeout=800)
            else:
                ui.notify('Nothing to undo', position='bottom', timeout=800, color='info')

    return {
        'handle_chart_click': handle_chart_click,
        'handle_chart_dblclick': handle_chart_dblclick,
        'handle_chart_contextmenu': handle_chart_contextmenu,
        'handle_canvas_click': handle_canvas_click,
        'handle_keyboard': handle_keyboard,
        'apply_effect': apply,
    }
