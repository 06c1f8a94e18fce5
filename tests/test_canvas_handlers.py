from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from src.edit.controller import CanvasEffect
from src.edit.handlers import (
    canvas_listener_js,
    normalize_click_payload,
    resolve_node_id,
    setup_canvas_handlers,
)
from src.errors import EntityNotFoundError
from src.projection import GraphProjection, NodeKind, VisualNode


class DummyWorkspace:
    def __init__(self, node_ids):
        self._projection = GraphProjection(nodes=tuple(
            VisualNode(id=nid, kind=NodeKind.PLOT_POINT, label=nid, x=1.0, y=2.0, entity_id=nid)
            for nid in node_ids
        ))
        self.handle_click = MagicMock(return_value=CanvasEffect(open_panel="pp-1", center_on="pp-1"))
        self.handle_canvas_click = MagicMock(side_effect=EntityNotFoundError("act", "gone"))

    def projection(self):
        return self._projection


def test_normalize_click_payload_handles_dict():
    payload = {'componentType': 'series', 'name': 'pp-1'}
    assert normalize_click_payload(payload) is payload


def test_normalize_click_payload_handles_list():
    payload = normalize_click_payload(['series', 'node', 'pp-2', {'x': 5}])
    assert payload == {
        'componentType': 'series',
        'dataType': 'node',
        'name': 'pp-2',
        'data': {'x': 5},
    }


def test_normalize_click_payload_handles_string():
    assert normalize_click_payload('pp-3') == {'name': 'pp-3'}
    assert normalize_click_payload(None) == {}


def test_resolve_node_id_checks_projection():
    ws = DummyWorkspace(['pp-1'])
    assert resolve_node_id({'componentType': 'series', 'name': 'pp-1'}, ws) == 'pp-1'
    assert resolve_node_id({'componentType': 'series', 'name': 'pp-9'}, ws) is None


@pytest.mark.parametrize("payload", [
    {'componentType': 'title', 'name': 'pp-1'},
    {'componentType': 'series', 'dataType': 'edge', 'name': 'pp-1'},
    {'componentType': 'series'},
])
def test_resolve_node_id_ignores_non_node_events(payload):
    assert resolve_node_id(payload, DummyWorkspace(['pp-1'])) is None


def test_listener_script_targets_chart():
    script = canvas_listener_js(42)
    assert 'getElement(42)' in script
    assert 'story_canvas_click' in script
    assert 'dblclick' not in script


def test_chart_click_opens_panel_and_centers():
    ws = DummyWorkspace(['pp-1'])
    show_panel = MagicMock()
    with patch('src.edit.handlers.ui') as ui_mock:
        handlers = setup_canvas_handlers(ws, show_panel, MagicMock(), MagicMock())
        handlers['handle_chart_click'](SimpleNamespace(args={'componentType': 'series', 'name': 'pp-1'}))

    ws.handle_click.assert_called_once_with('pp-1')
    show_panel.assert_called_once_with('pp-1')
    ui_mock.run_javascript.assert_called_once()


def test_story_errors_are_notified():
    ws = DummyWorkspace([])
    with patch('src.edit.handlers.ui') as ui_mock:
        handlers = setup_canvas_handlers(ws, MagicMock(), MagicMock(), MagicMock())
        handlers['handle_canvas_click'](SimpleNamespace(args={'x': 1, 'y': 2}))

    ws.handle_canvas_click.assert_called_once_with(1.0, 2.0)
    ui_mock.notify.assert_called_once()
