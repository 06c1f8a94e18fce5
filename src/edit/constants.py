"""
Shared constants for the canvas interaction layer.

The JS snippets injected by handlers.py read the same event names, so keep
them in sync.
"""

# Camera animation when centering on a selected node (milliseconds)
CENTER_ANIMATION_MS = 500

# Act switch shortcuts cover modifier + 1..5
MAX_ACT_SHORTCUT = 5

# Custom event emitted from the browser
CANVAS_CLICK_EVENT = 'story_canvas_click'

# Chart event payload keys requested from ECharts
CHART_EVENT_KEYS = ['componentType', 'dataType', 'name', 'data']
