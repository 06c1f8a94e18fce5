"""
Keyboard shortcuts of the canvas.

- Ctrl/Cmd + Z (without Shift): undo
- Ctrl/Cmd + 1..5: switch to the act with that order
"""

from dataclasses import dataclass
from typing import Optional

from src.edit.constants import MAX_ACT_SHORTCUT


@dataclass(frozen=True)
class Shortcut:
    action: str  # 'undo' | 'switch_act'
    act_order: Optional[int] = None


def resolve_shortcut(key: str, ctrl: bool = False, meta: bool = False,
                     shift: bool = False) -> Optional[Shortcut]:
    if not (ctrl or meta) or not key:
        return None

    key = key.lower()
    if key == 'z':
        return None if shift else Shortcut('undo')
    if key.isdigit() and 1 <= int(key) <= MAX_ACT_SHORTCUT:
        return Shortcut('switch_act', int(key))
    return None


def shortcut_from_event(e) -> Optional[Shortcut]:
    """Resolve a NiceGUI KeyEventArguments; only keydown events count."""
    if not e.action.keydown or e.action.repeat:
        return None
    return resolve_shortcut(
        e.key.name,
        ctrl=e.modifiers.ctrl,
        meta=e.modifiers.meta,
        shift=e.modifiers.shift,
    )
