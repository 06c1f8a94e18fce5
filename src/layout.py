"""
Layout engine for the story canvas.

Three concerns live here:
- position allocation for new plot points (ring search around the centroid)
- overlap repair for loaded projects (grid-scan reassignment of duplicates)
- satellite placement of scenes and scene detail nodes (polar formulas)

All randomness goes through an injectable random.Random so tests can seed it.
"""

import logging
import math
import random
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from src.models import Position, Project, Scene

logger = logging.getLogger(__name__)

DETAIL_BASE_ANGLES: Dict[str, float] = {
    "character": 0.0,
    "item": math.pi / 2,
    "setting": math.pi,
}


@dataclass
class LayoutConfig:
    """Geometry constants of the canvas layout."""
    # Ring search
    min_separation: float = 150.0
    radius_step: float = 50.0
    angle_step: float = math.pi / 8
    max_search_radius: float = 1000.0
    default_origin: Tuple[float, float] = (100.0, 100.0)
    fallback_spread: float = 500.0

    # Grid scan (overlap repair)
    grid_size: float = 200.0
    grid_start: Tuple[float, float] = (100.0, 100.0)
    grid_max_cols: int = 5
    grid_max_rows: int = 20
    grid_tolerance: float = 0.8
    scene_grid_size: float = 100.0

    # Satellites
    scene_radius: float = 120.0
    detail_radius: float = 80.0
    detail_angle_step: float = math.pi / 6


def satellite_position(center: Position, index: int, total: int, radius: float = 120.0) -> Position:
    """Scene i of n around its plot point: theta = i * 2pi / max(n, 1)."""
    angle = index * 2 * math.pi / max(total, 1)
    return Position(center.x + radius * math.cos(angle), center.y + radius * math.sin(angle))


def detail_position(center: Position, kind: str, index: int,
                    radius: float = 80.0, angle_step: float = math.pi / 6) -> Position:
    """Character/setting/item node around its scene, fanned out per kind."""
    if kind not in DETAIL_BASE_ANGLES:
        raise ValueError(f"Unknown detail kind: {kind}")
    angle = DETAIL_BASE_ANGLES[kind] + index * angle_step
    return Position(center.x + radius * math.cos(angle), center.y + radius * math.sin(angle))


def centroid(positions: List[Position]) -> Position:
    n = len(positions)
    return Position(sum(p.x for p in positions) / n, sum(p.y for p in positions) / n)


class LayoutEngine:
    """Allocates and repairs canvas positions."""

    def __init__(self, config: Optional[LayoutConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or LayoutConfig()
        self._rng = rng or random.Random()

    # --- Allocation ---

    def allocate_position(self, existing: Iterable[Optional[Position]]) -> Position:
        """
        Pick a position for a new plot point.

        Searches rings around the centroid of the existing positions, from
        min_separation outward, and returns the first candidate farther than
        min_separation from every existing position. Falls back to a random
        offset from the centroid once max_search_radius is exhausted.
        """
        cfg = self.config
        valid = [p for p in existing if p is not None and p.is_valid()]
        if not valid:
            return Position(*cfg.default_origin)

        center = centroid(valid)
        steps = max(1, int(round(2 * math.pi / cfg.angle_step)))
        radius = cfg.min_separation
        while radius <= cfg.max_search_radius:
            for k in range(steps):
                angle = k * cfg.angle_step
                candidate = Position(center.x + radius * math.cos(angle),
                                     center.y + radius * math.sin(angle))
                if all(candidate.distance_to(p) > cfg.min_separation for p in valid):
                    return candidate
            radius += cfg.radius_step

        logger.warning(f"Position search exhausted at radius {cfg.max_search_radius}; using random offset")
        return Position(
            center.x + self._rng.uniform(-cfg.fallback_spread, cfg.fallback_spread),
            center.y + self._rng.uniform(-cfg.fallback_spread, cfg.fallback_spread),
        )

    def grid_position(self, occupied: List[Position],
                      start: Optional[Tuple[float, float]] = None,
                      cell: Optional[float] = None) -> Position:
        """Row-major grid scan for the first cell clear of every occupied position."""
        cfg = self.config
        sx, sy = start or cfg.grid_start
        size = cell or cfg.grid_size
        min_dist = size * cfg.grid_tolerance

        for row in range(cfg.grid_max_rows + 1):
            for col in range(cfg.grid_max_cols):
                candidate = Position(sx + col * size, sy + row * size)
                if all(candidate.distance_to(p) >= min_dist for p in occupied):
                    return candidate

        return Position(sx + self._rng.random() * cfg.fallback_spread,
                        sy + self._rng.random() * cfg.fallback_spread)

    # --- Overlap repair ---

    def repair_overlaps(self, project: Project) -> int:
        """
        Reassign plot points and scenes that share an exact position.

        The first member of each duplicate group keeps its position. Scenes
        sitting at the origin are always reassigned. Mutates the project and
        returns how many entities moved.
        """
        moved = 0

        groups: "OrderedDict[Tuple[float, float], list]" = OrderedDict()
        for pp in project.plot_points:
            groups.setdefault(pp.position.as_tuple(), []).append(pp)

        occupied = [pp.position for pp in project.plot_points]
        for members in groups.values():
            for pp in members[1:]:
                new_pos = self.grid_position(occupied)
                logger.info(f"Repositioned overlapping plot point {pp.id} to ({new_pos.x}, {new_pos.y})")
                pp.position = new_pos
                occupied.append(new_pos)
                moved += 1

        for pp in project.plot_points:
            moved += self._repair_scenes(pp.position, pp.scenes)

        return moved

    def _repair_scenes(self, anchor: Position, scenes: List[Scene]) -> int:
        groups: "OrderedDict[Tuple[float, float], List[Scene]]" = OrderedDict()
        for scene in scenes:
            if scene.position is None:
                continue
            groups.setdefault(scene.position.as_tuple(), []).append(scene)

        to_move: List[Scene] = []
        for key, members in groups.items():
            if key == (0.0, 0.0):
                to_move.extend(members)
            else:
                to_move.extend(members[1:])
        if not to_move:
            return 0

        cfg = self.config
        start = (anchor.x + cfg.scene_radius, anchor.y)
        moving_ids = {s.id for s in to_move}
        occupied = [s.position for s in scenes if s.position is not None and s.id not in moving_ids]
        occupied.append(anchor)
        for scene in to_move:
            new_pos = self.grid_position(occupied, start=start, cell=cfg.scene_grid_size)
            scene.position = new_pos
            occupied.append(new_pos)
        return len(to_move)

    # --- Satellites ---

    def scene_position(self, anchor: Position, index: int, total: int) -> Position:
        return satellite_position(anchor, index, total, self.config.scene_radius)

    def detail_position(self, anchor: Position, kind: str, index: int) -> Position:
        return detail_position(anchor, kind, index, self.config.detail_radius, self.config.detail_angle_step)
