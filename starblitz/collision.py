from __future__ import annotations

import math
from typing import Optional, Tuple

import esper

from .ecs_components import Hitbox, Position


def boxes_overlap(
    ax: float, ay: float, aw: float, ah: float,
    bx: float, by: float, bw: float, bh: float,
) -> bool:
    """Strict axis-aligned overlap; touching edges do not count."""
    return ax < bx + bw and ax + aw > bx and ay < by + bh and ay + ah > by


def entities_overlap(world: esper.World, a: int, b: int) -> bool:
    ap, ab = world.component_for_entity(a, Position), world.component_for_entity(a, Hitbox)
    bp, bb = world.component_for_entity(b, Position), world.component_for_entity(b, Hitbox)
    return boxes_overlap(ap.x, ap.y, ab.width, ab.height, bp.x, bp.y, bb.width, bb.height)


def center(pos: Position, box: Hitbox) -> Tuple[float, float]:
    return pos.x + box.width / 2, pos.y + box.height / 2


def entity_center(world: esper.World, eid: int) -> Tuple[float, float]:
    return center(world.component_for_entity(eid, Position), world.component_for_entity(eid, Hitbox))


def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def within_vertical_bounds(pos: Position, height: float) -> bool:
    return pos.y < height


def in_playfield(pos: Position, width: float, height: float) -> bool:
    return 0 < pos.x < width and 0 < pos.y < height


def nearest(
    world: esper.World,
    origin: Tuple[float, float],
    tag: type,
    radius: Optional[float] = None,
    exclude: Optional[set] = None,
) -> Optional[int]:
    """Closest live entity carrying ``tag``, optionally inside ``radius``."""
    best: Optional[int] = None
    best_d = math.inf
    for eid, (pos, box, _tag) in sorted(world.get_components(Position, Hitbox, tag), key=lambda row: row[0]):
        if exclude and eid in exclude:
            continue
        d = distance(origin, center(pos, box))
        if radius is not None and d > radius:
            continue
        if d < best_d:
            best_d = d
            best = eid
    return best
