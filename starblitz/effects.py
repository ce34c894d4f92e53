"""Elemental status effects applied to enemies.

Effects hold enemy ids, never component references across frames, so an
enemy removed mid-effect just turns the remaining ticks into no-ops.
"""
from __future__ import annotations

import logging
from typing import List

import esper

from .collision import entity_center, distance, nearest
from .config import Settings
from .content import Content
from .context import GameContext
from .ecs_components import Element, Enemy, Health, StatusKind
from .factories import _color, create_particles

log = logging.getLogger(__name__)


class StatusEffects:
    def __init__(self, world: esper.World, ctx: GameContext, content: Content, settings: Settings) -> None:
        self.world = world
        self.ctx = ctx
        self.content = content
        self.settings = settings

    def apply_element(self, element: Element, target: int) -> List[int]:
        data = self.content.element(element.value)
        return self.apply(StatusKind(data.get("effect", "burn")), target, element)

    def apply(self, kind: StatusKind, target: int, element: Element | None = None) -> List[int]:
        """Apply ``kind`` to ``target`` and return the enemies it touched."""
        if not self._alive(target):
            return []
        if element is None:
            element = next(e for e in Element if self.content.element(e.value).get("effect") == kind.value)
        data = self.content.element(element.value)
        color = _color(data.get("color"), (255, 255, 255))
        log.debug("%s on enemy %d", kind.value, target)
        if kind is StatusKind.BURN:
            return self._burn(target, data, color)
        if kind is StatusKind.FREEZE:
            return self._freeze(target, data, color)
        if kind is StatusKind.CHAIN:
            return self._chain(target, data)
        return self._implode(target, data)

    def _alive(self, eid: int) -> bool:
        return self.world.entity_exists(eid) and self.world.has_component(eid, Enemy)

    def _sparkle(self, eid: int, color: tuple[int, int, int]) -> None:
        x, y = entity_center(self.world, eid)
        create_particles(
            self.world, self.settings, self.ctx.rng, x, y, [color],
            self.settings.particles.elemental_count, speed_mul=2.0,
        )

    def _burn(self, target: int, data: dict, color) -> List[int]:
        ticks = int(data.get("ticks", 5))
        interval = float(data.get("interval", 0.5))
        damage = float(data.get("damage", 5)) * self.ctx.modifiers.burn_damage_mul

        def _tick(remaining: int) -> None:
            if remaining <= 0 or not self._alive(target):
                return
            health = self.world.component_for_entity(target, Health)
            if health.current <= 0:
                return
            health.current -= damage
            self._sparkle(target, color)
            if remaining > 1:
                self.ctx.timers.schedule(interval, _tick, remaining - 1)

        self.ctx.timers.schedule(interval, _tick, ticks)
        return [target]

    def _freeze(self, target: int, data: dict, color) -> List[int]:
        enemy = self.world.component_for_entity(target, Enemy)
        duration = float(data.get("duration", 2.0)) * self.ctx.modifiers.freeze_duration_mul
        enemy.speed = enemy.base_speed * float(data.get("factor", 0.3))
        enemy.frozen_until = self.ctx.timers.now + duration
        self._sparkle(target, color)

        def _thaw() -> None:
            if not self._alive(target):
                return
            if self.world.component_for_entity(target, Health).current <= 0:
                return
            thawed = self.world.component_for_entity(target, Enemy)
            if self.ctx.timers.now >= thawed.frozen_until:
                thawed.speed = thawed.base_speed

        self.ctx.timers.schedule(duration, _thaw)
        return [target]

    def _chain(self, target: int, data: dict) -> List[int]:
        hops = int(data.get("hops", 3)) + self.ctx.modifiers.chain_bonus
        radius = float(data.get("radius", 100))
        damage = float(data.get("damage", 15))
        visited = {target}
        last = target
        struck: List[int] = []
        for _ in range(hops):
            nxt = nearest(self.world, entity_center(self.world, last), Enemy, radius=radius, exclude=visited)
            if nxt is None:
                break
            self.world.component_for_entity(nxt, Health).current -= damage
            visited.add(nxt)
            struck.append(nxt)
            last = nxt
        self.ctx.emit("chain", source=target, targets=list(struck))
        return struck

    def _implode(self, target: int, data: dict) -> List[int]:
        origin = entity_center(self.world, target)
        radius = float(data.get("radius", 50)) * self.ctx.modifiers.implode_radius_mul
        damage = float(data.get("damage", 30))
        struck = []
        for eid, (health, _enemy) in sorted(self.world.get_components(Health, Enemy), key=lambda row: row[0]):
            if distance(origin, entity_center(self.world, eid)) < radius:
                health.current -= damage
                struck.append(eid)
        self.ctx.emit("implode", x=origin[0], y=origin[1], radius=radius)
        return struck
