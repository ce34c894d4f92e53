from __future__ import annotations

import pygame
import esper

from .context import GameContext
from .ecs_components import (
    AbilityKind,
    Boss,
    Companion,
    Health,
    Hitbox,
    Particle,
    Player,
    Position,
    PowerUp,
    Sprite,
)


class Renderer:
    """Draws the world after each frame; reads components, never writes them."""

    def __init__(self, surface: pygame.Surface) -> None:
        self.surf = surface
        self.font = pygame.font.Font(None, 48)

    def draw(self, world: esper.World, ctx: GameContext) -> None:
        self.surf.fill((0, 0, 0))
        if ctx.black_hole_pos is not None and ctx.abilities.is_active(AbilityKind.BLACK_HOLE):
            x, y = ctx.black_hole_pos
            pygame.draw.circle(self.surf, (80, 0, 120), (int(x), int(y)), 24)
        for eid, _sprite in sorted(world.get_component(Sprite), key=lambda row: row[0]):
            self.draw_entity(world, eid)
        if ctx.abilities.is_active(AbilityKind.TIME_STOP):
            self._overlay((40, 40, 120, 60))
        if ctx.game_over:
            self._overlay((0, 0, 0, 160))
            self._center_text("GAME OVER - press Enter", (255, 80, 80))
        elif ctx.paused:
            self._overlay((0, 0, 0, 120))
            self._center_text("Paused", (255, 255, 255))

    def draw_entity(self, world: esper.World, eid: int) -> None:
        pos = world.component_for_entity(eid, Position)
        box = world.component_for_entity(eid, Hitbox)
        color = world.component_for_entity(eid, Sprite).color
        rect = pygame.Rect(int(pos.x), int(pos.y), max(1, int(box.width)), max(1, int(box.height)))

        particle = world.try_component(eid, Particle)
        if particle is not None:
            alpha = int(255 * max(0.0, min(1.0, particle.alpha)))
            dot = pygame.Surface(rect.size, pygame.SRCALPHA)
            dot.fill((*color, alpha))
            self.surf.blit(dot, rect.topleft)
            return
        if world.has_component(eid, Companion) or world.has_component(eid, PowerUp):
            pygame.draw.ellipse(self.surf, color, rect)
            return
        pygame.draw.rect(self.surf, color, rect)

        player = world.try_component(eid, Player)
        if player is not None and player.shield_active:
            pygame.draw.circle(self.surf, (0, 255, 255), rect.center, max(rect.width, rect.height), 2)
        if world.has_component(eid, Boss):
            health = world.component_for_entity(eid, Health)
            ratio = max(0.0, min(1.0, health.current / max(1.0, health.max_hp)))
            pygame.draw.rect(self.surf, (60, 60, 60), pygame.Rect(rect.x, rect.y - 8, rect.width, 4))
            pygame.draw.rect(self.surf, (255, 0, 0), pygame.Rect(rect.x, rect.y - 8, int(rect.width * ratio), 4))

    def _overlay(self, rgba: tuple[int, int, int, int]) -> None:
        overlay = pygame.Surface(self.surf.get_size(), pygame.SRCALPHA)
        overlay.fill(rgba)
        self.surf.blit(overlay, (0, 0))

    def _center_text(self, text: str, color: tuple[int, int, int]) -> None:
        label = self.font.render(text, True, color)
        w, h = self.surf.get_size()
        self.surf.blit(label, (w // 2 - label.get_width() // 2, h // 2 - label.get_height() // 2))
