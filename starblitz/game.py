from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import esper

from .collision import entity_center
from .config import Settings, load_settings
from .content import Content
from .context import GameContext, GameEvent
from .ecs_components import (
    ELEMENT_CYCLE,
    AbilityKind,
    CompanionKind,
    Element,
    Health,
    Player,
    WeaponKind,
)
from .ecs_systems import (
    AbilityCooldownSystem,
    BlackHoleSystem,
    BulletSystem,
    ComboSystem,
    CompanionSystem,
    EnemyBulletSystem,
    EnemySpawnSystem,
    EnemySystem,
    ParticleSystem,
    PlayerSystem,
    PowerUpSpawnSystem,
    PowerUpSystem,
    TimerSystem,
    UltimateChargeSystem,
    bullet_damage,
)
from .effects import StatusEffects
from .factories import create_bullet, create_companion, create_player, radial_angles
from .progression import check_achievements, unlock_skill

log = logging.getLogger(__name__)

Listener = Callable[[GameEvent], None]


class Game:
    """Owns the world and drives one frame at a time.

    Nothing here touches pygame, so the whole simulation runs headless; the
    window, HUD and sound hang off the event listeners registered by
    :func:`run_game`.
    """

    def __init__(self, settings: Optional[Settings] = None, content: Optional[Content] = None, seed: int = 2025) -> None:
        self.settings = settings or Settings()
        self.content = content or Content()
        self.seed = seed
        self.listeners: List[Listener] = []
        self._setup_world()

    def _setup_world(self) -> None:
        s = self.settings
        self.world = esper.World()
        self.ctx = GameContext(rng=random.Random(self.seed), width=s.window.width, height=s.window.height)
        prog = self.ctx.progression
        prog.experience_to_next = s.progression.first_threshold
        prog.threshold_growth = s.progression.threshold_growth
        prog.points_per_level = s.progression.skill_points_per_level
        self.ctx.player_eid = create_player(self.world, s)
        self.effects = StatusEffects(self.world, self.ctx, self.content, s)
        self._last_hud: Optional[Tuple[Any, ...]] = None

        # Descending priority is the per-frame order.
        self.world.add_processor(TimerSystem(self.ctx), priority=110)
        self.world.add_processor(AbilityCooldownSystem(self.ctx), priority=100)
        self.world.add_processor(BlackHoleSystem(self.ctx, self.content), priority=95)
        self.world.add_processor(ComboSystem(self.ctx), priority=90)
        self.world.add_processor(UltimateChargeSystem(self.ctx, s), priority=85)
        self.world.add_processor(PowerUpSpawnSystem(self.ctx, s), priority=80)
        self.world.add_processor(PowerUpSystem(self.ctx, s), priority=75)
        self.world.add_processor(EnemySpawnSystem(self.ctx, s, self.content), priority=70)
        self.world.add_processor(PlayerSystem(self.ctx, s, self.content), priority=65)
        self.world.add_processor(CompanionSystem(self.ctx, s, self.content), priority=62)
        self.world.add_processor(BulletSystem(self.ctx), priority=60)
        self.world.add_processor(EnemySystem(self.ctx, s, self.content, self.effects), priority=55)
        self.world.add_processor(EnemyBulletSystem(self.ctx, s), priority=52)
        self.world.add_processor(ParticleSystem(self.ctx, s), priority=50)

    # Frame driver
    def tick(self, delta_ms: float) -> None:
        if self.ctx.halted:
            return
        self.world.process(delta_ms / 1000.0)
        self._emit_hud()
        self._flush()

    def add_listener(self, listener: Listener) -> None:
        self.listeners.append(listener)

    def _flush(self) -> None:
        events, self.ctx.outbox = self.ctx.outbox, []
        for event in events:
            for listener in self.listeners:
                listener(event)

    def _emit_hud(self) -> None:
        snap = self.snapshot()
        key = tuple(snap[k] for k in ("score", "health", "combo", "skill_points", "ultimate", "level"))
        if key != self._last_hud:
            self._last_hud = key
            self.ctx.emit("hud", **snap)

    def snapshot(self) -> Dict[str, Any]:
        prog = self.ctx.progression
        health = max_health = 0.0
        if self.ctx.player_eid is not None and self.world.entity_exists(self.ctx.player_eid):
            hp = self.world.component_for_entity(self.ctx.player_eid, Health)
            health, max_health = hp.current, hp.max_hp
        return {
            "score": prog.score,
            "health": health,
            "max_health": max_health,
            "combo": prog.combo,
            "skill_points": prog.skill_points,
            "ultimate": self.ctx.ultimate_charge,
            "level": prog.level,
            "experience": prog.experience,
            "experience_to_next": prog.experience_to_next,
        }

    def toggle_pause(self) -> bool:
        if self.ctx.game_over:
            return False
        self.ctx.paused = not self.ctx.paused
        log.info("paused" if self.ctx.paused else "resumed")
        return self.ctx.paused

    def restart(self) -> None:
        self._setup_world()
        log.info("new game started")

    def set_input(self, pressed: Iterable[str], mouse: Optional[Tuple[float, float]] = None) -> None:
        self.ctx.input.pressed = set(pressed)
        if mouse is not None:
            self.ctx.input.mouse = (float(mouse[0]), float(mouse[1]))

    def _player(self) -> Optional[Player]:
        eid = self.ctx.player_eid
        if eid is None or not self.world.entity_exists(eid):
            return None
        return self.world.component_for_entity(eid, Player)

    # Player actions
    def activate_ability(self, kind: AbilityKind | str) -> bool:
        try:
            kind = AbilityKind(kind)
        except ValueError:
            log.debug("unknown ability %r", kind)
            return False
        if self.ctx.halted:
            return False
        data = self.content.ability(kind.value)
        duration = float(data.get("duration", 1.0)) * self.ctx.modifiers.ability_duration[kind]
        cooldown = float(data.get("cooldown", 10.0))
        if not self.ctx.abilities.activate(kind, duration, cooldown, on_end=lambda: self._ability_ended(kind)):
            return False
        if kind is AbilityKind.SHIELD:
            player = self._player()
            if player is not None:
                player.shield_active = True
        elif kind is AbilityKind.BLACK_HOLE:
            self.ctx.black_hole_pos = self.ctx.input.mouse
        self.ctx.emit("ability", kind=kind.value, active=True, duration=duration, cooldown=cooldown)
        log.info("%s activated for %.1fs", kind.value, duration)
        self._flush()
        return True

    def _ability_ended(self, kind: AbilityKind) -> None:
        if kind is AbilityKind.SHIELD:
            player = self._player()
            if player is not None:
                player.shield_active = False
        elif kind is AbilityKind.BLACK_HOLE:
            self.ctx.black_hole_pos = None
        self.ctx.emit("ability", kind=kind.value, active=False)

    def activate_ultimate(self) -> bool:
        uc = self.settings.ultimate
        if self.ctx.halted or self.ctx.ultimate_active or self.ctx.ultimate_charge < uc.max_charge:
            return False
        peid = self.ctx.player_eid
        if peid is None or not self.world.entity_exists(peid):
            return False
        self.ctx.ultimate_active = True
        self.ctx.ultimate_charge = 0.0
        player = self.world.component_for_entity(peid, Player)
        cx, cy = entity_center(self.world, peid)
        damage = bullet_damage(self.ctx, self.content, self.settings, player.weapon)
        elements = [player.element] if player.element is not None else []
        for angle in radial_angles(uc.projectiles):
            create_bullet(
                self.world, self.content, cx, cy, angle, player.weapon, damage,
                speed_mul=uc.speed_multiplier, elements=elements,
            )
        prog = self.ctx.progression
        prog.ultimates_used += 1
        for key in check_achievements(prog):
            self.ctx.emit("achievement", key=key, name=self.content.achievement_name(key))
        self.ctx.timers.schedule(uc.duration, self._ultimate_ended)
        self.ctx.emit("ultimate", projectiles=uc.projectiles)
        log.info("ultimate fired")
        self._flush()
        return True

    def _ultimate_ended(self) -> None:
        self.ctx.ultimate_active = False

    def select_weapon(self, kind: WeaponKind | str) -> bool:
        try:
            kind = WeaponKind(kind)
        except ValueError:
            log.debug("unknown weapon %r", kind)
            return False
        player = self._player()
        if player is None:
            return False
        player.weapon = kind
        return True

    def cycle_element(self) -> Optional[Element]:
        player = self._player()
        if player is None:
            return None
        if player.element is None:
            player.element = ELEMENT_CYCLE[0]
        else:
            player.element = ELEMENT_CYCLE[(ELEMENT_CYCLE.index(player.element) + 1) % len(ELEMENT_CYCLE)]
        return player.element

    def add_companion(self, kind: CompanionKind | str) -> Optional[int]:
        try:
            kind = CompanionKind(kind)
        except ValueError:
            log.debug("unknown companion %r", kind)
            return None
        peid = self.ctx.player_eid
        if peid is None or not self.world.entity_exists(peid):
            return None
        return create_companion(self.world, self.content, peid, kind, now=self.ctx.time)

    def unlock_skill(self, category: str, name: str) -> bool:
        ok = unlock_skill(self.world, self.ctx, self.content, category, name)
        if ok:
            self.ctx.emit("skill", category=category, name=name)
            self._flush()
        return ok


def run_game() -> None:
    import pygame

    from .audio import AudioBus
    from .render import Renderer
    from .ui import GameUI

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    pygame.init()
    settings = load_settings()
    screen = pygame.display.set_mode((settings.window.width, settings.window.height))
    pygame.display.set_caption(settings.window.title)
    clock = pygame.time.Clock()

    game = Game(settings)
    ui = GameUI(settings.window.width, settings.window.height, game.content)
    audio = AudioBus()
    renderer = Renderer(screen)

    game.add_listener(ui.on_event)
    game.add_listener(audio.on_event)
    ui.on_unlock = game.unlock_skill

    moves = {
        "left": (pygame.K_LEFT, pygame.K_a),
        "right": (pygame.K_RIGHT, pygame.K_d),
        "up": (pygame.K_UP, pygame.K_w),
        "down": (pygame.K_DOWN, pygame.K_s),
        "fire": (pygame.K_SPACE,),
    }
    weapon_keys = {pygame.K_1: WeaponKind.LASER, pygame.K_2: WeaponKind.PLASMA, pygame.K_3: WeaponKind.MISSILE}
    ability_keys = {pygame.K_e: AbilityKind.TIME_STOP, pygame.K_r: AbilityKind.BLACK_HOLE, pygame.K_f: AbilityKind.SHIELD}
    companion_keys = {pygame.K_z: CompanionKind.COMBAT_DRONE, pygame.K_x: CompanionKind.SHIELD_DRONE, pygame.K_c: CompanionKind.HEALER_DRONE}

    running = True
    while running:
        dt_ms = clock.tick(settings.window.fps)
        for event in pygame.event.get():
            ui.process_event(event)
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_p:
                    game.toggle_pause()
                elif event.key == pygame.K_RETURN and game.ctx.game_over:
                    game.restart()
                    ui.reset()
                elif event.key == pygame.K_TAB:
                    ui.toggle_skill_tree(game.ctx.progression)
                elif event.key == pygame.K_q:
                    game.activate_ultimate()
                elif event.key == pygame.K_v:
                    element = game.cycle_element()
                    ui.show_banner(f"Element: {element.value if element else '-'}", 1.5)
                elif event.key in weapon_keys:
                    game.select_weapon(weapon_keys[event.key])
                elif event.key in ability_keys:
                    game.activate_ability(ability_keys[event.key])
                elif event.key in companion_keys:
                    game.add_companion(companion_keys[event.key])

        keys = pygame.key.get_pressed()
        game.set_input(
            [action for action, codes in moves.items() if any(keys[c] for c in codes)],
            pygame.mouse.get_pos(),
        )
        game.tick(dt_ms)

        renderer.draw(game.world, game.ctx)
        ui.update(dt_ms / 1000.0)
        ui.draw(screen)
        pygame.display.flip()
    pygame.quit()
