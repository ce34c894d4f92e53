from __future__ import annotations

import logging
import math
from typing import Optional

import esper

from .collision import (
    boxes_overlap,
    center,
    distance,
    entities_overlap,
    entity_center,
    in_playfield,
    nearest,
    within_vertical_bounds,
)
from .config import Settings
from .content import Content
from .context import GameContext
from .ecs_components import (
    ELEMENT_CYCLE,
    AbilityKind,
    Boss,
    BossPattern,
    Bullet,
    Companion,
    CompanionKind,
    Enemy,
    EnemyBullet,
    Health,
    Hitbox,
    Particle,
    Player,
    Position,
    PowerUp,
    PowerUpKind,
    Sprite,
    Velocity,
    WeaponKind,
)
from .effects import StatusEffects
from .factories import (
    create_boss,
    create_bullet,
    create_enemy,
    create_enemy_bullet,
    create_particles,
    create_power_up,
    radial_angles,
)
from .progression import check_achievements

log = logging.getLogger(__name__)


def _norm(x: float, y: float) -> tuple[float, float, float]:
    mag = math.hypot(x, y)
    if mag == 0:
        return 0.0, 0.0, 0.0
    return x / mag, y / mag, mag


def _wrap(angle: float) -> float:
    return (angle + math.pi) % (2 * math.pi) - math.pi


def _player_eid(world: esper.World, ctx: GameContext) -> Optional[int]:
    eid = ctx.player_eid
    if eid is None or not world.entity_exists(eid):
        return None
    return eid


def _player_down(world: esper.World, ctx: GameContext) -> None:
    ctx.game_over = True
    ctx.emit("game_over", score=ctx.progression.score, level=ctx.progression.level)
    log.info("game over: score %d, level %d", ctx.progression.score, ctx.progression.level)


def bullet_damage(ctx: GameContext, content: Content, settings: Settings, weapon: WeaponKind) -> float:
    """Weapon base damage scaled by skill multipliers and the player's level."""
    base = float(content.weapon(weapon.value).get("damage", 25))
    level_bonus = 1.0 + settings.progression.damage_per_level * (ctx.progression.level - 1)
    return base * ctx.modifiers.weapon_damage[weapon] * level_bonus


class TimerSystem(esper.Processor):
    """Advances the simulation clock and fires every deferred action now due."""

    def __init__(self, ctx: GameContext) -> None:
        super().__init__()
        self.ctx = ctx

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        self.ctx.time += dt
        self.ctx.timers.run_due(self.ctx.time)


class AbilityCooldownSystem(esper.Processor):
    def __init__(self, ctx: GameContext) -> None:
        super().__init__()
        self.ctx = ctx

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        self.ctx.abilities.refresh(self.ctx.time)


class BlackHoleSystem(esper.Processor):
    def __init__(self, ctx: GameContext, content: Content) -> None:
        super().__init__()
        self.ctx = ctx
        data = content.ability(AbilityKind.BLACK_HOLE.value)
        self.radius = float(data.get("radius", 200))
        self.pull = float(data.get("pull", 6.0))
        self.dps = float(data.get("dps", 10))

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        if not self.ctx.abilities.is_active(AbilityKind.BLACK_HOLE) or self.ctx.black_hole_pos is None:
            return
        hx, hy = self.ctx.black_hole_pos
        radius = self.radius * self.ctx.modifiers.ability_radius[AbilityKind.BLACK_HOLE]
        step = min(1.0, self.pull * dt)
        for _, (pos, box, health, _enemy) in sorted(
            self.world.get_components(Position, Hitbox, Health, Enemy), key=lambda row: row[0]
        ):
            cx, cy = center(pos, box)
            if distance((cx, cy), (hx, hy)) >= radius:
                continue
            pos.x += (hx - cx) * step
            pos.y += (hy - cy) * step
            health.current -= self.dps * dt


class ComboSystem(esper.Processor):
    def __init__(self, ctx: GameContext) -> None:
        super().__init__()
        self.ctx = ctx

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        if self.ctx.progression.decay_combo(dt):
            log.debug("combo expired")


class UltimateChargeSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings) -> None:
        super().__init__()
        self.ctx = ctx
        self.max_charge = settings.ultimate.max_charge
        self.rate = settings.ultimate.charge_rate

    def process(self, dt: float) -> None:
        if self.ctx.halted or self.ctx.ultimate_active:
            return
        if self.ctx.ultimate_charge < self.max_charge:
            gain = self.rate * self.ctx.modifiers.ultimate_charge_mul * dt
            self.ctx.ultimate_charge = min(self.max_charge, self.ctx.ultimate_charge + gain)


class PowerUpSpawnSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings) -> None:
        super().__init__()
        self.ctx = ctx
        self.settings = settings
        self.interval = settings.power_ups.interval
        self.timer = 0.0

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        self.timer += dt
        if self.timer >= self.interval:
            self.timer -= self.interval
            kind = self.ctx.rng.choice(list(PowerUpKind))
            x = self.ctx.rng.uniform(0, self.ctx.width - self.settings.power_ups.width)
            create_power_up(self.world, self.settings, x, kind)


class PowerUpSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings) -> None:
        super().__init__()
        self.ctx = ctx
        self.settings = settings

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        peid = _player_eid(self.world, self.ctx)
        for eid, (pos, vel, _box, pu) in sorted(
            self.world.get_components(Position, Velocity, Hitbox, PowerUp), key=lambda row: row[0]
        ):
            pos.x += vel.x * dt
            pos.y += vel.y * dt
            if peid is not None and entities_overlap(self.world, eid, peid):
                self._apply(peid, pu.kind)
                x, y = entity_center(self.world, eid)
                color = self.world.component_for_entity(eid, Sprite).color
                create_particles(self.world, self.settings, self.ctx.rng, x, y, [color], self.settings.particles.pickup_count)
                self.world.delete_entity(eid, immediate=True)
                self.ctx.emit("powerup", kind=pu.kind.value)
            elif not within_vertical_bounds(pos, self.ctx.height):
                self.world.delete_entity(eid, immediate=True)

    def _apply(self, peid: int, kind: PowerUpKind) -> None:
        pc = self.settings.power_ups
        player = self.world.component_for_entity(peid, Player)
        if kind is PowerUpKind.HEALTH:
            health = self.world.component_for_entity(peid, Health)
            health.current = min(health.max_hp, health.current + pc.heal)
        elif kind is PowerUpKind.SPEED:
            player.speed = pc.boosted_speed
            player.speed_until = self.ctx.time + pc.buff_duration
            self.ctx.timers.schedule(pc.buff_duration, self._expire_speed, peid)
        elif kind is PowerUpKind.SPREAD:
            player.spread_shot = True
            player.spread_until = self.ctx.time + pc.buff_duration
            self.ctx.timers.schedule(pc.buff_duration, self._expire_spread, peid)

    def _expire_speed(self, peid: int) -> None:
        if not self.world.entity_exists(peid):
            return
        player = self.world.component_for_entity(peid, Player)
        # An earlier pickup's timer must not cut a refreshed buff short.
        if self.ctx.timers.now >= player.speed_until:
            player.speed = player.base_speed

    def _expire_spread(self, peid: int) -> None:
        if not self.world.entity_exists(peid):
            return
        player = self.world.component_for_entity(peid, Player)
        if self.ctx.timers.now >= player.spread_until:
            player.spread_shot = False


class EnemySpawnSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings, content: Content) -> None:
        super().__init__()
        self.ctx = ctx
        self.settings = settings
        self.content = content
        self.interval = settings.enemy.spawn_interval
        self.timer = 0.0

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        self.timer += dt
        if self.timer >= self.interval:
            self.timer -= self.interval
            self._spawn()

    def boss_due(self) -> bool:
        score = self.ctx.progression.score
        threshold = self.settings.boss.spawn_score
        if score <= 0 or threshold <= 0 or score % threshold != 0:
            return False
        return not self.world.get_component(Boss)

    def _spawn(self) -> None:
        if self.boss_due():
            eid = create_boss(self.world, self.settings, self.content)
            log.info("boss %s spawned at score %d", self.settings.boss.kind, self.ctx.progression.score)
            self.ctx.emit("boss", eid=eid)
            return
        x = self.ctx.rng.uniform(0, self.ctx.width - self.settings.enemy.width)
        create_enemy(self.world, self.settings, x)


class PlayerSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings, content: Content) -> None:
        super().__init__()
        self.ctx = ctx
        self.settings = settings
        self.content = content

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        peid = _player_eid(self.world, self.ctx)
        if peid is None:
            return
        pos = self.world.component_for_entity(peid, Position)
        box = self.world.component_for_entity(peid, Hitbox)
        player = self.world.component_for_entity(peid, Player)
        pressed = self.ctx.input.pressed

        dx = dy = 0.0
        if "left" in pressed:
            dx -= 1
        if "right" in pressed:
            dx += 1
        if "up" in pressed:
            dy -= 1
        if "down" in pressed:
            dy += 1
        ndx, ndy, _ = _norm(dx, dy)
        pos.x = max(0.0, min(self.ctx.width - box.width, pos.x + ndx * player.speed * dt))
        pos.y = max(0.0, min(self.ctx.height - box.height, pos.y + ndy * player.speed * dt))

        if "fire" in pressed and self.ctx.time - player.last_shot > player.shoot_delay:
            self.fire(peid)

    def fire(self, peid: int) -> None:
        pos = self.world.component_for_entity(peid, Position)
        box = self.world.component_for_entity(peid, Hitbox)
        player = self.world.component_for_entity(peid, Player)
        damage = bullet_damage(self.ctx, self.content, self.settings, player.weapon)
        elements = []
        if player.element is not None:
            elements.append(player.element)
            if self.ctx.modifiers.element_harmony:
                nxt = ELEMENT_CYCLE[(ELEMENT_CYCLE.index(player.element) + 1) % len(ELEMENT_CYCLE)]
                elements.append(nxt)
        target = None
        if self.content.weapon(player.weapon.value).get("homing"):
            target = nearest(self.world, center(pos, box), Enemy)

        angles = [0.0, -0.3, 0.3] if player.spread_shot else [0.0]
        offsets = [-10.0, 10.0] if player.dual_shot else [0.0]
        cx = pos.x + box.width / 2
        for angle in angles:
            for off in offsets:
                create_bullet(
                    self.world, self.content, cx + off, pos.y, angle, player.weapon, damage,
                    elements=elements, target=target,
                )
        player.last_shot = self.ctx.time
        self.ctx.emit("shoot", weapon=player.weapon.value)


class CompanionSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings, content: Content) -> None:
        super().__init__()
        self.ctx = ctx
        self.settings = settings
        self.content = content

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        for eid, (pos, box, comp) in sorted(
            self.world.get_components(Position, Hitbox, Companion), key=lambda row: row[0]
        ):
            if not self.world.entity_exists(comp.owner):
                self.world.delete_entity(eid, immediate=True)
                continue
            ox, oy = entity_center(self.world, comp.owner)
            comp.angle = (comp.angle + comp.angular_speed * dt) % (2 * math.pi)
            pos.x = ox + math.cos(comp.angle) * comp.distance - box.width / 2
            pos.y = oy + math.sin(comp.angle) * comp.distance - box.height / 2
            data = self.content.companion(comp.kind.value)
            if comp.kind is CompanionKind.COMBAT_DRONE:
                self._shoot(pos, box, comp, data)
            elif comp.kind is CompanionKind.SHIELD_DRONE:
                self._block(pos, box, data)
            elif comp.kind is CompanionKind.HEALER_DRONE:
                self._heal(comp, data)

    def _shoot(self, pos: Position, box: Hitbox, comp: Companion, data: dict) -> None:
        if self.ctx.time - comp.last_shot < float(data.get("fire_rate", 1.0)):
            return
        cx, cy = center(pos, box)
        target = nearest(self.world, (cx, cy), Enemy, radius=float(data.get("range", 200)))
        if target is None:
            return
        tx, ty = entity_center(self.world, target)
        heading = math.atan2(tx - cx, -(ty - cy))
        damage = bullet_damage(self.ctx, self.content, self.settings, WeaponKind.LASER)
        create_bullet(self.world, self.content, cx, cy, heading, WeaponKind.LASER, damage)
        comp.last_shot = self.ctx.time

    def _block(self, pos: Position, box: Hitbox, data: dict) -> None:
        origin = center(pos, box)
        radius = float(data.get("radius", 60))
        chance = float(data.get("block_chance", 0.5))
        for beid, (bpos, bbox, _eb) in sorted(
            self.world.get_components(Position, Hitbox, EnemyBullet), key=lambda row: row[0]
        ):
            if distance(origin, center(bpos, bbox)) < radius and self.ctx.rng.random() < chance:
                self.world.delete_entity(beid, immediate=True)

    def _heal(self, comp: Companion, data: dict) -> None:
        if self.ctx.time - comp.last_heal < float(data.get("heal_interval", 5.0)):
            return
        comp.last_heal = self.ctx.time
        health = self.world.try_component(comp.owner, Health)
        if health is not None and health.current < health.max_hp:
            health.current = min(health.max_hp, health.current + float(data.get("heal_amount", 5)))


class BulletSystem(esper.Processor):
    def __init__(self, ctx: GameContext) -> None:
        super().__init__()
        self.ctx = ctx

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        frozen = self.ctx.abilities.is_active(AbilityKind.TIME_STOP)
        for eid, (pos, box, bullet) in sorted(
            self.world.get_components(Position, Hitbox, Bullet), key=lambda row: row[0]
        ):
            if bullet.target is not None:
                if not self.world.entity_exists(bullet.target):
                    bullet.target = None
                elif not frozen:
                    self._steer(pos, box, bullet, dt)
            pos.x += math.sin(bullet.angle) * bullet.speed * dt
            pos.y -= math.cos(bullet.angle) * bullet.speed * dt
            if not in_playfield(pos, self.ctx.width, self.ctx.height):
                self.world.delete_entity(eid, immediate=True)

    def _steer(self, pos: Position, box: Hitbox, bullet: Bullet, dt: float) -> None:
        cx, cy = center(pos, box)
        tx, ty = entity_center(self.world, bullet.target)
        desired = math.atan2(tx - cx, -(ty - cy))
        diff = _wrap(desired - bullet.angle)
        limit = bullet.turn_rate * dt
        bullet.angle = _wrap(bullet.angle + max(-limit, min(limit, diff)))


class EnemySystem(esper.Processor):
    """Moves enemies and resolves bullet hits, kills and player contact."""

    def __init__(self, ctx: GameContext, settings: Settings, content: Content, effects: StatusEffects) -> None:
        super().__init__()
        self.ctx = ctx
        self.settings = settings
        self.content = content
        self.effects = effects

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        frozen = self.ctx.abilities.is_active(AbilityKind.TIME_STOP)
        peid = _player_eid(self.world, self.ctx)
        for eid in sorted(e for e, _ in self.world.get_component(Enemy)):
            if not self.world.entity_exists(eid):
                continue
            pos = self.world.component_for_entity(eid, Position)
            box = self.world.component_for_entity(eid, Hitbox)
            health = self.world.component_for_entity(eid, Health)
            # Status effects and the black hole can finish an enemy off between visits.
            if health.current <= 0:
                self._kill(eid)
                continue
            if not frozen:
                self._move(eid, pos, box, dt)

            if self._resolve_hits(eid, pos, box, health):
                continue

            if peid is not None and entities_overlap(self.world, eid, peid):
                self._ram(eid, peid)
                if self.ctx.game_over:
                    return
                continue
            if not within_vertical_bounds(pos, self.ctx.height):
                self.world.delete_entity(eid, immediate=True)

    def _move(self, eid: int, pos: Position, box: Hitbox, dt: float) -> None:
        enemy = self.world.component_for_entity(eid, Enemy)
        boss = self.world.try_component(eid, Boss)
        if boss is None:
            pos.y += enemy.speed * dt
            return
        bc = self.settings.boss
        if pos.y < bc.hover_y:
            pos.y = min(bc.hover_y, pos.y + enemy.speed * dt)
            return
        boss.angle += bc.sway_speed * dt
        pos.x = self.ctx.width / 2 - box.width / 2 + math.sin(boss.angle) * bc.sway
        boss.pattern_time += dt
        if boss.pattern_time >= bc.pattern_switch:
            boss.pattern_time -= bc.pattern_switch
            boss.pattern = (boss.pattern + 1) % len(boss.patterns)
        if self.ctx.time - boss.last_attack >= bc.attack_delay:
            boss.last_attack = self.ctx.time
            self._attack(center(pos, box), boss)

    def _attack(self, origin: tuple[float, float], boss: Boss) -> None:
        cx, cy = origin
        pattern = boss.patterns[boss.pattern]
        if pattern is BossPattern.SPIRAL:
            shots = [(a, 180.0) for a in radial_angles(8, boss.angle)]
        elif pattern is BossPattern.TARGETED:
            peid = _player_eid(self.world, self.ctx)
            if peid is None:
                return
            px, py = entity_center(self.world, peid)
            aim = math.atan2(py - cy, px - cx)
            shots = [(aim + spread, 240.0) for spread in (-0.2, 0.0, 0.2)]
        else:
            shots = [(self.ctx.rng.uniform(0, 2 * math.pi), 120.0) for _ in range(12)]
        for angle, speed in shots:
            create_enemy_bullet(self.world, self.settings, cx, cy, math.cos(angle) * speed, math.sin(angle) * speed)

    def _resolve_hits(self, eid: int, pos: Position, box: Hitbox, health: Health) -> bool:
        """Apply every overlapping bullet; True when the enemy was killed."""
        for beid, (bpos, bbox, bullet) in sorted(
            self.world.get_components(Position, Hitbox, Bullet), key=lambda row: row[0]
        ):
            if not boxes_overlap(pos.x, pos.y, box.width, box.height, bpos.x, bpos.y, bbox.width, bbox.height):
                continue
            color = self.world.component_for_entity(beid, Sprite).color
            hx, hy = center(bpos, bbox)
            self.world.delete_entity(beid, immediate=True)
            health.current -= bullet.damage
            create_particles(self.world, self.settings, self.ctx.rng, hx, hy, [color], self.settings.particles.elemental_count)
            for element in bullet.elements:
                if self.world.entity_exists(eid):
                    self.effects.apply_element(element, eid)
            if health.current <= 0:
                self._kill(eid)
                return True
        return False

    def _kill(self, eid: int) -> None:
        enemy = self.world.component_for_entity(eid, Enemy)
        is_boss = self.world.has_component(eid, Boss)
        prog = self.ctx.progression
        levels = prog.register_kill(enemy.score, enemy.experience, self.settings.combo.window, boss=is_boss)
        if levels:
            self.ctx.emit("level_up", level=prog.level, skill_points=prog.skill_points)
            log.info("level up to %d (%d skill points)", prog.level, prog.skill_points)
        if is_boss:
            log.info("boss defeated, score %d", prog.score)
        for key in check_achievements(prog):
            self.ctx.emit("achievement", key=key, name=self.content.achievement_name(key))
            log.info("achievement unlocked: %s", key)
        self._explode(eid)
        self.world.delete_entity(eid, immediate=True)

    def _ram(self, eid: int, peid: int) -> None:
        player = self.world.component_for_entity(peid, Player)
        health = self.world.component_for_entity(peid, Health)
        if not player.shield_active:
            health.current = max(0.0, health.current - self.settings.enemy.contact_damage)
        self._explode(eid)
        self.world.delete_entity(eid, immediate=True)
        if health.current <= 0:
            _player_down(self.world, self.ctx)

    def _explode(self, eid: int) -> None:
        x, y = entity_center(self.world, eid)
        color = self.world.component_for_entity(eid, Sprite).color
        create_particles(
            self.world, self.settings, self.ctx.rng, x, y,
            [color, (255, 165, 0), (255, 255, 0)], self.settings.particles.explosion_count,
        )
        self.ctx.emit("explosion", x=x, y=y)


class EnemyBulletSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings) -> None:
        super().__init__()
        self.ctx = ctx
        self.settings = settings

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        frozen = self.ctx.abilities.is_active(AbilityKind.TIME_STOP)
        peid = _player_eid(self.world, self.ctx)
        for eid, (pos, vel, _box, eb) in sorted(
            self.world.get_components(Position, Velocity, Hitbox, EnemyBullet), key=lambda row: row[0]
        ):
            if not frozen:
                pos.x += vel.x * dt
                pos.y += vel.y * dt
            if peid is not None and entities_overlap(self.world, eid, peid):
                self._hit_player(eid, peid, pos, vel, eb)
                if self.ctx.game_over:
                    return
            elif not in_playfield(pos, self.ctx.width, self.ctx.height):
                self.world.delete_entity(eid, immediate=True)

    def _hit_player(self, eid: int, peid: int, pos: Position, vel: Velocity, eb: EnemyBullet) -> None:
        player = self.world.component_for_entity(peid, Player)
        if player.shield_active:
            if self.ctx.modifiers.shield_reflect:
                self._reflect(pos, vel, eb)
            self.world.delete_entity(eid, immediate=True)
            return
        health = self.world.component_for_entity(peid, Health)
        health.current = max(0.0, health.current - eb.damage)
        x, y = entity_center(self.world, eid)
        create_particles(self.world, self.settings, self.ctx.rng, x, y, [(255, 0, 0)], self.settings.particles.elemental_count)
        self.world.delete_entity(eid, immediate=True)
        if health.current <= 0:
            _player_down(self.world, self.ctx)

    def _reflect(self, pos: Position, vel: Velocity, eb: EnemyBullet) -> None:
        size = self.settings.enemy.bullet_size
        ship = self.world.component_for_entity(self.ctx.player_eid, Position)
        # Vertical velocity flipped; heading 0 is straight up.
        self.world.create_entity(
            Position(pos.x, ship.y - size - 1),
            Hitbox(size, size),
            Bullet(angle=math.atan2(vel.x, vel.y), speed=math.hypot(vel.x, vel.y), damage=eb.damage),
            Sprite((0, 255, 255)),
        )


class ParticleSystem(esper.Processor):
    def __init__(self, ctx: GameContext, settings: Settings) -> None:
        super().__init__()
        self.ctx = ctx
        self.gravity = settings.particles.gravity
        self.fade = settings.particles.fade_per_second

    def process(self, dt: float) -> None:
        if self.ctx.halted:
            return
        for eid, (pos, vel, particle) in sorted(
            self.world.get_components(Position, Velocity, Particle), key=lambda row: row[0]
        ):
            pos.x += vel.x * dt
            pos.y += vel.y * dt
            vel.y += self.gravity * dt
            particle.alpha -= self.fade * dt
            if particle.alpha <= 0:
                self.world.delete_entity(eid, immediate=True)
