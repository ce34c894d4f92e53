from __future__ import annotations

import math
import random
from typing import Iterable, Optional, Tuple

import esper

from .config import Settings
from .content import Content
from .ecs_components import (
    Boss,
    BossPattern,
    Bullet,
    Companion,
    CompanionKind,
    Element,
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


def _color(v, default: tuple[int, int, int]) -> tuple[int, int, int]:
    try:
        a, b, c = v
        return int(a), int(b), int(c)
    except (TypeError, ValueError):
        return default


def create_player(world: esper.World, settings: Settings, pos: Optional[Tuple[float, float]] = None) -> int:
    pc = settings.player
    if pos is None:
        pos = (settings.window.width / 2 - pc.width / 2, settings.window.height - pc.spawn_offset_y)
    return world.create_entity(
        Position(float(pos[0]), float(pos[1])),
        Hitbox(pc.width, pc.height),
        Health(current=pc.max_health, max_hp=pc.max_health),
        Player(speed=pc.speed, base_speed=pc.speed, shoot_delay=pc.shoot_delay),
        Sprite((0, 255, 0)),
    )


def create_enemy(world: esper.World, settings: Settings, x: float, y: Optional[float] = None) -> int:
    ec = settings.enemy
    return world.create_entity(
        Position(float(x), float(-ec.height if y is None else y)),
        Hitbox(ec.width, ec.height),
        Health(current=ec.health, max_hp=ec.health),
        Enemy(speed=ec.speed, score=ec.score, experience=ec.experience),
        Sprite((255, 0, 0)),
    )


def create_boss(world: esper.World, settings: Settings, content: Content, x: Optional[float] = None, y: float = -50.0) -> int:
    bc = settings.boss
    data = content.boss(bc.kind)
    patterns = [BossPattern(p) for p in data.get("patterns", [p.value for p in BossPattern])]
    if x is None:
        x = settings.window.width / 2 - bc.width / 2
    return world.create_entity(
        Position(float(x), float(y)),
        Hitbox(bc.width, bc.height),
        Health(current=bc.health, max_hp=bc.health),
        Enemy(
            speed=bc.speed,
            score=settings.enemy.score * bc.reward_multiplier,
            experience=settings.enemy.experience * bc.reward_multiplier,
        ),
        Boss(kind=bc.kind, patterns=patterns),
        Sprite(_color(data.get("color"), (255, 0, 0))),
    )


def create_bullet(
    world: esper.World,
    content: Content,
    cx: float,
    y: float,
    angle: float,
    weapon: WeaponKind,
    damage: float,
    speed_mul: float = 1.0,
    elements: Iterable[Element] = (),
    target: Optional[int] = None,
) -> int:
    wd = content.weapon(weapon.value)
    w, h = float(wd.get("width", 5)), float(wd.get("height", 10))
    homing = bool(wd.get("homing", False))
    return world.create_entity(
        Position(cx - w / 2, float(y)),
        Hitbox(w, h),
        Bullet(
            angle=angle,
            speed=float(wd.get("speed", 420.0)) * speed_mul,
            damage=damage,
            weapon=weapon,
            elements=list(elements),
            target=target if homing else None,
            turn_rate=float(wd.get("turn_rate", 0.0)) if homing else 0.0,
        ),
        Sprite(_color(wd.get("color"), (255, 255, 255))),
    )


def create_enemy_bullet(world: esper.World, settings: Settings, cx: float, cy: float, vx: float, vy: float) -> int:
    size = settings.enemy.bullet_size
    return world.create_entity(
        Position(cx - size / 2, cy - size / 2),
        Hitbox(size, size),
        Velocity(vx, vy),
        EnemyBullet(damage=settings.enemy.bullet_damage),
        Sprite((255, 0, 0)),
    )


def create_power_up(world: esper.World, settings: Settings, x: float, kind: PowerUpKind) -> int:
    pc = settings.power_ups
    return world.create_entity(
        Position(float(x), float(-pc.height)),
        Hitbox(pc.width, pc.height),
        Velocity(0.0, pc.speed),
        PowerUp(kind),
        Sprite({PowerUpKind.HEALTH: (0, 255, 0), PowerUpKind.SPEED: (0, 255, 255), PowerUpKind.SPREAD: (255, 0, 255)}[kind]),
    )


def create_particles(
    world: esper.World,
    settings: Settings,
    rng: random.Random,
    x: float,
    y: float,
    colors: list[tuple[int, int, int]],
    count: int,
    speed_mul: float = 1.0,
) -> None:
    spd = settings.particles.speed * speed_mul
    for i in range(count):
        size = rng.uniform(2.0, 5.0)
        world.create_entity(
            Position(float(x), float(y)),
            Hitbox(size, size),
            Velocity(rng.uniform(-spd, spd), rng.uniform(-spd, spd)),
            Particle(),
            Sprite(colors[i % len(colors)]),
        )


def create_companion(world: esper.World, content: Content, owner: int, kind: CompanionKind, now: float = 0.0) -> int:
    cd = content.companion(kind.value)
    owner_pos = world.component_for_entity(owner, Position)
    return world.create_entity(
        Position(owner_pos.x, owner_pos.y),
        Hitbox(float(cd.get("width", 12)), float(cd.get("height", 12))),
        Companion(owner=owner, kind=kind, last_shot=now, last_heal=now),
        Sprite(_color(cd.get("color"), (0, 200, 255))),
    )


def radial_angles(count: int, offset: float = 0.0) -> list[float]:
    return [offset + (math.pi * 2 / count) * i for i in range(max(1, count))]
