from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class WeaponKind(str, Enum):
    LASER = "laser"
    PLASMA = "plasma"
    MISSILE = "missile"


class Element(str, Enum):
    FIRE = "fire"
    ICE = "ice"
    LIGHTNING = "lightning"
    VOID = "void"


class StatusKind(str, Enum):
    BURN = "burn"
    FREEZE = "freeze"
    CHAIN = "chain"
    IMPLODE = "implode"


class AbilityKind(str, Enum):
    TIME_STOP = "time_stop"
    BLACK_HOLE = "black_hole"
    SHIELD = "shield"


class PowerUpKind(str, Enum):
    HEALTH = "health"
    SPEED = "speed"
    SPREAD = "spread"


class CompanionKind(str, Enum):
    COMBAT_DRONE = "combat_drone"
    SHIELD_DRONE = "shield_drone"
    HEALER_DRONE = "healer_drone"


class BossPattern(str, Enum):
    SPIRAL = "spiral"
    TARGETED = "targeted"
    SCATTER = "scatter"


ELEMENT_CYCLE = [Element.FIRE, Element.ICE, Element.LIGHTNING, Element.VOID]


@dataclass
class Position:
    x: float
    y: float


@dataclass
class Velocity:
    x: float = 0.0
    y: float = 0.0


@dataclass
class Hitbox:
    width: float
    height: float


@dataclass
class Sprite:
    color: tuple[int, int, int]


@dataclass
class Health:
    current: float
    max_hp: float


@dataclass
class Player:
    speed: float
    base_speed: float
    shoot_delay: float
    last_shot: float = float("-inf")
    weapon: WeaponKind = WeaponKind.LASER
    element: Optional[Element] = None
    spread_shot: bool = False
    dual_shot: bool = False
    shield_active: bool = False
    # Buff expiry on the simulation clock; a newer pickup pushes these out.
    speed_until: float = 0.0
    spread_until: float = 0.0


@dataclass
class Enemy:
    speed: float
    score: int
    experience: int
    # Speed restored once the sim clock passes frozen_until.
    base_speed: Optional[float] = None
    frozen_until: float = 0.0

    def __post_init__(self) -> None:
        if self.base_speed is None:
            self.base_speed = self.speed


@dataclass
class Boss:
    kind: str
    patterns: List[BossPattern]
    pattern: int = 0
    pattern_time: float = 0.0
    last_attack: float = 0.0
    angle: float = 0.0


@dataclass
class Bullet:
    angle: float  # radians, 0 points straight up
    speed: float
    damage: float
    weapon: WeaponKind = WeaponKind.LASER
    elements: List[Element] = field(default_factory=list)
    target: Optional[int] = None
    turn_rate: float = 0.0


@dataclass
class EnemyBullet:
    damage: float


@dataclass
class Particle:
    alpha: float = 1.0


@dataclass
class PowerUp:
    kind: PowerUpKind


@dataclass
class Companion:
    owner: int
    kind: CompanionKind
    angle: float = 0.0
    distance: float = 50.0
    angular_speed: float = 1.2
    last_shot: float = 0.0
    last_heal: float = 0.0
