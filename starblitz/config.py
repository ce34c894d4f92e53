from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass
class WindowConfig:
    width: int = 800
    height: int = 600
    title: str = "Starblitz"
    fps: int = 60


@dataclass
class PlayerConfig:
    width: int = 40
    height: int = 40
    speed: float = 300.0
    max_health: int = 100
    shoot_delay: float = 0.25
    spawn_offset_y: int = 50


@dataclass
class EnemyConfig:
    width: int = 30
    height: int = 30
    speed: float = 120.0
    health: int = 50
    contact_damage: int = 20
    spawn_interval: float = 2.0
    score: int = 10
    experience: int = 10
    bullet_size: int = 6
    bullet_damage: int = 10


@dataclass
class BossConfig:
    kind: str = "dreadnought"
    width: int = 80
    height: int = 80
    health: int = 200
    speed: float = 60.0
    hover_y: float = 100.0
    sway: float = 100.0
    sway_speed: float = 1.2
    attack_delay: float = 1.0
    pattern_switch: float = 2.0
    reward_multiplier: int = 5
    spawn_score: int = 100


@dataclass
class PowerUpConfig:
    width: int = 20
    height: int = 20
    speed: float = 120.0
    interval: float = 10.0
    heal: int = 30
    boosted_speed: float = 480.0
    buff_duration: float = 5.0


@dataclass
class ComboConfig:
    window: float = 2.0


@dataclass
class UltimateConfig:
    max_charge: float = 100.0
    charge_rate: float = 30.0
    projectiles: int = 36
    speed_multiplier: float = 1.5
    duration: float = 1.0


@dataclass
class ProgressionConfig:
    first_threshold: float = 100.0
    threshold_growth: float = 1.5
    skill_points_per_level: int = 2
    damage_per_level: float = 0.2


@dataclass
class ParticleConfig:
    speed: float = 180.0
    gravity: float = 360.0
    fade_per_second: float = 1.2
    explosion_count: int = 20
    pickup_count: int = 15
    elemental_count: int = 8


@dataclass
class RelayConfig:
    host: str = "0.0.0.0"
    port: int = 3001
    stale_after: float = 10.0
    sweep_interval: float = 60.0


@dataclass
class Settings:
    window: WindowConfig = field(default_factory=WindowConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    enemy: EnemyConfig = field(default_factory=EnemyConfig)
    boss: BossConfig = field(default_factory=BossConfig)
    power_ups: PowerUpConfig = field(default_factory=PowerUpConfig)
    combo: ComboConfig = field(default_factory=ComboConfig)
    ultimate: UltimateConfig = field(default_factory=UltimateConfig)
    progression: ProgressionConfig = field(default_factory=ProgressionConfig)
    particles: ParticleConfig = field(default_factory=ParticleConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)


def load_settings(path: str | Path = "config/settings.yaml") -> Settings:
    p = Path(path)
    raw: Dict[str, Any] = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    win = raw.get("window", {})
    window = WindowConfig(
        width=int(win.get("width", 800)),
        height=int(win.get("height", 600)),
        title=str(win.get("title", "Starblitz")),
        fps=int(win.get("fps", 60)),
    )

    pl = raw.get("player", {})
    player = PlayerConfig(
        width=int(pl.get("width", 40)),
        height=int(pl.get("height", 40)),
        speed=float(pl.get("speed", 300.0)),
        max_health=int(pl.get("max_health", 100)),
        shoot_delay=float(pl.get("shoot_delay", 0.25)),
        spawn_offset_y=int(pl.get("spawn_offset_y", 50)),
    )

    en = raw.get("enemy", {})
    enemy = EnemyConfig(
        width=int(en.get("width", 30)),
        height=int(en.get("height", 30)),
        speed=float(en.get("speed", 120.0)),
        health=int(en.get("health", 50)),
        contact_damage=int(en.get("contact_damage", 20)),
        spawn_interval=float(en.get("spawn_interval", 2.0)),
        score=int(en.get("score", 10)),
        experience=int(en.get("experience", 10)),
        bullet_size=int(en.get("bullet", {}).get("size", 6)),
        bullet_damage=int(en.get("bullet", {}).get("damage", 10)),
    )

    bs = raw.get("boss", {})
    boss = BossConfig(
        kind=str(bs.get("kind", "dreadnought")),
        width=int(bs.get("width", 80)),
        height=int(bs.get("height", 80)),
        health=int(bs.get("health", 200)),
        speed=float(bs.get("speed", 60.0)),
        hover_y=float(bs.get("hover_y", 100.0)),
        sway=float(bs.get("sway", 100.0)),
        sway_speed=float(bs.get("sway_speed", 1.2)),
        attack_delay=float(bs.get("attack_delay", 1.0)),
        pattern_switch=float(bs.get("pattern_switch", 2.0)),
        reward_multiplier=int(bs.get("reward_multiplier", 5)),
        spawn_score=int(bs.get("spawn_score", 100)),
    )

    pu = raw.get("power_ups", {})
    power_ups = PowerUpConfig(
        width=int(pu.get("width", 20)),
        height=int(pu.get("height", 20)),
        speed=float(pu.get("speed", 120.0)),
        interval=float(pu.get("interval", 10.0)),
        heal=int(pu.get("heal", 30)),
        boosted_speed=float(pu.get("boosted_speed", 480.0)),
        buff_duration=float(pu.get("buff_duration", 5.0)),
    )

    combo = ComboConfig(window=float(raw.get("combo", {}).get("window", 2.0)))

    ul = raw.get("ultimate", {})
    ultimate = UltimateConfig(
        max_charge=float(ul.get("max_charge", 100.0)),
        charge_rate=float(ul.get("charge_rate", 30.0)),
        projectiles=int(ul.get("projectiles", 36)),
        speed_multiplier=float(ul.get("speed_multiplier", 1.5)),
        duration=float(ul.get("duration", 1.0)),
    )

    pr = raw.get("progression", {})
    progression = ProgressionConfig(
        first_threshold=float(pr.get("first_threshold", 100.0)),
        threshold_growth=float(pr.get("threshold_growth", 1.5)),
        skill_points_per_level=int(pr.get("skill_points_per_level", 2)),
        damage_per_level=float(pr.get("damage_per_level", 0.2)),
    )

    pa = raw.get("particles", {})
    particles = ParticleConfig(
        speed=float(pa.get("speed", 180.0)),
        gravity=float(pa.get("gravity", 360.0)),
        fade_per_second=float(pa.get("fade_per_second", 1.2)),
        explosion_count=int(pa.get("explosion_count", 20)),
        pickup_count=int(pa.get("pickup_count", 15)),
        elemental_count=int(pa.get("elemental_count", 8)),
    )

    rl = raw.get("relay", {})
    relay = RelayConfig(
        host=str(rl.get("host", "0.0.0.0")),
        port=int(rl.get("port", 3001)),
        stale_after=float(rl.get("stale_after", 10.0)),
        sweep_interval=float(rl.get("sweep_interval", 60.0)),
    )

    return Settings(
        window=window,
        player=player,
        enemy=enemy,
        boss=boss,
        power_ups=power_ups,
        combo=combo,
        ultimate=ultimate,
        progression=progression,
        particles=particles,
        relay=relay,
    )
