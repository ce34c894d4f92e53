from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Set

from .ecs_components import AbilityKind, Player, WeaponKind

if TYPE_CHECKING:
    import esper

    from .content import Content
    from .context import GameContext

log = logging.getLogger(__name__)


@dataclass
class Modifiers:
    """Permanent per-session effects bought in the skill tree."""

    weapon_damage: Dict[WeaponKind, float] = field(default_factory=lambda: {k: 1.0 for k in WeaponKind})
    burn_damage_mul: float = 1.0
    freeze_duration_mul: float = 1.0
    chain_bonus: int = 0
    implode_radius_mul: float = 1.0
    element_harmony: bool = False
    ability_duration: Dict[AbilityKind, float] = field(default_factory=lambda: {k: 1.0 for k in AbilityKind})
    ability_radius: Dict[AbilityKind, float] = field(default_factory=lambda: {k: 1.0 for k in AbilityKind})
    shield_reflect: bool = False
    ultimate_charge_mul: float = 1.0


@dataclass
class Progression:
    score: int = 0
    level: int = 1
    experience: float = 0.0
    experience_to_next: float = 100.0
    threshold_growth: float = 1.5
    points_per_level: int = 2
    skill_points: int = 0
    unlocked_skills: Set[str] = field(default_factory=set)
    combo: int = 0
    combo_timer: float = 0.0
    max_combo: int = 0
    kills: int = 0
    bosses_killed: int = 0
    ultimates_used: int = 0
    achievements: Dict[str, bool] = field(default_factory=dict)

    def gain_experience(self, amount: float) -> int:
        """Add experience and return how many levels were gained.

        One large award may cross several thresholds, each one 1.5x the last.
        """
        self.experience += amount
        gained = 0
        while self.experience_to_next > 0 and self.experience >= self.experience_to_next:
            self.experience -= self.experience_to_next
            self.level += 1
            self.experience_to_next *= self.threshold_growth
            self.skill_points += self.points_per_level
            gained += 1
        return gained

    @property
    def combo_multiplier(self) -> int:
        return max(1, self.combo)

    def register_kill(self, base_score: int, experience: float, combo_window: float, boss: bool = False) -> int:
        points = base_score * self.combo_multiplier
        self.score += points
        self.kills += 1
        if boss:
            self.bosses_killed += 1
        levels = self.gain_experience(experience)
        self.combo += 1
        self.combo_timer = combo_window
        self.max_combo = max(self.max_combo, self.combo)
        return levels

    def decay_combo(self, dt: float) -> bool:
        """Run down the combo window; True when the combo just expired."""
        if self.combo <= 0:
            return False
        self.combo_timer -= dt
        if self.combo_timer <= 0:
            self.combo = 0
            self.combo_timer = 0.0
            return True
        return False


ACHIEVEMENTS: Dict[str, Callable[[Progression], bool]] = {
    "first_blood": lambda p: p.score >= 10,
    "combo_master": lambda p: p.combo >= 10,
    "boss_slayer": lambda p: p.bosses_killed > 0,
    "ultimate_power": lambda p: p.ultimates_used > 0,
}


def check_achievements(progression: Progression) -> List[str]:
    earned = []
    for key, predicate in ACHIEVEMENTS.items():
        if progression.achievements.get(key):
            continue
        if predicate(progression):
            progression.achievements[key] = True
            earned.append(key)
    return earned


def unlock_skill(world: esper.World, ctx: GameContext, content: Content, category: str, name: str) -> bool:
    skill = content.skill(category, name)
    if not skill:
        log.debug("unknown skill %s/%s", category, name)
        return False
    prog = ctx.progression
    cost = int(skill.get("cost", 0))
    if name in prog.unlocked_skills or prog.skill_points < cost:
        return False
    prog.skill_points -= cost
    prog.unlocked_skills.add(name)
    apply_skill_effect(world, ctx, skill)
    log.info("unlocked skill %s (%d points left)", name, prog.skill_points)
    return True


def apply_skill_effect(world: esper.World, ctx: GameContext, skill: dict) -> None:
    effect = str(skill.get("effect", ""))
    amount = float(skill.get("amount", 0))
    mods = ctx.modifiers
    player = None
    if ctx.player_eid is not None and world.entity_exists(ctx.player_eid):
        player = world.try_component(ctx.player_eid, Player)

    if effect == "weapon_damage_mul":
        kind = WeaponKind(skill["weapon"])
        mods.weapon_damage[kind] *= amount
    elif effect == "dual_shot":
        if player is not None:
            player.dual_shot = True
    elif effect == "shoot_delay_mul":
        if player is not None:
            player.shoot_delay *= amount
    elif effect == "burn_damage_mul":
        mods.burn_damage_mul *= amount
    elif effect == "freeze_duration_mul":
        mods.freeze_duration_mul *= amount
    elif effect == "chain_count_add":
        mods.chain_bonus += int(amount)
    elif effect == "implode_radius_mul":
        mods.implode_radius_mul *= amount
    elif effect == "element_harmony":
        mods.element_harmony = True
    elif effect == "ability_duration_mul":
        mods.ability_duration[AbilityKind(skill["ability"])] *= amount
    elif effect == "ability_radius_mul":
        mods.ability_radius[AbilityKind(skill["ability"])] *= amount
    elif effect == "shield_reflect":
        mods.shield_reflect = True
    elif effect == "ultimate_charge_mul":
        mods.ultimate_charge_mul *= amount
    else:
        log.debug("skill effect %r has no handler", effect)
