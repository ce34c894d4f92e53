import math

import pytest

from conftest import kinds
from starblitz.collision import in_playfield
from starblitz.ecs_components import (
    Boss,
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
    WeaponKind,
)
from starblitz.factories import (
    create_boss,
    create_bullet,
    create_enemy,
    create_enemy_bullet,
    create_particles,
    create_power_up,
)
from starblitz.game import Game


def _count(game, component) -> int:
    return len(game.world.get_component(component))


def _player(game):
    return game.world.component_for_entity(game.ctx.player_eid, Player)


def _player_health(game):
    return game.world.component_for_entity(game.ctx.player_eid, Health)


# Kills and scoring

def test_basic_kill_takes_two_hits(game, events):
    eid = create_enemy(game.world, game.settings, 385, 300)
    create_bullet(game.world, game.content, 400, 310, 0.0, WeaponKind.LASER, 25)
    game.tick(16)
    assert game.world.component_for_entity(eid, Health).current == 25
    assert _count(game, Bullet) == 0

    create_bullet(game.world, game.content, 400, 315, 0.0, WeaponKind.LASER, 25)
    game.tick(16)
    assert not game.world.entity_exists(eid)
    assert game.ctx.progression.score == 10
    assert game.ctx.progression.combo == 1
    assert "explosion" in kinds(events)
    assert any(e.kind == "achievement" and e.data["key"] == "first_blood" for e in events)


def test_kill_score_uses_running_combo(game):
    prog = game.ctx.progression
    prog.combo, prog.combo_timer = 3, 2.0
    eid = create_enemy(game.world, game.settings, 385, 300)
    game.world.component_for_entity(eid, Health).current = 25
    create_bullet(game.world, game.content, 400, 310, 0.0, WeaponKind.LASER, 25)
    game.tick(16)
    assert prog.score == 30
    assert prog.combo == 4


def test_combo_resets_only_after_window(game):
    game.ctx.progression.register_kill(10, 0, combo_window=2.0)
    game.tick(1900)
    assert game.ctx.progression.combo == 1
    game.tick(200)
    assert game.ctx.progression.combo == 0


def test_bullet_hit_applies_element(game, events):
    a = create_enemy(game.world, game.settings, 385, 300)
    b = create_enemy(game.world, game.settings, 430, 300)
    create_bullet(game.world, game.content, 400, 310, 0.0, WeaponKind.LASER, 25, elements=[Element.LIGHTNING])
    game.tick(16)
    assert game.world.component_for_entity(a, Health).current == 25
    assert game.world.component_for_entity(b, Health).current == 35
    assert "chain" in kinds(events)


def test_boss_kill_pays_five_times(game, events):
    eid = create_boss(game.world, game.settings, game.content, x=360, y=100)
    game.world.component_for_entity(eid, Health).current = 25
    create_bullet(game.world, game.content, 400, 150, 0.0, WeaponKind.LASER, 25)
    game.tick(16)
    assert not game.world.entity_exists(eid)
    assert game.ctx.progression.score == 50
    assert game.ctx.progression.bosses_killed == 1
    assert any(e.kind == "achievement" and e.data["key"] == "boss_slayer" for e in events)


# Spawning

def test_regular_enemy_spawns_on_interval(settings):
    settings.enemy.spawn_interval = 1.0
    game = Game(settings)
    game.tick(500)
    assert _count(game, Enemy) == 0
    game.tick(500)
    assert _count(game, Enemy) == 1
    assert _count(game, Boss) == 0


def test_only_one_boss_alive_at_a_time(settings):
    settings.enemy.spawn_interval = 1.0
    game = Game(settings)
    game.ctx.progression.score = 100
    game.tick(1000)
    assert _count(game, Boss) == 1

    game.tick(1000)
    assert _count(game, Boss) == 1
    assert _count(game, Enemy) == 2

    game.ctx.progression.score = 200
    game.tick(1000)
    assert _count(game, Boss) == 1
    assert _count(game, Enemy) == 3


def test_power_up_spawns_on_interval(settings):
    settings.power_ups.interval = 1.0
    game = Game(settings)
    game.tick(1000)
    assert _count(game, PowerUp) == 1


# Pause and game over

def test_pause_freezes_the_clock(game):
    assert game.toggle_pause()
    game.tick(1000)
    assert game.ctx.time == 0.0
    assert not game.toggle_pause()
    game.tick(1000)
    assert game.ctx.time == pytest.approx(1.0)


def test_pause_freezes_ability_timers(game):
    assert game.activate_ability("shield")
    game.toggle_pause()
    game.tick(10000)
    game.toggle_pause()
    assert _player(game).shield_active
    game.tick(4000)
    assert not _player(game).shield_active


def test_game_over_halts_everything(game):
    game.ctx.game_over = True
    game.tick(1000)
    assert game.ctx.time == 0.0
    assert not game.toggle_pause()
    assert not game.activate_ability("time_stop")


def test_restart_resets_all_state(game):
    game.ctx.progression.score = 420
    game.tick(500)
    game.restart()
    assert game.ctx.progression.score == 0
    assert game.ctx.time == 0.0
    assert _count(game, Player) == 1
    assert game.world.entity_exists(game.ctx.player_eid)


# Player damage

def test_enemy_contact_hurts_player(game, events):
    eid = create_enemy(game.world, game.settings, 385, 550)
    game.tick(16)
    assert _player_health(game).current == 80
    assert not game.world.entity_exists(eid)
    assert game.ctx.progression.score == 0
    assert "explosion" in kinds(events)


def test_shield_absorbs_contact(game):
    game.activate_ability("shield")
    create_enemy(game.world, game.settings, 385, 550)
    game.tick(16)
    assert _player_health(game).current == 100


def test_player_death_ends_game(game, events):
    _player_health(game).current = 20
    create_enemy(game.world, game.settings, 385, 550)
    game.tick(16)
    assert game.ctx.game_over
    assert "game_over" in kinds(events)
    stamp = game.ctx.time
    game.tick(16)
    assert game.ctx.time == stamp


def test_enemy_bullet_hurts_player(game):
    create_enemy_bullet(game.world, game.settings, 400, 560, 0.0, 240.0)
    game.tick(16)
    assert _player_health(game).current == 90
    assert _count(game, EnemyBullet) == 0


def test_reflecting_shield_turns_enemy_bullets(game):
    game.ctx.modifiers.shield_reflect = True
    game.activate_ability("shield")
    create_enemy_bullet(game.world, game.settings, 400, 560, 0.0, 240.0)
    game.tick(16)
    assert _player_health(game).current == 100
    assert _count(game, EnemyBullet) == 0
    [(_, bullet)] = game.world.get_component(Bullet)
    assert bullet.angle == pytest.approx(0.0)
    assert bullet.speed == pytest.approx(240.0)


# Power-ups

def _drop_on_player(game, kind):
    eid = create_power_up(game.world, game.settings, 390, kind)
    game.world.component_for_entity(eid, Position).y = 555
    return eid


def test_health_pickup_heals_and_clamps(game, events):
    health = _player_health(game)
    health.current = 50
    eid = _drop_on_player(game, PowerUpKind.HEALTH)
    game.tick(16)
    assert health.current == 80
    assert not game.world.entity_exists(eid)
    assert "powerup" in kinds(events)

    health.current = 90
    _drop_on_player(game, PowerUpKind.HEALTH)
    game.tick(16)
    assert health.current == 100


def test_speed_pickup_is_timed(game):
    _drop_on_player(game, PowerUpKind.SPEED)
    game.tick(16)
    assert _player(game).speed == 480
    game.tick(4000)
    assert _player(game).speed == 480
    game.tick(1100)
    assert _player(game).speed == 300


def test_spread_pickup_is_timed(game):
    _drop_on_player(game, PowerUpKind.SPREAD)
    game.tick(16)
    assert _player(game).spread_shot
    game.tick(5100)
    assert not _player(game).spread_shot


# Bounds

def test_entities_leaving_the_playfield_are_dropped(game):
    create_bullet(game.world, game.content, 400, 5, 0.0, WeaponKind.LASER, 25)
    create_enemy(game.world, game.settings, 100, 599)
    pu = create_power_up(game.world, game.settings, 200, PowerUpKind.HEALTH)
    game.world.component_for_entity(pu, Position).y = 599
    game.tick(100)
    assert _count(game, Bullet) == 0
    assert _count(game, Enemy) == 0
    assert _count(game, PowerUp) == 0
    assert game.ctx.progression.score == 0


def test_particles_fade_out(game):
    create_particles(game.world, game.settings, game.ctx.rng, 100, 100, [(255, 0, 0)], 5)
    game.tick(500)
    assert _count(game, Particle) == 5
    game.tick(500)
    assert _count(game, Particle) == 0


def test_retained_entities_stay_in_bounds(settings):
    settings.enemy.spawn_interval = 0.5
    settings.power_ups.interval = 1.0
    game = Game(settings)
    game.set_input({"fire", "left"})
    for _ in range(300):
        game.tick(16)
        if game.ctx.game_over:
            break
        for eid, box in game.world.get_component(Hitbox):
            assert box.width > 0 and box.height > 0
            pos = game.world.component_for_entity(eid, Position)
            assert math.isfinite(pos.x) and math.isfinite(pos.y)
            if game.world.has_component(eid, Bullet) or game.world.has_component(eid, EnemyBullet):
                assert in_playfield(pos, game.ctx.width, game.ctx.height)
            if game.world.has_component(eid, Enemy) or game.world.has_component(eid, PowerUp):
                assert pos.y < game.ctx.height


def test_player_is_clamped(game):
    pos = game.world.component_for_entity(game.ctx.player_eid, Position)
    game.set_input({"left", "down"})
    game.tick(5000)
    assert pos.x == 0
    assert pos.y == 560


# Firing and weapons

def test_fire_respects_shoot_delay(game, events):
    game.set_input({"fire"})
    game.tick(16)
    assert _count(game, Bullet) == 1
    assert "shoot" in kinds(events)
    game.tick(16)
    assert _count(game, Bullet) == 1
    game.tick(250)
    assert _count(game, Bullet) == 2


def test_spread_and_dual_shot_multiply_bullets(game):
    player = _player(game)
    player.spread_shot = True
    game.set_input({"fire"})
    game.tick(16)
    assert _count(game, Bullet) == 3

    fresh = Game(game.settings)
    p = fresh.world.component_for_entity(fresh.ctx.player_eid, Player)
    p.spread_shot = p.dual_shot = True
    fresh.set_input({"fire"})
    fresh.tick(16)
    assert _count(fresh, Bullet) == 6


def test_bullet_damage_scales_with_level_and_elements_stack(game):
    game.ctx.progression.level = 3
    game.ctx.modifiers.element_harmony = True
    _player(game).element = Element.FIRE
    game.set_input({"fire"})
    game.tick(16)
    [(_, bullet)] = game.world.get_component(Bullet)
    assert bullet.damage == pytest.approx(35.0)
    assert bullet.elements == [Element.FIRE, Element.ICE]


def test_weapon_and_element_selection(game):
    assert game.select_weapon("plasma")
    assert _player(game).weapon is WeaponKind.PLASMA
    assert not game.select_weapon("railgun")
    assert [game.cycle_element() for _ in range(5)] == [
        Element.FIRE, Element.ICE, Element.LIGHTNING, Element.VOID, Element.FIRE,
    ]


def test_missile_locks_on_and_flies_straight_when_target_is_gone(game):
    game.select_weapon(WeaponKind.MISSILE)
    target = create_enemy(game.world, game.settings, 385, 100)
    game.set_input({"fire"})
    game.tick(16)
    [(beid, bullet)] = game.world.get_component(Bullet)
    assert bullet.target == target

    game.world.delete_entity(target, immediate=True)
    game.set_input(())
    y = game.world.component_for_entity(beid, Position).y
    game.tick(16)
    assert bullet.target is None
    assert bullet.angle == pytest.approx(0.0)
    assert game.world.component_for_entity(beid, Position).y < y


def test_homing_turn_is_rate_limited(game):
    target = create_enemy(game.world, game.settings, 600, 391)
    beid = create_bullet(game.world, game.content, 400, 400, 0.0, WeaponKind.MISSILE, 60, target=target)
    game.tick(100)
    bullet = game.world.component_for_entity(beid, Bullet)
    assert bullet.angle == pytest.approx(0.6)


# Abilities and ultimate

def test_time_stop_freezes_enemies(game):
    assert game.activate_ability("time_stop")
    eid = create_enemy(game.world, game.settings, 100, 100)
    pos = game.world.component_for_entity(eid, Position)
    game.tick(1000)
    assert pos.y == 100
    game.tick(2500)
    assert pos.y == pytest.approx(400)


def test_black_hole_pulls_and_damages(game):
    game.set_input((), mouse=(400, 300))
    near = create_enemy(game.world, game.settings, 300, 285)
    far = create_enemy(game.world, game.settings, 700, 50)
    assert game.activate_ability("black_hole")
    game.tick(100)
    assert game.world.component_for_entity(near, Position).x == pytest.approx(351)
    assert game.world.component_for_entity(near, Health).current == pytest.approx(49)
    assert game.world.component_for_entity(far, Position).x == 700
    assert game.world.component_for_entity(far, Health).current == 50


def test_ability_rejected_until_cooldown(game, events):
    assert game.activate_ability("time_stop")
    assert not game.activate_ability("time_stop")
    assert not game.activate_ability("warp")
    game.tick(14000)
    assert not game.activate_ability("time_stop")
    game.tick(1000)
    assert game.activate_ability("time_stop")
    assert kinds(events).count("ability") >= 3


def test_ultimate_needs_full_charge(game, events):
    assert not game.activate_ultimate()
    game.ctx.ultimate_charge = 100
    assert game.activate_ultimate()
    assert _count(game, Bullet) == 36
    assert game.ctx.progression.ultimates_used == 1
    assert game.ctx.ultimate_charge == 0
    assert any(e.kind == "achievement" and e.data["key"] == "ultimate_power" for e in events)

    game.ctx.ultimate_charge = 100
    assert not game.activate_ultimate()
    game.ctx.ultimate_charge = 0
    game.tick(1000)
    assert not game.ctx.ultimate_active
    assert game.ctx.ultimate_charge == pytest.approx(30)


def test_ultimate_charge_rate_and_cap(game):
    game.ctx.modifiers.ultimate_charge_mul = 1.5
    game.tick(1000)
    assert game.ctx.ultimate_charge == pytest.approx(45)
    game.tick(10000)
    assert game.ctx.ultimate_charge == 100


# Companions

def test_companion_follows_owner_and_dies_with_it(game):
    cid = game.add_companion("shield_drone")
    game.tick(16)
    assert game.world.entity_exists(cid)
    game.world.delete_entity(game.ctx.player_eid, immediate=True)
    game.tick(16)
    assert not game.world.entity_exists(cid)
    assert game.add_companion("combat_drone") is None


def test_healer_drone_heals_on_interval(game):
    health = _player_health(game)
    health.current = 50
    game.add_companion(CompanionKind.HEALER_DRONE)
    game.tick(4000)
    assert health.current == 50
    game.tick(1000)
    assert health.current == 55


def test_late_companion_waits_a_full_interval(game):
    game.tick(6000)
    health = _player_health(game)
    health.current = 50
    cid = game.add_companion(CompanionKind.HEALER_DRONE)
    game.tick(16)
    assert health.current == 50
    game.tick(5000)
    assert health.current == 55

    drone = game.add_companion(CompanionKind.COMBAT_DRONE)
    assert game.world.component_for_entity(drone, Companion).last_shot == pytest.approx(game.ctx.time)
    assert game.world.entity_exists(cid)


def test_combat_drone_fires_at_enemies_in_range(game):
    cid = game.add_companion(CompanionKind.COMBAT_DRONE)
    game.world.component_for_entity(cid, Companion).last_shot = -10.0
    create_enemy(game.world, game.settings, 440, 450)
    game.tick(16)
    assert _count(game, Bullet) == 1


def test_hud_snapshot_is_emitted(game, events):
    game.tick(16)
    huds = [e for e in events if e.kind == "hud"]
    assert len(huds) == 1
    assert huds[0].data["score"] == 0
    assert huds[0].data["health"] == 100
