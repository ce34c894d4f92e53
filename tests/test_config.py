from starblitz.config import Settings, load_settings
from starblitz.content import Content


def test_missing_file_gives_defaults(tmp_path):
    s = load_settings(tmp_path / "nope.yaml")
    assert s == Settings()
    assert s.window.width == 800
    assert s.relay.port == 3001


def test_yaml_overrides_are_coerced(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "enemy:\n  speed: '90'\n  bullet:\n    damage: 15\nboss:\n  spawn_score: 50\n",
        encoding="utf-8",
    )
    s = load_settings(path)
    assert s.enemy.speed == 90.0
    assert s.enemy.bullet_damage == 15
    assert s.enemy.bullet_size == 6
    assert s.boss.spawn_score == 50
    assert s.player.max_health == 100


def test_content_tables_load():
    c = Content()
    assert c.weapon("missile")["homing"] is True
    assert c.weapon("laser")["damage"] == 25
    assert c.element("fire")["effect"] == "burn"
    assert c.ability("black_hole")["radius"] == 200
    assert c.skill("weapons", "DUAL_SHOT")["cost"] == 5
    assert c.boss("dreadnought")["patterns"] == ["spiral", "targeted", "scatter"]
    assert c.achievement_name("first_blood")
    assert c.weapon("railgun") == {}
    assert c.skill("nowhere", "x") == {}
