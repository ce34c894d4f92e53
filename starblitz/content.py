from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

DATA_DIR = Path(__file__).resolve().parent / "data"


def _load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    return yaml.safe_load(p.read_text(encoding="utf-8")) or {}


class Content:
    def __init__(self, base_dir: str | Path = DATA_DIR) -> None:
        self.base = Path(base_dir)
        self.weapons = _load_yaml(self.base / "weapons.yaml")
        self.elements = _load_yaml(self.base / "elements.yaml")
        self.abilities = _load_yaml(self.base / "abilities.yaml")
        self.skills = _load_yaml(self.base / "skills.yaml")
        self.bosses = _load_yaml(self.base / "bosses.yaml")
        self.companions = _load_yaml(self.base / "companions.yaml")
        self.achievements = _load_yaml(self.base / "achievements.yaml")

    def weapon(self, key: str) -> Dict[str, Any]:
        return dict(self.weapons.get(key, {}))

    def element(self, key: str) -> Dict[str, Any]:
        return dict(self.elements.get(key, {}))

    def ability(self, key: str) -> Dict[str, Any]:
        return dict(self.abilities.get(key, {}))

    def boss(self, key: str) -> Dict[str, Any]:
        return dict(self.bosses.get(key, {}))

    def companion(self, key: str) -> Dict[str, Any]:
        return dict(self.companions.get(key, {}))

    def skill(self, category: str, name: str) -> Dict[str, Any]:
        return dict((self.skills.get(category) or {}).get(name, {}))

    def achievement_name(self, key: str) -> str:
        return str(self.achievements.get(key, {}).get("name", key))
