from __future__ import annotations

import pytest

from starblitz.config import Settings
from starblitz.game import Game


@pytest.fixture
def settings() -> Settings:
    s = Settings()
    # Keep the spawners out of the way unless a test opts in.
    s.enemy.spawn_interval = 1e9
    s.power_ups.interval = 1e9
    return s


@pytest.fixture
def game(settings: Settings) -> Game:
    return Game(settings)


@pytest.fixture
def events(game: Game) -> list:
    seen: list = []
    game.add_listener(seen.append)
    return seen


def kinds(events: list) -> list[str]:
    return [e.kind for e in events]
