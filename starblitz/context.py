from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from .progression import Modifiers, Progression
from .timers import AbilityRegistry, DeferredQueue


@dataclass
class InputState:
    """Polled input: logical action names plus the mouse position."""

    pressed: Set[str] = field(default_factory=set)
    mouse: Tuple[float, float] = (0.0, 0.0)


@dataclass
class GameEvent:
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GameContext:
    paused: bool = False
    game_over: bool = False
    rng: random.Random = field(default_factory=lambda: random.Random(2025))
    width: int = 800
    height: int = 600
    # Simulation clock in seconds; only the frame loop advances it.
    time: float = 0.0
    timers: DeferredQueue = field(default_factory=DeferredQueue)
    abilities: Optional[AbilityRegistry] = None
    progression: Progression = field(default_factory=Progression)
    modifiers: Modifiers = field(default_factory=Modifiers)
    input: InputState = field(default_factory=InputState)
    player_eid: Optional[int] = None
    black_hole_pos: Optional[Tuple[float, float]] = None
    ultimate_charge: float = 0.0
    ultimate_active: bool = False
    outbox: List[GameEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.abilities is None:
            self.abilities = AbilityRegistry(self.timers)

    @property
    def halted(self) -> bool:
        return self.paused or self.game_over

    def emit(self, kind: str, /, **data: Any) -> None:
        self.outbox.append(GameEvent(kind, data))
