"""Deferred actions and ability cooldown bookkeeping.

Everything here runs on the simulation clock owned by the frame loop, so a
paused game also pauses every pending timer.
"""
from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .ecs_components import AbilityKind

log = logging.getLogger(__name__)


class DeferredQueue:
    """Time-ordered queue of callbacks keyed on the simulation clock."""

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, Callable[..., Any], tuple]] = []
        self._seq = itertools.count()
        self._cancelled: Set[int] = set()
        self.now = 0.0

    def __len__(self) -> int:
        return len(self._heap) - len(self._cancelled)

    def schedule(self, delay: float, action: Callable[..., Any], *args: Any) -> int:
        return self.schedule_at(self.now + max(0.0, delay), action, *args)

    def schedule_at(self, when: float, action: Callable[..., Any], *args: Any) -> int:
        handle = next(self._seq)
        heapq.heappush(self._heap, (when, handle, action, args))
        return handle

    def cancel(self, handle: int) -> None:
        if any(h == handle for _, h, _, _ in self._heap):
            self._cancelled.add(handle)

    def run_due(self, now: float) -> int:
        """Fire every action due at or before ``now`` in time order.

        While an action runs, ``self.now`` is its own due time, so follow-up
        actions it schedules keep exact spacing. Returns how many fired.
        """
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            when, handle, action, args = heapq.heappop(self._heap)
            if handle in self._cancelled:
                self._cancelled.discard(handle)
                continue
            self.now = when
            action(*args)
            fired += 1
        self.now = now
        return fired


@dataclass
class AbilityState:
    ready: bool = True
    active: bool = False
    last_used_at: float = float("-inf")
    cooldown: float = 0.0


class AbilityRegistry:
    """READY -> ACTIVE+COOLDOWN -> COOLDOWN -> READY for each ability.

    The active window and the cooldown window are two separate deferred
    actions; the active one always ends first with the shipped data.
    """

    def __init__(self, queue: DeferredQueue) -> None:
        self.queue = queue
        self.states: Dict[AbilityKind, AbilityState] = {kind: AbilityState() for kind in AbilityKind}

    def is_ready(self, kind: AbilityKind) -> bool:
        return self.states[kind].ready

    def is_active(self, kind: AbilityKind) -> bool:
        return self.states[kind].active

    def activate(
        self,
        kind: AbilityKind,
        duration: float,
        cooldown: float,
        on_end: Optional[Callable[[], None]] = None,
    ) -> bool:
        state = self.states[kind]
        if not state.ready:
            log.debug("ability %s not ready", kind.value)
            return False
        state.ready = False
        state.active = True
        state.last_used_at = self.queue.now
        state.cooldown = cooldown

        def _end() -> None:
            state.active = False
            if on_end is not None:
                on_end()

        def _ready() -> None:
            state.ready = True

        self.queue.schedule(duration, _end)
        self.queue.schedule(cooldown, _ready)
        return True

    def refresh(self, now: float) -> None:
        for state in self.states.values():
            if not state.ready and now - state.last_used_at >= state.cooldown:
                state.ready = True
