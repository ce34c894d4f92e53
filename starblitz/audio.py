from __future__ import annotations

import logging
import math
import random
import struct
from typing import Dict

import pygame

from .context import GameEvent

log = logging.getLogger(__name__)

SAMPLE_RATE = 22050


class AudioBus:
    """Fire-and-forget sound effects for core events; never raises."""

    def __init__(self, volume: float = 0.4) -> None:
        self.sounds: Dict[str, pygame.mixer.Sound] = {}
        try:
            pygame.mixer.init(SAMPLE_RATE, size=-16, channels=1, buffer=512)
        except pygame.error as exc:
            log.warning("audio disabled: %s", exc)
            return
        self.sounds["shoot"] = self._tone(880, 0.05, amp=0.35)
        self.sounds["explosion"] = self._noise(0.18, amp=0.4)
        self.sounds["powerup"] = self._tone(520, 0.1, amp=0.45)
        for s in self.sounds.values():
            s.set_volume(volume)

    def _tone(self, freq_hz: float, duration: float, amp: float = 0.45) -> pygame.mixer.Sound:
        n = int(SAMPLE_RATE * duration)
        fade = max(1, int(0.01 * SAMPLE_RATE))
        buf = bytearray()
        for i in range(n):
            sample = math.sin(2 * math.pi * freq_hz * i / SAMPLE_RATE)
            sample *= min(1.0, i / fade, (n - i) / fade)
            buf += struct.pack("<h", int(sample * amp * 32767))
        return pygame.mixer.Sound(buffer=bytes(buf))

    def _noise(self, duration: float, amp: float = 0.35) -> pygame.mixer.Sound:
        n = int(SAMPLE_RATE * duration)
        fade = max(1, int(0.02 * SAMPLE_RATE))
        buf = bytearray()
        for i in range(n):
            sample = (random.random() * 2 - 1) * min(1.0, i / fade, (n - i) / fade)
            buf += struct.pack("<h", int(sample * amp * 32767))
        return pygame.mixer.Sound(buffer=bytes(buf))

    def play(self, name: str) -> None:
        sound = self.sounds.get(name)
        if sound is None:
            return
        try:
            sound.play()
        except pygame.error as exc:
            log.debug("could not play %s: %s", name, exc)

    def on_event(self, event: GameEvent) -> None:
        self.play(event.kind)
