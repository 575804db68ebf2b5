"""
Automation state for the battle farm loop.

GameState is what the loop believes is on screen. AutomationState is the
single mutable struct the loop owns; it is seeded from a real screen check
at startup and never persisted.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class GameState(Enum):
    PAUSED = "paused"
    IN_BATTLE = "in_battle"
    ON_MENU = "on_menu"
    UNKNOWN = "unknown"


@dataclass
class AutomationState:
    in_battle: bool = False
    in_battle_count: int = 0
    loop_count: int = 0
    paused: bool = False
    started_at: float = field(default_factory=time.monotonic)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def reset_battle_count(self) -> None:
        self.in_battle_count = 0
