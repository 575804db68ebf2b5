"""
Pause side channel.

PauseChannel is the only thing the control loop looks at: a flag it polls
without blocking. KeyboardPauseListener feeds it from a pynput keyboard hook
running on its own thread, so the terminal's line mode never matters.

Press "p" (PAUSE_KEY) to toggle.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from config import PAUSE_KEY, PAUSE_POLL_INTERVAL

logger = logging.getLogger(__name__)


class PauseChannel:
    """Thread-safe pause flag."""

    def __init__(self) -> None:
        self._paused = threading.Event()

    def is_paused(self) -> bool:
        return self._paused.is_set()

    def set_paused(self, paused: bool) -> None:
        if paused:
            self._paused.set()
        else:
            self._paused.clear()

    def toggle(self) -> bool:
        """Flip the flag. Returns the new paused value."""
        paused = not self._paused.is_set()
        self.set_paused(paused)
        logger.info("Paused" if paused else "Resumed")
        return paused

    def wait_while_paused(self, poll_interval: float = PAUSE_POLL_INTERVAL,
                          sleep: Optional[Callable[[float], None]] = None) -> int:
        """
        Block while paused, polling every poll_interval seconds.

        Returns:
            Number of polls spent paused (0 if not paused)
        """
        sleep = sleep or time.sleep
        polls = 0
        while self._paused.is_set():
            sleep(poll_interval)
            polls += 1
        return polls


class KeyboardPauseListener:
    """
    Global key hook that toggles a PauseChannel on PAUSE_KEY.

    All other keys are ignored.
    """

    def __init__(self, channel: PauseChannel, key: str = PAUSE_KEY) -> None:
        self.channel = channel
        self.key = key
        self._listener = None

    def on_press(self, key) -> None:
        if getattr(key, "char", None) == self.key:
            self.channel.toggle()

    def start(self) -> bool:
        """
        Start listening in the background.

        Returns:
            True if the hook is running, False if no keyboard backend is
            available (e.g. headless session)
        """
        try:
            from pynput import keyboard
        except ImportError as e:
            logger.warning(f"Keyboard pause unavailable: {e}")
            return False

        self._listener = keyboard.Listener(on_press=self.on_press)
        self._listener.daemon = True
        self._listener.start()
        logger.info(f"Press '{self.key}' to pause/resume")
        return True

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
