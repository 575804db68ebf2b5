"""
UI Helpers - tap primitives used by the battle loop.

These wrap raw adb taps so the loop reads in terms of points and sequences:
1. tap_point - single fire-and-forget tap
2. tap_sequence - several taps with a fixed gap between them
3. tap_until - keep tapping one point until the screen confirms a change

No coordinate validation happens here; callers pass on-screen points.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Tuple

from config import TAP_UNTIL_MAX_ATTEMPTS
from utils.errors import RetryExhaustedError

if TYPE_CHECKING:
    from utils.adb_helper import ADBHelper
    from utils.pause_channel import PauseChannel

logger = logging.getLogger(__name__)

Point = Tuple[int, int]


def tap_point(adb: ADBHelper, point: Point) -> None:
    """
    Tap once at point.

    Raises whatever the transport raises (DeviceCommandError,
    NoDeviceConnected).
    """
    adb.tap(point[0], point[1])


def tap_sequence(adb: ADBHelper, points: Iterable[Point], inter_delay_ms: int = 0,
                 pause: Optional[PauseChannel] = None) -> None:
    """
    Tap each point in order with inter_delay_ms between taps.

    No delay after the last tap.

    Args:
        adb: ADBHelper instance
        points: Points to tap, in order
        inter_delay_ms: Milliseconds to wait between taps
        pause: If given, blocks before each tap while paused
    """
    points = list(points)
    for i, point in enumerate(points):
        if pause is not None:
            pause.wait_while_paused()
        tap_point(adb, point)
        if i < len(points) - 1 and inter_delay_ms:  # Don't delay after last tap
            time.sleep(inter_delay_ms / 1000)


def tap_until(adb: ADBHelper, point: Point, predicate: Callable[[], bool],
              delay_ms: int = 0, max_attempts: Optional[int] = TAP_UNTIL_MAX_ATTEMPTS,
              pause: Optional[PauseChannel] = None) -> int:
    """
    Tap point, wait delay_ms, check predicate; repeat until it holds.

    With max_attempts=None there is no bound: this spins until the screen
    changes. That is the configured default (TAP_UNTIL_MAX_ATTEMPTS).

    Args:
        adb: ADBHelper instance
        point: Point to tap every attempt
        predicate: Returns True once the expected screen is showing
        delay_ms: Milliseconds between the tap and the check
        max_attempts: Give up after this many taps (None = never)
        pause: If given, blocks while paused before each tap and each check

    Returns:
        Number of taps made

    Raises:
        RetryExhaustedError: If max_attempts taps did not satisfy predicate
    """
    attempts = 0
    while True:
        if max_attempts is not None and attempts >= max_attempts:
            raise RetryExhaustedError(
                f"No screen change after {attempts} taps at {point}", attempts
            )
        if pause is not None:
            pause.wait_while_paused()

        tap_point(adb, point)
        attempts += 1
        if delay_ms:
            time.sleep(delay_ms / 1000)

        if pause is not None:
            pause.wait_while_paused()
        if predicate():
            logger.debug(f"Screen changed after {attempts} taps at {point}")
            return attempts
