"""
Frame capture with epoch-based reuse.

One capture lands in the single frame buffer (SCREENSHOT_PATH) and is then
decoded for matching. Within one frame epoch the decoded frame is reused by
every lookup; advancing the epoch (once per outer loop iteration) or asking
for refresh=True forces a new capture.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import cv2
import numpy as np

from config import SCREENSHOT_PATH
from utils.errors import CaptureError

if TYPE_CHECKING:
    from utils.adb_helper import ADBHelper

logger = logging.getLogger(__name__)


class FrameCapture:
    """
    Capture adapter owning the frame buffer.

    The epoch starts at 0 and only moves forward. captured_epoch is the epoch
    the cached frame belongs to (None before the first capture).
    """

    def __init__(self, adb: ADBHelper, path=SCREENSHOT_PATH) -> None:
        self.adb = adb
        self.path = Path(path)
        self._epoch = 0
        self._captured_epoch: Optional[int] = None
        self._frame: Optional[np.ndarray] = None
        self.capture_count = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def captured_epoch(self) -> Optional[int]:
        return self._captured_epoch

    def advance_epoch(self) -> int:
        """Start a new epoch. The cached frame is stale from now on."""
        self._epoch += 1
        return self._epoch

    def invalidate(self) -> None:
        """Drop the cached frame so the next get_frame() captures."""
        self._frame = None
        self._captured_epoch = None

    def capture(self) -> np.ndarray:
        """
        Capture a new frame into the buffer and decode it.

        Raises:
            CaptureError: transfer, write or decode failure
        """
        self.adb.take_screenshot(self.path)

        frame = cv2.imread(str(self.path), cv2.IMREAD_COLOR)
        if frame is None:
            raise CaptureError(f"Captured frame could not be decoded: {self.path}")

        self._frame = frame
        self._captured_epoch = self._epoch
        self.capture_count += 1
        logger.debug(f"Captured frame {frame.shape[1]}x{frame.shape[0]} (epoch {self._epoch})")
        return frame

    def get_frame(self, refresh: bool = False) -> np.ndarray:
        """Return the frame for the current epoch, capturing if needed."""
        if refresh or self._frame is None or self._captured_epoch != self._epoch:
            return self.capture()
        return self._frame
