"""
Pytest configuration and shared fixtures for battle farm tests.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

# Add project root to path so imports work
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import MATCH_THRESHOLD
from utils.template_matcher import Match

if TYPE_CHECKING:
    import numpy.typing as npt


# =============================================================================
# Frame Fixtures
# =============================================================================

@pytest.fixture
def sample_frame() -> npt.NDArray[np.uint8]:
    """Portrait black frame for testing (1080x2400 BGR)."""
    return np.zeros((2400, 1080, 3), dtype=np.uint8)


@pytest.fixture
def noise_frame() -> npt.NDArray[np.uint8]:
    """Small seeded noise frame (300x400 BGR)."""
    rng = np.random.default_rng(1)
    return rng.integers(0, 256, (300, 400, 3), dtype=np.uint8)


@pytest.fixture
def noise_template() -> npt.NDArray[np.uint8]:
    """Seeded 60x40 noise patch used as a template."""
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, (40, 60, 3), dtype=np.uint8)


# =============================================================================
# ADB Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_adb() -> MagicMock:
    """Mock ADBHelper that tracks all calls."""
    adb = MagicMock()
    adb.tap = MagicMock(return_value=None)
    adb.ensure_connected = MagicMock(return_value=True)
    adb.list_devices = MagicMock(return_value=["emulator-5554"])
    adb.device = "emulator-5554"
    return adb


# =============================================================================
# Capture Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_capture(sample_frame: npt.NDArray[np.uint8]) -> MagicMock:
    """Mock FrameCapture that always hands back sample_frame."""
    capture = MagicMock()
    capture.get_frame = MagicMock(return_value=sample_frame)
    capture.capture = MagicMock(return_value=sample_frame)
    capture.advance_epoch = MagicMock(return_value=1)
    return capture


# =============================================================================
# Screen Fake
# =============================================================================

class FakeScreen:
    """
    Scripted stand-in for locate().

    Each template name maps to a list of (score, point) readings. Every
    lookup pops the next reading; the last one repeats forever. Names with
    no script score 0.0. Threshold is applied the same way locate() does.
    """

    def __init__(self) -> None:
        self.readings = {}
        self.calls = []

    def script(self, template_name: str, *readings) -> None:
        self.readings[template_name] = [
            r if isinstance(r, tuple) else (r, (0, 0)) for r in readings
        ]

    def locate(self, frame, template_name, threshold=None):
        self.calls.append(template_name)
        queue = self.readings.get(template_name, [(0.0, (0, 0))])
        score, point = queue.pop(0) if len(queue) > 1 else queue[0]
        thresh = threshold if threshold is not None else MATCH_THRESHOLD
        if score < thresh:
            return None
        return Match(point[0], point[1], score)

    def count(self, template_name: str) -> int:
        return self.calls.count(template_name)


@pytest.fixture
def fake_screen() -> Generator[FakeScreen, None, None]:
    """Patch the daemon's locate() with a scripted FakeScreen."""
    screen = FakeScreen()
    with patch('scripts.battle_daemon.locate', side_effect=screen.locate):
        yield screen


# =============================================================================
# Time Mock Fixtures
# =============================================================================

@pytest.fixture
def no_sleep() -> Generator[MagicMock, None, None]:
    """
    Patch time.sleep everywhere (loop, tap helpers, pause polling).

    All modules share the time module, so one mock records every wait.
    """
    with patch('time.sleep') as sleep:
        yield sleep


# =============================================================================
# Template Catalog Fixtures
# =============================================================================

@pytest.fixture
def templates_dir(tmp_path: Path) -> Generator[Path, None, None]:
    """Empty template catalog in tmp_path, with the matcher cache cleared."""
    from utils import template_matcher

    catalog = tmp_path / "ground_truth"
    catalog.mkdir()
    template_matcher.clear_cache()
    with patch('utils.template_matcher.TEMPLATE_DIR', catalog):
        yield catalog
    template_matcher.clear_cache()
