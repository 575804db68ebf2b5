"""
Template matching against the fixed asset catalog.

All matching uses TM_CCOEFF_NORMED (higher = better, 1.0 is perfect) and
takes the single best window from minMaxLoc. A match is accepted iff
score >= MATCH_THRESHOLD (0.7 by default).

Usage:
    from utils.template_matcher import locate

    match = locate(frame, "start-battle-button.png")
    if match:
        adb.tap(*match.point)

    # Raw form: (found, score, center)
    found, score, location = match_template(frame, "is-in-battle.png")
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from config import MATCH_THRESHOLD, TEMPLATE_DIR
from utils.errors import AssetNotFoundError

logger = logging.getLogger(__name__)

# Loaded templates, keyed by catalog name
_templates = {}


@dataclass(frozen=True)
class Match:
    """Center of the best-matching window plus its score."""
    x: int
    y: int
    score: float

    @property
    def point(self) -> Tuple[int, int]:
        return self.x, self.y


def resolve_asset_path(name: str) -> Path:
    """Map a logical template name to its file in the catalog."""
    return TEMPLATE_DIR / name


def _load_template(name: str) -> np.ndarray:
    """Load template (BGR) with caching. Raises AssetNotFoundError if missing."""
    if name not in _templates:
        path = resolve_asset_path(name)
        if not path.exists():
            raise AssetNotFoundError(f"Template not found: {path}")
        template = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if template is None:
            raise AssetNotFoundError(f"Template could not be read: {path}")
        _templates[name] = template
    return _templates[name]


def verify_templates(names: Iterable[str]) -> None:
    """
    Check every named template exists before startup.

    Raises:
        AssetNotFoundError: listing all missing files
    """
    missing = [str(resolve_asset_path(n)) for n in names if not resolve_asset_path(n).exists()]
    if missing:
        raise AssetNotFoundError(
            f"Missing {len(missing)} required templates: {', '.join(missing)}"
        )


def match_template(
    frame: np.ndarray,
    template_name: str,
    threshold: Optional[float] = None
) -> Tuple[bool, float, Optional[Tuple[int, int]]]:
    """
    Find the best window for template_name in frame.

    Args:
        frame: BGR image (grayscale frames are promoted to BGR)
        template_name: Catalog name (e.g., "market-menu-button.png")
        threshold: Minimum accepted score (default MATCH_THRESHOLD)

    Returns:
        (found, score, location)
        - found: True if score >= threshold
        - score: Best TM_CCOEFF_NORMED score
        - location: Center (x, y) of the best window, or None if the
          frame is smaller than the template

    Raises:
        AssetNotFoundError: If the template is not in the catalog
    """
    template = _load_template(template_name)
    thresh = threshold if threshold is not None else MATCH_THRESHOLD

    if frame.ndim == 2:
        frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)

    th, tw = template.shape[:2]
    if frame.shape[0] < th or frame.shape[1] < tw:
        return False, 0.0, None

    result = cv2.matchTemplate(frame, template, cv2.TM_CCOEFF_NORMED)
    _, max_val, _, max_loc = cv2.minMaxLoc(result)
    score = float(max_val)
    if not np.isfinite(score):
        # Flat template or window: correlation undefined
        score = 0.0
    location = (max_loc[0] + tw // 2, max_loc[1] + th // 2)

    logger.debug(f"{template_name}: {score:.4f}")
    return score >= thresh, score, location


def locate(
    frame: np.ndarray,
    template_name: str,
    threshold: Optional[float] = None
) -> Optional[Match]:
    """
    Locate a catalog template in frame.

    Returns:
        Match at the center of the best window, or None below threshold
    """
    found, score, location = match_template(frame, template_name, threshold)
    if not found or location is None:
        return None
    return Match(location[0], location[1], score)


def clear_cache():
    """Clear template cache. Useful for testing or reloading."""
    _templates.clear()
