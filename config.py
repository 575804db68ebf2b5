"""
Configuration loader - fixed layout constants and tunables for the battle farm bot.

Usage:
    from config import MATCH_THRESHOLD, FIRST_TROOP_CLICK

Setup:
    1. Optionally create config_local.py next to this file
    2. Override any default parameter there (e.g. ADB_PATH, coordinates)
    3. config_local.py is gitignored so local tweaks stay local
    4. Installed as a package: set BATTLEFARM_HOME to the directory holding
       templates/ground_truth/ (logs/ and screencap.png go there too)
"""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent

# Holds templates/, logs/ and the frame buffer. Defaults to the checkout; an
# installed (non-editable) copy must point BATTLEFARM_HOME at a data directory.
DATA_ROOT = Path(os.environ.get('BATTLEFARM_HOME') or PROJECT_ROOT)

# =============================================================================
# DEVICE TRANSPORT
# =============================================================================

# adb client binary and the ADB server it talks to (adb -H / -P)
ADB_PATH = os.environ.get('BATTLEFARM_ADB_PATH', 'adb')
ADB_HOST = "127.0.0.1"
ADB_PORT = 5037

# Serial of the device to drive. None = first device reported by `adb devices`
DEVICE_SERIAL = os.environ.get('BATTLEFARM_SERIAL')

# Every click coordinate below is only valid at this resolution (portrait)
EXPECTED_RESOLUTION = (1080, 2400)

# =============================================================================
# FRAME BUFFER & TEMPLATE CATALOG
# =============================================================================

# Single on-disk frame buffer, overwritten by every capture
SCREENSHOT_PATH = DATA_ROOT / "screencap.png"

TEMPLATE_DIR = DATA_ROOT / "templates" / "ground_truth"

IN_BATTLE_TEMPLATE = "is-in-battle.png"
MARKET_MENU_TEMPLATE = "market-menu-button.png"
CLOSE_BATTLE_TEMPLATE = "close-battle-button.png"
ARE_YOU_STUCK_TEMPLATE = "are-you-stuck-button.png"
START_BATTLE_TEMPLATE = "start-battle-button.png"

REQUIRED_TEMPLATES = [
    IN_BATTLE_TEMPLATE,
    MARKET_MENU_TEMPLATE,
    CLOSE_BATTLE_TEMPLATE,
    ARE_YOU_STUCK_TEMPLATE,
    START_BATTLE_TEMPLATE,
]

# TM_CCOEFF_NORMED score (higher = better). Governs every state decision.
MATCH_THRESHOLD = 0.7

# =============================================================================
# FIXED LAYOUT COORDINATES (1080x2400)
# =============================================================================

FIRST_TROOP_CLICK = (680, 2024)         # Spawn first troop (battle farming)
UPGRADE_MENU_CLICK = (330, 2178)        # Bottom bar: upgrades tab
UPGRADE_PRODUCTION_CLICK = (852, 1307)  # Upgrades tab: production upgrade
BATTLE_MENU_CLICK = (543, 2178)         # Bottom bar: battle tab

# =============================================================================
# TIMING (milliseconds unless noted)
# =============================================================================

EXIT_BATTLE_TAP_DELAY_MS = 500     # Gap between close-battle taps
UPGRADE_MENU_DELAY_MS = 400        # Wait after opening / before leaving upgrades tab
UPGRADE_PRODUCTION_DELAY_MS = 200  # Gap between production upgrade taps
UPGRADE_PRODUCTION_TAPS = 3
START_BATTLE_TAP_DELAY_MS = 0      # Gap between start-battle taps

PAUSE_POLL_INTERVAL = 0.1          # Seconds between pause flag polls

# =============================================================================
# CONTROL LOOP
# =============================================================================

BATTLE_CHECK_EVERY = 100    # Battle iterations between close-battle checks
RESYNC_EVERY = 10000        # Outer iterations between forced battle re-checks

# "Tap until" sub-loops. None = keep tapping until the screen changes.
TAP_UNTIL_MAX_ATTEMPTS = None

# Single key that toggles pause
PAUSE_KEY = "p"

# =============================================================================
# LOGGING
# =============================================================================

LOG_DIR = DATA_ROOT / "logs"

# =============================================================================
# LOAD LOCAL OVERRIDES
# =============================================================================

try:
    from config_local import *
    print("Loaded config from config_local.py")
except ImportError:
    pass
