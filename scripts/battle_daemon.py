#!/usr/bin/env python3
"""
Battle Farm Daemon

Runs continuously, alternating between farming a battle and upgrading on the
menu:

- IN_BATTLE: tap the first troop every iteration. Every 100 battle iterations
  look for the close-battle button; if it is there, tap it until the market
  menu shows up.
- ON_MENU (market menu visible): dismiss "are you stuck", buy 3 production
  upgrades, open the battle tab and tap start until the battle indicator shows.
- UNKNOWN (neither visible): assume battle, dismiss "are you stuck" if shown.

Every 10000 iterations the battle indicator is re-checked to fix any drift
between the assumed and the real screen.

Press "p" to pause/resume, Ctrl+C to stop.

Usage:
    python scripts/battle_daemon.py [--debug] [--serial SERIAL] [--no-keyboard] [--max-attempts N]
"""

import sys
import time
import argparse
import logging
import traceback
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.adb_helper import ADBHelper
from utils.frame_capture import FrameCapture
from utils.game_state import AutomationState, GameState
from utils.pause_channel import KeyboardPauseListener, PauseChannel
from utils.template_matcher import locate, verify_templates
from utils.ui_helpers import tap_point, tap_sequence, tap_until

from config import (
    REQUIRED_TEMPLATES,
    IN_BATTLE_TEMPLATE,
    MARKET_MENU_TEMPLATE,
    CLOSE_BATTLE_TEMPLATE,
    ARE_YOU_STUCK_TEMPLATE,
    START_BATTLE_TEMPLATE,
    FIRST_TROOP_CLICK,
    UPGRADE_MENU_CLICK,
    UPGRADE_PRODUCTION_CLICK,
    BATTLE_MENU_CLICK,
    EXIT_BATTLE_TAP_DELAY_MS,
    UPGRADE_MENU_DELAY_MS,
    UPGRADE_PRODUCTION_DELAY_MS,
    UPGRADE_PRODUCTION_TAPS,
    START_BATTLE_TAP_DELAY_MS,
    PAUSE_POLL_INTERVAL,
    BATTLE_CHECK_EVERY,
    RESYNC_EVERY,
    TAP_UNTIL_MAX_ATTEMPTS,
    DEVICE_SERIAL,
    LOG_DIR,
)


class BattleDaemon:
    """
    Perception-action loop for battle farming.

    Owns the AutomationState; nothing else mutates it. One capture / match /
    tap is in flight at a time.
    """

    def __init__(self, adb=None, capture=None, pause=None, serial=DEVICE_SERIAL,
                 use_keyboard: bool = True, max_attempts=TAP_UNTIL_MAX_ATTEMPTS):
        self.adb = adb
        self.capture = capture
        self.pause = pause if pause is not None else PauseChannel()
        self.serial = serial
        self.use_keyboard = use_keyboard
        self.max_attempts = max_attempts

        self.state = AutomationState()
        self.game_state = GameState.UNKNOWN
        self.menu_visible = False
        self.keyboard_listener = None

        self.logger = logging.getLogger('BattleDaemon')

    def initialize(self) -> bool:
        """
        Connect to the device and seed the state from a real screen check.

        Returns:
            False if no device is connected (run() must not be called)

        Raises:
            AssetNotFoundError: If a required template is missing
        """
        self.logger.info("Initializing battle daemon...")

        verify_templates(REQUIRED_TEMPLATES)
        self.logger.info(f"  OK - All {len(REQUIRED_TEMPLATES)} templates verified")

        if self.adb is None:
            self.adb = ADBHelper(serial=self.serial, auto_connect=False)
        if not self.adb.ensure_connected():
            self.logger.error("No devices connected")
            return False
        self.logger.info(f"  Connected to device: {self.adb.device}")

        if self.capture is None:
            self.capture = FrameCapture(self.adb)

        if self.use_keyboard:
            self.keyboard_listener = KeyboardPauseListener(self.pause)
            self.keyboard_listener.start()

        self.state.in_battle = self.check_if_in_battle()
        self.game_state = GameState.IN_BATTLE if self.state.in_battle else GameState.UNKNOWN
        self.logger.info(f"STARTUP: in_battle={self.state.in_battle}")
        return True

    def shutdown(self) -> None:
        if self.keyboard_listener is not None:
            self.keyboard_listener.stop()
            self.keyboard_listener = None

    # -------------------------------------------------------------------------
    # Perception
    # -------------------------------------------------------------------------

    def _locate(self, template_name: str, refresh: bool = False):
        frame = self.capture.get_frame(refresh=refresh)
        return locate(frame, template_name)

    def check_if_in_battle(self) -> bool:
        return self._locate(IN_BATTLE_TEMPLATE, refresh=True) is not None

    def check_if_on_menu(self) -> bool:
        self.menu_visible = self._locate(MARKET_MENU_TEMPLATE, refresh=True) is not None
        return self.menu_visible

    def dismiss_are_you_stuck(self) -> bool:
        """Tap the "are you stuck" prompt if it is on the current frame."""
        self.pause.wait_while_paused()
        button = self._locate(ARE_YOU_STUCK_TEMPLATE)
        if button is None:
            return False
        self.logger.info(f"Dismissing 'are you stuck' at {button.point} (score={button.score:.3f})")
        tap_point(self.adb, button.point)
        return True

    # -------------------------------------------------------------------------
    # State handlers
    # -------------------------------------------------------------------------

    def handle_battle_state(self) -> None:
        self.state.in_battle_count += 1
        tap_point(self.adb, FIRST_TROOP_CLICK)

        if self.state.in_battle_count < BATTLE_CHECK_EVERY:
            return

        close_button = self._locate(CLOSE_BATTLE_TEMPLATE, refresh=True)

        if close_button is not None:
            self.logger.info(f"[{self.state.loop_count}] Battle over, close button at {close_button.point} "
                             f"(score={close_button.score:.3f})")
            self.exit_battle(close_button)
            self.state.in_battle = False
        else:
            # Stays in battle even when the indicator is gone
            if not self.check_if_in_battle():
                self.logger.warning(f"[{self.state.loop_count}] Battle indicator not visible, staying in battle")
            self.state.in_battle = True

        self.state.reset_battle_count()

    def exit_battle(self, close_button) -> None:
        """Tap close until the market menu is confirmed open."""
        taps = tap_until(
            self.adb,
            close_button.point,
            self.check_if_on_menu,
            delay_ms=EXIT_BATTLE_TAP_DELAY_MS,
            max_attempts=self.max_attempts,
            pause=self.pause,
        )
        self.logger.info(f"Back on menu after {taps} close taps")
        self.dismiss_are_you_stuck()

    def handle_menu_state(self) -> None:
        self.dismiss_are_you_stuck()
        self.upgrade_and_start_battle()

    def upgrade_and_start_battle(self) -> bool:
        """
        Buy production upgrades, then start the next battle.

        Blocks until the battle indicator is visible once the start button
        was found.

        Returns:
            True if a battle was started, False if no start button was found
        """
        self.pause.wait_while_paused()
        tap_point(self.adb, UPGRADE_MENU_CLICK)
        time.sleep(UPGRADE_MENU_DELAY_MS / 1000)

        tap_sequence(
            self.adb,
            [UPGRADE_PRODUCTION_CLICK] * UPGRADE_PRODUCTION_TAPS,
            UPGRADE_PRODUCTION_DELAY_MS,
            pause=self.pause,
        )
        time.sleep(UPGRADE_MENU_DELAY_MS / 1000)

        self.pause.wait_while_paused()
        tap_point(self.adb, BATTLE_MENU_CLICK)

        self.pause.wait_while_paused()
        battle_button = self._locate(START_BATTLE_TEMPLATE, refresh=True)
        if battle_button is None:
            self.logger.info(f"[{self.state.loop_count}] Start battle button not found, retrying next loop")
            return False

        taps = tap_until(
            self.adb,
            battle_button.point,
            self.check_if_in_battle,
            delay_ms=START_BATTLE_TAP_DELAY_MS,
            max_attempts=self.max_attempts,
            pause=self.pause,
        )
        self.logger.info(f"[{self.state.loop_count}] Battle started after {taps} taps")
        self.state.in_battle = True
        return True

    def handle_unknown_state(self) -> None:
        # Neither battle nor menu: assume battle so the loop keeps farming
        self.state.in_battle = True
        self.dismiss_are_you_stuck()

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def current_state(self) -> GameState:
        """
        State the next step will act on.

        PAUSED while paused, IN_BATTLE when the next step farms. Otherwise
        ON_MENU if the last menu check saw the market menu, else UNKNOWN.
        """
        if self.pause.is_paused():
            return GameState.PAUSED
        if self.state.in_battle:
            return GameState.IN_BATTLE
        if self.menu_visible:
            return GameState.ON_MENU
        return GameState.UNKNOWN

    def step(self) -> GameState:
        """
        One outer iteration.

        While paused this only sleeps one poll interval: no capture, match or
        tap.
        """
        if self.pause.is_paused():
            self.state.paused = True
            time.sleep(PAUSE_POLL_INTERVAL)
            return GameState.PAUSED
        self.state.paused = False

        self.state.loop_count += 1
        self.capture.advance_epoch()

        if self.state.loop_count % RESYNC_EVERY == 0:
            self.logger.info(f"[{self.state.loop_count}] Loop ran for {self.state.elapsed_ms()} milliseconds")
            self.state.in_battle = self.check_if_in_battle()

        if self.state.in_battle:
            self.game_state = GameState.IN_BATTLE
            self.handle_battle_state()
        elif self.check_if_on_menu():
            self.game_state = GameState.ON_MENU
            self.handle_menu_state()
        else:
            self.game_state = GameState.UNKNOWN
            self.handle_unknown_state()

        return self.game_state

    def run(self, max_iterations=None) -> None:
        """
        Main loop. Never returns unless max_iterations is given.

        Errors are not caught here; they end the run.
        """
        self.logger.info("Starting battle loop")
        self.state.started_at = time.monotonic()

        iterations = 0
        while max_iterations is None or iterations < max_iterations:
            self.step()
            iterations += 1


def _setup_logging(debug: bool) -> Path:
    log_dir = Path(LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"daemon_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.FileHandler(log_dir / 'current_daemon.log', mode='w'),
            logging.StreamHandler()
        ]
    )
    return log_file


def main():
    parser = argparse.ArgumentParser(
        description="Battle farm daemon",
        epilog="Templates, logs/ and screencap.png are read from and written to "
               "BATTLEFARM_HOME (default: the source checkout). Set it when running "
               "a non-editable install. BATTLEFARM_SERIAL and BATTLEFARM_ADB_PATH "
               "override the device serial and adb binary."
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help="Enable debug logging (logs every template score)"
    )
    parser.add_argument(
        '--serial',
        default=DEVICE_SERIAL,
        help="Device serial (default: first device from `adb devices`)"
    )
    parser.add_argument(
        '--no-keyboard',
        action='store_true',
        help="Do not install the 'p' pause key hook"
    )
    parser.add_argument(
        '--max-attempts',
        type=int,
        default=TAP_UNTIL_MAX_ATTEMPTS,
        help="Give up tap-until loops after N taps (default: never)"
    )

    args = parser.parse_args()

    log_file = _setup_logging(args.debug)
    logger = logging.getLogger('BattleDaemon')
    logger.info(f"Log file: {log_file}")

    daemon = BattleDaemon(
        serial=args.serial,
        use_keyboard=not args.no_keyboard,
        max_attempts=args.max_attempts,
    )

    try:
        if not daemon.initialize():
            sys.exit(1)
        daemon.run()
    except KeyboardInterrupt:
        print("\n\nStopped by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"ERROR: {e}")
        traceback.print_exc()
        sys.exit(1)
    finally:
        daemon.shutdown()


if __name__ == "__main__":
    main()
