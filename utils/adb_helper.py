#!/usr/bin/env python3
"""
ADB Helper - device transport for the battle farm bot.

Thin wrapper over the `adb` client talking to the ADB server at
ADB_HOST:ADB_PORT. Everything the bot needs from the device goes through
three calls: list_devices(), capture_screen() and shell().

Usage:
    python utils/adb_helper.py check
    python utils/adb_helper.py screenshot <output_path>

    # From Python code:
    from utils.adb_helper import ADBHelper
    adb = ADBHelper()
    adb.tap(680, 2024)
"""
from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from pathlib import Path

from PIL import Image

if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import ADB_HOST, ADB_PATH, ADB_PORT, DEVICE_SERIAL, EXPECTED_RESOLUTION
from utils.errors import CaptureError, DeviceCommandError, NoDeviceConnected

logger = logging.getLogger(__name__)


class ADBHelper:
    """
    ADB controller bound to a single device.

    - Lists attached devices through the configured ADB server
    - Captures PNG screenshots straight to memory (exec-out, no device temp files)
    - Sends shell commands (input tap) for touch injection
    """

    ADB_PATH = ADB_PATH

    def __init__(self, serial: str | None = DEVICE_SERIAL, auto_connect: bool = True,
                 host: str = ADB_HOST, port: int = ADB_PORT) -> None:
        """
        Args:
            serial: Device serial to drive. None picks the first listed device.
            auto_connect: If True, select a device immediately (raises
                NoDeviceConnected when there is none)
            host: ADB server host
            port: ADB server port
        """
        self.host = host
        self.port = port
        self.serial = serial
        self.device = None

        if auto_connect:
            if not self.ensure_connected():
                raise NoDeviceConnected("No ADB device connected")

    def _base_cmd(self) -> list[str]:
        return [self.ADB_PATH, "-H", self.host, "-P", str(self.port)]

    def _run_adb(self, args, capture_output=True, check=False):
        """
        Execute ADB command.

        Args:
            args: List of command arguments
            capture_output: Whether to capture stdout/stderr
            check: Whether to raise exception on non-zero exit

        Returns:
            Tuple of (success, stdout, stderr)
        """
        cmd = self._base_cmd()
        if self.device:
            cmd.extend(["-s", self.device])
        cmd.extend(args)

        try:
            if capture_output:
                result = subprocess.run(cmd, capture_output=True, text=True, check=check)
                return result.returncode == 0, result.stdout, result.stderr
            result = subprocess.run(cmd, check=check)
            return result.returncode == 0, "", ""
        except subprocess.CalledProcessError as e:
            return False, e.stdout or "", e.stderr or str(e)
        except OSError as e:
            # adb binary missing / not executable
            return False, "", str(e)

    def list_devices(self) -> list[str]:
        """
        List serials of attached devices in the "device" state.

        Offline / unauthorized entries are skipped.
        """
        success, stdout, stderr = self._run_adb(["devices"])
        if not success:
            logger.warning(f"adb devices failed: {stderr.strip()}")
            return []

        devices = []
        for line in stdout.strip().split('\n')[1:]:  # Skip header
            parts = line.split('\t')
            if len(parts) >= 2 and parts[1].strip() == "device":
                devices.append(parts[0].strip())
        return devices

    def ensure_connected(self) -> bool:
        """
        Select the configured device (or the first attached one).

        Returns:
            True if a device is selected, False otherwise
        """
        if self.device:
            return True

        devices = self.list_devices()
        if not devices:
            return False

        if self.serial:
            if self.serial not in devices:
                logger.warning(f"Device {self.serial} not attached (found: {devices})")
                return False
            self.device = self.serial
        else:
            self.device = devices[0]

        logger.info(f"Using device {self.device}")
        return True

    def _require_device(self) -> None:
        if not self.device:
            raise NoDeviceConnected("No ADB device connected")

    def capture_screen(self) -> bytes:
        """
        Capture the screen as PNG bytes.

        Raises:
            NoDeviceConnected: If no device is selected
            CaptureError: If the transfer fails or returns no data
        """
        self._require_device()
        cmd = self._base_cmd() + ["-s", self.device, "exec-out", "screencap", "-p"]

        try:
            result = subprocess.run(cmd, capture_output=True, check=True)
        except subprocess.CalledProcessError as e:
            raise CaptureError(f"Screenshot capture failed: {e.stderr.decode(errors='replace') if e.stderr else e}") from e
        except OSError as e:
            raise CaptureError(f"Screenshot capture failed: {e}") from e

        if not result.stdout:
            raise CaptureError("Screenshot capture returned empty data")
        return result.stdout

    def take_screenshot(self, output_path) -> Path:
        """
        Capture the screen and write it to output_path.

        Returns only once the whole PNG is on disk.

        Raises:
            CaptureError: If capture or the write fails
        """
        data = self.capture_screen()
        output_path = Path(output_path)
        try:
            output_path.write_bytes(data)
        except OSError as e:
            raise CaptureError(f"Could not write screenshot to {output_path}: {e}") from e
        return output_path

    def shell(self, command: str) -> str:
        """
        Run a shell command on the device.

        Raises:
            NoDeviceConnected: If no device is selected
            DeviceCommandError: If adb rejects the command
        """
        self._require_device()
        success, stdout, stderr = self._run_adb(["shell", *command.split()], check=True)
        if not success:
            raise DeviceCommandError(f"adb shell '{command}' failed: {stderr.strip()}")
        return stdout

    def tap(self, x, y) -> None:
        """
        Tap at screen coordinates.

        Args:
            x: X coordinate
            y: Y coordinate
        """
        self.shell(f"input tap {int(x)} {int(y)}")

    def get_screen_size(self):
        """
        Get current screen resolution.

        Returns:
            Tuple of (width, height) or None if failed
        """
        try:
            stdout = self.shell("wm size")
        except (DeviceCommandError, NoDeviceConnected):
            return None

        # Parse "Physical size: 1080x2400" or "Override size: 1080x2400"
        size = None
        for line in stdout.split('\n'):
            if 'size:' in line.lower():
                res = line.split(':')[-1].strip()
                if 'x' in res:
                    w, h = res.split('x')
                    size = (int(w), int(h))
        return size


def main():
    """Command-line interface."""
    parser = argparse.ArgumentParser(
        description="ADB Helper - device check and screenshot utility"
    )
    parser.add_argument("--serial", default=DEVICE_SERIAL, help="Device serial (default: first device)")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    screenshot_parser = subparsers.add_parser("screenshot", help="Take screenshot")
    screenshot_parser.add_argument("output", help="Output path for screenshot")

    subparsers.add_parser("check", help="Check ADB connection status")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        adb = ADBHelper(serial=args.serial)

        if args.command == "check":
            print(f"Connected to device: {adb.device}")
            size = adb.get_screen_size()
            if size:
                print(f"Screen resolution: {size[0]}x{size[1]}")
                if size != EXPECTED_RESOLUTION:
                    print(f"WARNING: expected {EXPECTED_RESOLUTION[0]}x{EXPECTED_RESOLUTION[1]}, "
                          f"click coordinates will be wrong")
            sys.exit(0)

        elif args.command == "screenshot":
            print(f"Capturing screenshot from {adb.device}...")
            path = adb.take_screenshot(args.output)
            with Image.open(path) as img:
                width, height = img.size
            print(f"Saved: {path} ({width}x{height})")
            sys.exit(0)

    except NoDeviceConnected:
        print("ERROR: No device connected")
        print("Make sure the device is attached and `adb devices` lists it")
        sys.exit(1)
    except Exception as e:
        print(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
