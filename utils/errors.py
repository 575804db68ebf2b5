"""
Error taxonomy for the battle farm bot.

None of these are retried. They propagate out of the control loop and
terminate the run (see scripts/battle_daemon.py main()).
"""


class BotError(RuntimeError):
    """Base class for all bot errors."""


class NoDeviceConnected(BotError):
    """No ADB device is available (or it went away)."""


class CaptureError(BotError):
    """Screenshot transfer or frame-buffer write failed."""


class AssetNotFoundError(BotError, FileNotFoundError):
    """A template image is missing from the catalog. Broken deployment."""


class DeviceCommandError(BotError):
    """The transport rejected a shell / tap command."""


class RetryExhaustedError(BotError):
    """A bounded tap-until loop ran out of attempts."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts
