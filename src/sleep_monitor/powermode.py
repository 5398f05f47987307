"""Low Power Mode control via pmset."""

import getpass
import re
import subprocess

import structlog

from sleep_monitor import logging as console
from sleep_monitor.tracker import MonitorState

log = structlog.get_logger()

LOW_POWER_MODE_PATTERN = re.compile(r"lowpowermode\s+(\d+)")


def parse_low_power_mode(output: str) -> int | None:
    """Extract the lowpowermode flag (0 or 1) from `pmset -g` output."""
    match = LOW_POWER_MODE_PATTERN.search(output)
    if not match:
        return None
    value = int(match.group(1))
    return value if value in (0, 1) else None


class PowerModeController:
    """Reads and writes the Low Power Mode flag, and applies the suppress/restore policy.

    Writing requires root; the controller uses `sudo -n` so a missing sudoers
    rule fails fast instead of prompting.
    """

    def __init__(self, timeout: float = 10.0, enabled: bool = True) -> None:
        self.timeout = timeout
        self.enabled = enabled

    def read_mode(self) -> int | None:
        """Return the current flag, or None if it cannot be read."""
        try:
            result = subprocess.run(
                ["pmset", "-g"],
                capture_output=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            log.warning("power_mode_read_failed", error=str(e))
            return None

        return parse_low_power_mode(result.stdout.decode("utf-8", errors="replace"))

    def set_mode(self, enabled: bool) -> bool:
        """Write the flag. Returns True if pmset accepted the change."""
        value = "1" if enabled else "0"
        try:
            result = subprocess.run(
                ["sudo", "-n", "pmset", "-a", "lowpowermode", value],
                capture_output=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            log.warning("power_mode_write_failed", enabled=enabled, error=str(e))
            return False

        if result.returncode != 0:
            log.debug("power_mode_write_rejected", enabled=enabled, returncode=result.returncode)
            return False

        log.info("power_mode_written", enabled=enabled)
        return True

    def suppress(self, state: MonitorState) -> bool:
        """Disable Low Power Mode while apps prevent sleep.

        Only acts when the mode was enabled at startup and no write has been
        attempted since the monitor last went idle.
        Returns True if a write was attempted.
        """
        if not self.enabled or state.power_mode_write_attempted:
            return False
        if state.original_power_mode != 1:
            return False

        state.power_mode_write_attempted = True
        console.power_mode_disabling()
        if self.set_mode(False):
            state.power_mode_disabled_by_us = True
        else:
            self._warn_sudo_once(state)
        return True

    def restore(self, state: MonitorState) -> bool:
        """Re-enable Low Power Mode if this monitor disabled it.

        Returns True if a write was attempted.
        """
        if not state.power_mode_disabled_by_us or state.original_power_mode != 1:
            return False

        console.power_mode_restoring()
        if not self.set_mode(True):
            self._warn_sudo_once(state)
        state.power_mode_disabled_by_us = False
        return True

    def _warn_sudo_once(self, state: MonitorState) -> None:
        if state.sudo_warning_shown:
            return
        log.warning("power_mode_sudo_required")
        console.sudo_hint(getpass.getuser())
        state.sudo_warning_shown = True
