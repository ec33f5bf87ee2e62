"""
Radio Toggles - Wi-Fi and Bluetooth power via nmcli / bluetoothctl
==================================================================
"""

import logging
import shlex
import subprocess
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class RadioToggle:
    """
    On/off switch backed by a status command and a power command.

    ``power_command`` gets ``on`` or ``off`` appended.
    """

    def __init__(
        self,
        name: str,
        status_command: List[str],
        power_command: List[str],
        parse_state: Callable[[str], bool],
        timeout: float = 5.0,
    ):
        self.name = name
        self.status_command = status_command
        self.power_command = power_command
        self.parse_state = parse_state
        self.timeout = timeout

    def _run(self, command: List[str]) -> Optional[subprocess.CompletedProcess]:
        logger.debug(f"{self.name}: running {' '.join(command)}")
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Error running '{' '.join(command)}' for {self.name}: {e}")
            return None

    def is_enabled(self) -> Optional[bool]:
        """
        Query the current power state.

        Returns:
            True/False, or None if the state could not be determined
        """
        result = self._run(self.status_command)
        if result is None:
            return None
        if result.returncode != 0:
            logger.error(f"Error updating {self.name} state: {result.stderr.strip()}")
            return None
        return self.parse_state(result.stdout)

    def set_enabled(self, enabled: bool) -> bool:
        """Switch the radio on or off. Returns True on success."""
        command = self.power_command + ["on" if enabled else "off"]
        result = self._run(command)
        if result is None:
            return False
        if result.returncode != 0:
            logger.error(f"Error toggling {self.name}: {result.stderr.strip() or result.stdout.strip()}")
            return False
        logger.info(f"{self.name} turned {'on' if enabled else 'off'}")
        return True


def _wifi_enabled(output: str) -> bool:
    return output.strip() == "enabled"


def _bluetooth_powered(output: str) -> bool:
    return "Powered: yes" in output


def wifi_toggle() -> RadioToggle:
    return RadioToggle(
        "Wi-Fi",
        status_command=["nmcli", "radio", "wifi"],
        power_command=["nmcli", "radio", "wifi"],
        parse_state=_wifi_enabled,
    )


def bluetooth_toggle() -> RadioToggle:
    return RadioToggle(
        "Bluetooth",
        status_command=["bluetoothctl", "show"],
        power_command=["bluetoothctl", "power"],
        parse_state=_bluetooth_powered,
    )


def launch(command: str) -> bool:
    """
    Start a command without waiting for it (e.g. a settings dialog).

    Returns:
        False if the command could not be started
    """
    args = shlex.split(command)
    if not args:
        logger.warning("Empty launcher command")
        return False
    try:
        subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        logger.error(f"Could not launch '{command}': {e}")
        return False
    logger.info(f"Launched '{command}'")
    return True
