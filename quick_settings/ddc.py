"""
DDC/CI Access - Interface to ddcutil for display discovery and VCP control
==========================================================================
"""

import glob
import grp
import os
import re
import subprocess
import time
import logging
from typing import Optional, List, Tuple, Type
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_DISPLAY_RE = re.compile(r'^Display (\d+)$')
_BUS_RE = re.compile(r'^\s+I2C bus:\s+/dev/i2c-(\d+)$')
_MODEL_RE = re.compile(r'^\s+Model:\s+(.+)$')
_CURRENT_VALUE_RE = re.compile(r'current value =\s*(\d+)')


class DDCError(Exception):
    """Base exception for failed ddcutil invocations."""

    def __init__(self, message: str, command: Optional[List[str]] = None,
                 returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.output = output


class DiscoveryError(DDCError):
    """Display detection failed or could not be started."""


class ReadError(DDCError):
    """A getvcp call failed or returned no current value."""


class WriteError(DDCError):
    """A setvcp call failed."""


@dataclass(frozen=True)
class DisplayRecord:
    """A display block parsed from ``ddcutil detect``."""
    index: int
    name: str
    bus: Optional[int] = None

    @property
    def controllable(self) -> bool:
        """Only displays with an I2C bus can be addressed by ddcutil."""
        return self.bus is not None

    def __str__(self):
        if self.bus is None:
            return f"{self.name} (Display {self.index}, no I2C bus)"
        return f"{self.name} (Display {self.index}, /dev/i2c-{self.bus})"


def _finalize(current: dict) -> DisplayRecord:
    name = current.get('name')
    if name is None:
        name = f"Display {current['index']}"
    return DisplayRecord(index=current['index'], name=name, bus=current.get('bus'))


def parse_detect(output: str) -> List[DisplayRecord]:
    """
    Parse ``ddcutil detect`` output into display records.

    Lines before the first ``Display N`` header are ignored, and within a
    block only the first ``I2C bus:`` and ``Model:`` lines count.

    Args:
        output: Standard output of ``ddcutil detect``

    Returns:
        Records in order of appearance
    """
    records: List[DisplayRecord] = []
    current: Optional[dict] = None

    for line in output.split('\n'):
        match = _DISPLAY_RE.match(line)
        if match:
            if current is not None:
                records.append(_finalize(current))
            current = {'index': int(match.group(1))}
            continue

        if current is None:
            continue

        bus_match = _BUS_RE.match(line)
        if bus_match and 'bus' not in current:
            current['bus'] = int(bus_match.group(1))
            continue

        model_match = _MODEL_RE.match(line)
        if model_match and 'name' not in current:
            current['name'] = model_match.group(1)

    if current is not None:
        records.append(_finalize(current))

    return records


def parse_current_value(output: str) -> Optional[int]:
    """Extract the current value from ``ddcutil getvcp`` output."""
    match = _CURRENT_VALUE_RE.search(output)
    if match:
        return int(match.group(1))
    return None


class DdcUtil:
    """
    Thin wrapper around the ddcutil command-line tool.

    Every call is blocking; callers that must not block (the GUI) run these
    from a worker thread.
    """

    VCP_BRIGHTNESS = 0x10
    VCP_CONTRAST = 0x12

    VCP_NAMES = {
        0x10: "Brightness",
        0x12: "Contrast",
    }

    def __init__(
        self,
        path: str = "ddcutil",
        timeout: float = 10.0,
        detect_timeout: float = 30.0,
        retry_count: int = 1,
        sleep_multiplier: Optional[float] = None,
    ):
        """
        Args:
            path: ddcutil binary
            timeout: Timeout in seconds for getvcp/setvcp
            detect_timeout: Timeout in seconds for detect
            retry_count: Number of attempts per command
            sleep_multiplier: Passed as --sleep-multiplier when set
        """
        self.path = path
        self.timeout = timeout
        self.detect_timeout = detect_timeout
        self.retry_count = max(1, retry_count)
        self.sleep_multiplier = sleep_multiplier

    @classmethod
    def from_config(cls, ddc_config) -> 'DdcUtil':
        return cls(
            path=ddc_config.ddcutil_path,
            timeout=ddc_config.timeout,
            detect_timeout=ddc_config.detect_timeout,
            retry_count=ddc_config.retry_count,
            sleep_multiplier=ddc_config.sleep_multiplier,
        )

    def _bus_args(self, bus: int) -> List[str]:
        args = [f"--bus={bus}"]
        if self.sleep_multiplier is not None:
            args.extend(["--sleep-multiplier", f"{self.sleep_multiplier:.1f}"])
        return args

    def _run(self, args: List[str], error_cls: Type[DDCError], timeout: float) -> str:
        """
        Run ddcutil, retrying failed attempts.

        Raises:
            error_cls: If every attempt failed, timed out or could not start
        """
        command = [self.path] + args
        last_message = ""
        last_returncode = None
        last_output = ""

        for attempt in range(self.retry_count):
            start_time = time.time()
            logger.debug(f"Running (attempt {attempt + 1}/{self.retry_count}): {' '.join(command)}")
            try:
                result = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    errors="replace",
                    timeout=timeout,
                )
            except subprocess.TimeoutExpired:
                last_message = f"timed out after {timeout:.1f}s"
                last_returncode = None
                last_output = ""
                logger.warning(f"Command timed out (attempt {attempt + 1}/{self.retry_count}): {' '.join(command)}")
            except OSError as e:
                raise error_cls(
                    f"Could not run {command[0]}: {e}",
                    command=command,
                    output=str(e),
                ) from e
            else:
                elapsed = time.time() - start_time
                if result.returncode == 0:
                    logger.debug(f"Command completed in {elapsed:.2f}s")
                    return result.stdout
                last_returncode = result.returncode
                last_output = (result.stderr or result.stdout or "").strip()
                last_message = f"exit code {result.returncode}"
                logger.warning(
                    f"Command failed (attempt {attempt + 1}/{self.retry_count}, {elapsed:.1f}s): "
                    f"{' '.join(command)} → {last_output or '(no output)'}"
                )

            if attempt < self.retry_count - 1:
                time.sleep(0.3 * (attempt + 1))

        raise error_cls(
            f"'{' '.join(command)}' failed: {last_message}",
            command=command,
            returncode=last_returncode,
            output=last_output,
        )

    def detect(self) -> str:
        """Run ``ddcutil detect`` and return its standard output."""
        return self._run(["detect"], DiscoveryError, self.detect_timeout)

    def get_vcp(self, bus: int, code: int) -> int:
        """
        Read the current value of a VCP feature.

        Raises:
            ReadError: If the command fails or prints no current value
        """
        args = self._bus_args(bus) + ["getvcp", f"{code:02x}"]
        output = self._run(args, ReadError, self.timeout)
        value = parse_current_value(output)
        if value is None:
            raise ReadError(
                f"No current value in getvcp {code:02x} output",
                command=[self.path] + args,
                returncode=0,
                output=output.strip(),
            )
        return value

    def set_vcp(self, bus: int, code: int, value: int) -> None:
        """
        Write a VCP feature value. Only the exit code matters.

        Raises:
            WriteError: If the command fails
        """
        args = self._bus_args(bus) + ["setvcp", f"{code:02x}", str(value)]
        self._run(args, WriteError, self.timeout)


class DisplayDiscovery:
    """Enumerates displays with ``ddcutil detect``."""

    def __init__(self, ddcutil: Optional[DdcUtil] = None):
        self.ddcutil = ddcutil or DdcUtil()

    def discover(self) -> List[DisplayRecord]:
        """
        Detect connected displays.

        Returns:
            Display records in ascending index order

        Raises:
            DiscoveryError: If ddcutil fails or cannot be started
        """
        logger.info("Detecting displays...")
        try:
            output = self.ddcutil.detect()
        except DiscoveryError as e:
            logger.error(f"Failed to detect displays: {e.output or e}")
            raise

        records = parse_detect(output)
        if not records:
            logger.warning("Could not find any DDC/CI displays.")
        for record in records:
            if record.controllable:
                logger.info(f"Display {record.index}: {record.name} on /dev/i2c-{record.bus}")
            else:
                logger.warning(f"Display {record.index}: {record.name} has no I2C bus, cannot be controlled")
        logger.info(f"Detected {len(records)} displays.")
        return records


def check_ddcutil_available(path: str = "ddcutil") -> Tuple[bool, str]:
    """
    Check if ddcutil is installed and working.

    Returns:
        Tuple of (is_available, message)
    """
    try:
        result = subprocess.run(
            [path, "--version"],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=5,
        )
    except FileNotFoundError:
        return False, "ddcutil not found. Install with: sudo apt install ddcutil"
    except subprocess.TimeoutExpired:
        return False, "ddcutil timed out"
    except OSError as e:
        return False, f"Error checking ddcutil: {e}"

    if result.returncode == 0:
        version = result.stdout.split('\n')[0] if result.stdout else "unknown"
        return True, f"ddcutil found: {version}"
    return False, f"ddcutil error: {result.stderr.strip()}"


def check_i2c_permissions() -> Tuple[bool, str]:
    """
    Check if the current user can open I2C devices.

    Returns:
        Tuple of (has_permission, message)
    """
    if os.getuid() == 0:
        return True, "Running as root"

    try:
        i2c_group = grp.getgrnam('i2c')
        if i2c_group.gr_gid in os.getgroups():
            return True, "User has i2c group access"
    except KeyError:
        pass

    i2c_devices = sorted(glob.glob('/dev/i2c-*'))
    if not i2c_devices:
        return False, "No I2C devices found. Load i2c-dev module: sudo modprobe i2c-dev"

    for device in i2c_devices:
        if os.access(device, os.R_OK | os.W_OK):
            return True, f"I2C device {device} is accessible"

    return False, (
        "Cannot access I2C devices. Add user to i2c group:\n"
        "  sudo usermod -aG i2c $USER\n"
        "Then log out and back in."
    )
