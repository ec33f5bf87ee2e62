"""
Monitor Controller - Cached brightness/contrast with serialized DDC writes
=========================================================================

One controller exists per controllable display. Values set from the UI are
cached and announced to observers immediately; the matching ``setvcp`` calls
are queued and executed one at a time, in submission order, by a worker
thread owned by the controller.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Tuple

from .ddc import DdcUtil, DisplayRecord, ReadError, WriteError

logger = logging.getLogger(__name__)

DEFAULT_VALUE = 50

BRIGHTNESS = "brightness"
CONTRAST = "contrast"

_PROPERTY_CODES = {
    BRIGHTNESS: DdcUtil.VCP_BRIGHTNESS,
    CONTRAST: DdcUtil.VCP_CONTRAST,
}


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, int(round(value))))


@dataclass(frozen=True)
class MonitorState:
    """Snapshot of a controller's cached values."""
    brightness: int
    contrast: int
    reachable: bool = True


@dataclass(frozen=True)
class MonitorChange:
    """
    Describes a change announced to observers.

    ``confirmed`` is False for optimistic local updates (previews and
    requested values) and True once the value was read from or written to
    the monitor. ``prop`` is None for reachability changes.
    """
    prop: Optional[str]
    value: Optional[int]
    confirmed: bool


Observer = Callable[['MonitorController', MonitorChange], None]


class MonitorController:
    """
    Brightness and contrast control for a single display.

    Thread-safety: ``set_*``/``preview_*`` may be called from any thread.
    Every ddcutil invocation for this bus holds ``_io_lock`` so reads never
    overlap writes.
    """

    def __init__(
        self,
        record: DisplayRecord,
        ddcutil: Optional[DdcUtil] = None,
        coalesce_writes: bool = False,
        unreachable_after: int = 3,
    ):
        """
        Args:
            record: Discovered display; must have a bus
            ddcutil: ddcutil wrapper used for reads and writes
            coalesce_writes: Drop queued writes superseded by a newer value
            unreachable_after: Consecutive failures before the monitor is
                reported unreachable (0 disables tracking)
        """
        if record.bus is None:
            raise ValueError(f"Display {record.index} has no I2C bus and cannot be controlled")

        self.record = record
        self.ddcutil = ddcutil or DdcUtil()
        self.coalesce_writes = coalesce_writes
        self.unreachable_after = unreachable_after

        self._bus = record.bus
        self._brightness = DEFAULT_VALUE
        self._contrast = DEFAULT_VALUE
        self._reachable = True
        self._failures = 0
        self._write_errors = 0

        self._observers: List[Observer] = []
        self._observers_lock = threading.Lock()
        self._failure_lock = threading.Lock()
        self._io_lock = threading.Lock()

        # Write queue
        self._cond = threading.Condition()
        self._pending: Deque[Tuple[str, int]] = deque()
        self._in_flight = False
        self._closed = False
        self._thread: Optional[threading.Thread] = None

    def __repr__(self):
        return f"MonitorController(index={self.index}, name={self.name!r}, bus={self.bus})"

    @property
    def bus(self) -> int:
        return self._bus

    @property
    def index(self) -> int:
        return self.record.index

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def brightness(self) -> int:
        return self._brightness

    @property
    def contrast(self) -> int:
        return self._contrast

    @property
    def reachable(self) -> bool:
        return self._reachable

    @property
    def failures(self) -> int:
        """Consecutive failed reads/writes."""
        return self._failures

    @property
    def write_errors(self) -> int:
        """Failed writes over the controller's lifetime."""
        return self._write_errors

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def label(self) -> str:
        return f"{self.name}  ({self._brightness}%)"

    @property
    def contrast_label(self) -> str:
        return f"{self.name} Contrast ({self._contrast}%)"

    def get_state(self) -> MonitorState:
        return MonitorState(self._brightness, self._contrast, self._reachable)

    # Observers

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """
        Register a change observer.

        Returns:
            A callable that removes the observer again
        """
        with self._observers_lock:
            self._observers.append(callback)

        def unsubscribe():
            with self._observers_lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return unsubscribe

    def _notify(self, change: MonitorChange):
        with self._observers_lock:
            observers = list(self._observers)
        for callback in observers:
            try:
                callback(self, change)
            except Exception as e:
                logger.error(f"DDC[bus {self._bus}] Observer error: {e}")

    def _set_cached(self, prop: str, value: int):
        if prop == BRIGHTNESS:
            self._brightness = value
        else:
            self._contrast = value

    # Reads

    def initialize(self):
        """Read current brightness and contrast. Failures are logged, never raised."""
        self._read(BRIGHTNESS)
        self._read(CONTRAST)

    def refresh_values(self, contrast: bool = False):
        """Re-read brightness (and contrast if requested) from the monitor."""
        self._read(BRIGHTNESS)
        if contrast:
            self._read(CONTRAST)

    def _read(self, prop: str) -> Optional[int]:
        code = _PROPERTY_CODES[prop]
        logger.debug(f"DDC[bus {self._bus}] Reading {prop}...")
        try:
            with self._io_lock:
                value = self.ddcutil.get_vcp(self._bus, code)
        except ReadError as e:
            logger.warning(f"DDC[bus {self._bus}] Could not read {prop}: {e} {e.output}".rstrip())
            self._record_failure()
            return None
        except Exception as e:
            logger.warning(f"DDC[bus {self._bus}] Unexpected error reading {prop}: {e!r}")
            self._record_failure()
            return None

        value = clamp(value)
        self._set_cached(prop, value)
        self._record_success()
        logger.info(f"DDC[bus {self._bus}] {self.name} {prop} is {value}")
        self._notify(MonitorChange(prop, value, confirmed=True))
        return value

    # Writes

    def preview_brightness(self, value: int) -> int:
        """Update cached brightness without writing (e.g. while dragging)."""
        return self._preview(BRIGHTNESS, value)

    def preview_contrast(self, value: int) -> int:
        """Update cached contrast without writing (e.g. while dragging)."""
        return self._preview(CONTRAST, value)

    def set_brightness(self, value: int) -> int:
        """
        Set brightness (clamped to 0-100).

        The cache and observers are updated before returning; the hardware
        write is queued.

        Returns:
            The clamped value
        """
        return self._request(BRIGHTNESS, value)

    def set_contrast(self, value: int) -> int:
        """Set contrast (clamped to 0-100). See set_brightness."""
        return self._request(CONTRAST, value)

    def _preview(self, prop: str, value: int) -> int:
        value = clamp(value)
        self._set_cached(prop, value)
        self._notify(MonitorChange(prop, value, confirmed=False))
        return value

    def _request(self, prop: str, value: int) -> int:
        value = self._preview(prop, value)
        self._enqueue(prop, value)
        return value

    def _enqueue(self, prop: str, value: int):
        with self._cond:
            if self._closed:
                logger.debug(f"DDC[bus {self._bus}] Controller shut down, not writing {prop}={value}")
                return
            if self.coalesce_writes:
                superseded = [op for op in self._pending if op[0] == prop]
                if superseded:
                    self._pending = deque(op for op in self._pending if op[0] != prop)
                    logger.debug(f"DDC[bus {self._bus}] Dropped {len(superseded)} queued {prop} write(s)")
            self._pending.append((prop, value))
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._worker,
                    name=f"ddc-bus-{self._bus}",
                    daemon=True,
                )
                self._thread.start()
            self._cond.notify_all()

    def _worker(self):
        while True:
            with self._cond:
                while not self._pending and not self._closed:
                    self._cond.wait()
                if not self._pending:
                    return
                prop, value = self._pending.popleft()
                self._in_flight = True
            try:
                self._write(prop, value)
            finally:
                with self._cond:
                    self._in_flight = False
                    self._cond.notify_all()

    def _write(self, prop: str, value: int):
        code = _PROPERTY_CODES[prop]
        try:
            with self._io_lock:
                self.ddcutil.set_vcp(self._bus, code, value)
        except WriteError as e:
            logger.error(f"DDC[bus {self._bus}] Failed to set {prop} to {value}: {e} {e.output}".rstrip())
            self._write_errors += 1
            self._record_failure()
            return
        except Exception as e:
            # The worker must survive anything ddcutil or its wrapper throws
            logger.error(f"DDC[bus {self._bus}] Unexpected error setting {prop} to {value}: {e!r}")
            self._write_errors += 1
            self._record_failure()
            return

        self._record_success()
        logger.info(f"DDC[bus {self._bus}] Set {prop} to {value}")
        self._notify(MonitorChange(prop, value, confirmed=True))

    # Reachability

    def _record_failure(self):
        with self._failure_lock:
            self._failures += 1
            failures = self._failures
            became_unreachable = (
                bool(self.unreachable_after)
                and self._reachable
                and failures >= self.unreachable_after
            )
            if became_unreachable:
                self._reachable = False
        if became_unreachable:
            logger.warning(f"DDC[bus {self._bus}] {self.name} unreachable after {failures} consecutive failures")
            self._notify(MonitorChange(None, None, confirmed=True))

    def _record_success(self):
        with self._failure_lock:
            self._failures = 0
            recovered = not self._reachable
            self._reachable = True
        if recovered:
            logger.info(f"DDC[bus {self._bus}] {self.name} is reachable again")
            self._notify(MonitorChange(None, None, confirmed=True))

    # Lifecycle

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every queued write has finished.

        Returns:
            False if the timeout expired first
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._pending and not self._in_flight,
                timeout=timeout,
            )

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting writes. Already queued writes still run.

        Args:
            wait: Join the worker thread
            timeout: Join timeout in seconds
        """
        with self._cond:
            self._closed = True
            self._cond.notify_all()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
