"""
Display Manager - Owns the discovered displays and their controllers
====================================================================
"""

import logging
import threading
from typing import Callable, List, Optional, Tuple

from .ddc import DdcUtil, DisplayDiscovery, DisplayRecord, DiscoveryError
from .monitor import MonitorController

logger = logging.getLogger(__name__)


class DisplayManager:
    """
    Runs discovery and keeps one MonitorController per controllable display.

    A successful refresh replaces the whole set; a failed one keeps the
    previous set. Only one discovery can be in flight at a time.
    """

    def __init__(
        self,
        ddcutil: Optional[DdcUtil] = None,
        discovery: Optional[DisplayDiscovery] = None,
        coalesce_writes: bool = False,
        unreachable_after: int = 3,
    ):
        self.ddcutil = ddcutil or DdcUtil()
        self.discovery = discovery or DisplayDiscovery(self.ddcutil)
        self.coalesce_writes = coalesce_writes
        self.unreachable_after = unreachable_after

        self._records: List[DisplayRecord] = []
        self._controllers: List[MonitorController] = []
        self._detecting = False
        self._guard = threading.Lock()

    @classmethod
    def from_config(cls, config) -> 'DisplayManager':
        return cls(
            ddcutil=DdcUtil.from_config(config.ddc),
            coalesce_writes=config.ddc.coalesce_writes,
            unreachable_after=config.ddc.unreachable_after,
        )

    @property
    def records(self) -> List[DisplayRecord]:
        return list(self._records)

    @property
    def controllers(self) -> List[MonitorController]:
        return list(self._controllers)

    @property
    def uncontrollable(self) -> List[DisplayRecord]:
        """Detected displays without an I2C bus (informational only)."""
        return [r for r in self._records if not r.controllable]

    @property
    def detecting(self) -> bool:
        return self._detecting

    def get_controller(self, index: int) -> Optional[MonitorController]:
        for controller in self._controllers:
            if controller.index == index:
                return controller
        return None

    def _begin(self) -> bool:
        with self._guard:
            if self._detecting:
                return False
            self._detecting = True
            return True

    def _end(self):
        with self._guard:
            self._detecting = False

    def refresh(self, initialize: bool = True) -> Optional[List[MonitorController]]:
        """
        Re-detect displays and rebuild the controllers.

        Args:
            initialize: Read current values for every new controller

        Returns:
            The new controllers, or None if a discovery is already running

        Raises:
            DiscoveryError: If detection failed (previous set is kept)
        """
        if not self._begin():
            logger.info("Display detection already in progress, ignoring refresh")
            return None
        try:
            return self._refresh(initialize)
        finally:
            self._end()

    def _refresh(self, initialize: bool) -> List[MonitorController]:
        records = self.discovery.discover()

        controllers = [
            MonitorController(
                record,
                self.ddcutil,
                coalesce_writes=self.coalesce_writes,
                unreachable_after=self.unreachable_after,
            )
            for record in records
            if record.controllable
        ]

        old = self._controllers
        self._records = records
        self._controllers = controllers
        for controller in old:
            controller.shutdown(wait=False)
        # Old queued writes finish before the new controllers touch the same buses
        for controller in old:
            controller.shutdown(wait=True)

        if initialize:
            for controller in controllers:
                logger.info(f"Getting brightness of display {controller.index}...")
                controller.initialize()

        return list(controllers)

    def refresh_async(
        self,
        on_complete: Optional[Callable[[List[MonitorController]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        initialize: bool = True,
    ) -> bool:
        """
        Run refresh() on a background thread.

        ``on_error`` receives the DiscoveryError, or any unexpected
        exception raised while rebuilding the controllers.

        Returns:
            False if a discovery is already running
        """
        if not self._begin():
            logger.info("Display detection already in progress, ignoring refresh")
            return False

        def run():
            controllers = None
            error = None
            try:
                controllers = self._refresh(initialize)
            except DiscoveryError as e:
                error = e
            except Exception as e:
                logger.error(f"Display refresh failed: {e!r}")
                error = e
            finally:
                self._end()

            if error is not None:
                self._invoke(on_error, error)
            else:
                self._invoke(on_complete, controllers)

        threading.Thread(target=run, name="display-discovery", daemon=True).start()
        return True

    @staticmethod
    def _invoke(callback: Optional[Callable], *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Refresh callback error: {e}")

    def refresh_values(self):
        """Re-read brightness on every controller."""
        for controller in self._controllers:
            controller.refresh_values()

    def adjust_brightness(self, step: int) -> List[Tuple[str, int]]:
        """
        Change brightness of every monitor by ``step``.

        Returns:
            (name, new brightness) per monitor
        """
        result = []
        for controller in self._controllers:
            value = controller.set_brightness(controller.brightness + step)
            result.append((controller.name, value))
        return result

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        for controller in self._controllers:
            controller.shutdown(wait=wait, timeout=timeout)
