#!/usr/bin/env python3
"""
Quick Settings - Wi-Fi, Bluetooth and monitor brightness for Linux
==================================================================

Small panel with radio switches and DDC/CI brightness/contrast sliders
for every connected monitor (via ddcutil).

Usage:
    python main.py [--config PATH] [--debug]

    Options:
        --config PATH       Path to configuration file
        --debug             Enable debug logging
        --detect            Detect displays and exit
        --status            Show radio states and monitor values and exit
        --brightness VALUE  Set brightness (0-100) and exit
        --contrast VALUE    Set contrast (0-100) and exit
        --display INDEX     Limit --brightness/--contrast to one display
        --wifi on|off       Switch Wi-Fi and exit
        --bluetooth on|off  Switch Bluetooth and exit
"""

# Disable IBus integration to prevent high CPU usage
# Must be set before any tkinter imports
import os
os.environ['GTK_IM_MODULE'] = ''
os.environ['QT_IM_MODULE'] = ''
os.environ['XMODIFIERS'] = ''

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

LOG_FILE = Path.home() / ".local" / "share" / "quick-settings" / "quick-settings.log"


# Set up logging first
def setup_logging(debug: bool = False, log_file: Optional[Path] = None):
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
    )

logger = logging.getLogger(__name__)


def _load_config(config_path: Optional[Path]):
    from quick_settings.config import Config

    config = Config(config_path)
    config.load()
    return config


def detect_monitors(config_path: Optional[Path] = None) -> int:
    """Detect and list connected displays."""
    from quick_settings.ddc import (
        DisplayDiscovery, DdcUtil, DiscoveryError,
        check_ddcutil_available, check_i2c_permissions,
    )

    config = _load_config(config_path)

    # Check prerequisites
    available, msg = check_ddcutil_available(config.ddc.ddcutil_path)
    if not available:
        print(f"Error: {msg}")
        return 1
    print(f"✓ {msg}")

    has_perms, msg = check_i2c_permissions()
    if not has_perms:
        print(f"Warning: {msg}")
    else:
        print(f"✓ {msg}")

    print("\nDetecting displays...")
    try:
        records = DisplayDiscovery(DdcUtil.from_config(config.ddc)).discover()
    except DiscoveryError as e:
        print(f"Error: {e}")
        if e.output:
            print(e.output)
        return 1

    if not records:
        print("Could not find any DDC/CI displays.")
        print("\nTroubleshooting:")
        print("  1. Ensure DDC/CI is enabled in monitor OSD settings")
        print("  2. Try: sudo modprobe i2c-dev")
        print("  3. Check: ls /dev/i2c-*")
        return 1

    print(f"\nFound {len(records)} display(s):\n")
    for record in records:
        print(f"  Display {record.index}:")
        print(f"    Name:     {record.name}")
        print(f"    I2C Bus:  {'/dev/i2c-%d' % record.bus if record.controllable else 'N/A (not controllable)'}")
        print()

    return 0


def show_status(config_path: Optional[Path] = None) -> int:
    """Print radio states and current monitor values."""
    from quick_settings.ddc import DiscoveryError
    from quick_settings.manager import DisplayManager
    from quick_settings.radio import bluetooth_toggle, wifi_toggle

    def describe(state: Optional[bool]) -> str:
        if state is None:
            return "unknown"
        return "on" if state else "off"

    print(f"Wi-Fi:      {describe(wifi_toggle().is_enabled())}")
    print(f"Bluetooth:  {describe(bluetooth_toggle().is_enabled())}")

    manager = DisplayManager.from_config(_load_config(config_path))
    try:
        controllers = manager.refresh()
    except DiscoveryError as e:
        print(f"Error: {e}")
        return 1

    print()
    for controller in controllers:
        state = controller.get_state()
        print(f"  {controller.label}")
        print(f"    Contrast:  {state.contrast}%")
        if controller.failures:
            print("    (values could not be read)")
    for record in manager.uncontrollable:
        print(f"  {record}")
    manager.shutdown()
    return 0


def set_monitor_values(
    config_path: Optional[Path],
    display: Optional[int],
    brightness: Optional[int],
    contrast: Optional[int],
) -> int:
    """Set brightness/contrast on one or all displays and wait for the writes."""
    from quick_settings.ddc import DiscoveryError
    from quick_settings.manager import DisplayManager

    manager = DisplayManager.from_config(_load_config(config_path))
    try:
        manager.refresh(initialize=False)
    except DiscoveryError as e:
        print(f"Error: {e}")
        return 1

    if display is not None:
        controller = manager.get_controller(display)
        if controller is None:
            print(f"Error: Display {display} not found or not controllable")
            return 1
        controllers = [controller]
    else:
        controllers = manager.controllers
        if not controllers:
            print("Could not find any DDC/CI displays.")
            return 1

    for controller in controllers:
        if brightness is not None:
            value = controller.set_brightness(brightness)
            print(f"{controller.name}: brightness set to {value}")
        if contrast is not None:
            value = controller.set_contrast(contrast)
            print(f"{controller.name}: contrast set to {value}")

    manager.shutdown(wait=True)
    failed = [c for c in controllers if c.write_errors]
    for controller in failed:
        print(f"Error: could not write to {controller.name}")
    return 1 if failed else 0


def set_radio(name: str, enabled: bool) -> int:
    from quick_settings.radio import bluetooth_toggle, wifi_toggle

    toggle = wifi_toggle() if name == "wifi" else bluetooth_toggle()
    if not toggle.set_enabled(enabled):
        print(f"Error: could not switch {toggle.name} {'on' if enabled else 'off'}")
        return 1
    print(f"{toggle.name} turned {'on' if enabled else 'off'}")
    return 0


class QuickSettingsApp:
    """
    Main application controller.

    Wires the display manager and radio toggles to the panel. Everything
    that spawns a process runs off the Tk thread.
    """

    def __init__(self, config_path: Optional[Path] = None):
        from quick_settings.manager import DisplayManager
        from quick_settings.radio import bluetooth_toggle, wifi_toggle

        self.config = _load_config(config_path)
        self.manager = DisplayManager.from_config(self.config)
        self.wifi = wifi_toggle()
        self.bluetooth = bluetooth_toggle()
        self.panel = None
        self._stopped = False

    def _init_gui(self):
        from quick_settings.gui.quick_panel import QuickSettingsPanel

        gui = self.config.gui
        self.panel = QuickSettingsPanel(
            position=gui.position,
            theme=gui.theme,
            scroll_step=gui.scroll_step,
            tooltip_timeout=gui.tooltip_timeout,
        )
        self.panel.set_callback('ready', self._on_ready)
        self.panel.set_callback('panel_focused', self._on_panel_focused)
        self.panel.set_callback('toggle_wifi', self._on_toggle_wifi)
        self.panel.set_callback('toggle_bluetooth', self._on_toggle_bluetooth)
        self.panel.set_callback('open_network_settings', self._on_open_network_settings)
        self.panel.set_callback('open_bluetooth_settings', self._on_open_bluetooth_settings)
        self.panel.set_callback('refresh_monitors', self._on_refresh_monitors)
        self.panel.set_callback('scroll_brightness', self._on_scroll_brightness)
        self.panel.set_callback('quit', self._on_quit)

    def _in_background(self, target, name: str):
        threading.Thread(target=target, name=name, daemon=True).start()

    def _on_ready(self):
        self._refresh_radios()
        self._on_refresh_monitors()

    def _on_panel_focused(self):
        self._refresh_radios()
        if not self.manager.detecting:
            self._in_background(self.manager.refresh_values, "refresh-values")

    # Radios

    def _refresh_radios(self):
        def refresh():
            self.panel.set_radio_states(self.wifi.is_enabled(), self.bluetooth.is_enabled())
        self._in_background(refresh, "radio-status")

    def _toggle_radio(self, toggle, enabled: bool):
        def run():
            if not toggle.set_enabled(enabled):
                self.panel.show_error(f"Could not switch {toggle.name} {'on' if enabled else 'off'}")
                self.panel.set_radio_states(self.wifi.is_enabled(), self.bluetooth.is_enabled())
        self._in_background(run, f"toggle-{toggle.name}")

    def _on_toggle_wifi(self, enabled: bool):
        self._toggle_radio(self.wifi, enabled)

    def _on_toggle_bluetooth(self, enabled: bool):
        self._toggle_radio(self.bluetooth, enabled)

    def _on_open_network_settings(self):
        from quick_settings.radio import launch
        if not launch(self.config.launchers.network_settings):
            self.panel.show_error(f"Could not start {self.config.launchers.network_settings}")

    def _on_open_bluetooth_settings(self):
        from quick_settings.radio import launch
        if not launch(self.config.launchers.bluetooth_settings):
            self.panel.show_error(f"Could not start {self.config.launchers.bluetooth_settings}")

    # Monitors

    def _on_refresh_monitors(self):
        """Handle refresh displays button click."""
        logger.info("Refreshing displays...")
        self.panel.set_detecting(True)
        self.manager.refresh_async(
            on_complete=self._on_monitors_detected,
            on_error=self._on_detect_failed,
        )

    def _on_monitors_detected(self, controllers: List):
        self.panel.set_detecting(False)
        self.panel.set_status("")
        self.panel.set_monitors(controllers, self.manager.uncontrollable)
        logger.info("Display refresh complete")

    def _on_detect_failed(self, error):
        self.panel.set_detecting(False)
        self.panel.show_error(f"Display detection failed: {error}")

    def _on_scroll_brightness(self, step: int):
        lines = self.manager.adjust_brightness(step)
        if lines:
            self.panel.show_tooltip(lines)

    # Lifecycle

    def _on_quit(self):
        logger.info("Quit requested")

    def stop(self):
        """Stop the application."""
        if self._stopped:
            return
        self._stopped = True

        logger.info("Stopping Quick Settings...")
        # Let queued writes finish so the monitors end up at the last value
        self.manager.shutdown(wait=True, timeout=5.0)
        if self.panel:
            self.panel.stop()
        logger.info("Quick Settings stopped")

    def run(self) -> int:
        """Run the application (blocking)."""
        logger.info("Starting Quick Settings...")
        self._init_gui()

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}")
            self.panel.close()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        try:
            self.panel.run()
        except KeyboardInterrupt:
            pass

        self.stop()
        return 0


def _on_off(value: str) -> bool:
    value = value.lower()
    if value not in ("on", "off"):
        raise argparse.ArgumentTypeError("expected 'on' or 'off'")
    return value == "on"


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Quick Settings - Wi-Fi, Bluetooth and DDC/CI monitor controls",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to configuration file'
    )
    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--detect',
        action='store_true',
        help='Detect displays and exit'
    )
    parser.add_argument(
        '--status',
        action='store_true',
        help='Show radio states and monitor values and exit'
    )

    # Quick commands
    parser.add_argument(
        '--brightness', '-b',
        type=int,
        metavar='VALUE',
        help='Set brightness (0-100) and exit'
    )
    parser.add_argument(
        '--contrast',
        type=int,
        metavar='VALUE',
        help='Set contrast (0-100) and exit'
    )
    parser.add_argument(
        '--display',
        type=int,
        metavar='INDEX',
        help='Display index for --brightness/--contrast (default: all)'
    )
    parser.add_argument(
        '--wifi',
        type=_on_off,
        metavar='on|off',
        help='Switch Wi-Fi and exit'
    )
    parser.add_argument(
        '--bluetooth',
        type=_on_off,
        metavar='on|off',
        help='Switch Bluetooth and exit'
    )

    args = parser.parse_args()

    quick_command = (
        args.detect or args.status
        or args.brightness is not None or args.contrast is not None
        or args.wifi is not None or args.bluetooth is not None
    )

    # Setup logging
    setup_logging(args.debug, None if quick_command else LOG_FILE)

    # Handle quick commands
    if args.detect:
        return detect_monitors(args.config)

    if args.status:
        return show_status(args.config)

    if args.wifi is not None or args.bluetooth is not None:
        result = 0
        if args.wifi is not None:
            result |= set_radio("wifi", args.wifi)
        if args.bluetooth is not None:
            result |= set_radio("bluetooth", args.bluetooth)
        return result

    if args.brightness is not None or args.contrast is not None:
        return set_monitor_values(args.config, args.display, args.brightness, args.contrast)

    # Run main application
    app = QuickSettingsApp(config_path=args.config)
    return app.run()


if __name__ == '__main__':
    sys.exit(main())
