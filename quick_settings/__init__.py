"""
Quick Settings - Wi-Fi, Bluetooth and DDC/CI monitor controls for Linux
=======================================================================

- Brightness and contrast of every DDC/CI monitor via ddcutil
- Writes serialized per monitor, never blocking the UI
- Wi-Fi / Bluetooth power switches
"""

__version__ = "1.0.0"
__author__ = "Quick Settings"

from .ddc import DdcUtil, DisplayDiscovery, DisplayRecord, DDCError
from .monitor import MonitorController
from .manager import DisplayManager
from .config import Config

__all__ = [
    "DdcUtil",
    "DisplayDiscovery",
    "DisplayRecord",
    "DDCError",
    "MonitorController",
    "DisplayManager",
    "Config",
]
