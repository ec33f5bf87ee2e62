"""
Configuration Management
========================
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, asdict

import yaml

logger = logging.getLogger(__name__)


@dataclass
class DDCConfig:
    """ddcutil invocation and write-queue settings."""
    ddcutil_path: str = "ddcutil"
    timeout: float = 10.0
    detect_timeout: float = 30.0
    retry_count: int = 1
    sleep_multiplier: Optional[float] = None
    coalesce_writes: bool = False
    unreachable_after: int = 3


@dataclass
class GUIConfig:
    """GUI configuration."""
    scroll_step: int = 5
    tooltip_timeout: float = 2.5
    theme: str = "dark"
    position: str = "top-right"


@dataclass
class LauncherConfig:
    """Commands opened by the settings buttons."""
    network_settings: str = "cinnamon-settings network"
    bluetooth_settings: str = "blueman-manager"


class Config:
    """
    Configuration manager for quick settings.

    Handles loading, saving, and accessing configuration settings.
    """

    DEFAULT_CONFIG_PATH = Path.home() / ".config" / "quick-settings" / "config.yaml"

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to configuration file, or None for default
        """
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        self._data: Dict[str, Any] = {}

        self.ddc = DDCConfig()
        self.gui = GUIConfig()
        self.launchers = LauncherConfig()

    def load(self) -> bool:
        """
        Load configuration from file.

        Returns:
            True if configuration was loaded successfully
        """
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}")
            return False

        try:
            with open(self.config_path, 'r') as f:
                self._data = yaml.safe_load(f) or {}

            if not isinstance(self._data, dict):
                raise ValueError(f"configuration root must be a mapping: {self.config_path}")

            self._parse_config()
            logger.info(f"Loaded configuration from {self.config_path}")
            return True

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse configuration: {e}")
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")

        self._reset()
        return False

    def _reset(self):
        """Fall back to the defaults."""
        self._data = {}
        self.ddc = DDCConfig()
        self.gui = GUIConfig()
        self.launchers = LauncherConfig()

    def _parse_config(self):
        """Parse loaded configuration data into typed objects."""
        defaults = DDCConfig()
        ddc = self._data.get('ddc') or {}
        sleep_multiplier = ddc.get('sleep_multiplier', defaults.sleep_multiplier)
        self.ddc = DDCConfig(
            ddcutil_path=str(ddc.get('ddcutil_path', defaults.ddcutil_path)),
            timeout=float(ddc.get('timeout', defaults.timeout)),
            detect_timeout=float(ddc.get('detect_timeout', defaults.detect_timeout)),
            retry_count=max(1, int(ddc.get('retry_count', defaults.retry_count))),
            sleep_multiplier=float(sleep_multiplier) if sleep_multiplier is not None else None,
            coalesce_writes=bool(ddc.get('coalesce_writes', defaults.coalesce_writes)),
            unreachable_after=max(0, int(ddc.get('unreachable_after', defaults.unreachable_after))),
        )

        gui = self._data.get('gui') or {}
        self.gui = GUIConfig(
            scroll_step=int(gui.get('scroll_step', 5)),
            tooltip_timeout=float(gui.get('tooltip_timeout', 2.5)),
            theme=gui.get('theme', 'dark'),
            position=gui.get('position', 'top-right'),
        )

        launchers = self._data.get('launchers') or {}
        launcher_defaults = LauncherConfig()
        self.launchers = LauncherConfig(
            network_settings=launchers.get('network_settings', launcher_defaults.network_settings),
            bluetooth_settings=launchers.get('bluetooth_settings', launcher_defaults.bluetooth_settings),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ddc': asdict(self.ddc),
            'gui': asdict(self.gui),
            'launchers': asdict(self.launchers),
        }

    def save(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if configuration was saved successfully
        """
        self._data = self.to_dict()
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Failed to save configuration: {e}")
            return False
        logger.info(f"Saved configuration to {self.config_path}")
        return True

    @classmethod
    def create_default_config(cls, path: Optional[Path] = None) -> bool:
        """
        Write a configuration file containing the defaults.

        Args:
            path: Path for the configuration file

        Returns:
            True if file was created successfully
        """
        return cls(path).save()
