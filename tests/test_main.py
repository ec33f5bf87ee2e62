#!/usr/bin/env python3
"""
Tests for the --brightness/--contrast quick command.
"""

import io
import sys
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeDdcUtil, FakeDiscovery

import main
from quick_settings.ddc import DdcUtil, DisplayRecord
from quick_settings.manager import DisplayManager

B = DdcUtil.VCP_BRIGHTNESS
C = DdcUtil.VCP_CONTRAST


class TestSetMonitorValues(unittest.TestCase):

    def setUp(self):
        self.ddc = FakeDdcUtil()
        self.manager = DisplayManager(self.ddc, FakeDiscovery([DisplayRecord(1, "DELL U2720Q", 7)]))

        patches = [
            patch('main._load_config', return_value=None),
            patch.object(DisplayManager, 'from_config', return_value=self.manager),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def tearDown(self):
        self.manager.shutdown(wait=True, timeout=5)

    def run_command(self, brightness=None, contrast=None, display=None):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main.set_monitor_values(None, display, brightness, contrast)
        return code, out.getvalue()

    def test_success(self):
        code, out = self.run_command(brightness=40)
        self.assertEqual(code, 0)
        self.assertIn("DELL U2720Q: brightness set to 40", out)
        self.assertEqual(self.ddc.calls, [(7, B, 40)])

    def test_failed_write_is_reported(self):
        self.ddc.fail_values = {30}
        with self.assertLogs('quick_settings.monitor', level='ERROR'):
            code, out = self.run_command(brightness=30)
        self.assertEqual(code, 1)
        self.assertIn("Error: could not write to DELL U2720Q", out)

    def test_failure_followed_by_success_is_still_reported(self):
        self.ddc.fail_values = {30}
        with self.assertLogs('quick_settings.monitor', level='ERROR'):
            code, out = self.run_command(brightness=30, contrast=50)
        self.assertEqual(self.ddc.calls, [(7, B, 30), (7, C, 50)])
        self.assertEqual(code, 1)
        self.assertIn("could not write", out)

    def test_unknown_display(self):
        code, out = self.run_command(brightness=40, display=2)
        self.assertEqual(code, 1)
        self.assertIn("Display 2 not found", out)
        self.assertEqual(self.ddc.calls, [])


if __name__ == '__main__':
    unittest.main(verbosity=2)
