#!/usr/bin/env python3
"""
UI tests for the quick settings panel.

The panel is created without a Tk window; widgets are mocks and the root
runs ``after(0, ...)`` callbacks immediately.
"""

import sys
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from quick_settings.ddc import DisplayRecord
from quick_settings.monitor import BRIGHTNESS, MonitorChange, MonitorState

try:
    from quick_settings.gui.quick_panel import DEFAULT_TOOLTIP, QuickSettingsPanel
except ImportError:  # tkinter or customtkinter not installed
    QuickSettingsPanel = None


class MockCTkRoot:
    """Mock CTk root window."""
    def __init__(self):
        self.after_callbacks = []
        self.cancelled = []
        self.destroyed = False

    def after(self, delay, callback):
        # Execute immediate callbacks for testing, keep timers
        if delay == 0:
            callback()
            return None
        self.after_callbacks.append((delay, callback))
        return f"after#{len(self.after_callbacks)}"

    def after_cancel(self, timer_id):
        self.cancelled.append(timer_id)

    def quit(self):
        pass

    def destroy(self):
        self.destroyed = True


def make_controller(index=1, name="DELL U2720Q", brightness=40, contrast=60, reachable=True):
    controller = Mock()
    controller.index = index
    controller.name = name
    controller.brightness = brightness
    controller.contrast = contrast
    controller.label = f"{name}  ({brightness}%)"
    controller.contrast_label = f"{name} Contrast ({contrast}%)"
    controller.get_state.return_value = MonitorState(brightness, contrast, reachable)
    controller.subscribe.return_value = Mock()
    return controller


@unittest.skipIf(QuickSettingsPanel is None, "customtkinter not available")
class PanelTestCase(unittest.TestCase):

    def setUp(self):
        # Create panel instance without initializing GUI
        self.panel = object.__new__(QuickSettingsPanel)

        self.panel._root = MockCTkRoot()
        self.panel._callbacks = {}
        self.panel._monitor_widgets = {}
        self.panel._info_widgets = []
        self.panel._unsubscribers = []
        self.panel._updating_from_code = False
        self.panel._tooltip_timer = None
        self.panel.scroll_step = 5
        self.panel.tooltip_timeout = 2.5

        self.panel._wifi_switch = Mock()
        self.panel._bluetooth_switch = Mock()
        self.panel._refresh_btn = Mock()
        self.panel._status_label = Mock()
        self.panel._tooltip_label = Mock()
        self.panel._monitors_frame = Mock()

    def add_monitor(self, controller):
        widgets = {
            'frame': Mock(),
            'controller': controller,
            'brightness_label': Mock(),
            'brightness_slider': Mock(),
            'contrast_label': Mock(),
            'contrast_slider': Mock(),
        }
        self.panel._monitor_widgets[controller.index] = widgets
        return widgets


class TestRadioSwitches(PanelTestCase):

    def test_wifi_switch_reports_new_state(self):
        callback = Mock()
        self.panel.set_callback('toggle_wifi', callback)
        self.panel._wifi_switch.get.return_value = 1

        self.panel._on_wifi_toggled()

        callback.assert_called_once_with(True)

    def test_bluetooth_switch_reports_new_state(self):
        callback = Mock()
        self.panel.set_callback('toggle_bluetooth', callback)
        self.panel._bluetooth_switch.get.return_value = 0

        self.panel._on_bluetooth_toggled()

        callback.assert_called_once_with(False)

    def test_set_radio_states(self):
        self.panel.set_radio_states(True, False)

        self.panel._wifi_switch.select.assert_called_once()
        self.panel._bluetooth_switch.deselect.assert_called_once()
        self.assertFalse(self.panel._updating_from_code)

    def test_unknown_state_leaves_switch_untouched(self):
        self.panel.set_radio_states(None, True)

        self.panel._wifi_switch.select.assert_not_called()
        self.panel._wifi_switch.deselect.assert_not_called()
        self.panel._bluetooth_switch.select.assert_called_once()

    def test_programmatic_update_does_not_fire_toggle(self):
        callback = Mock()
        self.panel.set_callback('toggle_wifi', callback)
        self.panel._updating_from_code = True

        self.panel._on_wifi_toggled()

        callback.assert_not_called()


class TestMonitorSliders(PanelTestCase):

    def test_slider_motion_previews(self):
        controller = make_controller()
        self.add_monitor(controller)

        self.panel._on_brightness_slider(controller, 42.4)
        self.panel._on_contrast_slider(controller, 70.0)

        controller.preview_brightness.assert_called_once_with(42)
        controller.preview_contrast.assert_called_once_with(70)
        controller.set_brightness.assert_not_called()

    def test_slider_release_writes(self):
        controller = make_controller()
        widgets = self.add_monitor(controller)
        widgets['brightness_slider'].get.return_value = 55.0
        widgets['contrast_slider'].get.return_value = 20.6

        self.panel._on_brightness_release(controller)
        self.panel._on_contrast_release(controller)

        controller.set_brightness.assert_called_once_with(55)
        controller.set_contrast.assert_called_once_with(21)

    def test_programmatic_slider_update_does_not_preview(self):
        controller = make_controller()
        self.panel._updating_from_code = True

        self.panel._on_brightness_slider(controller, 10)

        controller.preview_brightness.assert_not_called()

    def test_confirmed_change_moves_sliders_and_labels(self):
        controller = make_controller(brightness=40, contrast=60)
        widgets = self.add_monitor(controller)

        self.panel._on_monitor_change(controller, MonitorChange(BRIGHTNESS, 40, confirmed=True))

        widgets['brightness_slider'].set.assert_called_once_with(40)
        widgets['contrast_slider'].set.assert_called_once_with(60)
        widgets['brightness_label'].configure.assert_called_once_with(text="DELL U2720Q  (40%)")
        widgets['contrast_label'].configure.assert_called_once_with(text="DELL U2720Q Contrast (60%)")

    def test_preview_change_only_updates_labels(self):
        controller = make_controller()
        widgets = self.add_monitor(controller)

        self.panel._on_monitor_change(controller, MonitorChange(BRIGHTNESS, 40, confirmed=False))

        widgets['brightness_slider'].set.assert_not_called()
        widgets['brightness_label'].configure.assert_called_once()

    def test_unreachable_monitor_is_marked(self):
        controller = make_controller(reachable=False)
        widgets = self.add_monitor(controller)

        self.panel._on_monitor_change(controller, MonitorChange(None, None, confirmed=True))

        text = widgets['brightness_label'].configure.call_args[1]['text']
        self.assertTrue(text.startswith("DELL U2720Q  (40%)"))
        self.assertIn("⚠", text)

    def test_change_from_replaced_controller_is_ignored(self):
        current = make_controller()
        widgets = self.add_monitor(current)
        stale = make_controller()

        self.panel._on_monitor_change(stale, MonitorChange(BRIGHTNESS, 10, confirmed=True))

        widgets['brightness_slider'].set.assert_not_called()

    def test_monitor_changes_only_affect_own_section(self):
        first = make_controller(index=1)
        second = make_controller(index=2, name="LG HDR 4K")
        first_widgets = self.add_monitor(first)
        second_widgets = self.add_monitor(second)

        self.panel._on_monitor_change(second, MonitorChange(BRIGHTNESS, 40, confirmed=True))

        first_widgets['brightness_slider'].set.assert_not_called()
        second_widgets['brightness_slider'].set.assert_called_once_with(40)

    @patch('quick_settings.gui.quick_panel.ctk')
    def test_monitor_section_binds_release(self, mock_ctk):
        mock_ctk.CTkSlider.side_effect = lambda *args, **kwargs: MagicMock()
        mock_ctk.CTkLabel.side_effect = lambda *args, **kwargs: MagicMock()
        controller = make_controller()

        widgets = self.panel._create_monitor_section(self.panel._monitors_frame, controller)
        self.panel._monitor_widgets[controller.index] = widgets

        slider = widgets['brightness_slider']
        slider.set.assert_called_with(40)
        event, release = slider.bind.call_args[0][:2]
        self.assertEqual(event, "<ButtonRelease-1>")
        slider.get.return_value = 65
        release(Mock())
        controller.set_brightness.assert_called_once_with(65)

        motion = slider.configure.call_args[1]['command']
        motion(33.0)
        controller.preview_brightness.assert_called_once_with(33)


class TestMonitorList(PanelTestCase):

    @patch('quick_settings.gui.quick_panel.ctk')
    def test_set_monitors_builds_sections_and_info_rows(self, mock_ctk):
        controller = make_controller()
        section = {'frame': Mock()}
        self.panel._create_monitor_section = Mock(return_value=section)

        self.panel.set_monitors([controller], [DisplayRecord(2, "Display 2")])

        self.assertIs(self.panel._monitor_widgets[1], section)
        controller.subscribe.assert_called_once_with(self.panel._on_monitor_change)
        self.assertEqual(mock_ctk.CTkLabel.call_args[1]['text'], "Display 2 (no DDC/CI bus)")

    @patch('quick_settings.gui.quick_panel.ctk')
    def test_set_monitors_replaces_previous_sections(self, mock_ctk):
        old = make_controller()
        old_section = {'frame': Mock()}
        self.panel._create_monitor_section = Mock(return_value=old_section)
        self.panel.set_monitors([old])

        new = make_controller()
        self.panel._create_monitor_section = Mock(return_value={'frame': Mock()})
        self.panel.set_monitors([new])

        old.subscribe.return_value.assert_called_once()
        old_section['frame'].destroy.assert_called_once()
        self.assertEqual(len(self.panel._unsubscribers), 1)

    def test_no_displays_shows_message(self):
        self.panel.set_monitors([], [])
        self.panel._status_label.configure.assert_called_with(
            text="Could not find any DDC/CI displays.",
            text_color=QuickSettingsPanel.COLORS['text_dim'],
        )


class TestRefreshAndStatus(PanelTestCase):

    def test_refresh_button_invokes_callback(self):
        callback = Mock()
        self.panel.set_callback('refresh_monitors', callback)
        self.panel._on_refresh_clicked()
        callback.assert_called_once_with()

    def test_detecting_disables_refresh(self):
        self.panel.set_detecting(True)
        self.panel._refresh_btn.configure.assert_called_with(state="disabled")
        self.assertEqual(self.panel._status_label.configure.call_args[1]['text'], "Detecting displays...")

        self.panel.set_detecting(False)
        self.panel._refresh_btn.configure.assert_called_with(state="normal")

    def test_show_error(self):
        self.panel.show_error("Display detection failed: boom")
        self.panel._status_label.configure.assert_called_once_with(
            text="Display detection failed: boom",
            text_color=QuickSettingsPanel.COLORS['error'],
        )

    def test_callback_errors_are_logged(self):
        self.panel.set_callback('refresh_monitors', Mock(side_effect=RuntimeError("boom")))
        with self.assertLogs('quick_settings.gui.quick_panel', level='ERROR'):
            self.panel._on_refresh_clicked()

    def test_window_close(self):
        callback = Mock()
        self.panel.set_callback('quit', callback)
        root = self.panel._root

        self.panel._on_window_close()

        callback.assert_called_once_with()
        self.assertTrue(root.destroyed)
        self.assertIsNone(self.panel._root)


class TestScrollTooltip(PanelTestCase):

    def test_wheel_up_and_down(self):
        callback = Mock()
        self.panel.set_callback('scroll_brightness', callback)

        self.panel._on_mousewheel(SimpleNamespace(num=4, delta=0))
        self.panel._on_mousewheel(SimpleNamespace(num=5, delta=0))
        self.panel._on_mousewheel(SimpleNamespace(num='??', delta=120))
        self.panel._on_mousewheel(SimpleNamespace(num='??', delta=-120))

        self.assertEqual([c[0][0] for c in callback.call_args_list], [5, -5, 5, -5])

    def test_tooltip_shows_values_then_resets(self):
        self.panel.show_tooltip([("DELL U2720Q", 55), ("LG HDR 4K", 35)])

        self.panel._tooltip_label.configure.assert_called_with(text="DELL U2720Q: 55%\nLG HDR 4K: 35%")
        delay, reset = self.panel._root.after_callbacks[-1]
        self.assertEqual(delay, 2500)

        reset()
        self.panel._tooltip_label.configure.assert_called_with(text=DEFAULT_TOOLTIP)
        self.assertIsNone(self.panel._tooltip_timer)

    def test_new_tooltip_cancels_pending_reset(self):
        self.panel.show_tooltip([("DELL U2720Q", 55)])
        first_timer = self.panel._tooltip_timer
        self.panel.show_tooltip([("DELL U2720Q", 60)])

        self.assertEqual(self.panel._root.cancelled, [first_timer])


if __name__ == '__main__':
    unittest.main(verbosity=2)
