"""
CustomTkinter Quick Settings Panel
==================================
Wi-Fi / Bluetooth switches and per-monitor brightness and contrast sliders
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import customtkinter as ctk
from PIL import ImageTk

from ..ddc import DisplayRecord
from ..monitor import MonitorChange, MonitorController
from .icon import create_icon

logger = logging.getLogger(__name__)

DEFAULT_TOOLTIP = "Quick Settings"


class QuickSettingsPanel:
    """
    Small always-on-top window with the quick settings.

    All user actions are reported through named callbacks (see
    ``set_callback``), except the monitor sliders which talk to their
    MonitorController directly.
    """

    COLORS = {
        'accent': '#4A90E2',
        'accent_hover': '#6AA8F0',
        'bg': '#1a1a1a',
        'bg_secondary': '#2d2d2d',
        'text': '#ffffff',
        'text_dim': '#888888',
        'error': '#E25C4A',
    }

    FONT_SIZES = {
        'title': 14,
        'normal': 12,
        'small': 11,
    }

    WIDTH = 360

    def __init__(
        self,
        position: str = "top-right",
        theme: str = "dark",
        scroll_step: int = 5,
        tooltip_timeout: float = 2.5,
    ):
        self.position = position
        self.theme = theme
        self.scroll_step = scroll_step
        self.tooltip_timeout = tooltip_timeout

        self._root: Optional[ctk.CTk] = None
        self._callbacks: Dict[str, Callable] = {}
        self._monitor_widgets: Dict[int, Dict] = {}
        self._info_widgets: List = []
        self._unsubscribers: List[Callable[[], None]] = []
        self._updating_from_code = False
        self._tooltip_timer: Optional[str] = None
        self._icon_photo = None

    # Window

    def _create_window(self):
        """Create the CustomTkinter window."""
        ctk.set_appearance_mode(self.theme)
        ctk.set_default_color_theme("blue")

        self._root = ctk.CTk(className='quick-settings')
        self._root.title(DEFAULT_TOOLTIP)
        self._root.attributes('-topmost', True)
        self._root.protocol("WM_DELETE_WINDOW", self._on_window_close)
        self._set_window_icon()

        screen_width = self._root.winfo_screenwidth()
        screen_height = self._root.winfo_screenheight()
        height = min(520, screen_height - 100)
        if self.position == "top-right":
            x, y = screen_width - self.WIDTH - 20, 40
        elif self.position == "bottom-right":
            x, y = screen_width - self.WIDTH - 20, screen_height - height - 60
        else:
            x, y = (screen_width - self.WIDTH) // 2, (screen_height - height) // 2
        self._root.geometry(f"{self.WIDTH}x{height}+{x}+{y}")

        self._create_header()
        self._create_radio_row()

        self._monitors_frame = ctk.CTkScrollableFrame(self._root, fg_color="transparent")
        self._monitors_frame.pack(fill="both", expand=True, padx=10, pady=(5, 0))

        footer = ctk.CTkFrame(self._root, fg_color="transparent")
        footer.pack(fill="x", padx=10, pady=10)
        self._refresh_btn = ctk.CTkButton(
            footer,
            text="⟳ Refresh Displays",
            fg_color=self.COLORS['bg_secondary'],
            hover_color=self.COLORS['accent'],
            command=self._on_refresh_clicked,
        )
        self._refresh_btn.pack(fill="x")
        self._status_label = ctk.CTkLabel(
            footer,
            text="",
            font=ctk.CTkFont(size=self.FONT_SIZES['small']),
            text_color=self.COLORS['text_dim'],
            wraplength=self.WIDTH - 40,
            justify="left",
        )
        self._status_label.pack(fill="x", pady=(6, 0))

        self._root.bind('<FocusIn>', self._on_focus_in, add="+")
        logger.info("Quick settings panel initialized")

    def _create_header(self):
        header = ctk.CTkFrame(self._root, fg_color=self.COLORS['bg_secondary'], corner_radius=8)
        header.pack(fill="x", padx=10, pady=(10, 5))

        self._tooltip_label = ctk.CTkLabel(
            header,
            text=DEFAULT_TOOLTIP,
            font=ctk.CTkFont(size=self.FONT_SIZES['title'], weight="bold"),
            text_color=self.COLORS['text'],
            justify="left",
        )
        self._tooltip_label.pack(fill="x", padx=10, pady=8)

        # X11 reports wheel notches as buttons 4/5, other platforms as <MouseWheel>
        for widget in (header, self._tooltip_label):
            widget.bind("<Button-4>", self._on_mousewheel, add="+")
            widget.bind("<Button-5>", self._on_mousewheel, add="+")
            widget.bind("<MouseWheel>", self._on_mousewheel, add="+")

    def _create_radio_row(self):
        row = ctk.CTkFrame(self._root, fg_color="transparent")
        row.pack(fill="x", padx=10, pady=5)

        self._wifi_switch = ctk.CTkSwitch(
            row, text="Wi-Fi",
            progress_color=self.COLORS['accent'],
            command=self._on_wifi_toggled,
        )
        self._wifi_switch.grid(row=0, column=0, sticky="w", padx=(0, 10))
        ctk.CTkButton(
            row, text="⚙", width=28,
            fg_color=self.COLORS['bg_secondary'],
            command=lambda: self._invoke_callback('open_network_settings'),
        ).grid(row=0, column=1, padx=(0, 20))

        self._bluetooth_switch = ctk.CTkSwitch(
            row, text="Bluetooth",
            progress_color=self.COLORS['accent'],
            command=self._on_bluetooth_toggled,
        )
        self._bluetooth_switch.grid(row=0, column=2, sticky="w", padx=(0, 10))
        ctk.CTkButton(
            row, text="⚙", width=28,
            fg_color=self.COLORS['bg_secondary'],
            command=lambda: self._invoke_callback('open_bluetooth_settings'),
        ).grid(row=0, column=3)

    def _set_window_icon(self):
        try:
            self._icon_photo = ImageTk.PhotoImage(create_icon(64))
            self._root.iconphoto(True, self._icon_photo)
        except Exception as e:
            logger.debug(f"Could not set window icon: {e}")

    def _on_window_close(self):
        logger.info("Window closed, shutting down...")
        self._invoke_callback('quit')
        self.stop()

    def _on_focus_in(self, event):
        if event.widget is self._root:
            self._invoke_callback('panel_focused')

    # Callbacks

    def set_callback(self, name: str, callback: Callable):
        self._callbacks[name] = callback

    def _invoke_callback(self, name: str, *args):
        if name in self._callbacks:
            try:
                return self._callbacks[name](*args)
            except Exception as e:
                logger.error(f"Callback error ({name}): {e}")
        return None

    def _schedule(self, fn: Callable, delay_ms: int = 0) -> Optional[str]:
        """Run fn on the Tk thread."""
        if self._root:
            return self._root.after(delay_ms, fn)
        return None

    # Radios

    def set_radio_states(self, wifi: Optional[bool], bluetooth: Optional[bool]):
        """Reflect radio power states; None leaves a switch untouched."""
        def update():
            self._updating_from_code = True
            try:
                for switch, state in ((self._wifi_switch, wifi), (self._bluetooth_switch, bluetooth)):
                    if state is None:
                        continue
                    if state:
                        switch.select()
                    else:
                        switch.deselect()
            finally:
                self._updating_from_code = False
        self._schedule(update)

    def _on_wifi_toggled(self):
        if not self._updating_from_code:
            self._invoke_callback('toggle_wifi', bool(self._wifi_switch.get()))

    def _on_bluetooth_toggled(self):
        if not self._updating_from_code:
            self._invoke_callback('toggle_bluetooth', bool(self._bluetooth_switch.get()))

    # Monitors

    def set_monitors(self, controllers: List[MonitorController], informational: Iterable[DisplayRecord] = ()):
        """Rebuild the monitor sections for a new controller set."""
        controllers = list(controllers)
        informational = list(informational)

        def rebuild():
            self._clear_monitors()
            for controller in controllers:
                self._monitor_widgets[controller.index] = self._create_monitor_section(
                    self._monitors_frame, controller
                )
                self._unsubscribers.append(controller.subscribe(self._on_monitor_change))
            for record in informational:
                label = ctk.CTkLabel(
                    self._monitors_frame,
                    text=f"{record.name} (no DDC/CI bus)",
                    text_color=self.COLORS['text_dim'],
                    anchor="w",
                )
                label.pack(fill="x", pady=(8, 0))
                self._info_widgets.append(label)
            if not controllers and not informational:
                self.set_status("Could not find any DDC/CI displays.")
        self._schedule(rebuild)

    def _clear_monitors(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for widgets in self._monitor_widgets.values():
            widgets['frame'].destroy()
        self._monitor_widgets = {}
        for label in self._info_widgets:
            label.destroy()
        self._info_widgets = []

    def _create_monitor_section(self, parent, controller: MonitorController) -> Dict:
        frame = ctk.CTkFrame(parent, fg_color=self.COLORS['bg_secondary'], corner_radius=8)
        frame.pack(fill="x", pady=(8, 0))

        brightness_label = ctk.CTkLabel(
            frame, text=controller.label,
            font=ctk.CTkFont(size=self.FONT_SIZES['normal'], weight="bold"),
            anchor="w",
        )
        brightness_label.pack(fill="x", padx=10, pady=(8, 0))
        brightness_slider = self._create_slider(frame, controller.brightness)
        brightness_slider.configure(command=lambda v, c=controller: self._on_brightness_slider(c, v))
        brightness_slider.bind(
            "<ButtonRelease-1>",
            lambda e, c=controller: self._on_brightness_release(c),
            add="+",
        )

        contrast_label = ctk.CTkLabel(
            frame, text=controller.contrast_label,
            font=ctk.CTkFont(size=self.FONT_SIZES['small']),
            text_color=self.COLORS['text_dim'],
            anchor="w",
        )
        contrast_label.pack(fill="x", padx=10)
        contrast_slider = self._create_slider(frame, controller.contrast)
        contrast_slider.configure(command=lambda v, c=controller: self._on_contrast_slider(c, v))
        contrast_slider.bind(
            "<ButtonRelease-1>",
            lambda e, c=controller: self._on_contrast_release(c),
            add="+",
        )

        return {
            'frame': frame,
            'controller': controller,
            'brightness_label': brightness_label,
            'brightness_slider': brightness_slider,
            'contrast_label': contrast_label,
            'contrast_slider': contrast_slider,
        }

    def _create_slider(self, parent, value: int) -> ctk.CTkSlider:
        slider = ctk.CTkSlider(
            parent, from_=0, to=100, number_of_steps=100,
            progress_color=self.COLORS['accent'],
            button_color=self.COLORS['accent'],
            button_hover_color=self.COLORS['accent_hover'],
        )
        slider.set(value)
        slider.pack(fill="x", padx=10, pady=(2, 8))
        return slider

    def _on_brightness_slider(self, controller: MonitorController, value: float):
        if not self._updating_from_code:
            controller.preview_brightness(int(round(value)))

    def _on_contrast_slider(self, controller: MonitorController, value: float):
        if not self._updating_from_code:
            controller.preview_contrast(int(round(value)))

    def _on_brightness_release(self, controller: MonitorController):
        widgets = self._monitor_widgets.get(controller.index)
        if widgets:
            controller.set_brightness(int(round(widgets['brightness_slider'].get())))

    def _on_contrast_release(self, controller: MonitorController):
        widgets = self._monitor_widgets.get(controller.index)
        if widgets:
            controller.set_contrast(int(round(widgets['contrast_slider'].get())))

    def _on_monitor_change(self, controller: MonitorController, change: MonitorChange):
        """Observer; may run on a DDC worker thread."""
        self._schedule(lambda: self._apply_monitor_state(controller, change))

    def _apply_monitor_state(self, controller: MonitorController, change: MonitorChange):
        widgets = self._monitor_widgets.get(controller.index)
        if not widgets or widgets['controller'] is not controller:
            return

        state = controller.get_state()
        self._updating_from_code = True
        try:
            widgets['brightness_label'].configure(
                text=controller.label if state.reachable else f"{controller.label} ⚠"
            )
            widgets['contrast_label'].configure(text=controller.contrast_label)
            # Previews come from the slider itself; moving it again would fight the drag
            if change.confirmed:
                widgets['brightness_slider'].set(state.brightness)
                widgets['contrast_slider'].set(state.contrast)
        finally:
            self._updating_from_code = False

    # Refresh and status

    def _on_refresh_clicked(self):
        self._invoke_callback('refresh_monitors')

    def set_detecting(self, detecting: bool):
        def update():
            self._refresh_btn.configure(state="disabled" if detecting else "normal")
            if detecting:
                self._status_label.configure(text="Detecting displays...", text_color=self.COLORS['text_dim'])
        self._schedule(update)

    def set_status(self, text: str):
        self._schedule(lambda: self._status_label.configure(text=text, text_color=self.COLORS['text_dim']))

    def show_error(self, message: str):
        self._schedule(lambda: self._status_label.configure(text=message, text_color=self.COLORS['error']))

    # Scroll-wheel brightness

    def _on_mousewheel(self, event):
        if getattr(event, 'num', None) == 4 or getattr(event, 'delta', 0) > 0:
            step = self.scroll_step
        elif getattr(event, 'num', None) == 5 or getattr(event, 'delta', 0) < 0:
            step = -self.scroll_step
        else:
            return
        self._invoke_callback('scroll_brightness', step)

    def show_tooltip(self, lines: List[Tuple[str, int]]):
        """Show per-monitor brightness in the header for a few seconds."""
        text = "\n".join(f"{name}: {value}%" for name, value in lines) or DEFAULT_TOOLTIP

        def update():
            if self._tooltip_timer is not None:
                self._root.after_cancel(self._tooltip_timer)
            self._tooltip_label.configure(text=text)
            self._tooltip_timer = self._root.after(int(self.tooltip_timeout * 1000), self._reset_tooltip)
        self._schedule(update)

    def _reset_tooltip(self):
        self._tooltip_timer = None
        self._tooltip_label.configure(text=DEFAULT_TOOLTIP)

    # Public API

    def run(self):
        """Create the window and run the Tk main loop (blocking)."""
        self._create_window()
        self._invoke_callback('ready')
        self._root.mainloop()

    def close(self):
        """Stop the panel from any thread."""
        self._schedule(self.stop)

    def stop(self):
        if self._root is None:
            return
        self._clear_monitors()
        try:
            self._root.quit()
            self._root.destroy()
        except Exception as e:
            logger.debug(f"Error closing window: {e}")
        self._root = None
