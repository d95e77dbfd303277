#!/usr/bin/env python3
"""
Blync TUI Controller

A terminal user interface for controlling a Blynclight.
Uses the Textual framework for the TUI and blync_effects for the device.

Requirements:
    pip install textual hidapi

Usage:
    python3 blync_tui.py
    python3 blync_tui.py --all-hid
"""

import argparse
import sys
from dataclasses import replace
from threading import Lock
from typing import Optional

try:
    from textual.app import App, ComposeResult
    from textual.containers import Container, Horizontal, ScrollableContainer
    from textual.widgets import (
        Header, Footer, Static, Button, ListView, ListItem,
        Switch, TabbedContent, TabPane
    )
    from textual.reactive import reactive
    from textual.message import Message
    from textual.binding import Binding
except ImportError:
    print("Error: textual library required. Install with:")
    print("  pip install textual")
    sys.exit(1)

from blync_protocol import (
    BASE_STATE,
    NAMED_COLORS,
    OFF_STATE,
    BlyncError,
    FlashSpeed,
    LightState,
)
from blync_effects import EffectRunner, make_effect_config
from blync_device import BlyncDevice, BlyncDeviceInfo, find_devices


PRESETS = ['red', 'orange', 'yellow', 'green', 'cyan', 'blue', 'purple', 'pink', 'white']


# =============================================================================
# Device Layer
# =============================================================================

class BlyncManager:
    """Owns the open device and its effect runner for the TUI."""

    def __init__(self, all_hid: bool = False):
        self.all_hid = all_hid
        self.devices: list[BlyncDeviceInfo] = []
        self.device: Optional[BlyncDevice] = None
        self.runner: Optional[EffectRunner] = None
        self.lock = Lock()

    def discover(self) -> list[BlyncDeviceInfo]:
        """Find attached devices."""
        devices = find_devices(all_hid=self.all_hid)
        with self.lock:
            self.devices = devices
        return devices

    def select(self, info: BlyncDeviceInfo):
        """Open a device, closing the previous one."""
        self.close()
        device = BlyncDevice(info).open()
        with self.lock:
            self.device = device
            self.runner = EffectRunner(device)

    def close(self):
        with self.lock:
            runner, device = self.runner, self.device
            self.runner = None
            self.device = None
        if runner:
            runner.stop()
        if device:
            device.close()

    def send(self, state: LightState):
        """Stop any effect and show a single state."""
        if self.runner is None:
            raise BlyncError("No device selected")
        self.runner.stop()
        self.runner.send(state)

    def start_effect(self, config, on_complete=None):
        if self.runner is None:
            raise BlyncError("No device selected")
        self.runner.start(config, on_complete)

    def stop_effect(self):
        if self.runner is not None:
            self.runner.stop()


# =============================================================================
# Custom Widgets
# =============================================================================

class Slider(Static):
    """A simple slider widget with arrow buttons."""

    DEFAULT_CSS = """
    Slider {
        height: 3;
        margin: 0 1;
    }
    Slider .slider-row {
        height: 1;
    }
    Slider .slider-label {
        text-style: bold;
        width: 12;
    }
    Slider .slider-btn {
        width: 3;
        min-width: 3;
        height: 1;
        padding: 0;
        margin: 0;
        border: none;
    }
    Slider .slider-track {
        width: 24;
    }
    Slider .slider-value {
        text-align: right;
        width: 8;
    }
    """

    value = reactive(0)

    class Changed(Message):
        """Slider value changed message."""
        def __init__(self, slider: "Slider", value: int) -> None:
            self.slider = slider
            self.value = value
            super().__init__()

    def __init__(
        self,
        label: str,
        min_value: int = 0,
        max_value: int = 255,
        value: int = 0,
        step: int = 1,
        name: str | None = None,
        id: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id)
        self.label = label
        self.min_value = min_value
        self.max_value = max_value
        self.step = step
        self._initial_value = value
        self.can_focus = True

    def compose(self) -> ComposeResult:
        with Horizontal(classes="slider-row"):
            yield Static(self.label, classes="slider-label")
            yield Button("◀", classes="slider-btn", id="btn-dec")
            yield Static("", classes="slider-track", id="track")
            yield Button("▶", classes="slider-btn", id="btn-inc")
            yield Static("", classes="slider-value", id="value-display")

    def on_mount(self) -> None:
        self.value = self._initial_value
        self._update_display()

    def validate_value(self, value: int) -> int:
        return max(self.min_value, min(self.max_value, int(value)))

    def watch_value(self, value: int) -> None:
        if self.is_mounted:
            self._update_display()
            self.post_message(self.Changed(self, value))

    def _update_display(self) -> None:
        range_val = self.max_value - self.min_value
        pct = (self.value - self.min_value) / range_val if range_val > 0 else 0

        track = self.query_one("#track", Static)
        width = 20
        filled = int(pct * width)
        track.update("█" * filled + "░" * (width - filled))

        self.query_one("#value-display", Static).update(str(self.value))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle arrow button presses."""
        event.stop()
        if event.button.id == "btn-dec":
            self.decrement(self.step)
        elif event.button.id == "btn-inc":
            self.increment(self.step)

    def increment(self, amount: int = 1) -> None:
        self.value = self.value + amount

    def decrement(self, amount: int = 1) -> None:
        self.value = self.value - amount


class DeviceListItem(ListItem):
    """A list item representing an attached device."""

    def __init__(self, device: BlyncDeviceInfo) -> None:
        super().__init__()
        self.device = device

    def compose(self) -> ComposeResult:
        icon = "●" if self.device.is_known else "○"
        yield Static(f"{icon} {self.device.product or 'HID device'}\n  {self.device.vendor_id:04x}:{self.device.product_id:04x}")


class ColorPreview(Static):
    """Shows a preview of the current color."""

    DEFAULT_CSS = """
    ColorPreview {
        height: 3;
        margin: 1 2;
        border: solid $primary;
        content-align: center middle;
    }
    """

    def update_state(self, state: LightState):
        if state.off:
            self.styles.background = "black"
            self.update("OFF")
            return
        self.styles.background = f"rgb({state.red},{state.green},{state.blue})"
        self.update(str(state))


# =============================================================================
# Main Panels
# =============================================================================

class DeviceSidebar(Container):
    """Sidebar showing attached devices."""

    DEFAULT_CSS = """
    DeviceSidebar {
        width: 30;
        dock: left;
        border-right: solid $primary;
        padding: 1;
    }
    DeviceSidebar ListView {
        height: 1fr;
    }
    DeviceSidebar .sidebar-title {
        text-style: bold;
        text-align: center;
        padding: 1;
        background: $primary;
        color: $text;
    }
    DeviceSidebar Button {
        width: 100%;
        margin: 1 0;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static("Blynclights", classes="sidebar-title")
        yield Button("Refresh", id="btn-refresh", variant="primary")
        yield ListView(id="device-list")
        yield Static("", id="device-count")

    def update_devices(self, devices: list[BlyncDeviceInfo]):
        list_view = self.query_one("#device-list", ListView)
        list_view.clear()
        for device in devices:
            list_view.append(DeviceListItem(device))
        self.query_one("#device-count", Static).update(f"{len(devices)} device(s)")


class ControlPanel(Container):
    """Main control panel for the selected device."""

    DEFAULT_CSS = """
    ControlPanel {
        padding: 0 1;
    }
    ControlPanel .panel-title {
        text-style: bold;
        text-align: center;
        padding: 1;
    }
    ControlPanel .no-device {
        text-align: center;
        padding: 4;
        color: $text-muted;
    }
    ControlPanel .button-row {
        height: auto;
        margin: 1 0;
    }
    ControlPanel .button-row Button {
        margin: 0 1;
        min-width: 10;
    }
    ControlPanel TabbedContent {
        height: 1fr;
    }
    ControlPanel TabPane {
        padding: 1;
    }
    """

    current_device: reactive[Optional[BlyncDeviceInfo]] = reactive(None)

    def compose(self) -> ComposeResult:
        yield Static("Select a device", classes="panel-title", id="device-title")
        yield Static("← Choose a light from the sidebar", classes="no-device", id="no-device-msg")

        with Container(id="controls-container"):
            with Horizontal(classes="button-row"):
                yield Button("ON", id="btn-power-on", variant="success")
                yield Button("OFF", id="btn-power-off", variant="error")
                yield Switch(value=False, id="switch-dim")
                yield Static("Dim")

            yield ColorPreview(id="color-preview")

            with TabbedContent():
                with TabPane("Color", id="tab-color"):
                    yield Slider("Red", 0, 255, 255, 5, id="slider-red")
                    yield Slider("Green", 0, 255, 255, 5, id="slider-green")
                    yield Slider("Blue", 0, 255, 255, 5, id="slider-blue")

                with TabPane("Presets", id="tab-presets"):
                    with Horizontal(classes="button-row"):
                        for name in PRESETS[:5]:
                            yield Button(name.title(), id=f"preset-{name}")
                    with Horizontal(classes="button-row"):
                        for name in PRESETS[5:]:
                            yield Button(name.title(), id=f"preset-{name}")

                with TabPane("Effects", id="tab-effects"):
                    yield Slider("Count", 1, 50, 5, 1, id="slider-count")
                    yield Slider("Delay ms", 0, 1000, 100, 10, id="slider-delay")
                    with Horizontal(classes="button-row"):
                        for speed in FlashSpeed:
                            yield Button(speed.name.title(), id=f"speed-{speed.name.lower()}")
                        yield Static("", id="speed-label")
                    with Horizontal(classes="button-row"):
                        yield Button("Flash", id="effect-flash")
                        yield Button("Strobe", id="effect-strobe")
                        yield Button("Pulse", id="effect-pulse")
                        yield Button("Fade Out", id="effect-transition")
                    with Horizontal(classes="button-row"):
                        yield Button("Stop", id="effect-stop", variant="error")

                with TabPane("Sound", id="tab-sound"):
                    yield Slider("Track", 0, 15, 0, 1, id="slider-music")
                    yield Slider("Volume", 0, 15, 8, 1, id="slider-volume")
                    with Horizontal(classes="button-row"):
                        yield Switch(value=False, id="switch-repeat")
                        yield Static("Repeat")
                        yield Switch(value=False, id="switch-mute")
                        yield Static("Mute")
                    with Horizontal(classes="button-row"):
                        yield Button("Play", id="btn-play", variant="success")
                        yield Button("Stop", id="btn-stop-music", variant="error")

    def on_mount(self):
        self.query_one("#controls-container").display = False

    def watch_current_device(self, device: Optional[BlyncDeviceInfo]) -> None:
        if device:
            self.query_one("#no-device-msg").display = False
            self.query_one("#controls-container").display = True
            self.query_one("#device-title", Static).update(str(device))
        else:
            self.query_one("#no-device-msg").display = True
            self.query_one("#controls-container").display = False
            self.query_one("#device-title", Static).update("Select a device")


# =============================================================================
# Main Application
# =============================================================================

class BlyncApp(App):
    """Blynclight TUI Controller Application."""

    CSS = """
    Screen {
        layout: horizontal;
    }

    #main-area {
        width: 1fr;
        height: 100%;
    }

    ControlPanel {
        height: auto;
    }

    Footer {
        background: $primary;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("o", "off", "Off"),
        Binding("s", "stop_effect", "Stop effect"),
    ]

    TITLE = "Blync Controller"

    def __init__(self, all_hid: bool = False):
        super().__init__()
        self.blync = BlyncManager(all_hid=all_hid)
        self.state: LightState = BASE_STATE
        self.speed = FlashSpeed.MEDIUM
        self._updating = False  # Prevent feedback loops

    def compose(self) -> ComposeResult:
        yield Header()
        yield DeviceSidebar()
        with ScrollableContainer(id="main-area"):
            yield ControlPanel()
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#speed-label", Static).update(f"Speed: {self.speed.name.lower()}")
        self.action_refresh()

    def on_unmount(self) -> None:
        self.blync.close()

    def action_refresh(self) -> None:
        """Refresh device list."""
        try:
            devices = self.blync.discover()
        except OSError as e:
            self.notify(f"Scan failed: {e}", severity="error")
            return
        self.query_one(DeviceSidebar).update_devices(devices)
        self.notify(f"Found {len(devices)} device(s)")

    def action_off(self) -> None:
        self._show(OFF_STATE)

    def action_stop_effect(self) -> None:
        self.blync.stop_effect()
        self._show(self.state)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        """Handle device selection from sidebar."""
        if not isinstance(event.item, DeviceListItem):
            return
        try:
            self.blync.select(event.item.device)
        except BlyncError as e:
            self.notify(str(e), severity="error")
            return
        self.query_one(ControlPanel).current_device = event.item.device

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button presses."""
        button_id = event.button.id or ""

        # Ignore slider internal buttons (they handle themselves)
        if button_id in ("btn-dec", "btn-inc"):
            return

        if button_id == "btn-refresh":
            self.action_refresh()
        elif button_id == "btn-power-on":
            self._show(replace(self.state, off=False))
        elif button_id == "btn-power-off":
            self.action_off()
        elif button_id.startswith("preset-"):
            self._apply_preset(button_id.replace("preset-", ""))
        elif button_id.startswith("speed-"):
            self.speed = FlashSpeed.from_name(button_id.replace("speed-", ""))
            self.query_one("#speed-label", Static).update(f"Speed: {self.speed.name.lower()}")
        elif button_id == "effect-stop":
            self.action_stop_effect()
        elif button_id.startswith("effect-"):
            self._apply_effect(button_id.replace("effect-", ""))
        elif button_id == "btn-play":
            self._show(self.state.with_music(
                self.query_one("#slider-music", Slider).value,
                play=True,
                repeat=self.query_one("#switch-repeat", Switch).value,
                volume=self.query_one("#slider-volume", Slider).value,
                mute=self.query_one("#switch-mute", Switch).value,
            ))
        elif button_id == "btn-stop-music":
            self._show(replace(self.state, play=False, repeat=False))

    def on_switch_changed(self, event: Switch.Changed) -> None:
        if event.switch.id == "switch-dim":
            self._show(replace(self.state, dim=event.value))

    def on_slider_changed(self, event: Slider.Changed) -> None:
        """Handle color slider changes."""
        if self._updating or event.slider.id not in ("slider-red", "slider-green", "slider-blue"):
            return
        self._show(self.state.with_color(*self._slider_rgb()))

    def _slider_rgb(self) -> tuple[int, int, int]:
        return (
            self.query_one("#slider-red", Slider).value,
            self.query_one("#slider-green", Slider).value,
            self.query_one("#slider-blue", Slider).value,
        )

    def _show(self, state: LightState) -> None:
        """Send a single state and remember it for the controls."""
        self.state = state
        self.query_one("#color-preview", ColorPreview).update_state(state)
        if self.blync.runner is None:
            return
        try:
            self.blync.send(state)
        except BlyncError as e:
            self.notify(str(e), severity="error")

    def _apply_preset(self, preset: str) -> None:
        """Apply a named color."""
        if preset not in NAMED_COLORS:
            return
        red, green, blue = NAMED_COLORS[preset]

        self._updating = True
        self.query_one("#slider-red", Slider).value = red
        self.query_one("#slider-green", Slider).value = green
        self.query_one("#slider-blue", Slider).value = blue
        self._updating = False

        self._show(self.state.with_color(red, green, blue))

    def _apply_effect(self, effect: str) -> None:
        """Start an effect on the background runner."""
        count = self.query_one("#slider-count", Slider).value
        delay = self.query_one("#slider-delay", Slider).value
        rgb = self._slider_rgb()

        try:
            if effect == "flash":
                config = make_effect_config('flash', rgb, count=count, speed_name=self.speed.name)
            elif effect == "strobe":
                config = make_effect_config('strobe', rgb, count=count, delay_ms=delay)
            elif effect == "pulse":
                config = make_effect_config('pulse', (rgb[0], 0, 0), count=count, delay_ms=0)
            elif effect == "transition":
                config = make_effect_config(
                    'transition', rgb, end_color=(0, 0, 0), steps=count * 10,
                    delay_ms=delay, leave_lit=False
                )
            else:
                return
            self.blync.start_effect(config, on_complete=self._effect_finished)
        except BlyncError as e:
            self.notify(str(e), severity="error")
            return

        self.notify(f"Effect: {effect}")

    def _effect_finished(self, error: Optional[BaseException]) -> None:
        """Called on the runner thread when an effect ends."""
        if error is not None:
            self.call_from_thread(self.notify, f"Effect failed: {error}", severity="error")


# =============================================================================
# Entry Point
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description='Blync TUI Controller - Control your Blynclight from the terminal'
    )
    parser.add_argument(
        '--all-hid',
        action='store_true',
        help='List every HID device, not just known Blynclights'
    )
    args = parser.parse_args()

    app = BlyncApp(all_hid=args.all_hid)
    app.run()


if __name__ == "__main__":
    main()
