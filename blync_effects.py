#!/usr/bin/env python3
"""
Blynclight Effects Library

Software-sequenced lighting effects for Blynclight devices.
Provides solid color, flash, strobe, transition, pulse and off.

Effects are built as plans: generators of (state, delay) steps that a
single driver loop encodes and writes to the device in order.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Iterable, Iterator, NamedTuple, Optional, Protocol, Union

from blync_protocol import (
    OFF_STATE,
    PACKET_SIZE,
    DeviceWriteError,
    FlashSpeed,
    InvalidParameter,
    LightState,
    encode_packet,
    parse_color,
)


_LOGGER = logging.getLogger(__name__)

RGB = tuple[int, int, int]

DEFAULT_FLASH_INTERVAL_MS = 50
DEFAULT_TRANSITION_DELAY_MS = 100
DEFAULT_STROBE_DELAY_MS = 50
DEFAULT_TRANSITION_STEPS = 20
DEFAULT_PULSE_PEAK = 255


# =============================================================================
# Color Interpolation
# =============================================================================

def _truncating_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def _check_count(name: str, value, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidParameter(f"{name} must be at least {minimum}, got {value}")
    return value


def linear_steps(start: RGB, end: RGB, n: int) -> list[RGB]:
    """
    Ramp from start toward end in n steps.

    Step i is start + (end - start) * i / n per channel, truncated, so the
    first step is the start color and the end color itself is never reached.
    """
    _check_count("steps", n)
    return [
        tuple(s + _truncating_div((e - s) * i, n) for s, e in zip(start, end))
        for i in range(n)
    ]


def pulse_wave(peak: int, n: int) -> list[int]:
    """
    Signed triangle offsets for x in 1..n.

    The ramp rises 1..peak, then is reflected to the negative side and
    falls -1..-peak. Use wave_level() to turn an offset into a level.
    """
    _check_count("peak", peak)
    _check_count("n", n)
    return [x if x <= peak else -(x - peak) for x in range(1, n + 1)]


def wave_level(offset: int, peak: int) -> int:
    """Map a pulse_wave offset to a channel level in 0..peak."""
    return offset if offset > 0 else peak + offset


# =============================================================================
# Effect Types
# =============================================================================

class EffectType(Enum):
    """Available effect types."""
    SOLID = auto()
    OFF = auto()
    FLASH = auto()
    STROBE = auto()
    TRANSITION = auto()
    PULSE = auto()


class EffectStep(NamedTuple):
    """One packet of a plan and how long to hold it."""
    state: LightState
    delay_ms: int = 0


EffectPlan = Iterable[EffectStep]


@dataclass(frozen=True)
class EffectConfig:
    """Configuration for running an effect."""
    effect_type: EffectType
    color: RGB = (0, 0, 0)
    end_color: RGB = (0, 0, 0)      # Transition target
    speed: Optional[FlashSpeed] = None
    count: int = 1                  # Flash/strobe repetitions, pulse cycles
    delay_ms: Optional[int] = None  # None = the effect's default
    steps: int = DEFAULT_TRANSITION_STEPS
    peak: int = DEFAULT_PULSE_PEAK
    leave_lit: Optional[bool] = None  # None: only SOLID stays lit

    @property
    def finishes_lit(self) -> bool:
        if self.leave_lit is not None:
            return self.leave_lit
        return self.effect_type == EffectType.SOLID

    def validate(self):
        """Raise InvalidParameter for malformed parameters."""
        if not isinstance(self.effect_type, EffectType):
            raise InvalidParameter(f"Unknown effect type: {self.effect_type!r}")
        for name in ('color', 'end_color'):
            rgb = getattr(self, name)
            if len(rgb) != 3:
                raise InvalidParameter(f"{name} must have 3 channels, got {rgb!r}")
            for value in rgb:
                if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 255:
                    raise InvalidParameter(f"{name} channel {value!r} is outside 0-255")
        if self.delay_ms is not None:
            _check_count("delay_ms", self.delay_ms, minimum=0)
        if self.effect_type in (EffectType.FLASH, EffectType.STROBE, EffectType.PULSE):
            _check_count("count", self.count)
        if self.effect_type == EffectType.FLASH and not isinstance(self.speed, FlashSpeed):
            raise InvalidParameter(f"Flash needs a speed, got {self.speed!r}")
        if self.effect_type == EffectType.TRANSITION:
            _check_count("steps", self.steps)
        if self.effect_type == EffectType.PULSE:
            _check_count("peak", self.peak)
            if self.peak > 255:
                raise InvalidParameter(f"peak must be in 1-255, got {self.peak}")


# =============================================================================
# Effect Plans
# =============================================================================

def _plan_solid(config: EffectConfig) -> Iterator[EffectStep]:
    yield EffectStep(LightState.solid(*config.color), config.delay_ms or 0)


def _plan_off(config: EffectConfig) -> Iterator[EffectStep]:
    yield EffectStep(OFF_STATE, config.delay_ms or 0)


def _plan_flash(config: EffectConfig) -> Iterator[EffectStep]:
    interval = DEFAULT_FLASH_INTERVAL_MS if config.delay_ms is None else config.delay_ms
    on = LightState.flashing(*config.color, speed=config.speed)
    for _ in range(config.count):
        yield EffectStep(on, interval)
        yield EffectStep(OFF_STATE, interval)


def _plan_strobe(config: EffectConfig) -> Iterator[EffectStep]:
    delay = DEFAULT_STROBE_DELAY_MS if config.delay_ms is None else config.delay_ms
    on = LightState.solid(*config.color)
    for _ in range(config.count):
        yield EffectStep(on, delay)
        yield EffectStep(OFF_STATE, delay)


def _plan_transition(config: EffectConfig) -> Iterator[EffectStep]:
    delay = DEFAULT_TRANSITION_DELAY_MS if config.delay_ms is None else config.delay_ms
    for rgb in linear_steps(config.color, config.end_color, config.steps):
        yield EffectStep(LightState.solid(*rgb), delay)


def _plan_pulse(config: EffectConfig) -> Iterator[EffectStep]:
    delay = config.delay_ms or 0
    red = config.color[0]
    wave = pulse_wave(config.peak, 2 * config.peak)
    for _ in range(config.count):
        for offset in wave:
            level = wave_level(offset, config.peak)
            yield EffectStep(LightState.solid(red, level, level), delay)


_PLAN_BUILDERS: dict[EffectType, Callable[[EffectConfig], Iterator[EffectStep]]] = {
    EffectType.SOLID: _plan_solid,
    EffectType.OFF: _plan_off,
    EffectType.FLASH: _plan_flash,
    EffectType.STROBE: _plan_strobe,
    EffectType.TRANSITION: _plan_transition,
    EffectType.PULSE: _plan_pulse,
}


def _finish_off(steps: Iterator[EffectStep]) -> Iterator[EffectStep]:
    """Pass steps through and end on Off unless the last one already is."""
    last = None
    for step in steps:
        last = step
        yield step
    if last is None or last.state != OFF_STATE:
        yield EffectStep(OFF_STATE, 0)


def build_plan(config: EffectConfig) -> Iterator[EffectStep]:
    """
    Build the step plan for an effect.

    Parameters are checked here, before any state is constructed. The plan
    itself is lazy.

    Raises:
        InvalidParameter: malformed configuration
    """
    config.validate()
    steps = _PLAN_BUILDERS[config.effect_type](config)
    if config.finishes_lit:
        return steps
    return _finish_off(steps)


# =============================================================================
# Effect Runner
# =============================================================================

class PacketSink(Protocol):
    """Anything packets can be written to (a BlyncDevice, or a fake in tests)."""

    def write(self, data: bytes) -> int:
        ...


class EffectRunner:
    """
    Drives effect plans against a single device.

    Steps are written strictly in order: write, wait for the step's delay,
    then the next write. The sleep function is injectable so tests can use
    a fake clock. Without one, delays wait on the cancel event so a stop
    interrupts them.
    """

    def __init__(self, sink: PacketSink, sleep: Optional[Callable[[float], None]] = None):
        self.sink = sink
        self._sleep = sleep
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_error: Optional[BaseException] = None

    def send(self, state: LightState) -> int:
        """Encode and write one state."""
        packet = encode_packet(state)
        _LOGGER.debug("Writing %s (%s)", packet.hex(' '), state)
        written = self.sink.write(packet)
        if written is not None and written != PACKET_SIZE:
            raise DeviceWriteError(f"Short write: {written} of {PACKET_SIZE} bytes")
        return PACKET_SIZE

    def play(self, plan: Union[EffectConfig, EffectPlan],
             cancel: Optional[threading.Event] = None) -> int:
        """
        Run a plan to completion.

        Args:
            plan: An EffectConfig or an already built plan
            cancel: Checked between steps; when set, one final Off is
                written and the plan is abandoned

        Returns:
            Number of plan steps written

        Raises:
            DeviceWriteError: a write failed; no further writes are made
        """
        steps = build_plan(plan) if isinstance(plan, EffectConfig) else plan
        sent = 0
        for step in steps:
            if cancel is not None and cancel.is_set():
                _LOGGER.debug("Effect cancelled after %d step(s)", sent)
                self.send(OFF_STATE)
                return sent
            self.send(step.state)
            sent += 1
            if step.delay_ms > 0:
                self._wait(step.delay_ms / 1000, cancel)
        return sent

    def _wait(self, seconds: float, cancel: Optional[threading.Event]):
        if self._sleep is not None:
            self._sleep(seconds)
        elif cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)

    def is_running(self) -> bool:
        """Check if an effect is running in the background."""
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self, plan: Union[EffectConfig, EffectPlan],
              on_complete: Optional[Callable[[Optional[BaseException]], None]] = None):
        """
        Run a plan on a background thread.

        Any running effect is stopped and joined first, so only one thread
        ever writes to the sink. Configs are validated before the thread
        starts, so InvalidParameter is raised to the caller.
        """
        self.stop()
        steps = build_plan(plan) if isinstance(plan, EffectConfig) else plan
        cancel = threading.Event()

        def run():
            error = None
            try:
                self.play(steps, cancel)
            except Exception as e:
                _LOGGER.debug("Background effect failed: %s", e)
                error = e
            self.last_error = error
            if on_complete:
                on_complete(error)

        with self._lock:
            self._cancel = cancel
            self.last_error = None
            self._thread = threading.Thread(target=run, daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        """
        Stop any running background effect and wait for it to finish.

        The wait is unbounded by default. With a timeout the thread may
        still be alive on return; check is_running().
        """
        with self._lock:
            self._cancel.set()
            thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)


# =============================================================================
# Convenience Functions
# =============================================================================

def _as_rgb(color: Union[str, RGB, None]) -> RGB:
    if color is None:
        return (0, 0, 0)
    if isinstance(color, str):
        return parse_color(color)
    return tuple(color)


def make_effect_config(effect_name: str, color: Union[str, RGB, None] = None,
                       count: int = 1, speed_name: Optional[str] = None,
                       **kwargs) -> EffectConfig:
    """
    Build an effect configuration from names, as given on a command line.

    Args:
        effect_name: solid (or color), off, flash, strobe, transition, pulse
        color: Color name, hex string or (r, g, b)
        count: Repetitions (flash, strobe) or cycles (pulse)
        speed_name: Flash speed name (slow, medium, fast)
        **kwargs: end_color, delay_ms, steps, peak, leave_lit

    Raises:
        InvalidParameter: unknown effect or speed name
        UnknownColorName: unknown color
    """
    effect_map = {
        'solid': EffectType.SOLID,
        'color': EffectType.SOLID,
        'off': EffectType.OFF,
        'flash': EffectType.FLASH,
        'strobe': EffectType.STROBE,
        'transition': EffectType.TRANSITION,
        'pulse': EffectType.PULSE,
    }

    effect_type = effect_map.get(effect_name.lower())
    if effect_type is None:
        raise InvalidParameter(f"Unknown effect: {effect_name}")

    speed = None
    if effect_type == EffectType.FLASH:
        speed = FlashSpeed.from_name(speed_name or 'medium')

    config = EffectConfig(
        effect_type=effect_type,
        color=_as_rgb(color),
        end_color=_as_rgb(kwargs.get('end_color')),
        speed=speed,
        count=count,
        delay_ms=kwargs.get('delay_ms'),
        steps=kwargs.get('steps', DEFAULT_TRANSITION_STEPS),
        peak=kwargs.get('peak', DEFAULT_PULSE_PEAK),
        leave_lit=kwargs.get('leave_lit'),
    )
    config.validate()
    return config


def list_effects() -> list[str]:
    """Get list of available effect names."""
    return ['solid', 'off', 'flash', 'strobe', 'transition', 'pulse']
