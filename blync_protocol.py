#!/usr/bin/env python3
"""
Blynclight Protocol Library

Shared protocol implementation for Blynclight USB status lights.
Provides constants, the light state record, packet encoding/decoding
and color name resolution.

Control packet layout (10 bytes, big-endian):

    Byte  Content
    0     header, constant 0x00
    1     red [0-255]
    2     green [0-255]
    3     blue [0-255]
    4     off:1 dim:1 flash:1 speed:3 pad:2   (MSB first)
    5     music:4 play:1 repeat:1 pad:2
    6     volume:4 mute:1 pad:3
    7-8   footer, constant 0xFF22
    9     pad
"""

import logging
import re
import struct
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional, Union


_LOGGER = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

PACKET_SIZE = 10
HEADER = 0x00
FOOTER = 0xFF22

PACKET_FORMAT = '>BBBBBBBHx'

# Bit positions inside the flag bytes
OFF_BIT = 7
DIM_BIT = 6
FLASH_BIT = 5
SPEED_SHIFT = 2
SPEED_MASK = 0x07

MUSIC_SHIFT = 4
PLAY_BIT = 3
REPEAT_BIT = 2

VOLUME_SHIFT = 4
MUTE_BIT = 3

MAX_CHANNEL = 255
MAX_MUSIC = 15
MAX_VOLUME = 15


# =============================================================================
# Exceptions
# =============================================================================

class BlyncError(Exception):
    """Base class for Blynclight errors."""


class FormatError(BlyncError, ValueError):
    """Raised when a packet has the wrong length or framing."""


class InvalidParameter(BlyncError, ValueError):
    """Raised when a state field or effect parameter is out of range."""


class UnknownColorName(BlyncError, LookupError):
    """Raised when a color name cannot be resolved."""


class DeviceWriteError(BlyncError, OSError):
    """Raised when writing to the device fails."""


class DeviceNotFound(BlyncError):
    """Raised when no matching device is attached."""


# =============================================================================
# Enums
# =============================================================================

class FlashSpeed(IntEnum):
    """Flash speeds. The device expects a one-hot mask, not a sequence."""
    SLOW = 1 << 0
    MEDIUM = 1 << 1
    FAST = 1 << 2

    @classmethod
    def from_name(cls, name: str) -> 'FlashSpeed':
        """Look up a speed by name (slow, medium, fast)."""
        try:
            return cls[name.strip().upper()]
        except (KeyError, AttributeError):
            raise InvalidParameter(
                f"Unknown flash speed: {name!r} (expected one of: {', '.join(speed_names())})"
            ) from None


def speed_names() -> list[str]:
    """Get list of flash speed names."""
    return [speed.name.lower() for speed in FlashSpeed]


# =============================================================================
# Named Colors
# =============================================================================

# Named colors (red, green, blue 0-255)
NAMED_COLORS = {
    'red': (255, 0, 0),
    'orange': (255, 128, 0),
    'yellow': (255, 255, 0),
    'lime': (128, 255, 0),
    'green': (0, 255, 0),
    'teal': (0, 255, 128),
    'cyan': (0, 255, 255),
    'sky': (0, 128, 255),
    'blue': (0, 0, 255),
    'purple': (128, 0, 255),
    'magenta': (255, 0, 255),
    'pink': (255, 0, 128),
    'white': (255, 255, 255),
    'warm_white': (255, 180, 107),
    'cool_white': (200, 220, 255),
    'black': (0, 0, 0),
}


# =============================================================================
# Data Classes
# =============================================================================

SpeedLike = Union[FlashSpeed, int, str, None]


def _check_range(name: str, value, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= maximum:
        raise InvalidParameter(f"{name} must be in 0-{maximum}, got {value}")
    return value


def _check_flag(name: str, value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise InvalidParameter(f"{name} must be a boolean, got {value!r}")


def _check_speed(value: SpeedLike) -> Optional[FlashSpeed]:
    if value is None or isinstance(value, FlashSpeed):
        return value
    if isinstance(value, str):
        return FlashSpeed.from_name(value)
    if isinstance(value, int) and not isinstance(value, bool):
        if value == 0:
            return None
        try:
            return FlashSpeed(value)
        except ValueError:
            pass
    raise InvalidParameter(f"Invalid flash speed: {value!r}")


@dataclass(frozen=True)
class LightState:
    """One complete device state, as carried by a single control packet."""
    red: int = 0
    green: int = 0
    blue: int = 0
    off: bool = False
    dim: bool = False
    flash: bool = False
    speed: Optional[FlashSpeed] = None
    music: int = 0
    play: bool = False
    repeat: bool = False
    volume: int = 0
    mute: bool = False
    header: int = HEADER
    footer: int = FOOTER

    def __post_init__(self):
        if self.header != HEADER:
            raise InvalidParameter(f"header must be {HEADER:#04x}, got {self.header!r}")
        if self.footer != FOOTER:
            raise InvalidParameter(f"footer must be {FOOTER:#06x}, got {self.footer!r}")
        for name in ('red', 'green', 'blue'):
            _check_range(name, getattr(self, name), MAX_CHANNEL)
        _check_range('music', self.music, MAX_MUSIC)
        _check_range('volume', self.volume, MAX_VOLUME)
        for name in ('off', 'dim', 'flash', 'play', 'repeat', 'mute'):
            object.__setattr__(self, name, _check_flag(name, getattr(self, name)))
        object.__setattr__(self, 'speed', _check_speed(self.speed))

    @classmethod
    def solid(cls, red: int, green: int, blue: int) -> 'LightState':
        """Steady color with every other flag cleared."""
        return cls(red=red, green=green, blue=blue)

    @classmethod
    def flashing(cls, red: int, green: int, blue: int, speed: SpeedLike) -> 'LightState':
        """Color using the device's native blink."""
        return cls(red=red, green=green, blue=blue, flash=True, speed=speed)

    @property
    def rgb(self) -> tuple[int, int, int]:
        return (self.red, self.green, self.blue)

    def with_color(self, red: int, green: int, blue: int) -> 'LightState':
        """Return a copy of this state showing another color."""
        return replace(self, red=red, green=green, blue=blue, off=False)

    def with_music(self, music: int, play: bool = True, repeat: bool = False,
                   volume: Optional[int] = None, mute: bool = False) -> 'LightState':
        """Return a copy of this state with the music fields replaced."""
        return replace(
            self,
            music=music,
            play=play,
            repeat=repeat,
            volume=self.volume if volume is None else volume,
            mute=mute,
        )

    def __str__(self) -> str:
        if self.off:
            parts = ["OFF"]
        else:
            parts = [f"#{self.red:02x}{self.green:02x}{self.blue:02x}"]
            if self.dim:
                parts.append("dim")
            if self.flash:
                speed = self.speed.name.lower() if self.speed else "none"
                parts.append(f"flash({speed})")
        if self.play:
            loop = " repeat" if self.repeat else ""
            parts.append(f"music {self.music}{loop}")
        if self.play or self.volume:
            parts.append("muted" if self.mute else f"vol {self.volume}")
        return " ".join(parts)


BASE_STATE = LightState()
OFF_STATE = LightState(off=True)


# =============================================================================
# Packet Encoding / Decoding
# =============================================================================

def encode_packet(state: LightState) -> bytes:
    """
    Encode a light state to the 10-byte control packet.

    Args:
        state: The state to encode

    Returns:
        10-byte packet as bytes
    """
    speed = int(state.speed) if state.speed is not None else 0

    flags = (
        (state.off << OFF_BIT)
        | (state.dim << DIM_BIT)
        | (state.flash << FLASH_BIT)
        | (speed << SPEED_SHIFT)
    )
    music = (
        (state.music << MUSIC_SHIFT)
        | (state.play << PLAY_BIT)
        | (state.repeat << REPEAT_BIT)
    )
    volume = (state.volume << VOLUME_SHIFT) | (state.mute << MUTE_BIT)

    return struct.pack(
        PACKET_FORMAT,
        state.header,
        state.red,
        state.green,
        state.blue,
        flags,
        music,
        volume,
        state.footer,
    )


def decode_packet(data: bytes) -> LightState:
    """
    Decode a 10-byte control packet.

    A nonzero header is tolerated and logged. Pad bits are ignored.

    Raises:
        FormatError: wrong length, bad footer or invalid speed mask
    """
    if len(data) != PACKET_SIZE:
        raise FormatError(f"Packet must be {PACKET_SIZE} bytes, got {len(data)}")

    header, red, green, blue, flags, music, volume, footer = struct.unpack(PACKET_FORMAT, bytes(data))

    if footer != FOOTER:
        raise FormatError(f"Bad footer {footer:#06x}, expected {FOOTER:#06x}")
    if header != HEADER:
        _LOGGER.warning("Packet header is %#04x, expected %#04x", header, HEADER)

    speed_bits = (flags >> SPEED_SHIFT) & SPEED_MASK
    if speed_bits:
        try:
            speed = FlashSpeed(speed_bits)
        except ValueError:
            raise FormatError(f"Invalid flash speed mask {speed_bits:#05b}") from None
    else:
        speed = None

    return LightState(
        red=red,
        green=green,
        blue=blue,
        off=bool(flags >> OFF_BIT & 1),
        dim=bool(flags >> DIM_BIT & 1),
        flash=bool(flags >> FLASH_BIT & 1),
        speed=speed,
        music=music >> MUSIC_SHIFT,
        play=bool(music >> PLAY_BIT & 1),
        repeat=bool(music >> REPEAT_BIT & 1),
        volume=volume >> VOLUME_SHIFT,
        mute=bool(volume >> MUTE_BIT & 1),
    )


def parse_hex_packet(text: str) -> bytes:
    """Parse a packet written as hex, e.g. '00 ff 00 00 00 00 00 ff 22 00'."""
    cleaned = re.sub(r'[\s:,]|0x', '', text.strip().lower())
    try:
        return bytes.fromhex(cleaned)
    except ValueError:
        raise FormatError(f"Not a hex packet: {text!r}") from None


# =============================================================================
# Color Utilities
# =============================================================================

def resolve_color(name: str) -> tuple[int, int, int]:
    """Resolve a named color to (red, green, blue)."""
    key = name.strip().lower().replace('-', '_').replace(' ', '_')
    try:
        return NAMED_COLORS[key]
    except KeyError:
        raise UnknownColorName(f"Unknown color: {name}") from None


def parse_color(color_str: str) -> tuple[int, int, int]:
    """
    Parse color string to (red, green, blue).

    Supports:
    - Named colors: red, green, blue, white, etc.
    - Hex: #FF0000 or FF0000
    - RGB: rgb(255, 0, 0)
    """
    color_str = color_str.strip().lower()

    if color_str.startswith('#') or re.match(r'^[0-9a-f]{6}$', color_str):
        hex_color = color_str.lstrip('#')
        if not re.match(r'^[0-9a-f]{6}$', hex_color):
            raise UnknownColorName(f"Bad hex color: {color_str}")
        return (
            int(hex_color[0:2], 16),
            int(hex_color[2:4], 16),
            int(hex_color[4:6], 16),
        )

    rgb_match = re.match(r'^rgb\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)$', color_str)
    if rgb_match:
        rgb = tuple(int(v) for v in rgb_match.groups())
        for value in rgb:
            if value > MAX_CHANNEL:
                raise InvalidParameter(f"Channel value {value} is outside 0-255")
        return rgb

    return resolve_color(color_str)
