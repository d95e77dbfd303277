"""
Tests for blync_protocol.

Validates the packet layout, decode framing checks, state validation
and color parsing.
"""

import logging
from dataclasses import replace

import pytest

from blync_protocol import (
    BASE_STATE,
    FOOTER,
    OFF_STATE,
    PACKET_SIZE,
    FlashSpeed,
    FormatError,
    InvalidParameter,
    LightState,
    UnknownColorName,
    decode_packet,
    encode_packet,
    parse_color,
    parse_hex_packet,
    resolve_color,
    speed_names,
)


SAMPLE_STATES = [
    BASE_STATE,
    OFF_STATE,
    LightState.solid(255, 0, 0),
    LightState.solid(1, 2, 3),
    LightState.flashing(0, 0, 255, FlashSpeed.SLOW),
    LightState.flashing(10, 200, 30, FlashSpeed.FAST),
    LightState(red=255, green=255, blue=255, dim=True),
    LightState(music=15, play=True, repeat=True, volume=15, mute=True),
    LightState(red=7, green=8, blue=9, off=True, dim=True, flash=True,
               speed=FlashSpeed.MEDIUM, music=9, play=True, volume=3),
]


class TestEncode:
    """Test the byte layout of encoded packets."""

    def test_default_state_packet(self):
        """All-default state is zeros plus the footer."""
        assert encode_packet(BASE_STATE) == bytes.fromhex("00 00 00 00 00 00 00 ff 22 00")

    def test_explicit_zero_fields(self):
        state = LightState(red=0, green=0, blue=0, off=0, dim=0, flash=0, speed=0,
                           music=0, play=0, repeat=0, volume=0, mute=0,
                           header=0, footer=0xFF22)
        assert state == BASE_STATE
        assert encode_packet(state) == encode_packet(BASE_STATE)

    @pytest.mark.parametrize("state", SAMPLE_STATES)
    def test_framing(self, state):
        packet = encode_packet(state)
        assert len(packet) == PACKET_SIZE
        assert packet[0] == 0x00
        assert packet[7:9] == b"\xff\x22"

    def test_color_bytes_in_rgb_order(self):
        packet = encode_packet(LightState.solid(0x11, 0x22, 0x33))
        assert packet[1:4] == b"\x11\x22\x33"

    def test_off_bit_is_msb(self):
        assert encode_packet(OFF_STATE)[4] == 0x80

    def test_dim_bit(self):
        assert encode_packet(LightState(dim=True))[4] == 0x40

    def test_flash_fast_speed_field(self):
        packet = encode_packet(LightState.flashing(255, 0, 0, FlashSpeed.FAST))
        assert packet[4] == 0x20 | (0b100 << 2)
        assert (packet[4] >> 2) & 0b111 == 0b100

    @pytest.mark.parametrize("speed, bits", [
        (FlashSpeed.SLOW, 0b001),
        (FlashSpeed.MEDIUM, 0b010),
        (FlashSpeed.FAST, 0b100),
    ])
    def test_speed_is_one_hot(self, speed, bits):
        packet = encode_packet(LightState.flashing(0, 0, 0, speed))
        assert (packet[4] >> 2) & 0b111 == bits

    def test_music_byte(self):
        packet = encode_packet(LightState(music=5, play=True, repeat=True))
        assert packet[5] == (5 << 4) | 0x08 | 0x04

    def test_volume_byte(self):
        packet = encode_packet(LightState(volume=10, mute=True))
        assert packet[6] == (10 << 4) | 0x08


class TestDecode:
    """Test decoding and framing errors."""

    @pytest.mark.parametrize("state", SAMPLE_STATES)
    def test_round_trip(self, state):
        assert decode_packet(encode_packet(state)) == state

    @pytest.mark.parametrize("length", [0, 1, 9, 11, 64])
    def test_wrong_length(self, length):
        with pytest.raises(FormatError):
            decode_packet(bytes(length))

    def test_bad_footer(self):
        packet = bytearray(encode_packet(BASE_STATE))
        packet[8] = 0x23
        with pytest.raises(FormatError, match="footer"):
            decode_packet(bytes(packet))

    def test_invalid_speed_mask(self):
        packet = bytearray(encode_packet(BASE_STATE))
        packet[4] = 0b011 << 2
        with pytest.raises(FormatError):
            decode_packet(bytes(packet))

    def test_nonzero_header_is_reported_not_fatal(self, caplog):
        packet = bytearray(encode_packet(LightState.solid(1, 2, 3)))
        packet[0] = 0x09
        with caplog.at_level(logging.WARNING, logger="blync_protocol"):
            state = decode_packet(bytes(packet))
        assert state == LightState.solid(1, 2, 3)
        assert state.header == 0
        assert "header" in caplog.text

    def test_pad_bits_ignored(self):
        packet = bytearray(encode_packet(BASE_STATE))
        packet[4] |= 0b11
        packet[6] |= 0b111
        packet[9] = 0xAA
        assert decode_packet(bytes(packet)) == BASE_STATE

    def test_accepts_bytearray(self):
        assert decode_packet(bytearray(encode_packet(OFF_STATE))) == OFF_STATE

    def test_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_packet(b"\x00")


class TestLightState:
    """Test construction-time validation."""

    @pytest.mark.parametrize("field, value", [
        ("red", 256),
        ("green", -1),
        ("blue", 300),
        ("music", 16),
        ("volume", 16),
        ("volume", -1),
        ("header", 1),
        ("footer", 0xFF23),
        ("red", 1.5),
        ("off", 2),
        ("mute", "yes"),
    ])
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(InvalidParameter):
            LightState(**{field: value})

    @pytest.mark.parametrize("speed", [3, 5, 7, 8, "turbo", 1.0])
    def test_rejects_unknown_speed(self, speed):
        with pytest.raises(InvalidParameter):
            LightState(flash=True, speed=speed)

    @pytest.mark.parametrize("value, expected", [
        ("slow", FlashSpeed.SLOW),
        ("Medium", FlashSpeed.MEDIUM),
        (4, FlashSpeed.FAST),
        (FlashSpeed.FAST, FlashSpeed.FAST),
        (0, None),
        (None, None),
    ])
    def test_speed_normalized(self, value, expected):
        assert LightState(flash=True, speed=value).speed is expected

    def test_flags_normalized_to_bool(self):
        state = LightState(off=1, play=0)
        assert state.off is True
        assert state.play is False

    def test_immutable(self):
        with pytest.raises(AttributeError):
            BASE_STATE.red = 10

    def test_value_equality(self):
        assert LightState.solid(1, 2, 3) == LightState(red=1, green=2, blue=3)
        assert hash(LightState.solid(1, 2, 3)) == hash(LightState(red=1, green=2, blue=3))

    def test_off_state_is_dark(self):
        assert OFF_STATE.rgb == (0, 0, 0)
        assert OFF_STATE.off is True

    def test_with_color_returns_new_state(self):
        dim_off = LightState(dim=True, off=True)
        lit = dim_off.with_color(5, 6, 7)
        assert lit.rgb == (5, 6, 7)
        assert lit.dim is True
        assert lit.off is False
        assert dim_off.rgb == (0, 0, 0)

    def test_with_music_keeps_volume(self):
        state = LightState(volume=4).with_music(2, repeat=True)
        assert (state.music, state.play, state.repeat, state.volume) == (2, True, True, 4)

    def test_replace_revalidates(self):
        with pytest.raises(InvalidParameter):
            replace(BASE_STATE, music=99)

    def test_str(self):
        assert str(OFF_STATE) == "OFF"
        assert str(LightState.flashing(255, 0, 0, "fast")) == "#ff0000 flash(fast)"


class TestFlashSpeed:

    def test_value_table(self):
        assert {s.name: int(s) for s in FlashSpeed} == {"SLOW": 1, "MEDIUM": 2, "FAST": 4}

    def test_from_name(self):
        assert FlashSpeed.from_name(" fast ") is FlashSpeed.FAST

    def test_from_name_unknown(self):
        with pytest.raises(InvalidParameter, match="slow, medium, fast"):
            FlashSpeed.from_name("warp")

    def test_speed_names(self):
        assert speed_names() == ["slow", "medium", "fast"]


class TestColors:
    """Test color name resolution and parsing."""

    def test_resolve_named(self):
        assert resolve_color("red") == (255, 0, 0)
        assert resolve_color("Warm White") == resolve_color("warm_white")

    def test_resolve_unknown(self):
        with pytest.raises(UnknownColorName):
            resolve_color("octarine")

    def test_unknown_is_lookup_error(self):
        with pytest.raises(LookupError):
            parse_color("octarine")

    @pytest.mark.parametrize("text, rgb", [
        ("#ff5500", (255, 85, 0)),
        ("FF5500", (255, 85, 0)),
        ("rgb(1, 2, 3)", (1, 2, 3)),
        ("  Blue ", (0, 0, 255)),
    ])
    def test_parse(self, text, rgb):
        assert parse_color(text) == rgb

    def test_parse_bad_hex(self):
        with pytest.raises(UnknownColorName):
            parse_color("#12345")

    def test_parse_rgb_out_of_range(self):
        with pytest.raises(InvalidParameter):
            parse_color("rgb(256, 0, 0)")


class TestHexPackets:

    def test_parse_hex_packet(self):
        assert parse_hex_packet("00 ff 00 00 00 00 00 ff 22 00") == bytes.fromhex("00ff0000000000ff2200")

    def test_parse_hex_packet_with_prefixes(self):
        assert parse_hex_packet("0x00,0xff") == b"\x00\xff"

    def test_parse_hex_packet_garbage(self):
        with pytest.raises(FormatError):
            parse_hex_packet("zz")

    def test_footer_constant(self):
        assert FOOTER == 0xFF22
