#!/usr/bin/env python3
"""
Blync CLI - Command-line interface for Blynclight USB status lights

Usage:
    blync list                           # List attached lights
    blync color red                      # Set a named color
    blync color #ff5500                  # Set hex color
    blync off                            # Turn the light off
    blync dim blue                       # Dimmed color
    blync flash red -s fast -c 10        # Native flash
    blync strobe white -d 80 -c 5        # Software strobe
    blync transition red blue --steps 30 # Fade between colors
    blync pulse -c 2                     # Breathing pulse
    blync music 3 --volume 8 --repeat    # Play stored track 3
    blync stop-music                     # Stop playback
    blync decode "00 ff 00 00 00 00 00 ff 22 00"
    blync colors                         # List named colors

Effects end with the light off unless --leave-lit is given
(color and transition always leave the light on).
"""

import argparse
import logging
import sys

from blync_protocol import (
    BASE_STATE,
    NAMED_COLORS,
    OFF_STATE,
    BlyncError,
    LightState,
    decode_packet,
    parse_color,
    parse_hex_packet,
    speed_names,
)

from blync_effects import (
    DEFAULT_FLASH_INTERVAL_MS,
    DEFAULT_PULSE_PEAK,
    DEFAULT_TRANSITION_DELAY_MS,
    DEFAULT_TRANSITION_STEPS,
    EffectRunner,
    make_effect_config,
)

from blync_device import find_devices, open_first_device


def _hex_int(text: str) -> int:
    return int(text, 16)


def print_device(device):
    """Print one attached device."""
    print(f"  {device}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='blync',
        description='Blync CLI - Control your Blynclight',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        'command',
        nargs='?',
        default='list',
        help='Command: list, color, off, dim, flash, strobe, transition, pulse, '
             'music, stop-music, decode, colors'
    )

    parser.add_argument(
        'args',
        nargs='*',
        help='Command arguments'
    )

    parser.add_argument(
        '-s', '--speed',
        default='medium',
        choices=speed_names(),
        help='Flash speed (default: medium)'
    )

    parser.add_argument(
        '-c', '--count',
        type=int,
        default=5,
        help='Flash/strobe repetitions or pulse cycles (default: 5)'
    )

    parser.add_argument(
        '-d', '--delay',
        type=int,
        default=None,
        help='Delay between steps in ms (strobe: 50, transition: %d)' % DEFAULT_TRANSITION_DELAY_MS
    )

    parser.add_argument(
        '-i', '--interval',
        type=int,
        default=DEFAULT_FLASH_INTERVAL_MS,
        help='Flash on/off interval in ms (default: %d)' % DEFAULT_FLASH_INTERVAL_MS
    )

    parser.add_argument(
        '--steps',
        type=int,
        default=DEFAULT_TRANSITION_STEPS,
        help='Transition steps (default: %d)' % DEFAULT_TRANSITION_STEPS
    )

    parser.add_argument(
        '--peak',
        type=int,
        default=DEFAULT_PULSE_PEAK,
        help='Pulse peak level 1-255 (default: %d)' % DEFAULT_PULSE_PEAK
    )

    parser.add_argument(
        '--red',
        type=int,
        default=0,
        help='Red level held during a pulse (default: 0)'
    )

    parser.add_argument(
        '--volume',
        type=int,
        default=None,
        help='Music volume 0-15'
    )

    parser.add_argument(
        '--repeat',
        action='store_true',
        help='Repeat the music track'
    )

    parser.add_argument(
        '--mute',
        action='store_true',
        help='Mute the music'
    )

    parser.add_argument(
        '--leave-lit',
        action='store_true',
        default=None,
        help='Do not turn the light off when an effect ends'
    )

    parser.add_argument(
        '--vid',
        type=_hex_int,
        default=None,
        help='USB vendor id (hex)'
    )

    parser.add_argument(
        '--pid',
        type=_hex_int,
        default=None,
        help='USB product id (hex)'
    )

    parser.add_argument(
        '--all-hid',
        action='store_true',
        help='Consider every HID device, not just known Blynclights'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log every packet written'
    )

    return parser


def build_request(args):
    """
    Turn parsed arguments into an EffectConfig or a single LightState.

    Colors are resolved here so that unknown names fail before any device
    is opened.
    """
    command = args.command.lower()

    if command == 'color':
        if not args.args:
            raise BlyncError("Usage: blync color <name|#hex>")
        return make_effect_config('solid', args.args[0], leave_lit=args.leave_lit)

    if command == 'off':
        return make_effect_config('off')

    if command == 'dim':
        if not args.args:
            raise BlyncError("Usage: blync dim <name|#hex>")
        red, green, blue = parse_color(args.args[0])
        return LightState(red=red, green=green, blue=blue, dim=True)

    if command == 'flash':
        if not args.args:
            raise BlyncError("Usage: blync flash <color> [-s speed] [-c count]")
        return make_effect_config(
            'flash', args.args[0], count=args.count, speed_name=args.speed,
            delay_ms=args.interval, leave_lit=args.leave_lit
        )

    if command == 'strobe':
        if not args.args:
            raise BlyncError("Usage: blync strobe <color> [-d delay] [-c times]")
        return make_effect_config(
            'strobe', args.args[0], count=args.count,
            delay_ms=args.delay, leave_lit=args.leave_lit
        )

    if command == 'transition':
        if len(args.args) < 2:
            raise BlyncError("Usage: blync transition <from> <to> [--steps N] [-d delay]")
        return make_effect_config(
            'transition', args.args[0], end_color=args.args[1], steps=args.steps,
            delay_ms=args.delay, leave_lit=True
        )

    if command == 'pulse':
        return make_effect_config(
            'pulse', (args.red, 0, 0), count=args.count, peak=args.peak,
            delay_ms=args.delay, leave_lit=args.leave_lit
        )

    if command == 'music':
        if not args.args:
            raise BlyncError("Usage: blync music <index> [--volume V] [--repeat] [--mute]")
        try:
            index = int(args.args[0])
        except ValueError:
            raise BlyncError(f"Music index must be a number: {args.args[0]}") from None
        return BASE_STATE.with_music(
            index, play=True, repeat=args.repeat, volume=args.volume, mute=args.mute
        )

    if command == 'stop-music':
        return BASE_STATE

    raise BlyncError(f"Unknown command: {command}")


def run_request(runner: EffectRunner, request) -> int:
    """Send a request, cancelling cleanly on Ctrl-C."""
    if isinstance(request, LightState):
        runner.send(request)
        return 1

    try:
        return runner.play(request)
    except KeyboardInterrupt:
        # Never leave the light flashing
        runner.send(OFF_STATE)
        raise


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s: %(message)s')

    command = (args.command or '').lower()

    # Commands that never touch the device
    if command == 'colors':
        print("Named colors:")
        for name, (r, g, b) in NAMED_COLORS.items():
            print(f"  {name:<12} #{r:02x}{g:02x}{b:02x}")
        return 0

    if command == 'decode':
        if not args.args:
            print("Usage: blync decode <hex bytes>", file=sys.stderr)
            return 1
        try:
            state = decode_packet(parse_hex_packet(' '.join(args.args)))
        except BlyncError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(state)
        print(repr(state))
        return 0

    if command == 'list':
        devices = find_devices(args.vid, args.pid, args.all_hid)
        if not devices:
            print("No devices found.")
            return 1
        print(f"Found {len(devices)} device(s):")
        for device in devices:
            print_device(device)
        return 0

    try:
        request = build_request(args)
    except BlyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        with open_first_device(args.vid, args.pid, args.all_hid) as device:
            runner = EffectRunner(device)
            run_request(runner, request)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except BlyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
