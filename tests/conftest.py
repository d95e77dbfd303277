"""Shared fakes: a recording packet sink and a fake clock."""

import pytest

from blync_protocol import DeviceWriteError, decode_packet


class FakeSink:
    """Records every packet; can be told to fail on the Nth write (1-based)."""

    def __init__(self, fail_on=None):
        self.packets = []
        self.fail_on = fail_on
        self.attempts = 0

    def write(self, data):
        self.attempts += 1
        if self.fail_on is not None and self.attempts == self.fail_on:
            raise DeviceWriteError("device unplugged")
        self.packets.append(bytes(data))
        return len(data)

    @property
    def states(self):
        return [decode_packet(p) for p in self.packets]


class FakeClock:
    """Collects requested sleeps instead of sleeping."""

    def __init__(self):
        self.sleeps = []

    def __call__(self, seconds):
        self.sleeps.append(seconds)

    @property
    def total(self):
        return sum(self.sleeps)


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def make_sink():
    """Factory for sinks that fail on a given write."""
    return FakeSink


@pytest.fixture
def clock():
    return FakeClock()
