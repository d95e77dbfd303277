"""
Tests for the device layer behind blync_tui.

The Textual widgets are not driven here; only BlyncManager, which the
app uses for every device interaction.
"""

import time

import pytest

import blync_tui
from blync_protocol import OFF_STATE, BlyncError, LightState, decode_packet
from blync_effects import EffectConfig, EffectType


class FakeDevice:
    instances = []

    def __init__(self, info):
        self.info = info
        self.packets = []
        self.closed = False
        FakeDevice.instances.append(self)

    def open(self):
        return self

    def close(self):
        self.closed = True

    def write(self, data):
        assert not self.closed, "write after close"
        self.packets.append(bytes(data))
        return len(data)


@pytest.fixture
def manager(monkeypatch):
    FakeDevice.instances = []
    monkeypatch.setattr(blync_tui, 'BlyncDevice', FakeDevice)
    monkeypatch.setattr(blync_tui, 'find_devices', lambda all_hid=False: ['first', 'second'])
    return blync_tui.BlyncManager()


def test_discover(manager):
    assert manager.discover() == ['first', 'second']
    assert manager.devices == ['first', 'second']


def test_send_requires_selection(manager):
    with pytest.raises(BlyncError):
        manager.send(OFF_STATE)


def test_send(manager):
    manager.select('first')
    manager.send(LightState.solid(1, 2, 3))
    device = FakeDevice.instances[0]
    assert [decode_packet(p) for p in device.packets] == [LightState.solid(1, 2, 3)]


def test_select_closes_previous(manager):
    manager.select('first')
    manager.select('second')
    first, second = FakeDevice.instances
    assert first.closed
    assert not second.closed
    assert manager.device is second


def test_effect_runs_in_background(manager):
    manager.select('first')
    manager.start_effect(EffectConfig(EffectType.STROBE, color=(5, 5, 5), count=1, delay_ms=0))
    manager.runner.stop(timeout=5)
    device = FakeDevice.instances[0]
    assert decode_packet(device.packets[-1]) == OFF_STATE


def test_close_waits_for_effect(manager):
    manager.select('first')
    manager.start_effect(EffectConfig(EffectType.STROBE, color=(5, 5, 5), count=3, delay_ms=30000))
    time.sleep(0.1)
    manager.close()
    device = FakeDevice.instances[0]
    assert device.closed
    assert [decode_packet(p) for p in device.packets] == [LightState.solid(5, 5, 5), OFF_STATE]


def test_send_replaces_running_effect(manager):
    manager.select('first')
    manager.start_effect(EffectConfig(EffectType.STROBE, color=(5, 5, 5), count=3, delay_ms=30000))
    time.sleep(0.1)
    manager.send(LightState.solid(0, 255, 0))
    time.sleep(0.2)
    device = FakeDevice.instances[0]
    assert decode_packet(device.packets[-1]) == LightState.solid(0, 255, 0)
    assert not manager.runner.is_running()


def test_close(manager):
    manager.select('first')
    manager.close()
    assert FakeDevice.instances[0].closed
    assert manager.runner is None
