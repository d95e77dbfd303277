#!/usr/bin/env python3
"""
Blynclight USB Device Access

Finds attached Blynclight lights through hidapi and writes control
packets to them. Writes are fire-and-forget; the device never answers.

Requirements:
    pip install hidapi
"""

import logging
from dataclasses import dataclass
from typing import Optional

import hid

from blync_protocol import DeviceNotFound, DeviceWriteError


_LOGGER = logging.getLogger(__name__)


# =============================================================================
# Device Registry
# =============================================================================

EMBRAVA_VENDOR_ID = 0x2C0D
TENX_VENDOR_ID = 0x0E53

# (vendor_id, product_id) -> product name
KNOWN_DEVICES = {
    (EMBRAVA_VENDOR_ID, 0x0001): "Blynclight",
    (EMBRAVA_VENDOR_ID, 0x000C): "Blynclight Plus",
    (EMBRAVA_VENDOR_ID, 0x0010): "Blynclight Mini",
    (TENX_VENDOR_ID, 0x2516): "Blynclight (TenX)",
    (TENX_VENDOR_ID, 0x2517): "Blynclight (TenX)",
    (TENX_VENDOR_ID, 0x2518): "Blynclight (TenX)",
    (TENX_VENDOR_ID, 0x2519): "Blynclight (TenX)",
}


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class BlyncDeviceInfo:
    """Represents an attached HID device."""
    vendor_id: int
    product_id: int
    path: bytes
    serial: str = ""
    manufacturer: str = ""
    product: str = ""

    @classmethod
    def from_hid(cls, entry: dict) -> 'BlyncDeviceInfo':
        """Create from an entry returned by hid.enumerate()."""
        vendor_id = entry.get('vendor_id', 0)
        product_id = entry.get('product_id', 0)
        return cls(
            vendor_id=vendor_id,
            product_id=product_id,
            path=entry.get('path', b''),
            serial=entry.get('serial_number') or "",
            manufacturer=entry.get('manufacturer_string') or "",
            product=entry.get('product_string') or KNOWN_DEVICES.get((vendor_id, product_id), ""),
        )

    @property
    def is_known(self) -> bool:
        return (self.vendor_id, self.product_id) in KNOWN_DEVICES

    def __str__(self) -> str:
        name = self.product or "Unknown device"
        serial = f" [{self.serial}]" if self.serial else ""
        return f"{self.vendor_id:04x}:{self.product_id:04x} {name}{serial}"


# =============================================================================
# Discovery
# =============================================================================

def find_devices(
    vendor_id: Optional[int] = None,
    product_id: Optional[int] = None,
    all_hid: bool = False
) -> list[BlyncDeviceInfo]:
    """
    Find attached devices.

    Args:
        vendor_id: Only match this vendor id
        product_id: Only match this product id
        all_hid: Include HID devices that are not known Blynclights

    Returns:
        List of BlyncDeviceInfo, one per HID path
    """
    found: dict[bytes, BlyncDeviceInfo] = {}

    for entry in hid.enumerate(vendor_id or 0, product_id or 0):
        info = BlyncDeviceInfo.from_hid(entry)
        if not (all_hid or vendor_id or product_id or info.is_known):
            continue
        if info.path not in found:
            _LOGGER.debug("Found: %s", info)
            found[info.path] = info

    return list(found.values())


# =============================================================================
# Device
# =============================================================================

class BlyncDevice:
    """An open Blynclight. Accepts raw control packets."""

    def __init__(self, info: BlyncDeviceInfo):
        self.info = info
        self._handle = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> 'BlyncDevice':
        """Open the HID device."""
        if self._handle is not None:
            return self
        handle = hid.device()
        try:
            handle.open_path(self.info.path)
        except (OSError, ValueError) as e:
            raise DeviceWriteError(f"Cannot open {self.info}: {e}") from e
        self._handle = handle
        _LOGGER.debug("Opened %s", self.info)
        return self

    def close(self):
        """Close the HID device."""
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
            _LOGGER.debug("Closed %s", self.info)

    def write(self, data: bytes) -> int:
        """
        Write one packet.

        Returns:
            Number of bytes written

        Raises:
            DeviceWriteError: device closed, disconnected or not permitted
        """
        if self._handle is None:
            raise DeviceWriteError(f"{self.info} is not open")
        try:
            written = self._handle.write(bytes(data))
        except (OSError, ValueError) as e:
            raise DeviceWriteError(f"Write to {self.info} failed: {e}") from e
        if written < 0:
            raise DeviceWriteError(f"Write to {self.info} failed: {self._handle.error()}")
        return written

    def __enter__(self) -> 'BlyncDevice':
        return self.open()

    def __exit__(self, *exc_info):
        self.close()

    def __str__(self) -> str:
        return str(self.info)


def open_first_device(
    vendor_id: Optional[int] = None,
    product_id: Optional[int] = None,
    all_hid: bool = False
) -> BlyncDevice:
    """
    Open the first matching device.

    Raises:
        DeviceNotFound: nothing matched
        DeviceWriteError: the device could not be opened
    """
    devices = find_devices(vendor_id, product_id, all_hid)
    if not devices:
        raise DeviceNotFound("No Blynclight found")
    if len(devices) > 1:
        _LOGGER.debug("%d devices found, using %s", len(devices), devices[0])
    return BlyncDevice(devices[0]).open()
