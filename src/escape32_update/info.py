"""
Decoders for the fixed-layout info records returned by the ESC.

Bootloader info (32 bytes):
    [0]      revision
    [1:32]   reserved

Firmware info (20 bytes, first 20 bytes of the firmware region):
    [0:2]    magic, little-endian 0x32EA when firmware is installed
    [2]      revision
    [3]      reserved
    [4:20]   name, NUL padded (not necessarily NUL terminated)
"""

import struct
from dataclasses import dataclass
from typing import List, Optional

from escape32_update.errors import InfoDecodeError

BOOTLOADER_INFO_SIZE = 32
FIRMWARE_INFO_SIZE = 20
FIRMWARE_MAGIC = 0x32EA

_BOOTLOADER_INFO = struct.Struct("<B31x")
_FIRMWARE_INFO = struct.Struct("<HBx16s")


@dataclass(frozen=True)
class BootloaderInfo:
    revision: int


@dataclass(frozen=True)
class FirmwareInfo:
    revision: int
    name: str


@dataclass(frozen=True)
class ESCInfo:
    """Everything the info query reports about one ESC."""

    bootloader: BootloaderInfo
    firmware: Optional[FirmwareInfo]

    def to_lines(self) -> List[str]:
        lines = [f"Bootloader revision {self.bootloader.revision}"]
        if self.firmware is None:
            lines.append("Firmware not installed!")
        else:
            lines.append(f"Firmware revision {self.firmware.revision} [{self.firmware.name}]")
        return lines


def _require_size(data: bytes, size: int, what: str) -> None:
    if len(data) != size:
        raise InfoDecodeError(f"{what} record must be {size} bytes, got {len(data)}")


def _printable_name(raw: bytes) -> str:
    """Trim at the first NUL and replace anything non-printable."""
    raw = raw.split(b"\x00", 1)[0]
    text = raw.decode("latin-1")
    return "".join(c if c.isprintable() else "?" for c in text)


def decode_bootloader_info(data: bytes) -> BootloaderInfo:
    """Decode the 32-byte bootloader record."""
    _require_size(data, BOOTLOADER_INFO_SIZE, "Bootloader info")
    (revision,) = _BOOTLOADER_INFO.unpack_from(data)
    return BootloaderInfo(revision=revision)


def decode_firmware_info(data: bytes) -> Optional[FirmwareInfo]:
    """
    Decode the 20-byte firmware record.

    Returns:
        FirmwareInfo, or None if the magic is absent (no firmware installed)
    """
    _require_size(data, FIRMWARE_INFO_SIZE, "Firmware info")
    magic, revision, name = _FIRMWARE_INFO.unpack_from(data)
    if magic != FIRMWARE_MAGIC:
        return None
    return FirmwareInfo(revision=revision, name=_printable_name(name))
