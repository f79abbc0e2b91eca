"""
ESCape32 Update Protocol Implementation

Command/response engine for the ESCape32 bootloader. Every command is
followed by a blocking receive before the next one is issued.

Protocol sequences:
- Probe:   PROBE -> expect OK
- Info:    INFO -> 32-byte bootloader record
           READ, block 0, length code 4 -> 20-byte firmware record
- Firmware update, per 1024-byte block:
           WRITE, block index, data -> expect OK
- Bootloader update:
           UPDATE, then per block: data -> expect OK
           then one more OK once the ESC has rebooted
"""

import logging
from enum import IntEnum
from typing import Callable, Optional

from escape32_update.policy import MismatchPolicy
from escape32_update.image import FirmwareImage, iter_blocks
from escape32_update.info import (
    BOOTLOADER_INFO_SIZE,
    FIRMWARE_INFO_SIZE,
    ESCInfo,
    decode_bootloader_info,
    decode_firmware_info,
)

logger = logging.getLogger(__name__)

# READ length code: the ESC returns (code + 1) * 4 bytes
FIRMWARE_INFO_LENGTH_CODE = FIRMWARE_INFO_SIZE // 4 - 1
FIRMWARE_INFO_BLOCK = 0

# The ESC resets after a bootloader update before it answers again
REBOOT_TIMEOUT = 5.0

LABEL_PROBE = "Connection failed"
LABEL_READ = "Error reading data"
LABEL_WRITE = "Error writing data"
LABEL_REBOOT = "Update failed"


class Command(IntEnum):
    PROBE = 0
    INFO = 1
    READ = 2
    WRITE = 3
    UPDATE = 4


class Result(IntEnum):
    OK = 0
    ERROR = 1


def progress_percent(done: int, total: int) -> int:
    """Integer percentage as reported before each block."""
    return done * 100 // total if total else 100


def _fit(data: bytes, size: int) -> bytes:
    """Zero-pad or truncate a record tolerated under force mode."""
    return data[:size].ljust(size, b"\x00")


class ESCUpdater:
    """
    Drives probe/info/update exchanges with one ESC.

    Args:
        transport: Object providing send_value/recv_value/send_data/recv_data
        policy: Mismatch policy applied to every check
        progress_cb: Optional callback(done_bytes, total_bytes)
        reboot_timeout: Read timeout for the ACK sent after the ESC reboots

    Example:
        with ESCTransport("/dev/ttyUSB0") as transport:
            updater = ESCUpdater(transport, make_policy(force=False))
            updater.probe()
            print(updater.query_info().to_lines())
    """

    def __init__(
        self,
        transport,
        policy: MismatchPolicy,
        progress_cb: Optional[Callable[[int, int], None]] = None,
        reboot_timeout: float = REBOOT_TIMEOUT,
    ):
        self.transport = transport
        self.policy = policy
        self.progress_cb = progress_cb
        self.reboot_timeout = reboot_timeout

    def _report(self, done: int, total: int) -> None:
        logger.debug(f"{progress_percent(done, total):4d}%")
        if self.progress_cb:
            self.progress_cb(done, total)

    def _recv_ack(self, label: str) -> None:
        self.policy.check(self.transport.recv_value(), Result.OK, label)

    def _recv_record(self, size: int) -> bytes:
        data = self.transport.recv_data(size)
        self.policy.check(len(data), size, LABEL_READ)
        return _fit(data, size)

    def probe(self) -> None:
        """Check that the ESC bootloader answers."""
        self.transport.send_value(Command.PROBE)
        self._recv_ack(LABEL_PROBE)
        logger.debug("Probe acknowledged")

    def query_info(self) -> ESCInfo:
        """Fetch and decode the bootloader and firmware info records."""
        self.transport.send_value(Command.INFO)
        bootloader = decode_bootloader_info(self._recv_record(BOOTLOADER_INFO_SIZE))

        self.transport.send_value(Command.READ)
        self.transport.send_value(FIRMWARE_INFO_BLOCK)
        self.transport.send_value(FIRMWARE_INFO_LENGTH_CODE)
        firmware = decode_firmware_info(self._recv_record(FIRMWARE_INFO_SIZE))

        return ESCInfo(bootloader=bootloader, firmware=firmware)

    def update_firmware(self, image: FirmwareImage) -> None:
        """Write the image block by block, each addressed by its index."""
        for block in iter_blocks(image):
            self._report(block.offset, image.length)
            self.transport.send_value(Command.WRITE)
            self.transport.send_value(block.index)
            self.transport.send_data(block.data)
            self._recv_ack(LABEL_WRITE)
            logger.debug(f"Wrote block {block.index} ({len(block.data)} bytes)")
        self._report(image.length, image.length)

    def update_bootloader(self, image: FirmwareImage) -> None:
        """Stream the image to the bootloader, then wait for the post-reboot ACK."""
        self.transport.send_value(Command.UPDATE)
        for block in iter_blocks(image):
            self._report(block.offset, image.length)
            self.transport.send_data(block.data)
            self._recv_ack(LABEL_WRITE)
            logger.debug(f"Sent bootloader block at 0x{block.offset:04X} ({len(block.data)} bytes)")
        self._report(image.length, image.length)
        self.policy.check(
            self.transport.recv_value(timeout_override=self.reboot_timeout),
            Result.OK,
            LABEL_REBOOT,
        )
        logger.debug("ESC acknowledged after reboot")
