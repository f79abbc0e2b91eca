"""
Run configuration.

Built once from the command line and passed explicitly into the workflows;
nothing reads device, force or target settings from global state.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from escape32_update.policy import MismatchPolicy, make_policy
from escape32_update.image import BOOTLOADER_CAPACITY, FIRMWARE_CAPACITY
from escape32_update.protocol.esc_transport import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT
from escape32_update.protocol.update_protocol import REBOOT_TIMEOUT

DEFAULT_DEVICE = "/dev/ttyUSB0"


@dataclass(frozen=True)
class UpdateConfig:
    """
    Settings for a single query or update run.

    Attributes:
        device: Serial device name
        image_path: Image to flash; None means print ESC info
        force: Ignore protocol errors (forced update)
        bootloader: Target the bootloader instead of the firmware
        baudrate: Serial baud rate
        timeout: Per-read serial timeout in seconds
        echo: Line echoes sent bytes (single-wire wiring)
        reboot_timeout: Wait for the ACK after a bootloader update, in seconds
    """
    device: str = DEFAULT_DEVICE
    image_path: Optional[Path] = None
    force: bool = False
    bootloader: bool = False
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = DEFAULT_TIMEOUT
    echo: bool = True
    reboot_timeout: float = REBOOT_TIMEOUT

    @property
    def capacity(self) -> int:
        """Size of the target region; images must be strictly smaller."""
        return BOOTLOADER_CAPACITY if self.bootloader else FIRMWARE_CAPACITY

    @property
    def target(self) -> str:
        return "bootloader" if self.bootloader else "firmware"

    @property
    def mode(self) -> str:
        return "info" if self.image_path is None else "update"

    def make_policy(self) -> MismatchPolicy:
        return make_policy(self.force)
