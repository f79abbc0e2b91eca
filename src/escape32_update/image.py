"""
Binary image loading and block splitting.

Images are read into a capacity-bounded buffer. An image is accepted only if
it is non-empty, word aligned and strictly smaller than the target region:
a file that exactly fills the region cannot be told apart from a larger file
that was cut off, so it is rejected too.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Union

from escape32_update.errors import ImageReadError, ImageValidationError

logger = logging.getLogger(__name__)

BLOCK_SIZE = 1024
BOOTLOADER_CAPACITY = 4096
FIRMWARE_CAPACITY = 26624


@dataclass(frozen=True)
class FirmwareImage:
    """Validated image bytes together with the capacity of their target."""

    data: bytes
    capacity: int

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Block:
    """
    Contiguous chunk of an image.

    Attributes:
        index: Sequential block number (offset // BLOCK_SIZE)
        offset: Byte offset within the image
        data: At most BLOCK_SIZE bytes
    """

    index: int
    offset: int
    data: bytes


def is_valid_length(length: int, capacity: int) -> bool:
    """Check 0 < length < capacity and length is a multiple of 4."""
    return 0 < length < capacity and length % 4 == 0


def load_image(path: Union[str, Path], capacity: int) -> FirmwareImage:
    """
    Read up to `capacity` bytes from `path`.

    Args:
        path: Binary image file
        capacity: Size of the target region in bytes

    Returns:
        FirmwareImage holding the bytes actually read

    Raises:
        ImageReadError: If the file cannot be opened or read
        ImageValidationError: If the length is 0, equals capacity or is not
            a multiple of 4
    """
    try:
        with open(path, "rb") as f:
            data = f.read(capacity)
    except OSError as e:
        raise ImageReadError(f"{path}: {e.strerror or e}")

    if not is_valid_length(len(data), capacity):
        raise ImageValidationError(str(path), len(data), capacity)

    logger.debug(f"Loaded {path}: {len(data)} bytes (capacity {capacity})")
    return FirmwareImage(data=data, capacity=capacity)


def iter_blocks(image: FirmwareImage, block_size: int = BLOCK_SIZE) -> Iterator[Block]:
    """Yield the image in increasing-offset blocks of at most `block_size` bytes."""
    for offset in range(0, image.length, block_size):
        yield Block(
            index=offset // block_size,
            offset=offset,
            data=image.data[offset:offset + block_size],
        )
