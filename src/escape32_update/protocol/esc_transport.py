"""
ESCape32 Serial Transport Layer

Handles low-level serial communication with the ESCape32 bootloader over a
single-wire, half-duplex UART.

This module provides:
- Serial port initialization and configuration
- Value frames: [value, value ^ 0xFF]
- Data frames: [length code frame | payload | CRC-32 (little-endian)]
- Echo verification for the single-wire line
"""

import logging
import struct
import zlib
from typing import Optional

try:
    import serial
except ImportError:
    raise ImportError("PySerial required: pip install pyserial")

from escape32_update.errors import ESCConnectionError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 38400
DEFAULT_TIMEOUT = 1.0
MAX_DATA_LEN = 1024

# Returned by recv_value() when the complement byte does not match
INVALID_VALUE = -1


def encode_value(value: int) -> bytes:
    """Build a value frame: the byte followed by its complement."""
    if not 0 <= value <= 0xFF:
        raise ValueError(f"Value must fit in one byte, got {value}")
    return bytes([value, value ^ 0xFF])


def decode_value(frame: bytes) -> int:
    """
    Parse a two-byte value frame.

    Returns:
        The value, or INVALID_VALUE if the check byte is wrong
    """
    if len(frame) != 2 or frame[0] ^ frame[1] != 0xFF:
        return INVALID_VALUE
    return frame[0]


def data_length_code(length: int) -> int:
    """Length code carried in the data frame header: words - 1."""
    if length <= 0 or length % 4 or length > MAX_DATA_LEN:
        raise ValueError(
            f"Data length must be a non-zero multiple of 4 up to {MAX_DATA_LEN}, got {length}"
        )
    return (length >> 2) - 1


def crc32_bytes(data: bytes) -> bytes:
    """CRC-32 of the payload as it appears on the wire."""
    return struct.pack("<I", zlib.crc32(data) & 0xFFFFFFFF)


class ESCTransport:
    """
    Low-level serial transport for the ESCape32 bootloader.

    Every send is expected to be followed by a blocking receive; the
    transport itself never retries.

    Example:
        with ESCTransport(port="/dev/ttyUSB0") as transport:
            transport.send_value(0)
            result = transport.recv_value()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = DEFAULT_TIMEOUT,
        echo: bool = True,
    ):
        """
        Initialize transport layer.

        Args:
            port: Serial port (e.g., "/dev/ttyUSB0", "COM3")
            baudrate: Serial baud rate (default 38400)
            timeout: Read/write timeout in seconds (default 1.0)
            echo: Line echoes everything sent (single-wire wiring)
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.echo = echo
        self.ser: Optional[serial.Serial] = None

    def open(self) -> None:
        """
        Open and configure the serial port.

        Raises:
            ESCConnectionError: If port cannot be opened
        """
        try:
            self.ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=8,
                parity='N',
                stopbits=1,
                timeout=self.timeout,
                write_timeout=self.timeout,
                rtscts=False,
                dsrdtr=False,
            )
            self.ser.reset_input_buffer()
            self.ser.reset_output_buffer()

            logger.debug(
                f"Opened {self.port} at {self.baudrate} bps "
                f"(timeout={self.timeout}s, echo={self.echo})"
            )
        except (serial.SerialException, OSError, ValueError) as e:
            raise ESCConnectionError(f"Cannot open port {self.port}: {e}")

    def close(self) -> None:
        """Close serial port."""
        if self.ser and self.ser.is_open:
            self.ser.close()
            logger.debug(f"Closed {self.port}")

    def __enter__(self) -> "ESCTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return bool(self.ser and self.ser.is_open)

    def _require_open(self) -> None:
        if not self.is_open:
            raise TransportError("Serial port not open")

    def send_raw(self, data: bytes) -> None:
        """
        Send raw bytes, consuming the echo when the line is single-wire.

        Raises:
            TransportError: If write fails or the echo does not match
        """
        self._require_open()

        try:
            written = self.ser.write(data)
            if written != len(data):
                raise TransportError(
                    f"Incomplete write: sent {written}/{len(data)} bytes"
                )
            self.ser.flush()
            logger.debug(f">>> {data.hex().upper()}")
        except serial.SerialException as e:
            raise TransportError(f"Write error: {e}")

        if self.echo:
            echoed = self.recv_raw(len(data))
            if echoed != data:
                raise TransportError(
                    f"Echo mismatch: sent {data.hex()}, read back {echoed.hex()}"
                )

    def recv_raw(self, length: int, timeout_override: Optional[float] = None) -> bytes:
        """
        Receive exactly `length` bytes.

        Args:
            length: Number of bytes to receive
            timeout_override: Optional timeout override (seconds)

        Raises:
            TransportError: On serial error or timeout before all bytes arrive
        """
        self._require_open()

        old_timeout = None
        try:
            if timeout_override is not None:
                old_timeout = self.ser.timeout
                self.ser.timeout = timeout_override
            data = self.ser.read(length)
        except serial.SerialException as e:
            raise TransportError(f"Read error: {e}")
        finally:
            if old_timeout is not None:
                self.ser.timeout = old_timeout

        if len(data) != length:
            raise TransportError(
                f"ESC did not respond (timeout, got {len(data)}/{length} bytes)"
            )
        logger.debug(f"<<< {data.hex().upper()}")
        return data

    def send_value(self, value: int) -> None:
        """Transmit one framed integer."""
        self.send_raw(encode_value(value))

    def recv_value(self, timeout_override: Optional[float] = None) -> int:
        """
        Receive one framed integer.

        Args:
            timeout_override: Optional timeout for this read (seconds)

        Returns:
            The value, or INVALID_VALUE for a corrupted frame
        """
        frame = self.recv_raw(2, timeout_override)
        value = decode_value(frame)
        if value == INVALID_VALUE:
            logger.debug(f"Invalid value frame {frame.hex()}")
        return value

    def send_data(self, data: bytes) -> None:
        """Transmit a data block: length code, payload, CRC-32."""
        code = data_length_code(len(data))
        self.send_value(code)
        self.send_raw(bytes(data) + crc32_bytes(data))

    def recv_data(self, expected_len: int) -> bytes:
        """
        Receive a data block.

        The length announced by the ESC is read, not `expected_len`; the
        caller compares the two.

        Returns:
            Payload bytes, or b"" if the length frame or checksum is corrupt
        """
        code = self.recv_value()
        if code == INVALID_VALUE:
            logger.warning(f"Corrupt length frame (expected {expected_len} bytes)")
            return b""

        length = (code + 1) << 2
        payload = self.recv_raw(length)
        crc = self.recv_raw(4)
        if crc != crc32_bytes(payload):
            logger.warning(f"CRC mismatch on {length}-byte block")
            return b""
        return payload
