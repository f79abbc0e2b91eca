"""Tests for the pyserial transport framing, using a fake serial port."""

import struct
import zlib

import pytest
import serial

from escape32_update.errors import ESCConnectionError, TransportError
from escape32_update.protocol import esc_transport
from escape32_update.protocol.esc_transport import (
    INVALID_VALUE,
    ESCTransport,
    data_length_code,
    decode_value,
    encode_value,
)


class FakeSerial:
    """In-memory serial port; optionally echoes writes like a single-wire line."""

    instances = []

    def __init__(self, echo: bool = True, **kwargs):
        self.kwargs = kwargs
        self.timeout = kwargs.get("timeout")
        self.read_timeouts = []
        self.echo = echo
        self.is_open = True
        self.written = bytearray()
        self.rx = bytearray()
        FakeSerial.instances.append(self)

    def write(self, data: bytes) -> int:
        self.written.extend(data)
        if self.echo:
            self.rx.extend(data)
        return len(data)

    def read(self, size: int) -> bytes:
        self.read_timeouts.append(self.timeout)
        out = bytes(self.rx[:size])
        del self.rx[:size]
        return out

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        self.rx.clear()

    def reset_output_buffer(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False

    def feed(self, data: bytes) -> None:
        self.rx.extend(data)


@pytest.fixture
def fake_serial(monkeypatch):
    FakeSerial.instances = []
    monkeypatch.setattr(esc_transport.serial, "Serial", lambda **kw: FakeSerial(**kw))
    return FakeSerial


def _data_frame(payload: bytes) -> bytes:
    return encode_value(len(payload) // 4 - 1) + payload + struct.pack("<I", zlib.crc32(payload))


def test_value_frame_is_byte_and_complement():
    assert encode_value(0) == b"\x00\xFF"
    assert encode_value(3) == b"\x03\xFC"
    assert decode_value(b"\x04\xFB") == 4
    assert decode_value(b"\x04\x04") == INVALID_VALUE


def test_value_out_of_range_rejected():
    with pytest.raises(ValueError):
        encode_value(256)


def test_data_length_code():
    assert data_length_code(4) == 0
    assert data_length_code(20) == 4
    assert data_length_code(1024) == 255
    for bad in (0, 6, 1028):
        with pytest.raises(ValueError):
            data_length_code(bad)


def test_open_configures_port(fake_serial):
    with ESCTransport("/dev/ttyUSB0") as transport:
        assert transport.is_open
        port = fake_serial.instances[0]
        assert port.kwargs["port"] == "/dev/ttyUSB0"
        assert port.kwargs["baudrate"] == 38400
    assert not port.is_open


def test_open_failure_raises_connection_error(monkeypatch):
    def refuse(**kwargs):
        raise serial.SerialException("could not open port")

    monkeypatch.setattr(esc_transport.serial, "Serial", refuse)
    with pytest.raises(ESCConnectionError) as ei:
        ESCTransport("/dev/ttyUSB9").open()
    assert "/dev/ttyUSB9" in str(ei.value)


def test_send_value_consumes_echo(fake_serial):
    with ESCTransport("/dev/ttyUSB0") as transport:
        port = fake_serial.instances[0]
        transport.send_value(3)
        port.feed(encode_value(0))
        assert transport.recv_value() == 0
        assert bytes(port.written) == b"\x03\xFC"


def test_corrupt_echo_is_transport_error(fake_serial):
    with ESCTransport("/dev/ttyUSB0") as transport:
        port = fake_serial.instances[0]
        port.echo = False
        port.feed(b"\x00\x00")
        with pytest.raises(TransportError):
            transport.send_value(1)


def test_no_echo_mode(fake_serial):
    with ESCTransport("/dev/ttyUSB0", echo=False) as transport:
        port = fake_serial.instances[0]
        port.echo = False
        transport.send_value(2)
        assert bytes(port.written) == b"\x02\xFD"
        assert port.rx == bytearray()


def test_recv_value_corrupt_frame_returns_invalid(fake_serial):
    with ESCTransport("/dev/ttyUSB0") as transport:
        fake_serial.instances[0].feed(b"\x00\x00")
        assert transport.recv_value() == INVALID_VALUE


def test_recv_timeout_is_transport_error(fake_serial):
    with ESCTransport("/dev/ttyUSB0") as transport:
        fake_serial.instances[0].feed(b"\x00")
        with pytest.raises(TransportError):
            transport.recv_value()


def test_send_data_frame_layout(fake_serial):
    payload = bytes(range(8))
    with ESCTransport("/dev/ttyUSB0") as transport:
        transport.send_data(payload)
        assert bytes(fake_serial.instances[0].written) == _data_frame(payload)


def test_recv_data_returns_payload(fake_serial):
    payload = bytes(range(20))
    with ESCTransport("/dev/ttyUSB0") as transport:
        fake_serial.instances[0].feed(_data_frame(payload))
        assert transport.recv_data(20) == payload


def test_recv_data_reads_declared_length(fake_serial):
    payload = bytes(range(16))
    with ESCTransport("/dev/ttyUSB0") as transport:
        fake_serial.instances[0].feed(_data_frame(payload))
        assert transport.recv_data(32) == payload


def test_recv_data_bad_crc_returns_empty(fake_serial):
    frame = bytearray(_data_frame(bytes(20)))
    frame[-1] ^= 0xFF
    with ESCTransport("/dev/ttyUSB0") as transport:
        fake_serial.instances[0].feed(bytes(frame))
        assert transport.recv_data(20) == b""


def test_closed_port_raises(fake_serial):
    transport = ESCTransport("/dev/ttyUSB0")
    with pytest.raises(TransportError):
        transport.send_value(0)


def test_recv_value_timeout_override_is_restored(fake_serial):
    with ESCTransport("/dev/ttyUSB0", timeout=1.0) as transport:
        port = fake_serial.instances[0]
        port.feed(encode_value(0) + encode_value(0))
        assert transport.recv_value(timeout_override=5.0) == 0
        assert transport.recv_value() == 0
        assert port.read_timeouts == [5.0, 1.0]
        assert port.timeout == 1.0
