"""Shared fakes for protocol and workflow tests."""

from typing import List, Optional, Tuple

import pytest


class FakeTransport:
    """
    Records every primitive call and replays scripted replies.

    Values are served from `values` (falling back to `default_value`), data
    blocks from `data`.
    """

    def __init__(
        self,
        values: Optional[List[int]] = None,
        data: Optional[List[bytes]] = None,
        default_value: int = 0,
    ):
        self.values = list(values or [])
        self.data = list(data or [])
        self.default_value = default_value
        self.calls: List[Tuple[str, object]] = []
        self.timeouts: List[Optional[float]] = []
        self.opened = False
        self.closed = False

    def __enter__(self) -> "FakeTransport":
        self.opened = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    def send_value(self, value: int) -> None:
        self.calls.append(("send_value", int(value)))

    def recv_value(self, timeout_override: Optional[float] = None) -> int:
        self.calls.append(("recv_value", None))
        self.timeouts.append(timeout_override)
        return self.values.pop(0) if self.values else self.default_value

    def send_data(self, data: bytes) -> None:
        self.calls.append(("send_data", bytes(data)))

    def recv_data(self, expected_len: int) -> bytes:
        self.calls.append(("recv_data", expected_len))
        return self.data.pop(0)

    def sent_values(self) -> List[int]:
        return [arg for name, arg in self.calls if name == "send_value"]

    def sent_data(self) -> List[bytes]:
        return [arg for name, arg in self.calls if name == "send_data"]


@pytest.fixture
def fake_transport():
    return FakeTransport


def write_image(tmp_path, length: int, name: str = "image.bin") -> str:
    path = tmp_path / name
    path.write_bytes(bytes(i & 0xFF for i in range(length)))
    return str(path)


@pytest.fixture
def image_file(tmp_path):
    """Factory writing a test image of the given length."""
    def _make(length: int, name: str = "image.bin") -> str:
        return write_image(tmp_path, length, name)
    return _make
