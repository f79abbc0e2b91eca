"""ESC protocol layer - serial transport and update command engine."""

from .esc_transport import (
    ESCTransport,
    INVALID_VALUE,
    encode_value,
    decode_value,
)
from .update_protocol import (
    ESCUpdater,
    Command,
    Result,
    progress_percent,
)

__all__ = [
    # Transport
    "ESCTransport",
    "INVALID_VALUE",
    "encode_value",
    "decode_value",
    # Update protocol
    "ESCUpdater",
    "Command",
    "Result",
    "progress_percent",
]
