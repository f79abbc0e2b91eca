"""
ESCape32 Update - firmware and bootloader updater for ESCape32 ESCs

Probe, query info and flash images over the single-wire serial bootloader.
"""

__version__ = "1.0"

from escape32_update.protocol import ESCTransport, ESCUpdater
from escape32_update.core import UpdateConfig

__all__ = [
    "ESCTransport",
    "ESCUpdater",
    "UpdateConfig",
    "__version__",
]
