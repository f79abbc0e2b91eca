"""
Core module for ESCape32 Update.

This module provides:
- Run configuration (config.py)
- Result objects (results.py)
- Query/update workflows with scoped serial sessions (actions.py)

The CLI calls into this module rather than driving the protocol itself.
"""

from .config import UpdateConfig, DEFAULT_DEVICE
from .results import OperationResult
from .actions import (
    esc_session,
    query_info,
    update,
    run,
)

__all__ = [
    # Config
    "UpdateConfig",
    "DEFAULT_DEVICE",
    # Results
    "OperationResult",
    # Actions
    "esc_session",
    "query_info",
    "update",
    "run",
]
