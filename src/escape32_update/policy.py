"""
Mismatch policy shared by every protocol check.

A single place decides what happens when the ESC answers with an unexpected
value or data length: abort the run, or (force mode) log it and carry on.
Transport failures never pass through here.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from escape32_update.errors import ProtocolMismatchError

logger = logging.getLogger(__name__)


@dataclass
class MismatchPolicy:
    """
    Strict policy: any mismatch aborts the run.

    Attributes:
        ignored: Mismatches tolerated so far (always empty when strict)
    """
    ignored: List[ProtocolMismatchError] = field(default_factory=list)

    force = False

    def check(self, actual: int, expected: int, label: str) -> None:
        """
        Compare a received value or length against the expected one.

        Raises:
            ProtocolMismatchError: If they differ and the policy is strict
        """
        if actual == expected:
            return
        error = ProtocolMismatchError(label, int(actual), int(expected))
        if not self.force:
            raise error
        logger.warning(f"Ignoring: {error}")
        self.ignored.append(error)


@dataclass
class ForcePolicy(MismatchPolicy):
    """Force mode: mismatches are recorded and treated as success."""

    force = True


def make_policy(force: bool) -> MismatchPolicy:
    """Select the policy for the configured force mode."""
    return ForcePolicy() if force else MismatchPolicy()
