"""
Notarization - Configuration.
"""

from dataclasses import dataclass


@dataclass
class NotaryConfig:
    """Notary request policy."""

    timeout_seconds: float = 15.0
    """Per-endpoint request timeout."""

    abort_on_failure: bool = False
    """Raise instead of proceeding when any notary does not sign."""

    def to_dict(self) -> dict:
        return {
            "timeout_seconds": self.timeout_seconds,
            "abort_on_failure": self.abort_on_failure,
        }
