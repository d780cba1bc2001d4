"""
Notarization - Data Models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from transaction_assembler.pst import PartiallySignedTransaction


class NotarizationStatus(Enum):
    """Outcome of one notary request."""

    SIGNED = "signed"
    UNREACHABLE = "unreachable"
    """Timeout, connection failure or server error."""

    REJECTED = "rejected"
    """The notary answered but did not return a signature."""


@dataclass(frozen=True)
class NotarizationOutcome:
    asset_guid: str
    status: NotarizationStatus
    endpoint: str = ""
    signature: Optional[bytes] = None
    error: Optional[str] = None


@dataclass
class NotarizationReport:
    """Per-asset outcomes of one notarization round."""

    outcomes: List[NotarizationOutcome] = field(default_factory=list)

    @property
    def signatures(self) -> Dict[str, bytes]:
        """Asset guid -> notary signature, SIGNED outcomes only."""
        return {
            o.asset_guid: o.signature
            for o in self.outcomes
            if o.status is NotarizationStatus.SIGNED and o.signature is not None
        }

    @property
    def failures(self) -> List[NotarizationOutcome]:
        return [o for o in self.outcomes if o.status is not NotarizationStatus.SIGNED]

    @property
    def is_complete(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict:
        return {
            "outcomes": [
                {
                    "asset_guid": o.asset_guid,
                    "status": o.status.value,
                    "endpoint": o.endpoint,
                    "error": o.error,
                }
                for o in self.outcomes
            ],
        }


@dataclass
class NotarizationResult:
    """Final PST of notarize-and-sign plus the notary report behind it."""

    pst: PartiallySignedTransaction
    report: NotarizationReport
    resigned: bool = False
    """True when notary signatures were injected and the PST rebuilt."""
