"""
Notarization Coordinator Package.

Collects notary signatures for notarized assets and re-signs
transactions after they are embedded.
"""

from notarization.client import NotaryClient, decode_signature
from notarization.config import NotaryConfig
from notarization.coordinator import NO_NOTARIZATION_CHANGE, NotarizationCoordinator
from notarization.models import (
    NotarizationOutcome,
    NotarizationReport,
    NotarizationResult,
    NotarizationStatus,
)


__all__ = [
    "NotaryClient",
    "decode_signature",
    "NotaryConfig",
    "NO_NOTARIZATION_CHANGE",
    "NotarizationCoordinator",
    "NotarizationOutcome",
    "NotarizationReport",
    "NotarizationResult",
    "NotarizationStatus",
]
