"""
Cross-Chain Proof Builder Package.

Extracts inclusion proofs and mint parameters from EVM bridge
burn transactions.
"""

from bridge_proof.builder import (
    BridgeProofBuilder,
    decode_transaction_call,
    decode_typed_envelope,
    find_freeze_event,
    reconcile_precision,
    split_transfer_id_and_precisions,
)
from bridge_proof.config import BridgeConfig
from bridge_proof.models import BridgeProof, BridgeProofResult, FreezeEvent, ProofBundle
from bridge_proof.service import ProofService


__all__ = [
    "BridgeProofBuilder",
    "decode_transaction_call",
    "decode_typed_envelope",
    "find_freeze_event",
    "reconcile_precision",
    "split_transfer_id_and_precisions",
    "BridgeConfig",
    "BridgeProof",
    "BridgeProofResult",
    "FreezeEvent",
    "ProofBundle",
    "ProofService",
]
