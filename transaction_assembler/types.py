"""
Transaction Assembler - Types.

============================================================
PURPOSE
============================================================
The request descriptor handed over by the transaction
construction engine, and the kind classification that decides
whether a transaction may burn value.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from core.constants import BURN_TX_VERSIONS, DEFAULT_SEQUENCE, MINT_TX_VERSIONS


# ============================================================
# ENUMS
# ============================================================

class TransactionKind(Enum):
    """Balance semantics of a transaction."""

    STANDARD = "standard"
    """Inputs must cover outputs."""

    BURN = "burn"
    """Outputs may exceed inputs (value moves across the native/asset boundary)."""

    MINT = "mint"
    """Allocation mint from a bridge proof; inputs must cover outputs."""

    @classmethod
    def from_version(cls, version: int) -> "TransactionKind":
        if version in BURN_TX_VERSIONS:
            return cls.BURN
        if version in MINT_TX_VERSIONS:
            return cls.MINT
        return cls.STANDARD

    @property
    def allows_negative_fee(self) -> bool:
        return self is TransactionKind.BURN


# ============================================================
# REQUEST
# ============================================================

@dataclass(frozen=True)
class Bip32Derivation:
    """Which key of which wallet controls an input."""

    master_fingerprint: bytes
    path: str
    pubkey: bytes


@dataclass
class RequestInput:
    """
    One input of a transaction request.

    Segwit inputs carry witness_script + value (the spent output);
    legacy inputs carry the full previous transaction instead.
    """

    txid: str
    vout: int
    value: Optional[int] = None
    witness_script: Optional[bytes] = None
    non_witness_utxo: Optional[bytes] = None
    path: Optional[str] = None
    sequence: int = DEFAULT_SEQUENCE
    bip32_derivation: List[Bip32Derivation] = field(default_factory=list)


@dataclass
class RequestOutput:
    """One output of a transaction request."""

    value: int
    script: Optional[bytes] = None
    address: Optional[str] = None
    asset_guid: Optional[str] = None
    """Asset this output carries, used to find notaries to contact."""


@dataclass
class TransactionRequest:
    """Ordered inputs/outputs plus version and locktime."""

    inputs: List[RequestInput] = field(default_factory=list)
    outputs: List[RequestOutput] = field(default_factory=list)
    version: int = 2
    locktime: int = 0

    @property
    def kind(self) -> TransactionKind:
        return TransactionKind.from_version(self.version)

    def referenced_assets(self) -> List[str]:
        """Asset guids carried by outputs, in first-seen order."""
        seen: Set[str] = set()
        ordered = []
        for output in self.outputs:
            if output.asset_guid is not None and output.asset_guid not in seen:
                seen.add(output.asset_guid)
                ordered.append(output.asset_guid)
        return ordered
