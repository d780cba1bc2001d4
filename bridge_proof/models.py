"""
Bridge Proof - Data Models.

============================================================
PURPOSE
============================================================
Inputs and outputs of the cross-chain proof builder.

ProofBundle is what a proof service returns for one EVM
transaction or receipt: the block header fields, the trie
nodes from root to leaf, and the trie key.

BridgeProof carries everything a mint request needs, with
RLP-encoded fields rendered as hex.

============================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.exceptions import ProofNotFoundError


# Block header field positions
HEADER_TX_ROOT = 4
HEADER_RECEIPT_ROOT = 5
HEADER_NUMBER = 8


@dataclass
class ProofBundle:
    """Merkle-Patricia inclusion proof of one trie value."""

    header: List[bytes]
    nodes: List[Any]
    """Trie nodes, root first. Each node is a list of bytes items."""

    index: bytes
    """Trie key (RLP of the transaction index)."""

    @property
    def value(self) -> bytes:
        """Leaf value: last item of the last node."""
        if not self.nodes or not self.nodes[-1]:
            raise ValueError("Proof has no leaf node")
        return self.nodes[-1][-1]

    @property
    def block_number(self) -> int:
        return int.from_bytes(self.header[HEADER_NUMBER], "big")


@dataclass(frozen=True)
class FreezeEvent:
    """Decoded TokenFreeze(address freezer, uint value, uint transferIdAndPrecisions)."""

    freezer: str
    value: int
    transfer_id: int
    source_precision: int
    native_precision: int


@dataclass
class BridgeProof:
    """Mint parameters extracted from a foreign-chain burn."""

    asset_guid: int
    destination_address: str
    amount: int
    tx_value: str
    tx_root: str
    tx_parent_nodes: str
    tx_path: str
    block_number: int
    receipt_value: str
    receipt_root: str
    receipt_parent_nodes: str
    bridge_transfer_id: int
    freeze_event: Optional[FreezeEvent] = None

    def to_asset_opts(self) -> Dict[str, Any]:
        """Fields in the layout the mint request descriptor expects."""
        return {
            "assetguid": self.asset_guid,
            "destinationaddress": self.destination_address,
            "amount": self.amount,
            "txvalue": self.tx_value,
            "txroot": self.tx_root,
            "txparentnodes": self.tx_parent_nodes,
            "txpath": self.tx_path,
            "blocknumber": self.block_number,
            "receiptvalue": self.receipt_value,
            "receiptroot": self.receipt_root,
            "receiptparentnodes": self.receipt_parent_nodes,
            "bridgetransferid": self.bridge_transfer_id,
        }


@dataclass
class BridgeProofResult:
    """Found or not-found outcome of a proof build."""

    txid: str
    found: bool
    proof: Optional[BridgeProof] = None
    reasons: List[str] = field(default_factory=list)

    @classmethod
    def not_found(cls, txid: str, reason: str) -> "BridgeProofResult":
        return cls(txid=txid, found=False, reasons=[reason])

    def require(self) -> BridgeProof:
        """
        Return the proof.

        Raises:
            ProofNotFoundError: no freeze event matched
        """
        if not self.found or self.proof is None:
            raise ProofNotFoundError(self.txid)
        return self.proof
