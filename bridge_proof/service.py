"""
Bridge Proof - Proof Service Contract.

The Merkle-Patricia proof primitive lives outside this library;
implementations fetch the block and compute the proof.
"""

from abc import ABC, abstractmethod

from bridge_proof.models import ProofBundle


class ProofService(ABC):
    """Produces inclusion proofs for EVM transactions and receipts."""

    @abstractmethod
    async def transaction_proof(self, txid: str) -> ProofBundle:
        """
        Proof that a transaction is included in its block's transaction trie.

        Args:
            txid: 0x-prefixed transaction hash
        """
        pass

    @abstractmethod
    async def receipt_proof(self, txid: str) -> ProofBundle:
        """Proof that a receipt is included in its block's receipt trie."""
        pass
