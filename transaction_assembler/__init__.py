"""
Transaction Assembler Package.

Transaction codec, partially signed transactions and the
assembler that signs requests with the HD signer.
"""

from transaction_assembler.assembler import OwnershipIndex, TransactionAssembler
from transaction_assembler.codec import (
    SIGHASH_ALL,
    Transaction,
    TxIn,
    TxOut,
    compact_size,
    virtual_size_from_weight,
)
from transaction_assembler.config import FeeConfig
from transaction_assembler.pst import PartiallySignedTransaction, PrevTxCache, PstInput
from transaction_assembler.types import (
    Bip32Derivation,
    RequestInput,
    RequestOutput,
    TransactionKind,
    TransactionRequest,
)


__all__ = [
    "OwnershipIndex",
    "TransactionAssembler",
    "SIGHASH_ALL",
    "Transaction",
    "TxIn",
    "TxOut",
    "compact_size",
    "virtual_size_from_weight",
    "FeeConfig",
    "PartiallySignedTransaction",
    "PrevTxCache",
    "PstInput",
    "Bip32Derivation",
    "RequestInput",
    "RequestOutput",
    "TransactionKind",
    "TransactionRequest",
]
