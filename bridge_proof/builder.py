"""
Bridge Proof - Builder.

============================================================
PURPOSE
============================================================
Extracts mint parameters from an EVM burn ("freeze")
transaction:

1. Transaction proof -> tx value/root/parent nodes/path,
   block number, and the call data decoded as
   (uint256 value, uint32 assetGUID, string syscoinAddress)
2. Receipt proof -> receipt value/root/parent nodes and the
   TokenFreeze log emitted by the bridge contract
3. TokenFreeze(address freezer, uint value, uint transferIdAndPrecisions)
   - transfer id      = bits 0..31
   - source precision = bits 32..39
   - native precision = bits 40..47
   the amount is rescaled from source to native precision

============================================================
"""

import logging
from typing import List, Optional, Tuple

import rlp
from rlp.exceptions import DecodingError as RlpDecodingError
from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError as AbiDecodingError
from eth_utils import remove_0x_prefix

from bridge_proof.config import BridgeConfig
from bridge_proof.models import (
    HEADER_RECEIPT_ROOT,
    HEADER_TX_ROOT,
    BridgeProof,
    BridgeProofResult,
    FreezeEvent,
)
from bridge_proof.service import ProofService
from core.constants import MAX_PRECISION, TOKEN_FREEZE_TOPIC
from core.exceptions import DataIntegrityError


logger = logging.getLogger(__name__)


# Position of the call data field per transaction envelope type
TX_DATA_INDEX = {
    0: 5,  # legacy: nonce, gasPrice, gas, to, value, data, ...
    1: 6,  # EIP-2930: chainId, nonce, gasPrice, gas, to, value, data, ...
    2: 7,  # EIP-1559: chainId, nonce, maxPriority, maxFee, gas, to, value, data, ...
}
RECEIPT_LOGS_INDEX = 3
FUNCTION_SELECTOR_LENGTH = 4

TRANSFER_ID_MASK = 0xFFFFFFFF
PRECISION_MASK = 0xFF


# ============================================================
# PRECISION
# ============================================================

def reconcile_precision(value: int, source_precision: int, native_precision: int) -> int:
    """
    Rescale an amount between fixed-point precisions.

    Pads with zeros when the native precision is finer, truncates
    toward zero when it is coarser.
    """
    for precision in (source_precision, native_precision):
        if not 0 <= precision <= MAX_PRECISION:
            raise ValueError(f"Precision out of range: {precision}")
    if native_precision > source_precision:
        return value * 10 ** (native_precision - source_precision)
    if native_precision < source_precision:
        return value // 10 ** (source_precision - native_precision)
    return value


def split_transfer_id_and_precisions(packed: int) -> Tuple[int, int, int]:
    """(transfer id, source precision, native precision)."""
    return (
        packed & TRANSFER_ID_MASK,
        (packed >> 32) & PRECISION_MASK,
        (packed >> 40) & PRECISION_MASK,
    )


# ============================================================
# ENVELOPES
# ============================================================

def decode_typed_envelope(raw: bytes) -> Tuple[int, List]:
    """
    Decode a transaction or receipt that may carry an EIP-2718 type byte.

    Returns:
        (envelope type, decoded RLP list)
    """
    if not raw:
        raise ValueError("Empty envelope")
    if raw[0] >= 0xC0:
        return 0, rlp.decode(raw)
    return raw[0], rlp.decode(raw[1:])


def decode_transaction_call(raw_tx: bytes) -> Tuple[int, int, str]:
    """(value, asset guid, destination address) from bridge call data."""
    tx_type, fields = decode_typed_envelope(raw_tx)
    data_index = TX_DATA_INDEX.get(tx_type)
    if data_index is None:
        raise ValueError(f"Unsupported transaction type {tx_type}")
    call_data = fields[data_index][FUNCTION_SELECTOR_LENGTH:]
    value, asset_guid, destination = abi_decode(["uint256", "uint32", "string"], call_data)
    return value, asset_guid, destination


def find_freeze_event(raw_receipt: bytes, manager_address: str) -> Optional[FreezeEvent]:
    """First TokenFreeze log emitted by manager_address, if any."""
    _, fields = decode_typed_envelope(raw_receipt)
    manager = remove_0x_prefix(manager_address).lower()
    for log_entry in fields[RECEIPT_LOGS_INDEX]:
        address, topics, data = log_entry[0], log_entry[1], log_entry[2]
        if len(topics) != 1:
            continue
        if topics[0].hex().lower() != TOKEN_FREEZE_TOPIC or address.hex().lower() != manager:
            continue
        freezer, value, packed = abi_decode(["address", "uint256", "uint256"], data)
        transfer_id, source_precision, native_precision = split_transfer_id_and_precisions(packed)
        return FreezeEvent(
            freezer=freezer,
            value=value,
            transfer_id=transfer_id,
            source_precision=source_precision,
            native_precision=native_precision,
        )
    return None


# ============================================================
# BUILDER
# ============================================================

class BridgeProofBuilder:
    """
    Builds BridgeProofs from a proof service.

    Args:
        proof_service: Supplies transaction and receipt proofs
        config: Bridge contract selection
    """

    def __init__(self, proof_service: ProofService, config: Optional[BridgeConfig] = None) -> None:
        self.proof_service = proof_service
        self.config = config or BridgeConfig()

    async def build(self, ethtxid: str) -> BridgeProofResult:
        """
        Build the mint parameters for a foreign burn transaction.

        Returns:
            BridgeProofResult, found=False when no freeze event matched

        Raises:
            DataIntegrityError: the proofs cannot be decoded
        """
        tx_bundle = await self.proof_service.transaction_proof(ethtxid)
        try:
            value, asset_guid, destination = decode_transaction_call(tx_bundle.value)
        except (ValueError, IndexError, TypeError, RlpDecodingError, AbiDecodingError) as e:
            raise DataIntegrityError(
                "Cannot decode bridge transaction",
                context={"txid": ethtxid},
                cause=e,
            )

        receipt_bundle = await self.proof_service.receipt_proof(ethtxid)
        try:
            event = find_freeze_event(receipt_bundle.value, self.config.manager_address)
        except (ValueError, IndexError, TypeError, RlpDecodingError, AbiDecodingError) as e:
            raise DataIntegrityError(
                "Cannot decode bridge receipt",
                context={"txid": ethtxid},
                cause=e,
            )

        if event is None:
            logger.warning(f"No freeze event from {self.config.manager_address} in {ethtxid}")
            return BridgeProofResult.not_found(ethtxid, "no matching TokenFreeze log")

        try:
            amount = reconcile_precision(event.value, event.source_precision, event.native_precision)
        except ValueError as e:
            raise DataIntegrityError(
                "Freeze event precision out of range",
                context={
                    "txid": ethtxid,
                    "source_precision": event.source_precision,
                    "native_precision": event.native_precision,
                },
                cause=e,
            )
        logger.info(
            f"Bridge proof for {ethtxid}: asset {asset_guid}, amount {amount}, "
            f"transfer {event.transfer_id}"
        )
        proof = BridgeProof(
            asset_guid=asset_guid,
            destination_address=destination,
            amount=amount,
            tx_value=tx_bundle.value.hex(),
            tx_root=rlp.encode(tx_bundle.header[HEADER_TX_ROOT]).hex(),
            tx_parent_nodes=rlp.encode(tx_bundle.nodes).hex(),
            tx_path=rlp.encode(tx_bundle.index).hex(),
            block_number=tx_bundle.block_number,
            receipt_value=receipt_bundle.value.hex(),
            receipt_root=rlp.encode(receipt_bundle.header[HEADER_RECEIPT_ROOT]).hex(),
            receipt_parent_nodes=rlp.encode(receipt_bundle.nodes).hex(),
            bridge_transfer_id=event.transfer_id,
            freeze_event=event,
        )
        return BridgeProofResult(txid=ethtxid, found=True, proof=proof)
