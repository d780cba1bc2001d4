"""
Transaction Assembler - Partially Signed Transaction.

============================================================
PURPOSE
============================================================
A transaction under construction together with per-input
signing material:

- the output being spent (witness utxo), or the whole previous
  transaction for legacy inputs, behind a memoized accessor
- BIP32 derivation records of the wallet keys that own it
- partial signatures, then final scriptSig / witness

============================================================
BALANCE RULES
============================================================
fee = sum(inputs) - sum(outputs)

- fee may be negative only for BURN transactions
- fee rate = floor(fee / vsize of the finalized transaction)
- extraction fails when the fee rate is above the ceiling,
  unless the fee check is disabled by the caller
- fee, fee rate and extraction require every input finalized

============================================================
"""

import base64
import logging
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.addresses import (
    address_to_script,
    is_p2pkh,
    is_p2wpkh,
    pubkey_hash_from_script,
    push_data,
)
from core.constants import DEFAULT_MAXIMUM_FEE_RATE, DEFAULT_SEQUENCE
from core.exceptions import (
    AssemblyError,
    BalanceViolationError,
    FeeTooHighError,
    NotFinalizedError,
    SigningError,
)
from core.networks import NetworkParams
from key_authority.hdkeys import parse_path
from key_authority.models import KeyPair, verify_signature
from transaction_assembler.codec import (
    SIGHASH_ALL,
    Transaction,
    TxIn,
    TxOut,
    compact_size,
    p2wpkh_script_code,
    var_slice,
)
from transaction_assembler.types import Bip32Derivation, TransactionKind, TransactionRequest


logger = logging.getLogger(__name__)


PSBT_MAGIC = b"psbt\xff"


# ============================================================
# PREVIOUS TRANSACTION CACHE
# ============================================================

class PrevTxCache:
    """
    Memoized access to a legacy input's previous transaction.

    Holds whichever of (raw bytes, parsed transaction) it was given
    and computes the other on first access.
    """

    def __init__(self, raw: Optional[bytes] = None, tx: Optional[Transaction] = None) -> None:
        if raw is None and tx is None:
            raise ValueError("PrevTxCache needs raw bytes or a parsed transaction")
        self._raw = raw
        self._tx = tx

    @property
    def raw(self) -> bytes:
        if self._raw is None:
            self._raw = self._tx.serialize()
        return self._raw

    @property
    def tx(self) -> Transaction:
        if self._tx is None:
            self._tx = Transaction.from_bytes(self._raw)
        return self._tx

    def set_raw(self, raw: bytes) -> None:
        self._raw = raw
        self._tx = None

    def output(self, vout: int) -> TxOut:
        outputs = self.tx.outputs
        if not 0 <= vout < len(outputs):
            raise AssemblyError(f"Previous transaction has no output {vout}")
        return outputs[vout]


# ============================================================
# INPUT
# ============================================================

@dataclass
class PstInput:
    txid: str
    vout: int
    sequence: int = DEFAULT_SEQUENCE
    witness_utxo: Optional[TxOut] = None
    prev_tx: Optional[PrevTxCache] = None
    bip32_derivation: List[Bip32Derivation] = field(default_factory=list)
    partial_sigs: Dict[bytes, bytes] = field(default_factory=dict)
    sighash_type: int = SIGHASH_ALL
    final_script_sig: Optional[bytes] = None
    final_script_witness: Optional[List[bytes]] = None

    @property
    def is_finalized(self) -> bool:
        return self.final_script_sig is not None or self.final_script_witness is not None

    def spent_output(self) -> TxOut:
        if self.witness_utxo is not None:
            return self.witness_utxo
        if self.prev_tx is None:
            raise AssemblyError(f"Input {self.txid}:{self.vout} has no spent output data")
        if self.prev_tx.tx.txid() != self.txid:
            raise AssemblyError(
                "Previous transaction does not match input outpoint",
                context={"txid": self.txid},
            )
        return self.prev_tx.output(self.vout)


# ============================================================
# PARTIALLY SIGNED TRANSACTION
# ============================================================

class PartiallySignedTransaction:
    """
    Transaction plus signing state.

    Args:
        network: Network used to resolve output addresses
        version: Transaction version (selects the TransactionKind)
        locktime: Transaction locktime
        maximum_fee_rate: Fee rate ceiling in sat/vB checked on extraction
    """

    def __init__(
        self,
        network: NetworkParams,
        version: int = 2,
        locktime: int = 0,
        maximum_fee_rate: int = DEFAULT_MAXIMUM_FEE_RATE,
    ) -> None:
        self.network = network
        self.version = version
        self.locktime = locktime
        self.maximum_fee_rate = maximum_fee_rate
        self.inputs: List[PstInput] = []
        self.outputs: List[TxOut] = []

    @classmethod
    def from_request(
        cls,
        request: TransactionRequest,
        network: NetworkParams,
        maximum_fee_rate: int = DEFAULT_MAXIMUM_FEE_RATE,
    ) -> "PartiallySignedTransaction":
        pst = cls(network, request.version, request.locktime, maximum_fee_rate)
        for req_in in request.inputs:
            witness_utxo = None
            if req_in.witness_script is not None:
                if req_in.value is None:
                    raise AssemblyError(f"Input {req_in.txid}:{req_in.vout} has no value")
                witness_utxo = TxOut(req_in.value, req_in.witness_script)
            pst.add_input(
                req_in.txid,
                req_in.vout,
                sequence=req_in.sequence,
                witness_utxo=witness_utxo,
                non_witness_utxo=req_in.non_witness_utxo,
                bip32_derivation=req_in.bip32_derivation,
            )
        for req_out in request.outputs:
            pst.add_output(req_out.value, script=req_out.script, address=req_out.address)
        return pst

    @property
    def kind(self) -> TransactionKind:
        return TransactionKind.from_version(self.version)

    # ─────────────────────────────────────────────────────────────
    # Construction
    # ─────────────────────────────────────────────────────────────

    def add_input(
        self,
        txid: str,
        vout: int,
        sequence: int = DEFAULT_SEQUENCE,
        witness_utxo: Optional[TxOut] = None,
        non_witness_utxo: Optional[bytes] = None,
        bip32_derivation: Optional[List[Bip32Derivation]] = None,
    ) -> int:
        if witness_utxo is None and non_witness_utxo is None:
            raise AssemblyError(f"Input {txid}:{vout} needs a witness or non-witness utxo")
        self.inputs.append(PstInput(
            txid=txid,
            vout=vout,
            sequence=sequence,
            witness_utxo=witness_utxo,
            prev_tx=PrevTxCache(raw=non_witness_utxo) if non_witness_utxo is not None else None,
            bip32_derivation=list(bip32_derivation or []),
        ))
        return len(self.inputs) - 1

    def add_output(self, value: int, script: Optional[bytes] = None, address: Optional[str] = None) -> int:
        if script is None:
            if address is None:
                raise AssemblyError("Output needs a script or an address")
            script = address_to_script(address, self.network)
        if value < 0:
            raise AssemblyError(f"Negative output value {value}")
        self.outputs.append(TxOut(value, script))
        return len(self.outputs) - 1

    def unsigned_transaction(self) -> Transaction:
        return Transaction(
            version=self.version,
            inputs=[TxIn(i.txid, i.vout, b"", i.sequence) for i in self.inputs],
            outputs=[TxOut(o.value, o.script) for o in self.outputs],
            locktime=self.locktime,
        )

    # ─────────────────────────────────────────────────────────────
    # Signing
    # ─────────────────────────────────────────────────────────────

    def _sighash(self, index: int) -> bytes:
        pst_input = self.inputs[index]
        spent = pst_input.spent_output()
        tx = self.unsigned_transaction()
        if is_p2wpkh(spent.script):
            script_code = p2wpkh_script_code(spent.script[2:22])
            return tx.segwit_sighash(index, script_code, spent.value, pst_input.sighash_type)
        if is_p2pkh(spent.script):
            return tx.legacy_sighash(index, spent.script, pst_input.sighash_type)
        raise AssemblyError(f"Unsupported script type for input {index}")

    def sign_input(self, index: int, keypair: KeyPair) -> None:
        """Add a partial signature for input index with keypair."""
        pst_input = self.inputs[index]
        expected = pubkey_hash_from_script(pst_input.spent_output().script)
        if expected != keypair.pubkey_hash:
            raise SigningError(
                f"Key does not control input {index}",
                context={"input": index},
            )
        digest = self._sighash(index)
        signature = keypair.sign(digest)
        pst_input.partial_sigs[keypair.public_key] = signature + bytes([pst_input.sighash_type])

    def sign_input_hd(self, index: int, signer) -> None:
        """Sign input index with every matching key of an HD signer."""
        fingerprint = signer.master_fingerprint
        matches = [
            d for d in self.inputs[index].bip32_derivation
            if d.master_fingerprint == fingerprint
        ]
        if not matches:
            raise SigningError(
                "Need one bip32Derivation masterFingerprint to match the signer fingerprint",
                context={"input": index},
            )
        for derivation in matches:
            keypair = signer.derive_keypair(derivation.path)
            if keypair is None or keypair.public_key != derivation.pubkey:
                raise SigningError(
                    "Derived key does not match bip32Derivation pubkey",
                    context={"input": index, "path": derivation.path},
                )
            self.sign_input(index, keypair)

    def validate_signatures_of_input(self, index: int) -> bool:
        pst_input = self.inputs[index]
        if not pst_input.partial_sigs:
            return False
        digest = self._sighash(index)
        for pubkey, signature in pst_input.partial_sigs.items():
            if signature[-1] != pst_input.sighash_type:
                return False
            if not verify_signature(pubkey, signature[:-1], digest):
                return False
        return True

    def validate_signatures_of_all_inputs(self) -> bool:
        return all(self.validate_signatures_of_input(i) for i in range(len(self.inputs)))

    # ─────────────────────────────────────────────────────────────
    # Finalization
    # ─────────────────────────────────────────────────────────────

    def finalize_input(self, index: int) -> None:
        pst_input = self.inputs[index]
        if len(pst_input.partial_sigs) != 1:
            raise AssemblyError(
                f"Input {index} needs exactly one signature to finalize",
                context={"signatures": len(pst_input.partial_sigs)},
            )
        pubkey, signature = next(iter(pst_input.partial_sigs.items()))
        script = pst_input.spent_output().script
        if is_p2wpkh(script):
            pst_input.final_script_witness = [signature, pubkey]
        elif is_p2pkh(script):
            pst_input.final_script_sig = push_data(signature) + push_data(pubkey)
        else:
            raise AssemblyError(f"Unsupported script type for input {index}")
        pst_input.partial_sigs = {}

    def finalize_all_inputs(self) -> None:
        for index in range(len(self.inputs)):
            self.finalize_input(index)

    @property
    def is_finalized(self) -> bool:
        return bool(self.inputs) and all(i.is_finalized for i in self.inputs)

    def _require_finalized(self) -> None:
        if not self.is_finalized:
            raise NotFinalizedError()

    def _final_transaction(self) -> Transaction:
        tx = self.unsigned_transaction()
        for txin, pst_input in zip(tx.inputs, self.inputs):
            txin.script_sig = pst_input.final_script_sig or b""
            txin.witness = list(pst_input.final_script_witness or [])
        return tx

    # ─────────────────────────────────────────────────────────────
    # Fees
    # ─────────────────────────────────────────────────────────────

    def input_total(self) -> int:
        return sum(i.spent_output().value for i in self.inputs)

    def output_total(self) -> int:
        return sum(o.value for o in self.outputs)

    def get_fee(self) -> int:
        """
        Inputs minus outputs of the finalized transaction.

        Raises:
            NotFinalizedError: an input is not finalized
            BalanceViolationError: negative fee on a non-burn transaction
        """
        self._require_finalized()
        fee = self.input_total() - self.output_total()
        if fee < 0 and not self.kind.allows_negative_fee:
            raise BalanceViolationError(fee, self.kind.value)
        return fee

    def get_fee_rate(self) -> int:
        fee = self.get_fee()
        return fee // self._final_transaction().virtual_size()

    def extract_transaction(self, disable_fee_check: bool = False) -> Transaction:
        """
        Final network transaction.

        Raises:
            NotFinalizedError: an input is not finalized
            BalanceViolationError: negative fee on a non-burn transaction
            FeeTooHighError: fee rate above the ceiling (unless disabled)
        """
        fee_rate = self.get_fee_rate()
        if not disable_fee_check and fee_rate > self.maximum_fee_rate:
            raise FeeTooHighError(fee_rate, self.maximum_fee_rate)
        return self._final_transaction()

    # ─────────────────────────────────────────────────────────────
    # BIP174
    # ─────────────────────────────────────────────────────────────

    def to_psbt(self) -> bytes:
        """BIP174 serialization for hand-off to co-signers."""

        def kv(key: bytes, value: bytes) -> bytes:
            return var_slice(key) + var_slice(value)

        parts = [PSBT_MAGIC, kv(b"\x00", self.unsigned_transaction().serialize()), b"\x00"]
        for pst_input in self.inputs:
            if pst_input.prev_tx is not None:
                parts.append(kv(b"\x00", pst_input.prev_tx.raw))
            if pst_input.witness_utxo is not None:
                parts.append(kv(b"\x01", pst_input.witness_utxo.serialize()))
            for pubkey, signature in pst_input.partial_sigs.items():
                parts.append(kv(b"\x02" + pubkey, signature))
            parts.append(kv(b"\x03", struct.pack("<I", pst_input.sighash_type)))
            for derivation in pst_input.bip32_derivation:
                value = derivation.master_fingerprint + b"".join(
                    struct.pack("<I", i) for i in parse_path(derivation.path)
                )
                parts.append(kv(b"\x06" + derivation.pubkey, value))
            if pst_input.final_script_sig is not None:
                parts.append(kv(b"\x07", pst_input.final_script_sig))
            if pst_input.final_script_witness is not None:
                witness = compact_size(len(pst_input.final_script_witness)) + b"".join(
                    var_slice(item) for item in pst_input.final_script_witness
                )
                parts.append(kv(b"\x08", witness))
            parts.append(b"\x00")
        parts.extend(b"\x00" for _ in self.outputs)
        return b"".join(parts)

    def to_base64(self) -> str:
        return base64.b64encode(self.to_psbt()).decode()
