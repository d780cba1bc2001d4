"""
Transaction Assembler - Transaction Codec.

============================================================
PURPOSE
============================================================
Wallet-side transaction model backed by python-bitcointx:

- Serialization / parsing (legacy and BIP144 segwit)
- txid, weight and virtual size
- Signature hashes: legacy and BIP143 (witness v0)

The dataclasses below are what the rest of the wallet edits;
every wire-level operation converts to a bitcointx
CTransaction first.

Asset data rides in OP_RETURN outputs and the transaction
version; neither changes the wire format.

============================================================
"""

from dataclasses import dataclass, field, replace
from io import BytesIO
from typing import List, Optional, Tuple

from bitcointx.core import (
    COutPoint,
    CTransaction,
    CTxIn,
    CTxInWitness,
    CTxOut,
    CTxWitness,
    b2lx,
    lx,
)
from bitcointx.core.script import (
    SIGHASH_ALL as BITCOINTX_SIGHASH_ALL,
    SIGVERSION_BASE,
    SIGVERSION_WITNESS_V0,
    CScript,
    CScriptInvalidError,
    CScriptWitness,
    SignatureHash,
)
from bitcointx.core.serialize import SerializationError, VarIntSerializer

from core.addresses import hash256, p2pkh_script


SIGHASH_ALL = 0x01
WITNESS_SCALE_FACTOR = 4


# ============================================================
# COMPACT SIZE
# ============================================================

def compact_size(n: int) -> bytes:
    return VarIntSerializer.serialize(n)


def var_slice(data: bytes) -> bytes:
    return compact_size(len(data)) + data


def read_compact_size(stream: BytesIO) -> int:
    """
    Raises:
        ValueError: stream ends inside the integer
    """
    try:
        return VarIntSerializer.stream_deserialize(stream)
    except SerializationError as e:
        raise ValueError(f"Truncated compact size: {e}") from e


# ============================================================
# TRANSACTION
# ============================================================

@dataclass
class TxIn:
    """Transaction input. prev_txid is in display (big-endian hex) order."""

    prev_txid: str
    vout: int
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF
    witness: List[bytes] = field(default_factory=list)


@dataclass
class TxOut:
    value: int
    script: bytes

    def serialize(self) -> bytes:
        return CTxOut(self.value, CScript(self.script)).serialize()


@dataclass
class Transaction:
    version: int = 2
    inputs: List[TxIn] = field(default_factory=list)
    outputs: List[TxOut] = field(default_factory=list)
    locktime: int = 0

    # ─────────────────────────────────────────────────────────────
    # bitcointx conversion
    # ─────────────────────────────────────────────────────────────

    def to_ctransaction(self) -> CTransaction:
        vin = [
            CTxIn(COutPoint(lx(txin.prev_txid), txin.vout), CScript(txin.script_sig), txin.sequence)
            for txin in self.inputs
        ]
        vout = [CTxOut(txout.value, CScript(txout.script)) for txout in self.outputs]
        witness = CTxWitness([CTxInWitness(CScriptWitness(txin.witness)) for txin in self.inputs])
        return CTransaction(vin, vout, nLockTime=self.locktime, nVersion=self.version, witness=witness)

    @classmethod
    def from_ctransaction(cls, ctx: CTransaction) -> "Transaction":
        inputs = []
        for index, txin in enumerate(ctx.vin):
            witness: List[bytes] = []
            if index < len(ctx.wit.vtxinwit):
                witness = [bytes(item) for item in ctx.wit.vtxinwit[index].scriptWitness.stack]
            inputs.append(TxIn(
                prev_txid=b2lx(txin.prevout.hash),
                vout=txin.prevout.n,
                script_sig=bytes(txin.scriptSig),
                sequence=txin.nSequence,
                witness=witness,
            ))
        return cls(
            version=ctx.nVersion,
            inputs=inputs,
            outputs=[TxOut(txout.nValue, bytes(txout.scriptPubKey)) for txout in ctx.vout],
            locktime=ctx.nLockTime,
        )

    # ─────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────

    def has_witness(self) -> bool:
        return any(txin.witness for txin in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        return self.to_ctransaction().serialize(include_witness=include_witness)

    def to_hex(self) -> str:
        return self.serialize().hex()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Transaction":
        """
        Parse a serialized transaction.

        Raises:
            ValueError: truncated or trailing data
        """
        try:
            ctx = CTransaction.deserialize(raw)
        except SerializationError as e:
            raise ValueError(f"Malformed transaction: {e}") from e
        return cls.from_ctransaction(ctx)

    @classmethod
    def from_hex(cls, raw_hex: str) -> "Transaction":
        return cls.from_bytes(bytes.fromhex(raw_hex))

    def copy(self) -> "Transaction":
        return replace(
            self,
            inputs=[replace(i, witness=list(i.witness)) for i in self.inputs],
            outputs=[replace(o) for o in self.outputs],
        )

    # ─────────────────────────────────────────────────────────────
    # Identity & size
    # ─────────────────────────────────────────────────────────────

    def txid(self) -> str:
        return b2lx(self.to_ctransaction().GetTxid())

    def wtxid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    def weight(self) -> int:
        ctx = self.to_ctransaction()
        base = len(ctx.serialize(include_witness=False))
        total = len(ctx.serialize())
        return base * (WITNESS_SCALE_FACTOR - 1) + total

    def virtual_size(self) -> int:
        return virtual_size_from_weight(self.weight())

    # ─────────────────────────────────────────────────────────────
    # Signature hashes
    # ─────────────────────────────────────────────────────────────

    def legacy_sighash(self, index: int, script_code: bytes, sighash_type: int = SIGHASH_ALL) -> bytes:
        """Pre-segwit signature hash (SIGHASH_ALL only)."""
        _check_sighash_type(sighash_type)
        return SignatureHash(
            CScript(script_code),
            self.to_ctransaction(),
            index,
            BITCOINTX_SIGHASH_ALL,
            sigversion=SIGVERSION_BASE,
        )

    def segwit_sighash(
        self,
        index: int,
        script_code: bytes,
        value: int,
        sighash_type: int = SIGHASH_ALL,
    ) -> bytes:
        """BIP143 signature hash for witness v0 inputs (SIGHASH_ALL only)."""
        _check_sighash_type(sighash_type)
        return SignatureHash(
            CScript(script_code),
            self.to_ctransaction(),
            index,
            BITCOINTX_SIGHASH_ALL,
            amount=value,
            sigversion=SIGVERSION_WITNESS_V0,
        )


def _check_sighash_type(sighash_type: int) -> None:
    if sighash_type != SIGHASH_ALL:
        raise ValueError(f"Unsupported sighash type {sighash_type}")


def virtual_size_from_weight(weight: int) -> int:
    return weight // WITNESS_SCALE_FACTOR + (weight % WITNESS_SCALE_FACTOR > 0)


def p2wpkh_script_code(pubkey_hash: bytes) -> bytes:
    """BIP143 scriptCode for a P2WPKH input."""
    return p2pkh_script(pubkey_hash)


def split_script_sig(script_sig: bytes) -> Optional[Tuple[bytes, bytes]]:
    """(signature, pubkey) pushes of a P2PKH scriptSig, None if not that shape."""
    try:
        pushes = list(CScript(script_sig))
    except CScriptInvalidError:
        return None
    if len(pushes) != 2 or not all(isinstance(p, bytes) and p for p in pushes):
        return None
    return pushes[0], pushes[1]
