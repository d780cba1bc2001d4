"""
Core Module - Address and Script Helpers.

============================================================
PURPOSE
============================================================
Conversions between public keys, key hashes, addresses and
output scripts for the two script templates the wallet signs:

- P2WPKH  (witness v0 key hash, "BECH32")
- P2PKH   (legacy key hash, "LEGACY")

Script-hash and other witness programs are recognised for
address <-> script conversion only.

============================================================
"""

import hashlib
from typing import Optional

import base58
import bech32
from Crypto.Hash import RIPEMD160

from core.networks import NetworkParams


# ============================================================
# HASHES
# ============================================================

def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    """Double SHA-256."""
    return sha256(sha256(data))


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return RIPEMD160.new(sha256(data)).digest()


# ============================================================
# OPCODES
# ============================================================

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_1 = 0x51
OP_RETURN = 0x6A
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC


def push_data(data: bytes) -> bytes:
    """Minimal push of arbitrary data."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    raise ValueError(f"Push of {length} bytes is not supported")


# ============================================================
# SCRIPT TEMPLATES
# ============================================================

def p2wpkh_script(pubkey_hash: bytes) -> bytes:
    return bytes([OP_0, 20]) + pubkey_hash


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    return bytes([OP_DUP, OP_HASH160, 20]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script(script_hash: bytes) -> bytes:
    return bytes([OP_HASH160, 20]) + script_hash + bytes([OP_EQUAL])


def null_data_script(payload: bytes) -> bytes:
    """OP_RETURN output carrying an arbitrary payload."""
    return bytes([OP_RETURN]) + push_data(payload)


def is_p2wpkh(script: bytes) -> bool:
    return len(script) == 22 and script[0] == OP_0 and script[1] == 20


def is_p2pkh(script: bytes) -> bool:
    return (
        len(script) == 25
        and script[:3] == bytes([OP_DUP, OP_HASH160, 20])
        and script[23:] == bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    )


def is_p2sh(script: bytes) -> bool:
    return len(script) == 23 and script[:2] == bytes([OP_HASH160, 20]) and script[22] == OP_EQUAL


def is_null_data(script: bytes) -> bool:
    return len(script) > 0 and script[0] == OP_RETURN


def pubkey_hash_from_script(script: bytes) -> Optional[bytes]:
    """Key hash committed to by a P2WPKH or P2PKH script."""
    if is_p2wpkh(script):
        return script[2:22]
    if is_p2pkh(script):
        return script[3:23]
    return None


# ============================================================
# ADDRESSES
# ============================================================

def p2wpkh_address(pubkey_hash: bytes, network: NetworkParams) -> str:
    address = bech32.encode(network.bech32, 0, pubkey_hash)
    if address is None:
        raise ValueError("Invalid witness program")
    return address


def p2pkh_address(pubkey_hash: bytes, network: NetworkParams) -> str:
    return base58.b58encode_check(bytes([network.pub_key_hash]) + pubkey_hash).decode()


def pubkey_to_p2wpkh_address(pubkey: bytes, network: NetworkParams) -> str:
    return p2wpkh_address(hash160(pubkey), network)


def pubkey_to_p2pkh_address(pubkey: bytes, network: NetworkParams) -> str:
    return p2pkh_address(hash160(pubkey), network)


def is_bech32_address(address: str, network: NetworkParams) -> bool:
    """True when the address carries this network's segwit prefix."""
    return address.lower().startswith(network.bech32_prefix)


def address_to_script(address: str, network: NetworkParams) -> bytes:
    """
    Output script paying to an address on the given network.

    Raises:
        ValueError: address is malformed or belongs to another network
    """
    if is_bech32_address(address, network):
        witver, decoded = bech32.decode(network.bech32, address)
        if witver is None:
            raise ValueError(f"Invalid segwit address: {address}")
        program = bytes(decoded)
        opcode = OP_0 if witver == 0 else OP_1 + witver - 1
        return bytes([opcode, len(program)]) + program

    try:
        payload = base58.b58decode_check(address)
    except ValueError as e:
        raise ValueError(f"Invalid base58 address: {address}") from e
    if len(payload) != 21:
        raise ValueError(f"Invalid address payload length: {address}")
    version, body = payload[0], payload[1:]
    if version == network.pub_key_hash:
        return p2pkh_script(body)
    if version == network.script_hash:
        return p2sh_script(body)
    raise ValueError(f"Address {address} does not belong to {network.name}")


def script_to_address(script: bytes, network: NetworkParams) -> Optional[str]:
    """Address for a standard output script, None for anything else."""
    if is_p2wpkh(script):
        return p2wpkh_address(script[2:], network)
    if is_p2pkh(script):
        return p2pkh_address(script[3:23], network)
    if is_p2sh(script):
        return base58.b58encode_check(bytes([network.script_hash]) + script[2:22]).decode()
    if len(script) == 34 and script[0] in (OP_0, OP_1) and script[1] == 32:
        witver = 0 if script[0] == OP_0 else 1
        return bech32.encode(network.bech32, witver, script[2:])
    return None
