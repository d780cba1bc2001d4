"""
Key Authority Package.

HD key derivation, address index tracking and encrypted
persistence of the signer state.
"""

from key_authority.hdkeys import ExtendedKey, HARDENED_OFFSET, parse_path, format_path
from key_authority.models import Account, KeyPair, XPubToken, UNKNOWN_INDEX, verify_signature
from key_authority.persistence import EncryptedStore, FileEncryptedStore, MemoryEncryptedStore
from key_authority.signer import HDSigner, mnemonic_to_seed


__all__ = [
    "ExtendedKey",
    "HARDENED_OFFSET",
    "parse_path",
    "format_path",
    "Account",
    "KeyPair",
    "XPubToken",
    "UNKNOWN_INDEX",
    "verify_signature",
    "EncryptedStore",
    "FileEncryptedStore",
    "MemoryEncryptedStore",
    "HDSigner",
    "mnemonic_to_seed",
]
