"""
Key Authority - BIP32 hierarchical deterministic keys.

============================================================
PURPOSE
============================================================
Extended keys backed by python-bip32:

- Master key generation from a seed
- Private and public child derivation
- Path parsing ("m/84'/57'/0'/0/5")
- Base58Check serialization with caller-chosen version bytes
  (xpub / zpub / vpub ...)

python-bip32 only knows the xpub/xprv and tpub/tprv version
bytes, so other versions are swapped in and out of the payload
around it.

============================================================
"""

import struct
from dataclasses import dataclass
from typing import List, Optional

import base58
from bip32 import BIP32, PrivateDerivationError

from core.addresses import hash160


HARDENED_OFFSET = 0x80000000
EXTENDED_KEY_LENGTH = 78

XPUB_VERSION = 0x0488B21E
XPRV_VERSION = 0x0488ADE4


def parse_path(path: str) -> List[int]:
    """
    Parse a derivation path into child indices.

    Accepts "'" or "h" as hardened markers. A leading "m" is optional.

    Raises:
        ValueError: if any component is malformed
    """
    if not isinstance(path, str) or not path:
        raise ValueError("Empty derivation path")
    parts = path.strip().split("/")
    if parts[0] in ("m", "M"):
        parts = parts[1:]
    indices = []
    for part in parts:
        if not part:
            raise ValueError(f"Empty component in path {path!r}")
        hardened = part[-1] in ("'", "h", "H")
        number = part[:-1] if hardened else part
        if not number.isdigit():
            raise ValueError(f"Invalid path component {part!r}")
        index = int(number)
        if index >= HARDENED_OFFSET:
            raise ValueError(f"Path component out of range: {part!r}")
        indices.append(index + HARDENED_OFFSET if hardened else index)
    return indices


def format_path(indices: List[int]) -> str:
    """Inverse of parse_path, using "'" for hardened components."""
    parts = ["m"]
    for index in indices:
        if index >= HARDENED_OFFSET:
            parts.append(f"{index - HARDENED_OFFSET}'")
        else:
            parts.append(str(index))
    return "/".join(parts)


def _reversion(encoded: str, version: int) -> str:
    payload = base58.b58decode_check(encoded)
    return base58.b58encode_check(struct.pack(">I", version) + payload[4:]).decode()


@dataclass(frozen=True)
class ExtendedKey:
    """A node in the BIP32 tree. Holds a private key unless neutered."""

    chain_code: bytes
    public_key: bytes
    private_key: Optional[bytes] = None
    depth: int = 0
    parent_fingerprint: bytes = b"\x00\x00\x00\x00"
    child_number: int = 0

    # ============================================================
    # CONSTRUCTION
    # ============================================================

    @classmethod
    def _from_bip32(cls, node: BIP32) -> "ExtendedKey":
        return cls(
            chain_code=node.chaincode,
            public_key=node.pubkey,
            private_key=node.privkey,
            depth=node.depth,
            parent_fingerprint=node.parent_fingerprint,
            child_number=node.index,
        )

    def _to_bip32(self) -> BIP32:
        return BIP32(
            chaincode=self.chain_code,
            privkey=self.private_key,
            pubkey=None if self.private_key is not None else self.public_key,
            fingerprint=self.parent_fingerprint,
            depth=self.depth,
            index=self.child_number,
        )

    @classmethod
    def from_seed(cls, seed: bytes) -> "ExtendedKey":
        """Master node for a BIP32 seed."""
        return cls._from_bip32(BIP32.from_seed(seed))

    @classmethod
    def from_string(cls, encoded: str) -> "ExtendedKey":
        """
        Parse a Base58Check extended key of any version.

        Raises:
            ValueError: bad checksum or payload
        """
        payload = base58.b58decode_check(encoded)
        if len(payload) != EXTENDED_KEY_LENGTH:
            raise ValueError("Extended key payload must be 78 bytes")
        if payload[45] == 0:
            node = BIP32.from_xpriv(_reversion(encoded, XPRV_VERSION))
        else:
            node = BIP32.from_xpub(_reversion(encoded, XPUB_VERSION))
        return cls._from_bip32(node)

    # ============================================================
    # PROPERTIES
    # ============================================================

    @property
    def is_private(self) -> bool:
        return self.private_key is not None

    @property
    def identifier(self) -> bytes:
        return hash160(self.public_key)

    @property
    def fingerprint(self) -> bytes:
        """First four bytes of the key identifier."""
        return self.identifier[:4]

    def neutered(self) -> "ExtendedKey":
        """Public-only copy of this node."""
        return ExtendedKey(
            chain_code=self.chain_code,
            public_key=self.public_key,
            depth=self.depth,
            parent_fingerprint=self.parent_fingerprint,
            child_number=self.child_number,
        )

    # ============================================================
    # DERIVATION
    # ============================================================

    def child(self, index: int) -> "ExtendedKey":
        """
        Derive a single child (hardened when index >= 2^31).

        Raises:
            ValueError: index out of range, or hardened from a public key
        """
        if not 0 <= index <= 0xFFFFFFFF:
            raise ValueError(f"Child index out of range: {index}")
        node = self._to_bip32()
        if self.private_key is not None:
            chain_code, private_key = node.get_extended_privkey_from_path([index])
            public_key = BIP32(chaincode=chain_code, privkey=private_key).pubkey
        else:
            try:
                chain_code, public_key = node.get_extended_pubkey_from_path([index])
            except PrivateDerivationError as e:
                raise ValueError("Cannot derive a hardened child from a public key") from e
            private_key = None
        return ExtendedKey(
            chain_code=chain_code,
            public_key=public_key,
            private_key=private_key,
            depth=self.depth + 1,
            parent_fingerprint=self.fingerprint,
            child_number=index,
        )

    def derive_path(self, path: str) -> "ExtendedKey":
        """Derive along a path relative to this node."""
        node = self
        for index in parse_path(path):
            node = node.child(index)
        return node

    # ============================================================
    # SERIALIZATION
    # ============================================================

    def serialize(self, version: int, private: bool = False) -> str:
        """Base58Check encoding with the given 4-byte version."""
        if private:
            if self.private_key is None:
                raise ValueError("Public-only node has no private serialization")
            return _reversion(self._to_bip32().get_xpriv(), version)
        return _reversion(self.neutered()._to_bip32().get_xpub(), version)

    def to_xpub(self, version: int) -> str:
        return self.serialize(version, private=False)

    def to_xprv(self, version: int) -> str:
        return self.serialize(version, private=True)
