"""
Key Authority - Data Models.

Accounts, key pairs and the index-service token records used for
address index discovery.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import coincurve

from core.addresses import hash160, pubkey_to_p2wpkh_address, pubkey_to_p2pkh_address
from core.networks import NetworkParams
from key_authority.hdkeys import ExtendedKey


UNKNOWN_INDEX = -1
"""Sentinel for an address index that has not been discovered yet."""


@dataclass
class Account:
    """A derived BIP44/BIP84 account node."""

    index: int
    node: ExtendedKey
    path: str

    change_index: int = UNKNOWN_INDEX
    receiving_index: int = UNKNOWN_INDEX

    def reset_indexes(self) -> None:
        self.change_index = UNKNOWN_INDEX
        self.receiving_index = UNKNOWN_INDEX


@dataclass(frozen=True)
class KeyPair:
    """A leaf private key bound to the network it produces addresses for."""

    private_key: bytes
    public_key: bytes
    network: NetworkParams

    @classmethod
    def from_node(cls, node: ExtendedKey, network: NetworkParams) -> "KeyPair":
        if node.private_key is None:
            raise ValueError("Node has no private key")
        return cls(private_key=node.private_key, public_key=node.public_key, network=network)

    @property
    def pubkey_hash(self) -> bytes:
        return hash160(self.public_key)

    def sign(self, digest: bytes) -> bytes:
        """DER encoded low-S ECDSA signature over a 32-byte digest."""
        return coincurve.PrivateKey(self.private_key).sign(digest, hasher=None)

    def verify(self, signature: bytes, digest: bytes) -> bool:
        return verify_signature(self.public_key, signature, digest)

    def p2wpkh_address(self) -> str:
        return pubkey_to_p2wpkh_address(self.public_key, self.network)

    def p2pkh_address(self) -> str:
        return pubkey_to_p2pkh_address(self.public_key, self.network)

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key.hex()}, network={self.network.name})"


def verify_signature(public_key: bytes, signature: bytes, digest: bytes) -> bool:
    """Verify a DER signature; malformed input counts as invalid."""
    try:
        return coincurve.PublicKey(public_key).verify(signature, digest, hasher=None)
    except (ValueError, TypeError):
        return False


@dataclass
class XPubToken:
    """One address entry from an index-service xpub lookup."""

    name: str
    path: str
    transfers: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "XPubToken":
        return cls(
            name=data.get("name", ""),
            path=data.get("path", ""),
            transfers=int(data.get("transfers", 0) or 0),
            extra={k: v for k, v in data.items() if k not in ("name", "path", "transfers")},
        )

    def branch_and_index(self) -> Optional[tuple]:
        """(branch, index) from an m/purpose'/coin'/account'/branch/index path."""
        parts = self.path.split("/")
        if len(parts) < 6:
            return None
        try:
            return int(parts[4]), int(parts[5])
        except ValueError:
            return None
