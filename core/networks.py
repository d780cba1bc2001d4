"""
Core Module - Network Parameters.

============================================================
PURPOSE
============================================================
Immutable chain parameter sets.

Every component receives the NetworkParams it operates on
explicitly; there is no process-wide "current network".

============================================================
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Bip32Versions:
    """Version bytes for extended key serialization."""

    public: int
    private: int


@dataclass(frozen=True)
class NetworkParams:
    """Address and key encoding parameters for one chain."""

    name: str
    bech32: str
    """Human readable part for segwit addresses."""

    bip32: Bip32Versions
    pub_key_hash: int
    script_hash: int
    wif: int
    message_prefix: str = ""

    @property
    def bech32_prefix(self) -> str:
        """Prefix every segwit address on this network starts with."""
        return f"{self.bech32}1"


@dataclass(frozen=True)
class PubTypes:
    """Alternative extended key versions (zpub/vpub, BIP84)."""

    mainnet: Bip32Versions
    testnet: Bip32Versions

    def for_network(self, is_testnet: bool) -> Bip32Versions:
        return self.testnet if is_testnet else self.mainnet


@dataclass(frozen=True)
class NetworkPair:
    """Mainnet and testnet parameters for one coin."""

    mainnet: NetworkParams
    testnet: NetworkParams

    def select(self, is_testnet: bool) -> NetworkParams:
        return self.testnet if is_testnet else self.mainnet


# ============================================================
# SYSCOIN
# ============================================================

SYSCOIN_MAINNET = NetworkParams(
    name="syscoin",
    bech32="sys",
    bip32=Bip32Versions(public=0x0488B21E, private=0x0488ADE4),
    pub_key_hash=0x3F,
    script_hash=0x05,
    wif=0x80,
    message_prefix="\x18Syscoin Signed Message:\n",
)

SYSCOIN_TESTNET = NetworkParams(
    name="syscoin-testnet",
    bech32="tsys",
    bip32=Bip32Versions(public=0x043587CF, private=0x04358394),
    pub_key_hash=0x41,
    script_hash=0xC4,
    wif=0xEF,
    message_prefix="\x18Syscoin Signed Message:\n",
)

SYSCOIN_NETWORKS = NetworkPair(mainnet=SYSCOIN_MAINNET, testnet=SYSCOIN_TESTNET)

SYSCOIN_ZPUB_TYPES = PubTypes(
    mainnet=Bip32Versions(public=0x04B24746, private=0x04B2430C),
    testnet=Bip32Versions(public=0x045F1CF6, private=0x045F18BC),
)

# ============================================================
# BITCOIN
# ============================================================

BITCOIN_MAINNET = NetworkParams(
    name="bitcoin",
    bech32="bc",
    bip32=Bip32Versions(public=0x0488B21E, private=0x0488ADE4),
    pub_key_hash=0x00,
    script_hash=0x05,
    wif=0x80,
    message_prefix="\x18Bitcoin Signed Message:\n",
)

BITCOIN_TESTNET = NetworkParams(
    name="bitcoin-testnet",
    bech32="tb",
    bip32=Bip32Versions(public=0x043587CF, private=0x04358394),
    pub_key_hash=0x6F,
    script_hash=0xC4,
    wif=0xEF,
    message_prefix="\x18Bitcoin Signed Message:\n",
)

BITCOIN_NETWORKS = NetworkPair(mainnet=BITCOIN_MAINNET, testnet=BITCOIN_TESTNET)

BITCOIN_ZPUB_TYPES = SYSCOIN_ZPUB_TYPES

# SLIP-0044 coin types
SYSCOIN_SLIP44 = 57
BITCOIN_SLIP44 = 0
TESTNET_SLIP44 = 1

_NETWORKS_BY_NAME: Dict[str, NetworkParams] = {
    n.name: n
    for n in (SYSCOIN_MAINNET, SYSCOIN_TESTNET, BITCOIN_MAINNET, BITCOIN_TESTNET)
}


def get_network(name: str) -> Optional[NetworkParams]:
    """Look up a built-in network by name."""
    return _NETWORKS_BY_NAME.get(name)
