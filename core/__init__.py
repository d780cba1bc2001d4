"""
Core Module Package.

Shared infrastructure that every wallet component depends on.

Components:
- exceptions: Custom exception hierarchy
- constants: Chain-level constants
- networks: Immutable network parameter sets
- addresses: Hashes, scripts and address encoding
- logging_utils: Masking of key material in logs
"""

from core.exceptions import (
    Severity,
    WalletException,
    ConfigurationError,
    DataIntegrityError,
    KeyAuthorityError,
    SignerUnavailableError,
    SigningError,
    PersistenceError,
    AssemblyError,
    NotFinalizedError,
    FeeTooHighError,
    BalanceViolationError,
    NotarizationError,
    NotaryUnreachableError,
    NotaryRejectedError,
    ProofNotFoundError,
)
from core.networks import (
    Bip32Versions,
    NetworkParams,
    NetworkPair,
    PubTypes,
    SYSCOIN_MAINNET,
    SYSCOIN_TESTNET,
    SYSCOIN_NETWORKS,
    SYSCOIN_ZPUB_TYPES,
    BITCOIN_MAINNET,
    BITCOIN_TESTNET,
    BITCOIN_NETWORKS,
    BITCOIN_ZPUB_TYPES,
    SYSCOIN_SLIP44,
    BITCOIN_SLIP44,
    TESTNET_SLIP44,
    get_network,
)


__all__ = [
    # Exceptions
    "Severity",
    "WalletException",
    "ConfigurationError",
    "DataIntegrityError",
    "KeyAuthorityError",
    "SignerUnavailableError",
    "SigningError",
    "PersistenceError",
    "AssemblyError",
    "NotFinalizedError",
    "FeeTooHighError",
    "BalanceViolationError",
    "NotarizationError",
    "NotaryUnreachableError",
    "NotaryRejectedError",
    "ProofNotFoundError",
    # Networks
    "Bip32Versions",
    "NetworkParams",
    "NetworkPair",
    "PubTypes",
    "SYSCOIN_MAINNET",
    "SYSCOIN_TESTNET",
    "SYSCOIN_NETWORKS",
    "SYSCOIN_ZPUB_TYPES",
    "BITCOIN_MAINNET",
    "BITCOIN_TESTNET",
    "BITCOIN_NETWORKS",
    "BITCOIN_ZPUB_TYPES",
    "SYSCOIN_SLIP44",
    "BITCOIN_SLIP44",
    "TESTNET_SLIP44",
    "get_network",
]
