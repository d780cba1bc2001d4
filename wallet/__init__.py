"""
Wallet Package.

Operation-level façade tying the index service, normalizer,
transaction builder, assembler and notarization together.
"""

from wallet.builder import RequestType, TransactionBuilder
from wallet.config import (
    IndexServiceConfig,
    SignerConfig,
    WalletConfig,
    get_config,
    set_config,
)
from wallet.wallet import AssetWallet


__all__ = [
    "RequestType",
    "TransactionBuilder",
    "IndexServiceConfig",
    "SignerConfig",
    "WalletConfig",
    "get_config",
    "set_config",
    "AssetWallet",
]
