"""
UTXO & Asset Normalizer Package.

Converts index-service UTXO documents into the wallet's
internal UTXO and asset metadata model.
"""

from utxo_normalizer.models import (
    AddressType,
    AssetInfo,
    AssetMetadata,
    AuxFeeDetails,
    NormalizedUtxoSet,
    NotaryDetails,
    SkippedUtxo,
    SkipReason,
    TransactionOptions,
    Utxo,
)
from utxo_normalizer.normalizer import UtxoNormalizer, parse_asset, sanitize_blockbook_utxos


__all__ = [
    "AddressType",
    "AssetInfo",
    "AssetMetadata",
    "AuxFeeDetails",
    "NormalizedUtxoSet",
    "NotaryDetails",
    "SkippedUtxo",
    "SkipReason",
    "TransactionOptions",
    "Utxo",
    "UtxoNormalizer",
    "parse_asset",
    "sanitize_blockbook_utxos",
]
