"""
UTXO Normalizer - Data Models.

============================================================
PURPOSE
============================================================
Internal representation of spendable outputs and the asset
metadata they reference, independent of the index-service
JSON layout.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.constants import DEFAULT_SEQUENCE, RBF_SEQUENCE


class AddressType(Enum):
    """Script template of the address holding a UTXO."""

    LEGACY = "LEGACY"
    BECH32 = "BECH32"


class SkipReason(Enum):
    """Why a raw UTXO was left out of a normalized set."""

    MISSING_ADDRESS = "missing_address"
    UNKNOWN_ASSET = "unknown_asset"
    UNAUTHORIZED_NOTARY_ASSET = "unauthorized_notary_asset"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class AssetInfo:
    """Asset allocation carried by a UTXO."""

    asset_guid: str
    value: int


@dataclass(frozen=True)
class Utxo:
    """A normalized, immutable unspent output."""

    txid: str
    vout: int
    value: int
    address: str
    address_type: AddressType = AddressType.LEGACY
    asset_info: Optional[AssetInfo] = None
    locktime: Optional[int] = None
    path: Optional[str] = None

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"

    @property
    def is_asset(self) -> bool:
        return self.asset_info is not None


@dataclass(frozen=True)
class NotaryDetails:
    """Where and how an asset's notary signs."""

    endpoint: bytes = b""
    """Endpoint URL bytes (base64-decoded from the index service)."""

    instant_transfers: bool = False
    hd_required: bool = False

    @property
    def endpoint_url(self) -> str:
        return self.endpoint.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class AuxFeeDetails:
    """Auxiliary fee schedule paid to an asset-defined address."""

    aux_fee_key_id: bytes = b""
    aux_fee_address: Optional[str] = None
    aux_fees: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class AssetMetadata:
    """Per-asset metadata built during one normalization pass."""

    asset_guid: str
    max_supply: int
    precision: int
    symbol: Optional[str] = None
    contract: Optional[bytes] = None
    pub_data: Optional[bytes] = None
    notary_key_id: Optional[bytes] = None
    notary_address: Optional[str] = None
    notary_sig: Optional[bytes] = None
    notary_details: Optional[NotaryDetails] = None
    aux_fee_details: Optional[AuxFeeDetails] = None
    update_capability_flags: Optional[int] = None

    @property
    def requires_notarization(self) -> bool:
        return bool(self.notary_key_id) or self.has_notary_endpoint

    @property
    def has_notary_endpoint(self) -> bool:
        return self.notary_details is not None and len(self.notary_details.endpoint) > 0


@dataclass(frozen=True)
class TransactionOptions:
    """Caller options that shape input selection and signing."""

    rbf: bool = False
    allow_other_notarized_asset_inputs: bool = False

    @property
    def sequence(self) -> int:
        return RBF_SEQUENCE if self.rbf else DEFAULT_SEQUENCE


@dataclass(frozen=True)
class SkippedUtxo:
    """A raw UTXO record left out of the normalized set."""

    reason: SkipReason
    txid: Optional[str] = None
    vout: Optional[int] = None
    asset_guid: Optional[str] = None


@dataclass
class NormalizedUtxoSet:
    """Result of one normalization pass."""

    utxos: List[Utxo] = field(default_factory=list)
    assets: Dict[str, AssetMetadata] = field(default_factory=dict)
    skipped: List[SkippedUtxo] = field(default_factory=list)

    @property
    def total_value(self) -> int:
        return sum(u.value for u in self.utxos)

    def asset_utxos(self, asset_guid: str) -> List[Utxo]:
        return [
            u for u in self.utxos
            if u.asset_info is not None and u.asset_info.asset_guid == asset_guid
        ]

    def skipped_by(self, reason: SkipReason) -> List[SkippedUtxo]:
        return [s for s in self.skipped if s.reason == reason]
