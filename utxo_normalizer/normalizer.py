"""
UTXO Normalizer - Index Service Sanitization.

============================================================
PURPOSE
============================================================
Turns the raw {utxos, assets} document returned by a Blockbook
compatible index service into a NormalizedUtxoSet.

============================================================
RULES
============================================================
1. Asset metadata is built first, from the same document
2. UTXOs without an address are skipped
3. Asset UTXOs whose asset is not described are skipped
4. Asset UTXOs of notarized assets are skipped unless the
   caller is sending that asset (or explicitly allows them)

Skipped records are returned alongside the result; nothing in
this module raises on bad index data or performs I/O.

============================================================
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Mapping, Optional

from core.addresses import is_bech32_address, p2wpkh_address
from core.constants import EMPTY_NOTARY_SIGNATURE
from core.exceptions import DataIntegrityError
from core.networks import NetworkParams, SYSCOIN_MAINNET
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


logger = logging.getLogger(__name__)


# ============================================================
# ASSET METADATA
# ============================================================

def _hex_bytes(value: str) -> bytes:
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


def _key_address(key_id: bytes, network: NetworkParams) -> Optional[str]:
    if len(key_id) != 20:
        return None
    return p2wpkh_address(key_id, network)


def parse_asset(raw: Dict[str, Any], network: NetworkParams) -> AssetMetadata:
    """
    Build AssetMetadata from one index-service asset record.

    Raises:
        DataIntegrityError: record is missing its guid or holds malformed hex/base64
    """
    guid = raw.get("assetGuid")
    if guid is None:
        raise DataIntegrityError("Asset record without assetGuid", context={"record": raw})
    guid = str(guid)

    try:
        contract = _hex_bytes(raw["contract"]) if raw.get("contract") else None
        pub_data = json.dumps(raw["pubData"]).encode() if raw.get("pubData") else None

        notary_key_id = notary_address = notary_sig = None
        if raw.get("notaryKeyID"):
            notary_key_id = _hex_bytes(raw["notaryKeyID"])
            notary_address = _key_address(notary_key_id, network)
            if raw.get("notarySig"):
                notary_sig = _hex_bytes(raw["notarySig"])
            else:
                notary_sig = EMPTY_NOTARY_SIGNATURE

        notary_details = None
        if raw.get("notaryDetails"):
            details = raw["notaryDetails"]
            endpoint = details.get("endPoint")
            notary_details = NotaryDetails(
                endpoint=base64.b64decode(endpoint) if endpoint else b"",
                instant_transfers=bool(details.get("instantTransfers", False)),
                hd_required=bool(details.get("HDRequired", False)),
            )

        aux_fee_details = None
        if raw.get("auxFeeDetails"):
            aux = raw["auxFeeDetails"]
            aux_key_id = _hex_bytes(aux["auxFeeKeyID"]) if aux.get("auxFeeKeyID") else b""
            aux_fee_details = AuxFeeDetails(
                aux_fee_key_id=aux_key_id,
                aux_fee_address=_key_address(aux_key_id, network) if aux_key_id else None,
                aux_fees=list(aux.get("auxFees") or []),
            )

        return AssetMetadata(
            asset_guid=guid,
            max_supply=int(raw.get("maxSupply", 0)),
            precision=int(raw.get("decimals", 0)),
            symbol=raw.get("symbol"),
            contract=contract,
            pub_data=pub_data,
            notary_key_id=notary_key_id,
            notary_address=notary_address,
            notary_sig=notary_sig,
            notary_details=notary_details,
            aux_fee_details=aux_fee_details,
            update_capability_flags=raw.get("updateCapabilityFlags") or None,
        )
    except (ValueError, TypeError, binascii.Error) as e:
        raise DataIntegrityError(
            f"Malformed asset record {guid}",
            context={"asset_guid": guid},
            cause=e,
        )


# ============================================================
# SANITIZATION
# ============================================================

def sanitize_blockbook_utxos(
    utxo_obj: Dict[str, Any],
    network: NetworkParams = SYSCOIN_MAINNET,
    tx_opts: Optional[TransactionOptions] = None,
    asset_map: Optional[Mapping[Any, Any]] = None,
) -> NormalizedUtxoSet:
    """
    Normalize an index-service UTXO document.

    Args:
        utxo_obj: {"utxos": [...], "assets": [...]} as returned by the index service
        network: Network whose address encoding applies
        tx_opts: Caller options (notary-input policy)
        asset_map: Assets the caller intends to send, keyed by guid

    Returns:
        NormalizedUtxoSet with every exclusion recorded in skipped
    """
    tx_opts = tx_opts or TransactionOptions()
    requested = {str(k) for k in asset_map} if asset_map else set()
    result = NormalizedUtxoSet()

    for raw_asset in utxo_obj.get("assets") or []:
        try:
            asset = parse_asset(raw_asset, network)
        except DataIntegrityError as e:
            logger.warning(f"Skipping asset: {e}")
            continue
        result.assets[asset.asset_guid] = asset

    for raw in utxo_obj.get("utxos") or []:
        txid = raw.get("txid")
        vout = raw.get("vout")
        address = raw.get("address")
        if not address:
            logger.warning(f"Skipping utxo {txid}:{vout}: no address field defined")
            result.skipped.append(SkippedUtxo(SkipReason.MISSING_ADDRESS, txid, vout))
            continue

        asset_info = None
        raw_asset_info = raw.get("assetInfo")
        if raw_asset_info:
            guid = str(raw_asset_info.get("assetGuid"))
            try:
                asset_info = AssetInfo(asset_guid=guid, value=int(raw_asset_info.get("value", 0)))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed asset utxo {txid}:{vout}: {e}")
                result.skipped.append(SkippedUtxo(SkipReason.MALFORMED, txid, vout, guid))
                continue
            asset = result.assets.get(guid)
            if asset is None:
                logger.warning(f"Skipping utxo {txid}:{vout}: asset {guid} not described")
                result.skipped.append(SkippedUtxo(SkipReason.UNKNOWN_ASSET, txid, vout, guid))
                continue
            if (
                asset.requires_notarization
                and not tx_opts.allow_other_notarized_asset_inputs
                and guid not in requested
            ):
                logger.info(f"Skipping notary utxo {txid}:{vout} of asset {guid}")
                result.skipped.append(
                    SkippedUtxo(SkipReason.UNAUTHORIZED_NOTARY_ASSET, txid, vout, guid)
                )
                continue

        locktime = raw.get("locktime")
        try:
            utxo = Utxo(
                txid=txid,
                vout=int(vout),
                value=int(raw.get("value", 0)),
                address=address,
                address_type=(
                    AddressType.BECH32 if is_bech32_address(address, network)
                    else AddressType.LEGACY
                ),
                asset_info=asset_info,
                locktime=int(locktime) if locktime is not None else None,
                path=raw.get("path"),
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed utxo {txid}:{vout}: {e}")
            result.skipped.append(SkippedUtxo(SkipReason.MALFORMED, txid, vout))
            continue
        result.utxos.append(utxo)

    logger.debug(
        f"Normalized {len(result.utxos)} utxos, {len(result.assets)} assets, "
        f"skipped {len(result.skipped)}"
    )
    return result


class UtxoNormalizer:
    """Binds a network and default options for repeated normalization."""

    def __init__(
        self,
        network: NetworkParams = SYSCOIN_MAINNET,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> None:
        self.network = network
        self.tx_opts = tx_opts or TransactionOptions()

    def normalize(
        self,
        utxo_obj: Dict[str, Any],
        asset_map: Optional[Mapping[Any, Any]] = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NormalizedUtxoSet:
        return sanitize_blockbook_utxos(
            utxo_obj,
            network=self.network,
            tx_opts=tx_opts or self.tx_opts,
            asset_map=asset_map,
        )
