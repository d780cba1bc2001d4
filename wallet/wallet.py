"""
Wallet - Asset Wallet.

============================================================
PURPOSE
============================================================
Entry point for wallet operations. Every operation runs the
same pipeline:

1. Resolve UTXOs (given, or fetched for an xpub/address, or
   for the signer's current account)
2. Normalize them against the operation's asset map
3. Ask the transaction builder for a request
4. Notarize and sign

Operations given from_xpub_or_address are watch-only: the PST
comes back unsigned for an external signer, and the caller must
name the change address.

============================================================
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from bridge_proof.builder import BridgeProofBuilder
from core.exceptions import ConfigurationError, SignerUnavailableError
from core.logging_utils import mask_extended_keys, mask_params
from index_adapters.blockbook import BlockbookAdapter
from key_authority.signer import HDSigner
from notarization.client import NotaryClient
from notarization.coordinator import NotarizationCoordinator
from notarization.models import NotarizationResult
from transaction_assembler.assembler import TransactionAssembler
from transaction_assembler.pst import PartiallySignedTransaction
from transaction_assembler.types import TransactionRequest
from utxo_normalizer.models import AssetMetadata, NormalizedUtxoSet, TransactionOptions
from utxo_normalizer.normalizer import UtxoNormalizer
from wallet.builder import RequestType, TransactionBuilder
from wallet.config import WalletConfig, get_config


logger = logging.getLogger(__name__)


UtxoSource = Union[NormalizedUtxoSet, Dict[str, Any], None]


class AssetWallet:
    """
    Asset-aware wallet façade.

    Args:
        builder: Transaction-construction engine
        config: Wallet configuration (process default when omitted)
        signer: HD signer; None for a watch-only wallet
        index_adapter: Index service client (built from config when omitted)
        notary_client: Notary HTTP client
    """

    def __init__(
        self,
        builder: TransactionBuilder,
        config: Optional[WalletConfig] = None,
        signer: Optional[HDSigner] = None,
        index_adapter: Optional[BlockbookAdapter] = None,
        notary_client: Optional[NotaryClient] = None,
    ) -> None:
        self.config = config or get_config()
        self.signer = signer
        self.builder = builder
        self.network = signer.network if signer is not None else self.config.network

        self._owns_index_adapter = False
        if index_adapter is None and self.config.index_service.url:
            self._owns_index_adapter = True
            index_adapter = BlockbookAdapter(
                self.config.index_service.url,
                timeout=self.config.index_service.timeout_seconds,
                max_retries=self.config.index_service.max_retries,
            )
        self.index_adapter = index_adapter
        if signer is not None and signer.index_service is None:
            signer.index_service = index_adapter

        self.normalizer = UtxoNormalizer(self.network)
        self.assembler = TransactionAssembler(self.network, signer, self.config.fees)
        self._owns_notary_client = notary_client is None
        self.coordinator = NotarizationCoordinator(
            self.assembler,
            builder,
            client=notary_client,
            config=self.config.notary,
        )

    def set_account_index(self, index: int) -> None:
        if self.signer is None:
            raise SignerUnavailableError("No HD signer configured")
        self.signer.set_account_index(index)

    # ============================================================
    # PIPELINE
    # ============================================================

    async def _resolve_utxos(
        self,
        from_xpub_or_address: Optional[str],
        utxos: UtxoSource,
        asset_map: Optional[Mapping[Any, Any]],
        tx_opts: Optional[TransactionOptions],
    ) -> NormalizedUtxoSet:
        if isinstance(utxos, NormalizedUtxoSet):
            return utxos
        if utxos is None:
            if self.index_adapter is None:
                raise ConfigurationError("No index service configured and no UTXOs given")
            if from_xpub_or_address:
                source = from_xpub_or_address
            elif self.signer is not None:
                source = self.signer.get_account_xpub()
            else:
                raise SignerUnavailableError("No HD signer configured and no xpub or address given")
            logger.debug(f"Fetching utxos for {mask_extended_keys(source)}")
            utxos = await self.index_adapter.fetch_utxos(source)
        return self.normalizer.normalize(utxos, asset_map=asset_map, tx_opts=tx_opts)

    async def _change_address(self, change_address: Optional[str]) -> str:
        if change_address:
            return change_address
        if self.signer is None:
            raise SignerUnavailableError("A change address is required without an HD signer")
        return await self.signer.get_new_change_address()

    async def _run(
        self,
        request_type: RequestType,
        change_address: Optional[str],
        from_xpub_or_address: Optional[str],
        utxos: UtxoSource,
        asset_map: Optional[Mapping[Any, Any]] = None,
        tx_opts: Optional[TransactionOptions] = None,
        **params: Any,
    ) -> NotarizationResult:
        watch_only = bool(from_xpub_or_address)
        if watch_only and not change_address:
            raise ConfigurationError(
                "A change address is required when spending from an xpub or address",
                context={"field": "change_address"},
            )
        normalized = await self._resolve_utxos(from_xpub_or_address, utxos, asset_map, tx_opts)
        request = self.builder.build_request(
            request_type,
            normalized,
            self.network,
            change_address=await self._change_address(change_address),
            asset_map=asset_map,
            tx_opts=tx_opts or TransactionOptions(),
            **params,
        )
        logger.debug(f"{request_type.value} parameters: {mask_params(params)}")
        sign = not watch_only
        logger.info(
            f"{request_type.value}: {len(request.inputs)} inputs, "
            f"{len(request.outputs)} outputs, version {request.version}, sign={sign}"
        )
        return await self.coordinator.notarize_and_sign(request, sign, normalized.assets)

    # ============================================================
    # OPERATIONS
    # ============================================================

    async def create_transaction(
        self,
        outputs: List[Dict[str, Any]],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        """Native coin payment."""
        return await self._run(
            RequestType.CREATE_TRANSACTION, change_address, from_xpub_or_address, utxos,
            tx_opts=tx_opts, outputs=outputs, fee_rate=fee_rate,
        )

    async def asset_new(
        self,
        asset_opts: Dict[str, Any],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        return await self._run(
            RequestType.ASSET_NEW, change_address, from_xpub_or_address, utxos,
            tx_opts=tx_opts, asset_opts=asset_opts, fee_rate=fee_rate,
        )

    async def asset_update(
        self,
        asset_guid: str,
        asset_opts: Dict[str, Any],
        asset_map: Mapping[Any, Any],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        return await self._run(
            RequestType.ASSET_UPDATE, change_address, from_xpub_or_address, utxos,
            asset_map=asset_map, tx_opts=tx_opts,
            asset_guid=asset_guid, asset_opts=asset_opts, fee_rate=fee_rate,
        )

    async def asset_send(
        self,
        asset_map: Mapping[Any, Any],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        """Issue supply of an asset from its owner."""
        return await self._run(
            RequestType.ASSET_SEND, change_address, from_xpub_or_address, utxos,
            asset_map=asset_map, tx_opts=tx_opts, fee_rate=fee_rate,
        )

    async def asset_allocation_send(
        self,
        asset_map: Mapping[Any, Any],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        return await self._run(
            RequestType.ALLOCATION_SEND, change_address, from_xpub_or_address, utxos,
            asset_map=asset_map, tx_opts=tx_opts, fee_rate=fee_rate,
        )

    async def asset_allocation_burn(
        self,
        asset_opts: Dict[str, Any],
        asset_map: Mapping[Any, Any],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        """Burn allocations to native coin or to the foreign chain."""
        return await self._run(
            RequestType.ALLOCATION_BURN, change_address, from_xpub_or_address, utxos,
            asset_map=asset_map, tx_opts=tx_opts, asset_opts=asset_opts, fee_rate=fee_rate,
        )

    async def asset_allocation_mint(
        self,
        asset_opts: Dict[str, Any],
        asset_map: Mapping[Any, Any],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        """Mint allocations from a foreign-chain burn proof."""
        return await self._run(
            RequestType.ALLOCATION_MINT, change_address, from_xpub_or_address, utxos,
            asset_map=asset_map, tx_opts=tx_opts, asset_opts=asset_opts, fee_rate=fee_rate,
        )

    async def mint_from_bridge(
        self,
        proof_builder: BridgeProofBuilder,
        ethtxid: str,
        asset_map: Mapping[Any, Any],
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        """
        Build the bridge proof for ethtxid and mint with it.

        Raises:
            ProofNotFoundError: the foreign transaction holds no freeze event
        """
        result = await proof_builder.build(ethtxid)
        proof = result.require()
        return await self.asset_allocation_mint(
            proof.to_asset_opts(), asset_map, fee_rate,
            change_address=change_address,
            from_xpub_or_address=from_xpub_or_address,
            utxos=utxos,
            tx_opts=tx_opts,
        )

    async def burn_to_asset_allocation(
        self,
        asset_map: Mapping[Any, Any],
        data_amount: int,
        fee_rate: int,
        change_address: Optional[str] = None,
        from_xpub_or_address: Optional[str] = None,
        utxos: UtxoSource = None,
        tx_opts: Optional[TransactionOptions] = None,
    ) -> NotarizationResult:
        """Burn native coin into asset allocations."""
        return await self._run(
            RequestType.BURN_TO_ALLOCATION, change_address, from_xpub_or_address, utxos,
            asset_map=asset_map, tx_opts=tx_opts, data_amount=data_amount, fee_rate=fee_rate,
        )

    async def notarize_and_sign(
        self,
        request: TransactionRequest,
        sign: bool = True,
        assets: Optional[Mapping[str, AssetMetadata]] = None,
    ) -> NotarizationResult:
        """Notarize and sign a request built outside the wallet operations."""
        return await self.coordinator.notarize_and_sign(request, sign, assets or {})

    # ============================================================
    # BROADCAST
    # ============================================================

    async def send_transaction(self, pst: PartiallySignedTransaction) -> Dict[str, Any]:
        """
        Extract a finalized PST and broadcast it.

        Raises:
            NotFinalizedError: the PST is not fully signed
            FeeTooHighError: fee rate above the ceiling
        """
        if self.index_adapter is None:
            raise ConfigurationError("No index service configured")
        tx = pst.extract_transaction(disable_fee_check=self.config.fees.disable_fee_check)
        return await self.index_adapter.send_raw_transaction(tx.to_hex(), signer=self.signer)

    # ============================================================
    # LIFECYCLE
    # ============================================================

    async def close(self) -> None:
        """Close the index and notary clients this wallet created; injected ones stay open."""
        if self._owns_index_adapter and self.index_adapter is not None:
            await self.index_adapter.close()
        if self._owns_notary_client:
            await self.coordinator.client.close()

    async def __aenter__(self) -> "AssetWallet":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
