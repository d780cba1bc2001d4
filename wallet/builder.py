"""
Wallet - Transaction Construction Contract.

============================================================
PURPOSE
============================================================
Coin selection, fee computation and output layout belong to
an external transaction-construction engine. This module
defines the contract the wallet drives it through.

============================================================
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List

from core.networks import NetworkParams
from transaction_assembler.types import RequestOutput, TransactionRequest
from utxo_normalizer.models import NormalizedUtxoSet


class RequestType(Enum):
    """Wallet operations that produce a transaction request."""

    CREATE_TRANSACTION = "create_transaction"
    ASSET_NEW = "asset_new"
    ASSET_UPDATE = "asset_update"
    ASSET_SEND = "asset_send"
    ALLOCATION_SEND = "allocation_send"
    ALLOCATION_BURN = "allocation_burn"
    ALLOCATION_MINT = "allocation_mint"
    BURN_TO_ALLOCATION = "burn_to_allocation"


class TransactionBuilder(ABC):
    """Transaction-construction engine."""

    @abstractmethod
    def build_request(
        self,
        request_type: RequestType,
        utxos: NormalizedUtxoSet,
        network: NetworkParams,
        **params: Any,
    ) -> TransactionRequest:
        """
        Select inputs and lay out outputs for one wallet operation.

        Inputs the wallet can sign carry their derivation path.
        Outputs carrying an asset name it in asset_guid.
        """
        pass

    @abstractmethod
    def add_notarization_signatures(
        self,
        version: int,
        signatures: Dict[str, bytes],
        outputs: List[RequestOutput],
    ) -> int:
        """
        Embed notary signatures into the outputs in place.

        Returns:
            -1 when nothing was changed, anything else otherwise
        """
        pass
