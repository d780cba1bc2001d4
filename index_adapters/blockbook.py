"""
Blockbook Index Adapter.

============================================================
ENDPOINTS
============================================================
GET  /api/v2/utxo/{address|xpub}        spendable outputs (+ assets)
GET  /api/v2/asset/{guid}?details=basic asset description
GET  /api/v2/xpub/{xpub}                xpub history / tokens
GET  /api/v2/address/{address}          address history
GET  /api/v2/tx/{txid}                  transaction
POST /api/v2/sendtx/                    broadcast raw hex

============================================================
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from core.logging_utils import mask_extended_keys
from index_adapters.base import BaseIndexAdapter


logger = logging.getLogger(__name__)


TokensCallback = Callable[[List[Dict[str, Any]]], None]


class BlockbookAdapter(BaseIndexAdapter):
    """Blockbook v2 REST client."""

    @property
    def name(self) -> str:
        return "blockbook"

    async def fetch_utxos(
        self,
        address_or_xpub: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Spendable outputs of an address or xpub.

        Returns:
            {"utxos": [...], "assets": [...]} (assets absent on plain UTXO chains)
        """
        data = await self._request_with_retry("GET", f"/api/v2/utxo/{address_or_xpub}", params=options)
        if isinstance(data, list):
            data = {"utxos": data}
        logger.debug(
            f"[{self.name}] {len(data.get('utxos') or [])} utxos for "
            f"{mask_extended_keys(address_or_xpub)}"
        )
        return data

    async def fetch_asset(self, asset_guid: str) -> Optional[Dict[str, Any]]:
        data = await self._request_with_retry(
            "GET", f"/api/v2/asset/{asset_guid}", params={"details": "basic"},
        )
        if isinstance(data, dict):
            return data.get("asset")
        return None

    async def fetch_history(
        self,
        address_or_xpub: str,
        options: Optional[Dict[str, Any]] = None,
        xpub: bool = False,
        on_tokens: Optional[TokensCallback] = None,
    ) -> Dict[str, Any]:
        """
        Transaction history of an address or xpub.

        Args:
            on_tokens: Called with the xpub "tokens" list when present
        """
        prefix = "/api/v2/xpub/" if xpub else "/api/v2/address/"
        data = await self._request_with_retry("GET", f"{prefix}{address_or_xpub}", params=options)
        if xpub and on_tokens is not None and isinstance(data, dict) and data.get("tokens"):
            on_tokens(data["tokens"])
        return data

    async def fetch_raw_tx(self, txid: str) -> Dict[str, Any]:
        return await self._request_with_retry("GET", f"/api/v2/tx/{txid}")

    async def send_raw_transaction(self, tx_hex: str, signer: Optional[Any] = None) -> Dict[str, Any]:
        """
        Broadcast a raw transaction.

        When a signer is given its address indices are refreshed afterwards,
        so that the change address just used is not handed out again.
        """
        data = await self._request_with_retry("POST", "/api/v2/sendtx/", data=tx_hex)
        logger.info(f"[{self.name}] Broadcast {data.get('result') if isinstance(data, dict) else data}")
        if signer is not None:
            await self.fetch_history(
                signer.get_account_xpub(),
                options={"tokens": "used", "details": "tokens"},
                xpub=True,
                on_tokens=signer.set_latest_indexes_from_xpub_tokens,
            )
        return data
