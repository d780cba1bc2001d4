"""
Notarization - Notary Endpoint Client.

============================================================
PURPOSE
============================================================
HTTP client for asset notary endpoints.

Protocol:  POST <endpoint> {"tx": "<unsigned tx hex>"}
           -> {"sig": "<signature>"}

Signatures are accepted hex or base64 encoded.

============================================================
"""

import asyncio
import base64
import binascii
import logging
import re
from typing import Any, Dict, Optional

import aiohttp

from core.exceptions import NotaryRejectedError, NotaryUnreachableError


logger = logging.getLogger(__name__)


_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")


def decode_signature(encoded: str) -> bytes:
    """
    Decode a notary signature.

    Raises:
        ValueError: neither valid hex nor valid base64
    """
    if _HEX_RE.match(encoded):
        return bytes.fromhex(encoded)
    try:
        return base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Signature is neither hex nor base64: {e}") from e


class NotaryClient:
    """Posts unsigned transactions to notary endpoints."""

    DEFAULT_TIMEOUT = 15.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.post(url, json=payload) as response:
                if response.status >= 500:
                    raise NotaryUnreachableError(
                        f"Notary returned HTTP {response.status}",
                        endpoint=url,
                    )
                if response.status >= 400:
                    body = await response.text()
                    raise NotaryRejectedError(
                        f"Notary refused request: HTTP {response.status}",
                        endpoint=url,
                        context={"response_body": body[:500]},
                    )
                try:
                    return await response.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError) as e:
                    raise NotaryRejectedError(
                        "Notary response is not valid JSON",
                        endpoint=url,
                        cause=e,
                    )
        except aiohttp.ClientError as e:
            raise NotaryUnreachableError(f"Connection error: {e}", endpoint=url, cause=e)

    async def request_signature(
        self,
        endpoint_url: str,
        tx_hex: str,
        asset_guid: Optional[str] = None,
    ) -> bytes:
        """
        Ask a notary to sign an unsigned transaction.

        Raises:
            NotaryUnreachableError: timeout, connection failure, 5xx
            NotaryRejectedError: 4xx, malformed response or missing signature
        """
        try:
            data = await asyncio.wait_for(
                self._post_json(endpoint_url, {"tx": tx_hex}),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise NotaryUnreachableError(
                f"Notary timed out after {self._timeout}s",
                asset_guid=asset_guid,
                endpoint=endpoint_url,
                cause=e,
            )

        signature = data.get("sig") if isinstance(data, dict) else None
        if not signature or not isinstance(signature, str):
            raise NotaryRejectedError(
                "Notary response carries no signature",
                asset_guid=asset_guid,
                endpoint=endpoint_url,
            )
        try:
            return decode_signature(signature)
        except ValueError as e:
            raise NotaryRejectedError(
                "Notary signature is malformed",
                asset_guid=asset_guid,
                endpoint=endpoint_url,
                cause=e,
            )

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "NotaryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
