"""
Base Index Adapter.

============================================================
PURPOSE
============================================================
HTTP plumbing shared by index-service clients:
- One aiohttp session, injected or created on first use
- Every attempt bounded by the adapter timeout
- Transient failures retried with exponential backoff;
  4xx answers and rate limiting are surfaced immediately

Extended public keys never appear in log lines or error URLs.

============================================================
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from core.logging_utils import mask_extended_keys
from index_adapters.exceptions import FetchError, RateLimitError


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 1.5
DEFAULT_RETRY_AFTER = 60
ERROR_BODY_LIMIT = 500


class BaseIndexAdapter(ABC):
    """
    Abstract index-service client.

    Args:
        base_url: Service root, trailing slash optional
        timeout: Seconds allowed per attempt
        max_retries: Attempts per request (at least one)
        session: Shared aiohttp session; the adapter never closes an injected one
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._session = session
        self._owns_session = session is None
        self.last_latency_ms: Optional[float] = None

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    def base_url(self) -> str:
        return self._base_url

    # ─────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    def _safe_url(self, path: str) -> str:
        return mask_extended_keys(f"{self._base_url}{path}")

    async def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
    ) -> Any:
        """One HTTP round trip; JSON body on success."""
        session = await self._get_session()
        started = time.monotonic()
        try:
            async with session.request(method, f"{self._base_url}{path}", params=params, data=data) as response:
                self.last_latency_ms = (time.monotonic() - started) * 1000

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        "Rate limit exceeded",
                        adapter_name=self.name,
                        retry_after_seconds=int(retry_after) if retry_after else DEFAULT_RETRY_AFTER,
                    )
                if response.status >= 400:
                    body = await response.text()
                    raise FetchError(
                        f"HTTP {response.status}",
                        adapter_name=self.name,
                        status_code=response.status,
                        response_body=body[:ERROR_BODY_LIMIT],
                        request_url=self._safe_url(path),
                    )
                try:
                    return await response.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError) as e:
                    raise FetchError(
                        "Response is not valid JSON",
                        adapter_name=self.name,
                        status_code=response.status,
                        request_url=self._safe_url(path),
                        original_error=e,
                    )
        except aiohttp.ClientError as e:
            raise FetchError(
                f"Connection error: {e}",
                adapter_name=self.name,
                request_url=self._safe_url(path),
                original_error=e,
            )

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
    ) -> Any:
        """
        Request with bounded retries.

        Raises:
            RateLimitError: on HTTP 429, without retrying
            FetchError: on a 4xx answer, or once attempts are exhausted
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(
                    self._make_request(method, path, params, data),
                    timeout=self._timeout,
                )
            except FetchError as e:
                if e.is_client_error:
                    raise
                error = e
            except asyncio.TimeoutError as e:
                error = FetchError(
                    f"Timeout after {self._timeout}s",
                    adapter_name=self.name,
                    request_url=self._safe_url(path),
                    original_error=e,
                    context={"timeout": True},
                )

            if attempt >= self._max_retries:
                logger.error(f"[{self.name}] {method} {self._safe_url(path)} failed after {attempt} attempt(s): {error}")
                raise error

            delay = RETRY_BACKOFF_BASE ** (attempt - 1)
            logger.warning(f"[{self.name}] attempt {attempt}/{self._max_retries} failed, retrying in {delay:.1f}s: {error}")
            await asyncio.sleep(delay)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
