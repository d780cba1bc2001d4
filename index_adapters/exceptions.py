"""
Index Adapter Exceptions.

Errors raised while talking to a Blockbook-compatible index
service. They join the wallet hierarchy so callers can catch
WalletException at the edge and still inspect HTTP details.
"""

from typing import Any, Dict, Optional

from core.exceptions import Severity, WalletException


class IndexServiceError(WalletException):
    """Base class for index-service errors."""

    default_severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> None:
        context = dict(context or {})
        if adapter_name:
            context["adapter"] = adapter_name
        super().__init__(message, context=context, cause=original_error, **kwargs)
        self.adapter_name = adapter_name
        self.original_error = original_error


class FetchError(IndexServiceError):
    """Request failed: transport error, timeout or non-2xx status."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = dict(context or {})
        if status_code is not None:
            context["status_code"] = status_code
        if request_url:
            context["url"] = request_url
        super().__init__(message, adapter_name, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    @property
    def is_timeout(self) -> bool:
        return bool(self.context.get("timeout", False))

    @property
    def is_client_error(self) -> bool:
        """4xx answers are final; retrying the same request cannot succeed."""
        return self.status_code is not None and 400 <= self.status_code < 500


class RateLimitError(IndexServiceError):
    """HTTP 429 from the index service."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message,
            adapter_name,
            original_error,
            context={"retry_after_seconds": retry_after_seconds},
        )
        self.retry_after_seconds = retry_after_seconds
