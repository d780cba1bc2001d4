"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the wallet core.

- Provides clear exception hierarchy
- Enables specific error handling
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
WalletException (base)
├── ConfigurationError
├── DataIntegrityError
├── KeyAuthorityError
│   ├── SignerUnavailableError
│   ├── SigningError
│   └── PersistenceError
├── AssemblyError
│   ├── NotFinalizedError
│   ├── FeeTooHighError
│   └── BalanceViolationError
├── NotarizationError
│   ├── NotaryUnreachableError
│   └── NotaryRejectedError
└── ProofNotFoundError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the operation cannot continue."""

    CRITICAL = "critical"
    """Key material or funds may be at risk."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class WalletException(Exception):
    """
    Base exception for all wallet core errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - recoverable: whether the caller may retry or degrade
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        if self.context:
            details = ", ".join(
                f"{k}={v}" for k, v in self.context.items()
                if k not in ("cause_type", "cause_message")
            )
            if details:
                return f"{self.message} ({details})"
        return self.message


# ============================================================
# CONFIGURATION / DATA
# ============================================================

class ConfigurationError(WalletException):
    """Invalid or missing configuration."""

    default_severity = Severity.HIGH
    default_recoverable = False


class DataIntegrityError(WalletException):
    """
    Index-service data that cannot be normalized.

    Absorbed by the normalizer: the offending record is skipped
    and recorded, never propagated to the caller.
    """

    default_severity = Severity.LOW


# ============================================================
# KEY AUTHORITY
# ============================================================

class KeyAuthorityError(WalletException):
    """Base class for signer errors."""

    default_severity = Severity.HIGH


class SignerUnavailableError(KeyAuthorityError):
    """A signing operation was requested but no signer is configured."""

    default_recoverable = False


class SigningError(KeyAuthorityError):
    """The signing primitive failed or produced an invalid signature."""

    default_severity = Severity.CRITICAL
    default_recoverable = False


class PersistenceError(KeyAuthorityError):
    """Encrypted state could not be read or written."""


# ============================================================
# TRANSACTION ASSEMBLY
# ============================================================

class AssemblyError(WalletException):
    """Base class for transaction assembly errors."""

    default_severity = Severity.HIGH


class NotFinalizedError(AssemblyError):
    """Operation requires every input of the PST to be finalized."""

    def __init__(self, message: str = "Not finalized", **kwargs):
        super().__init__(message, **kwargs)


class FeeTooHighError(AssemblyError):
    """Effective fee rate exceeds the configured ceiling."""

    default_recoverable = False

    def __init__(self, fee_rate: int, maximum_fee_rate: int, **kwargs):
        super().__init__(
            f"Fee rate {fee_rate} sat/vB exceeds maximum {maximum_fee_rate} sat/vB",
            context={"fee_rate": fee_rate, "maximum_fee_rate": maximum_fee_rate},
            **kwargs,
        )
        self.fee_rate = fee_rate
        self.maximum_fee_rate = maximum_fee_rate


class BalanceViolationError(AssemblyError):
    """Outputs exceed inputs on a transaction kind that does not burn value."""

    default_recoverable = False

    def __init__(self, fee: int, kind: str, **kwargs):
        super().__init__(
            f"Outputs exceed inputs by {-fee} on a {kind} transaction",
            context={"fee": fee, "kind": kind},
            **kwargs,
        )
        self.fee = fee
        self.kind = kind


# ============================================================
# NOTARIZATION
# ============================================================

class NotarizationError(WalletException):
    """Base class for notary errors."""

    def __init__(
        self,
        message: str,
        asset_guid: Optional[str] = None,
        endpoint: Optional[str] = None,
        report: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", None) or {}
        if asset_guid:
            context["asset_guid"] = asset_guid
        if endpoint:
            context["endpoint"] = endpoint
        super().__init__(message, context=context, **kwargs)
        self.asset_guid = asset_guid
        self.endpoint = endpoint
        self.report = report


class NotaryUnreachableError(NotarizationError):
    """Notary endpoint timed out or returned a server error."""


class NotaryRejectedError(NotarizationError):
    """Notary endpoint answered but refused to sign."""


# ============================================================
# BRIDGE
# ============================================================

class ProofNotFoundError(WalletException):
    """No bridge freeze event matched the foreign transaction."""

    default_recoverable = False

    def __init__(self, txid: str, **kwargs):
        super().__init__(
            f"No freeze event found for transaction {txid}",
            context={"txid": txid},
            **kwargs,
        )
        self.txid = txid
