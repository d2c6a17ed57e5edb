"""Exceptions raised by the SDK.

Configuration and validation errors are raised before any network call.
Aggregator failures are collapsed into a single QuoteFailedError carrying a
machine-readable reason.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from nested_sdk.aggregators.base import FetchFailure


class QuoteErrorReason(str, Enum):
    """Caller-facing reasons for a failed quote."""
    INSUFFICIENT_ASSET_LIQUIDITY = "INSUFFICIENT_ASSET_LIQUIDITY"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"    # transport error or 5xx
    INVALID_REQUEST = "INVALID_REQUEST"              # aggregator rejected the params
    NO_AGGREGATOR_AVAILABLE = "NO_AGGREGATOR_AVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class NestedSDKError(Exception):
    """Base class for all SDK errors."""
    pass


# ======================
# Configuration
# ======================

class ConfigurationError(NestedSDKError):
    """Raised when the SDK is used with an invalid setup."""
    pass


class UnsupportedChainError(ConfigurationError):
    """Raised when a chain has no deployed factory or wrapped token."""

    def __init__(self, chain: str, detail: str = ""):
        self.chain = chain
        message = f"Chain not supported: {chain}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MissingSignerError(ConfigurationError):
    """Raised when an operation needs a signer and none was given to connect()."""

    def __init__(self):
        super().__init__("No signer available. Please provide a signer when calling connect()")


# ======================
# Validation
# ======================

class OrderValidationError(NestedSDKError):
    """Raised when an operation violates an order invariant."""
    pass


class SelfSwapError(OrderValidationError):
    """Raised when an order would swap a token to itself."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"You cannot swap a token to itself ({token})")


class DuplicateOrderError(OrderValidationError):
    """Raised when a batch already holds an order for the same token."""

    def __init__(self, token: str, side: str):
        self.token = token
        super().__init__(f"An {side} order already exists in this operation for token {token}")


class NothingToDoError(OrderValidationError):
    """Raised when building a batch that holds no order."""
    pass


class NoAmountSetError(OrderValidationError):
    """Raised when reading an order whose amount was never set."""

    def __init__(self):
        super().__init__("No amount set on this order. Call set_input_amount() or set_output_amount()")


class OrderNotQuotedError(OrderValidationError):
    """Raised when reading quote-dependent fields before resolve()."""

    def __init__(self):
        super().__init__("This order has not been quoted yet. Await resolve() or build_call_data() first")


class InvalidPortfolioIdError(OrderValidationError):
    """Raised when a portfolio id cannot be used on the connected chain."""
    pass


# ======================
# Quotes
# ======================

class QuoteFailedError(NestedSDKError):
    """Raised when no aggregator could quote a swap.

    Attributes:
        reason: Caller-facing reason to branch on
        failures: Per-aggregator failures, kept as diagnostic detail
    """

    def __init__(
        self,
        reason: QuoteErrorReason,
        message: str = "",
        failures: Optional[list["FetchFailure"]] = None,
    ):
        self.reason = reason
        self.failures = failures or []
        super().__init__(message or f"Quote failed: {reason.value}")


# ======================
# Collaborators
# ======================

class ChainReadError(NestedSDKError):
    """Raised when a JSON-RPC read fails."""
    pass


class TransactionFailedError(NestedSDKError):
    """Raised when a transaction cannot be broadcast or reverts."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)
