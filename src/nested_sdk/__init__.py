"""SDK for Nested portfolios: build factory calls priced by DEX aggregators."""

from nested_sdk.chains import NATIVE_TOKEN, Chain
from nested_sdk.connection import NestedContracts, connect
from nested_sdk.errors import (
    NestedSDKError,
    QuoteErrorReason,
    QuoteFailedError,
)
from nested_sdk.models import CallData, CreatedPortfolio, ExecOptions, PortfolioAsset
from nested_sdk.orders import FlatOrder, OrderState, TokenOrder
from nested_sdk.signer import LocalAccountSigner, Signer

__version__ = "0.1.0"

__all__ = [
    "NATIVE_TOKEN",
    "Chain",
    "NestedContracts",
    "connect",
    "NestedSDKError",
    "QuoteErrorReason",
    "QuoteFailedError",
    "CallData",
    "CreatedPortfolio",
    "ExecOptions",
    "PortfolioAsset",
    "FlatOrder",
    "OrderState",
    "TokenOrder",
    "LocalAccountSigner",
    "Signer",
]
