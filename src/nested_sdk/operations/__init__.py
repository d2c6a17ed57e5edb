"""Portfolio operations built on top of the factory contract."""

from nested_sdk.operations.entry import PortfolioCreator, PortfolioTokenAdder, SingleToMultiSwapper
from nested_sdk.operations.exit import MultiToSingleSwapper, PortfolioLiquidator, PortfolioSeller
from nested_sdk.operations.flat import build_deposit, build_withdrawal

__all__ = [
    # Entry
    "PortfolioCreator",
    "PortfolioTokenAdder",
    "SingleToMultiSwapper",
    # Exit
    "MultiToSingleSwapper",
    "PortfolioLiquidator",
    "PortfolioSeller",
    # Flat
    "build_deposit",
    "build_withdrawal",
]
