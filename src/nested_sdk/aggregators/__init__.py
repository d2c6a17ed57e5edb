"""DEX aggregator adapters and quote competition.

Aggregators (in priority order):
- ParaSwap: ETH, BSC, Polygon, Avalanche
- 0x: ETH, BSC, Polygon, Avalanche, Fantom, Celo, Optimism, Ropsten
"""

from nested_sdk.aggregators.base import (
    AggregatorName,
    DexAggregator,
    FetchFailure,
    QuoteResult,
    SwapRequest,
    SwapSide,
)
from nested_sdk.aggregators.factory import create_default_aggregators, create_resolver
from nested_sdk.aggregators.paraswap import ParaSwapAggregator
from nested_sdk.aggregators.resolver import QuoteResolver
from nested_sdk.aggregators.zeroex import ZeroExAggregator

__all__ = [
    # Base classes
    "AggregatorName",
    "DexAggregator",
    "FetchFailure",
    "QuoteResult",
    "SwapRequest",
    "SwapSide",
    # Adapters
    "ParaSwapAggregator",
    "ZeroExAggregator",
    # Competition
    "QuoteResolver",
    "create_default_aggregators",
    "create_resolver",
]
