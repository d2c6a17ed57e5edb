"""Factory for aggregator adapters and the quote resolver.

The registration order below is the tie-break priority of the resolver.
"""

import logging
from typing import Optional

from nested_sdk.aggregators.base import DexAggregator, Fetcher
from nested_sdk.aggregators.paraswap import ParaSwapAggregator
from nested_sdk.aggregators.resolver import QuoteResolver
from nested_sdk.aggregators.zeroex import ZeroExAggregator
from nested_sdk.config import Settings, get_settings
from nested_sdk.utils.rate_limit import build_limiter

logger = logging.getLogger(__name__)


def create_paraswap_aggregator(
    settings: Optional[Settings] = None,
    fetcher: Optional[Fetcher] = None,
) -> ParaSwapAggregator:
    """Create the ParaSwap adapter.

    Args:
        settings: SDK settings (uses get_settings() if not provided)
        fetcher: Optional hook replacing the HTTP calls
    """
    settings = settings or get_settings()
    return ParaSwapAggregator(
        base_url=settings.paraswap_api_url,
        timeout=settings.http_timeout,
        limiter=build_limiter(per_second=settings.paraswap_calls_per_second, name="paraswap"),
        fetcher=fetcher,
    )


def create_zeroex_aggregator(
    settings: Optional[Settings] = None,
    fetcher: Optional[Fetcher] = None,
) -> ZeroExAggregator:
    """Create the 0x adapter.

    Args:
        settings: SDK settings (uses get_settings() if not provided)
        fetcher: Optional hook replacing the HTTP calls
    """
    settings = settings or get_settings()
    return ZeroExAggregator(
        api_key=settings.zeroex_api_key or None,
        timeout=settings.http_timeout,
        limiter=build_limiter(
            per_second=settings.zeroex_calls_per_second,
            per_minute=settings.zeroex_calls_per_minute,
            name="zeroex",
        ),
        fetcher=fetcher,
    )


def create_default_aggregators(
    settings: Optional[Settings] = None,
    paraswap_fetcher: Optional[Fetcher] = None,
    zeroex_fetcher: Optional[Fetcher] = None,
) -> list[DexAggregator]:
    """Create all adapters in priority order."""
    return [
        create_paraswap_aggregator(settings, paraswap_fetcher),
        create_zeroex_aggregator(settings, zeroex_fetcher),
    ]


def create_resolver(
    settings: Optional[Settings] = None,
    aggregators: Optional[list[DexAggregator]] = None,
    paraswap_fetcher: Optional[Fetcher] = None,
    zeroex_fetcher: Optional[Fetcher] = None,
) -> QuoteResolver:
    """Create a quote resolver.

    Args:
        settings: SDK settings
        aggregators: Explicit adapters (replaces the default ones)
        paraswap_fetcher: Optional hook for the default ParaSwap adapter
        zeroex_fetcher: Optional hook for the default 0x adapter
    """
    if aggregators is None:
        aggregators = create_default_aggregators(settings, paraswap_fetcher, zeroex_fetcher)
    logger.debug(f"Created resolver with {[a.name.value for a in aggregators]}")
    return QuoteResolver(aggregators)
