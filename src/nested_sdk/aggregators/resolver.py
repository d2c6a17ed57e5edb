"""Quote competition between aggregators."""

import asyncio
import logging
from typing import Iterable, Optional, Union

from nested_sdk.aggregators.base import (
    AggregatorName,
    DexAggregator,
    FetchFailure,
    FetchOutcome,
    QuoteResult,
    SwapRequest,
)
from nested_sdk.errors import QuoteErrorReason, QuoteFailedError

logger = logging.getLogger(__name__)


class QuoteResolver:
    """Queries aggregators concurrently and keeps the best quote.

    Aggregators are listed in priority order: on equal rates the first
    registered one wins.
    """

    def __init__(self, aggregators: Optional[list[DexAggregator]] = None):
        self.aggregators: list[DexAggregator] = aggregators or []

    def add_aggregator(self, aggregator: DexAggregator) -> None:
        """Register an aggregator at the lowest priority."""
        self.aggregators.append(aggregator)

    def candidates(
        self,
        request: SwapRequest,
        allowed: Optional[Iterable[Union[AggregatorName, str]]] = None,
    ) -> list[DexAggregator]:
        """Aggregators allowed by the allow-list that serve the request's chain."""
        allowed_names = None
        if allowed is not None:
            allowed_names = {AggregatorName(name) for name in allowed}

        return [
            aggregator
            for aggregator in self.aggregators
            if (allowed_names is None or aggregator.name in allowed_names)
            and aggregator.supports_chain(request.chain)
        ]

    async def _safe_fetch(self, aggregator: DexAggregator, request: SwapRequest) -> FetchOutcome:
        try:
            return await aggregator.fetch_quote(request)
        except Exception as e:
            logger.error(f"{aggregator.name.value} raised unexpectedly: {type(e).__name__}: {e}")
            return FetchFailure(
                aggregator.name,
                QuoteErrorReason.UNKNOWN_ERROR,
                f"{type(e).__name__}: {e}",
            )

    async def get_all_quotes(
        self,
        request: SwapRequest,
        allowed: Optional[Iterable[Union[AggregatorName, str]]] = None,
    ) -> tuple[list[QuoteResult], list[FetchFailure]]:
        """Fan out to every candidate and wait for all of them."""
        candidates = self.candidates(request, allowed)
        logger.debug(
            f"Quoting {request.side.value} {request.quantity} {request.spend_token} -> "
            f"{request.buy_token} on {request.chain.value} with "
            f"{[a.name.value for a in candidates]}"
        )

        outcomes = await asyncio.gather(
            *(self._safe_fetch(aggregator, request) for aggregator in candidates)
        )

        quotes = [o for o in outcomes if isinstance(o, QuoteResult)]
        failures = [o for o in outcomes if isinstance(o, FetchFailure)]
        for quote in quotes:
            logger.info(
                f"Quote from {quote.aggregator.value}: {quote.sell_amount} -> "
                f"{quote.buy_amount} (rate: {float(quote.effective_rate):.6g})"
            )
        return quotes, failures

    async def resolve(
        self,
        request: SwapRequest,
        allowed: Optional[Iterable[Union[AggregatorName, str]]] = None,
    ) -> QuoteResult:
        """Get the best quote across aggregators.

        Returns the quote with the highest bought amount per unit sold.

        Raises:
            QuoteFailedError: If no aggregator could quote the request
        """
        if allowed is not None:
            allowed = list(allowed)
        if not self.candidates(request, allowed):
            raise QuoteFailedError(
                QuoteErrorReason.NO_AGGREGATOR_AVAILABLE,
                f"No aggregator available for chain {request.chain.value}",
            )

        quotes, failures = await self.get_all_quotes(request, allowed)

        if quotes:
            # max() keeps the first of equal elements, i.e. the higher priority
            best = max(quotes, key=lambda q: q.effective_rate)
            logger.info(
                f"Selected best quote: {best.aggregator.value} - {best.sell_amount} "
                f"{request.spend_token} -> {best.buy_amount} {request.buy_token}"
            )
            return best

        if not failures:
            raise QuoteFailedError(
                QuoteErrorReason.NO_AGGREGATOR_AVAILABLE,
                f"No aggregator returned a quote on chain {request.chain.value}",
            )

        reason = failures[0].reason
        if any(f.reason == QuoteErrorReason.INSUFFICIENT_ASSET_LIQUIDITY for f in failures):
            reason = QuoteErrorReason.INSUFFICIENT_ASSET_LIQUIDITY

        logger.error(
            f"No quotes available for {request.spend_token}->{request.buy_token}. "
            f"Errors: {'; '.join(str(f) for f in failures)}"
        )
        raise QuoteFailedError(
            reason,
            f"Quote failed ({reason.value}): {'; '.join(f.message for f in failures)}",
            failures=failures,
        )
