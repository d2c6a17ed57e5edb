"""Common interface for DEX aggregator adapters."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from nested_sdk.chains import Chain
from nested_sdk.errors import QuoteErrorReason
from nested_sdk.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class AggregatorName(str, Enum):
    """Aggregator identifiers, also used as on-chain operator tags."""
    PARASWAP = "Paraswap"
    ZEROEX = "ZeroEx"


class SwapSide(str, Enum):
    """Whether the spent or the bought quantity is fixed."""
    SELL = "SELL"
    BUY = "BUY"


@dataclass(frozen=True)
class SwapRequest:
    """A generic swap request, independent of any aggregator.

    Exactly one of spend_qty (sell exactly) and bought_qty (buy exactly) is set.
    """

    chain: Chain
    spend_token: str
    buy_token: str
    slippage: float
    spend_token_decimals: int
    buy_token_decimals: int
    spend_qty: Optional[int] = None
    bought_qty: Optional[int] = None
    user_address: Optional[str] = None

    def __post_init__(self):
        if (self.spend_qty is None) == (self.bought_qty is None):
            raise ValueError("Exactly one of spend_qty and bought_qty must be set")
        quantity = self.spend_qty if self.spend_qty is not None else self.bought_qty
        if quantity < 0:
            raise ValueError(f"Swap quantity must be non-negative, got {quantity}")

    @property
    def side(self) -> SwapSide:
        return SwapSide.SELL if self.spend_qty is not None else SwapSide.BUY

    @property
    def quantity(self) -> int:
        """The fixed quantity (spent in SELL mode, bought in BUY mode)."""
        return self.spend_qty if self.spend_qty is not None else self.bought_qty


@dataclass
class QuoteResult:
    """A quote normalized from an aggregator response."""

    aggregator: AggregatorName
    chain_id: int
    price: str  # buy/sell ratio scaled to source token decimals
    to: str
    data: str
    value: str
    protocol_fee: str
    buy_token_address: str
    sell_token_address: str
    buy_amount: int
    sell_amount: int
    allowance_target: str
    estimated_price_impact: str
    guaranteed_price: str = "0"
    raw: Optional[dict] = field(default=None, repr=False)

    def __post_init__(self):
        if self.buy_amount < 0 or self.sell_amount < 0:
            raise ValueError("Quote amounts must be non-negative")

    @property
    def effective_rate(self) -> Fraction:
        """Bought amount per unit sold (exact)."""
        if self.sell_amount == 0:
            return Fraction(0)
        return Fraction(self.buy_amount, self.sell_amount)


@dataclass
class FetchFailure:
    """A structured aggregator failure."""

    aggregator: AggregatorName
    reason: QuoteErrorReason
    message: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        status = f" ({self.status_code})" if self.status_code else ""
        return f"{self.aggregator.value}: {self.reason.value}{status} {self.message}"


FetchOutcome = Union[QuoteResult, FetchFailure, None]

# Hook replacing the HTTP layer of an adapter; returns the raw aggregator answer
Fetcher = Callable[[SwapRequest], Awaitable[Optional[dict]]]


class AggregatorError(Exception):
    """Raised inside adapters, converted to a FetchFailure at the boundary."""

    def __init__(self, reason: QuoteErrorReason, message: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(message)


class DexAggregator(ABC):
    """Abstract base class for aggregator adapters.

    Subclasses implement `_fetch` (raw answer or None when the chain is not
    served) and `_to_quote` (normalization). `fetch_quote` never raises.
    """

    name: AggregatorName

    def __init__(
        self,
        timeout: float = 30.0,
        limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        fetcher: Optional[Fetcher] = None,
    ):
        """Initialize the adapter.

        Args:
            timeout: HTTP timeout in seconds
            limiter: Optional limiter wrapped around every upstream call
            transport: Optional httpx transport (tests use httpx.MockTransport)
            fetcher: Optional hook returning the raw answer instead of calling HTTP
        """
        self.timeout = timeout
        self.limiter = limiter
        self.transport = transport
        self.fetcher = fetcher

    @abstractmethod
    def supports_chain(self, chain: Chain) -> bool:
        """Whether this aggregator can quote on the chain."""
        pass

    @abstractmethod
    async def _fetch(self, request: SwapRequest) -> Optional[dict]:
        """Call the aggregator and return its raw answer.

        Raises:
            AggregatorError: On any upstream error
        """
        pass

    @abstractmethod
    def _to_quote(self, answer: dict, request: SwapRequest) -> QuoteResult:
        """Convert the raw answer into a QuoteResult."""
        pass

    async def fetch_quote(self, request: SwapRequest) -> FetchOutcome:
        """Get a normalized quote.

        Returns:
            QuoteResult on success, None if the chain is not supported,
            FetchFailure on any error
        """
        if not self.supports_chain(request.chain):
            logger.debug(f"{self.name.value} does not support chain {request.chain.value}")
            return None

        try:
            if self.fetcher is not None:
                answer = await self.fetcher(request)
            else:
                answer = await self._fetch(request)
            if answer is None:
                return None
            return self._to_quote(answer, request)

        except AggregatorError as e:
            failure = FetchFailure(self.name, e.reason, str(e), e.status_code)
        except httpx.HTTPError as e:
            failure = FetchFailure(
                self.name,
                QuoteErrorReason.UPSTREAM_UNAVAILABLE,
                f"{type(e).__name__}: {e}",
            )
        except (KeyError, TypeError, ValueError) as e:
            failure = FetchFailure(
                self.name,
                QuoteErrorReason.UNKNOWN_ERROR,
                f"Malformed {self.name.value} response: {type(e).__name__}: {e}",
            )

        logger.warning(f"{self.name.value} quote failed: {failure}")
        return failure

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one HTTP request through the limiter."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            if self.limiter:
                async with self.limiter:
                    return await client.request(method, url, **kwargs)
            return await client.request(method, url, **kwargs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name.value})"
