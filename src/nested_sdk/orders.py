"""Swap legs and the batch they belong to.

Order state machine:

    PENDING --set_*_amount()--> AMOUNT_REQUESTED --resolve()--> QUOTED
       ^                             ^                             |
       |                             +----set_*_amount() / --------+
       |                                  change_slippage()
    (created)

Quotes are fetched lazily, once per requested amount.
"""

import asyncio
import logging
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from nested_sdk.abi import (
    OPERATOR_FLAT,
    NestedOrder,
    build_order_struct,
    encode_order_call_data,
    hex_to_bytes,
)
from nested_sdk.aggregators.base import QuoteResult, SwapRequest, SwapSide
from nested_sdk.chains import normalize
from nested_sdk.errors import (
    DuplicateOrderError,
    NoAmountSetError,
    NothingToDoError,
    OrderNotQuotedError,
    SelfSwapError,
)
from nested_sdk.utils.math import add_fees, remove_fees

if TYPE_CHECKING:
    from nested_sdk.tools import NestedTools

logger = logging.getLogger(__name__)

# int = base units, Decimal/str = human-readable units
AmountIsh = Union[int, Decimal, str]


class OrderState(str, Enum):
    """Lifecycle of an order."""
    PENDING = "pending"
    AMOUNT_REQUESTED = "amount_requested"
    QUOTED = "quoted"


class BatchSide(str, Enum):
    """Which batch struct the order goes into.

    INPUT batches spend one token into many (the wire order names the bought
    token); OUTPUT batches sell many tokens into one (it names the sold token).
    """
    INPUT = "input"
    OUTPUT = "output"


class FeesOn(str, Enum):
    """Which side of the leg the factory fee is taken from."""
    ENTRY = "entry"  # taken from the spent amount
    EXIT = "exit"    # taken from the received amount


class OrderCollection:
    """Ordered orders of one operation.

    Insertion order is the index order of the encoded batch. With
    `unique_tokens`, at most one order per wire token (see BatchSide) is
    accepted.
    """

    def __init__(self, tools: "NestedTools", unique_tokens: bool = False):
        self.tools = tools
        self.unique_tokens = unique_tokens
        self._orders: list[Union["TokenOrder", "FlatOrder"]] = []

    @property
    def orders(self) -> tuple[Union["TokenOrder", "FlatOrder"], ...]:
        return tuple(self._orders)

    def __len__(self) -> int:
        return len(self._orders)

    def add(self, order: Union["TokenOrder", "FlatOrder"]) -> None:
        """Append an order.

        Raises:
            DuplicateOrderError: If tokens must be unique and an order already
                names the same wire token
        """
        if self.unique_tokens and any(o.wire_token == order.wire_token for o in self._orders):
            side = "input" if order.batch == BatchSide.OUTPUT else "output"
            raise DuplicateOrderError(order.wire_token, side)
        self._orders.append(order)

    def remove(self, order: Union["TokenOrder", "FlatOrder"]) -> None:
        self._orders.remove(order)

    async def resolve_all(self) -> None:
        """Quote every order that is not quoted yet (concurrently)."""
        await asyncio.gather(*(order.resolve() for order in self._orders))

    def require_orders(self, message: str) -> None:
        if not self._orders:
            raise NothingToDoError(message)

    @property
    def input_amounts(self) -> list[int]:
        return [order.input_qty for order in self._orders]

    @property
    def output_amounts(self) -> list[int]:
        return [order.output_qty for order in self._orders]

    @property
    def total_input(self) -> int:
        return sum(self.input_amounts)

    @property
    def nested_orders(self) -> list[NestedOrder]:
        return [order.order_struct for order in self._orders]


class TokenOrder:
    """A swap leg priced by the quote competition."""

    def __init__(
        self,
        holder: OrderCollection,
        input_token: str,
        output_token: str,
        slippage: float,
        batch: BatchSide,
        fees: FeesOn,
    ):
        input_token = normalize(input_token)
        output_token = normalize(output_token)
        if input_token == output_token:
            raise SelfSwapError(input_token)
        _check_slippage(slippage)

        self._holder = holder
        self.input_token = input_token
        self.output_token = output_token
        self.slippage = slippage
        self.batch = batch
        self.fees = fees

        self._requested: Optional[tuple[SwapSide, AmountIsh]] = None
        self._generation = 0
        self._pending: Optional[asyncio.Future] = None
        self._quote: Optional[QuoteResult] = None
        self._input_qty: Optional[int] = None
        self._output_qty: Optional[int] = None

    # ======================
    # State
    # ======================

    @property
    def state(self) -> OrderState:
        if self._requested is None:
            return OrderState.PENDING
        if self._quote is None:
            return OrderState.AMOUNT_REQUESTED
        return OrderState.QUOTED

    @property
    def wire_token(self) -> str:
        """Token named by the encoded order."""
        return self.output_token if self.batch == BatchSide.INPUT else self.input_token

    def set_input_amount(self, amount: AmountIsh) -> "TokenOrder":
        """Sell exactly `amount` of the input token."""
        self._request(SwapSide.SELL, amount)
        return self

    def set_output_amount(self, amount: AmountIsh) -> "TokenOrder":
        """Receive exactly `amount` of the output token."""
        self._request(SwapSide.BUY, amount)
        return self

    def change_slippage(self, slippage: float) -> "TokenOrder":
        _check_slippage(slippage)
        self.slippage = slippage
        if self._requested is not None:
            self._invalidate()
        return self

    def remove(self) -> None:
        """Detach this order from its operation."""
        self._holder.remove(self)

    def _request(self, side: SwapSide, amount: AmountIsh) -> None:
        if isinstance(amount, int) and amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        self._requested = (side, amount)
        self._invalidate()

    def _invalidate(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._generation += 1
        self._pending = None
        self._quote = None
        self._input_qty = None
        self._output_qty = None

    # ======================
    # Resolution
    # ======================

    async def resolve(self) -> QuoteResult:
        """Quote this order (once per requested amount).

        Raises:
            NoAmountSetError: If no amount was set
            QuoteFailedError: If no aggregator could quote it
        """
        if self._requested is None:
            raise NoAmountSetError()
        if self._quote is not None:
            return self._quote

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._fetch_quote(self._generation))
        pending = self._pending
        generation = self._generation
        try:
            return await pending
        except asyncio.CancelledError:
            if generation != self._generation:
                # The request changed while quoting: quote the new one
                return await self.resolve()
            raise
        except Exception:
            # Let a later call retry
            if self._pending is pending:
                self._pending = None
            raise

    async def _fetch_quote(self, generation: int) -> QuoteResult:
        tools = self._holder.tools
        side, raw_amount = self._requested

        fixed_token = self.input_token if side == SwapSide.SELL else self.output_token
        amount = await tools.to_token_amount(fixed_token, raw_amount)
        spend_decimals = await tools.get_decimals(self.input_token)
        buy_decimals = await tools.get_decimals(self.output_token)

        if side == SwapSide.SELL:
            spend_qty = remove_fees(amount) if self.fees == FeesOn.ENTRY else amount
            quantities = {"spend_qty": spend_qty}
        else:
            bought_qty = add_fees(amount) if self.fees == FeesOn.EXIT else amount
            quantities = {"bought_qty": bought_qty}

        request = SwapRequest(
            chain=tools.chain,
            spend_token=self.input_token,
            buy_token=self.output_token,
            slippage=self.slippage,
            spend_token_decimals=spend_decimals,
            buy_token_decimals=buy_decimals,
            user_address=await tools.user_address(),
            **quantities,
        )
        quote = await tools.fetch_quote(request)

        if side == SwapSide.SELL:
            input_qty = amount
            output_qty = remove_fees(quote.buy_amount) if self.fees == FeesOn.EXIT else quote.buy_amount
        else:
            output_qty = amount
            input_qty = add_fees(quote.sell_amount) if self.fees == FeesOn.ENTRY else quote.sell_amount

        if generation == self._generation:
            self._quote = quote
            self._input_qty = input_qty
            self._output_qty = output_qty
            logger.debug(
                f"Order {self.input_token}->{self.output_token} quoted by "
                f"{quote.aggregator.value}: in={input_qty} out={output_qty}"
            )
        return quote

    # ======================
    # Quoted fields
    # ======================

    def _require_quote(self) -> QuoteResult:
        if self._requested is None:
            raise NoAmountSetError()
        if self._quote is None:
            raise OrderNotQuotedError()
        return self._quote

    @property
    def quote(self) -> QuoteResult:
        return self._require_quote()

    @property
    def input_qty(self) -> int:
        self._require_quote()
        return self._input_qty

    @property
    def output_qty(self) -> int:
        self._require_quote()
        return self._output_qty

    @property
    def operator(self) -> str:
        """Name of the aggregator that produced the route."""
        return self._require_quote().aggregator.value

    @property
    def price(self) -> str:
        return self._require_quote().price

    @property
    def order_struct(self) -> NestedOrder:
        quote = self._require_quote()
        call_data = encode_order_call_data(
            "performSwap",
            [self.input_token, self.output_token, hex_to_bytes(quote.data)],
        )
        return build_order_struct(quote.aggregator.value, self.wire_token, call_data)

    def __repr__(self) -> str:
        return (
            f"TokenOrder({self.input_token}->{self.output_token}, "
            f"state={self.state.value}, batch={self.batch.value}, fees={self.fees.value})"
        )


class FlatOrder:
    """A transfer leg (no swap) handled by the Flat operator."""

    operator = OPERATOR_FLAT
    state = OrderState.QUOTED

    def __init__(self, token: str, amount: int, batch: BatchSide, fees: FeesOn):
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        self.input_token = self.output_token = self.wire_token = normalize(token)
        self.batch = batch
        self.fees = fees
        self.input_qty = self.output_qty = amount

    @property
    def transfer_amount(self) -> int:
        """Amount actually moved once the fee is taken on entry."""
        return remove_fees(self.input_qty) if self.fees == FeesOn.ENTRY else self.input_qty

    async def resolve(self) -> None:
        return None

    @property
    def order_struct(self) -> NestedOrder:
        call_data = encode_order_call_data("transfer", [self.wire_token, self.transfer_amount])
        return build_order_struct(OPERATOR_FLAT, self.wire_token, call_data)

    def __repr__(self) -> str:
        return f"FlatOrder({self.wire_token}, amount={self.input_qty})"


def _check_slippage(slippage: float) -> None:
    if not 0 <= slippage < 1:
        raise ValueError(f"Slippage must be in [0, 1), got {slippage}")
