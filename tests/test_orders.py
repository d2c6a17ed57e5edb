"""Tests for the order state machine and order collections."""

import asyncio
from decimal import Decimal

import pytest
from eth_abi import decode, encode

from conftest import DAI, NATIVE, SUSHI, USDC, WMATIC
from nested_sdk.abi import to_bytes32
from nested_sdk.aggregators.base import SwapSide
from nested_sdk.errors import (
    DuplicateOrderError,
    NoAmountSetError,
    NothingToDoError,
    OrderNotQuotedError,
    QuoteErrorReason,
    QuoteFailedError,
    SelfSwapError,
)
from nested_sdk.orders import BatchSide, FeesOn, FlatOrder, OrderCollection, OrderState, TokenOrder
from nested_sdk.utils.math import add_fees, remove_fees


class TestOrderStates:
    """Tests for the PENDING -> AMOUNT_REQUESTED -> QUOTED transitions."""

    @pytest.mark.asyncio
    async def test_pending(self, nested):
        order = nested.create_portfolio(USDC).add_token(SUSHI)

        assert order.state == OrderState.PENDING
        with pytest.raises(NoAmountSetError):
            order.input_qty
        with pytest.raises(NoAmountSetError):
            order.order_struct
        with pytest.raises(NoAmountSetError):
            await order.resolve()

    @pytest.mark.asyncio
    async def test_amount_requested_then_quoted(self, nested):
        order = nested.create_portfolio(USDC).add_token(SUSHI)
        order.set_input_amount(1_000_000)

        assert order.state == OrderState.AMOUNT_REQUESTED
        with pytest.raises(OrderNotQuotedError):
            order.output_qty

        await order.resolve()

        assert order.state == OrderState.QUOTED
        assert order.operator == "ZeroEx"
        assert order.input_qty == 1_000_000

    @pytest.mark.asyncio
    async def test_resolves_once(self, nested, paraswap, zeroex):
        """Test that repeated and concurrent resolutions share one quote."""
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount(1_000_000)

        first, second = await asyncio.gather(order.resolve(), order.resolve())
        third = await order.resolve()

        assert first is second is third
        assert len(paraswap.requests) == 1
        assert len(zeroex.requests) == 1

    @pytest.mark.asyncio
    async def test_new_amount_invalidates_quote(self, nested, zeroex):
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount(1_000_000)
        await order.resolve()

        order.set_input_amount(2_000_000)

        assert order.state == OrderState.AMOUNT_REQUESTED
        with pytest.raises(OrderNotQuotedError):
            order.quote
        await order.resolve()
        assert order.input_qty == 2_000_000
        assert len(zeroex.requests) == 2

    @pytest.mark.asyncio
    async def test_new_amount_cancels_fetch_in_flight(self, nested, zeroex):
        """Test that a waiting resolve() quotes the new amount instead of the old one."""
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount(1_000_000)
        waiting = asyncio.ensure_future(order.resolve())
        await asyncio.sleep(0)
        superseded = order._pending
        assert superseded is not None and not superseded.done()

        order.set_input_amount(2_000_000)
        quote = await waiting

        assert superseded.cancelled()
        assert order.state == OrderState.QUOTED
        assert order.quote is quote
        assert order.input_qty == 2_000_000
        assert [r.spend_qty for r in zeroex.requests] == [remove_fees(2_000_000)]

    @pytest.mark.asyncio
    async def test_change_slippage_invalidates_quote(self, nested, zeroex):
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount(1_000_000)
        await order.resolve()

        order.change_slippage(0.05)

        assert order.state == OrderState.AMOUNT_REQUESTED
        await order.resolve()
        assert zeroex.requests[-1].slippage == 0.05

    @pytest.mark.asyncio
    async def test_failed_quote_can_be_retried(self, nested, paraswap, zeroex):
        paraswap.failure = QuoteErrorReason.INSUFFICIENT_ASSET_LIQUIDITY
        zeroex.failure = QuoteErrorReason.INSUFFICIENT_ASSET_LIQUIDITY
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_output_amount(10**50)

        with pytest.raises(QuoteFailedError) as exc_info:
            await order.resolve()
        assert exc_info.value.reason == QuoteErrorReason.INSUFFICIENT_ASSET_LIQUIDITY
        assert order.state == OrderState.AMOUNT_REQUESTED

        paraswap.failure = None
        zeroex.failure = None
        await order.resolve()
        assert order.state == OrderState.QUOTED

    def test_invalid_slippage(self, nested):
        creator = nested.create_portfolio(USDC)
        with pytest.raises(ValueError):
            creator.add_token(SUSHI, 1.5)
        order = creator.add_token(DAI, 0.01)
        with pytest.raises(ValueError):
            order.change_slippage(-0.1)

    def test_negative_amount(self, nested):
        order = nested.create_portfolio(USDC).add_token(SUSHI)
        with pytest.raises(ValueError):
            order.set_input_amount(-1)

    @pytest.mark.asyncio
    async def test_human_amount(self, nested, zeroex):
        """Test that Decimal and str amounts use the token decimals."""
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount("1.5")
        await order.resolve()
        assert order.input_qty == 1_500_000

        order.set_input_amount(Decimal("0.25"))
        await order.resolve()
        assert order.input_qty == 250_000


class TestFees:
    """Tests for where the factory fee is accounted."""

    @pytest.mark.asyncio
    async def test_entry_sell(self, nested, zeroex):
        """Test that only the amount left after fees is quoted."""
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount(1_000_000)
        await order.resolve()

        assert zeroex.requests[0].side == SwapSide.SELL
        assert zeroex.requests[0].spend_qty == remove_fees(1_000_000)
        assert order.input_qty == 1_000_000
        assert order.output_qty == remove_fees(1_000_000) * 3

    @pytest.mark.asyncio
    async def test_entry_buy(self, nested, zeroex):
        """Test that the fee is added on top of the quoted input."""
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_output_amount(3000)
        await order.resolve()

        assert zeroex.requests[0].bought_qty == 3000
        assert order.output_qty == 3000
        assert order.input_qty == add_fees(1000)

    @pytest.mark.asyncio
    async def test_exit_sell(self, nested, zeroex):
        order = nested.sell_tokens_to_wallet(1, USDC).sell_token(SUSHI).set_input_amount(1000)
        await order.resolve()

        assert zeroex.requests[0].spend_qty == 1000
        assert order.input_qty == 1000
        assert order.output_qty == remove_fees(3000)

    @pytest.mark.asyncio
    async def test_exit_buy(self, nested, zeroex):
        order = nested.sell_tokens_to_wallet(1, USDC).sell_token(SUSHI).set_output_amount(2970)
        await order.resolve()

        assert zeroex.requests[0].bought_qty == add_fees(2970)
        assert order.output_qty == 2970
        assert order.input_qty == zeroex.requests[0].bought_qty // 3 + (
            1 if zeroex.requests[0].bought_qty % 3 else 0
        )


class TestOrderValidation:
    """Tests for checks done when orders are created."""

    def test_self_swap_rejected_everywhere(self, nested):
        with pytest.raises(SelfSwapError):
            nested.create_portfolio(USDC).add_token(USDC)
        with pytest.raises(SelfSwapError):
            nested.add_tokens_to_portfolio(1, SUSHI).add_token(SUSHI.upper().replace("0X", "0x"))
        with pytest.raises(SelfSwapError):
            nested.swap_single_to_multi(1, DAI).swap_to(DAI)
        with pytest.raises(SelfSwapError):
            nested.swap_multi_to_single(1, DAI).swap_from(DAI)
        with pytest.raises(SelfSwapError):
            nested.sell_tokens_to_wallet(1, USDC).sell_token(USDC)

    def test_self_swap_through_wrapping(self, nested):
        """Test that native and wrapped native count as the same token."""
        with pytest.raises(SelfSwapError):
            nested.create_portfolio(NATIVE).add_token(WMATIC)
        with pytest.raises(SelfSwapError):
            nested.sell_tokens_to_wallet(1, NATIVE).sell_token(WMATIC)

    def test_duplicate_sell_rejected(self, nested):
        seller = nested.sell_tokens_to_wallet(1, USDC)
        seller.sell_token(SUSHI)
        with pytest.raises(DuplicateOrderError):
            seller.sell_token(SUSHI)
        assert len(seller.orders) == 1

    @pytest.mark.asyncio
    async def test_duplicate_liquidation_holding_rejected(self, nested, reader):
        reader.holdings[1] = [(SUSHI, 10), (SUSHI, 20)]
        with pytest.raises(DuplicateOrderError):
            await nested.liquidate_to_wallet_and_destroy(1, USDC).refresh_assets()

    def test_duplicate_swap_from_accepted(self, nested):
        swapper = nested.swap_multi_to_single(1, USDC)
        swapper.swap_from(SUSHI)
        swapper.swap_from(SUSHI)
        assert len(swapper.orders) == 2

    def test_add_orders_for_different_outputs_accepted(self, nested):
        creator = nested.create_portfolio(USDC)
        creator.add_token(SUSHI)
        creator.add_token(DAI)
        assert len(creator.orders) == 2

    def test_duplicate_add_accepted(self, nested):
        adder = nested.add_tokens_to_portfolio(1, USDC)
        first = adder.add_token(SUSHI)
        second = adder.add_token(SUSHI)
        assert adder.orders.orders == (first, second)

    def test_duplicate_create_accepted(self, nested):
        creator = nested.create_portfolio(USDC)
        creator.add_token(SUSHI)
        creator.add_token(SUSHI)
        assert len(creator.orders) == 2

    def test_remove(self, nested):
        seller = nested.sell_tokens_to_wallet(1, USDC)
        order = seller.sell_token(SUSHI)
        order.remove()
        assert len(seller.orders) == 0
        # The token can be sold again
        seller.sell_token(SUSHI)


class TestOrderStruct:
    """Tests for the encoded sub-orders."""

    @pytest.mark.asyncio
    async def test_input_batch_names_output_token(self, nested, zeroex):
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount(1_000_000)
        await order.resolve()

        struct = order.order_struct

        assert struct.operator == to_bytes32("ZeroEx")
        assert struct.token == SUSHI
        sold, bought, payload = decode(["address", "address", "bytes"], struct.call_data)
        assert sold.lower() == USDC
        assert bought.lower() == SUSHI
        assert payload == bytes.fromhex(zeroex.payload[2:])

    @pytest.mark.asyncio
    async def test_swap_call_data_is_bare_arguments(self, nested, zeroex):
        order = nested.create_portfolio(USDC).add_token(SUSHI).set_input_amount(1_000_000)
        await order.resolve()

        expected = encode(
            ["address", "address", "bytes"],
            [USDC, SUSHI, bytes.fromhex(zeroex.payload[2:])],
        )
        assert order.order_struct.call_data == expected

    @pytest.mark.asyncio
    async def test_output_batch_names_input_token(self, nested):
        order = nested.sell_tokens_to_wallet(1, USDC).sell_token(SUSHI).set_input_amount(1000)
        await order.resolve()

        assert order.order_struct.token == SUSHI

    def test_flat_order(self):
        order = FlatOrder(DAI, 1000, BatchSide.INPUT, FeesOn.ENTRY)

        assert order.state == OrderState.QUOTED
        assert order.operator == "Flat"
        struct = order.order_struct
        assert struct.operator == to_bytes32("Flat")
        assert struct.token == DAI
        token, amount = decode(["address", "uint256"], struct.call_data)
        assert token.lower() == DAI
        assert amount == remove_fees(1000)

    def test_flat_call_data_is_bare_arguments(self):
        order = FlatOrder(DAI, 1000, BatchSide.OUTPUT, FeesOn.EXIT)

        assert order.order_struct.call_data == encode(["address", "uint256"], [DAI, 1000])

    def test_flat_order_on_exit_moves_full_amount(self):
        order = FlatOrder(DAI, 1000, BatchSide.OUTPUT, FeesOn.EXIT)
        assert order.transfer_amount == 1000


class TestOrderCollection:
    """Tests for OrderCollection projections."""

    @pytest.mark.asyncio
    async def test_projections_keep_insertion_order(self, nested):
        orders = OrderCollection(nested.tools)
        for token, amount in [(SUSHI, 300), (DAI, 100), (WMATIC, 200)]:
            order = TokenOrder(orders, token, USDC, 0.01, BatchSide.OUTPUT, FeesOn.EXIT)
            orders.add(order)
            order.set_input_amount(amount)

        await orders.resolve_all()

        assert orders.input_amounts == [300, 100, 200]
        assert [o.token for o in orders.nested_orders] == [SUSHI, DAI, WMATIC]
        assert orders.total_input == 600

    def test_require_orders(self, nested):
        orders = OrderCollection(nested.tools)
        with pytest.raises(NothingToDoError, match="Nothing to sell"):
            orders.require_orders("Nothing to sell")
