"""Operations converting several portfolio tokens into a single token.

All of them build an OUTPUT batch (one order per sold token):
- MultiToSingleSwapper: tokens -> one token kept in the portfolio (fees on entry)
- PortfolioSeller: tokens -> wallet (fees on exit)
- PortfolioLiquidator: all holdings -> wallet, then burns the portfolio
"""

import logging
from typing import Optional

from nested_sdk.abi import FACTORY_ENCODER, BatchedOutputOrders
from nested_sdk.chains import wrap
from nested_sdk.models import CallData, ExecOptions, PortfolioAsset
from nested_sdk.orders import BatchSide, FeesOn, OrderCollection, TokenOrder
from nested_sdk.tools import NestedTools

logger = logging.getLogger(__name__)


def _exit_order(
    orders: OrderCollection,
    token: str,
    received_token: str,
    slippage: Optional[float],
    fees: FeesOn,
) -> TokenOrder:
    """Create and register an order selling `token` for the received token."""
    tools = orders.tools
    if slippage is None:
        slippage = tools.settings.default_slippage
    order = TokenOrder(
        orders,
        wrap(tools.chain, token),
        received_token,
        slippage,
        BatchSide.OUTPUT,
        fees,
    )
    orders.add(order)
    return order


def _process_output_orders(
    tools: NestedTools,
    nft_id: int,
    orders: OrderCollection,
    output_token: str,
    to_reserve: bool,
) -> CallData:
    batch = BatchedOutputOrders(
        output_token=output_token,
        amounts=orders.input_amounts,
        orders=orders.nested_orders,
        to_reserve=to_reserve,
    )
    return CallData(
        to=tools.factory_address,
        data=FACTORY_ENCODER.encode_hex("processOutputOrders", [nft_id, [batch.as_abi()]]),
    )


class MultiToSingleSwapper:
    """Swaps several tokens of a portfolio into one token kept in the portfolio."""

    def __init__(self, tools: NestedTools, nft_id: int, to_token: str):
        self.tools = tools
        self.nft_id = nft_id
        self.to_token = wrap(tools.chain, to_token)
        self.orders = OrderCollection(tools)

    def swap_from(self, token: str, slippage: Optional[float] = None) -> TokenOrder:
        """Add a token to sell; set its amount on the returned order."""
        return _exit_order(self.orders, token, self.to_token, slippage, FeesOn.ENTRY)

    async def build_call_data(self) -> CallData:
        self.orders.require_orders("Nothing to swap")
        await self.orders.resolve_all()
        logger.info(
            f"Swapping {len(self.orders)} tokens into {self.to_token} in portfolio {self.nft_id}"
        )
        return _process_output_orders(self.tools, self.nft_id, self.orders, self.to_token, True)

    async def execute(self, options: Optional[ExecOptions] = None) -> dict:
        return await self.tools.send(await self.build_call_data(), options)


class PortfolioSeller:
    """Sells tokens of a portfolio and sends the proceeds to the wallet."""

    def __init__(self, tools: NestedTools, nft_id: int, received_token: str):
        self.tools = tools
        self.nft_id = nft_id
        # The factory unwraps the wrapped native token when sending it out
        self.received_token = wrap(tools.chain, received_token)
        self.orders = OrderCollection(tools, unique_tokens=True)

    def sell_token(self, token: str, slippage: Optional[float] = None) -> TokenOrder:
        """Add a token to sell; set its amount on the returned order."""
        return _exit_order(self.orders, token, self.received_token, slippage, FeesOn.EXIT)

    async def build_call_data(self) -> CallData:
        self.orders.require_orders("Nothing to sell")
        await self.orders.resolve_all()
        logger.info(
            f"Selling {len(self.orders)} tokens of portfolio {self.nft_id} for {self.received_token}"
        )
        return _process_output_orders(
            self.tools, self.nft_id, self.orders, self.received_token, False
        )

    async def execute(self, options: Optional[ExecOptions] = None) -> dict:
        return await self.tools.send(await self.build_call_data(), options)


class PortfolioLiquidator:
    """Sells every holding of a portfolio to the wallet and burns it.

    Call refresh_assets() to (re)build the orders from the current holdings;
    build_call_data() does it once if it was never called.
    """

    def __init__(self, tools: NestedTools, nft_id: int, received_token: str, slippage: float):
        self.tools = tools
        self.nft_id = nft_id
        self.received_token = wrap(tools.chain, received_token)
        self.slippage = slippage
        self.orders = OrderCollection(tools, unique_tokens=True)
        self._refreshed = False

    async def refresh_assets(self) -> list[PortfolioAsset]:
        """Rebuild one order per held token (the received token is kept as is)."""
        records = await self.tools.reader.nested_records(self.tools.factory_address)
        holdings = await self.tools.reader.token_holdings(records, self.nft_id)

        self.orders = OrderCollection(self.tools, unique_tokens=True)
        assets = []
        for token, amount in holdings:
            assets.append(PortfolioAsset(token=token, amount=amount))
            if token == self.received_token or amount == 0:
                continue
            _exit_order(
                self.orders, token, self.received_token, self.slippage, FeesOn.EXIT
            ).set_input_amount(amount)

        self._refreshed = True
        logger.debug(f"Portfolio {self.nft_id} holds {len(assets)} tokens, {len(self.orders)} to sell")
        return assets

    async def build_call_data(self) -> CallData:
        if not self._refreshed:
            await self.refresh_assets()
        await self.orders.resolve_all()
        logger.info(
            f"Liquidating portfolio {self.nft_id} ({len(self.orders)} orders) to {self.received_token}"
        )
        return CallData(
            to=self.tools.factory_address,
            data=FACTORY_ENCODER.encode_hex(
                "destroy",
                [self.nft_id, self.received_token, [o.as_abi() for o in self.orders.nested_orders]],
            ),
        )

    async def execute(self, options: Optional[ExecOptions] = None) -> dict:
        return await self.tools.send(await self.build_call_data(), options)
