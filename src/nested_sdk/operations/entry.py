"""Operations spending one token into several portfolio tokens.

All of them build an INPUT batch with fees taken on entry:
- PortfolioCreator: wallet budget -> new portfolio (create)
- PortfolioTokenAdder: wallet budget -> existing portfolio (addTokens)
- SingleToMultiSwapper: portfolio reserve -> portfolio tokens (processInputOrders)
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from eth_utils import keccak

from nested_sdk.abi import FACTORY_ENCODER, BatchedInputOrders
from nested_sdk.chains import NATIVE_TOKEN, ZERO_ADDRESS, normalize, wrap
from nested_sdk.models import CallData, CreatedPortfolio, ExecOptions
from nested_sdk.orders import BatchSide, FeesOn, OrderCollection, TokenOrder
from nested_sdk.tools import NestedTools

logger = logging.getLogger(__name__)

# ERC721 Transfer(address,address,uint256)
TRANSFER_TOPIC = "0x" + keccak(text="Transfer(address,address,uint256)").hex()


def _entry_order(
    orders: OrderCollection,
    spent_token: str,
    token: str,
    slippage: Optional[float],
) -> TokenOrder:
    """Create and register an order buying `token` with the spent token."""
    tools = orders.tools
    if slippage is None:
        slippage = tools.settings.default_slippage
    # The factory wraps a native budget before swapping it
    order = TokenOrder(
        orders,
        wrap(tools.chain, spent_token),
        wrap(tools.chain, token),
        slippage,
        BatchSide.INPUT,
        FeesOn.ENTRY,
    )
    orders.add(order)
    return order


class PortfolioCreator:
    """Creates a new portfolio from a wallet budget."""

    def __init__(self, tools: NestedTools, spent_token: str):
        self.tools = tools
        self.spent_token = normalize(spent_token)
        self.orders = OrderCollection(tools)

    def add_token(self, token: str, slippage: Optional[float] = None) -> TokenOrder:
        """Add a token to buy; set its amount on the returned order."""
        return _entry_order(self.orders, self.spent_token, token, slippage)

    async def total_budget(self) -> int:
        await self.orders.resolve_all()
        return self.orders.total_input

    async def is_approved(self) -> bool:
        return await self.tools.is_approved(self.spent_token, await self.total_budget())

    async def approve(
        self,
        amount: Optional[Union[int, Decimal, str]] = None,
        options: Optional[ExecOptions] = None,
    ) -> Optional[dict]:
        """Approve the factory (unlimited by default)."""
        if amount is not None:
            amount = await self.tools.to_token_amount(self.spent_token, amount)
        return await self.tools.approve(self.spent_token, amount, options)

    async def build_call_data(self) -> CallData:
        self.orders.require_orders("Nothing to create")
        await self.orders.resolve_all()
        total = self.orders.total_input
        logger.info(f"Creating portfolio with {len(self.orders)} orders, budget {total} {self.spent_token}")
        return CallData(
            to=self.tools.factory_address,
            data=FACTORY_ENCODER.encode_hex(
                "create",
                [0, self.spent_token, total, [o.as_abi() for o in self.orders.nested_orders]],
            ),
            value=total if self.spent_token == NATIVE_TOKEN else 0,
        )

    async def execute(self, options: Optional[ExecOptions] = None) -> CreatedPortfolio:
        """Send the creation and return the new portfolio id."""
        call = await self.build_call_data()
        receipt = await self.tools.send(call, options)
        nft_id = self._minted_nft_id(receipt)
        return CreatedPortfolio(
            id=f"{self.tools.chain.value}:{nft_id}",
            id_in_chain=hex(nft_id),
            receipt=receipt,
        )

    def _minted_nft_id(self, receipt: dict) -> int:
        """Read the NFT id from the mint Transfer event (from = zero address)."""
        for log in receipt.get("logs", []):
            topics = log.get("topics", [])
            if len(topics) == 4 and topics[0].lower() == TRANSFER_TOPIC:
                if int(topics[1], 16) == int(ZERO_ADDRESS, 16):
                    return int(topics[3], 16)
        raise ValueError(
            f"No portfolio mint event in transaction {receipt.get('transactionHash')}"
        )


class PortfolioTokenAdder:
    """Adds tokens bought with a wallet budget to an existing portfolio."""

    def __init__(self, tools: NestedTools, nft_id: int, spent_token: str):
        self.tools = tools
        self.nft_id = nft_id
        self.spent_token = normalize(spent_token)
        self.orders = OrderCollection(tools)

    def add_token(self, token: str, slippage: Optional[float] = None) -> TokenOrder:
        return _entry_order(self.orders, self.spent_token, token, slippage)

    async def total_budget(self) -> int:
        await self.orders.resolve_all()
        return self.orders.total_input

    async def is_approved(self) -> bool:
        return await self.tools.is_approved(self.spent_token, await self.total_budget())

    async def approve(
        self,
        amount: Optional[Union[int, Decimal, str]] = None,
        options: Optional[ExecOptions] = None,
    ) -> Optional[dict]:
        if amount is not None:
            amount = await self.tools.to_token_amount(self.spent_token, amount)
        return await self.tools.approve(self.spent_token, amount, options)

    async def build_call_data(self) -> CallData:
        self.orders.require_orders("Nothing to add")
        await self.orders.resolve_all()
        total = self.orders.total_input
        logger.info(
            f"Adding {len(self.orders)} tokens to portfolio {self.nft_id}, "
            f"budget {total} {self.spent_token}"
        )
        return CallData(
            to=self.tools.factory_address,
            data=FACTORY_ENCODER.encode_hex(
                "addTokens",
                [self.nft_id, self.spent_token, total, [o.as_abi() for o in self.orders.nested_orders]],
            ),
            value=total if self.spent_token == NATIVE_TOKEN else 0,
        )

    async def execute(self, options: Optional[ExecOptions] = None) -> dict:
        return await self.tools.send(await self.build_call_data(), options)


class SingleToMultiSwapper:
    """Swaps a token held by a portfolio into several other tokens of the same portfolio."""

    def __init__(self, tools: NestedTools, nft_id: int, spent_token: str):
        self.tools = tools
        self.nft_id = nft_id
        # Portfolios only hold ERC20s
        self.spent_token = wrap(tools.chain, spent_token)
        self.orders = OrderCollection(tools)

    def swap_to(self, token: str, slippage: Optional[float] = None) -> TokenOrder:
        """Add a token to buy with the reserve; set its amount on the returned order."""
        return _entry_order(self.orders, self.spent_token, token, slippage)

    async def build_call_data(self) -> CallData:
        self.orders.require_orders("Nothing to swap")
        await self.orders.resolve_all()
        batch = BatchedInputOrders(
            input_token=self.spent_token,
            amount=self.orders.total_input,
            orders=self.orders.nested_orders,
            from_reserve=True,
        )
        logger.info(
            f"Swapping {batch.amount} {self.spent_token} into {len(self.orders)} tokens "
            f"in portfolio {self.nft_id}"
        )
        return CallData(
            to=self.tools.factory_address,
            data=FACTORY_ENCODER.encode_hex("processInputOrders", [self.nft_id, [batch.as_abi()]]),
        )

    async def execute(self, options: Optional[ExecOptions] = None) -> dict:
        return await self.tools.send(await self.build_call_data(), options)
