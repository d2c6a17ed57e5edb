"""Entry point: connect to a chain and get the portfolio operations."""

import logging
from decimal import Decimal
from typing import Optional, Union

from nested_sdk.aggregators.base import DexAggregator, Fetcher
from nested_sdk.aggregators.factory import create_resolver
from nested_sdk.chain_reader import ChainReader
from nested_sdk.chains import Chain, get_chain_config, infer_nft_id
from nested_sdk.config import Settings, get_settings
from nested_sdk.models import ExecOptions, PortfolioAsset
from nested_sdk.operations import (
    MultiToSingleSwapper,
    PortfolioCreator,
    PortfolioLiquidator,
    PortfolioSeller,
    PortfolioTokenAdder,
    SingleToMultiSwapper,
    build_deposit,
    build_withdrawal,
)
from nested_sdk.signer import LocalAccountSigner, Signer
from nested_sdk.tools import NestedTools

logger = logging.getLogger(__name__)

PortfolioId = Union[int, str]
Amount = Union[int, Decimal, str]


class NestedContracts:
    """Portfolio operations on one connected chain."""

    def __init__(self, tools: NestedTools):
        self.tools = tools

    @property
    def chain(self) -> Chain:
        return self.tools.chain

    def _nft_id(self, portfolio_id: PortfolioId) -> int:
        return infer_nft_id(portfolio_id, self.chain)

    def create_portfolio(self, budget_token: str) -> PortfolioCreator:
        """Start a portfolio creation paid with `budget_token` from the wallet."""
        return PortfolioCreator(self.tools, budget_token)

    def add_tokens_to_portfolio(self, portfolio_id: PortfolioId, budget_token: str) -> PortfolioTokenAdder:
        """Buy tokens into an existing portfolio with `budget_token` from the wallet."""
        return PortfolioTokenAdder(self.tools, self._nft_id(portfolio_id), budget_token)

    def swap_single_to_multi(self, portfolio_id: PortfolioId, token_to_spend: str) -> SingleToMultiSwapper:
        """Swap a token held by the portfolio into several others."""
        return SingleToMultiSwapper(self.tools, self._nft_id(portfolio_id), token_to_spend)

    def swap_multi_to_single(self, portfolio_id: PortfolioId, token_to_buy: str) -> MultiToSingleSwapper:
        """Swap several tokens held by the portfolio into one."""
        return MultiToSingleSwapper(self.tools, self._nft_id(portfolio_id), token_to_buy)

    def sell_tokens_to_wallet(self, portfolio_id: PortfolioId, token_to_receive: str) -> PortfolioSeller:
        """Sell tokens of the portfolio and receive `token_to_receive` in the wallet."""
        return PortfolioSeller(self.tools, self._nft_id(portfolio_id), token_to_receive)

    def liquidate_to_wallet_and_destroy(
        self,
        portfolio_id: PortfolioId,
        token_to_receive: str,
        slippage: Optional[float] = None,
    ) -> PortfolioLiquidator:
        """Sell everything to the wallet and burn the portfolio."""
        if slippage is None:
            slippage = self.tools.settings.default_slippage
        return PortfolioLiquidator(self.tools, self._nft_id(portfolio_id), token_to_receive, slippage)

    async def deposit_to_portfolio(
        self,
        portfolio_id: PortfolioId,
        token: str,
        amount: Amount,
        options: Optional[ExecOptions] = None,
    ) -> dict:
        """Transfer a wallet token into a portfolio without swapping it."""
        call = await build_deposit(self.tools, self._nft_id(portfolio_id), token, amount)
        return await self.tools.send(call, options)

    async def withdraw_from_portfolio(
        self,
        portfolio_id: PortfolioId,
        token: str,
        amount: Amount,
        options: Optional[ExecOptions] = None,
    ) -> dict:
        """Transfer a token held by a portfolio to the wallet without swapping it."""
        call = await build_withdrawal(self.tools, self._nft_id(portfolio_id), token, amount)
        return await self.tools.send(call, options)

    async def get_assets(self, portfolio_id: PortfolioId) -> list[PortfolioAsset]:
        """Tokens currently held by a portfolio."""
        reader = self.tools.reader
        records = await reader.nested_records(self.tools.factory_address)
        holdings = await reader.token_holdings(records, self._nft_id(portfolio_id))
        return [PortfolioAsset(token=token, amount=amount) for token, amount in holdings]


def connect(
    chain: Union[Chain, str, int],
    signer: Optional[Signer] = None,
    private_key: Optional[str] = None,
    provider_url: Optional[str] = None,
    only_use_aggregators: Optional[list[str]] = None,
    aggregators: Optional[list[DexAggregator]] = None,
    paraswap_fetcher: Optional[Fetcher] = None,
    zeroex_fetcher: Optional[Fetcher] = None,
    reader: Optional[ChainReader] = None,
    settings: Optional[Settings] = None,
) -> NestedContracts:
    """Connect to the Nested factory of a chain.

    Args:
        chain: Chain identifier (e.g. "poly")
        signer: Signer used to send transactions (read-only if omitted)
        private_key: Shortcut building a LocalAccountSigner
        provider_url: RPC URL (defaults to settings, then the chain default)
        only_use_aggregators: Aggregator names allowed to quote (all if None)
        aggregators: Explicit aggregator adapters, in priority order
        paraswap_fetcher: Hook replacing ParaSwap HTTP calls
        zeroex_fetcher: Hook replacing 0x HTTP calls
        reader: Explicit chain reader
        settings: SDK settings (uses get_settings() if not provided)

    Raises:
        UnsupportedChainError: If no factory is deployed on the chain
    """
    settings = settings or get_settings()
    config = get_chain_config(chain)

    if reader is None:
        rpc_url = provider_url or settings.get_rpc_url(config.chain.value) or config.provider_url
        reader = ChainReader(rpc_url)

    if signer is None and private_key:
        signer = LocalAccountSigner(
            private_key,
            reader,
            config.chain_id,
            receipt_timeout=settings.receipt_timeout,
            poll_interval=settings.receipt_poll_interval,
        )

    if only_use_aggregators is None:
        only_use_aggregators = settings.aggregator_allow_list

    resolver = create_resolver(settings, aggregators, paraswap_fetcher, zeroex_fetcher)
    logger.info(
        f"Connected to {config.chain.value} factory {config.factory_address} "
        f"(aggregators: {only_use_aggregators or 'all'}, signer: {'yes' if signer else 'no'})"
    )

    tools = NestedTools(
        config=config,
        reader=reader,
        resolver=resolver,
        settings=settings,
        signer=signer,
        only_use_aggregators=only_use_aggregators,
    )
    return NestedContracts(tools)
