"""Capabilities shared by every operation of a connection."""

import logging
from decimal import Decimal
from typing import Optional, Union

from nested_sdk.abi import ERC20_ENCODER, MAX_UINT256
from nested_sdk.aggregators.base import QuoteResult, SwapRequest
from nested_sdk.aggregators.resolver import QuoteResolver
from nested_sdk.chain_reader import ChainReader
from nested_sdk.chains import NATIVE_TOKEN, Chain, ChainConfig, normalize
from nested_sdk.config import Settings
from nested_sdk.errors import MissingSignerError
from nested_sdk.models import CallData, ExecOptions
from nested_sdk.signer import Signer
from nested_sdk.utils.math import to_base_units

logger = logging.getLogger(__name__)


class NestedTools:
    """Chain access, quoting and signing for one connected chain."""

    def __init__(
        self,
        config: ChainConfig,
        reader: ChainReader,
        resolver: QuoteResolver,
        settings: Settings,
        signer: Optional[Signer] = None,
        only_use_aggregators: Optional[list[str]] = None,
    ):
        self.config = config
        self.reader = reader
        self.resolver = resolver
        self.settings = settings
        self.signer = signer
        self.only_use_aggregators = only_use_aggregators

    @property
    def chain(self) -> Chain:
        return self.config.chain

    @property
    def factory_address(self) -> str:
        return self.config.factory_address

    def require_signer(self) -> Signer:
        if self.signer is None:
            raise MissingSignerError()
        return self.signer

    async def user_address(self) -> Optional[str]:
        """Address of the signer, if any (used as taker address in quotes)."""
        if self.signer is None:
            return None
        return await self.signer.get_address()

    async def get_decimals(self, token: str) -> int:
        return await self.reader.decimals(token)

    async def to_token_amount(self, token: str, amount: Union[int, Decimal, str]) -> int:
        """Convert an amount to base units.

        Ints are already base units; Decimals and strings are human-readable
        amounts scaled by the token decimals.
        """
        if isinstance(amount, int):
            return amount
        value = to_base_units(Decimal(amount), await self.get_decimals(token))
        if value < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        return value

    async def fetch_quote(self, request: SwapRequest) -> QuoteResult:
        return await self.resolver.resolve(request, self.only_use_aggregators)

    # ======================
    # Allowances
    # ======================

    async def is_approved(self, token: str, amount: Optional[int] = None) -> bool:
        """Whether the factory may spend `amount` (any amount if None) of a token."""
        token = normalize(token)
        if token == NATIVE_TOKEN:
            return True
        owner = await self.require_signer().get_address()
        allowance = await self.reader.allowance(token, owner, self.factory_address)
        if amount is None:
            return allowance > 0
        return allowance >= amount

    async def approve(
        self,
        token: str,
        amount: Optional[int] = None,
        options: Optional[ExecOptions] = None,
    ) -> Optional[dict]:
        """Allow the factory to spend a token (unlimited if amount is None).

        Returns:
            The approval receipt, or None for the native token
        """
        token = normalize(token)
        if token == NATIVE_TOKEN:
            return None
        amount = MAX_UINT256 if amount is None else amount
        call = CallData(
            to=token,
            data=ERC20_ENCODER.encode_hex("approve", [self.factory_address, amount]),
        )
        logger.info(f"Approving {amount} of {token} for factory {self.factory_address}")
        return await self.send(call, options)

    async def send(self, call: CallData, options: Optional[ExecOptions] = None) -> dict:
        """Sign and send a call, returning its receipt."""
        signer = self.require_signer()
        return await signer.send_transaction(call.with_options(options))
