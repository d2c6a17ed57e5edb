"""0x aggregator adapter.

A single GET /swap/v1/quote returns both the price and ready-to-use calldata
(the slippage floor is applied by 0x from `slippagePercentage`).
API docs: https://0x.org/docs/0x-swap-api/api-references/get-swap-v1-quote
"""

import logging
from typing import Optional

from nested_sdk.aggregators.base import (
    AggregatorError,
    AggregatorName,
    DexAggregator,
    QuoteResult,
    SwapRequest,
    SwapSide,
)
from nested_sdk.chains import Chain
from nested_sdk.errors import QuoteErrorReason
from nested_sdk.utils.math import divide_amounts

logger = logging.getLogger(__name__)

# 0x API hosts by chain
ZEROEX_HOSTS = {
    Chain.ETH: "https://api.0x.org",
    Chain.BSC: "https://bsc.api.0x.org",
    Chain.POLY: "https://polygon.api.0x.org",
    Chain.AVAX: "https://avalanche.api.0x.org",
    Chain.FTM: "https://fantom.api.0x.org",
    Chain.CELO: "https://celo.api.0x.org",
    Chain.OPTI: "https://optimism.api.0x.org",
    Chain.ROP: "https://ropsten.api.0x.org",
}

INSUFFICIENT_LIQUIDITY = "INSUFFICIENT_ASSET_LIQUIDITY"


def parse_error(body: object, status_code: int) -> tuple[QuoteErrorReason, str]:
    """Read a 0x error envelope {code, reason, validationErrors}."""
    if not isinstance(body, dict):
        reason = (
            QuoteErrorReason.UPSTREAM_UNAVAILABLE
            if status_code >= 500
            else QuoteErrorReason.UNKNOWN_ERROR
        )
        return reason, f"unexpected response ({status_code})"

    validation_errors = body.get("validationErrors") or []
    details = [
        f"{error.get('field')}: {error.get('reason')}"
        for error in validation_errors
        if isinstance(error, dict)
    ]
    message = str(body.get("reason") or body.get("message") or "unknown error")
    if details:
        message = f"{message} [{', '.join(details)}]"

    if any(
        isinstance(error, dict) and error.get("reason") == INSUFFICIENT_LIQUIDITY
        for error in validation_errors
    ) or body.get("reason") == INSUFFICIENT_LIQUIDITY:
        return QuoteErrorReason.INSUFFICIENT_ASSET_LIQUIDITY, message
    if status_code >= 500:
        return QuoteErrorReason.UPSTREAM_UNAVAILABLE, message
    if status_code >= 400:
        return QuoteErrorReason.INVALID_REQUEST, message
    return QuoteErrorReason.UNKNOWN_ERROR, message


class ZeroExAggregator(DexAggregator):
    """0x Swap API v1 adapter."""

    name = AggregatorName.ZEROEX

    def __init__(
        self,
        api_key: Optional[str] = None,
        hosts: Optional[dict[Chain, str]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.hosts = hosts or ZEROEX_HOSTS

    def supports_chain(self, chain: Chain) -> bool:
        return chain in self.hosts

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["0x-api-key"] = self.api_key
        return headers

    async def _fetch(self, request: SwapRequest) -> Optional[dict]:
        params = {
            "sellToken": request.spend_token,
            "buyToken": request.buy_token,
            "slippagePercentage": str(request.slippage),
            "excludedSources": "ParaSwap",
            "skipValidation": "true",
        }
        if request.side == SwapSide.SELL:
            params["sellAmount"] = str(request.quantity)
        else:
            params["buyAmount"] = str(request.quantity)
        if request.user_address:
            params["takerAddress"] = request.user_address

        logger.debug(f"0x quote request: {params}")
        response = await self._request(
            "GET",
            f"{self.hosts[request.chain]}/swap/v1/quote",
            params=params,
            headers=self._get_headers(),
        )

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code != 200 or not isinstance(body, dict):
            reason, message = parse_error(body, response.status_code)
            raise AggregatorError(
                reason,
                f"Failed to fetch 0x quote: {message} ({response.status_code})",
                response.status_code,
            )
        return body

    def _to_quote(self, answer: dict, request: SwapRequest) -> QuoteResult:
        buy_amount = int(answer["buyAmount"])
        sell_amount = int(answer["sellAmount"])
        price = divide_amounts(buy_amount, sell_amount).scaleb(request.spend_token_decimals)

        return QuoteResult(
            aggregator=self.name,
            chain_id=int(answer["chainId"]),
            price=str(int(price)),
            to=answer["to"],
            data=answer["data"],
            value=str(answer.get("value", "0")),
            protocol_fee=str(answer.get("protocolFee", "0")),
            buy_token_address=answer["buyTokenAddress"],
            sell_token_address=answer["sellTokenAddress"],
            buy_amount=buy_amount,
            sell_amount=sell_amount,
            allowance_target=answer["allowanceTarget"],
            estimated_price_impact=str(answer.get("estimatedPriceImpact") or "0"),
            guaranteed_price=str(answer.get("guaranteedPrice", "0")),
            raw=answer,
        )
