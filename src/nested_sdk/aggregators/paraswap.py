"""ParaSwap aggregator adapter.

Two calls per quote: GET /prices for the best route, then
POST /transactions/{network} to build the calldata with a slippage bound.
API docs: https://developers.paraswap.network/api/master
"""

import logging
from typing import Optional

import httpx

from nested_sdk.aggregators.base import (
    AggregatorError,
    AggregatorName,
    DexAggregator,
    QuoteResult,
    SwapRequest,
    SwapSide,
)
from nested_sdk.chains import ZERO_ADDRESS, Chain
from nested_sdk.errors import QuoteErrorReason
from nested_sdk.utils.math import divide_amounts, safe_mult

logger = logging.getLogger(__name__)

PARASWAP_API_V5 = "https://apiv5.paraswap.io"

# ParaSwap network ids
PARASWAP_NETWORKS = {
    Chain.ETH: 1,
    Chain.BSC: 56,
    Chain.POLY: 137,
    Chain.AVAX: 43114,
}

# Error messages that mean the pair cannot absorb the requested size
LIQUIDITY_ERRORS = (
    "liquidity",
    "no routes found",
    "estimated_loss_greater_than_max_impact",
)


def classify_error(message: str, status_code: Optional[int]) -> QuoteErrorReason:
    """Map a ParaSwap error message to a quote error reason."""
    lowered = message.lower()
    if any(marker in lowered for marker in LIQUIDITY_ERRORS):
        return QuoteErrorReason.INSUFFICIENT_ASSET_LIQUIDITY
    if status_code is not None and status_code >= 500:
        return QuoteErrorReason.UPSTREAM_UNAVAILABLE
    if status_code is not None and status_code >= 400:
        return QuoteErrorReason.INVALID_REQUEST
    return QuoteErrorReason.UNKNOWN_ERROR


class ParaSwapAggregator(DexAggregator):
    """ParaSwap v5 adapter."""

    name = AggregatorName.PARASWAP

    def __init__(self, base_url: str = PARASWAP_API_V5, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def supports_chain(self, chain: Chain) -> bool:
        return chain in PARASWAP_NETWORKS

    def _parse(self, response: httpx.Response, step: str) -> dict:
        """Decode a response, raising AggregatorError on error envelopes."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            raise AggregatorError(
                classify_error(response.text, response.status_code),
                f"Failed to fetch ParaSwap {step}: unexpected response ({response.status_code})",
                response.status_code,
            )

        message = body.get("error") or body.get("message")
        if response.status_code != 200 or message:
            message = str(message or response.text)
            raise AggregatorError(
                classify_error(message, response.status_code),
                f"Failed to fetch ParaSwap {step}: {message} ({response.status_code})",
                response.status_code,
            )
        return body

    async def _fetch(self, request: SwapRequest) -> Optional[dict]:
        network = PARASWAP_NETWORKS[request.chain]

        params = {
            "srcToken": request.spend_token,
            "destToken": request.buy_token,
            "amount": str(request.quantity),
            "srcDecimals": request.spend_token_decimals,
            "destDecimals": request.buy_token_decimals,
            "side": request.side.value,
            "network": network,
            "excludeDEXS": "0x",
        }
        if request.user_address:
            params["userAddress"] = request.user_address

        logger.debug(f"ParaSwap price request: {params}")
        response = await self._request("GET", f"{self.base_url}/prices", params=params)
        price_route = self._parse(response, "quote")["priceRoute"]

        # Bound the other side of the trade by the slippage tolerance. In buy
        # mode destAmount is the exact amount bought, so the tolerance caps the
        # spent amount instead of lowering the received floor.
        if request.side == SwapSide.SELL:
            src_amount = str(price_route["srcAmount"])
            dest_amount = str(safe_mult(int(price_route["destAmount"]), 1 - request.slippage))
        else:
            src_amount = str(safe_mult(int(price_route["srcAmount"]), 1 + request.slippage))
            dest_amount = str(price_route["destAmount"])

        body = {
            "srcToken": request.spend_token,
            "destToken": request.buy_token,
            "srcAmount": src_amount,
            "destAmount": dest_amount,
            "priceRoute": price_route,
            "userAddress": request.user_address or ZERO_ADDRESS,
            "srcDecimals": request.spend_token_decimals,
            "destDecimals": request.buy_token_decimals,
        }
        response = await self._request(
            "POST",
            f"{self.base_url}/transactions/{network}",
            params={"ignoreChecks": "true", "ignoreGasEstimate": "true"},
            json=body,
        )
        transaction = self._parse(response, "transaction")

        return {"priceRoute": price_route, "transaction": transaction}

    def _to_quote(self, answer: dict, request: SwapRequest) -> QuoteResult:
        route = answer["priceRoute"]
        transaction = answer["transaction"]

        src_amount = int(route["srcAmount"])
        dest_amount = int(route["destAmount"])
        price = divide_amounts(dest_amount, src_amount).scaleb(int(route["srcDecimals"]))

        src_usd = float(route.get("srcUSD") or 0)
        dest_usd = float(route.get("destUSD") or 0)
        price_impact = src_usd / dest_usd - 1 if dest_usd else 0.0

        return QuoteResult(
            aggregator=self.name,
            chain_id=int(route["network"]),
            price=str(int(price)),
            to=transaction["to"],
            data=transaction["data"],
            value=str(transaction.get("value", "0")),
            protocol_fee=str(route.get("partnerFee", 0)),
            buy_token_address=route["destToken"],
            sell_token_address=route["srcToken"],
            buy_amount=dest_amount,
            sell_amount=src_amount,
            allowance_target=route["tokenTransferProxy"],
            estimated_price_impact=str(price_impact),
            raw=answer,
        )
