"""Command line entry point.

Usage:
    python -m nested_sdk quote --chain poly --sell <token> --buy <token> --amount <int>
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from nested_sdk.aggregators.base import SwapRequest
from nested_sdk.aggregators.factory import create_resolver
from nested_sdk.chain_reader import ChainReader
from nested_sdk.chains import DEFAULT_CONTRACTS, Chain
from nested_sdk.config import get_settings
from nested_sdk.errors import NestedSDKError, QuoteFailedError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nested_sdk", description="Nested portfolio SDK tools")
    commands = parser.add_subparsers(dest="command", required=True)

    quote = commands.add_parser("quote", help="Get the best aggregator quote for a swap")
    quote.add_argument("--chain", required=True, choices=[c.value for c in Chain])
    quote.add_argument("--sell", required=True, help="Token to spend")
    quote.add_argument("--buy", required=True, help="Token to buy")
    quote.add_argument("--amount", required=True, type=int, help="Amount in base units")
    quote.add_argument(
        "--side",
        choices=["sell", "buy"],
        default="sell",
        help="Whether --amount is the spent (sell) or bought (buy) quantity",
    )
    quote.add_argument("--slippage", type=float, default=None)
    quote.add_argument("--sell-decimals", type=int, default=None)
    quote.add_argument("--buy-decimals", type=int, default=None)
    quote.add_argument(
        "--only",
        action="append",
        default=None,
        help="Aggregator allowed to quote (repeatable)",
    )
    quote.add_argument("--debug", action="store_true")
    return parser


async def run_quote(args: argparse.Namespace) -> int:
    settings = get_settings()
    chain = Chain(args.chain)
    reader = ChainReader(settings.get_rpc_url(chain.value) or DEFAULT_CONTRACTS[chain].provider_url)

    sell_decimals: Optional[int] = args.sell_decimals
    if sell_decimals is None:
        sell_decimals = await reader.decimals(args.sell)
    buy_decimals: Optional[int] = args.buy_decimals
    if buy_decimals is None:
        buy_decimals = await reader.decimals(args.buy)

    quantity = {"spend_qty": args.amount} if args.side == "sell" else {"bought_qty": args.amount}
    request = SwapRequest(
        chain=chain,
        spend_token=args.sell.lower(),
        buy_token=args.buy.lower(),
        slippage=args.slippage if args.slippage is not None else settings.default_slippage,
        spend_token_decimals=sell_decimals,
        buy_token_decimals=buy_decimals,
        **quantity,
    )

    resolver = create_resolver(settings)
    allowed = args.only if args.only is not None else settings.aggregator_allow_list
    try:
        quote = await resolver.resolve(request, allowed)
    except QuoteFailedError as e:
        print(f"Quote failed: {e.reason.value}", file=sys.stderr)
        for failure in e.failures:
            print(f"  {failure}", file=sys.stderr)
        return 1

    print(f"Aggregator:   {quote.aggregator.value}")
    print(f"Sell amount:  {quote.sell_amount}")
    print(f"Buy amount:   {quote.buy_amount}")
    print(f"Price:        {quote.price}")
    print(f"Price impact: {quote.estimated_price_impact}")
    print(f"Target:       {quote.to}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    log_level = logging.DEBUG if (args.debug or settings.debug) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(run_quote(args))
    except NestedSDKError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
