"""Moving a token in or out of a portfolio without swapping it."""

import logging
from decimal import Decimal
from typing import Union

from nested_sdk.abi import FACTORY_ENCODER, BatchedOutputOrders
from nested_sdk.chains import NATIVE_TOKEN, normalize, wrap
from nested_sdk.models import CallData
from nested_sdk.orders import BatchSide, FeesOn, FlatOrder
from nested_sdk.tools import NestedTools

logger = logging.getLogger(__name__)


async def build_deposit(
    tools: NestedTools,
    nft_id: int,
    token: str,
    amount: Union[int, Decimal, str],
) -> CallData:
    """Build an addTokens call transferring `amount` of a wallet token as is.

    A native deposit ends up in the portfolio as the wrapped native token.
    """
    token = normalize(token)
    total = await tools.to_token_amount(token, amount)
    order = FlatOrder(wrap(tools.chain, token), total, BatchSide.INPUT, FeesOn.ENTRY)
    logger.info(f"Depositing {total} {token} into portfolio {nft_id}")
    return CallData(
        to=tools.factory_address,
        data=FACTORY_ENCODER.encode_hex(
            "addTokens", [nft_id, token, total, [order.order_struct.as_abi()]]
        ),
        value=total if token == NATIVE_TOKEN else 0,
    )


async def build_withdrawal(
    tools: NestedTools,
    nft_id: int,
    token: str,
    amount: Union[int, Decimal, str],
) -> CallData:
    """Build a processOutputOrders call sending `amount` of a held token to the wallet."""
    token = wrap(tools.chain, token)
    total = await tools.to_token_amount(token, amount)
    order = FlatOrder(token, total, BatchSide.OUTPUT, FeesOn.EXIT)
    batch = BatchedOutputOrders(
        output_token=token,
        amounts=[order.input_qty],
        orders=[order.order_struct],
        to_reserve=False,
    )
    logger.info(f"Withdrawing {total} {token} from portfolio {nft_id}")
    return CallData(
        to=tools.factory_address,
        data=FACTORY_ENCODER.encode_hex("processOutputOrders", [nft_id, [batch.as_abi()]]),
    )
