"""ABI encoding for the Nested factory, its operators and ERC20 tokens.

The struct layouts below must match the deployed factory byte for byte:

    struct Order { bytes32 operator; address token; bytes callData; }
    struct BatchedInputOrders { address inputToken; uint256 amount; Order[] orders; bool fromReserve; }
    struct BatchedOutputOrders { address outputToken; uint256[] amounts; Order[] orders; bool toReserve; }
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_bytes

logger = logging.getLogger(__name__)

ORDER = "(bytes32,address,bytes)"
BATCHED_INPUT_ORDERS = f"(address,uint256,{ORDER}[],bool)"
BATCHED_OUTPUT_ORDERS = f"(address,uint256[],{ORDER}[],bool)"

MAX_UINT256 = 2**256 - 1

# Operator tags registered in the factory's operator resolver
OPERATOR_FLAT = "Flat"


def to_bytes32(text: str) -> bytes:
    """Right-pad an ASCII label to a bytes32 value."""
    raw = text.encode("ascii")
    if len(raw) > 32:
        raise ValueError(f"Label too long for bytes32: {text}")
    return raw.ljust(32, b"\x00")


def hex_to_bytes(data: str) -> bytes:
    """Decode 0x-prefixed hex (an empty '0x' gives b'')."""
    return to_bytes(hexstr=data) if data and data != "0x" else b""


@dataclass
class NestedOrder:
    """One sub-order of a batch, as consumed by the factory."""

    operator: bytes
    token: str
    call_data: bytes

    def as_abi(self) -> tuple:
        return (self.operator, self.token, self.call_data)


@dataclass
class BatchedInputOrders:
    """Orders spending `amount` of a single input token."""

    input_token: str
    amount: int
    orders: list[NestedOrder] = field(default_factory=list)
    from_reserve: bool = False

    def as_abi(self) -> tuple:
        return (
            self.input_token,
            self.amount,
            [order.as_abi() for order in self.orders],
            self.from_reserve,
        )


@dataclass
class BatchedOutputOrders:
    """Orders converting several tokens into a single output token.

    `amounts[i]` is the quantity sold by `orders[i]`.
    """

    output_token: str
    amounts: list[int]
    orders: list[NestedOrder]
    to_reserve: bool = False

    def __post_init__(self):
        if len(self.amounts) != len(self.orders):
            raise ValueError(
                f"amounts and orders must be index-aligned "
                f"({len(self.amounts)} amounts, {len(self.orders)} orders)"
            )

    def as_abi(self) -> tuple:
        return (
            self.output_token,
            list(self.amounts),
            [order.as_abi() for order in self.orders],
            self.to_reserve,
        )


class AbiCallEncoder:
    """Encodes function calls from a table of argument types.

    Example:
        encoder = AbiCallEncoder({"approve": ["address", "uint256"]})
        data = encoder.encode("approve", [spender, amount])
    """

    def __init__(self, functions: dict[str, list[str]]):
        self.functions = functions

    def signature(self, function_name: str) -> str:
        """Canonical signature, e.g. 'approve(address,uint256)'."""
        try:
            types = self.functions[function_name]
        except KeyError:
            raise ValueError(f"Unknown function: {function_name}")
        return f"{function_name}({','.join(types)})"

    def selector(self, function_name: str) -> bytes:
        return function_signature_to_4byte_selector(self.signature(function_name))

    def encode(self, function_name: str, args: Sequence[Any]) -> bytes:
        """Encode a call: 4-byte selector followed by the ABI-encoded args."""
        types = self.functions.get(function_name)
        if types is None:
            raise ValueError(f"Unknown function: {function_name}")
        if len(args) != len(types):
            raise ValueError(
                f"{function_name} expects {len(types)} arguments, got {len(args)}"
            )
        return self.selector(function_name) + encode(types, list(args))

    def encode_hex(self, function_name: str, args: Sequence[Any]) -> str:
        return "0x" + self.encode(function_name, args).hex()

    def decode_args(self, function_name: str, data: bytes) -> tuple:
        """Decode the arguments of an encoded call (selector included)."""
        if data[:4] != self.selector(function_name):
            raise ValueError(f"Call data is not a {function_name} call")
        return decode(self.functions[function_name], data[4:])


FACTORY_ENCODER = AbiCallEncoder({
    "create": ["uint256", "address", "uint256", f"{ORDER}[]"],
    "addTokens": ["uint256", "address", "uint256", f"{ORDER}[]"],
    "processInputOrders": ["uint256", f"{BATCHED_INPUT_ORDERS}[]"],
    "processOutputOrders": ["uint256", f"{BATCHED_OUTPUT_ORDERS}[]"],
    "destroy": ["uint256", "address", f"{ORDER}[]"],
    "nestedRecords": [],
})

# Argument types of the sub-order calldata, per operator kind. The factory
# prepends the operator selector itself, so the calldata is the bare arguments.
OPERATOR_ARGS = {
    # ZeroExOperator / ParaswapOperator
    "performSwap": ["address", "address", "bytes"],
    # FlatOperator
    "transfer": ["address", "uint256"],
}

ERC20_ENCODER = AbiCallEncoder({
    "approve": ["address", "uint256"],
    "allowance": ["address", "address"],
    "balanceOf": ["address"],
    "decimals": [],
})

RECORDS_ENCODER = AbiCallEncoder({
    "tokenHoldings": ["uint256"],
})


def build_order_struct(operator: str, token: str, call_data: bytes) -> NestedOrder:
    """Build a sub-order naming the operator that will run `call_data`."""
    return NestedOrder(operator=to_bytes32(operator), token=token, call_data=call_data)


def encode_order_call_data(kind: str, args: Sequence[Any]) -> bytes:
    """ABI-encode the arguments of an operator call (no selector)."""
    if kind not in OPERATOR_ARGS:
        raise ValueError(f"Unknown operator call: {kind}")
    return encode(OPERATOR_ARGS[kind], list(args))


def decode_order_call_data(kind: str, data: bytes) -> tuple:
    return decode(OPERATOR_ARGS[kind], data)
