"""Pytest configuration and fixtures."""

import json
import math
import os
from fractions import Fraction
from pathlib import Path
from typing import Optional

import pytest

# Keep a developer's environment out of the tests
os.environ["NESTED_ONLY_USE_AGGREGATORS"] = ""
os.environ["NESTED_ZEROEX_API_KEY"] = ""
os.environ["NESTED_DEBUG"] = "false"

from nested_sdk.aggregators.base import (
    AggregatorError,
    AggregatorName,
    DexAggregator,
    QuoteResult,
    SwapRequest,
    SwapSide,
)
from nested_sdk.chains import Chain
from nested_sdk.config import Settings
from nested_sdk.connection import NestedContracts, connect
from nested_sdk.errors import QuoteErrorReason
from nested_sdk.models import CallData
from nested_sdk.signer import Signer

FIXTURES = Path(__file__).parent / "fixtures"

# Polygon tokens
USDC = "0x2791bca1f2de4661ed88a30c99a7a9449aa84174"
SUSHI = "0x0b3f868e0be5597d5db7feb59e1cadbb0fdda50a"
DAI = "0x8f3cf7ad23cd3cadbd9735aff958023239c6a063"
WMATIC = "0x0d500b1d8e8ef31e21c99d1db9a6444d3adf1270"
NATIVE = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

POLY_FACTORY = "0xd6d813e31558b45769b83e33fe10cdef76128ffc"
RECORDS = "0x3606b0d9c84224892c7407d4e8dcfd7e9e2126a2"
USER = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"

DECIMALS = {USDC: 6, SUSHI: 18, DAI: 18, WMATIC: 18, NATIVE: 18}


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES / name).read_text())


class StubAggregator(DexAggregator):
    """Aggregator quoting a fixed rate (bought units per sold unit).

    `failure` makes every quote fail with that reason instead.
    """

    def __init__(
        self,
        name: AggregatorName,
        rate: Fraction = Fraction(1),
        failure: Optional[QuoteErrorReason] = None,
        chains: Optional[set[Chain]] = None,
    ):
        super().__init__()
        self.name = name
        self.rate = Fraction(rate)
        self.failure = failure
        self.chains = chains if chains is not None else set(Chain)
        self.requests: list[SwapRequest] = []

    @property
    def payload(self) -> str:
        return "0xaa01" if self.name == AggregatorName.PARASWAP else "0xbb02"

    def supports_chain(self, chain: Chain) -> bool:
        return chain in self.chains

    async def _fetch(self, request: SwapRequest) -> Optional[dict]:
        self.requests.append(request)
        if self.failure is not None:
            raise AggregatorError(self.failure, f"{self.name.value} failed: {self.failure.value}", 400)
        if request.side == SwapSide.SELL:
            sell = request.spend_qty
            buy = math.floor(sell * self.rate)
        else:
            buy = request.bought_qty
            sell = math.ceil(buy / self.rate)
        return {"sell": sell, "buy": buy}

    def _to_quote(self, answer: dict, request: SwapRequest) -> QuoteResult:
        return QuoteResult(
            aggregator=self.name,
            chain_id=137,
            price=str(float(self.rate)),
            to="0xdef1c0ded9bec7f1a1670819833240f027b25eff",
            data=self.payload,
            value="0",
            protocol_fee="0",
            buy_token_address=request.buy_token,
            sell_token_address=request.spend_token,
            buy_amount=answer["buy"],
            sell_amount=answer["sell"],
            allowance_target="0xdef1c0ded9bec7f1a1670819833240f027b25eff",
            estimated_price_impact="0",
        )


class FakeChainReader:
    """In-memory stand-in for ChainReader."""

    def __init__(self):
        self.decimals_by_token = dict(DECIMALS)
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.holdings: dict[int, list[tuple[str, int]]] = {}

    async def decimals(self, token: str) -> int:
        return self.decimals_by_token[token.lower()]

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get((token.lower(), owner.lower(), spender.lower()), 0)

    async def nested_records(self, factory: str) -> str:
        return RECORDS

    async def token_holdings(self, records: str, nft_id: int) -> list[tuple[str, int]]:
        return list(self.holdings.get(nft_id, []))


class RecordingSigner(Signer):
    """Signer that records calls and answers with a canned receipt."""

    def __init__(self, address: str = USER, receipt: Optional[dict] = None):
        self.address = address
        self.receipt = receipt or {"status": "0x1", "logs": []}
        self.sent: list[CallData] = []

    async def get_address(self) -> str:
        return self.address

    async def send_transaction(self, call: CallData) -> dict:
        self.sent.append(call)
        return self.receipt


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only."""
    return Settings(_env_file=None, default_slippage=0.01)


@pytest.fixture
def paraswap() -> StubAggregator:
    return StubAggregator(AggregatorName.PARASWAP, rate=Fraction(2))


@pytest.fixture
def zeroex() -> StubAggregator:
    return StubAggregator(AggregatorName.ZEROEX, rate=Fraction(3))


@pytest.fixture
def reader() -> FakeChainReader:
    return FakeChainReader()


@pytest.fixture
def signer() -> RecordingSigner:
    return RecordingSigner()


@pytest.fixture
def nested(settings, paraswap, zeroex, reader, signer) -> NestedContracts:
    """Polygon connection backed by stub aggregators and a fake chain."""
    return connect(
        Chain.POLY,
        signer=signer,
        aggregators=[paraswap, zeroex],
        reader=reader,
        settings=settings,
    )
