"""Minimal JSON-RPC client for the reads and broadcasts the SDK needs.

Talks to the node over httpx; results are ABI-decoded with eth-abi.
"""

import logging
from typing import Any, Optional

import httpx
from eth_abi import decode

from nested_sdk.abi import ERC20_ENCODER, FACTORY_ENCODER, RECORDS_ENCODER
from nested_sdk.chains import NATIVE_TOKEN, normalize
from nested_sdk.errors import ChainReadError

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


class ChainReader:
    """JSON-RPC access to a chain node."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.transport = transport
        self._request_id = 0
        self._decimals_cache: dict[str, int] = {}

    async def rpc(self, method: str, params: list) -> Any:
        """Send one JSON-RPC request and return its result.

        Raises:
            ChainReadError: On transport errors or JSON-RPC errors
        """
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": self._request_id}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise ChainReadError(f"{method} failed: {type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise ChainReadError(f"{method} failed: HTTP {response.status_code} - {response.text}")

        body = response.json()
        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise ChainReadError(f"{method} failed: {message}")
        return body.get("result")

    async def call(self, to: str, data: bytes) -> bytes:
        """eth_call against the latest block."""
        result = await self.rpc("eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"])
        if not result or result == "0x":
            raise ChainReadError(f"eth_call to {to} returned no data")
        return bytes.fromhex(result[2:])

    # ======================
    # ERC20
    # ======================

    async def decimals(self, token: str) -> int:
        """Token decimals (cached; the native token has 18)."""
        token = normalize(token)
        if token == NATIVE_TOKEN:
            return NATIVE_DECIMALS
        if token not in self._decimals_cache:
            result = await self.call(token, ERC20_ENCODER.encode("decimals", []))
            self._decimals_cache[token] = decode(["uint8"], result)[0]
        return self._decimals_cache[token]

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        result = await self.call(token, ERC20_ENCODER.encode("allowance", [owner, spender]))
        return decode(["uint256"], result)[0]

    async def balance_of(self, token: str, owner: str) -> int:
        if normalize(token) == NATIVE_TOKEN:
            return int(await self.rpc("eth_getBalance", [owner, "latest"]), 16)
        result = await self.call(token, ERC20_ENCODER.encode("balanceOf", [owner]))
        return decode(["uint256"], result)[0]

    # ======================
    # Nested contracts
    # ======================

    async def nested_records(self, factory: str) -> str:
        """Address of the records contract used by the factory."""
        result = await self.call(factory, FACTORY_ENCODER.encode("nestedRecords", []))
        return normalize(decode(["address"], result)[0])

    async def token_holdings(self, records: str, nft_id: int) -> list[tuple[str, int]]:
        """(token, amount) pairs held by a portfolio."""
        result = await self.call(records, RECORDS_ENCODER.encode("tokenHoldings", [nft_id]))
        tokens, amounts = decode(["address[]", "uint256[]"], result)
        return [(normalize(token), amount) for token, amount in zip(tokens, amounts)]

    # ======================
    # Transactions
    # ======================

    async def get_nonce(self, address: str) -> int:
        return int(await self.rpc("eth_getTransactionCount", [address, "pending"]), 16)

    async def get_gas_price(self) -> int:
        return int(await self.rpc("eth_gasPrice", []), 16)

    async def estimate_gas(self, tx: dict) -> int:
        return int(await self.rpc("eth_estimateGas", [tx]), 16)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        return await self.rpc("eth_sendRawTransaction", [raw_tx])

    async def get_receipt(self, tx_hash: str) -> Optional[dict]:
        return await self.rpc("eth_getTransactionReceipt", [tx_hash])
