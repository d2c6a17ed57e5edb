"""Transaction signers.

Signing flow:
1. Fill nonce, gas price and gas limit (unless given by the caller)
2. Sign locally with eth-account
3. Broadcast the raw transaction
4. Wait for the receipt

No retry happens at any step: errors surface immediately.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from eth_account import Account
from web3 import Web3

from nested_sdk.chain_reader import ChainReader
from nested_sdk.errors import ChainReadError, TransactionFailedError
from nested_sdk.models import CallData

logger = logging.getLogger(__name__)


class Signer(ABC):
    """Capability to identify the user and submit calls on their behalf."""

    @abstractmethod
    async def get_address(self) -> str:
        """Address of the signing account."""
        pass

    @abstractmethod
    async def send_transaction(self, call: CallData) -> dict:
        """Sign, broadcast and wait for a call.

        Returns:
            The transaction receipt
        """
        pass


class LocalAccountSigner(Signer):
    """Signer holding a private key in memory.

    WARNING: Use only for scripts and hot wallets with small amounts.
    """

    def __init__(
        self,
        private_key: str,
        reader: ChainReader,
        chain_id: int,
        receipt_timeout: float = 180.0,
        poll_interval: float = 2.0,
    ):
        self._account = Account.from_key(private_key)
        self.reader = reader
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval

    async def get_address(self) -> str:
        return self._account.address

    async def send_transaction(self, call: CallData) -> dict:
        address = self._account.address
        to = Web3.to_checksum_address(call.to)

        try:
            nonce = call.nonce if call.nonce is not None else await self.reader.get_nonce(address)
            gas_price = call.gas_price or await self.reader.get_gas_price()
            gas = call.gas_limit or await self.reader.estimate_gas({
                "from": address,
                "to": to,
                "value": hex(call.value),
                "data": call.data,
            })
        except ChainReadError as e:
            raise TransactionFailedError(f"Failed to prepare transaction: {e}") from e

        tx = {
            "nonce": nonce,
            "gasPrice": gas_price,
            "gas": gas,
            "to": to,
            "value": call.value,
            "data": call.data,
            "chainId": self.chain_id,
        }

        signed_tx = self._account.sign_transaction(tx)
        try:
            tx_hash = await self.reader.send_raw_transaction(Web3.to_hex(signed_tx.raw_transaction))
        except ChainReadError as e:
            raise TransactionFailedError(f"Broadcast failed: {e}") from e

        logger.info(f"Transaction broadcast: {tx_hash} (to={to}, value={call.value})")
        return await self.wait_for_receipt(tx_hash)

    async def wait_for_receipt(self, tx_hash: str) -> dict:
        """Poll until the transaction is mined.

        Raises:
            TransactionFailedError: If it reverted or timed out
        """
        deadline = time.monotonic() + self.receipt_timeout
        while True:
            receipt: Optional[dict] = await self.reader.get_receipt(tx_hash)
            if receipt:
                if receipt.get("status") == "0x0":
                    raise TransactionFailedError(f"Transaction reverted: {tx_hash}", tx_hash)
                logger.info(f"Transaction confirmed: {tx_hash}")
                return receipt
            if time.monotonic() >= deadline:
                raise TransactionFailedError(
                    f"No receipt for {tx_hash} after {self.receipt_timeout}s", tx_hash
                )
            await asyncio.sleep(self.poll_interval)
