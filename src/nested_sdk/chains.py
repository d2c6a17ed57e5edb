"""Per-chain configuration for the Nested factory deployments.

Chains without a deployed factory are listed so that aggregator lookups
still work, but connect() rejects them.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from nested_sdk.errors import InvalidPortfolioIdError, UnsupportedChainError

# Pseudo-address used by aggregators for the chain's native currency
NATIVE_TOKEN = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Chain(str, Enum):
    """Supported chain identifiers."""
    ETH = "eth"
    BSC = "bsc"
    AVAX = "avax"
    POLY = "poly"
    FTM = "ftm"
    CELO = "celo"
    OPTI = "opti"
    ROP = "rop"  # Ropsten testnet


@dataclass(frozen=True)
class ChainConfig:
    """Static configuration for a chain."""

    chain: Chain
    provider_url: str
    factory_address: Optional[str] = None
    wrapped_token: Optional[str] = None
    chain_id: Optional[int] = None


# ======================
# Deployments
# ======================

DEFAULT_CONTRACTS: dict[Chain, ChainConfig] = {
    Chain.ETH: ChainConfig(
        chain=Chain.ETH,
        provider_url="https://eth.llamarpc.com",
        chain_id=1,
    ),
    Chain.BSC: ChainConfig(
        chain=Chain.BSC,
        provider_url="https://bsc-dataseed.binance.org/",
        factory_address="0x1db81116467789b7dcc3b070ee8f5aa4d90d6940",
        wrapped_token="0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c",
        chain_id=56,
    ),
    Chain.AVAX: ChainConfig(
        chain=Chain.AVAX,
        provider_url="https://api.avax.network/ext/bc/C/rpc",
        factory_address="0x1db81116467789b7dcc3b070ee8f5aa4d90d6940",
        wrapped_token="0xb31f66aa3c1e785363f0875a1b74e27b85fd66c7",
        chain_id=43114,
    ),
    Chain.POLY: ChainConfig(
        chain=Chain.POLY,
        provider_url="https://polygon-rpc.com",
        factory_address="0xd6d813e31558b45769b83e33fe10cdef76128ffc",
        wrapped_token="0x0d500b1d8e8ef31e21c99d1db9a6444d3adf1270",
        chain_id=137,
    ),
    Chain.FTM: ChainConfig(
        chain=Chain.FTM,
        provider_url="https://rpc.ftm.tools",
        chain_id=250,
    ),
    Chain.CELO: ChainConfig(
        chain=Chain.CELO,
        provider_url="https://forno.celo.org",
        chain_id=42220,
    ),
    Chain.OPTI: ChainConfig(
        chain=Chain.OPTI,
        provider_url="https://mainnet.optimism.io",
        chain_id=10,
    ),
    Chain.ROP: ChainConfig(
        chain=Chain.ROP,
        provider_url="https://ropsten.infura.io/v3",
    ),
}

chain_by_chain_id: dict[int, Chain] = {
    config.chain_id: chain
    for chain, config in DEFAULT_CONTRACTS.items()
    if config.chain_id
}


def get_chain_config(chain: Union[Chain, str, int]) -> ChainConfig:
    """Get the configuration of a chain that has a factory deployed.

    Args:
        chain: Chain identifier, or EVM chain id

    Raises:
        UnsupportedChainError: If the chain is unknown or has no factory
    """
    if isinstance(chain, int):
        if chain not in chain_by_chain_id:
            raise UnsupportedChainError(str(chain))
        chain = chain_by_chain_id[chain]
    try:
        chain = Chain(chain)
    except ValueError:
        raise UnsupportedChainError(str(chain))

    config = DEFAULT_CONTRACTS[chain]
    if not config.factory_address or not config.chain_id:
        raise UnsupportedChainError(chain.value, "no factory deployed")
    return config


def normalize(address: str) -> str:
    """Lowercase an address so that comparisons are case-insensitive."""
    return address.lower()


def wrap(chain: Chain, token: str) -> str:
    """Replace the native pseudo-token with the chain's wrapped native token."""
    token = normalize(token)
    if token == NATIVE_TOKEN:
        wrapped = DEFAULT_CONTRACTS[Chain(chain)].wrapped_token
        if not wrapped:
            raise UnsupportedChainError(Chain(chain).value, "no wrapped native token")
        return normalize(wrapped)
    return token


def infer_nft_id(portfolio_id: Union[int, str], expected_chain: Chain) -> int:
    """Parse a portfolio id into the NFT id on the expected chain.

    Accepts an int, a hex or decimal string, or a "<chain>:<id>" string.
    """
    if isinstance(portfolio_id, int):
        return portfolio_id
    if re.fullmatch(r"0x[a-fA-F\d]+", portfolio_id):
        return int(portfolio_id, 16)
    if re.fullmatch(r"\d+", portfolio_id):
        return int(portfolio_id)

    match = re.fullmatch(r"(\w+):(\d+)", portfolio_id)
    if not match or match.group(1) != Chain(expected_chain).value:
        raise InvalidPortfolioIdError(
            f'The given portfolio ID "{portfolio_id}" cannot be processed '
            f"on this chain ({Chain(expected_chain).value})"
        )
    return int(match.group(2))
