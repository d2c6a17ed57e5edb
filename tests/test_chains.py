"""Tests for chain configuration and token helpers."""

import pytest

from conftest import NATIVE, USDC, WMATIC
from nested_sdk.chains import (
    DEFAULT_CONTRACTS,
    Chain,
    chain_by_chain_id,
    get_chain_config,
    infer_nft_id,
    normalize,
    wrap,
)
from nested_sdk.errors import InvalidPortfolioIdError, UnsupportedChainError


class TestChainConfig:
    """Tests for chain lookups."""

    def test_deployed_chains(self):
        for chain in (Chain.BSC, Chain.AVAX, Chain.POLY):
            config = get_chain_config(chain)
            assert config.factory_address
            assert config.wrapped_token
            assert config.chain_id

    def test_by_value(self):
        assert get_chain_config("poly").chain_id == 137

    def test_by_chain_id(self):
        assert get_chain_config(56).chain == Chain.BSC
        with pytest.raises(UnsupportedChainError):
            get_chain_config(1)
        with pytest.raises(UnsupportedChainError):
            get_chain_config(999999)

    @pytest.mark.parametrize("chain", ["eth", "ftm", "celo", "opti", "rop", "unknown"])
    def test_not_deployed(self, chain):
        with pytest.raises(UnsupportedChainError):
            get_chain_config(chain)

    def test_chain_by_chain_id(self):
        assert chain_by_chain_id[137] == Chain.POLY
        assert chain_by_chain_id[56] == Chain.BSC
        assert chain_by_chain_id[1] == Chain.ETH

    def test_addresses_are_normalized(self):
        for config in DEFAULT_CONTRACTS.values():
            for address in (config.factory_address, config.wrapped_token):
                if address:
                    assert address == address.lower()


class TestWrapping:
    """Tests for native token wrapping."""

    def test_wrap_native(self):
        assert wrap(Chain.POLY, NATIVE) == WMATIC
        assert wrap(Chain.POLY, NATIVE.upper().replace("0X", "0x")) == WMATIC

    def test_wrap_erc20_unchanged(self):
        assert wrap(Chain.POLY, USDC) == USDC

    def test_wrap_without_wrapped_token(self):
        with pytest.raises(UnsupportedChainError):
            wrap(Chain.ETH, NATIVE)

    def test_normalize(self):
        assert normalize("0xAbC") == "0xabc"


class TestInferNftId:
    """Tests for portfolio id parsing."""

    @pytest.mark.parametrize(
        "portfolio_id, expected",
        [(12, 12), ("12", 12), ("0xc", 12), ("0xC", 12), ("poly:12", 12)],
    )
    def test_accepted_forms(self, portfolio_id, expected):
        assert infer_nft_id(portfolio_id, Chain.POLY) == expected

    @pytest.mark.parametrize("portfolio_id", ["bsc:12", "poly:abc", "twelve", ""])
    def test_rejected_forms(self, portfolio_id):
        with pytest.raises(InvalidPortfolioIdError):
            infer_nft_id(portfolio_id, Chain.POLY)
