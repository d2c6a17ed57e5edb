"""SDK configuration using pydantic-settings.

Every field can be set from the environment with the ``NESTED_`` prefix
(e.g. ``NESTED_ZEROEX_API_KEY``) or from a local ``.env`` file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """SDK settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NESTED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Aggregators
    # ======================
    paraswap_api_url: str = Field(
        default="https://apiv5.paraswap.io", description="ParaSwap API base URL"
    )
    zeroex_api_key: str = Field(default="", description="0x API key (optional)")
    http_timeout: float = Field(default=30.0, description="Aggregator HTTP timeout in seconds")
    only_use_aggregators: str = Field(
        default="", description="Comma-separated aggregator names to restrict quoting to"
    )

    # Rate limits: calls per interval
    paraswap_calls_per_second: int = Field(default=5, description="ParaSwap calls per second")
    zeroex_calls_per_second: int = Field(default=3, description="0x calls per second")
    zeroex_calls_per_minute: int = Field(default=50, description="0x calls per minute")

    # ======================
    # Orders
    # ======================
    default_slippage: float = Field(
        default=0.01, description="Default slippage tolerance (1%)"
    )

    # ======================
    # Chain RPC overrides
    # ======================
    eth_rpc_url: Optional[str] = Field(default=None, description="Ethereum RPC URL")
    bsc_rpc_url: Optional[str] = Field(default=None, description="BSC RPC URL")
    avax_rpc_url: Optional[str] = Field(default=None, description="Avalanche RPC URL")
    poly_rpc_url: Optional[str] = Field(default=None, description="Polygon RPC URL")

    # ======================
    # Transactions
    # ======================
    receipt_timeout: float = Field(
        default=180.0, description="Seconds to wait for a transaction receipt"
    )
    receipt_poll_interval: float = Field(
        default=2.0, description="Seconds between receipt polls"
    )

    debug: bool = Field(default=False, description="Enable debug logging in the CLI")

    @property
    def aggregator_allow_list(self) -> Optional[list[str]]:
        """Parse the aggregator allow-list (None = all aggregators)."""
        if not self.only_use_aggregators:
            return None
        return [name.strip() for name in self.only_use_aggregators.split(",") if name.strip()]

    def get_rpc_url(self, chain: str) -> Optional[str]:
        """Get the RPC override for a chain, if any."""
        rpc_map = {
            "eth": self.eth_rpc_url,
            "bsc": self.bsc_rpc_url,
            "avax": self.avax_rpc_url,
            "poly": self.poly_rpc_url,
        }
        return rpc_map.get(chain.lower())

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "paraswap_api_url": self.paraswap_api_url,
            "zeroex_api_key": "***" if self.zeroex_api_key else "(not set)",
            "http_timeout": self.http_timeout,
            "only_use_aggregators": self.aggregator_allow_list or "(all)",
            "default_slippage": self.default_slippage,
            "rate_limits": {
                "paraswap": f"{self.paraswap_calls_per_second}/s",
                "zeroex": f"{self.zeroex_calls_per_second}/s, {self.zeroex_calls_per_minute}/min",
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
