"""Call and result models exchanged with callers and signers."""

from typing import Optional

from pydantic import BaseModel, Field


class CallData(BaseModel):
    """A contract call ready to be signed and sent."""

    to: str = Field(..., description="Contract address")
    data: str = Field(..., description="ABI-encoded call (0x-prefixed hex)")
    value: int = Field(default=0, ge=0, description="Native amount to attach, in wei")
    gas_limit: Optional[int] = Field(None, description="Gas limit (estimated if unset)")
    gas_price: Optional[int] = Field(None, description="Gas price in wei (node price if unset)")
    nonce: Optional[int] = Field(None, description="Nonce (pending count if unset)")

    def with_options(self, options: Optional["ExecOptions"]) -> "CallData":
        """Copy of this call with execution options applied."""
        if options is None:
            return self
        return self.model_copy(update=options.model_dump(exclude_none=True))


class ExecOptions(BaseModel):
    """Caller overrides applied before sending a call."""

    gas_limit: Optional[int] = Field(None, gt=0)
    gas_price: Optional[int] = Field(None, gt=0)
    nonce: Optional[int] = Field(None, ge=0)


class PortfolioAsset(BaseModel):
    """A token held by a portfolio."""

    token: str
    amount: int


class CreatedPortfolio(BaseModel):
    """Result of a portfolio creation."""

    id: str = Field(..., description="Portfolio id as '<chain>:<nft id>'")
    id_in_chain: str = Field(..., description="NFT id as hex")
    receipt: dict
