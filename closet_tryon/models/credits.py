"""Credit balance models."""

from pydantic import BaseModel, Field


class CreditBalance(BaseModel):
    """Credits a user has left for try-ons."""
    credits: int = Field(ge=0)


class DeductCreditsRequest(BaseModel):
    amount: int = Field(ge=1, description="Credits to spend before a try-on")


class LedgerSnapshot(BaseModel):
    """On-disk form of the credit ledger."""
    balances: dict[str, int] = Field(default_factory=dict)
