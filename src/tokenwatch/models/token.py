"""Token-related Pydantic models.

Candidate tokens come from a token list source; detected tokens are the
subset confirmed to hold a non-zero balance for the selected account.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tokenwatch.core.address import normalize_address
from tokenwatch.core.exceptions import ValidationError


class CandidateToken(BaseModel):
    """A token known to exist on a chain, not yet confirmed as held.

    Attributes:
        address: Checksummed token contract address.
        symbol: Token symbol (e.g., LINK).
        decimals: Token decimals.
        name: Human readable token name.
        icon_url: Token icon URL.
        aggregators: Token lists that include this token.

    Example:
        token = CandidateToken(
            address="0x514910771af9ca656af840dff83e8264ecf986ca",
            symbol="LINK",
            decimals=18,
            name="Chainlink",
        )
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    address: str = Field(description="Token contract address (checksummed)")
    symbol: str = Field(description="Token symbol")
    decimals: int = Field(ge=0, description="Token decimals")
    name: str | None = Field(default=None, description="Token name")
    icon_url: str | None = Field(default=None, alias="iconUrl", description="Token icon URL")
    aggregators: tuple[str, ...] | None = Field(
        default=None, description="Token lists that include this token"
    )

    @field_validator("address")
    @classmethod
    def checksum_address(cls, v: str) -> str:
        """Store addresses in checksummed form."""
        try:
            return normalize_address(v)
        except ValidationError as e:
            raise ValueError(str(e)) from e


class DetectedToken(CandidateToken):
    """A candidate confirmed to have a non-zero balance.

    Attributes:
        balance: Raw balance in the token's smallest unit.
    """

    balance: int = Field(gt=0, description="Raw token balance (smallest unit)")

    @classmethod
    def from_candidate(cls, candidate: CandidateToken, balance: int) -> "DetectedToken":
        """Build a detected token from a candidate and its balance."""
        return cls(**candidate.model_dump(), balance=balance)
