"""Chain and activation state models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tokenwatch.constants.chains import normalize_chain_id


class ChainContext(BaseModel):
    """Everything a detection cycle needs to talk to one chain.

    Created when a polling loop starts for a chain. Not re-resolved per
    tick; a loop restart picks up a changed resolution.

    Attributes:
        chain_id: 0x-prefixed hex chain id.
        network_client_id: Id of the network client the context came from.
        provider: Handle used for on-chain calls (e.g. a JsonRpcClient).
        block_tracker: Block tracker handle, passed through untouched.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    chain_id: str = Field(description="Hex chain id")
    network_client_id: str = Field(description="Network client id")
    provider: Any = Field(default=None, description="Provider handle")
    block_tracker: Any = Field(default=None, description="Block tracker handle")

    @property
    def key(self) -> tuple[str, str]:
        """Identity used by the reentrancy guard."""
        return (self.chain_id, self.network_client_id)

    @field_validator("chain_id", mode="before")
    @classmethod
    def normalize_chain(cls, v: str | int) -> str:
        """Store chain ids as 0x-prefixed lowercase hex."""
        return normalize_chain_id(v)


class ActivationState(BaseModel):
    """Wallet state that decides whether detection may run.

    Mutated only by event handlers; everything else reads it.

    Attributes:
        is_open: Whether the wallet UI is visible.
        is_unlocked: Whether the keyring is unlocked.
        selected_address: Account whose balances are checked.
        use_token_detection: User preference switch for detection.
    """

    is_open: bool = False
    is_unlocked: bool = False
    selected_address: str | None = None
    use_token_detection: bool = True

    @property
    def is_active(self) -> bool:
        """UI visible and wallet unlocked."""
        return self.is_open and self.is_unlocked
