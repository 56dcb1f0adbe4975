"""Atomic swap read models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from swapcore.ledger.models import AtomicSwap, SwapState


class SwapDetails(BaseModel):
    """Snapshot of an atomic swap."""

    model_config = ConfigDict(frozen=True)

    initiator: str = Field(..., description="Account that locked asset X")
    swap_id: int = Field(..., ge=0, description="Per-initiator swap id")
    participant: str = Field(..., description="Only account allowed to complete")
    asset_x: str
    asset_y: str
    amount_x: int = Field(..., description="Amount of X locked by the initiator")
    amount_y: int = Field(..., description="Amount of Y expected from the participant")
    held_x: int = Field(..., description="X currently in custody")
    held_y: int = Field(..., description="Y currently in custody")
    timeout: int = Field(..., description="Absolute expiry time (epoch seconds)")
    completed: bool
    cancelled: bool
    state: SwapState
    created_at: int
    settled_at: Optional[int] = None

    @classmethod
    def from_record(cls, swap: AtomicSwap) -> "SwapDetails":
        return cls(
            initiator=swap.initiator,
            swap_id=swap.swap_id,
            participant=swap.participant,
            asset_x=swap.asset_x,
            asset_y=swap.asset_y,
            amount_x=swap.amount_x,
            amount_y=swap.amount_y,
            held_x=swap.held_x,
            held_y=swap.held_y,
            timeout=swap.timeout,
            completed=swap.completed,
            cancelled=swap.cancelled,
            state=swap.state,
            created_at=swap.created_at,
            settled_at=swap.settled_at,
        )

    def as_tuple(self) -> tuple:
        """``(initiator, participant, amount_x, amount_y, timeout, completed, cancelled)``."""
        return (
            self.initiator,
            self.participant,
            self.amount_x,
            self.amount_y,
            self.timeout,
            self.completed,
            self.cancelled,
        )
