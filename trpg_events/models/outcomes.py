# ABOUTME: Pydantic models for what an attempt produces: penalties, rewards, retry options and results.
# ABOUTME: PenaltyEffect records are append-only; RetryOption values are advisory and never persisted.

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from trpg_events.models.dice_models import CriticalType, DiceRollResult


class PenaltyType(str, Enum):
    """Kinds of setback a failed attempt can inflict"""
    HP_LOSS = "hp_loss"
    MP_LOSS = "mp_loss"
    TIME_LOSS = "time_loss"
    RESOURCE_LOSS = "resource_loss"
    STATUS_EFFECT = "status_effect"


class PenaltySeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class PenaltyEffect(BaseModel):
    """A penalty applied to a character after a failed attempt"""

    id: str
    type: PenaltyType
    amount: int = Field(ge=0)
    description: str
    duration: int | None = Field(
        default=None,
        description="Optional duration in game turns"
    )
    reversible: bool = Field(
        default=False,
        description="Only reversible penalties may be cleared, and only by an external action"
    )
    severity: PenaltySeverity = PenaltySeverity.MINOR
    applied_at: datetime
    source: str = Field(description="What caused the penalty, e.g. 'dice_failure'")

    model_config = {"frozen": True}


class Reward(BaseModel):
    """Reward granted on a successful attempt"""

    type: str = Field(default="experience")
    amount: int = Field(ge=0)
    description: str

    model_config = {"frozen": True}


class RetryOption(BaseModel):
    """Advisory retry path offered after a failed attempt"""

    id: str
    description: str
    penalty_reduction: int = Field(
        ge=0,
        le=100,
        description="Percentage reduction applied to the next failure's penalties"
    )
    cost_modifier: float = Field(
        gt=0.0,
        description="Relative cost of the approach (>1 is slower but more reliable)"
    )
    available_attempts: int = Field(ge=0)
    requirements: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class EventResult(BaseModel):
    """Terminal artifact of one attempt"""

    success: bool
    final_score: int
    target_number: int
    dice_result: DiceRollResult
    critical_type: CriticalType | None = None
    narrative: str
    rewards: list[Reward] | None = None
    penalties: list[PenaltyEffect] | None = None
    experience_gained: int = Field(default=0, ge=0)
    attempt: int = Field(default=1, ge=1)

    @model_validator(mode='after')
    def validate_outcome_artifacts(self):
        """Rewards only on success, penalties only on failure"""
        if self.success and self.penalties:
            raise ValueError("a successful result cannot carry penalties")
        if not self.success and self.rewards:
            raise ValueError("a failed result cannot carry rewards")
        return self
