# ABOUTME: Pydantic models for caller-supplied d20-style roll results and their resolution.
# ABOUTME: Includes CriticalType enum, DiceRollResult with arithmetic validation, and DiceResolution.

import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

DICE_TYPE_PATTERN = re.compile(r"^d(\d+)$")


class CriticalType(str, Enum):
    """Narrative flag for raw-roll extremes, independent of pass/fail"""
    SUCCESS = "success"
    FAILURE = "failure"


class DiceRollResult(BaseModel):
    """A roll made outside the engine (physical dice, UI widget) and submitted for resolution

    The engine validates the arithmetic but never generates the roll. The
    success and critical flags are the caller's own reading of the roll; the
    engine recomputes them and stores its own values.
    """

    dice_type: str = Field(
        default="d20",
        description="Die rolled, e.g. 'd20'"
    )
    raw_roll: int = Field(
        ge=1,
        description="Natural face shown on the die"
    )
    modifiers: int = Field(
        default=0,
        description="Net modifier added to the raw roll"
    )
    total_result: int = Field(description="raw_roll + modifiers")
    target_number: int = Field(description="Target number the caller rolled against")
    success: bool | None = None
    critical_success: bool | None = None
    critical_failure: bool | None = None

    @field_validator('dice_type')
    @classmethod
    def validate_dice_type(cls, v: str) -> str:
        v = v.strip().lower()
        if not DICE_TYPE_PATTERN.match(v):
            raise ValueError(f"dice_type must look like 'd20', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_arithmetic(self):
        """Raw roll must fit the die and the total must add up"""
        if self.raw_roll > self.sides:
            raise ValueError(
                f"raw_roll {self.raw_roll} is outside the faces of a {self.dice_type}"
            )
        if self.total_result != self.raw_roll + self.modifiers:
            raise ValueError(
                f"total_result ({self.total_result}) must equal raw_roll + modifiers "
                f"({self.raw_roll} + {self.modifiers})"
            )
        return self

    @property
    def sides(self) -> int:
        match = DICE_TYPE_PATTERN.match(self.dice_type)
        return int(match.group(1))


class DiceResolution(BaseModel):
    """Outcome of resolving a roll against difficulty settings"""

    success: bool
    critical_type: CriticalType | None = None

    model_config = {"frozen": True}
