"""Game mechanics: difficulty, dice resolution, penalties and retries"""

from .dice_resolution import DiceResolutionEngine
from .difficulty import DifficultyCalculator, DifficultyPolicy
from .exceptions import UnknownDifficultyLabelError
from .penalties import (
    PenaltyPolicy,
    PenaltyRetryManager,
    RetryPolicy,
    SkillRetryRule,
)

__all__ = [
    "DiceResolutionEngine",
    "DifficultyCalculator",
    "DifficultyPolicy",
    "PenaltyPolicy",
    "PenaltyRetryManager",
    "RetryPolicy",
    "SkillRetryRule",
    "UnknownDifficultyLabelError",
]
