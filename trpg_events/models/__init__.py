"""Data models for the interactive event session engine"""

from .context import (
    Character,
    CharacterSkill,
    EventChoice,
    EventContext,
    SessionContext,
)
from .dice_models import (
    CriticalType,
    DiceResolution,
    DiceRollResult,
)
from .event_session import (
    EventMetadata,
    EventSession,
    EventState,
    EventStepType,
)
from .outcomes import (
    EventResult,
    PenaltyEffect,
    PenaltySeverity,
    PenaltyType,
    RetryOption,
    Reward,
)
from .steps import (
    ChoiceInterpretedData,
    ChoicePresentedData,
    DifficultyCalculatedData,
    EventStep,
    ResultProcessedData,
    RetryAbandonedData,
    RetryStartedData,
    SessionFailedData,
    StepData,
)
from .task import (
    DifficultySettings,
    TaskApproach,
    TaskDefinition,
    TaskDraft,
    TaskEvaluation,
    TaskModifier,
)

__all__ = [
    # Context models
    "Character",
    "CharacterSkill",
    "EventChoice",
    "EventContext",
    "SessionContext",
    # Dice models
    "CriticalType",
    "DiceResolution",
    "DiceRollResult",
    # Session models
    "EventMetadata",
    "EventSession",
    "EventState",
    "EventStepType",
    # Outcome models
    "EventResult",
    "PenaltyEffect",
    "PenaltySeverity",
    "PenaltyType",
    "RetryOption",
    "Reward",
    # Timeline models
    "ChoiceInterpretedData",
    "ChoicePresentedData",
    "DifficultyCalculatedData",
    "EventStep",
    "ResultProcessedData",
    "RetryAbandonedData",
    "RetryStartedData",
    "SessionFailedData",
    "StepData",
    # Task models
    "DifficultySettings",
    "TaskApproach",
    "TaskDefinition",
    "TaskDraft",
    "TaskEvaluation",
    "TaskModifier",
]
