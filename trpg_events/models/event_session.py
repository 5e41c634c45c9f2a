# ABOUTME: Pydantic models for the interactive event session record and its lifecycle enums.
# ABOUTME: Defines EventState, EventStepType, EventMetadata and EventSession with attempt-bound validation.

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from trpg_events.models.outcomes import PenaltyEffect


class EventState(str, Enum):
    """Lifecycle states of an interactive event session"""
    WAITING_FOR_CHOICE = "waiting_for_choice"
    PROCESSING_CHOICE = "processing_choice"
    WAITING_FOR_SOLUTION = "waiting_for_solution"
    CALCULATING_DIFFICULTY = "calculating_difficulty"
    DICE_ROLLING = "dice_rolling"
    PROCESSING_RESULT = "processing_result"
    WAITING_FOR_RETRY = "waiting_for_retry"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EventState.COMPLETED, EventState.FAILED)


class EventStepType(str, Enum):
    """Timeline step kinds, also used as the session's current step marker"""
    CHOICE_SELECTION = "choice_selection"
    AI_INTERPRETATION = "ai_interpretation"
    TASK_PRESENTATION = "task_presentation"
    SOLUTION_INPUT = "solution_input"
    DIFFICULTY_CALCULATION = "difficulty_calculation"
    DICE_ROLL = "dice_roll"
    RESULT_PROCESSING = "result_processing"
    RETRY_SELECTION = "retry_selection"


class EventMetadata(BaseModel):
    """Attempt bookkeeping carried on the session record"""

    start_time: datetime
    current_attempt: int = Field(
        default=1,
        ge=1,
        description="1-based attempt counter, never above max_attempts"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Upper bound on attempts for this session"
    )
    accumulated_penalties: list[PenaltyEffect] = Field(
        default_factory=list,
        description="Derived copy of the penalty ledger for this session"
    )
    experience_earned: int = Field(default=0, ge=0)
    active_task_id: str | None = Field(
        default=None,
        description="Task currently open for solutions (one per session)"
    )

    @model_validator(mode='after')
    def validate_attempt_bound(self):
        """current_attempt may never exceed max_attempts"""
        if self.current_attempt > self.max_attempts:
            raise ValueError(
                f"current_attempt ({self.current_attempt}) exceeds "
                f"max_attempts ({self.max_attempts})"
            )
        return self

    @property
    def remaining_attempts(self) -> int:
        return self.max_attempts - self.current_attempt


class EventSession(BaseModel):
    """One player resolving one interactive challenge with one character"""

    id: str
    session_id: str = Field(description="Campaign session the event belongs to")
    event_id: str
    player_id: str
    character_id: str
    state: EventState = EventState.WAITING_FOR_CHOICE
    current_step: EventStepType = EventStepType.CHOICE_SELECTION
    metadata: EventMetadata
    created_at: datetime
    updated_at: datetime

    @field_validator('created_at', 'updated_at')
    @classmethod
    def validate_timezone_aware(cls, v: datetime) -> datetime:
        """Ensure timestamps are timezone-aware"""
        if v.tzinfo is None:
            raise ValueError("timestamps must be timezone-aware")
        return v

    @property
    def tuple_key(self) -> tuple[str, str, str, str]:
        """Identity tuple: at most one live session per (session, event, player, character)"""
        return (self.session_id, self.event_id, self.player_id, self.character_id)
