# ABOUTME: Pydantic models for the append-only event step timeline.
# ABOUTME: Step payloads are a discriminated union keyed by `kind`, each recording the state it left behind.

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from trpg_events.models.context import EventChoice
from trpg_events.models.dice_models import DiceRollResult
from trpg_events.models.event_session import EventState, EventStepType
from trpg_events.models.outcomes import EventResult, PenaltyEffect
from trpg_events.models.task import DifficultySettings, TaskDefinition, TaskEvaluation


class StepPayload(BaseModel):
    """Common tail of every payload: where the session ended up after the step"""

    state_after: EventState
    step_after: EventStepType


class ChoicePresentedData(StepPayload):
    kind: Literal["choice_presented"] = "choice_presented"
    event_id: str
    choices: list[EventChoice]


class ChoiceInterpretedData(StepPayload):
    kind: Literal["choice_interpreted"] = "choice_interpreted"
    choice_id: str
    choice: EventChoice
    task: TaskDefinition


class RetryStartedData(StepPayload):
    kind: Literal["retry_started"] = "retry_started"
    attempt: int = Field(ge=1)
    previous_task_id: str
    task_id: str


class DifficultyCalculatedData(StepPayload):
    kind: Literal["difficulty_calculated"] = "difficulty_calculated"
    task_id: str
    player_solution: str
    evaluation: TaskEvaluation
    difficulty_settings: DifficultySettings


class ResultProcessedData(StepPayload):
    kind: Literal["result_processed"] = "result_processed"
    task_id: str
    result: EventResult
    difficulty_settings: DifficultySettings


class RetryAbandonedData(StepPayload):
    kind: Literal["retry_abandoned"] = "retry_abandoned"
    reason: str


class SessionFailedData(StepPayload):
    kind: Literal["session_failed"] = "session_failed"
    operation: str
    error_type: str
    message: str
    failed_from: EventState


StepData = Annotated[
    Union[
        ChoicePresentedData,
        ChoiceInterpretedData,
        RetryStartedData,
        DifficultyCalculatedData,
        ResultProcessedData,
        RetryAbandonedData,
        SessionFailedData,
    ],
    Field(discriminator="kind"),
]


class EventStep(BaseModel):
    """Immutable timeline entry; the timeline as a whole is the session's audit log"""

    id: str
    event_session_id: str
    step: EventStepType
    timestamp: datetime
    data: StepData
    ai_response: str | None = None
    player_input: str | None = None
    dice_result: DiceRollResult | None = None
    penalties: list[PenaltyEffect] | None = None
    duration_ms: int = Field(default=0, ge=0)

    model_config = {"frozen": True}
