# ABOUTME: Rebuilds an event session's progress from its step timeline alone.
# ABOUTME: Used to audit stored sessions: the replayed view must match the persisted record.

from pydantic import BaseModel, Field

from trpg_events.models.event_session import EventState, EventStepType
from trpg_events.models.outcomes import PenaltyEffect
from trpg_events.models.steps import (
    ChoiceInterpretedData,
    EventStep,
    ResultProcessedData,
    RetryStartedData,
)


class ReplayedSession(BaseModel):
    """Session progress derived from the timeline"""

    state: EventState
    current_step: EventStepType
    current_attempt: int = Field(default=1, ge=1)
    active_task_id: str | None = None
    accumulated_penalties: list[PenaltyEffect] = Field(default_factory=list)
    experience_earned: int = 0
    step_count: int = 0


def replay_timeline(steps: list[EventStep]) -> ReplayedSession:
    """
    Fold a timeline into the session progress it describes.

    Args:
        steps: Steps in insertion order, starting with the choice presentation

    Returns:
        ReplayedSession with state, current step, attempt, penalties and experience

    Raises:
        ValueError: If the timeline is empty or out of timestamp order
    """
    if not steps:
        raise ValueError("Cannot replay an empty timeline")

    replayed = ReplayedSession(
        state=steps[0].data.state_after,
        current_step=steps[0].data.step_after,
    )
    previous = None

    for step in steps:
        if previous is not None and step.timestamp <= previous.timestamp:
            raise ValueError(
                f"Timeline out of order at step {step.id}: "
                f"{step.timestamp.isoformat()} <= {previous.timestamp.isoformat()}"
            )
        previous = step

        data = step.data
        replayed.state = data.state_after
        replayed.current_step = data.step_after
        replayed.step_count += 1

        if isinstance(data, ChoiceInterpretedData):
            replayed.active_task_id = data.task.id
        elif isinstance(data, RetryStartedData):
            replayed.current_attempt = data.attempt
            replayed.active_task_id = data.task_id
        elif isinstance(data, ResultProcessedData):
            replayed.accumulated_penalties.extend(data.result.penalties or [])
            replayed.experience_earned += data.result.experience_gained

    return replayed
