# ABOUTME: Contract for the stateless reasoning service the state machine calls out to.
# ABOUTME: Proposes event choices, interprets them into tasks, evaluates solutions and narrates results.

from typing import Protocol

from trpg_events.models.context import Character, EventChoice, EventContext, SessionContext
from trpg_events.models.dice_models import DiceRollResult
from trpg_events.models.event_session import EventSession
from trpg_events.models.task import TaskDefinition, TaskDraft, TaskEvaluation


class ReasoningServiceAdapter(Protocol):
    """
    Request/response boundary to the reasoning service.

    Implementations may raise anything; the state machine wraps non-CollaboratorError
    failures into CollaboratorError with the operation name attached.
    """

    async def generate_choices(
        self,
        event_context: EventContext,
        character: Character,
        session_context: SessionContext,
        choice_count: int = 3,
    ) -> list[EventChoice]: ...

    async def interpret_choice(
        self,
        choice: EventChoice,
        character: Character,
        session_context: SessionContext,
    ) -> TaskDraft: ...

    async def evaluate_solution(
        self,
        player_solution: str,
        character: Character,
        session_context: SessionContext,
        task: TaskDefinition,
    ) -> TaskEvaluation: ...

    async def narrate_result(
        self,
        event_session: EventSession,
        character: Character,
        session_context: SessionContext,
        dice_result: DiceRollResult | None = None,
        success: bool | None = None,
    ) -> str: ...
