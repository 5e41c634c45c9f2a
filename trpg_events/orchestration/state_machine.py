# ABOUTME: Event session state machine orchestrating choice, solution, roll and retry for one interactive event.
# ABOUTME: Serializes operations per session, calls the reasoning service once per step, persists every transition.

import asyncio
import time
import uuid
import weakref
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Any, Awaitable, Callable, Iterator

from loguru import logger
from pydantic import BaseModel, ValidationError

from trpg_events.agents.exceptions import CollaboratorError
from trpg_events.agents.reasoning_service import ReasoningServiceAdapter
from trpg_events.mechanics.dice_resolution import DiceResolutionEngine
from trpg_events.mechanics.difficulty import DifficultyCalculator
from trpg_events.mechanics.penalties import PenaltyRetryManager
from trpg_events.models.context import Character, EventChoice, EventContext, SessionContext
from trpg_events.models.dice_models import CriticalType, DiceRollResult
from trpg_events.models.event_session import (
    EventMetadata,
    EventSession,
    EventState,
    EventStepType,
)
from trpg_events.models.outcomes import EventResult, PenaltyEffect, RetryOption, Reward
from trpg_events.models.steps import (
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
from trpg_events.models.task import DifficultySettings, TaskDefinition, TaskDraft, TaskEvaluation
from trpg_events.orchestration.exceptions import InvalidInputError, InvalidStateTransitionError
from trpg_events.orchestration.replay import ReplayedSession, replay_timeline
from trpg_events.orchestration.transitions import (
    STATE_STEPS,
    require_operation,
    require_transition,
)
from trpg_events.storage.base import SessionStore
from trpg_events.storage.exceptions import ConcurrentModificationError, StorageError
from trpg_events.utils.logging import log_collaborator_call, log_state_transition


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{field} must not be empty")
    return value


class EventSessionStateMachine:
    """
    Orchestrates the lifecycle of interactive event sessions.

    Flow:
        start_session -> submit_choice -> submit_solution -> submit_roll
        -> completed, or waiting_for_retry -> submit_solution (next attempt)
        / abandon_session

    Every operation validates its input and the session state before touching
    anything. Once a session is parked in an intermediate state, any failure
    (collaborator, difficulty label or store) moves it to failed and is
    re-raised; collaborator calls are never retried here.
    """

    def __init__(
        self,
        reasoning_service: ReasoningServiceAdapter,
        store: SessionStore,
        difficulty_calculator: DifficultyCalculator | None = None,
        dice_engine: DiceResolutionEngine | None = None,
        penalty_manager: PenaltyRetryManager | None = None,
        default_max_attempts: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the state machine.

        Args:
            reasoning_service: Adapter for choices, interpretation, evaluation and narration
            store: Session store for sessions, timelines, tasks and penalties
            difficulty_calculator: Evaluation -> settings mapping (default policy if omitted)
            dice_engine: Roll resolver (default if omitted)
            penalty_manager: Penalty and retry option generator (default policies if omitted)
            default_max_attempts: Attempts allowed when start_session gets no override
            clock: Source of timezone-aware timestamps
        """
        if default_max_attempts < 1:
            raise ValueError("default_max_attempts must be at least 1")

        self.reasoning_service = reasoning_service
        self.store = store
        self.difficulty_calculator = difficulty_calculator or DifficultyCalculator()
        self.dice_engine = dice_engine or DiceResolutionEngine()
        self.penalty_manager = penalty_manager or PenaltyRetryManager()
        self.default_max_attempts = default_max_attempts
        self._clock = clock
        # Entries vanish once no operation holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @staticmethod
    def _new_id(prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex}"

    def _next_timestamp(self, session: EventSession) -> datetime:
        """Now, but strictly after the session's last write so the timeline stays ordered"""
        floor = session.updated_at + timedelta(microseconds=1)
        return max(self._clock(), floor)

    @contextmanager
    def _atomic(self, event_session_id: str) -> Iterator[None]:
        try:
            with self.store.atomic(event_session_id):
                yield
        except ConcurrentModificationError as e:
            raise InvalidStateTransitionError(
                f"Event session {event_session_id} was modified concurrently"
            ) from e

    def _move(
        self,
        session: EventSession,
        to_state: EventState,
        step: EventStepType | None = None,
    ) -> EventSession:
        """Persist a transition that records no timeline step"""
        require_transition(session.id, session.state, to_state)
        updated_at = self._next_timestamp(session)
        with self._atomic(session.id):
            updated = self.store.update_state(
                session.id,
                to_state,
                step or STATE_STEPS[to_state],
                updated_at,
                expected_state=session.state,
            )
        log_state_transition(session.id, session.state.value, to_state.value)
        return updated

    def _build_step(
        self,
        session: EventSession,
        step: EventStepType,
        data: StepData,
        **fields: Any,
    ) -> EventStep:
        return EventStep(
            id=self._new_id("step"),
            event_session_id=session.id,
            step=step,
            timestamp=self._next_timestamp(session),
            data=data,
            **fields,
        )

    def _commit_step(
        self,
        session: EventSession,
        step: EventStep,
        metadata: EventMetadata | None = None,
    ) -> EventSession:
        """
        Append a step and move the session to the state it records.

        Must run inside an open _atomic() block together with the step's other writes.
        """
        to_state = step.data.state_after
        require_transition(session.id, session.state, to_state)

        self.store.append_step(session.id, step)
        if metadata is not None:
            self.store.update_metadata(session.id, metadata, step.timestamp)
        return self.store.update_state(
            session.id,
            to_state,
            step.data.step_after,
            step.timestamp,
            expected_state=session.state,
        )

    def _fail(self, session: EventSession, operation: str, error: Exception) -> EventSession:
        """Move an in-flight session to failed, recording why"""
        data = SessionFailedData(
            operation=operation,
            error_type=type(error).__name__,
            message=str(error),
            failed_from=session.state,
            state_after=EventState.FAILED,
            step_after=session.current_step,
        )
        step = self._build_step(session, session.current_step, data)
        with self._atomic(session.id):
            failed = self._commit_step(session, step)

        logger.bind(
            event_session_id=session.id,
            operation=operation,
            error_type=type(error).__name__,
        ).error(f"Event session {session.id} failed during {operation}: {error}")
        log_state_transition(session.id, session.state.value, EventState.FAILED.value)
        return failed

    @contextmanager
    def _failing_on_error(self, session: EventSession, operation: str) -> Iterator[None]:
        """
        Fail a session parked in an intermediate state if the block raises.

        No operation accepts an intermediate state, so leaving one behind would
        wedge the session and its session/event/player/character tuple. The
        original error is always re-raised.
        """
        try:
            yield
        except Exception as error:
            self._fail_parked(session, operation, error)
            raise

    def _fail_parked(self, parked: EventSession, operation: str, error: Exception) -> None:
        try:
            current = self.store.get(parked.id)
            if current.state != parked.state:
                logger.bind(event_session_id=parked.id).warning(
                    f"Event session {parked.id} left '{parked.state.value}' while "
                    f"{operation} was failing; not marking it failed"
                )
                return
            self._fail(current, operation, error)
        except Exception as fail_error:
            logger.bind(event_session_id=parked.id, operation=operation).error(
                f"Could not mark event session {parked.id} failed after {operation} "
                f"raised {type(error).__name__}: {fail_error}"
            )

    async def _call_collaborator(
        self,
        operation: str,
        event_session_id: str,
        call: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> tuple[Any, int]:
        """
        Await one reasoning service call and measure it.

        Returns:
            Tuple of (raw response, duration in milliseconds)

        Raises:
            CollaboratorError: Adapter's own CollaboratorError unmodified, anything else wrapped
        """
        started = time.perf_counter()
        try:
            response = await call(*args)
        except CollaboratorError:
            duration_ms = (time.perf_counter() - started) * 1000
            log_collaborator_call(operation, event_session_id, duration_ms, succeeded=False)
            raise
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            log_collaborator_call(operation, event_session_id, duration_ms, succeeded=False)
            raise CollaboratorError(operation, f"Reasoning service call '{operation}' failed: {e}") from e

        duration_ms = (time.perf_counter() - started) * 1000
        log_collaborator_call(operation, event_session_id, duration_ms, succeeded=True)
        return response, int(duration_ms)

    @staticmethod
    def _coerce(operation: str, response: Any, model: type[BaseModel]) -> Any:
        """Map a collaborator response onto the expected model, never defaulting"""
        if isinstance(response, model):
            return response
        if isinstance(response, dict):
            try:
                return model.model_validate(response)
            except ValidationError as e:
                raise CollaboratorError(
                    operation, f"Response does not match {model.__name__}: {e}"
                ) from e
        raise CollaboratorError(
            operation,
            f"Expected {model.__name__} from '{operation}', got {type(response).__name__}"
        )

    def _check_character(self, session: EventSession, character: Character) -> None:
        if character.id != session.character_id:
            logger.warning(
                f"Rejected character {character.id} for event session {session.id} "
                f"(belongs to {session.character_id})"
            )
            raise InvalidInputError(
                f"Character {character.id} does not belong to event session {session.id}"
            )

    def _presented_choices(self, event_session_id: str) -> list[EventChoice]:
        for step in self.store.get_timeline(event_session_id):
            if isinstance(step.data, ChoicePresentedData):
                return step.data.choices
        raise StorageError(f"Event session {event_session_id} has no choice presentation step")

    def _active_task(self, session: EventSession) -> TaskDefinition:
        if session.metadata.active_task_id is None:
            raise StorageError(f"Event session {session.id} has no active task")
        return self.store.get_task(session.metadata.active_task_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def generate_choices(
        self,
        event_context: EventContext,
        character: Character,
        session_context: SessionContext,
        choice_count: int = 3,
    ) -> list[EventChoice]:
        """
        Ask the reasoning service for the options an event opens with.

        Nothing is stored; pass the returned choices to start_session.

        Raises:
            InvalidInputError: If choice_count is below 1
            CollaboratorError: generate_choices failed or returned unusable choices
        """
        if choice_count < 1:
            raise InvalidInputError("choice_count must be at least 1")

        response, duration_ms = await self._call_collaborator(
            "generate_choices",
            event_context.event_id,
            self.reasoning_service.generate_choices,
            event_context,
            character,
            session_context,
            choice_count,
        )
        if not isinstance(response, list) or not response:
            raise CollaboratorError("generate_choices", "Reasoning service returned no choices")
        generated = [self._coerce("generate_choices", item, EventChoice) for item in response]

        choice_ids = [choice.id for choice in generated]
        if len(set(choice_ids)) != len(choice_ids):
            raise CollaboratorError(
                "generate_choices", f"Generated choice ids must be unique, got {choice_ids}"
            )

        generated = generated[:choice_count]
        logger.bind(event_id=event_context.event_id, duration_ms=duration_ms).info(
            f"Generated {len(generated)} choices for event {event_context.event_id}"
        )
        return generated

    async def start_session(
        self,
        session_id: str,
        event_id: str,
        player_id: str,
        character_id: str,
        choices: list[EventChoice],
        max_attempts: int | None = None,
    ) -> EventSession:
        """
        Open a new event session waiting for the player's choice.

        Raises:
            InvalidInputError: If an id is empty, choices is empty or choice ids repeat
            InvalidStateTransitionError: If a live session already exists for the tuple
        """
        for value, field in (
            (session_id, "session_id"),
            (event_id, "event_id"),
            (player_id, "player_id"),
            (character_id, "character_id"),
        ):
            _require_text(value, field)

        if not choices:
            raise InvalidInputError("choices must not be empty")
        choice_ids = [choice.id for choice in choices]
        if len(set(choice_ids)) != len(choice_ids):
            raise InvalidInputError(f"choice ids must be unique, got {choice_ids}")

        max_attempts = max_attempts if max_attempts is not None else self.default_max_attempts
        if max_attempts < 1:
            raise InvalidInputError("max_attempts must be at least 1")

        tuple_key = f"{session_id}:{event_id}:{player_id}:{character_id}"
        async with self._lock_for(tuple_key):
            existing = self.store.find_by_tuple(session_id, event_id, player_id, character_id)
            if existing is not None and not existing.state.is_terminal:
                raise InvalidStateTransitionError(
                    f"Event session {existing.id} is still active for this "
                    f"session/event/player/character ({existing.state.value})"
                )

            now = self._clock()
            session = EventSession(
                id=self._new_id("evs"),
                session_id=session_id,
                event_id=event_id,
                player_id=player_id,
                character_id=character_id,
                state=EventState.WAITING_FOR_CHOICE,
                current_step=EventStepType.CHOICE_SELECTION,
                metadata=EventMetadata(start_time=now, max_attempts=max_attempts),
                created_at=now,
                updated_at=now,
            )
            step = EventStep(
                id=self._new_id("step"),
                event_session_id=session.id,
                step=EventStepType.CHOICE_SELECTION,
                timestamp=now,
                data=ChoicePresentedData(
                    event_id=event_id,
                    choices=list(choices),
                    state_after=EventState.WAITING_FOR_CHOICE,
                    step_after=EventStepType.CHOICE_SELECTION,
                ),
            )

            with self._atomic(session.id):
                self.store.create(session)
                self.store.append_step(session.id, step)

        logger.bind(event_session_id=session.id, event_id=event_id).info(
            f"Started event session {session.id} with {len(choices)} choices"
        )
        return session

    async def submit_choice(
        self,
        event_session_id: str,
        choice_id: str,
        choice: EventChoice,
        character: Character,
        session_context: SessionContext,
    ) -> TaskDefinition:
        """
        Have the reasoning service turn the chosen option into the session's task.

        Returns:
            The persisted, active TaskDefinition

        Raises:
            InvalidInputError: Mismatched or unknown choice, wrong character
            InvalidStateTransitionError: Session is not waiting for a choice
            CollaboratorError: interpret_choice failed (session is now failed)
        """
        _require_text(event_session_id, "event_session_id")
        _require_text(choice_id, "choice_id")

        async with self._lock_for(event_session_id):
            session = self.store.get(event_session_id)
            require_operation(session.id, "submit_choice", session.state)
            self._check_character(session, character)

            if choice.id != choice_id:
                raise InvalidInputError(
                    f"choice_id '{choice_id}' does not match choice.id '{choice.id}'"
                )
            presented_ids = {c.id for c in self._presented_choices(session.id)}
            if choice_id not in presented_ids:
                raise InvalidInputError(
                    f"Choice '{choice_id}' was not presented in event session {session.id}"
                )

            session = self._move(session, EventState.PROCESSING_CHOICE)

            with self._failing_on_error(session, "submit_choice"):
                response, duration_ms = await self._call_collaborator(
                    "interpret_choice",
                    session.id,
                    self.reasoning_service.interpret_choice,
                    choice,
                    character,
                    session_context,
                )
                draft = self._coerce("interpret_choice", response, TaskDraft)

                task = TaskDefinition.from_draft(
                    draft,
                    task_id=self._new_id("task"),
                    choice_id=choice_id,
                    event_session_id=session.id,
                    created_at=self._next_timestamp(session),
                    attempt=session.metadata.current_attempt,
                )
                step = self._build_step(
                    session,
                    EventStepType.AI_INTERPRETATION,
                    ChoiceInterpretedData(
                        choice_id=choice_id,
                        choice=choice,
                        task=task,
                        state_after=EventState.WAITING_FOR_SOLUTION,
                        step_after=EventStepType.TASK_PRESENTATION,
                    ),
                    ai_response=draft.interpretation,
                    player_input=choice.text,
                    duration_ms=duration_ms,
                )
                metadata = session.metadata.model_copy(update={"active_task_id": task.id})

                with self._atomic(session.id):
                    self.store.create_task(task)
                    self._commit_step(session, step, metadata)

        log_state_transition(
            session.id,
            EventState.PROCESSING_CHOICE.value,
            EventState.WAITING_FOR_SOLUTION.value,
            duration_ms,
        )
        return task

    def _start_retry(
        self,
        session: EventSession,
        previous: TaskDefinition,
        player_solution: str,
    ) -> tuple[EventSession, TaskDefinition]:
        """Open the next attempt: bump the counter and clone the sealed task"""
        attempt = session.metadata.current_attempt + 1
        created_at = self._next_timestamp(session)
        task = previous.model_copy(
            update={
                "id": self._new_id("task"),
                "attempt": attempt,
                "player_solution": None,
                "ai_evaluation": None,
                "difficulty_settings": None,
                "sealed": False,
                "created_at": created_at,
            }
        )
        metadata = EventMetadata.model_validate(
            {
                **session.metadata.model_dump(),
                "current_attempt": attempt,
                "active_task_id": task.id,
            }
        )
        step = self._build_step(
            session,
            EventStepType.RETRY_SELECTION,
            RetryStartedData(
                attempt=attempt,
                previous_task_id=previous.id,
                task_id=task.id,
                state_after=EventState.WAITING_FOR_SOLUTION,
                step_after=EventStepType.SOLUTION_INPUT,
            ),
            player_input=player_solution,
        )

        with self._atomic(session.id):
            self.store.create_task(task)
            session = self._commit_step(session, step, metadata)

        logger.bind(event_session_id=session.id, attempt=attempt).info(
            f"Retry started for event session {session.id}: attempt {attempt} "
            f"of {metadata.max_attempts}"
        )
        return session, task

    async def submit_solution(
        self,
        event_session_id: str,
        task_id: str,
        player_solution: str,
        character: Character,
        session_context: SessionContext,
    ) -> DifficultySettings:
        """
        Evaluate the player's proposed solution and derive the check's difficulty.

        From waiting_for_retry this first opens the next attempt on a fresh
        copy of the task; task_id may then name any task of the session.

        Returns:
            DifficultySettings for the roll the player must now make

        Raises:
            InvalidInputError: Empty solution, wrong task or character
            InvalidStateTransitionError: Session is not waiting for a solution or retry
            CollaboratorError: evaluate_solution failed (session is now failed)
            UnknownDifficultyLabelError: Evaluation label is unknown (session is now failed)
        """
        _require_text(event_session_id, "event_session_id")
        _require_text(task_id, "task_id")
        _require_text(player_solution, "player_solution")

        async with self._lock_for(event_session_id):
            session = self.store.get(event_session_id)
            require_operation(session.id, "submit_solution", session.state)
            self._check_character(session, character)
            task = self._active_task(session)

            if session.state == EventState.WAITING_FOR_RETRY:
                if task_id != task.id:
                    named = self.store.get_task(task_id)
                    if named.event_session_id != session.id:
                        raise InvalidInputError(
                            f"Task {task_id} does not belong to event session {session.id}"
                        )
                session, task = self._start_retry(session, task, player_solution)
            elif task_id != task.id:
                raise InvalidInputError(
                    f"Task {task_id} is not the active task of event session {session.id}"
                )

            task = task.model_copy(update={"player_solution": player_solution})
            with self._atomic(session.id):
                self.store.update_task(task)
                session = self._move(session, EventState.CALCULATING_DIFFICULTY)

            with self._failing_on_error(session, "submit_solution"):
                response, duration_ms = await self._call_collaborator(
                    "evaluate_solution",
                    session.id,
                    self.reasoning_service.evaluate_solution,
                    player_solution,
                    character,
                    session_context,
                    task,
                )
                evaluation = self._coerce("evaluate_solution", response, TaskEvaluation)
                settings = self.difficulty_calculator.calculate(evaluation)

                task = task.model_copy(
                    update={"ai_evaluation": evaluation, "difficulty_settings": settings}
                )
                step = self._build_step(
                    session,
                    EventStepType.DIFFICULTY_CALCULATION,
                    DifficultyCalculatedData(
                        task_id=task.id,
                        player_solution=player_solution,
                        evaluation=evaluation,
                        difficulty_settings=settings,
                        state_after=EventState.DICE_ROLLING,
                        step_after=EventStepType.DICE_ROLL,
                    ),
                    ai_response=evaluation.reasoning or None,
                    player_input=player_solution,
                    duration_ms=duration_ms,
                )

                with self._atomic(session.id):
                    self.store.update_task(task)
                    self._commit_step(session, step)

        log_state_transition(
            session.id,
            EventState.CALCULATING_DIFFICULTY.value,
            EventState.DICE_ROLLING.value,
            duration_ms,
        )
        return settings

    def _check_roll(
        self,
        task: TaskDefinition,
        difficulty_settings: DifficultySettings,
        dice_result: DiceRollResult,
    ) -> DifficultySettings:
        settings = task.difficulty_settings
        if settings is None:
            raise StorageError(f"Active task {task.id} has no difficulty settings")
        if difficulty_settings != settings:
            raise InvalidInputError(
                f"Difficulty settings do not match those computed for task {task.id}"
            )
        if dice_result.target_number != settings.base_target_number:
            raise InvalidInputError(
                f"Roll target {dice_result.target_number} does not match "
                f"target number {settings.base_target_number}"
            )
        if dice_result.dice_type != settings.roll_type:
            raise InvalidInputError(
                f"Rolled {dice_result.dice_type} but the check requires {settings.roll_type}"
            )
        return settings

    async def _settle_roll(
        self,
        session: EventSession,
        task: TaskDefinition,
        settings: DifficultySettings,
        dice_result: DiceRollResult,
        character: Character,
        session_context: SessionContext,
    ) -> tuple[EventResult, EventState, int]:
        """Resolve, narrate and commit a roll for a session in processing_result"""
        resolution = self.dice_engine.resolve(dice_result, settings)
        resolved_roll = dice_result.model_copy(
            update={
                "success": resolution.success,
                "critical_success": resolution.critical_type == CriticalType.SUCCESS,
                "critical_failure": resolution.critical_type == CriticalType.FAILURE,
            }
        )
        mismatched = [
            name
            for name in ("success", "critical_success", "critical_failure")
            if getattr(dice_result, name) is not None
            and getattr(dice_result, name) != getattr(resolved_roll, name)
        ]
        if mismatched:
            logger.bind(event_session_id=session.id).warning(
                f"Caller-supplied roll flags {mismatched} disagree with the resolved roll; "
                f"using resolved values"
            )

        response, duration_ms = await self._call_collaborator(
            "narrate_result",
            session.id,
            self.reasoning_service.narrate_result,
            session,
            character,
            session_context,
            resolved_roll,
            resolution.success,
        )
        if not isinstance(response, str) or not response.strip():
            raise CollaboratorError(
                "narrate_result", "Reasoning service returned an empty narrative"
            )

        applied_at = self._next_timestamp(session)
        rewards: list[Reward] | None = None
        penalties: list[PenaltyEffect] | None = None
        experience = 0
        if resolution.success:
            experience = self.difficulty_calculator.experience_for(settings)
            rewards = [
                Reward(
                    type="experience",
                    amount=experience,
                    description=f"Overcame a target number of {settings.base_target_number}",
                )
            ]
        else:
            penalties = self.penalty_manager.generate_penalties(
                resolved_roll, settings, applied_at=applied_at
            )

        metadata = session.metadata
        result = EventResult(
            success=resolution.success,
            final_score=resolved_roll.total_result,
            target_number=settings.base_target_number,
            dice_result=resolved_roll,
            critical_type=resolution.critical_type,
            narrative=response.strip(),
            rewards=rewards,
            penalties=penalties,
            experience_gained=experience,
            attempt=metadata.current_attempt,
        )

        if resolution.success or metadata.current_attempt >= metadata.max_attempts:
            next_state, next_step = EventState.COMPLETED, EventStepType.RESULT_PROCESSING
        else:
            next_state, next_step = EventState.WAITING_FOR_RETRY, EventStepType.RETRY_SELECTION

        metadata = metadata.model_copy(
            update={
                "accumulated_penalties": metadata.accumulated_penalties + (penalties or []),
                "experience_earned": metadata.experience_earned + experience,
            }
        )
        step = self._build_step(
            session,
            EventStepType.RESULT_PROCESSING,
            ResultProcessedData(
                task_id=task.id,
                result=result,
                difficulty_settings=settings,
                state_after=next_state,
                step_after=next_step,
            ),
            ai_response=result.narrative,
            dice_result=resolved_roll,
            penalties=penalties,
            duration_ms=duration_ms,
        )

        with self._atomic(session.id):
            self.store.update_task(task.model_copy(update={"sealed": True}))
            if penalties:
                self.store.append_penalties(session.id, session.character_id, penalties)
            self._commit_step(session, step, metadata)

        return result, next_state, duration_ms

    async def submit_roll(
        self,
        event_session_id: str,
        difficulty_settings: DifficultySettings,
        dice_result: DiceRollResult | dict,
        character: Character,
        session_context: SessionContext,
    ) -> EventResult:
        """
        Resolve the player's roll, narrate it and apply rewards or penalties.

        The session completes on success or when attempts run out; otherwise it
        waits for a retry. Success and critical flags on the submitted roll are
        recomputed; caller values only trigger a warning when they disagree.

        Raises:
            InvalidInputError: Malformed roll, mismatched settings, target or die, wrong character
            InvalidStateTransitionError: Session is not waiting for a roll
            CollaboratorError: narrate_result failed (session is now failed)
        """
        _require_text(event_session_id, "event_session_id")
        if isinstance(dice_result, dict):
            try:
                dice_result = DiceRollResult.model_validate(dice_result)
            except ValidationError as e:
                raise InvalidInputError(f"Invalid dice result: {e}") from e

        async with self._lock_for(event_session_id):
            session = self.store.get(event_session_id)
            require_operation(session.id, "submit_roll", session.state)
            self._check_character(session, character)
            task = self._active_task(session)
            settings = self._check_roll(task, difficulty_settings, dice_result)

            session = self._move(session, EventState.PROCESSING_RESULT)

            with self._failing_on_error(session, "submit_roll"):
                result, next_state, duration_ms = await self._settle_roll(
                    session, task, settings, dice_result, character, session_context
                )

        log_state_transition(
            session.id,
            EventState.PROCESSING_RESULT.value,
            next_state.value,
            duration_ms,
        )
        logger.bind(
            event_session_id=session.id,
            success=result.success,
            critical_type=result.critical_type,
            attempt=result.attempt,
        ).info(
            f"Roll resolved for event session {session.id}: "
            f"{result.final_score} vs {result.target_number} -> "
            f"{'success' if result.success else 'failure'}"
        )
        return result

    async def generate_retry_options(
        self,
        event_session_id: str,
        character: Character,
    ) -> list[RetryOption]:
        """
        List advisory retry options for a session waiting for a retry.

        Does not change the session; the player continues with submit_solution.
        """
        _require_text(event_session_id, "event_session_id")

        async with self._lock_for(event_session_id):
            session = self.store.get(event_session_id)
            require_operation(session.id, "generate_retry_options", session.state)
            self._check_character(session, character)
            return self.penalty_manager.generate_retry_options(session, character)

    async def abandon_session(
        self,
        event_session_id: str,
        reason: str = "Player chose not to retry",
    ) -> EventSession:
        """End a session waiting for a retry; penalties already applied stay applied"""
        _require_text(event_session_id, "event_session_id")
        _require_text(reason, "reason")

        async with self._lock_for(event_session_id):
            session = self.store.get(event_session_id)
            require_operation(session.id, "abandon_session", session.state)

            step = self._build_step(
                session,
                EventStepType.RETRY_SELECTION,
                RetryAbandonedData(
                    reason=reason,
                    state_after=EventState.FAILED,
                    step_after=EventStepType.RETRY_SELECTION,
                ),
                player_input=reason,
            )
            with self._atomic(session.id):
                abandoned = self._commit_step(session, step)

        log_state_transition(session.id, session.state.value, EventState.FAILED.value)
        return abandoned

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session(self, event_session_id: str) -> EventSession:
        return self.store.get(event_session_id)

    def get_timeline(self, event_session_id: str) -> list[EventStep]:
        return self.store.get_timeline(event_session_id)

    def get_task(self, task_id: str) -> TaskDefinition:
        return self.store.get_task(task_id)

    def get_results(self, event_session_id: str) -> list[EventResult]:
        """One EventResult per completed attempt, oldest first"""
        return [
            step.data.result
            for step in self.store.get_timeline(event_session_id)
            if isinstance(step.data, ResultProcessedData)
        ]

    def get_penalties(self, event_session_id: str) -> list[PenaltyEffect]:
        return self.store.get_penalties(event_session_id=event_session_id)

    def replay(self, event_session_id: str) -> ReplayedSession:
        return replay_timeline(self.store.get_timeline(event_session_id))
