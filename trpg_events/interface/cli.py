# ABOUTME: Terminal front-end that plays one interactive event against the state machine.
# ABOUTME: Loads an event file, generates choices when it lists none, rolls locally and offers retries.

import json
from collections.abc import Callable
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from trpg_events.exceptions import EventEngineError
from trpg_events.models.context import Character, EventChoice, EventContext, SessionContext
from trpg_events.models.event_session import EventSession, EventState
from trpg_events.models.outcomes import EventResult, RetryOption
from trpg_events.models.task import DifficultySettings, TaskDefinition
from trpg_events.orchestration.state_machine import EventSessionStateMachine
from trpg_events.utils.dice import roll_check


class EventScript(BaseModel):
    """Everything needed to run one event from the terminal"""

    session_id: str
    event_id: str
    player_id: str
    title: str = "Interactive Event"
    description: str | None = None
    character: Character
    choices: list[EventChoice] = Field(
        default_factory=list,
        description="Options to offer; generated by the reasoning service when empty"
    )
    choice_count: int = Field(default=3, ge=1)
    session_context: SessionContext
    roll_modifier: int = Field(
        default=0,
        description="Modifier added to the local d20 roll"
    )

    def event_context(self) -> EventContext:
        return EventContext(
            event_id=self.event_id,
            title=self.title,
            description=self.description,
            current_situation=self.session_context.current_location,
        )


def load_event_script(path: str | Path) -> EventScript:
    """
    Load an event script from a JSON file.

    Raises:
        ValueError: If the file is missing, not JSON, or does not match EventScript
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return EventScript.model_validate(data)
    except FileNotFoundError as e:
        raise ValueError(f"Event file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e
    except ValidationError as e:
        raise ValueError(f"Invalid event file {path}: {e}") from e


class EventFormatter:
    """Plain-text rendering of engine objects for the terminal"""

    def format_header(self, script: EventScript) -> str:
        return (
            f"\n=== {script.title} ===\n"
            f"Character: {script.character.name}\n"
        )

    def format_choices(self, choices: list[EventChoice]) -> str:
        lines = ["Choose an option:"]
        for index, choice in enumerate(choices, start=1):
            line = f"  {index}. {choice.text}"
            if choice.description:
                line += f" - {choice.description}"
            lines.append(line)
        return "\n".join(lines)

    def format_task(self, task: TaskDefinition) -> str:
        lines = [
            f"\nTask: {task.objective}",
            f"  {task.interpretation}",
        ]
        if task.constraints:
            lines.append(f"  Constraints: {'; '.join(task.constraints)}")
        return "\n".join(lines)

    def format_difficulty(self, settings: DifficultySettings) -> str:
        text = f"\nRoll {settings.roll_type} against {settings.base_target_number}"
        if settings.modifiers:
            mods = ", ".join(f"{m.label} {m.value:+d}" for m in settings.modifiers)
            text += f" (situational: {mods})"
        return text

    def format_result(self, result: EventResult) -> str:
        roll = result.dice_result
        lines = [
            f"\nRolled {roll.raw_roll} {roll.modifiers:+d} = {roll.total_result} "
            f"vs {result.target_number}: {'SUCCESS' if result.success else 'FAILURE'}",
        ]
        if result.critical_type is not None:
            lines.append(f"Critical {result.critical_type.value}!")
        lines.append(result.narrative)
        for reward in result.rewards or []:
            lines.append(f"  + {reward.amount} {reward.type}: {reward.description}")
        for penalty in result.penalties or []:
            lines.append(f"  - {penalty.amount} {penalty.type.value}: {penalty.description}")
        return "\n".join(lines)

    def format_retry_options(self, options: list[RetryOption]) -> str:
        lines = [f"\nRetry options ({options[0].available_attempts} attempts left):"]
        for option in options:
            line = f"  * {option.description}"
            if option.penalty_reduction:
                line += f" (penalty -{option.penalty_reduction}%, cost x{option.cost_modifier})"
            lines.append(line)
        return "\n".join(lines)

    def format_summary(self, session: EventSession) -> str:
        return (
            f"\nEvent finished: {session.state.value} after "
            f"{session.metadata.current_attempt} attempt(s), "
            f"{session.metadata.experience_earned} experience, "
            f"{len(session.metadata.accumulated_penalties)} penalties"
        )

    def format_error(self, error: Exception) -> str:
        return f"\nError ({type(error).__name__}): {error}"


class EventCLI:
    """
    Interactive terminal loop for a single event.

    Input and output are injectable so the loop can be driven from tests.
    """

    def __init__(
        self,
        state_machine: EventSessionStateMachine,
        input_func: Callable[[str], str] = input,
        output_func: Callable[[str], None] = print,
    ):
        self.state_machine = state_machine
        self.formatter = EventFormatter()
        self._input = input_func
        self._output = output_func

    def _ask(self, prompt: str) -> str:
        while True:
            answer = self._input(prompt).strip()
            if answer:
                return answer

    def _pick_choice(self, choices: list[EventChoice]) -> EventChoice:
        self._output(self.formatter.format_choices(choices))
        while True:
            answer = self._ask("> ")
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1]
            self._output(f"Enter a number between 1 and {len(choices)}")

    async def run(self, script: EventScript) -> EventSession:
        """
        Play the event to completion, failure or abandonment.

        Returns:
            Final EventSession

        Raises:
            EventEngineError: If the engine rejects an operation or a collaborator fails
        """
        sm = self.state_machine
        self._output(self.formatter.format_header(script))

        try:
            choices = script.choices or await sm.generate_choices(
                script.event_context(),
                script.character,
                script.session_context,
                script.choice_count,
            )
            session = await sm.start_session(
                script.session_id,
                script.event_id,
                script.player_id,
                script.character.id,
                choices,
            )
            choice = self._pick_choice(choices)

            task = await sm.submit_choice(
                session.id, choice.id, choice, script.character, script.session_context
            )
            self._output(self.formatter.format_task(task))

            while True:
                solution = self._ask("\nHow do you tackle it? > ")
                settings = await sm.submit_solution(
                    session.id, task.id, solution, script.character, script.session_context
                )
                self._output(self.formatter.format_difficulty(settings))
                self._ask("Type 'roll' to roll the dice > ")

                roll = roll_check(
                    f"1{settings.roll_type}{script.roll_modifier:+d}",
                    settings.base_target_number,
                )
                result = await sm.submit_roll(
                    session.id, settings, roll, script.character, script.session_context
                )
                self._output(self.formatter.format_result(result))

                session = sm.get_session(session.id)
                if session.state != EventState.WAITING_FOR_RETRY:
                    break

                options = await sm.generate_retry_options(session.id, script.character)
                self._output(self.formatter.format_retry_options(options))
                if self._ask("Retry? [y/n] > ").lower() not in ("y", "yes"):
                    session = await sm.abandon_session(session.id)
                    break
        except EventEngineError as e:
            logger.error(f"Event {script.event_id} stopped: {e}")
            self._output(self.formatter.format_error(e))
            raise

        self._output(self.formatter.format_summary(session))
        return session
