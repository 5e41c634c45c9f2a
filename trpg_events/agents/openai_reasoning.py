# ABOUTME: OpenAI-backed ReasoningServiceAdapter using JSON-mode chat completions.
# ABOUTME: Responses are validated against the expected pydantic models; any failure raises CollaboratorError.

import json

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from trpg_events.agents.exceptions import CollaboratorError, LLMCallFailed
from trpg_events.agents.llm_client import LLMClient
from trpg_events.config.prompts import (
    EVALUATE_SOLUTION_PROMPT,
    GENERATE_CHOICES_PROMPT,
    INTERPRET_CHOICE_PROMPT,
    NARRATE_RESULT_PROMPT,
)
from trpg_events.models.context import Character, EventChoice, EventContext, SessionContext
from trpg_events.models.dice_models import DiceRollResult
from trpg_events.models.event_session import EventSession
from trpg_events.models.task import TaskDefinition, TaskDraft, TaskEvaluation


class GeneratedChoices(BaseModel):
    """JSON envelope the model answers generate_choices with"""

    choices: list[EventChoice] = Field(min_length=1)


class OpenAIReasoningService:
    """Reasoning service that asks an OpenAI model for choices, tasks, evaluations and narration"""

    def __init__(self, llm_client: LLMClient, temperature: float = 0.7):
        self._llm_client = llm_client
        self.temperature = temperature

    async def _call(self, operation: str, system_prompt: str, user_prompt: str, json_mode: bool) -> str:
        try:
            return await self._llm_client.call(
                system_prompt,
                user_prompt,
                temperature=self.temperature,
                response_format={"type": "json_object"} if json_mode else None,
            )
        except LLMCallFailed as e:
            raise CollaboratorError(operation, str(e)) from e

    def _parse(self, operation: str, response: str, model: type[BaseModel]):
        try:
            data = json.loads(response)
            return model.model_validate(data)
        except json.JSONDecodeError as e:
            raise CollaboratorError(operation, f"Failed to parse LLM JSON response: {e}") from e
        except ValidationError as e:
            raise CollaboratorError(
                operation, f"LLM response does not match {model.__name__}: {e}"
            ) from e

    async def generate_choices(
        self,
        event_context: EventContext,
        character: Character,
        session_context: SessionContext,
        choice_count: int = 3,
    ) -> list[EventChoice]:
        system_prompt, user_prompt = GENERATE_CHOICES_PROMPT.render(
            event=event_context.model_dump_json(indent=2),
            character=character.model_dump_json(indent=2),
            session_context=session_context.model_dump_json(indent=2),
            choice_count=str(choice_count),
        )
        response = await self._call("generate_choices", system_prompt, user_prompt, json_mode=True)
        generated = self._parse("generate_choices", response, GeneratedChoices)

        choice_ids = [choice.id for choice in generated.choices]
        if len(set(choice_ids)) != len(choice_ids):
            raise CollaboratorError(
                "generate_choices", f"LLM returned duplicate choice ids: {choice_ids}"
            )
        if len(choice_ids) != choice_count:
            logger.warning(
                f"Asked for {choice_count} choices for event {event_context.event_id}, "
                f"got {len(choice_ids)}"
            )
        return generated.choices[:choice_count]

    async def interpret_choice(
        self,
        choice: EventChoice,
        character: Character,
        session_context: SessionContext,
    ) -> TaskDraft:
        system_prompt, user_prompt = INTERPRET_CHOICE_PROMPT.render(
            choice_text=choice.text,
            choice_description=choice.description or "(none)",
            character=character.model_dump_json(indent=2),
            session_context=session_context.model_dump_json(indent=2),
        )
        response = await self._call("interpret_choice", system_prompt, user_prompt, json_mode=True)
        draft = self._parse("interpret_choice", response, TaskDraft)
        logger.debug(f"Interpreted choice {choice.id} into objective: {draft.objective}")
        return draft

    async def evaluate_solution(
        self,
        player_solution: str,
        character: Character,
        session_context: SessionContext,
        task: TaskDefinition,
    ) -> TaskEvaluation:
        system_prompt, user_prompt = EVALUATE_SOLUTION_PROMPT.render(
            objective=task.objective,
            interpretation=task.interpretation,
            constraints="; ".join(task.constraints) or "(none)",
            player_solution=player_solution,
            character=character.model_dump_json(indent=2),
            session_context=session_context.model_dump_json(indent=2),
        )
        response = await self._call("evaluate_solution", system_prompt, user_prompt, json_mode=True)
        evaluation = self._parse("evaluate_solution", response, TaskEvaluation)
        logger.debug(f"Evaluated solution for task {task.id}: {evaluation.final_difficulty}")
        return evaluation

    async def narrate_result(
        self,
        event_session: EventSession,
        character: Character,
        session_context: SessionContext,
        dice_result: DiceRollResult | None = None,
        success: bool | None = None,
    ) -> str:
        if dice_result is None:
            roll = "(no roll)"
        else:
            roll = (
                f"{dice_result.dice_type} rolled {dice_result.raw_roll} "
                f"{dice_result.modifiers:+d} = {dice_result.total_result} "
                f"vs {dice_result.target_number}"
            )
        outcome = "unknown" if success is None else ("success" if success else "failure")

        system_prompt, user_prompt = NARRATE_RESULT_PROMPT.render(
            character=character.model_dump_json(indent=2),
            session_context=session_context.model_dump_json(indent=2),
            attempt=str(event_session.metadata.current_attempt),
            max_attempts=str(event_session.metadata.max_attempts),
            roll=roll,
            outcome=outcome,
        )
        narrative = await self._call("narrate_result", system_prompt, user_prompt, json_mode=False)
        if not narrative.strip():
            raise CollaboratorError("narrate_result", "LLM returned an empty narrative")
        return narrative.strip()
