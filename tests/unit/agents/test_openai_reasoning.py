# ABOUTME: Unit tests for the OpenAI-backed reasoning service.
# ABOUTME: Validates prompt rendering, JSON response parsing and CollaboratorError mapping for every operation.

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from trpg_events.agents.exceptions import CollaboratorError, LLMCallFailed
from trpg_events.agents.openai_reasoning import OpenAIReasoningService
from trpg_events.models.context import EventChoice
from trpg_events.models.event_session import EventMetadata, EventSession
from trpg_events.models.task import TaskApproach, TaskDefinition, TaskDraft, TaskEvaluation

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def llm_client():
    client = MagicMock()
    client.call = AsyncMock()
    return client


@pytest.fixture
def service(llm_client):
    return OpenAIReasoningService(llm_client, temperature=0.4)


@pytest.fixture
def task() -> TaskDefinition:
    return TaskDefinition(
        id="task_1",
        choice_id="explore",
        event_session_id="evs_1",
        interpretation="Mira searches the ravine walls",
        objective="Find a safe path across",
        approach=TaskApproach(method="exploration"),
        constraints=["Night is falling"],
        created_at=NOW,
    )


@pytest.fixture
def event_session() -> EventSession:
    return EventSession(
        id="evs_1",
        session_id="session_001",
        event_id="bridge",
        player_id="player_001",
        character_id="char_mira_001",
        metadata=EventMetadata(start_time=NOW, current_attempt=2),
        created_at=NOW,
        updated_at=NOW,
    )


class TestGenerateChoices:
    """Test suite for generate_choices"""

    @pytest.mark.asyncio
    async def test_parses_choices(
        self, service, llm_client, event_context, character, session_context
    ):
        llm_client.call.return_value = json.dumps({
            "choices": [
                {"id": "climb_down", "text": "Climb down the ravine wall", "requirements": ["rope"]},
                {"id": "hail_ferry", "text": "Hail the ferryman downstream"},
            ]
        })

        generated = await service.generate_choices(
            event_context, character, session_context, choice_count=2
        )

        assert [c.id for c in generated] == ["climb_down", "hail_ferry"]
        assert isinstance(generated[0], EventChoice)
        assert generated[0].requirements == ["rope"]
        system_prompt, user_prompt = llm_client.call.await_args.args
        assert "interactive event" in system_prompt
        assert "The Collapsed Bridge" in user_prompt
        assert "exactly 2 options" in user_prompt
        assert llm_client.call.await_args.kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_extra_choices_trimmed(
        self, service, llm_client, event_context, character, session_context
    ):
        llm_client.call.return_value = json.dumps({
            "choices": [{"id": f"option_{n}", "text": f"Option {n}"} for n in range(4)]
        })

        generated = await service.generate_choices(event_context, character, session_context)

        assert [c.id for c in generated] == ["option_0", "option_1", "option_2"]

    @pytest.mark.asyncio
    async def test_empty_choice_list_raises(
        self, service, llm_client, event_context, character, session_context
    ):
        llm_client.call.return_value = json.dumps({"choices": []})

        with pytest.raises(CollaboratorError, match="does not match GeneratedChoices") as exc_info:
            await service.generate_choices(event_context, character, session_context)

        assert exc_info.value.operation == "generate_choices"

    @pytest.mark.asyncio
    async def test_duplicate_ids_raise(
        self, service, llm_client, event_context, character, session_context
    ):
        llm_client.call.return_value = json.dumps({
            "choices": [
                {"id": "climb", "text": "Climb down"},
                {"id": "climb", "text": "Climb across"},
            ]
        })

        with pytest.raises(CollaboratorError, match="duplicate choice ids"):
            await service.generate_choices(event_context, character, session_context)

    @pytest.mark.asyncio
    async def test_invalid_json_raises(
        self, service, llm_client, event_context, character, session_context
    ):
        llm_client.call.return_value = "three options: climb, swim, wait"

        with pytest.raises(CollaboratorError, match="Failed to parse"):
            await service.generate_choices(event_context, character, session_context)


class TestInterpretChoice:
    """Test suite for interpret_choice"""

    @pytest.mark.asyncio
    async def test_parses_task_draft(self, service, llm_client, choices, character, session_context):
        llm_client.call.return_value = json.dumps({
            "interpretation": "Mira scouts the ravine",
            "objective": "Find another crossing",
            "approach": {"method": "exploration", "skills": ["investigation"]},
            "estimated_difficulty": "medium",
        })

        draft = await service.interpret_choice(choices[0], character, session_context)

        assert isinstance(draft, TaskDraft)
        assert draft.objective == "Find another crossing"
        system_prompt, user_prompt = llm_client.call.await_args.args
        assert "game master" in system_prompt
        assert choices[0].text in user_prompt
        assert "Mira Ashdown" in user_prompt
        assert llm_client.call.await_args.kwargs["response_format"] == {"type": "json_object"}
        assert llm_client.call.await_args.kwargs["temperature"] == 0.4

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, service, llm_client, choices, character, session_context):
        llm_client.call.return_value = "not json"

        with pytest.raises(CollaboratorError, match="Failed to parse") as exc_info:
            await service.interpret_choice(choices[0], character, session_context)

        assert exc_info.value.operation == "interpret_choice"

    @pytest.mark.asyncio
    async def test_wrong_shape_raises(self, service, llm_client, choices, character, session_context):
        llm_client.call.return_value = json.dumps({"objective": "missing fields"})

        with pytest.raises(CollaboratorError, match="does not match TaskDraft"):
            await service.interpret_choice(choices[0], character, session_context)

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self, service, llm_client, choices, character, session_context):
        llm_client.call.side_effect = LLMCallFailed("OpenAI API call failed: 503")

        with pytest.raises(CollaboratorError, match="503"):
            await service.interpret_choice(choices[0], character, session_context)


class TestEvaluateSolution:
    """Test suite for evaluate_solution"""

    @pytest.mark.asyncio
    async def test_parses_evaluation(self, service, llm_client, task, character, session_context):
        llm_client.call.return_value = json.dumps({
            "final_difficulty": "Hard",
            "modifiers": [{"label": "darkness", "value": 2}],
            "reasoning": "Climbing blind is risky",
            "feasibility": 60,
        })

        evaluation = await service.evaluate_solution(
            "Climb down without light", character, session_context, task
        )

        assert isinstance(evaluation, TaskEvaluation)
        assert evaluation.final_difficulty == "hard"
        assert evaluation.modifiers[0].value == 2
        user_prompt = llm_client.call.await_args.args[1]
        assert "Climb down without light" in user_prompt
        assert "Night is falling" in user_prompt


class TestNarrateResult:
    """Test suite for narrate_result"""

    @pytest.mark.asyncio
    async def test_returns_stripped_narrative(
        self, service, llm_client, event_session, character, session_context, make_roll
    ):
        llm_client.call.return_value = "  Mira lands softly on the far bank.  "

        narrative = await service.narrate_result(
            event_session, character, session_context, make_roll(17, modifiers=1), True
        )

        assert narrative == "Mira lands softly on the far bank."
        user_prompt = llm_client.call.await_args.args[1]
        assert "rolled 17 +1 = 18 vs 15" in user_prompt
        assert "success" in user_prompt
        assert llm_client.call.await_args.kwargs["response_format"] is None

    @pytest.mark.asyncio
    async def test_empty_narrative_raises(
        self, service, llm_client, event_session, character, session_context
    ):
        llm_client.call.return_value = ""

        with pytest.raises(CollaboratorError, match="empty narrative"):
            await service.narrate_result(event_session, character, session_context)
