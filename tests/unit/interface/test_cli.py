# ABOUTME: Unit tests for the terminal event player.
# ABOUTME: Drives EventCLI with scripted input and a patched roller; covers choice generation and event file loading.

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from trpg_events.agents.exceptions import CollaboratorError
from trpg_events.interface.cli import EventCLI, EventFormatter, EventScript, load_event_script
from trpg_events.models.event_session import EventState

SAMPLE_EVENT = Path(__file__).resolve().parents[3] / "examples" / "sample_event.json"


@pytest.fixture
def script(character, choices, session_context) -> EventScript:
    return EventScript(
        session_id="session_001",
        event_id="bridge",
        player_id="player_001",
        title="The Collapsed Bridge",
        character=character,
        choices=choices,
        session_context=session_context,
        roll_modifier=2,
    )


def scripted(*answers: str):
    """input() replacement returning the given answers in order"""
    remaining = list(answers)
    return lambda prompt: remaining.pop(0)


class TestEventCLI:
    """Test suite for the interactive loop"""

    @pytest.mark.asyncio
    async def test_successful_event(self, state_machine, script, make_roll):
        output = []
        cli = EventCLI(
            state_machine,
            input_func=scripted("1", "Climb down with the rope", "roll"),
            output_func=output.append,
        )

        with patch("trpg_events.interface.cli.roll_check", return_value=make_roll(16, modifiers=2)) as roller:
            session = await cli.run(script)

        roller.assert_called_once_with("1d20+2", 15)
        assert session.state == EventState.COMPLETED
        text = "\n".join(output)
        assert "The Collapsed Bridge" in text
        assert "SUCCESS" in text
        assert "Event finished: completed" in text

    @pytest.mark.asyncio
    async def test_invalid_choice_number_reprompts(self, state_machine, script, make_roll):
        output = []
        cli = EventCLI(
            state_machine,
            input_func=scripted("7", "", "2", "Pay the ferryman", "roll"),
            output_func=output.append,
        )

        with patch("trpg_events.interface.cli.roll_check", return_value=make_roll(18)):
            session = await cli.run(script)

        assert "Enter a number between 1 and 2" in output
        assert state_machine.get_timeline(session.id)[1].data.choice_id == "negotiate"

    @pytest.mark.asyncio
    async def test_choices_generated_when_script_has_none(
        self, state_machine, mock_reasoning_service, script, make_roll
    ):
        script = script.model_copy(update={"choices": [], "choice_count": 2})
        cli = EventCLI(
            state_machine,
            input_func=scripted("2", "Pay the ferryman", "roll"),
            output_func=lambda _: None,
        )

        with patch("trpg_events.interface.cli.roll_check", return_value=make_roll(18)):
            session = await cli.run(script)

        event_context, _, _, choice_count = mock_reasoning_service.generate_choices.await_args.args
        assert event_context.event_id == "bridge"
        assert event_context.title == "The Collapsed Bridge"
        assert choice_count == 2
        assert state_machine.get_timeline(session.id)[1].data.choice_id == "negotiate"

    @pytest.mark.asyncio
    async def test_failed_roll_then_decline_retry(self, state_machine, script, make_roll):
        output = []
        cli = EventCLI(
            state_machine,
            input_func=scripted("1", "Jump across", "roll", "n"),
            output_func=output.append,
        )

        with patch("trpg_events.interface.cli.roll_check", return_value=make_roll(3)):
            session = await cli.run(script)

        assert session.state == EventState.FAILED
        text = "\n".join(output)
        assert "FAILURE" in text
        assert "Retry options (2 attempts left)" in text

    @pytest.mark.asyncio
    async def test_failed_roll_then_retry_succeeds(self, state_machine, script, make_roll):
        cli = EventCLI(
            state_machine,
            input_func=scripted("1", "Jump across", "roll", "y", "Use the rope this time", "roll"),
            output_func=lambda _: None,
        )

        with patch(
            "trpg_events.interface.cli.roll_check",
            side_effect=[make_roll(3), make_roll(19)],
        ):
            session = await cli.run(script)

        assert session.state == EventState.COMPLETED
        assert session.metadata.current_attempt == 2

    @pytest.mark.asyncio
    async def test_engine_error_is_reported_and_raised(
        self, state_machine, mock_reasoning_service, script
    ):
        mock_reasoning_service.interpret_choice.side_effect = CollaboratorError(
            "interpret_choice", "model unavailable"
        )
        output = []
        cli = EventCLI(state_machine, input_func=scripted("1"), output_func=output.append)

        with pytest.raises(CollaboratorError):
            await cli.run(script)

        assert any("CollaboratorError" in line for line in output)


class TestEventFormatter:
    """Test suite for text rendering"""

    def test_choices_numbered(self, choices):
        text = EventFormatter().format_choices(choices)

        assert "1. Explore the ravine" in text
        assert "2. Bargain with the ferryman" in text


class TestLoadEventScript:
    """Test suite for event file loading"""

    def test_sample_event_loads(self):
        script = load_event_script(SAMPLE_EVENT)

        assert script.choices
        assert script.character.id

    def test_choices_optional(self, tmp_path):
        data = json.loads(SAMPLE_EVENT.read_text(encoding="utf-8"))
        data.pop("choices")
        path = tmp_path / "event.json"
        path.write_text(json.dumps(data))

        script = load_event_script(path)

        assert script.choices == []
        assert script.choice_count == 3
        assert script.event_context().description == data["description"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            load_event_script(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "event.json"
        path.write_text("{oops")

        with pytest.raises(ValueError, match="Invalid JSON"):
            load_event_script(path)

    def test_schema_mismatch(self, tmp_path):
        path = tmp_path / "event.json"
        path.write_text(json.dumps({"session_id": "s", "choices": []}))

        with pytest.raises(ValueError, match="Invalid event file"):
            load_event_script(path)
