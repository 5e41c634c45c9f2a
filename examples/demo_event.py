#!/usr/bin/env python3
# ABOUTME: Demo script playing the sample event without an OpenAI key.
# ABOUTME: Uses a canned reasoning service so the state machine, dice and retry flow can be tried offline.

"""
Demo of the interactive event engine

Plays examples/sample_event.json in the terminal. Choices, interpretation, evaluation
and narration come from fixed responses instead of the OpenAI service.
"""

import asyncio
from pathlib import Path

from trpg_events.interface.cli import EventCLI, load_event_script
from trpg_events.models.context import EventChoice
from trpg_events.models.task import TaskApproach, TaskDraft, TaskEvaluation, TaskModifier
from trpg_events.orchestration.state_machine import EventSessionStateMachine
from trpg_events.storage.memory_store import InMemorySessionStore
from trpg_events.utils.logging import setup_logging


class CannedReasoningService:
    """Reasoning service returning fixed answers"""

    async def generate_choices(self, event_context, character, session_context, choice_count=3):
        options = [
            EventChoice(id="climb", text="Climb down the ravine wall"),
            EventChoice(id="ferry", text="Hail the ferryman downstream"),
            EventChoice(id="wait", text="Wait for the river to drop"),
        ]
        return options[:choice_count]

    async def interpret_choice(self, choice, character, session_context):
        return TaskDraft(
            interpretation=f"{character.name} decides to {choice.text.lower()}.",
            objective=choice.description or choice.text,
            approach=TaskApproach(method=choice.id),
            constraints=["Night is falling"],
        )

    async def evaluate_solution(self, player_solution, character, session_context, task):
        difficulty = "easy" if "rope" in player_solution.lower() else "medium"
        return TaskEvaluation(
            final_difficulty=difficulty,
            modifiers=[TaskModifier(label="failing light", value=1)],
            reasoning="Rope makes the climb manageable" if difficulty == "easy" else "A risky plan",
        )

    async def narrate_result(self, event_session, character, session_context, dice_result=None, success=None):
        if success:
            return f"{character.name} makes it across as the last light fades."
        return f"{character.name} slips and has to scramble back to the edge."


async def main() -> None:
    setup_logging(log_level="WARNING", file_output=False)
    script = load_event_script(Path(__file__).parent / "sample_event.json")
    state_machine = EventSessionStateMachine(
        reasoning_service=CannedReasoningService(),
        store=InMemorySessionStore(),
    )
    await EventCLI(state_machine).run(script)


if __name__ == "__main__":
    asyncio.run(main())
