# ABOUTME: Exception definitions for the game mechanics layer.
# ABOUTME: Defines errors raised by DifficultyCalculator and DiceResolutionEngine.

from trpg_events.exceptions import EventEngineError


class UnknownDifficultyLabelError(EventEngineError):
    """Raised when a difficulty label has no entry in the target number table"""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Unknown difficulty label: '{label}'")
