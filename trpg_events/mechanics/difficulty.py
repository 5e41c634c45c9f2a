# ABOUTME: Converts qualitative solution evaluations into numeric difficulty settings.
# ABOUTME: Label-to-target lookup is a tunable policy; unknown labels are a hard error, never defaulted.

from loguru import logger
from pydantic import BaseModel, Field, model_validator

from trpg_events.mechanics.exceptions import UnknownDifficultyLabelError
from trpg_events.models.task import DifficultySettings, TaskEvaluation

DEFAULT_TARGET_NUMBERS = {
    "trivial": 5,
    "easy": 10,
    "medium": 15,
    "hard": 20,
    "extreme": 25,
}

DEFAULT_EXPERIENCE_BY_TARGET = {
    5: 10,
    10: 25,
    15: 50,
    20: 100,
    25: 200,
}


class DifficultyPolicy(BaseModel):
    """Tunable numbers behind difficulty calculation and experience rewards"""

    target_numbers: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_TARGET_NUMBERS),
        description="Difficulty label -> base target number"
    )
    roll_type: str = Field(default="d20")
    critical_success: int = Field(default=20, ge=1)
    critical_failure: int = Field(default=1, ge=1)
    retry_penalty: int = Field(default=2, ge=0)
    max_retries: int = Field(default=3, ge=0)
    experience_by_target: dict[int, int] = Field(
        default_factory=lambda: dict(DEFAULT_EXPERIENCE_BY_TARGET),
        description="Base target number -> experience granted on success"
    )
    fallback_experience: int = Field(
        default=25,
        ge=0,
        description="Experience for targets missing from experience_by_target"
    )

    @model_validator(mode='after')
    def validate_policy(self):
        if not self.target_numbers:
            raise ValueError("target_numbers must not be empty")
        if self.critical_failure >= self.critical_success:
            raise ValueError("critical_failure must be below critical_success")
        self.target_numbers = {k.strip().lower(): v for k, v in self.target_numbers.items()}
        return self


class DifficultyCalculator:
    """Deterministic TaskEvaluation -> DifficultySettings mapping"""

    def __init__(self, policy: DifficultyPolicy | None = None):
        self.policy = policy or DifficultyPolicy()

    def target_number_for(self, label: str) -> int:
        """
        Look up the base target number for a difficulty label.

        Raises:
            UnknownDifficultyLabelError: If the label is not in the table
        """
        key = label.strip().lower()
        if key not in self.policy.target_numbers:
            raise UnknownDifficultyLabelError(label)
        return self.policy.target_numbers[key]

    def calculate(self, evaluation: TaskEvaluation) -> DifficultySettings:
        """
        Build difficulty settings for an evaluated solution.

        Modifiers pass through unchanged; DifficultySettings.effective_target_number
        sums them, so adding a positive modifier never lowers the realized difficulty.

        Args:
            evaluation: Reasoning service judgement of the player's solution

        Returns:
            DifficultySettings with the looked-up base and fixed roll parameters

        Raises:
            UnknownDifficultyLabelError: If final_difficulty is not a known label
        """
        base = self.target_number_for(evaluation.final_difficulty)
        settings = DifficultySettings(
            base_target_number=base,
            modifiers=list(evaluation.modifiers),
            roll_type=self.policy.roll_type,
            critical_success=self.policy.critical_success,
            critical_failure=self.policy.critical_failure,
            retry_penalty=self.policy.retry_penalty,
            max_retries=self.policy.max_retries,
        )
        logger.debug(
            f"Difficulty '{evaluation.final_difficulty}' -> target {base} "
            f"(effective {settings.effective_target_number})"
        )
        return settings

    def experience_for(self, settings: DifficultySettings) -> int:
        """Experience granted for succeeding against the given settings"""
        return self.policy.experience_by_target.get(
            settings.base_target_number,
            self.policy.fallback_experience
        )
