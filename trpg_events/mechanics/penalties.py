# ABOUTME: Penalty generation on failed attempts and skill-gated retry option generation.
# ABOUTME: Amounts, thresholds and reductions live in PenaltyPolicy / RetryPolicy so they can be tuned.

import uuid
from datetime import UTC, datetime

from loguru import logger
from pydantic import BaseModel, Field

from trpg_events.models.context import Character
from trpg_events.models.dice_models import DiceRollResult
from trpg_events.models.event_session import EventSession
from trpg_events.models.outcomes import (
    PenaltyEffect,
    PenaltySeverity,
    PenaltyType,
    RetryOption,
)
from trpg_events.models.task import DifficultySettings


class PenaltyPolicy(BaseModel):
    """Penalty amounts applied after a failed roll"""

    critical_failure_hp_loss: int = Field(default=2, ge=0)
    critical_failure_description: str = "Minor injury from a critical failure"
    failure_time_loss: int = Field(default=1, ge=0)
    failure_description: str = "Time wasted on a failed attempt"
    source: str = "dice_failure"


class SkillRetryRule(BaseModel):
    """Extra retry option unlocked when a character's skill exceeds a threshold"""

    skill_aliases: list[str] = Field(min_length=1)
    threshold: int = Field(ge=0, description="Skill level must be strictly greater than this")
    penalty_reduction: int = Field(ge=0, le=100)
    cost_modifier: float = Field(gt=0.0)
    description: str
    requirement: str


def _default_skill_rules() -> list[SkillRetryRule]:
    return [
        SkillRetryRule(
            skill_aliases=["persuasion", "説得"],
            threshold=15,
            penalty_reduction=25,
            cost_modifier=0.8,
            description="Try a different persuasive approach",
            requirement="Persuasion skill above 15",
        ),
        SkillRetryRule(
            skill_aliases=["investigation", "調査"],
            threshold=12,
            penalty_reduction=15,
            cost_modifier=1.2,
            description="Investigate the situation more closely before retrying",
            requirement="Investigation skill above 12",
        ),
    ]


class RetryPolicy(BaseModel):
    """Retry options offered while a session waits for a retry decision"""

    same_approach_description: str = "Retry with the same approach"
    skill_rules: list[SkillRetryRule] = Field(default_factory=_default_skill_rules)


class PenaltyRetryManager:
    """Computes penalties for failed attempts and advisory retry options"""

    def __init__(
        self,
        penalty_policy: PenaltyPolicy | None = None,
        retry_policy: RetryPolicy | None = None
    ):
        self.penalty_policy = penalty_policy or PenaltyPolicy()
        self.retry_policy = retry_policy or RetryPolicy()

    def generate_penalties(
        self,
        dice_result: DiceRollResult,
        settings: DifficultySettings,
        applied_at: datetime | None = None
    ) -> list[PenaltyEffect]:
        """
        Produce penalties for a failed roll.

        A natural critical_failure face costs HP (reversible), any other failure
        costs time. Always returns at least one penalty.

        Args:
            dice_result: The failed roll
            settings: Difficulty settings the roll was made against
            applied_at: Timestamp to stamp on the penalties (default: now)

        Returns:
            List of PenaltyEffect records to append to the ledger
        """
        applied_at = applied_at or datetime.now(UTC)
        policy = self.penalty_policy

        if dice_result.raw_roll == settings.critical_failure:
            penalty = PenaltyEffect(
                id=str(uuid.uuid4()),
                type=PenaltyType.HP_LOSS,
                amount=policy.critical_failure_hp_loss,
                description=policy.critical_failure_description,
                reversible=True,
                severity=PenaltySeverity.MINOR,
                applied_at=applied_at,
                source=policy.source,
            )
        else:
            penalty = PenaltyEffect(
                id=str(uuid.uuid4()),
                type=PenaltyType.TIME_LOSS,
                amount=policy.failure_time_loss,
                description=policy.failure_description,
                reversible=False,
                severity=PenaltySeverity.MINOR,
                applied_at=applied_at,
                source=policy.source,
            )

        logger.debug(f"Generated penalty {penalty.type.value} x{penalty.amount}")
        return [penalty]

    def generate_retry_options(
        self,
        session: EventSession,
        character: Character
    ) -> list[RetryOption]:
        """
        Build the retry options available to a character.

        The no-bonus "same approach" option is always first; skill rules add
        reduced-penalty options when the character's best matching skill is
        above the rule's threshold.
        """
        remaining = max(session.metadata.remaining_attempts, 0)

        options = [
            RetryOption(
                id=str(uuid.uuid4()),
                description=self.retry_policy.same_approach_description,
                penalty_reduction=0,
                cost_modifier=1.0,
                available_attempts=remaining,
                requirements=[],
            )
        ]

        for rule in self.retry_policy.skill_rules:
            level = character.skill_level(rule.skill_aliases)
            if level > rule.threshold:
                options.append(
                    RetryOption(
                        id=str(uuid.uuid4()),
                        description=rule.description,
                        penalty_reduction=rule.penalty_reduction,
                        cost_modifier=rule.cost_modifier,
                        available_attempts=remaining,
                        requirements=[rule.requirement],
                    )
                )

        logger.debug(
            f"Generated {len(options)} retry options for session {session.id} "
            f"({remaining} attempts left)"
        )
        return options
