# ABOUTME: Pydantic models for AI-interpreted tasks, solution evaluations and derived difficulty settings.
# ABOUTME: TaskDraft is what the reasoning service returns; TaskDefinition is what the engine persists.

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class TaskApproach(BaseModel):
    """Structured description of how the task is expected to be tackled"""

    method: str = Field(description="Primary approach, e.g. 'stealth' or 'negotiation'")
    skills: list[str] = Field(
        default_factory=list,
        description="Skills the approach leans on"
    )
    tools: list[str] = Field(default_factory=list)


class TaskModifier(BaseModel):
    """Signed, labelled adjustment to a target number"""

    label: str
    value: int

    model_config = {"frozen": True}


class TaskDraft(BaseModel):
    """Task content produced by the reasoning service, before the engine assigns identity"""

    interpretation: str = Field(min_length=1)
    objective: str = Field(min_length=1)
    approach: TaskApproach
    constraints: list[str] = Field(default_factory=list)
    success_criteria: list[str] = Field(default_factory=list)
    estimated_difficulty: str | None = Field(
        default=None,
        description="Qualitative label guessed at interpretation time; advisory only"
    )


class TaskEvaluation(BaseModel):
    """Qualitative judgement of a player's solution"""

    final_difficulty: str = Field(
        min_length=1,
        description="Difficulty label, resolved against the calculator's table"
    )
    modifiers: list[TaskModifier] = Field(default_factory=list)
    reasoning: str = ""
    feasibility: int | None = Field(default=None, ge=0, le=100)
    creativity: int | None = Field(default=None, ge=0, le=100)
    risk_level: int | None = Field(default=None, ge=0, le=100)

    @field_validator('final_difficulty')
    @classmethod
    def normalize_label(cls, v: str) -> str:
        return v.strip().lower()


class DifficultySettings(BaseModel):
    """Numeric difficulty derived deterministically from a TaskEvaluation"""

    base_target_number: int = Field(ge=1)
    modifiers: list[TaskModifier] = Field(default_factory=list)
    roll_type: str = "d20"
    critical_success: int = 20
    critical_failure: int = 1
    retry_penalty: int = 2
    max_retries: int = 3

    model_config = {"frozen": True}

    @property
    def effective_target_number(self) -> int:
        """Base plus the sum of modifiers; never used to decide success"""
        return self.base_target_number + sum(m.value for m in self.modifiers)


class TaskDefinition(TaskDraft):
    """The concrete objective a session is currently working on"""

    id: str
    choice_id: str
    event_session_id: str
    attempt: int = Field(default=1, ge=1)
    player_solution: str | None = None
    ai_evaluation: TaskEvaluation | None = None
    difficulty_settings: DifficultySettings | None = None
    sealed: bool = Field(
        default=False,
        description="Set once an EventResult exists for this task; sealed tasks are read-only"
    )
    created_at: datetime

    @classmethod
    def from_draft(
        cls,
        draft: TaskDraft,
        task_id: str,
        choice_id: str,
        event_session_id: str,
        created_at: datetime,
        attempt: int = 1
    ) -> "TaskDefinition":
        return cls(
            **draft.model_dump(),
            id=task_id,
            choice_id=choice_id,
            event_session_id=event_session_id,
            attempt=attempt,
            created_at=created_at,
        )
