"""Configuration module for the interactive event engine"""

from .prompts import (
    EVALUATE_SOLUTION_PROMPT,
    INTERPRET_CHOICE_PROMPT,
    NARRATE_RESULT_PROMPT,
    PromptTemplate,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "PromptTemplate",
    "INTERPRET_CHOICE_PROMPT",
    "EVALUATE_SOLUTION_PROMPT",
    "NARRATE_RESULT_PROMPT",
]
