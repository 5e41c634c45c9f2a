"""Reasoning service boundary: adapter contract, OpenAI implementation and LLM client"""

from .exceptions import CollaboratorError, LLMCallFailed
from .llm_client import LLMClient
from .openai_reasoning import OpenAIReasoningService
from .reasoning_service import ReasoningServiceAdapter

__all__ = [
    "CollaboratorError",
    "LLMCallFailed",
    "LLMClient",
    "OpenAIReasoningService",
    "ReasoningServiceAdapter",
]
