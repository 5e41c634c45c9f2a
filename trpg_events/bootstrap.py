# ABOUTME: Wires Settings into a ready-to-use EventSessionStateMachine.
# ABOUTME: The only place configuration is read; everything below it receives plain constructor arguments.

from openai import AsyncOpenAI

from trpg_events.agents.llm_client import LLMClient
from trpg_events.agents.openai_reasoning import OpenAIReasoningService
from trpg_events.agents.reasoning_service import ReasoningServiceAdapter
from trpg_events.config.settings import Settings, get_settings
from trpg_events.mechanics.dice_resolution import DiceResolutionEngine
from trpg_events.mechanics.difficulty import DifficultyCalculator
from trpg_events.mechanics.penalties import PenaltyRetryManager
from trpg_events.orchestration.state_machine import EventSessionStateMachine
from trpg_events.storage.base import SessionStore
from trpg_events.storage.memory_store import InMemorySessionStore
from trpg_events.storage.redis_store import RedisSessionStore
from trpg_events.utils.redis_connection import create_redis_connection


def build_store(settings: Settings) -> SessionStore:
    """Create the configured session store"""
    if settings.session_store == "redis":
        redis_conn = create_redis_connection(settings.redis_url)
        return RedisSessionStore(redis_conn, ttl_seconds=settings.session_ttl_seconds)
    return InMemorySessionStore()


def build_reasoning_service(settings: Settings) -> OpenAIReasoningService:
    """
    Create the OpenAI-backed reasoning service.

    Raises:
        ValueError: If no OpenAI API key is configured
    """
    if not settings.openai_api_key:
        raise ValueError("OPENAI_API_KEY must be set to use the OpenAI reasoning service")

    client = AsyncOpenAI(api_key=settings.openai_api_key)
    llm_client = LLMClient(
        client,
        model=settings.openai_model,
        timeout=settings.openai_timeout_seconds,
    )
    return OpenAIReasoningService(llm_client, temperature=settings.openai_temperature)


def build_state_machine(
    settings: Settings | None = None,
    reasoning_service: ReasoningServiceAdapter | None = None,
    store: SessionStore | None = None,
) -> EventSessionStateMachine:
    """
    Assemble a state machine from settings.

    Args:
        settings: Configuration (default: get_settings())
        reasoning_service: Override for the OpenAI adapter (e.g. a test double)
        store: Override for the configured store

    Returns:
        EventSessionStateMachine with policies taken from settings
    """
    settings = settings or get_settings()
    return EventSessionStateMachine(
        reasoning_service=reasoning_service or build_reasoning_service(settings),
        store=store or build_store(settings),
        difficulty_calculator=DifficultyCalculator(settings.difficulty),
        dice_engine=DiceResolutionEngine(),
        penalty_manager=PenaltyRetryManager(settings.penalties, settings.retry),
        default_max_attempts=settings.default_max_attempts,
    )
