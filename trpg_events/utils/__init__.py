# ABOUTME: Utility module exports for dice notation, structured logging and Redis connections.
# ABOUTME: Provides dice.py (check rolling), logging.py (loguru config) and redis_connection.py.

from trpg_events.utils.dice import parse_dice_notation, roll_check
from trpg_events.utils.logging import (
    log_collaborator_call,
    log_state_transition,
    setup_logging,
)
from trpg_events.utils.redis_connection import create_redis_connection

__all__ = [
    "parse_dice_notation",
    "roll_check",
    "setup_logging",
    "log_state_transition",
    "log_collaborator_call",
    "create_redis_connection",
]
