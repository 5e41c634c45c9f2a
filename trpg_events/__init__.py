"""Interactive event session engine for tabletop RPG sessions"""

from .exceptions import EventEngineError
from .orchestration.state_machine import EventSessionStateMachine

__version__ = "0.1.0"

__all__ = ["EventEngineError", "EventSessionStateMachine", "__version__"]
