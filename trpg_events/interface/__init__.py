"""Terminal interface for playing an interactive event"""

from .cli import EventCLI, EventFormatter, EventScript, load_event_script

__all__ = ["EventCLI", "EventFormatter", "EventScript", "load_event_script"]
