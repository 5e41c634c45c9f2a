# ABOUTME: Entry point for playing one interactive event in the terminal.
# ABOUTME: Run with: python -m trpg_events path/to/event.json

import asyncio
import sys

from trpg_events.bootstrap import build_state_machine
from trpg_events.config.settings import get_settings
from trpg_events.exceptions import EventEngineError
from trpg_events.interface.cli import EventCLI, load_event_script
from trpg_events.utils.logging import setup_logging


def main() -> None:
    """Load settings and the event file, then run the event"""
    if len(sys.argv) != 2:
        print("Usage: python -m trpg_events path/to/event.json")
        sys.exit(2)

    settings = get_settings()
    setup_logging(
        log_level=settings.log_level,
        log_dir=settings.log_dir,
        file_output=settings.log_to_file,
    )

    try:
        script = load_event_script(sys.argv[1])
        state_machine = build_state_machine(settings)
    except (ValueError, ConnectionError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    try:
        asyncio.run(EventCLI(state_machine).run(script))
    except EventEngineError:
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        print("\nEvent interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
