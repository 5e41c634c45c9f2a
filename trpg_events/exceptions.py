# ABOUTME: Root exception for the interactive event engine.
# ABOUTME: Every layer's exceptions.py derives from EventEngineError so callers can catch one base.


class EventEngineError(Exception):
    """Base class for all errors raised by the event engine"""
    pass
