"""
Services module for the ticket assistant.

Contains session memory, the per-session result cache and the periodic
session sweeper.
"""
from ticket_assistant.services.memory_cleanup import SessionSweeper
from ticket_assistant.services.result_cache import ResultPageCache
from ticket_assistant.services.session_store import Session, SessionContext, SessionStore

__all__ = [
    "ResultPageCache",
    "Session",
    "SessionContext",
    "SessionStore",
    "SessionSweeper",
]
