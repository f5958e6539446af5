"""Exceptions raised by the ticket store and language-model collaborators."""


class TicketStoreError(Exception):
    """Raised when the ticket store is unreachable or a read fails."""
    pass


class QueryRejectedError(TicketStoreError):
    """Raised when the store refuses a filter, operator or option."""
    pass


class LanguageModelError(Exception):
    """Raised when the language model call fails or returns unusable output."""
    pass


class LanguageModelUnavailable(LanguageModelError):
    """Raised when no language model is configured (no API key)."""
    pass
