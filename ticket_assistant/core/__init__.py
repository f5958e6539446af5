"""
Core package: typed models, schema knowledge and error types.
"""

from ticket_assistant.core.errors import (
    LanguageModelError,
    LanguageModelUnavailable,
    QueryRejectedError,
    TicketStoreError,
)
from ticket_assistant.core.models import (
    ChatDecision,
    ChatResponse,
    ClarificationState,
    ContinueQueryDecision,
    Decision,
    ErrorDecision,
    ExplainDecision,
    Interaction,
    QueryDecision,
    QueryOptions,
    QueryPlan,
    ResultSet,
    SummarizeDecision,
    decision_adapter,
)

__all__ = [
    "ChatDecision",
    "ChatResponse",
    "ClarificationState",
    "ContinueQueryDecision",
    "Decision",
    "ErrorDecision",
    "ExplainDecision",
    "Interaction",
    "LanguageModelError",
    "LanguageModelUnavailable",
    "QueryDecision",
    "QueryOptions",
    "QueryPlan",
    "QueryRejectedError",
    "ResultSet",
    "SummarizeDecision",
    "TicketStoreError",
    "decision_adapter",
]
