"""
Request orchestration: intent routing, query planning and execution,
pagination and summarization behind a single ``handle()`` entry point.
"""
from ticket_assistant.orchestration.intent_router import IntentRouter
from ticket_assistant.orchestration.orchestrator import TicketAssistantOrchestrator, get_orchestrator
from ticket_assistant.orchestration.query_executor import QueryExecutor
from ticket_assistant.orchestration.query_planner import QueryPlanner
from ticket_assistant.orchestration.result_paginator import ResultPaginator
from ticket_assistant.orchestration.summarizer import TicketSummarizer

__all__ = [
    "IntentRouter",
    "QueryExecutor",
    "QueryPlanner",
    "ResultPaginator",
    "TicketAssistantOrchestrator",
    "TicketSummarizer",
    "get_orchestrator",
]
