"""
Orchestrator: the single entry point for a conversational turn.

    handle(session_id, text)
        -> lock + load session
        -> IntentRouter.classify
        -> dispatch on Decision.action
        -> record Interaction, update context
        -> ChatResponse

Any exception escaping a component becomes an apologetic response with
``success=False``; ``handle()`` never raises.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ticket_assistant.config import SUMMARY_SAMPLE_SIZE
from ticket_assistant.core.models import (
    ChatDecision,
    ChatResponse,
    ContinueQueryDecision,
    Decision,
    ErrorDecision,
    ExplainDecision,
    Interaction,
    QueryDecision,
    QueryPlan,
    SummarizeDecision,
)
from ticket_assistant.core.ticket_schema import CAPABILITIES_TEXT, explain_concept, get_field, schema_path
from ticket_assistant.llm.language_model import LanguageModelClient, get_language_model
from ticket_assistant.orchestration.intent_router import IntentRouter
from ticket_assistant.orchestration.query_executor import QueryExecutor
from ticket_assistant.orchestration.query_planner import (
    QueryPlanner,
    extract_email,
    extract_ticket_references,
    lookup_plan,
)
from ticket_assistant.orchestration.result_paginator import ResultPaginator
from ticket_assistant.orchestration.summarizer import TicketSummarizer
from ticket_assistant.repositories.ticket_repository import TicketRepository, get_ticket_repository
from ticket_assistant.services.result_cache import ResultPageCache
from ticket_assistant.services.session_store import Session, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"

APOLOGY = (
    "I'm sorry, something went wrong while handling your request. "
    "Please try again, or rephrase your question."
)
STORE_UNAVAILABLE = (
    "I'm sorry, I couldn't reach the ticket database just now, so I can't answer that. "
    "Please try again in a moment."
)


@dataclass
class TurnOutcome:
    response: str
    result_count: int = 0
    success: bool = True
    error: Optional[str] = None
    plan: Optional[QueryPlan] = None
    records: Optional[List[Dict[str, Any]]] = None


class TicketAssistantOrchestrator:

    def __init__(
        self,
        repository: Optional[TicketRepository] = None,
        store: Optional[SessionStore] = None,
        llm: Optional[LanguageModelClient] = None,
        summary_sample_size: int = SUMMARY_SAMPLE_SIZE,
    ):
        self.repository = repository if repository is not None else get_ticket_repository()
        self.store = store if store is not None else SessionStore()
        self.llm = llm
        self.summary_sample_size = summary_sample_size

        self.cache = ResultPageCache()
        self.router = IntentRouter(self.cache, llm)
        self.planner = QueryPlanner()
        self.executor = QueryExecutor(self.repository)
        self.paginator = ResultPaginator(self.cache)
        self.summarizer = TicketSummarizer(llm, sample_size=summary_sample_size)

        self._handlers = {
            "chat": self._handle_chat,
            "explain": self._handle_explain,
            "query": self._handle_query,
            "continueQuery": self._handle_continue,
            "summarize": self._handle_summarize,
            "error": self._handle_error,
        }

    async def handle(self, session_id: Optional[str], text: str) -> ChatResponse:
        session_id = session_id or DEFAULT_SESSION_ID
        try:
            async with self.store.session(session_id) as session:
                return await self._handle_turn(session, text)
        except Exception as e:
            logger.exception(f"❌ Session handling failed for {session_id[:8]}...: {e}")
            return ChatResponse(
                response=APOLOGY, session_id=session_id, result_count=0, success=False, error="internal_error"
            )

    async def _handle_turn(self, session: Session, text: str) -> ChatResponse:
        decision: Decision = ErrorDecision(message="unclassified")
        try:
            decision = await self.router.classify(text, session)
            outcome = await self._handlers[decision.action](session, decision, text)
        except Exception as e:
            logger.exception(f"❌ Error handling message in session {session.session_id[:8]}...: {e}")
            outcome = TurnOutcome(response=APOLOGY, success=False, error="internal_error")

        session.clarification = decision.clarification if isinstance(decision, ChatDecision) else None
        session.context.record_action(decision.action)
        self._update_context(session, decision, outcome, text)
        session.add_interaction(Interaction(
            user_message=text,
            decision=decision,
            response=outcome.response,
            plan=outcome.plan.model_copy(deep=True) if outcome.plan else None,
            result_count=outcome.result_count,
            success=outcome.success,
            timestamp=self.store.now(),
        ))

        logger.info(
            f"✅ Turn complete: action={decision.action} results={outcome.result_count} success={outcome.success}"
        )
        return ChatResponse(
            response=outcome.response,
            session_id=session.session_id,
            result_count=outcome.result_count,
            success=outcome.success,
            error=outcome.error,
        )

    # Action handlers

    async def _handle_chat(self, session: Session, decision: ChatDecision, text: str) -> TurnOutcome:
        return TurnOutcome(response=decision.response or CAPABILITIES_TEXT)

    async def _handle_explain(self, session: Session, decision: ExplainDecision, text: str) -> TurnOutcome:
        return TurnOutcome(response=decision.response or explain_concept(decision.concept))

    async def _handle_error(self, session: Session, decision: ErrorDecision, text: str) -> TurnOutcome:
        return TurnOutcome(response=decision.message or APOLOGY, success=False, error="routing_error")

    async def _handle_query(self, session: Session, decision: QueryDecision, text: str) -> TurnOutcome:
        plan = self.planner.plan(decision.instruction, text)
        result_set = await self.executor.execute(plan)
        if not result_set.success:
            return TurnOutcome(response=STORE_UNAVAILABLE, success=False, error="query_failed", plan=plan)

        self.cache.store(session, result_set)
        response, _page = self.paginator.first_page(session, result_set)
        return TurnOutcome(
            response=response,
            result_count=result_set.total,
            plan=result_set.plan,
            records=result_set.records,
        )

    async def _handle_continue(self, session: Session, decision: ContinueQueryDecision, text: str) -> TurnOutcome:
        response, shown = self.paginator.continue_page(session, decision)
        return TurnOutcome(response=response, result_count=shown)

    async def _handle_summarize(self, session: Session, decision: SummarizeDecision, text: str) -> TurnOutcome:
        plan: Optional[QueryPlan] = None
        if decision.ticket_references:
            plan = lookup_plan(decision.ticket_references)
        elif decision.use_cached_results and self.cache.has_results(session):
            records = self.cache.get(session).records[:self.summary_sample_size]
            summary = await self.summarizer.summarize(records)
            return TurnOutcome(response=summary, result_count=len(records), records=records)
        else:
            plan = self.planner.plan(decision.instruction, text)

        result_set = await self.executor.execute(plan)
        if not result_set.success:
            return TurnOutcome(response=STORE_UNAVAILABLE, success=False, error="query_failed", plan=plan)

        records = result_set.records
        if decision.ticket_references and (result_set.degraded or result_set.used_fallback):
            # A lookup that lost its filter would summarize unrelated tickets
            records = []
        if not records:
            if decision.ticket_references:
                refs = ", ".join(decision.ticket_references)
                return TurnOutcome(
                    response=(
                        f"I couldn't find ticket {refs}. Please check the ticket number, "
                        "or try 'list all ticket IDs' to see what is available."
                    ),
                    plan=result_set.plan,
                )
            return TurnOutcome(response=await self.summarizer.summarize([]), plan=result_set.plan)

        records = records[:self.summary_sample_size]
        summary = await self.summarizer.summarize(records)
        return TurnOutcome(response=summary, result_count=len(records), plan=result_set.plan, records=records)

    # Context tracking

    def _update_context(self, session: Session, decision: Decision, outcome: TurnOutcome, text: str) -> None:
        context = session.context

        email = extract_email(text)
        if email:
            context.last_customer = email

        references = (
            decision.ticket_references if isinstance(decision, SummarizeDecision) and decision.ticket_references
            else extract_ticket_references(text)
        )
        if references:
            context.last_ticket_reference = references[-1]

        records = outcome.records or []
        if len(records) == 1:
            number = get_field(records[0], "ticket_number") or get_field(records[0], "ticket_id")
            if number is not None:
                context.last_ticket_reference = str(number)
            customer = get_field(records[0], "customer")
            if customer:
                context.last_customer = customer

        if outcome.plan is not None:
            queue = outcome.plan.filter.get(schema_path("queue"))
            if isinstance(queue, str):
                context.last_queue = queue
            customer = outcome.plan.filter.get(schema_path("customer"))
            if isinstance(customer, str):
                context.last_customer = customer

    # Diagnostics

    def get_session_info(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get_session_info(session_id)

    async def clear_session(self, session_id: str) -> bool:
        return await self.store.clear_session(session_id)


_orchestrator: Optional[TicketAssistantOrchestrator] = None


def get_orchestrator() -> TicketAssistantOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        llm = get_language_model()
        _orchestrator = TicketAssistantOrchestrator(llm=llm if llm.enabled else None)
    return _orchestrator
