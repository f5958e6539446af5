"""
Unit tests for IntentRouter.

Tests cover:
- Ordered deterministic rules
- Summarization reference resolution and clarification
- Language model fallback with malformed or failing output
- Keyword heuristic
"""
from collections import deque
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from ticket_assistant.core.errors import LanguageModelError
from ticket_assistant.core.models import (
    ChatDecision,
    ClarificationState,
    ContinueQueryDecision,
    ExplainDecision,
    QueryDecision,
    QueryPlan,
    ResultSet,
    SummarizeDecision,
)
from ticket_assistant.core.ticket_schema import CAPABILITIES_TEXT, GREETING_RESPONSE
from ticket_assistant.orchestration.intent_router import IntentRouter, query_instruction_for
from ticket_assistant.orchestration.result_paginator import NOTHING_TO_CONTINUE
from ticket_assistant.services.result_cache import ResultPageCache
from ticket_assistant.services.session_store import Session


@pytest.fixture
def session():
    now = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
    return Session(session_id="router-test", created_at=now, last_activity=now, history=deque(maxlen=10))


@pytest.fixture
def cache():
    return ResultPageCache()


@pytest.fixture
def router(cache):
    return IntentRouter(cache)


def _llm_returning(payload=None, error=None):
    llm = MagicMock()
    if error is not None:
        llm.classify = AsyncMock(side_effect=error)
    else:
        llm.classify = AsyncMock(return_value=payload)
    return llm


# ============================================================================
# DETERMINISTIC RULES
# ============================================================================

class TestRules:

    @pytest.mark.asyncio
    async def test_continuation_without_results(self, router, session):
        decision = await router.classify("show more", session)
        assert isinstance(decision, ChatDecision)
        assert decision.response == NOTHING_TO_CONTINUE

    @pytest.mark.asyncio
    async def test_continuation_with_results(self, router, cache, session, many_tickets):
        result_set = ResultSet(records=many_tickets, plan=QueryPlan())
        cache.store(session, result_set)

        decision = await router.classify("see more", session)

        assert isinstance(decision, ContinueQueryDecision)
        assert decision.result_set_id == result_set.result_set_id
        assert decision.resume_offset == 20
        assert decision.confidence >= 0.9

    @pytest.mark.asyncio
    async def test_continuation_resumes_from_cursor(self, router, cache, session, many_tickets):
        cache.store(session, ResultSet(records=many_tickets, plan=QueryPlan()))
        cache.advance(session, 40)

        decision = await router.classify("next", session)

        assert decision.resume_offset == 40

    @pytest.mark.asyncio
    async def test_field_explanation(self, router, session):
        decision = await router.classify("What is a ticket id?", session)
        assert isinstance(decision, ExplainDecision)
        assert decision.concept == "TicketID"
        assert decision.response

    @pytest.mark.asyncio
    async def test_structure_explanation(self, router, session):
        decision = await router.classify("Can you explain the data structure?", session)
        assert isinstance(decision, ExplainDecision)
        assert decision.concept == "structure"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["hello", "Hi!", "good morning"])
    async def test_greeting(self, router, session, text):
        decision = await router.classify(text, session)
        assert isinstance(decision, ChatDecision)
        assert decision.response == GREETING_RESPONSE

    @pytest.mark.asyncio
    async def test_greeting_requires_exact_match(self, router, session):
        decision = await router.classify("hello, list all tickets", session)
        assert isinstance(decision, QueryDecision)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text,instruction", [
        ("list all tickets", "Get all tickets with basic information"),
        ("list all ticket ids", "Get all tickets and return only their TicketID values"),
        ("find tickets from john@email.com", "Find tickets for customer john@email.com"),
        ("show all customers", "Get all unique customer emails from tickets"),
        ("show open tickets", "Find all open tickets"),
        ("display closed tickets", "Find all closed tickets"),
    ])
    async def test_data_requests(self, router, session, text, instruction):
        decision = await router.classify(text, session)
        assert isinstance(decision, QueryDecision)
        assert decision.instruction == instruction

    def test_query_instruction_ignores_id_inside_words(self):
        assert query_instruction_for("show tickets from david") == "Get all tickets with basic information"


# ============================================================================
# SUMMARIZATION
# ============================================================================

class TestSummarizeRule:

    @pytest.mark.asyncio
    async def test_explicit_reference(self, router, session):
        decision = await router.classify("Summarize ticket 2025010610000001", session)
        assert isinstance(decision, SummarizeDecision)
        assert decision.ticket_references == ["2025010610000001"]

    @pytest.mark.asyncio
    async def test_pronoun_resolved_from_context(self, router, session):
        session.context.last_ticket_reference = "13001952"
        decision = await router.classify("summarize it", session)
        assert decision.ticket_references == ["13001952"]

    @pytest.mark.asyncio
    async def test_pronoun_resolved_to_cached_results(self, router, cache, session, sample_tickets):
        cache.store(session, ResultSet(records=sample_tickets, plan=QueryPlan()))
        decision = await router.classify("summarize these", session)
        assert isinstance(decision, SummarizeDecision)
        assert decision.use_cached_results

    @pytest.mark.asyncio
    async def test_unresolvable_reference_asks_for_clarification(self, router, session):
        decision = await router.classify("summarize it", session)
        assert isinstance(decision, ChatDecision)
        assert decision.clarification is not None
        assert decision.clarification.original_text == "summarize it"
        assert "Which ticket" in decision.response

    @pytest.mark.asyncio
    async def test_clarification_answer_resumes_original_request(self, router, session):
        session.clarification = ClarificationState(original_text="summarize it", question="Which ticket?")
        decision = await router.classify("2025010610000001", session)
        assert isinstance(decision, SummarizeDecision)
        assert decision.ticket_references == ["2025010610000001"]

    @pytest.mark.asyncio
    async def test_summary_over_query(self, router, session):
        decision = await router.classify("summarize open tickets", session)
        assert isinstance(decision, SummarizeDecision)
        assert decision.ticket_references == []
        assert not decision.use_cached_results


# ============================================================================
# LANGUAGE MODEL AND HEURISTIC FALLBACK
# ============================================================================

class TestLanguageModelFallback:

    @pytest.mark.asyncio
    async def test_valid_model_decision_used(self, cache, session):
        llm = _llm_returning({
            "action": "explain",
            "concept": "capabilities",
            "response": "Refunds are handled by Billing Support.",
            "confidence": 0.8,
        })
        router = IntentRouter(cache, llm=llm)

        decision = await router.classify("Which queue handles refunds", session)

        assert isinstance(decision, ExplainDecision)
        assert decision.response == "Refunds are handled by Billing Support."
        llm.classify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rules_win_over_model(self, cache, session):
        llm = _llm_returning({"action": "chat", "response": "nope"})
        router = IntentRouter(cache, llm=llm)

        decision = await router.classify("list all tickets", session)

        assert isinstance(decision, QueryDecision)
        llm.classify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_output_falls_back_to_heuristic(self, cache, session):
        router = IntentRouter(cache, llm=_llm_returning({"action": "dance", "confidence": 7}))

        decision = await router.classify("How are refunds handled", session)

        assert isinstance(decision, ExplainDecision)
        assert decision.response == CAPABILITIES_TEXT

    @pytest.mark.asyncio
    async def test_model_error_falls_back_to_heuristic(self, cache, session):
        router = IntentRouter(cache, llm=_llm_returning(error=LanguageModelError("timeout")))

        decision = await router.classify("anything new with my tickets", session)

        assert isinstance(decision, QueryDecision)
        assert decision.instruction == "Get all tickets with basic information"

    @pytest.mark.asyncio
    async def test_model_continuation_without_cache_becomes_chat(self, cache, session):
        router = IntentRouter(cache, llm=_llm_returning({"action": "continueQuery", "confidence": 0.9}))

        decision = await router.classify("carry on please", session)

        assert isinstance(decision, ChatDecision)
        assert decision.response == NOTHING_TO_CONTINUE

    @pytest.mark.asyncio
    async def test_model_summarize_references_come_from_text(self, cache, session):
        router = IntentRouter(cache, llm=_llm_returning({
            "action": "summarize",
            "ticket_references": ["9999999"],
        }))

        decision = await router.classify("give me the gist of 13001952", session)

        assert decision.ticket_references == ["13001952"]


class TestHeuristic:

    @pytest.mark.asyncio
    async def test_unrecognised_text_offers_help(self, router, session):
        decision = await router.classify("banana", session)
        assert isinstance(decision, ChatDecision)
        assert decision.response == CAPABILITIES_TEXT

    @pytest.mark.asyncio
    async def test_help_mentions_cached_results(self, router, cache, session, sample_tickets):
        cache.store(session, ResultSet(records=sample_tickets, plan=QueryPlan()))
        decision = await router.classify("banana", session)
        assert "I still have 12 results" in decision.response

    @pytest.mark.asyncio
    async def test_empty_text(self, router, session):
        decision = await router.classify("", session)
        assert isinstance(decision, ChatDecision)
