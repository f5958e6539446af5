"""
Intent Router: free text + session -> Decision.

Rules are tried in order and the first match wins:

    1. continuation ("see more", "next" ...)
    2. field / structure explanation
    3. greeting (exact match)
    4. summarization
    5. data request

Unmatched messages go to the language model with the last three
interactions and the session context. If that fails or returns something
unusable, a keyword heuristic decides. ``classify()`` never raises.
"""
import json
import logging
import re
from typing import Callable, List, Optional

from pydantic import ValidationError

from ticket_assistant.core.errors import LanguageModelError
from ticket_assistant.core.models import (
    ChatDecision,
    ClarificationState,
    ContinueQueryDecision,
    Decision,
    ExplainDecision,
    QueryDecision,
    SummarizeDecision,
    decision_adapter,
)
from ticket_assistant.core.ticket_schema import (
    CAPABILITIES_TEXT,
    GREETING_RESPONSE,
    STRUCTURE_EXPLANATION,
    explain_concept,
)
from ticket_assistant.llm.language_model import LanguageModelClient
from ticket_assistant.orchestration.query_planner import extract_email, extract_ticket_references
from ticket_assistant.orchestration.result_paginator import NOTHING_TO_CONTINUE
from ticket_assistant.prompts.router_prompts import RouterPrompts
from ticket_assistant.services.result_cache import ResultPageCache
from ticket_assistant.services.session_store import Session
from ticket_assistant.utils.sanitization import sanitize_text_input

logger = logging.getLogger(__name__)

CONTINUATION_PATTERNS = [
    re.compile(r"\b(see more|show more|more|continue|next|show rest|display more)\b"),
    re.compile(r"\b(show.*rest|display.*rest|get.*rest|list.*rest)\b"),
    re.compile(r"\b(show.*remaining|display.*remaining|get.*remaining)\b"),
    re.compile(r"\b(more.*result|more.*ticket|more.*data)\b"),
    re.compile(r"\b(continue.*list|continue.*show)\b"),
]

FIELD_PATTERNS = {
    "TicketID": [
        re.compile(r"\bwhat(?: is|'s)\s*(a\s+|the\s+)?(ticketid|ticket id)\b"),
        re.compile(r"\btell me about\s*(the\s+)?(ticketid|ticket id)\b"),
        re.compile(r"\bexplain.*\b(ticketid|ticket id)\b"),
        re.compile(r"\b(ticketid|ticket id)\s*explain\b"),
    ],
    "TicketNumber": [
        re.compile(r"\bwhat(?: is|'s)\s*(a\s+|the\s+)?(ticketnumber|ticket number)\b"),
        re.compile(r"\bexplain.*\b(ticketnumber|ticket number)\b"),
    ],
    "CustomerID": [
        re.compile(r"\bwhat(?: is|'s)\s*(a\s+|the\s+)?(customerid|customer id)\b"),
        re.compile(r"\bexplain.*\b(customerid|customer id)\b"),
    ],
}

STRUCTURE_PATTERNS = [
    re.compile(r"\b(explain|how does|how do|describe)\b.*\b(structure|data|database|work|system)\b"),
    re.compile(r"\bshow me.*\b(structure|schema|format|fields)\b"),
    re.compile(r"\bhow.*\b(organize|organized|structured|stored)\b"),
    re.compile(r"\bcan you.*\b(explain|describe|tell|show)\b.*\b(structure|schema|field)\b"),
]

GREETINGS = {"hi", "hello", "hey", "good morning", "good afternoon", "good evening"}

SUMMARIZE_PATTERN = re.compile(r"\b(summarize|summarise|summary)\b")
CONTEXT_REFERENCE_PATTERN = re.compile(
    r"\b(it|this|that|these|those|them)\b|\bthe\s+(ticket|conversation)\b|\b(last|previous)\s+(ticket|one|result)s?\b"
)
SUMMARY_SUBJECT_PATTERN = re.compile(r"\b(tickets?|conversations?|customer|queue|open|closed|priority)\b")

DATA_REQUEST_PATTERNS = [
    re.compile(r"\b(list|show|get|find|search|display)\b.*\b(all|tickets?|ids?|customers?|emails?)\b"),
    re.compile(r"\ball\b.*\b(tickets?|ids?|customers?)\b"),
    re.compile(r"\btickets?\b.*\b(id|ids|number|numbers|list)\b"),
    re.compile(r"\bhow many\b.*\b(tickets?|customers?)\b"),
    re.compile(r"\b(open|closed|urgent|high priority)\b.*\btickets?\b"),
]

HEURISTIC_DATA_PATTERN = re.compile(r"\b(list|show|find|get|search|display|all|tickets?)\b")
HEURISTIC_EXPLAIN_PATTERN = re.compile(
    r"\b(what|how|explain|help|describe|tell|structure|schema|field|database|work)\b"
)

GENERIC_QUERY_INSTRUCTION = "Get all tickets with basic information"


def query_instruction_for(text: str) -> str:
    """Keyword -> instruction table for data requests."""
    lower = text.lower()
    email = extract_email(text)
    if re.search(r"\bticket\s*ids?\b|\bticketids?\b|\bids\b", lower):
        return "Get all tickets and return only their TicketID values"
    if email:
        return f"Find tickets for customer {email}"
    if re.search(r"\bcustomers?\b|\bemails?\b", lower):
        return "Get all unique customer emails from tickets"
    if re.search(r"\bopen\b.*\btickets?\b", lower):
        return "Find all open tickets"
    if re.search(r"\bclosed\b.*\btickets?\b", lower):
        return "Find all closed tickets"
    return GENERIC_QUERY_INSTRUCTION


class IntentRouter:

    def __init__(self, cache: ResultPageCache, llm: Optional[LanguageModelClient] = None):
        self.cache = cache
        self.llm = llm
        self._rules: List[Callable[[str, str, Session], Optional[Decision]]] = [
            self._continuation_rule,
            self._explanation_rule,
            self._greeting_rule,
            self._summarize_rule,
            self._data_request_rule,
        ]

    async def classify(self, text: str, session: Session) -> Decision:
        text = (text or "").strip()
        text = self._resume_clarification(text, session)
        lower = text.lower()

        for rule in self._rules:
            decision = rule(text, lower, session)
            if decision is not None:
                logger.info(f"🧭 Rule {rule.__name__} -> {decision.action} (confidence {decision.confidence})")
                return decision

        decision = await self._classify_with_llm(text, session)
        if decision is not None:
            logger.info(f"🤖 Language model -> {decision.action} (confidence {decision.confidence})")
            return decision

        decision = self._heuristic(text, lower, session)
        logger.info(f"🔄 Heuristic fallback -> {decision.action}")
        return decision

    # Clarification

    def _resume_clarification(self, text: str, session: Session) -> str:
        pending = session.clarification
        if pending is None:
            return text
        if extract_ticket_references(text) or extract_email(text):
            logger.info("Answer to pending clarification received, re-classifying original request")
            return f"{pending.original_text} {text}"
        return text

    def _clarify(self, text: str, question: str) -> ChatDecision:
        return ChatDecision(
            response=question,
            clarification=ClarificationState(original_text=text, question=question),
            instruction="Ask which ticket the user means",
            confidence=0.8,
            reasoning="Reference without a ticket in context",
        )

    # Rules

    def _continuation_decision(self, session: Session, confidence: float) -> ContinueQueryDecision:
        result_set = self.cache.get(session)
        return ContinueQueryDecision(
            result_set_id=result_set.result_set_id if result_set else None,
            resume_offset=self.cache.resume_offset(session),
            instruction="Continue showing results from previous query",
            confidence=confidence,
            reasoning="User wants to see more results from the previous query",
        )

    def _continuation_rule(self, text: str, lower: str, session: Session) -> Optional[Decision]:
        if not any(p.search(lower) for p in CONTINUATION_PATTERNS):
            return None
        if self.cache.has_results(session):
            return self._continuation_decision(session, 0.98)
        return ChatDecision(
            response=NOTHING_TO_CONTINUE,
            instruction="Explain that there is nothing to continue",
            confidence=0.9,
            reasoning="Continuation requested without previous results",
        )

    def _explanation_rule(self, text: str, lower: str, session: Session) -> Optional[Decision]:
        for concept, patterns in FIELD_PATTERNS.items():
            if any(p.search(lower) for p in patterns):
                return ExplainDecision(
                    concept=concept,
                    response=explain_concept(concept),
                    instruction=f"Explain the {concept} field",
                    confidence=0.95,
                    reasoning="Question about a specific field",
                )
        if any(p.search(lower) for p in STRUCTURE_PATTERNS):
            return ExplainDecision(
                concept="structure",
                response=STRUCTURE_EXPLANATION,
                instruction="Explain the ticket data structure",
                confidence=0.95,
                reasoning="Question about the data structure",
            )
        return None

    def _greeting_rule(self, text: str, lower: str, session: Session) -> Optional[Decision]:
        if lower.strip(" !.") not in GREETINGS:
            return None
        return ChatDecision(
            response=GREETING_RESPONSE,
            instruction="Greet the user",
            confidence=0.95,
            reasoning="Simple greeting",
        )

    def _summarize_rule(self, text: str, lower: str, session: Session) -> Optional[Decision]:
        if not SUMMARIZE_PATTERN.search(lower):
            return None

        references = extract_ticket_references(text)
        if references:
            return SummarizeDecision(
                ticket_references=references,
                instruction=text,
                confidence=0.9,
                reasoning="Summarization request naming tickets",
            )

        if CONTEXT_REFERENCE_PATTERN.search(lower):
            context = session.context
            if context.last_ticket_reference:
                return SummarizeDecision(
                    ticket_references=[context.last_ticket_reference],
                    instruction=text,
                    confidence=0.85,
                    reasoning="Reference resolved from the last ticket discussed",
                )
            if self.cache.has_results(session):
                return SummarizeDecision(
                    use_cached_results=True,
                    instruction=text,
                    confidence=0.8,
                    reasoning="Reference resolved to the cached results",
                )
            return self._clarify(
                text,
                "Which ticket would you like me to summarize? Please give the ticket number "
                "(e.g. 2025010610000001) or the customer's e-mail address.",
            )

        if SUMMARY_SUBJECT_PATTERN.search(lower) or extract_email(text):
            return SummarizeDecision(
                instruction=text,
                confidence=0.75,
                reasoning="Summarization request over a ticket query",
            )
        return None

    def _data_request_rule(self, text: str, lower: str, session: Session) -> Optional[Decision]:
        if not (extract_email(text) or any(p.search(lower) for p in DATA_REQUEST_PATTERNS)):
            return None
        return QueryDecision(
            instruction=query_instruction_for(text),
            confidence=0.9,
            reasoning="Data request",
        )

    # Language model fallback

    def _build_prompt(self, text: str, session: Session) -> str:
        history = "\n".join(
            f"- user: {sanitize_text_input(i.user_message, 200)} -> {i.decision.action} ({i.result_count} results)"
            for i in session.recent_interactions(3)
        ) or "(none)"
        context = json.dumps(session.context.as_prompt_context(), default=str)
        return RouterPrompts.get_classification_prompt().format(
            message=sanitize_text_input(text, 500),
            history=history,
            context=context,
        )

    async def _classify_with_llm(self, text: str, session: Session) -> Optional[Decision]:
        if self.llm is None:
            return None
        try:
            payload = await self.llm.classify(self._build_prompt(text, session), RouterPrompts.SYSTEM)
            decision = decision_adapter.validate_python(payload)
        except (LanguageModelError, ValidationError) as e:
            logger.warning(f"Language model classification unusable, using heuristic: {e}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected classification failure, using heuristic: {e}")
            return None
        return self._complete_llm_decision(decision, text, session)

    def _complete_llm_decision(self, decision: Decision, text: str, session: Session) -> Decision:
        """Fill in what the model cannot know (cache ids, offsets) and reject impossible actions."""
        if isinstance(decision, ContinueQueryDecision):
            if not self.cache.has_results(session):
                return ChatDecision(
                    response=NOTHING_TO_CONTINUE,
                    instruction=decision.instruction,
                    confidence=decision.confidence,
                    reasoning="Continuation suggested without cached results",
                )
            return self._continuation_decision(session, decision.confidence)
        if isinstance(decision, QueryDecision) and not decision.instruction:
            return decision.model_copy(update={"instruction": query_instruction_for(text)})
        if isinstance(decision, SummarizeDecision):
            references = [r for r in decision.ticket_references if r in text] or extract_ticket_references(text)
            return decision.model_copy(update={"ticket_references": references, "instruction": text})
        if isinstance(decision, ChatDecision) and not decision.response:
            return decision.model_copy(update={"response": CAPABILITIES_TEXT})
        return decision

    def _heuristic(self, text: str, lower: str, session: Session) -> Decision:
        if HEURISTIC_DATA_PATTERN.search(lower):
            return QueryDecision(
                instruction=GENERIC_QUERY_INSTRUCTION,
                confidence=0.6,
                reasoning="Fallback detected data-related keywords",
            )
        if HEURISTIC_EXPLAIN_PATTERN.search(lower):
            return ExplainDecision(
                concept="capabilities",
                response=CAPABILITIES_TEXT,
                instruction="Explain what the assistant can do",
                confidence=0.7,
                reasoning="Fallback detected explanation keywords",
            )

        response = CAPABILITIES_TEXT
        result_set = self.cache.get(session)
        if result_set is not None and result_set.total:
            response += (
                f"\n\nI still have {result_set.total} results from your last query; "
                "say 'see more' to continue through them."
            )
        return ChatDecision(
            response=response,
            instruction="Offer help",
            confidence=0.5,
            reasoning="No rule or model decision available",
        )
