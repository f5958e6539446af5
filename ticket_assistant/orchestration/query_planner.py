"""
Query Planner: instruction + free text -> QueryPlan.

An ordered pattern table; the first pattern whose predicate matches builds
the plan. Anything unmatched gets the default plan (everything, newest
first, 50 records). ``plan()`` never raises.
"""
import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple

from ticket_assistant.config import MAX_QUERY_LIMIT
from ticket_assistant.core.models import QueryOptions, QueryPlan
from ticket_assistant.core.ticket_schema import (
    CLOSED_STATE_TYPE,
    KNOWN_QUEUES,
    OPEN_STATE_TYPES,
    schema_path,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
TICKET_REFERENCE_PATTERN = re.compile(r"(?<![\w@.])\d{7,}(?![\w@])")
IDENTIFIER_LISTING_PATTERN = re.compile(r"\bticket\s*ids?\b|\bids\b|\bticketid\b", re.IGNORECASE)

DEFAULT_LIMIT = 50
ALL_TICKETS_LIMIT = 100
CUSTOMER_LIMIT = 100

_NEWEST_FIRST = {schema_path("created"): -1}


def extract_email(text: str) -> Optional[str]:
    match = EMAIL_PATTERN.search(text or "")
    return match.group(0) if match else None


def extract_ticket_references(text: str) -> List[str]:
    """Ticket numbers / ids (7+ digits) mentioned in ``text``, in order, without duplicates."""
    seen = []
    for ref in TICKET_REFERENCE_PATTERN.findall(text or ""):
        if ref not in seen:
            seen.append(ref)
    return seen


def lookup_plan(references: Sequence[str]) -> QueryPlan:
    """Plan that finds tickets by external ticket number or numeric ticket id."""
    refs = [str(r) for r in references][:MAX_QUERY_LIMIT]
    numeric_ids = [int(r) for r in refs if r.isdigit()]
    clauses = [{schema_path("ticket_number"): {"$in": refs}}]
    if numeric_ids:
        clauses.append({schema_path("ticket_id"): {"$in": numeric_ids}})
    return QueryPlan(
        filter={"$or": clauses},
        options=QueryOptions(limit=max(1, len(refs)), sort=_NEWEST_FIRST),
        explanation=f"Ticket lookup for {', '.join(refs)}",
    )


def default_plan() -> QueryPlan:
    return QueryPlan(
        filter={},
        options=QueryOptions(limit=DEFAULT_LIMIT, sort=_NEWEST_FIRST),
        explanation="Most recent tickets",
    )


class QueryPlanner:
    """Builds a QueryPlan from the router's instruction and the user's own words."""

    def __init__(self):
        self._patterns: List[Tuple[str, Callable[[str, str], Optional[QueryPlan]]]] = [
            ("ticket_lookup", self._ticket_lookup),
            ("identifier_listing", self._identifier_listing),
            ("customer_email", self._customer_email),
            ("customer_listing", self._customer_listing),
            ("open_tickets", self._open_tickets),
            ("closed_tickets", self._closed_tickets),
            ("high_priority", self._high_priority),
            ("queue", self._queue),
            ("all_tickets", self._all_tickets),
        ]

    def plan(self, instruction: str, free_text: str = "") -> QueryPlan:
        instruction = instruction or ""
        free_text = free_text or ""
        try:
            for name, pattern in self._patterns:
                plan = pattern(instruction, free_text)
                if plan is not None:
                    logger.info(f"🧭 Planner pattern '{name}' matched: {plan.explanation}")
                    return plan
        except Exception as e:
            logger.warning(f"Planner pattern failed, using default plan: {e}")
            return default_plan()

        logger.info("🧭 No planner pattern matched, using default plan")
        return default_plan()

    # Pattern table

    def _ticket_lookup(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        refs = extract_ticket_references(free_text)
        return lookup_plan(refs) if refs else None

    def _identifier_listing(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        if "TicketID values" not in instruction and not IDENTIFIER_LISTING_PATTERN.search(free_text):
            return None
        return QueryPlan(
            filter={},
            options=QueryOptions(
                limit=MAX_QUERY_LIMIT,
                sort={schema_path("ticket_id"): 1},
                projection={schema_path("ticket_id"): 1},
            ),
            explanation="All ticket IDs",
            listing="identifiers",
        )

    def _customer_email(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        email = extract_email(free_text) or extract_email(instruction)
        if not email:
            return None
        return QueryPlan(
            filter={schema_path("customer"): email},
            options=QueryOptions(limit=CUSTOMER_LIMIT, sort=_NEWEST_FIRST),
            explanation=f"Tickets from customer {email}",
        )

    def _customer_listing(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        if "customer emails" not in instruction:
            return None
        return QueryPlan(
            filter={},
            options=QueryOptions(
                limit=CUSTOMER_LIMIT,
                sort=_NEWEST_FIRST,
                projection={
                    schema_path("ticket_number"): 1,
                    schema_path("title"): 1,
                    schema_path("customer"): 1,
                },
            ),
            explanation="Tickets with their customer e-mail addresses",
        )

    def _open_tickets(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        text = f"{instruction} {free_text}".lower()
        if not re.search(r"\bopen\b", text) or re.search(r"\bclosed\b", text):
            return None
        return QueryPlan(
            filter={schema_path("state_type"): {"$in": list(OPEN_STATE_TYPES)}},
            options=QueryOptions(limit=DEFAULT_LIMIT, sort=_NEWEST_FIRST),
            explanation="Open tickets (new, open or pending)",
        )

    def _closed_tickets(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        if not re.search(r"\bclosed\b", f"{instruction} {free_text}".lower()):
            return None
        return QueryPlan(
            filter={schema_path("state_type"): CLOSED_STATE_TYPE},
            options=QueryOptions(limit=DEFAULT_LIMIT, sort=_NEWEST_FIRST),
            explanation="Closed tickets",
        )

    def _all_tickets(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        if not re.search(r"\ball\b.*\btickets?\b", free_text.lower()):
            return None
        return QueryPlan(
            filter={},
            options=QueryOptions(limit=ALL_TICKETS_LIMIT, sort=_NEWEST_FIRST),
            explanation="All tickets",
        )

    def _high_priority(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        text = f"{instruction} {free_text}".lower()
        if not re.search(r"\b(high|urgent|critical)\s+priority\b|\bpriority\s+(high|urgent)\b|\burgent\b", text):
            return None
        return QueryPlan(
            filter={schema_path("priority_id"): {"$gte": 4}},
            options=QueryOptions(limit=DEFAULT_LIMIT, sort=_NEWEST_FIRST),
            explanation="High priority tickets",
        )

    def _queue(self, instruction: str, free_text: str) -> Optional[QueryPlan]:
        text = f"{instruction} {free_text}".lower()
        for queue in KNOWN_QUEUES:
            if queue.lower() in text:
                return QueryPlan(
                    filter={schema_path("queue"): queue},
                    options=QueryOptions(limit=DEFAULT_LIMIT, sort=_NEWEST_FIRST),
                    explanation=f"Tickets in the {queue} queue",
                )
        return None
