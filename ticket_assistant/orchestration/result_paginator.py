"""
Result Paginator: decides how much of a ResultSet to show in one turn.

Identifier-only listings are compact and use the larger page size.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ticket_assistant.config import IDENTIFIER_PAGE_SIZE, PAGE_SIZE
from ticket_assistant.core.models import ContinueQueryDecision, ResultSet
from ticket_assistant.core.ticket_schema import get_field
from ticket_assistant.services.result_cache import ResultPageCache
from ticket_assistant.services.session_store import Session

logger = logging.getLogger(__name__)

NOTHING_TO_CONTINUE = (
    "I don't have any previous results to show more of. Please ask me to find some data "
    "first, like 'list all tickets' or 'show open tickets'."
)
CONTINUE_HINT = "Say 'see more' to continue."


@dataclass
class Page:
    records: List[Dict[str, Any]]
    start: int
    new_offset: int
    remaining: int
    total: int


class ResultPaginator:

    def __init__(
        self,
        cache: ResultPageCache,
        page_size: int = PAGE_SIZE,
        identifier_page_size: int = IDENTIFIER_PAGE_SIZE,
    ):
        self.cache = cache
        self.page_size = page_size
        self.identifier_page_size = identifier_page_size

    def page_size_for(self, result_set: ResultSet) -> int:
        return self.identifier_page_size if result_set.plan.listing == "identifiers" else self.page_size

    def page(self, result_set: ResultSet, offset: int, page_size: Optional[int] = None) -> Page:
        """Pure slice: records [offset, offset + page_size) plus the new cursor and what remains."""
        size = page_size or self.page_size_for(result_set)
        total = result_set.total
        start = max(0, min(offset, total))
        visible = result_set.records[start:start + size]
        new_offset = start + len(visible)
        return Page(records=visible, start=start, new_offset=new_offset, remaining=total - new_offset, total=total)

    def first_page(self, session: Session, result_set: ResultSet) -> Tuple[str, Page]:
        """Render the opening page of a freshly cached result set and move the cursor past it."""
        page = self.page(result_set, 0)
        self.cache.advance(session, page.new_offset)

        if page.total == 0:
            return self._no_results_text(result_set), page

        lines = []
        if result_set.degraded:
            lines.append(
                "I couldn't run that exact query, so here are the most recent tickets instead.\n"
            )
        noun = "ticket IDs" if result_set.plan.listing == "identifiers" else "tickets"
        description = f" ({result_set.plan.explanation})" if result_set.plan.explanation else ""
        lines.append(f"Found {page.total} {noun}{description}. Showing 1-{page.new_offset}:\n")
        lines.append(self._render_records(result_set, page))
        lines.append("")
        lines.append(self._footer(page))
        return "\n".join(lines), page

    def continue_page(self, session: Session, decision: ContinueQueryDecision) -> Tuple[str, int]:
        """Render the next page of the cached result set. Returns (text, records shown)."""
        result_set = self.cache.get(session, decision.result_set_id)
        if result_set is None or result_set.total == 0:
            return NOTHING_TO_CONTINUE, 0

        offset = decision.resume_offset
        if offset >= result_set.total:
            return (
                f"You've already seen all {result_set.total} results. "
                "Ask me for something new, like 'show open tickets'."
            ), 0

        page = self.page(result_set, offset)
        self.cache.advance(session, page.new_offset)
        logger.info(f"📄 Continuation page {page.start}-{page.new_offset} of {page.total}")

        lines = [
            f"Showing results {page.start + 1}-{page.new_offset} of {page.total}:\n",
            self._render_records(result_set, page),
            "",
            self._footer(page),
        ]
        return "\n".join(lines), len(page.records)

    def _footer(self, page: Page) -> str:
        if page.remaining > 0:
            return f"{page.remaining} more results available. {CONTINUE_HINT}"
        return f"That's all {page.total} results."

    def _no_results_text(self, result_set: ResultSet) -> str:
        description = f" for {result_set.plan.explanation.lower()}" if result_set.plan.explanation else ""
        return (
            f"No tickets found{description}. Try 'list all tickets', "
            "'show open tickets' or a customer e-mail address."
        )

    def _render_records(self, result_set: ResultSet, page: Page) -> str:
        if result_set.plan.listing == "identifiers":
            ids = []
            for record in page.records:
                ticket_id = get_field(record, "ticket_id")
                ids.append(str(ticket_id if ticket_id is not None else record.get("key", "?")))
            return ", ".join(ids)
        return "\n".join(
            render_ticket_line(record, page.start + i + 1) for i, record in enumerate(page.records)
        )


def render_ticket_line(record: Dict[str, Any], position: int) -> str:
    """One listing line; only fields present on the record are shown."""
    number = get_field(record, "ticket_number") or get_field(record, "ticket_id") or record.get("key", "?")
    head = f"{position}. **{number}**"
    title = get_field(record, "title")
    if title:
        head += f" - {title}"

    details = []
    for label, field in (
        ("Status", "status"),
        ("Customer", "customer"),
        ("Queue", "queue"),
        ("Priority", "priority"),
        ("Created", "created"),
    ):
        value = get_field(record, field)
        if value not in (None, ""):
            details.append(f"{label}: {value}")

    return f"{head} | {' | '.join(details)}" if details else head
