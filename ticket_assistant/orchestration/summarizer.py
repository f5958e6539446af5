"""
Summarizer: structured, then narrative, summaries of ticket records.

Only fields present on a record are rendered. Nothing is inferred or
filled in, and a missing section value is left out rather than guessed.
"""
import json
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from ticket_assistant.config import SUMMARY_SAMPLE_SIZE
from ticket_assistant.core.errors import LanguageModelError
from ticket_assistant.core.ticket_schema import CLOSED_STATE_TYPE, get_field
from ticket_assistant.llm.language_model import LanguageModelClient
from ticket_assistant.prompts.summary_prompts import SummaryPrompts
from ticket_assistant.utils.sanitization import sanitize_text_input

logger = logging.getLogger(__name__)

BODY_EXCERPT_LENGTH = 200

PRIORITY_LEVELS = {1: "Low", 2: "Low", 3: "Normal", 4: "High", 5: "High"}


def _present(value: Any) -> bool:
    return value not in (None, "", [], {})


def _excerpt(text: Any, limit: int = BODY_EXCERPT_LENGTH) -> str:
    flat = " ".join(str(text).split())
    return flat if len(flat) <= limit else flat[:limit].rstrip() + "..."


def _format_duration(minutes: Any) -> Optional[str]:
    try:
        minutes = int(minutes)
    except (TypeError, ValueError):
        return None
    if minutes < 0:
        return None
    days, rem = divmod(minutes, 60 * 24)
    hours, mins = divmod(rem, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if mins or not parts:
        parts.append(f"{mins}m")
    return " ".join(parts)


def _format_size(size: Any) -> Optional[str]:
    try:
        size = int(size)
    except (TypeError, ValueError):
        return None
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _is_open(ticket: Dict[str, Any]) -> Optional[bool]:
    state_type = ticket.get("StateType")
    if _present(state_type):
        return str(state_type).lower() != CLOSED_STATE_TYPE
    state = ticket.get("State")
    if _present(state):
        return not str(state).lower().startswith(CLOSED_STATE_TYPE)
    return None


def build_ticket_summary(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Structured summary of one ticket document.

    Returns a dict with ``ticket`` (header fields present on the record),
    ``timeline`` (messages in chronological order), ``by_sender`` (messages
    grouped by sender role), ``attachments`` and ``analytics``.
    """
    data = record.get("data") if isinstance(record.get("data"), dict) else {}
    header = dict(data.get("ticket") or {})

    raw_messages = get_field(record, "messages")
    messages = [m for m in raw_messages if isinstance(m, dict)] if isinstance(raw_messages, list) else []
    # Stored order is kept unless every message carries a CreateTime
    if all(m.get("CreateTime") is not None for m in messages):
        timeline = sorted(messages, key=lambda m: str(m["CreateTime"]))
    else:
        timeline = messages

    by_sender: Dict[str, List[Dict[str, Any]]] = {}
    for message in timeline:
        by_sender.setdefault(str(message.get("SenderType") or "unknown"), []).append(message)

    attachments = get_field(record, "attachments") or []
    if not isinstance(attachments, list):
        attachments = []

    analytics: Dict[str, Any] = {
        "message_count": len(timeline),
        "messages_by_sender": {sender: len(items) for sender, items in by_sender.items()},
        "attachment_count": len(attachments),
    }
    is_open = _is_open(header)
    if is_open is not None:
        analytics["is_open"] = is_open
    if is_open is False and _present(header.get("SolutionInMin")):
        analytics["resolution_minutes"] = header.get("SolutionInMin")
    if timeline:
        last = timeline[-1]
        if _present(last.get("SenderType")):
            analytics["last_sender"] = last.get("SenderType")
    priority_id = header.get("PriorityID")
    if isinstance(priority_id, int) and priority_id in PRIORITY_LEVELS:
        analytics["priority_level"] = PRIORITY_LEVELS[priority_id]

    return {
        "key": record.get("key"),
        "ticket": header,
        "timeline": timeline,
        "by_sender": by_sender,
        "attachments": [a for a in attachments if isinstance(a, dict)],
        "analytics": analytics,
    }


def _ticket_label(summary: Dict[str, Any]) -> str:
    ticket = summary["ticket"]
    for field in ("TicketNumber", "TicketID"):
        if _present(ticket.get(field)):
            return str(ticket[field])
    return str(summary.get("key") or "ticket")


def render_ticket_summary(summary: Dict[str, Any]) -> str:
    """
    Markdown rendering in fixed section order: Ticket Information, Conversation
    Overview, Conversation Flow, Analysis, Attachments, Next Steps (open tickets only).
    """
    ticket = summary["ticket"]
    analytics = summary["analytics"]
    lines = [f"## Ticket Summary: {_ticket_label(summary)}", "", "### Ticket Information"]

    for label, field in (
        ("Ticket Number", "TicketNumber"),
        ("Ticket ID", "TicketID"),
        ("Title", "Title"),
        ("Customer", "CustomerID"),
        ("Status", "State"),
        ("State Type", "StateType"),
        ("Priority", "Priority"),
        ("Queue", "Queue"),
        ("Owner", "Owner"),
        ("Responsible", "Responsible"),
        ("Created", "Created"),
        ("Last Changed", "Changed"),
        ("Closed", "Closed"),
    ):
        if _present(ticket.get(field)):
            lines.append(f"- **{label}**: {ticket[field]}")

    lines += ["", "### Conversation Overview"]
    if analytics["message_count"]:
        breakdown = ", ".join(
            f"{count} from {sender}" for sender, count in analytics["messages_by_sender"].items()
        )
        noun = "message" if analytics["message_count"] == 1 else "messages"
        lines.append(f"This ticket has {analytics['message_count']} {noun} ({breakdown}).")
    else:
        lines.append("No messages are recorded on this ticket.")

    lines += ["", "### Conversation Flow"]
    if summary["timeline"]:
        for index, message in enumerate(summary["timeline"], start=1):
            sender = str(message.get("SenderType") or "unknown").capitalize()
            entry = f"{index}."
            if _present(message.get("CreateTime")):
                entry += f" [{message['CreateTime']}]"
            entry += f" **{sender}**"
            if _present(message.get("From")):
                entry += f" ({message['From']})"
            if _present(message.get("Subject")):
                entry += f": {message['Subject']}"
            lines.append(entry)
            if _present(message.get("Body")):
                lines.append(f"   > {_excerpt(message['Body'])}")
    else:
        lines.append("No conversation recorded.")

    lines += ["", "### Analysis"]
    if "is_open" in analytics:
        lines.append(f"- **Status**: {'Open' if analytics['is_open'] else 'Closed'}")
    if "priority_level" in analytics:
        lines.append(f"- **Priority level**: {analytics['priority_level']}")
    if "resolution_minutes" in analytics:
        duration = _format_duration(analytics["resolution_minutes"])
        if duration:
            lines.append(f"- **Time to resolution**: {duration}")
    if "last_sender" in analytics:
        lines.append(f"- **Last activity by**: {analytics['last_sender']}")
    lines.append(f"- **Messages**: {analytics['message_count']}")

    lines += ["", "### Attachments"]
    if summary["attachments"]:
        for attachment in summary["attachments"]:
            name = attachment.get("Filename") or "unnamed file"
            details = [d for d in (attachment.get("ContentType"), _format_size(attachment.get("FilesizeRaw"))) if d]
            lines.append(f"- {name}" + (f" ({', '.join(details)})" if details else ""))
    else:
        lines.append("No attachments.")

    if analytics.get("is_open"):
        lines += ["", "### Next Steps"]
        if analytics.get("last_sender") == "customer":
            lines.append("- Reply to the customer's latest message.")
        elif analytics.get("last_sender"):
            lines.append("- Wait for the customer's response, or close the ticket if the issue is resolved.")
        else:
            lines.append("- Review the ticket and contact the customer.")
        if analytics.get("priority_level") == "High":
            lines.append("- Handle first: this is a high-priority ticket.")

    return "\n".join(lines)


def find_patterns(summaries: List[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    """Status and queue counts across several ticket summaries."""
    statuses = Counter(s["ticket"].get("State") for s in summaries if _present(s["ticket"].get("State")))
    queues = Counter(s["ticket"].get("Queue") for s in summaries if _present(s["ticket"].get("Queue")))
    return {"statuses": dict(statuses.most_common()), "queues": dict(queues.most_common())}


class TicketSummarizer:
    """Stateless; the language model is only used for the multi-ticket narrative."""

    def __init__(self, llm: Optional[LanguageModelClient] = None, sample_size: int = SUMMARY_SAMPLE_SIZE):
        self.llm = llm
        self.sample_size = sample_size

    async def summarize(self, records: List[Dict[str, Any]]) -> str:
        if not records:
            return "I couldn't find any matching tickets to summarize."
        if len(records) == 1:
            return render_ticket_summary(build_ticket_summary(records[0]))

        sample = records[:self.sample_size]
        summaries = [build_ticket_summary(record) for record in sample]
        patterns = find_patterns(summaries)

        lines = [f"## Summary of {len(sample)} tickets"]
        if len(records) > len(sample):
            lines.append(f"Showing the first {len(sample)} of {len(records)} matching tickets.")

        narrative = await self._narrative(summaries, patterns)
        if narrative:
            lines += ["", narrative]

        lines += ["", "### Overview", "", "| Ticket | Title | Status | Queue | Priority | Messages |",
                  "|---|---|---|---|---|---|"]
        for summary in summaries:
            ticket = summary["ticket"]
            lines.append("| " + " | ".join([
                _ticket_label(summary),
                str(ticket.get("Title") or "-"),
                str(ticket.get("State") or "-"),
                str(ticket.get("Queue") or "-"),
                str(ticket.get("Priority") or "-"),
                str(summary["analytics"]["message_count"]),
            ]) + " |")

        if patterns["statuses"] or patterns["queues"]:
            lines += ["", "### Patterns"]
            if patterns["statuses"]:
                lines.append("- **Statuses**: " + ", ".join(f"{k} ({v})" for k, v in patterns["statuses"].items()))
            if patterns["queues"]:
                lines.append("- **Queues**: " + ", ".join(f"{k} ({v})" for k, v in patterns["queues"].items()))

        for summary in summaries:
            lines += ["", render_ticket_summary(summary)]

        return "\n".join(lines)

    async def _narrative(self, summaries: List[Dict[str, Any]], patterns: Dict[str, Any]) -> Optional[str]:
        if self.llm is None:
            return None

        compact = []
        for summary in summaries:
            ticket = summary["ticket"]
            compact.append({
                "ticket": _ticket_label(summary),
                "title": sanitize_text_input(str(ticket.get("Title") or ""), 200),
                "status": ticket.get("State"),
                "queue": ticket.get("Queue"),
                "priority": ticket.get("Priority"),
                "messages": summary["analytics"]["message_count"],
                "last_sender": summary["analytics"].get("last_sender"),
                "latest_message": sanitize_text_input(
                    str(summary["timeline"][-1].get("Body") or ""), 300
                ) if summary["timeline"] else None,
            })

        prompt = SummaryPrompts.get_multi_ticket_prompt().format(
            count=len(summaries),
            tickets=json.dumps(compact, indent=2, default=str),
            patterns=json.dumps(patterns, indent=2),
        )
        try:
            return await self.llm.generate(prompt, SummaryPrompts.SYSTEM)
        except LanguageModelError as e:
            logger.warning(f"Narrative summary unavailable, using structured summary only: {e}")
            return None
