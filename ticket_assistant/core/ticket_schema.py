"""
Static knowledge about the ticket document layout.

Each stored document is one support case:

    {
        "key": "13001952",
        "data": {
            "ticket":     {TicketID, TicketNumber, Title, CustomerID, State, ...},
            "article":    [{From, To, Subject, Body, SenderType, CreateTime, ...}, ...],
            "attachment": [{Filename, ContentType, FilesizeRaw, Disposition}, ...]
        }
    }

SCHEMA_PATHS maps the semantic field names used by the planner, paginator
and summarizer onto these store paths. Nothing outside this module should
hard-code a "data.ticket.*" path.
"""
from typing import Any, Dict

SCHEMA_PATHS: Dict[str, str] = {
    "ticket_id": "data.ticket.TicketID",
    "ticket_number": "data.ticket.TicketNumber",
    "title": "data.ticket.Title",
    "customer": "data.ticket.CustomerID",
    "status": "data.ticket.State",
    "state_type": "data.ticket.StateType",
    "priority": "data.ticket.Priority",
    "priority_id": "data.ticket.PriorityID",
    "queue": "data.ticket.Queue",
    "owner": "data.ticket.Owner",
    "responsible": "data.ticket.Responsible",
    "created": "data.ticket.Created",
    "changed": "data.ticket.Changed",
    "closed": "data.ticket.Closed",
    "solution_minutes": "data.ticket.SolutionInMin",
    "messages": "data.article",
    "body": "data.article.Body",
    "attachments": "data.attachment",
}

OPEN_STATE_TYPES = ["open", "new", "pending"]
CLOSED_STATE_TYPE = "closed"

KNOWN_QUEUES = [
    "Customer Support",
    "Technical Support",
    "Billing Support",
    "Sales",
    "IT Helpdesk",
    "Product Support",
    "Account Management",
]

_MISSING = object()


def schema_path(field: str) -> str:
    """Store path for a semantic field name. Raises KeyError for unknown fields."""
    return SCHEMA_PATHS[field]


def get_path(document: Any, path: str, default: Any = None) -> Any:
    """
    Resolve a dotted path inside a nested document.

    Only walks dicts; a list on the way (e.g. ``data.article.Body``) yields
    the default rather than fanning out.
    """
    current = document
    for part in path.split("."):
        if not isinstance(current, dict):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current


def get_field(document: Any, field: str, default: Any = None) -> Any:
    """Resolve a semantic field (see SCHEMA_PATHS) inside a ticket document."""
    return get_path(document, SCHEMA_PATHS[field], default)


FIELD_EXPLANATIONS: Dict[str, str] = {
    "TicketID": """**TicketID - Primary Ticket Identifier**

TicketID is the internal numeric identifier of a support ticket.

- **Type**: Number (integer), e.g. 13001952
- **Location**: `data.ticket.TicketID`
- **Uniqueness**: exactly one per ticket, generated when the ticket is created
- **Purpose**: internal identification; messages reference it through `data.article.TicketID`

It differs from the TicketNumber, which is the identifier customers see.
Try: "list all ticket IDs" or "summarize ticket 13001952".""",

    "TicketNumber": """**TicketNumber - Customer-Facing Identifier**

TicketNumber is the string identifier customers use to reference their case.

- **Type**: String, format YYYYMMDD + 8 digits, e.g. "2025010610000001"
- **Location**: `data.ticket.TicketNumber`
- **Purpose**: customer communication and external references

"2025010610000001" reads as year 2025, month 01, day 06, sequence 10000001.
Try: "summarize ticket 2025010610000001".""",

    "CustomerID": """**CustomerID - Customer Email Address**

CustomerID is the e-mail address of the customer who opened the ticket.

- **Type**: String (e-mail), e.g. "john@email.com"
- **Location**: `data.ticket.CustomerID`
- **Purpose**: identifying which customer owns a ticket and filtering by customer

Try: "find tickets from john@email.com".""",
}

STRUCTURE_EXPLANATION = """**Ticket Database Structure**

Each document is one support ticket with its complete conversation.

**Ticket** (`data.ticket`)
- Identifiers: `TicketID` (numeric), `TicketNumber` (customer-facing), `Title`
- Customer & assignment: `CustomerID` (e-mail), `Queue`, `Owner`, `Responsible`
- Status: `State` (e.g. "pending reminder", "closed successful"), `StateType` (new, open, pending, closed)
- Priority: `Priority` ("1 very low" to "5 very high"), `PriorityID` (1-5)
- Timestamps: `Created`, `Changed`, `Closed`

**Messages** (`data.article`, ordered)
- `From`, `To`, `Subject`, `Body`, `CreateTime`
- `SenderType`: customer, agent or system
- `IsVisibleForCustomer`: 1 if the customer can see the message

**Attachments** (`data.attachment`)
- `Filename`, `ContentType`, `FilesizeRaw` (bytes), `Disposition`

Useful requests: "list all ticket IDs", "show open tickets",
"find tickets from john@email.com", "summarize ticket 2025010610000001"."""

CAPABILITIES_TEXT = """I'm your ticket database assistant. I can help you with:

**Data queries**
- "list all ticket IDs" - every ticket identifier
- "find tickets from john@email.com" - tickets for one customer
- "show open tickets" / "show closed tickets" - filter by status
- "show high priority tickets" - filter by priority

**Summaries**
- "summarize ticket 2025010610000001" - a full ticket write-up

**Structure**
- "explain the data structure" - how tickets are stored
- "what is a TicketID" - field explanations

**Continuation**
- "see more" - continue through the last result list

Just ask naturally; I remember the context of our conversation."""

GREETING_RESPONSE = (
    "Hello! I'm your ticket database assistant. I can find tickets, search by "
    "customer, summarize a ticket, or explain how the data is structured. "
    "What would you like to do?"
)


def explain_concept(concept: str) -> str:
    """Canned explanation for a schema concept; unknown concepts get the capability text."""
    if concept in FIELD_EXPLANATIONS:
        return FIELD_EXPLANATIONS[concept]
    if concept == "structure":
        return STRUCTURE_EXPLANATION
    return CAPABILITIES_TEXT
