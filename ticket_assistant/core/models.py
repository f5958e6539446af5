"""
Typed models shared by the request-orchestration pipeline.

Decision      - Intent Router output, a tagged union over the routing actions
QueryPlan     - filter/sort/limit/projection description handed to the store
ResultSet     - records from one execution plus the plan that produced them
Interaction   - immutable record of one conversational turn
ChatResponse  - envelope returned to the caller
"""
import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from ticket_assistant.config import MAX_QUERY_LIMIT

# Operators the store may receive; anything else (e.g. $where, $function,
# $expr) is rejected at plan construction.
ALLOWED_FILTER_OPERATORS = frozenset({
    "$eq", "$ne", "$in", "$nin",
    "$gt", "$gte", "$lt", "$lte",
    "$and", "$or", "$exists",
})


def find_disallowed_operators(filter_doc: Any) -> List[str]:
    """Return every "$"-prefixed key in a filter document that is not allow-listed."""
    found: List[str] = []
    if isinstance(filter_doc, dict):
        for key, value in filter_doc.items():
            if isinstance(key, str) and key.startswith("$") and key not in ALLOWED_FILTER_OPERATORS:
                found.append(key)
            found.extend(find_disallowed_operators(value))
    elif isinstance(filter_doc, list):
        for item in filter_doc:
            found.extend(find_disallowed_operators(item))
    return found


# ============================================================================
# QUERY PLAN / RESULT SET
# ============================================================================

class QueryOptions(BaseModel):
    """Store options. ``sort`` and ``projection`` map store paths to 1 / -1 (or 0 for exclusion)."""
    limit: int = Field(50, ge=1, le=MAX_QUERY_LIMIT)
    sort: Optional[Dict[str, int]] = None
    projection: Optional[Dict[str, int]] = None


class QueryPlan(BaseModel):
    filter: Dict[str, Any] = Field(default_factory=dict)
    options: QueryOptions = Field(default_factory=QueryOptions)
    explanation: str = ""
    listing: Literal["tickets", "identifiers"] = "tickets"

    @field_validator("filter")
    @classmethod
    def validate_operators(cls, v):
        disallowed = find_disallowed_operators(v)
        if disallowed:
            raise ValueError(f"Filter uses operators outside the allow-list: {sorted(set(disallowed))}")
        return v


class ResultSet(BaseModel):
    """
    Records returned by one query execution.

    ``offset`` is the pagination cursor: the index of the first record not
    yet shown. ``success=False`` with no records is the executor's terminal
    failure marker; callers report it and never retry.
    """
    result_set_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    records: List[Dict[str, Any]] = Field(default_factory=list)
    plan: QueryPlan
    offset: int = 0
    success: bool = True
    error: Optional[str] = None
    corrections: int = 0
    used_fallback: bool = False
    degraded: bool = False

    @property
    def total(self) -> int:
        return len(self.records)


# ============================================================================
# DECISIONS (tagged union on ``action``)
# ============================================================================

class ClarificationState(BaseModel):
    """An unresolved request waiting for the user to name what they meant."""
    model_config = ConfigDict(frozen=True)

    original_text: str
    question: str


class DecisionBase(BaseModel):
    instruction: str = ""
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    reasoning: str = ""


class ChatDecision(DecisionBase):
    action: Literal["chat"] = "chat"
    response: str = ""
    clarification: Optional[ClarificationState] = None


class ExplainDecision(DecisionBase):
    action: Literal["explain"] = "explain"
    concept: str = "capabilities"
    response: str = ""


class QueryDecision(DecisionBase):
    action: Literal["query"] = "query"


class ContinueQueryDecision(DecisionBase):
    action: Literal["continueQuery"] = "continueQuery"
    result_set_id: Optional[str] = None
    resume_offset: int = Field(0, ge=0)


class SummarizeDecision(DecisionBase):
    action: Literal["summarize"] = "summarize"
    ticket_references: List[str] = Field(default_factory=list)
    # Summarize the session's cached results instead of querying
    use_cached_results: bool = False


class ErrorDecision(DecisionBase):
    action: Literal["error"] = "error"
    message: str = ""


Decision = Annotated[
    Union[
        ChatDecision,
        ExplainDecision,
        QueryDecision,
        ContinueQueryDecision,
        SummarizeDecision,
        ErrorDecision,
    ],
    Field(discriminator="action"),
]

decision_adapter: TypeAdapter = TypeAdapter(Decision)


# ============================================================================
# CONVERSATION RECORDS
# ============================================================================

class Interaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_message: str
    decision: Decision
    response: str
    plan: Optional[QueryPlan] = None
    result_count: int = 0
    success: bool = True
    timestamp: datetime


class ChatResponse(BaseModel):
    """Envelope returned by the orchestrator; serialised with camelCase keys."""
    response: str
    session_id: str = Field(serialization_alias="sessionId")
    result_count: int = Field(0, serialization_alias="resultCount")
    success: bool = True
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
