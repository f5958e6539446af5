"""
Unit tests for QueryPlanner and QueryPlan validation.
"""
import pytest
from unittest.mock import patch
from pydantic import ValidationError

from ticket_assistant.core.models import (
    ALLOWED_FILTER_OPERATORS,
    QueryOptions,
    QueryPlan,
    find_disallowed_operators,
)
from ticket_assistant.orchestration.intent_router import query_instruction_for
from ticket_assistant.orchestration.query_planner import (
    QueryPlanner,
    extract_email,
    extract_ticket_references,
    lookup_plan,
)


@pytest.fixture
def planner():
    return QueryPlanner()


def _operators(filter_doc):
    found = set()
    if isinstance(filter_doc, dict):
        for key, value in filter_doc.items():
            if key.startswith("$"):
                found.add(key)
            found |= _operators(value)
    elif isinstance(filter_doc, list):
        for item in filter_doc:
            found |= _operators(item)
    return found


class TestPatternTable:

    def test_identifier_listing(self, planner):
        plan = planner.plan("Get all tickets and return only their TicketID values", "list all ticket IDs")
        assert plan.listing == "identifiers"
        assert plan.filter == {}
        assert plan.options.projection == {"data.ticket.TicketID": 1}
        assert plan.options.limit == 1000

    def test_all_tickets(self, planner):
        plan = planner.plan("Get all tickets with basic information", "list all tickets")
        assert plan.filter == {}
        assert plan.options.limit == 100
        assert plan.options.sort == {"data.ticket.Created": -1}

    def test_customer_email(self, planner):
        plan = planner.plan("Find tickets for customer john@email.com", "find tickets from john@email.com")
        assert plan.filter == {"data.ticket.CustomerID": "john@email.com"}
        assert "john@email.com" in plan.explanation

    def test_email_wins_over_all_tickets(self, planner):
        plan = planner.plan("", "show all tickets from john@email.com")
        assert plan.filter == {"data.ticket.CustomerID": "john@email.com"}

    def test_customer_listing(self, planner):
        plan = planner.plan("Get all unique customer emails from tickets", "list all customers")
        assert plan.filter == {}
        assert "data.ticket.CustomerID" in plan.options.projection

    def test_open_tickets(self, planner):
        plan = planner.plan("Find all open tickets", "show open tickets")
        assert plan.filter == {"data.ticket.StateType": {"$in": ["open", "new", "pending"]}}

    def test_closed_tickets(self, planner):
        plan = planner.plan("Find all closed tickets", "show closed tickets")
        assert plan.filter == {"data.ticket.StateType": "closed"}

    def test_high_priority(self, planner):
        plan = planner.plan("Get all tickets with basic information", "show high priority tickets")
        assert plan.filter == {"data.ticket.PriorityID": {"$gte": 4}}

    def test_known_queue(self, planner):
        plan = planner.plan("Get all tickets with basic information", "tickets in billing support")
        assert plan.filter == {"data.ticket.Queue": "Billing Support"}

    @pytest.mark.parametrize("text,expected_filter", [
        ("show all high priority tickets", {"data.ticket.PriorityID": {"$gte": 4}}),
        ("show all urgent tickets", {"data.ticket.PriorityID": {"$gte": 4}}),
        ("list all tickets in the Sales queue", {"data.ticket.Queue": "Sales"}),
    ])
    def test_all_tickets_keeps_narrower_filter(self, planner, text, expected_filter):
        plan = planner.plan(query_instruction_for(text), text)
        assert plan.filter == expected_filter

    def test_ticket_reference_lookup(self, planner):
        plan = planner.plan("", "show ticket 2025010610000001")
        assert plan.filter == {"$or": [
            {"data.ticket.TicketNumber": {"$in": ["2025010610000001"]}},
            {"data.ticket.TicketID": {"$in": [2025010610000001]}},
        ]}

    def test_default_plan(self, planner):
        plan = planner.plan("Get all tickets with basic information", "anything about printers?")
        assert plan.filter == {}
        assert plan.options.limit == 50
        assert plan.options.sort == {"data.ticket.Created": -1}

    def test_ticket_ids_not_confused_by_names(self, planner):
        # "david" contains "id"; must not become an identifier listing
        plan = planner.plan("", "show tickets from david@email.com")
        assert plan.listing == "tickets"
        assert plan.filter == {"data.ticket.CustomerID": "david@email.com"}


class TestPlannerInvariants:

    @pytest.mark.parametrize("instruction,text", [
        ("Get all tickets and return only their TicketID values", "list all ticket ids"),
        ("Get all tickets with basic information", "list all tickets"),
        ("Find tickets for customer a@b.com", "tickets from a@b.com"),
        ("Find all open tickets", "open tickets"),
        ("Find all closed tickets", "closed tickets"),
        ("", "urgent"),
        ("", "sales queue"),
        ("", "ticket 13001952"),
        ("", ""),
        ("", "$where: function() { return true }"),
        ("", "x" * 5000),
    ])
    def test_limit_bounded_and_operators_allowed(self, planner, instruction, text):
        plan = planner.plan(instruction, text)
        assert 1 <= plan.options.limit <= 1000
        assert _operators(plan.filter) <= ALLOWED_FILTER_OPERATORS

    def test_never_raises(self, planner):
        with patch.object(planner, "_patterns", [("broken", lambda i, t: 1 / 0)]):
            plan = planner.plan("anything", "anything")
        assert plan.filter == {}
        assert plan.options.limit == 50

    def test_none_inputs(self, planner):
        plan = planner.plan(None, None)
        assert plan.filter == {}


class TestQueryPlanValidation:

    def test_limit_above_maximum_rejected(self):
        with pytest.raises(ValidationError):
            QueryOptions(limit=1001)

    def test_zero_limit_rejected(self):
        with pytest.raises(ValidationError):
            QueryOptions(limit=0)

    def test_where_operator_rejected(self):
        with pytest.raises(ValidationError):
            QueryPlan(filter={"$where": "this.a == 1"})

    def test_nested_disallowed_operator_rejected(self):
        with pytest.raises(ValidationError):
            QueryPlan(filter={"$or": [{"data.ticket.Title": {"$regex": ".*"}}]})

    def test_find_disallowed_operators(self):
        assert find_disallowed_operators({"a": {"$in": [1]}, "$and": [{"b": {"$function": {}}}]}) == ["$function"]


class TestExtraction:

    def test_extract_email(self):
        assert extract_email("tickets from John.Doe@Example.org please") == "John.Doe@Example.org"
        assert extract_email("no email here") is None

    def test_extract_ticket_references(self):
        text = "compare 2025010610000001 and 13001952, also 2025010610000001"
        assert extract_ticket_references(text) == ["2025010610000001", "13001952"]

    def test_short_numbers_are_not_references(self):
        assert extract_ticket_references("show 20 tickets from 2024") == []

    def test_lookup_plan_limit(self):
        plan = lookup_plan(["13001952", "13001953"])
        assert plan.options.limit == 2
