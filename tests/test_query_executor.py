"""
Unit tests for QueryExecutor retry-and-simplify behaviour.
"""
import pytest

from ticket_assistant.core.errors import QueryRejectedError, TicketStoreError
from ticket_assistant.core.models import QueryOptions, QueryPlan
from ticket_assistant.orchestration.query_executor import QueryExecutor
from ticket_assistant.repositories.ticket_repository import InMemoryTicketRepository, TicketRepository


class RecordingRepository(TicketRepository):
    """Delegates to an in-memory store after asking ``reject`` whether to fail."""

    backend = "recording"

    def __init__(self, documents, reject=None):
        self.inner = InMemoryTicketRepository(documents)
        self.reject = reject or (lambda filter_doc, options: False)
        self.calls = []

    def find(self, filter_doc, options):
        self.calls.append((filter_doc, options))
        if self.reject(filter_doc, options):
            raise QueryRejectedError("rejected by store")
        return self.inner.find(filter_doc, options)


class DownRepository(TicketRepository):
    backend = "down"

    def __init__(self):
        self.calls = 0

    def find(self, filter_doc, options):
        self.calls += 1
        raise TicketStoreError("store unreachable")


def _filtered_plan(**options):
    return QueryPlan(
        filter={"data.ticket.StateType": "closed"},
        options=QueryOptions(**{"limit": 100, "sort": {"data.ticket.Created": -1}, **options}),
        explanation="Closed tickets",
    )


class TestExecute:

    @pytest.mark.asyncio
    async def test_plan_succeeds_first_time(self, sample_tickets):
        repo = RecordingRepository(sample_tickets)
        result = await QueryExecutor(repo).execute(_filtered_plan())

        assert result.success
        assert result.corrections == 0
        assert not result.degraded
        assert not result.used_fallback
        assert all(r["data"]["ticket"]["StateType"] == "closed" for r in result.records)
        assert len(repo.calls) == 1

    @pytest.mark.asyncio
    async def test_store_rejecting_filters_gets_simplified_listing(self, sample_tickets):
        repo = RecordingRepository(sample_tickets, reject=lambda f, o: bool(f))
        result = await QueryExecutor(repo).execute(_filtered_plan())

        assert result.success
        assert result.plan.filter == {}
        assert result.plan.options.limit <= 20
        assert result.degraded
        assert result.corrections == 1
        assert len(result.records) == 12

    @pytest.mark.asyncio
    async def test_projection_removed_before_filter(self, sample_tickets):
        repo = RecordingRepository(sample_tickets, reject=lambda f, o: o.projection is not None)
        plan = _filtered_plan(projection={"data.ticket.TicketID": 1})

        result = await QueryExecutor(repo).execute(plan)

        assert result.success
        assert result.plan.filter == plan.filter
        assert result.plan.options.projection is None
        assert not result.degraded

    @pytest.mark.asyncio
    async def test_fallback_used_when_retries_exhausted(self, sample_tickets):
        repo = RecordingRepository(sample_tickets, reject=lambda f, o: bool(f))
        plan = _filtered_plan(projection={"data.ticket.TicketID": 1})

        result = await QueryExecutor(repo, max_retries=1).execute(plan)

        assert result.success
        assert result.used_fallback
        assert result.degraded
        assert result.plan.filter == {}
        assert result.plan.options.sort is None
        # original + one correction + fallback
        assert len(repo.calls) == 3

    @pytest.mark.asyncio
    async def test_terminal_failure_returns_empty_unsuccessful_result(self):
        repo = DownRepository()
        result = await QueryExecutor(repo).execute(_filtered_plan())

        assert result.success is False
        assert result.records == []
        assert result.used_fallback
        assert "unreachable" in result.error

    @pytest.mark.asyncio
    async def test_attempts_are_bounded(self):
        repo = DownRepository()
        await QueryExecutor(repo, max_retries=3).execute(
            _filtered_plan(projection={"data.ticket.TicketID": 1})
        )
        # original + 3 corrections + fallback
        assert repo.calls == 5


class TestCorrections:

    def test_duplicate_variants_skipped(self):
        executor = QueryExecutor(RecordingRepository([]))
        plan = QueryPlan(filter={}, options=QueryOptions(limit=10))
        assert executor.corrections(plan) == []

    def test_correction_order(self):
        executor = QueryExecutor(RecordingRepository([]))
        labels = [label for label, _, _ in executor.corrections(
            _filtered_plan(projection={"data.ticket.TicketID": 1})
        )]
        assert labels == ["removed projection", "simplified filter", "removed sort"]

    def test_fallback_keeps_listing_kind(self):
        executor = QueryExecutor(RecordingRepository([]))
        plan = QueryPlan(listing="identifiers", options=QueryOptions(limit=1000))
        fallback = executor.fallback_plan(plan)
        assert fallback.listing == "identifiers"
        assert fallback.filter == {}
        assert fallback.options.limit == 20
