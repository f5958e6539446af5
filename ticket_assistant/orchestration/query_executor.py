"""
Query Executor: runs a QueryPlan with a bounded retry-and-simplify loop.

Attempt order:
    1. the plan as given
    2. up to ``max_retries`` corrections, each stripping one more clause:
       projection, then the filter (limit capped), then the sort
    3. the ultimate fallback: empty filter, fallback limit, store order

If the fallback also fails the result is ``success=False`` with no records.
``execute()`` never raises.
"""
import asyncio
import logging
from typing import List, Tuple

from ticket_assistant.config import FALLBACK_QUERY_LIMIT, QUERY_MAX_RETRIES
from ticket_assistant.core.models import QueryOptions, QueryPlan, ResultSet
from ticket_assistant.repositories.ticket_repository import TicketRepository

logger = logging.getLogger(__name__)


class QueryExecutor:

    def __init__(
        self,
        repository: TicketRepository,
        max_retries: int = QUERY_MAX_RETRIES,
        fallback_limit: int = FALLBACK_QUERY_LIMIT,
    ):
        self.repository = repository
        self.max_retries = max_retries
        self.fallback_limit = fallback_limit

    async def _run(self, plan: QueryPlan):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.repository.find, plan.filter, plan.options)

    def corrections(self, plan: QueryPlan) -> List[Tuple[str, QueryPlan, bool]]:
        """
        Successively simpler variants of ``plan`` as (label, plan, degraded).

        ``degraded`` is True once the user's filter has been dropped. Variants
        identical to an earlier attempt are skipped.
        """
        steps: List[Tuple[str, QueryPlan, bool]] = []
        seen = [plan.model_dump()]
        current = plan

        def add(label: str, candidate: QueryPlan, degraded: bool):
            dumped = candidate.model_dump()
            if dumped not in seen:
                seen.append(dumped)
                steps.append((label, candidate, degraded))

        if current.options.projection:
            current = current.model_copy(update={
                "options": current.options.model_copy(update={"projection": None}),
            })
            add("removed projection", current, False)

        degraded = bool(plan.filter)
        if current.filter or current.options.limit > self.fallback_limit:
            current = current.model_copy(update={
                "filter": {},
                "options": current.options.model_copy(
                    update={"limit": min(current.options.limit, self.fallback_limit)}
                ),
            })
            add("simplified filter", current, degraded)

        if current.options.sort:
            current = current.model_copy(update={
                "options": current.options.model_copy(update={"sort": None}),
            })
            add("removed sort", current, degraded)

        return steps[:self.max_retries]

    def fallback_plan(self, plan: QueryPlan) -> QueryPlan:
        return QueryPlan(
            filter={},
            options=QueryOptions(limit=self.fallback_limit),
            explanation="Fallback listing (store order)",
            listing=plan.listing,
        )

    async def execute(self, plan: QueryPlan) -> ResultSet:
        logger.info(f"🔍 Executing plan: {plan.explanation or 'unnamed'} (limit={plan.options.limit})")

        attempts = [("original", plan, False)] + self.corrections(plan)
        for index, (label, candidate, degraded) in enumerate(attempts):
            try:
                records = await self._run(candidate)
            except Exception as e:
                logger.warning(f"⚠️ Query attempt '{label}' failed: {e}")
                continue

            if index:
                logger.info(f"🔧 Query succeeded after {index} correction(s) ({label})")
            return ResultSet(records=records, plan=candidate, corrections=index, degraded=degraded)

        fallback = self.fallback_plan(plan)
        logger.warning(f"🛟 All corrections exhausted, running fallback plan (limit={fallback.options.limit})")
        try:
            records = await self._run(fallback)
        except Exception as e:
            logger.error(f"❌ Fallback query failed, giving up: {e}")
            return ResultSet(
                records=[],
                plan=fallback,
                success=False,
                error=str(e) or type(e).__name__,
                corrections=len(attempts) - 1,
                used_fallback=True,
                degraded=bool(plan.filter),
            )

        return ResultSet(
            records=records,
            plan=fallback,
            corrections=len(attempts) - 1,
            used_fallback=True,
            degraded=bool(plan.filter),
        )
