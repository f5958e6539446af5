"""
Result Page Cache: the most recent ResultSet of a session and its cursor.

The cursor lives on ``ResultSet.offset``: the index of the first record not
yet shown. A new result set replaces the previous one and starts at 0.
"""
import logging
from typing import Optional

from ticket_assistant.config import CONTINUATION_DEFAULT_OFFSET
from ticket_assistant.core.models import ResultSet
from ticket_assistant.services.session_store import Session

logger = logging.getLogger(__name__)


class ResultPageCache:

    def __init__(self, default_resume_offset: int = CONTINUATION_DEFAULT_OFFSET):
        self.default_resume_offset = default_resume_offset

    def store(self, session: Session, result_set: ResultSet) -> None:
        result_set.offset = 0
        session.context.last_result_set = result_set
        session.context.last_plan = result_set.plan
        logger.debug(
            f"Cached result set {result_set.result_set_id[:8]} "
            f"({result_set.total} records) for session {session.session_id[:8]}..."
        )

    def get(self, session: Session, result_set_id: Optional[str] = None) -> Optional[ResultSet]:
        result_set = session.context.last_result_set
        if result_set is None:
            return None
        if result_set_id and result_set.result_set_id != result_set_id:
            logger.warning(f"Requested result set {result_set_id[:8]} is no longer cached")
            return None
        return result_set

    def has_results(self, session: Session) -> bool:
        result_set = session.context.last_result_set
        return bool(result_set and result_set.total)

    def resume_offset(self, session: Session) -> int:
        """Where a continuation picks up; an unrecorded cursor resumes at the configured default."""
        result_set = session.context.last_result_set
        if result_set is None:
            return 0
        if result_set.offset > 0:
            return result_set.offset
        return min(self.default_resume_offset, result_set.total)

    def advance(self, session: Session, new_offset: int) -> None:
        result_set = session.context.last_result_set
        if result_set is not None:
            result_set.offset = max(0, min(new_offset, result_set.total))
