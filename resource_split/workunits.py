"""
Work-unit lookup. Annotates summaries with per-task unit counts.

The counts come from an auxiliary SQLite database keyed by the summary's
task_id. The query must take one parameter (the task id) and return
(units_total, units_processed). Records without a task id, or without a
matching row, keep their zero defaults.
"""

import sqlite3
from typing import Iterable, Optional, Tuple

from .constants import DEFAULT_WORKUNITS_QUERY, FIELD_TASK_ID
from .context import RunContext
from .models import SummaryRecord


class WorkUnitLookup:
    """Read-only connection to the work-unit database."""

    def __init__(self, db_path: str, query: str = DEFAULT_WORKUNITS_QUERY):
        self.db_path = db_path
        self.query = query
        self._conn: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            uri = f"file:{self.db_path}?mode=ro"
            self._conn = sqlite3.connect(uri, uri=True)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "WorkUnitLookup":
        self._connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def lookup(self, task_id) -> Optional[Tuple[int, int]]:
        """(units_total, units_processed) for task_id, or None."""
        row = self._connect().execute(self.query, (task_id,)).fetchone()
        if row is None:
            return None
        total, processed = row[0], row[1]
        return int(total or 0), int(processed or 0)

    def annotate(
        self,
        records: Iterable[SummaryRecord],
        context: Optional[RunContext] = None,
    ) -> int:
        """Fill units_total/units_processed in place. Returns the match count."""
        context = context or RunContext()
        matched = 0
        missing = 0
        for record in records:
            task_id = record.data.get(FIELD_TASK_ID)
            if isinstance(task_id, bool) or not isinstance(task_id, (int, str)):
                missing += 1
                continue
            found = self.lookup(task_id)
            if found is None:
                missing += 1
                continue
            record.units_total, record.units_processed = found
            matched += 1
        context.log(f"  Work units: {matched} summaries matched, {missing} without a match")
        return matched
