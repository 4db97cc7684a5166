import json
from pathlib import Path

import pytest

from resource_split.models import SummaryRecord


def make_records(*rows):
    """SummaryRecords from plain dicts."""
    return [SummaryRecord(data=dict(row)) for row in rows]


@pytest.fixture()
def summaries_file(tmp_path: Path):
    """Write dicts as a newline-delimited JSON stream and return its path."""
    def _write(rows, name="summaries.json") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(json.dumps(r) for r in rows) + "\n", encoding="utf-8")
        return path
    return _write
