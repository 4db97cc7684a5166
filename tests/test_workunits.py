import sqlite3

import pytest
from conftest import make_records

from resource_split.context import RunContext
from resource_split.workunits import WorkUnitLookup


@pytest.fixture()
def units_db(tmp_path):
    path = tmp_path / "units.sqlite"
    conn = sqlite3.connect(str(path))
    conn.execute(
        "CREATE TABLE tasks (task_id INTEGER PRIMARY KEY, units_total INTEGER, units_processed INTEGER)"
    )
    conn.executemany(
        "INSERT INTO tasks VALUES (?, ?, ?)",
        [(1, 10, 7), (2, 4, None)],
    )
    conn.commit()
    conn.close()
    return str(path)


def test_lookup(units_db):
    with WorkUnitLookup(units_db) as lookup:
        assert lookup.lookup(1) == (10, 7)
        assert lookup.lookup(2) == (4, 0)
        assert lookup.lookup(99) is None


def test_annotate_fills_matching_records(units_db, capsys):
    records = make_records({"task_id": 1}, {"task_id": 99}, {}, {"task_id": True})
    with WorkUnitLookup(units_db) as lookup:
        matched = lookup.annotate(records, RunContext(verbose=True))

    assert matched == 1
    assert (records[0].units_total, records[0].units_processed) == (10, 7)
    assert all(r.units_processed == 0 for r in records[1:])
    assert "Work units: 1 summaries matched, 3 without a match" in capsys.readouterr().out


def test_custom_query(units_db):
    query = "SELECT units_processed, units_total FROM tasks WHERE task_id = ?"
    lookup = WorkUnitLookup(units_db, query)
    try:
        assert lookup.lookup(1) == (7, 10)
    finally:
        lookup.close()


def test_connection_is_read_only(units_db):
    lookup = WorkUnitLookup(units_db)
    with pytest.raises(sqlite3.OperationalError):
        lookup._connect().execute("DELETE FROM tasks")
    lookup.close()
