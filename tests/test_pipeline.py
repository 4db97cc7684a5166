import sqlite3

import pytest

from resource_split.config import SplitConfig
from resource_split.context import RunContext
from resource_split.models import HistogramVariant, OutlierPolicy
from resource_split.pipeline import run_pipeline

ROWS = [
    {"category": "sim", "host": "h1", "wall_time": [10, "s"], "memory": [100, "MB"]},
    {"category": "sim", "host": "h1", "wall_time": [20, "s"], "memory": [200, "MB"]},
    {"category": "sim", "host": "h2", "wall_time": [30, "s"], "memory": [300, "GB"]},
    {"category": "sim", "host": "h2", "wall_time": [40, "s"], "memory": [400, "MB"]},
    {"category": "io", "host": "h3", "wall_time": 5},
    {"category": "", "host": "h1", "wall_time": 1},
    {"host": "h9", "wall_time": 1},
]


@pytest.fixture()
def config():
    return SplitConfig(split_field="host", output_fields=["wall_time", "memory"])


def test_end_to_end(tmp_path, summaries_file, config, capsys):
    out = tmp_path / "out"
    report = run_pipeline(str(summaries_file(ROWS)), str(out), config)

    assert report.records_read == 7
    assert [c.category for c in report.categories] == ["io", "sim"]
    assert report.units == {"wall_time": "s", "memory": "MB"}

    sim = report.categories[1]
    assert sim.split_keys == ["h1", "h2"]
    assert sim.bucket_sizes["wall_time"] == pytest.approx(15.0)
    for name in (
        "h1.dat", "h2.dat",
        "wall_time.summary.dat", "wall_time.summary.gp",
        "memory.summary.dat", "memory.summary.gp",
        "h1.wall_time.hist", "h2.memory.hist",
        "wall_time.mordor.dat", "wall_time.mordor.gp",
        "memory.scatter.dat", "memory.scatter.gp",
    ):
        assert name in sim.files, name
        assert (out / "sim" / name).exists()
    assert "wall_time.scatter.dat" not in sim.files

    io_rows = (out / "io" / "memory.summary.dat").read_text().splitlines()
    assert io_rows[1] == "h3 1 NaN NaN NaN NaN NaN NaN NaN NaN NaN"
    assert "memory" not in report.categories[0].bucket_sizes

    captured = capsys.readouterr()
    assert captured.err.count("Inconsistent units") == 1
    assert "No category given or empty string." in captured.err
    assert 'Dropped 1 of 7 summaries when grouping by field "category".' in captured.err
    assert 'Subdividing category "sim"...' in captured.out
    assert 'Subdividing category "io"...' in captured.out


def test_threshold_removes_whole_category(tmp_path, summaries_file, config, capsys):
    config.threshold = 2
    out = tmp_path / "out"
    report = run_pipeline(str(summaries_file(ROWS)), str(out), config)

    assert [c.category for c in report.categories] == ["sim"]
    assert not (out / "io").exists()
    assert 'No groups left in category "io"' in capsys.readouterr().err


def test_per_unit_variant_uses_work_units(tmp_path, summaries_file, config):
    db = tmp_path / "units.sqlite"
    conn = sqlite3.connect(str(db))
    conn.execute("CREATE TABLE tasks (task_id INTEGER, units_total INTEGER, units_processed INTEGER)")
    conn.executemany("INSERT INTO tasks VALUES (?, ?, ?)", [(1, 10, 5), (2, 10, 10)])
    conn.commit()
    conn.close()

    rows = [
        {"category": "c", "host": "a", "task_id": 1, "wall_time": 50},
        {"category": "c", "host": "a", "task_id": 2, "wall_time": 80},
    ]
    config.output_fields = ["wall_time"]
    config.workunits_db = str(db)
    config.variants = [HistogramVariant.VALUE, HistogramVariant.PER_UNIT]

    out = tmp_path / "out"
    run_pipeline(str(summaries_file(rows)), str(out), config)

    lines = (out / "c" / "a.wall_time.per_unit.hist").read_text().splitlines()
    assert sum(int(line.split()[1]) for line in lines[2:]) == 2
    assert (out / "c" / "a.wall_time.hist").exists()


def test_list_file_input(tmp_path, summaries_file, config):
    paths = [summaries_file([row], name=f"s{i}.json") for i, row in enumerate(ROWS[:4])]
    listing = tmp_path / "list.txt"
    listing.write_text("\n".join(str(p) for p in paths) + "\n")

    report = run_pipeline(str(listing), str(tmp_path / "out"), config, list_file=True)
    assert report.records_read == 4
    assert [c.category for c in report.categories] == ["sim"]


def test_no_summaries_warns(tmp_path, config, capsys):
    empty = tmp_path / "empty.json"
    empty.write_text("")
    report = run_pipeline(str(empty), str(tmp_path / "out"), config)
    assert report.categories == []
    assert "No summaries read" in capsys.readouterr().err


def test_missing_input_is_fatal(tmp_path, config):
    with pytest.raises(OSError):
        run_pipeline(str(tmp_path / "absent.json"), str(tmp_path / "out"), config)


def test_split_field_required(tmp_path):
    with pytest.raises(ValueError):
        run_pipeline("unused", str(tmp_path), SplitConfig())


def test_verbose_context_logs_stages(tmp_path, summaries_file, config, capsys):
    run_pipeline(
        str(summaries_file(ROWS)), str(tmp_path / "out"), config,
        context=RunContext(verbose=True),
    )
    out = capsys.readouterr().out
    assert "--- Stage 1: Read summaries ---" in out
    assert "Categories written: 2" in out


def test_outlier_policy_discard_drops_outliers(tmp_path, summaries_file, config):
    rows = [{"category": "c", "host": "a", "wall_time": v} for v in (1, 2, 3, 4, 5, 6, 7, 100)]
    config.output_fields = ["wall_time"]
    config.outlier_policy = OutlierPolicy.DISCARD
    out = tmp_path / "out"
    run_pipeline(str(summaries_file(rows)), str(out), config)

    lines = (out / "c" / "a.wall_time.hist").read_text().splitlines()
    assert sum(int(line.split()[1]) for line in lines[2:]) == 7


def test_colliding_split_keys_are_reported(tmp_path, summaries_file, config, capsys):
    rows = [
        {"category": "c", "host": "a/b", "wall_time": 1},
        {"category": "c", "host": "a_b", "wall_time": 2},
    ]
    config.output_fields = ["wall_time"]
    run_pipeline(str(summaries_file(rows)), str(tmp_path / "out"), config)

    err = capsys.readouterr().err
    assert '"a/b" and "a_b" both write to "a_b"' in err
