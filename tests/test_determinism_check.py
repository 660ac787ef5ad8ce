"""Tests for the result-table determinism check."""

import pytest

from clt_skew.analysis import analyze
from clt_skew.determinism_check import compare_tables, index_rows, main
from clt_skew.populations import Exponential, Normal
from clt_skew.repro_utils import write_results_csv
from clt_skew.statistics import MEAN


@pytest.fixture
def rows():
    return analyze(MEAN, 200, [2, 5], None, [Normal(), Exponential()], progress=False).to_dicts()


def test_identical_tables(rows):
    assert compare_tables(rows, [dict(r) for r in rows]) == []


def test_value_difference(rows):
    other = [dict(r) for r in rows]
    other[1]["upper_tail"] += 0.001
    diffs = compare_tables(rows, other)
    assert len(diffs) == 1
    assert diffs[0].startswith("DIFF")
    assert "upper_tail" in diffs[0]
    assert compare_tables(rows, other, rtol=0.5) == []


def test_missing_row_and_order(rows):
    other = list(reversed(rows[1:]))
    diffs = compare_tables(rows, other)
    assert any(d.startswith("MISSING") for d in diffs)
    assert any(d.startswith("ORDER table b") for d in diffs)


def test_duplicate_keys_rejected(rows):
    with pytest.raises(ValueError):
        index_rows(rows + rows[:1])


def test_main_exit_codes(tmp_path):
    table = analyze(MEAN, 100, [3], None, [Normal()], progress=False)
    a = str(tmp_path / "a.csv")
    b = str(tmp_path / "b.csv")
    write_results_csv(a, table)
    write_results_csv(b, table)
    with pytest.raises(SystemExit) as info:
        main(["--table-a", a, "--table-b", b])
    assert info.value.code == 0

    shifted = analyze(MEAN, 100, [3], None, [Normal()], seed=1, progress=False)
    write_results_csv(b, shifted)
    with pytest.raises(SystemExit) as info:
        main(["--table-a", a, "--table-b", b])
    assert info.value.code == 2
