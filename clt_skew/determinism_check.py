#!/usr/bin/env python3
"""Compare two result tables row by row, keyed on (distribution, sample size)."""
from __future__ import annotations

import argparse
import math
from typing import Dict, List, Optional, Tuple

from .analysis import RESULT_FIELDS
from .repro_utils import read_results_csv

Key = Tuple[str, int]


def index_rows(rows: List[Dict]) -> Dict[Key, Dict]:
    out: Dict[Key, Dict] = {}
    for row in rows:
        key = (row["distribution"], row["sample_size"])
        if key in out:
            raise ValueError(f"duplicate row for {key}")
        out[key] = row
    return out


def compare_tables(rows_a: List[Dict], rows_b: List[Dict], rtol: float = 0.0) -> List[str]:
    """Human-readable differences; empty when the tables agree (within ``rtol``)."""
    a = index_rows(rows_a)
    b = index_rows(rows_b)
    diffs: List[str] = []
    for key in sorted(set(a) | set(b)):
        ra = a.get(key)
        rb = b.get(key)
        if ra is None or rb is None:
            diffs.append(f"MISSING {key}: only in {'b' if ra is None else 'a'}")
            continue
        for name in RESULT_FIELDS:
            va, vb = ra[name], rb[name]
            if isinstance(va, float):
                same = (math.isnan(va) and math.isnan(vb)) or math.isclose(va, vb, rel_tol=rtol, abs_tol=0.0)
            else:
                same = va == vb
            if not same:
                diffs.append(f"DIFF {key} {name}: {va!r} != {vb!r}")
    order_a = [(r["distribution"], r["sample_size"]) for r in rows_a]
    if order_a != sorted(order_a):
        diffs.append("ORDER table a is not sorted by (distribution, sample_size)")
    order_b = [(r["distribution"], r["sample_size"]) for r in rows_b]
    if order_b != sorted(order_b):
        diffs.append("ORDER table b is not sorted by (distribution, sample_size)")
    return diffs


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Determinism check: compare two result tables")
    parser.add_argument("--table-a", required=True, help="first results.csv")
    parser.add_argument("--table-b", required=True, help="second results.csv")
    parser.add_argument("--rtol", type=float, default=0.0, help="relative tolerance for numeric fields")
    args = parser.parse_args(argv)

    diffs = compare_tables(read_results_csv(args.table_a), read_results_csv(args.table_b), args.rtol)
    for line in diffs:
        print(line)
    if not diffs:
        print("OK: tables match")
        raise SystemExit(0)
    raise SystemExit(2)


if __name__ == "__main__":
    main()
