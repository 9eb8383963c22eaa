"""
Policy CSV files (the engine's file-adapter format):

    p, alice, data1, read
    g, alice, admin
    # comment lines are skipped

Rows are ragged; trailing empty fields are dropped on import.
"""
from __future__ import annotations

import csv
from typing import Iterable, List

import pandas as pd

from ..models import CasbinRule


def _max_fields(path: str) -> int:
    with open(path, "r", encoding="utf-8", newline="") as f:
        return max((len(row) for row in csv.reader(f, skipinitialspace=True) if row), default=0)


def read_policy_csv(path: str) -> List[CasbinRule]:
    width = _max_fields(path)
    if width == 0:
        return []
    df = pd.read_csv(
        path,
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
        skip_blank_lines=True,
    )
    out: List[CasbinRule] = []
    for row in df.itertuples(index=False):
        values = ["" if pd.isna(v) else str(v).strip() for v in row]
        if not values[0] or values[0].startswith("#"):
            continue
        while values and values[-1] == "":
            values.pop()
        out.append(CasbinRule(ptype=values[0], rule=values[1:]))
    return out


def write_policy_csv(rules: Iterable[CasbinRule], path: str) -> int:
    n = 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        w = csv.writer(f, lineterminator="\n")
        for r in rules:
            w.writerow([r.ptype, *r.rule])
            n += 1
    return n


def policies_frame(rules: Iterable[CasbinRule]) -> pd.DataFrame:
    rows = [{"ptype": r.ptype, **{f"v{i}": v for i, v in enumerate(r.rule)}} for r in rules]
    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=["ptype"])
    fields = sorted((c for c in df.columns if c != "ptype"), key=lambda c: int(c[1:]))
    return df[["ptype", *fields]].fillna("")


def summarize(rules: Iterable[CasbinRule]) -> pd.DataFrame:
    """Rule count and widest tuple per ptype."""
    rules = list(rules)
    if not rules:
        return pd.DataFrame(columns=["ptype", "count", "max_fields"])
    df = pd.DataFrame({"ptype": [r.ptype for r in rules], "fields": [len(r.rule) for r in rules]})
    out = df.groupby("ptype").agg(count=("fields", "size"), max_fields=("fields", "max")).reset_index()
    return out.sort_values("ptype").reset_index(drop=True)
