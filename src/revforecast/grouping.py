"""Hierarchical monthly grid: group -> client -> project.

Rows come out in display order. Header rows carry the element-wise sum of
their descendant project rows; the grand-total row closes the view.
"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from .allocation import allocate_to_year
from .metrics import compute_tcv, compute_weighted_total
from .types import (
    DEFAULT_START_YEAR,
    FORECAST_TYPES,
    GROUP_BY_MODES,
    MONTH_KEYS,
    SEGMENT_LABELS,
    SEGMENTS,
    TYPE_LABELS,
    ForecastProject,
    GroupRow,
    MonthlyValues,
    add_monthly,
    empty_monthly,
    sum_monthly,
)


@dataclass
class _Leaf:
    project: ForecastProject
    monthly: MonthlyValues
    year_total: float
    tcv: float
    weighted_total: float


@dataclass
class _Accumulator:
    monthly: MonthlyValues
    tcv: float = 0.0
    weighted_total: float = 0.0
    count: int = 0

    def add(self, leaf: _Leaf) -> None:
        add_monthly(self.monthly, leaf.monthly)
        self.tcv += leaf.tcv
        self.weighted_total += leaf.weighted_total
        self.count += 1


def _new_acc() -> _Accumulator:
    return _Accumulator(monthly=empty_monthly())


def _scoped_leaves(
    projects: list[ForecastProject], target_year: int, filter_type: str | None
) -> list[_Leaf]:
    leaves: list[_Leaf] = []
    for p in projects:
        if filter_type and filter_type != "all" and p.type != filter_type:
            continue
        monthly = allocate_to_year(p, target_year)
        if not any(monthly[k] != 0 for k in MONTH_KEYS):
            continue
        leaves.append(
            _Leaf(
                project=p,
                monthly=monthly,
                year_total=sum_monthly(monthly),
                tcv=compute_tcv(p),
                weighted_total=compute_weighted_total(p),
            )
        )
    return leaves


def _project_row(leaf: _Leaf, row_id: str, label: str, depth: int) -> GroupRow:
    p = leaf.project
    return GroupRow(
        id=row_id,
        kind="project",
        label=label,
        depth=depth,
        monthly=dict(leaf.monthly),
        year_total=leaf.year_total,
        tcv=leaf.tcv,
        weighted_total=leaf.weighted_total,
        client=p.client_key,
        project_id=p.id,
        project_type=p.type,
        probability=p.probability,
    )


def _header_row(row_id: str, kind: str, label: str, depth: int, acc: _Accumulator, client: str | None = None) -> GroupRow:
    return GroupRow(
        id=row_id,
        kind=kind,
        label=label,
        depth=depth,
        monthly=dict(acc.monthly),
        year_total=sum_monthly(acc.monthly),
        tcv=acc.tcv,
        weighted_total=acc.weighted_total,
        client=client,
        child_count=acc.count,
    )


def _group_key(p: ForecastProject, group_by: str) -> str:
    return p.segment if group_by == "segment" else p.type


def _group_order(group_by: str) -> tuple[str, ...]:
    return SEGMENTS if group_by == "segment" else FORECAST_TYPES


def _group_label(key: str, group_by: str) -> str:
    labels = SEGMENT_LABELS if group_by == "segment" else TYPE_LABELS
    return labels.get(key, key)


def build_grouped_view(
    projects: list[ForecastProject],
    group_by: str = "segment",
    target_year: int | None = None,
    filter_type: str | None = None,
) -> list[GroupRow]:
    """Fold ``projects`` into ordered grid rows for ``target_year``.

    Only projects with a non-zero allocation in the year are included.
    ``filter_type`` keeps a single project type (``None`` or ``"all"``
    keeps every type).

    ``flat`` emits one depth-1 row per project by descending year total.
    ``segment`` and ``type`` emit a depth-0 header per group, then client
    buckets keyed on ``parent_client or client`` by descending year total:
    a bucket with several projects gets a depth-1 client header followed by
    depth-2 project rows, a single-project bucket is one depth-1 row
    labelled with its client. Ties keep input order.

    Row ids are derived from group, client and project ids, so the same input
    always yields the same ids.
    """
    if group_by not in GROUP_BY_MODES:
        raise ValueError(f"Unknown group_by '{group_by}'. Known: {list(GROUP_BY_MODES)}")
    if target_year is None:
        target_year = DEFAULT_START_YEAR

    leaves = _scoped_leaves(projects, target_year, filter_type)
    rows: list[GroupRow] = []
    grand = _new_acc()

    if group_by == "flat":
        for leaf in sorted(leaves, key=lambda lf: -lf.year_total):
            p = leaf.project
            rows.append(_project_row(leaf, f"project:{p.id}", f"{p.name} ({p.client_key})", depth=1))
            grand.add(leaf)
    else:
        groups: dict[str, list[_Leaf]] = {}
        for leaf in leaves:
            groups.setdefault(_group_key(leaf.project, group_by), []).append(leaf)
        ordered = [k for k in _group_order(group_by) if k in groups]
        ordered += [k for k in groups if k not in ordered]

        for group_key in ordered:
            by_client: dict[str, list[_Leaf]] = {}
            for leaf in groups[group_key]:
                by_client.setdefault(leaf.project.client_key, []).append(leaf)
            client_totals = {ck: sum(lf.year_total for lf in members) for ck, members in by_client.items()}
            sorted_clients = sorted(by_client, key=lambda ck: -client_totals[ck])

            group_acc = _new_acc()
            header_idx = len(rows)
            rows.append(_header_row(f"group:{group_key}", "group-header", _group_label(group_key, group_by), 0, group_acc))

            for client_key in sorted_clients:
                members = by_client[client_key]
                if len(members) > 1:
                    client_acc = _new_acc()
                    client_idx = len(rows)
                    rows.append(_header_row(f"client:{group_key}:{client_key}", "client-header", client_key, 1, client_acc))
                    for leaf in members:
                        rows.append(_project_row(leaf, f"project:{leaf.project.id}", leaf.project.name, depth=2))
                        client_acc.add(leaf)
                        group_acc.add(leaf)
                        grand.add(leaf)
                    rows[client_idx] = _header_row(
                        f"client:{group_key}:{client_key}", "client-header", client_key, 1, client_acc, client=client_key
                    )
                else:
                    leaf = members[0]
                    rows.append(
                        _project_row(leaf, f"project:{leaf.project.id}", f"{leaf.project.name} ({client_key})", depth=1)
                    )
                    group_acc.add(leaf)
                    grand.add(leaf)

            rows[header_idx] = _header_row(
                f"group:{group_key}", "group-header", _group_label(group_key, group_by), 0, group_acc
            )

    rows.append(_header_row("total", "grand-total", "TOTAL", 0, grand))
    return rows


def grouped_view_frame(rows: list[GroupRow]) -> pd.DataFrame:
    """Tabular rendering of grid rows: one line per row, months as columns."""
    records = []
    for r in rows:
        rec = {
            "Id": r.id,
            "Kind": r.kind,
            "Label": ("  " * r.depth) + r.label,
            "Depth": r.depth,
            "Prob": r.probability,
            "Total": r.year_total,
        }
        for k in MONTH_KEYS:
            rec[k] = r.monthly[k]
        rec["TCV"] = r.tcv
        rec["Weighted"] = r.weighted_total
        records.append(rec)
    columns = ["Id", "Kind", "Label", "Depth", "Prob", "Total", *MONTH_KEYS, "TCV", "Weighted"]
    return pd.DataFrame(records, columns=columns)
