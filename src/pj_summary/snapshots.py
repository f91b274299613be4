"""Reading and writing persisted summary snapshots.

Snapshots exist for three fixed windows (30, 90 and 365 days) per account.
The read path picks the window closest to the requested period and turns it
into a partial summary; the write path builds the metadata stored with each
refreshed snapshot.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from pj_summary.dates import coerce_date, format_br
from pj_summary.models import BankSummarySnapshot
from pj_summary.partials import (
    DailyNetFlow,
    KpiKey,
    PartialSummaryResult,
    SeriesKey,
    TotalsKey,
    coerce_number,
)

SUPPORTED_WINDOWS: tuple[int, ...] = (30, 90, 365)
SNAPSHOT_METADATA_VERSION = 1

_WINDOW_DIGITS = re.compile(r"(\d{1,4})")


@dataclass(frozen=True)
class SnapshotMetadata:
    """Typed view of the metadata stored with a snapshot.

    Rows written before the metadata was versioned keep the period and the
    series under several layouts; they are all read here, once, and unknown
    keys are ignored.
    """

    version: int = 0
    from_date: date | None = None
    to_date: date | None = None
    coverage_days: float | None = None
    transaction_count: float | None = None
    daily_net_flows: list[DailyNetFlow] | None = None
    category_hierarchy: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, metadata: Any) -> "SnapshotMetadata":
        if not isinstance(metadata, dict):
            return cls()

        nested_range = metadata.get("range")
        if not isinstance(nested_range, dict):
            nested_range = {}

        def first_date(*values: Any) -> date | None:
            for value in values:
                parsed = coerce_date(value)
                if parsed is not None:
                    return parsed
            return None

        series = metadata.get("series")
        flows = None
        if isinstance(series, dict):
            flows = _normalize_flows(series.get("dailyNetFlows"))
        if flows is None:
            flows = _normalize_flows(metadata.get("dailyNetFlows"))

        hierarchy = metadata.get("categoryHierarchy")
        return cls(
            version=int(coerce_number(metadata.get("version")) or 0),
            from_date=first_date(
                metadata.get("from"), nested_range.get("from"), metadata.get("start")
            ),
            to_date=first_date(
                metadata.get("to"), nested_range.get("to"), metadata.get("end")
            ),
            coverage_days=coerce_number(metadata.get("coverageDays")),
            transaction_count=coerce_number(metadata.get("transactionCount")),
            daily_net_flows=flows,
            category_hierarchy=hierarchy if isinstance(hierarchy, dict) else None,
        )


def _normalize_flows(entries: Any) -> list[DailyNetFlow] | None:
    if not isinstance(entries, list):
        return None
    flows = (DailyNetFlow.from_dict(entry) for entry in entries)
    return [flow for flow in flows if flow is not None]


def parse_window_days(snapshot: BankSummarySnapshot) -> int | None:
    """Window length in days, preferring ``metadata.coverageDays``."""
    from_metadata = coerce_number(snapshot.metadata.get("coverageDays"))
    if from_metadata is not None and from_metadata > 0:
        return int(from_metadata)
    match = _WINDOW_DIGITS.search(snapshot.window or "")
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class SelectedSnapshot:
    snapshot: BankSummarySnapshot
    window_days: int


def select_snapshot(
    snapshots: Sequence[BankSummarySnapshot], target_coverage: int | None = None
) -> SelectedSnapshot | None:
    """Pick the snapshot whose window best fits ``target_coverage`` days.

    Supported windows are preferred over odd ones. With a target the closest
    window wins (ties go to the smaller window); without one the smallest
    window is used.
    """
    candidates = []
    for snapshot in snapshots:
        window_days = parse_window_days(snapshot)
        if window_days and window_days > 0:
            candidates.append(SelectedSnapshot(snapshot=snapshot, window_days=window_days))
    if not candidates:
        return None

    supported = [c for c in candidates if c.window_days in SUPPORTED_WINDOWS]
    pool = supported or candidates

    if target_coverage and target_coverage > 0:
        return min(
            pool, key=lambda c: (abs(c.window_days - target_coverage), c.window_days)
        )
    return min(pool, key=lambda c: c.window_days)


@dataclass
class SnapshotSummaryResult:
    """Partial summary read from a snapshot, plus which domains are missing."""

    result: PartialSummaryResult
    needs_transactions: bool
    needs_sale_legs: bool
    window_days: int | None


def build_snapshot_summary(
    snapshot: BankSummarySnapshot,
    range_start: date | None = None,
    range_end: date | None = None,
) -> SnapshotSummaryResult:
    """Decompose a snapshot into a partial summary.

    Only values that coerce to numbers are copied and marked provided. The
    caller's range, when given, takes precedence over the stored one.
    """
    result = PartialSummaryResult()
    metadata = SnapshotMetadata.from_dict(snapshot.metadata)

    for key in TotalsKey:
        value = coerce_number(snapshot.totals.get(key.value))
        if value is not None:
            result.provide_total(key, value)
    for key in KpiKey:
        value = coerce_number(snapshot.kpis.get(key.value))
        if value is not None:
            result.provide_kpi(key, value)

    if metadata.daily_net_flows is not None:
        result.provide_series(SeriesKey.DAILY_NET_FLOWS, metadata.daily_net_flows)

    result.partial.from_date = range_start or metadata.from_date
    result.partial.to_date = range_end or metadata.to_date

    if metadata.transaction_count is not None:
        result.provide_metadata("transactionCount", metadata.transaction_count)
    if metadata.coverage_days is not None:
        result.provide_metadata("coverageDays", metadata.coverage_days)
    if metadata.category_hierarchy is not None:
        result.provide_metadata("categoryHierarchy", metadata.category_hierarchy)
    result.provide_metadata("generatedAt", snapshot.refreshed_at)
    result.provide_metadata("snapshotWindow", snapshot.window)

    return SnapshotSummaryResult(
        result=result,
        needs_transactions=result.missing_transaction_fields(),
        needs_sale_legs=result.missing_receivable_fields(),
        window_days=parse_window_days(snapshot),
    )


def build_snapshot_metadata(
    summary: dict[str, Any],
    window_days: int,
    refreshed_at: str,
    default_range: tuple[date, date],
) -> dict[str, Any]:
    """Metadata stored with a refreshed snapshot.

    ``summary`` is the wire form of a freshly computed summary response.
    """
    base = dict(summary.get("metadata") or {})
    period_from = summary.get("from") or format_br(default_range[0])
    period_to = summary.get("to") or format_br(default_range[1])
    transaction_count = coerce_number(base.get("transactionCount"))
    coverage = base.get("coverageDays")

    return {
        **base,
        "version": SNAPSHOT_METADATA_VERSION,
        "transactionCount": transaction_count if transaction_count is not None else 0,
        "coverageDays": coverage if coverage is not None else window_days,
        "generatedAt": refreshed_at,
        "snapshotWindowDays": window_days,
        "dataSource": "snapshot",
        "from": period_from,
        "to": period_to,
        "range": {"from": period_from, "to": period_to},
        "series": {
            "dailyNetFlows": summary.get("series", {}).get("dailyNetFlows", []),
        },
    }
