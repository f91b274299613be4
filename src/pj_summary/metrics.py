"""Live computation of cash-flow and receivable metrics."""

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, time

from pj_summary.categories import (
    aggregate_transactions_by_category,
    serialize_category_hierarchy,
)
from pj_summary.dates import coverage_days, ensure_valid_range, is_between_dates
from pj_summary.ledger_groups import get_ledger_group
from pj_summary.models import BankTransaction, CategoryLike, SaleLeg
from pj_summary.partials import (
    DailyNetFlow,
    KpiKey,
    PartialSummaryResult,
    SeriesKey,
    TotalsKey,
)


def compute_transaction_metrics(
    transactions: Sequence[BankTransaction],
    range_start: date | None = None,
    range_end: date | None = None,
    categories: Iterable[CategoryLike] | None = None,
    now: datetime | None = None,
) -> PartialSummaryResult:
    """Cash totals, counts, tickets and the daily net-flow series.

    A missing bound is inferred from the earliest/latest dated transaction.
    Every field of the cash-flow domain is supplied.

    Raises:
        InvalidRangeError: If the resolved range is inverted.
    """
    result = PartialSummaryResult()
    partial = result.partial

    dated = sorted(tx.date for tx in transactions if tx.date is not None)
    if range_start is None and dated:
        range_start = dated[0]
    if range_end is None and dated:
        range_end = dated[-1]

    ensure_valid_range(range_start, range_end)
    partial.from_date = range_start
    partial.to_date = range_end

    if range_start is not None and range_end is not None:
        filtered = [
            tx for tx in transactions if is_between_dates(tx.date, range_start, range_end)
        ]
    else:
        filtered = list(transactions)

    hierarchy = aggregate_transactions_by_category(
        filtered, categories or [], ledger_group_resolver=get_ledger_group
    )
    result.provide_metadata("categoryHierarchy", serialize_category_hierarchy(hierarchy))

    inflows = [tx.amount for tx in filtered if tx.amount > 0]
    outflows = [abs(tx.amount) for tx in filtered if tx.amount < 0]

    total_in = sum(inflows)
    total_out = sum(outflows)
    balance = total_in - total_out
    result.provide_total(TotalsKey.TOTAL_IN, total_in)
    result.provide_total(TotalsKey.TOTAL_OUT, total_out)
    result.provide_total(TotalsKey.BALANCE, balance)

    result.provide_kpi(KpiKey.INFLOW_COUNT, len(inflows))
    result.provide_kpi(KpiKey.OUTFLOW_COUNT, len(outflows))
    result.provide_kpi(KpiKey.LARGEST_IN, max(inflows, default=0))
    result.provide_kpi(KpiKey.LARGEST_OUT, max(outflows, default=0))
    result.provide_kpi(KpiKey.AVERAGE_TICKET_IN, total_in / len(inflows) if inflows else 0)
    result.provide_kpi(
        KpiKey.AVERAGE_TICKET_OUT, total_out / len(outflows) if outflows else 0
    )

    days = coverage_days(range_start, range_end) or 0
    result.provide_kpi(KpiKey.AVERAGE_DAILY_NET_FLOW, balance / days if days > 0 else 0)
    result.provide_kpi(
        KpiKey.CASH_CONVERSION_RATIO, balance / total_in if total_in > 0 else 0
    )

    per_day: dict[date, float] = {}
    for tx in filtered:
        if tx.date is not None:
            per_day[tx.date] = per_day.get(tx.date, 0.0) + tx.amount
    result.provide_series(
        SeriesKey.DAILY_NET_FLOWS,
        [DailyNetFlow(date=day, net=net) for day, net in sorted(per_day.items())],
    )

    result.provide_metadata("transactionCount", len(filtered))
    result.provide_metadata("coverageDays", days)
    result.provide_metadata("generatedAt", (now or datetime.now(UTC)).isoformat())
    return result


def compute_receivable_metrics(
    sale_legs: Iterable[SaleLeg],
    range_start: date | None = None,
    range_end: date | None = None,
    now: datetime | None = None,
) -> PartialSummaryResult:
    """Outstanding and overdue receivables from settlement plans.

    Without a complete range every outstanding parcel counts. A parcel is
    overdue when its due date (00:00 UTC) is before ``now``; parcels without a
    usable due date are never overdue.
    """
    result = PartialSummaryResult()
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    has_range = range_start is not None and range_end is not None

    outstanding = [
        parcel
        for leg in sale_legs
        for parcel in leg.settlement_plan
        if parcel.is_outstanding
        and (not has_range or is_between_dates(parcel.due, range_start, range_end))
    ]
    overdue = [
        parcel
        for parcel in outstanding
        if parcel.due is not None
        and datetime.combine(parcel.due, time.min, tzinfo=UTC) < now
    ]

    result.provide_kpi(KpiKey.RECEIVABLE_AMOUNT, sum(p.expected for p in outstanding))
    result.provide_kpi(KpiKey.RECEIVABLE_COUNT, len(outstanding))
    result.provide_kpi(KpiKey.OVERDUE_RECEIVABLE_AMOUNT, sum(p.expected for p in overdue))
    result.provide_kpi(KpiKey.OVERDUE_RECEIVABLE_COUNT, len(overdue))
    return result
