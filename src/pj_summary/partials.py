"""Partial summaries with field-level provenance.

A computation step (live metrics, a cached snapshot) returns a
:class:`PartialSummaryResult`: the values it produced plus the set of fields
it actually supplied. Only supplied fields take part in a merge, so a field
left at a default never overrides a value from another source.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from pj_summary.dates import coerce_date, format_br


class TotalsKey(str, Enum):
    TOTAL_IN = "totalIn"
    TOTAL_OUT = "totalOut"
    BALANCE = "balance"


class KpiKey(str, Enum):
    INFLOW_COUNT = "inflowCount"
    OUTFLOW_COUNT = "outflowCount"
    AVERAGE_TICKET_IN = "averageTicketIn"
    AVERAGE_TICKET_OUT = "averageTicketOut"
    LARGEST_IN = "largestIn"
    LARGEST_OUT = "largestOut"
    AVERAGE_DAILY_NET_FLOW = "averageDailyNetFlow"
    CASH_CONVERSION_RATIO = "cashConversionRatio"
    RECEIVABLE_AMOUNT = "receivableAmount"
    RECEIVABLE_COUNT = "receivableCount"
    OVERDUE_RECEIVABLE_AMOUNT = "overdueReceivableAmount"
    OVERDUE_RECEIVABLE_COUNT = "overdueReceivableCount"
    PROJECTED_BALANCE = "projectedBalance"


class SeriesKey(str, Enum):
    DAILY_NET_FLOWS = "dailyNetFlows"


TRANSACTION_KPIS: frozenset[KpiKey] = frozenset(
    {
        KpiKey.INFLOW_COUNT,
        KpiKey.OUTFLOW_COUNT,
        KpiKey.LARGEST_IN,
        KpiKey.LARGEST_OUT,
    }
)

RECEIVABLE_KPIS: frozenset[KpiKey] = frozenset(
    {
        KpiKey.RECEIVABLE_AMOUNT,
        KpiKey.RECEIVABLE_COUNT,
        KpiKey.OVERDUE_RECEIVABLE_AMOUNT,
        KpiKey.OVERDUE_RECEIVABLE_COUNT,
    }
)


def coerce_number(value: Any) -> float | None:
    """Finite number from a stored value, ``None`` if it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class DailyNetFlow:
    """Net cash movement of a single day."""

    date: date
    net: float

    @classmethod
    def from_dict(cls, entry: Any) -> "DailyNetFlow | None":
        """Normalize a stored series entry; ``None`` if it is malformed."""
        if not isinstance(entry, dict):
            return None
        day = coerce_date(_first_present(entry, "date", "data", "day"))
        net = coerce_number(_first_present(entry, "net", "value", "amount"))
        if day is None or net is None:
            return None
        return cls(date=day, net=net)

    def to_dict(self) -> dict[str, Any]:
        return {"date": format_br(self.date), "net": self.net}


def _first_present(entry: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


@dataclass
class PartialSummary:
    from_date: date | None = None
    to_date: date | None = None
    totals: dict[TotalsKey, float] = field(default_factory=dict)
    kpis: dict[KpiKey, float] = field(default_factory=dict)
    series: dict[SeriesKey, list[DailyNetFlow]] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProvidedPaths:
    totals: set[TotalsKey] = field(default_factory=set)
    kpis: set[KpiKey] = field(default_factory=set)
    series: set[SeriesKey] = field(default_factory=set)
    metadata: set[str] = field(default_factory=set)


@dataclass
class PartialSummaryResult:
    """A partial summary together with the fields it supplied."""

    partial: PartialSummary = field(default_factory=PartialSummary)
    provided: ProvidedPaths = field(default_factory=ProvidedPaths)

    def provide_total(self, key: TotalsKey, value: float) -> None:
        self.partial.totals[key] = value
        self.provided.totals.add(key)

    def provide_kpi(self, key: KpiKey, value: float) -> None:
        self.partial.kpis[key] = value
        self.provided.kpis.add(key)

    def provide_series(self, key: SeriesKey, entries: list[DailyNetFlow]) -> None:
        self.partial.series[key] = entries
        self.provided.series.add(key)

    def provide_metadata(self, key: str, value: Any) -> None:
        self.partial.metadata[key] = value
        self.provided.metadata.add(key)

    def missing_transaction_fields(self) -> bool:
        """True when any cash-flow field must still come from transactions."""
        provided = self.provided
        return (
            not {TotalsKey.TOTAL_IN, TotalsKey.TOTAL_OUT} <= provided.totals
            or not TRANSACTION_KPIS <= provided.kpis
            or SeriesKey.DAILY_NET_FLOWS not in provided.series
            or "transactionCount" not in provided.metadata
        )

    def missing_receivable_fields(self) -> bool:
        """True when any receivable KPI must still come from sale legs."""
        return not RECEIVABLE_KPIS <= self.provided.kpis


def combine_partials(entries: list[PartialSummaryResult]) -> PartialSummaryResult:
    """Merge partials in order; later entries win for the fields they supplied.

    The order of ``entries`` is the priority: the last entry that supplied a
    field owns it. ``from_date``/``to_date`` are taken from the last entry
    that defines them.
    """
    combined = PartialSummaryResult()
    target = combined.partial

    for entry in entries:
        partial, provided = entry.partial, entry.provided

        if partial.from_date is not None:
            target.from_date = partial.from_date
        if partial.to_date is not None:
            target.to_date = partial.to_date

        for key, value in partial.totals.items():
            if key in provided.totals:
                combined.provide_total(key, value)
        for key, value in partial.kpis.items():
            if key in provided.kpis:
                combined.provide_kpi(key, value)
        for key, flows in partial.series.items():
            if key in provided.series:
                combined.provide_series(key, flows)
        for key, value in partial.metadata.items():
            if key in provided.metadata and value is not None:
                combined.provide_metadata(key, value)

    return combined
