"""Summary service: answers KPI requests from snapshots, live data, or both."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

import structlog

from pj_summary.dates import coverage_days, ensure_valid_range, format_br, parse_br_date
from pj_summary.metrics import compute_receivable_metrics, compute_transaction_metrics
from pj_summary.models import BankTransaction, CategoryLike, SaleLeg
from pj_summary.partials import (
    DailyNetFlow,
    KpiKey,
    PartialSummaryResult,
    SeriesKey,
    TotalsKey,
    coerce_number,
    combine_partials,
)
from pj_summary.snapshots import build_snapshot_summary, select_snapshot
from pj_summary.storage.base import StorageProvider

logger = structlog.get_logger(__name__)

DateInput = str | date | None


class DataSource(str, Enum):
    """Where the values of a summary came from."""

    LIVE = "live"
    SNAPSHOT = "snapshot"
    SNAPSHOT_LIVE = "snapshot+live"


@dataclass
class SummaryResponse:
    """Finalized summary for one account and period."""

    client_id: str
    bank_account_id: str
    from_date: date | None
    to_date: date | None
    totals: dict[TotalsKey, float]
    kpis: dict[KpiKey, float]
    series: dict[SeriesKey, list[DailyNetFlow]]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def data_source(self) -> DataSource:
        return DataSource(self.metadata["dataSource"])

    def to_dict(self) -> dict[str, Any]:
        """Wire form with camelCase keys and ``DD/MM/YYYY`` dates."""
        return {
            "clientId": self.client_id,
            "bankAccountId": self.bank_account_id,
            "from": format_br(self.from_date) if self.from_date else None,
            "to": format_br(self.to_date) if self.to_date else None,
            "totals": {key.value: value for key, value in self.totals.items()},
            "kpis": {key.value: value for key, value in self.kpis.items()},
            "series": {
                key.value: [entry.to_dict() for entry in entries]
                for key, entries in self.series.items()
            },
            "metadata": dict(self.metadata),
        }


def _parse_bound(value: DateInput) -> date | None:
    if value is None or isinstance(value, date):
        return value
    if not value.strip():
        return None
    return parse_br_date(value)


def _whole(value: float) -> float | int:
    return int(value) if float(value).is_integer() else value


class SummaryService:
    """Computes account summaries over arbitrary periods.

    Args:
        storage: Storage collaborator for raw records and snapshots.
        clock: Returns the current instant; used for overdue receivables and
            ``generatedAt`` stamps.
    """

    def __init__(
        self,
        storage: StorageProvider,
        clock: Callable[[], datetime] | None = None,
    ):
        self._storage = storage
        self._clock = clock or (lambda: datetime.now(UTC))
        self._logger = logger.bind(component="summary_service")

    async def get_summary(
        self,
        org_id: str,
        client_id: str,
        bank_account_id: str,
        period_from: DateInput = None,
        period_to: DateInput = None,
    ) -> SummaryResponse:
        """Summary for an account, served from the best-fit snapshot if any.

        Fields the snapshot lacks are computed live and merged underneath it,
        so cached values win wherever both exist.

        Raises:
            InvalidRangeError: If ``period_from`` is after ``period_to``.
            InvalidDateError: If a bound is not a valid ``DD/MM/YYYY`` date.
        """
        start = _parse_bound(period_from)
        end = _parse_bound(period_to)
        ensure_valid_range(start, end)

        snapshots = await self._storage.get_bank_summary_snapshots(
            org_id, client_id, bank_account_id
        )
        selected = select_snapshot(snapshots, coverage_days(start, end))

        if selected is None:
            loaded = await self._load(
                org_id, client_id, bank_account_id, transactions=True, sale_legs=True
            )
            transaction_partial = compute_transaction_metrics(
                loaded["transactions"],
                start,
                end,
                loaded["categories"],
                now=self._clock(),
            )
            receivable_partial = compute_receivable_metrics(
                loaded["sale_legs"],
                transaction_partial.partial.from_date or start,
                transaction_partial.partial.to_date or end,
                now=self._clock(),
            )
            combined = combine_partials([transaction_partial, receivable_partial])
            response = self._finalize(
                client_id,
                bank_account_id,
                combined,
                self._resolve_coverage_days(combined, start, end, None),
                DataSource.LIVE,
            )
            self._log_served(response)
            return response

        decomposed = build_snapshot_summary(selected.snapshot, start, end)
        snapshot_partial = decomposed.result
        anchor_start = snapshot_partial.partial.from_date or start
        anchor_end = snapshot_partial.partial.to_date or end

        loaded = await self._load(
            org_id,
            client_id,
            bank_account_id,
            transactions=decomposed.needs_transactions,
            sale_legs=decomposed.needs_sale_legs,
        )

        # Live partials first: the snapshot, pushed last, wins on overlap.
        partials: list[PartialSummaryResult] = []
        if decomposed.needs_transactions:
            partials.append(
                compute_transaction_metrics(
                    loaded["transactions"],
                    anchor_start,
                    anchor_end,
                    loaded["categories"],
                    now=self._clock(),
                )
            )
        if decomposed.needs_sale_legs:
            partials.append(
                compute_receivable_metrics(
                    loaded["sale_legs"], anchor_start, anchor_end, now=self._clock()
                )
            )
        gap_filled = bool(partials)
        partials.append(snapshot_partial)

        combined = combine_partials(partials)
        response = self._finalize(
            client_id,
            bank_account_id,
            combined,
            self._resolve_coverage_days(combined, start, end, selected.window_days),
            DataSource.SNAPSHOT_LIVE if gap_filled else DataSource.SNAPSHOT,
            snapshot_window_days=selected.window_days,
        )
        self._log_served(response)
        return response

    def compute_fresh_summary_from_data(
        self,
        client_id: str,
        bank_account_id: str,
        transactions: Sequence[BankTransaction],
        sale_legs: Sequence[SaleLeg],
        period_from: DateInput = None,
        period_to: DateInput = None,
        window_days: int | None = None,
        categories: Sequence[CategoryLike] | None = None,
    ) -> SummaryResponse:
        """Live summary over records the caller already loaded.

        Raises:
            InvalidRangeError: If ``period_from`` is after ``period_to``.
        """
        start = _parse_bound(period_from)
        end = _parse_bound(period_to)
        ensure_valid_range(start, end)

        transaction_partial = compute_transaction_metrics(
            transactions, start, end, categories, now=self._clock()
        )
        receivable_partial = compute_receivable_metrics(
            sale_legs, start, end, now=self._clock()
        )
        combined = combine_partials([transaction_partial, receivable_partial])

        return self._finalize(
            client_id,
            bank_account_id,
            combined,
            self._resolve_coverage_days(combined, start, end, window_days),
            DataSource.LIVE,
            snapshot_window_days=window_days,
        )

    async def _load(
        self,
        org_id: str,
        client_id: str,
        bank_account_id: str,
        *,
        transactions: bool,
        sale_legs: bool,
    ) -> dict[str, Any]:
        """Load the raw record sets a request needs, concurrently."""
        loads: dict[str, Awaitable[Any]] = {}
        if transactions:
            loads["transactions"] = self._storage.get_bank_transactions(
                client_id, bank_account_id
            )
            loads["categories"] = self._load_categories(org_id, client_id)
        if sale_legs:
            loads["sale_legs"] = self._storage.get_sale_legs(client_id)

        results = await asyncio.gather(*loads.values())
        return dict(zip(loads, results))

    async def _load_categories(self, org_id: str, client_id: str) -> list[CategoryLike]:
        if not org_id:
            return []
        return await self._storage.get_pj_client_categories(org_id, client_id)

    @staticmethod
    def _resolve_coverage_days(
        combined: PartialSummaryResult,
        start: date | None,
        end: date | None,
        fallback_window_days: int | None,
    ) -> float:
        from_metadata = coerce_number(combined.partial.metadata.get("coverageDays"))
        if from_metadata is not None:
            return from_metadata
        computed = coverage_days(
            combined.partial.from_date or start, combined.partial.to_date or end
        )
        if computed is not None:
            return computed
        return fallback_window_days or 0

    def _finalize(
        self,
        client_id: str,
        bank_account_id: str,
        combined: PartialSummaryResult,
        coverage: float,
        data_source: DataSource,
        snapshot_window_days: int | None = None,
    ) -> SummaryResponse:
        """Fill gaps with defaults and derived values.

        ``balance`` is always ``totalIn - totalOut``. The other derived KPIs
        are recomputed only when no partial supplied them.
        """
        partial, provided = combined.partial, combined.provided

        total_in = partial.totals.get(TotalsKey.TOTAL_IN, 0.0)
        total_out = partial.totals.get(TotalsKey.TOTAL_OUT, 0.0)
        balance = total_in - total_out
        totals = {
            TotalsKey.TOTAL_IN: total_in,
            TotalsKey.TOTAL_OUT: total_out,
            TotalsKey.BALANCE: balance,
        }

        kpis = {key: partial.kpis.get(key, 0.0) for key in KpiKey}
        inflow_count = kpis[KpiKey.INFLOW_COUNT]
        outflow_count = kpis[KpiKey.OUTFLOW_COUNT]

        if KpiKey.AVERAGE_TICKET_IN not in provided.kpis and inflow_count > 0:
            kpis[KpiKey.AVERAGE_TICKET_IN] = total_in / inflow_count
        if KpiKey.AVERAGE_TICKET_OUT not in provided.kpis and outflow_count > 0:
            kpis[KpiKey.AVERAGE_TICKET_OUT] = total_out / outflow_count
        if KpiKey.AVERAGE_DAILY_NET_FLOW not in provided.kpis:
            kpis[KpiKey.AVERAGE_DAILY_NET_FLOW] = balance / coverage if coverage > 0 else 0
        if KpiKey.CASH_CONVERSION_RATIO not in provided.kpis:
            kpis[KpiKey.CASH_CONVERSION_RATIO] = balance / total_in if total_in > 0 else 0
        if KpiKey.PROJECTED_BALANCE not in provided.kpis:
            kpis[KpiKey.PROJECTED_BALANCE] = balance + kpis[KpiKey.RECEIVABLE_AMOUNT]

        series = {
            SeriesKey.DAILY_NET_FLOWS: list(partial.series.get(SeriesKey.DAILY_NET_FLOWS, []))
        }

        metadata = dict(partial.metadata)
        metadata["transactionCount"] = _whole(
            coerce_number(metadata.get("transactionCount")) or 0
        )
        metadata["coverageDays"] = _whole(coverage)
        generated_at = metadata.get("generatedAt")
        if not isinstance(generated_at, str) or not generated_at:
            metadata["generatedAt"] = self._clock().isoformat()
        metadata["dataSource"] = data_source.value
        if snapshot_window_days:
            metadata["snapshotWindowDays"] = snapshot_window_days

        return SummaryResponse(
            client_id=client_id,
            bank_account_id=bank_account_id,
            from_date=partial.from_date,
            to_date=partial.to_date,
            totals=totals,
            kpis=kpis,
            series=series,
            metadata=metadata,
        )

    def _log_served(self, response: SummaryResponse) -> None:
        self._logger.debug(
            "summary_served",
            client_id=response.client_id,
            bank_account_id=response.bank_account_id,
            data_source=response.data_source.value,
            coverage_days=response.metadata["coverageDays"],
        )
