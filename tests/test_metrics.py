"""Tests for live transaction and receivable metrics."""

from datetime import UTC, date, datetime

import pytest

from conftest import make_sale_leg, make_tx
from pj_summary.errors import InvalidRangeError
from pj_summary.metrics import compute_receivable_metrics, compute_transaction_metrics
from pj_summary.models import SettlementParcel
from pj_summary.partials import (
    RECEIVABLE_KPIS,
    DailyNetFlow,
    KpiKey,
    SeriesKey,
    TotalsKey,
)

JAN_1 = date(2024, 1, 1)
JAN_31 = date(2024, 1, 31)


class TestTransactionMetrics:
    """Tests for compute_transaction_metrics."""

    def test_january_scenario(self, january_transactions, fixed_now):
        result = compute_transaction_metrics(
            january_transactions, JAN_1, JAN_31, now=fixed_now
        )
        partial = result.partial

        assert partial.totals == {
            TotalsKey.TOTAL_IN: 1500,
            TotalsKey.TOTAL_OUT: 200,
            TotalsKey.BALANCE: 1300,
        }
        assert partial.kpis[KpiKey.INFLOW_COUNT] == 2
        assert partial.kpis[KpiKey.OUTFLOW_COUNT] == 1
        assert partial.kpis[KpiKey.LARGEST_IN] == 1000
        assert partial.kpis[KpiKey.LARGEST_OUT] == 200
        assert partial.kpis[KpiKey.AVERAGE_TICKET_IN] == 750
        assert partial.kpis[KpiKey.AVERAGE_TICKET_OUT] == 200
        assert partial.kpis[KpiKey.AVERAGE_DAILY_NET_FLOW] == pytest.approx(1300 / 31)
        assert partial.kpis[KpiKey.CASH_CONVERSION_RATIO] == pytest.approx(1300 / 1500)
        assert partial.series[SeriesKey.DAILY_NET_FLOWS] == [
            DailyNetFlow(date(2024, 1, 5), 1000),
            DailyNetFlow(date(2024, 1, 10), -200),
            DailyNetFlow(date(2024, 1, 15), 500),
        ]
        assert partial.metadata["transactionCount"] == 3
        assert partial.metadata["coverageDays"] == 31
        assert partial.metadata["generatedAt"] == fixed_now.isoformat()
        assert not result.missing_transaction_fields()

    def test_series_sorted_chronologically_across_months(self):
        """Test that 02/02 comes after 15/01 (not string order)."""
        transactions = [
            make_tx(10, date(2024, 2, 2)),
            make_tx(20, date(2024, 1, 15)),
            make_tx(5, date(2024, 1, 15), bank_tx_id="same-day"),
        ]

        result = compute_transaction_metrics(transactions)

        assert result.partial.series[SeriesKey.DAILY_NET_FLOWS] == [
            DailyNetFlow(date(2024, 1, 15), 25),
            DailyNetFlow(date(2024, 2, 2), 10),
        ]

    def test_range_inferred_from_transactions(self, january_transactions):
        result = compute_transaction_metrics(january_transactions)

        assert result.partial.from_date == date(2024, 1, 5)
        assert result.partial.to_date == date(2024, 1, 15)
        assert result.partial.metadata["coverageDays"] == 11

    def test_filters_outside_range(self, january_transactions):
        result = compute_transaction_metrics(
            january_transactions, date(2024, 1, 6), date(2024, 1, 15)
        )

        assert result.partial.totals[TotalsKey.TOTAL_IN] == 500
        assert result.partial.metadata["transactionCount"] == 2

    def test_undated_transactions_excluded_from_range(self):
        transactions = [make_tx(100, date(2024, 1, 5)), make_tx(999, None)]

        result = compute_transaction_metrics(transactions, JAN_1, JAN_31)

        assert result.partial.totals[TotalsKey.TOTAL_IN] == 100

    def test_inverted_range_raises(self, january_transactions):
        with pytest.raises(InvalidRangeError):
            compute_transaction_metrics(january_transactions, JAN_31, JAN_1)

    def test_empty_input(self):
        result = compute_transaction_metrics([])

        assert result.partial.totals[TotalsKey.BALANCE] == 0
        assert result.partial.kpis[KpiKey.LARGEST_IN] == 0
        assert result.partial.kpis[KpiKey.AVERAGE_DAILY_NET_FLOW] == 0
        assert result.partial.metadata["coverageDays"] == 0
        assert result.partial.series[SeriesKey.DAILY_NET_FLOWS] == []

    def test_category_hierarchy_in_metadata(self, january_transactions):
        result = compute_transaction_metrics(january_transactions, JAN_1, JAN_31)

        hierarchy = result.partial.metadata["categoryHierarchy"]
        assert hierarchy["ledgerTotals"]["RECEITA"]["inflows"] == 1500
        assert hierarchy["ledgerTotals"]["OUTRAS"]["outflows"] == 200


class TestReceivableMetrics:
    """Tests for compute_receivable_metrics."""

    def test_january_scenario(self, january_sale_legs, fixed_now):
        result = compute_receivable_metrics(january_sale_legs, JAN_1, JAN_31, now=fixed_now)

        assert result.partial.kpis[KpiKey.RECEIVABLE_AMOUNT] == 600
        assert result.partial.kpis[KpiKey.RECEIVABLE_COUNT] == 1
        assert result.partial.kpis[KpiKey.OVERDUE_RECEIVABLE_AMOUNT] == 600
        assert result.partial.kpis[KpiKey.OVERDUE_RECEIVABLE_COUNT] == 1
        assert result.provided.kpis == RECEIVABLE_KPIS
        assert result.partial.totals == {}

    def test_not_overdue_before_due_date(self, january_sale_legs):
        now = datetime(2024, 1, 11, 23, 59, tzinfo=UTC)

        result = compute_receivable_metrics(january_sale_legs, JAN_1, JAN_31, now=now)

        assert result.partial.kpis[KpiKey.OVERDUE_RECEIVABLE_COUNT] == 0

    def test_due_today_is_overdue_after_midnight_utc(self, january_sale_legs):
        now = datetime(2024, 1, 12, 0, 0, 1, tzinfo=UTC)

        result = compute_receivable_metrics(january_sale_legs, JAN_1, JAN_31, now=now)

        assert result.partial.kpis[KpiKey.OVERDUE_RECEIVABLE_COUNT] == 1

    def test_naive_now_is_treated_as_utc(self, january_sale_legs):
        result = compute_receivable_metrics(
            january_sale_legs, JAN_1, JAN_31, now=datetime(2024, 1, 20)
        )

        assert result.partial.kpis[KpiKey.OVERDUE_RECEIVABLE_COUNT] == 1

    def test_range_restricts_by_due_date(self, fixed_now):
        legs = [
            make_sale_leg(
                SettlementParcel(n=1, due=date(2024, 1, 12), expected=600),
                SettlementParcel(n=2, due=date(2024, 2, 12), expected=600),
            )
        ]

        result = compute_receivable_metrics(legs, JAN_1, JAN_31, now=fixed_now)

        assert result.partial.kpis[KpiKey.RECEIVABLE_COUNT] == 1

    def test_without_range_counts_all_outstanding(self, fixed_now):
        legs = [
            make_sale_leg(
                SettlementParcel(n=1, due=date(2023, 6, 1), expected=100),
                SettlementParcel(n=2, due=None, expected=50),
            )
        ]

        result = compute_receivable_metrics(legs, now=fixed_now)

        assert result.partial.kpis[KpiKey.RECEIVABLE_AMOUNT] == 150
        assert result.partial.kpis[KpiKey.RECEIVABLE_COUNT] == 2
        # the undated parcel is never overdue
        assert result.partial.kpis[KpiKey.OVERDUE_RECEIVABLE_AMOUNT] == 100

    def test_undated_parcel_excluded_from_range(self, fixed_now):
        legs = [make_sale_leg(SettlementParcel(n=1, due=None, expected=50))]

        result = compute_receivable_metrics(legs, JAN_1, JAN_31, now=fixed_now)

        assert result.partial.kpis[KpiKey.RECEIVABLE_COUNT] == 0
