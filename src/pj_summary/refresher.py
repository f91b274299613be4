"""Background recomputation of the fixed-window summary snapshots."""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import structlog

from pj_summary.config import get_settings
from pj_summary.models import BankSummarySnapshot, BankTransaction
from pj_summary.service import SummaryService
from pj_summary.snapshots import SUPPORTED_WINDOWS, build_snapshot_metadata
from pj_summary.storage.base import StorageProvider

logger = structlog.get_logger(__name__)

SNAPSHOT_WINDOWS: tuple[int, ...] = SUPPORTED_WINDOWS

NowInput = datetime | date | str | None


@dataclass
class RefreshReport:
    """Outcome of a batch refresh."""

    refreshed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def merge(self, other: "RefreshReport") -> None:
        self.refreshed.extend(other.refreshed)
        self.failed.update(other.failed)


def normalize_now(value: NowInput) -> datetime:
    """Reference instant from a datetime, a date or an ISO string."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str) and value.strip():
        try:
            return normalize_now(datetime.fromisoformat(value.strip()))
        except ValueError:
            pass
    return datetime.now(UTC)


def reference_date(transactions: Iterable[BankTransaction], fallback: datetime) -> date:
    """Latest transaction date, or the fallback day when there is none."""
    return max(
        (tx.date for tx in transactions if tx.date is not None),
        default=fallback.astimezone(UTC).date(),
    )


def window_range(reference: date, window_days: int) -> tuple[date, date]:
    """``[reference - window + 1, reference]``."""
    start = reference - timedelta(days=window_days - 1) if window_days > 0 else reference
    return start, reference


def unique_account_ids(ids: Iterable[str | None]) -> list[str]:
    """Trimmed, de-duplicated account ids in first-seen order."""
    seen: dict[str, None] = {}
    for account_id in ids:
        trimmed = (account_id or "").strip()
        if trimmed:
            seen.setdefault(trimmed, None)
    return list(seen)


class SnapshotRefresher:
    """Recomputes and persists the 30/90/365-day snapshots of accounts.

    Accounts are independent: a failure is logged and recorded in the
    returned :class:`RefreshReport` without stopping the others.
    """

    def __init__(
        self,
        storage: StorageProvider,
        summary_service: SummaryService | None = None,
        concurrency: int | None = None,
    ):
        self._storage = storage
        self._service = summary_service or SummaryService(storage)
        self._concurrency = concurrency or get_settings().snapshot_refresh_concurrency
        self._logger = logger.bind(component="snapshot_refresher")

    async def refresh_account_snapshots(
        self,
        organization_id: str,
        client_id: str,
        bank_account_id: str,
        now: NowInput = None,
    ) -> list[BankSummarySnapshot]:
        """Rebuild and replace the three window snapshots of one account."""
        fallback = normalize_now(now)
        transactions, sale_legs, categories = await asyncio.gather(
            self._storage.get_bank_transactions(client_id, bank_account_id),
            self._storage.get_sale_legs(client_id),
            self._storage.get_pj_client_categories(organization_id, client_id),
        )
        reference = reference_date(transactions, fallback)

        snapshots: list[BankSummarySnapshot] = []
        for window_days in SNAPSHOT_WINDOWS:
            start, end = window_range(reference, window_days)
            summary = self._service.compute_fresh_summary_from_data(
                client_id,
                bank_account_id,
                transactions,
                sale_legs,
                period_from=start,
                period_to=end,
                window_days=window_days,
                categories=categories,
            )
            wire = summary.to_dict()
            refreshed_at = datetime.now(UTC).isoformat()
            snapshots.append(
                BankSummarySnapshot(
                    organization_id=organization_id,
                    client_id=client_id,
                    bank_account_id=bank_account_id,
                    window=f"{window_days}d",
                    totals=wire["totals"],
                    kpis=wire["kpis"],
                    metadata=build_snapshot_metadata(
                        wire, window_days, refreshed_at, (start, end)
                    ),
                    refreshed_at=refreshed_at,
                )
            )

        await self._storage.set_bank_summary_snapshots(
            organization_id, client_id, bank_account_id, snapshots
        )
        return snapshots

    async def refresh_snapshots_for_accounts(
        self,
        organization_id: str,
        client_id: str,
        bank_account_ids: Iterable[str | None],
        log: structlog.stdlib.BoundLogger | None = None,
        now: NowInput = None,
    ) -> RefreshReport:
        """Refresh several accounts of one client, isolating failures."""
        report = RefreshReport()
        account_ids = unique_account_ids(bank_account_ids)
        if not account_ids:
            return report

        base_log = (log or self._logger).bind(
            job="pj.snapshot.refresh",
            organization_id=organization_id,
            client_id=client_id,
        )
        semaphore = asyncio.Semaphore(self._concurrency)

        async def refresh_one(account_id: str) -> None:
            account_log = base_log.bind(bank_account_id=account_id)
            async with semaphore:
                try:
                    await self.refresh_account_snapshots(
                        organization_id, client_id, account_id, now=now
                    )
                except Exception as e:
                    account_log.error(
                        "snapshot_refresh_failed", error=str(e), exc_info=True
                    )
                    report.failed[account_id] = str(e) or type(e).__name__
                    return
            account_log.info("snapshot_refresh_succeeded")
            report.refreshed.append(account_id)

        await asyncio.gather(*(refresh_one(account_id) for account_id in account_ids))
        return report

    async def refresh_all_active_account_snapshots(
        self,
        now: NowInput = None,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> RefreshReport:
        """Refresh every active account of every client (scheduled job)."""
        job_log = (log or self._logger).bind(job="pj.snapshot.scheduler")
        report = RefreshReport()

        for client in await self._storage.get_clients():
            client_log = job_log.bind(
                organization_id=client.organization_id, client_id=client.client_id
            )
            try:
                accounts = await self._storage.get_bank_accounts(
                    client.organization_id, client.client_id
                )
            except Exception as e:
                client_log.error("bank_accounts_load_failed", error=str(e), exc_info=True)
                continue

            active = [account.id for account in accounts if account.is_active]
            if not active:
                continue
            report.merge(
                await self.refresh_snapshots_for_accounts(
                    client.organization_id,
                    client.client_id,
                    active,
                    log=client_log,
                    now=now,
                )
            )

        job_log.info(
            "snapshot_refresh_pass_completed",
            refreshed=len(report.refreshed),
            failed=len(report.failed),
        )
        return report
