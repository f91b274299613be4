"""Command line entry point for the PJ summary service."""

import argparse
import asyncio
import json
import sys

import structlog

from pj_summary.config import configure_logging
from pj_summary.errors import InvalidDateError, InvalidRangeError
from pj_summary.refresher import SnapshotRefresher
from pj_summary.scheduler import SnapshotScheduler
from pj_summary.service import SummaryService
from pj_summary.storage import StorageAPIClient, StorageProvider

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pj-summary",
        description="PJ bank account summaries and snapshot cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s summary org-1 client-1 acct-1 --from 01/01/2024 --to 31/01/2024
  %(prog)s refresh --org org-1 --client client-1 --account acct-1
  %(prog)s refresh                     # every active account of every client
  %(prog)s schedule --interval 3600
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override LOG_LEVEL",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary = subparsers.add_parser("summary", help="Print an account summary as JSON")
    summary.add_argument("org_id")
    summary.add_argument("client_id")
    summary.add_argument("bank_account_id")
    summary.add_argument("--from", dest="period_from", help="Start date (DD/MM/YYYY)")
    summary.add_argument("--to", dest="period_to", help="End date (DD/MM/YYYY)")

    refresh = subparsers.add_parser("refresh", help="Recompute snapshots")
    refresh.add_argument("--org", dest="org_id")
    refresh.add_argument("--client", dest="client_id")
    refresh.add_argument(
        "--account",
        dest="account_ids",
        action="append",
        default=[],
        help="Bank account id (repeatable)",
    )

    schedule = subparsers.add_parser("schedule", help="Refresh snapshots periodically")
    schedule.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between passes (default: SNAPSHOT_REFRESH_INTERVAL_SECONDS)",
    )

    return parser


async def _run_summary(storage: StorageProvider, args: argparse.Namespace) -> None:
    response = await SummaryService(storage).get_summary(
        args.org_id,
        args.client_id,
        args.bank_account_id,
        period_from=args.period_from,
        period_to=args.period_to,
    )
    print(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))


async def _run_refresh(storage: StorageProvider, args: argparse.Namespace) -> bool:
    refresher = SnapshotRefresher(storage)
    if args.account_ids:
        if not args.org_id or not args.client_id:
            raise SystemExit("refresh --account requires --org and --client")
        report = await refresher.refresh_snapshots_for_accounts(
            args.org_id, args.client_id, args.account_ids
        )
    else:
        report = await refresher.refresh_all_active_account_snapshots()

    print(
        json.dumps(
            {"refreshed": report.refreshed, "failed": report.failed},
            ensure_ascii=False,
            indent=2,
        )
    )
    return report.ok


async def _run_schedule(storage: StorageProvider, args: argparse.Namespace) -> None:
    scheduler = SnapshotScheduler(SnapshotRefresher(storage), interval_seconds=args.interval)
    try:
        await scheduler.start()
    finally:
        scheduler.stop()


async def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Exits with status 2 for an invalid period and 1 for any other failure.
    """
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level)

    ok = True
    try:
        async with StorageAPIClient() as storage:
            if args.command == "summary":
                await _run_summary(storage, args)
            elif args.command == "refresh":
                ok = await _run_refresh(storage, args)
            else:
                await _run_schedule(storage, args)
    except (InvalidRangeError, InvalidDateError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("command_interrupted", command=args.command)
    except Exception as e:
        logger.exception("command_failed", command=args.command, error=str(e))
        sys.exit(1)

    if not ok:
        sys.exit(1)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
