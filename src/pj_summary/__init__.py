"""PJ Summary - bank account KPI aggregation with a snapshot cache."""

__version__ = "0.1.0"

from pj_summary.config import configure_logging, get_settings
from pj_summary.errors import (
    InvalidDateError,
    InvalidRangeError,
    StorageError,
    StorageRateLimitError,
    SummaryError,
)
from pj_summary.ledger_groups import get_ledger_group
from pj_summary.metrics import compute_receivable_metrics, compute_transaction_metrics
from pj_summary.models import (
    BankAccount,
    BankSummarySnapshot,
    BankTransaction,
    CategoryLike,
    Client,
    LedgerGroup,
    SaleLeg,
    SettlementParcel,
)
from pj_summary.partials import PartialSummaryResult, combine_partials
from pj_summary.refresher import RefreshReport, SnapshotRefresher
from pj_summary.scheduler import SnapshotScheduler
from pj_summary.service import DataSource, SummaryResponse, SummaryService
from pj_summary.snapshots import build_snapshot_summary, select_snapshot
from pj_summary.storage import InMemoryStorage, StorageAPIClient, StorageProvider

__all__ = [
    # Version
    "__version__",
    # Records
    "BankAccount",
    "BankSummarySnapshot",
    "BankTransaction",
    "CategoryLike",
    "Client",
    "LedgerGroup",
    "SaleLeg",
    "SettlementParcel",
    # Computation
    "get_ledger_group",
    "compute_transaction_metrics",
    "compute_receivable_metrics",
    "PartialSummaryResult",
    "combine_partials",
    "select_snapshot",
    "build_snapshot_summary",
    # Services
    "DataSource",
    "SummaryResponse",
    "SummaryService",
    "RefreshReport",
    "SnapshotRefresher",
    "SnapshotScheduler",
    # Storage
    "StorageProvider",
    "InMemoryStorage",
    "StorageAPIClient",
    # Errors
    "SummaryError",
    "InvalidRangeError",
    "InvalidDateError",
    "StorageError",
    "StorageRateLimitError",
    # Config
    "get_settings",
    "configure_logging",
]
