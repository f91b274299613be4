"""Storage collaborator used by the summary service and the refresher."""

from collections.abc import Sequence
from typing import Protocol

from pj_summary.models import (
    BankAccount,
    BankSummarySnapshot,
    BankTransaction,
    CategoryLike,
    Client,
    SaleLeg,
)


class StorageProvider(Protocol):
    """Read raw records and read/replace summary snapshots."""

    async def get_bank_transactions(
        self, client_id: str, bank_account_id: str
    ) -> list[BankTransaction]: ...

    async def get_sale_legs(self, client_id: str) -> list[SaleLeg]: ...

    async def get_pj_client_categories(
        self, org_id: str, client_id: str
    ) -> list[CategoryLike]: ...

    async def get_bank_summary_snapshots(
        self, org_id: str, client_id: str, bank_account_id: str
    ) -> list[BankSummarySnapshot]: ...

    async def set_bank_summary_snapshots(
        self,
        org_id: str,
        client_id: str,
        bank_account_id: str,
        snapshots: Sequence[BankSummarySnapshot],
    ) -> None:
        """Replace every snapshot of the account with ``snapshots``."""
        ...

    async def get_clients(self) -> list[Client]: ...

    async def get_bank_accounts(self, org_id: str, client_id: str) -> list[BankAccount]: ...
