"""Dict-backed storage for tests and local runs."""

from collections.abc import Sequence
from copy import deepcopy

from pj_summary.models import (
    BankAccount,
    BankSummarySnapshot,
    BankTransaction,
    CategoryLike,
    Client,
    SaleLeg,
)


class InMemoryStorage:
    """In-process implementation of :class:`StorageProvider`."""

    def __init__(self) -> None:
        self.transactions: dict[tuple[str, str], list[BankTransaction]] = {}
        self.sale_legs: dict[str, list[SaleLeg]] = {}
        self.categories: dict[tuple[str, str], list[CategoryLike]] = {}
        self.snapshots: dict[tuple[str, str, str], list[BankSummarySnapshot]] = {}
        self.clients: list[Client] = []
        self.bank_accounts: dict[tuple[str, str], list[BankAccount]] = {}

    # === Seeding ===

    def add_client(self, client: Client, accounts: Sequence[BankAccount] = ()) -> None:
        self.clients.append(client)
        self.bank_accounts.setdefault(
            (client.organization_id, client.client_id), []
        ).extend(accounts)

    def add_transactions(
        self, client_id: str, bank_account_id: str, transactions: Sequence[BankTransaction]
    ) -> None:
        self.transactions.setdefault((client_id, bank_account_id), []).extend(transactions)

    def add_sale_legs(self, client_id: str, sale_legs: Sequence[SaleLeg]) -> None:
        self.sale_legs.setdefault(client_id, []).extend(sale_legs)

    def add_categories(
        self, org_id: str, client_id: str, categories: Sequence[CategoryLike]
    ) -> None:
        self.categories.setdefault((org_id, client_id), []).extend(categories)

    # === StorageProvider ===

    async def get_bank_transactions(
        self, client_id: str, bank_account_id: str
    ) -> list[BankTransaction]:
        return list(self.transactions.get((client_id, bank_account_id), []))

    async def get_sale_legs(self, client_id: str) -> list[SaleLeg]:
        return list(self.sale_legs.get(client_id, []))

    async def get_pj_client_categories(
        self, org_id: str, client_id: str
    ) -> list[CategoryLike]:
        return list(self.categories.get((org_id, client_id), []))

    async def get_bank_summary_snapshots(
        self, org_id: str, client_id: str, bank_account_id: str
    ) -> list[BankSummarySnapshot]:
        stored = self.snapshots.get((org_id, client_id, bank_account_id), [])
        return deepcopy(stored)

    async def set_bank_summary_snapshots(
        self,
        org_id: str,
        client_id: str,
        bank_account_id: str,
        snapshots: Sequence[BankSummarySnapshot],
    ) -> None:
        self.snapshots[(org_id, client_id, bank_account_id)] = deepcopy(list(snapshots))

    async def get_clients(self) -> list[Client]:
        return list(self.clients)

    async def get_bank_accounts(self, org_id: str, client_id: str) -> list[BankAccount]:
        return list(self.bank_accounts.get((org_id, client_id), []))
