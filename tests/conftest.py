"""Pytest configuration and fixtures."""

import os
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("STORAGE_API_URL", "http://storage.test")
os.environ.setdefault("STORAGE_API_TOKEN", "test-token")
os.environ.setdefault("STORAGE_MAX_RETRIES", "2")

from pj_summary.models import (  # noqa: E402
    BankAccount,
    BankTransaction,
    Categorization,
    Client,
    SaleLeg,
    SettlementParcel,
)
from pj_summary.storage import InMemoryStorage  # noqa: E402

ORG_ID = "org-1"
CLIENT_ID = "client-1"
ACCOUNT_ID = "acct-1"

FIXED_NOW = datetime(2024, 1, 20, 12, 0, tzinfo=UTC)


def make_tx(
    amount: float,
    day: date | None,
    bank_tx_id: str | None = None,
    bank_account_id: str = ACCOUNT_ID,
    categorized_as: Categorization | None = None,
    dfc_category: str | None = None,
    dfc_item: str | None = None,
) -> BankTransaction:
    return BankTransaction(
        bank_tx_id=bank_tx_id or f"tx-{amount}-{day}",
        date=day,
        desc="lancamento",
        amount=amount,
        bank_account_id=bank_account_id,
        categorized_as=categorized_as,
        dfc_category=dfc_category,
        dfc_item=dfc_item,
    )


def make_sale_leg(*parcels: SettlementParcel, sale_leg_id: str = "leg-1") -> SaleLeg:
    return SaleLeg(
        sale_leg_id=sale_leg_id,
        sale_id="sale-1",
        settlement_plan=list(parcels),
    )


@pytest.fixture
def fixed_now():
    """Reference instant used by clocks in tests."""
    return FIXED_NOW


@pytest.fixture
def january_transactions():
    """Three transactions spread over January 2024."""
    return [
        make_tx(1000, date(2024, 1, 5), "tx-1"),
        make_tx(-200, date(2024, 1, 10), "tx-2"),
        make_tx(500, date(2024, 1, 15), "tx-3"),
    ]


@pytest.fixture
def january_sale_legs():
    """One sale leg with an outstanding and a received parcel."""
    return [
        make_sale_leg(
            SettlementParcel(n=1, due=date(2024, 1, 12), expected=600),
            SettlementParcel(
                n=2, due=date(2024, 1, 25), expected=540, received_tx_id="tx-99"
            ),
        )
    ]


@pytest.fixture
def storage(january_transactions, january_sale_legs):
    """In-memory storage seeded with one client and one active account."""
    store = InMemoryStorage()
    store.add_client(
        Client(organization_id=ORG_ID, client_id=CLIENT_ID, name="Padaria"),
        accounts=[BankAccount(id=ACCOUNT_ID, org_id=ORG_ID, client_id=CLIENT_ID)],
    )
    store.add_transactions(CLIENT_ID, ACCOUNT_ID, january_transactions)
    store.add_sale_legs(CLIENT_ID, january_sale_legs)
    return store


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.aclose = AsyncMock()
    return client
