"""Domain records exchanged with the storage layer.

Records are decoded from the platform's camelCase JSON with ``from_dict`` and
encoded back with ``to_dict``. Decoding is lenient: stored data is derived or
imported and a malformed field degrades to ``None``/0 instead of failing the
whole read.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from pj_summary.dates import coerce_date, format_br


class LedgerGroup(str, Enum):
    """Top-level cash-flow statement groups."""

    RECEITA = "RECEITA"
    DEDUCOES_RECEITA = "DEDUCOES_RECEITA"
    GEA = "GEA"
    COMERCIAL_MKT = "COMERCIAL_MKT"
    FINANCEIRAS = "FINANCEIRAS"
    OUTRAS = "OUTRAS"

    @classmethod
    def parse(cls, value: Any) -> "LedgerGroup | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _date_or_none(value: date | None) -> str | None:
    return format_br(value) if value else None


@dataclass(frozen=True)
class Categorization:
    """Explicit categorization attached to a bank transaction."""

    group: LedgerGroup | None = None
    subcategory: str | None = None
    auto: bool = False
    category_id: str | None = None
    category_path: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Categorization":
        return cls(
            group=LedgerGroup.parse(data["group"]) if data.get("group") else None,
            subcategory=_as_str(data.get("subcategory")),
            auto=bool(data.get("auto", False)),
            category_id=_as_str(data.get("categoryId")),
            category_path=_as_str(data.get("categoryPath")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"auto": self.auto}
        if self.group:
            result["group"] = self.group.value
        if self.subcategory:
            result["subcategory"] = self.subcategory
        if self.category_id:
            result["categoryId"] = self.category_id
        if self.category_path:
            result["categoryPath"] = self.category_path
        return result


@dataclass(frozen=True)
class BankTransaction:
    """Imported bank statement line. Positive amounts are inflows."""

    bank_tx_id: str
    date: date | None
    desc: str
    amount: float
    bank_account_id: str
    categorized_as: Categorization | None = None
    dfc_category: str | None = None
    dfc_item: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BankTransaction":
        categorized = data.get("categorizedAs")
        return cls(
            bank_tx_id=str(data.get("bankTxId", "")),
            date=coerce_date(data.get("date")),
            desc=str(data.get("desc", "")),
            amount=_as_float(data.get("amount")),
            bank_account_id=str(data.get("bankAccountId", "")),
            categorized_as=(
                Categorization.from_dict(categorized)
                if isinstance(categorized, dict)
                else None
            ),
            dfc_category=_as_str(data.get("dfcCategory")),
            dfc_item=_as_str(data.get("dfcItem")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "bankTxId": self.bank_tx_id,
            "date": _date_or_none(self.date),
            "desc": self.desc,
            "amount": self.amount,
            "bankAccountId": self.bank_account_id,
        }
        if self.categorized_as:
            result["categorizedAs"] = self.categorized_as.to_dict()
        if self.dfc_category:
            result["dfcCategory"] = self.dfc_category
        if self.dfc_item:
            result["dfcItem"] = self.dfc_item
        return result


@dataclass(frozen=True)
class SettlementParcel:
    """One expected installment of a sale leg.

    ``due`` is ``None`` when the stored due date could not be parsed.
    """

    n: int
    due: date | None
    expected: float
    received_tx_id: str | None = None
    received_at: date | None = None

    @property
    def is_outstanding(self) -> bool:
        return not self.received_tx_id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SettlementParcel":
        return cls(
            n=int(_as_float(data.get("n"))),
            due=coerce_date(data.get("due")),
            expected=_as_float(data.get("expected")),
            received_tx_id=_as_str(data.get("receivedTxId")),
            received_at=coerce_date(data.get("receivedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "n": self.n,
            "due": _date_or_none(self.due),
            "expected": self.expected,
        }
        if self.received_tx_id:
            result["receivedTxId"] = self.received_tx_id
        if self.received_at:
            result["receivedAt"] = format_br(self.received_at)
        return result


@dataclass(frozen=True)
class SaleLeg:
    """Payment leg of a sale with its settlement plan."""

    sale_leg_id: str
    sale_id: str
    settlement_plan: list[SettlementParcel] = field(default_factory=list)
    method: str | None = None
    gross_amount: float = 0.0
    net_amount: float = 0.0
    status: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SaleLeg":
        plan = data.get("settlementPlan") or []
        return cls(
            sale_leg_id=str(data.get("saleLegId", "")),
            sale_id=str(data.get("saleId", "")),
            settlement_plan=[
                SettlementParcel.from_dict(parcel)
                for parcel in plan
                if isinstance(parcel, dict)
            ],
            method=_as_str(data.get("method")),
            gross_amount=_as_float(data.get("grossAmount")),
            net_amount=_as_float(data.get("netAmount")),
            status=_as_str(data.get("status")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "saleLegId": self.sale_leg_id,
            "saleId": self.sale_id,
            "method": self.method,
            "grossAmount": self.gross_amount,
            "netAmount": self.net_amount,
            "status": self.status,
            "settlementPlan": [parcel.to_dict() for parcel in self.settlement_plan],
        }


@dataclass(frozen=True)
class CategoryLike:
    """Client chart-of-accounts category used by the hierarchy builder."""

    id: str
    name: str
    path: str
    level: int = 0
    sort_order: int | None = None
    parent_id: str | None = None
    accepts_postings: bool | None = None
    base_category_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CategoryLike":
        sort_order = data.get("sortOrder")
        accepts = data.get("acceptsPostings")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name") or "Categoria"),
            path=str(data.get("path") or ""),
            level=int(_as_float(data.get("level"))),
            sort_order=int(_as_float(sort_order)) if sort_order is not None else None,
            parent_id=_as_str(data.get("parentId")),
            accepts_postings=bool(accepts) if accepts is not None else None,
            base_category_id=_as_str(data.get("baseCategoryId")),
        )


@dataclass(frozen=True)
class BankAccount:
    """Bank account registered for a PJ client."""

    id: str
    org_id: str
    client_id: str
    is_active: bool = True
    bank_name: str | None = None
    account_number_mask: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BankAccount":
        return cls(
            id=str(data.get("id", "")),
            org_id=str(data.get("orgId", "")),
            client_id=str(data.get("clientId", "")),
            is_active=bool(data.get("isActive", False)),
            bank_name=_as_str(data.get("bankName")),
            account_number_mask=_as_str(data.get("accountNumberMask")),
        )


@dataclass(frozen=True)
class Client:
    """Client (tenant) owned by an organization."""

    organization_id: str
    client_id: str
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Client":
        return cls(
            organization_id=str(data.get("organizationId") or data.get("orgId") or ""),
            client_id=str(data.get("clientId") or data.get("id") or ""),
            name=_as_str(data.get("name")),
        )


@dataclass
class BankSummarySnapshot:
    """Pre-computed summary persisted for one account and one window.

    ``totals``, ``kpis`` and ``metadata`` hold the raw stored values; they are
    coerced and validated only when a snapshot is read back.
    """

    organization_id: str
    client_id: str
    bank_account_id: str
    window: str
    totals: dict[str, Any] = field(default_factory=dict)
    kpis: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    refreshed_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BankSummarySnapshot":
        def mapping(key: str) -> dict[str, Any]:
            value = data.get(key)
            return dict(value) if isinstance(value, dict) else {}

        return cls(
            organization_id=str(data.get("organizationId", "")),
            client_id=str(data.get("clientId", "")),
            bank_account_id=str(data.get("bankAccountId", "")),
            window=str(data.get("window", "")),
            totals=mapping("totals"),
            kpis=mapping("kpis"),
            metadata=mapping("metadata"),
            refreshed_at=str(data.get("refreshedAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "organizationId": self.organization_id,
            "clientId": self.client_id,
            "bankAccountId": self.bank_account_id,
            "window": self.window,
            "totals": dict(self.totals),
            "kpis": dict(self.kpis),
            "metadata": dict(self.metadata),
            "refreshedAt": self.refreshed_at,
        }
