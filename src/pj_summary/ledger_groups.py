"""Ledger group classification for bank transactions."""

import re
import unicodedata

from pj_summary.models import BankTransaction, LedgerGroup

LEDGER_GROUP_LABELS: dict[LedgerGroup, str] = {
    LedgerGroup.RECEITA: "Receitas",
    LedgerGroup.DEDUCOES_RECEITA: "(-) Deduções da Receita",
    LedgerGroup.GEA: "(-) Despesas Gerais e Administrativas",
    LedgerGroup.COMERCIAL_MKT: "(-) Despesas Comerciais e Marketing",
    LedgerGroup.FINANCEIRAS: "(-/+) Despesas e Receitas Financeiras",
    LedgerGroup.OUTRAS: "(-/+) Outras Despesas e Receitas Não Operacionais",
}

LEDGER_GROUP_SORT_ORDER: dict[LedgerGroup, int] = {
    LedgerGroup.RECEITA: 10,
    LedgerGroup.DEDUCOES_RECEITA: 20,
    LedgerGroup.GEA: 30,
    LedgerGroup.COMERCIAL_MKT: 40,
    LedgerGroup.FINANCEIRAS: 50,
    LedgerGroup.OUTRAS: 60,
}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9\s]")


def _normalize(value: str) -> str:
    stripped = "".join(
        char
        for char in unicodedata.normalize("NFD", value)
        if not unicodedata.combining(char)
    )
    return _NON_ALNUM.sub("", stripped).upper()


def _infer_from_legacy(value: str | None, amount: float) -> LedgerGroup | None:
    """Map a free-text DFC category/item to a group. First match wins."""
    if not value:
        return None
    normalized = _normalize(value)

    if "DEDU" in normalized:
        return LedgerGroup.DEDUCOES_RECEITA
    if "GER" in normalized or "ADM" in normalized:
        return LedgerGroup.GEA
    if "COM" in normalized or "MARK" in normalized:
        return LedgerGroup.COMERCIAL_MKT
    if "FINAN" in normalized:
        return LedgerGroup.FINANCEIRAS
    if "RECEITA" in normalized or "FATUR" in normalized:
        return LedgerGroup.RECEITA if amount >= 0 else LedgerGroup.DEDUCOES_RECEITA
    if "OUTR" in normalized:
        return LedgerGroup.OUTRAS
    return None


def get_ledger_group(tx: BankTransaction) -> LedgerGroup:
    """Classify a transaction into exactly one ledger group.

    Explicit categorization wins, then the legacy ``dfc_category`` and
    ``dfc_item`` texts, then the sign of the amount.
    """
    if tx.categorized_as and tx.categorized_as.group:
        return tx.categorized_as.group

    legacy = _infer_from_legacy(tx.dfc_category, tx.amount) or _infer_from_legacy(
        tx.dfc_item, tx.amount
    )
    if legacy:
        return legacy

    return LedgerGroup.RECEITA if tx.amount >= 0 else LedgerGroup.OUTRAS
