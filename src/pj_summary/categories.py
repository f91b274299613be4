"""Aggregate transactions into the client's category hierarchy.

The tree always has the six ledger groups as roots. Client categories hang
below the ledger group their base category (or nearest ancestor) maps to.
Each transaction is posted to its own category when it accepts postings,
otherwise to the ledger group root, and totals roll up the parent chain.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from pj_summary.ledger_groups import (
    LEDGER_GROUP_LABELS,
    LEDGER_GROUP_SORT_ORDER,
    get_ledger_group,
)
from pj_summary.models import BankTransaction, CategoryLike, LedgerGroup

LedgerGroupResolver = Callable[[BankTransaction], LedgerGroup]

BASE_CATEGORY_TO_LEDGER: dict[str, LedgerGroup] = {
    "seed-pj-category-receita": LedgerGroup.RECEITA,
    "seed-pj-category-deducoes-receita": LedgerGroup.DEDUCOES_RECEITA,
    "seed-pj-category-gea": LedgerGroup.GEA,
    "seed-pj-category-comercial-mkt": LedgerGroup.COMERCIAL_MKT,
    "seed-pj-category-financeiras": LedgerGroup.FINANCEIRAS,
    "seed-pj-category-outras": LedgerGroup.OUTRAS,
}


@dataclass(frozen=True)
class CategoryDefinition:
    id: str
    label: str
    path: str
    level: int
    sort_order: int
    parent_path: str | None
    accepts_postings: bool
    base_category_id: str | None
    group: LedgerGroup


@dataclass
class CategoryHierarchyNode:
    """Aggregated node of the category tree."""

    definition: CategoryDefinition
    inflows: float = 0.0
    outflows: float = 0.0
    direct_inflows: float = 0.0
    direct_outflows: float = 0.0
    children: list["CategoryHierarchyNode"] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.definition.path

    @property
    def net(self) -> float:
        return self.inflows - self.outflows

    def sort_key(self) -> tuple[int, str]:
        return (self.definition.sort_order, self.definition.label)

    def to_dict(self) -> dict[str, Any]:
        definition = self.definition
        return {
            "id": definition.id,
            "label": definition.label,
            "path": definition.path,
            "level": definition.level,
            "sortOrder": definition.sort_order,
            "parentPath": definition.parent_path,
            "acceptsPostings": definition.accepts_postings,
            "group": definition.group.value,
            "baseCategoryId": definition.base_category_id,
            "inflows": self.inflows,
            "outflows": self.outflows,
            "net": self.net,
            "directInflows": self.direct_inflows,
            "directOutflows": self.direct_outflows,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class CategoryHierarchyResult:
    roots: list[CategoryHierarchyNode]
    nodes_by_path: dict[str, CategoryHierarchyNode]
    ledger_by_group: dict[LedgerGroup, CategoryHierarchyNode]


def _ledger_path(group: LedgerGroup) -> str:
    return f"ledger:{group.value}"


def _ledger_definition(group: LedgerGroup) -> CategoryDefinition:
    path = _ledger_path(group)
    return CategoryDefinition(
        id=path,
        label=LEDGER_GROUP_LABELS[group],
        path=path,
        level=0,
        sort_order=LEDGER_GROUP_SORT_ORDER[group],
        parent_path=None,
        accepts_postings=False,
        base_category_id=None,
        group=group,
    )


def _resolve_group(
    category: CategoryLike | None,
    by_id: dict[str, CategoryLike],
    cache: dict[str, LedgerGroup],
    seen: frozenset[str] = frozenset(),
) -> LedgerGroup:
    if category is None or category.id in seen:
        return LedgerGroup.OUTRAS
    if category.id in cache:
        return cache[category.id]

    group = BASE_CATEGORY_TO_LEDGER.get(category.base_category_id or "")
    if group is None and category.parent_id:
        group = _resolve_group(
            by_id.get(category.parent_id), by_id, cache, seen | {category.id}
        )
    resolved = group or LedgerGroup.OUTRAS
    cache[category.id] = resolved
    return resolved


class _DefinitionIndex:
    def __init__(self, categories: Iterable[CategoryLike]):
        categories = list(categories)
        self.by_path: dict[str, CategoryDefinition] = {}
        self.by_id: dict[str, CategoryDefinition] = {}
        self.ledger: dict[LedgerGroup, CategoryDefinition] = {}

        for group in LedgerGroup:
            definition = _ledger_definition(group)
            self.by_path[definition.path] = definition
            self.ledger[group] = definition

        category_by_id = {category.id: category for category in categories}
        cache: dict[str, LedgerGroup] = {}

        for category in categories:
            if not category.path:
                continue
            group = _resolve_group(category, category_by_id, cache)
            parent = category_by_id.get(category.parent_id or "")
            parent_path = parent.path if parent and parent.path else self.ledger[group].path

            definition = CategoryDefinition(
                id=category.id,
                label=category.name or "Categoria",
                path=category.path,
                level=category.level,
                sort_order=category.sort_order or 0,
                parent_path=parent_path,
                accepts_postings=(
                    True if category.accepts_postings is None else category.accepts_postings
                ),
                base_category_id=category.base_category_id,
                group=group,
            )
            self.by_path[definition.path] = definition
            self.by_id[definition.id] = definition

    def target_path(self, tx: BankTransaction, group: LedgerGroup) -> str:
        categorized = tx.categorized_as
        definition: CategoryDefinition | None = None
        if categorized and categorized.category_path:
            definition = self.by_path.get(categorized.category_path)
        if definition is None and categorized and categorized.category_id:
            definition = self.by_id.get(categorized.category_id)
        if definition is not None and definition.accepts_postings:
            return definition.path
        return self.ledger[group].path


def aggregate_transactions_by_category(
    transactions: Iterable[BankTransaction],
    categories: Iterable[CategoryLike] | None = None,
    ledger_group_resolver: LedgerGroupResolver = get_ledger_group,
) -> CategoryHierarchyResult:
    """Build the aggregated category tree for a set of transactions."""
    index = _DefinitionIndex(categories or [])

    posted: dict[str, list[float]] = {}
    for tx in transactions:
        path = index.target_path(tx, ledger_group_resolver(tx))
        totals = posted.setdefault(path, [0.0, 0.0])
        if tx.amount >= 0:
            totals[0] += tx.amount
        else:
            totals[1] += abs(tx.amount)

    nodes: dict[str, CategoryHierarchyNode] = {}
    for path, (inflows, outflows) in posted.items():
        current: str | None = path
        visited: set[str] = set()
        while current and current not in visited:
            visited.add(current)
            definition = index.by_path.get(current)
            if definition is None:
                break
            node = nodes.get(current)
            if node is None:
                node = nodes[current] = CategoryHierarchyNode(definition=definition)
            node.inflows += inflows
            node.outflows += outflows
            if current == path:
                node.direct_inflows += inflows
                node.direct_outflows += outflows
            current = definition.parent_path

    roots: list[CategoryHierarchyNode] = []
    for node in nodes.values():
        parent_path = node.definition.parent_path
        parent = nodes.get(parent_path) if parent_path else None
        if parent is not None:
            parent.children.append(node)
        elif not parent_path:
            roots.append(node)

    def sort_tree(node: CategoryHierarchyNode) -> None:
        node.children.sort(key=CategoryHierarchyNode.sort_key)
        for child in node.children:
            sort_tree(child)

    roots.sort(key=CategoryHierarchyNode.sort_key)
    for root in roots:
        sort_tree(root)

    ledger_by_group = {
        group: nodes[_ledger_path(group)]
        for group in LedgerGroup
        if _ledger_path(group) in nodes
    }
    return CategoryHierarchyResult(
        roots=roots, nodes_by_path=nodes, ledger_by_group=ledger_by_group
    )


def serialize_category_hierarchy(result: CategoryHierarchyResult) -> dict[str, Any]:
    """JSON-ready form stored under ``metadata.categoryHierarchy``."""
    return {
        "roots": [root.to_dict() for root in result.roots],
        "ledgerTotals": {
            group.value: {
                "inflows": node.inflows,
                "outflows": node.outflows,
                "net": node.net,
            }
            for group, node in result.ledger_by_group.items()
        },
    }
