"""Category resolution for transactions about to be persisted.

Precedence is fixed:

1. a learned merchant mapping (exact merchant key) set by a manual
   assignment;
2. the keyword classifier's suggestion (confidence >= 0.7);
3. the fallback bucket :data:`~ledger_ingest.classifier.FALLBACK_CATEGORY`.

Names are resolved to ``categories.id`` with find-or-create, so the first
transaction of a new bucket creates the category row.

``assign_merchant_group`` applies one manual assignment to every merchant
spelling similar to the chosen one (e.g. ``"스타벅스 강남점"`` and
``"스타벅스강남"``) and re-points their stored transactions.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .classifier import FALLBACK_CATEGORY, CategoryClassifier
from .logging_setup import get_logger
from .models import Direction, ParsedTransaction
from .similarity import CLUSTER_THRESHOLD, find_similar

logger = get_logger(__name__)


class CategoryStore(Protocol):
    def get_merchant_category(self, merchant: str) -> int | None: ...

    def set_merchant_category(self, merchant: str, category_id: int) -> None: ...

    def get_category_name(self, category_id: int) -> str | None: ...

    def find_or_create_category(self, name: str, direction: Direction) -> int: ...

    def list_merchant_names(self) -> list[str]: ...

    def recategorize_merchants(self, merchants: Sequence[str], category_id: int) -> int: ...


class CategorySource(StrEnum):
    MAPPING = "mapping"
    CLASSIFIER = "classifier"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class ResolvedCategory:
    category_id: int
    name: str | None
    source: CategorySource


@dataclass(frozen=True, slots=True)
class GroupAssignment:
    merchants: tuple[str, ...]
    updated_transactions: int


class CategoryResolver:
    def __init__(
        self,
        store: CategoryStore,
        classifier: CategoryClassifier | None = None,
        *,
        fallback: str = FALLBACK_CATEGORY,
    ) -> None:
        self._store = store
        self._classifier = classifier if classifier is not None else CategoryClassifier()
        self._fallback = fallback

    def resolve(self, tx: ParsedTransaction) -> ResolvedCategory:
        mapped = self._store.get_merchant_category(tx.merchant)
        if mapped is not None:
            return ResolvedCategory(
                mapped, self._store.get_category_name(mapped), CategorySource.MAPPING
            )

        name = tx.category or self._classifier.classify(tx.merchant, tx.direction)
        if name:
            cid = self._store.find_or_create_category(name, tx.direction)
            return ResolvedCategory(cid, name, CategorySource.CLASSIFIER)

        cid = self._store.find_or_create_category(self._fallback, tx.direction)
        return ResolvedCategory(cid, self._fallback, CategorySource.FALLBACK)

    def remember(self, merchant: str, category_id: int) -> None:
        """Record a single manual assignment for ``merchant``."""

        self._store.set_merchant_category(merchant, category_id)

    def assign_merchant_group(
        self,
        merchant: str,
        category_id: int,
        *,
        threshold: float = CLUSTER_THRESHOLD,
    ) -> GroupAssignment:
        similar = find_similar(merchant, self._store.list_merchant_names(), threshold)
        group = (merchant, *similar)
        for name in group:
            self._store.set_merchant_category(name, category_id)
        updated = self._store.recategorize_merchants(list(group), category_id)
        logger.info(
            "Assigned category %s to %d merchant(s) similar to %r; %d transaction(s) updated",
            category_id,
            len(group),
            merchant,
            updated,
        )
        return GroupAssignment(merchants=group, updated_transactions=updated)


__all__ = [
    "CategoryStore",
    "CategorySource",
    "ResolvedCategory",
    "GroupAssignment",
    "CategoryResolver",
]
