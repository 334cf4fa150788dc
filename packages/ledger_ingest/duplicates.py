"""Cross-channel duplicate detection for text-derived transactions.

The same purchase commonly arrives twice within seconds: once as a card SMS
and once as a payment-app notification. :class:`DuplicateDetector` keeps a
short in-memory buffer of recently admitted candidates (fast path) and falls
back to a time-windowed store query (catches duplicates across restarts).

Admission is atomic with the check: a candidate that is not a duplicate is
added to the buffer before the lock is released, so two identical candidates
processed back to back can never both be admitted.

Store failures fail open: the candidate is treated as new.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Protocol

from .logging_setup import get_logger
from .models import Direction, ParsedTransaction, StoredTransaction
from .similarity import is_same_counterparty

logger = get_logger(__name__)

DEFAULT_WINDOW = timedelta(minutes=3)
DEFAULT_CAPACITY = 50


class TransactionWindowLookup(Protocol):
    def find_transactions_between(
        self,
        *,
        amount: Decimal,
        direction: Direction,
        start: datetime,
        end: datetime,
    ) -> Sequence[StoredTransaction]: ...


@dataclass(frozen=True, slots=True)
class RecentEntry:
    amount: Decimal
    merchant: str
    direction: Direction
    observed_at: datetime

    @classmethod
    def of(cls, tx: ParsedTransaction) -> RecentEntry:
        return cls(tx.amount, tx.merchant, tx.direction, tx.occurred_at)


class DuplicateDetector:
    def __init__(
        self,
        store: TransactionWindowLookup | None = None,
        *,
        window: timedelta = DEFAULT_WINDOW,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._store = store
        self._window = window
        self._recent: deque[RecentEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def window(self) -> timedelta:
        return self._window

    def recent_entries(self) -> list[RecentEntry]:
        with self._lock:
            return list(self._recent)

    def is_duplicate(self, candidate: ParsedTransaction) -> bool:
        """Return True if ``candidate`` repeats a recent or stored transaction.

        Non-duplicates are admitted to the in-memory buffer as a side effect.
        """

        with self._lock:
            self._evict_before(candidate.occurred_at - self._window)

            if self._matches_recent(candidate):
                logger.info(
                    "Duplicate (recent) %s %s at %s",
                    candidate.merchant,
                    candidate.amount,
                    candidate.occurred_at.isoformat(),
                )
                return True

            if self._matches_store(candidate):
                logger.info(
                    "Duplicate (stored) %s %s at %s",
                    candidate.merchant,
                    candidate.amount,
                    candidate.occurred_at.isoformat(),
                )
                return True

            # deque(maxlen=...) keeps only the most recent entries.
            self._recent.append(RecentEntry.of(candidate))
            return False

    def cleanup(self, now: datetime) -> int:
        """Evict entries older than ``now - window``; return how many were dropped."""

        with self._lock:
            return self._evict_before(now - self._window)

    # ----- internals (lock held) -----

    def _evict_before(self, cutoff: datetime) -> int:
        kept = [e for e in self._recent if e.observed_at >= cutoff]
        dropped = len(self._recent) - len(kept)
        if dropped:
            self._recent.clear()
            self._recent.extend(kept)
        return dropped

    def _matches_recent(self, candidate: ParsedTransaction) -> bool:
        for entry in self._recent:
            if entry.amount != candidate.amount or entry.direction != candidate.direction:
                continue
            if abs(entry.observed_at - candidate.occurred_at) > self._window:
                continue
            if is_same_counterparty(entry.merchant, candidate.merchant):
                return True
        return False

    def _matches_store(self, candidate: ParsedTransaction) -> bool:
        if self._store is None:
            return False
        try:
            rows = self._store.find_transactions_between(
                amount=candidate.amount,
                direction=candidate.direction,
                start=candidate.occurred_at - self._window,
                end=candidate.occurred_at + self._window,
            )
        except Exception:  # noqa: BLE001
            logger.warning(
                "Duplicate lookup failed for %s %s; treating as new",
                candidate.merchant,
                candidate.amount,
                exc_info=True,
            )
            return False
        return any(is_same_counterparty(row.merchant, candidate.merchant) for row in rows)


__all__ = [
    "DEFAULT_WINDOW",
    "DEFAULT_CAPACITY",
    "TransactionWindowLookup",
    "RecentEntry",
    "DuplicateDetector",
]
