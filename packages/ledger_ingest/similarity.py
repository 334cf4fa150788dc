"""Merchant-name normalization and fuzzy comparison.

Two thresholds live here and are intentionally different:

- :data:`CLUSTER_THRESHOLD` (0.7, strict ``>``) groups merchants for bulk
  category assignment (:func:`find_similar`);
- :data:`COUNTERPARTY_THRESHOLD` (0.8, ``>=``) decides whether two candidate
  transactions name the same counterparty (:func:`is_same_counterparty`).
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from rapidfuzz.distance import Levenshtein

CLUSTER_THRESHOLD = 0.7
COUNTERPARTY_THRESHOLD = 0.8
CONTAINMENT_SCORE = 0.8
# Containment counts as "same counterparty" only up to this length gap.
MAX_CONTAINMENT_GAP = 3

# "스타벅스 강남점" / "이마트 성수지점" / "GS25 역삼점포"
_BRANCH_SUFFIX = re.compile(r"^[가-힣]+(?:점|점포|지점)$")
_STRIP = re.compile(r"[\s\-_()\[\].]+")


def normalize_merchant(name: str | None) -> str:
    """Canonical merchant key: lower-cased, branch suffix and punctuation removed.

    ``normalize_merchant(normalize_merchant(x)) == normalize_merchant(x)``.
    """

    tokens = (name or "").lower().split()
    if len(tokens) > 1 and _BRANCH_SUFFIX.match(tokens[-1]):
        tokens = tokens[:-1]
    return _STRIP.sub("", "".join(tokens))


def _edit_ratio(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return (longest - Levenshtein.distance(a, b)) / longest


def similarity(a: str | None, b: str | None) -> float:
    """Symmetric similarity in [0, 1] over normalized merchant names."""

    na, nb = normalize_merchant(a), normalize_merchant(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    if na in nb or nb in na:
        return CONTAINMENT_SCORE
    return _edit_ratio(na, nb)


def find_similar(
    target: str,
    candidates: Iterable[str],
    threshold: float = CLUSTER_THRESHOLD,
) -> list[str]:
    """Return candidates scoring strictly above ``threshold`` against ``target``.

    The target itself is excluded; input order is preserved.
    """

    out: list[str] = []
    for c in candidates:
        if c == target:
            continue
        if similarity(target, c) > threshold:
            out.append(c)
    return out


def is_same_counterparty(a: str | None, b: str | None) -> bool:
    na, nb = normalize_merchant(a), normalize_merchant(b)
    if not na or not nb:
        return False
    if na == nb:
        return True
    if (na in nb or nb in na) and abs(len(na) - len(nb)) <= MAX_CONTAINMENT_GAP:
        return True
    return _edit_ratio(na, nb) >= COUNTERPARTY_THRESHOLD


__all__ = [
    "CLUSTER_THRESHOLD",
    "COUNTERPARTY_THRESHOLD",
    "normalize_merchant",
    "similarity",
    "find_similar",
    "is_same_counterparty",
]
