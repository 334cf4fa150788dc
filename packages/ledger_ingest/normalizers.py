"""Amount and date normalization shared by the text and statement parsers.

Amounts
-------
Korean statements and messages write amounts like ``"1,234,567원"``,
``"₩5,000"``, ``"-500"`` or ``"(12,000)"``. :func:`to_decimal` strips sign
markers, currency symbols, whitespace and thousands separators before a
``Decimal`` parse, and rejects non-finite results.

Dates
-----
:func:`normalize_date` accepts year-first (``YYYY-MM-DD``, ``YYYY.MM.DD``,
``YYYY/MM/DD``, ``YYYYMMDD``) and day-first (``DD-MM-YYYY``, ``DD.MM.YYYY``,
``DD/MM/YYYY``) spellings, optionally followed by a time part, and returns an
ISO ``YYYY-MM-DD`` string or ``None``.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

_CURRENCY_TOKENS = ("KRW", "krw", "원", "₩", "$", "￦")
_ZERO = Decimal(0)

MIN_STATEMENT_YEAR = 2000
MAX_STATEMENT_YEAR = 2030


def to_decimal(raw: str | int | float | Decimal | None) -> Decimal:
    """Parse ``raw`` into a signed, finite ``Decimal``.

    Raises ``ValueError`` for missing, empty or unparseable input.
    """

    if raw is None:
        raise ValueError("amount is required")
    if isinstance(raw, Decimal):
        d = raw
    elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
        d = Decimal(str(raw))
    else:
        s = str(raw).strip()
        if not s:
            raise ValueError("amount is empty")
        for token in _CURRENCY_TOKENS:
            s = s.replace(token, "")
        s = "".join(s.split())
        negative = False

        # Strip leading/trailing sign markers and surrounding parentheses
        # until stable so combinations like "-(1,000)" work.
        while True:
            changed = False
            if s.startswith("+"):
                s = s[1:]
                changed = True
            elif s.startswith("-"):
                negative = True
                s = s[1:]
                changed = True
            if s.endswith("-") and len(s) > 1:
                negative = True
                s = s[:-1]
                changed = True
            if s.startswith("(") and s.endswith(")") and len(s) >= 2:
                negative = True
                s = s[1:-1]
                changed = True
            if not changed:
                break

        s = s.replace(",", "")
        try:
            d = Decimal(s)
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {raw!r}") from exc
        if negative:
            d = -abs(d)

    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return d


def parse_positive_amount(raw: str | None) -> Decimal | None:
    """Return a strictly positive amount, or ``None`` when unparseable or ≤ 0."""

    try:
        d = to_decimal(raw)
    except ValueError:
        return None
    return d if d > 0 else None


def extract_amount(raw: str | int | float | Decimal | None) -> Decimal:
    """Statement-cell amount: empty cells read as zero, garbage raises ``ValueError``."""

    if raw is None:
        return _ZERO
    if isinstance(raw, str) and not raw.strip():
        return _ZERO
    return to_decimal(raw)


_YEAR_FIRST = re.compile(r"^(\d{4})[-./](\d{1,2})[-./](\d{1,2})$")
_COMPACT = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DAY_FIRST = re.compile(r"^(\d{1,2})[-./](\d{1,2})[-./](\d{4})$")


def _date_token(raw: str) -> str:
    s = raw.strip()
    if not s:
        return ""
    # Drop any time part: "2024-03-05 14:20", "2024-03-05T14:20:00".
    s = s.split()[0].split("T", 1)[0]
    # Korean exports often end dates with a period ("2024.03.05.").
    return s.rstrip(".")


def normalize_date(raw: str | None) -> str | None:
    """Normalize a statement date to ``YYYY-MM-DD``; ``None`` when invalid.

    Day-first is assumed for the ``DD?MM?YYYY`` spellings. Years outside
    [2000, 2030] and impossible calendar dates are rejected.
    """

    if raw is None:
        return None
    s = _date_token(str(raw))
    if not s:
        return None

    m = _YEAR_FIRST.match(s) or _COMPACT.match(s)
    if m:
        year, month, day = (int(g) for g in m.groups())
    else:
        m = _DAY_FIRST.match(s)
        if not m:
            return None
        day, month, year = (int(g) for g in m.groups())

    if not MIN_STATEMENT_YEAR <= year <= MAX_STATEMENT_YEAR:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


__all__ = [
    "MIN_STATEMENT_YEAR",
    "MAX_STATEMENT_YEAR",
    "to_decimal",
    "parse_positive_amount",
    "extract_amount",
    "normalize_date",
]
