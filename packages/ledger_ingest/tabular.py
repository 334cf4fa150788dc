"""Statement-row parsing for CSV/XLSX bank exports.

Input is an in-memory grid (``list[list[str]]``) already split into cells;
:func:`read_delimited_text` produces one from raw text and
:mod:`ledger_ingest.ingest.files` from files on disk.

Row errors never abort the batch. Each failed row contributes one
``"line <n>: <reason>"`` string, where ``n`` is the 1-based line number in
the grid.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from datetime import UTC, date, datetime, time
from decimal import Decimal

from .logging_setup import get_logger
from .models import (
    Direction,
    ParsedTransaction,
    ParseResult,
    SourceChannel,
    clean_merchant,
)
from .normalizers import extract_amount, normalize_date
from .templates import BankTemplate

logger = get_logger(__name__)

# Institutions recognized inside statement descriptions, most specific first.
KNOWN_INSTITUTIONS: tuple[str, ...] = (
    "삼성카드",
    "농협카드",
    "신한카드",
    "현대카드",
    "하나카드",
    "롯데카드",
    "KB카드",
    "우리카드",
    "BC카드",
    "NH농협은행",
    "신한은행",
    "우리은행",
    "KEB하나은행",
    "하나은행",
    "KB국민은행",
    "IBK기업은행",
    "카카오뱅크",
    "토스뱅크",
    "케이뱅크",
)


class RowError(ValueError):
    """A single statement row could not be turned into a transaction."""


def extract_institution(description: str) -> str | None:
    for name in KNOWN_INSTITUTIONS:
        if name in description:
            return name
    return None


def read_delimited_text(text: str) -> list[list[str]]:
    """Split CSV/TSV text into trimmed cells.

    The delimiter is a tab when the first non-empty line contains one, else a
    comma. Double-quoted fields may contain the delimiter.
    """

    first = next((ln for ln in text.splitlines() if ln.strip()), "")
    delimiter = "\t" if "\t" in first else ","
    reader = csv.reader(io.StringIO(text), delimiter=delimiter, quotechar='"')
    return [[cell.strip() for cell in row] for row in reader]


def _cell(row: Sequence[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    value = row[index]
    return "" if value is None else str(value).strip()


def _is_blank(row: Sequence[str]) -> bool:
    return all(not str(c).strip() for c in row if c is not None)


def _amount(raw: str, column: str) -> Decimal:
    try:
        return extract_amount(raw)
    except ValueError as exc:
        raise RowError(f"invalid {column} amount {raw!r}") from exc


def _amount_and_direction(row: Sequence[str], template: BankTemplate) -> tuple[Decimal, Direction]:
    cols = template.columns
    if cols.amount is not None:
        value = _amount(_cell(row, cols.amount), "amount")
        if value == 0:
            raise RowError("amount is zero or empty")
        return abs(value), (Direction.EXPENSE if value < 0 else Direction.INCOME)

    withdrawal = _amount(_cell(row, cols.withdrawal), "withdrawal")
    deposit = _amount(_cell(row, cols.deposit), "deposit")
    if withdrawal > 0:
        return withdrawal, Direction.EXPENSE
    if deposit > 0:
        return deposit, Direction.INCOME
    raise RowError("withdrawal and deposit are both zero or empty")


def parse_row(row: Sequence[str], template: BankTemplate) -> ParsedTransaction:
    """Parse one data row; raises :class:`RowError` with a human-readable reason."""

    cols = template.columns
    raw_date = _cell(row, cols.date)
    iso = normalize_date(raw_date)
    if iso is None:
        raise RowError(f"invalid date {raw_date!r}")

    description = _cell(row, cols.description) if cols.description is not None else ""
    if not description:
        description = _cell(row, cols.merchant)
    if not description:
        raise RowError("description is empty")

    amount, direction = _amount_and_direction(row, template)
    occurred_at = datetime.combine(date.fromisoformat(iso), time.min, tzinfo=UTC)
    return ParsedTransaction(
        amount=amount,
        direction=direction,
        merchant=clean_merchant(description),
        description=description,
        occurred_at=occurred_at,
        source_channel=SourceChannel.CSV_UPLOAD,
        institution=extract_institution(description),
    )


def parse_rows(rows: Sequence[Sequence[str]], template: BankTemplate) -> ParseResult:
    transactions: list[ParsedTransaction] = []
    errors: list[str] = []

    for i in range(template.data_start, len(rows)):
        row = rows[i]
        if not row or _is_blank(row):
            continue
        line = i + 1
        try:
            transactions.append(parse_row(row, template))
        except RowError as exc:
            errors.append(f"line {line}: {exc}")

    logger.info(
        "Parsed %d row(s) with template %s (%d error(s))",
        len(transactions),
        template.template_id,
        len(errors),
    )
    return ParseResult(transactions=tuple(transactions), errors=tuple(errors))


__all__ = [
    "KNOWN_INSTITUTIONS",
    "RowError",
    "extract_institution",
    "read_delimited_text",
    "parse_row",
    "parse_rows",
]
