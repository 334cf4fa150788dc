"""Load CSV/TSV/TXT and XLSX statement exports as ``list[list[str]]``.

Korean banks still ship CP949-encoded CSVs, so text files are decoded as
UTF-8 (BOM tolerated) first and CP949 second. Workbooks are read with
``openpyxl`` (first sheet, cached values only).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from os import PathLike
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from ..logging_setup import get_logger
from ..tabular import read_delimited_text

logger = get_logger(__name__)

TEXT_SUFFIXES = frozenset({".csv", ".tsv", ".txt"})
SPREADSHEET_SUFFIXES = frozenset({".xlsx", ".xlsm"})
SUPPORTED_SUFFIXES = TEXT_SUFFIXES | SPREADSHEET_SUFFIXES

_ENCODINGS = ("utf-8-sig", "cp949")


class UnsupportedFileError(ValueError):
    pass


def decode_text(data: bytes) -> str:
    for encoding in _ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UnsupportedFileError(f"could not decode statement text as any of {', '.join(_ENCODINGS)}")


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value).strip()


def _load_workbook_rows(path: Path) -> list[list[str]]:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [[_cell_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def load_rows(path: str | PathLike[str]) -> list[list[str]]:
    """Return the cell grid of a statement export at ``path``."""

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix in SPREADSHEET_SUFFIXES:
        rows = _load_workbook_rows(p)
    elif suffix in TEXT_SUFFIXES:
        rows = read_delimited_text(decode_text(p.read_bytes()))
    else:
        raise UnsupportedFileError(
            f"unsupported statement file {p.name!r}; expected one of {sorted(SUPPORTED_SUFFIXES)}"
        )
    logger.debug("Loaded %d row(s) from %s", len(rows), p)
    return rows


__all__ = [
    "SUPPORTED_SUFFIXES",
    "UnsupportedFileError",
    "decode_text",
    "load_rows",
]
