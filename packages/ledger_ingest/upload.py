"""Persist parsed statement rows and report the upload outcome.

``save_upload`` is the persistence half of a statement import; parsing lives
in :mod:`ledger_ingest.tabular`. Each row is handled independently: an
exact pre-existing row (same date, description, amount and direction) is
skipped, a failing insert is recorded as an error string, and the batch keeps
going. :func:`import_rows` folds the parser's row errors into the returned
:class:`UploadResult`, so its status covers the whole file.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Protocol

from .categorize import CategoryResolver
from .logging_setup import get_logger
from .models import Direction, ParsedTransaction, ParseResult, UploadResult
from .tabular import parse_rows
from .templates import BankTemplate, detect_template, get_template

logger = get_logger(__name__)


class UploadStore(Protocol):
    def find_exact_transaction(
        self, *, on: date, description: str, amount: Decimal, direction: Direction
    ) -> int | None: ...

    def insert_transaction(
        self,
        tx: ParsedTransaction,
        *,
        category_id: int | None = None,
        file_upload_id: str | None = None,
    ) -> int: ...


class TemplateNotFoundError(LookupError):
    pass


def save_upload(
    transactions: Iterable[ParsedTransaction],
    store: UploadStore,
    resolver: CategoryResolver,
    *,
    file_upload_id: str | None = None,
) -> UploadResult:
    success = 0
    skipped = 0
    errors: list[str] = []

    for tx in transactions:
        try:
            existing = store.find_exact_transaction(
                on=tx.occurred_on,
                description=tx.description,
                amount=tx.amount,
                direction=tx.direction,
            )
            if existing is not None:
                logger.debug("Skipping existing row %s %s", tx.occurred_on, tx.description)
                skipped += 1
                continue
            resolved = resolver.resolve(tx)
            store.insert_transaction(
                tx, category_id=resolved.category_id, file_upload_id=file_upload_id
            )
            success += 1
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to save %r: %s", tx.description, exc)
            errors.append(f'"{tx.description}": {exc}')

    result = UploadResult(success=success, errors=tuple(errors), skipped=skipped)
    logger.info(
        "Upload %s: %d saved, %d skipped, %d error(s) -> %s",
        file_upload_id or "-",
        success,
        skipped,
        len(errors),
        result.status,
    )
    return result


@dataclass(frozen=True, slots=True)
class ImportReport:
    template: BankTemplate
    parsed: ParseResult
    saved: UploadResult


def resolve_template(rows: Sequence[Sequence[str]], template_id: str | None = None) -> BankTemplate:
    """Pick the template named ``template_id`` or detect one from the first row."""

    if template_id:
        template = get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(f"unknown template {template_id!r}")
        return template
    header = list(rows[0]) if rows else []
    template = detect_template(header)
    if template is None:
        raise TemplateNotFoundError("could not detect a statement template; pass one explicitly")
    return template


def import_rows(
    rows: Sequence[Sequence[str]],
    store: UploadStore,
    resolver: CategoryResolver,
    *,
    template_id: str | None = None,
    file_upload_id: str | None = None,
) -> ImportReport:
    template = resolve_template(rows, template_id)
    parsed = parse_rows(rows, template)
    saved = save_upload(parsed.transactions, store, resolver, file_upload_id=file_upload_id)
    # Rows rejected by the parser count against the batch like failed inserts.
    saved = replace(saved, errors=parsed.errors + saved.errors)
    return ImportReport(template=template, parsed=parsed, saved=saved)


__all__ = [
    "UploadStore",
    "TemplateNotFoundError",
    "save_upload",
    "ImportReport",
    "resolve_template",
    "import_rows",
]
