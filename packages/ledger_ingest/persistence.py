"""Session-level persistence helpers for the ledger tables.

Functions here operate on a caller-provided SQLAlchemy ``Session`` and never
commit; :class:`ledger_ingest.store.LedgerStore` wraps each call in its own
``session_scope``. Rows are scoped by ``user_id``; ``None`` matches rows whose
owner column IS NULL (single-user installs).

Natural-key upserts (merchant mappings, account balances) use
select-then-write so they behave the same on PostgreSQL and SQLite and with a
NULL owner, which a unique index would not cover.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from ledger_db.models.ledger import (
    AccountBalance,
    BalanceSnapshot,
    Category,
    MerchantCategoryMapping,
    Transaction,
)
from sqlalchemy import ColumnElement, delete, func, or_, select, update
from sqlalchemy.orm import InstrumentedAttribute, Session

from .models import (
    DESCRIPTION_SEPARATOR,
    AccountType,
    BalanceRecord,
    BalanceSource,
    Direction,
    ParsedTransaction,
    StoredTransaction,
    merchant_from_description,
)

_CATEGORY_COLORS = {Direction.INCOME: "#10b981", Direction.EXPENSE: "#ef4444"}
_CATEGORY_ICON = "circle"


def _owned(column: InstrumentedAttribute[Any], user_id: str | None) -> ColumnElement[bool]:
    return column.is_(None) if user_id is None else column == user_id


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive values; everything is stored as UTC.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def _to_stored(row: Transaction) -> StoredTransaction:
    return StoredTransaction(
        id=row.id,
        amount=Decimal(row.amount),
        direction=Direction(row.type),
        description=row.description or "",
        occurred_on=row.date,
        created_at=_aware(row.created_at),
        category_id=row.category_id,
        source=row.source,
    )


# ---------------------------
# Transactions
# ---------------------------


def insert_transaction(
    session: Session,
    *,
    tx: ParsedTransaction,
    category_id: int | None,
    user_id: str | None = None,
    file_upload_id: str | None = None,
) -> int:
    """Insert one transaction and return its id.

    ``created_at`` is stamped with the event time so the duplicate window query
    lines up with when the transaction happened, not when it was ingested.
    """

    row = Transaction(
        user_id=user_id,
        amount=tx.amount,
        type=str(tx.direction),
        category_id=category_id,
        description=tx.description,
        date=tx.occurred_on,
        institution=tx.institution,
        source=str(tx.source_channel),
        file_upload_id=file_upload_id,
        created_at=tx.occurred_at,
        updated_at=tx.occurred_at,
    )
    session.add(row)
    session.flush()
    return row.id


def find_transactions_between(
    session: Session,
    *,
    amount: Decimal,
    direction: Direction,
    start: datetime,
    end: datetime,
    user_id: str | None = None,
) -> list[StoredTransaction]:
    stmt = (
        select(Transaction)
        .where(_owned(Transaction.user_id, user_id))
        .where(Transaction.type == str(direction))
        .where(Transaction.amount == amount)
        .where(Transaction.created_at >= start)
        .where(Transaction.created_at <= end)
        .order_by(Transaction.created_at)
    )
    return [_to_stored(r) for r in session.execute(stmt).scalars()]


def find_exact_transaction(
    session: Session,
    *,
    on: date,
    description: str,
    amount: Decimal,
    direction: Direction,
    user_id: str | None = None,
) -> int | None:
    """Return the id of a row with the same date/description/amount/direction."""

    stmt = (
        select(Transaction.id)
        .where(_owned(Transaction.user_id, user_id))
        .where(Transaction.date == on)
        .where(Transaction.description == description)
        .where(Transaction.amount == amount)
        .where(Transaction.type == str(direction))
        .limit(1)
    )
    return session.execute(stmt).scalar_one_or_none()


def list_transactions(
    session: Session,
    *,
    user_id: str | None = None,
    file_upload_id: str | None = None,
) -> list[StoredTransaction]:
    stmt = select(Transaction).where(_owned(Transaction.user_id, user_id))
    if file_upload_id is not None:
        stmt = stmt.where(Transaction.file_upload_id == file_upload_id)
    stmt = stmt.order_by(Transaction.date, Transaction.id)
    return [_to_stored(r) for r in session.execute(stmt).scalars()]


def delete_transactions(
    session: Session,
    *,
    file_upload_id: str,
    user_id: str | None = None,
) -> int:
    """Delete every row imported by one upload; returns the row count."""

    result = session.execute(
        delete(Transaction)
        .where(_owned(Transaction.user_id, user_id))
        .where(Transaction.file_upload_id == file_upload_id)
    )
    return int(result.rowcount or 0)


def list_merchant_names(session: Session, *, user_id: str | None = None) -> list[str]:
    """Distinct merchants seen in stored descriptions and learned mappings."""

    descriptions = session.execute(
        select(Transaction.description)
        .where(_owned(Transaction.user_id, user_id))
        .where(Transaction.description.is_not(None))
        .distinct()
    ).scalars().all()
    mapped = session.execute(
        select(MerchantCategoryMapping.merchant_name).where(
            _owned(MerchantCategoryMapping.user_id, user_id)
        )
    ).scalars().all()

    seen: dict[str, None] = {}
    for name in [merchant_from_description(d) for d in descriptions] + list(mapped):
        if name and name not in seen:
            seen[name] = None
    return sorted(seen)


def _merchant_filter(merchants: Sequence[str]) -> ColumnElement[bool]:
    conds = []
    for m in merchants:
        conds.append(Transaction.description == m)
        conds.append(Transaction.description.endswith(f"{DESCRIPTION_SEPARATOR}{m}", autoescape=True))
    return or_(*conds)


def recategorize_merchants(
    session: Session,
    *,
    merchants: Sequence[str],
    category_id: int,
    user_id: str | None = None,
) -> int:
    """Point every stored transaction of ``merchants`` at ``category_id``."""

    if not merchants:
        return 0
    result = session.execute(
        update(Transaction)
        .where(_owned(Transaction.user_id, user_id))
        .where(_merchant_filter(merchants))
        .values(category_id=category_id, updated_at=func.now())
    )
    return int(result.rowcount or 0)


# ---------------------------
# Categories and learned mappings
# ---------------------------


def find_or_create_category(
    session: Session,
    *,
    name: str,
    direction: Direction,
    user_id: str | None = None,
) -> int:
    existing = session.execute(
        select(Category.id)
        .where(_owned(Category.user_id, user_id))
        .where(Category.name == name)
        .where(Category.type == str(direction))
        .limit(1)
    ).scalar_one_or_none()
    if existing is not None:
        return existing

    row = Category(
        user_id=user_id,
        name=name,
        type=str(direction),
        color=_CATEGORY_COLORS[direction],
        icon=_CATEGORY_ICON,
    )
    session.add(row)
    session.flush()
    return row.id


def get_category_name(session: Session, *, category_id: int) -> str | None:
    return session.execute(select(Category.name).where(Category.id == category_id)).scalar_one_or_none()


def get_merchant_category(
    session: Session,
    *,
    merchant: str,
    user_id: str | None = None,
) -> int | None:
    return session.execute(
        select(MerchantCategoryMapping.category_id)
        .where(_owned(MerchantCategoryMapping.user_id, user_id))
        .where(MerchantCategoryMapping.merchant_name == merchant)
        .order_by(MerchantCategoryMapping.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def set_merchant_category(
    session: Session,
    *,
    merchant: str,
    category_id: int,
    user_id: str | None = None,
) -> None:
    """Create or overwrite the mapping for ``merchant`` (last write wins)."""

    row = session.execute(
        select(MerchantCategoryMapping)
        .where(_owned(MerchantCategoryMapping.user_id, user_id))
        .where(MerchantCategoryMapping.merchant_name == merchant)
        .limit(1)
    ).scalar_one_or_none()
    if row is None:
        session.add(
            MerchantCategoryMapping(user_id=user_id, merchant_name=merchant, category_id=category_id)
        )
    else:
        row.category_id = category_id
        row.updated_at = datetime.now(UTC)
    session.flush()


# ---------------------------
# Balances
# ---------------------------


def upsert_balance(session: Session, *, record: BalanceRecord, user_id: str | None = None) -> None:
    row = session.execute(
        select(AccountBalance)
        .where(_owned(AccountBalance.user_id, user_id))
        .where(AccountBalance.account_name == record.account_name)
        .where(AccountBalance.account_type == str(record.account_type))
        .limit(1)
    ).scalar_one_or_none()
    if row is None:
        session.add(
            AccountBalance(
                user_id=user_id,
                account_name=record.account_name,
                account_type=str(record.account_type),
                balance=record.balance,
                last_updated=record.last_updated,
                source=str(record.source),
            )
        )
    else:
        row.balance = record.balance
        row.last_updated = record.last_updated
        row.source = str(record.source)
        row.updated_at = datetime.now(UTC)
    session.flush()


def list_balances(session: Session, *, user_id: str | None = None) -> list[BalanceRecord]:
    rows = session.execute(
        select(AccountBalance)
        .where(_owned(AccountBalance.user_id, user_id))
        .order_by(AccountBalance.account_type, AccountBalance.account_name)
    ).scalars()
    return [
        BalanceRecord(
            account_name=r.account_name,
            account_type=AccountType(r.account_type),
            balance=Decimal(r.balance),
            last_updated=_aware(r.last_updated),
            source=BalanceSource(r.source),
        )
        for r in rows
    ]


def append_snapshot(
    session: Session,
    *,
    snapshot_date: date,
    total_balance: Decimal,
    account_details: Iterable[Mapping[str, Any]],
    user_id: str | None = None,
) -> int:
    row = BalanceSnapshot(
        user_id=user_id,
        snapshot_date=snapshot_date,
        total_balance=total_balance,
        account_details=[dict(d) for d in account_details],
    )
    session.add(row)
    session.flush()
    return row.id


def list_snapshots(session: Session, *, user_id: str | None = None) -> list[BalanceSnapshot]:
    return list(
        session.execute(
            select(BalanceSnapshot)
            .where(_owned(BalanceSnapshot.user_id, user_id))
            .order_by(BalanceSnapshot.snapshot_date, BalanceSnapshot.id)
        ).scalars()
    )


__all__ = [
    "insert_transaction",
    "find_transactions_between",
    "find_exact_transaction",
    "list_transactions",
    "delete_transactions",
    "list_merchant_names",
    "recategorize_merchants",
    "find_or_create_category",
    "get_category_name",
    "get_merchant_category",
    "set_merchant_category",
    "upsert_balance",
    "list_balances",
    "append_snapshot",
    "list_snapshots",
]
