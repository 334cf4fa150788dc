"""``LedgerStore``: the backing store used by the ingestion services.

Each method opens its own ``session_scope`` (commit on success, rollback on
error) against ``database_url`` and delegates to
:mod:`ledger_ingest.persistence`. All reads and writes are scoped to the
store's ``user_id``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ledger_db.client import init_schema, session_scope

from . import persistence
from .config import Settings
from .models import BalanceRecord, Direction, ParsedTransaction, StoredTransaction


class LedgerStore:
    def __init__(self, database_url: str | None = None, *, user_id: str | None = None) -> None:
        self.database_url = database_url
        self.user_id = user_id

    @classmethod
    def from_settings(cls, settings: Settings) -> LedgerStore:
        return cls(settings.database_url, user_id=settings.user_id)

    def init_schema(self) -> None:
        init_schema(database_url=self.database_url)

    def _scope(self):
        return session_scope(database_url=self.database_url)

    # ----- transactions -----

    def insert_transaction(
        self,
        tx: ParsedTransaction,
        *,
        category_id: int | None = None,
        file_upload_id: str | None = None,
    ) -> int:
        with self._scope() as s:
            return persistence.insert_transaction(
                s,
                tx=tx,
                category_id=category_id,
                user_id=self.user_id,
                file_upload_id=file_upload_id,
            )

    def find_transactions_between(
        self,
        *,
        amount: Decimal,
        direction: Direction,
        start: datetime,
        end: datetime,
    ) -> list[StoredTransaction]:
        with self._scope() as s:
            return persistence.find_transactions_between(
                s, amount=amount, direction=direction, start=start, end=end, user_id=self.user_id
            )

    def find_exact_transaction(
        self, *, on: date, description: str, amount: Decimal, direction: Direction
    ) -> int | None:
        with self._scope() as s:
            return persistence.find_exact_transaction(
                s,
                on=on,
                description=description,
                amount=amount,
                direction=direction,
                user_id=self.user_id,
            )

    def list_transactions(self, *, file_upload_id: str | None = None) -> list[StoredTransaction]:
        with self._scope() as s:
            return persistence.list_transactions(
                s, user_id=self.user_id, file_upload_id=file_upload_id
            )

    def delete_upload(self, file_upload_id: str) -> int:
        with self._scope() as s:
            return persistence.delete_transactions(
                s, file_upload_id=file_upload_id, user_id=self.user_id
            )

    def list_merchant_names(self) -> list[str]:
        with self._scope() as s:
            return persistence.list_merchant_names(s, user_id=self.user_id)

    def recategorize_merchants(self, merchants: Sequence[str], category_id: int) -> int:
        with self._scope() as s:
            return persistence.recategorize_merchants(
                s, merchants=merchants, category_id=category_id, user_id=self.user_id
            )

    # ----- categories and mappings -----

    def find_or_create_category(self, name: str, direction: Direction) -> int:
        with self._scope() as s:
            return persistence.find_or_create_category(
                s, name=name, direction=direction, user_id=self.user_id
            )

    def get_category_name(self, category_id: int) -> str | None:
        with self._scope() as s:
            return persistence.get_category_name(s, category_id=category_id)

    def get_merchant_category(self, merchant: str) -> int | None:
        with self._scope() as s:
            return persistence.get_merchant_category(s, merchant=merchant, user_id=self.user_id)

    def set_merchant_category(self, merchant: str, category_id: int) -> None:
        with self._scope() as s:
            persistence.set_merchant_category(
                s, merchant=merchant, category_id=category_id, user_id=self.user_id
            )

    # ----- balances -----

    def upsert_balance(self, record: BalanceRecord) -> None:
        with self._scope() as s:
            persistence.upsert_balance(s, record=record, user_id=self.user_id)

    def list_balances(self) -> list[BalanceRecord]:
        with self._scope() as s:
            return persistence.list_balances(s, user_id=self.user_id)

    def append_snapshot(
        self,
        snapshot_date: date,
        total_balance: Decimal,
        account_details: Iterable[Mapping[str, Any]],
    ) -> int:
        with self._scope() as s:
            return persistence.append_snapshot(
                s,
                snapshot_date=snapshot_date,
                total_balance=total_balance,
                account_details=account_details,
                user_id=self.user_id,
            )

    def list_snapshots(self) -> list[dict[str, Any]]:
        with self._scope() as s:
            return [
                {
                    "snapshot_date": r.snapshot_date,
                    "total_balance": Decimal(r.total_balance),
                    "account_details": list(r.account_details or []),
                }
                for r in persistence.list_snapshots(s, user_id=self.user_id)
            ]


__all__ = ["LedgerStore"]
