"""Account balance extraction from SMS/notification text.

Bank and card messages usually end with the post-transaction balance
(``"잔액 1,234,000원"``) or the remaining limit (``"이용가능금액 ..."``).
:class:`BalanceTracker` pulls that figure out, works out which account it
belongs to from the sender and body, and upserts it by
``(account_name, account_type)``; the newest message wins.

The tracker is independent of transaction parsing: it runs on every raw
message whether or not a transaction was recognized.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Protocol

from .logging_setup import get_logger
from .models import (
    UNKNOWN_MERCHANT,
    AccountType,
    BalanceRecord,
    BalanceSource,
    TotalAssets,
    balance_record_to_dict,
    from_epoch_ms,
)
from .normalizers import to_decimal

logger = get_logger(__name__)

UNKNOWN_ACCOUNT = UNKNOWN_MERCHANT


def _phrase(label: str) -> re.Pattern[str]:
    return re.compile(re.escape(label) + r"\s*:?\s*(?P<amount>-?[\d,]+)\s*원")


BALANCE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    _phrase(label)
    for label in (
        # Bank accounts
        "잔액",
        "잔고",
        "계좌잔액",
        "출금후잔액",
        "입금후잔액",
        # Card limits
        "이용가능금액",
        "사용가능한도",
        "승인가능금액",
        # Brokerage
        "평가금액",
        "총자산",
        "예수금",
        "투자원금",
        # Easy-pay wallets
        "페이머니",
        "토스머니",
        "카카오페이머니",
        "네이버페이포인트",
        # Crypto exchanges
        "보유원화",
        "KRW잔고",
    )
)

_B = AccountType.BANK
_C = AccountType.CARD
_I = AccountType.INVESTMENT
_P = AccountType.PAY
_X = AccountType.CRYPTO

# Ordered (keyword, account name, type). More specific keys come first so
# "신한카드" is not read as the bare "신한" bank prefix.
ACCOUNT_KEYWORDS: tuple[tuple[str, str, AccountType], ...] = (
    # Card companies
    ("우리카드", "우리카드", _C),
    ("신한카드", "신한카드", _C),
    ("삼성카드", "삼성카드", _C),
    ("현대카드", "현대카드", _C),
    ("KB카드", "KB국민카드", _C),
    ("국민카드", "KB국민카드", _C),
    ("하나카드", "하나카드", _C),
    ("NH카드", "NH농협카드", _C),
    ("농협카드", "NH농협카드", _C),
    ("롯데카드", "롯데카드", _C),
    ("BC카드", "BC카드", _C),
    # Securities
    ("키움", "키움증권", _I),
    ("NH투자", "NH투자증권", _I),
    ("미래에셋", "미래에셋증권", _I),
    ("삼성증권", "삼성증권", _I),
    ("한국투자", "한국투자증권", _I),
    ("대신증권", "대신증권", _I),
    ("신한투자", "신한투자증권", _I),
    ("하나증권", "하나증권", _I),
    ("이베스트", "이베스트투자증권", _I),
    ("유진투자", "유진투자증권", _I),
    # Internet banks (before the "토스" pay key)
    ("카카오뱅크", "카카오뱅크", _B),
    ("토스뱅크", "토스뱅크", _B),
    ("K뱅크", "K뱅크", _B),
    # Easy-pay services
    ("카카오페이", "카카오페이", _P),
    ("네이버페이", "네이버페이", _P),
    ("페이코", "페이코", _P),
    ("PAYCO", "페이코", _P),
    ("삼성페이", "삼성페이", _P),
    ("LG페이", "LG페이", _P),
    ("토스", "토스페이", _P),
    # Crypto exchanges
    ("빗썸", "빗썸", _X),
    ("업비트", "업비트", _X),
    ("코인원", "코인원", _X),
    ("코빗", "코빗", _X),
    ("바이낸스", "바이낸스", _X),
    # Banks by prefix
    ("우리", "우리은행", _B),
    ("신한", "신한은행", _B),
    ("KB", "KB국민은행", _B),
    ("국민", "KB국민은행", _B),
    ("하나", "하나은행", _B),
    ("농협", "NH농협은행", _B),
    ("NH", "NH농협은행", _B),
    ("기업", "IBK기업은행", _B),
    ("IBK", "IBK기업은행", _B),
    ("수협", "수협은행", _B),
    ("대구", "대구은행", _B),
    ("부산", "부산은행", _B),
    ("광주", "광주은행", _B),
    ("전북", "전북은행", _B),
    ("경남", "경남은행", _B),
    ("제주", "제주은행", _B),
)


class BalanceStore(Protocol):
    def upsert_balance(self, record: BalanceRecord) -> None: ...

    def list_balances(self) -> list[BalanceRecord]: ...

    def append_snapshot(
        self, snapshot_date: date, total_balance: Decimal, account_details: Sequence[dict]
    ) -> int: ...


def identify_account(sender: str, text: str) -> tuple[str, AccountType]:
    for keyword, name, account_type in ACCOUNT_KEYWORDS:
        if keyword in sender or keyword in text:
            return name, account_type
    return UNKNOWN_ACCOUNT, AccountType.BANK


def extract_balance(
    text: str,
    sender: str,
    timestamp: int | datetime,
    *,
    source: BalanceSource = BalanceSource.SMS,
) -> BalanceRecord | None:
    """Return the balance stated in ``text``, or ``None`` when there is none."""

    for pattern in BALANCE_PATTERNS:
        m = pattern.search(text)
        if m is None:
            continue
        try:
            amount = to_decimal(m.group("amount"))
        except ValueError:
            continue
        name, account_type = identify_account(sender, text)
        last_updated = timestamp if isinstance(timestamp, datetime) else from_epoch_ms(timestamp)
        return BalanceRecord(
            account_name=name,
            account_type=account_type,
            balance=amount,
            last_updated=last_updated,
            source=source,
        )
    return None


class BalanceTracker:
    def __init__(self, store: BalanceStore | None = None) -> None:
        self._store = store
        self._latest: dict[tuple[str, AccountType], BalanceRecord] = {}

    def extract_and_save(
        self,
        text: str,
        sender: str,
        timestamp: int | datetime,
        *,
        source: BalanceSource = BalanceSource.SMS,
    ) -> BalanceRecord | None:
        record = extract_balance(text or "", sender or "", timestamp, source=source)
        if record is None:
            return None

        self._latest[record.key] = record
        if self._store is not None:
            try:
                self._store.upsert_balance(record)
            except Exception:  # noqa: BLE001
                logger.warning(
                    "Failed to save balance for %s/%s",
                    record.account_name,
                    record.account_type,
                    exc_info=True,
                )
                return record
        logger.info(
            "Balance updated: %s (%s) %s", record.account_name, record.account_type, record.balance
        )
        return record

    def get_balance(self, account_name: str, account_type: AccountType) -> BalanceRecord | None:
        return self._latest.get((account_name, account_type))

    def all_balances(self) -> list[BalanceRecord]:
        """Stored balances, largest first; the in-process cache when there is no store."""

        records: list[BalanceRecord]
        if self._store is None:
            records = list(self._latest.values())
        else:
            try:
                records = self._store.list_balances()
            except Exception:  # noqa: BLE001
                logger.warning("Failed to list balances; using cached values", exc_info=True)
                records = list(self._latest.values())
        return sorted(records, key=lambda r: r.balance, reverse=True)

    def total_assets(self) -> TotalAssets:
        """Sum balances per type; card balances are excluded from the total."""

        by_type = {t: Decimal(0) for t in AccountType}
        total = Decimal(0)
        for r in self.all_balances():
            by_type[r.account_type] += r.balance
            if r.account_type != AccountType.CARD:
                total += r.balance
        return TotalAssets(total=total, by_type=by_type)

    def record_snapshot(self, snapshot_date: date | None = None) -> int | None:
        if self._store is None:
            return None
        balances = self.all_balances()
        totals = self.total_assets()
        when = snapshot_date or datetime.now(UTC).date()
        try:
            return self._store.append_snapshot(
                when, totals.total, [balance_record_to_dict(b) for b in balances]
            )
        except Exception:  # noqa: BLE001
            logger.warning("Failed to record balance snapshot for %s", when, exc_info=True)
            return None


__all__ = [
    "UNKNOWN_ACCOUNT",
    "BALANCE_PATTERNS",
    "ACCOUNT_KEYWORDS",
    "BalanceStore",
    "identify_account",
    "extract_balance",
    "BalanceTracker",
]
