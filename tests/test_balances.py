from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from ledger_ingest.balances import BalanceTracker, extract_balance, identify_account
from ledger_ingest.models import AccountType, BalanceSource, to_epoch_ms
from ledger_ingest.store import LedgerStore

T0 = datetime(2024, 3, 5, 5, 20, tzinfo=UTC)
TS = to_epoch_ms(T0)


@pytest.mark.parametrize(
    ("sender", "text", "expected"),
    [
        ("", "[신한카드] 이용가능금액 1,000,000원", ("신한카드", AccountType.CARD)),
        ("", "[신한은행] 잔액 10,000원", ("신한은행", AccountType.BANK)),
        ("토스뱅크", "잔액 5,000원", ("토스뱅크", AccountType.BANK)),
        ("토스", "토스머니 3,000원", ("토스페이", AccountType.PAY)),
        ("키움증권", "예수금 2,000,000원", ("키움증권", AccountType.INVESTMENT)),
        ("업비트", "보유원화 50,000원", ("업비트", AccountType.CRYPTO)),
        ("1588-0000", "잔액 1원", ("알 수 없음", AccountType.BANK)),
    ],
)
def test_identify_account(sender, text, expected):
    assert identify_account(sender, text) == expected


def test_extract_balance_from_bank_sms():
    record = extract_balance(
        "[신한은행] 03/05 14:20 출금 5,000원 잔액 1,234,000원", "15778000", TS
    )

    assert record is not None
    assert record.account_name == "신한은행"
    assert record.account_type == AccountType.BANK
    assert record.balance == Decimal("1234000")
    assert record.last_updated == T0
    assert record.source == BalanceSource.SMS


def test_extract_balance_accepts_colon_and_negative():
    record = extract_balance("[우리카드] 사용가능한도: -12,500원", "", T0)
    assert record is not None
    assert record.balance == Decimal("-12500")


def test_text_without_balance_yields_nothing():
    assert extract_balance("[신한카드] 03/05 14:20 스타벅스 5,000원 승인", "", TS) is None


def test_tracker_without_store_keeps_latest_in_memory():
    tracker = BalanceTracker()
    tracker.extract_and_save("[신한은행] 잔액 1,000원", "", TS)
    tracker.extract_and_save("[신한은행] 잔액 2,000원", "", TS + 1000)

    latest = tracker.get_balance("신한은행", AccountType.BANK)
    assert latest is not None
    assert latest.balance == Decimal("2000")
    assert len(tracker.all_balances()) == 1
    assert tracker.record_snapshot() is None


def test_total_assets_excludes_cards(store: LedgerStore):
    tracker = BalanceTracker(store)
    tracker.extract_and_save("[신한은행] 잔액 1,000,000원", "", TS)
    tracker.extract_and_save("[신한카드] 이용가능금액 3,000,000원", "", TS)
    tracker.extract_and_save("예수금 500,000원", "키움증권", TS, source=BalanceSource.NOTIFICATION)

    balances = tracker.all_balances()
    assert [b.account_name for b in balances] == ["신한카드", "신한은행", "키움증권"]

    totals = tracker.total_assets()
    assert totals.total == Decimal("1500000")
    assert totals.by_type[AccountType.CARD] == Decimal("3000000")
    assert totals.by_type[AccountType.BANK] == Decimal("1000000")
    assert totals.by_type[AccountType.CRYPTO] == Decimal(0)


def test_balance_upsert_overwrites_previous_value(store: LedgerStore):
    tracker = BalanceTracker(store)
    tracker.extract_and_save("[신한은행] 잔액 1,000원", "", TS)
    tracker.extract_and_save("[신한은행] 잔액 900원", "", TS + 60_000)

    (only,) = store.list_balances()
    assert only.balance == Decimal("900")


def test_record_snapshot(store: LedgerStore):
    tracker = BalanceTracker(store)
    tracker.extract_and_save("[신한은행] 잔액 1,000원", "", TS)

    snapshot_id = tracker.record_snapshot(date(2024, 3, 5))

    assert snapshot_id is not None
    (snap,) = store.list_snapshots()
    assert snap["snapshot_date"] == date(2024, 3, 5)
    assert snap["total_balance"] == Decimal("1000")
    assert snap["account_details"][0]["account_name"] == "신한은행"


class _BrokenStore:
    def upsert_balance(self, record):
        raise RuntimeError("db down")

    def list_balances(self):
        raise RuntimeError("db down")

    def append_snapshot(self, snapshot_date, total_balance, account_details):
        raise RuntimeError("db down")


def test_store_errors_do_not_propagate():
    tracker = BalanceTracker(_BrokenStore())

    record = tracker.extract_and_save("[신한은행] 잔액 1,000원", "", TS)

    assert record is not None
    assert [b.balance for b in tracker.all_balances()] == [Decimal("1000")]
    assert tracker.record_snapshot() is None
