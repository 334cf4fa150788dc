from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from ledger_ingest.duplicates import DuplicateDetector
from ledger_ingest.models import Direction, ParsedTransaction, SourceChannel, StoredTransaction

T0 = datetime(2024, 3, 5, 5, 20, tzinfo=UTC)


def _tx(merchant="스타벅스", amount="5000", at=T0, direction=Direction.EXPENSE, institution="신한카드"):
    return ParsedTransaction.from_text(
        amount=Decimal(amount),
        direction=direction,
        merchant=merchant,
        institution=institution,
        occurred_at=at,
        source_channel=SourceChannel.SMS,
    )


class _FakeStore:
    def __init__(self, rows=(), *, fail=False):
        self.rows = list(rows)
        self.fail = fail
        self.calls = []

    def find_transactions_between(self, *, amount, direction, start, end):
        self.calls.append((amount, direction, start, end))
        if self.fail:
            raise RuntimeError("database is down")
        return [
            r
            for r in self.rows
            if r.amount == amount and r.direction == direction and start <= r.created_at <= end
        ]


def _stored(description, at, amount="5000"):
    return StoredTransaction(
        id=1,
        amount=Decimal(amount),
        direction=Direction.EXPENSE,
        description=description,
        occurred_on=at.date(),
        created_at=at,
    )


def test_same_purchase_thirty_seconds_apart_is_duplicate():
    detector = DuplicateDetector()
    assert detector.is_duplicate(_tx()) is False
    assert detector.is_duplicate(_tx(at=T0 + timedelta(seconds=30), institution="네이버페이")) is True


def test_first_sighting_is_admitted_once():
    detector = DuplicateDetector()
    assert detector.is_duplicate(_tx()) is False
    assert len(detector.recent_entries()) == 1
    assert detector.is_duplicate(_tx()) is True
    assert len(detector.recent_entries()) == 1


@pytest.mark.parametrize(
    ("offset", "expected"),
    [
        (timedelta(minutes=3), True),
        (timedelta(minutes=3, milliseconds=1), False),
    ],
)
def test_window_edges(offset, expected):
    detector = DuplicateDetector(window=timedelta(minutes=3))
    detector.is_duplicate(_tx())
    assert detector.is_duplicate(_tx(at=T0 + offset)) is expected


def test_amount_direction_and_merchant_must_all_match():
    detector = DuplicateDetector()
    detector.is_duplicate(_tx())
    assert detector.is_duplicate(_tx(amount="5001")) is False
    assert detector.is_duplicate(_tx(direction=Direction.INCOME)) is False
    assert detector.is_duplicate(_tx(merchant="이디야")) is False


def test_merchant_spelling_variants_match():
    detector = DuplicateDetector()
    detector.is_duplicate(_tx(merchant="스타벅스 강남점"))
    assert detector.is_duplicate(_tx(merchant="스타벅스", at=T0 + timedelta(seconds=5))) is True


def test_capacity_bounds_buffer():
    detector = DuplicateDetector(capacity=3)
    for i in range(5):
        detector.is_duplicate(_tx(merchant=f"가게{i}", amount=str(1000 + i)))
    names = [e.merchant for e in detector.recent_entries()]
    assert names == ["가게2", "가게3", "가게4"]


def test_cleanup_evicts_expired_entries():
    detector = DuplicateDetector()
    detector.is_duplicate(_tx())
    assert detector.cleanup(T0 + timedelta(minutes=1)) == 0
    assert detector.cleanup(T0 + timedelta(minutes=10)) == 1
    assert detector.recent_entries() == []


def test_store_lookup_catches_duplicates_across_restarts():
    store = _FakeStore([_stored("신한카드 - 스타벅스", T0)])
    detector = DuplicateDetector(store)

    assert detector.is_duplicate(_tx(at=T0 + timedelta(seconds=40), institution="토스")) is True
    (_, _, start, end) = store.calls[0]
    assert start == T0 + timedelta(seconds=40) - timedelta(minutes=3)
    assert end == T0 + timedelta(seconds=40) + timedelta(minutes=3)


def test_store_rows_outside_window_do_not_match():
    store = _FakeStore([_stored("신한카드 - 스타벅스", T0 - timedelta(minutes=10))])
    assert DuplicateDetector(store).is_duplicate(_tx()) is False


def test_store_failure_fails_open():
    detector = DuplicateDetector(_FakeStore(fail=True))
    assert detector.is_duplicate(_tx()) is False
    # Still admitted to the in-memory buffer.
    assert detector.is_duplicate(_tx()) is True


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        DuplicateDetector(capacity=0)
