from datetime import UTC, datetime
from decimal import Decimal

import pytest

from ledger_ingest.models import UNKNOWN_MERCHANT, Direction, SourceChannel
from ledger_ingest.tabular import (
    RowError,
    extract_institution,
    parse_row,
    parse_rows,
    read_delimited_text,
)
from ledger_ingest.templates import get_template

HANA = get_template("hana_bank")
GENERIC_3 = get_template("generic_3col")
SAMSUNG_CARD = get_template("samsung_card")


def test_withdrawal_row_parses_to_expense():
    rows = [["거래일자", "적요", "출금금액", "입금금액"], ["2024-01-10", "스타벅스", "5000", ""]]
    result = parse_rows(rows, HANA)

    assert result.errors == ()
    (tx,) = result.transactions
    assert tx.amount == Decimal("5000")
    assert tx.direction == Direction.EXPENSE
    assert tx.description == "스타벅스"
    assert tx.merchant == "스타벅스"
    assert tx.source_channel == SourceChannel.CSV_UPLOAD
    assert tx.occurred_at == datetime(2024, 1, 10, tzinfo=UTC)
    assert tx.occurred_on.isoformat() == "2024-01-10"


def test_deposit_row_parses_to_income():
    tx = parse_row(["2024.03.05", "급여 신한은행", "", "1,234,567원"], HANA)

    assert tx.amount == Decimal("1234567")
    assert tx.direction == Direction.INCOME
    assert tx.institution == "신한은행"


def test_signed_amount_column_sets_direction():
    expense = parse_row(["05-03-2024", "편의점", "-500"], GENERIC_3)
    income = parse_row(["2024/03/05", "환급", "500"], GENERIC_3)

    assert (expense.amount, expense.direction) == (Decimal("500"), Direction.EXPENSE)
    assert (income.amount, income.direction) == (Decimal("500"), Direction.INCOME)
    assert expense.occurred_on == income.occurred_on


def test_card_template_falls_back_to_merchant_column():
    tx = parse_row(["2024-03-05", "14:20", "이마트 성수점", "-32,000", "일시불"], SAMSUNG_CARD)

    assert tx.description == "이마트 성수점"
    assert tx.direction == Direction.EXPENSE


@pytest.mark.parametrize(
    ("row", "reason"),
    [
        (["2024-13-40", "스타벅스", "5000", ""], "invalid date"),
        (["2024-01-10", "", "5000", ""], "description is empty"),
        (["2024-01-10", "스타벅스", "", ""], "both zero"),
        (["2024-01-10", "스타벅스", "오천원", ""], "invalid withdrawal amount"),
    ],
)
def test_row_errors(row, reason):
    with pytest.raises(RowError, match=reason):
        parse_row(row, HANA)


def test_zero_signed_amount_is_an_error():
    with pytest.raises(RowError, match="zero"):
        parse_row(["2024-01-10", "취소", "0"], GENERIC_3)


def test_errors_carry_line_numbers_and_do_not_abort_batch():
    rows = [
        ["거래일자", "적요", "출금금액", "입금금액"],
        ["2024-01-10", "스타벅스", "5000", ""],
        ["", "", "", ""],
        ["not a date", "이디야", "3000", ""],
        ["2024-01-11", "월급", "", "3,000,000"],
    ]
    result = parse_rows(rows, HANA)

    assert len(result.transactions) == 2
    assert result.errors == ("line 4: invalid date 'not a date'",)
    assert result.failed is False


def test_failed_only_when_nothing_parsed_and_errors_exist():
    bad = parse_rows([["h"], ["x", "y", "z"]], HANA)
    assert bad.transactions == ()
    assert bad.failed is True

    empty = parse_rows([["거래일자", "적요", "출금금액", "입금금액"]], HANA)
    assert empty.failed is False


def test_headerless_template_parses_first_row():
    result = parse_rows([["2024-01-10", "스타벅스", "-5000"]], GENERIC_3)
    assert len(result.transactions) == 1


def test_long_description_is_truncated_for_merchant_only():
    desc = "가" * 50
    tx = parse_row(["2024-01-10", desc, "1000", ""], HANA)
    assert tx.description == desc
    assert len(tx.merchant) == 40
    assert tx.merchant != UNKNOWN_MERCHANT


def test_read_delimited_text_detects_tab_and_quotes():
    assert read_delimited_text("a\tb\n1\t2\n") == [["a", "b"], ["1", "2"]]
    assert read_delimited_text('날짜,내용,금액\n2024-01-10,"스타벅스, 강남",-5000\n') == [
        ["날짜", "내용", "금액"],
        ["2024-01-10", "스타벅스, 강남", "-5000"],
    ]


def test_extract_institution_prefers_specific_names():
    assert extract_institution("KEB하나은행 이체") == "KEB하나은행"
    assert extract_institution("스타벅스") is None
