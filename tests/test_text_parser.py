from datetime import UTC, datetime
from decimal import Decimal

from ledger_ingest.models import Direction, SourceChannel, to_epoch_ms
from ledger_ingest.text_parser import TextNormalizer, infer_direction, is_financial_text

TS = to_epoch_ms(datetime(2024, 3, 5, 5, 20, tzinfo=UTC))


def test_shinhan_card_approval_sms():
    tx = TextNormalizer().parse("[신한카드] 03/05 14:20 스타벅스 5,000원 승인", "15447200", TS)

    assert tx is not None
    assert tx.amount == Decimal("5000")
    assert tx.merchant == "스타벅스"
    assert tx.direction == Direction.EXPENSE
    assert tx.institution == "신한카드"
    assert tx.description == "신한카드 - 스타벅스"
    assert tx.category == "카페&간식"
    assert tx.source_channel == SourceChannel.SMS
    assert tx.occurred_at == datetime(2024, 3, 5, 5, 20, tzinfo=UTC)


def test_bank_deposit_sms_is_income_with_counterparty():
    text = "[신한은행] 03/05 14:20 입금 50,000원 홍길동 잔액 1,234,000원"
    tx = TextNormalizer().parse(text, "15778000", TS)

    assert tx is not None
    assert tx.amount == Decimal("50000")
    assert tx.direction == Direction.INCOME
    assert tx.merchant == "홍길동"
    assert tx.institution == "신한은행"


def test_woori_bank_transfer_uses_counterparty_field():
    text = "[우리은행] 03/05 09:10 출금 120,000원\n받는분: 김철수"
    tx = TextNormalizer().parse(text, "15885000", TS)

    assert tx is not None
    assert tx.amount == Decimal("120000")
    assert tx.direction == Direction.EXPENSE
    assert tx.merchant == "김철수"


def test_payment_notification():
    tx = TextNormalizer().parse(
        "이마트 12,000원 결제완료", "네이버페이", TS, channel=SourceChannel.NOTIFICATION
    )

    assert tx is not None
    assert tx.institution == "네이버페이"
    assert tx.merchant == "이마트"
    assert tx.amount == Decimal("12000")
    assert tx.category == "편의점&마트&잡화"
    assert tx.source_channel == SourceChannel.NOTIFICATION


def test_notification_second_body_pattern():
    tx = TextNormalizer().parse(
        "올리브영에서 8,900원", "토스", TS, channel=SourceChannel.NOTIFICATION
    )

    assert tx is not None
    assert tx.institution == "토스"
    assert tx.merchant == "올리브영"
    assert tx.amount == Decimal("8900")


def test_non_financial_text_returns_none():
    assert TextNormalizer().parse("저녁 7시에 만나요", "010-1234-5678", TS) is None


def test_financial_keyword_without_pattern_returns_none():
    assert TextNormalizer().parse("이번 달 카드 결제일 안내", "1588", TS) is None


def test_zero_amount_is_not_a_transaction():
    assert TextNormalizer().parse("[신한카드] 03/05 14:20 스타벅스 0원 승인", "", TS) is None


def test_parse_never_raises_on_odd_input():
    normalizer = TextNormalizer()
    assert normalizer.parse("", "", TS) is None
    assert normalizer.parse(None, None, TS) is None  # type: ignore[arg-type]
    assert normalizer.parse("[신한카드] 03/05 14:20 스타벅스 5,000원 승인", "", -1) is not None


def test_merchant_is_truncated():
    long_name = "가" * 60
    tx = TextNormalizer().parse(f"[삼성카드] 03/05 14:20 {long_name} 9,900원", "", TS)

    assert tx is not None
    assert len(tx.merchant) == 40


def test_keyword_gate_and_direction_markers():
    assert is_financial_text("스타벅스 5,000원", "신한카드")
    assert not is_financial_text("hello", "friend")
    assert infer_direction("입금 완료", Direction.EXPENSE) == Direction.INCOME
    assert infer_direction("체크 결제", Direction.INCOME) == Direction.EXPENSE
    assert infer_direction("알림", Direction.INCOME) == Direction.INCOME


def test_empty_pattern_table_disables_a_channel():
    normalizer = TextNormalizer(sms_patterns=())

    assert normalizer.parse("[신한카드] 03/05 14:20 스타벅스 5,000원 승인", "15447200", TS) is None
    noti = normalizer.parse(
        "이마트 12,000원 결제완료", "네이버페이", TS, channel=SourceChannel.NOTIFICATION
    )
    assert noti is not None
