"""Registry of known bank/card/securities statement layouts.

A :class:`BankTemplate` maps logical fields to column indices of an exported
statement. :func:`detect_template` picks a template from a header row by
counting how many of the template's sample column names occur in it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .models import InstitutionCategory

# Fraction of a template's sample columns that must appear in the header.
DETECTION_THRESHOLD = 0.7


@dataclass(frozen=True, slots=True)
class ColumnMap:
    date: int
    description: int | None = None
    withdrawal: int | None = None
    deposit: int | None = None
    amount: int | None = None
    balance: int | None = None
    merchant: int | None = None

    def __post_init__(self) -> None:
        if self.amount is None and self.withdrawal is None and self.deposit is None:
            raise ValueError("ColumnMap needs an amount column or withdrawal/deposit columns")

    @property
    def has_split_amounts(self) -> bool:
        return self.withdrawal is not None or self.deposit is not None


@dataclass(frozen=True, slots=True)
class BankTemplate:
    template_id: str
    name: str
    institution_category: InstitutionCategory
    columns: ColumnMap
    date_format: str
    has_header: bool = True
    skip_rows: int = 0
    sample_columns: tuple[str, ...] = ()
    encoding: str | None = None

    @property
    def data_start(self) -> int:
        """Index of the first data row."""

        return max(1 if self.has_header else 0, self.skip_rows)


_BANK = InstitutionCategory.BANK
_CARD = InstitutionCategory.CARD
_SEC = InstitutionCategory.SECURITIES
_OTHER = InstitutionCategory.OTHER

BANK_TEMPLATES: tuple[BankTemplate, ...] = (
    # Banks
    BankTemplate(
        "kb_bank",
        "KB국민은행",
        _BANK,
        ColumnMap(date=0, description=2, withdrawal=3, deposit=4, balance=5),
        "YYYY-MM-DD",
        sample_columns=("거래일자", "거래시간", "내용", "출금금액", "입금금액", "잔액", "취급점"),
    ),
    BankTemplate(
        "shinhan_bank",
        "신한은행",
        _BANK,
        ColumnMap(date=0, description=1, withdrawal=2, deposit=3, balance=4),
        "YYYY.MM.DD",
        sample_columns=("거래일", "적요", "출금", "입금", "잔액", "거래처"),
    ),
    BankTemplate(
        "woori_bank",
        "우리은행",
        _BANK,
        ColumnMap(date=0, description=2, withdrawal=3, deposit=4, balance=5),
        "YYYY-MM-DD",
        sample_columns=("거래일자", "거래시간", "거래내용", "출금금액", "입금금액", "잔액"),
    ),
    BankTemplate(
        "hana_bank",
        "하나은행",
        _BANK,
        ColumnMap(date=0, description=1, withdrawal=2, deposit=3, balance=4),
        "YYYY-MM-DD",
        sample_columns=("거래일자", "적요", "출금금액", "입금금액", "잔액"),
    ),
    BankTemplate(
        "nh_bank",
        "NH농협은행",
        _BANK,
        ColumnMap(date=0, description=1, withdrawal=2, deposit=3, balance=4),
        "YYYY-MM-DD",
        sample_columns=("거래일자", "거래내용", "출금금액", "입금금액", "잔액"),
    ),
    # Card companies
    BankTemplate(
        "woori_card",
        "우리카드",
        _CARD,
        ColumnMap(date=0, merchant=2, amount=3),
        "YYYY-MM-DD",
        sample_columns=("이용일자", "이용시간", "이용처", "이용금액", "할부개월"),
    ),
    BankTemplate(
        "samsung_card",
        "삼성카드",
        _CARD,
        ColumnMap(date=0, merchant=2, amount=3),
        "YYYY-MM-DD",
        sample_columns=("승인일자", "승인시간", "가맹점명", "승인금액", "할부"),
    ),
    BankTemplate(
        "hyundai_card",
        "현대카드",
        _CARD,
        ColumnMap(date=0, merchant=1, amount=2),
        "YYYY.MM.DD",
        sample_columns=("이용일자", "가맹점명", "이용금액", "할부개월", "구분"),
    ),
    BankTemplate(
        "shinhan_card",
        "신한카드",
        _CARD,
        ColumnMap(date=0, merchant=1, amount=2),
        "YYYY-MM-DD",
        sample_columns=("승인일자", "가맹점", "승인금액", "할부"),
    ),
    BankTemplate(
        "kb_card",
        "KB국민카드",
        _CARD,
        ColumnMap(date=0, merchant=1, amount=2),
        "YYYY-MM-DD",
        sample_columns=("이용일자", "가맹점명", "이용금액", "할부개월"),
    ),
    # Securities
    BankTemplate(
        "kiwoom_securities",
        "키움증권",
        _SEC,
        ColumnMap(date=0, description=1, withdrawal=2, deposit=3, balance=4),
        "YYYY-MM-DD",
        sample_columns=("거래일자", "거래내역", "출금", "입금", "잔고"),
    ),
    BankTemplate(
        "mirae_asset",
        "미래에셋증권",
        _SEC,
        ColumnMap(date=0, description=1, amount=2, balance=3),
        "YYYY-MM-DD",
        sample_columns=("거래일", "거래내용", "거래금액", "잔액"),
    ),
    # Generic layouts without a header row
    BankTemplate(
        "generic_3col",
        "범용 (날짜, 내용, 금액)",
        _OTHER,
        ColumnMap(date=0, description=1, amount=2),
        "auto",
        has_header=False,
        sample_columns=("날짜", "내용", "금액"),
    ),
    BankTemplate(
        "generic_4col",
        "범용 (날짜, 내용, 출금, 입금)",
        _OTHER,
        ColumnMap(date=0, description=1, withdrawal=2, deposit=3),
        "auto",
        has_header=False,
        sample_columns=("날짜", "내용", "출금", "입금"),
    ),
)


def get_template(template_id: str) -> BankTemplate | None:
    for t in BANK_TEMPLATES:
        if t.template_id == template_id:
            return t
    return None


def templates_by_category(
    category: InstitutionCategory | str | None = None,
) -> list[BankTemplate]:
    if category is None:
        return list(BANK_TEMPLATES)
    return [t for t in BANK_TEMPLATES if t.institution_category == category]


def header_match_ratio(header_row: Sequence[str], template: BankTemplate) -> float:
    if not template.sample_columns:
        return 0.0
    joined = "|".join(str(h) for h in header_row).lower()
    hits = sum(1 for s in template.sample_columns if s.lower() in joined)
    return hits / len(template.sample_columns)


def detect_template(
    header_row: Sequence[str],
    templates: Sequence[BankTemplate] = BANK_TEMPLATES,
) -> BankTemplate | None:
    """Return the first template whose sample columns cover >= 70% of the header."""

    for t in templates:
        if header_match_ratio(header_row, t) >= DETECTION_THRESHOLD:
            return t
    return None


__all__ = [
    "DETECTION_THRESHOLD",
    "ColumnMap",
    "BankTemplate",
    "BANK_TEMPLATES",
    "get_template",
    "templates_by_category",
    "header_match_ratio",
    "detect_template",
]
