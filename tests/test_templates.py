import pytest

from ledger_ingest.models import InstitutionCategory
from ledger_ingest.templates import (
    BANK_TEMPLATES,
    BankTemplate,
    ColumnMap,
    detect_template,
    get_template,
    header_match_ratio,
    templates_by_category,
)


def test_registry_ids_are_unique():
    ids = [t.template_id for t in BANK_TEMPLATES]
    assert len(ids) == len(set(ids)) == 14


def test_withdrawal_deposit_header_detects_hana():
    template = detect_template(["거래일자", "적요", "출금금액", "입금금액"])

    assert template is not None
    assert template.template_id == "hana_bank"
    assert template.columns.has_split_amounts


def test_detection_threshold_is_seventy_percent():
    kb = get_template("kb_bank")
    five_of_seven = ["거래일자", "거래시간", "내용", "출금금액", "입금금액"]
    four_of_seven = ["거래일자", "거래시간", "내용", "출금금액"]

    assert header_match_ratio(five_of_seven, kb) == pytest.approx(5 / 7)
    assert detect_template(five_of_seven) is kb
    assert header_match_ratio(four_of_seven, kb) == pytest.approx(4 / 7)
    assert detect_template(four_of_seven) is None


def test_detection_matches_substrings_case_insensitively():
    template = detect_template(["이용일자 ", "이용시간", "이용처(가맹점)", "이용금액(원)", "할부개월"])
    assert template is not None
    assert template.template_id == "woori_card"


def test_unknown_header_detects_nothing():
    assert detect_template(["Date", "Description", "Amount"]) is None
    assert detect_template([]) is None


def test_lookup_and_filtering():
    assert get_template("nope") is None
    cards = templates_by_category(InstitutionCategory.CARD)
    assert {t.template_id for t in cards} == {
        "woori_card",
        "samsung_card",
        "hyundai_card",
        "shinhan_card",
        "kb_card",
    }
    assert len(templates_by_category()) == len(BANK_TEMPLATES)


def test_headerless_templates_start_at_first_row():
    generic = get_template("generic_3col")
    assert generic.has_header is False
    assert generic.data_start == 0
    assert get_template("kb_bank").data_start == 1


def test_column_map_requires_an_amount_column():
    with pytest.raises(ValueError):
        ColumnMap(date=0, description=1)


def _template(template_id, *sample_columns):
    return BankTemplate(
        template_id=template_id,
        name=template_id,
        institution_category=InstitutionCategory.BANK,
        columns=ColumnMap(date=0, description=1, amount=2),
        date_format="YYYY-MM-DD",
        sample_columns=sample_columns,
    )


def test_detection_threshold_is_inclusive():
    ten = _template("ten", *(f"col{i}" for i in range(10)))
    exactly_seven = [f"col{i}" for i in range(7)]
    only_six = [f"col{i}" for i in range(6)]

    assert header_match_ratio(exactly_seven, ten) == pytest.approx(0.7)
    assert detect_template(exactly_seven, [ten]) is ten
    assert detect_template(only_six, [ten]) is None


def test_first_template_over_the_threshold_wins():
    first = _template("first", "일자", "내용", "금액")
    second = _template("second", "일자", "내용", "금액", "잔액")
    header = ["일자", "내용", "금액", "잔액"]

    assert header_match_ratio(header, second) == 1.0
    assert detect_template(header, [first, second]) is first
    assert detect_template(header, [second, first]) is second
