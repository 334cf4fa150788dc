import pytest

from ledger_ingest.classifier import (
    CATEGORY_PATTERNS,
    FALLBACK_CATEGORY,
    CategoryClassifier,
    CategoryPattern,
)
from ledger_ingest.models import Direction


def _pattern(name, direction, confidence, *keywords):
    return CategoryPattern(frozenset(keywords), name, direction, confidence)


def test_default_table_has_income_and_expense_buckets():
    income = {p.category_name for p in CATEGORY_PATTERNS if p.direction == Direction.INCOME}
    expense = {p.category_name for p in CATEGORY_PATTERNS if p.direction == Direction.EXPENSE}
    assert income == {"급여", "투자수익", "기타수입"}
    assert len(expense) == 15
    assert FALLBACK_CATEGORY not in income | expense


@pytest.mark.parametrize(
    ("description", "direction", "expected"),
    [
        ("스타벅스", Direction.EXPENSE, "카페&간식"),
        ("이마트", Direction.EXPENSE, "편의점&마트&잡화"),
        ("카카오택시", Direction.EXPENSE, "교통&자동차"),
        ("CGV 용산", Direction.EXPENSE, "취미&여가"),
        ("3월 급여", Direction.INCOME, "급여"),
    ],
)
def test_classify_known_merchants(description, direction, expected):
    assert CategoryClassifier().classify(description, direction) == expected


def test_classify_is_case_insensitive_and_direction_scoped():
    clf = CategoryClassifier()
    assert clf.classify("cgv", Direction.EXPENSE) == "취미&여가"
    # Income patterns never answer for expenses and vice versa.
    assert clf.classify("월급", Direction.EXPENSE) is None


def test_classify_empty_or_unknown_returns_none():
    clf = CategoryClassifier()
    assert clf.classify("", Direction.EXPENSE) is None
    assert clf.classify("   ", Direction.EXPENSE) is None
    assert clf.classify("홍길동", Direction.INCOME) is None


def test_confidence_threshold_is_inclusive():
    clf = CategoryClassifier(
        [
            _pattern("below", Direction.EXPENSE, 0.65, "alpha"),
            _pattern("at", Direction.EXPENSE, 0.7, "beta"),
        ]
    )
    assert clf.classify("alpha", Direction.EXPENSE) is None
    assert clf.classify("beta", Direction.EXPENSE) == "at"


def test_highest_confidence_wins_and_ties_keep_table_order():
    clf = CategoryClassifier(
        [
            _pattern("first", Direction.EXPENSE, 0.8, "shop"),
            _pattern("second", Direction.EXPENSE, 0.8, "shop"),
            _pattern("best", Direction.EXPENSE, 0.9, "mall"),
        ]
    )
    assert clf.classify("shop", Direction.EXPENSE) == "first"
    assert clf.classify("shopping mall", Direction.EXPENSE) == "best"


def test_pattern_confidence_must_be_a_probability():
    with pytest.raises(ValueError):
        _pattern("bad", Direction.EXPENSE, 1.5, "x")


def test_available_categories():
    clf = CategoryClassifier()
    assert clf.available_categories(Direction.INCOME) == sorted(["급여", "투자수익", "기타수입"])
    assert len(clf.available_categories()) == 18
