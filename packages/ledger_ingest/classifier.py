"""Keyword-based category suggestion.

``CategoryClassifier.classify`` scans the pattern table for the given
direction and returns the category of the highest-confidence pattern whose
keyword appears (case-insensitively) in the description. Suggestions below
:data:`MIN_CONFIDENCE` are withheld; callers fall back to
:data:`FALLBACK_CATEGORY` (see :mod:`ledger_ingest.categorize`).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import Direction

MIN_CONFIDENCE = 0.7
FALLBACK_CATEGORY = "기타"


@dataclass(frozen=True, slots=True)
class CategoryPattern:
    keywords: frozenset[str]
    category_name: str
    direction: Direction
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("CategoryPattern.confidence must be within [0, 1]")

    def matches(self, lowered: str) -> bool:
        return any(k.lower() in lowered for k in self.keywords)


def _p(category: str, direction: Direction, confidence: float, *keywords: str) -> CategoryPattern:
    return CategoryPattern(frozenset(keywords), category, direction, confidence)


_IN = Direction.INCOME
_OUT = Direction.EXPENSE

CATEGORY_PATTERNS: tuple[CategoryPattern, ...] = (
    # Income
    _p("급여", _IN, 0.95, "월급", "급여", "연봉", "보너스", "상여", "임금", "수당", "급료", "사무소", "회사", "직장"),
    _p("투자수익", _IN, 0.9, "이자", "예금이자", "적금이자", "투자", "배당", "수익", "펀드", "주식"),
    _p("기타수입", _IN, 0.8, "용돈", "경조비입금", "송금입금", "이체입금", "환급", "보험금", "지원금"),
    # Expense
    _p("교육", _OUT, 0.95, "교육", "학원", "과외", "학습", "강의", "도서", "책", "교재", "수업", "등록금", "학비", "교과서", "문제집", "사교육"),
    _p("식비", _OUT, 0.9, "식비", "음식", "식당", "외식", "레스토랑", "한식", "중식", "일식", "양식", "분식", "치킨", "피자", "햄버거", "족발", "보쌈", "찜닭", "떡볶이"),
    _p("경조사", _OUT, 0.95, "경조사", "축의", "부의", "조의", "결혼", "장례", "돌잔치", "선물", "꽃", "화환", "축하", "부조"),
    _p("취미&여가", _OUT, 0.9, "취미", "여가", "오락", "게임", "영화", "CGV", "롯데시네마", "메가박스", "노래방", "PC방", "볼링", "당구", "골프", "야구", "축구", "공연", "콘서트"),
    _p("교통&자동차", _OUT, 0.95, "교통", "자동차", "차량", "지하철", "버스", "택시", "카카오택시", "우버", "주유", "기름", "휘발유", "경유", "SK에너지", "GS칼텍스", "S-OIL", "현대오일뱅크", "톨게이트", "통행료", "주차", "자동차보험", "정비", "수리"),
    _p("쇼핑", _OUT, 0.9, "쇼핑", "백화점", "아울렛", "온라인쇼핑", "쿠팡", "11번가", "G마켓", "옥션", "네이버쇼핑", "티몬", "위메프", "당근마켓", "의류", "옷", "신발", "가방", "액세서리"),
    _p("여행&숙박", _OUT, 0.9, "여행", "숙박", "호텔", "모텔", "펜션", "리조트", "항공", "비행기", "기차", "KTX", "고속버스", "시외버스", "관광", "렌터카", "여행사"),
    _p("보험&세금&기타금융", _OUT, 0.9, "보험", "세금", "금융", "적금", "저축", "펀드", "투자", "대출", "이자", "수수료", "연금", "국민연금", "건강보험", "자동차보험", "화재보험", "현대해"),
    _p("편의점&마트&잡화", _OUT, 0.95, "편의점", "마트", "잡화", "GS25", "CU", "세븐일레븐", "미니스톱", "이마트24", "이마트", "롯데마트", "홈플러스", "코스트코", "하나로마트", "농협마트"),
    _p("유흥&술", _OUT, 0.95, "유흥", "술", "소주", "맥주", "와인", "위스키", "칵테일", "주점", "호프", "펜", "바", "클럽", "치킨호프", "주류", "안주"),
    _p("의료&건강&피트니스", _OUT, 0.95, "의료", "건강", "피트니스", "병원", "의원", "클리닉", "치과", "한의원", "약국", "진료", "검진", "건강검진", "헬스장", "헬스클럽", "요가", "필라테스", "수영장"),
    _p("미용", _OUT, 0.95, "미용", "화장품", "미용실", "헤어샵", "네일샵", "피부관리", "에스테틱", "마사지", "스파", "뷰티", "메이크업"),
    _p("생활", _OUT, 0.85, "생활", "생필품", "세제", "화장지", "세탁", "청소", "빨래방", "세탁소", "생활용품", "일용품"),
    _p("주거&통신", _OUT, 0.95, "주거", "통신", "월세", "전세", "관리비", "전기", "가스", "수도", "인터넷", "와이파이", "핸드폰", "휴대폰", "SKT", "KT", "LG유플러스", "한국전력", "도시가스"),
    _p("카페&간식", _OUT, 0.95, "카페", "간식", "커피", "스타벅스", "이디야", "빽다방", "투썸", "엔젤리너스", "탐앤탐스", "공차", "컴포즈커피", "메가커피", "빈스빈스", "디저트", "케이크", "아이스크림", "과자"),
)  # fmt: skip


class CategoryClassifier:
    def __init__(
        self,
        patterns: Iterable[CategoryPattern] = CATEGORY_PATTERNS,
        *,
        min_confidence: float = MIN_CONFIDENCE,
    ) -> None:
        self._patterns = tuple(patterns)
        self._min_confidence = min_confidence

    @property
    def patterns(self) -> tuple[CategoryPattern, ...]:
        return self._patterns

    def classify(self, description: str, direction: Direction) -> str | None:
        """Return the best-matching category name, or ``None`` below the threshold.

        Ties on confidence keep the earlier pattern in table order.
        """

        lowered = (description or "").lower()
        if not lowered.strip():
            return None

        best: CategoryPattern | None = None
        for pattern in self._patterns:
            if pattern.direction != direction:
                continue
            if not pattern.matches(lowered):
                continue
            if best is None or pattern.confidence > best.confidence:
                best = pattern

        if best is None or best.confidence < self._min_confidence:
            return None
        return best.category_name

    def available_categories(self, direction: Direction | None = None) -> list[str]:
        names = {p.category_name for p in self._patterns if direction is None or p.direction == direction}
        return sorted(names)


__all__ = [
    "MIN_CONFIDENCE",
    "FALLBACK_CATEGORY",
    "CategoryPattern",
    "CATEGORY_PATTERNS",
    "CategoryClassifier",
]
