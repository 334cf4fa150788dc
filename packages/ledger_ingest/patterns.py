"""Static institution pattern tables for SMS and push-notification parsing.

Each :class:`InstitutionPattern` couples a sender/title pattern (which
institution or service is speaking) with one or more body patterns that
extract ``merchant`` and ``amount`` through named groups. Tables are ordered
tuples: the first entry whose title pattern *and* a body pattern match wins.

SMS bodies carry an ``[institution]`` tag, so the SMS title patterns are
tested against the sender and the body; notification title patterns are
tested against the notification title.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .models import Direction, SourceChannel


@dataclass(frozen=True, slots=True)
class InstitutionPattern:
    institution_id: str
    title_or_sender_pattern: re.Pattern[str]
    body_patterns: tuple[re.Pattern[str], ...]
    default_direction: Direction
    channel: SourceChannel = SourceChannel.SMS


def _sms(name: str, tag: str, body: str, default: Direction = Direction.EXPENSE) -> InstitutionPattern:
    return InstitutionPattern(
        institution_id=name,
        title_or_sender_pattern=re.compile(re.escape(tag)),
        body_patterns=(re.compile(body, re.DOTALL),),
        default_direction=default,
        channel=SourceChannel.SMS,
    )


def _noti(name: str, title: str, *bodies: str) -> InstitutionPattern:
    return InstitutionPattern(
        institution_id=name,
        title_or_sender_pattern=re.compile(title, re.IGNORECASE),
        body_patterns=tuple(re.compile(b) for b in bodies),
        default_direction=Direction.EXPENSE,
        channel=SourceChannel.NOTIFICATION,
    )


# "MM/DD HH:MM" header common to Korean card/bank SMS.
_STAMP = r"(?:\d{2}/\d{2})\s+(?:\d{2}:\d{2})"


def _head(tag: str) -> str:
    return r"\[" + re.escape(tag) + r"\].*?" + _STAMP + r".*?"


def _card(tag: str) -> str:
    """Card approval: ``[tag] MM/DD HH:MM ... <merchant> 5,000원``."""
    return _head(tag) + r"(?P<merchant>[^\d\s]+)\s+(?P<amount>[\d,]+)원"


def _bank(tag: str) -> str:
    """Bank movement: ``[tag] MM/DD HH:MM 출금 50,000원 <counterparty> 잔액 ...``."""
    return (
        _head(tag)
        + r"(?:입금|출금)\s+(?P<amount>[\d,]+)원"
        + r"\s*(?P<merchant>(?:(?!잔액)[^\n\r\d])*)"
    )


def _pay(tag: str) -> str:
    """Easy-pay SMS: ``[tag] MM/DD HH:MM <merchant> ... 12,000원 ... 결제``."""
    return _head(tag) + r"(?P<merchant>[^\d\s]+).*?(?P<amount>[\d,]+)원.*?결제"


SMS_PATTERNS: tuple[InstitutionPattern, ...] = (
    # Card companies
    _sms("우리카드", "[우리카드]", _card("우리카드") + r"\s+결제"),
    _sms("신한카드", "[신한카드]", _card("신한카드") + r".*?승인"),
    _sms("삼성카드", "[삼성카드]", _card("삼성카드")),
    _sms("현대카드", "[현대카드]", _card("현대카드")),
    _sms("KB국민카드", "[KB국민카드]", _card("KB국민카드")),
    # Banks
    _sms(
        "우리은행",
        "[우리은행]",
        _head("우리은행") + r"(?:입금|출금)\s+(?P<amount>[\d,]+)원"
        r".*?(?:받는분|보내는분):\s*(?P<merchant>[^\n\r]+)",
    ),
    _sms("신한은행", "[신한은행]", _bank("신한은행")),
    _sms("KB국민은행", "[KB국민은행]", _bank("KB국민은행")),
    _sms("카카오뱅크", "[카카오뱅크]", _bank("카카오뱅크")),
    _sms("토스뱅크", "[토스뱅크]", _bank("토스뱅크")),
    # Easy-pay services
    _sms("네이버페이", "[네이버페이]", _pay("네이버페이")),
    _sms("카카오페이", "[카카오페이]", _pay("카카오페이")),
    _sms("토스페이", "[토스]", _pay("토스")),
    _sms("페이코", "[PAYCO]", _pay("PAYCO")),
    _sms("삼성페이", "[삼성페이]", _pay("삼성페이")),
    _sms("LG페이", "[LG페이]", _pay("LG페이")),
    # Other payment services
    _sms(
        "아이뱅크",
        "[아이뱅크]",
        _head("아이뱅크") + r"(?P<merchant>[^\d\s]+).*?(?P<amount>[\d,]+)원",
    ),
    _sms(
        "뱅크월렛카카오",
        "[뱅크월렛카카오]",
        _head("뱅크월렛카카오") + r"(?P<merchant>[^\d\s]+).*?(?P<amount>[\d,]+)원",
    ),
)


_NOTI_PAYMENT = r"(?P<merchant>[^\d\s]+).*?(?P<amount>[\d,]+)원.*?결제"

NOTIFICATION_PATTERNS: tuple[InstitutionPattern, ...] = (
    _noti("네이버페이", r"네이버페이|NAVER\s?Pay", _NOTI_PAYMENT),
    _noti("카카오페이", r"카카오페이|Kakao\s?Pay", _NOTI_PAYMENT),
    _noti(
        "토스",
        r"토스|Toss",
        _NOTI_PAYMENT,
        r"(?P<merchant>[^\d\s]+)에서\s+(?P<amount>[\d,]+)원",
    ),
    _noti("페이코", r"페이코|PAYCO", _NOTI_PAYMENT),
    _noti("삼성페이", r"삼성페이|Samsung\s?Pay", _NOTI_PAYMENT),
)


# Keyword gate: a message is only considered when its sender or body
# mentions one of these.
FINANCIAL_KEYWORDS: tuple[str, ...] = (
    # Card companies
    "우리카드", "신한카드", "삼성카드", "현대카드", "KB국민카드", "NH농협카드", "하나카드",
    "롯데카드", "BC카드",
    # Banks
    "우리은행", "신한은행", "KB국민은행", "카카오뱅크", "토스뱅크", "NH농협은행", "하나은행",
    "KEB하나은행", "기업은행", "수협은행", "새마을금고", "신협", "우체국", "경남은행",
    "대구은행", "부산은행", "광주은행", "전북은행", "제주은행",
    # Easy-pay services
    "네이버페이", "카카오페이", "토스", "PAYCO", "페이코", "삼성페이", "LG페이",
    "뱅크월렛카카오", "아이뱅크",
    # Generic money words
    "결제", "승인", "입금", "출금", "이체", "잔액", "송금", "충전",
)  # fmt: skip

INCOME_MARKERS: tuple[str, ...] = ("입금", "받은돈")
EXPENSE_MARKERS: tuple[str, ...] = ("출금", "결제", "승인", "이체")


# Payment apps whose notifications are parsed; everything else is ignored.
SUPPORTED_NOTIFICATION_PACKAGES: frozenset[str] = frozenset(
    {
        "com.nhn.android.naverpay",
        "com.kakao.talk",
        "viva.republica.toss",
        "com.nhnent.payapp",
        "com.samsung.android.spay",
        "com.lguplus.paynow",
        "com.wooricard.wpay",
        "com.kbcard.cxh.appcard",
        "com.shinhancard.smartshinhan",
        "com.hyundaicard.appcard",
    }
)


def patterns_for(channel: SourceChannel) -> tuple[InstitutionPattern, ...]:
    if channel == SourceChannel.NOTIFICATION:
        return NOTIFICATION_PATTERNS
    return SMS_PATTERNS


__all__ = [
    "InstitutionPattern",
    "SMS_PATTERNS",
    "NOTIFICATION_PATTERNS",
    "FINANCIAL_KEYWORDS",
    "INCOME_MARKERS",
    "EXPENSE_MARKERS",
    "SUPPORTED_NOTIFICATION_PACKAGES",
    "patterns_for",
]
