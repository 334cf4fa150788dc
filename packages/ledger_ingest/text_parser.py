"""Parse bank/card SMS and payment-app notifications into transactions.

``TextNormalizer.parse`` is total: unrecognized input yields ``None`` and
never raises. Parsing runs in three steps:

1. keyword gate over :data:`~ledger_ingest.patterns.FINANCIAL_KEYWORDS`;
2. ordered scan of the channel's institution table (first entry whose title
   pattern and one of its body patterns match wins);
3. amount/direction/merchant normalization plus an optional category
   suggestion from the :class:`~ledger_ingest.classifier.CategoryClassifier`.
"""

from __future__ import annotations

import re
from datetime import datetime

from .classifier import CategoryClassifier
from .logging_setup import get_logger
from .models import Direction, ParsedTransaction, SourceChannel, from_epoch_ms
from .normalizers import parse_positive_amount
from .patterns import (
    EXPENSE_MARKERS,
    FINANCIAL_KEYWORDS,
    INCOME_MARKERS,
    InstitutionPattern,
    patterns_for,
)

logger = get_logger(__name__)


def is_financial_text(text: str, sender: str = "") -> bool:
    haystack = f"{sender}\n{text}"
    return any(k in haystack for k in FINANCIAL_KEYWORDS)


def infer_direction(text: str, default: Direction) -> Direction:
    if any(m in text for m in INCOME_MARKERS):
        return Direction.INCOME
    if any(m in text for m in EXPENSE_MARKERS):
        return Direction.EXPENSE
    return default


def _match_body(entry: InstitutionPattern, text: str) -> re.Match[str] | None:
    for pattern in entry.body_patterns:
        m = pattern.search(text)
        if m is not None:
            return m
    return None


def _title_matches(entry: InstitutionPattern, sender: str, text: str) -> bool:
    if entry.title_or_sender_pattern.search(sender):
        return True
    # SMS bodies carry the "[institution]" tag themselves.
    return entry.channel == SourceChannel.SMS and bool(entry.title_or_sender_pattern.search(text))


class TextNormalizer:
    """Turn one raw SMS/notification text into a :class:`ParsedTransaction`."""

    def __init__(
        self,
        classifier: CategoryClassifier | None = None,
        *,
        sms_patterns: tuple[InstitutionPattern, ...] | None = None,
        notification_patterns: tuple[InstitutionPattern, ...] | None = None,
    ) -> None:
        self._classifier = classifier if classifier is not None else CategoryClassifier()
        if sms_patterns is None:
            sms_patterns = patterns_for(SourceChannel.SMS)
        if notification_patterns is None:
            notification_patterns = patterns_for(SourceChannel.NOTIFICATION)
        self._tables = {
            SourceChannel.SMS: sms_patterns,
            SourceChannel.NOTIFICATION: notification_patterns,
        }

    def parse(
        self,
        raw_text: str,
        sender_or_title: str,
        timestamp: int | datetime,
        *,
        channel: SourceChannel = SourceChannel.SMS,
    ) -> ParsedTransaction | None:
        """Return a candidate transaction, or ``None`` when the text is not one.

        ``timestamp`` is epoch milliseconds or an aware datetime.
        """

        try:
            return self._parse(raw_text or "", sender_or_title or "", timestamp, channel)
        except Exception:  # noqa: BLE001
            logger.debug("Failed to parse %s text from %r", channel, sender_or_title, exc_info=True)
            return None

    def _parse(
        self,
        text: str,
        sender: str,
        timestamp: int | datetime,
        channel: SourceChannel,
    ) -> ParsedTransaction | None:
        if not is_financial_text(text, sender):
            return None

        table = self._tables.get(channel)
        if not table:
            return None

        for entry in table:
            if not _title_matches(entry, sender, text):
                continue
            m = _match_body(entry, text)
            if m is None:
                continue
            amount = parse_positive_amount(m.group("amount"))
            if amount is None:
                # Zero/garbage amounts are not transactions; keep scanning.
                continue

            direction = infer_direction(text, entry.default_direction)
            occurred_at = timestamp if isinstance(timestamp, datetime) else from_epoch_ms(timestamp)
            merchant = m.groupdict().get("merchant")
            tx = ParsedTransaction.from_text(
                amount=amount,
                direction=direction,
                merchant=merchant,
                institution=entry.institution_id,
                occurred_at=occurred_at,
                source_channel=channel,
            )
            category = self._classifier.classify(tx.merchant, direction)
            logger.debug(
                "Parsed %s from %s: %s %s (%s)",
                channel,
                entry.institution_id,
                direction,
                amount,
                tx.merchant,
            )
            return tx.with_category(category)

        return None


__all__ = ["TextNormalizer", "is_financial_text", "infer_direction"]
