"""One-shot processing of the SMS inbox history.

At first launch the inbox already holds months of card and bank messages.
:class:`HistoricalDataProcessor` replays them through the live pipeline in
three stages:

(a) fetch at most ``backlog_max_messages`` stored SMS, keep the last
    ``backlog_days`` days, and process them oldest first;
(b) notification history (the platform exposes none, so this only logs);
(c) summarize the balances collected along the way.

Only one run may be in flight; a concurrent call returns ``None``
immediately instead of queueing.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from os import PathLike
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .config import Settings
from .logging_setup import get_logger
from .models import BalanceRecord, SmsMessage, SourceChannel, TotalAssets, from_epoch_ms
from .pipeline import IngestionPipeline, Outcome

logger = get_logger(__name__)

type ProgressCallback = Callable[[int, int], None]


class SmsHistorySource(Protocol):
    def list_messages(self, max_count: int) -> Sequence[SmsMessage]: ...


class JsonlSmsSource:
    """Read an exported SMS dump: one ``{"body", "address", "date"}`` object per line."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self.path = Path(path)

    def list_messages(self, max_count: int) -> list[SmsMessage]:
        messages: list[SmsMessage] = []
        with self.path.open(encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    messages.append(SmsMessage.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as exc:
                    logger.warning("Skipping %s line %d: %s", self.path.name, lineno, exc)
        # Inbox queries return newest first.
        messages.sort(key=lambda m: m.date, reverse=True)
        return messages[:max_count]


@dataclass(slots=True)
class BacklogReport:
    fetched: int = 0
    in_window: int = 0
    processed: int = 0
    persisted: int = 0
    duplicates: int = 0
    failed: int = 0
    balances: list[BalanceRecord] = field(default_factory=list)
    total_assets: TotalAssets | None = None


class HistoricalDataProcessor:
    def __init__(
        self,
        source: SmsHistorySource,
        pipeline: IngestionPipeline,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self._source = source
        self._pipeline = pipeline
        self._settings = settings or Settings()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._progress = progress
        self._in_flight = threading.Lock()

    @property
    def is_processing(self) -> bool:
        return self._in_flight.locked()

    def process_backlog(self) -> BacklogReport | None:
        if not self._in_flight.acquire(blocking=False):
            logger.info("Backlog processing already in progress; ignoring request")
            return None
        try:
            logger.info("Backlog processing started")
            report = BacklogReport()
            self._process_sms(report)
            self._process_notifications()
            self._summarize_balances(report)
            logger.info(
                "Backlog processing finished: %d processed, %d saved, %d duplicate(s), %d failed",
                report.processed,
                report.persisted,
                report.duplicates,
                report.failed,
            )
            return report
        finally:
            self._in_flight.release()

    # ----- stage (a) -----

    def _process_sms(self, report: BacklogReport) -> None:
        try:
            messages = list(self._source.list_messages(self._settings.backlog_max_messages))
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read SMS history; skipping SMS backlog")
            return

        report.fetched = len(messages)
        cutoff = self._clock() - self._settings.backlog_max_age
        recent: list[SmsMessage] = []
        for m in messages:
            try:
                sent_at = from_epoch_ms(m.date)
            except (ValueError, OverflowError, OSError):
                logger.warning("Skipping SMS from %r with unusable date %r", m.address, m.date)
                report.failed += 1
                continue
            if sent_at > cutoff:
                recent.append(m)
        recent.sort(key=lambda m: m.date)
        report.in_window = len(recent)
        logger.info("SMS history: %d fetched, %d within window", report.fetched, report.in_window)

        every = self._settings.progress_every
        for message in recent:
            try:
                result = self._pipeline.process_text(
                    message.body, message.address, message.date, channel=SourceChannel.SMS
                )
            except Exception:  # noqa: BLE001
                logger.exception("Failed to process SMS from %r", message.address)
                report.failed += 1
            else:
                if result.outcome == Outcome.PERSISTED:
                    report.persisted += 1
                elif result.outcome == Outcome.DUPLICATE:
                    report.duplicates += 1
                elif result.outcome == Outcome.FAILED:
                    report.failed += 1
            report.processed += 1
            if report.processed % every == 0:
                logger.info("SMS backlog progress: %d/%d", report.processed, report.in_window)
                if self._progress is not None:
                    self._progress(report.processed, report.in_window)

    # ----- stage (b) -----

    def _process_notifications(self) -> None:
        logger.info("Notification history is not available; only new notifications are captured")

    # ----- stage (c) -----

    def _summarize_balances(self, report: BacklogReport) -> None:
        tracker = self._pipeline.balances
        if tracker is None:
            return
        report.balances = tracker.all_balances()
        report.total_assets = tracker.total_assets()
        for b in report.balances:
            logger.info("Balance %s (%s): %s", b.account_name, b.account_type, b.balance)
        logger.info("Total assets: %s", report.total_assets.total)


__all__ = [
    "ProgressCallback",
    "SmsHistorySource",
    "JsonlSmsSource",
    "BacklogReport",
    "HistoricalDataProcessor",
]
