"""Live ingestion of SMS and notification events.

One event flows through: normalize → duplicate check → category resolution
→ persist. The balance tracker sees every event's raw text regardless of
whether a transaction was recognized. Events are processed one at a time;
``consume`` drains an async stream of :class:`RawTextEvent` sequentially.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .balances import BalanceTracker
from .categorize import CategoryResolver
from .classifier import CategoryClassifier
from .config import Settings
from .duplicates import DuplicateDetector
from .logging_setup import get_logger
from .models import BalanceSource, ParsedTransaction, RawTextEvent, SourceChannel
from .patterns import SUPPORTED_NOTIFICATION_PACKAGES
from .store import LedgerStore
from .text_parser import TextNormalizer

logger = get_logger(__name__)


class TransactionSink(Protocol):
    def insert_transaction(
        self,
        tx: ParsedTransaction,
        *,
        category_id: int | None = None,
        file_upload_id: str | None = None,
    ) -> int: ...


class Outcome(StrEnum):
    PERSISTED = "persisted"
    DUPLICATE = "duplicate"
    NOT_FINANCIAL = "not_financial"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ProcessResult:
    outcome: Outcome
    transaction: ParsedTransaction | None = None
    transaction_id: int | None = None
    error: str | None = None


class IngestionPipeline:
    def __init__(
        self,
        *,
        normalizer: TextNormalizer,
        detector: DuplicateDetector,
        resolver: CategoryResolver,
        sink: TransactionSink,
        balances: BalanceTracker | None = None,
        allowed_packages: frozenset[str] = SUPPORTED_NOTIFICATION_PACKAGES,
    ) -> None:
        self._normalizer = normalizer
        self._detector = detector
        self._resolver = resolver
        self._sink = sink
        self._balances = balances
        self._allowed_packages = allowed_packages

    @property
    def balances(self) -> BalanceTracker | None:
        return self._balances

    def process_event(self, event: RawTextEvent) -> ProcessResult:
        if (
            event.channel == SourceChannel.NOTIFICATION
            and event.package_name is not None
            and event.package_name not in self._allowed_packages
        ):
            logger.debug("Ignoring notification from unsupported package %s", event.package_name)
            return ProcessResult(Outcome.IGNORED)
        return self.process_text(event.text, event.sender, event.timestamp, channel=event.channel)

    def process_text(
        self,
        text: str,
        sender: str,
        timestamp: int,
        *,
        channel: SourceChannel = SourceChannel.SMS,
    ) -> ProcessResult:
        try:
            result = self._ingest(text, sender, timestamp, channel)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to ingest %s from %r", channel, sender)
            result = ProcessResult(Outcome.FAILED, error=str(exc))

        if self._balances is not None:
            source = (
                BalanceSource.NOTIFICATION
                if channel == SourceChannel.NOTIFICATION
                else BalanceSource.SMS
            )
            try:
                self._balances.extract_and_save(text, sender, timestamp, source=source)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Failed to track balance from %r", sender)
                if result.outcome == Outcome.NOT_FINANCIAL:
                    result = ProcessResult(Outcome.FAILED, error=str(exc))
        return result

    def _ingest(self, text: str, sender: str, timestamp: int, channel: SourceChannel) -> ProcessResult:
        tx = self._normalizer.parse(text, sender, timestamp, channel=channel)
        if tx is None:
            return ProcessResult(Outcome.NOT_FINANCIAL)

        if self._detector.is_duplicate(tx):
            return ProcessResult(Outcome.DUPLICATE, transaction=tx)

        resolved = self._resolver.resolve(tx)
        tx = tx.with_category(resolved.name)
        tx_id = self._sink.insert_transaction(tx, category_id=resolved.category_id)
        logger.info(
            "Saved %s %s %s (%s) as #%s",
            tx.direction,
            tx.amount,
            tx.description,
            resolved.name,
            tx_id,
        )
        return ProcessResult(Outcome.PERSISTED, transaction=tx, transaction_id=tx_id)

    async def consume(
        self,
        events: AsyncIterable[RawTextEvent],
        *,
        on_result: Callable[[RawTextEvent, ProcessResult], Awaitable[None] | None] | None = None,
    ) -> dict[Outcome, int]:
        """Process ``events`` in arrival order until the stream ends."""

        counts = {o: 0 for o in Outcome}
        async for event in events:
            try:
                result = self.process_event(event)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Failed to process %s event from %r", event.channel, event.sender)
                result = ProcessResult(Outcome.FAILED, error=str(exc))
            counts[result.outcome] += 1
            if on_result is not None:
                maybe = on_result(event, result)
                if maybe is not None:
                    await maybe
        return counts


def build_pipeline(store: LedgerStore, settings: Settings | None = None) -> IngestionPipeline:
    """Wire the default pipeline against ``store``."""

    settings = settings or Settings()
    classifier = CategoryClassifier()
    return IngestionPipeline(
        normalizer=TextNormalizer(classifier),
        detector=DuplicateDetector(
            store, window=settings.duplicate_window, capacity=settings.recent_capacity
        ),
        resolver=CategoryResolver(store, classifier),
        sink=store,
        balances=BalanceTracker(store),
    )


__all__ = ["TransactionSink", "Outcome", "ProcessResult", "IngestionPipeline", "build_pipeline"]
