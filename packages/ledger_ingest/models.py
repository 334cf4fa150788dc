"""Data models and enums for ``ledger_ingest``.

The ingestion core passes immutable records between its stages:

- :class:`ParsedTransaction` is built once by the text normalizer or the
  statement-row parser, optionally enriched with a category via
  :meth:`ParsedTransaction.with_category`, and then either persisted or
  discarded.
- :class:`BalanceRecord` is the latest known balance for one account.
- :class:`RawTextEvent` / :class:`SmsMessage` validate payloads handed over by
  platform listeners and exported SMS dumps before they reach the core.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Merchant labels longer than this are truncated at construction time.
MERCHANT_MAX_LENGTH = 40
UNKNOWN_MERCHANT = "알 수 없음"
DESCRIPTION_SEPARATOR = " - "
# Epoch milliseconds of 9999-12-31T23:59:59.999Z, the last instant datetime can hold.
MAX_EPOCH_MS = 253_402_300_799_999
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class Direction(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


class SourceChannel(StrEnum):
    SMS = "sms"
    NOTIFICATION = "notification"
    CSV_UPLOAD = "csv_upload"
    MANUAL = "manual"


class AccountType(StrEnum):
    BANK = "bank"
    CARD = "card"
    INVESTMENT = "investment"
    PAY = "pay"
    CRYPTO = "crypto"


class BalanceSource(StrEnum):
    MANUAL = "manual"
    SMS = "sms"
    NOTIFICATION = "notification"


class InstitutionCategory(StrEnum):
    BANK = "bank"
    CARD = "card"
    SECURITIES = "securities"
    OTHER = "other"


class UploadStatus(StrEnum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def from_epoch_ms(ms: int | float) -> datetime:
    """Convert an epoch-milliseconds timestamp to an aware UTC datetime."""

    return _EPOCH + timedelta(milliseconds=int(ms))


def to_epoch_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(round(dt.timestamp() * 1000))


def clean_merchant(raw: str | None) -> str:
    """Trim, collapse whitespace, cap length; substitute a placeholder when empty."""

    s = " ".join((raw or "").split())
    s = s[:MERCHANT_MAX_LENGTH].strip()
    return s or UNKNOWN_MERCHANT


def compose_description(institution: str, merchant: str) -> str:
    return f"{institution}{DESCRIPTION_SEPARATOR}{merchant}"


def merchant_from_description(description: str | None) -> str:
    """Recover the merchant from a stored ``"<source> - <merchant>"`` description.

    Descriptions that were not composed that way (e.g. statement uploads) are
    returned trimmed as-is.
    """

    text = description or ""
    parts = text.split(DESCRIPTION_SEPARATOR)
    return parts[1].strip() if len(parts) > 1 else text.strip()


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A candidate transaction produced by one of the ingestion channels.

    ``occurred_at`` is an aware datetime (UTC) with millisecond resolution;
    the storage date is its UTC calendar day (:attr:`occurred_on`).
    ``category`` is a suggested category *name* (never an id) and may be
    ``None`` when nothing matched with enough confidence.
    """

    amount: Decimal
    direction: Direction
    merchant: str
    description: str
    occurred_at: datetime
    source_channel: SourceChannel
    institution: str | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("ParsedTransaction.amount must be positive")
        if not self.merchant.strip():
            raise ValueError("ParsedTransaction.merchant must be non-empty")
        if self.occurred_at.tzinfo is None:
            raise ValueError("ParsedTransaction.occurred_at must be timezone-aware")
        if self.occurred_at.tzinfo is not UTC:
            object.__setattr__(self, "occurred_at", self.occurred_at.astimezone(UTC))

    @classmethod
    def from_text(
        cls,
        *,
        amount: Decimal,
        direction: Direction,
        merchant: str | None,
        institution: str,
        occurred_at: datetime,
        source_channel: SourceChannel,
        category: str | None = None,
    ) -> ParsedTransaction:
        m = clean_merchant(merchant)
        return cls(
            amount=amount,
            direction=direction,
            merchant=m,
            description=compose_description(institution, m),
            occurred_at=occurred_at,
            source_channel=source_channel,
            institution=institution,
            category=category,
        )

    @property
    def occurred_on(self) -> date:
        return self.occurred_at.astimezone(UTC).date()

    def with_category(self, category: str | None) -> ParsedTransaction:
        return replace(self, category=category)


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Outcome of parsing a batch of statement rows.

    ``failed`` is true only when nothing parsed *and* at least one row errored;
    an empty input is not a failure.
    """

    transactions: tuple[ParsedTransaction, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return not self.transactions and bool(self.errors)


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Per-batch save counts. Rows skipped as already present count as handled."""

    success: int
    errors: tuple[str, ...] = ()
    skipped: int = 0

    @property
    def status(self) -> UploadStatus:
        if not self.errors:
            return UploadStatus.SUCCESS
        if self.success or self.skipped:
            return UploadStatus.PARTIAL
        return UploadStatus.FAILED


@dataclass(frozen=True, slots=True)
class StoredTransaction:
    """Read-side view of a persisted ``transactions`` row."""

    id: int
    amount: Decimal
    direction: Direction
    description: str
    occurred_on: date
    created_at: datetime
    category_id: int | None = None
    source: str | None = None

    @property
    def merchant(self) -> str:
        return merchant_from_description(self.description)


@dataclass(frozen=True, slots=True)
class BalanceRecord:
    account_name: str
    account_type: AccountType
    balance: Decimal
    last_updated: datetime
    source: BalanceSource = BalanceSource.SMS

    @property
    def key(self) -> tuple[str, AccountType]:
        return (self.account_name, self.account_type)


@dataclass(frozen=True, slots=True)
class TotalAssets:
    total: Decimal
    by_type: Mapping[AccountType, Decimal] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Listener / export payloads
# ---------------------------------------------------------------------------


class RawTextEvent(BaseModel):
    """One raw text event from an SMS or notification listener.

    ``sender`` holds the SMS sender address or the notification title;
    ``timestamp`` is epoch milliseconds as delivered by the platform.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    text: str
    sender: str = ""
    timestamp: int = Field(ge=0, le=MAX_EPOCH_MS)
    package_name: str | None = None
    channel: SourceChannel = SourceChannel.SMS

    @field_validator("channel")
    @classmethod
    def _text_channels_only(cls, v: SourceChannel) -> SourceChannel:
        if v not in (SourceChannel.SMS, SourceChannel.NOTIFICATION):
            raise ValueError("RawTextEvent.channel must be 'sms' or 'notification'")
        return v

    @property
    def occurred_at(self) -> datetime:
        return from_epoch_ms(self.timestamp)


class SmsMessage(BaseModel):
    """A stored SMS as returned by the device inbox query (``body/address/date``)."""

    model_config = ConfigDict(extra="ignore")

    body: str = ""
    address: str = ""
    date: int = Field(ge=0, le=MAX_EPOCH_MS)

    def to_event(self) -> RawTextEvent:
        return RawTextEvent(
            text=self.body, sender=self.address, timestamp=self.date, channel=SourceChannel.SMS
        )


def balance_record_to_dict(record: BalanceRecord) -> dict[str, Any]:
    return {
        "account_name": record.account_name,
        "account_type": str(record.account_type),
        "balance": str(record.balance),
        "last_updated": record.last_updated.isoformat(),
        "source": str(record.source),
    }


__all__ = [
    "MERCHANT_MAX_LENGTH",
    "UNKNOWN_MERCHANT",
    "DESCRIPTION_SEPARATOR",
    "MAX_EPOCH_MS",
    "Direction",
    "SourceChannel",
    "AccountType",
    "BalanceSource",
    "InstitutionCategory",
    "UploadStatus",
    "from_epoch_ms",
    "to_epoch_ms",
    "clean_merchant",
    "compose_description",
    "merchant_from_description",
    "ParsedTransaction",
    "ParseResult",
    "UploadResult",
    "StoredTransaction",
    "BalanceRecord",
    "TotalAssets",
    "RawTextEvent",
    "SmsMessage",
    "balance_record_to_dict",
]
