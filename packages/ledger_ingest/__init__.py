"""Ledger ingestion: turn bank/card SMS, payment notifications and statement
exports into categorized, deduplicated ledger transactions.

Public API re-exports for convenience.
"""

from __future__ import annotations

from .balances import BalanceTracker, extract_balance, identify_account
from .categorize import CategoryResolver, GroupAssignment, ResolvedCategory
from .classifier import CategoryClassifier
from .config import Settings
from .duplicates import DuplicateDetector
from .models import (
    AccountType,
    BalanceRecord,
    Direction,
    ParsedTransaction,
    ParseResult,
    RawTextEvent,
    SmsMessage,
    SourceChannel,
    UploadResult,
    UploadStatus,
)
from .pipeline import IngestionPipeline, Outcome, ProcessResult, build_pipeline
from .similarity import find_similar, is_same_counterparty, similarity
from .store import LedgerStore
from .tabular import parse_rows, read_delimited_text
from .templates import BANK_TEMPLATES, detect_template, get_template
from .text_parser import TextNormalizer
from .upload import import_rows, save_upload

__all__ = [
    "AccountType",
    "BalanceRecord",
    "BalanceTracker",
    "BANK_TEMPLATES",
    "CategoryClassifier",
    "CategoryResolver",
    "Direction",
    "DuplicateDetector",
    "GroupAssignment",
    "IngestionPipeline",
    "LedgerStore",
    "Outcome",
    "ParsedTransaction",
    "ParseResult",
    "ProcessResult",
    "RawTextEvent",
    "ResolvedCategory",
    "Settings",
    "SmsMessage",
    "SourceChannel",
    "TextNormalizer",
    "UploadResult",
    "UploadStatus",
    "build_pipeline",
    "detect_template",
    "extract_balance",
    "find_similar",
    "get_template",
    "identify_account",
    "import_rows",
    "is_same_counterparty",
    "parse_rows",
    "read_delimited_text",
    "save_upload",
    "similarity",
]
