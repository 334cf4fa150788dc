"""ORM models registry for the ledger database.

Covers the five collections the ingestion core reads and writes.
"""

from .ledger import (
    AccountBalance,
    BalanceSnapshot,
    Base,
    Category,
    MerchantCategoryMapping,
    Transaction,
)

__all__ = [
    "Base",
    "Category",
    "Transaction",
    "MerchantCategoryMapping",
    "AccountBalance",
    "BalanceSnapshot",
]
