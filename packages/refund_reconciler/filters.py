"""Pre-matching ledger filter.

Drops transactions outside the export window, declined authorizations, and
operational categories that never take part in refund reconciliation
(payments, reward cash-outs, interest, disputes, pending items).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .logging_setup import get_logger
from .models import Transaction, Transactions

_logger = get_logger("refund_reconciler.filters")

DEFAULT_DECLINED_STATUSES: frozenset[str] = frozenset({"DECLINED"})

DEFAULT_EXCLUDED_CATEGORIES: frozenset[str] = frozenset(
    {
        "PAYMENT",
        "REWARDS_ACCOUNT_CASH_OUT",
        "INTEREST_EARNED",
        "DISPUTE_COMPLETED",
        "DISPUTE_IN_PROGRESS",
        "IN_PROGRESS",
    }
)


@dataclass(frozen=True, slots=True)
class FilterPolicy:
    """Which transactions to keep before matching.

    ``start`` and ``end`` bound the authorization date inclusively; either may
    be ``None`` for an open side.
    """

    start: date | None = None
    end: date | None = None
    declined_statuses: frozenset[str] = DEFAULT_DECLINED_STATUSES
    excluded_categories: frozenset[str] = DEFAULT_EXCLUDED_CATEGORIES

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(
                f"FilterPolicy window is empty: start {self.start} is after end {self.end}"
            )

    @classmethod
    def for_year(cls, year: int, **kwargs: frozenset[str]) -> FilterPolicy:
        """Policy covering the calendar year ``year``."""

        return cls(start=date(year, 1, 1), end=date(year, 12, 31), **kwargs)

    @property
    def period_label(self) -> str:
        """Short label naming the window, used in export filenames."""

        if self.start is None and self.end is None:
            return "All"
        if (
            self.start is not None
            and self.end is not None
            and self.start.year == self.end.year
            and (self.start.month, self.start.day) == (1, 1)
            and (self.end.month, self.end.day) == (12, 31)
        ):
            return str(self.start.year)
        lo = self.start.isoformat() if self.start else "start"
        hi = self.end.isoformat() if self.end else "end"
        return f"{lo}_{hi}"

    def keeps(self, tx: Transaction) -> bool:
        """Return ``True`` when ``tx`` passes every rule of this policy."""

        day = tx.authorization_processed_at.date()
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        if tx.status in self.declined_statuses:
            return False
        return tx.category not in self.excluded_categories


def filter_transactions(transactions: Transactions, policy: FilterPolicy) -> list[Transaction]:
    """Return the transactions ``policy`` keeps, preserving input order."""

    materialized = list(transactions)
    kept = [tx for tx in materialized if policy.keeps(tx)]
    _logger.info(
        "filter kept %d of %d transactions (period %s)",
        len(kept),
        len(materialized),
        policy.period_label,
    )
    return kept


__all__ = [
    "DEFAULT_DECLINED_STATUSES",
    "DEFAULT_EXCLUDED_CATEGORIES",
    "FilterPolicy",
    "filter_transactions",
]
