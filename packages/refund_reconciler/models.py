"""Data models and type aliases for ``refund_reconciler``.

``Transaction`` mirrors one record of the card-account transaction list as
returned by the remote API (wire names ``amountCents`` and
``authorizationProcessedAt``). It is validated with pydantic at the edges
(API pages, JSON files) and immutable afterwards. Everything the matcher and
exporter derive from it is a plain frozen ``dataclass`` or ``NamedTuple``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Core record
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """A single card-account transaction.

    Notes
    -----
    - ``amount_cents`` sign convention is defined by the data source: the
      exporter treats positive as money in (credit) and negative as money out
      (debit). Matching compares magnitudes only.
    - ``authorization_processed_at`` keeps whatever offset the source sent;
      :attr:`date_str` is the calendar date in that offset (no conversion).
      Timestamps sent without an offset (including bare dates) are read as
      UTC.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    description: str
    category: str
    amount_cents: int = Field(alias="amountCents")
    authorization_processed_at: datetime = Field(alias="authorizationProcessedAt")
    status: str

    @field_validator("amount_cents", mode="before")
    @classmethod
    def _reject_non_integral_amount(cls, v: object) -> object:
        # Booleans are ints; floats with a fractional part are not cents.
        if isinstance(v, bool):
            raise ValueError("amountCents must be an integer number of cents")
        if isinstance(v, float) and not v.is_integer():
            raise ValueError("amountCents must be an integer number of cents")
        return v

    @field_validator("authorization_processed_at")
    @classmethod
    def _assume_utc_when_naive(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def magnitude(self) -> int:
        """Absolute amount in cents."""

        return abs(self.amount_cents)

    @property
    def date_str(self) -> str:
        """Date portion of the authorization timestamp (``YYYY-MM-DD``)."""

        return self.authorization_processed_at.date().isoformat()

    def with_amount(self, amount_cents: int) -> Transaction:
        """Return a copy carrying ``amount_cents`` in place of the original."""

        return self.model_copy(update={"amount_cents": amount_cents})


type Transactions = Iterable[Transaction]
"""A generic iterable of transaction records."""


# ---------------------------------------------------------------------------
# Matcher outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MatchDisposition:
    """An audit entry for a refund or purchase the matcher removed, adjusted or
    rejected.

    ``transaction`` is a snapshot taken when the entry was logged (a purchase
    logged after adjustment carries its remaining balance).
    """

    transaction: Transaction
    reason: str


class RefundMatch(NamedTuple):
    """An expense/refund pairing represented by full records."""

    expense: Transaction
    """The purchase as it stood when the refund was applied."""

    refund: Transaction
    """The refund that was matched to ``expense``."""


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Outcome of one matcher run.

    Attributes
    ----------
    transactions:
        Final set: surviving purchases in input order (with remaining
        balances) followed by unmatched refunds in processing order.
    removed:
        Disposition log, in the order entries were produced.
    matches:
        Every successful refund match (full or partial), in processing order.
    unmatched_refunds:
        Refunds that survive into ``transactions`` unmatched, including those
        rejected by the anomaly guard.
    """

    transactions: list[Transaction]
    removed: list[MatchDisposition]
    matches: list[RefundMatch]
    unmatched_refunds: list[Transaction]


# ---------------------------------------------------------------------------
# Export payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExportBundle:
    """The two CSV payloads and their suggested filenames.

    ``removed_csv``/``removed_filename`` are ``None`` when the disposition log
    was empty (no removed-transactions file is produced).
    """

    transactions_csv: str
    transactions_filename: str
    removed_csv: str | None = None
    removed_filename: str | None = None


__all__ = [
    "Transaction",
    "Transactions",
    "MatchDisposition",
    "RefundMatch",
    "ReconciliationResult",
    "ExportBundle",
]
