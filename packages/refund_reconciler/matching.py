"""Refund-to-purchase reconciliation.

Public API:
    - :func:`match_refunds`
    - the ``REASON_*`` constants recorded on :class:`MatchDisposition` entries

Purchases live in an indexed arena of slots. Matching code refers to a
purchase by slot index and the only mutation in a run, reducing a purchase's
remaining balance after a partial refund, goes through
:meth:`_PurchaseArena.decrement`. Input transactions are never modified;
adjusted purchases are emitted as copies carrying their remaining balance.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta

from .config import MatchSettings
from .logging_setup import get_logger
from .models import (
    MatchDisposition,
    ReconciliationResult,
    RefundMatch,
    Transaction,
    Transactions,
)
from .normalizers import normalize_merchant_name
from .similarity import jaccard_similarity

REASON_REFUND_TOO_LARGE = "Refund too large compared to past purchases"
REASON_FULL_REFUND = "Full refund match"
REASON_FULLY_REFUNDED_PURCHASE = "Fully refunded purchase"
REASON_PARTIAL_REFUND = "Partial refund applied"
REASON_REFUNDED_AFTER_ADJUSTMENT = "Fully refunded purchase after adjustment"

_logger = get_logger("refund_reconciler.matching")


# ---- Purchase arena ----------------------------------------------------------


@dataclass(slots=True)
class _PurchaseSlot:
    tx: Transaction
    name: str
    # Remaining unrefunded magnitude in cents
    balance: int
    active: bool = True

    def snapshot(self) -> Transaction:
        """The purchase as it currently stands, in its original sign."""

        if self.balance == self.tx.magnitude:
            return self.tx
        sign = -1 if self.tx.amount_cents < 0 else 1
        return self.tx.with_amount(sign * self.balance)


class _PurchaseArena:
    """Purchases addressed by index, in input order."""

    def __init__(self, purchases: list[Transaction]) -> None:
        self._slots = [
            _PurchaseSlot(
                tx=p,
                name=normalize_merchant_name(p.description),
                balance=p.magnitude,
            )
            for p in purchases
        ]
        # Largest original magnitude per merchant; consumed purchases still count
        self._max_by_name: dict[str, int] = {}
        for slot in self._slots:
            prev = self._max_by_name.get(slot.name, 0)
            self._max_by_name[slot.name] = max(prev, slot.tx.magnitude)

    def __getitem__(self, idx: int) -> _PurchaseSlot:
        return self._slots[idx]

    def max_magnitude_for(self, name: str) -> int | None:
        return self._max_by_name.get(name)

    def in_window(self, refund_at: datetime, days: int) -> Iterator[int]:
        """Yield active slot indices dated strictly before ``refund_at`` and at
        most ``days`` whole days earlier."""

        limit = timedelta(days=days)
        for idx, slot in enumerate(self._slots):
            if not slot.active:
                continue
            gap = refund_at - slot.tx.authorization_processed_at
            if timedelta(0) < gap <= limit:
                yield idx

    def decrement(self, idx: int, cents: int) -> int:
        """Reduce slot ``idx``'s balance by ``cents`` and return the new balance."""

        slot = self._slots[idx]
        if not slot.active:
            raise ValueError(f"purchase slot {idx} is no longer active")
        if cents < 0 or cents > slot.balance:
            raise ValueError(
                f"cannot decrement purchase slot {idx} by {cents} (balance {slot.balance})"
            )
        slot.balance -= cents
        return slot.balance

    def deactivate(self, idx: int) -> None:
        self._slots[idx].active = False

    def survivors(self) -> list[Transaction]:
        return [slot.snapshot() for slot in self._slots if slot.active]


# ---- Candidate search --------------------------------------------------------


def _find_exact(
    arena: _PurchaseArena,
    candidates: list[int],
    refund: Transaction,
    name: str,
) -> int | None:
    for idx in candidates:
        slot = arena[idx]
        if slot.balance == refund.magnitude and slot.name == name:
            return idx
    return None


def _find_fuzzy(
    arena: _PurchaseArena,
    candidates: list[int],
    refund: Transaction,
    name: str,
    settings: MatchSettings,
) -> int | None:
    if refund.magnitude == 0:
        return None

    qualifying: list[tuple[int, float]] = []
    for idx in candidates:
        slot = arena[idx]
        if slot.balance == 0:
            continue
        score = jaccard_similarity(slot.name, name)
        if score < settings.similarity_threshold:
            continue
        if settings.fuzzy_tie_break == "input_order":
            return idx
        qualifying.append((idx, score))

    if not qualifying:
        return None

    # best_score: highest similarity, then balance closest to the refund
    def _rank(item: tuple[int, float]) -> tuple[float, int, int]:
        idx, score = item
        return (-score, abs(arena[idx].balance - refund.magnitude), idx)

    return min(qualifying, key=_rank)[0]


def _search_tiers(
    arena: _PurchaseArena,
    refund: Transaction,
    name: str,
    settings: MatchSettings,
) -> tuple[int, int] | None:
    """Return ``(slot_index, window_days)`` of the first match, nearest window
    first."""

    for days in settings.time_tiers_days:
        candidates = list(arena.in_window(refund.authorization_processed_at, days))
        if not candidates:
            continue
        idx = _find_exact(arena, candidates, refund, name)
        if idx is None:
            idx = _find_fuzzy(arena, candidates, refund, name, settings)
        if idx is not None:
            return idx, days
    return None


# ---- Public entry point ------------------------------------------------------


def match_refunds(
    transactions: Transactions,
    settings: MatchSettings | None = None,
) -> ReconciliationResult:
    """Match refunds to the purchases they reverse.

    Refunds are processed one at a time in input order. For each refund:

    1. Anomaly guard: when purchases from the same normalized merchant exist
       and the refund exceeds ``anomaly_multiplier`` times the largest of
       them, the refund is logged with :data:`REASON_REFUND_TOO_LARGE` and
       passed through unmatched.
    2. Tiered search over ``time_tiers_days``: in each window an exact match
       (same magnitude, same normalized name) wins over a fuzzy match (token
       similarity at or above ``similarity_threshold``).
    3. Resolution: a refund covering the remaining balance removes both
       records; a smaller refund reduces the purchase's balance and removes it
       only if the balance reaches exactly zero. Unmatched refunds pass
       through without a log entry.

    Transactions whose category is neither the purchase nor the refund tag
    are not part of the result.
    """

    settings = settings or MatchSettings()
    materialized = list(transactions)
    purchases = [tx for tx in materialized if tx.category == settings.purchase_category]
    refunds = [tx for tx in materialized if tx.category == settings.refund_category]

    arena = _PurchaseArena(purchases)
    removed: list[MatchDisposition] = []
    matches: list[RefundMatch] = []
    unmatched: list[Transaction] = []

    for refund in refunds:
        name = normalize_merchant_name(refund.description)
        _logger.debug(
            "processing refund %r (%d cents, %s)",
            refund.description,
            refund.amount_cents,
            refund.date_str,
        )

        max_seen = arena.max_magnitude_for(name)
        if max_seen is not None and refund.magnitude > settings.anomaly_multiplier * max_seen:
            _logger.debug(
                "refund %r (%d cents) exceeds %.2fx largest purchase (%d cents); not matching",
                refund.description,
                refund.magnitude,
                settings.anomaly_multiplier,
                max_seen,
            )
            removed.append(MatchDisposition(refund, REASON_REFUND_TOO_LARGE))
            unmatched.append(refund)
            continue

        found = _search_tiers(arena, refund, name, settings)
        if found is None:
            _logger.debug("refund %r not matched", refund.description)
            unmatched.append(refund)
            continue

        idx, days = found
        slot = arena[idx]
        purchase = slot.snapshot()
        matches.append(RefundMatch(expense=purchase, refund=refund))
        _logger.debug(
            "matched refund %r to purchase %r (%s, balance %d cents, %d-day window)",
            refund.description,
            purchase.description,
            purchase.date_str,
            slot.balance,
            days,
        )

        if refund.magnitude >= slot.balance:
            arena.deactivate(idx)
            removed.append(MatchDisposition(refund, REASON_FULL_REFUND))
            removed.append(MatchDisposition(purchase, REASON_FULLY_REFUNDED_PURCHASE))
            continue

        remaining = arena.decrement(idx, refund.magnitude)
        removed.append(MatchDisposition(refund, REASON_PARTIAL_REFUND))
        if remaining == 0:
            arena.deactivate(idx)
            removed.append(MatchDisposition(slot.snapshot(), REASON_REFUNDED_AFTER_ADJUSTMENT))

    final = arena.survivors() + unmatched
    _logger.info(
        "refund matching: %d purchases, %d refunds -> %d matched, %d unmatched, "
        "%d disposition entries, %d transactions kept",
        len(purchases),
        len(refunds),
        len(matches),
        len(unmatched),
        len(removed),
        len(final),
    )
    return ReconciliationResult(
        transactions=final,
        removed=removed,
        matches=matches,
        unmatched_refunds=unmatched,
    )


__all__ = [
    "REASON_FULL_REFUND",
    "REASON_FULLY_REFUNDED_PURCHASE",
    "REASON_PARTIAL_REFUND",
    "REASON_REFUNDED_AFTER_ADJUSTMENT",
    "REASON_REFUND_TOO_LARGE",
    "match_refunds",
]
