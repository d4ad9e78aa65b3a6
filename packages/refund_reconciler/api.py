"""Public API for the ``refund_reconciler`` package.

The pipeline is: filter → match → render. :func:`reconcile_transactions` and
:func:`build_export` are pure (no I/O); :func:`export_account` adds the remote
fetch in front of them. Writing payloads to disk is left to
:func:`refund_reconciler.export.write_bundle`.
"""

from __future__ import annotations

import threading
from datetime import date

from .config import MatchSettings
from .export import removed_filename, removed_to_csv, transactions_filename, transactions_to_csv
from .filters import FilterPolicy, filter_transactions
from .logging_setup import get_logger
from .matching import match_refunds
from .models import ExportBundle, ReconciliationResult, RefundMatch, Transactions
from .source import TransactionSource

_logger = get_logger("refund_reconciler.api")


def reconcile_transactions(
    transactions: Transactions,
    *,
    policy: FilterPolicy | None = None,
    settings: MatchSettings | None = None,
) -> ReconciliationResult:
    """Filter ``transactions`` with ``policy`` and match refunds in what remains.

    Input
    -----
    transactions:
        The complete, materialized history (order is preserved; refunds are
        processed in this order).
    policy:
        Ledger filter; defaults to :class:`FilterPolicy` with no date window.
    settings:
        Matching tunables; defaults to :class:`MatchSettings`.
    """

    kept = filter_transactions(transactions, policy or FilterPolicy())
    return match_refunds(kept, settings)


def identify_refunds(
    transactions: Transactions,
    *,
    settings: MatchSettings | None = None,
) -> list[RefundMatch]:
    """Return the expense/refund pairs the matcher links, without filtering."""

    return match_refunds(transactions, settings).matches


def build_export(
    result: ReconciliationResult,
    *,
    period_label: str,
    today: date,
) -> ExportBundle:
    """Render both CSV payloads and their suggested filenames.

    The removed-transactions payload is omitted when the disposition log is
    empty.
    """

    removed_csv = removed_to_csv(result.removed)
    return ExportBundle(
        transactions_csv=transactions_to_csv(result.transactions),
        transactions_filename=transactions_filename(period_label, today),
        removed_csv=removed_csv,
        removed_filename=removed_filename(today) if removed_csv is not None else None,
    )


def export_account(
    account_id: str,
    *,
    source: TransactionSource,
    policy: FilterPolicy,
    settings: MatchSettings | None = None,
    today: date | None = None,
    cancel: threading.Event | None = None,
) -> tuple[ReconciliationResult, ExportBundle]:
    """Fetch an account's full history, reconcile it, and render the export.

    Fetch errors (:class:`~refund_reconciler.source.TransactionSourceError`,
    :class:`~refund_reconciler.source.FetchCancelled`) propagate unchanged.
    """

    transactions = source.fetch_credit_transactions(account_id, cancel=cancel)
    result = reconcile_transactions(transactions, policy=policy, settings=settings)
    bundle = build_export(
        result,
        period_label=policy.period_label,
        today=today or date.today(),
    )
    _logger.info(
        "export ready for account %s: %d transactions, %d removed entries",
        account_id,
        len(result.transactions),
        len(result.removed),
    )
    return result, bundle


__all__ = [
    "build_export",
    "export_account",
    "identify_refunds",
    "reconcile_transactions",
]
