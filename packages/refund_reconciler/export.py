"""CSV rendering for the reconciled transaction set and the disposition log.

Both payloads start with a UTF-8 byte-order mark (U+FEFF) so spreadsheet
tools pick the right encoding, quote every field, and end each record with
``\\n``. Rendering uses the stdlib :mod:`csv` writer (embedded quotes are
doubled per RFC 4180). Amounts are formatted from integer cents through
:class:`~decimal.Decimal`; floats never touch money values.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from io import StringIO
from os import PathLike
from pathlib import Path

from .logging_setup import get_logger
from .models import ExportBundle, MatchDisposition, Transaction

_logger = get_logger("refund_reconciler.export")

BOM = "\ufeff"

TRANSACTION_COLUMNS: tuple[str, ...] = (
    "Date",
    "Description",
    "Category",
    "Debit",
    "Credit",
    "Status",
)
DISPOSITION_COLUMNS: tuple[str, ...] = (
    "Date",
    "Description",
    "Category",
    "Amount",
    "Status",
    "Reason",
)


def _fmt_cents(cents: int) -> str:
    # Exactly two decimals; leading minus for negatives.
    return f"{Decimal(cents).scaleb(-2):.2f}"


def _render(header: tuple[str, ...], rows: Iterable[Iterable[str]]) -> str:
    with StringIO() as buf:
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(header)
        writer.writerows(rows)
        return BOM + buf.getvalue()


def _transaction_row(tx: Transaction) -> list[str]:
    debit = _fmt_cents(-tx.amount_cents) if tx.amount_cents < 0 else ""
    credit = _fmt_cents(tx.amount_cents) if tx.amount_cents > 0 else ""
    return [tx.date_str, tx.description, tx.category, debit, credit, tx.status]


def transactions_to_csv(transactions: Iterable[Transaction]) -> str:
    """Render the final transaction set.

    Columns: ``Date, Description, Category, Debit, Credit, Status``. Negative
    amounts fill ``Debit`` (as an absolute value), positive amounts fill
    ``Credit``; a zero amount leaves both empty.
    """

    return _render(TRANSACTION_COLUMNS, (_transaction_row(tx) for tx in transactions))


def removed_to_csv(removed: Iterable[MatchDisposition]) -> str | None:
    """Render the disposition log, or return ``None`` when it is empty.

    Columns: ``Date, Description, Category, Amount, Status, Reason`` with the
    signed amount in currency units.
    """

    entries = list(removed)
    if not entries:
        _logger.info("no transactions were removed; skipping removed-transactions payload")
        return None
    rows = (
        [
            d.transaction.date_str,
            d.transaction.description,
            d.transaction.category,
            _fmt_cents(d.transaction.amount_cents),
            d.transaction.status,
            d.reason,
        ]
        for d in entries
    )
    return _render(DISPOSITION_COLUMNS, rows)


def transactions_filename(period_label: str, today: date) -> str:
    return f"Neo_Transactions_{period_label}_Filtered_{today.isoformat()}.csv"


def removed_filename(today: date) -> str:
    return f"Removed_Transactions_{today.isoformat()}.csv"


def write_bundle(bundle: ExportBundle, directory: str | PathLike[str]) -> list[Path]:
    """Write the bundle's payload(s) under ``directory`` and return the paths.

    Payloads are written verbatim as UTF-8 (BOM included, no newline
    translation). The directory is created when missing.
    """

    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    targets: list[tuple[str, str]] = [(bundle.transactions_filename, bundle.transactions_csv)]
    if bundle.removed_csv is not None and bundle.removed_filename is not None:
        targets.append((bundle.removed_filename, bundle.removed_csv))

    written: list[Path] = []
    for filename, payload in targets:
        path = out_dir / filename
        path.write_text(payload, encoding="utf-8", newline="")
        _logger.info("wrote %s (%d bytes)", path, len(payload.encode("utf-8")))
        written.append(path)
    return written


__all__ = [
    "BOM",
    "DISPOSITION_COLUMNS",
    "TRANSACTION_COLUMNS",
    "removed_filename",
    "removed_to_csv",
    "transactions_filename",
    "transactions_to_csv",
    "write_bundle",
]
