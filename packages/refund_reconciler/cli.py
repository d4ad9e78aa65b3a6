"""CLI for the ``refund_reconciler`` package.

This module exposes callable command handlers (``cmd_export``,
``cmd_reconcile``) and a Typer-based console interface. Environment variables
(``NEO_API_TOKEN``, ``NEO_SESSION_COOKIE``, ``REFUND_RECON_*``) are loaded from
a local ``.env`` using ``python-dotenv`` before delegating to command logic.
Business logic lives in ``refund_reconciler.api`` and related modules.

Handlers print ``Error: ...`` to stderr and return ``1`` on failure, ``0`` on
success.
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import TypeAdapter, ValidationError

from .filters import FilterPolicy
from .logging_setup import configure_logging
from .models import ReconciliationResult

# ---- Small module-level helpers used by CLI commands -------------------------


def _parse_day(value: str | None, *, flag: str) -> date | None:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValueError(f"{flag} must be a YYYY-MM-DD date, got {value!r}") from e


def _resolve_policy(
    *,
    year: int | None,
    start: str | None,
    end: str | None,
    today: date,
) -> FilterPolicy:
    """Build the filter policy from ``--year`` or ``--start``/``--end``.

    With neither given, the previous calendar year is exported.
    """

    start_d = _parse_day(start, flag="--start")
    end_d = _parse_day(end, flag="--end")
    if year is not None and (start_d or end_d):
        raise ValueError("use either --year or --start/--end, not both")
    if start_d or end_d:
        return FilterPolicy(start=start_d, end=end_d)
    return FilterPolicy.for_year(year if year is not None else today.year - 1)


def _report(result: ReconciliationResult, written: list[Path]) -> None:
    for path in written:
        print(f"Wrote {path}")
    print(
        f"{len(result.transactions)} transactions exported; "
        f"{len(result.matches)} refunds matched; "
        f"{len(result.removed)} removed/adjusted entries."
    )


def cmd_export(
    account: str,
    *,
    year: int | None = None,
    start: str | None = None,
    end: str | None = None,
    output_dir: str = ".",
    api_url: str | None = None,
    page_size: int | None = None,
    today: date | None = None,
) -> int:
    """Fetch a credit account's transactions, reconcile, and write both CSVs.

    ``account`` is a bare account id or a transactions page URL/path.
    """

    from .accounts import resolve_account
    from .api import export_account
    from .config import load_match_settings, load_source_settings
    from .export import write_bundle
    from .source import FetchCancelled, TransactionSource, TransactionSourceError

    today = today or date.today()
    try:
        ref = resolve_account(account)
        if ref.type != "credit":
            raise ValueError(f"only credit accounts can be exported (got {ref.type!r})")
        policy = _resolve_policy(year=year, start=start, end=end, today=today)
        settings = load_match_settings()
        source_settings = load_source_settings(api_url=api_url, page_size=page_size)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        with TransactionSource(source_settings) as source:
            result, bundle = export_account(
                ref.id,
                source=source,
                policy=policy,
                settings=settings,
                today=today,
            )
    except (TransactionSourceError, FetchCancelled) as e:
        print(f"Error: fetching transactions failed: {e}", file=sys.stderr)
        return 1

    try:
        written = write_bundle(bundle, output_dir)
    except OSError as e:
        print(f"Error: failed to write export files: {e}", file=sys.stderr)
        return 1

    _report(result, written)
    return 0


def cmd_reconcile(
    json_path: str,
    *,
    year: int | None = None,
    start: str | None = None,
    end: str | None = None,
    output_dir: str = ".",
    today: date | None = None,
) -> int:
    """Reconcile a local JSON array of transactions and write both CSVs.

    The file holds transaction objects in the API's wire shape
    (``description``, ``category``, ``amountCents``,
    ``authorizationProcessedAt``, ``status``).
    """

    from .api import build_export, reconcile_transactions
    from .config import load_match_settings
    from .export import write_bundle
    from .models import Transaction

    today = today or date.today()
    try:
        policy = _resolve_policy(year=year, start=start, end=end, today=today)
        settings = load_match_settings()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        raw = Path(json_path).read_bytes()
    except FileNotFoundError:
        print(f"Error: File not found: {json_path}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {json_path}", file=sys.stderr)
        return 1

    try:
        transactions = TypeAdapter(list[Transaction]).validate_json(raw)
    except ValidationError as e:
        print(f"Error: invalid transactions file '{json_path}': {e}", file=sys.stderr)
        return 1

    result = reconcile_transactions(transactions, policy=policy, settings=settings)
    bundle = build_export(result, period_label=policy.period_label, today=today)

    try:
        written = write_bundle(bundle, output_dir)
    except OSError as e:
        print(f"Error: failed to write export files: {e}", file=sys.stderr)
        return 1

    _report(result, written)
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Export card transactions with refunds reconciled against the purchases "
        "they reverse. Loads settings from a local .env before running."
    ),
)

YearOpt = Annotated[
    int | None, typer.Option("--year", help="Calendar year to export (default: last year).")
]
StartOpt = Annotated[
    str | None, typer.Option("--start", help="First authorization date kept (YYYY-MM-DD).")
]
EndOpt = Annotated[
    str | None, typer.Option("--end", help="Last authorization date kept (YYYY-MM-DD).")
]
OutputDirOpt = Annotated[
    Path,
    typer.Option("--output-dir", help="Directory for the CSV files.", file_okay=False),
]


@app.command("export")
def export_cmd(
    account: Annotated[
        str,
        typer.Option("--account", help="Credit account id or transactions page URL."),
    ],
    year: YearOpt = None,
    start: StartOpt = None,
    end: EndOpt = None,
    output_dir: OutputDirOpt = Path("."),
    api_url: Annotated[
        str | None, typer.Option("--api-url", help="Override NEO_API_URL.")
    ] = None,
    page_size: Annotated[
        int | None, typer.Option("--page-size", min=1, help="Override NEO_PAGE_SIZE.")
    ] = None,
) -> None:
    """Fetch, reconcile and export one credit account."""

    code = cmd_export(
        account,
        year=year,
        start=start,
        end=end,
        output_dir=str(output_dir),
        api_url=api_url,
        page_size=page_size,
    )
    if code:
        raise typer.Exit(code)


@app.command("reconcile")
def reconcile_cmd(
    json_path: Annotated[
        Path,
        typer.Option(
            "--json-path",
            help="JSON array of transactions in the API wire shape.",
            dir_okay=False,
        ),
    ],
    year: YearOpt = None,
    start: StartOpt = None,
    end: EndOpt = None,
    output_dir: OutputDirOpt = Path("."),
) -> None:
    """Reconcile transactions from a local JSON file and export."""

    code = cmd_reconcile(
        str(json_path),
        year=year,
        start=start,
        end=end,
        output_dir=str(output_dir),
    )
    if code:
        raise typer.Exit(code)


@app.callback()
def _root(
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level", help="Logging level (default: REFUND_RECON_LOG_LEVEL or INFO)."
        ),
    ] = None,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
