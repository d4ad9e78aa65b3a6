"""Public interface for the ``refund_reconciler`` package.

Symbol re-exports only; no runtime logic lives here.
"""

from .accounts import AccountRef, parse_account_ref, resolve_account
from .api import build_export, export_account, identify_refunds, reconcile_transactions
from .config import MatchSettings, SourceSettings, load_match_settings, load_source_settings
from .export import removed_to_csv, transactions_to_csv, write_bundle
from .filters import FilterPolicy, filter_transactions
from .matching import match_refunds
from .models import (
    ExportBundle,
    MatchDisposition,
    ReconciliationResult,
    RefundMatch,
    Transaction,
    Transactions,
)
from .normalizers import normalize_merchant_name
from .similarity import jaccard_similarity, levenshtein_distance
from .source import FetchCancelled, TransactionSource, TransactionSourceError

__all__ = [
    # API
    "reconcile_transactions",
    "identify_refunds",
    "build_export",
    "export_account",
    # Core steps
    "normalize_merchant_name",
    "jaccard_similarity",
    "levenshtein_distance",
    "filter_transactions",
    "match_refunds",
    "transactions_to_csv",
    "removed_to_csv",
    "write_bundle",
    # Collaborators
    "TransactionSource",
    "TransactionSourceError",
    "FetchCancelled",
    "AccountRef",
    "parse_account_ref",
    "resolve_account",
    # Models / settings
    "Transaction",
    "Transactions",
    "MatchDisposition",
    "RefundMatch",
    "ReconciliationResult",
    "ExportBundle",
    "FilterPolicy",
    "MatchSettings",
    "SourceSettings",
    "load_match_settings",
    "load_source_settings",
]
