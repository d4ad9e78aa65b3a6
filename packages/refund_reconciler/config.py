"""Runtime settings for matching and for the remote transaction source.

Both settings objects are frozen dataclasses validated in ``__post_init__``.
``load_match_settings`` / ``load_source_settings`` apply environment overrides
(the CLI loads a local ``.env`` first). Unparseable numeric overrides fall back
to the default and log a warning; values that parse but are out of range
raise ``ValueError`` from validation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .logging_setup import get_logger

_logger = get_logger("refund_reconciler.config")

DEFAULT_TIME_TIERS_DAYS: tuple[int, ...] = (1, 2, 7, 15, 30, 45)
DEFAULT_API_URL = "https://api.production.neofinancial.com/graphql"

# Closed set of fuzzy-candidate selection strategies
_TIE_BREAKS: frozenset[str] = frozenset({"input_order", "best_score"})
_SORT_DIRECTIONS: frozenset[str] = frozenset({"ASC", "DESC"})


@dataclass(frozen=True, slots=True)
class MatchSettings:
    """Tunables for :func:`refund_reconciler.matching.match_refunds`.

    Attributes
    ----------
    time_tiers_days:
        Ascending day windows searched smallest first.
    similarity_threshold:
        Minimum token Jaccard similarity for a fuzzy match.
    anomaly_multiplier:
        A refund larger than this multiple of the largest purchase from the
        same merchant is never matched.
    purchase_category / refund_category:
        Category tags that mark the two roles.
    fuzzy_tie_break:
        ``"input_order"`` takes the first qualifying purchase in input order.
        ``"best_score"`` prefers higher similarity, then the balance closest
        to the refund amount.
    """

    time_tiers_days: tuple[int, ...] = DEFAULT_TIME_TIERS_DAYS
    similarity_threshold: float = 0.75
    anomaly_multiplier: float = 2.5
    purchase_category: str = "PURCHASE"
    refund_category: str = "REFUND"
    fuzzy_tie_break: str = "input_order"

    def __post_init__(self) -> None:
        tiers = self.time_tiers_days
        if not tiers:
            raise ValueError("MatchSettings.time_tiers_days must not be empty")
        for days in tiers:
            if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
                raise ValueError("MatchSettings.time_tiers_days must hold positive integers")
        if any(b <= a for a, b in zip(tiers, tiers[1:], strict=False)):
            raise ValueError("MatchSettings.time_tiers_days must be strictly ascending")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("MatchSettings.similarity_threshold must be within [0,1]")
        if self.anomaly_multiplier <= 0:
            raise ValueError("MatchSettings.anomaly_multiplier must be positive")
        if self.purchase_category == self.refund_category:
            raise ValueError("purchase_category and refund_category must differ")
        if self.fuzzy_tie_break not in _TIE_BREAKS:
            raise ValueError(
                f"Unsupported fuzzy_tie_break: {self.fuzzy_tie_break!r}. "
                f"Allowed: {sorted(_TIE_BREAKS)}"
            )


@dataclass(frozen=True, slots=True)
class SourceSettings:
    """Connection settings for :class:`refund_reconciler.source.TransactionSource`."""

    api_url: str = DEFAULT_API_URL
    page_size: int = 1000
    sort_direction: str = "DESC"
    timeout_seconds: float = 30.0
    auth_token: str | None = None
    session_cookie: str | None = None

    def __post_init__(self) -> None:
        if not self.api_url.strip():
            raise ValueError("SourceSettings.api_url must be non-empty")
        if isinstance(self.page_size, bool) or self.page_size <= 0:
            raise ValueError("SourceSettings.page_size must be a positive integer")
        if self.sort_direction not in _SORT_DIRECTIONS:
            raise ValueError(
                f"Unsupported sort_direction: {self.sort_direction!r}. "
                f"Allowed: {sorted(_SORT_DIRECTIONS)}"
            )
        if self.timeout_seconds <= 0:
            raise ValueError("SourceSettings.timeout_seconds must be positive")


# ---- Environment helpers -----------------------------------------------------


def _env_str(name: str) -> str | None:
    val = os.getenv(name)
    if val is None or not val.strip():
        return None
    return val.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        _logger.warning("ignoring %s=%r (not a number); using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        _logger.warning("ignoring %s=%r (not an integer); using %s", name, raw, default)
        return default


def _env_tiers(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        _logger.warning("ignoring %s=%r (expected comma-separated days)", name, raw)
        return default


def load_match_settings() -> MatchSettings:
    """Build :class:`MatchSettings` from defaults plus ``REFUND_RECON_*`` env vars."""

    defaults = MatchSettings()
    return MatchSettings(
        time_tiers_days=_env_tiers("REFUND_RECON_TIME_TIERS", defaults.time_tiers_days),
        similarity_threshold=_env_float(
            "REFUND_RECON_SIMILARITY_THRESHOLD", defaults.similarity_threshold
        ),
        anomaly_multiplier=_env_float(
            "REFUND_RECON_ANOMALY_MULTIPLIER", defaults.anomaly_multiplier
        ),
        fuzzy_tie_break=_env_str("REFUND_RECON_TIE_BREAK") or defaults.fuzzy_tie_break,
    )


def load_source_settings(
    *,
    api_url: str | None = None,
    page_size: int | None = None,
) -> SourceSettings:
    """Build :class:`SourceSettings` from explicit overrides, then ``NEO_*`` env
    vars, then defaults."""

    defaults = SourceSettings()
    return SourceSettings(
        api_url=api_url or _env_str("NEO_API_URL") or defaults.api_url,
        page_size=page_size or _env_int("NEO_PAGE_SIZE", defaults.page_size),
        auth_token=_env_str("NEO_API_TOKEN"),
        session_cookie=_env_str("NEO_SESSION_COOKIE"),
    )


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_TIME_TIERS_DAYS",
    "MatchSettings",
    "SourceSettings",
    "load_match_settings",
    "load_source_settings",
]
