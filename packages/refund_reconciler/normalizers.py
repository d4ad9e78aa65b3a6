"""Merchant name normalization used for refund/purchase comparison.

Card descriptors carry store or location suffixes (``"STARBUCKS #1234"``) and
inconsistent spacing/casing. Two descriptions refer to the same merchant when
their normalized forms are equal (exact path) or similar enough per
:mod:`refund_reconciler.similarity` (fuzzy path).
"""

from __future__ import annotations

import re

_STORE_NUMBER_RE = re.compile(r"#\d+")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_merchant_name(name: str) -> str:
    """Return the canonical form of a merchant description.

    Strips every ``#<digits>`` token, collapses whitespace runs to a single
    space, trims, and uppercases. Total over all strings and idempotent.

    >>> normalize_merchant_name("Store #1234   Foo")
    'STORE FOO'
    """

    without_store = _STORE_NUMBER_RE.sub("", name)
    return _WHITESPACE_RE.sub(" ", without_store).strip().upper()


__all__ = ["normalize_merchant_name"]
