"""Account references taken from a transactions page URL or path.

The web app serves transaction lists at
``/accounts/<credit|savings>/<account id>/transactions``. The CLI accepts such
a URL (or just the path) as well as a bare account id.
"""

from __future__ import annotations

import re
from typing import NamedTuple
from urllib.parse import urlsplit

_TRANSACTIONS_PATH_RE = re.compile(r"^/accounts/(credit|savings)/([^/]+)/transactions/?$")


class AccountRef(NamedTuple):
    type: str
    id: str


def parse_account_ref(url_or_path: str) -> AccountRef | None:
    """Return the account on a transactions page, or ``None`` for any other page.

    >>> parse_account_ref("https://member.example.com/accounts/credit/abc123/transactions")
    AccountRef(type='credit', id='abc123')
    """

    s = url_or_path.strip()
    path = urlsplit(s).path if "://" in s else s.split("?", 1)[0].split("#", 1)[0]
    m = _TRANSACTIONS_PATH_RE.match(path)
    if m is None:
        return None
    return AccountRef(type=m.group(1), id=m.group(2))


def resolve_account(value: str) -> AccountRef:
    """Interpret ``value`` as a transactions page URL/path or a bare credit
    account id.

    Raises ``ValueError`` for empty input and for anything that looks like a
    path but is not a transactions page.
    """

    s = value.strip()
    if not s:
        raise ValueError("account must be a non-empty id or transactions page URL")
    ref = parse_account_ref(s)
    if ref is not None:
        return ref
    if "/" in s:
        raise ValueError(f"not an account transactions page: {value!r}")
    return AccountRef(type="credit", id=s)


__all__ = ["AccountRef", "parse_account_ref", "resolve_account"]
