"""Paginated transaction fetch from the card provider's GraphQL API.

Public API:
    - :class:`TransactionSource`
    - :class:`TransactionSourceError`, :class:`FetchCancelled`

The full history is materialized before returning; reconciliation never
starts on a partial list. A fetch can be cancelled between pages through a
``threading.Event``; cancellation discards every page already received.

Retry scope is narrow: transport errors, HTTP 429 and 5xx. GraphQL errors and
unexpected payload shapes are terminal.
"""

from __future__ import annotations

import random
import threading
import time
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import SourceSettings
from .logging_setup import get_logger
from .models import Transaction

# ---- Tunables (private) ------------------------------------------------------

_MAX_ATTEMPTS: int = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

_OPERATION_NAME = "TransactionsList"
_SORT_FIELD = "authorizationProcessedAt"
_QUERY = """query TransactionsList($input: CursorQueryInput!, $creditAccountId: ObjectID!) {
  user {
    creditAccount(id: $creditAccountId) {
      creditTransactionList(input: $input) {
        cursor
        hasNextPage
        results { description category amountCents authorizationProcessedAt status }
      }
    }
  }
}"""

_logger = get_logger("refund_reconciler.source")


class TransactionSourceError(RuntimeError):
    """The remote source failed or returned something unusable."""


class FetchCancelled(Exception):
    """The caller cancelled a fetch; no partial result is returned."""


class _TransactionPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cursor: str | None = None
    has_next_page: bool = Field(default=False, alias="hasNextPage")
    results: list[Transaction] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def _null_results_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        sc = exc.response.status_code
        return sc == 429 or 500 <= sc < 600
    return False


def _sleep_backoff(attempt_no: int) -> None:
    if attempt_no - 1 < len(_BACKOFF_SCHEDULE_SEC):
        base = _BACKOFF_SCHEDULE_SEC[attempt_no - 1]
    else:
        base = _BACKOFF_SCHEDULE_SEC[-1]
    jitter = base * _JITTER_PCT
    delay = base + random.uniform(-jitter, jitter)
    time.sleep(max(0.0, delay))


def _extract_page(payload: Any) -> _TransactionPage:
    if not isinstance(payload, dict):
        raise TransactionSourceError("GraphQL response was not a JSON object")
    errors = payload.get("errors")
    if errors:
        messages = "; ".join(
            str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors
        )
        raise TransactionSourceError(f"GraphQL errors: {messages}")
    try:
        raw = payload["data"]["user"]["creditAccount"]["creditTransactionList"]
    except (KeyError, TypeError) as e:
        raise TransactionSourceError(
            "GraphQL response is missing data.user.creditAccount.creditTransactionList"
        ) from e
    if raw is None:
        raise TransactionSourceError("credit account not found or transaction list unavailable")
    try:
        return _TransactionPage.model_validate(raw)
    except ValidationError as e:
        raise TransactionSourceError(f"invalid transaction page: {e}") from e


class TransactionSource:
    """Client for the ``TransactionsList`` GraphQL operation.

    Parameters
    ----------
    settings:
        Endpoint, paging and auth settings. Defaults to :class:`SourceSettings`.
    client:
        Optional pre-built ``httpx.Client`` (tests pass one backed by
        ``httpx.MockTransport``). When omitted, a client is created and owned
        by this instance; use it as a context manager or call :meth:`close`.
    """

    def __init__(
        self,
        settings: SourceSettings | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or SourceSettings()
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self._settings.timeout_seconds)

    def __enter__(self) -> TransactionSource:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.auth_token:
            headers["Authorization"] = f"Bearer {self._settings.auth_token}"
        if self._settings.session_cookie:
            headers["Cookie"] = self._settings.session_cookie
        return headers

    def _request_body(self, account_id: str, cursor: str | None) -> dict[str, Any]:
        return {
            "operationName": _OPERATION_NAME,
            "query": _QUERY,
            "variables": {
                "creditAccountId": account_id,
                "input": {
                    "cursor": cursor,
                    "limit": self._settings.page_size,
                    "sort": {
                        "direction": self._settings.sort_direction,
                        "field": _SORT_FIELD,
                    },
                },
            },
        }

    def _post_page(self, account_id: str, cursor: str | None, page_index: int) -> _TransactionPage:
        body = self._request_body(account_id, cursor)
        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = self._client.post(
                    self._settings.api_url, json=body, headers=self._headers()
                )
                resp.raise_for_status()
                payload = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= _MAX_ATTEMPTS or not _is_retryable(e):
                    _logger.error(
                        "fetch_transactions:page_failed_terminal page_index=%d "
                        "latency_ms=%.2f error=%s",
                        page_index,
                        dt_ms,
                        e.__class__.__name__,
                    )
                    raise TransactionSourceError(
                        f"transaction fetch failed on page {page_index}: {e}"
                    ) from e
                _logger.warning(
                    "fetch_transactions:page_retry page_index=%d latency_ms=%.2f "
                    "error=%s attempt=%d",
                    page_index,
                    dt_ms,
                    e.__class__.__name__,
                    attempt,
                )
                _sleep_backoff(attempt)
                attempt += 1
                continue

            page = _extract_page(payload)
            _logger.debug(
                "fetch_transactions:page_done page_index=%d num_transactions=%d "
                "has_next_page=%s latency_ms=%.2f",
                page_index,
                len(page.results),
                page.has_next_page,
                (time.perf_counter() - t0) * 1000.0,
            )
            return page

    def fetch_credit_transactions(
        self,
        account_id: str,
        *,
        cancel: threading.Event | None = None,
    ) -> list[Transaction]:
        """Fetch every transaction of credit account ``account_id``.

        Follows the response cursor until ``hasNextPage`` is false. Raises
        :class:`FetchCancelled` when ``cancel`` is set before a page request
        and :class:`TransactionSourceError` on terminal failures.
        """

        if not account_id.strip():
            raise ValueError("account_id must be non-empty")

        _logger.info("fetching credit transactions for account %s", account_id)
        transactions: list[Transaction] = []
        cursor: str | None = None
        page_index = 0
        while True:
            if cancel is not None and cancel.is_set():
                _logger.info(
                    "fetch cancelled after %d pages; discarding %d transactions",
                    page_index,
                    len(transactions),
                )
                raise FetchCancelled(f"fetch for account {account_id} was cancelled")

            page = self._post_page(account_id, cursor, page_index)
            transactions.extend(page.results)
            page_index += 1

            if not page.has_next_page:
                break
            if not page.cursor or page.cursor == cursor:
                raise TransactionSourceError(
                    f"page {page_index - 1} reports more results without a new cursor"
                )
            cursor = page.cursor

        _logger.info(
            "fetched %d transactions in %d pages for account %s",
            len(transactions),
            page_index,
            account_id,
        )
        return transactions


__all__ = ["FetchCancelled", "TransactionSource", "TransactionSourceError"]
