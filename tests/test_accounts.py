import pytest

from refund_reconciler import AccountRef, parse_account_ref, resolve_account


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (
            "https://member.example.com/accounts/credit/abc123/transactions",
            AccountRef("credit", "abc123"),
        ),
        (
            "https://member.example.com/accounts/savings/s-9/transactions/?page=2#top",
            AccountRef("savings", "s-9"),
        ),
        ("/accounts/credit/abc123/transactions", AccountRef("credit", "abc123")),
        ("https://member.example.com/accounts/credit/abc123", None),
        ("https://member.example.com/rewards", None),
        ("/accounts/chequing/abc/transactions", None),
    ],
)
def test_parse_account_ref(value: str, expected: AccountRef | None):
    assert parse_account_ref(value) == expected


def test_bare_id_is_a_credit_account():
    assert resolve_account("  abc123 ") == AccountRef("credit", "abc123")


def test_resolve_passes_through_parsed_urls():
    ref = resolve_account("/accounts/savings/s1/transactions")
    assert ref == AccountRef("savings", "s1")


@pytest.mark.parametrize("value", ["", "   ", "https://member.example.com/rewards"])
def test_resolve_rejects_unusable_values(value: str):
    with pytest.raises(ValueError):
        resolve_account(value)
