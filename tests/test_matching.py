import pytest

from refund_reconciler import MatchSettings, Transaction, match_refunds
from refund_reconciler.matching import (
    REASON_FULL_REFUND,
    REASON_FULLY_REFUNDED_PURCHASE,
    REASON_PARTIAL_REFUND,
    REASON_REFUND_TOO_LARGE,
)
from tests.helpers.factories import at, purchase, refund


def _reasons(result) -> list[tuple[str, str]]:
    return [(d.transaction.category, d.reason) for d in result.removed]


# ---- Resolution ----------------------------------------------------------------


def test_full_refund_by_equality_removes_both_and_logs_both():
    p = purchase("ACME", 5000, at(0))
    r = refund("ACME", 5000, at(1))

    result = match_refunds([p, r])

    assert result.transactions == []
    assert _reasons(result) == [
        ("REFUND", REASON_FULL_REFUND),
        ("PURCHASE", REASON_FULLY_REFUNDED_PURCHASE),
    ]
    assert result.removed[0].transaction == r
    assert result.removed[1].transaction == p
    assert [(m.expense, m.refund) for m in result.matches] == [(p, r)]


def test_refund_larger_than_purchase_counts_as_full_refund():
    p = purchase("ACME", 5000, at(0))
    r = refund("ACME", 6000, at(1))

    result = match_refunds([p, r])

    assert result.transactions == []
    assert [d.reason for d in result.removed] == [REASON_FULL_REFUND, REASON_FULLY_REFUNDED_PURCHASE]


def test_partial_refund_reduces_purchase_and_keeps_it():
    p = purchase("ACME", 10000, at(0))
    r = refund("ACME", 4000, at(1))

    result = match_refunds([p, r])

    assert len(result.transactions) == 1
    kept = result.transactions[0]
    assert kept.amount_cents == -6000
    assert kept.description == "ACME"
    assert _reasons(result) == [("REFUND", REASON_PARTIAL_REFUND)]
    # The input record itself is never modified
    assert p.amount_cents == -10000


def test_second_partial_refund_matches_remaining_balance_exactly():
    p = purchase("ACME", 10000, at(0))
    r1 = refund("ACME", 4000, at(1))
    r2 = refund("ACME", 6000, at(2))

    result = match_refunds([p, r1, r2])

    assert result.transactions == []
    assert [d.reason for d in result.removed] == [
        REASON_PARTIAL_REFUND,
        REASON_FULL_REFUND,
        REASON_FULLY_REFUNDED_PURCHASE,
    ]
    # The purchase is logged with the balance it had when fully refunded
    assert result.removed[2].transaction.amount_cents == -6000


def test_consumed_purchase_is_not_matched_twice():
    p = purchase("ACME", 5000, at(0))
    r1 = refund("ACME", 5000, at(1))
    r2 = refund("ACME", 5000, at(2))

    result = match_refunds([p, r1, r2])

    assert result.transactions == [r2]
    assert result.unmatched_refunds == [r2]
    assert len(result.matches) == 1


# ---- Search order --------------------------------------------------------------


def test_exact_match_wins_over_fuzzy_candidate_in_same_window():
    fuzzy_candidate = purchase("ACME", 7000, at(0.5))
    exact = purchase("ACME", 5000, at(0))
    r = refund("ACME", 5000, at(1))

    result = match_refunds([fuzzy_candidate, exact, r])

    assert result.matches[0].expense == exact
    assert result.transactions == [fuzzy_candidate]


def test_nearer_time_tier_wins_even_if_listed_later():
    far = purchase("ACME", 5000, at(-6))
    near = purchase("ACME", 5000, at(0))
    r = refund("ACME", 5000, at(1))

    result = match_refunds([far, near, r])

    assert result.matches[0].expense == near
    assert result.transactions == [far]


def test_match_found_in_wider_tier_when_narrow_ones_are_empty():
    p = purchase("ACME", 5000, at(0))
    r = refund("ACME", 5000, at(44))

    result = match_refunds([p, r])

    assert result.transactions == []


def test_window_upper_bound_is_inclusive_and_purchase_must_be_strictly_earlier():
    at_limit = purchase("ACME", 5000, at(0))
    r = refund("ACME", 5000, at(45))
    assert match_refunds([at_limit, r]).transactions == []

    too_old = purchase("ACME", 5000, at(0))
    late = refund("ACME", 5000, at(45.01))
    assert match_refunds([too_old, late]).transactions == [too_old, late]

    same_time = purchase("ACME", 5000, at(0))
    simultaneous = refund("ACME", 5000, at(0))
    assert match_refunds([same_time, simultaneous]).unmatched_refunds == [simultaneous]

    after = purchase("ACME", 5000, at(2))
    before = refund("ACME", 5000, at(1))
    assert match_refunds([after, before]).unmatched_refunds == [before]


def test_fuzzy_match_on_similar_names_with_different_amount():
    p = purchase("Amazon Mktplace CA PMTS #9", 8000, at(0))
    r = refund("AMAZON MKTPLACE CA", 3000, at(3))

    result = match_refunds([p, r])

    assert result.transactions[0].amount_cents == -5000
    assert [d.reason for d in result.removed] == [REASON_PARTIAL_REFUND]


def test_fuzzy_below_threshold_does_not_match():
    p = purchase("ACME HARDWARE TORONTO", 8000, at(0))
    r = refund("ACME HARDWARE", 3000, at(1))

    result = match_refunds([p, r])

    assert result.matches == []
    assert result.transactions == [p, r]
    assert result.removed == []


def test_fuzzy_tie_break_input_order_vs_best_score():
    looser = purchase("AMAZON MKTPLACE CA PMTS", 9000, at(0))
    tighter = purchase("AMAZON MKTPLACE CA", 2500, at(0.5))
    r = refund("AMAZON MKTPLACE CA", 2000, at(1))

    first = match_refunds([looser, tighter, r])
    assert first.matches[0].expense == looser

    ranked = match_refunds(
        [looser, tighter, r], MatchSettings(fuzzy_tie_break="best_score")
    )
    assert ranked.matches[0].expense == tighter


# ---- Anomaly guard -------------------------------------------------------------


def test_oversized_refund_is_rejected_logged_and_kept():
    p = purchase("ACME", 1000, at(0))
    r = refund("ACME", 3000, at(1))

    result = match_refunds([p, r])

    assert result.matches == []
    assert _reasons(result) == [("REFUND", REASON_REFUND_TOO_LARGE)]
    assert result.transactions == [p, r]
    assert result.unmatched_refunds == [r]


def test_refund_at_exactly_threshold_is_still_matched():
    p = purchase("ACME", 1000, at(0))
    r = refund("ACME", 2500, at(1))

    result = match_refunds([p, r])

    assert result.transactions == []
    assert [d.reason for d in result.removed] == [REASON_FULL_REFUND, REASON_FULLY_REFUNDED_PURCHASE]


def test_guard_uses_largest_purchase_of_the_same_merchant_only():
    small = purchase("ACME #1", 1000, at(0))
    large = purchase("acme #2", 2000, at(-60))
    other = purchase("BIG BOX", 100000, at(0))
    r = refund("ACME", 4500, at(1))

    result = match_refunds([small, large, other, r])

    # 4500 <= 2.5 * 2000, so the refund is not rejected; it fully covers `small`
    assert REASON_REFUND_TOO_LARGE not in [d.reason for d in result.removed]
    assert result.matches[0].expense == small


# ---- Pass-through and shape ----------------------------------------------------


def test_unmatched_refund_passes_through_without_log_entry():
    r = refund("NOWHERE", 1234, at(0))

    result = match_refunds([r])

    assert result.transactions == [r]
    assert result.removed == []


def test_final_set_is_purchases_then_unmatched_refunds_and_drops_other_categories():
    r = refund("NOWHERE", 1234, at(0))
    fee = Transaction(
        description="ANNUAL FEE",
        category="FEE",
        amount_cents=-12000,
        authorization_processed_at=at(0),
        status="APPROVED",
    )
    p = purchase("ACME", 500, at(1))

    result = match_refunds([r, fee, p])

    assert result.transactions == [p, r]


def test_custom_categories_and_tiers():
    settings = MatchSettings(
        time_tiers_days=(3,),
        purchase_category="DEBIT",
        refund_category="CREDIT",
    )
    p = Transaction(
        description="ACME",
        category="DEBIT",
        amount_cents=-700,
        authorization_processed_at=at(0),
        status="APPROVED",
    )
    r = Transaction(
        description="ACME",
        category="CREDIT",
        amount_cents=700,
        authorization_processed_at=at(5),
        status="APPROVED",
    )

    assert match_refunds([p, r], settings).transactions == [p, r]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"time_tiers_days": ()},
        {"time_tiers_days": (2, 1)},
        {"time_tiers_days": (0, 1)},
        {"similarity_threshold": 1.5},
        {"anomaly_multiplier": 0},
        {"fuzzy_tie_break": "random"},
        {"purchase_category": "X", "refund_category": "X"},
    ],
)
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        MatchSettings(**kwargs)


def test_timestamps_with_and_without_offset_can_be_matched():
    def _wire(category: str, cents: int, when: str) -> Transaction:
        return Transaction.model_validate(
            {
                "description": "ACME",
                "category": category,
                "amountCents": cents,
                "authorizationProcessedAt": when,
                "status": "APPROVED",
            }
        )

    naive = _wire("PURCHASE", -5000, "2024-03-01T10:00:00")
    bare_date = _wire("PURCHASE", -700, "2024-03-01")
    r1 = _wire("REFUND", 5000, "2024-03-02T09:00:00Z")
    r2 = _wire("REFUND", 700, "2024-03-01T20:00:00+00:00")

    result = match_refunds([naive, bare_date, r1, r2])

    assert result.transactions == []
    assert [(m.expense.amount_cents, m.refund) for m in result.matches] == [
        (-5000, r1),
        (-700, r2),
    ]
    assert naive.authorization_processed_at.utcoffset() is not None
    assert naive.date_str == "2024-03-01"
