from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from db.models.finance import FfTransaction

from finflow.flow_rules import find_transfer_pairs
from finflow.transfers import GlobalNearestPairing, GreedyNearestPairing, evaluate_candidate
from tests.helpers.db import add_flow_rule, add_transaction

T0 = datetime(2024, 3, 10, 12, 0)


def _txn(id_: int, account_id: int, amount: str, *, hours: float = 0) -> FfTransaction:
    """Unsaved transaction row for exercising the pairing policies in memory."""

    signed = Decimal(amount)
    return FfTransaction(
        id=id_,
        account_id=account_id,
        amount=signed,
        direction="credit" if signed >= 0 else "debit",
        posted_at=T0 + timedelta(hours=hours),
        raw_description="TRANSFER",
    )


def _window(_txn: FfTransaction) -> int:
    return 48


def test_amount_tolerance_is_exclusive() -> None:
    anchor = _txn(1, 10, "-100.00")

    assert evaluate_candidate(anchor, _txn(2, 20, "99.01"), window_hours=48) is not None
    assert evaluate_candidate(anchor, _txn(3, 20, "99.00"), window_hours=48) is None
    assert evaluate_candidate(anchor, _txn(4, 20, "100.99"), window_hours=48) is not None


def test_candidate_requirements() -> None:
    anchor = _txn(1, 10, "-250.00")

    assert evaluate_candidate(anchor, anchor, window_hours=48) is None
    assert evaluate_candidate(anchor, _txn(2, 10, "250.00"), window_hours=48) is None  # same account
    assert evaluate_candidate(anchor, _txn(3, 20, "-250.00"), window_hours=48) is None  # same direction
    assert evaluate_candidate(anchor, _txn(4, 20, "250.00", hours=48), window_hours=48) is not None
    assert evaluate_candidate(anchor, _txn(5, 20, "250.00", hours=-49), window_hours=48) is None

    grouped = _txn(6, 20, "250.00")
    grouped.transfer_group_id = "taken"
    assert evaluate_candidate(anchor, grouped, window_hours=48) is None


def test_greedy_prefers_smallest_difference_then_nearest_time() -> None:
    anchor = _txn(1, 10, "-100.00")
    far_exact = _txn(2, 20, "100.00", hours=30)
    near_exact = _txn(3, 20, "100.00", hours=2)
    near_off = _txn(4, 20, "100.50", hours=1)

    (pair,) = GreedyNearestPairing().pair([anchor], [far_exact, near_exact, near_off], _window)

    assert pair.counterpart is near_exact
    assert pair.amount_difference == Decimal("0.00")


def test_each_transaction_joins_one_pair() -> None:
    a1 = _txn(1, 10, "-60.00", hours=5)
    a2 = _txn(2, 10, "-60.00", hours=4)
    only = _txn(3, 20, "60.00", hours=4)

    pairs = GreedyNearestPairing().pair([a1, a2], [a1, a2, only], _window)

    assert [(p.anchor.id, p.counterpart.id) for p in pairs] == [(1, 3)]


def test_global_policy_can_pair_more_than_greedy() -> None:
    a1 = _txn(1, 10, "-100.00", hours=2)
    a2 = _txn(2, 10, "-100.50", hours=1)
    c1 = _txn(3, 20, "100.30")
    c2 = _txn(4, 20, "99.40")
    anchors, pool = [a1, a2], [a1, a2, c1, c2]

    greedy = GreedyNearestPairing().pair(anchors, pool, _window)
    global_ = GlobalNearestPairing().pair(anchors, pool, _window)

    assert [(p.anchor.id, p.counterpart.id) for p in greedy] == [(1, 3)]
    assert sorted((p.anchor.id, p.counterpart.id) for p in global_) == [(1, 4), (2, 3)]


# ---- Persistence of pairs --------------------------------------------------------


def test_pairs_are_stamped_symmetrically(repo, checking, savings, session) -> None:
    out = add_transaction(session, checking, posted_at=T0, amount="-500.00",
                          is_internal_transfer=True)
    into = add_transaction(session, savings, posted_at=T0 + timedelta(hours=24), amount="500.00",
                           is_income=True)

    (pair,) = find_transfer_pairs(repo)

    assert pair.transfer_group_id
    for txn, other in ((out, into), (into, out)):
        assert txn.transfer_group_id == pair.transfer_group_id
        assert txn.is_internal_transfer is True
        assert txn.is_income is False
        assert txn.is_expense is False
        assert txn.counterparty_account_id == other.account_id
    assert repo.count_transfers() == 2

    # Already paired rows are not paired again.
    assert find_transfer_pairs(repo) == []


def test_default_window_excludes_distant_counterparts(repo, checking, savings, session) -> None:
    add_transaction(session, checking, posted_at=T0, amount="-500.00", is_internal_transfer=True)
    add_transaction(session, savings, posted_at=T0 + timedelta(hours=49), amount="500.00")

    assert find_transfer_pairs(repo) == []
    assert len(find_transfer_pairs(repo, time_window_hours=72)) == 1


def test_rule_window_overrides_default(repo, checking, savings, session, user_id) -> None:
    rule = add_flow_rule(session, user_id, handling="internal_transfer",
                         description_includes=["transfer"], time_window_hours=96)
    add_transaction(session, checking, posted_at=T0, amount="-500.00",
                    is_internal_transfer=True, flow_rule_id=rule.id)
    add_transaction(session, savings, posted_at=T0 + timedelta(hours=90), amount="500.00")

    assert len(find_transfer_pairs(repo)) == 1


def test_greedy_strategy_is_the_default(repo, checking, savings, session) -> None:
    add_transaction(session, checking, posted_at=T0 + timedelta(hours=2), amount="-100.00",
                    is_internal_transfer=True)
    add_transaction(session, checking, posted_at=T0 + timedelta(hours=1), amount="-100.50",
                    is_internal_transfer=True)
    add_transaction(session, savings, posted_at=T0, amount="100.30")
    add_transaction(session, savings, posted_at=T0, amount="99.40")

    assert len(find_transfer_pairs(repo)) == 1


def test_global_strategy_pairs_all(repo, checking, savings, session) -> None:
    add_transaction(session, checking, posted_at=T0 + timedelta(hours=2), amount="-100.00",
                    is_internal_transfer=True)
    add_transaction(session, checking, posted_at=T0 + timedelta(hours=1), amount="-100.50",
                    is_internal_transfer=True)
    add_transaction(session, savings, posted_at=T0, amount="100.30")
    add_transaction(session, savings, posted_at=T0, amount="99.40")

    pairs = find_transfer_pairs(repo, strategy=GlobalNearestPairing())

    assert len(pairs) == 2
    assert repo.count_transfers() == 4
