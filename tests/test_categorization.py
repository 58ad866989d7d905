from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

import finflow.categorization as categorization_mod
from finflow.categorization import (
    categorize_all_transactions,
    categorize_transaction,
    categorize_transactions,
    learn_from_corrections,
)
from finflow.rules import set_transaction_category
from tests.helpers.db import add_transaction

WHEN = datetime(2024, 1, 15)


def test_merchant_pattern_assigns_category_and_subcategory(repo, checking, session) -> None:
    txn = add_transaction(session, checking, posted_at=WHEN, amount="-5.75",
                          description="STARBUCKS STORE #123")

    assert categorize_transaction(repo, txn.id) is True

    assert txn.category_code == "food-and-dining"
    assert txn.subcategory_code == "food-and-dining/fast-food"
    assert txn.category_source == "rules"
    assert txn.category_confidence == Decimal("0.95")
    assert txn.merchant == "STARBUCKS STORE"
    assert txn.categorized_at is not None


def test_user_rule_beats_merchant_pattern(repo, checking, session) -> None:
    repo.add_category_rule(category_code="shopping", description_includes=["starbucks"])
    txn = add_transaction(session, checking, posted_at=WHEN, amount="-5.75",
                          description="STARBUCKS STORE #123")

    assert categorize_transaction(repo, txn.id) is True

    assert txn.category_code == "shopping"
    assert txn.subcategory_code is None
    assert txn.category_source == "rules"


def test_rules_apply_in_priority_order(repo, checking, session) -> None:
    repo.add_category_rule(category_code="shopping", description_includes=["corner"], priority=1)
    repo.add_category_rule(category_code="housing", description_includes=["corner"], priority=10)
    txn = add_transaction(session, checking, posted_at=WHEN, amount="-30.00",
                          description="CORNER SHOP 88")

    categorize_transaction(repo, txn.id)

    assert txn.category_code == "housing"


def test_account_scoped_rule_only_applies_to_its_account(repo, checking, savings, session) -> None:
    repo.add_category_rule(
        category_code="education", description_includes=["bookworm"], account_id=savings.id
    )
    on_checking = add_transaction(session, checking, posted_at=WHEN, amount="-12.00",
                                  description="BOOKWORM 12")
    on_savings = add_transaction(session, savings, posted_at=WHEN, amount="-12.00",
                                 description="BOOKWORM 12")

    assert categorize_transaction(repo, on_checking.id) is False
    assert categorize_transaction(repo, on_savings.id) is True
    assert on_savings.category_code == "education"


def test_rule_can_match_on_merchant(repo, checking, session) -> None:
    repo.add_category_rule(category_code="education", merchant="bookworm")
    txn = add_transaction(session, checking, posted_at=WHEN, amount="-12.00",
                          description="BW 0091", merchant="Bookworm Books")

    assert categorize_transaction(repo, txn.id) is True
    assert txn.category_code == "education"


def test_manual_category_is_never_overridden(repo, checking, session) -> None:
    txn = add_transaction(session, checking, posted_at=WHEN, amount="-5.75",
                          description="STARBUCKS STORE #123",
                          category_code="shopping", category_source="manual")

    assert categorize_transaction(repo, txn.id) is False
    assert txn.category_code == "shopping"
    assert txn.category_source == "manual"


def test_transfer_and_income_fallbacks(repo, checking, session) -> None:
    transfer = add_transaction(session, checking, posted_at=WHEN, amount="-500.00",
                               description="ONLINE XFER 4455", is_internal_transfer=True)
    income = add_transaction(session, checking, posted_at=WHEN, amount="900.00",
                             description="ACME DEPOSIT", is_income=True)

    assert categorize_transaction(repo, transfer.id) is True
    assert categorize_transaction(repo, income.id) is True

    assert transfer.category_code == "transfers"
    assert income.category_code == "income"
    assert transfer.category_confidence is None


def test_unmatched_transaction_stays_uncategorized(repo, checking, session) -> None:
    txn = add_transaction(session, checking, posted_at=WHEN, amount="-1.00", description="ZXQW 0001")

    assert categorize_transaction(repo, txn.id) is False
    assert txn.category_code is None
    assert txn.category_source == "none"


def test_foreign_and_missing_transactions_are_ignored(repo, session) -> None:
    from finflow.repository import UserRepository
    from tests.helpers.db import make_account, make_user

    other = make_user(session, "sam@example.com")
    account = make_account(session, other.id, name="Theirs", institution="Chase")
    foreign = add_transaction(session, account, posted_at=WHEN, amount="-5.75",
                              description="STARBUCKS STORE #123")

    assert categorize_transaction(repo, foreign.id) is False
    assert categorize_transaction(repo, 999_999) is False
    assert foreign.category_code is None
    assert categorize_transaction(UserRepository(session, other.id), foreign.id) is True


def test_categorize_all_only_touches_uncategorized(repo, checking, session) -> None:
    done = add_transaction(session, checking, posted_at=WHEN, amount="-9.00",
                           description="NETFLIX.COM", category_code="shopping",
                           category_source="rules")
    pending = add_transaction(session, checking, posted_at=WHEN, amount="-9.00",
                              description="NETFLIX.COM")

    report = categorize_all_transactions(repo)

    assert (report.total, report.categorized, report.failures) == (1, 1, ())
    assert done.category_code == "shopping"
    assert pending.subcategory_code == "entertainment/streaming-services"


def test_batch_collects_failures_and_continues(
    repo, checking, session, monkeypatch: pytest.MonkeyPatch
) -> None:
    first = add_transaction(session, checking, posted_at=WHEN, amount="-5.75",
                            description="STARBUCKS STORE #123")
    broken = add_transaction(session, checking, posted_at=WHEN, amount="-5.75",
                             description="CHIPOTLE 0042")
    last = add_transaction(session, checking, posted_at=WHEN, amount="-15.49",
                           description="NETFLIX.COM")

    original = categorization_mod.categorize_transaction

    def _flaky(r, transaction_id):
        if transaction_id == broken.id:
            raise RuntimeError("database hiccup")
        return original(r, transaction_id)

    monkeypatch.setattr(categorization_mod, "categorize_transaction", _flaky)

    report = categorize_transactions(repo, [first.id, broken.id, last.id])

    assert report.total == 3
    assert report.categorized == 2
    assert [(f.item_id, f.error) for f in report.failures] == [(broken.id, "database hiccup")]
    assert last.category_code == "entertainment"


# ---- Correction learner ----------------------------------------------------------


def _correct(repo, session, account, description: str, category_code: str):
    txn = add_transaction(session, account, posted_at=WHEN, amount="-40.00",
                          description=description)
    set_transaction_category(repo, txn.id, category_code)
    return txn


def test_learner_creates_rule_from_repeated_corrections(repo, checking, session) -> None:
    _correct(repo, session, checking, "GOLDS GYM DOWNTOWN 0412", "subscriptions")
    _correct(repo, session, checking, "GOLDS GYM DOWNTOWN 0519", "subscriptions")

    assert learn_from_corrections(repo) == 1

    (rule,) = repo.list_category_rules(category_code="subscriptions")
    assert rule.priority == 50
    assert {"golds", "downtown"} <= set(rule.description_includes)
    assert "gym" not in rule.description_includes

    # Existing coverage suppresses a duplicate rule.
    assert learn_from_corrections(repo) == 0


def test_learned_rule_categorizes_new_transactions(repo, checking, session) -> None:
    _correct(repo, session, checking, "GOLDS GYM DOWNTOWN 0412", "subscriptions")
    _correct(repo, session, checking, "GOLDS GYM DOWNTOWN 0519", "subscriptions")
    learn_from_corrections(repo)

    fresh = add_transaction(session, checking, posted_at=WHEN, amount="-40.00",
                            description="GOLDS GYM UPTOWN 0621")

    assert categorize_transaction(repo, fresh.id) is True
    assert fresh.category_code == "subscriptions"


def test_learner_keeps_words_in_at_least_half_the_group(repo, checking, session) -> None:
    for description in (
        "DELTA AIRLINES TKT 0101",
        "DELTA AIRLINES TKT 0202",
        "UNITED AIRWAYS TKT 0303",
        "UNITED AIRWAYS BAGS 0404",
    ):
        _correct(repo, session, checking, description, "travel")
    for description in ("CINEMA AMC IMAX 01", "CINEMA AMC 02", "CINEMA AMC BOWLING 03"):
        _correct(repo, session, checking, description, "entertainment")

    assert learn_from_corrections(repo) == 2

    (travel,) = repo.list_category_rules(category_code="travel")
    # 2 of 4 is enough; "tkt" is too short even in 3 of 4; "bags" is 1 of 4.
    assert set(travel.description_includes) == {"delta", "airlines", "united", "airways"}

    (movies,) = repo.list_category_rules(category_code="entertainment")
    # 1 of 3 ("imax", "bowling") is below half; "amc" has only three letters.
    assert movies.description_includes == ["cinema"]


def test_learner_ignores_single_corrections(repo, checking, session) -> None:
    _correct(repo, session, checking, "GOLDS GYM DOWNTOWN 0412", "subscriptions")
    _correct(repo, session, checking, "CITY LIBRARY FINE", "education")

    assert learn_from_corrections(repo) == 0
    assert repo.list_category_rules() == []
